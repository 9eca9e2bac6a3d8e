from decimal import Decimal
from functools import lru_cache
import json

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


# Base freight per shipment in INR, before the per-kg component
DEFAULT_SERVICE_BASE_RATES = {
    "Express": Decimal("100"),
    "Standard": Decimal("70"),
    "Economy": Decimal("50"),
    "Same Day": Decimal("150"),
    "Overnight": Decimal("120"),
    "International": Decimal("200"),
}

DEFAULT_SERVICE_DELIVERY_DAYS = {
    "Express": 1,
    "Standard": 3,
    "Economy": 5,
    "Same Day": 0,
    "Overnight": 1,
    "International": 7,
}


class Settings(BaseSettings):
    """
    Courier backend settings, read from the environment (or .env).

    Only DATABASE_URL and SECRET_KEY are required. Map-valued settings
    (SERVICE_BASE_RATES, SERVICE_DELIVERY_DAYS) take a JSON object.
    """

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", case_sensitive=True)

    APP_NAME: str = "Courier Operations Backend"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    DATABASE_URL: str
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800  # seconds

    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://localhost:5173"]

    SCHEDULER_ENABLED: bool = True
    OVERDUE_SWEEP_INTERVAL_MINUTES: int = 60

    # Seeded only while the users table is empty
    FIRST_ADMIN_EMAIL: str = "admin@courierexpress.com"
    FIRST_ADMIN_PASSWORD: str = "Admin@123"
    FIRST_ADMIN_NAME: str = "System Administrator"

    # Rate card
    SERVICE_BASE_RATES: dict[str, Decimal] = DEFAULT_SERVICE_BASE_RATES
    DEFAULT_BASE_RATE: Decimal = Decimal("70")
    PER_KG_RATE: Decimal = Decimal("10")
    INSURANCE_RATE: Decimal = Decimal("0.02")  # of declared value
    COD_RATE: Decimal = Decimal("0.02")  # of COD amount
    FUEL_SURCHARGE_RATE: Decimal = Decimal("0.1")  # of shipping charge
    GST_RATE: Decimal = Decimal("18")  # percent
    STRICT_SERVICE_TYPES: bool = False
    SERVICE_DELIVERY_DAYS: dict[str, int] = DEFAULT_SERVICE_DELIVERY_DAYS
    DEFAULT_DELIVERY_DAYS: int = 3
    VOLUMETRIC_DIVISOR_CM: Decimal = Decimal("5000")
    VOLUMETRIC_DIVISOR_IN: Decimal = Decimal("139")

    # Issuing company, copied onto every invoice
    COMPANY_NAME: str = "Courier Express Pvt Ltd"
    COMPANY_STATE: str = "Maharashtra"
    COMPANY_GSTIN: str = ""
    COMPANY_ADDRESS: str = ""
    COMPANY_BANK_NAME: str = ""
    COMPANY_BANK_ACCOUNT: str = ""
    COMPANY_BANK_IFSC: str = ""
    INVOICE_DUE_DAYS: int = 30
    INVOICE_SAC_CODE: str = "996791"

    # Defaults for newly issued integrator keys
    API_REQUESTS_PER_MINUTE: int = 60
    API_REQUESTS_PER_DAY: int = 10000

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def parse_cors_origins(cls, v):
        # JSON list or comma-separated
        if isinstance(v, str):
            if v.lstrip().startswith("["):
                return json.loads(v)
            return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @field_validator("SERVICE_BASE_RATES", "SERVICE_DELIVERY_DAYS", mode="before")
    @classmethod
    def parse_service_map(cls, v):
        return json.loads(v) if isinstance(v, str) else v

    def company_details(self) -> dict:
        return {
            "name": self.COMPANY_NAME,
            "state": self.COMPANY_STATE,
            "gstin": self.COMPANY_GSTIN,
            "address": self.COMPANY_ADDRESS,
            "bank_name": self.COMPANY_BANK_NAME,
            "bank_account": self.COMPANY_BANK_ACCOUNT,
            "bank_ifsc": self.COMPANY_BANK_IFSC,
        }


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
