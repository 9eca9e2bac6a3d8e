"""
Rate calculation for bookings and rate quotes.

    shipping  = base_rate(service) + weight_kg * per_kg
    insurance = declared_value * insurance_rate
    cod       = cod_amount * cod_rate          (COD payment mode only)
    fuel      = shipping * fuel_surcharge_rate
    subtotal  = shipping + insurance + cod + fuel
    gst       = subtotal * gst_rate / 100
    total     = subtotal + gst

All values are Decimal at full precision. Rounding to 2 places is done
only by ChargeBreakdown.rounded(), which callers use at the API or
storage boundary.
"""
import logging
from dataclasses import dataclass
from datetime import date, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from courier.config import settings
from courier.core.exceptions import UnknownServiceType
from courier.models.booking import PaymentMode

logger = logging.getLogger(__name__)

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0")


def to_decimal(value) -> Decimal:
    if value is None:
        return ZERO
    if isinstance(value, Decimal):
        return value
    # str() keeps floats like 2.5 exact instead of their binary expansion
    return Decimal(str(value))


def money(value) -> Decimal:
    """Round half-up to 2 decimal places."""
    return to_decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class ChargeBreakdown:
    service_type: str
    base_rate: Decimal
    shipping: Decimal
    insurance: Decimal
    cod: Decimal
    fuel_surcharge: Decimal
    subtotal: Decimal
    gst: Decimal
    total: Decimal

    def rounded(self) -> "ChargeBreakdown":
        return ChargeBreakdown(
            service_type=self.service_type,
            base_rate=money(self.base_rate),
            shipping=money(self.shipping),
            insurance=money(self.insurance),
            cod=money(self.cod),
            fuel_surcharge=money(self.fuel_surcharge),
            subtotal=money(self.subtotal),
            gst=money(self.gst),
            total=money(self.total),
        )

    def as_charges(self) -> dict:
        """Wire shape used by rate quotes: rounded, camelCase keys."""
        r = self.rounded()
        return {
            "shipping": float(r.shipping),
            "insurance": float(r.insurance),
            "cod": float(r.cod),
            "fuelSurcharge": float(r.fuel_surcharge),
            "gst": float(r.gst),
            "subtotal": float(r.subtotal),
            "total": float(r.total),
        }


class RateCalculator:
    """Computes charge breakdowns from the configured rate card."""

    def __init__(
        self,
        base_rates: Optional[dict] = None,
        default_base_rate=None,
        per_kg_rate=None,
        insurance_rate=None,
        cod_rate=None,
        fuel_surcharge_rate=None,
        gst_rate=None,
        strict: Optional[bool] = None,
    ):
        rates = base_rates if base_rates is not None else settings.SERVICE_BASE_RATES
        self.base_rates = {name: to_decimal(rate) for name, rate in rates.items()}
        self.default_base_rate = to_decimal(
            settings.DEFAULT_BASE_RATE if default_base_rate is None else default_base_rate
        )
        self.per_kg_rate = to_decimal(settings.PER_KG_RATE if per_kg_rate is None else per_kg_rate)
        self.insurance_rate = to_decimal(settings.INSURANCE_RATE if insurance_rate is None else insurance_rate)
        self.cod_rate = to_decimal(settings.COD_RATE if cod_rate is None else cod_rate)
        self.fuel_surcharge_rate = to_decimal(
            settings.FUEL_SURCHARGE_RATE if fuel_surcharge_rate is None else fuel_surcharge_rate
        )
        self.gst_rate = to_decimal(settings.GST_RATE if gst_rate is None else gst_rate)
        self.strict = settings.STRICT_SERVICE_TYPES if strict is None else strict

    def base_rate_for(self, service_type: str) -> Decimal:
        rate = self.base_rates.get(service_type)
        if rate is not None:
            return rate
        if self.strict:
            raise UnknownServiceType(
                f"Unknown service type '{service_type}'. "
                f"Valid types: {', '.join(self.base_rates)}"
            )
        logger.warning(
            f"Unknown service type '{service_type}', using default base rate {self.default_base_rate}"
        )
        return self.default_base_rate

    def calculate(
        self,
        service_type: str,
        weight_kg,
        declared_value=None,
        cod_amount=None,
        payment_mode: Optional[str] = None,
    ) -> ChargeBreakdown:
        """
        Charge breakdown for one shipment.

        Weight is not validated here. COD is charged when the payment mode
        is COD; with no payment mode given (plain rate quote) a supplied
        COD amount is charged as well.
        """
        base_rate = self.base_rate_for(service_type)
        weight = to_decimal(weight_kg)

        shipping = base_rate + weight * self.per_kg_rate
        insurance = to_decimal(declared_value) * self.insurance_rate if declared_value else ZERO

        charge_cod = payment_mode is None or payment_mode == PaymentMode.COD.value
        cod = to_decimal(cod_amount) * self.cod_rate if (cod_amount and charge_cod) else ZERO

        fuel_surcharge = shipping * self.fuel_surcharge_rate
        subtotal = shipping + insurance + cod + fuel_surcharge
        gst = subtotal * self.gst_rate / Decimal("100")

        return ChargeBreakdown(
            service_type=service_type,
            base_rate=base_rate,
            shipping=shipping,
            insurance=insurance,
            cod=cod,
            fuel_surcharge=fuel_surcharge,
            subtotal=subtotal,
            gst=gst,
            total=subtotal + gst,
        )


def calculate_rate(service_type, weight_kg, declared_value=None, cod_amount=None, payment_mode=None) -> ChargeBreakdown:
    """Rate with the configured rate card."""
    return RateCalculator().calculate(service_type, weight_kg, declared_value, cod_amount, payment_mode)


def expected_delivery(service_type: str, from_date: date) -> date:
    days = settings.SERVICE_DELIVERY_DAYS.get(service_type, settings.DEFAULT_DELIVERY_DAYS)
    return from_date + timedelta(days=days)
