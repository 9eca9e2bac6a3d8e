from contextlib import asynccontextmanager
import logging
import traceback

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import select, func, text
from sqlalchemy.exc import IntegrityError

from courier.config import settings
from courier.api.v1.router import api_router, public_router
from courier.core.exceptions import CourierException
from courier.core.security import get_password_hash
from courier.database import init_db, async_session_factory, get_db_session
from courier.db_types import utc_now
from courier.jobs.scheduler import start_scheduler, shutdown_scheduler, get_job_status
from courier.models.role import Role, DataScope, SUPER_ADMIN_ROLE
from courier.models.user import User


logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)

PUBLIC_API_PREFIX = "/api/public/"


async def auto_seed_admin():
    """
    Seed the Super Admin role and the first administrator from
    FIRST_ADMIN_* settings. Skipped once any user exists.
    """
    async with get_db_session() as session:
        user_count = (await session.execute(select(func.count(User.id)))).scalar()
        if user_count:
            logger.info(f"{user_count} user(s) present, admin seeding skipped")
            return

        role = (
            await session.execute(select(Role).where(Role.name == SUPER_ADMIN_ROLE))
        ).scalar_one_or_none()
        if role is None:
            role = Role(
                name=SUPER_ADMIN_ROLE,
                description="Full access to every module",
                data_scope=DataScope.ALL.value,
                is_system_role=True,
            )
            session.add(role)
            await session.flush()

        session.add(User(
            email=settings.FIRST_ADMIN_EMAIL.lower(),
            password_hash=get_password_hash(settings.FIRST_ADMIN_PASSWORD),
            name=settings.FIRST_ADMIN_NAME,
            role_id=role.id,
        ))
    logger.info(f"Seeded administrator {settings.FIRST_ADMIN_EMAIL}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Startup: create tables, seed the first administrator, start the scheduler.
    Shutdown: stop the scheduler.
    """
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    await init_db()
    await auto_seed_admin()

    if settings.SCHEDULER_ENABLED:
        start_scheduler()

    yield

    shutdown_scheduler()
    logger.info("Shutting down...")


OPENAPI_TAGS = [
    {"name": "Authentication", "description": "JWT-based authentication with access/refresh tokens"},
    {"name": "Users", "description": "Back-office user management"},
    {"name": "Roles", "description": "Roles with per-module permission flags and data scope"},
    {"name": "Shippers", "description": "Shipper accounts and their consignee address books"},
    {"name": "Bookings", "description": "Consignment booking, status tracking and proof of delivery"},
    {"name": "Rates", "description": "Shipping rate quotes"},
    {"name": "Manifests", "description": "Grouping bookings for line-haul"},
    {"name": "Dispatches", "description": "Vehicle dispatches carrying manifests"},
    {"name": "Invoices", "description": "GST invoices, per booking or consolidated"},
    {"name": "Payments", "description": "Gateway payments and refunds"},
    {"name": "Shipment Exceptions", "description": "Delivery exceptions and their resolution"},
    {"name": "Support Tickets", "description": "Customer support tickets with escalation"},
    {"name": "API Keys", "description": "Integrator credentials and usage"},
    {"name": "Reports", "description": "Dashboard figures"},
    {"name": "Integrator API", "description": "Public API authenticated by X-API-Key / X-API-Secret"},
]

# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_tags=OPENAPI_TAGS,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API routers
app.include_router(api_router)
app.include_router(public_router)


def is_public_api(request: Request) -> bool:
    return request.url.path.startswith(PUBLIC_API_PREFIX)


@app.exception_handler(CourierException)
async def courier_exception_handler(request: Request, exc: CourierException):
    """Render domain errors; integrator responses use the success/error envelope."""
    if is_public_api(request):
        content = {"success": False, "error": exc.detail, **exc.extra}
    else:
        content = exc.to_dict()
    return JSONResponse(status_code=exc.status_code, content=content)


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    logger.warning(f"Integrity error on {request.method} {request.url.path}: {exc.orig}")
    detail = "Record conflicts with existing data"
    if is_public_api(request):
        content = {"success": False, "error": detail}
    else:
        content = {"detail": detail, "error": "DuplicateIdentifier"}
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content=content)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Unexpected errors; message and traceback are only exposed in DEBUG."""
    logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)

    if settings.DEBUG:
        error_detail = {
            "error": str(exc),
            "type": type(exc).__name__,
            "path": str(request.url.path),
            "method": request.method,
            "traceback": traceback.format_exc(),
        }
    else:
        error_detail = {"error": "Internal server error"}
    if is_public_api(request):
        error_detail["success"] = False

    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=error_detail)


@app.get("/health", tags=["Health"])
async def health_check():
    """Database reachability and scheduled jobs; 503 when the database is down."""
    checks = {"database": "connected"}
    healthy = True
    try:
        async with async_session_factory() as session:
            await session.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(f"Health check: database unreachable: {e}")
        healthy = False
        checks["database"] = f"error: {e}" if settings.DEBUG else "unreachable"

    body = {
        "status": "healthy" if healthy else "unhealthy",
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": utc_now().isoformat(),
        "checks": checks,
        "jobs": get_job_status(),
    }
    return JSONResponse(status_code=200 if healthy else 503, content=body)


@app.get("/", tags=["Root"])
async def root():
    return {
        "app": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "api": "/api/v1",
        "integrator_api": "/api/public/v1",
        "docs": "/docs",
    }
