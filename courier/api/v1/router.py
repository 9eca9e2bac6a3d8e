from fastapi import APIRouter

from courier.api.v1.endpoints import (
    # Access Control
    auth,
    users,
    roles,
    # Customers
    shippers,
    # Operations
    bookings,
    rates,
    manifests,
    dispatches,
    # Billing
    invoices,
    payments,
    cheques,
    # Support
    exceptions,
    tickets,
    # Integrators
    api_keys,
    integrations,
    # Dashboard
    reports,
)


# Back-office API (JWT bearer auth)
api_router = APIRouter(prefix="/api/v1")

# ==================== Access Control ====================
api_router.include_router(auth.router, prefix="/auth")
api_router.include_router(users.router, prefix="/users")
api_router.include_router(roles.router, prefix="/roles")

# ==================== Shippers & Consignees ====================
api_router.include_router(shippers.router, prefix="/shippers")

# ==================== Bookings & Rates ====================
api_router.include_router(bookings.router, prefix="/bookings")
api_router.include_router(rates.router, prefix="/rates")

# ==================== Manifests & Dispatches ====================
api_router.include_router(manifests.router, prefix="/manifests")
api_router.include_router(dispatches.router, prefix="/dispatches")

# ==================== Invoices & Payments ====================
api_router.include_router(invoices.router, prefix="/invoices")
api_router.include_router(payments.router, prefix="/payments")
api_router.include_router(cheques.router, prefix="/cheques")

# ==================== Exceptions & Tickets ====================
api_router.include_router(exceptions.router, prefix="/exceptions")
api_router.include_router(tickets.router, prefix="/tickets")

# ==================== API Keys ====================
api_router.include_router(api_keys.router, prefix="/api-keys")

# ==================== Reports (Dashboard) ====================
api_router.include_router(reports.router, prefix="/reports")


# Integrator API (X-API-Key / X-API-Secret)
public_router = APIRouter(prefix="/api/public/v1")
public_router.include_router(integrations.router)
