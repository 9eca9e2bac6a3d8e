# Services module
from courier.services.auth_service import AuthService
from courier.services.rbac_service import RBACService
from courier.services.shipper_service import ShipperService
from courier.services.document_sequence_service import DocumentSequenceService
from courier.services.rate_calculator import RateCalculator
from courier.services.booking_service import BookingService
from courier.services.invoice_service import InvoiceService
from courier.services.payment_service import PaymentService

# Operations
from courier.services.manifest_service import ManifestService
from courier.services.exception_service import ExceptionService
from courier.services.ticket_service import TicketService

# Integrations and reporting
from courier.services.api_key_service import ApiKeyService
from courier.services.report_service import ReportService

__all__ = [
    "AuthService",
    "RBACService",
    "ShipperService",
    "DocumentSequenceService",
    "RateCalculator",
    "BookingService",
    "InvoiceService",
    "PaymentService",
    "ManifestService",
    "ExceptionService",
    "TicketService",
    "ApiKeyService",
    "ReportService",
]
