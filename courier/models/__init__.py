# Import every model so Base.metadata knows all tables
from courier.models.role import Role, DataScope
from courier.models.user import User
from courier.models.shipper import Shipper, Consignee
from courier.models.booking import Booking, BookingStatusHistory
from courier.models.invoice import Invoice, InvoiceItem, InvoicePaymentRecord
from courier.models.payment import Payment
from courier.models.cheque import Cheque
from courier.models.manifest import Manifest, Dispatch
from courier.models.shipment_exception import ShipmentException, ExceptionNote, ExceptionStatusHistory
from courier.models.ticket import SupportTicket, TicketResponse, TicketStatusHistory
from courier.models.api_key import ApiKey
from courier.models.document_sequence import DocumentSequence

__all__ = [
    "Role",
    "DataScope",
    "User",
    "Shipper",
    "Consignee",
    "Booking",
    "BookingStatusHistory",
    "Invoice",
    "InvoiceItem",
    "InvoicePaymentRecord",
    "Payment",
    "Cheque",
    "Manifest",
    "Dispatch",
    "ShipmentException",
    "ExceptionNote",
    "ExceptionStatusHistory",
    "SupportTicket",
    "TicketResponse",
    "TicketStatusHistory",
    "ApiKey",
    "DocumentSequence",
]
