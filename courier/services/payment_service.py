"""
Payment transaction service.

A payment moves Pending -> Processing -> Completed | Failed | Cancelled.
Completing a payment records it on the linked invoice in the same
transaction. Refunded is only reachable from Completed.
"""
import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional, Tuple
import uuid

from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from courier.core.exceptions import NotFound, StateConflict, InvalidAmount
from courier.db_types import utc_now
from courier.models.document_sequence import DocumentClass
from courier.models.invoice import Invoice, InvoiceStatus, PaymentStatus
from courier.models.payment import Payment, PaymentState, GATEWAY_RECORD_MODES
from courier.models.user import User
from courier.schemas.payment import (
    PaymentCreate,
    PaymentCompleteRequest,
    PaymentFailRequest,
    PaymentRefundRequest,
)
from courier.services.booking_service import day_bounds
from courier.services.document_sequence_service import DocumentSequenceService
from courier.services.invoice_composer import apply_payment
from courier.services.invoice_service import today_utc
from courier.services.rate_calculator import money, to_decimal

logger = logging.getLogger(__name__)

PAYMENT_TRANSITIONS = {
    PaymentState.PENDING.value: frozenset({
        PaymentState.PROCESSING.value,
        PaymentState.COMPLETED.value,
        PaymentState.FAILED.value,
        PaymentState.CANCELLED.value,
    }),
    PaymentState.PROCESSING.value: frozenset({
        PaymentState.COMPLETED.value,
        PaymentState.FAILED.value,
        PaymentState.CANCELLED.value,
    }),
    PaymentState.COMPLETED.value: frozenset({PaymentState.REFUNDED.value}),
    PaymentState.FAILED.value: frozenset(),
    PaymentState.CANCELLED.value: frozenset(),
    PaymentState.REFUNDED.value: frozenset(),
}


def check_payment_transition(current: str, new_status: str) -> None:
    if new_status not in PAYMENT_TRANSITIONS.get(current, frozenset()):
        raise StateConflict(f"Cannot move payment from {current} to {new_status}")


class PaymentService:
    """Service for payment transactions against invoices."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.sequences = DocumentSequenceService(db)

    async def get_payment(self, payment_id: uuid.UUID, refresh: bool = False) -> Optional[Payment]:
        stmt = select(Payment).where(Payment.id == payment_id)
        if refresh:
            stmt = stmt.execution_options(populate_existing=True)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def require_payment(self, payment_id: uuid.UUID) -> Payment:
        payment = await self.get_payment(payment_id)
        if payment is None:
            raise NotFound("Payment not found")
        return payment

    async def get_payments(
        self,
        shipper_id: Optional[uuid.UUID] = None,
        invoice_id: Optional[uuid.UUID] = None,
        status: Optional[str] = None,
        gateway: Optional[str] = None,
        skip: int = 0,
        limit: int = 20,
    ) -> Tuple[List[Payment], int]:
        filters = []
        if shipper_id:
            filters.append(Payment.shipper_id == shipper_id)
        if invoice_id:
            filters.append(Payment.invoice_id == invoice_id)
        if status:
            filters.append(Payment.status == status)
        if gateway:
            filters.append(Payment.gateway == gateway)

        stmt = select(Payment).order_by(Payment.created_at.desc())
        count_stmt = select(func.count(Payment.id))
        if filters:
            stmt = stmt.where(and_(*filters))
            count_stmt = count_stmt.where(and_(*filters))

        total = (await self.db.execute(count_stmt)).scalar() or 0
        result = await self.db.execute(stmt.offset(skip).limit(limit))
        return list(result.scalars().all()), total

    async def create_payment(self, data: PaymentCreate, user: Optional[User] = None) -> Payment:
        invoice = await self.db.get(Invoice, data.invoice_id)
        if invoice is None:
            raise NotFound("Invoice not found")
        if invoice.status == InvoiceStatus.CANCELLED.value:
            raise StateConflict("Cannot take payment for a cancelled invoice")
        if invoice.payment_status == PaymentStatus.PAID.value:
            raise StateConflict("Invoice is already fully paid")

        balance = to_decimal(invoice.balance_amount)
        amount = money(data.amount) if data.amount is not None else balance
        if amount <= 0 or amount > balance:
            raise InvalidAmount(
                f"Payment amount {amount} must be positive and not exceed balance {balance}",
                balance=float(balance),
            )

        transaction_id = await self.sequences.next_identifier(DocumentClass.TRANSACTION)
        payment = Payment(
            transaction_id=transaction_id,
            invoice_id=invoice.id,
            booking_id=invoice.booking_id,
            shipper_id=invoice.shipper_id,
            amount=amount,
            currency=data.currency.value,
            gateway=data.gateway.value,
            status=PaymentState.PENDING.value,
            description=data.description or f"Payment for {invoice.invoice_number}",
            payer_name=data.payer_name,
            payer_email=data.payer_email,
            created_by=user.id if user else None,
        )
        self.db.add(payment)
        await self.sequences.flush_document(transaction_id)
        await self.db.commit()
        logger.info(f"Payment {transaction_id} created for {invoice.invoice_number}: {amount} via {payment.gateway}")
        return await self.get_payment(payment.id, refresh=True)

    async def mark_processing(self, payment_id: uuid.UUID) -> Payment:
        payment = await self.require_payment(payment_id)
        check_payment_transition(payment.status, PaymentState.PROCESSING.value)
        payment.status = PaymentState.PROCESSING.value
        await self.db.commit()
        return await self.get_payment(payment_id, refresh=True)

    async def complete_payment(
        self,
        payment_id: uuid.UUID,
        data: PaymentCompleteRequest,
        user: Optional[User] = None,
    ) -> Payment:
        """Complete the payment and record it on its invoice."""
        payment = await self.require_payment(payment_id)
        check_payment_transition(payment.status, PaymentState.COMPLETED.value)

        if payment.invoice_id is not None:
            invoice = await self.db.get(Invoice, payment.invoice_id)
            if invoice is None:
                raise NotFound("Invoice for this payment no longer exists")
            apply_payment(
                invoice,
                payment.amount,
                GATEWAY_RECORD_MODES.get(payment.gateway, "Online"),
                today_utc(),
                reference=data.gateway_transaction_id or payment.transaction_id,
                remarks=f"{payment.gateway} payment {payment.transaction_id}",
                recorded_by=user.id if user else None,
                payment_id=payment.id,
            )

        payment.status = PaymentState.COMPLETED.value
        payment.completed_at = utc_now()
        payment.gateway_transaction_id = data.gateway_transaction_id
        payment.gateway_response = data.gateway_response
        await self.db.commit()
        logger.info(f"Payment {payment.transaction_id} completed: {payment.amount}")
        return await self.get_payment(payment_id, refresh=True)

    async def fail_payment(self, payment_id: uuid.UUID, data: PaymentFailRequest) -> Payment:
        payment = await self.require_payment(payment_id)
        check_payment_transition(payment.status, PaymentState.FAILED.value)
        payment.status = PaymentState.FAILED.value
        payment.failed_at = utc_now()
        payment.failure_code = data.failure_code
        payment.failure_message = data.failure_message
        if data.gateway_response is not None:
            payment.gateway_response = data.gateway_response
        await self.db.commit()
        logger.warning(f"Payment {payment.transaction_id} failed: {data.failure_code} {data.failure_message}")
        return await self.get_payment(payment_id, refresh=True)

    async def cancel_payment(self, payment_id: uuid.UUID) -> Payment:
        payment = await self.require_payment(payment_id)
        check_payment_transition(payment.status, PaymentState.CANCELLED.value)
        payment.status = PaymentState.CANCELLED.value
        await self.db.commit()
        return await self.get_payment(payment_id, refresh=True)

    async def refund_payment(self, payment_id: uuid.UUID, data: PaymentRefundRequest) -> Payment:
        """
        Refund a completed payment.

        The invoice's payment records are left as they are; the refund is
        tracked on the payment only.
        """
        payment = await self.require_payment(payment_id)
        check_payment_transition(payment.status, PaymentState.REFUNDED.value)

        amount = money(data.amount) if data.amount is not None else money(payment.amount)
        if amount > to_decimal(payment.amount):
            raise InvalidAmount(f"Refund {amount} exceeds payment amount {payment.amount}")

        payment.status = PaymentState.REFUNDED.value
        payment.refunded_at = utc_now()
        payment.refund_amount = amount
        payment.refund_reason = data.reason
        await self.db.commit()
        logger.info(f"Payment {payment.transaction_id} refunded: {amount}")
        return await self.get_payment(payment_id, refresh=True)

    async def get_stats(
        self,
        shipper_id: Optional[uuid.UUID] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> dict:
        filters = []
        if shipper_id:
            filters.append(Payment.shipper_id == shipper_id)
        start, end = day_bounds(date_from, date_to)
        if start:
            filters.append(Payment.created_at >= start)
        if end:
            filters.append(Payment.created_at <= end)

        status_stmt = select(Payment.status, func.count(Payment.id)).group_by(Payment.status)
        gateway_stmt = (
            select(Payment.gateway, func.coalesce(func.sum(Payment.amount), 0))
            .where(Payment.status == PaymentState.COMPLETED.value)
            .group_by(Payment.gateway)
        )
        refund_stmt = select(func.coalesce(func.sum(Payment.refund_amount), 0)).where(
            Payment.status == PaymentState.REFUNDED.value
        )
        if filters:
            status_stmt = status_stmt.where(and_(*filters))
            gateway_stmt = gateway_stmt.where(and_(*filters))
            refund_stmt = refund_stmt.where(and_(*filters))

        by_status = {row[0]: row[1] for row in (await self.db.execute(status_stmt)).all()}
        by_gateway = {row[0]: float(row[1] or 0) for row in (await self.db.execute(gateway_stmt)).all()}
        refunded = (await self.db.execute(refund_stmt)).scalar() or Decimal("0")

        return {
            "total_payments": sum(by_status.values()),
            "by_status": by_status,
            "completed_revenue": round(sum(by_gateway.values()), 2),
            "refunded_amount": float(refunded),
            "revenue_by_gateway": by_gateway,
        }
