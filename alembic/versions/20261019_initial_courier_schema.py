"""Create courier operations schema.

Revision ID: 20261019_initial
Revises:
Create Date: 2026-10-19

Tables:
- roles, users
- shippers, consignees
- dispatches, manifests, bookings, booking_status_history
- invoices, invoice_items, payments, invoice_payment_records
- shipment_exceptions (+ notes, status history)
- support_tickets (+ responses, status history)
- api_keys
- document_sequences (per class/scope counters)
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID


# revision identifiers, used by Alembic.
revision: str = '20261019_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id() -> sa.Column:
    return sa.Column('id', UUID(as_uuid=True), primary_key=True)


def _user_fk(name: str, index: bool = False) -> sa.Column:
    return sa.Column(name, UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True, index=index)


def _money(name: str, nullable: bool = True) -> sa.Column:
    return sa.Column(name, sa.Numeric(14, 2), nullable=nullable, server_default=None if not nullable else '0')


def _ts(name: str, nullable: bool = True) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def _timestamps() -> list:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
    ]


def _history_table(table: str, parent_table: str, parent_column: str, status_length: int) -> None:
    op.create_table(
        table,
        _id(),
        sa.Column(parent_column, UUID(as_uuid=True), sa.ForeignKey(f'{parent_table}.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('status', sa.String(status_length), nullable=False),
        sa.Column('location', sa.String(200), nullable=True),
        sa.Column('remarks', sa.Text, nullable=True),
        _user_fk('updated_by'),
        _ts('recorded_at', nullable=False),
    )


def upgrade() -> None:
    """Create courier tables."""

    conn = op.get_bind()
    inspector = sa.inspect(conn)
    if 'bookings' in inspector.get_table_names():
        print("courier schema already exists, skipping...")
        return

    # ==================== ACCESS CONTROL ====================

    op.create_table(
        'roles',
        _id(),
        sa.Column('name', sa.String(100), nullable=False, unique=True, index=True),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('permissions', sa.JSON, nullable=False),
        sa.Column('data_scope', sa.String(20), nullable=False, server_default='own', comment='own, branch, zone, all'),
        sa.Column('is_system_role', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        'users',
        _id(),
        sa.Column('email', sa.String(255), nullable=False, unique=True, index=True),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('mobile', sa.String(20), nullable=True),
        sa.Column('branch', sa.String(100), nullable=True, index=True),
        sa.Column('zone', sa.String(100), nullable=True, index=True),
        sa.Column('role_id', UUID(as_uuid=True), sa.ForeignKey('roles.id', ondelete='SET NULL'), nullable=True),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        _ts('last_login_at'),
        *_timestamps(),
    )

    # ==================== SHIPPERS ====================

    op.create_table(
        'shippers',
        _id(),
        sa.Column('name', sa.String(200), nullable=False, comment='Contact person'),
        sa.Column('company', sa.String(200), nullable=False, index=True),
        sa.Column('email', sa.String(255), nullable=False, unique=True, index=True),
        sa.Column('mobile', sa.String(20), nullable=False),
        sa.Column('phone', sa.String(20), nullable=True),
        sa.Column('street', sa.String(300), nullable=True),
        sa.Column('city', sa.String(100), nullable=False),
        sa.Column('state', sa.String(100), nullable=True),
        sa.Column('postal_code', sa.String(20), nullable=True),
        sa.Column('country', sa.String(100), nullable=False, server_default='India'),
        sa.Column('gstin', sa.String(20), nullable=True),
        sa.Column('pan', sa.String(20), nullable=True),
        sa.Column('payment_type', sa.String(20), nullable=False, server_default='COD', comment='COD, Prepaid, Credit'),
        _money('credit_limit'),
        sa.Column('status', sa.String(20), nullable=False, server_default='Active', index=True),
        sa.Column('total_bookings', sa.Integer, nullable=False, server_default='0'),
        _ts('last_booking_date'),
        sa.Column('notes', sa.Text, nullable=True),
        _user_fk('created_by'),
        *_timestamps(),
    )

    op.create_table(
        'consignees',
        _id(),
        sa.Column('shipper_id', UUID(as_uuid=True), sa.ForeignKey('shippers.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('company', sa.String(200), nullable=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('mobile', sa.String(20), nullable=False, index=True),
        sa.Column('street', sa.String(300), nullable=True),
        sa.Column('city', sa.String(100), nullable=True),
        sa.Column('state', sa.String(100), nullable=True),
        sa.Column('postal_code', sa.String(20), nullable=True),
        sa.Column('country', sa.String(100), nullable=False, server_default='India'),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    # ==================== MOVEMENT ====================

    op.create_table(
        'dispatches',
        _id(),
        sa.Column('dispatch_number', sa.String(20), nullable=False, unique=True, index=True, comment='DSP{YYYYMMDD}{4-digit seq}'),
        sa.Column('dispatch_date', sa.DateTime(timezone=True), nullable=True, index=True),
        sa.Column('dispatch_type', sa.String(20), nullable=False, server_default='Outbound'),
        sa.Column('destination_branch', sa.String(100), nullable=True),
        sa.Column('destination_city', sa.String(100), nullable=True),
        sa.Column('transport_mode', sa.String(10), nullable=False, server_default='Road'),
        sa.Column('vehicle_number', sa.String(30), nullable=True),
        sa.Column('driver_name', sa.String(100), nullable=True),
        sa.Column('driver_mobile', sa.String(20), nullable=True),
        sa.Column('carrier_name', sa.String(100), nullable=True),
        sa.Column('seal_number', sa.String(50), nullable=True),
        sa.Column('total_bookings', sa.Integer, nullable=False, server_default='0'),
        sa.Column('total_weight', sa.Numeric(12, 3), nullable=False, server_default='0'),
        sa.Column('total_bags', sa.Integer, nullable=False, server_default='0'),
        _ts('totals_as_of'),
        sa.Column('status', sa.String(20), nullable=False, server_default='Pending', index=True),
        _ts('dispatched_at'),
        _ts('received_at'),
        _user_fk('received_by'),
        sa.Column('remarks', sa.Text, nullable=True),
        _user_fk('created_by', index=True),
        sa.Column('branch', sa.String(100), nullable=True, index=True),
        sa.Column('zone', sa.String(100), nullable=True),
        *_timestamps(),
    )

    op.create_table(
        'manifests',
        _id(),
        sa.Column('manifest_number', sa.String(20), nullable=False, unique=True, index=True, comment='MAN{YYYYMMDD}{4-digit seq}'),
        sa.Column('manifest_date', sa.DateTime(timezone=True), nullable=True, index=True),
        sa.Column('manifest_type', sa.String(20), nullable=False, server_default='Delivery'),
        sa.Column('origin_city', sa.String(100), nullable=True),
        sa.Column('destination_city', sa.String(100), nullable=True),
        sa.Column('route', sa.String(200), nullable=True),
        sa.Column('driver_name', sa.String(100), nullable=True),
        sa.Column('driver_mobile', sa.String(20), nullable=True),
        sa.Column('vehicle_number', sa.String(30), nullable=True),
        sa.Column('total_bookings', sa.Integer, nullable=False, server_default='0'),
        sa.Column('total_weight', sa.Numeric(12, 3), nullable=False, server_default='0'),
        sa.Column('total_pieces', sa.Integer, nullable=False, server_default='0'),
        _money('total_cod_amount'),
        _ts('totals_as_of'),
        sa.Column('status', sa.String(20), nullable=False, server_default='Draft', index=True),
        _ts('dispatched_at'),
        _ts('completed_at'),
        sa.Column('remarks', sa.Text, nullable=True),
        sa.Column('dispatch_id', UUID(as_uuid=True), sa.ForeignKey('dispatches.id', ondelete='SET NULL'), nullable=True, index=True),
        _user_fk('created_by', index=True),
        sa.Column('branch', sa.String(100), nullable=True, index=True),
        sa.Column('zone', sa.String(100), nullable=True),
        *_timestamps(),
    )

    # ==================== BOOKINGS ====================

    op.create_table(
        'bookings',
        _id(),
        sa.Column('awb_number', sa.String(20), nullable=False, unique=True, index=True, comment='AWB{YY}{7-digit seq}'),
        sa.Column('shipper_id', UUID(as_uuid=True), sa.ForeignKey('shippers.id', ondelete='RESTRICT'), nullable=False, index=True),
        sa.Column('consignee_id', UUID(as_uuid=True), sa.ForeignKey('consignees.id', ondelete='SET NULL'), nullable=True),
        sa.Column('consignee_name', sa.String(200), nullable=False),
        sa.Column('consignee_mobile', sa.String(20), nullable=False, index=True),
        sa.Column('consignee_email', sa.String(255), nullable=True),
        sa.Column('consignee_company', sa.String(200), nullable=True),
        sa.Column('consignee_street', sa.String(300), nullable=True),
        sa.Column('consignee_city', sa.String(100), nullable=True),
        sa.Column('consignee_state', sa.String(100), nullable=True),
        sa.Column('consignee_postal_code', sa.String(20), nullable=True),
        sa.Column('consignee_country', sa.String(100), nullable=True),
        sa.Column('origin_city', sa.String(100), nullable=True),
        sa.Column('service_type', sa.String(30), nullable=False, server_default='Standard', index=True),
        sa.Column('shipment_type', sa.String(20), nullable=False, server_default='Parcel'),
        sa.Column('destination_type', sa.String(20), nullable=False, server_default='Local'),
        sa.Column('pieces', sa.Integer, nullable=False, server_default='1'),
        sa.Column('weight', sa.Numeric(10, 3), nullable=False),
        sa.Column('weight_unit', sa.String(5), nullable=False, server_default='kg', comment='kg, lb'),
        sa.Column('length', sa.Numeric(10, 2), nullable=True),
        sa.Column('width', sa.Numeric(10, 2), nullable=True),
        sa.Column('height', sa.Numeric(10, 2), nullable=True),
        sa.Column('dimension_unit', sa.String(5), nullable=False, server_default='cm', comment='cm, in'),
        sa.Column('volumetric_weight', sa.Numeric(10, 3), nullable=True),
        sa.Column('description', sa.Text, nullable=True),
        _money('declared_value'),
        sa.Column('currency', sa.String(3), nullable=False, server_default='INR'),
        _money('shipping_charge'),
        _money('insurance_charge'),
        _money('cod_charge'),
        _money('fuel_surcharge'),
        _money('gst_amount'),
        _money('total_amount'),
        sa.Column('payment_mode', sa.String(20), nullable=False, server_default='COD', index=True),
        _money('cod_amount'),
        sa.Column('status', sa.String(30), nullable=False, server_default='Booked', index=True),
        sa.Column('booking_date', sa.DateTime(timezone=True), nullable=True, index=True),
        sa.Column('expected_delivery_date', sa.Date, nullable=True),
        _ts('delivery_date'),
        sa.Column('delivered_to', sa.String(200), nullable=True),
        sa.Column('delivery_signature', sa.String(500), nullable=True),
        sa.Column('delivery_proof', sa.String(500), nullable=True, comment='POD image URL'),
        sa.Column('delivery_remarks', sa.Text, nullable=True),
        sa.Column('return_reason', sa.Text, nullable=True),
        _ts('return_date'),
        sa.Column('special_instructions', sa.Text, nullable=True),
        sa.Column('reference_number', sa.String(100), nullable=True, index=True),
        sa.Column('internal_notes', sa.Text, nullable=True),
        sa.Column('manifest_id', UUID(as_uuid=True), sa.ForeignKey('manifests.id', ondelete='SET NULL'), nullable=True, index=True),
        sa.Column('dispatch_id', UUID(as_uuid=True), sa.ForeignKey('dispatches.id', ondelete='SET NULL'), nullable=True, index=True),
        _user_fk('booked_by', index=True),
        sa.Column('branch', sa.String(100), nullable=True, index=True),
        sa.Column('zone', sa.String(100), nullable=True, index=True),
        *_timestamps(),
    )

    _history_table('booking_status_history', 'bookings', 'booking_id', 30)

    # ==================== BILLING ====================

    op.create_table(
        'invoices',
        _id(),
        sa.Column('invoice_number', sa.String(20), nullable=False, unique=True, index=True, comment='INV{6-digit seq}'),
        sa.Column('invoice_type', sa.String(20), nullable=False, server_default='Freight'),
        sa.Column('booking_id', UUID(as_uuid=True), sa.ForeignKey('bookings.id', ondelete='SET NULL'), nullable=True, index=True),
        sa.Column('shipper_id', UUID(as_uuid=True), sa.ForeignKey('shippers.id', ondelete='RESTRICT'), nullable=False, index=True),
        sa.Column('shipper_details', sa.JSON, nullable=True, comment='Snapshot at invoice time'),
        sa.Column('supplier_details', sa.JSON, nullable=True, comment='Issuing company at invoice time'),
        sa.Column('invoice_date', sa.Date, nullable=False, index=True),
        sa.Column('due_date', sa.Date, nullable=True, index=True),
        sa.Column('period_from', sa.Date, nullable=True),
        sa.Column('period_to', sa.Date, nullable=True),
        sa.Column('supplier_state', sa.String(100), nullable=True),
        sa.Column('place_of_supply', sa.String(100), nullable=True),
        sa.Column('is_interstate', sa.Boolean, nullable=False, server_default=sa.false()),
        _money('subtotal'),
        _money('discount'),
        sa.Column('discount_type', sa.String(20), nullable=False, server_default='fixed'),
        _money('discount_amount'),
        _money('taxable_amount'),
        sa.Column('gst_rate', sa.Numeric(5, 2), nullable=False, server_default='18'),
        _money('cgst_amount'),
        _money('sgst_amount'),
        _money('igst_amount'),
        _money('total_tax'),
        _money('total_before_round'),
        _money('round_off'),
        _money('grand_total'),
        _money('paid_amount'),
        _money('balance_amount'),
        sa.Column('payment_status', sa.String(20), nullable=False, server_default='Unpaid', index=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='Draft', index=True),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('terms', sa.Text, nullable=True),
        _ts('sent_at'),
        _ts('cancelled_at'),
        sa.Column('cancellation_reason', sa.Text, nullable=True),
        _user_fk('cancelled_by'),
        _user_fk('created_by'),
        *_timestamps(),
    )

    op.create_table(
        'invoice_items',
        _id(),
        sa.Column('invoice_id', UUID(as_uuid=True), sa.ForeignKey('invoices.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('line_number', sa.Integer, nullable=False, server_default='1'),
        sa.Column('booking_id', UUID(as_uuid=True), sa.ForeignKey('bookings.id', ondelete='SET NULL'), nullable=True),
        sa.Column('description', sa.String(500), nullable=False),
        sa.Column('sac_code', sa.String(20), nullable=True, comment='SAC/HSN code'),
        sa.Column('quantity', sa.Numeric(10, 2), nullable=False, server_default='1'),
        sa.Column('unit', sa.String(20), nullable=False, server_default='Nos'),
        _money('rate'),
        _money('amount'),
        sa.Column('is_taxable', sa.Boolean, nullable=False, server_default=sa.true()),
    )

    op.create_table(
        'payments',
        _id(),
        sa.Column('transaction_id', sa.String(20), nullable=False, unique=True, index=True, comment='TXN{8-digit seq}'),
        sa.Column('invoice_id', UUID(as_uuid=True), sa.ForeignKey('invoices.id', ondelete='SET NULL'), nullable=True, index=True),
        sa.Column('booking_id', UUID(as_uuid=True), sa.ForeignKey('bookings.id', ondelete='SET NULL'), nullable=True),
        sa.Column('shipper_id', UUID(as_uuid=True), sa.ForeignKey('shippers.id', ondelete='RESTRICT'), nullable=False, index=True),
        _money('amount', nullable=False),
        sa.Column('currency', sa.String(3), nullable=False, server_default='INR'),
        sa.Column('gateway', sa.String(20), nullable=False, index=True),
        sa.Column('gateway_transaction_id', sa.String(100), nullable=True),
        sa.Column('gateway_response', sa.JSON, nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='Pending', index=True),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('payer_name', sa.String(200), nullable=True),
        sa.Column('payer_email', sa.String(255), nullable=True),
        _ts('completed_at'),
        _ts('failed_at'),
        sa.Column('failure_code', sa.String(50), nullable=True),
        sa.Column('failure_message', sa.Text, nullable=True),
        _ts('refunded_at'),
        sa.Column('refund_amount', sa.Numeric(14, 2), nullable=True),
        sa.Column('refund_reason', sa.Text, nullable=True),
        _user_fk('created_by'),
        *_timestamps(),
    )

    op.create_table(
        'invoice_payment_records',
        _id(),
        sa.Column('invoice_id', UUID(as_uuid=True), sa.ForeignKey('invoices.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('payment_id', UUID(as_uuid=True), sa.ForeignKey('payments.id', ondelete='SET NULL'), nullable=True),
        _money('amount', nullable=False),
        sa.Column('payment_mode', sa.String(30), nullable=False),
        sa.Column('payment_date', sa.Date, nullable=False),
        sa.Column('reference', sa.String(100), nullable=True),
        sa.Column('remarks', sa.Text, nullable=True),
        _user_fk('recorded_by'),
        _ts('recorded_at', nullable=False),
    )

    # ==================== SUPPORT ====================

    op.create_table(
        'shipment_exceptions',
        _id(),
        sa.Column('exception_number', sa.String(20), nullable=False, unique=True, index=True, comment='EXC{6-digit seq}'),
        sa.Column('booking_id', UUID(as_uuid=True), sa.ForeignKey('bookings.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('awb_number', sa.String(20), nullable=False, index=True),
        sa.Column('exception_type', sa.String(30), nullable=False, index=True),
        sa.Column('priority', sa.String(10), nullable=False, server_default='Medium'),
        sa.Column('status', sa.String(20), nullable=False, server_default='Open', index=True),
        sa.Column('description', sa.Text, nullable=False),
        sa.Column('location', sa.String(200), nullable=True),
        sa.Column('reporter_name', sa.String(200), nullable=True),
        sa.Column('reporter_email', sa.String(255), nullable=True),
        sa.Column('reporter_mobile', sa.String(20), nullable=True),
        sa.Column('reporter_relationship', sa.String(30), nullable=True),
        _user_fk('assigned_to'),
        _ts('assigned_at'),
        sa.Column('resolution', sa.Text, nullable=True),
        _user_fk('resolved_by'),
        _ts('resolved_at'),
        sa.Column('follow_up_required', sa.Boolean, nullable=False, server_default=sa.false()),
        _ts('follow_up_date'),
        _ts('reported_at'),
        _user_fk('created_by'),
        *_timestamps(),
    )

    op.create_table(
        'shipment_exception_notes',
        _id(),
        sa.Column('exception_id', UUID(as_uuid=True), sa.ForeignKey('shipment_exceptions.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('note', sa.Text, nullable=False),
        _user_fk('added_by'),
        _ts('created_at', nullable=False),
    )

    _history_table('shipment_exception_status_history', 'shipment_exceptions', 'exception_id', 20)

    op.create_table(
        'support_tickets',
        _id(),
        sa.Column('ticket_number', sa.String(20), nullable=False, unique=True, index=True, comment='TKT-{6-digit seq}'),
        sa.Column('shipper_id', UUID(as_uuid=True), sa.ForeignKey('shippers.id', ondelete='SET NULL'), nullable=True, index=True),
        sa.Column('awb_number', sa.String(20), nullable=True, index=True),
        sa.Column('subject', sa.String(300), nullable=False),
        sa.Column('description', sa.Text, nullable=False),
        sa.Column('category', sa.String(30), nullable=False, server_default='General Inquiry'),
        sa.Column('priority', sa.String(10), nullable=False, server_default='Medium', index=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='Open', index=True),
        sa.Column('department', sa.String(30), nullable=False, server_default='Customer Service'),
        _user_fk('assigned_to', index=True),
        sa.Column('resolution', sa.Text, nullable=True),
        _ts('resolution_deadline'),
        _ts('resolved_at'),
        _user_fk('resolved_by'),
        _user_fk('escalated_to'),
        _ts('escalated_at'),
        sa.Column('escalation_reason', sa.Text, nullable=True),
        _ts('closed_at'),
        _user_fk('created_by'),
        *_timestamps(),
    )

    op.create_table(
        'support_ticket_responses',
        _id(),
        sa.Column('ticket_id', UUID(as_uuid=True), sa.ForeignKey('support_tickets.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('message', sa.Text, nullable=False),
        sa.Column('is_internal', sa.Boolean, nullable=False, server_default=sa.false()),
        _user_fk('responded_by'),
        _ts('responded_at', nullable=False),
    )

    _history_table('support_ticket_status_history', 'support_tickets', 'ticket_id', 20)

    # ==================== INTEGRATIONS ====================

    op.create_table(
        'api_keys',
        _id(),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('api_key', sa.String(40), nullable=False, unique=True, index=True, comment='ak_{32 hex}'),
        sa.Column('secret_hash', sa.String(64), nullable=False, comment='SHA-256 of sk_ secret'),
        sa.Column('shipper_id', UUID(as_uuid=True), sa.ForeignKey('shippers.id', ondelete='CASCADE'), nullable=False, index=True),
        sa.Column('permissions', sa.JSON, nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='Active', index=True),
        sa.Column('environment', sa.String(20), nullable=False, server_default='sandbox'),
        sa.Column('rate_limit_per_minute', sa.Integer, nullable=False, server_default='60'),
        sa.Column('rate_limit_per_day', sa.Integer, nullable=False, server_default='10000'),
        sa.Column('total_requests', sa.Integer, nullable=False, server_default='0'),
        sa.Column('requests_today', sa.Integer, nullable=False, server_default='0'),
        sa.Column('usage_reset_on', sa.Date, nullable=True),
        _ts('minute_window_start'),
        sa.Column('requests_this_minute', sa.Integer, nullable=False, server_default='0'),
        _ts('last_used_at'),
        sa.Column('ip_whitelist', sa.JSON, nullable=True),
        sa.Column('webhook_url', sa.String(500), nullable=True),
        _ts('expires_at'),
        _ts('revoked_at'),
        _user_fk('revoked_by'),
        _user_fk('created_by'),
        *_timestamps(),
    )

    # ==================== NUMBERING ====================

    op.create_table(
        'document_sequences',
        _id(),
        sa.Column('document_type', sa.String(10), nullable=False, index=True, comment='AWB, INV, MAN, DSP, EXC, TKT, TXN'),
        sa.Column('scope_key', sa.String(10), nullable=False, server_default='ALL', comment='ALL or YYYYMMDD'),
        sa.Column('current_number', sa.Integer, nullable=False, server_default='0'),
        *_timestamps(),
        sa.UniqueConstraint('document_type', 'scope_key', name='uq_document_type_scope'),
    )

    print("Created courier schema")


def downgrade() -> None:
    """Drop courier tables in reverse dependency order."""
    for table in (
        'document_sequences',
        'api_keys',
        'support_ticket_status_history',
        'support_ticket_responses',
        'support_tickets',
        'shipment_exception_status_history',
        'shipment_exception_notes',
        'shipment_exceptions',
        'invoice_payment_records',
        'payments',
        'invoice_items',
        'invoices',
        'booking_status_history',
        'bookings',
        'manifests',
        'dispatches',
        'consignees',
        'shippers',
        'users',
        'roles',
    ):
        op.drop_table(table)
