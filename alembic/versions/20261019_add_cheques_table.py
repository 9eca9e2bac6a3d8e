"""Add cheques table.

Revision ID: 20261019_cheques
Revises: 20261019_initial
Create Date: 2026-10-19

Cheques received from shippers, tracked Pending -> Cleared | Bounced | Cancelled.
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID


# revision identifiers, used by Alembic.
revision: str = '20261019_cheques'
down_revision: Union[str, None] = '20261019_initial'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    conn = op.get_bind()
    inspector = sa.inspect(conn)
    if 'cheques' in inspector.get_table_names():
        print("cheques table already exists, skipping...")
        return

    op.create_table(
        'cheques',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('shipper_id', UUID(as_uuid=True), sa.ForeignKey('shippers.id', ondelete='RESTRICT'), nullable=False, index=True),
        sa.Column('cheque_number', sa.String(30), nullable=False),
        sa.Column('bank_name', sa.String(200), nullable=False),
        sa.Column('branch_name', sa.String(200), nullable=True),
        sa.Column('amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('cheque_date', sa.Date, nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='Pending', index=True),
        sa.Column('received_date', sa.Date, nullable=False),
        sa.Column('cleared_date', sa.Date, nullable=True),
        sa.Column('bounced_date', sa.Date, nullable=True),
        sa.Column('bounce_reason', sa.Text, nullable=True),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('reference', sa.String(100), nullable=True),
        sa.Column('processed_by', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_by', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_index('ix_cheques_shipper_status_date', 'cheques', ['shipper_id', 'status', 'cheque_date'])

    print("Created cheques table")


def downgrade() -> None:
    op.drop_index('ix_cheques_shipper_status_date', table_name='cheques')
    op.drop_table('cheques')
