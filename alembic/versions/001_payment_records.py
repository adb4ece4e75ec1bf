"""payment_records

Revision ID: 001_payment_records
Revises:
Create Date: 2026-10-18

Creates the payment_records table with its collection/disbursement status
enums. Uniqueness on the provider ids backs webhook lookups.
"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001_payment_records"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

collection_status = postgresql.ENUM("pending", "success", "failed", name="collection_status", create_type=False)
disbursement_status = postgresql.ENUM(
    "pending", "processing", "completed", "failed", "not_required", name="disbursement_status", create_type=False
)


def upgrade() -> None:
    """Create payment_records and its enums."""
    bind = op.get_bind()
    collection_status.create(bind, checkfirst=True)
    disbursement_status.create(bind, checkfirst=True)

    op.create_table(
        "payment_records",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        # Parties
        sa.Column("tenant_id", sa.String(64), nullable=False),
        sa.Column("tenant_name", sa.String(200), nullable=False, server_default=""),
        sa.Column("property_id", sa.String(64), nullable=False),
        sa.Column("property_name", sa.String(200), nullable=False, server_default=""),
        sa.Column("owner_id", sa.String(64), nullable=False),
        sa.Column("owner_paybill", sa.String(20), nullable=False, server_default=""),
        sa.Column("owner_account_number", sa.String(50), nullable=False, server_default=""),
        sa.Column("phone_number", sa.String(15), nullable=False),
        # Money
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("platform_fee_percentage", sa.Numeric(5, 2), nullable=False),
        sa.Column("platform_fee", sa.Numeric(12, 2), nullable=False),
        sa.Column("disbursement_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("payment_method", sa.String(20), nullable=False, server_default="mpesa"),
        # Collection leg
        sa.Column("transaction_id", sa.String(64), nullable=False),
        sa.Column("status", collection_status, nullable=False, server_default="pending"),
        sa.Column("checkout_request_id", sa.String(100), nullable=True),
        sa.Column("merchant_request_id", sa.String(100), nullable=True),
        sa.Column("failure_reason", sa.Text(), nullable=True),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        # Disbursement leg
        sa.Column("disbursement_status", disbursement_status, nullable=False, server_default="pending"),
        sa.Column("disbursement_conversation_id", sa.String(100), nullable=True),
        sa.Column("disbursement_originator_conversation_id", sa.String(100), nullable=True),
        sa.Column("disbursement_transaction_id", sa.String(64), nullable=True),
        sa.Column("disbursement_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("disbursement_failure_reason", sa.Text(), nullable=True),
        sa.Column("disbursement_attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("version", sa.Integer(), nullable=False, server_default="0"),
        # Timestamps
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("transaction_id"),
        sa.UniqueConstraint("checkout_request_id"),
        sa.UniqueConstraint("disbursement_conversation_id"),
    )

    op.create_index("ix_payment_records_tenant_created", "payment_records", ["tenant_id", "created_at"])
    op.create_index("ix_payment_records_property_created", "payment_records", ["property_id", "created_at"])
    op.create_index("ix_payment_records_owner_id", "payment_records", ["owner_id"])
    op.create_index("ix_payment_records_status", "payment_records", ["status"])
    op.create_index("ix_payment_records_disbursement_status", "payment_records", ["disbursement_status"])
    op.create_index(
        "ix_payment_records_disbursement_originator_conversation_id",
        "payment_records",
        ["disbursement_originator_conversation_id"],
    )


def downgrade() -> None:
    """Drop payment_records and its enums."""
    op.drop_index("ix_payment_records_disbursement_originator_conversation_id", table_name="payment_records")
    op.drop_index("ix_payment_records_disbursement_status", table_name="payment_records")
    op.drop_index("ix_payment_records_status", table_name="payment_records")
    op.drop_index("ix_payment_records_owner_id", table_name="payment_records")
    op.drop_index("ix_payment_records_property_created", table_name="payment_records")
    op.drop_index("ix_payment_records_tenant_created", table_name="payment_records")
    op.drop_table("payment_records")

    bind = op.get_bind()
    disbursement_status.drop(bind, checkfirst=True)
    collection_status.drop(bind, checkfirst=True)
