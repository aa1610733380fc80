"""create users, user_stats, bills and bids

Revision ID: a1f0c9e2b7d4
Revises:
Create Date: 2026-10-17

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "a1f0c9e2b7d4"
down_revision = None
branch_labels = None
depends_on = None


USER_ROLE = postgresql.ENUM("organization", "customer", "financer", name="user_role", create_type=False)
BILL_STATUS = postgresql.ENUM("draft", "sent", "paid", "overdue", "financed", name="bill_status", create_type=False)
BID_STATUS = postgresql.ENUM("pending", "accepted", "rejected", "expired", name="bid_status", create_type=False)


def upgrade() -> None:
    op.execute("CREATE TYPE user_role AS ENUM ('organization', 'customer', 'financer')")
    op.execute("CREATE TYPE bill_status AS ENUM ('draft', 'sent', 'paid', 'overdue', 'financed')")
    op.execute("CREATE TYPE bid_status AS ENUM ('pending', 'accepted', 'rejected', 'expired')")

    op.create_table(
        "users",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("company_name", sa.String(255), nullable=True),
        sa.Column("role", USER_ROLE, nullable=False),
        sa.Column("available_funds", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_users_id"), "users", ["id"], unique=False)
    op.create_index(op.f("ix_users_email"), "users", ["email"], unique=True)
    op.create_index(op.f("ix_users_role"), "users", ["role"], unique=False)
    op.create_index(op.f("ix_users_is_active"), "users", ["is_active"], unique=False)

    op.create_table(
        "user_stats",
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("total_bills_created", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_bills_sent", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_revenue", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("total_bills_received", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_bills_paid", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_amount_paid", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("total_bids_placed", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_bids_won", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_investment_amount", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("total_returns", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("user_id"),
    )

    op.create_table(
        "bills",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("bill_number", sa.String(40), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("due_date", sa.DateTime(), nullable=False),
        sa.Column("status", BILL_STATUS, nullable=False),
        sa.Column("organization_id", sa.UUID(), nullable=False),
        sa.Column("customer_id", sa.UUID(), nullable=False),
        sa.Column("current_owner_id", sa.UUID(), nullable=False),
        sa.Column("is_in_marketplace", sa.Boolean(), nullable=False),
        sa.Column("financing_percentage", sa.Numeric(5, 2), nullable=True),
        sa.Column("financed_amount", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("financer_id", sa.UUID(), nullable=True),
        sa.Column("sent_at", sa.DateTime(), nullable=True),
        sa.Column("paid_at", sa.DateTime(), nullable=True),
        sa.Column("financed_at", sa.DateTime(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["organization_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["customer_id"], ["users.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["current_owner_id"], ["users.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["financer_id"], ["users.id"], ondelete="RESTRICT"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_bills_id"), "bills", ["id"], unique=False)
    op.create_index(op.f("ix_bills_bill_number"), "bills", ["bill_number"], unique=True)
    op.create_index(op.f("ix_bills_status"), "bills", ["status"], unique=False)
    op.create_index(op.f("ix_bills_financer_id"), "bills", ["financer_id"], unique=False)
    op.create_index(op.f("ix_bills_is_active"), "bills", ["is_active"], unique=False)
    op.create_index("ix_bills_organization_status", "bills", ["organization_id", "status"], unique=False)
    op.create_index("ix_bills_customer_status", "bills", ["customer_id", "status"], unique=False)
    op.create_index("ix_bills_marketplace_status", "bills", ["is_in_marketplace", "status"], unique=False)

    op.create_table(
        "bids",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.Column("bill_id", sa.UUID(), nullable=False),
        sa.Column("financer_id", sa.UUID(), nullable=False),
        sa.Column("financing_percentage", sa.Numeric(5, 2), nullable=False),
        sa.Column("bid_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("status", BID_STATUS, nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=False),
        sa.Column("accepted_at", sa.DateTime(), nullable=True),
        sa.Column("interest", sa.Numeric(5, 2), nullable=False, server_default="0"),
        sa.Column("terms", sa.String(500), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["bill_id"], ["bills.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["financer_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("bill_id", "financer_id", name="uq_bids_bill_financer"),
    )
    op.create_index(op.f("ix_bids_id"), "bids", ["id"], unique=False)
    op.create_index("ix_bids_bill_percentage", "bids", ["bill_id", "financing_percentage"], unique=False)
    op.create_index("ix_bids_financer_status", "bids", ["financer_id", "status"], unique=False)


def downgrade() -> None:
    op.drop_table("bids")
    op.drop_table("bills")
    op.drop_table("user_stats")
    op.drop_table("users")
    op.execute("DROP TYPE IF EXISTS bid_status")
    op.execute("DROP TYPE IF EXISTS bill_status")
    op.execute("DROP TYPE IF EXISTS user_role")
