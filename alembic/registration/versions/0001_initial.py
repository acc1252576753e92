"""initial registration payments schema

Revision ID: 0001_registration
Revises:
Create Date: 2026-10-18
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "0001_registration"
down_revision = None
branch_labels = None
depends_on = None


def _json() -> postgresql.JSONB:
    return postgresql.JSONB(astext_type=sa.Text())


def upgrade() -> None:
    op.create_table(
        "competitions",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("slug", sa.String(), nullable=False),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("year", sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("slug"),
    )
    op.create_index("ix_competitions_year", "competitions", ["year"])

    op.create_table(
        "registration_carts",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_registration_carts_user_id", "registration_carts", ["user_id"])
    op.create_index("ix_registration_carts_status", "registration_carts", ["status"])

    op.create_table(
        "registration_cart_items",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("cart_id", sa.String(), nullable=False),
        sa.Column("competition_id", sa.String(), nullable=False),
        sa.Column("registration_type_id", sa.String(), nullable=False),
        sa.Column("country", sa.String(), nullable=False),
        sa.Column("participant_type", sa.String(), nullable=False),
        sa.Column("team_name", sa.String(), nullable=True),
        sa.Column("company_name", sa.String(), nullable=True),
        sa.Column("members", _json(), nullable=False),
        sa.Column("unit_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("subtotal", sa.Numeric(12, 2), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["cart_id"], ["registration_carts.id"]),
        sa.ForeignKeyConstraint(["competition_id"], ["competitions.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_registration_cart_items_cart_id", "registration_cart_items", ["cart_id"])
    op.create_index("ix_registration_cart_items_competition_id", "registration_cart_items", ["competition_id"])

    op.create_table(
        "competition_payments",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("order_id", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("merchant_id", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("gateway_payment_id", sa.String(), nullable=True),
        sa.Column("gateway_status_code", sa.String(), nullable=True),
        sa.Column("gateway_signature", sa.String(), nullable=True),
        sa.Column("payment_method", sa.String(), nullable=True),
        sa.Column("card_holder_name", sa.String(), nullable=True),
        sa.Column("card_no", sa.String(), nullable=True),
        sa.Column("customer_details", _json(), nullable=False),
        sa.Column("metadata", _json(), nullable=False),
        sa.Column("raw_gateway_response", _json(), nullable=True),
        sa.Column("error_message", sa.String(), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("refunded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_competition_payments_order_id", "competition_payments", ["order_id"], unique=True)
    op.create_index("ix_competition_payments_user_id", "competition_payments", ["user_id"])
    op.create_index("ix_competition_payments_status", "competition_payments", ["status"])
    # Pending sweep scans oldest PENDING rows first.
    op.create_index(
        "ix_competition_payments_status_created_at",
        "competition_payments",
        ["status", "created_at"],
    )

    op.create_table(
        "competition_registrations",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("registration_number", sa.String(), nullable=False),
        sa.Column("display_code", sa.String(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("competition_id", sa.String(), nullable=False),
        sa.Column("registration_type_id", sa.String(), nullable=False),
        sa.Column("payment_id", sa.String(), nullable=False),
        sa.Column("cart_item_id", sa.String(), nullable=False),
        sa.Column("country", sa.String(), nullable=False),
        sa.Column("participant_type", sa.String(), nullable=False),
        sa.Column("team_name", sa.String(), nullable=True),
        sa.Column("company_name", sa.String(), nullable=True),
        sa.Column("members", _json(), nullable=False),
        sa.Column("amount_paid", sa.Numeric(12, 2), nullable=False),
        sa.Column("currency", sa.String(length=3), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["competition_id"], ["competitions.id"]),
        sa.ForeignKeyConstraint(["payment_id"], ["competition_payments.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("competition_id", "display_code", name="uq_registration_display_code"),
        sa.UniqueConstraint("payment_id", "cart_item_id", name="uq_registration_payment_item"),
    )
    op.create_index(
        "ix_competition_registrations_registration_number",
        "competition_registrations",
        ["registration_number"],
        unique=True,
    )
    op.create_index("ix_competition_registrations_user_id", "competition_registrations", ["user_id"])
    op.create_index("ix_competition_registrations_competition_id", "competition_registrations", ["competition_id"])
    op.create_index("ix_competition_registrations_payment_id", "competition_registrations", ["payment_id"])
    op.create_index("ix_competition_registrations_status", "competition_registrations", ["status"])

    op.create_table(
        "payment_timeline",
        sa.Column("timeline_id", sa.String(), nullable=False),
        sa.Column("payment_id", sa.String(), nullable=False),
        sa.Column("from_state", sa.String(), nullable=True),
        sa.Column("to_state", sa.String(), nullable=False),
        sa.Column("reason", sa.String(), nullable=False),
        sa.Column("source", sa.String(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["payment_id"], ["competition_payments.id"]),
        sa.PrimaryKeyConstraint("timeline_id"),
    )
    op.create_index("ix_payment_timeline_payment_id", "payment_timeline", ["payment_id"])

    op.create_table(
        "gateway_notifications",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("order_id", sa.String(), nullable=False),
        sa.Column("status_code", sa.String(), nullable=False),
        sa.Column("gateway_payment_id", sa.String(), nullable=True),
        sa.Column("signature_valid", sa.Boolean(), nullable=False),
        sa.Column("applied", sa.Boolean(), nullable=False),
        sa.Column("payload", _json(), nullable=False),
        sa.Column("received_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_gateway_notifications_order_id", "gateway_notifications", ["order_id"])

    op.create_table(
        "notification_logs",
        sa.Column("id", sa.String(), nullable=False),
        sa.Column("registration_id", sa.String(), nullable=False),
        sa.Column("template", sa.String(), nullable=False),
        sa.Column("recipient", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False),
        sa.Column("error", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_notification_logs_registration_id", "notification_logs", ["registration_id"])


def downgrade() -> None:
    op.drop_index("ix_notification_logs_registration_id", table_name="notification_logs")
    op.drop_table("notification_logs")
    op.drop_index("ix_gateway_notifications_order_id", table_name="gateway_notifications")
    op.drop_table("gateway_notifications")
    op.drop_index("ix_payment_timeline_payment_id", table_name="payment_timeline")
    op.drop_table("payment_timeline")
    op.drop_index("ix_competition_registrations_status", table_name="competition_registrations")
    op.drop_index("ix_competition_registrations_payment_id", table_name="competition_registrations")
    op.drop_index("ix_competition_registrations_competition_id", table_name="competition_registrations")
    op.drop_index("ix_competition_registrations_user_id", table_name="competition_registrations")
    op.drop_index("ix_competition_registrations_registration_number", table_name="competition_registrations")
    op.drop_table("competition_registrations")
    op.drop_index("ix_competition_payments_status_created_at", table_name="competition_payments")
    op.drop_index("ix_competition_payments_status", table_name="competition_payments")
    op.drop_index("ix_competition_payments_user_id", table_name="competition_payments")
    op.drop_index("ix_competition_payments_order_id", table_name="competition_payments")
    op.drop_table("competition_payments")
    op.drop_index("ix_registration_cart_items_competition_id", table_name="registration_cart_items")
    op.drop_index("ix_registration_cart_items_cart_id", table_name="registration_cart_items")
    op.drop_table("registration_cart_items")
    op.drop_index("ix_registration_carts_status", table_name="registration_carts")
    op.drop_index("ix_registration_carts_user_id", table_name="registration_carts")
    op.drop_table("registration_carts")
    op.drop_index("ix_competitions_year", table_name="competitions")
    op.drop_table("competitions")
