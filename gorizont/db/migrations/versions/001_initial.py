"""Initial schema - marketplace orders, disputes, conversations, reviews

Revision ID: 001
Revises: None
Create Date: 2026-10-18
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _base_columns() -> list[sa.Column]:
    return [
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("is_deleted", sa.Boolean, nullable=False, server_default=sa.text("false")),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    ]


def _fk(column: str, target: str, nullable: bool = False, index: bool = False) -> sa.Column:
    return sa.Column(
        column,
        postgresql.UUID(as_uuid=True),
        sa.ForeignKey(f"{target}.id"),
        nullable=nullable,
        index=index,
    )


def upgrade() -> None:
    # Users
    op.create_table(
        "users",
        *_base_columns(),
        sa.Column("email", sa.String(255), unique=True, nullable=False, index=True),
        sa.Column("hashed_password", sa.String(255), nullable=False),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("role", sa.String(20), nullable=False, server_default="buyer"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default=sa.text("true")),
    )

    # Products
    op.create_table(
        "products",
        *_base_columns(),
        _fk("vendor_id", "users", index=True),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("price", sa.Numeric(12, 2), nullable=False),
        sa.Column("in_stock", sa.Boolean, nullable=False, server_default=sa.text("true")),
        sa.Column("average_rating", sa.Float, nullable=False, server_default=sa.text("0.0")),
        sa.Column("reviews_count", sa.Integer, nullable=False, server_default=sa.text("0")),
    )

    # Orders
    op.create_table(
        "orders",
        *_base_columns(),
        _fk("buyer_id", "users", index=True),
        _fk("vendor_id", "users", index=True),
        sa.Column("items", postgresql.JSONB, nullable=False),
        sa.Column("subtotal", sa.Numeric(12, 2), nullable=False),
        sa.Column("delivery_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("total", sa.Numeric(12, 2), nullable=False),
        sa.Column("payment_method", sa.String(20), nullable=False),
        sa.Column("customer_name", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("city", sa.String(255), nullable=False),
        sa.Column("address", sa.String(1000), nullable=False),
        sa.Column("shipping_address", sa.String(1300), nullable=False),
        sa.Column("comment", sa.Text, nullable=True),
        sa.Column("status", sa.String(30), nullable=False, server_default="pending", index=True),
        sa.Column("status_before_cancellation", sa.String(30), nullable=True),
        sa.Column("timeline", postgresql.JSONB, nullable=False),
        sa.Column("version", sa.Integer, nullable=False),
    )

    # Conversations
    op.create_table(
        "conversations",
        *_base_columns(),
        sa.Column("type", sa.String(30), nullable=False),
        sa.Column("participant_key", sa.String(2000), nullable=False, index=True),
        sa.Column("context", postgresql.JSONB, nullable=False),
        sa.Column("last_message_at", sa.DateTime(timezone=True), nullable=False, index=True),
    )
    op.create_table(
        "conversation_participants",
        *_base_columns(),
        _fk("conversation_id", "conversations", index=True),
        _fk("user_id", "users", index=True),
        sa.UniqueConstraint(
            "conversation_id", "user_id", name="uq_conversation_participants_conversation_id"
        ),
    )
    op.create_table(
        "messages",
        *_base_columns(),
        _fk("conversation_id", "conversations", index=True),
        _fk("sender_id", "users"),
        sa.Column("text", sa.Text, nullable=False),
        sa.Column("attachments", postgresql.JSONB, nullable=False),
        sa.Column("read_by", postgresql.JSONB, nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=False, index=True),
    )

    # Disputes
    op.create_table(
        "disputes",
        *_base_columns(),
        _fk("order_id", "orders", index=True),
        _fk("product_id", "products", nullable=True),
        _fk("initiator_id", "users", index=True),
        _fk("respondent_id", "users", index=True),
        sa.Column("reason", sa.String(30), nullable=False),
        sa.Column("description", sa.Text, nullable=False),
        sa.Column("amount_requested", sa.Numeric(12, 2), nullable=False),
        sa.Column("status", sa.String(30), nullable=False, server_default="opened", index=True),
        sa.Column("evidence", postgresql.JSONB, nullable=False),
        sa.Column("messages", postgresql.JSONB, nullable=False),
        sa.Column("resolution_note", sa.Text, nullable=True),
        _fk("conversation_id", "conversations", nullable=True),
        sa.Column("status_changed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("resolved_at", sa.DateTime(timezone=True), nullable=True),
    )

    # Reviews
    op.create_table(
        "reviews",
        *_base_columns(),
        _fk("product_id", "products", index=True),
        _fk("order_id", "orders"),
        _fk("user_id", "users", index=True),
        sa.Column("rating", sa.Integer, nullable=False),
        sa.Column("text", sa.Text, nullable=True),
        sa.Column("status", sa.String(20), nullable=False, server_default="approved"),
        sa.UniqueConstraint("user_id", "product_id", name="uq_reviews_user_id"),
        sa.CheckConstraint("rating BETWEEN 1 AND 5", name="ck_reviews_rating_range"),
    )

    # Notifications
    op.create_table(
        "notifications",
        *_base_columns(),
        _fk("user_id", "users", index=True),
        sa.Column("category", sa.String(50), nullable=False),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("body", sa.Text, nullable=False),
        sa.Column("is_read", sa.Boolean, nullable=False, server_default=sa.text("false")),
        sa.Column("action_url", sa.String(1000), nullable=True),
        sa.Column("metadata", postgresql.JSONB, nullable=True),
    )

    # Audit log
    op.create_table(
        "audit_log",
        *_base_columns(),
        sa.Column("entity_type", sa.String(100), nullable=False, index=True),
        sa.Column("entity_id", postgresql.UUID(as_uuid=True), nullable=False, index=True),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("actor_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("diff", postgresql.JSONB, nullable=True),
    )


def downgrade() -> None:
    op.drop_table("audit_log")
    op.drop_table("notifications")
    op.drop_table("reviews")
    op.drop_table("disputes")
    op.drop_table("messages")
    op.drop_table("conversation_participants")
    op.drop_table("conversations")
    op.drop_table("orders")
    op.drop_table("products")
    op.drop_table("users")
