import uuid
from decimal import Decimal

from sqlalchemy import ForeignKey, Integer, Numeric, String, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from gorizont.common.enums import OrderStatus
from gorizont.db.base import BaseModel, JSONType


class Order(BaseModel):
    __tablename__ = "orders"

    buyer_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True
    )
    vendor_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False, index=True
    )
    # [{product_id, title, unit_price, quantity}] snapshotted at checkout
    items: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    subtotal: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    delivery_price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    payment_method: Mapped[str] = mapped_column(String(20), nullable=False)
    customer_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    city: Mapped[str] = mapped_column(String(255), nullable=False)
    address: Mapped[str] = mapped_column(String(1000), nullable=False)
    shipping_address: Mapped[str] = mapped_column(String(1300), nullable=False)
    comment: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[OrderStatus] = mapped_column(
        String(30), nullable=False, default=OrderStatus.PENDING, index=True
    )
    status_before_cancellation: Mapped[str | None] = mapped_column(String(30), nullable=True)
    # Append-only [{status, actor_id, actor_name, timestamp, note}]
    timeline: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)

    # Optimistic lock: UPDATE ... WHERE version = :loaded_version
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}
