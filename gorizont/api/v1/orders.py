import uuid
from decimal import Decimal

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from gorizont.api.deps import get_current_user, get_db
from gorizont.common.enums import OrderStatus, PaymentMethod, UserRole
from gorizont.common.pagination import PaginatedResponse, PaginationParams, page_response, paginate
from gorizont.core import guards
from gorizont.core.orders.service import OrderService
from gorizont.db.models.order import Order
from gorizont.db.models.user import User

router = APIRouter(prefix="/orders", tags=["Orders"])
order_service = OrderService()


# ---------- Schemas ----------


class OrderItemRequest(BaseModel):
    product_id: uuid.UUID
    quantity: int = Field(ge=1, le=1000)


class OrderCreateRequest(BaseModel):
    items: list[OrderItemRequest] = Field(min_length=1)
    payment_method: PaymentMethod
    city: str = Field(min_length=1, max_length=255)
    address: str = Field(min_length=1, max_length=1000)
    customer_name: str | None = None
    phone: str | None = None
    comment: str | None = None


class StatusUpdateRequest(BaseModel):
    # Accepts "new" and "processing" as aliases
    status: str = Field(min_length=1)
    note: str | None = None


class CancellationRequest(BaseModel):
    reason: str | None = None


class CancellationResolveRequest(BaseModel):
    accept: bool
    note: str | None = None


class OrderItemResponse(BaseModel):
    product_id: uuid.UUID
    title: str
    unit_price: Decimal
    quantity: int


class OrderResponse(BaseModel):
    id: uuid.UUID
    buyer_id: uuid.UUID
    vendor_id: uuid.UUID
    items: list[OrderItemResponse]
    subtotal: Decimal
    delivery_price: Decimal
    total: Decimal
    payment_method: str
    customer_name: str | None
    phone: str | None
    city: str
    address: str
    shipping_address: str
    comment: str | None
    status: str
    timeline: list[dict]
    version: int
    created_at: str


class OrderListResponse(PaginatedResponse[OrderResponse]):
    pass


# ---------- Endpoints ----------


@router.post("", response_model=OrderResponse, status_code=201)
async def create_order(
    body: OrderCreateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    order = await order_service.create_order(
        buyer=current_user,
        items=[(item.product_id, item.quantity) for item in body.items],
        payment_method=body.payment_method,
        city=body.city,
        address=body.address,
        db=db,
        customer_name=body.customer_name,
        phone=body.phone,
        comment=body.comment,
    )
    return _order_response(order)


@router.get("", response_model=OrderListResponse)
async def list_orders(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    params: PaginationParams = Depends(),
    status: OrderStatus | None = None,
):
    query = select(Order).where(Order.is_deleted.is_(False))
    if not guards.is_admin(current_user):
        if current_user.role == UserRole.VENDOR.value:
            query = query.where(Order.vendor_id == current_user.id)
        else:
            query = query.where(Order.buyer_id == current_user.id)
    if status:
        query = query.where(Order.status == status.value)
    query = query.order_by(Order.created_at.desc())

    items, total = await paginate(db, query, params, Order)
    return page_response(OrderListResponse, items, total, params, _order_response)


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(
    order_id: uuid.UUID,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    order = await order_service.get_visible_order(order_id, current_user, db)
    return _order_response(order)


@router.put("/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: uuid.UUID,
    body: StatusUpdateRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    order = await order_service.request_status_change(
        order_id, body.status, current_user, db, note=body.note
    )
    return _order_response(order)


@router.post("/{order_id}/cancellation", response_model=OrderResponse)
async def request_cancellation(
    order_id: uuid.UUID,
    body: CancellationRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    order = await order_service.request_cancellation(
        order_id, current_user, db, reason=body.reason
    )
    return _order_response(order)


@router.post("/{order_id}/cancellation/resolve", response_model=OrderResponse)
async def resolve_cancellation(
    order_id: uuid.UUID,
    body: CancellationResolveRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    order = await order_service.resolve_cancellation(
        order_id, current_user, body.accept, db, note=body.note
    )
    return _order_response(order)


def _order_response(order: Order) -> OrderResponse:
    return OrderResponse(
        id=order.id,
        buyer_id=order.buyer_id,
        vendor_id=order.vendor_id,
        items=[OrderItemResponse(**item) for item in order.items or []],
        subtotal=order.subtotal,
        delivery_price=order.delivery_price,
        total=order.total,
        payment_method=order.payment_method,
        customer_name=order.customer_name,
        phone=order.phone,
        city=order.city,
        address=order.address,
        shipping_address=order.shipping_address,
        comment=order.comment,
        status=order.status,
        timeline=order.timeline or [],
        version=order.version,
        created_at=order.created_at.isoformat(),
    )
