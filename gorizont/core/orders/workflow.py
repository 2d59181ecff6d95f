"""Order lifecycle rules.

The transition table is the single source of truth for which statuses a
vendor (or admin) may move an order into. Buyer-driven moves into and out of
``cancellation_requested`` are handled by the cancellation operations.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any

from gorizont.common.enums import OrderStatus
from gorizont.common.exceptions import BadRequestError
from gorizont.config import settings
from gorizont.db.base import utcnow

S = OrderStatus

# Forward moves may skip steps of the chain; backward moves never happen
ORDER_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    S.PENDING: frozenset({S.CONFIRMED, S.SHIPPED, S.DELIVERED, S.COMPLETED, S.CANCELLED}),
    S.CONFIRMED: frozenset({S.SHIPPED, S.DELIVERED, S.COMPLETED, S.CANCELLED}),
    S.SHIPPED: frozenset({S.DELIVERED, S.COMPLETED, S.CANCELLED}),
    S.DELIVERED: frozenset({S.COMPLETED}),
    S.CANCELLATION_REQUESTED: frozenset({S.CANCELLED}),
    S.COMPLETED: frozenset(),
    S.CANCELLED: frozenset(),
}

# Admin-facing vocabulary used by the back office
STATUS_ALIASES: dict[str, OrderStatus] = {
    "new": S.PENDING,
    "processing": S.CONFIRMED,
}

BUYER_CANCELLABLE: frozenset[OrderStatus] = frozenset({S.PENDING, S.CONFIRMED})

_CENT = Decimal("0.01")


def normalize_status(value: str) -> OrderStatus:
    key = value.strip().lower()
    if key in STATUS_ALIASES:
        return STATUS_ALIASES[key]
    try:
        return OrderStatus(key)
    except ValueError:
        raise BadRequestError(f"Unknown order status: {value}")


def allowed_targets(current: str) -> frozenset[OrderStatus]:
    return ORDER_TRANSITIONS.get(OrderStatus(current), frozenset())


def can_transition(current: str, target: OrderStatus) -> bool:
    return target in allowed_targets(current)


def is_terminal(status: str) -> bool:
    return not allowed_targets(status)


def delivery_price_for(city: str) -> Decimal:
    if city.strip().casefold() == settings.LOCAL_DELIVERY_CITY.casefold():
        return settings.LOCAL_DELIVERY_PRICE.quantize(_CENT)
    return settings.DEFAULT_DELIVERY_PRICE.quantize(_CENT)


def compute_subtotal(items: list[dict[str, Any]]) -> Decimal:
    subtotal = sum(
        (Decimal(str(item["unit_price"])) * item["quantity"] for item in items),
        Decimal("0"),
    )
    return subtotal.quantize(_CENT)


def money(value: Decimal) -> Decimal:
    return value.quantize(_CENT)


def timeline_entry(
    status: OrderStatus, actor_id: str, actor_name: str, note: str | None = None
) -> dict[str, Any]:
    return {
        "status": status.value,
        "actor_id": actor_id,
        "actor_name": actor_name,
        "timestamp": utcnow().isoformat(),
        "note": note or "",
    }
