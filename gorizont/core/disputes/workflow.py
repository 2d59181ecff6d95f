from __future__ import annotations

from datetime import datetime, timedelta, timezone

from gorizont.common.enums import DisputeStatus
from gorizont.config import settings
from gorizont.core.disputes.schemas import EscalationRule
from gorizont.db.base import utcnow

D = DisputeStatus

TERMINAL_STATUSES: frozenset[DisputeStatus] = frozenset({
    D.RESOLVED_REFUND,
    D.RESOLVED_DISMISSED,
    D.CANCELLED,
})

DISPUTE_TRANSITIONS: dict[DisputeStatus, frozenset[DisputeStatus]] = {
    D.OPENED: frozenset({D.NEGOTIATING, D.ESCALATED}) | TERMINAL_STATUSES,
    D.NEGOTIATING: frozenset({D.ESCALATED}) | TERMINAL_STATUSES,
    D.ESCALATED: TERMINAL_STATUSES,
    D.RESOLVED_REFUND: frozenset(),
    D.RESOLVED_DISMISSED: frozenset(),
    D.CANCELLED: frozenset(),
}

# Which resolutions each party may apply on its own
VENDOR_RESOLUTIONS: frozenset[DisputeStatus] = frozenset({D.RESOLVED_REFUND, D.RESOLVED_DISMISSED})
BUYER_RESOLUTIONS: frozenset[DisputeStatus] = frozenset({D.CANCELLED})


def escalation_rules() -> list[EscalationRule]:
    return [
        EscalationRule(
            from_status=D.OPENED,
            trigger_hours=settings.DISPUTE_RESPONSE_HOURS,
            message="The vendor did not respond in time. Escalated to platform review.",
        ),
        EscalationRule(
            from_status=D.NEGOTIATING,
            trigger_hours=settings.DISPUTE_NEGOTIATION_HOURS,
            message="Negotiation did not reach a resolution. Escalated to platform review.",
        ),
    ]


def can_transition(current: str, target: DisputeStatus) -> bool:
    return target in DISPUTE_TRANSITIONS.get(DisputeStatus(current), frozenset())


def is_terminal(status: str) -> bool:
    return DisputeStatus(status) in TERMINAL_STATUSES


def check_escalation_needed(
    current_status: str, status_changed_at: datetime, now: datetime | None = None
) -> EscalationRule | None:
    now = now or utcnow()
    if status_changed_at.tzinfo is None:
        # SQLite hands back naive datetimes; everything is stored as UTC
        status_changed_at = status_changed_at.replace(tzinfo=timezone.utc)

    for rule in escalation_rules():
        if rule.from_status.value == current_status:
            if now >= status_changed_at + timedelta(hours=rule.trigger_hours):
                return rule
    return None


def log_entry(action: str, author_id: str | None, text: str = "", **extra) -> dict:
    return {
        "action": action,
        "author_id": author_id,
        "text": text,
        "at": utcnow().isoformat(),
        **extra,
    }
