from gorizont.common.enums import AppealStatus

A = AppealStatus

CLOSED_STATUSES: frozenset[AppealStatus] = frozenset({A.RESOLVED, A.REJECTED})

APPEAL_TRANSITIONS: dict[AppealStatus, frozenset[AppealStatus]] = {
    A.OPEN: frozenset({A.IN_REVIEW}) | CLOSED_STATUSES,
    A.IN_REVIEW: CLOSED_STATUSES,
    A.RESOLVED: frozenset(),
    A.REJECTED: frozenset(),
}


def can_transition(current: str, target: AppealStatus) -> bool:
    return target in APPEAL_TRANSITIONS.get(AppealStatus(current), frozenset())
