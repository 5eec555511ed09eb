# devicehub/core/lifecycle.py
from typing import Dict, FrozenSet

from devicehub.core.errors import InvalidTransition, ValidationFailed
from devicehub.models.enum import BorrowStatus

TRANSITIONS: Dict[BorrowStatus, FrozenSet[BorrowStatus]] = {
    BorrowStatus.PENDING: frozenset({BorrowStatus.APPROVED, BorrowStatus.REJECTED}),
    BorrowStatus.APPROVED: frozenset({BorrowStatus.ACTIVE, BorrowStatus.REJECTED}),
    BorrowStatus.ACTIVE: frozenset({BorrowStatus.RETURNED}),
    BorrowStatus.RETURNED: frozenset(),
    BorrowStatus.REJECTED: frozenset(),
}

TERMINAL_STATUSES = frozenset(s for s, targets in TRANSITIONS.items() if not targets)


def parse_status(value) -> BorrowStatus:
    try:
        return BorrowStatus(value)
    except ValueError:
        raise ValidationFailed("Invalid status")


def can_transition(current: BorrowStatus, target: BorrowStatus) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def is_terminal(status: BorrowStatus) -> bool:
    return status in TERMINAL_STATUSES


def ensure_transition(current: BorrowStatus, target: BorrowStatus) -> None:
    if not can_transition(current, target):
        raise InvalidTransition(f"Cannot transition from {current.value} to {target.value}")
