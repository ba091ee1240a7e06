"""
Lifecycle transition tables.

Every legal move of an investment or a withdrawal is listed here. Services
call ``investment_target`` / ``withdrawal_target`` before writing a new
status; anything not in the table raises InvalidStateError.
"""

from enum import Enum
from typing import Dict, Tuple, Union

from crestcat.core.exceptions import InvalidStateError
from crestcat.models.investment import InvestmentStatus
from crestcat.models.withdrawal import WithdrawalStatus


class InvestmentEvent(str, Enum):
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    REQUEST_CLOSURE = "REQUEST_CLOSURE"
    APPROVE_CLOSURE = "APPROVE_CLOSURE"
    REJECT_CLOSURE = "REJECT_CLOSURE"


class WithdrawalEvent(str, Enum):
    APPROVE = "APPROVE"
    REJECT = "REJECT"


INVESTMENT_TRANSITIONS: Dict[Tuple[InvestmentStatus, InvestmentEvent], InvestmentStatus] = {
    (InvestmentStatus.PENDING, InvestmentEvent.APPROVE): InvestmentStatus.ACTIVE,
    (InvestmentStatus.PENDING, InvestmentEvent.REJECT): InvestmentStatus.REJECTED,
    (InvestmentStatus.ACTIVE, InvestmentEvent.REQUEST_CLOSURE): InvestmentStatus.CLOSURE_REQUESTED,
    (InvestmentStatus.CLOSURE_REQUESTED, InvestmentEvent.APPROVE_CLOSURE): InvestmentStatus.CLOSED,
    (InvestmentStatus.CLOSURE_REQUESTED, InvestmentEvent.REJECT_CLOSURE): InvestmentStatus.ACTIVE,
}

WITHDRAWAL_TRANSITIONS: Dict[Tuple[WithdrawalStatus, WithdrawalEvent], WithdrawalStatus] = {
    (WithdrawalStatus.PENDING, WithdrawalEvent.APPROVE): WithdrawalStatus.COMPLETED,
    (WithdrawalStatus.PENDING, WithdrawalEvent.REJECT): WithdrawalStatus.REJECTED,
}

# Reasons shown to admins for the common refusals
_INVESTMENT_REFUSALS: Dict[Tuple[InvestmentStatus, InvestmentEvent], str] = {
    (InvestmentStatus.ACTIVE, InvestmentEvent.APPROVE): "Investment is already active",
    (InvestmentStatus.CLOSURE_REQUESTED, InvestmentEvent.REQUEST_CLOSURE): "Closure already requested",
    (InvestmentStatus.PENDING, InvestmentEvent.REQUEST_CLOSURE): "Investment is not active",
    (InvestmentStatus.ACTIVE, InvestmentEvent.APPROVE_CLOSURE): "No closure request pending",
    (InvestmentStatus.ACTIVE, InvestmentEvent.REJECT_CLOSURE): "No closure request pending",
    (InvestmentStatus.CLOSED, InvestmentEvent.APPROVE_CLOSURE): "Investment is already closed",
}


def investment_target(
    current: Union[InvestmentStatus, str],
    event: InvestmentEvent
) -> InvestmentStatus:
    """
    Resolve the state an investment moves to on ``event``.

    Args:
        current: Current status (enum member or stored string)
        event: Requested transition

    Returns:
        The new status

    Raises:
        InvalidStateError: If the table has no such transition
    """
    state = InvestmentStatus(current)
    target = INVESTMENT_TRANSITIONS.get((state, event))
    if target is None:
        raise InvalidStateError(
            _INVESTMENT_REFUSALS.get(
                (state, event),
                f"Cannot {event.value.lower().replace('_', ' ')} an investment in state {state.value}"
            ),
            details={"status": state.value, "event": event.value}
        )
    return target


def withdrawal_target(
    current: Union[WithdrawalStatus, str],
    event: WithdrawalEvent
) -> WithdrawalStatus:
    """Resolve the state a withdrawal moves to on ``event``."""
    state = WithdrawalStatus(current)
    target = WITHDRAWAL_TRANSITIONS.get((state, event))
    if target is None:
        raise InvalidStateError(
            f"Withdrawal has already been processed ({state.value})",
            details={"status": state.value, "event": event.value}
        )
    return target


def can_transition(current: Union[InvestmentStatus, str], event: InvestmentEvent) -> bool:
    return (InvestmentStatus(current), event) in INVESTMENT_TRANSITIONS
