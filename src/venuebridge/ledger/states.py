"""Transaction state machine.

Every ledger row belongs to one direction. Each direction has its own state
set and transition table; ``validate_transition`` is the only place that
decides whether a status change is allowed.

DEPOSIT:  EXCHANGE_CREATED -> EXCHANGE_CONVERTING -> EXCHANGE_COMPLETED
          -> VENUE_DEPOSIT_PENDING -> VENUE_DEPOSIT_CONFIRMED
WITHDRAW: VENUE_WITHDRAW_PENDING -> VENUE_WITHDRAW_CONFIRMED
          -> EXCHANGE_CONVERTING -> EXCHANGE_COMPLETED -> COMPLETED

FAILED is reachable from every non-terminal state of both directions.
"""

from enum import Enum

from venuebridge.errors import IllegalTransitionError


class TransactionDirection(str, Enum):
    """Direction of a cross-system swap."""

    DEPOSIT = "DEPOSIT"      # ADA -> exchange -> SOL -> venue
    WITHDRAW = "WITHDRAW"    # venue -> SOL -> exchange -> ADA


class TransactionStatus(str, Enum):
    """Status of a ledger row."""

    EXCHANGE_CREATED = "EXCHANGE_CREATED"
    EXCHANGE_CONVERTING = "EXCHANGE_CONVERTING"
    EXCHANGE_COMPLETED = "EXCHANGE_COMPLETED"
    VENUE_DEPOSIT_PENDING = "VENUE_DEPOSIT_PENDING"
    VENUE_DEPOSIT_CONFIRMED = "VENUE_DEPOSIT_CONFIRMED"
    VENUE_WITHDRAW_PENDING = "VENUE_WITHDRAW_PENDING"
    VENUE_WITHDRAW_CONFIRMED = "VENUE_WITHDRAW_CONFIRMED"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


S = TransactionStatus

_DEPOSIT_EDGES: dict[TransactionStatus, frozenset[TransactionStatus]] = {
    # Gateway may report "finished" before we ever observed "converting"
    S.EXCHANGE_CREATED: frozenset({S.EXCHANGE_CONVERTING, S.EXCHANGE_COMPLETED}),
    S.EXCHANGE_CONVERTING: frozenset({S.EXCHANGE_COMPLETED}),
    S.EXCHANGE_COMPLETED: frozenset({S.VENUE_DEPOSIT_PENDING}),
    S.VENUE_DEPOSIT_PENDING: frozenset({S.VENUE_DEPOSIT_CONFIRMED}),
    S.VENUE_DEPOSIT_CONFIRMED: frozenset(),
    S.FAILED: frozenset(),
}

_WITHDRAW_EDGES: dict[TransactionStatus, frozenset[TransactionStatus]] = {
    S.VENUE_WITHDRAW_PENDING: frozenset({S.VENUE_WITHDRAW_CONFIRMED}),
    S.VENUE_WITHDRAW_CONFIRMED: frozenset({S.EXCHANGE_CONVERTING}),
    S.EXCHANGE_CONVERTING: frozenset({S.EXCHANGE_COMPLETED}),
    S.EXCHANGE_COMPLETED: frozenset({S.COMPLETED}),
    S.COMPLETED: frozenset(),
    S.FAILED: frozenset(),
}

TRANSITIONS: dict[TransactionDirection, dict[TransactionStatus, frozenset[TransactionStatus]]] = {
    TransactionDirection.DEPOSIT: _DEPOSIT_EDGES,
    TransactionDirection.WITHDRAW: _WITHDRAW_EDGES,
}

INITIAL_STATUS = {
    TransactionDirection.DEPOSIT: S.EXCHANGE_CREATED,
    TransactionDirection.WITHDRAW: S.VENUE_WITHDRAW_PENDING,
}

TERMINAL_STATUSES = frozenset({S.VENUE_DEPOSIT_CONFIRMED, S.COMPLETED, S.FAILED})

# Rows the exchange sweep drives through reconcile()
EXCHANGE_IN_FLIGHT = (S.EXCHANGE_CREATED, S.EXCHANGE_CONVERTING)

# Rows the venue-withdrawal sweep drives
WITHDRAWAL_IN_FLIGHT = (S.VENUE_WITHDRAW_PENDING, S.VENUE_WITHDRAW_CONFIRMED)


def states_for(direction: TransactionDirection) -> frozenset[TransactionStatus]:
    """Get the full state set of a direction."""
    return frozenset(TRANSITIONS[TransactionDirection(direction)])


def is_valid_status(direction: TransactionDirection, status: TransactionStatus) -> bool:
    """Check that a status belongs to the direction's state set."""
    return TransactionStatus(status) in states_for(direction)


def is_terminal(status: TransactionStatus) -> bool:
    """Check if no further transition is possible from status."""
    return TransactionStatus(status) in TERMINAL_STATUSES


def can_transition(
    direction: TransactionDirection,
    current: TransactionStatus,
    target: TransactionStatus,
) -> bool:
    """Check if current -> target is a legal edge for direction."""
    direction = TransactionDirection(direction)
    current = TransactionStatus(current)
    target = TransactionStatus(target)

    edges = TRANSITIONS[direction]
    if current not in edges:
        return False
    if target == S.FAILED:
        return not is_terminal(current)
    return target in edges[current]


def validate_transition(
    direction: TransactionDirection,
    current: TransactionStatus,
    target: TransactionStatus,
) -> None:
    """Raise IllegalTransitionError unless current -> target is legal."""
    if not can_transition(direction, current, target):
        raise IllegalTransitionError(
            TransactionDirection(direction).value,
            TransactionStatus(current).value,
            TransactionStatus(target).value,
        )
