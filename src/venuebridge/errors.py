"""Exception hierarchy shared by adapters, the ledger and the orchestrators."""

from typing import Optional


class BridgeError(Exception):
    """Base class for all venuebridge errors."""
    pass


class ValidationError(BridgeError):
    """Bad caller input: unknown wallet, unregistered venue account, bad amount.

    Raised before any ledger mutation.
    """
    pass


class AdapterError(BridgeError):
    """An external system failed: network error, timeout or non-2xx response."""

    def __init__(self, adapter: str, message: str, status_code: Optional[int] = None):
        self.adapter = adapter
        self.status_code = status_code
        detail = f"{adapter}: {message}"
        if status_code is not None:
            detail = f"{detail} (HTTP {status_code})"
        super().__init__(detail)


class LedgerIntegrityError(BridgeError):
    """A write would break a ledger invariant (e.g. rewriting exchange_id)."""
    pass


class IllegalTransitionError(LedgerIntegrityError):
    """A status change is not allowed by the direction's transition table."""

    def __init__(self, direction: str, current: str, target: str):
        self.direction = direction
        self.current = current
        self.target = target
        super().__init__(f"Illegal {direction} transition: {current} -> {target}")
