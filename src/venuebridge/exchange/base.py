"""Exchange gateway base interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Optional


class ExchangeState(str, Enum):
    """Normalised order state reported by a gateway."""

    NEW = "new"
    CONVERTING = "converting"
    FINISHED = "finished"
    FAILED = "failed"
    UNKNOWN = "unknown"

    @property
    def is_failure(self) -> bool:
        return self == ExchangeState.FAILED


@dataclass
class ExchangeRequest:
    """Parameters for a new conversion order."""

    from_currency: str
    to_currency: str
    from_network: str
    to_network: str
    from_amount: Decimal
    address: str                          # Payout address
    refund_address: Optional[str] = None
    flow: str = "standard"
    type: str = "direct"


@dataclass
class ExchangeOrder:
    """Conversion order as created by the gateway."""

    id: str
    payin_address: str
    payout_address: str
    from_currency: str
    to_currency: str
    from_network: str
    to_network: str
    from_amount: Decimal
    to_amount: Optional[Decimal] = None   # Quoted, not final
    flow: Optional[str] = None
    type: Optional[str] = None


@dataclass
class ExchangeStatus:
    """Point-in-time status of an order."""

    state: ExchangeState
    raw_status: str
    to_amount: Optional[Decimal] = None
    payout_hash: Optional[str] = None


class ExchangeGateway(ABC):
    """Abstract base class for currency-conversion services."""

    @abstractmethod
    async def create_exchange(self, request: ExchangeRequest) -> ExchangeOrder:
        """Create a conversion order.

        Args:
            request: Order parameters

        Returns:
            The created order with its pay-in address

        Raises:
            AdapterError: If the gateway rejects the order or is unreachable
        """
        raise NotImplementedError()

    @abstractmethod
    async def get_status(self, exchange_id: str) -> ExchangeStatus:
        """Get the current status of an order."""
        raise NotImplementedError()

    @abstractmethod
    async def get_min_amount(
        self,
        from_currency: str,
        to_currency: str,
        from_network: str,
        to_network: str,
        flow: str = "standard",
    ) -> Decimal:
        """Get the minimum pay-in amount for a currency pair."""
        raise NotImplementedError()

    @property
    @abstractmethod
    def name(self) -> str:
        """Gateway name."""
        raise NotImplementedError()
