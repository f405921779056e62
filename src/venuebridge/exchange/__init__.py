"""Currency-conversion gateway adapters."""

from venuebridge.exchange.base import (
    ExchangeGateway,
    ExchangeOrder,
    ExchangeRequest,
    ExchangeState,
    ExchangeStatus,
)
from venuebridge.exchange.changenow import ChangeNowGateway

__all__ = [
    "ExchangeGateway",
    "ExchangeOrder",
    "ExchangeRequest",
    "ExchangeState",
    "ExchangeStatus",
    "ChangeNowGateway",
]
