"""ChangeNOW exchange gateway."""

import logging
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

import httpx

from venuebridge.errors import AdapterError
from venuebridge.exchange.base import (
    ExchangeGateway,
    ExchangeOrder,
    ExchangeRequest,
    ExchangeState,
    ExchangeStatus,
)

logger = logging.getLogger(__name__)

# Raw ChangeNOW v2 statuses
STATUS_MAP = {
    "new": ExchangeState.NEW,
    "waiting": ExchangeState.NEW,
    "confirming": ExchangeState.CONVERTING,
    "exchanging": ExchangeState.CONVERTING,
    "sending": ExchangeState.CONVERTING,
    "verifying": ExchangeState.CONVERTING,
    "finished": ExchangeState.FINISHED,
    "failed": ExchangeState.FAILED,
    "refunded": ExchangeState.FAILED,
    "expired": ExchangeState.FAILED,
}


def _decimal(value: Any) -> Optional[Decimal]:
    """Parse a JSON amount (number or string) without going through float math."""
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


class ChangeNowGateway(ExchangeGateway):
    """ChangeNOW v2 API client.

    Docs: https://documenter.getpostman.com/view/8180765/SVfTPnM8
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.changenow.io/v2",
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize the gateway.

        Args:
            api_key: ChangeNOW API key
            base_url: API base URL
            timeout: Request timeout in seconds
            client: Optional pre-built HTTP client (used by tests)
        """
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @property
    def name(self) -> str:
        return "changenow"

    async def close(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        params: Optional[dict] = None,
        json: Optional[dict] = None,
    ) -> dict:
        """Send a request and return the decoded body, raising AdapterError on failure."""
        try:
            response = await self._client.request(
                method,
                f"{self.base_url}{path}",
                params=params,
                json=json,
                headers={"x-changenow-api-key": self.api_key},
            )
        except httpx.HTTPError as e:
            logger.warning(f"ChangeNOW {method} {path} failed: {e}")
            raise AdapterError(self.name, f"{method} {path} failed: {e}") from e

        if response.status_code >= 400:
            logger.warning(f"ChangeNOW {method} {path} returned {response.status_code}: {response.text}")
            raise AdapterError(
                self.name, f"{method} {path}: {response.text[:200]}", response.status_code
            )

        try:
            return response.json()
        except ValueError as e:
            raise AdapterError(self.name, f"{method} {path}: invalid JSON response") from e

    async def create_exchange(self, request: ExchangeRequest) -> ExchangeOrder:
        body = {
            "fromCurrency": request.from_currency,
            "toCurrency": request.to_currency,
            "fromNetwork": request.from_network,
            "toNetwork": request.to_network,
            "fromAmount": str(request.from_amount),
            "address": request.address,
            "flow": request.flow,
            "type": request.type,
        }
        if request.refund_address:
            body["refundAddress"] = request.refund_address

        data = await self._request("POST", "/exchange", json=body)

        exchange_id = data.get("id")
        payin_address = data.get("payinAddress")
        if not exchange_id or not payin_address:
            raise AdapterError(self.name, "exchange response is missing id or payinAddress")

        order = ExchangeOrder(
            id=exchange_id,
            payin_address=payin_address,
            payout_address=data.get("payoutAddress", request.address),
            from_currency=data.get("fromCurrency", request.from_currency),
            to_currency=data.get("toCurrency", request.to_currency),
            from_network=data.get("fromNetwork", request.from_network),
            to_network=data.get("toNetwork", request.to_network),
            from_amount=_decimal(data.get("fromAmount")) or request.from_amount,
            to_amount=_decimal(data.get("toAmount")),
            flow=data.get("flow", request.flow),
            type=data.get("type", request.type),
        )
        logger.info(
            f"Created ChangeNOW exchange {order.id}: {order.from_amount} "
            f"{order.from_currency} -> {order.to_currency}"
        )
        return order

    async def get_status(self, exchange_id: str) -> ExchangeStatus:
        data = await self._request("GET", "/exchange/by-id", params={"id": exchange_id})

        raw = str(data.get("status", "")).lower()
        state = STATUS_MAP.get(raw, ExchangeState.UNKNOWN)
        if state == ExchangeState.UNKNOWN:
            logger.warning(f"Unknown ChangeNOW status for {exchange_id}: {raw!r}")

        to_amount = _decimal(data.get("toAmount"))
        if to_amount is None:
            to_amount = _decimal(data.get("amountTo"))

        return ExchangeStatus(
            state=state,
            raw_status=raw,
            to_amount=to_amount,
            payout_hash=data.get("payoutHash"),
        )

    async def get_min_amount(
        self,
        from_currency: str,
        to_currency: str,
        from_network: str,
        to_network: str,
        flow: str = "standard",
    ) -> Decimal:
        data = await self._request(
            "GET",
            "/exchange/min-amount",
            params={
                "fromCurrency": from_currency,
                "toCurrency": to_currency,
                "fromNetwork": from_network,
                "toNetwork": to_network,
                "flow": flow,
            },
        )
        min_amount = _decimal(data.get("minAmount"))
        if min_amount is None:
            raise AdapterError(self.name, "min-amount response is missing minAmount")
        return min_amount
