"""Orderly REST client.

Covers the account endpoints the swap flows need: withdrawal and transfer
nonces, withdrawal requests, internal transfers, asset history and holdings.
Every call is signed with the account's venue key via RequestSigner.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Optional
from urllib.parse import urlencode

import httpx

from venuebridge.errors import AdapterError
from venuebridge.venue.signer import RequestSigner

logger = logging.getLogger(__name__)

CHAIN_TYPE = "SOL"


@dataclass
class VenueCredentials:
    """Decrypted venue account credentials. Never persisted or logged."""
    account_id: str
    secret: str

    def __repr__(self) -> str:
        return f"VenueCredentials(account_id={self.account_id!r}, secret=***)"


@dataclass
class AssetHistoryEntry:
    """One deposit or withdrawal row of the venue's asset history."""
    id: str
    token: str
    side: str
    amount: Decimal
    trans_status: str
    tx_id: Optional[str] = None
    created_time: Optional[int] = None

    @property
    def is_completed(self) -> bool:
        return self.trans_status.upper() == "COMPLETED"


def build_withdraw_message(
    broker_id: str,
    chain_id: int,
    receiver: str,
    token: str,
    amount: int,
    withdraw_nonce: int,
    timestamp_ms: int,
) -> dict:
    """Build the withdrawal authorization message signed by the wallet key."""
    return {
        "brokerId": broker_id,
        "chainId": chain_id,
        "receiver": receiver,
        "token": token,
        "amount": str(amount),
        "withdrawNonce": str(withdraw_nonce),
        "timestamp": str(timestamp_ms),
        "chainType": CHAIN_TYPE,
        "allowCrossChainWithdraw": True,
    }


def build_internal_transfer_message(
    receiver: str,
    token: str,
    amount: int,
    transfer_nonce: int,
    chain_id: int,
) -> dict:
    """Build the internal transfer message signed by the wallet key."""
    return {
        "receiver": receiver,
        "token": token,
        "amount": str(amount),
        "transferNonce": str(transfer_nonce),
        "chainId": str(chain_id),
        "chainType": CHAIN_TYPE,
    }


class OrderlyClient:
    """Signed client for the Orderly REST API."""

    def __init__(
        self,
        base_url: str,
        verifying_contract: str,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initialize the client.

        Args:
            base_url: REST base URL
            verifying_contract: Ledger contract named in signed wallet messages
            timeout: Request timeout in seconds
            client: Optional pre-built HTTP client (used by tests)
        """
        self.base_url = base_url.rstrip("/")
        self.verifying_contract = verifying_contract
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @property
    def name(self) -> str:
        return "orderly"

    async def close(self) -> None:
        await self._client.aclose()

    async def _request(
        self,
        credentials: VenueCredentials,
        method: str,
        path: str,
        params: Optional[dict] = None,
        body: Optional[dict] = None,
    ) -> Any:
        """Sign and send a request, returning the response's data field."""
        if params:
            query = urlencode({k: v for k, v in params.items() if v is not None})
            if query:
                path = f"{path}?{query}"

        signed = RequestSigner(credentials.account_id, credentials.secret).sign(method, path, body)

        try:
            response = await self._client.request(
                method,
                f"{self.base_url}{path}",
                content=signed.body,
                headers=signed.headers,
            )
        except httpx.HTTPError as e:
            logger.warning(f"Orderly {method} {path} failed: {e}")
            raise AdapterError(self.name, f"{method} {path} failed: {e}") from e

        if response.status_code >= 400:
            logger.warning(f"Orderly {method} {path} returned {response.status_code}: {response.text}")
            raise AdapterError(
                self.name, f"{method} {path}: {response.text[:200]}", response.status_code
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise AdapterError(self.name, f"{method} {path}: invalid JSON response") from e

        if not payload.get("success", False):
            message = payload.get("message", "request was not successful")
            raise AdapterError(self.name, f"{method} {path}: {message}", response.status_code)

        return payload.get("data") or {}

    async def get_withdraw_nonce(self, credentials: VenueCredentials) -> int:
        data = await self._request(credentials, "GET", "/v1/withdraw_nonce")
        try:
            return int(data["withdraw_nonce"])
        except (KeyError, TypeError, ValueError) as e:
            raise AdapterError(self.name, "withdraw_nonce missing from response") from e

    async def submit_withdrawal(
        self,
        credentials: VenueCredentials,
        message: dict,
        signature: str,
        user_address: str,
    ) -> str:
        """Submit a signed withdrawal request.

        Returns:
            The venue's withdrawal id
        """
        body = {
            "signature": signature,
            "userAddress": user_address,
            "verifyingContract": self.verifying_contract,
            "message": message,
        }
        data = await self._request(credentials, "POST", "/v1/withdraw_request", body=body)

        withdraw_id = data.get("withdraw_id")
        if withdraw_id is None:
            raise AdapterError(self.name, "withdraw_id missing from response")

        logger.info(f"Submitted venue withdrawal {withdraw_id} for account {credentials.account_id}")
        return str(withdraw_id)

    async def get_asset_history(
        self,
        credentials: VenueCredentials,
        token: Optional[str] = None,
        side: Optional[str] = None,
        status: Optional[str] = None,
    ) -> list[AssetHistoryEntry]:
        """Get deposit/withdrawal history, optionally filtered."""
        data = await self._request(
            credentials,
            "GET",
            "/v1/asset/history",
            params={"token": token, "side": side, "status": status},
        )

        entries = []
        for row in data.get("rows", []):
            try:
                amount = Decimal(str(row.get("amount")))
            except InvalidOperation:
                logger.warning(f"Skipping asset history row with bad amount: {row.get('id')}")
                continue
            entries.append(
                AssetHistoryEntry(
                    id=str(row.get("id", "")),
                    token=row.get("token", token or ""),
                    side=row.get("side", side or ""),
                    amount=amount,
                    trans_status=row.get("trans_status", ""),
                    tx_id=row.get("tx_id"),
                    created_time=row.get("created_time"),
                )
            )
        return entries

    async def get_transfer_nonce(self, credentials: VenueCredentials) -> int:
        data = await self._request(credentials, "GET", "/v1/transfer_nonce")
        try:
            return int(data["transfer_nonce"])
        except (KeyError, TypeError, ValueError) as e:
            raise AdapterError(self.name, "transfer_nonce missing from response") from e

    async def create_internal_transfer(
        self,
        credentials: VenueCredentials,
        message: dict,
        signature: str,
        user_address: str,
    ) -> str:
        """Submit a signed internal transfer between venue accounts.

        Returns:
            The internal transfer request id
        """
        body = {
            "signature": signature,
            "userAddress": user_address,
            "verifyingContract": self.verifying_contract,
            "message": message,
        }
        data = await self._request(credentials, "POST", "/v2/internal_transfer", body=body)

        request_id = data.get("internal_transfer_request_id")
        if request_id is None:
            raise AdapterError(self.name, "internal_transfer_request_id missing from response")
        return str(request_id)

    async def get_holdings(self, credentials: VenueCredentials, all: bool = False) -> list[dict]:
        """Get the account's current token holdings."""
        data = await self._request(
            credentials, "GET", "/v1/client/holding", params={"all": "true" if all else None}
        )
        return list(data.get("holding", []))
