"""Tests for the ChangeNOW and Orderly HTTP adapters."""

import base64
import json
from decimal import Decimal

import base58
import httpx
import pytest
from nacl.signing import VerifyKey

from venuebridge.errors import AdapterError
from venuebridge.exchange.base import ExchangeRequest, ExchangeState
from venuebridge.exchange.changenow import ChangeNowGateway
from venuebridge.venue.client import (
    OrderlyClient,
    VenueCredentials,
    build_internal_transfer_message,
    build_withdraw_message,
)

from conftest import VENUE_ACCOUNT_ID


def _mock_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _exchange_request() -> ExchangeRequest:
    return ExchangeRequest(
        from_currency="ada",
        to_currency="sol",
        from_network="ada",
        to_network="sol",
        from_amount=Decimal("10"),
        address="So1anaPayout",
        refund_address="addr_refund",
    )


class TestChangeNowGateway:

    @pytest.mark.asyncio
    async def test_create_exchange(self):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["path"] = request.url.path
            seen["api_key"] = request.headers["x-changenow-api-key"]
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={
                "id": "cn-1",
                "payinAddress": "addr_payin",
                "payoutAddress": "So1anaPayout",
                "fromAmount": 10,
                "toAmount": 49.5,
                "flow": "standard",
                "type": "direct",
            })

        gateway = ChangeNowGateway("secret-key", "https://cn.test/v2", client=_mock_client(handler))
        order = await gateway.create_exchange(_exchange_request())

        assert seen["path"] == "/v2/exchange"
        assert seen["api_key"] == "secret-key"
        assert seen["body"]["fromAmount"] == "10"
        assert seen["body"]["refundAddress"] == "addr_refund"
        assert order.id == "cn-1"
        assert order.payin_address == "addr_payin"
        assert order.from_amount == Decimal("10")
        assert order.to_amount == Decimal("49.5")

    @pytest.mark.asyncio
    async def test_create_requires_payin_address(self):
        gateway = ChangeNowGateway(
            "k", client=_mock_client(lambda request: httpx.Response(200, json={"id": "cn-1"}))
        )
        with pytest.raises(AdapterError):
            await gateway.create_exchange(_exchange_request())

    @pytest.mark.asyncio
    async def test_error_status_raises_adapter_error(self):
        gateway = ChangeNowGateway(
            "k",
            client=_mock_client(lambda request: httpx.Response(400, json={"error": "out_of_range"})),
        )
        with pytest.raises(AdapterError) as exc_info:
            await gateway.create_exchange(_exchange_request())
        assert exc_info.value.status_code == 400

    @pytest.mark.asyncio
    async def test_network_error_raises_adapter_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        gateway = ChangeNowGateway("k", client=_mock_client(handler))
        with pytest.raises(AdapterError):
            await gateway.get_status("cn-1")

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "raw,state",
        [
            ("new", ExchangeState.NEW),
            ("waiting", ExchangeState.NEW),
            ("exchanging", ExchangeState.CONVERTING),
            ("sending", ExchangeState.CONVERTING),
            ("finished", ExchangeState.FINISHED),
            ("failed", ExchangeState.FAILED),
            ("refunded", ExchangeState.FAILED),
            ("expired", ExchangeState.FAILED),
            ("hold", ExchangeState.UNKNOWN),
        ],
    )
    async def test_status_mapping(self, raw, state):
        gateway = ChangeNowGateway(
            "k", client=_mock_client(lambda request: httpx.Response(200, json={"status": raw}))
        )
        status = await gateway.get_status("cn-1")
        assert status.state == state
        assert status.raw_status == raw

    @pytest.mark.asyncio
    async def test_status_reads_amount_to_fallback(self):
        def handler(request):
            assert request.url.params["id"] == "cn-1"
            return httpx.Response(200, json={
                "status": "finished", "amountTo": "49.5", "payoutHash": "solhash",
            })

        gateway = ChangeNowGateway("k", client=_mock_client(handler))
        status = await gateway.get_status("cn-1")

        assert status.state == ExchangeState.FINISHED
        assert status.to_amount == Decimal("49.5")
        assert status.payout_hash == "solhash"

    @pytest.mark.asyncio
    async def test_min_amount(self):
        def handler(request):
            assert request.url.path.endswith("/exchange/min-amount")
            assert request.url.params["fromCurrency"] == "ada"
            return httpx.Response(200, json={"minAmount": 2.1})

        gateway = ChangeNowGateway("k", client=_mock_client(handler))
        assert await gateway.get_min_amount("ada", "sol", "ada", "sol") == Decimal("2.1")


class TestOrderlyClient:

    @pytest.fixture
    def credentials(self, venue_secret) -> VenueCredentials:
        return VenueCredentials(account_id=VENUE_ACCOUNT_ID, secret=venue_secret)

    def _client(self, handler) -> OrderlyClient:
        return OrderlyClient("https://orderly.test", "0xledger", client=_mock_client(handler))

    @pytest.mark.asyncio
    async def test_requests_are_signed(self, credentials):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["request"] = request
            return httpx.Response(200, json={"success": True, "data": {"withdraw_nonce": "42"}})

        nonce = await self._client(handler).get_withdraw_nonce(credentials)
        request = seen["request"]
        headers = request.headers

        assert nonce == 42
        assert headers["orderly-account-id"] == VENUE_ACCOUNT_ID
        public = base58.b58decode(headers["orderly-key"].removeprefix("ed25519:"))
        message = f"{headers['orderly-timestamp']}GET/v1/withdraw_nonce".encode()
        VerifyKey(public).verify(message, base64.urlsafe_b64decode(headers["orderly-signature"]))

    @pytest.mark.asyncio
    async def test_submit_withdrawal(self, credentials):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["body"] = request.content.decode()
            seen["headers"] = request.headers
            return httpx.Response(200, json={"success": True, "data": {"withdraw_id": 123}})

        message = build_withdraw_message("demo", 900, "So1anaUser", "SOL", 500_000_000, 7, 1_700_000_000_000)
        withdraw_id = await self._client(handler).submit_withdrawal(
            credentials, message, "sig", "So1anaUser"
        )

        body = json.loads(seen["body"])
        assert withdraw_id == "123"
        assert body["verifyingContract"] == "0xledger"
        assert body["message"]["amount"] == "500000000"
        assert body["message"]["withdrawNonce"] == "7"
        # Wire bytes are exactly what was signed
        public = base58.b58decode(seen["headers"]["orderly-key"].removeprefix("ed25519:"))
        signed = f"{seen['headers']['orderly-timestamp']}POST/v1/withdraw_request{seen['body']}"
        VerifyKey(public).verify(
            signed.encode(), base64.urlsafe_b64decode(seen["headers"]["orderly-signature"])
        )

    @pytest.mark.asyncio
    async def test_unsuccessful_payload_raises(self, credentials):
        client = self._client(
            lambda request: httpx.Response(200, json={"success": False, "message": "nonce used"})
        )
        with pytest.raises(AdapterError, match="nonce used"):
            await client.get_withdraw_nonce(credentials)

    @pytest.mark.asyncio
    async def test_http_error_raises(self, credentials):
        client = self._client(lambda request: httpx.Response(401, text="unauthorized"))
        with pytest.raises(AdapterError) as exc_info:
            await client.get_withdraw_nonce(credentials)
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_asset_history(self, credentials):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json={"success": True, "data": {"rows": [
                {"id": "h-1", "token": "SOL", "side": "WITHDRAW", "amount": 0.5,
                 "trans_status": "COMPLETED", "tx_id": "soltx"},
                {"id": "h-2", "token": "SOL", "side": "WITHDRAW", "amount": "junk",
                 "trans_status": "PENDING"},
            ]}})

        entries = await self._client(handler).get_asset_history(credentials, token="SOL", side="WITHDRAW")

        assert seen["params"] == {"token": "SOL", "side": "WITHDRAW"}
        assert len(entries) == 1
        assert entries[0].amount == Decimal("0.5")
        assert entries[0].is_completed
        assert entries[0].tx_id == "soltx"

    @pytest.mark.asyncio
    async def test_internal_transfer(self, credentials):
        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/v1/transfer_nonce":
                return httpx.Response(200, json={"success": True, "data": {"transfer_nonce": 3}})
            body = json.loads(request.content)
            assert body["message"]["transferNonce"] == "3"
            return httpx.Response(200, json={"success": True, "data": {"internal_transfer_request_id": 9}})

        client = self._client(handler)
        nonce = await client.get_transfer_nonce(credentials)
        message = build_internal_transfer_message("0xreceiver", "SOL", 1_000, nonce, 900)
        request_id = await client.create_internal_transfer(credentials, message, "sig", "So1anaUser")

        assert request_id == "9"
        assert message["chainType"] == "SOL"

    @pytest.mark.asyncio
    async def test_holdings(self, credentials):
        def handler(request: httpx.Request) -> httpx.Response:
            assert request.url.params["all"] == "true"
            return httpx.Response(200, json={"success": True, "data": {"holding": [
                {"token": "SOL", "holding": 1.5},
            ]}})

        holdings = await self._client(handler).get_holdings(credentials, all=True)
        assert holdings == [{"token": "SOL", "holding": 1.5}]

    def test_credentials_repr_hides_secret(self, credentials):
        assert credentials.secret not in repr(credentials)
