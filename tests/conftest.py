"""Pytest configuration and fixtures."""

import os
from decimal import Decimal
from typing import Optional

import base58
import pytest
import pytest_asyncio
from nacl.signing import SigningKey
from solders.keypair import Keypair

# Set test environment
os.environ["ENVIRONMENT"] = "test"
os.environ["DEBUG"] = "true"

from venuebridge.chains.base import ChainTransactor, TransferResult
from venuebridge.config import Settings
from venuebridge.crypto import KeyVault
from venuebridge.errors import AdapterError
from venuebridge.exchange.base import (
    ExchangeGateway,
    ExchangeOrder,
    ExchangeRequest,
    ExchangeState,
    ExchangeStatus,
)
from venuebridge.ledger.database import create_engine, create_session_factory, init_db, unit_of_work
from venuebridge.ledger.repository import LedgerRepository
from venuebridge.services.deposits import DepositOrchestrator
from venuebridge.services.scheduler import PollingScheduler
from venuebridge.services.withdrawals import WithdrawalOrchestrator
from venuebridge.venue.client import AssetHistoryEntry, VenueCredentials

TEST_ENCRYPTION_KEY = "11" * 32
WALLET_ADDRESS = "addr_test1qzuserwallet0000000000000000000000000000"
CARDANO_ADDRESS = "addr_test1vqcustodialcardano000000000000000000000"
VENUE_ACCOUNT_ID = "0x" + "ab" * 32


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeExchangeGateway(ExchangeGateway):
    """In-memory exchange gateway with scriptable order statuses."""

    def __init__(self):
        self.requests: list[ExchangeRequest] = []
        self.statuses: dict[str, ExchangeStatus] = {}
        self.status_calls: list[str] = []
        self.fail_create = False
        self.fail_status = False
        self.min_amount = Decimal("2.5")

    @property
    def name(self) -> str:
        return "fake-exchange"

    async def create_exchange(self, request: ExchangeRequest) -> ExchangeOrder:
        if self.fail_create:
            raise AdapterError(self.name, "create failed", 500)
        self.requests.append(request)
        order_id = f"ex-{len(self.requests)}"
        self.statuses[order_id] = ExchangeStatus(state=ExchangeState.NEW, raw_status="new")
        return ExchangeOrder(
            id=order_id,
            payin_address=f"payin-{order_id}",
            payout_address=request.address,
            from_currency=request.from_currency,
            to_currency=request.to_currency,
            from_network=request.from_network,
            to_network=request.to_network,
            from_amount=request.from_amount,
            flow=request.flow,
            type=request.type,
        )

    def set_status(self, order_id: str, raw: str, to_amount: Optional[str] = None, payout_hash=None):
        state = {
            "new": ExchangeState.NEW,
            "exchanging": ExchangeState.CONVERTING,
            "finished": ExchangeState.FINISHED,
            "failed": ExchangeState.FAILED,
            "refunded": ExchangeState.FAILED,
        }[raw]
        self.statuses[order_id] = ExchangeStatus(
            state=state,
            raw_status=raw,
            to_amount=Decimal(to_amount) if to_amount is not None else None,
            payout_hash=payout_hash,
        )

    async def get_status(self, exchange_id: str) -> ExchangeStatus:
        self.status_calls.append(exchange_id)
        if self.fail_status:
            raise AdapterError(self.name, "status unavailable", 503)
        return self.statuses[exchange_id]

    async def get_min_amount(self, from_currency, to_currency, from_network, to_network, flow="standard"):
        return self.min_amount


class FakeCardanoTransactor(ChainTransactor):
    def __init__(self):
        super().__init__("ADA")
        self.payments: list[tuple[str, str, int]] = []
        self.fail = False

    async def send_payment(self, secret: str, to_address: str, amount: int) -> TransferResult:
        self._check_amount(amount)
        if self.fail:
            raise AdapterError("cardano", "insufficient funds")
        self.payments.append((secret, to_address, amount))
        return TransferResult(chain=self.chain, tx_hash=f"ada-tx-{len(self.payments)}", amount=amount, to_address=to_address)


class FakeSolanaTransactor(ChainTransactor):
    def __init__(self):
        super().__init__("SOL")
        self.payments: list[tuple[str, str, int]] = []
        self.vault_deposits: list[dict] = []
        self.signed_messages: list[str] = []
        self.fail_payment = False
        self.fail_vault = False

    async def send_payment(self, secret: str, to_address: str, amount: int) -> TransferResult:
        self._check_amount(amount)
        if self.fail_payment:
            raise AdapterError("solana", "blockhash not found")
        self.payments.append((secret, to_address, amount))
        return TransferResult(chain=self.chain, tx_hash=f"sol-tx-{len(self.payments)}", amount=amount, to_address=to_address)

    async def submit_vault_deposit(self, secret, account_id, broker_id, token, amount) -> str:
        self._check_amount(amount)
        if self.fail_vault:
            raise AdapterError("solana", "vault deposit simulation failed")
        self.vault_deposits.append(
            {"account_id": account_id, "broker_id": broker_id, "token": token, "amount": amount}
        )
        return f"vault-tx-{len(self.vault_deposits)}"

    def sign_message(self, secret: str, message) -> str:
        self.signed_messages.append(message)
        return "fake-signature"


class FakeVenueClient:
    def __init__(self):
        self.nonce = 7
        self.history: list[AssetHistoryEntry] = []
        self.withdrawals: list[dict] = []
        self.history_calls = 0
        self.fail_history = False
        self.fail_submit = False

    async def get_withdraw_nonce(self, credentials: VenueCredentials) -> int:
        return self.nonce

    async def submit_withdrawal(self, credentials, message, signature, user_address) -> str:
        if self.fail_submit:
            raise AdapterError("orderly", "withdraw rejected", 400)
        self.withdrawals.append(
            {"credentials": credentials, "message": message, "signature": signature, "user_address": user_address}
        )
        return f"wd-{len(self.withdrawals)}"

    async def get_asset_history(self, credentials, token=None, side=None, status=None):
        self.history_calls += 1
        if self.fail_history:
            raise AdapterError("orderly", "history unavailable", 503)
        return list(self.history)

    def complete(
        self, amount: str, entry_id: str = "h-1", trans_status: str = "COMPLETED", created_time=None
    ):
        self.history.append(
            AssetHistoryEntry(
                id=entry_id,
                token="SOL",
                side="WITHDRAW",
                amount=Decimal(amount),
                trans_status=trans_status,
                created_time=created_time,
            )
        )


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        encryption_key=TEST_ENCRYPTION_KEY,
        environment="test",
        debug=True,
        changenow_api_key="test-key",
        venue_broker_id="demo",
        venue_chain_id=900,
    )


@pytest_asyncio.fixture
async def db_engine(settings):
    """File-backed database so every unit of work sees committed rows."""
    engine = create_engine(settings.database_url)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return create_session_factory(db_engine)


@pytest.fixture
def key_vault() -> KeyVault:
    return KeyVault(TEST_ENCRYPTION_KEY)


@pytest.fixture
def solana_keypair() -> Keypair:
    return Keypair()


@pytest.fixture
def venue_secret() -> str:
    return base58.b58encode(bytes(SigningKey.generate())).decode()


@pytest_asyncio.fixture
async def wallet(session_factory, key_vault, solana_keypair, venue_secret):
    """Wallet with custodial keys, registered on the venue."""
    async with unit_of_work(session_factory) as session:
        repo = LedgerRepository(session)
        await repo.create_wallet(
            wallet_address=WALLET_ADDRESS,
            cardano_address=CARDANO_ADDRESS,
            cardano_secret=key_vault.encrypt("aa" * 32),
            solana_address=str(solana_keypair.pubkey()),
            solana_secret=key_vault.encrypt(base58.b58encode(bytes(solana_keypair)).decode()),
        )
        return await repo.register_venue_account(
            WALLET_ADDRESS, VENUE_ACCOUNT_ID, key_vault.encrypt(venue_secret)
        )


@pytest_asyncio.fixture
async def unregistered_wallet(session_factory, key_vault, solana_keypair):
    """Wallet with custodial keys but no venue account."""
    async with unit_of_work(session_factory) as session:
        return await LedgerRepository(session).create_wallet(
            wallet_address="addr_test1qunregistered000000000000000000000000",
            cardano_address=CARDANO_ADDRESS,
            cardano_secret=key_vault.encrypt("bb" * 32),
            solana_address=str(solana_keypair.pubkey()),
            solana_secret=key_vault.encrypt(base58.b58encode(bytes(solana_keypair)).decode()),
        )


@pytest.fixture
def exchange() -> FakeExchangeGateway:
    return FakeExchangeGateway()


@pytest.fixture
def cardano() -> FakeCardanoTransactor:
    return FakeCardanoTransactor()


@pytest.fixture
def solana() -> FakeSolanaTransactor:
    return FakeSolanaTransactor()


@pytest.fixture
def venue() -> FakeVenueClient:
    return FakeVenueClient()


@pytest.fixture
def deposits(settings, session_factory, key_vault, exchange, cardano, solana) -> DepositOrchestrator:
    return DepositOrchestrator(settings, session_factory, key_vault, exchange, cardano, solana)


@pytest.fixture
def withdrawals(settings, session_factory, key_vault, exchange, solana, venue) -> WithdrawalOrchestrator:
    return WithdrawalOrchestrator(settings, session_factory, key_vault, exchange, solana, venue)


@pytest.fixture
def scheduler(settings, session_factory, deposits, withdrawals) -> PollingScheduler:
    return PollingScheduler(settings, session_factory, deposits, withdrawals)


@pytest.fixture
def load_tx(session_factory):
    """Read a ledger row in a fresh unit of work."""

    async def _load(tx_id: str):
        async with unit_of_work(session_factory) as session:
            return await LedgerRepository(session).get_transaction(tx_id)

    return _load
