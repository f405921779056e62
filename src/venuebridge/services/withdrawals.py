"""Withdrawal saga: venue -> SOL -> exchange -> ADA.

1. initiate_withdrawal: row at VENUE_WITHDRAW_PENDING, signed withdrawal
   request submitted to the venue
2. poll_confirmation: venue history shows the withdrawal COMPLETED,
   row moves to VENUE_WITHDRAW_CONFIRMED
3. trigger_reverse_exchange: SOL -> ADA order created and funded from the
   wallet's Solana key, row moves to EXCHANGE_CONVERTING
4. DepositOrchestrator.reconcile drives the exchange leg to COMPLETED
"""

import logging
import time
from datetime import datetime, timezone
from typing import Optional

from venuebridge.chains.solana import SolanaTransactor
from venuebridge.config import Settings
from venuebridge.crypto import KeyVault
from venuebridge.errors import AdapterError, ValidationError
from venuebridge.exchange.base import ExchangeGateway, ExchangeRequest
from venuebridge.ledger.database import SessionFactory, unit_of_work
from venuebridge.ledger.models import Chain, Transaction, UserWallet
from venuebridge.ledger.repository import LedgerRepository
from venuebridge.ledger.states import TransactionDirection, TransactionStatus
from venuebridge.units import from_smallest_unit, to_smallest_unit
from venuebridge.venue.client import (
    AssetHistoryEntry,
    OrderlyClient,
    VenueCredentials,
    build_withdraw_message,
)
from venuebridge.venue.signer import serialize_body

logger = logging.getLogger(__name__)

WITHDRAW_SIDE = "WITHDRAW"


def _epoch_ms(value: Optional[datetime]) -> Optional[int]:
    if value is None:
        return None
    if value.tzinfo is None:
        # SQLite hands back naive UTC
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp() * 1000)


class WithdrawalOrchestrator:
    """Drives WITHDRAW rows up to the start of their exchange leg."""

    def __init__(
        self,
        settings: Settings,
        session_factory: SessionFactory,
        key_vault: KeyVault,
        exchange: ExchangeGateway,
        solana: SolanaTransactor,
        venue: OrderlyClient,
    ):
        self.settings = settings
        self.session_factory = session_factory
        self.key_vault = key_vault
        self.exchange = exchange
        self.solana = solana
        self.venue = venue

    def _credentials(self, wallet: UserWallet) -> VenueCredentials:
        venue_secret = wallet.venue_secret()
        if not wallet.is_venue_registered or venue_secret is None:
            raise ValidationError(f"Wallet {wallet.wallet_address} is not registered on the venue")
        return VenueCredentials(
            account_id=wallet.venue_account_id,
            secret=self.key_vault.decrypt(venue_secret),
        )

    async def _load_wallet(self, wallet_address: str) -> UserWallet:
        async with unit_of_work(self.session_factory) as session:
            wallet = await LedgerRepository(session).get_wallet(wallet_address)
        if wallet is None:
            raise ValidationError(f"Unknown wallet: {wallet_address}")
        return wallet

    async def initiate_withdrawal(self, wallet_address: str, amount: int) -> Transaction:
        """Request a SOL withdrawal from the venue to the wallet's Solana address.

        Args:
            wallet_address: User wallet that owns the venue account
            amount: Amount in lamports

        Returns:
            The new ledger row at VENUE_WITHDRAW_PENDING with venue_tx_id set

        Raises:
            ValidationError: Unknown or unregistered wallet, bad amount (no row is written)
            AdapterError: Venue failure; the row is left at VENUE_WITHDRAW_PENDING
        """
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValidationError(f"Withdrawal amount must be a positive lamport integer, got {amount!r}")

        wallet = await self._load_wallet(wallet_address)
        credentials = self._credentials(wallet)

        sol_amount = from_smallest_unit(amount, Chain.SOLANA.value)
        async with unit_of_work(self.session_factory) as session:
            tx = await LedgerRepository(session).create_transaction(
                direction=TransactionDirection.WITHDRAW,
                user_address=wallet_address,
                from_currency="sol",
                to_currency="sol",
                from_network="sol",
                to_network="sol",
                from_amount=sol_amount,
                to_amount=sol_amount,
                payout_address=wallet_address,
            )
            tx_id = tx.id

        nonce = await self.venue.get_withdraw_nonce(credentials)
        message = build_withdraw_message(
            broker_id=self.settings.venue_broker_id,
            chain_id=self.settings.venue_chain_id,
            receiver=wallet.solana_address,
            token=self.settings.venue_token,
            amount=amount,
            withdraw_nonce=nonce,
            timestamp_ms=int(time.time() * 1000),
        )
        solana_secret = self.key_vault.decrypt(wallet.chain_secret(Chain.SOLANA))
        signature = self.solana.sign_message(solana_secret, serialize_body(message))

        withdraw_id = await self.venue.submit_withdrawal(
            credentials, message, signature, wallet.solana_address
        )

        async with unit_of_work(self.session_factory) as session:
            repo = LedgerRepository(session)
            updated = await repo.record(
                tx_id, TransactionStatus.VENUE_WITHDRAW_PENDING, venue_tx_id=withdraw_id
            )
            if updated is None:
                updated = await repo.get_transaction(tx_id)

        logger.info(f"Withdrawal {tx_id}: {amount} lamports requested as venue withdrawal {withdraw_id}")
        return updated

    async def poll_confirmation(self, tx: Transaction) -> Optional[Transaction]:
        """Check venue history for the withdrawal and start the reverse exchange.

        Adapter errors are logged and leave the row unchanged for the next sweep.
        """
        if tx.direction != TransactionDirection.WITHDRAW or tx.status != TransactionStatus.VENUE_WITHDRAW_PENDING:
            return None

        try:
            wallet = await self._load_wallet(tx.user_address)
            credentials = self._credentials(wallet)
            entries = await self.venue.get_asset_history(
                credentials, token=self.settings.venue_token, side=WITHDRAW_SIDE
            )
        except (AdapterError, ValidationError) as e:
            logger.warning(f"Venue history check failed for {tx.id}: {e}")
            return None

        async with unit_of_work(self.session_factory) as session:
            claimed = await LedgerRepository(session).get_claimed_venue_tx_ids(tx.id)

        match = self._find_completed(tx, entries, claimed)
        if match is None:
            logger.debug(f"Withdrawal {tx.id} not completed on the venue yet")
            return None

        async with unit_of_work(self.session_factory) as session:
            confirmed = await LedgerRepository(session).transition(
                tx.id,
                TransactionStatus.VENUE_WITHDRAW_PENDING,
                TransactionStatus.VENUE_WITHDRAW_CONFIRMED,
            )
        if confirmed is None:
            return None

        logger.info(f"Withdrawal {tx.id} confirmed by venue history entry {match.id}")
        return await self.trigger_reverse_exchange(tx.id)

    @staticmethod
    def _find_completed(
        tx: Transaction, entries: list[AssetHistoryEntry], claimed: set[str]
    ) -> Optional[AssetHistoryEntry]:
        """Pick the COMPLETED history entry for tx.

        The join key is amount equality; an entry carrying the row's own
        withdrawal id wins when the venue reports one. Entries whose id
        belongs to another ledger row, or created before this row, never match.
        """
        created_ms = _epoch_ms(tx.created_at)
        candidates = [
            e
            for e in entries
            if e.is_completed
            and e.amount == tx.from_amount
            and e.id not in claimed
            and not (e.created_time is not None and created_ms is not None and e.created_time < created_ms)
        ]
        if tx.venue_tx_id:
            for entry in candidates:
                if entry.id == tx.venue_tx_id:
                    return entry
        return candidates[0] if candidates else None

    async def trigger_reverse_exchange(self, tx_id: str) -> Optional[Transaction]:
        """Open the SOL -> ADA order for a confirmed withdrawal and fund it.

        No-op unless the row is a WITHDRAW at exactly VENUE_WITHDRAW_CONFIRMED.
        A failed order creation leaves the row for the next sweep; a failed
        funding transfer sets it to FAILED.
        """
        async with unit_of_work(self.session_factory) as session:
            repo = LedgerRepository(session)
            tx = await repo.get_transaction(tx_id)
            if (
                tx is None
                or tx.direction != TransactionDirection.WITHDRAW
                or tx.status != TransactionStatus.VENUE_WITHDRAW_CONFIRMED
            ):
                return None
            wallet = await repo.get_wallet(tx.user_address)
            if wallet is None:
                raise ValidationError(f"Unknown wallet: {tx.user_address}")

        try:
            order = await self.exchange.create_exchange(
                ExchangeRequest(
                    from_currency=self.settings.deposit_to_currency,
                    to_currency=self.settings.deposit_from_currency,
                    from_network=self.settings.deposit_to_network,
                    to_network=self.settings.deposit_from_network,
                    from_amount=tx.from_amount,
                    address=wallet.wallet_address,
                    refund_address=wallet.solana_address,
                    flow=self.settings.exchange_flow,
                    type=self.settings.exchange_type,
                )
            )
        except AdapterError as e:
            logger.warning(f"Reverse exchange for {tx_id} not created, will retry: {e}")
            return None

        async with unit_of_work(self.session_factory) as session:
            converting = await LedgerRepository(session).transition(
                tx_id,
                TransactionStatus.VENUE_WITHDRAW_CONFIRMED,
                TransactionStatus.EXCHANGE_CONVERTING,
                exchange_id=order.id,
                to_currency=order.to_currency,
                to_network=order.to_network,
                payin_address=order.payin_address,
                payout_address=order.payout_address,
                flow=order.flow,
                exchange_type=order.type,
            )
        if converting is None:
            logger.warning(f"Exchange {order.id} left unfunded: {tx_id} was moved by another writer")
            return None

        try:
            lamports = to_smallest_unit(order.from_amount, Chain.SOLANA.value)
            secret = self.key_vault.decrypt(wallet.chain_secret(Chain.SOLANA))
            result = await self.solana.send_payment(secret, order.payin_address, lamports)
        except (AdapterError, ValidationError) as e:
            logger.error(f"Funding reverse exchange {order.id} for {tx_id} failed: {e}")
            async with unit_of_work(self.session_factory) as session:
                return await LedgerRepository(session).mark_failed(tx_id, f"funding failed: {e}")

        async with unit_of_work(self.session_factory) as session:
            funded = await LedgerRepository(session).record(
                tx_id, TransactionStatus.EXCHANGE_CONVERTING, funding_hash=result.tx_hash
            )

        logger.info(f"Withdrawal {tx_id}: funded reverse exchange {order.id} with {lamports} lamports")
        return funded or converting
