"""Deposit saga: ADA -> exchange -> SOL -> venue vault.

Also owns ``reconcile``, the exchange-leg driver shared by both directions.
Every status write is its own unit of work, so a status recorded before an
external submission is durable before the submission starts.
"""

import logging
from decimal import Decimal
from typing import Optional

from venuebridge.chains.cardano import CardanoTransactor
from venuebridge.chains.solana import SolanaTransactor
from venuebridge.config import Settings
from venuebridge.crypto import KeyVault
from venuebridge.errors import AdapterError, ValidationError
from venuebridge.exchange.base import ExchangeGateway, ExchangeRequest, ExchangeState
from venuebridge.ledger.database import SessionFactory, unit_of_work
from venuebridge.ledger.models import Chain, Transaction
from venuebridge.ledger.repository import LedgerRepository
from venuebridge.ledger.states import (
    EXCHANGE_IN_FLIGHT,
    TransactionDirection,
    TransactionStatus,
)
from venuebridge.units import Number, to_decimal, to_smallest_unit

logger = logging.getLogger(__name__)


class DepositOrchestrator:
    """Drives DEPOSIT rows and the exchange leg of every row."""

    def __init__(
        self,
        settings: Settings,
        session_factory: SessionFactory,
        key_vault: KeyVault,
        exchange: ExchangeGateway,
        cardano: CardanoTransactor,
        solana: SolanaTransactor,
    ):
        self.settings = settings
        self.session_factory = session_factory
        self.key_vault = key_vault
        self.exchange = exchange
        self.cardano = cardano
        self.solana = solana

    async def create_deposit(
        self,
        wallet_address: str,
        from_amount: Number,
        payout_address: Optional[str] = None,
        refund_address: Optional[str] = None,
    ) -> Transaction:
        """Open an ADA -> SOL exchange order and fund it from the wallet's Cardano key.

        Args:
            wallet_address: User wallet that owns the custodial keys
            from_amount: ADA amount to convert
            payout_address: SOL payout address, defaults to the wallet's Solana address
            refund_address: ADA refund address, defaults to the wallet's Cardano address

        Returns:
            The new ledger row, EXCHANGE_CONVERTING once funding is broadcast

        Raises:
            ValidationError: Unknown wallet or non-positive amount (no row is written)
            AdapterError: Gateway or Cardano failure. If funding fails the row
                stays at EXCHANGE_CREATED.
        """
        amount = to_decimal(from_amount)
        if amount <= 0:
            raise ValidationError(f"Deposit amount must be positive, got {amount}")
        if to_smallest_unit(amount, Chain.CARDANO.value) <= 0:
            raise ValidationError(f"Deposit amount {amount} is below one lovelace")

        async with unit_of_work(self.session_factory) as session:
            wallet = await LedgerRepository(session).get_wallet(wallet_address)
            if wallet is None:
                raise ValidationError(f"Unknown wallet: {wallet_address}")
            cardano_secret = wallet.chain_secret(Chain.CARDANO)
            payout_address = payout_address or wallet.solana_address
            refund_address = refund_address or wallet.cardano_address

        order = await self.exchange.create_exchange(
            ExchangeRequest(
                from_currency=self.settings.deposit_from_currency,
                to_currency=self.settings.deposit_to_currency,
                from_network=self.settings.deposit_from_network,
                to_network=self.settings.deposit_to_network,
                from_amount=amount,
                address=payout_address,
                refund_address=refund_address,
                flow=self.settings.exchange_flow,
                type=self.settings.exchange_type,
            )
        )

        async with unit_of_work(self.session_factory) as session:
            tx = await LedgerRepository(session).create_transaction(
                direction=TransactionDirection.DEPOSIT,
                user_address=wallet_address,
                from_currency=order.from_currency,
                to_currency=order.to_currency,
                from_network=order.from_network,
                to_network=order.to_network,
                from_amount=order.from_amount,
                exchange_id=order.id,
                payin_address=order.payin_address,
                payout_address=order.payout_address,
                flow=order.flow,
                exchange_type=order.type,
            )
            tx_id = tx.id

        lovelace = to_smallest_unit(order.from_amount, Chain.CARDANO.value)
        try:
            secret = self.key_vault.decrypt(cardano_secret)
            result = await self.cardano.send_payment(secret, order.payin_address, lovelace)
        except AdapterError as e:
            logger.error(f"Funding exchange {order.id} for {tx_id} failed: {e}")
            raise

        async with unit_of_work(self.session_factory) as session:
            repo = LedgerRepository(session)
            updated = await repo.transition(
                tx_id,
                TransactionStatus.EXCHANGE_CREATED,
                TransactionStatus.EXCHANGE_CONVERTING,
                funding_hash=result.tx_hash,
            )
            if updated is None:
                # A sweep already moved the row on; keep the funding hash anyway
                current = await repo.get_transaction(tx_id)
                updated = await repo.record(tx_id, current.status, funding_hash=result.tx_hash) or current

        logger.info(f"Deposit {tx_id}: funded exchange {order.id} with {lovelace} lovelace")
        return updated

    async def reconcile(self, tx: Transaction) -> Optional[Transaction]:
        """Advance a row from the gateway's view of its exchange order.

        Safe to call repeatedly: every write is gated on the row still being
        in the status it was read with. Adapter and validation failures set
        the row to FAILED.
        """
        if tx.status not in EXCHANGE_IN_FLIGHT:
            logger.debug(f"Not reconciling {tx.id}: status {tx.status}")
            return None

        try:
            if not tx.exchange_id:
                raise ValidationError(f"Transaction {tx.id} has no exchange order")

            status = await self.exchange.get_status(tx.exchange_id)

            if status.state == ExchangeState.CONVERTING:
                if tx.status != TransactionStatus.EXCHANGE_CREATED:
                    return None
                return await self._transition(
                    tx.id, TransactionStatus.EXCHANGE_CREATED, TransactionStatus.EXCHANGE_CONVERTING
                )

            if status.state == ExchangeState.FINISHED:
                return await self._on_finished(tx, status.to_amount, status.payout_hash)

            if status.state.is_failure:
                logger.warning(f"Exchange {tx.exchange_id} for {tx.id} ended as {status.raw_status}")
                return await self._mark_failed(tx.id, f"exchange {status.raw_status}")

            logger.debug(f"Exchange {tx.exchange_id} for {tx.id} still {status.raw_status or 'new'}")
            return None

        except (AdapterError, ValidationError) as e:
            logger.error(f"Reconcile failed for {tx.id}: {e}")
            return await self._mark_failed(tx.id, str(e))

    async def _on_finished(
        self, tx: Transaction, to_amount: Optional[Decimal], payout_hash: Optional[str]
    ) -> Optional[Transaction]:
        if to_amount is None or to_amount <= 0:
            raise AdapterError(self.exchange.name, f"order {tx.exchange_id} finished without an amount")

        completed = await self._transition(
            tx.id,
            tx.status,
            TransactionStatus.EXCHANGE_COMPLETED,
            to_amount=to_amount,
            payout_hash=payout_hash,
        )
        if completed is None:
            return None

        if completed.direction == TransactionDirection.WITHDRAW:
            return await self._transition(
                tx.id, TransactionStatus.EXCHANGE_COMPLETED, TransactionStatus.COMPLETED
            )

        lamports = to_smallest_unit(to_amount, Chain.SOLANA.value)
        await self.deposit_into_venue(tx.user_address, lamports, tx.id)
        return await self.get_transaction(tx.id)

    async def deposit_into_venue(self, wallet_address: str, amount: int, tx_id: str) -> Optional[str]:
        """Deposit lamports from the wallet's Solana key into its venue account.

        VENUE_DEPOSIT_PENDING is committed before the vault transaction is
        submitted; a row that is no longer EXCHANGE_COMPLETED is not submitted.

        Returns:
            The vault deposit transaction hash, or None if the row had moved on
        """
        async with unit_of_work(self.session_factory) as session:
            wallet = await LedgerRepository(session).get_wallet(wallet_address)
            if wallet is None:
                raise ValidationError(f"Unknown wallet: {wallet_address}")
            if not wallet.venue_account_id:
                raise ValidationError(f"Wallet {wallet_address} is not registered on the venue")
            account_id = wallet.venue_account_id
            solana_secret = wallet.chain_secret(Chain.SOLANA)

        secret = self.key_vault.decrypt(solana_secret)

        pending = await self._transition(
            tx_id, TransactionStatus.EXCHANGE_COMPLETED, TransactionStatus.VENUE_DEPOSIT_PENDING
        )
        if pending is None:
            logger.warning(f"Skipping venue deposit for {tx_id}: row is no longer EXCHANGE_COMPLETED")
            return None

        tx_hash = await self.solana.submit_vault_deposit(
            secret,
            account_id=account_id,
            broker_id=self.settings.venue_broker_id,
            token=self.settings.venue_token,
            amount=amount,
        )

        await self._transition(
            tx_id,
            TransactionStatus.VENUE_DEPOSIT_PENDING,
            TransactionStatus.VENUE_DEPOSIT_CONFIRMED,
            venue_tx_id=tx_hash,
        )
        logger.info(f"Deposit {tx_id}: {amount} lamports in venue account {account_id}")
        return tx_hash

    async def get_min_amount(
        self,
        from_currency: Optional[str] = None,
        to_currency: Optional[str] = None,
        from_network: Optional[str] = None,
        to_network: Optional[str] = None,
        flow: Optional[str] = None,
    ) -> Decimal:
        """Minimum pay-in for a pair, defaulting to the configured deposit pair."""
        return await self.exchange.get_min_amount(
            from_currency or self.settings.deposit_from_currency,
            to_currency or self.settings.deposit_to_currency,
            from_network or self.settings.deposit_from_network,
            to_network or self.settings.deposit_to_network,
            flow or self.settings.exchange_flow,
        )

    async def get_transaction(self, tx_id: str) -> Optional[Transaction]:
        async with unit_of_work(self.session_factory) as session:
            return await LedgerRepository(session).get_transaction(tx_id)

    async def get_wallet_transactions(
        self, wallet_address: str, limit: int = 20, offset: int = 0
    ) -> list[Transaction]:
        async with unit_of_work(self.session_factory) as session:
            return await LedgerRepository(session).get_wallet_transactions(
                wallet_address, limit=limit, offset=offset
            )

    async def _transition(self, tx_id: str, expected, target, **fields) -> Optional[Transaction]:
        async with unit_of_work(self.session_factory) as session:
            return await LedgerRepository(session).transition(tx_id, expected, target, **fields)

    async def _mark_failed(self, tx_id: str, reason: str) -> Optional[Transaction]:
        async with unit_of_work(self.session_factory) as session:
            return await LedgerRepository(session).mark_failed(tx_id, reason)
