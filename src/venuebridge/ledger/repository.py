"""Repository for ledger operations.

``transition`` is the single point where a row's status changes. It re-reads
the row, returns ``None`` when the row has already moved away from the
expected prior state, and validates the edge against the direction's
transition table.
"""

import logging
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, Iterable, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from venuebridge.errors import LedgerIntegrityError
from venuebridge.ledger.models import EncryptedSecret, Transaction, UserWallet
from venuebridge.ledger.states import (
    INITIAL_STATUS,
    TransactionDirection,
    TransactionStatus,
    is_terminal,
    is_valid_status,
    validate_transition,
)

logger = logging.getLogger(__name__)

# Columns an orchestrator may write alongside a status change
MUTABLE_FIELDS = frozenset({
    "exchange_id",
    "flow",
    "exchange_type",
    "from_currency",
    "to_currency",
    "from_network",
    "to_network",
    "from_amount",
    "to_amount",
    "payin_address",
    "payout_address",
    "funding_hash",
    "venue_tx_id",
    "payout_hash",
    "error_message",
})


class LedgerRepository:
    """Repository for all ledger-related database operations."""

    def __init__(self, session: AsyncSession):
        self.session = session

    # Wallet operations
    async def get_wallet(self, wallet_address: str) -> Optional[UserWallet]:
        """Get a user wallet by its address."""
        stmt = select(UserWallet).where(UserWallet.wallet_address == wallet_address)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def create_wallet(
        self,
        wallet_address: str,
        cardano_address: str,
        cardano_secret: EncryptedSecret,
        solana_address: str,
        solana_secret: EncryptedSecret,
        nonce: Optional[str] = None,
    ) -> UserWallet:
        """Create a wallet record (normally done by the user-management service)."""
        wallet = UserWallet(
            wallet_address=wallet_address,
            cardano_address=cardano_address,
            cardano_key_iv=cardano_secret.iv,
            cardano_key_data=cardano_secret.data,
            cardano_key_tag=cardano_secret.tag,
            solana_address=solana_address,
            solana_key_iv=solana_secret.iv,
            solana_key_data=solana_secret.data,
            solana_key_tag=solana_secret.tag,
            nonce=nonce,
        )
        self.session.add(wallet)
        await self.session.flush()
        return wallet

    async def register_venue_account(
        self, wallet_address: str, account_id: str, venue_secret: EncryptedSecret
    ) -> UserWallet:
        """Store the venue account id and signing key. Written once."""
        wallet = await self.get_wallet(wallet_address)
        if wallet is None:
            raise LedgerIntegrityError(f"Wallet {wallet_address} not found")
        if wallet.venue_account_id and wallet.venue_account_id != account_id:
            raise LedgerIntegrityError(
                f"Wallet {wallet_address} already registered as {wallet.venue_account_id}"
            )

        wallet.venue_account_id = account_id
        wallet.venue_key_iv = venue_secret.iv
        wallet.venue_key_data = venue_secret.data
        wallet.venue_key_tag = venue_secret.tag
        await self.session.flush()
        return wallet

    # Transaction operations
    async def create_transaction(
        self,
        direction: TransactionDirection,
        user_address: str,
        from_currency: str,
        to_currency: str,
        from_network: str,
        to_network: str,
        from_amount: Decimal,
        status: Optional[TransactionStatus] = None,
        **fields: Any,
    ) -> Transaction:
        """Create a new ledger row in the direction's initial status."""
        direction = TransactionDirection(direction)
        status = TransactionStatus(status or INITIAL_STATUS[direction])
        if not is_valid_status(direction, status):
            raise LedgerIntegrityError(f"{status.value} is not a {direction.value} status")
        self._check_fields(fields)

        tx = Transaction(
            direction=direction.value,
            status=status.value,
            user_address=user_address,
            from_currency=from_currency,
            to_currency=to_currency,
            from_network=from_network,
            to_network=to_network,
            from_amount=from_amount,
            **fields,
        )
        self.session.add(tx)
        await self.session.flush()
        logger.info(f"Created {direction.value} transaction {tx.id} ({status.value})")
        return tx

    async def get_transaction(self, tx_id: str) -> Optional[Transaction]:
        """Get a transaction by ID."""
        stmt = select(Transaction).where(Transaction.id == tx_id)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get_wallet_transactions(
        self, wallet_address: str, limit: int = 20, offset: int = 0
    ) -> list[Transaction]:
        """Get transaction history for a wallet, newest first."""
        stmt = (
            select(Transaction)
            .where(Transaction.user_address == wallet_address)
            .order_by(Transaction.created_at.desc(), Transaction.id)
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_transactions_by_status(
        self,
        statuses: Iterable[TransactionStatus],
        direction: Optional[TransactionDirection] = None,
    ) -> list[Transaction]:
        """Get rows whose status is in statuses, oldest first."""
        values = [TransactionStatus(s).value for s in statuses]
        stmt = select(Transaction).where(Transaction.status.in_(values))
        if direction is not None:
            stmt = stmt.where(Transaction.direction == TransactionDirection(direction).value)
        stmt = stmt.order_by(Transaction.created_at, Transaction.id)
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def get_claimed_venue_tx_ids(self, exclude_tx_id: str) -> set[str]:
        """Venue withdrawal ids already recorded on WITHDRAW rows other than exclude_tx_id."""
        stmt = select(Transaction.venue_tx_id).where(
            Transaction.direction == TransactionDirection.WITHDRAW.value,
            Transaction.venue_tx_id.is_not(None),
            Transaction.id != exclude_tx_id,
        )
        result = await self.session.execute(stmt)
        return set(result.scalars().all())

    async def get_stranded_transactions(
        self,
        statuses: Iterable[TransactionStatus],
        older_than: timedelta,
    ) -> list[Transaction]:
        """Get rows stuck in statuses for longer than older_than."""
        cutoff = datetime.now(timezone.utc) - older_than
        values = [TransactionStatus(s).value for s in statuses]
        stmt = (
            select(Transaction)
            .where(Transaction.status.in_(values), Transaction.updated_at < cutoff)
            .order_by(Transaction.updated_at)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def transition(
        self,
        tx_id: str,
        expected: TransactionStatus,
        target: TransactionStatus,
        **fields: Any,
    ) -> Optional[Transaction]:
        """Move a row from expected to target, writing fields alongside.

        Returns None without writing when the row is no longer in expected.
        Raises IllegalTransitionError when expected -> target is not an edge
        of the row's direction.
        """
        tx = await self.get_transaction(tx_id)
        if tx is None:
            raise LedgerIntegrityError(f"Transaction {tx_id} not found")

        expected = TransactionStatus(expected)
        target = TransactionStatus(target)
        if tx.status != expected.value:
            logger.debug(
                f"Skipping {expected.value} -> {target.value} for {tx_id}: "
                f"row is already {tx.status}"
            )
            return None

        validate_transition(tx.direction, expected, target)
        self._apply_fields(tx, fields)
        tx.status = target.value
        await self.session.flush()

        logger.info(f"Transaction {tx_id}: {expected.value} -> {target.value}")
        return tx

    async def mark_failed(self, tx_id: str, reason: str) -> Optional[Transaction]:
        """Move a row to FAILED from whatever non-terminal status it is in."""
        tx = await self.get_transaction(tx_id)
        if tx is None:
            raise LedgerIntegrityError(f"Transaction {tx_id} not found")
        if is_terminal(tx.status):
            logger.debug(f"Not failing {tx_id}: already terminal ({tx.status})")
            return None

        return await self.transition(
            tx_id, tx.status, TransactionStatus.FAILED, error_message=reason[:2000]
        )

    async def record(
        self, tx_id: str, expected: TransactionStatus, **fields: Any
    ) -> Optional[Transaction]:
        """Write fields without a status change, if the row is still in expected."""
        tx = await self.get_transaction(tx_id)
        if tx is None:
            raise LedgerIntegrityError(f"Transaction {tx_id} not found")
        if tx.status != TransactionStatus(expected).value:
            return None

        self._apply_fields(tx, fields)
        await self.session.flush()
        return tx

    def _check_fields(self, fields: dict) -> None:
        unknown = set(fields) - MUTABLE_FIELDS
        if unknown:
            raise LedgerIntegrityError(f"Unknown transaction fields: {sorted(unknown)}")

    def _apply_fields(self, tx: Transaction, fields: dict) -> None:
        """Assign fields, enforcing exchange_id immutability."""
        self._check_fields(fields)

        exchange_id = fields.get("exchange_id")
        if exchange_id is not None and tx.exchange_id and tx.exchange_id != exchange_id:
            raise LedgerIntegrityError(
                f"exchange_id of {tx.id} is immutable ({tx.exchange_id} != {exchange_id})"
            )

        for name, value in fields.items():
            setattr(tx, name, value)
