"""SQLAlchemy models for the ledger."""

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional

from sqlalchemy import DateTime, ForeignKey, Index, Numeric, String, Text, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.types import TypeDecorator

from venuebridge.ledger.states import TransactionDirection, TransactionStatus


class Base(DeclarativeBase):
    """Base class for all models."""

    pass


class Chain(str, Enum):
    """Chains a user wallet holds custodial keys for."""

    CARDANO = "ADA"
    SOLANA = "SOL"


@dataclass(frozen=True)
class EncryptedSecret:
    """AES-GCM encrypted secret bundle, all fields hex-encoded."""

    iv: str
    data: str
    tag: str


class Amount(TypeDecorator):
    """Numeric(36, 18) amount, stored as exact decimal text on SQLite.

    SQLite keeps NUMERIC as a binary float, which would break exact
    amount matching against venue history.
    """

    impl = Numeric(36, 18)
    cache_ok = True

    def load_dialect_impl(self, dialect):
        if dialect.name == "sqlite":
            return dialect.type_descriptor(String(64))
        return dialect.type_descriptor(Numeric(36, 18))

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if dialect.name == "sqlite":
            return str(Decimal(value))
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return Decimal(str(value))


def _new_id() -> str:
    return uuid.uuid4().hex


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserWallet(Base):
    """User wallet with derived per-chain custodial keys.

    Owned by the user-management subsystem; the orchestration core only reads
    it, apart from the venue registration fields.
    """

    __tablename__ = "user_wallets"

    wallet_address: Mapped[str] = mapped_column(String(255), primary_key=True)

    # Derived Cardano key (source chain for deposits)
    cardano_address: Mapped[str] = mapped_column(String(255), nullable=False)
    cardano_key_iv: Mapped[str] = mapped_column(String(64), nullable=False)
    cardano_key_data: Mapped[str] = mapped_column(Text, nullable=False)
    cardano_key_tag: Mapped[str] = mapped_column(String(64), nullable=False)

    # Derived Solana key (venue side)
    solana_address: Mapped[str] = mapped_column(String(255), nullable=False)
    solana_key_iv: Mapped[str] = mapped_column(String(64), nullable=False)
    solana_key_data: Mapped[str] = mapped_column(Text, nullable=False)
    solana_key_tag: Mapped[str] = mapped_column(String(64), nullable=False)

    # Trading venue registration (set once by the registration flow)
    venue_account_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    venue_key_iv: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)
    venue_key_data: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    venue_key_tag: Mapped[Optional[str]] = mapped_column(String(64), nullable=True)

    # Auth state
    nonce: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    refresh_token_version: Mapped[int] = mapped_column(default=0)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )

    # Relationships
    transactions: Mapped[list["Transaction"]] = relationship(back_populates="wallet")

    @property
    def is_venue_registered(self) -> bool:
        """Check if the wallet has a venue account and signing key."""
        return bool(self.venue_account_id and self.venue_key_data)

    def chain_secret(self, chain: Chain) -> EncryptedSecret:
        """Get the encrypted secret bundle for a chain."""
        if Chain(chain) == Chain.CARDANO:
            return EncryptedSecret(self.cardano_key_iv, self.cardano_key_data, self.cardano_key_tag)
        return EncryptedSecret(self.solana_key_iv, self.solana_key_data, self.solana_key_tag)

    def venue_secret(self) -> Optional[EncryptedSecret]:
        """Get the encrypted venue signing key, if registered."""
        if not (self.venue_key_iv and self.venue_key_data and self.venue_key_tag):
            return None
        return EncryptedSecret(self.venue_key_iv, self.venue_key_data, self.venue_key_tag)


class Transaction(Base):
    """One logical cross-system swap.

    Status must stay inside the state set of the row's own direction; see
    venuebridge.ledger.states.
    """

    __tablename__ = "transactions"
    __table_args__ = (Index("ix_transactions_status", "status"),)

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    direction: Mapped[TransactionDirection] = mapped_column(String(16), nullable=False)
    status: Mapped[TransactionStatus] = mapped_column(String(32), nullable=False)

    # Exchange gateway order (immutable once written)
    exchange_id: Mapped[Optional[str]] = mapped_column(String(128), nullable=True, index=True)
    flow: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)
    exchange_type: Mapped[Optional[str]] = mapped_column(String(20), nullable=True)

    from_currency: Mapped[str] = mapped_column(String(20), nullable=False)
    to_currency: Mapped[str] = mapped_column(String(20), nullable=False)
    from_network: Mapped[str] = mapped_column(String(20), nullable=False)
    to_network: Mapped[str] = mapped_column(String(20), nullable=False)
    from_amount: Mapped[Decimal] = mapped_column(Amount(), nullable=False)
    to_amount: Mapped[Optional[Decimal]] = mapped_column(Amount(), nullable=True)

    payin_address: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    payout_address: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    user_address: Mapped[str] = mapped_column(
        ForeignKey("user_wallets.wallet_address"), nullable=False, index=True
    )

    # Correlation hashes
    funding_hash: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    venue_tx_id: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    payout_hash: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), onupdate=_utcnow
    )

    # Relationships
    wallet: Mapped["UserWallet"] = relationship(back_populates="transactions")

    def __repr__(self) -> str:
        return (
            f"Transaction(id={self.id!r}, direction={self.direction!r}, "
            f"status={self.status!r})"
        )
