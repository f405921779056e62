"""Chain transactors for the custodial Cardano and Solana keys."""

from venuebridge.chains.base import ChainTransactor, TransferResult
from venuebridge.chains.cardano import CardanoTransactor
from venuebridge.chains.solana import SolanaTransactor, VaultAccounts

__all__ = [
    "ChainTransactor",
    "TransferResult",
    "CardanoTransactor",
    "SolanaTransactor",
    "VaultAccounts",
]
