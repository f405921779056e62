"""Base interface for chain transactors.

A transactor signs and broadcasts native transfers on one chain with a
decrypted custodial secret. Amounts are always in the chain's smallest unit
(lovelace, lamports).
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from venuebridge.errors import ValidationError


@dataclass
class TransferResult:
    """Result of a broadcast transfer."""
    chain: str
    tx_hash: str
    amount: int            # Smallest unit
    to_address: str


class ChainTransactor(ABC):
    """Abstract base class for per-chain transfer handlers."""

    def __init__(self, chain: str):
        self.chain = chain.upper()

    @abstractmethod
    async def send_payment(self, secret: str, to_address: str, amount: int) -> TransferResult:
        """Sign and broadcast a native transfer.

        Args:
            secret: Decrypted private key material for the sending address
            to_address: Destination address
            amount: Amount in the chain's smallest unit

        Returns:
            TransferResult with the broadcast transaction hash

        Raises:
            AdapterError: If signing, fee estimation or broadcast fails
        """
        pass

    @staticmethod
    def _check_amount(amount: int) -> None:
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValidationError(f"Transfer amount must be a positive integer, got {amount!r}")
