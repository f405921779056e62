"""Cardano transfers through pycardano and Blockfrost."""

import asyncio
import logging

from venuebridge.chains.base import ChainTransactor, TransferResult
from venuebridge.errors import AdapterError

logger = logging.getLogger(__name__)


class CardanoTransactor(ChainTransactor):
    """Sends ADA from a derived custodial address.

    The secret is the hex-encoded 32-byte payment signing key. Coin selection,
    fee and change are handled by pycardano's TransactionBuilder; the Blockfrost
    client is synchronous, so build and submit run in the default executor.
    """

    def __init__(
        self,
        blockfrost_api_key: str,
        blockfrost_api_url: str = "https://cardano-preprod.blockfrost.io/api",
        testnet: bool = True,
        context=None,
    ):
        super().__init__("ADA")
        self.blockfrost_api_key = blockfrost_api_key
        self.blockfrost_api_url = blockfrost_api_url
        self.testnet = testnet
        self._context = context

    def _get_context(self):
        if self._context is None:
            if not self.blockfrost_api_key:
                raise AdapterError("cardano", "BLOCKFROST_API_KEY required for Cardano transfers")
            from pycardano import BlockFrostChainContext

            self._context = BlockFrostChainContext(
                project_id=self.blockfrost_api_key,
                base_url=self.blockfrost_api_url,
            )
        return self._context

    def _build_and_submit(self, secret: str, to_address: str, amount: int) -> str:
        context = self._get_context()

        from pycardano import (
            Address,
            Network,
            PaymentSigningKey,
            PaymentVerificationKey,
            TransactionBuilder,
            TransactionOutput,
        )

        signing_key = PaymentSigningKey.from_primitive(bytes.fromhex(secret))
        verification_key = PaymentVerificationKey.from_signing_key(signing_key)
        network = Network.TESTNET if self.testnet else Network.MAINNET
        from_address = Address(verification_key.hash(), network=network)

        builder = TransactionBuilder(context)
        builder.add_input_address(from_address)
        builder.add_output(TransactionOutput(Address.from_primitive(to_address), amount))

        signed_tx = builder.build_and_sign([signing_key], change_address=from_address)
        context.submit_tx(signed_tx)
        return str(signed_tx.id)

    async def send_payment(self, secret: str, to_address: str, amount: int) -> TransferResult:
        self._check_amount(amount)
        logger.info(f"Sending {amount} lovelace to {to_address}")

        loop = asyncio.get_running_loop()
        try:
            tx_hash = await loop.run_in_executor(
                None, self._build_and_submit, secret, to_address, amount
            )
        except AdapterError:
            raise
        except Exception as e:
            logger.error(f"Cardano transfer to {to_address} failed: {type(e).__name__}: {e}")
            raise AdapterError("cardano", f"transfer failed: {e}") from e

        logger.info(f"Cardano transfer broadcast: {tx_hash}")
        return TransferResult(chain=self.chain, tx_hash=tx_hash, amount=amount, to_address=to_address)

