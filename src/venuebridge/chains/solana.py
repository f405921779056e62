"""Solana transfers, vault deposits and message signing.

Secrets are base58-encoded Solana keypairs (64 bytes, or a bare 32-byte seed).
"""

import hashlib
import logging
from dataclasses import dataclass
from typing import Union

import base58
from nacl.signing import SigningKey
from solders.instruction import AccountMeta, Instruction
from solders.keypair import Keypair
from solders.message import Message
from solders.pubkey import Pubkey
from solders.system_program import ID as SYSTEM_PROGRAM_ID
from solders.system_program import TransferParams, transfer
from solders.transaction import Transaction

from venuebridge.chains.base import ChainTransactor, TransferResult
from venuebridge.errors import AdapterError, ValidationError

logger = logging.getLogger(__name__)

# Anchor instruction discriminator: sha256("global:<name>")[:8]
DEPOSIT_SOL_DISCRIMINATOR = hashlib.sha256(b"global:deposit_sol").digest()[:8]

# Seeds of the vault program's allow-list PDAs
BROKER_SEED = b"Broker"
TOKEN_SEED = b"Token"


@dataclass(frozen=True)
class VaultAccounts:
    """Fixed accounts of the venue's Solana vault program."""
    program_id: str
    vault_authority: str
    sol_vault: str
    peer: str
    enforced_options: str
    oapp_config: str


def keccak256(data: bytes) -> bytes:
    from Crypto.Hash import keccak

    k = keccak.new(digest_bits=256)
    k.update(data)
    return k.digest()


def load_keypair(secret: str) -> Keypair:
    """Load a keypair from a base58 secret (64-byte keypair or 32-byte seed)."""
    try:
        raw = base58.b58decode(secret)
    except ValueError as e:
        raise AdapterError("solana", "secret is not valid base58") from e

    if len(raw) not in (32, 64):
        raise AdapterError("solana", f"unexpected secret length {len(raw)}")
    try:
        return Keypair.from_bytes(raw) if len(raw) == 64 else Keypair.from_seed(raw)
    except ValueError as e:
        raise AdapterError("solana", "secret is not a valid keypair") from e


def encode_deposit_sol(
    account_id: bytes,
    broker_hash: bytes,
    token_hash: bytes,
    user_address: bytes,
    token_amount: int,
    native_fee: int = 0,
    lz_token_fee: int = 0,
) -> bytes:
    """Borsh-encode deposit_sol(DepositParams, OAppSendParams)."""
    for name, value in (
        ("account_id", account_id),
        ("broker_hash", broker_hash),
        ("token_hash", token_hash),
        ("user_address", user_address),
    ):
        if len(value) != 32:
            raise ValidationError(f"{name} must be 32 bytes, got {len(value)}")

    data = DEPOSIT_SOL_DISCRIMINATOR
    data += account_id + broker_hash + token_hash + user_address
    data += token_amount.to_bytes(8, "little")
    # OAppSendParams
    data += native_fee.to_bytes(8, "little")
    data += lz_token_fee.to_bytes(8, "little")
    return data


class SolanaTransactor(ChainTransactor):
    """Signs and broadcasts Solana transactions via the async RPC client."""

    def __init__(self, rpc_url: str, vault: VaultAccounts):
        super().__init__("SOL")
        self.rpc_url = rpc_url
        self.vault = vault

    async def _send(self, keypair: Keypair, instructions: list[Instruction]) -> str:
        """Sign instructions with keypair, broadcast and wait for confirmation."""
        from solana.rpc.async_api import AsyncClient
        from solana.rpc.commitment import Confirmed
        from solana.rpc.types import TxOpts

        try:
            async with AsyncClient(self.rpc_url, commitment=Confirmed) as rpc:
                blockhash = (await rpc.get_latest_blockhash()).value.blockhash
                message = Message.new_with_blockhash(instructions, keypair.pubkey(), blockhash)
                tx = Transaction([keypair], message, blockhash)

                result = await rpc.send_transaction(tx, opts=TxOpts(preflight_commitment=Confirmed))
                signature = result.value
                await rpc.confirm_transaction(signature, commitment=Confirmed)
                return str(signature)
        except Exception as e:
            logger.error(f"Solana transaction failed: {type(e).__name__}: {e}")
            raise AdapterError("solana", f"transaction failed: {e}") from e

    async def send_payment(self, secret: str, to_address: str, amount: int) -> TransferResult:
        self._check_amount(amount)
        keypair = load_keypair(secret)
        try:
            recipient = Pubkey.from_string(to_address)
        except ValueError as e:
            raise ValidationError(f"Invalid Solana address: {to_address}") from e

        logger.info(f"Sending {amount} lamports from {keypair.pubkey()} to {to_address}")
        ix = transfer(
            TransferParams(from_pubkey=keypair.pubkey(), to_pubkey=recipient, lamports=amount)
        )
        tx_hash = await self._send(keypair, [ix])

        logger.info(f"Solana transfer broadcast: {tx_hash}")
        return TransferResult(chain=self.chain, tx_hash=tx_hash, amount=amount, to_address=to_address)

    def build_vault_deposit(
        self, user: Pubkey, account_id: str, broker_id: str, token: str, amount: int
    ) -> Instruction:
        """Build the vault program's deposit_sol instruction."""
        try:
            account_bytes = bytes.fromhex(account_id.removeprefix("0x"))
        except ValueError as e:
            raise ValidationError(f"Venue account id is not hex: {account_id}") from e

        broker_hash = keccak256(broker_id.encode("utf-8"))
        token_hash = keccak256(token.encode("utf-8"))
        data = encode_deposit_sol(
            account_id=account_bytes,
            broker_hash=broker_hash,
            token_hash=token_hash,
            user_address=bytes(user),
            token_amount=amount,
        )

        program_id = Pubkey.from_string(self.vault.program_id)
        allowed_broker, _ = Pubkey.find_program_address([BROKER_SEED, broker_hash], program_id)
        allowed_token, _ = Pubkey.find_program_address([TOKEN_SEED, token_hash], program_id)

        accounts = [
            AccountMeta(user, is_signer=True, is_writable=True),
            AccountMeta(Pubkey.from_string(self.vault.vault_authority), is_signer=False, is_writable=True),
            AccountMeta(Pubkey.from_string(self.vault.sol_vault), is_signer=False, is_writable=True),
            AccountMeta(Pubkey.from_string(self.vault.peer), is_signer=False, is_writable=False),
            AccountMeta(Pubkey.from_string(self.vault.enforced_options), is_signer=False, is_writable=False),
            AccountMeta(Pubkey.from_string(self.vault.oapp_config), is_signer=False, is_writable=False),
            AccountMeta(allowed_broker, is_signer=False, is_writable=False),
            AccountMeta(allowed_token, is_signer=False, is_writable=False),
            AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
        ]
        return Instruction(program_id, data, accounts)

    async def submit_vault_deposit(
        self, secret: str, account_id: str, broker_id: str, token: str, amount: int
    ) -> str:
        """Deposit lamports into the venue vault for account_id.

        Returns:
            Transaction signature
        """
        self._check_amount(amount)
        keypair = load_keypair(secret)
        try:
            ix = self.build_vault_deposit(keypair.pubkey(), account_id, broker_id, token, amount)
        except ValidationError:
            raise
        except Exception as e:
            logger.error(f"Building vault deposit failed: {type(e).__name__}: {e}")
            raise AdapterError("solana", f"could not build vault deposit: {e}") from e

        logger.info(f"Depositing {amount} lamports into vault for account {account_id}")
        tx_hash = await self._send(keypair, [ix])
        logger.info(f"Vault deposit confirmed: {tx_hash}")
        return tx_hash

    def sign_message(self, secret: str, message: Union[str, bytes]) -> str:
        """Ed25519-sign a message, returning a base58 signature."""
        keypair = load_keypair(secret)
        seed = bytes(keypair)[:32]
        if isinstance(message, str):
            message = message.encode("utf-8")
        signature = SigningKey(seed).sign(message).signature
        return base58.b58encode(signature).decode()
