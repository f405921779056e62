"""Factory wiring adapters and orchestrators from settings."""

from dataclasses import dataclass
from typing import Optional

from venuebridge.chains.cardano import CardanoTransactor
from venuebridge.chains.solana import SolanaTransactor, VaultAccounts
from venuebridge.config import Settings
from venuebridge.crypto import KeyVault
from venuebridge.exchange.base import ExchangeGateway
from venuebridge.exchange.changenow import ChangeNowGateway
from venuebridge.ledger.database import SessionFactory, get_session_factory
from venuebridge.services.deposits import DepositOrchestrator
from venuebridge.services.scheduler import PollingScheduler
from venuebridge.services.withdrawals import WithdrawalOrchestrator
from venuebridge.venue.client import OrderlyClient


@dataclass
class Services:
    """Everything the API and the scheduler need, built once at startup."""

    settings: Settings
    session_factory: SessionFactory
    deposits: DepositOrchestrator
    withdrawals: WithdrawalOrchestrator
    scheduler: PollingScheduler
    exchange: Optional[ExchangeGateway] = None
    venue: Optional[OrderlyClient] = None

    async def aclose(self) -> None:
        """Close outbound HTTP clients."""
        for client in (self.exchange, self.venue):
            close = getattr(client, "close", None)
            if close is not None:
                await close()


def build_services(settings: Settings, session_factory: Optional[SessionFactory] = None) -> Services:
    """Build the production adapter and orchestrator graph."""
    session_factory = session_factory or get_session_factory(settings)
    key_vault = KeyVault(settings.encryption_key or "")

    exchange = ChangeNowGateway(
        api_key=settings.changenow_api_key,
        base_url=settings.changenow_api_url,
        timeout=settings.http_timeout,
    )
    cardano = CardanoTransactor(
        blockfrost_api_key=settings.blockfrost_api_key,
        blockfrost_api_url=settings.blockfrost_api_url,
        testnet=not settings.is_production,
    )
    solana = SolanaTransactor(
        rpc_url=settings.solana_rpc_url,
        vault=VaultAccounts(
            program_id=settings.vault_program_id,
            vault_authority=settings.vault_authority,
            sol_vault=settings.vault_sol_vault,
            peer=settings.vault_peer,
            enforced_options=settings.vault_enforced_options,
            oapp_config=settings.vault_oapp_config,
        ),
    )
    venue = OrderlyClient(
        base_url=settings.venue_base_url,
        verifying_contract=settings.venue_ledger_address,
        timeout=settings.http_timeout,
    )

    deposits = DepositOrchestrator(settings, session_factory, key_vault, exchange, cardano, solana)
    withdrawals = WithdrawalOrchestrator(settings, session_factory, key_vault, exchange, solana, venue)
    scheduler = PollingScheduler(settings, session_factory, deposits, withdrawals)

    return Services(
        settings=settings,
        session_factory=session_factory,
        deposits=deposits,
        withdrawals=withdrawals,
        scheduler=scheduler,
        exchange=exchange,
        venue=venue,
    )
