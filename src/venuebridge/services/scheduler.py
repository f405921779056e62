"""Recurring reconciliation sweeps.

Two independent loops:
- exchange sweep: rows at EXCHANGE_CREATED / EXCHANGE_CONVERTING (both
  directions) go through DepositOrchestrator.reconcile
- withdrawal sweep: WITHDRAW rows at VENUE_WITHDRAW_PENDING go through
  poll_confirmation, rows stuck at VENUE_WITHDRAW_CONFIRMED are retried
  through trigger_reverse_exchange

Rows are handled one at a time. Only one scheduler may run against a ledger.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

from venuebridge.config import Settings
from venuebridge.ledger.database import SessionFactory, unit_of_work
from venuebridge.ledger.models import Transaction
from venuebridge.ledger.repository import LedgerRepository
from venuebridge.ledger.states import (
    EXCHANGE_IN_FLIGHT,
    WITHDRAWAL_IN_FLIGHT,
    TransactionDirection,
    TransactionStatus,
)
from venuebridge.services.deposits import DepositOrchestrator
from venuebridge.services.withdrawals import WithdrawalOrchestrator

logger = logging.getLogger(__name__)


class PollingScheduler:
    """Runs the exchange and withdrawal sweeps on their own intervals."""

    def __init__(
        self,
        settings: Settings,
        session_factory: SessionFactory,
        deposits: DepositOrchestrator,
        withdrawals: WithdrawalOrchestrator,
    ):
        self.settings = settings
        self.session_factory = session_factory
        self.deposits = deposits
        self.withdrawals = withdrawals
        self._tasks: list[asyncio.Task] = []

    @property
    def is_running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    async def _load(
        self, statuses, direction: Optional[TransactionDirection] = None
    ) -> list[Transaction]:
        async with unit_of_work(self.session_factory) as session:
            return await LedgerRepository(session).get_transactions_by_status(statuses, direction)

    async def reconcile_all(self) -> int:
        """Run one exchange sweep. Returns the number of rows processed."""
        rows = await self._load(EXCHANGE_IN_FLIGHT)
        if not rows:
            logger.debug("No exchange legs in flight")
            return 0

        logger.info(f"Reconciling {len(rows)} exchange leg(s)")
        for tx in rows:
            try:
                await self.deposits.reconcile(tx)
            except Exception:
                logger.exception(f"Reconcile crashed for {tx.id}")
        return len(rows)

    async def poll_all_withdrawals(self) -> int:
        """Run one venue-withdrawal sweep. Returns the number of rows processed."""
        rows = await self._load(WITHDRAWAL_IN_FLIGHT, TransactionDirection.WITHDRAW)
        if not rows:
            logger.debug("No venue withdrawals in flight")
            return 0

        logger.info(f"Polling {len(rows)} venue withdrawal(s)")
        for tx in rows:
            try:
                if tx.status == TransactionStatus.VENUE_WITHDRAW_PENDING:
                    await self.withdrawals.poll_confirmation(tx)
                else:
                    await self.withdrawals.trigger_reverse_exchange(tx.id)
            except Exception:
                logger.exception(f"Withdrawal poll crashed for {tx.id}")
        return len(rows)

    async def _loop(self, name: str, sweep: Callable[[], Awaitable[int]], interval: int) -> None:
        logger.info(f"Starting {name} sweep (interval: {interval}s)")
        while True:
            try:
                await sweep()
            except Exception:
                logger.exception(f"{name} sweep failed")
            await asyncio.sleep(interval)

    async def run(self) -> None:
        """Start both sweeps and wait until they are stopped."""
        if self.is_running:
            raise RuntimeError("Scheduler is already running")

        self._tasks = [
            asyncio.create_task(
                self._loop("exchange", self.reconcile_all, self.settings.exchange_poll_interval),
                name="exchange-sweep",
            ),
            asyncio.create_task(
                self._loop(
                    "withdrawal", self.poll_all_withdrawals, self.settings.withdrawal_poll_interval
                ),
                name="withdrawal-sweep",
            ),
        ]
        try:
            await asyncio.gather(*self._tasks)
        except asyncio.CancelledError:
            logger.info("Scheduler stopped")

    async def stop(self) -> None:
        """Cancel both sweeps."""
        for task in self._tasks:
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        self._tasks = []
