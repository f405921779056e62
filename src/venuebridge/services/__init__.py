"""Swap orchestration services."""

from venuebridge.services.deposits import DepositOrchestrator
from venuebridge.services.scheduler import PollingScheduler
from venuebridge.services.withdrawals import WithdrawalOrchestrator

__all__ = ["DepositOrchestrator", "PollingScheduler", "WithdrawalOrchestrator"]
