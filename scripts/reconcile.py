#!/usr/bin/env python3
"""Stranded Transaction Report.

Lists ledger rows that have sat in a non-terminal status for longer than a
threshold. Rows stuck at VENUE_DEPOSIT_PENDING or EXCHANGE_CREATED were
probably interrupted between an external submission and the status write
and need an operator to check the chain or the gateway before acting.

Usage:
    python scripts/reconcile.py [--minutes 60] [--status VENUE_DEPOSIT_PENDING] [--json]

Options:
    --minutes  Only rows not updated for this many minutes (default: 60)
    --status   Only this status (repeatable; default: every non-terminal status)
    --json     Print JSON instead of a table
"""

import argparse
import asyncio
import json
import logging
import sys
from datetime import timedelta
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from dotenv import load_dotenv

from venuebridge.config import get_settings
from venuebridge.ledger.database import close_db, get_session_factory, unit_of_work
from venuebridge.ledger.repository import LedgerRepository
from venuebridge.ledger.states import TERMINAL_STATUSES, TransactionStatus

load_dotenv()

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)

NON_TERMINAL = [s for s in TransactionStatus if s not in TERMINAL_STATUSES]


def _row(tx) -> dict:
    return {
        "id": tx.id,
        "direction": tx.direction,
        "status": tx.status,
        "user_address": tx.user_address,
        "exchange_id": tx.exchange_id,
        "from_amount": str(tx.from_amount),
        "funding_hash": tx.funding_hash,
        "venue_tx_id": tx.venue_tx_id,
        "updated_at": tx.updated_at.isoformat() if tx.updated_at else None,
    }


async def report(minutes: int, statuses: list[TransactionStatus], as_json: bool) -> int:
    settings = get_settings()
    session_factory = get_session_factory(settings)

    try:
        async with unit_of_work(session_factory) as session:
            rows = await LedgerRepository(session).get_stranded_transactions(
                statuses, older_than=timedelta(minutes=minutes)
            )
    finally:
        await close_db()

    if as_json:
        print(json.dumps([_row(tx) for tx in rows], indent=2))
        return len(rows)

    if not rows:
        logger.info(f"No rows stranded for more than {minutes} minutes")
        return 0

    print(f"{'ID':<34} {'DIRECTION':<9} {'STATUS':<26} {'AMOUNT':>20}  UPDATED")
    for tx in rows:
        data = _row(tx)
        print(
            f"{data['id']:<34} {data['direction']:<9} {data['status']:<26} "
            f"{data['from_amount']:>20}  {data['updated_at']}"
        )
    logger.warning(f"{len(rows)} stranded row(s) need operator review")
    return len(rows)


def main():
    parser = argparse.ArgumentParser(description="List stranded swap transactions")
    parser.add_argument("--minutes", type=int, default=60)
    parser.add_argument("--status", action="append", choices=[s.value for s in NON_TERMINAL])
    parser.add_argument("--json", action="store_true")
    args = parser.parse_args()

    statuses = [TransactionStatus(s) for s in args.status] if args.status else NON_TERMINAL
    count = asyncio.run(report(args.minutes, statuses, args.json))
    sys.exit(1 if count else 0)


if __name__ == "__main__":
    main()
