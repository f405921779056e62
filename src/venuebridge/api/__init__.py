"""HTTP API for the swap entry points and ledger reads."""
