"""venuebridge - moves value between Cardano and a Solana trading venue."""

__version__ = "0.1.0"
