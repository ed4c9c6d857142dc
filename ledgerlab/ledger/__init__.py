"""
ledgerlab.ledger - pooled escrow ledger with a single recipient.

Exports:
- EscrowLedger
- LedgerStats, DepositorRecord
"""

from .escrow import DepositorRecord, EscrowLedger, LedgerStats, Payout

__all__ = ["EscrowLedger", "LedgerStats", "DepositorRecord", "Payout"]
