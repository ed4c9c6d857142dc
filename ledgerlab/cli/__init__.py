"""
ledgerlab.cli - typer application (`ledgerlab` console script).

Sub-apps:
- ledger  : escrow ledger commands
- shapes  : rectangle registry commands
- config  : configuration inspection
- units   : ether / wei conversion
"""

from .main import app, main

__all__ = ["app", "main"]
