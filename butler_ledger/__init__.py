"""Butler ledger: metered-spend balances for a concierge agent's paid tools."""

__version__ = "0.1.0"
