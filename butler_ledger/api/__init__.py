"""HTTP surface of the Butler ledger."""
from .main import create_app

__all__ = ["create_app"]
