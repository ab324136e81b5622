"""Command line client for the Butler ledger API."""
from .main import cli, main

__all__ = ["cli", "main"]
