"""Core package for the SplitLedger group expense service."""

from __future__ import annotations

from typing import Any

from .balances import compute_balances
from .store import LedgerStore


def create_app(*args: Any, **kwargs: Any):
    """Factory function that returns the HTTP application."""

    from .service import create_app as _create_app

    return _create_app(*args, **kwargs)


__all__ = [
    "LedgerStore",
    "compute_balances",
    "create_app",
]
