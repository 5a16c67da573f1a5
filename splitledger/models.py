"""Domain models for group members, expenses and derived balances."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import List, Optional


class SplitMode(str, Enum):
    """How the cost of an expense is distributed across the group."""

    DIVIDE = "divide"
    FULL = "full"


@dataclass(frozen=True)
class User:
    """Represents a member of the expense group."""

    id: str
    name: str
    created_at: datetime


@dataclass(frozen=True)
class Transaction:
    """A recorded expense paid by one member."""

    id: str
    paid_by_id: str
    amount: Decimal
    description: str
    split_mode: SplitMode
    date: datetime
    owed_by_id: Optional[str] = None


@dataclass(frozen=True)
class PairwiseBalance:
    """``from_user_id`` owes ``to_user_id`` the given amount."""

    from_user_id: str
    to_user_id: str
    amount: Decimal


@dataclass(frozen=True)
class BalanceSummary:
    users: List[User] = field(default_factory=list)
    balances: List[PairwiseBalance] = field(default_factory=list)
    total_transactions: int = 0


__all__ = ["BalanceSummary", "PairwiseBalance", "SplitMode", "Transaction", "User"]
