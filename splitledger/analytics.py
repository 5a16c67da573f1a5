"""Spending statistics for the group dashboard."""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict, List, Optional, Sequence

from .balances import qround
from .models import Transaction, User

_ZERO = Decimal("0.00")


@dataclass(frozen=True)
class MemberSpending:
    user_id: str
    name: str
    amount: Decimal


@dataclass(frozen=True)
class MonthlyTotal:
    month: str
    amount: Decimal


@dataclass(frozen=True)
class Analytics:
    total_expenses: Decimal = _ZERO
    total_users: int = 0
    average_expense: Decimal = _ZERO
    largest_expense: Decimal = _ZERO
    top_spender: Optional[MemberSpending] = None
    spending_by_member: List[MemberSpending] = field(default_factory=list)
    monthly_trend: List[MonthlyTotal] = field(default_factory=list)
    recent_activity: List[Transaction] = field(default_factory=list)


def build_analytics(
    users: Sequence[User],
    transactions: Sequence[Transaction],
    *,
    recent_limit: int = 4,
) -> Analytics:
    """Summarise how much the group has spent and who paid for it.

    ``transactions`` are expected newest first, as returned by the store.
    """

    paid: Dict[str, Decimal] = OrderedDict((user.id, _ZERO) for user in users)
    months: Dict[str, Decimal] = {}
    total = _ZERO
    largest = _ZERO

    for transaction in transactions:
        total += transaction.amount
        largest = max(largest, transaction.amount)
        if transaction.paid_by_id in paid:
            paid[transaction.paid_by_id] += transaction.amount
        month = transaction.date.strftime("%Y-%m")
        months[month] = months.get(month, _ZERO) + transaction.amount

    names = {user.id: user.name for user in users}
    spending = [MemberSpending(user_id, names[user_id], qround(amount)) for user_id, amount in paid.items()]

    top_spender = None
    if transactions and spending:
        top_spender = max(spending, key=lambda entry: entry.amount)
        if top_spender.amount <= 0:
            top_spender = None

    average = qround(total / len(transactions)) if transactions else _ZERO

    return Analytics(
        total_expenses=qround(total),
        total_users=len(users),
        average_expense=average,
        largest_expense=qround(largest),
        top_spender=top_spender,
        spending_by_member=spending,
        monthly_trend=[MonthlyTotal(month, qround(months[month])) for month in sorted(months)],
        recent_activity=list(transactions[: max(recent_limit, 0)]),
    )


__all__ = ["Analytics", "MemberSpending", "MonthlyTotal", "build_analytics"]
