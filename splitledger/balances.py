"""Pairwise netting of recorded expenses into who-owes-whom balances."""

from __future__ import annotations

from collections import defaultdict
from decimal import ROUND_HALF_UP, Decimal
from typing import Dict, Iterable, List, Sequence, Tuple

from .models import PairwiseBalance, SplitMode, Transaction, User

CENTS = Decimal("0.01")
ZERO = Decimal("0")


def qround(value: Decimal) -> Decimal:
    """Round ``value`` to whole cents using half-up rounding."""

    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


def _directed_obligations(
    users: Sequence[User],
    transactions: Iterable[Transaction],
) -> Dict[Tuple[str, str], Decimal]:
    member_ids = [user.id for user in users]
    known = set(member_ids)
    owed: Dict[Tuple[str, str], Decimal] = defaultdict(lambda: ZERO)

    for transaction in transactions:
        payer = transaction.paid_by_id
        if payer not in known:
            continue

        if transaction.split_mode is SplitMode.FULL:
            debtor = transaction.owed_by_id
            if debtor is None or debtor not in known or debtor == payer:
                continue
            owed[(debtor, payer)] += transaction.amount
            continue

        share = transaction.amount / len(member_ids)
        for member_id in member_ids:
            if member_id != payer:
                owed[(member_id, payer)] += share

    return owed


def compute_balances(
    users: Sequence[User],
    transactions: Iterable[Transaction],
) -> List[PairwiseBalance]:
    """Net every pair of members into at most one positive balance.

    ``divide`` expenses are shared evenly by all of ``users``; ``full``
    expenses are owed entirely by ``owed_by_id``. Shares are accumulated
    without rounding and only the final net of each pair is rounded to cents.
    Pairs whose net is below one cent are treated as settled and omitted.
    The result follows the order of ``users``.
    """

    if not users:
        return []

    owed = _directed_obligations(users, transactions)
    if not owed:
        return []

    balances: List[PairwiseBalance] = []
    for index, first in enumerate(users):
        for second in users[index + 1:]:
            net = owed.get((first.id, second.id), ZERO) - owed.get((second.id, first.id), ZERO)
            if abs(net) < CENTS:
                continue
            if net > 0:
                balances.append(PairwiseBalance(first.id, second.id, qround(net)))
            else:
                balances.append(PairwiseBalance(second.id, first.id, qround(-net)))
    return balances


__all__ = ["CENTS", "compute_balances", "qround"]
