from __future__ import annotations

import random
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from itertools import combinations

from splitledger.balances import compute_balances, qround
from splitledger.models import PairwiseBalance, SplitMode, Transaction, User

EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)


def _users(*names: str) -> list[User]:
    return [
        User(id=name.lower(), name=name, created_at=EPOCH + timedelta(minutes=index))
        for index, name in enumerate(names)
    ]


def _expense(
    paid_by: str,
    amount: str,
    mode: SplitMode = SplitMode.DIVIDE,
    owed_by: str | None = None,
    *,
    index: int = 0,
) -> Transaction:
    return Transaction(
        id=f"tx-{index}",
        paid_by_id=paid_by,
        amount=Decimal(amount),
        description="Groceries",
        split_mode=mode,
        date=EPOCH + timedelta(hours=index),
        owed_by_id=owed_by,
    )


def test_two_members_split_evenly() -> None:
    users = _users("Alice", "Bob")
    balances = compute_balances(users, [_expense("alice", "100")])
    assert balances == [PairwiseBalance("bob", "alice", Decimal("50.00"))]


def test_three_members_each_owe_a_third() -> None:
    users = _users("A", "B", "C")
    balances = compute_balances(users, [_expense("a", "90")])
    assert balances == [
        PairwiseBalance("b", "a", Decimal("30.00")),
        PairwiseBalance("c", "a", Decimal("30.00")),
    ]


def test_equal_payments_cancel_out() -> None:
    users = _users("A", "B")
    transactions = [_expense("a", "50", index=0), _expense("b", "50", index=1)]
    assert compute_balances(users, transactions) == []


def test_full_mode_ignores_group_size() -> None:
    users = _users("A", "B", "C", "D")
    balances = compute_balances(users, [_expense("a", "40", SplitMode.FULL, "b")])
    assert balances == [PairwiseBalance("b", "a", Decimal("40.00"))]


def test_empty_inputs_produce_no_balances() -> None:
    assert compute_balances([], []) == []
    assert compute_balances([], [_expense("a", "10")]) == []
    assert compute_balances(_users("A", "B"), []) == []


def test_single_member_divide_is_a_no_op() -> None:
    assert compute_balances(_users("Solo"), [_expense("solo", "25")]) == []


def test_uneven_shares_are_rounded_half_up_after_netting() -> None:
    users = _users("A", "B", "C")
    balances = compute_balances(users, [_expense("a", "100")])
    assert [balance.amount for balance in balances] == [Decimal("33.33"), Decimal("33.33")]

    # 0.005 of net rounds up once it reaches a full cent
    balances = compute_balances(_users("A", "B"), [_expense("a", "0.03")])
    assert balances == [PairwiseBalance("b", "a", Decimal("0.02"))]


def test_sub_cent_residue_is_treated_as_settled() -> None:
    users = _users("A", "B", "C")
    transactions = [_expense("a", "10", index=0), _expense("b", "10", index=1)]
    balances = compute_balances(users, transactions)
    pairs = {(balance.from_user_id, balance.to_user_id) for balance in balances}
    assert ("a", "b") not in pairs and ("b", "a") not in pairs
    assert PairwiseBalance("c", "a", Decimal("3.33")) in balances
    assert PairwiseBalance("c", "b", Decimal("3.33")) in balances


def test_net_direction_follows_the_larger_obligation() -> None:
    users = _users("A", "B")
    transactions = [
        _expense("a", "30", SplitMode.FULL, "b", index=0),
        _expense("b", "50", SplitMode.FULL, "a", index=1),
    ]
    assert compute_balances(users, transactions) == [PairwiseBalance("a", "b", Decimal("20.00"))]


def test_transactions_referencing_missing_members_are_skipped() -> None:
    users = _users("A", "B")
    transactions = [
        _expense("ghost", "60", index=0),
        _expense("a", "20", SplitMode.FULL, "ghost", index=1),
    ]
    assert compute_balances(users, transactions) == []


def test_result_is_deterministic_and_repeatable() -> None:
    users = _users("A", "B", "C")
    transactions = [
        _expense("a", "12.50", index=0),
        _expense("c", "7.25", SplitMode.FULL, "b", index=1),
    ]
    first = compute_balances(users, transactions)
    assert first == compute_balances(users, list(transactions))
    assert compute_balances(users, list(reversed(transactions))) == first


def test_random_ledgers_keep_pairwise_invariants() -> None:
    rng = random.Random(1234)
    users = _users("A", "B", "C", "D", "E")
    ids = [user.id for user in users]

    for _ in range(50):
        transactions = []
        for index in range(rng.randint(0, 12)):
            payer = rng.choice(ids)
            amount = f"{rng.randint(1, 50000) / 100:.2f}"
            if rng.random() < 0.5:
                transactions.append(_expense(payer, amount, index=index))
            else:
                other = rng.choice([uid for uid in ids if uid != payer])
                transactions.append(_expense(payer, amount, SplitMode.FULL, other, index=index))

        balances = compute_balances(users, transactions)
        seen = set()
        for balance in balances:
            pair = frozenset((balance.from_user_id, balance.to_user_id))
            assert pair not in seen
            seen.add(pair)
            assert balance.amount >= Decimal("0.01")

        directed: dict[tuple[str, str], Decimal] = {}
        for transaction in transactions:
            if transaction.split_mode is SplitMode.FULL:
                key = (transaction.owed_by_id, transaction.paid_by_id)
                directed[key] = directed.get(key, Decimal(0)) + transaction.amount
            else:
                share = transaction.amount / len(ids)
                for uid in ids:
                    if uid != transaction.paid_by_id:
                        key = (uid, transaction.paid_by_id)
                        directed[key] = directed.get(key, Decimal(0)) + share

        by_pair = {frozenset((b.from_user_id, b.to_user_id)): b.amount for b in balances}
        for first, second in combinations(ids, 2):
            net = directed.get((first, second), Decimal(0)) - directed.get((second, first), Decimal(0))
            expected = qround(abs(net)) if abs(net) >= Decimal("0.01") else None
            assert by_pair.get(frozenset((first, second))) == expected
