"""Ledger operations that pair a store mutation with a fresh balance summary."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import List, Mapping, Optional, Tuple

from .analytics import Analytics, build_analytics
from .balances import compute_balances
from .models import BalanceSummary, SplitMode, Transaction, User
from .store import LedgerStore

logger = logging.getLogger("splitledger.ledger")


class GroupTooSmallError(ValueError):
    """Raised when removing a member would shrink the group below its minimum."""


@dataclass(frozen=True)
class TransactionEntry:
    """A transaction joined with the display names of its members."""

    transaction: Transaction
    paid_by_name: Optional[str]
    owed_by_name: Optional[str] = None


def describe_transaction(transaction: Transaction, names: Mapping[str, str]) -> TransactionEntry:
    return TransactionEntry(
        transaction=transaction,
        paid_by_name=names.get(transaction.paid_by_id),
        owed_by_name=names.get(transaction.owed_by_id) if transaction.owed_by_id else None,
    )


class GroupLedger:
    """Coordinates the store and the balance engine under a single lock."""

    def __init__(self, store: LedgerStore) -> None:
        self._store = store

    @property
    def store(self) -> LedgerStore:
        return self._store

    def summary(self) -> BalanceSummary:
        with self._store.lock:
            users = self._store.list_users()
            transactions = self._store.list_transactions()
        return BalanceSummary(
            users=users,
            balances=compute_balances(users, transactions),
            total_transactions=len(transactions),
        )

    def add_member(self, name: str) -> User:
        return self._store.create_user(name)

    def remove_member(self, user_id: str, *, min_members: int = 0) -> Tuple[int, BalanceSummary]:
        """Delete a member and the expenses they paid.

        Raises :class:`KeyError` for unknown members and
        :class:`GroupTooSmallError` when the removal would leave fewer than
        ``min_members`` people in the group.
        """

        with self._store.lock:
            self._store.get_user(user_id)
            remaining = len(self._store.list_users()) - 1
            if remaining < min_members:
                raise GroupTooSmallError(f"The group needs at least {min_members} members")
            removed = self._store.delete_user(user_id)
            return removed, self.summary()

    def record_expense(
        self,
        *,
        paid_by_id: str,
        amount: Decimal,
        description: str,
        split_mode: SplitMode,
        owed_by_id: Optional[str] = None,
    ) -> Tuple[Transaction, BalanceSummary]:
        with self._store.lock:
            transaction = self._store.create_transaction(
                paid_by_id,
                amount,
                description,
                split_mode,
                owed_by_id=owed_by_id,
            )
            return transaction, self.summary()

    def settle(self) -> BalanceSummary:
        with self._store.lock:
            cleared = self._store.clear_transactions()
            summary = self.summary()
        logger.info("Settled all balances (%d transaction(s) cleared)", cleared)
        return summary

    def delete_history(self) -> BalanceSummary:
        with self._store.lock:
            cleared = self._store.clear_transactions()
            summary = self.summary()
        logger.info("Deleted transaction history (%d transaction(s))", cleared)
        return summary

    def transactions(self) -> List[TransactionEntry]:
        with self._store.lock:
            names = {user.id: user.name for user in self._store.list_users()}
            transactions = self._store.list_transactions()
        return [describe_transaction(transaction, names) for transaction in transactions]

    def analytics(self, *, recent_limit: int = 4) -> Analytics:
        with self._store.lock:
            users = self._store.list_users()
            transactions = self._store.list_transactions()
        return build_analytics(users, transactions, recent_limit=recent_limit)


__all__ = ["GroupLedger", "GroupTooSmallError", "TransactionEntry", "describe_transaction"]
