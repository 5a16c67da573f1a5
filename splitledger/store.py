"""In-memory storage for group members and their expenses."""

from __future__ import annotations

import logging
import threading
import uuid
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Callable, Dict, List, Optional

from .balances import CENTS
from .models import SplitMode, Transaction, User

logger = logging.getLogger("splitledger.store")

MAX_NAME_LENGTH = 50
MAX_DESCRIPTION_LENGTH = 100
_MAX_AMOUNT = Decimal("99999999.99")


class UserInUseError(ValueError):
    """Raised when a member cannot be removed because others reference them."""


class UnknownUserError(KeyError):
    """Raised when an operation references a member that does not exist."""

    def __init__(self, user_id: str) -> None:
        super().__init__(f"Unknown user '{user_id}'")
        self.user_id = user_id

    def __str__(self) -> str:
        return str(self.args[0])


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _new_id() -> str:
    return str(uuid.uuid4())


def _normalise_name(name: str) -> str:
    value = name.strip()
    if not value:
        raise ValueError("Name must not be empty")
    if len(value) > MAX_NAME_LENGTH:
        raise ValueError(f"Name must be {MAX_NAME_LENGTH} characters or fewer")
    return value


def _normalise_description(description: str) -> str:
    value = description.strip()
    if not value:
        raise ValueError("Description is required")
    if len(value) > MAX_DESCRIPTION_LENGTH:
        raise ValueError(f"Description must be {MAX_DESCRIPTION_LENGTH} characters or fewer")
    return value


def _normalise_amount(amount: Decimal | int | str) -> Decimal:
    try:
        value = Decimal(str(amount))
    except InvalidOperation as exc:
        raise ValueError("Amount must be a number") from exc
    if not value.is_finite() or value <= 0:
        raise ValueError("Amount must be positive")
    if value > _MAX_AMOUNT:
        raise ValueError("Amount is too large")
    if value != value.quantize(CENTS):
        raise ValueError("Amount must have at most two decimal places")
    return value.quantize(CENTS)


class LedgerStore:
    """Holds the authoritative users and transactions for the process lifetime.

    Every public method takes :attr:`lock`. The lock is re-entrant so callers
    can hold it across several calls to make a read-modify-write sequence
    atomic.
    """

    def __init__(
        self,
        *,
        clock: Callable[[], datetime] = _utcnow,
        id_factory: Callable[[], str] = _new_id,
    ) -> None:
        self._clock = clock
        self._id_factory = id_factory
        self._users: Dict[str, User] = {}
        self._transactions: Dict[str, Transaction] = {}
        self.lock = threading.RLock()

    # ------------------------------------------------------------------
    # Members
    # ------------------------------------------------------------------
    def list_users(self) -> List[User]:
        with self.lock:
            return list(self._users.values())

    def get_user(self, user_id: str) -> User:
        with self.lock:
            try:
                return self._users[user_id]
            except KeyError as exc:
                raise UnknownUserError(user_id) from exc

    def create_user(self, name: str) -> User:
        cleaned = _normalise_name(name)
        with self.lock:
            user = User(id=self._id_factory(), name=cleaned, created_at=self._clock())
            self._users[user.id] = user
        logger.info("Added member %s (%s)", user.name, user.id)
        return user

    def delete_user(self, user_id: str) -> int:
        """Remove a member and every expense they paid.

        Returns the number of transactions removed alongside the member.
        """

        with self.lock:
            user = self.get_user(user_id)
            referencing = [
                transaction
                for transaction in self._transactions.values()
                if transaction.owed_by_id == user_id and transaction.paid_by_id != user_id
            ]
            if referencing:
                raise UserInUseError(
                    f"{user.name} still owes {len(referencing)} expense(s) paid by other members"
                )

            paid = [
                transaction_id
                for transaction_id, transaction in self._transactions.items()
                if transaction.paid_by_id == user_id
            ]
            for transaction_id in paid:
                del self._transactions[transaction_id]
            del self._users[user_id]

        logger.info("Removed member %s (%s) and %d transaction(s)", user.name, user.id, len(paid))
        return len(paid)

    # ------------------------------------------------------------------
    # Transactions
    # ------------------------------------------------------------------
    def list_transactions(self) -> List[Transaction]:
        """Return all transactions, most recent first."""

        with self.lock:
            newest_first = list(reversed(self._transactions.values()))
        return sorted(newest_first, key=lambda transaction: transaction.date, reverse=True)

    def create_transaction(
        self,
        paid_by_id: str,
        amount: Decimal | int | str,
        description: str,
        split_mode: SplitMode | str,
        owed_by_id: Optional[str] = None,
    ) -> Transaction:
        mode = SplitMode(split_mode)
        value = _normalise_amount(amount)
        text = _normalise_description(description)

        with self.lock:
            self.get_user(paid_by_id)
            if mode is SplitMode.FULL:
                if not owed_by_id:
                    raise ValueError("Select who owes the full amount")
                if owed_by_id == paid_by_id:
                    raise ValueError("The payer cannot owe the full amount to themselves")
                self.get_user(owed_by_id)
            else:
                owed_by_id = None

            transaction = Transaction(
                id=self._id_factory(),
                paid_by_id=paid_by_id,
                amount=value,
                description=text,
                split_mode=mode,
                date=self._clock(),
                owed_by_id=owed_by_id,
            )
            self._transactions[transaction.id] = transaction

        logger.info(
            "Recorded %s expense %s of %s paid by %s",
            mode.value,
            transaction.id,
            value,
            paid_by_id,
        )
        return transaction

    def clear_transactions(self) -> int:
        with self.lock:
            count = len(self._transactions)
            self._transactions.clear()
        logger.info("Cleared %d transaction(s)", count)
        return count


__all__ = [
    "LedgerStore",
    "MAX_DESCRIPTION_LENGTH",
    "MAX_NAME_LENGTH",
    "UnknownUserError",
    "UserInUseError",
]
