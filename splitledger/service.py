"""HTTP API for recording group expenses and reading who owes whom."""

from __future__ import annotations

import logging
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .analytics import Analytics, MemberSpending
from .config import Settings, load_settings
from .ledger import GroupLedger, GroupTooSmallError, TransactionEntry, describe_transaction
from .models import BalanceSummary, SplitMode, User
from .security import (
    HashedSecretVerifier,
    RejectAllVerifier,
    SecretVerifier,
    require_confirmation,
)
from .store import (
    MAX_DESCRIPTION_LENGTH,
    MAX_NAME_LENGTH,
    LedgerStore,
    UnknownUserError,
    UserInUseError,
)

logger = logging.getLogger("splitledger.service")


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _strip_text(value: Any) -> Any:
    return value.strip() if isinstance(value, str) else value


class CreateUserRequest(_CamelModel):
    name: str = Field(..., min_length=1, max_length=MAX_NAME_LENGTH)
    password: Optional[str] = Field(default=None, max_length=256)

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, value: Any) -> Any:
        return _strip_text(value)


class ExpenseRequest(_CamelModel):
    paid_by_id: str = Field(..., min_length=1)
    amount: Decimal = Field(..., gt=0, max_digits=10, decimal_places=2)
    description: str = Field(..., min_length=1, max_length=MAX_DESCRIPTION_LENGTH)
    split_mode: SplitMode = SplitMode.DIVIDE
    owed_by_id: Optional[str] = None

    @field_validator("description", mode="before")
    @classmethod
    def strip_description(cls, value: Any) -> Any:
        return _strip_text(value)

    @model_validator(mode="after")
    def check_owed_by(self) -> "ExpenseRequest":
        if self.split_mode is SplitMode.FULL:
            if not self.owed_by_id:
                raise ValueError("Select who owes the full amount")
            if self.owed_by_id == self.paid_by_id:
                raise ValueError("The payer cannot owe the full amount to themselves")
        else:
            self.owed_by_id = None
        return self


class DeleteHistoryRequest(_CamelModel):
    password: Optional[str] = None


class UserResponse(_CamelModel):
    id: str
    name: str
    created_at: datetime


class BalanceEntry(_CamelModel):
    from_user_id: str
    from_user_name: Optional[str] = None
    to_user_id: str
    to_user_name: Optional[str] = None
    amount: Decimal


class BalanceResponse(_CamelModel):
    users: List[UserResponse]
    balances: List[BalanceEntry]
    total_transactions: int


class TransactionResponse(_CamelModel):
    id: str
    paid_by_id: str
    paid_by_name: Optional[str] = None
    amount: Decimal
    description: str
    split_mode: SplitMode
    owed_by_id: Optional[str] = None
    owed_by_name: Optional[str] = None
    date: datetime


class CreateUserResponse(_CamelModel):
    success: bool = True
    user: UserResponse


class DeleteUserResponse(_CamelModel):
    success: bool = True
    removed_transactions: int
    summary: BalanceResponse


class ExpenseResponse(_CamelModel):
    success: bool = True
    transaction: TransactionResponse
    summary: BalanceResponse


class SettleResponse(_CamelModel):
    success: bool = True
    message: str
    summary: BalanceResponse


class MemberSpendingView(_CamelModel):
    user_id: str
    name: str
    amount: Decimal


class MonthlyTotalView(_CamelModel):
    month: str
    amount: Decimal


class AnalyticsResponse(_CamelModel):
    total_expenses: Decimal
    total_users: int
    average_expense: Decimal
    largest_expense: Decimal
    top_spender: Optional[MemberSpendingView] = None
    spending_by_member: List[MemberSpendingView]
    monthly_trend: List[MonthlyTotalView]
    recent_activity: List[TransactionResponse]


def _user_to_response(user: User) -> UserResponse:
    return UserResponse(id=user.id, name=user.name, created_at=user.created_at)


def _summary_to_response(summary: BalanceSummary) -> BalanceResponse:
    names = {user.id: user.name for user in summary.users}
    return BalanceResponse(
        users=[_user_to_response(user) for user in summary.users],
        balances=[
            BalanceEntry(
                from_user_id=balance.from_user_id,
                from_user_name=names.get(balance.from_user_id),
                to_user_id=balance.to_user_id,
                to_user_name=names.get(balance.to_user_id),
                amount=balance.amount,
            )
            for balance in summary.balances
        ],
        total_transactions=summary.total_transactions,
    )


def _entry_to_response(entry: TransactionEntry) -> TransactionResponse:
    transaction = entry.transaction
    return TransactionResponse(
        id=transaction.id,
        paid_by_id=transaction.paid_by_id,
        paid_by_name=entry.paid_by_name,
        amount=transaction.amount,
        description=transaction.description,
        split_mode=transaction.split_mode,
        owed_by_id=transaction.owed_by_id,
        owed_by_name=entry.owed_by_name,
        date=transaction.date,
    )


def _spending_to_view(spending: MemberSpending) -> MemberSpendingView:
    return MemberSpendingView(user_id=spending.user_id, name=spending.name, amount=spending.amount)


def _analytics_to_response(analytics: Analytics) -> AnalyticsResponse:
    names = {entry.user_id: entry.name for entry in analytics.spending_by_member}
    return AnalyticsResponse(
        total_expenses=analytics.total_expenses,
        total_users=analytics.total_users,
        average_expense=analytics.average_expense,
        largest_expense=analytics.largest_expense,
        top_spender=_spending_to_view(analytics.top_spender) if analytics.top_spender else None,
        spending_by_member=[_spending_to_view(entry) for entry in analytics.spending_by_member],
        monthly_trend=[
            MonthlyTotalView(month=entry.month, amount=entry.amount)
            for entry in analytics.monthly_trend
        ],
        recent_activity=[
            _entry_to_response(describe_transaction(transaction, names))
            for transaction in analytics.recent_activity
        ],
    )


def _invalid_field(field: str, message: str) -> RequestValidationError:
    return RequestValidationError(
        [{"loc": ("body", field), "msg": message, "type": "value_error"}]
    )


def _format_validation_errors(errors: List[Dict[str, Any]]) -> List[Dict[str, str]]:
    details: List[Dict[str, str]] = []
    for error in errors:
        location = [str(part) for part in error.get("loc", ()) if part != "body"]
        message = str(error.get("msg", "Invalid value"))
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        details.append({"field": ".".join(location) or "body", "message": message})
    return details


def register_error_handlers(app: FastAPI) -> None:
    """Render validation problems as 400s and hide unexpected failures."""

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(_request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"error": "Validation error", "details": _format_validation_errors(list(exc.errors()))},
        )

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error while serving %s %s", request.method, request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"error": "Internal server error"},
        )


def register_api_routes(
    app: FastAPI,
    ledger: GroupLedger,
    *,
    verifier: SecretVerifier,
    settings: Settings,
) -> None:
    """Expose the JSON API endpoints on the provided FastAPI application."""

    @app.get("/healthz")
    async def healthcheck() -> Dict[str, str]:
        return {"status": "ok"}

    @app.get("/api/users", response_model=List[UserResponse])
    async def list_users() -> List[UserResponse]:
        return [_user_to_response(user) for user in ledger.store.list_users()]

    @app.post("/api/users", response_model=CreateUserResponse)
    async def create_user(request: CreateUserRequest) -> CreateUserResponse:
        if settings.require_password_for_new_users:
            require_confirmation(verifier, request.password, action="adding a member")
        try:
            user = ledger.add_member(request.name)
        except ValueError as exc:
            raise _invalid_field("name", str(exc)) from exc
        return CreateUserResponse(user=_user_to_response(user))

    @app.delete("/api/users/{user_id}", response_model=DeleteUserResponse)
    async def delete_user(user_id: str) -> DeleteUserResponse:
        try:
            removed, summary = ledger.remove_member(user_id, min_members=settings.min_group_size)
        except KeyError:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
        except (GroupTooSmallError, UserInUseError) as exc:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
        return DeleteUserResponse(removed_transactions=removed, summary=_summary_to_response(summary))

    @app.get("/api/balance", response_model=BalanceResponse)
    async def get_balance() -> BalanceResponse:
        return _summary_to_response(ledger.summary())

    @app.post("/api/expense", response_model=ExpenseResponse)
    async def add_expense(request: ExpenseRequest) -> ExpenseResponse:
        try:
            transaction, summary = ledger.record_expense(
                paid_by_id=request.paid_by_id,
                amount=request.amount,
                description=request.description,
                split_mode=request.split_mode,
                owed_by_id=request.owed_by_id,
            )
        except UnknownUserError as exc:
            field = "paidById" if exc.user_id == request.paid_by_id else "owedById"
            raise _invalid_field(field, "Unknown group member") from exc
        except ValueError as exc:
            raise _invalid_field("body", str(exc)) from exc

        names = {user.id: user.name for user in summary.users}
        entry = describe_transaction(transaction, names)
        return ExpenseResponse(transaction=_entry_to_response(entry), summary=_summary_to_response(summary))

    @app.get("/api/transactions", response_model=List[TransactionResponse])
    async def list_transactions() -> List[TransactionResponse]:
        return [_entry_to_response(entry) for entry in ledger.transactions()]

    @app.post("/api/settle", response_model=SettleResponse)
    async def settle() -> SettleResponse:
        summary = ledger.settle()
        return SettleResponse(message="All balances settled", summary=_summary_to_response(summary))

    @app.post("/api/delete-history", response_model=SettleResponse)
    async def delete_history(request: DeleteHistoryRequest) -> SettleResponse:
        require_confirmation(verifier, request.password, action="deleting history")
        summary = ledger.delete_history()
        return SettleResponse(message="Transaction history deleted", summary=_summary_to_response(summary))

    @app.get("/api/analytics", response_model=AnalyticsResponse)
    async def get_analytics() -> AnalyticsResponse:
        return _analytics_to_response(ledger.analytics())


def _build_verifier(settings: Settings) -> SecretVerifier:
    if settings.admin_password_hash:
        return HashedSecretVerifier(settings.admin_password_hash)
    if settings.admin_password:
        return HashedSecretVerifier.from_plaintext(settings.admin_password)
    logger.warning(
        "No confirmation password configured. Adding members and deleting history"
        " will be rejected until SPLITLEDGER_ADMIN_PASSWORD_HASH is set."
    )
    return RejectAllVerifier()


def _seed_members(store: LedgerStore, names: tuple[str, ...]) -> None:
    if not names or store.list_users():
        return
    for name in names:
        store.create_user(name)


def create_app(
    *,
    store: LedgerStore | None = None,
    settings: Settings | None = None,
    verifier: SecretVerifier | None = None,
) -> FastAPI:
    """Instantiate the FastAPI application for the expense ledger."""

    app_settings = settings or load_settings()
    ledger_store = store or LedgerStore()
    _seed_members(ledger_store, app_settings.initial_members)

    ledger = GroupLedger(ledger_store)
    app_verifier = verifier or _build_verifier(app_settings)

    app = FastAPI(
        title="SplitLedger API",
        version="0.1.0",
        description="Record shared expenses and see who owes whom.",
    )

    app.state.settings = app_settings
    app.state.store = ledger_store
    app.state.ledger = ledger

    register_error_handlers(app)
    register_api_routes(app, ledger, verifier=app_verifier, settings=app_settings)

    return app


__all__ = ["create_app", "register_api_routes", "register_error_handlers"]
