"""Command-line interface for the SplitLedger service."""

from __future__ import annotations
import argparse
import logging
import sys
from getpass import getpass
from pathlib import Path
from typing import Sequence

from splitledger.config import Settings, load_settings

logger = logging.getLogger("splitledger.main")

_DEFAULT_SERVICE_URL = "http://127.0.0.1:8000"
_MIN_PASSWORD_LENGTH = 8


def _parse_args(argv: Sequence[str] | None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="SplitLedger group expense utilities")
    subparsers = parser.add_subparsers(dest="command")

    parser.set_defaults(command="serve")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP expense service")
    serve_parser.add_argument("--host", default=None, help="Bind address (default: from config)")
    serve_parser.add_argument("--port", type=int, default=None, help="Port (default: from config)")
    serve_parser.add_argument(
        "--config",
        default=None,
        help="Path to a YAML settings file (default: SPLITLEDGER_CONFIG or config/splitledger.yaml)",
    )

    subparsers.add_parser(
        "hash-password",
        help="Hash a confirmation password for the admin_password_hash setting",
    )

    balance_parser = subparsers.add_parser(
        "balance", help="Show who owes whom according to a running service"
    )
    balance_parser.add_argument(
        "--service-url",
        default=_DEFAULT_SERVICE_URL,
        help=f"Base URL of a running service (default: {_DEFAULT_SERVICE_URL})",
    )

    args_list = list(argv) if argv is not None else sys.argv[1:]
    known_commands = {"serve", "hash-password", "balance"}

    if not args_list:
        args_list = ["serve"]
    else:
        first = args_list[0]
        if first in ("-h", "--help"):
            return parser.parse_args(args_list)
        if first not in known_commands:
            if any(flag in args_list for flag in ("-h", "--help")):
                return parser.parse_args(args_list)
            args_list = ["serve", *args_list]

    return parser.parse_args(args_list)


def _serve(settings: Settings, *, host: str | None, port: int | None) -> None:
    from splitledger.service import create_app
    import uvicorn

    bind_host = host or settings.host
    bind_port = port or settings.port
    logger.info("Starting SplitLedger API on http://%s:%s", bind_host, bind_port)

    app = create_app(settings=settings)
    uvicorn.run(app, host=bind_host, port=bind_port, log_level="info")


def _prompt_for_password() -> str | None:
    for _ in range(3):
        password = getpass(f"Password (min {_MIN_PASSWORD_LENGTH} characters): ")
        if len(password) < _MIN_PASSWORD_LENGTH:
            print("Password is too short. Please try again.")
            continue
        confirmation = getpass("Confirm password: ")
        if password != confirmation:
            print("Passwords do not match. Please try again.")
            continue
        return password
    return None


def _hash_password() -> int:
    from splitledger.security import hash_secret

    password = _prompt_for_password()
    if password is None:
        print("Failed to set password after three attempts.", file=sys.stderr)
        return 1

    print(hash_secret(password))
    print("Set this value as admin_password_hash or SPLITLEDGER_ADMIN_PASSWORD_HASH.", file=sys.stderr)
    return 0


def _show_balance(service_url: str) -> int:
    import httpx

    endpoint = service_url.rstrip("/") + "/api/balance"

    try:
        response = httpx.get(endpoint, timeout=10.0)
    except httpx.HTTPError as exc:
        print(f"Failed to contact SplitLedger service: {exc}")
        return 1

    if response.status_code != 200:
        print(f"Service responded with {response.status_code}: {response.text.strip()}")
        return 1

    try:
        payload = response.json()
    except ValueError:
        print("Service returned an unexpected response format.")
        return 1

    print(format_balances(payload))
    return 0


def format_balances(payload: dict) -> str:
    """Render a ``/api/balance`` payload as human-readable lines."""

    users = payload.get("users", [])
    balances = payload.get("balances", [])
    total = payload.get("totalTransactions", 0)

    lines = [f"{len(users)} member(s), {total} transaction(s)"]
    if not balances:
        lines.append("Everyone is settled up.")
        return "\n".join(lines)

    for balance in balances:
        debtor = balance.get("fromUserName") or balance.get("fromUserId", "?")
        creditor = balance.get("toUserName") or balance.get("toUserId", "?")
        lines.append(f"- {debtor} owes {creditor} {balance.get('amount', '?')}")
    return "\n".join(lines)


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for CLI usage."""

    logging.basicConfig(level=logging.INFO, format="%(asctime)s [%(levelname)s] %(message)s")

    args = _parse_args(argv)

    if args.command == "serve":
        config_path = Path(args.config).expanduser() if args.config else None
        _serve(load_settings(config_path), host=args.host, port=args.port)
        return 0
    if args.command == "hash-password":
        return _hash_password()
    if args.command == "balance":
        return _show_balance(args.service_url)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
