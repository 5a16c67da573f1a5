"""Configuration management for the SplitLedger service."""
from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, Mapping, Optional, Tuple

import yaml

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8000
DEFAULT_MIN_GROUP_SIZE = 2


def _env_flag(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _optional_text(value: object) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the HTTP service."""

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    admin_password_hash: Optional[str] = None
    admin_password: Optional[str] = None
    require_password_for_new_users: bool = True
    min_group_size: int = DEFAULT_MIN_GROUP_SIZE
    initial_members: Tuple[str, ...] = field(default_factory=tuple)

    @staticmethod
    def from_dict(data: Mapping[str, object]) -> "Settings":
        """Create :class:`Settings` from raw dictionary data."""

        unknown = set(data.keys()) - _KNOWN_KEYS
        if unknown:
            raise ValueError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")

        members_raw = data.get("initial_members") or []
        if not isinstance(members_raw, (list, tuple)):
            raise ValueError("'initial_members' must be a list of names")

        min_group_size = int(data.get("min_group_size", DEFAULT_MIN_GROUP_SIZE))
        if min_group_size < 0:
            raise ValueError("'min_group_size' must not be negative")

        return Settings(
            host=str(data.get("host", DEFAULT_HOST)),
            port=int(data.get("port", DEFAULT_PORT)),
            admin_password_hash=_optional_text(data.get("admin_password_hash")),
            admin_password=_optional_text(data.get("admin_password")),
            require_password_for_new_users=bool(data.get("require_password_for_new_users", True)),
            min_group_size=min_group_size,
            initial_members=tuple(str(name).strip() for name in members_raw if str(name).strip()),
        )

    def with_env(self, environ: Mapping[str, str]) -> "Settings":
        """Return a copy with ``SPLITLEDGER_*`` environment overrides applied."""

        overrides: Dict[str, object] = {}
        if environ.get("SPLITLEDGER_HOST"):
            overrides["host"] = environ["SPLITLEDGER_HOST"].strip()
        if environ.get("SPLITLEDGER_PORT"):
            overrides["port"] = int(environ["SPLITLEDGER_PORT"])
        if environ.get("SPLITLEDGER_ADMIN_PASSWORD_HASH"):
            overrides["admin_password_hash"] = environ["SPLITLEDGER_ADMIN_PASSWORD_HASH"].strip()
        if environ.get("SPLITLEDGER_ADMIN_PASSWORD"):
            overrides["admin_password"] = environ["SPLITLEDGER_ADMIN_PASSWORD"]
        if "SPLITLEDGER_REQUIRE_PASSWORD_FOR_NEW_USERS" in environ:
            overrides["require_password_for_new_users"] = _env_flag(
                environ["SPLITLEDGER_REQUIRE_PASSWORD_FOR_NEW_USERS"], True
            )
        if environ.get("SPLITLEDGER_MIN_GROUP_SIZE"):
            overrides["min_group_size"] = int(environ["SPLITLEDGER_MIN_GROUP_SIZE"])
        return replace(self, **overrides) if overrides else self


_KNOWN_KEYS = {
    "host",
    "port",
    "admin_password_hash",
    "admin_password",
    "require_password_for_new_users",
    "min_group_size",
    "initial_members",
}


def resolve_config_path(env_value: Optional[str]) -> Path:
    """Resolve the path to the configuration file."""
    if env_value:
        candidate = Path(env_value).expanduser().resolve(strict=False)
    else:
        candidate = (Path(__file__).resolve().parent.parent / "config" / "splitledger.yaml").resolve(strict=False)
    return candidate


def load_settings(
    config_path: Optional[Path] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Load settings from a YAML file, then apply environment overrides.

    A missing file is not an error; the defaults are used instead.
    """
    env = os.environ if environ is None else environ
    path = config_path or resolve_config_path(env.get("SPLITLEDGER_CONFIG"))

    raw: object = {}
    if path.exists():
        with path.open("r", encoding="utf-8") as handle:
            raw = yaml.safe_load(handle) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"Configuration file {path} must contain a mapping")

    return Settings.from_dict(raw).with_env(env)


__all__ = ["Settings", "load_settings", "resolve_config_path"]
