"""Confirmation password checks for destructive ledger operations."""
from __future__ import annotations

import logging
from typing import Optional, Protocol

from fastapi import HTTPException, status
from passlib.context import CryptContext

logger = logging.getLogger("splitledger.security")

_pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


class SecretVerifier(Protocol):
    def verify(self, secret: str) -> bool:
        ...


def hash_secret(secret: str) -> str:
    if not secret:
        raise ValueError("Password must not be empty")
    return _pwd_context.hash(secret)


class HashedSecretVerifier:
    """Verify confirmation passwords against a stored passlib hash."""

    def __init__(self, hashed: str) -> None:
        if not hashed or not _pwd_context.identify(hashed):
            raise ValueError("Unrecognised password hash format")
        self._hashed = hashed

    @classmethod
    def from_plaintext(cls, secret: str) -> "HashedSecretVerifier":
        return cls(hash_secret(secret))

    def verify(self, secret: str) -> bool:
        if not secret:
            return False
        try:
            return _pwd_context.verify(secret, self._hashed)
        except ValueError:
            return False


class RejectAllVerifier:
    """Used when no confirmation password has been configured."""

    def verify(self, secret: str) -> bool:
        return False


def require_confirmation(verifier: SecretVerifier, password: Optional[str], *, action: str) -> None:
    """Raise a 401 unless ``password`` passes ``verifier``."""

    if password is None or not password.strip():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Password required")
    if not verifier.verify(password):
        logger.warning("Rejected confirmation password for %s", action)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid password")


__all__ = [
    "HashedSecretVerifier",
    "RejectAllVerifier",
    "SecretVerifier",
    "hash_secret",
    "require_confirmation",
]
