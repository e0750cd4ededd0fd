"""Password hashing, credential encryption and signed-token helpers."""
from __future__ import annotations

import base64
import hashlib
import secrets
from typing import Any

from cryptography.fernet import Fernet, InvalidToken
from itsdangerous import BadSignature, SignatureExpired, URLSafeTimedSerializer
from passlib.context import CryptContext

from .config import get_settings

ACCESS_TOKEN_SALT = "opslink-session"

_password_context = CryptContext(schemes=["argon2"], deprecated="auto")


class PasswordHasher:
    """Argon2id password hashes via passlib."""

    @staticmethod
    def hash(password: str) -> str:
        return _password_context.hash(password)

    @staticmethod
    def verify(password: str, hashed: str | None) -> bool:
        if not hashed:
            return False
        return _password_context.verify(password, hashed)

    @staticmethod
    def needs_rehash(hashed: str) -> bool:
        return _password_context.needs_update(hashed)


def _fernet_key(secret: str) -> bytes:
    return base64.urlsafe_b64encode(hashlib.sha256(secret.encode("utf-8")).digest())


class SecretManager:
    """Fernet encryption for OAuth tokens stored on linked accounts."""

    def __init__(self, key: str | None = None) -> None:
        settings = get_settings()
        self._fernet = Fernet(_fernet_key(key or settings.encryption_key or settings.secret_key))

    def encrypt(self, value: str | None) -> str | None:
        if value is None:
            return None
        return self._fernet.encrypt(value.encode("utf-8")).decode("utf-8")

    def decrypt(self, token: str) -> str:
        try:
            return self._fernet.decrypt(token.encode("utf-8")).decode("utf-8")
        except InvalidToken as exc:
            raise ValueError("Invalid encryption token") from exc


class SessionSigner:
    """Timestamped, salted payload signing.

    Each salt is a separate namespace: a token signed for OAuth state never
    verifies as a bearer credential and vice versa.
    """

    def __init__(self, salt: str = ACCESS_TOKEN_SALT, max_age: int | None = None) -> None:
        self.max_age = max_age
        self._serializer = URLSafeTimedSerializer(get_settings().secret_key, salt=salt)

    def dumps(self, data: dict[str, Any]) -> str:
        return self._serializer.dumps(data)

    def loads(self, token: str) -> dict[str, Any]:
        try:
            payload = self._serializer.loads(token, max_age=self.max_age)
        except (BadSignature, SignatureExpired) as exc:
            raise ValueError("Invalid or expired token") from exc
        if not isinstance(payload, dict):
            raise ValueError("Invalid token payload")
        return payload


def access_token_signer() -> SessionSigner:
    days = get_settings().access_token_expire_days
    return SessionSigner(ACCESS_TOKEN_SALT, max_age=days * 24 * 60 * 60)


def issue_access_token(user_id: int, token_version: int) -> str:
    """Bearer credential naming the user and the session epoch it was issued in."""

    return access_token_signer().dumps({"sub": user_id, "ver": token_version})


def generate_token(nbytes: int = 32) -> str:
    return secrets.token_hex(nbytes)


def hash_token(token: str) -> str:
    """sha256 digest; single-use tokens are stored only in this form."""

    return hashlib.sha256(token.encode("utf-8")).hexdigest()
