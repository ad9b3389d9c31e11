from __future__ import annotations

import hmac
import time
from dataclasses import dataclass
from typing import Any, Mapping, Optional

from itsdangerous import BadSignature, URLSafeTimedSerializer
from werkzeug.security import check_password_hash, generate_password_hash

from utils.errors import AuthError, ValidationError

TOKEN_SALT = "admin-session"


def hash_password(plain: str, method: str = "pbkdf2:sha256", salt_length: int = 16) -> str:
    plain = (plain or "").strip()
    return generate_password_hash(plain, method=method, salt_length=salt_length)


def is_hashed(value: Optional[str]) -> bool:
    if not value:
        return False
    v = str(value)
    # Werkzeug hashes usually start with method prefix like 'pbkdf2:sha256:'
    return v.startswith("pbkdf2:") or v.startswith("scrypt:")


def verify_password(stored_value: str, candidate: str) -> bool:
    """Verify a configured password which may be hashed or plain text.

    - If stored_value looks hashed, use check_password_hash.
    - Otherwise, fall back to a constant-time string comparison.
    """
    if not stored_value:
        return False
    if is_hashed(stored_value):
        try:
            return check_password_hash(stored_value, candidate or "")
        except ValueError:
            return False
    return hmac.compare_digest((stored_value or "").encode("utf-8"), (candidate or "").encode("utf-8"))


@dataclass(frozen=True)
class Identity:
    email: str
    password: str
    name: str = "Administrator"
    role: str = "admin"

    @classmethod
    def from_config(cls, cfg: Mapping[str, Any]) -> "Identity":
        return cls(
            email=cfg.get("ADMIN_EMAIL") or "",
            password=cfg.get("ADMIN_PASSWORD") or "",
            name=cfg.get("ADMIN_NAME") or "Administrator",
            role=cfg.get("ADMIN_ROLE") or "admin",
        )

    @property
    def configured(self) -> bool:
        return bool(self.email and self.password)

    def public(self) -> dict[str, str]:
        return {"email": self.email, "name": self.name, "role": self.role}


class CredentialVerifier:
    """Checks the single admin identity and issues/validates session tokens.

    Tokens are itsdangerous-signed payloads ``{email, name, role, iat, exp}``.
    There is no server-side session state: a token stays valid until ``exp``.
    """

    def __init__(self, identity: Identity, secret_key: str, ttl_hours: float = 24):
        if not secret_key:
            raise ValueError("secret_key is required to sign tokens")
        self.identity = identity
        self.ttl_seconds = int(ttl_hours * 3600)
        self._serializer = URLSafeTimedSerializer(secret_key, salt=TOKEN_SALT)

    def login(self, email: Optional[str], password: Optional[str], now: Optional[float] = None) -> tuple[str, dict]:
        email = "" if email is None else str(email)
        password = "" if password is None else str(password)
        if not email.strip() or not password:
            raise ValidationError("Email and password are required", code="MissingFields")
        # Both checks always run.
        email_ok = self.identity.configured and hmac.compare_digest(
            email.encode("utf-8"), self.identity.email.encode("utf-8")
        )
        password_ok = verify_password(self.identity.password, password)
        if not (email_ok and password_ok):
            raise AuthError("Invalid email or password", code="InvalidCredentials")
        return self.issue_token(now=now), self.identity.public()

    def issue_token(self, now: Optional[float] = None) -> str:
        issued = int(now if now is not None else time.time())
        payload = dict(self.identity.public(), iat=issued, exp=issued + self.ttl_seconds)
        return self._serializer.dumps(payload)

    def verify(self, token: Optional[str], now: Optional[float] = None) -> dict:
        try:
            payload = self._serializer.loads(token or "")
        except BadSignature:
            raise AuthError("Invalid or expired token", code="InvalidOrExpiredToken") from None
        if not isinstance(payload, dict) or not isinstance(payload.get("exp"), int):
            raise AuthError("Invalid or expired token", code="InvalidOrExpiredToken")
        current = now if now is not None else time.time()
        if current >= payload["exp"]:
            raise AuthError("Invalid or expired token", code="InvalidOrExpiredToken")
        return payload
