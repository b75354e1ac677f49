"""
security helpers:
- Argon2 password hashing via argon2-cffi
- Access-token signing/verification via PyJWT
- Refresh secret generation and hashing
"""
from __future__ import annotations

import hashlib
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt
from argon2 import PasswordHasher
from argon2.exceptions import InvalidHashError, VerificationError

from utils.exceptions import TokenExpiredError, TokenInvalidError

ph = PasswordHasher()

REFRESH_SECRET_BYTES = 64


def hash_password(password: str) -> str:
    """Hash a plaintext password using Argon2
    """
    return ph.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    """ Verify a plaintext password using argon2
    """
    try:
        return ph.verify(password_hash, password)
    except (VerificationError, InvalidHashError):
        return False


def generate_refresh_secret() -> str:
    """512 bits from the OS CSPRNG, hex-encoded."""
    return secrets.token_hex(REFRESH_SECRET_BYTES)


def hash_refresh_secret(secret: str) -> str:
    return hashlib.sha256(secret.encode("utf-8")).hexdigest()


@dataclass(frozen=True)
class AccessTokenClaims:
    subject_id: str
    username: str
    issued_at: datetime
    expires_at: datetime

    def user_dict(self) -> dict:
        return {"id": self.subject_id, "username": self.username}


class TokenCodec:
    """
    Stateless access tokens. The key is fixed for the life of the codec;
    verify() does no I/O and is safe to call on every request.
    """

    def __init__(self, secret: str, algorithm: str = "HS256",
                 ttl: timedelta = timedelta(minutes=15), issuer: str = "session-api"):
        if not secret:
            raise ValueError("signing secret is required")
        self._secret = secret
        self.algorithm = algorithm
        self.ttl = ttl
        self.issuer = issuer

    def issue(self, subject_id: str, username: str) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "iss": self.issuer,
            "sub": str(subject_id),
            "username": username,
            "iat": int(now.timestamp()),
            "exp": int((now + self.ttl).timestamp()),
            "type": "access",
        }
        return jwt.encode(payload, self._secret, algorithm=self.algorithm)

    def verify(self, token: str) -> AccessTokenClaims:
        """
        Decode and validate. Raises TokenExpiredError for a well-signed token
        past its exp, TokenInvalidError for anything else.
        """
        try:
            decoded = jwt.decode(
                token,
                self._secret,
                algorithms=[self.algorithm],
                issuer=self.issuer,
                options={"require": ["exp", "iat", "sub"]},
            )
        except jwt.ExpiredSignatureError:
            raise TokenExpiredError(clear_cookies=False)
        except jwt.InvalidTokenError:
            raise TokenInvalidError()

        if decoded.get("type") != "access" or not decoded.get("username"):
            raise TokenInvalidError()
        return AccessTokenClaims(
            subject_id=decoded["sub"],
            username=decoded["username"],
            issued_at=datetime.fromtimestamp(decoded["iat"], tz=timezone.utc),
            expires_at=datetime.fromtimestamp(decoded["exp"], tz=timezone.utc),
        )
