"""
Authentication errors surfaced to the HTTP layer as 401s.

Each carries a machine-readable `code`. `clear_cookies` tells the error
handler to drop both auth cookies on the way out.
"""
from __future__ import annotations


class AuthError(Exception):
    code = "UNAUTHORIZED"
    message = "Authentication required"
    status = 401
    clear_cookies = False

    def __init__(self, message: str | None = None, code: str | None = None,
                 clear_cookies: bool | None = None):
        if message is not None:
            self.message = message
        if code is not None:
            self.code = code
        if clear_cookies is not None:
            self.clear_cookies = clear_cookies
        super().__init__(self.message)


class CredentialError(AuthError):
    """Bad username or password. Never says which."""
    code = "INVALID_CREDENTIALS"
    message = "Invalid credentials"


class MissingTokenError(AuthError):
    code = "NO_TOKEN"
    message = "No token provided"


class TokenExpiredError(AuthError):
    """Access token past its exp; recoverable by refreshing."""
    code = "TOKEN_EXPIRED"
    message = "Access token has expired. Please refresh your token."


class TokenInvalidError(AuthError):
    code = "INVALID_TOKEN"
    message = "Invalid token"
    clear_cookies = True


class UserMissingError(AuthError):
    code = "USER_NOT_FOUND"
    message = "User not found"
    clear_cookies = True


class ConfigError(RuntimeError):
    """Raised at startup when required settings are missing or weak."""
