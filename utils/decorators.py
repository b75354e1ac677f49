from __future__ import annotations
from functools import wraps
from flask import g

from api.extensions import get_auth
from api.transport import extract_access_token
from utils.exceptions import MissingTokenError


def jwt_required():
    """
    Verify the access token (cookie, then Bearer header) and expose its
    claims as g.current_claims.

    Signature check only: no storage round-trip. Failures raise
    MissingTokenError / TokenExpiredError / TokenInvalidError for the
    error handlers to render.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            token = extract_access_token()
            if not token:
                raise MissingTokenError()
            g.current_claims = get_auth().codec.verify(token)
            return fn(*args, **kwargs)

        return wrapper

    return decorator
