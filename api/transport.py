"""
Cookie transport for the token pair.

Two httpOnly, SameSite=Strict cookies with separate lifetimes and paths:
the access cookie goes to every route, the refresh cookie only to the
auth blueprint. Bearer headers are accepted for the access token only.
"""
from __future__ import annotations

from flask import current_app, request

from utils.sessions import TokenPair


def _cookie_kwargs(path: str) -> dict:
    return {
        "httponly": True,
        "secure": current_app.config.get("COOKIE_SECURE", True),
        "samesite": "Strict",
        "path": path,
    }


def refresh_cookie_path() -> str:
    return current_app.config["AUTH_URL_PREFIX"]


def set_auth_cookies(response, pair: TokenPair):
    cfg = current_app.config
    response.set_cookie(
        cfg["ACCESS_COOKIE_NAME"],
        pair.access_token,
        max_age=int(cfg["ACCESS_TOKEN_EXPIRES"].total_seconds()),
        **_cookie_kwargs("/"),
    )
    response.set_cookie(
        cfg["REFRESH_COOKIE_NAME"],
        pair.refresh_secret,
        max_age=int(cfg["REFRESH_TOKEN_EXPIRES"].total_seconds()),
        **_cookie_kwargs(refresh_cookie_path()),
    )
    return response


def clear_auth_cookies(response):
    cfg = current_app.config
    # path must match the one used when setting, or the browser keeps the cookie
    response.delete_cookie(cfg["ACCESS_COOKIE_NAME"], **_cookie_kwargs("/"))
    response.delete_cookie(cfg["REFRESH_COOKIE_NAME"], **_cookie_kwargs(refresh_cookie_path()))
    return response


def extract_access_token() -> str | None:
    token = request.cookies.get(current_app.config["ACCESS_COOKIE_NAME"])
    if token:
        return token
    auth = request.headers.get("Authorization", "")
    if auth.startswith("Bearer "):
        return auth.split(" ", 1)[1].strip() or None
    return None


def extract_refresh_secret() -> str | None:
    return request.cookies.get(current_app.config["REFRESH_COOKIE_NAME"]) or None
