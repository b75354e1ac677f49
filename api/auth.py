"""
Authentication blueprint:
- POST /auth/login
- POST /auth/refresh
- POST /auth/logout
- POST /auth/logout-all
- GET  /auth/verify
- GET  /auth/me

The implementation:
- Uses argon2 for password verification (via utils.security)
- Issues short-lived access JWTs and long-lived opaque refresh secrets
- Stores only the SHA-256 of refresh secrets (RefreshToken model) so they can be rotated and revoked
- Carries both in httpOnly cookies (api.transport); refresh is cookie-only
"""
from __future__ import annotations

import logging

from flask import Blueprint, request, jsonify, g
from sqlalchemy.exc import SQLAlchemyError

from models.schemas.user import LoginSchema, UserOutSchema

from api.errors import auth_error_response
from api.extensions import get_auth
from api.transport import (
    set_auth_cookies,
    clear_auth_cookies,
    extract_access_token,
    extract_refresh_secret,
)
from utils.decorators import jwt_required
from utils.exceptions import AuthError, MissingTokenError

logger = logging.getLogger(__name__)

bp = Blueprint("auth", __name__, url_prefix="/auth")

login_schema = LoginSchema()
user_out_schema = UserOutSchema()


@bp.post("/login")
def login():
    """
    Login: sets the access and refresh cookies
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           required: [username, password]
           properties:
             username: { type: string }
             password: { type: string }
    responses:
      200:
        description: OK (cookies set)
      401:
        description: INVALID_CREDENTIALS
      422:
        description: Validation error
    """
    payload = login_schema.load(request.get_json(silent=True) or {})

    auth = get_auth()
    user = auth.verifier.verify(payload["username"], payload["password"])
    pair = auth.issuer.issue(user)
    logger.info("User %s logged in", user.id)

    response = jsonify({"success": True, "user": user_out_schema.dump(user)})
    set_auth_cookies(response, pair)
    return response, 200


@bp.post("/refresh")
def refresh():
    """
    Rotate the refresh cookie: revoke the presented secret, issue a new pair
    ---
    tags:
      - Auth
    responses:
      200:
        description: OK (both cookies replaced)
      401:
        description: NO_REFRESH_TOKEN, INVALID_REFRESH_TOKEN or USER_NOT_FOUND
    """
    pair = get_auth().rotator.rotate(extract_refresh_secret())

    response = jsonify({"success": True, "message": "Token refreshed successfully"})
    set_auth_cookies(response, pair)
    return response, 200


@bp.post("/logout")
def logout():
    """
    logout: revokes the refresh cookie if present and clears both cookies
    ---
    tags:
      - Auth
    responses:
      200:
        description: Logged out
    """
    secret = extract_refresh_secret()
    message = "Logged out successfully"
    if secret:
        try:
            get_auth().revocation.revoke_one(secret)
        except SQLAlchemyError:
            # the client is logged out either way; the row expires on its own
            logger.exception("Failed to revoke refresh token on logout")
            message = "Logged out"

    response = jsonify({"success": True, "message": message})
    clear_auth_cookies(response)
    return response, 200


@bp.post("/logout-all")
@jwt_required()
def logout_all():
    """
    logout from every device: revokes all refresh tokens of the caller
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: All sessions revoked
      401:
        description: Missing, expired or invalid access token
    """
    count = get_auth().revocation.revoke_all(g.current_claims.subject_id)

    response = jsonify({"success": True, "message": "Logged out from all devices", "revoked": count})
    clear_auth_cookies(response)
    return response, 200


def _claims_or_error(flag: str):
    """Verify the access token; on failure return the 401 response instead."""
    token = extract_access_token()
    try:
        if not token:
            raise MissingTokenError()
        return get_auth().codec.verify(token), None
    except AuthError as err:
        return None, auth_error_response(err, **{flag: False})


@bp.get("/verify")
def verify():
    """
    Check the access token
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: "{valid: true, user}"
      401:
        description: NO_TOKEN, TOKEN_EXPIRED or INVALID_TOKEN
    """
    claims, error = _claims_or_error("valid")
    if error:
        return error
    return jsonify({"valid": True, "user": claims.user_dict()}), 200


@bp.get("/me")
def me():
    """
    Current user from the access token
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: "{authenticated: true, user}"
      401:
        description: NO_TOKEN, TOKEN_EXPIRED or INVALID_TOKEN
    """
    claims, error = _claims_or_error("authenticated")
    if error:
        return error
    return jsonify({"authenticated": True, "user": claims.user_dict()}), 200
