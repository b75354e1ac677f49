import logging

from flask import Blueprint
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from api.extensions import get_auth

logger = logging.getLogger(__name__)

bp = Blueprint("health", __name__)


@bp.get("/health")
def health():
    """
    Health check: process up, token store reachable, reaper state
    ---
    tags:
      - Health
    responses:
      200:
        description: API and store are up
      503:
        description: Token store unreachable
    """
    auth = get_auth()
    try:
        auth.storage.get_session().execute(text("SELECT 1"))
        database = "ok"
    except SQLAlchemyError:
        logger.exception("Health check could not reach the token store")
        database = "unavailable"
    status = 200 if database == "ok" else 503
    return {
        "status": "ok" if status == 200 else "degraded",
        "database": database,
        "reaper": "running" if auth.reaper.running else "stopped",
        "version": "1.0.0",
    }, status
