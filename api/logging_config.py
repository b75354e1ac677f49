"""
Logging setup and request ids.

- one stream handler on the root logger, request id in every line
- RedactingFilter masks credential-looking keys in dict log args
- X-Request-ID is taken from the request or generated, and echoed back
"""
import logging
import uuid

from flask import g, has_request_context, request

REQUEST_ID_HEADER = "X-Request-ID"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(request_id)s] %(name)s: %(message)s"
SENSITIVE_KEYS = ("password", "token", "secret", "authorization", "cookie")
REDACTED = "[REDACTED]"


def _redact(value, depth=0):
    if depth > 5 or not isinstance(value, dict):
        return value
    masked = {}
    for key, item in value.items():
        if any(s in str(key).lower() for s in SENSITIVE_KEYS):
            masked[key] = REDACTED
        else:
            masked[key] = _redact(item, depth + 1)
    return masked


class RequestIdFilter(logging.Filter):
    def filter(self, record):
        if has_request_context():
            record.request_id = g.get("request_id", "-")
        else:
            record.request_id = "-"
        return True


class RedactingFilter(logging.Filter):
    def filter(self, record):
        # logger.info("msg %s", {...}) stores a lone mapping as record.args
        if isinstance(record.args, dict):
            record.args = _redact(record.args)
        elif isinstance(record.args, tuple):
            record.args = tuple(_redact(a) for a in record.args)
        return True


def configure_logging(app):
    root = logging.getLogger()
    if not any(getattr(h, "_session_api", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler._session_api = True
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler.addFilter(RequestIdFilter())
        handler.addFilter(RedactingFilter())
        root.addHandler(handler)
    root.setLevel(app.config.get("LOG_LEVEL", "INFO"))


def init_request_id(app):
    @app.before_request
    def assign_request_id():
        incoming = request.headers.get(REQUEST_ID_HEADER)
        g.request_id = incoming or str(uuid.uuid4())

    @app.after_request
    def add_request_id_header(response):
        response.headers[REQUEST_ID_HEADER] = g.get("request_id", "")
        return response
