import atexit
import logging

from flask import Flask
from flasgger import Swagger
from flask_cors import CORS

from .config import get_config, validate_config
from .errors import register_error_handlers
from .extensions import EXTENSION_KEY, SessionAuth
from .logging_config import configure_logging, init_request_id
from models.db_storage import DBStorage

logger = logging.getLogger(__name__)

# Minimal Swagger config: exposes /swagger.json and UI at /apidocs
SWAGGER_TEMPLATE = {
    "swagger": "2.0",
    "info": {
        "title": "Site Session API",
        "version": "1.0.0",
        "description": "Login, refresh-token rotation and logout for the marketing site admin.",
    },
    "basePath": "/",
    "schemes": ["http", "https"],
    "securityDefinitions": {
        "Bearer": {
            "type": "apiKey",
            "name": "Authorization",
            "in": "header",
            "description": "Enter the token with the `Bearer ` prefix, e.g. \"Bearer abcde12345\"."
        }
    }
}

SWAGGER_CONFIG = {
    "headers": [],
    "specs": [
        {
            "endpoint": "apispec_1",
            "route": "/swagger.json",
            "rule_filter": lambda rule: True,   # include all endpoints
            "model_filter": lambda tag: True,   # include all models
        }
    ],
    "static_url_path": "/flasgger_static",
    "swagger_ui": True,
    "specs_route": "/apidocs/",
}


def create_app(config_name: str | None = None, storage: DBStorage | None = None,
               overrides: dict | None = None) -> Flask:
    """
    Application factory: creates and configures the Flask app.

    `storage` may be injected (tests); otherwise one is built from
    DATABASE_URL. Either way it is opened here and closed at exit.
    """
    app = Flask(__name__)

    # Load configuration (reads .env via get_config)
    app.config.from_object(get_config(config_name))
    if overrides:
        app.config.update(overrides)
    validate_config(app.config)

    configure_logging(app)
    init_request_id(app)

    # Credentialed CORS: the front end sends the auth cookies cross-origin
    CORS(app, resources={r"/*": {"origins": app.config.get("CORS_ORIGINS", "*")}}, supports_credentials=True)

    # Swagger UI and JSON
    Swagger(app, template=SWAGGER_TEMPLATE, config=SWAGGER_CONFIG)

    register_error_handlers(app)

    if storage is None:
        storage = DBStorage(app.config["DATABASE_URL"], echo=app.config.get("SQL_ECHO", False))
    storage.reload()
    auth = SessionAuth.from_config(app.config, storage)
    app.extensions[EXTENSION_KEY] = auth

    from .health import bp as health_bp
    from .auth import bp as auth_bp
    from .cli import register_commands

    app.register_blueprint(health_bp, url_prefix="/api/v1")
    app.register_blueprint(auth_bp, url_prefix=app.config["AUTH_URL_PREFIX"])
    register_commands(app)

    # Ensure the DB session is removed at the end of each request/app context
    @app.teardown_appcontext
    def remove_session(exception=None):
        # This calls scoped_session.remove(), preventing connection leaks
        storage.close()

    if app.config.get("REAPER_ENABLED"):
        auth.reaper.start()
    atexit.register(auth.shutdown)

    @app.route("/")
    def root():
        return {
            "message": "Welcome to Site Session API",
            "docs": "/apidocs/",
            "health": "/api/v1/health",
        }, 200

    logger.info("App created (env=%s)", app.config["APP_ENV"])
    return app
