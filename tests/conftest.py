import pytest
from datetime import timedelta

from api import create_app
from api.extensions import get_auth
from models.base_model import utcnow
from models.db_storage import DBStorage
from models.user import User
from utils.security import hash_password, hash_refresh_secret, generate_refresh_secret

ALICE_PASSWORD = "correct"


# Custom pytest marks for organizing tests
def pytest_configure(config):
    config.addinivalue_line("markers", "auth: authentication endpoint tests")
    config.addinivalue_line("markers", "concurrency: tests that race threads against the store")


@pytest.fixture()
def app(tmp_path):
    """Isolated app on a throwaway SQLite file (threads need a shared on-disk db)."""
    storage = DBStorage(f"sqlite:///{tmp_path / 'auth.db'}")
    app = create_app("testing", storage=storage)
    with app.app_context():
        yield app
    app.extensions["session_auth"].shutdown()


@pytest.fixture()
def auth(app):
    return get_auth()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def alice(auth):
    user = User(username="alice", password_hash=hash_password(ALICE_PASSWORD))
    auth.storage.new(user)
    auth.storage.save()
    return user


@pytest.fixture()
def make_token(auth):
    """Insert a refresh record directly; returns (secret, record)."""
    def _make(user, expires_in=timedelta(days=7), revoked=False):
        secret = generate_refresh_secret()
        record = auth.store.insert(user.id, hash_refresh_secret(secret), utcnow() + expires_in)
        if revoked:
            auth.store.revoke(record.token_hash)
        return secret, record

    return _make


@pytest.fixture()
def cookie_names(app):
    return app.config["ACCESS_COOKIE_NAME"], app.config["REFRESH_COOKIE_NAME"]


@pytest.fixture()
def set_refresh_cookie(client, app):
    def _set(secret):
        client.set_cookie(app.config["REFRESH_COOKIE_NAME"], secret, path=app.config["AUTH_URL_PREFIX"])

    return _set


@pytest.fixture()
def set_cookie_headers():
    """Set-Cookie headers of a response, keyed by cookie name."""
    def _parse(response) -> dict:
        headers = {}
        for header in response.headers.getlist("Set-Cookie"):
            headers[header.split("=", 1)[0]] = header
        return headers

    return _parse
