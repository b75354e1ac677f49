"""
Per-app wiring of storage and session services.

Everything lives on app.extensions["session_auth"]; nothing is a module global,
so tests can build as many isolated apps as they like.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from flask import current_app

from models.db_storage import DBStorage
from models.refresh_token_store import RefreshTokenStore
from utils.reaper import ExpiryReaper
from utils.security import TokenCodec
from utils.sessions import (
    CredentialVerifier,
    RevocationManager,
    SessionIssuer,
    SessionRotator,
)

EXTENSION_KEY = "session_auth"


@dataclass
class SessionAuth:
    storage: DBStorage
    store: RefreshTokenStore
    codec: TokenCodec
    verifier: CredentialVerifier
    issuer: SessionIssuer
    rotator: SessionRotator
    revocation: RevocationManager
    reaper: ExpiryReaper

    @classmethod
    def from_config(cls, config, storage: DBStorage) -> "SessionAuth":
        store = RefreshTokenStore(storage)
        codec = TokenCodec(
            config["JWT_SECRET"],
            algorithm=config["JWT_ALGORITHM"],
            ttl=config["ACCESS_TOKEN_EXPIRES"],
            issuer=config["JWT_ISSUER"],
        )
        issuer = SessionIssuer(codec, store, refresh_ttl=config["REFRESH_TOKEN_EXPIRES"])
        return cls(
            storage=storage,
            store=store,
            codec=codec,
            verifier=CredentialVerifier(storage),
            issuer=issuer,
            rotator=SessionRotator(
                storage,
                store,
                issuer,
                revoke_all_on_reuse=config["REVOKE_ALL_ON_REUSE"],
                reuse_grace=timedelta(seconds=config["REUSE_GRACE_SECONDS"]),
            ),
            revocation=RevocationManager(store),
            reaper=ExpiryReaper(store, interval_seconds=config["REAPER_INTERVAL_SECONDS"]),
        )

    def shutdown(self):
        self.reaper.stop()
        self.storage.dispose()


def get_auth() -> SessionAuth:
    return current_app.extensions[EXTENSION_KEY]
