"""
auth/manager.py -- AuthManager: the public face of the auth core.

State machine:
  Uninitialized --setup()--> Configured

  There is no API transition back. Deleting the credential file out-of-band
  and calling reload() (or restarting) returns the manager to Uninitialized.

Concurrency:
  One AuthManager serves every request thread. The loaded credentials are
  held as a single frozen snapshot; readers (is_configured, verify_password,
  verify_session, create_session) take one reference to it and never lock.
  setup(), change_password() and reload() replace the snapshot while holding
  _lock, which also spans setup()'s check-then-write so two concurrent setup
  calls cannot both observe Uninitialized and both write the file.

Sessions vs passwords:
  change_password() rewrites only the password hash. The session secret is
  untouched, so tokens issued before a password change stay valid until they
  expire. Rotating the secret means replacing the credential file.

Logging: informational, warning and error events only. Passwords, hashes,
tokens and secrets never appear in log messages.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from auth.errors import AuthNotInitialized, CredentialFileCorrupt, CredentialStoreError
from auth.models import ChangePasswordResult, CredentialRecord, SetupResult
from auth.passwords import DEFAULT_ROUNDS, hash_password, verify_password
from auth.store import CredentialStore
from auth.tokens import generate_secret, mint_session_token, verify_session_token

logger = logging.getLogger("registry.auth")

DEFAULT_SESSION_TTL = timedelta(hours=24)
MIN_PASSWORD_LENGTH = 12


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class _Credentials:
    password_hash: str
    session_secret: str


class AuthManager:
    """One-time setup, password verification and stateless sessions for one admin.

    Usage:
        auth = AuthManager(CredentialStore(".registry_admin_config"))
        if not auth.is_configured():
            auth.setup("correct-horse-battery")
        if auth.verify_password(password):
            token = auth.create_session()
        auth.verify_session(token)   # True until the TTL elapses

    clock must return timezone-aware datetimes; tests inject a fake one.
    """

    def __init__(
        self,
        store: CredentialStore,
        *,
        session_ttl: timedelta = DEFAULT_SESSION_TTL,
        min_password_length: int = MIN_PASSWORD_LENGTH,
        bcrypt_rounds: int = DEFAULT_ROUNDS,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = store
        self._session_ttl = session_ttl
        self._min_password_length = min_password_length
        self._bcrypt_rounds = bcrypt_rounds
        self._clock = clock
        self._lock = threading.Lock()
        self._credentials: _Credentials | None = None
        self.reload()

    @property
    def session_ttl(self) -> timedelta:
        return self._session_ttl

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    def reload(self) -> bool:
        """Re-read the credential file. Returns the resulting is_configured()."""
        with self._lock:
            self._credentials = self._load_credentials()
            return self._credentials is not None

    def _load_credentials(self) -> _Credentials | None:
        try:
            record = self._store.load()
        except CredentialFileCorrupt as exc:
            logger.error("Admin configuration is corrupt, setup required: %s", exc)
            return None
        except CredentialStoreError as exc:
            logger.error("Failed to load admin configuration: %s", exc)
            return None
        if record is None:
            logger.info("No admin configuration found. One-time setup required.")
            return None
        logger.info("Admin configuration loaded successfully.")
        return _Credentials(record.password_hash, record.session_secret)

    def is_configured(self) -> bool:
        return self._credentials is not None

    # ------------------------------------------------------------------
    # Setup and password management
    # ------------------------------------------------------------------

    def setup(self, password: str) -> SetupResult:
        """Create the credential record exactly once."""
        with self._lock:
            if self._credentials is not None:
                logger.warning("Admin is already set up. Use change_password to update.")
                return SetupResult.already_configured

            # The file may have been written by another process since startup.
            on_disk = self._load_credentials()
            if on_disk is not None:
                self._credentials = on_disk
                logger.warning("Admin configuration appeared on disk; setup refused.")
                return SetupResult.already_configured

            if len(password) < self._min_password_length:
                logger.error("Setup rejected: password must be at least %d characters long.", self._min_password_length)
                return SetupResult.weak_password

            record = CredentialRecord(
                password_hash=hash_password(password, rounds=self._bcrypt_rounds),
                session_secret=generate_secret(),
                created_at=self._clock().isoformat(),
            )
            try:
                self._store.save(record)
            except CredentialStoreError as exc:
                logger.error("Failed to save admin configuration: %s", exc)
                return SetupResult.persistence_failure

            self._credentials = _Credentials(record.password_hash, record.session_secret)
            logger.info("Admin setup completed successfully.")
            return SetupResult.success

    def verify_password(self, password: str) -> bool:
        credentials = self._credentials
        if credentials is None:
            return False
        if not verify_password(password, credentials.password_hash):
            logger.warning("Admin password verification failed.")
            return False
        return True

    def change_password(self, old_password: str, new_password: str) -> ChangePasswordResult:
        """Replace the password hash. Existing sessions remain valid."""
        with self._lock:
            credentials = self._credentials
            if credentials is None:
                logger.error("Admin not set up. Use setup() first.")
                return ChangePasswordResult.not_configured

            if not verify_password(old_password, credentials.password_hash):
                logger.warning("Old password verification failed.")
                return ChangePasswordResult.invalid_old_password

            if len(new_password) < self._min_password_length:
                logger.error("New password must be at least %d characters long.", self._min_password_length)
                return ChangePasswordResult.weak_password

            new_hash = hash_password(new_password, rounds=self._bcrypt_rounds)
            updated_at = self._clock().isoformat()
            try:
                self._store.update(
                    lambda record: dataclasses.replace(record, password_hash=new_hash, updated_at=updated_at)
                )
            except CredentialStoreError as exc:
                logger.error("Failed to change password: %s", exc)
                return ChangePasswordResult.persistence_failure

            self._credentials = dataclasses.replace(credentials, password_hash=new_hash)
            logger.info("Password changed successfully.")
            return ChangePasswordResult.success

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    def create_session(self) -> str:
        """Mint a session token. Raises AuthNotInitialized before setup."""
        credentials = self._credentials
        if credentials is None:
            raise AuthNotInitialized("Auth not initialized")
        return mint_session_token(credentials.session_secret, self._session_ttl, now=self._clock())

    def verify_session(self, token: str | None) -> bool:
        credentials = self._credentials
        if credentials is None or not token:
            return False
        return verify_session_token(credentials.session_secret, token, now=self._clock())
