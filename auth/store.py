"""
auth/store.py -- File-backed persistence for the administrator credential record.

Pattern: Repository. CredentialStore is the only code that touches the
credential file; AuthManager never opens it directly.

File format: a single JSON object (indented, UTF-8) with password_hash,
session_secret, created_at and optional updated_at. Default path is
.registry_admin_config relative to the working directory (core/config.py).

Write semantics:
  Every save is a whole-file replacement: the JSON is written to a temp file
  in the same directory and moved over the target with os.replace(), so a
  crash mid-write never leaves a half-written record behind.

  After the replace, access is restricted to the owning account (0o600) with
  os.chmod(). If that step fails the write is NOT rolled back -- the failure
  is logged as a warning and the save still counts as successful.

Load semantics:
  Missing file           -> None (never configured, not an error)
  Malformed / incomplete -> CredentialFileCorrupt
  Unreadable             -> CredentialPersistenceError

Layer rule: no imports from api/, web/, or registry/.
"""

from __future__ import annotations

import json
import logging
import os
import stat
import tempfile
from collections.abc import Callable
from pathlib import Path

from auth.errors import CredentialFileCorrupt, CredentialPersistenceError
from auth.models import CredentialRecord

logger = logging.getLogger("registry.auth.store")

_OWNER_ONLY = stat.S_IRUSR | stat.S_IWUSR  # 0o600


class CredentialStore:
    """Repository for the single CredentialRecord.

    Usage:
        store = CredentialStore(Path(".registry_admin_config"))
        record = store.load()          # None if never configured
        store.save(record)
        store.update(lambda r: dataclasses.replace(r, password_hash=new_hash))
    """

    def __init__(self, path: str | os.PathLike) -> None:
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.is_file()

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def load(self) -> CredentialRecord | None:
        """Return the stored record, or None when the file does not exist."""
        try:
            content = self.path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            raise CredentialPersistenceError(f"cannot read {self.path}: {exc}") from exc

        try:
            return CredentialRecord.from_dict(json.loads(content))
        except ValueError as exc:
            # json.JSONDecodeError is a ValueError subclass.
            raise CredentialFileCorrupt(f"malformed credential file {self.path}: {exc}") from exc

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def save(self, record: CredentialRecord) -> bool:
        """Atomically replace the credential file with record.

        Returns True if the file is restricted to owner read/write afterwards,
        False if restricting it failed (logged, not raised).
        Raises CredentialPersistenceError if the write itself failed.
        """
        try:
            payload = json.dumps(record.to_dict(), indent=2)
        except (TypeError, ValueError) as exc:
            raise CredentialPersistenceError(f"cannot serialize credential record: {exc}") from exc

        directory = self.path.parent
        tmp_name = None
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=directory, prefix=f".{self.path.name}.", suffix=".tmp")
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(payload)
                fh.flush()
                os.fsync(fh.fileno())
            os.replace(tmp_name, self.path)
            tmp_name = None
        except OSError as exc:
            raise CredentialPersistenceError(f"cannot write {self.path}: {exc}") from exc
        finally:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)

        return self._restrict_permissions()

    def update(self, mutator: Callable[[CredentialRecord], CredentialRecord]) -> CredentialRecord:
        """Read-modify-write the stored record and return the new version.

        Raises CredentialPersistenceError if there is no record to update, and
        propagates CredentialFileCorrupt from load().
        """
        current = self.load()
        if current is None:
            raise CredentialPersistenceError(f"no credential record at {self.path}")
        updated = mutator(current)
        self.save(updated)
        return updated

    def _restrict_permissions(self) -> bool:
        try:
            os.chmod(self.path, _OWNER_ONLY)
        except OSError as exc:
            logger.warning(
                "Failed to restrict permissions on %s (%s). Run: chmod 600 %s",
                self.path,
                exc,
                self.path,
            )
            return False
        return True
