"""
auth/models.py -- Domain dataclasses and result enums for the auth core.

Pattern: Data class (pure data container, zero logic beyond (de)serialization).
The store and manager do the work.

Layer rule: no imports from api/, web/, or registry/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

_REQUIRED_FIELDS = ("password_hash", "session_secret", "created_at")


@dataclass(frozen=True)
class CredentialRecord:
    """The single administrator's persisted credentials.

    password_hash and session_secret are both non-empty once written. The
    record is the single source of truth for "is the system configured".
    created_at is set once by setup; updated_at is added by a password change.
    """

    password_hash: str
    session_secret: str
    created_at: str
    updated_at: str | None = None

    def to_dict(self) -> dict:
        data = {
            "password_hash": self.password_hash,
            "session_secret": self.session_secret,
            "created_at": self.created_at,
        }
        if self.updated_at is not None:
            data["updated_at"] = self.updated_at
        return data

    @classmethod
    def from_dict(cls, data: object) -> CredentialRecord:
        """Build a record from parsed JSON. Raises ValueError if a field is missing or blank."""
        if not isinstance(data, dict):
            raise ValueError("credential file must contain a JSON object")
        for name in _REQUIRED_FIELDS:
            value = data.get(name)
            if not isinstance(value, str) or not value:
                raise ValueError(f"missing or empty field: {name}")
        updated_at = data.get("updated_at")
        if updated_at is not None and not isinstance(updated_at, str):
            raise ValueError("updated_at must be a string")
        return cls(
            password_hash=data["password_hash"],
            session_secret=data["session_secret"],
            created_at=data["created_at"],
            updated_at=updated_at,
        )


class SetupResult(str, Enum):
    success = "success"
    already_configured = "already_configured"
    weak_password = "weak_password"
    persistence_failure = "persistence_failure"


class ChangePasswordResult(str, Enum):
    success = "success"
    not_configured = "not_configured"
    invalid_old_password = "invalid_old_password"
    weak_password = "weak_password"
    persistence_failure = "persistence_failure"
