"""
auth/errors.py -- Exception taxonomy for the auth core.

Only two kinds of failure ever cross the AuthManager boundary as exceptions:
  AuthNotInitialized -- create_session() called before setup. The HTTP layer
      must check is_configured() first, so this is a caller contract violation.
  (nothing else) -- store errors are converted to SetupResult /
      ChangePasswordResult members inside the manager.

CredentialStoreError and its subclasses are raised by auth/store.py and caught
by auth/manager.py.
"""


class AuthError(Exception):
    """Base class for auth core errors."""


class CredentialStoreError(AuthError):
    """The credential file could not be read or written."""


class CredentialFileCorrupt(CredentialStoreError):
    """The credential file exists but is malformed or missing required fields.

    Recoverable: the manager logs it and behaves as not configured.
    """


class CredentialPersistenceError(CredentialStoreError):
    """Disk I/O or serialization failed while reading or writing the file."""


class AuthNotInitialized(AuthError, RuntimeError):
    """A session was requested before the one-time setup completed."""
