"""
auth/tokens.py -- Stateless signed session tokens and the session cookie helpers.

Token format:
  payload   = canonical JSON of {"expires_at": <ISO 8601 UTC>, "session_id": <b64url 256-bit>}
              (sorted keys, no whitespace)
  signature = base64url(HMAC-SHA256(session_secret, payload))
  token     = base64url(payload + "." + signature)

  base64url is unpadded at both layers, which keeps the token cookie-safe
  without quoting. The payload is visible to anyone holding the token; only
  its integrity is protected.

Verification:
  - the token must be the canonical base64url encoding of its bytes, so two
    different strings can never verify as the same token
  - split at the LAST "." (the signature alphabet has no dots; the payload may)
  - recompute the HMAC over the payload bytes exactly as received and compare
    with hmac.compare_digest
  - then require now < expires_at

  Every failure returns False. The reason is logged but never returned, so a
  caller probing cookies learns nothing about why a token was rejected.

There is no server-side session table and no revocation list. A token stays
valid until it expires or the session secret on file changes.

Layer rule: no imports from api/, web/, or registry/. The cookie helpers take
a duck-typed Starlette response and the cookie name as arguments -- the name
is owned by the HTTP boundary (core/config.py), not by this module.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import logging
import secrets
from datetime import datetime, timedelta, timezone

logger = logging.getLogger("registry.auth.tokens")

_SECRET_BYTES = 32  # 256 bits for both session ids and signing secrets
_SEPARATOR = "."

# ---------------------------------------------------------------------------
# Encoding helpers
# ---------------------------------------------------------------------------


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _b64decode(text: str) -> bytes:
    """Decode unpadded base64url. Raises ValueError unless text is canonical."""
    raw = base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))
    if _b64encode(raw) != text:
        raise ValueError("non-canonical base64url")
    return raw


def _canonical_payload(session_id: str, expires_at: datetime) -> bytes:
    data = {"session_id": session_id, "expires_at": expires_at.isoformat()}
    return json.dumps(data, sort_keys=True, separators=(",", ":")).encode("utf-8")


def _sign(secret: str, payload: bytes) -> str:
    return _b64encode(hmac.new(secret.encode("utf-8"), payload, hashlib.sha256).digest())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Secret generation
# ---------------------------------------------------------------------------


def generate_secret() -> str:
    """Return 256 random bits as unpadded base64url (session ids and signing secrets)."""
    return secrets.token_urlsafe(_SECRET_BYTES)


# ---------------------------------------------------------------------------
# Mint / verify
# ---------------------------------------------------------------------------


def mint_session_token(secret: str, ttl: timedelta, now: datetime | None = None) -> str:
    """Return a new signed session token valid for ttl from now."""
    issued_at = now or _utcnow()
    payload = _canonical_payload(generate_secret(), issued_at + ttl)
    signed = payload + _SEPARATOR.encode("ascii") + _sign(secret, payload).encode("ascii")
    return _b64encode(signed)


def verify_session_token(secret: str, token: str, now: datetime | None = None) -> bool:
    """Return True if token was signed with secret and has not expired."""
    try:
        decoded = _b64decode(token).decode("utf-8")
        payload_text, sep, signature = decoded.rpartition(_SEPARATOR)
        if not sep:
            logger.warning("Session verification failed: malformed token")
            return False

        payload = payload_text.encode("utf-8")
        expected = _sign(secret, payload)
        if not hmac.compare_digest(expected.encode("ascii"), signature.encode("utf-8")):
            logger.warning("Session signature verification failed.")
            return False

        data = json.loads(payload_text)
        if not isinstance(data, dict) or not isinstance(data.get("session_id"), str):
            logger.warning("Session verification failed: unexpected payload shape")
            return False
        expires_at = datetime.fromisoformat(data["expires_at"])
        if expires_at.tzinfo is None:
            logger.warning("Session verification failed: expiry without timezone")
            return False
    except (ValueError, TypeError, KeyError) as exc:
        # binascii.Error, UnicodeDecodeError and JSONDecodeError are ValueErrors.
        logger.warning("Session verification failed: %s", type(exc).__name__)
        return False

    if not (now or _utcnow()) < expires_at:
        logger.warning("Session expired.")
        return False
    return True


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_session_cookie(response, token: str, *, cookie_name: str, max_age: int, secure: bool) -> None:
    """Write the session token as an httpOnly, SameSite=Strict cookie.

    max_age should equal the token TTL so cookie and token expire together.
    secure should be True whenever the request arrived over HTTPS.
    """
    response.set_cookie(
        cookie_name,
        value=token,
        max_age=max_age,
        path="/",
        httponly=True,
        samesite="strict",
        secure=secure,
    )


def clear_session_cookie(response, *, cookie_name: str, secure: bool) -> None:
    """Expire the session cookie (Max-Age=0) with the same attributes it was set with."""
    response.set_cookie(
        cookie_name,
        value="",
        max_age=0,
        path="/",
        httponly=True,
        samesite="strict",
        secure=secure,
    )
