"""Read the visitor's GitHub token out of a signed session cookie.

Cookie format: ``<payload>.<signature>``, both base64url without padding.
The payload is JSON ``{"access_token": ..., "login": ..., "exp": <unix>}``
and the signature is HMAC-SHA256 of the encoded payload keyed with
SESSION_SECRET. Anything that fails to verify reads as "no session".
"""

import base64
import hashlib
import hmac
import json
import time

COOKIE_NAME = "octodash_session"


def _b64encode(raw: bytes) -> str:
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode()


def _b64decode(text: str) -> bytes:
    return base64.urlsafe_b64decode(text + "=" * (-len(text) % 4))


def _signature(secret: str, payload: str) -> str:
    digest = hmac.new(secret.encode(), payload.encode(), hashlib.sha256).digest()
    return _b64encode(digest)


def sign_session(secret: str, access_token: str, login: str = "", max_age: int = 86400, now=None) -> str:
    """Encode a session cookie value. Used by the launcher and tests."""
    issued = time.time() if now is None else now
    payload = _b64encode(json.dumps(
        {"access_token": access_token, "login": login, "exp": int(issued + max_age)},
        separators=(",", ":"),
    ).encode())
    return f"{payload}.{_signature(secret, payload)}"


def read_session_token(cookie: str | None, secret: str, now=None) -> str | None:
    """Return the access token from a valid, unexpired cookie, else None."""
    if not cookie or not secret or "." not in cookie:
        return None
    payload, _, sig = cookie.partition(".")
    if not hmac.compare_digest(sig.encode(), _signature(secret, payload).encode()):
        return None
    try:
        data = json.loads(_b64decode(payload))
    except (ValueError, UnicodeDecodeError):
        return None
    if not isinstance(data, dict):
        return None
    try:
        expires = int(data.get("exp") or 0)
    except (TypeError, ValueError):
        return None
    current = time.time() if now is None else now
    if expires <= current:
        return None
    return data.get("access_token") or None
