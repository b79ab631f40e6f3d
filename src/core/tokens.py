"""Signed, time-limited anti-forgery tokens for filter state writes."""

from __future__ import annotations

import base64
import binascii
import hashlib
import hmac
import json
import secrets
import time
from typing import Any, Dict, Optional


class TokenError(ValueError):
    """Raised when an anti-forgery token is malformed, forged or expired."""


def _b64encode(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).decode("ascii").rstrip("=")


def _b64decode(data: str) -> bytes:
    return base64.urlsafe_b64decode(data + "=" * (-len(data) % 4))


def _signature(body: bytes, secret: str) -> bytes:
    return hmac.new(secret.encode("utf-8"), body, hashlib.sha256).digest()


def issue_token(identity: str, secret: str, now: Optional[float] = None) -> str:
    """
    Issue a token bound to an identity key.

    The token is "<body>.<signature>", both urlsafe base64 without padding.
    The body holds the identity, the issue time and a random nonce.
    """
    payload = {
        "sub": identity,
        "ts": int(now if now is not None else time.time()),
        "n": secrets.token_hex(8),
    }
    body = json.dumps(payload, separators=(",", ":")).encode("utf-8")
    return f"{_b64encode(body)}.{_b64encode(_signature(body, secret))}"


def verify_token(
    token: str,
    identity: str,
    secret: str,
    ttl_seconds: int,
    now: Optional[float] = None,
) -> Dict[str, Any]:
    """
    Verify a token for `identity` and return its payload.

    Raises:
        TokenError: malformed, bad signature, wrong identity or expired
    """
    if not token or "." not in token:
        raise TokenError("Missing or malformed token")

    body_b64, sig_b64 = token.split(".", 1)
    try:
        body = _b64decode(body_b64)
        sig = _b64decode(sig_b64)
    except (binascii.Error, ValueError) as exc:
        raise TokenError("Invalid token encoding") from exc

    if not hmac.compare_digest(sig, _signature(body, secret)):
        raise TokenError("Invalid token signature")

    try:
        payload = json.loads(body.decode("utf-8"))
    except ValueError as exc:
        raise TokenError("Invalid token payload") from exc

    if not isinstance(payload, dict) or payload.get("sub") != identity:
        raise TokenError("Token issued for another identity")

    ts = payload.get("ts")
    if not isinstance(ts, (int, float)):
        raise TokenError("Token missing timestamp")

    age = (now if now is not None else time.time()) - float(ts)
    if age < 0 or age > ttl_seconds:
        raise TokenError("Token expired")

    return payload


def check_token(
    token: Optional[str],
    identity: str,
    secret: str,
    ttl_seconds: int,
) -> Optional[bool]:
    """
    Tri-state verification used by the resolver.

    Returns None when no token was supplied, otherwise whether it verified.
    """
    if not token:
        return None
    try:
        verify_token(token, identity, secret, ttl_seconds)
    except TokenError:
        return False
    return True
