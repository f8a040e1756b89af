"""Request authentication for the HTTP surface.

Slack signs every slash command and interaction with the app's signing
secret (``X-Slack-Signature``, ``v0`` scheme). The weekly triggers are
called by a scheduler and carry a shared bearer token instead.
"""

from __future__ import annotations

import hashlib
import hmac
import time

SIGNATURE_VERSION = "v0"
# Seconds a signed request stays valid
MAX_REQUEST_AGE = 60 * 5


def compute_slack_signature(signing_secret: str, timestamp: str, body: bytes) -> str:
    """Signature Slack would send for *body* at *timestamp*."""
    basestring = f"{SIGNATURE_VERSION}:{timestamp}:".encode() + body
    digest = hmac.new(signing_secret.encode(), basestring, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_VERSION}={digest}"


def verify_slack_signature(
    signing_secret: str,
    timestamp: str,
    body: bytes,
    signature: str,
    *,
    now: float | None = None,
) -> bool:
    """Check a request's ``X-Slack-Signature`` and its timestamp.

    Parameters
    ----------
    signing_secret : str
        The Slack app's signing secret.
    timestamp : str
        Value of the ``X-Slack-Request-Timestamp`` header.
    body : bytes
        Raw request body, exactly as received.
    signature : str
        Value of the ``X-Slack-Signature`` header.
    now : float | None
        Current epoch seconds; defaults to ``time.time()``.
    """
    try:
        sent_at = int(timestamp)
    except (TypeError, ValueError):
        return False
    current = time.time() if now is None else now
    if abs(current - sent_at) > MAX_REQUEST_AGE:
        return False

    expected = compute_slack_signature(signing_secret, timestamp, body)
    return hmac.compare_digest(expected, signature or "")


def verify_bearer_token(expected_token: str, authorization: str) -> bool:
    """Check an ``Authorization: Bearer <token>`` header against *expected_token*."""
    scheme, _, token = (authorization or "").partition(" ")
    if scheme.lower() != "bearer" or not token:
        return False
    return hmac.compare_digest(expected_token, token.strip())
