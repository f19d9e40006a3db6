"""Webhook signature verification.

Senders sign the exact request body with HMAC-SHA256 and pass the hex
digest in the ``X-Hub-Signature-256`` header as ``sha256=<hex>``. The
digest must be computed over the raw bytes received, never over a
re-serialization of the parsed JSON.
"""

from __future__ import annotations

import hashlib
import hmac

SIGNATURE_HEADER = "X-Hub-Signature-256"
SIGNATURE_PREFIX = "sha256="


def sign(body: bytes, secret: str) -> str:
    """
    Compute the header value for a body.

    Example:
        headers = {SIGNATURE_HEADER: sign(raw, secret)}
    """
    digest = hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return SIGNATURE_PREFIX + digest


def verify(body: bytes, signature: str | None, secret: str | None) -> bool:
    """
    Check that ``signature`` is the HMAC-SHA256 of ``body`` under ``secret``.

    Fails closed: a missing signature or an empty secret is always False.
    The comparison is constant-time.
    """
    if not signature or not secret:
        return False

    expected = sign(body, secret)
    return hmac.compare_digest(
        signature.encode("utf-8", "replace"),
        expected.encode("utf-8"),
    )


def redact(signature: str | None, keep: int = 8) -> str:
    """Shorten a signature for logging, e.g. ``sha256=1a2b3c4d...``."""
    if not signature:
        return "<missing>"
    if len(signature) <= len(SIGNATURE_PREFIX) + keep:
        return signature
    return signature[: len(SIGNATURE_PREFIX) + keep] + "..."
