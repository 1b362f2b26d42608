"""HMAC signatures of webhook bodies.

Webex signs each notification body with HMAC-SHA1 keyed by the webhook
secret and sends the hex digest in ``X-Spark-Signature``.
"""

from __future__ import annotations

import hashlib
import hmac

SIGNATURE_HEADER = "X-Spark-Signature"


def sign(body: bytes, secret: str) -> str:
    """Return the hex HMAC-SHA1 digest of ``body``."""
    return hmac.new(secret.encode(), body, hashlib.sha1).hexdigest()


def verify(body: bytes, signature: str, secret: str) -> bool:
    """Compare ``signature`` against ``body`` in constant time."""
    return hmac.compare_digest(sign(body, secret), signature.strip().lower())
