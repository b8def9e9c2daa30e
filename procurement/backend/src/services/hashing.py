"""Content digests used to fingerprint rendered documents."""

from __future__ import annotations

import hashlib
import hmac

DIGEST_ALGORITHM = "sha256"


def compute_digest(data: bytes) -> str:
    """Return the hex sha256 digest of ``data``."""

    return hashlib.sha256(data).hexdigest()


def digests_match(expected: str, actual: str) -> bool:
    """Compare two hex digests without leaking timing information."""

    return hmac.compare_digest(expected.strip().lower(), actual.strip().lower())


__all__ = ["DIGEST_ALGORITHM", "compute_digest", "digests_match"]
