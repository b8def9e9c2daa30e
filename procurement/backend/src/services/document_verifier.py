"""Integrity checks for stored approval documents."""

from __future__ import annotations

from dataclasses import dataclass

import structlog

from procurement.backend.src.core.storage import BlobStore, BlobStoreError
from procurement.backend.src.services.hashing import compute_digest, digests_match
from procurement.backend.src.services.metrics import document_verifications_total

LOGGER = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class VerificationResult:
    is_valid: bool
    current_digest: str | None = None
    error: str | None = None


class DocumentVerifierService:
    """Re-hash a stored blob and compare it with the recorded digest."""

    def __init__(self, blob_store: BlobStore) -> None:
        self.blob_store = blob_store

    def verify(self, url: str | None, expected_digest: str | None) -> VerificationResult:
        if not url or not expected_digest:
            document_verifications_total.labels(outcome="missing").inc()
            return VerificationResult(is_valid=False, error="No stored document to verify")

        try:
            data = self.blob_store.fetch(url)
        except BlobStoreError as exc:
            LOGGER.warning("document_fetch_failed", url=url, error=str(exc))
            document_verifications_total.labels(outcome="error").inc()
            return VerificationResult(is_valid=False, error=str(exc) or "Failed to fetch document")

        current = compute_digest(data)
        is_valid = digests_match(expected_digest, current)
        document_verifications_total.labels(outcome="valid" if is_valid else "mismatch").inc()
        if not is_valid:
            LOGGER.warning(
                "document_digest_mismatch",
                url=url,
                expected=expected_digest,
                current=current,
            )
        return VerificationResult(is_valid=is_valid, current_digest=current)


__all__ = ["DocumentVerifierService", "VerificationResult"]
