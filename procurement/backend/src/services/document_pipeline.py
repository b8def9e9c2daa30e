"""Render, fingerprint and store approval documents."""

from __future__ import annotations

import re
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Callable

import structlog

from procurement.backend.src.core.errors import PipelineFailureError
from procurement.backend.src.core.storage import BlobStore, BlobStoreError
from procurement.backend.src.services.document_kinds import DocumentKind
from procurement.backend.src.services.hashing import compute_digest
from procurement.backend.src.services.metrics import pdf_generation_seconds

LOGGER = structlog.get_logger(__name__)

PDF_CONTENT_TYPE = "application/pdf"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def safe_filename_segment(value: str) -> str:
    """Turn a business number such as ``PO/2026/0001`` into ``PO_2026_0001``."""

    cleaned = re.sub(r"[^A-Za-z0-9._-]+", "_", value or "").strip("_")
    return cleaned or "document"


@dataclass(frozen=True, slots=True)
class GeneratedDocument:
    url: str
    digest: str
    key: str
    size: int


class DocumentPipeline:
    """Snapshot a document, render it, hash the exact bytes and upload them.

    The digest is always computed over the bytes that are uploaded, so a
    later fetch of ``url`` hashes to ``digest`` unless the blob was altered.
    Earlier uploads for the same document are left in place.
    """

    def __init__(
        self,
        kind: DocumentKind,
        blob_store: BlobStore,
        *,
        company_name: str,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.kind = kind
        self.blob_store = blob_store
        self.company_name = company_name
        self._clock = clock

    def object_key(self, document: Any) -> str:
        millis = int(self._clock().timestamp() * 1000)
        number = safe_filename_segment(document.business_number)
        # Random suffix keeps keys unique when two renders share a millisecond.
        return f"{self.kind.storage_prefix}/{number}_{millis}_{uuid.uuid4().hex[:8]}.pdf"

    def render(self, document: Any) -> bytes:
        started = time.perf_counter()
        try:
            pdf_bytes = self.kind.render(document, company_name=self.company_name)
        except Exception as exc:  # noqa: BLE001
            LOGGER.error(
                "document_render_failed",
                kind=self.kind.name,
                document_id=document.id,
                error=str(exc),
            )
            raise PipelineFailureError(f"Failed to render {self.kind.label.lower()}") from exc
        pdf_generation_seconds.labels(kind=self.kind.name).observe(time.perf_counter() - started)
        return pdf_bytes

    def generate(self, document: Any) -> GeneratedDocument:
        pdf_bytes = self.render(document)
        digest = compute_digest(pdf_bytes)
        key = self.object_key(document)

        try:
            url = self.blob_store.upload(key, pdf_bytes, PDF_CONTENT_TYPE)
        except BlobStoreError as exc:
            LOGGER.error(
                "document_upload_failed",
                kind=self.kind.name,
                document_id=document.id,
                key=key,
                error=str(exc),
            )
            raise PipelineFailureError(f"Failed to store {self.kind.label.lower()}") from exc

        LOGGER.info(
            "document_generated",
            kind=self.kind.name,
            document_id=document.id,
            key=key,
            digest=digest,
            size=len(pdf_bytes),
        )
        return GeneratedDocument(url=url, digest=digest, key=key, size=len(pdf_bytes))


__all__ = [
    "DocumentPipeline",
    "GeneratedDocument",
    "PDF_CONTENT_TYPE",
    "safe_filename_segment",
]
