"""Celery tasks that keep approved documents rendered."""

from __future__ import annotations

from time import perf_counter
from typing import Any

import structlog
from sqlalchemy.orm import Session

from procurement.backend.src.core.errors import PipelineFailureError
from procurement.backend.src.core.storage import BlobStore
from procurement.backend.src.db import session_scope
from procurement.backend.src.services.approval_workflow import build_workflow
from procurement.backend.src.services.document_kinds import DOCUMENT_KINDS
from .worker import celery

LOGGER = structlog.get_logger(__name__)


def repair_unrendered(
    session: Session,
    *,
    blob_store: BlobStore | None = None,
    limit: int = 100,
) -> dict[str, Any]:
    """Render every approved document that has no stored artifact yet."""

    repaired: list[str] = []
    failed: list[str] = []
    for kind in DOCUMENT_KINDS.values():
        workflow = build_workflow(session, kind, blob_store=blob_store)
        for document in workflow.repository.find_approved_unrendered(limit=limit):
            label = f"{kind.name}:{document.id}"
            try:
                workflow.regenerate_document(document.id)
            except PipelineFailureError as exc:
                LOGGER.warning("document_repair_failed", kind=kind.name, document_id=document.id, error=exc.detail)
                failed.append(label)
                continue
            repaired.append(label)

    return {"repaired": repaired, "failed": failed}


@celery.task(name="tasks.repair_unrendered_documents")
def repair_unrendered_documents(limit: int = 100) -> dict[str, Any]:
    start = perf_counter()
    with session_scope() as session:
        result = repair_unrendered(session, limit=limit)
    LOGGER.info(
        "document_repair_finished",
        repaired=len(result["repaired"]),
        failed=len(result["failed"]),
        duration=round(perf_counter() - start, 3),
    )
    return result


__all__ = ["repair_unrendered", "repair_unrendered_documents"]
