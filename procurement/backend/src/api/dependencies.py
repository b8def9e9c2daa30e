"""Shared FastAPI dependencies for the approval routers."""

from __future__ import annotations

from functools import lru_cache
from typing import Callable

from fastapi import Depends
from sqlalchemy.orm import Session

from procurement.backend.src.core.config import get_settings
from procurement.backend.src.core.storage import BlobStore
from procurement.backend.src.db import get_session_dependency
from procurement.backend.src.services.approval_workflow import (
    ApprovableDocumentWorkflow,
    build_workflow,
)
from procurement.backend.src.services.document_kinds import DocumentKind
from procurement.backend.src.services.notifications import (
    EmailComposer,
    Notifier,
    build_notifier,
)
from procurement.backend.src.services.s3 import S3BlobStore


@lru_cache()
def get_blob_store() -> BlobStore:
    return S3BlobStore(get_settings())


@lru_cache()
def get_notifier() -> Notifier:
    return build_notifier(get_settings())


def get_composer() -> EmailComposer:
    return EmailComposer(get_settings().company_name)


def workflow_dependency(kind: DocumentKind) -> Callable[..., ApprovableDocumentWorkflow]:
    """Return a dependency that wires a workflow for ``kind`` per request."""

    def dependency(
        session: Session = Depends(get_session_dependency),
        blob_store: BlobStore = Depends(get_blob_store),
        notifier: Notifier = Depends(get_notifier),
    ) -> ApprovableDocumentWorkflow:
        return build_workflow(
            session,
            kind,
            settings=get_settings(),
            blob_store=blob_store,
            notifier=notifier,
        )

    return dependency


__all__ = [
    "get_blob_store",
    "get_composer",
    "get_notifier",
    "workflow_dependency",
]
