"""Purchase order approval endpoints."""

from __future__ import annotations

from procurement.backend.src.services.document_kinds import PURCHASE_ORDER

from .documents import build_document_router

router = build_document_router(PURCHASE_ORDER)
