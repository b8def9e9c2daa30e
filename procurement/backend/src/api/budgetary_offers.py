"""Budgetary offer approval endpoints."""

from __future__ import annotations

from procurement.backend.src.services.document_kinds import BUDGETARY_OFFER

from .documents import build_document_router

router = build_document_router(BUDGETARY_OFFER)
