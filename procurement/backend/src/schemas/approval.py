"""Approval schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class ApprovalActionRead(BaseModel):
    action_type: str
    actor_id: int
    timestamp: datetime
    previous_status: str
    new_status: str
    comments: str | None = None


class DocumentApprovalRead(BaseModel):
    """Approval view of a purchase order or budgetary offer."""

    id: int
    number: str
    status: str
    created_by_id: int
    approver_id: int | None
    approval_comments: str | None
    rejection_reason: str | None
    approval_date: datetime | None
    document_url: str | None
    document_hash: str | None
    approval_history: list[ApprovalActionRead] = Field(default_factory=list)

    @classmethod
    def from_document(cls, document: Any) -> "DocumentApprovalRead":
        return cls(
            id=document.id,
            number=document.business_number,
            status=document.status,
            created_by_id=document.created_by_id,
            approver_id=document.approver_id,
            approval_comments=document.approval_comments,
            rejection_reason=document.rejection_reason,
            approval_date=document.approval_date,
            document_url=document.document_url,
            document_hash=document.document_hash,
            approval_history=[
                ApprovalActionRead(**entry) for entry in document.approval_history or []
            ],
        )


class TransitionResponse(BaseModel):
    document: DocumentApprovalRead
    notified: bool | None = None
    warnings: list[str] = Field(default_factory=list)


class ApproveRequest(BaseModel):
    comments: str | None = None


class RejectRequest(BaseModel):
    reason: str | None = None


class VerificationRead(BaseModel):
    is_valid: bool
    current_digest: str | None = None
    stored_digest: str | None = None
    error: str | None = None
