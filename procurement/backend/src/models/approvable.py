"""Columns and accessors shared by documents that go through approval."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, DateTime, ForeignKey, Integer, String, Text, func
from sqlalchemy.orm import Mapped, declared_attr, mapped_column, relationship

from .approval import ApprovalAction, DocumentStatus


class ApprovableMixin:
    """Approval state, audit trail and rendered-artifact reference."""

    status: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=DocumentStatus.DRAFT.value,
        index=True,
    )
    approval_history: Mapped[list[dict[str, Any]]] = mapped_column(
        JSON, nullable=False, default=list
    )
    approval_comments: Mapped[str | None] = mapped_column(Text, nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    approval_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    document_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    document_hash: Mapped[str | None] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    @declared_attr
    def created_by_id(cls) -> Mapped[int]:
        return mapped_column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    @declared_attr
    def approver_id(cls) -> Mapped[int | None]:
        return mapped_column(Integer, ForeignKey("users.id"), nullable=True, index=True)

    @declared_attr
    def created_by(cls) -> Mapped["User | None"]:
        return relationship("User", foreign_keys=f"{cls.__name__}.created_by_id", lazy="joined")

    @declared_attr
    def approver(cls) -> Mapped["User | None"]:
        return relationship("User", foreign_keys=f"{cls.__name__}.approver_id", lazy="joined")

    @property
    def business_number(self) -> str:
        """Human-facing document number used in filenames and emails."""

        raise NotImplementedError

    @property
    def document_status(self) -> DocumentStatus:
        return DocumentStatus(self.status)

    @property
    def history(self) -> list[ApprovalAction]:
        return [ApprovalAction.from_dict(entry) for entry in self.approval_history or []]

    @property
    def has_artifact(self) -> bool:
        return bool(self.document_url and self.document_hash)


__all__ = ["ApprovableMixin"]
