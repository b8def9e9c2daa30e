"""Approval status vocabulary and the audit record appended on each transition."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime
from enum import Enum
from typing import Any


class DocumentStatus(str, Enum):
    """Lifecycle status shared by every approvable document."""

    DRAFT = "DRAFT"
    PENDING_APPROVAL = "PENDING_APPROVAL"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"

    @property
    def is_terminal(self) -> bool:
        return self in (DocumentStatus.APPROVED, DocumentStatus.REJECTED)


class ApprovalActionType(str, Enum):
    SUBMIT = "SUBMIT"
    APPROVE = "APPROVE"
    REJECT = "REJECT"
    AUTO_APPROVED = "AUTO_APPROVED"


@dataclass(frozen=True, slots=True)
class ApprovalAction:
    """Immutable audit entry stored in a document's ``approval_history``."""

    action_type: ApprovalActionType
    actor_id: int
    timestamp: datetime
    previous_status: DocumentStatus
    new_status: DocumentStatus
    comments: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["action_type"] = self.action_type.value
        payload["previous_status"] = self.previous_status.value
        payload["new_status"] = self.new_status.value
        payload["timestamp"] = self.timestamp.isoformat()
        return payload

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "ApprovalAction":
        return cls(
            action_type=ApprovalActionType(payload["action_type"]),
            actor_id=int(payload["actor_id"]),
            timestamp=datetime.fromisoformat(payload["timestamp"]),
            previous_status=DocumentStatus(payload["previous_status"]),
            new_status=DocumentStatus(payload["new_status"]),
            comments=payload.get("comments"),
        )


__all__ = ["ApprovalAction", "ApprovalActionType", "DocumentStatus"]
