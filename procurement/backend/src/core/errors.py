"""Domain failures raised by the approval workflow.

Every failure carries a ``kind`` tag and the HTTP status the API layer
returns for it, so routers can let them propagate untouched.
"""

from __future__ import annotations

from fastapi import HTTPException, status


class WorkflowError(HTTPException):
    """Base class for tagged workflow failures."""

    kind = "workflow_error"
    default_status = status.HTTP_400_BAD_REQUEST
    default_detail = "Workflow operation failed"

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(
            status_code=self.default_status,
            detail=detail or self.default_detail,
        )


class NotFoundError(WorkflowError):
    kind = "not_found"
    default_status = status.HTTP_404_NOT_FOUND
    default_detail = "Document not found"


class ForbiddenError(WorkflowError):
    kind = "forbidden"
    default_status = status.HTTP_403_FORBIDDEN
    default_detail = "You do not have permission to perform this action"


class InvalidStateError(WorkflowError):
    kind = "invalid_state"
    default_detail = "Transition is not allowed in the current status"


class InvalidTokenError(WorkflowError):
    kind = "invalid_token"
    default_detail = "Invalid or expired approval link"


class MissingCreatorError(WorkflowError):
    kind = "missing_creator"
    default_detail = "Creator information not found"


class PipelineFailureError(WorkflowError):
    """Render, hash or upload failed.

    Raised after an approval whose status write is already durable; the
    document stays ``APPROVED`` without an artifact until it is regenerated.
    """

    kind = "pipeline_failure"
    default_status = status.HTTP_502_BAD_GATEWAY
    default_detail = "Failed to generate approved document"


__all__ = [
    "ForbiddenError",
    "InvalidStateError",
    "InvalidTokenError",
    "MissingCreatorError",
    "NotFoundError",
    "PipelineFailureError",
    "WorkflowError",
]
