"""Approval endpoints shared by every approvable document kind."""

from __future__ import annotations

import structlog
from fastapi import APIRouter, Depends, Query
from fastapi.responses import HTMLResponse

from procurement.backend.src.core.errors import InvalidTokenError, WorkflowError
from procurement.backend.src.core.security import get_current_user
from procurement.backend.src.models import User
from procurement.backend.src.schemas.approval import (
    ApproveRequest,
    DocumentApprovalRead,
    RejectRequest,
    TransitionResponse,
    VerificationRead,
)
from procurement.backend.src.services.approval_tokens import TokenAction
from procurement.backend.src.services.approval_workflow import (
    ApprovableDocumentWorkflow,
    TransitionResult,
)
from procurement.backend.src.services.document_kinds import DocumentKind
from procurement.backend.src.services.notifications import EmailComposer

from .dependencies import get_composer, workflow_dependency

LOGGER = structlog.get_logger(__name__)

_EMAIL_ACTIONS = {
    TokenAction.APPROVE: {
        "action_label": "Approve",
        "field_name": "comments",
        "field_label": "Comments (optional)",
        "field_required": False,
        "done": "approved",
    },
    TokenAction.REJECT: {
        "action_label": "Reject",
        "field_name": "reason",
        "field_label": "Reason for rejection",
        "field_required": True,
        "done": "rejected",
    },
}


def _transition_response(result: TransitionResult) -> TransitionResponse:
    return TransitionResponse(
        document=DocumentApprovalRead.from_document(result.document),
        notified=result.notification.delivered if result.notification else None,
        warnings=list(result.warnings),
    )


def build_document_router(kind: DocumentKind) -> APIRouter:
    """Create the approval router for one document kind."""

    router = APIRouter(prefix=f"/{kind.route_segment}", tags=[kind.route_segment])
    get_workflow = workflow_dependency(kind)

    def email_action_page(
        action: TokenAction,
        token: str,
        text: str | None,
        confirm: bool,
        workflow: ApprovableDocumentWorkflow,
        composer: EmailComposer,
    ) -> HTMLResponse:
        labels = _EMAIL_ACTIONS[action]
        claims = workflow.tokens.verify(token)
        if claims is None or claims.action is not action or claims.document_kind != kind.name:
            error = InvalidTokenError()
            return HTMLResponse(
                composer.render(
                    "pages/email_action_result.html",
                    title="Link not valid",
                    message=error.detail,
                    success=False,
                    warnings=[],
                ),
                status_code=error.status_code,
            )

        if not confirm:
            return HTMLResponse(
                composer.render(
                    "pages/email_action_form.html",
                    kind_label=kind.label,
                    **labels,
                )
            )

        try:
            result = workflow.handle_email_action(token, action, text or None)
        except WorkflowError as exc:
            LOGGER.info(
                "email_action_failed",
                kind=kind.name,
                action=action.value,
                error_kind=exc.kind,
            )
            return HTMLResponse(
                composer.render(
                    "pages/email_action_result.html",
                    title=f"Could not {labels['action_label'].lower()} {kind.label.lower()}",
                    message=exc.detail,
                    success=False,
                    warnings=[],
                ),
                status_code=exc.status_code,
            )

        document = result.document
        return HTMLResponse(
            composer.render(
                "pages/email_action_result.html",
                title=f"{kind.label} {labels['done']}",
                message=f"{kind.label} {document.business_number} has been {labels['done']}.",
                success=True,
                warnings=list(result.warnings),
            )
        )

    @router.get("/email-approve/{token}", response_class=HTMLResponse)
    def email_approve(
        token: str,
        comments: str | None = Query(default=None),
        confirm: bool = Query(default=False),
        workflow: ApprovableDocumentWorkflow = Depends(get_workflow),
        composer: EmailComposer = Depends(get_composer),
    ) -> HTMLResponse:
        """Approve from an email link; shows a comments form until confirmed."""

        return email_action_page(TokenAction.APPROVE, token, comments, confirm, workflow, composer)

    @router.get("/email-reject/{token}", response_class=HTMLResponse)
    def email_reject(
        token: str,
        reason: str | None = Query(default=None),
        confirm: bool = Query(default=False),
        workflow: ApprovableDocumentWorkflow = Depends(get_workflow),
        composer: EmailComposer = Depends(get_composer),
    ) -> HTMLResponse:
        return email_action_page(TokenAction.REJECT, token, reason, confirm, workflow, composer)

    @router.post("/{document_id}/submit", response_model=TransitionResponse)
    def submit(
        document_id: int,
        user: User = Depends(get_current_user),
        workflow: ApprovableDocumentWorkflow = Depends(get_workflow),
    ) -> TransitionResponse:
        return _transition_response(workflow.submit(document_id, user.id))

    @router.post("/{document_id}/approve", response_model=TransitionResponse)
    def approve(
        document_id: int,
        payload: ApproveRequest | None = None,
        user: User = Depends(get_current_user),
        workflow: ApprovableDocumentWorkflow = Depends(get_workflow),
    ) -> TransitionResponse:
        comments = payload.comments if payload else None
        return _transition_response(workflow.approve(document_id, user.id, comments))

    @router.post("/{document_id}/reject", response_model=TransitionResponse)
    def reject(
        document_id: int,
        payload: RejectRequest | None = None,
        user: User = Depends(get_current_user),
        workflow: ApprovableDocumentWorkflow = Depends(get_workflow),
    ) -> TransitionResponse:
        reason = payload.reason if payload else None
        return _transition_response(workflow.reject(document_id, user.id, reason))

    @router.post("/{document_id}/generate-document", response_model=TransitionResponse)
    def generate_document(
        document_id: int,
        user: User = Depends(get_current_user),
        workflow: ApprovableDocumentWorkflow = Depends(get_workflow),
    ) -> TransitionResponse:
        """Render and store the PDF of an approved document again."""

        LOGGER.info("document_regeneration_requested", kind=kind.name, document_id=document_id, user_id=user.id)
        return _transition_response(workflow.regenerate_document(document_id))

    @router.get("/{document_id}/verify-document", response_model=VerificationRead)
    def verify_document(
        document_id: int,
        user: User = Depends(get_current_user),
        workflow: ApprovableDocumentWorkflow = Depends(get_workflow),
    ) -> VerificationRead:
        result = workflow.verify_document(document_id)
        document = workflow.repository.find_by_id(document_id)
        return VerificationRead(
            is_valid=result.is_valid,
            current_digest=result.current_digest,
            stored_digest=document.document_hash,
            error=result.error,
        )

    return router


__all__ = ["build_document_router"]
