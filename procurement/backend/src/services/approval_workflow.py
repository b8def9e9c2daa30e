"""Approval state machine shared by purchase orders and budgetary offers.

Allowed transitions::

    DRAFT --submit--> PENDING_APPROVAL
    DRAFT --submit (privileged creator)--> APPROVED
    PENDING_APPROVAL --approve--> APPROVED
    PENDING_APPROVAL --reject--> REJECTED

Each transition is a single compare-and-set UPDATE guarded on the expected
status, so of two racing calls exactly one appends to the history. The
rendered artifact is written by a second statement; an ``APPROVED`` document
without ``document_hash`` is waiting for regeneration (see
``tasks.document_tasks.repair_unrendered_documents``).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable

import structlog
from sqlalchemy.orm import Session

from procurement.backend.src.core.config import Settings, get_settings
from procurement.backend.src.core.errors import (
    ForbiddenError,
    InvalidStateError,
    InvalidTokenError,
    MissingCreatorError,
    NotFoundError,
    PipelineFailureError,
)
from procurement.backend.src.core.storage import BlobStore
from procurement.backend.src.models import (
    ApprovalAction,
    ApprovalActionType,
    DocumentStatus,
    User,
)
from procurement.backend.src.services.approval_tokens import (
    ApprovalTokenService,
    TokenAction,
)
from procurement.backend.src.services.document_kinds import DocumentKind
from procurement.backend.src.services.document_pipeline import (
    DocumentPipeline,
    GeneratedDocument,
    safe_filename_segment,
)
from procurement.backend.src.services.document_repository import DocumentRepository
from procurement.backend.src.services.document_verifier import (
    DocumentVerifierService,
    VerificationResult,
)
from procurement.backend.src.services.metrics import (
    notification_failures_total,
    workflow_transitions_total,
)
from procurement.backend.src.services.notifications import (
    EmailAttachment,
    EmailComposer,
    EmailLink,
    NotificationResult,
    Notifier,
    build_notifier,
)
from procurement.backend.src.services.s3 import S3BlobStore

LOGGER = structlog.get_logger(__name__)

AUTO_APPROVAL_COMMENT = "Auto-approved by admin"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True, slots=True)
class TransitionResult:
    """Outcome of a workflow call.

    ``notification`` is ``None`` when no message was attempted. Delivery
    problems show up in ``warnings`` and never fail the transition.
    """

    document: Any
    notification: NotificationResult | None = None
    warnings: tuple[str, ...] = ()
    artifact: GeneratedDocument | None = None


@dataclass(frozen=True, slots=True)
class ApprovalPolicy:
    auto_approve_roles: frozenset[str] = frozenset({"ADMIN"})
    history_fallback: bool = True

    @classmethod
    def from_settings(cls, settings: Settings) -> "ApprovalPolicy":
        return cls(
            auto_approve_roles=settings.auto_approve_roles,
            history_fallback=settings.approver_history_fallback,
        )

    def auto_approves(self, user: User) -> bool:
        return user.normalized_role in self.auto_approve_roles

    def approver_id_for(self, document: Any) -> int | None:
        """Designated approver, or the first history actor when none is set."""

        if document.approver_id is not None:
            return document.approver_id
        if self.history_fallback:
            history = document.history
            if history:
                return history[0].actor_id
        return None


@dataclass
class ApprovableDocumentWorkflow:
    kind: DocumentKind
    repository: DocumentRepository
    tokens: ApprovalTokenService
    pipeline: DocumentPipeline
    verifier: DocumentVerifierService
    notifier: Notifier
    composer: EmailComposer
    base_url: str
    policy: ApprovalPolicy = field(default_factory=ApprovalPolicy)
    clock: Callable[[], datetime] = _utcnow

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------
    def submit(self, document_id: int, actor_id: int) -> TransitionResult:
        document = self._load(document_id)
        if actor_id != document.created_by_id:
            raise ForbiddenError("Only the creator can submit this document")
        self._require_status(document, DocumentStatus.DRAFT)
        creator = document.created_by
        if creator is None:
            raise MissingCreatorError()

        if self.policy.auto_approves(creator):
            return self._auto_approve(document, creator)

        now = self.clock()
        history = self._append(
            document,
            ApprovalActionType.SUBMIT,
            actor_id,
            now,
            DocumentStatus.DRAFT,
            DocumentStatus.PENDING_APPROVAL,
        )
        self._transition(
            document_id,
            DocumentStatus.DRAFT,
            status=DocumentStatus.PENDING_APPROVAL.value,
            approval_history=history,
            updated_at=now,
        )
        document = self.repository.reload(document_id)
        self._record(ApprovalActionType.SUBMIT)
        LOGGER.info("document_submitted", kind=self.kind.name, document_id=document_id, actor_id=actor_id)

        approver = self.repository.get_user(document.approver_id)
        if approver is None:
            warning = "No approver assigned; approval request was not sent"
            LOGGER.warning("approval_request_skipped", kind=self.kind.name, document_id=document_id)
            return TransitionResult(document=document, warnings=(warning,))

        notification, warnings = self._send_approval_request(document, creator, approver)
        return TransitionResult(document=document, notification=notification, warnings=warnings)

    def approve(
        self, document_id: int, actor_id: int, comments: str | None = None
    ) -> TransitionResult:
        document = self._load(document_id)
        self._require_status(document, DocumentStatus.PENDING_APPROVAL)
        self._require_approver(document, actor_id)

        now = self.clock()
        history = self._append(
            document,
            ApprovalActionType.APPROVE,
            actor_id,
            now,
            DocumentStatus.PENDING_APPROVAL,
            DocumentStatus.APPROVED,
            comments,
        )
        self._transition(
            document_id,
            DocumentStatus.PENDING_APPROVAL,
            status=DocumentStatus.APPROVED.value,
            approval_history=history,
            approver_id=actor_id,
            approval_comments=comments,
            approval_date=now,
            document_url=None,
            document_hash=None,
            updated_at=now,
        )
        self._record(ApprovalActionType.APPROVE)
        LOGGER.info("document_approved", kind=self.kind.name, document_id=document_id, actor_id=actor_id)

        document = self.repository.reload(document_id)
        artifact = self._store_artifact(document)
        document = self.repository.reload(document_id)

        notification, warnings = self._notify_creator(document, actor_id, comments)
        return TransitionResult(
            document=document,
            notification=notification,
            warnings=warnings,
            artifact=artifact,
        )

    def reject(
        self, document_id: int, actor_id: int, reason: str | None = None
    ) -> TransitionResult:
        document = self._load(document_id)
        self._require_status(document, DocumentStatus.PENDING_APPROVAL)
        self._require_approver(document, actor_id)

        now = self.clock()
        history = self._append(
            document,
            ApprovalActionType.REJECT,
            actor_id,
            now,
            DocumentStatus.PENDING_APPROVAL,
            DocumentStatus.REJECTED,
            reason,
        )
        self._transition(
            document_id,
            DocumentStatus.PENDING_APPROVAL,
            status=DocumentStatus.REJECTED.value,
            approval_history=history,
            rejection_reason=reason,
            updated_at=now,
        )
        self._record(ApprovalActionType.REJECT)
        LOGGER.info("document_rejected", kind=self.kind.name, document_id=document_id, actor_id=actor_id)

        document = self.repository.reload(document_id)
        notification, warnings = self._notify_creator(document, actor_id, reason)
        return TransitionResult(document=document, notification=notification, warnings=warnings)

    def handle_email_action(
        self,
        token: str,
        action: TokenAction | str,
        extra_input: str | None = None,
    ) -> TransitionResult:
        """Perform the transition a signed email link was issued for.

        The token only names the document and the approver; the transition
        re-checks status and approver like any in-app call.
        """

        claims = self.tokens.verify(token)
        if claims is None:
            raise InvalidTokenError()
        try:
            requested = TokenAction(action)
        except ValueError as exc:
            raise InvalidTokenError("Invalid action type") from exc
        if claims.action is not requested:
            raise InvalidTokenError("Invalid action type")
        if claims.document_kind != self.kind.name:
            raise InvalidTokenError()

        LOGGER.info(
            "email_action_received",
            kind=self.kind.name,
            document_id=claims.document_id,
            approver_id=claims.approver_id,
            action=requested.value,
        )
        if requested is TokenAction.APPROVE:
            return self.approve(claims.document_id, claims.approver_id, extra_input)
        return self.reject(claims.document_id, claims.approver_id, extra_input)

    # ------------------------------------------------------------------
    # Artifacts
    # ------------------------------------------------------------------
    def regenerate_document(self, document_id: int) -> TransitionResult:
        """Render and store the artifact of an approved document again."""

        document = self._load(document_id, fresh=True)
        self._require_status(document, DocumentStatus.APPROVED)
        artifact = self._store_artifact(document)
        return TransitionResult(document=self.repository.reload(document_id), artifact=artifact)

    def verify_document(self, document_id: int) -> VerificationResult:
        document = self._load(document_id, fresh=True)
        if not document.has_artifact:
            raise InvalidStateError("Document has not been generated yet")
        return self.verifier.verify(document.document_url, document.document_hash)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _load(self, document_id: int, *, fresh: bool = False) -> Any:
        if fresh:
            document = self.repository.reload(document_id)
        else:
            document = self.repository.find_by_id(document_id)
        if document is None:
            raise NotFoundError(f"{self.kind.label} not found")
        return document

    def _require_status(self, document: Any, expected: DocumentStatus) -> None:
        if document.status != expected.value:
            raise InvalidStateError(
                f"{self.kind.label} is {document.status}, expected {expected.value}"
            )

    def _require_approver(self, document: Any, actor_id: int) -> None:
        if self.policy.approver_id_for(document) != actor_id:
            raise ForbiddenError("You are not the approver for this document")

    @staticmethod
    def _append(
        document: Any,
        action_type: ApprovalActionType,
        actor_id: int,
        timestamp: datetime,
        previous: DocumentStatus,
        new: DocumentStatus,
        comments: str | None = None,
    ) -> list[dict[str, Any]]:
        entry = ApprovalAction(
            action_type=action_type,
            actor_id=actor_id,
            timestamp=timestamp,
            previous_status=previous,
            new_status=new,
            comments=comments,
        )
        return [*(document.approval_history or []), entry.to_dict()]

    def _transition(self, document_id: int, expected: DocumentStatus, **fields: Any) -> None:
        if not self.repository.compare_and_set(document_id, expected, **fields):
            LOGGER.warning(
                "transition_conflict",
                kind=self.kind.name,
                document_id=document_id,
                expected=expected.value,
            )
            raise InvalidStateError(f"{self.kind.label} was modified concurrently")

    def _record(self, action: ApprovalActionType) -> None:
        workflow_transitions_total.labels(kind=self.kind.name, action=action.value).inc()

    def _auto_approve(self, document: Any, creator: User) -> TransitionResult:
        now = self.clock()
        history = self._append(
            document,
            ApprovalActionType.AUTO_APPROVED,
            creator.id,
            now,
            DocumentStatus.DRAFT,
            DocumentStatus.APPROVED,
            AUTO_APPROVAL_COMMENT,
        )
        self._transition(
            document.id,
            DocumentStatus.DRAFT,
            status=DocumentStatus.APPROVED.value,
            approval_history=history,
            approver_id=creator.id,
            approval_comments=AUTO_APPROVAL_COMMENT,
            approval_date=now,
            document_url=None,
            document_hash=None,
            updated_at=now,
        )
        self._record(ApprovalActionType.AUTO_APPROVED)
        LOGGER.info("document_auto_approved", kind=self.kind.name, document_id=document.id, actor_id=creator.id)

        document = self.repository.reload(document.id)
        artifact = self._store_artifact(document)
        return TransitionResult(document=self.repository.reload(document.id), artifact=artifact)

    def _store_artifact(self, document: Any) -> GeneratedDocument:
        try:
            artifact = self.pipeline.generate(document)
        except PipelineFailureError:
            LOGGER.error(
                "document_left_unrendered",
                kind=self.kind.name,
                document_id=document.id,
            )
            raise
        # url and hash are written together, never one without the other.
        self.repository.update(
            document.id,
            document_url=artifact.url,
            document_hash=artifact.digest,
        )
        return artifact

    def _send(
        self,
        to: str,
        subject: str,
        html_body: str,
        attachments: tuple[EmailAttachment, ...] = (),
        links: tuple[EmailLink, ...] = (),
    ) -> tuple[NotificationResult, tuple[str, ...]]:
        try:
            result = self.notifier.send(to, subject, html_body, attachments=attachments, links=links)
        except Exception as exc:  # noqa: BLE001
            LOGGER.error("notification_failed", kind=self.kind.name, to=to, error=str(exc))
            result = NotificationResult(delivered=False, warning=f"Notification to {to} failed")
        if not result.delivered:
            notification_failures_total.labels(kind=self.kind.name).inc()
            return result, ((result.warning or f"Notification to {to} failed"),)
        return result, ()

    def _send_approval_request(
        self, document: Any, creator: User, approver: User
    ) -> tuple[NotificationResult, tuple[str, ...]]:
        links = []
        for action in (TokenAction.APPROVE, TokenAction.REJECT):
            token = self.tokens.issue(
                document.id,
                approver.id,
                approver.normalized_role,
                approver.email,
                action,
                document_kind=self.kind.name,
            )
            links.append(
                EmailLink(
                    label=action.value.title(),
                    url=self.kind.email_action_url(self.base_url, action.value, token),
                )
            )

        attachments: tuple[EmailAttachment, ...] = ()
        warnings: tuple[str, ...] = ()
        try:
            pdf_bytes = self.pipeline.render(document)
            attachments = (
                EmailAttachment(
                    filename=f"{safe_filename_segment(document.business_number)}.pdf",
                    content=pdf_bytes,
                ),
            )
        except PipelineFailureError:
            warnings = ("Preview PDF could not be attached",)

        subject, body = self.composer.approval_request(
            kind_label=self.kind.label,
            number=document.business_number,
            creator_name=creator.name,
            approver_name=approver.name,
            approve_url=links[0].url,
            reject_url=links[1].url,
        )
        result, send_warnings = self._send(approver.email, subject, body, attachments, tuple(links))
        return result, warnings + send_warnings

    def _notify_creator(
        self, document: Any, actor_id: int, comments: str | None
    ) -> tuple[NotificationResult | None, tuple[str, ...]]:
        creator = document.created_by
        if creator is None:
            return None, ("Creator not found; decision notification was not sent",)
        actor = self.repository.get_user(actor_id)
        subject, body = self.composer.decision(
            kind_label=self.kind.label,
            number=document.business_number,
            status=document.status,
            recipient_name=creator.name,
            actor_name=actor.name if actor is not None else "the approver",
            comments=comments,
        )
        return self._send(creator.email, subject, body)


def build_workflow(
    session: Session,
    kind: DocumentKind,
    *,
    settings: Settings | None = None,
    blob_store: BlobStore | None = None,
    notifier: Notifier | None = None,
    clock: Callable[[], datetime] = _utcnow,
) -> ApprovableDocumentWorkflow:
    """Wire a workflow for ``kind`` from configuration."""

    settings = settings or get_settings()
    if blob_store is None:
        blob_store = S3BlobStore(settings)

    return ApprovableDocumentWorkflow(
        kind=kind,
        repository=DocumentRepository(session, kind.model),
        tokens=ApprovalTokenService.from_settings(settings, clock=clock),
        pipeline=DocumentPipeline(kind, blob_store, company_name=settings.company_name, clock=clock),
        verifier=DocumentVerifierService(blob_store),
        notifier=notifier or build_notifier(settings),
        composer=EmailComposer(settings.company_name),
        base_url=settings.public_base_url,
        policy=ApprovalPolicy.from_settings(settings),
        clock=clock,
    )


__all__ = [
    "AUTO_APPROVAL_COMMENT",
    "ApprovableDocumentWorkflow",
    "ApprovalPolicy",
    "TransitionResult",
    "build_workflow",
]
