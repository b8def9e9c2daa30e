"""Tests for the shared approval state machine."""

from __future__ import annotations

import os
import sys
from dataclasses import replace
from pathlib import Path
from types import SimpleNamespace

sys.path.append(str(Path(__file__).resolve().parents[4]))

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_procurement.db")

import pytest

from procurement.backend.src.core.errors import (
    ForbiddenError,
    InvalidStateError,
    InvalidTokenError,
    MissingCreatorError,
    NotFoundError,
    PipelineFailureError,
)
from procurement.backend.src.core.storage import BlobStoreError, InMemoryBlobStore
from procurement.backend.src.db.session import SessionLocal
from procurement.backend.src.models import ApprovalActionType, DocumentStatus
from procurement.backend.src.services.approval_tokens import TokenAction
from procurement.backend.src.services.approval_workflow import (
    AUTO_APPROVAL_COMMENT,
    build_workflow,
)
from procurement.backend.src.services.document_kinds import PURCHASE_ORDER
from procurement.backend.src.services.hashing import compute_digest
from procurement.backend.src.services.notifications import NotificationResult


class FailingBlobStore(InMemoryBlobStore):
    def upload(self, key: str, data: bytes, content_type: str) -> str:
        raise BlobStoreError("bucket unavailable")


class ExplodingNotifier:
    def send(self, to, subject, html_body, attachments=(), links=()):  # type: ignore[no-untyped-def]
        raise RuntimeError("smtp connection refused")


class UndeliveredNotifier:
    def send(self, to, subject, html_body, attachments=(), links=()):  # type: ignore[no-untyped-def]
        return NotificationResult(delivered=False, warning="mailbox full")


def _tokens_from(notifier) -> dict[str, str]:  # type: ignore[no-untyped-def]
    message = notifier.outbox[0]
    return {link.label.lower(): link.url.rsplit("/", 1)[-1] for link in message.links}


def test_submit_moves_draft_to_pending_and_notifies_approver(po_workflow, make_purchase_order, users, notifier) -> None:
    order = make_purchase_order()

    result = po_workflow.submit(order.id, users["creator"].id)

    document = result.document
    assert document.status == DocumentStatus.PENDING_APPROVAL.value
    history = document.history
    assert len(history) == 1
    assert history[0].action_type is ApprovalActionType.SUBMIT
    assert history[0].actor_id == users["creator"].id
    assert history[0].previous_status is DocumentStatus.DRAFT
    assert history[0].new_status is DocumentStatus.PENDING_APPROVAL
    assert document.document_url is None and document.document_hash is None

    assert result.notification is not None and result.notification.delivered
    assert len(notifier.outbox) == 1
    message = notifier.outbox[0]
    assert message.to == "approver@example.com"
    assert "PO/2026/0001" in message.subject
    assert message.attachments[0].filename == "PO_2026_0001.pdf"
    assert message.attachments[0].content.startswith(b"%PDF")

    urls = [link.url for link in message.links]
    assert urls[0].startswith("https://procure.example/api/purchase-orders/email-approve/")
    assert urls[1].startswith("https://procure.example/api/purchase-orders/email-reject/")

    tokens = _tokens_from(notifier)
    approve_claims = po_workflow.tokens.verify(tokens["approve"])
    reject_claims = po_workflow.tokens.verify(tokens["reject"])
    assert approve_claims.action is TokenAction.APPROVE
    assert reject_claims.action is TokenAction.REJECT
    assert approve_claims.document_id == order.id
    assert approve_claims.approver_id == users["approver"].id
    assert approve_claims.approver_role == "MANAGER"
    assert approve_claims.document_kind == "purchase_order"


def test_approve_renders_hashes_and_stores_document(
    po_workflow, make_purchase_order, users, blob_store, notifier
) -> None:
    order = make_purchase_order()
    po_workflow.submit(order.id, users["creator"].id)

    result = po_workflow.approve(order.id, users["approver"].id, "ok")

    document = result.document
    assert document.status == DocumentStatus.APPROVED.value
    assert [entry.action_type for entry in document.history] == [
        ApprovalActionType.SUBMIT,
        ApprovalActionType.APPROVE,
    ]
    assert document.history[-1].comments == "ok"
    assert document.approval_comments == "ok"
    assert document.approval_date is not None
    assert document.approver_id == users["approver"].id

    assert document.document_url and document.document_hash
    assert document.document_url == result.artifact.url
    assert compute_digest(blob_store.fetch(document.document_url)) == document.document_hash
    assert po_workflow.verify_document(order.id).is_valid

    decision = notifier.outbox[-1]
    assert decision.to == "creator@example.com"
    assert "Approved" in decision.subject


def test_reject_records_reason_without_rendering(po_workflow, make_purchase_order, users, blob_store, notifier) -> None:
    order = make_purchase_order()
    po_workflow.submit(order.id, users["creator"].id)

    result = po_workflow.reject(order.id, users["approver"].id, "price too high")

    document = result.document
    assert document.status == DocumentStatus.REJECTED.value
    assert document.rejection_reason == "price too high"
    assert document.history[-1].action_type is ApprovalActionType.REJECT
    assert document.history[-1].new_status is DocumentStatus.REJECTED
    assert document.document_url is None and document.document_hash is None
    assert blob_store.keys() == []
    assert notifier.outbox[-1].to == "creator@example.com"


def test_approve_by_non_approver_is_forbidden(po_workflow, make_purchase_order, users) -> None:
    order = make_purchase_order()
    po_workflow.submit(order.id, users["creator"].id)

    with pytest.raises(ForbiddenError):
        po_workflow.approve(order.id, users["outsider"].id, "looks fine")

    document = po_workflow.repository.reload(order.id)
    assert document.status == DocumentStatus.PENDING_APPROVAL.value
    assert len(document.history) == 1


def test_privileged_creator_is_auto_approved(po_workflow, make_purchase_order, users, notifier, blob_store) -> None:
    order = make_purchase_order(created_by=users["admin"])

    result = po_workflow.submit(order.id, users["admin"].id)

    document = result.document
    assert document.status == DocumentStatus.APPROVED.value
    assert len(document.history) == 1
    entry = document.history[0]
    assert entry.action_type is ApprovalActionType.AUTO_APPROVED
    assert entry.previous_status is DocumentStatus.DRAFT
    assert entry.new_status is DocumentStatus.APPROVED
    assert document.approval_comments == AUTO_APPROVAL_COMMENT
    assert document.approver_id == users["admin"].id
    assert document.has_artifact
    assert result.notification is None
    assert notifier.outbox == []
    assert len(blob_store.keys()) == 1


def test_submit_requires_creator_and_draft(po_workflow, make_purchase_order, users) -> None:
    order = make_purchase_order()

    with pytest.raises(ForbiddenError):
        po_workflow.submit(order.id, users["outsider"].id)

    po_workflow.submit(order.id, users["creator"].id)
    with pytest.raises(InvalidStateError):
        po_workflow.submit(order.id, users["creator"].id)


def test_unknown_document_is_not_found(po_workflow, users) -> None:
    with pytest.raises(NotFoundError):
        po_workflow.submit(9999, users["creator"].id)
    with pytest.raises(NotFoundError):
        po_workflow.approve(9999, users["approver"].id)


def test_missing_creator_is_reported(po_workflow, users, monkeypatch: pytest.MonkeyPatch) -> None:
    orphan = SimpleNamespace(
        id=42,
        created_by_id=users["creator"].id,
        status=DocumentStatus.DRAFT.value,
        created_by=None,
    )
    monkeypatch.setattr(po_workflow.repository, "find_by_id", lambda _document_id: orphan)

    with pytest.raises(MissingCreatorError):
        po_workflow.submit(42, users["creator"].id)


@pytest.mark.parametrize("action", ["approve", "reject"])
def test_terminal_documents_reject_further_transitions(po_workflow, make_purchase_order, users, action) -> None:
    order = make_purchase_order()
    po_workflow.submit(order.id, users["creator"].id)
    po_workflow.reject(order.id, users["approver"].id, "no budget")

    with pytest.raises(InvalidStateError):
        getattr(po_workflow, action)(order.id, users["approver"].id)

    assert len(po_workflow.repository.reload(order.id).history) == 2


def test_approve_draft_is_invalid_state(po_workflow, make_purchase_order, users) -> None:
    order = make_purchase_order()

    with pytest.raises(InvalidStateError):
        po_workflow.approve(order.id, users["approver"].id)


def test_email_action_approves_with_token(po_workflow, make_purchase_order, users, notifier) -> None:
    order = make_purchase_order()
    po_workflow.submit(order.id, users["creator"].id)
    tokens = _tokens_from(notifier)

    result = po_workflow.handle_email_action(tokens["approve"], "approve", "approved by mail")

    assert result.document.status == DocumentStatus.APPROVED.value
    assert result.document.history[-1].actor_id == users["approver"].id
    assert result.document.approval_comments == "approved by mail"


def test_replayed_email_token_is_blocked_by_state(po_workflow, make_purchase_order, users, notifier) -> None:
    order = make_purchase_order()
    po_workflow.submit(order.id, users["creator"].id)
    tokens = _tokens_from(notifier)
    po_workflow.handle_email_action(tokens["reject"], TokenAction.REJECT, "no")

    with pytest.raises(InvalidStateError):
        po_workflow.handle_email_action(tokens["reject"], TokenAction.REJECT, "again")
    with pytest.raises(InvalidStateError):
        po_workflow.handle_email_action(tokens["approve"], TokenAction.APPROVE)

    assert len(po_workflow.repository.reload(order.id).history) == 2


def test_email_action_rejects_mismatched_action(po_workflow, make_purchase_order, users, notifier) -> None:
    order = make_purchase_order()
    po_workflow.submit(order.id, users["creator"].id)
    tokens = _tokens_from(notifier)

    with pytest.raises(InvalidTokenError):
        po_workflow.handle_email_action(tokens["reject"], "approve")
    with pytest.raises(InvalidTokenError):
        po_workflow.handle_email_action(tokens["approve"], "delete")

    assert po_workflow.repository.reload(order.id).status == DocumentStatus.PENDING_APPROVAL.value


def test_email_action_rejects_expired_token(po_workflow, make_purchase_order, users, notifier, clock) -> None:
    order = make_purchase_order()
    po_workflow.submit(order.id, users["creator"].id)
    tokens = _tokens_from(notifier)

    clock.advance(hours=73)

    with pytest.raises(InvalidTokenError):
        po_workflow.handle_email_action(tokens["approve"], "approve")


def test_email_action_rejects_token_for_other_kind(
    po_workflow, offer_workflow, make_purchase_order, make_budgetary_offer, users, notifier
) -> None:
    make_budgetary_offer()
    order = make_purchase_order()
    po_workflow.submit(order.id, users["creator"].id)
    tokens = _tokens_from(notifier)

    with pytest.raises(InvalidTokenError):
        offer_workflow.handle_email_action(tokens["approve"], "approve")


def test_email_action_rejects_garbage_token(po_workflow) -> None:
    with pytest.raises(InvalidTokenError):
        po_workflow.handle_email_action("not-a-token", "approve")


def test_racing_approvals_only_one_wins(
    po_workflow, make_purchase_order, users, settings, blob_store, notifier, clock
) -> None:
    order = make_purchase_order()
    po_workflow.submit(order.id, users["creator"].id)

    other_session = SessionLocal()
    try:
        other_workflow = build_workflow(
            other_session,
            PURCHASE_ORDER,
            settings=settings,
            blob_store=blob_store,
            notifier=notifier,
            clock=clock,
        )
        # Loaded while still pending; the winning approval lands afterwards.
        assert other_workflow.repository.find_by_id(order.id).status == DocumentStatus.PENDING_APPROVAL.value

        po_workflow.approve(order.id, users["approver"].id, "first")

        with pytest.raises(InvalidStateError):
            other_workflow.approve(order.id, users["approver"].id, "second")
    finally:
        other_session.close()

    document = po_workflow.repository.reload(order.id)
    assert document.status == DocumentStatus.APPROVED.value
    assert len(document.history) == 2
    assert document.history[-1].comments == "first"
    assert len(blob_store.keys()) == 1


def test_pipeline_failure_leaves_document_approved_without_artifact(
    session, settings, notifier, clock, make_purchase_order, users
) -> None:
    workflow = build_workflow(
        session,
        PURCHASE_ORDER,
        settings=settings,
        blob_store=FailingBlobStore(),
        notifier=notifier,
        clock=clock,
    )
    order = make_purchase_order()
    workflow.submit(order.id, users["creator"].id)

    with pytest.raises(PipelineFailureError):
        workflow.approve(order.id, users["approver"].id, "ok")

    document = workflow.repository.reload(order.id)
    assert document.status == DocumentStatus.APPROVED.value
    assert document.document_url is None
    assert document.document_hash is None
    assert len(document.history) == 2
    assert [doc.id for doc in workflow.repository.find_approved_unrendered()] == [order.id]


def test_regenerate_document_replaces_url_and_hash_together(
    po_workflow, make_purchase_order, users, blob_store, clock
) -> None:
    order = make_purchase_order()
    po_workflow.submit(order.id, users["creator"].id)
    first = po_workflow.approve(order.id, users["approver"].id, "ok").document
    first_url = first.document_url

    clock.advance(seconds=5)
    regenerated = po_workflow.regenerate_document(order.id).document

    assert regenerated.document_url != first_url
    assert compute_digest(blob_store.fetch(regenerated.document_url)) == regenerated.document_hash
    # Earlier uploads stay where they were.
    assert len(blob_store.keys()) == 2


def test_regenerate_requires_approved_document(po_workflow, make_purchase_order) -> None:
    order = make_purchase_order()

    with pytest.raises(InvalidStateError):
        po_workflow.regenerate_document(order.id)


def test_verify_document_detects_tampering(po_workflow, make_purchase_order, users, blob_store) -> None:
    order = make_purchase_order()
    po_workflow.submit(order.id, users["creator"].id)
    document = po_workflow.approve(order.id, users["approver"].id).document

    blob_store.replace(document.document_url, b"%PDF-1.4 forged")

    result = po_workflow.verify_document(order.id)
    assert result.is_valid is False
    assert result.current_digest == compute_digest(b"%PDF-1.4 forged")
    assert result.error is None


def test_verify_document_reports_fetch_errors(po_workflow, make_purchase_order, users, blob_store) -> None:
    order = make_purchase_order()
    po_workflow.submit(order.id, users["creator"].id)
    result = po_workflow.approve(order.id, users["approver"].id)

    blob_store.delete(result.artifact.key)

    verification = po_workflow.verify_document(order.id)
    assert verification.is_valid is False
    assert verification.error


def test_verify_document_without_artifact_is_invalid_state(po_workflow, make_purchase_order) -> None:
    order = make_purchase_order()

    with pytest.raises(InvalidStateError):
        po_workflow.verify_document(order.id)


def test_notifier_exception_does_not_fail_submission(
    session, settings, blob_store, clock, make_purchase_order, users
) -> None:
    workflow = build_workflow(
        session,
        PURCHASE_ORDER,
        settings=settings,
        blob_store=blob_store,
        notifier=ExplodingNotifier(),
        clock=clock,
    )
    order = make_purchase_order()

    result = workflow.submit(order.id, users["creator"].id)

    assert result.document.status == DocumentStatus.PENDING_APPROVAL.value
    assert result.notification is not None and result.notification.delivered is False
    assert result.warnings


def test_undelivered_notification_is_reported_as_warning(
    session, settings, blob_store, clock, make_purchase_order, users
) -> None:
    workflow = build_workflow(
        session,
        PURCHASE_ORDER,
        settings=settings,
        blob_store=blob_store,
        notifier=UndeliveredNotifier(),
        clock=clock,
    )
    order = make_purchase_order()
    workflow.submit(order.id, users["creator"].id)

    result = workflow.approve(order.id, users["approver"].id, "ok")

    assert result.document.status == DocumentStatus.APPROVED.value
    assert result.warnings == ("mailbox full",)


def test_submit_without_approver_skips_request(po_workflow, make_purchase_order, users, notifier) -> None:
    order = make_purchase_order(approver=None)

    result = po_workflow.submit(order.id, users["creator"].id)

    assert result.document.status == DocumentStatus.PENDING_APPROVAL.value
    assert result.notification is None
    assert result.warnings
    assert notifier.outbox == []


def test_first_history_actor_acts_as_fallback_approver(po_workflow, make_purchase_order, users) -> None:
    order = make_purchase_order(approver=None)
    po_workflow.submit(order.id, users["creator"].id)

    with pytest.raises(ForbiddenError):
        po_workflow.approve(order.id, users["approver"].id)

    result = po_workflow.approve(order.id, users["creator"].id, "self approved")
    assert result.document.status == DocumentStatus.APPROVED.value


def test_fallback_approver_can_be_disabled(po_workflow, make_purchase_order, users) -> None:
    po_workflow.policy = replace(po_workflow.policy, history_fallback=False)
    order = make_purchase_order(approver=None)
    po_workflow.submit(order.id, users["creator"].id)

    with pytest.raises(ForbiddenError):
        po_workflow.approve(order.id, users["creator"].id)


def test_budgetary_offer_shares_the_workflow(offer_workflow, make_budgetary_offer, users, blob_store, notifier) -> None:
    offer = make_budgetary_offer()
    offer_workflow.submit(offer.id, users["creator"].id)
    tokens = _tokens_from(notifier)
    assert "/api/budgetary-offers/email-approve/" in notifier.outbox[0].links[0].url

    result = offer_workflow.handle_email_action(tokens["approve"], "approve", "fine")

    assert result.document.status == DocumentStatus.APPROVED.value
    assert result.artifact.key.startswith("budgetary-offers/BO_2026_0001_")
    assert compute_digest(blob_store.fetch(result.document.document_url)) == result.document.document_hash
