"""Persistence boundary for approvable documents."""

from __future__ import annotations

from typing import Any, Generic, TypeVar

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from procurement.backend.src.models import DocumentStatus, User

DocumentT = TypeVar("DocumentT")


class DocumentRepository(Generic[DocumentT]):
    """Load documents and apply guarded single-statement updates.

    Every write commits immediately, so a status change is durable even if a
    later step of the same workflow call fails.
    """

    def __init__(self, session: Session, model: type[DocumentT]) -> None:
        self.session = session
        self.model = model

    def find_by_id(self, document_id: int) -> DocumentT | None:
        return self.session.get(self.model, document_id)

    def reload(self, document_id: int) -> DocumentT | None:
        """Return the document with attributes refreshed from the database."""

        return self.session.get(self.model, document_id, populate_existing=True)

    def get_user(self, user_id: int | None) -> User | None:
        if user_id is None:
            return None
        return self.session.get(User, user_id)

    def compare_and_set(
        self, document_id: int, expected_status: DocumentStatus, **fields: Any
    ) -> bool:
        """Apply ``fields`` only if the stored status still equals ``expected_status``."""

        model = self.model
        statement = (
            update(model)
            .where(model.id == document_id, model.status == expected_status.value)
            .values(**fields)
            .execution_options(synchronize_session=False)
        )
        result = self.session.execute(statement)
        if result.rowcount != 1:
            self.session.rollback()
            return False
        self.session.commit()
        return True

    def update(self, document_id: int, **fields: Any) -> None:
        model = self.model
        self.session.execute(
            update(model)
            .where(model.id == document_id)
            .values(**fields)
            .execution_options(synchronize_session=False)
        )
        self.session.commit()

    def find_approved_unrendered(self, limit: int = 100) -> list[DocumentT]:
        """Approved documents whose artifact has not been stored yet."""

        model = self.model
        statement = (
            select(model)
            .where(model.status == DocumentStatus.APPROVED.value, model.document_hash.is_(None))
            .order_by(model.id)
            .limit(limit)
        )
        return list(self.session.scalars(statement).unique())


__all__ = ["DocumentRepository"]
