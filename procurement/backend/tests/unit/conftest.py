"""Shared fixtures for the approval workflow tests."""

from __future__ import annotations

import os
import sys
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path
from typing import Callable

sys.path.append(str(Path(__file__).resolve().parents[4]))

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_procurement.db")
os.environ.setdefault("AWS_S3_BUCKET", "local")
os.environ.setdefault("APPROVAL_TOKEN_SECRET", "test-approval-secret")
os.environ.setdefault("SESSION_TOKEN_SECRET", "test-session-secret")
os.environ.pop("MAIL_SERVER", None)

import pytest
from sqlalchemy.orm import Session

from procurement.backend.src.core.config import Settings
from procurement.backend.src.core.storage import InMemoryBlobStore
from procurement.backend.src.db import create_schema, drop_schema
from procurement.backend.src.db.session import SessionLocal
from procurement.backend.src.models import (
    BudgetaryOffer,
    PurchaseOrder,
    PurchaseOrderItem,
    User,
    Vendor,
)
from procurement.backend.src.services.approval_workflow import (
    ApprovableDocumentWorkflow,
    build_workflow,
)
from procurement.backend.src.services.document_kinds import BUDGETARY_OFFER, PURCHASE_ORDER
from procurement.backend.src.services.notifications import LoggingNotifier


class FrozenClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture(autouse=True)
def setup_database():  # type: ignore[no-untyped-def]
    create_schema()
    yield
    drop_schema()


@pytest.fixture()
def session(setup_database) -> Session:  # type: ignore[no-untyped-def]
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def settings() -> Settings:
    return Settings(
        database_url=os.environ["DATABASE_URL"],
        aws_s3_bucket="local",
        public_base_url="https://procure.example",
        approval_token_secret="test-approval-secret",
        approval_token_ttl_hours=72,
        auto_approve_roles_raw="ADMIN",
        approver_history_fallback=True,
        company_name="Test Procurement Co",
        mail_server=None,
    )


@pytest.fixture()
def clock() -> FrozenClock:
    return FrozenClock(datetime(2026, 3, 2, 9, 30, tzinfo=timezone.utc))


@pytest.fixture()
def blob_store() -> InMemoryBlobStore:
    return InMemoryBlobStore()


@pytest.fixture()
def notifier() -> LoggingNotifier:
    return LoggingNotifier()


@pytest.fixture()
def users(session: Session) -> dict[str, User]:
    records = {
        "creator": User(email="creator@example.com", name="Priya Sharma", role="STAFF", department="Operations"),
        "approver": User(email="approver@example.com", name="Arjun Mehta", role="MANAGER", department="Operations"),
        "outsider": User(email="outsider@example.com", name="Dev Patel", role="STAFF", department="Stores"),
        "admin": User(email="admin@example.com", name="Kavita Rao", role="ADMIN", department="Administration"),
    }
    session.add_all(records.values())
    session.commit()
    return records


@pytest.fixture()
def vendor(session: Session) -> Vendor:
    record = Vendor(
        name="Shree Ganesh Electricals",
        email="sales@shreeganesh.example",
        mobile="+91 98765 43210",
        gstin="27ABCDE1234F1Z5",
        address="Plot 14, MIDC Industrial Area, Pune 411019",
    )
    session.add(record)
    session.commit()
    return record


@pytest.fixture()
def make_purchase_order(session: Session, users: dict[str, User], vendor: Vendor) -> Callable[..., PurchaseOrder]:
    counter = {"value": 0}

    def factory(
        *,
        created_by: User | None = None,
        approver: User | None | str = "default",
    ) -> PurchaseOrder:
        counter["value"] += 1
        creator = created_by or users["creator"]
        if approver == "default":
            approver = users["approver"]
        order = PurchaseOrder(
            po_number=f"PO/2026/{counter['value']:04d}",
            vendor_id=vendor.id,
            loa_number="LOA/2026/017",
            requirement_desc="Supply of LED flood lights",
            terms_conditions="Delivery within 30 days.",
            ship_to_address="Central Stores, Pune",
            base_amount=Decimal("90000.00"),
            tax_amount=Decimal("16200.00"),
            additional_charges=[{"description": "Freight", "amount": 1500}],
            total_amount=Decimal("107700.00"),
            created_by_id=creator.id,
            approver_id=approver.id if approver is not None else None,
            items=[
                PurchaseOrderItem(
                    name="LED flood light 200W",
                    description="IP66",
                    hsn_code="9405",
                    uom="Nos",
                    quantity=Decimal("30"),
                    unit_price=Decimal("3000.00"),
                    total_amount=Decimal("90000.00"),
                )
            ],
        )
        session.add(order)
        session.commit()
        return order

    return factory


@pytest.fixture()
def make_budgetary_offer(session: Session, users: dict[str, User]) -> Callable[..., BudgetaryOffer]:
    counter = {"value": 0}

    def factory(*, created_by: User | None = None) -> BudgetaryOffer:
        counter["value"] += 1
        creator = created_by or users["creator"]
        offer = BudgetaryOffer(
            offer_number=f"BO/2026/{counter['value']:04d}",
            offer_date=date(2026, 3, 1),
            to_authority="The Divisional Electrical Engineer, Pune Division",
            subject="Yard lighting upgrade",
            work_items=[
                {
                    "description": "Supply and installation of LED flood lights",
                    "quantity": 30,
                    "unit_of_measurement": "Nos",
                    "base_rate": 3500,
                    "tax_rate": 18,
                }
            ],
            terms_conditions="Rates valid for 90 days.",
            tags=["lighting"],
            created_by_id=creator.id,
            approver_id=users["approver"].id,
        )
        session.add(offer)
        session.commit()
        return offer

    return factory


@pytest.fixture()
def po_workflow(
    session: Session,
    settings: Settings,
    blob_store: InMemoryBlobStore,
    notifier: LoggingNotifier,
    clock: FrozenClock,
) -> ApprovableDocumentWorkflow:
    return build_workflow(
        session,
        PURCHASE_ORDER,
        settings=settings,
        blob_store=blob_store,
        notifier=notifier,
        clock=clock,
    )


@pytest.fixture()
def offer_workflow(
    session: Session,
    settings: Settings,
    blob_store: InMemoryBlobStore,
    notifier: LoggingNotifier,
    clock: FrozenClock,
) -> ApprovableDocumentWorkflow:
    return build_workflow(
        session,
        BUDGETARY_OFFER,
        settings=settings,
        blob_store=blob_store,
        notifier=notifier,
        clock=clock,
    )
