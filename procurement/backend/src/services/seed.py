"""Utilities for seeding development data."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from procurement.backend.src.models import (
    BudgetaryOffer,
    PurchaseOrder,
    PurchaseOrderItem,
    User,
    Vendor,
)

DEFAULT_USERS = (
    ("staff@procurement.example", "Priya Sharma", "STAFF", "Operations"),
    ("manager@procurement.example", "Arjun Mehta", "MANAGER", "Operations"),
    ("admin@procurement.example", "Kavita Rao", "ADMIN", "Administration"),
)
DEFAULT_VENDOR_NAME = "Shree Ganesh Electricals"


@dataclass
class SeedResult:
    """Records created or found while seeding."""

    users: dict[str, User]
    vendor: Vendor
    purchase_order: PurchaseOrder | None
    budgetary_offer: BudgetaryOffer | None


def next_po_number(session: Session, year: int | None = None) -> str:
    """Return the next ``PO/<year>/<0001>`` number for ``year``."""

    year = year or date.today().year
    prefix = f"PO/{year}/"
    count = session.scalar(
        select(func.count()).select_from(PurchaseOrder).where(PurchaseOrder.po_number.like(f"{prefix}%"))
    )
    return f"{prefix}{(count or 0) + 1:04d}"


def _ensure_user(session: Session, email: str, name: str, role: str, department: str) -> User:
    user = session.query(User).filter(User.email == email).one_or_none()
    if user is None:
        user = User(email=email, name=name, role=role, department=department)
        session.add(user)
        session.flush()
    return user


def seed_development_data(session: Session) -> SeedResult:
    """Ensure demo users, a vendor and one draft document of each kind exist."""

    users = {
        role: _ensure_user(session, email, name, role, department)
        for email, name, role, department in DEFAULT_USERS
    }

    vendor = session.query(Vendor).filter(Vendor.name == DEFAULT_VENDOR_NAME).one_or_none()
    if vendor is None:
        vendor = Vendor(
            name=DEFAULT_VENDOR_NAME,
            email="sales@shreeganesh.example",
            mobile="+91 98765 43210",
            gstin="27ABCDE1234F1Z5",
            address="Plot 14, MIDC Industrial Area, Pune 411019",
        )
        session.add(vendor)
        session.flush()

    purchase_order = None
    if session.query(PurchaseOrder).count() == 0:
        purchase_order = PurchaseOrder(
            po_number=next_po_number(session),
            vendor_id=vendor.id,
            loa_number="LOA/2026/017",
            requirement_desc="Supply of LED flood lights for yard illumination",
            terms_conditions="Delivery within 30 days. Payment 30 days after receipt.",
            ship_to_address="Central Stores, Sector 5, Pune",
            base_amount=Decimal("90000.00"),
            tax_amount=Decimal("16200.00"),
            additional_charges=[{"description": "Freight", "amount": 1500}],
            total_amount=Decimal("107700.00"),
            created_by_id=users["STAFF"].id,
            approver_id=users["MANAGER"].id,
            items=[
                PurchaseOrderItem(
                    name="LED flood light 200W",
                    description="IP66, 6500K",
                    hsn_code="9405",
                    uom="Nos",
                    quantity=Decimal("30"),
                    unit_price=Decimal("3000.00"),
                    total_amount=Decimal("90000.00"),
                )
            ],
        )
        session.add(purchase_order)

    budgetary_offer = None
    if session.query(BudgetaryOffer).count() == 0:
        budgetary_offer = BudgetaryOffer(
            offer_number=f"BO/{date.today().year}/0001",
            offer_date=date.today(),
            to_authority="The Divisional Electrical Engineer, Pune Division",
            subject="Budgetary offer for yard lighting upgrade",
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
            tags=["lighting", "yard"],
            created_by_id=users["STAFF"].id,
            approver_id=users["MANAGER"].id,
        )
        session.add(budgetary_offer)

    session.flush()
    return SeedResult(
        users=users,
        vendor=vendor,
        purchase_order=purchase_order,
        budgetary_offer=budgetary_offer,
    )


__all__ = ["SeedResult", "next_po_number", "seed_development_data"]
