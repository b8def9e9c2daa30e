"""Immutable render inputs captured from approvable documents.

The renderer only ever sees these snapshots, never ORM objects, so a
rendered artifact is a pure function of the values captured here.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from procurement.backend.src.models import BudgetaryOffer, PurchaseOrder, User
from procurement.backend.src.services.formatting import to_decimal


@dataclass(frozen=True, slots=True)
class PartySnapshot:
    name: str
    department: str
    role: str
    email: str


@dataclass(frozen=True, slots=True)
class ApprovalStamp:
    """Approval state printed on the document footer."""

    status: str
    approver_name: str | None
    approval_date: datetime | None
    comments: str | None


@dataclass(frozen=True, slots=True)
class VendorSnapshot:
    name: str
    email: str
    mobile: str
    gstin: str
    address: str


@dataclass(frozen=True, slots=True)
class OrderLine:
    name: str
    description: str
    hsn_code: str
    uom: str
    quantity: Decimal
    unit_price: Decimal
    total_amount: Decimal


@dataclass(frozen=True, slots=True)
class ChargeLine:
    description: str
    amount: Decimal


@dataclass(frozen=True, slots=True)
class PurchaseOrderSnapshot:
    po_number: str
    loa_number: str
    order_date: date | None
    vendor: VendorSnapshot
    lines: tuple[OrderLine, ...]
    charges: tuple[ChargeLine, ...]
    requirement_desc: str
    terms_conditions: str
    ship_to_address: str
    notes: str
    base_amount: Decimal
    tax_amount: Decimal
    total_amount: Decimal
    created_by: PartySnapshot
    stamp: ApprovalStamp


@dataclass(frozen=True, slots=True)
class WorkItemLine:
    description: str
    quantity: Decimal
    unit_of_measurement: str
    base_rate: Decimal
    tax_rate: Decimal

    @property
    def amount(self) -> Decimal:
        return to_decimal(self.quantity * self.base_rate)

    @property
    def tax_amount(self) -> Decimal:
        return to_decimal(self.amount * self.tax_rate / Decimal(100))

    @property
    def total(self) -> Decimal:
        return self.amount + self.tax_amount


@dataclass(frozen=True, slots=True)
class BudgetaryOfferSnapshot:
    offer_number: str
    offer_date: date | None
    to_authority: str
    subject: str
    work_items: tuple[WorkItemLine, ...]
    terms_conditions: str
    tags: tuple[str, ...]
    created_by: PartySnapshot
    stamp: ApprovalStamp

    @property
    def total_amount(self) -> Decimal:
        return sum((item.total for item in self.work_items), Decimal("0.00"))


def _party(user: User | None) -> PartySnapshot:
    if user is None:
        raise ValueError("Creator details not found")
    return PartySnapshot(
        name=user.name,
        department=user.department or "N/A",
        role=user.normalized_role,
        email=user.email,
    )


def _stamp(document: PurchaseOrder | BudgetaryOffer) -> ApprovalStamp:
    approver = document.approver
    return ApprovalStamp(
        status=document.status,
        approver_name=approver.name if approver is not None else None,
        approval_date=document.approval_date,
        comments=document.approval_comments,
    )


def _as_date(value: Any) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    return value


def build_purchase_order_snapshot(order: PurchaseOrder) -> PurchaseOrderSnapshot:
    """Capture everything printed on a purchase order."""

    vendor = order.vendor
    lines = tuple(
        OrderLine(
            name=item.name or "",
            description=item.description or "",
            hsn_code=item.hsn_code or "",
            uom=item.uom or "Units",
            quantity=Decimal(str(item.quantity or 0)),
            unit_price=to_decimal(item.unit_price),
            total_amount=to_decimal(item.total_amount)
            or to_decimal(Decimal(str(item.quantity or 0)) * to_decimal(item.unit_price)),
        )
        for item in order.items
    )
    charges = tuple(
        ChargeLine(
            description=str(charge.get("description", "")),
            amount=to_decimal(charge.get("amount")),
        )
        for charge in order.additional_charges or []
    )
    base_amount = to_decimal(order.base_amount) or sum(
        (line.total_amount for line in lines), Decimal("0.00")
    )
    tax_amount = to_decimal(order.tax_amount)
    total_amount = to_decimal(order.total_amount) or (
        base_amount + tax_amount + sum((c.amount for c in charges), Decimal("0.00"))
    )

    return PurchaseOrderSnapshot(
        po_number=order.po_number,
        loa_number=order.loa_number or "",
        order_date=_as_date(order.created_at),
        vendor=VendorSnapshot(
            name=vendor.name if vendor else "",
            email=vendor.email if vendor else "",
            mobile=(vendor.mobile or "") if vendor else "",
            gstin=(vendor.gstin or "") if vendor else "",
            address=(vendor.address or "") if vendor else "",
        ),
        lines=lines,
        charges=charges,
        requirement_desc=order.requirement_desc or "",
        terms_conditions=order.terms_conditions or "",
        ship_to_address=order.ship_to_address or "",
        notes=order.notes or "",
        base_amount=base_amount,
        tax_amount=tax_amount,
        total_amount=total_amount,
        created_by=_party(order.created_by),
        stamp=_stamp(order),
    )


def build_budgetary_offer_snapshot(offer: BudgetaryOffer) -> BudgetaryOfferSnapshot:
    """Capture everything printed on a budgetary offer."""

    work_items = tuple(
        WorkItemLine(
            description=str(item.get("description", "")),
            quantity=Decimal(str(item.get("quantity") or 0)),
            unit_of_measurement=str(item.get("unit_of_measurement") or "Units"),
            base_rate=to_decimal(item.get("base_rate")),
            tax_rate=Decimal(str(item.get("tax_rate") or 0)),
        )
        for item in offer.work_items or []
    )
    return BudgetaryOfferSnapshot(
        offer_number=offer.offer_number,
        offer_date=_as_date(offer.offer_date),
        to_authority=offer.to_authority,
        subject=offer.subject,
        work_items=work_items,
        terms_conditions=offer.terms_conditions or "",
        tags=tuple(offer.tags or ()),
        created_by=_party(offer.created_by),
        stamp=_stamp(offer),
    )


__all__ = [
    "ApprovalStamp",
    "BudgetaryOfferSnapshot",
    "ChargeLine",
    "OrderLine",
    "PartySnapshot",
    "PurchaseOrderSnapshot",
    "VendorSnapshot",
    "WorkItemLine",
    "build_budgetary_offer_snapshot",
    "build_purchase_order_snapshot",
]
