"""Per-kind parameters for the shared approval workflow."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from procurement.backend.src.models import BudgetaryOffer, PurchaseOrder
from procurement.backend.src.services.document_snapshots import (
    build_budgetary_offer_snapshot,
    build_purchase_order_snapshot,
)
from procurement.backend.src.services.pdf_generation import (
    render_budgetary_offer_pdf,
    render_purchase_order_pdf,
)


@dataclass(frozen=True, slots=True)
class DocumentKind:
    """Everything that differs between purchase orders and budgetary offers."""

    name: str
    label: str
    model: type[Any]
    route_segment: str
    storage_prefix: str
    build_snapshot: Callable[[Any], Any]
    render_pdf: Callable[..., bytes]

    def render(self, document: Any, *, company_name: str) -> bytes:
        return self.render_pdf(self.build_snapshot(document), company_name=company_name)

    def email_action_url(self, base_url: str, action: str, token: str) -> str:
        """Absolute link for the unauthenticated email approve/reject endpoint."""

        return f"{base_url.rstrip('/')}/api/{self.route_segment}/email-{action}/{token}"


PURCHASE_ORDER = DocumentKind(
    name="purchase_order",
    label="Purchase Order",
    model=PurchaseOrder,
    route_segment="purchase-orders",
    storage_prefix="purchase-orders",
    build_snapshot=build_purchase_order_snapshot,
    render_pdf=render_purchase_order_pdf,
)

BUDGETARY_OFFER = DocumentKind(
    name="budgetary_offer",
    label="Budgetary Offer",
    model=BudgetaryOffer,
    route_segment="budgetary-offers",
    storage_prefix="budgetary-offers",
    build_snapshot=build_budgetary_offer_snapshot,
    render_pdf=render_budgetary_offer_pdf,
)

DOCUMENT_KINDS: dict[str, DocumentKind] = {
    kind.name: kind for kind in (PURCHASE_ORDER, BUDGETARY_OFFER)
}


def get_document_kind(name: str) -> DocumentKind:
    try:
        return DOCUMENT_KINDS[name]
    except KeyError as exc:
        raise ValueError(f"Unknown document kind: {name}") from exc


__all__ = [
    "BUDGETARY_OFFER",
    "DOCUMENT_KINDS",
    "DocumentKind",
    "PURCHASE_ORDER",
    "get_document_kind",
]
