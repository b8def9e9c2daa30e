"""Budgetary offer model."""

from __future__ import annotations

from datetime import date
from typing import Any

from sqlalchemy import JSON, Date, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from .approvable import ApprovableMixin
from .base import Base


class BudgetaryOffer(ApprovableMixin, Base):
    """A priced offer sent to a customer authority before a formal tender.

    ``work_items`` holds dictionaries with ``description``, ``quantity``,
    ``unit_of_measurement``, ``base_rate`` and ``tax_rate`` keys.
    """

    __tablename__ = "budgetary_offers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    offer_number: Mapped[str] = mapped_column(String(64), unique=True, nullable=False, index=True)
    offer_date: Mapped[date] = mapped_column(Date, nullable=False)
    to_authority: Mapped[str] = mapped_column(Text, nullable=False)
    subject: Mapped[str] = mapped_column(Text, nullable=False)
    work_items: Mapped[list[dict[str, Any]]] = mapped_column(JSON, nullable=False, default=list)
    terms_conditions: Mapped[str | None] = mapped_column(Text, nullable=True)
    tags: Mapped[list[str]] = mapped_column(JSON, nullable=False, default=list)

    @property
    def business_number(self) -> str:
        return self.offer_number


__all__ = ["BudgetaryOffer"]
