"""Public API routers exposed by the FastAPI application."""

from . import budgetary_offers, health, purchase_orders

__all__ = ["budgetary_offers", "health", "purchase_orders"]
