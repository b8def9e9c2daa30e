"""Seed the development database with demo users, a vendor and draft documents."""

from procurement.backend.src.core.security import create_session_token
from procurement.backend.src.core.logging import configure_logging
from procurement.backend.src.db import create_schema, session_scope
from procurement.backend.src.services.seed import seed_development_data


def main() -> None:
    """Create tables (if needed) and ensure demo data exists."""

    configure_logging()
    create_schema()

    with session_scope() as session:
        result = seed_development_data(session)

        print("Development data ready!")
        print(f"Vendor: {result.vendor.name} [id={result.vendor.id}]")
        for role, user in result.users.items():
            print(f"User ({role}): {user.name} <{user.email}> [id={user.id}]")
            print(f"  bearer token: {create_session_token(user)}")
        if result.purchase_order is not None:
            print(f"Draft purchase order: {result.purchase_order.po_number}")
        if result.budgetary_offer is not None:
            print(f"Draft budgetary offer: {result.budgetary_offer.offer_number}")


if __name__ == "__main__":
    main()
