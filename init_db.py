import structlog

from procurement.backend.src.core.logging import configure_logging
from procurement.backend.src.db import create_schema, get_engine

LOGGER = structlog.get_logger(__name__)


def init_db():
    engine = get_engine()
    LOGGER.info("database_connecting", database_url=engine.url.render_as_string(hide_password=True))
    create_schema(engine)


if __name__ == "__main__":
    configure_logging()
    init_db()
