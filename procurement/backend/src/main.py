"""Entrypoint for the FastAPI application."""

import os
import uuid

from dotenv import load_dotenv

# Load .env locally only; deployed environments inject variables directly.
env_path = os.path.join(os.path.dirname(__file__), "../.env")
if os.path.exists(env_path):
    load_dotenv(dotenv_path=os.path.abspath(env_path))

import structlog
from fastapi import FastAPI, Request
from fastapi.exception_handlers import http_exception_handler
from fastapi.middleware.cors import CORSMiddleware

from .api import budgetary_offers, health, purchase_orders
from .core.config import Settings, get_settings
from .core.errors import WorkflowError
from .core.logging import configure_logging

LOGGER = structlog.get_logger(__name__)
REQUEST_ID_HEADER = "X-Request-ID"


async def _bind_request_context(request: Request, call_next):
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(
        request_id=request_id,
        method=request.method,
        path=request.url.path,
    )
    response = await call_next(request)
    response.headers[REQUEST_ID_HEADER] = request_id
    return response


async def _log_workflow_error(request: Request, exc: WorkflowError):
    LOGGER.warning(
        "workflow_request_failed",
        kind=exc.kind,
        status_code=exc.status_code,
        detail=exc.detail,
    )
    return await http_exception_handler(request, exc)


def _check_secrets(settings: Settings) -> None:
    placeholders = settings.default_secret_names()
    if not placeholders:
        return
    if not settings.allows_default_secrets:
        raise RuntimeError(
            f"{', '.join(placeholders)} must be set when APP_ENV is {settings.environment!r}"
        )
    LOGGER.warning(
        "placeholder_secrets_in_use",
        environment=settings.environment,
        settings=placeholders,
    )


def create_app() -> FastAPI:
    configure_logging()
    _check_secrets(get_settings())
    app = FastAPI(title="Procurement Approvals", version="0.1.0")

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=[REQUEST_ID_HEADER],
    )
    app.middleware("http")(_bind_request_context)
    app.add_exception_handler(WorkflowError, _log_workflow_error)

    app.include_router(health.router, prefix="/api")
    app.include_router(purchase_orders.router, prefix="/api")
    app.include_router(budgetary_offers.router, prefix="/api")

    return app


app = create_app()
