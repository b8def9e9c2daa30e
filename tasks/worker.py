"""Celery application factory."""

from __future__ import annotations

from typing import Any

import structlog
from celery import Celery, signals
from kombu import Queue

from procurement.backend.src.core.config import get_settings

LOGGER = structlog.get_logger(__name__)

settings = get_settings()

celery = Celery(
    "procurement",
    broker=settings.broker_url,
    backend=settings.result_backend,
)

celery.conf.update(include=["tasks.document_tasks"])

celery.conf.update(
    task_default_queue="documents",
    task_queues=(Queue("documents"),),
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    worker_prefetch_multiplier=1,
    broker_transport_options={"global_keyprefix": "procurement-broker:"},
    result_backend_transport_options={"global_keyprefix": "procurement-result:"},
    broker_connection_retry_on_startup=True,
    beat_schedule={
        "repair-unrendered-documents": {
            "task": "tasks.repair_unrendered_documents",
            "schedule": float(settings.repair_interval_seconds),
        },
    },
)

LOGGER.info(
    "celery_bootstrap_ready",
    broker=settings.broker_url,
    backend=settings.result_backend,
)

# Registers the task definitions for workers started from any entrypoint.
from . import document_tasks  # noqa: F401,E402  # isort: skip


@signals.worker_ready.connect
def _log_worker_configuration(sender: Any | None = None, **_: Any) -> None:
    """Emit structured worker configuration details after startup."""

    app = sender.app if sender is not None else celery
    registered_tasks = sorted(
        task_name for task_name in app.tasks.keys() if task_name.startswith("tasks.")
    )
    LOGGER.info(
        "celery_worker_configuration",
        default_queue=app.conf.task_default_queue,
        registered_tasks=registered_tasks,
    )


@signals.task_postrun.connect
def _log_task_postrun(
    sender: Any | None = None,
    task_id: str | None = None,
    task: Any | None = None,
    retval: Any | None = None,
    state: str | None = None,
    **_: Any,
) -> None:
    """Emit completion information after a task finishes."""

    task_name = getattr(task, "name", None) or ""
    if task_name and not task_name.startswith("tasks."):
        return
    payload: dict[str, Any] = {"task_id": task_id, "task_name": task_name, "state": state}
    if state == "SUCCESS" and isinstance(retval, dict):
        payload["result"] = retval
    LOGGER.info("celery_task_postrun", **payload)


__all__ = ["celery"]
