"""Prometheus metric definitions for the approval workflow."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

workflow_transitions_total = Counter(
    "workflow_transitions_total",
    "Approval workflow transitions by document kind and action.",
    labelnames=["kind", "action"],
)

document_verifications_total = Counter(
    "document_verifications_total",
    "Stored document verifications by outcome.",
    labelnames=["outcome"],
)

notification_failures_total = Counter(
    "notification_failures_total",
    "Notifications that could not be delivered.",
    labelnames=["kind"],
)

pdf_generation_seconds = Histogram(
    "pdf_generation_seconds",
    "Time spent rendering a single approval document PDF.",
    labelnames=["kind"],
)

__all__ = [
    "document_verifications_total",
    "notification_failures_total",
    "pdf_generation_seconds",
    "workflow_transitions_total",
]
