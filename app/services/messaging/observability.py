"""Prometheus metrics for the messaging engine."""

from __future__ import annotations

from prometheus_client import Counter, Histogram

INBOUND_EVALUATIONS = Counter(
    "messaging_inbound_evaluations_total",
    "Inbound messages evaluated against auto-reply rules",
    ["channel", "outcome"],  # outcome: matched, label_only, no_match
)

OUTBOX_QUEUED = Counter(
    "messaging_outbox_queued_total",
    "Auto-reply outbox entries queued",
    ["channel"],
)

TAG_WRITES = Counter(
    "messaging_tag_writes_total",
    "Customer tag writes from inbound keyword rules",
    ["outcome"],  # outcome: assigned, existing, error
)

BROADCASTS_CREATED = Counter(
    "messaging_broadcasts_created_total",
    "Broadcasts created",
    ["channel", "template_kind"],
)

DELIVERIES_QUEUED = Counter(
    "messaging_deliveries_queued_total",
    "Delivery rows queued by broadcasts",
    ["channel"],
)

DELIVERY_STATUS_UPDATES = Counter(
    "messaging_delivery_status_updates_total",
    "Delivery status transitions recorded by the worker",
    ["status"],
)

DISPATCH_LATENCY = Histogram(
    "messaging_inbound_dispatch_seconds",
    "Time to evaluate and persist one inbound message",
    ["channel"],
)
