"""Audience resolution: manual lists or customer filters to destination ids."""

from __future__ import annotations

from collections.abc import Iterable

from sqlalchemy.orm import Session

from app.config import settings
from app.models.messaging.enums import AudienceMode, MessageChannel
from app.services.messaging import customers as customer_directory
from app.services.messaging.errors import MessagingValidationError

# Customer.identifiers key holding the address for each outbound channel.
DESTINATION_KEYS = {
    MessageChannel.email.value: "email",
    MessageChannel.sms.value: "phone",
    MessageChannel.messenger.value: "psid",
    MessageChannel.line.value: "lineUserId",
}


def uniq_destinations(values: Iterable | None) -> list[str]:
    """Trim, drop blanks and dedupe case-insensitively; first spelling wins."""
    out: list[str] = []
    seen: set[str] = set()
    for value in values or []:
        if value is None:
            continue
        text = str(value).strip()
        if not text:
            continue
        key = text.lower()
        if key in seen:
            continue
        seen.add(key)
        out.append(text)
    return out


def destination_key_for_channel(channel: str) -> str:
    return DESTINATION_KEYS.get(str(channel or "").upper(), "lineUserId")


def _audience_value(audience, name: str):
    if audience is None:
        return None
    if isinstance(audience, dict):
        return audience.get(name)
    return getattr(audience, name, None)


def resolve_audience(db: Session, tenant_id, channel: str, audience) -> list[str]:
    """Return deduplicated destinations for ``audience`` (a dict or AudienceSpec).

    A missing audience resolves to nothing. Size bounds are checked by the
    caller that sends.
    """
    if not audience:
        return []
    mode = str(_audience_value(audience, "mode") or "").upper()
    if mode == AudienceMode.manual.value:
        return uniq_destinations(_audience_value(audience, "destinations"))
    if mode != AudienceMode.filter.value:
        raise MessagingValidationError("audience_mode_invalid", "Invalid audience mode")

    key = destination_key_for_channel(channel)
    rows = customer_directory.list_by_filter(
        db,
        tenant_id,
        customer_type=_audience_value(audience, "customer_type"),
        tag_ids=_audience_value(audience, "tag_ids"),
        limit=settings.audience_max_destinations,
    )
    values = []
    for row in rows:
        identifiers = row.identifiers if isinstance(row.identifiers, dict) else {}
        value = identifiers.get(key)
        if isinstance(value, str) and value.strip():
            values.append(value.strip())
    return uniq_destinations(values)


def estimate_audience(db: Session, tenant_id, channel: str | None, audience) -> dict:
    channel_value = str(channel or "").strip().upper()
    if not channel_value:
        raise MessagingValidationError("channel_required", "channel is required")
    return {"count": len(resolve_audience(db, tenant_id, channel_value, audience))}
