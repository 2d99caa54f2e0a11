"""Template binding: RAW payloads or snapshots of tenant content objects."""

from __future__ import annotations

import copy
import uuid
from dataclasses import dataclass

from sqlalchemy.orm import Session

from app.models.messaging.content import EmailContent, LineContent, MessengerContent, SmsContent
from app.models.messaging.enums import TemplateKind
from app.services.messaging.errors import MessagingNotFoundError, MessagingValidationError, parse_id

# kind -> (content model, not-found message)
CONTENT_STORES = {
    TemplateKind.line_content.value: (LineContent, "LINE content not found"),
    TemplateKind.messenger_content.value: (MessengerContent, "Messenger content not found"),
    TemplateKind.email_content.value: (EmailContent, "Email content not found"),
    TemplateKind.sms_content.value: (SmsContent, "SMS content not found"),
}


@dataclass(frozen=True)
class RawResponse:
    payload: dict | None
    kind: str = TemplateKind.raw.value

    @property
    def template_id(self) -> None:
        return None


@dataclass(frozen=True)
class ContentResponse:
    kind: str
    template_id: uuid.UUID
    snapshot: dict | None

    @property
    def payload(self) -> dict | None:
        return self.snapshot


ResponseBinding = RawResponse | ContentResponse


def normalize_kind(kind) -> str:
    if isinstance(kind, TemplateKind):
        return kind.value
    value = str(kind or "").strip().upper()
    if not value:
        raise MessagingValidationError("template_kind_required", "templateKind is required")
    if value != TemplateKind.raw.value and value not in CONTENT_STORES:
        raise MessagingValidationError("template_kind_invalid", "Invalid templateKind")
    return value


def find_content(db: Session, tenant_id, kind: str, template_id):
    """Return the tenant's content object or None. Other tenants' rows are invisible."""
    model, _ = CONTENT_STORES[kind]
    return (
        db.query(model)
        .filter(model.id == parse_id(template_id, "templateId"))
        .filter(model.tenant_id == parse_id(tenant_id))
        .first()
    )


def resolve_template(db: Session, tenant_id, kind, template_id=None, payload=None) -> ResponseBinding:
    """Bind a template reference to a concrete payload.

    ``RAW`` returns the caller's payload untouched. Content kinds require
    ``template_id`` and return a deep copy of the stored content.
    """
    kind = normalize_kind(kind)
    if kind == TemplateKind.raw.value:
        return RawResponse(payload=payload)
    if not template_id:
        raise MessagingValidationError("template_id_required", "templateId is required")
    content = find_content(db, tenant_id, kind, template_id)
    if not content:
        _, message = CONTENT_STORES[kind]
        raise MessagingNotFoundError("template_not_found", message)
    return ContentResponse(
        kind=kind,
        template_id=content.id,
        snapshot=copy.deepcopy(content.content),
    )
