"""Inbound dispatcher for the chat auto-responder.

Called by the LINE/Messenger webhook receivers once per inbound text message.
Each call writes one log row, at most one outbox entry, and any tag
associations requested by matching rules.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.config import settings
from app.logging import get_logger
from app.models.customer import CustomerTag
from app.models.messaging.auto_reply import ChatAutoLog, ChatAutoOutbox
from app.models.messaging.enums import MessageChannel, OutboxStatus
from app.services.messaging import customers as customer_directory
from app.services.messaging.errors import MessagingNotFoundError, MessagingValidationError, parse_id
from app.services.messaging.observability import DISPATCH_LATENCY, INBOUND_EVALUATIONS, OUTBOX_QUEUED, TAG_WRITES
from app.services.messaging.rules import active_rules, evaluate_rules
from app.telemetry import get_tracer

logger = get_logger(__name__)

# Customer.identifiers key that identifies the sender on each inbound channel.
CUSTOMER_KEYS = {
    MessageChannel.line.value: "lineUserId",
    MessageChannel.messenger.value: "psid",
}


@dataclass(frozen=True)
class TagWriteError:
    tag_id: str
    code: str
    detail: str


@dataclass
class InboundResult:
    log_id: uuid.UUID
    matched: bool
    label_matched_count: int = 0
    assigned_tag_ids: list[str] = field(default_factory=list)
    tag_errors: list[TagWriteError] = field(default_factory=list)


def _now():
    return datetime.now(UTC)


def _meta_channel_account_id(inbound_meta: dict | None) -> uuid.UUID | None:
    if not isinstance(inbound_meta, dict):
        return None
    raw = inbound_meta.get("channel_account_id") or inbound_meta.get("channelAccountId")
    if not raw:
        return None
    try:
        return uuid.UUID(str(raw))
    except ValueError:
        logger.warning("auto_reply_inbound_bad_channel_account_id value=%s", raw)
        return None


def _collect_tag_ids(evaluation) -> list[str]:
    tag_ids: list[str] = []
    rules = []
    if evaluation.response_rule is not None:
        rules.append(evaluation.response_rule)
    rules.extend(match.rule for match in evaluation.label_matches)
    for rule in rules:
        for tag_id in rule.tag_ids or []:
            value = str(tag_id)
            if value and value not in tag_ids:
                tag_ids.append(value)
    return tag_ids


def _attach_tag(db: Session, tenant_id: uuid.UUID, customer_id: uuid.UUID, tag_uuid: uuid.UUID) -> str:
    if customer_directory.get_tag(db, tenant_id, tag_uuid) is None:
        return "tag_not_found"
    if customer_directory.has_tag(db, tenant_id, customer_id, tag_uuid):
        return "existing"
    db.add(CustomerTag(tenant_id=tenant_id, customer_id=customer_id, tag_id=tag_uuid))
    db.flush()
    return "assigned"


def _assign_tags(db: Session, tenant_id: uuid.UUID, customer_id: uuid.UUID, tag_ids: list[str]):
    """Attach each tag inside its own savepoint so one failure leaves the others intact."""
    assigned: list[str] = []
    errors: list[TagWriteError] = []
    for tag_id in tag_ids:
        try:
            tag_uuid = uuid.UUID(tag_id)
        except ValueError:
            errors.append(TagWriteError(tag_id=tag_id, code="tag_id_invalid", detail="Invalid tag id"))
            TAG_WRITES.labels(outcome="error").inc()
            continue
        savepoint = db.begin_nested()
        try:
            outcome = _attach_tag(db, tenant_id, customer_id, tag_uuid)
            savepoint.commit()
        except IntegrityError:
            # Another writer attached the same tag first.
            savepoint.rollback()
            outcome = "existing"
        except Exception as exc:
            savepoint.rollback()
            logger.warning(
                "auto_reply_tag_write_failed tenant_id=%s customer_id=%s tag_id=%s error=%s",
                tenant_id,
                customer_id,
                tag_id,
                exc,
            )
            errors.append(TagWriteError(tag_id=tag_id, code="tag_write_failed", detail=str(exc)))
            TAG_WRITES.labels(outcome="error").inc()
            continue
        if outcome == "tag_not_found":
            errors.append(TagWriteError(tag_id=tag_id, code="tag_not_found", detail="Tag not found"))
            TAG_WRITES.labels(outcome="error").inc()
            continue
        assigned.append(tag_id)
        TAG_WRITES.labels(outcome=outcome).inc()
    return assigned, errors


def handle_inbound(
    db: Session,
    tenant_id,
    channel: str,
    text: str | None,
    destination: str | None = None,
    inbound_meta: dict | None = None,
) -> InboundResult:
    """Evaluate one inbound message against the tenant's active rules.

    No match is a normal outcome. Failures writing the log or outbox entry
    propagate; failures attaching individual tags are returned on the result.
    """
    tenant_uuid = parse_id(tenant_id)
    channel_value = str(channel or "").strip().upper()
    if not channel_value:
        raise MessagingValidationError("channel_required", "channel is required")

    tracer = get_tracer(__name__)
    with tracer.start_as_current_span("messaging.handle_inbound") as span, DISPATCH_LATENCY.labels(
        channel=channel_value
    ).time():
        span.set_attribute("messaging.channel", channel_value)
        channel_rules, label_rules = active_rules(db, tenant_uuid, channel_value)
        evaluation = evaluate_rules(channel_rules, label_rules, text)
        response_rule = evaluation.response_rule

        log = ChatAutoLog(
            tenant_id=tenant_uuid,
            channel=channel_value,
            channel_account_id=_meta_channel_account_id(inbound_meta),
            inbound_text=text or None,
            inbound_meta=inbound_meta or None,
            matched_rule_id=response_rule.id if response_rule else None,
            matched_keywords=evaluation.response_keywords if response_rule else None,
        )
        db.add(log)
        if response_rule is not None and response_rule.response_payload:
            db.add(
                ChatAutoOutbox(
                    tenant_id=tenant_uuid,
                    channel=channel_value,
                    destination=destination or None,
                    payload=response_rule.response_payload,
                    status=OutboxStatus.pending.value,
                    rule_id=response_rule.id,
                )
            )
            OUTBOX_QUEUED.labels(channel=channel_value).inc()
        db.commit()
        db.refresh(log)

        if response_rule is not None:
            outcome = "matched"
        elif evaluation.label_matches:
            outcome = "label_only"
        else:
            outcome = "no_match"
        INBOUND_EVALUATIONS.labels(channel=channel_value, outcome=outcome).inc()
        span.set_attribute("messaging.outcome", outcome)

        result = InboundResult(
            log_id=log.id,
            matched=response_rule is not None,
            label_matched_count=len(evaluation.label_matches),
        )

        tag_ids = _collect_tag_ids(evaluation)
        customer_key = CUSTOMER_KEYS.get(channel_value)
        if destination and tag_ids and customer_key:
            customer = customer_directory.find_by_identifier(db, tenant_uuid, customer_key, destination)
            if customer is not None:
                result.assigned_tag_ids, result.tag_errors = _assign_tags(db, tenant_uuid, customer.id, tag_ids)
                db.commit()
            else:
                logger.info(
                    "auto_reply_customer_not_found tenant_id=%s channel=%s destination=%s",
                    tenant_uuid,
                    channel_value,
                    destination,
                )

        logger.info(
            "auto_reply_inbound tenant_id=%s channel=%s outcome=%s rule_id=%s labels=%s tags=%s",
            tenant_uuid,
            channel_value,
            outcome,
            response_rule.id if response_rule else None,
            result.label_matched_count,
            len(result.assigned_tag_ids),
        )
        return result


def _activity_limit(limit: int | None) -> int:
    return min(limit or 50, settings.rule_log_list_max)


def list_logs(db: Session, tenant_id, channel: str | None = None, limit: int | None = None):
    query = db.query(ChatAutoLog).filter(ChatAutoLog.tenant_id == parse_id(tenant_id))
    if channel:
        query = query.filter(ChatAutoLog.channel == str(channel).upper())
    return query.order_by(ChatAutoLog.created_at.desc()).limit(_activity_limit(limit)).all()


def list_outbox(
    db: Session,
    tenant_id,
    channel: str | None = None,
    status: str | None = None,
    limit: int | None = None,
):
    query = db.query(ChatAutoOutbox).filter(ChatAutoOutbox.tenant_id == parse_id(tenant_id))
    if channel:
        query = query.filter(ChatAutoOutbox.channel == str(channel).upper())
    if status:
        query = query.filter(ChatAutoOutbox.status == str(status).upper())
    return query.order_by(ChatAutoOutbox.created_at.desc()).limit(_activity_limit(limit)).all()


def record_outbox_status(
    db: Session,
    tenant_id,
    outbox_id,
    status: str,
    error_message: str | None = None,
) -> ChatAutoOutbox:
    """Worker callback: ``PENDING`` moves to ``SENT`` or ``FAILED`` exactly once."""
    entry = (
        db.query(ChatAutoOutbox)
        .filter(ChatAutoOutbox.id == parse_id(outbox_id))
        .filter(ChatAutoOutbox.tenant_id == parse_id(tenant_id))
        .first()
    )
    if not entry:
        raise MessagingNotFoundError("outbox_not_found", "Outbox entry not found")
    target = str(status or "").strip().upper()
    if target not in {OutboxStatus.sent.value, OutboxStatus.failed.value}:
        raise MessagingValidationError("status_invalid", "Invalid status")
    if entry.status != OutboxStatus.pending.value:
        raise MessagingValidationError("outbox_already_processed", "Outbox entry already processed")
    entry.status = target
    entry.error_message = error_message if target == OutboxStatus.failed.value else None
    entry.processed_at = _now()
    db.commit()
    db.refresh(entry)
    return entry
