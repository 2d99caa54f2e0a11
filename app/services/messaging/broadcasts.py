"""Message center: broadcasts, deliveries and saved send definitions."""

from __future__ import annotations

from datetime import UTC, datetime

from sqlalchemy import func, insert
from sqlalchemy.orm import Session

from app.config import settings
from app.logging import get_logger
from app.models.messaging.broadcast import MessageBroadcast, MessageCampaign, MessageDelivery, MessageImmediate
from app.models.messaging.enums import (
    CampaignStatus,
    DeliveryStatus,
    ImmediateStatus,
    MessageChannel,
    TemplateKind,
)
from app.schemas.messaging.message_center import ImmediateRead, SendRequest
from app.services.messaging.audience import resolve_audience, uniq_destinations
from app.services.messaging.channel_accounts import ChannelAccounts
from app.services.messaging.errors import MessagingNotFoundError, MessagingValidationError, parse_id
from app.services.messaging.observability import BROADCASTS_CREATED, DELIVERIES_QUEUED, DELIVERY_STATUS_UPDATES
from app.services.messaging.templates import normalize_kind, resolve_template
from app.services.response import ListResponseMixin
from app.telemetry import get_tracer

logger = get_logger(__name__)

_CHANNELS = {item.value for item in MessageChannel}
_IMMEDIATE_STATUSES = {item.value for item in ImmediateStatus}
_CAMPAIGN_STATUSES = {item.value for item in CampaignStatus}
_TERMINAL_DELIVERY = {DeliveryStatus.sent.value, DeliveryStatus.failed.value}


def _now():
    return datetime.now(UTC)


def _normalize_channel(value) -> str:
    channel = str(value or "").strip().upper()
    if not channel:
        raise MessagingValidationError("channel_required", "channel is required")
    if channel not in _CHANNELS:
        raise MessagingValidationError("channel_invalid", "Invalid channel")
    return channel


def _normalize_status(value, allowed: set[str]) -> str:
    status = str(value or "").strip().upper()
    if status not in allowed:
        raise MessagingValidationError("status_invalid", "Invalid status")
    return status


def send(db: Session, tenant_id, request: SendRequest, immediate_id=None, campaign_id=None) -> dict:
    """Create one broadcast and one QUEUED delivery per resolved destination.

    The broadcast and its deliveries are committed together. No transport
    call is made; the delivery worker drains QUEUED rows.
    """
    tenant_uuid = parse_id(tenant_id)
    channel = _normalize_channel(request.channel)
    template_kind = normalize_kind(request.template_kind)

    destinations = uniq_destinations(request.destinations)
    if not destinations:
        destinations = resolve_audience(db, tenant_uuid, channel, request.audience)
    if not destinations:
        raise MessagingValidationError("no_destinations", "No destinations resolved")
    max_destinations = settings.audience_max_destinations
    if len(destinations) > max_destinations:
        raise MessagingValidationError(
            "too_many_destinations", f"Too many destinations (max {max_destinations})"
        )

    if template_kind == TemplateKind.raw.value and not request.payload:
        raise MessagingValidationError("payload_required", "payload is required for RAW")
    binding = resolve_template(db, tenant_uuid, template_kind, request.template_id, request.payload)

    account = ChannelAccounts.resolve_active(db, tenant_uuid, channel, request.channel_account_id)

    tracer = get_tracer(__name__)
    with tracer.start_as_current_span("messaging.send") as span:
        span.set_attribute("messaging.channel", channel)
        span.set_attribute("messaging.destinations", len(destinations))
        total = len(destinations)
        broadcast = MessageBroadcast(
            tenant_id=tenant_uuid,
            immediate_id=parse_id(immediate_id) if immediate_id else None,
            campaign_id=parse_id(campaign_id) if campaign_id else None,
            channel=channel,
            channel_account_id=account.id if account else None,
            template_kind=template_kind,
            template_id=binding.template_id,
            name=request.name or None,
            payload=binding.payload,
            stats={"total": total, "queued": total, "sent": 0, "failed": 0},
            metadata_=request.metadata_ or None,
        )
        try:
            db.add(broadcast)
            db.flush()
            db.execute(
                insert(MessageDelivery),
                [
                    {
                        "tenant_id": tenant_uuid,
                        "broadcast_id": broadcast.id,
                        "destination": destination,
                        "status": DeliveryStatus.queued.value,
                    }
                    for destination in destinations
                ],
            )
            db.commit()
        except Exception:
            db.rollback()
            logger.exception("message_broadcast_failed tenant_id=%s channel=%s", tenant_uuid, channel)
            raise

    BROADCASTS_CREATED.labels(channel=channel, template_kind=template_kind).inc()
    DELIVERIES_QUEUED.labels(channel=channel).inc(total)
    logger.info(
        "message_broadcast_queued tenant_id=%s broadcast_id=%s channel=%s queued=%s",
        tenant_uuid,
        broadcast.id,
        channel,
        total,
    )
    return {"broadcast_id": broadcast.id, "queued": total, "status": DeliveryStatus.queued.value}


def _status_counts(db: Session, broadcast_id) -> dict:
    rows = (
        db.query(MessageDelivery.status, func.count(MessageDelivery.id))
        .filter(MessageDelivery.broadcast_id == broadcast_id)
        .group_by(MessageDelivery.status)
        .all()
    )
    counts = {status: int(count) for status, count in rows}
    queued = counts.get(DeliveryStatus.queued.value, 0)
    sent = counts.get(DeliveryStatus.sent.value, 0)
    failed = counts.get(DeliveryStatus.failed.value, 0)
    return {"total": sum(counts.values()), "queued": queued, "sent": sent, "failed": failed}


class Broadcasts(ListResponseMixin):
    @staticmethod
    def get(db: Session, tenant_id, broadcast_id):
        broadcast = (
            db.query(MessageBroadcast)
            .filter(MessageBroadcast.id == parse_id(broadcast_id))
            .filter(MessageBroadcast.tenant_id == parse_id(tenant_id))
            .first()
        )
        if not broadcast:
            raise MessagingNotFoundError("broadcast_not_found", "Broadcast not found")
        return broadcast

    @staticmethod
    def list(
        db: Session,
        tenant_id,
        channel: str | None = None,
        q: str | None = None,
        immediate_id: str | None = None,
        campaign_id: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ):
        query = db.query(MessageBroadcast).filter(MessageBroadcast.tenant_id == parse_id(tenant_id))
        if channel:
            query = query.filter(MessageBroadcast.channel == str(channel).upper())
        if q:
            query = query.filter(MessageBroadcast.name.ilike(f"%{q.strip()}%"))
        if immediate_id:
            query = query.filter(MessageBroadcast.immediate_id == parse_id(immediate_id))
        if campaign_id:
            query = query.filter(MessageBroadcast.campaign_id == parse_id(campaign_id))
        return query.order_by(MessageBroadcast.created_at.desc()).limit(limit).offset(offset).all()

    @staticmethod
    def delivery_stats(db: Session, tenant_id, broadcast_id) -> dict:
        if not broadcast_id:
            raise MessagingValidationError("broadcast_id_required", "broadcastId is required")
        broadcast = Broadcasts.get(db, tenant_id, broadcast_id)
        return {"broadcast_id": broadcast.id, **_status_counts(db, broadcast.id)}


class Deliveries(ListResponseMixin):
    @staticmethod
    def list(
        db: Session,
        tenant_id,
        broadcast_id: str | None,
        status: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ):
        if not broadcast_id:
            raise MessagingValidationError("broadcast_id_required", "broadcastId is required")
        query = (
            db.query(MessageDelivery)
            .filter(MessageDelivery.tenant_id == parse_id(tenant_id))
            .filter(MessageDelivery.broadcast_id == parse_id(broadcast_id))
        )
        if status:
            query = query.filter(MessageDelivery.status == str(status).upper())
        return (
            query.order_by(MessageDelivery.created_at.desc(), MessageDelivery.destination.asc())
            .limit(limit)
            .offset(offset)
            .all()
        )

    @staticmethod
    def record_status(db: Session, tenant_id, delivery_id, status: str, error_message: str | None = None):
        """Worker callback: QUEUED moves to SENT or FAILED once, then the broadcast stats are recomputed."""
        delivery = (
            db.query(MessageDelivery)
            .filter(MessageDelivery.id == parse_id(delivery_id))
            .filter(MessageDelivery.tenant_id == parse_id(tenant_id))
            .first()
        )
        if not delivery:
            raise MessagingNotFoundError("delivery_not_found", "Delivery not found")
        target = str(status or "").strip().upper()
        if target not in _TERMINAL_DELIVERY:
            raise MessagingValidationError("status_invalid", "Invalid status")
        if delivery.status != DeliveryStatus.queued.value:
            raise MessagingValidationError("delivery_already_final", "Delivery already processed")
        delivery.status = target
        if target == DeliveryStatus.sent.value:
            delivery.sent_at = _now()
            delivery.error_message = None
        else:
            delivery.error_message = error_message
        db.flush()
        broadcast = db.get(MessageBroadcast, delivery.broadcast_id)
        broadcast.stats = _status_counts(db, broadcast.id)
        db.commit()
        db.refresh(delivery)
        DELIVERY_STATUS_UPDATES.labels(status=target).inc()
        return delivery


def _validate_definition(template_kind: str, template_id, payload) -> None:
    if template_kind != TemplateKind.raw.value and not template_id:
        raise MessagingValidationError("template_id_required", "templateId is required")
    if template_kind == TemplateKind.raw.value and not payload:
        raise MessagingValidationError("payload_required", "payload is required for RAW")


def _definition_fields(data: dict) -> dict:
    name = str(data.get("name") or "").strip()
    if not name:
        raise MessagingValidationError("name_required", "name is required")
    channel = _normalize_channel(data.get("channel"))
    template_kind = normalize_kind(data.get("template_kind"))
    _validate_definition(template_kind, data.get("template_id"), data.get("payload"))
    return {
        "name": name,
        "channel": channel,
        "channel_account_id": (
            parse_id(data["channel_account_id"], "channelAccountId") if data.get("channel_account_id") else None
        ),
        "audience": data.get("audience"),
        "template_kind": template_kind,
        "template_id": parse_id(data["template_id"], "templateId") if template_kind != TemplateKind.raw.value else None,
        "payload": data.get("payload") if template_kind == TemplateKind.raw.value else None,
        "metadata_": data.get("metadata_"),
    }


def _apply_definition_patch(item, data: dict, statuses: set[str]) -> None:
    if "name" in data:
        name = str(data["name"] or "").strip()
        if not name:
            raise MessagingValidationError("name_required", "name is required")
        item.name = name
    if "status" in data:
        item.status = _normalize_status(data["status"], statuses)
    if "channel" in data:
        item.channel = _normalize_channel(data["channel"])
    if "channel_account_id" in data:
        account_id = data["channel_account_id"]
        item.channel_account_id = parse_id(account_id, "channelAccountId") if account_id else None
    if "audience" in data:
        item.audience = data["audience"]
    if "template_kind" in data:
        item.template_kind = normalize_kind(data["template_kind"])
    if "template_id" in data:
        item.template_id = parse_id(data["template_id"], "templateId") if data["template_id"] else None
    if "payload" in data:
        item.payload = data["payload"] or None
    if "metadata_" in data:
        item.metadata_ = data["metadata_"]
    if item.template_kind == TemplateKind.raw.value:
        item.template_id = None
    else:
        item.payload = None
    _validate_definition(item.template_kind, item.template_id, item.payload)


def _send_request_for(item, source: str) -> SendRequest:
    return SendRequest(
        channel=item.channel,
        channel_account_id=str(item.channel_account_id) if item.channel_account_id else None,
        template_kind=item.template_kind,
        template_id=str(item.template_id) if item.template_id else None,
        name=item.name,
        audience=item.audience,
        payload=item.payload,
        metadata_={**(item.metadata_ or {}), "source": source},
    )


def _filter_definitions(query, model, channel, status, q):
    if channel:
        query = query.filter(model.channel == str(channel).upper())
    if status:
        query = query.filter(model.status == str(status).upper())
    if q:
        query = query.filter(model.name.ilike(f"%{q.strip()}%"))
    return query


class Immediates(ListResponseMixin):
    @staticmethod
    def get(db: Session, tenant_id, immediate_id):
        item = (
            db.query(MessageImmediate)
            .filter(MessageImmediate.id == parse_id(immediate_id))
            .filter(MessageImmediate.tenant_id == parse_id(tenant_id))
            .first()
        )
        if not item:
            raise MessagingNotFoundError("immediate_not_found", "Immediate message not found")
        return item

    @staticmethod
    def list(
        db: Session,
        tenant_id,
        channel: str | None = None,
        status: str | None = None,
        q: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ):
        tenant_uuid = parse_id(tenant_id)
        query = db.query(MessageImmediate).filter(MessageImmediate.tenant_id == tenant_uuid)
        query = _filter_definitions(query, MessageImmediate, channel, status, q)
        items = query.order_by(MessageImmediate.updated_at.desc()).limit(limit).offset(offset).all()
        if not items:
            return []
        history = (
            db.query(
                MessageBroadcast.immediate_id,
                func.count(MessageBroadcast.id),
                func.max(MessageBroadcast.created_at),
            )
            .filter(MessageBroadcast.tenant_id == tenant_uuid)
            .filter(MessageBroadcast.immediate_id.in_([item.id for item in items]))
            .group_by(MessageBroadcast.immediate_id)
            .all()
        )
        stats = {immediate_id: (int(count), last_sent) for immediate_id, count, last_sent in history}
        results = []
        for item in items:
            count, last_sent = stats.get(item.id, (0, None))
            results.append(
                ImmediateRead.model_validate(item).model_copy(
                    update={"history_count": count, "last_sent_at": last_sent}
                )
            )
        return results

    @staticmethod
    def create(db: Session, tenant_id, payload):
        data = payload.model_dump()
        fields = _definition_fields(data)
        item = MessageImmediate(
            tenant_id=parse_id(tenant_id),
            status=_normalize_status(data.get("status") or ImmediateStatus.draft.value, _IMMEDIATE_STATUSES),
            **fields,
        )
        db.add(item)
        db.commit()
        db.refresh(item)
        logger.info("message_immediate_created tenant_id=%s immediate_id=%s", item.tenant_id, item.id)
        return item

    @staticmethod
    def update(db: Session, tenant_id, immediate_id, payload):
        item = Immediates.get(db, tenant_id, immediate_id)
        data = payload.model_dump(exclude_unset=True)
        _apply_definition_patch(item, data, _IMMEDIATE_STATUSES)
        db.commit()
        db.refresh(item)
        return item

    @staticmethod
    def send(db: Session, tenant_id, immediate_id) -> dict:
        item = Immediates.get(db, tenant_id, immediate_id)
        result = send(db, tenant_id, _send_request_for(item, "IMMEDIATE"), immediate_id=item.id)
        item.status = ImmediateStatus.sent.value
        db.commit()
        return result

    @staticmethod
    def history(db: Session, tenant_id, immediate_id, limit: int = 20, offset: int = 0):
        item = Immediates.get(db, tenant_id, immediate_id)
        return Broadcasts.list(db, tenant_id, immediate_id=item.id, limit=limit, offset=offset)


class Campaigns(ListResponseMixin):
    @staticmethod
    def get(db: Session, tenant_id, campaign_id):
        item = (
            db.query(MessageCampaign)
            .filter(MessageCampaign.id == parse_id(campaign_id))
            .filter(MessageCampaign.tenant_id == parse_id(tenant_id))
            .first()
        )
        if not item:
            raise MessagingNotFoundError("campaign_not_found", "Campaign not found")
        return item

    @staticmethod
    def list(
        db: Session,
        tenant_id,
        channel: str | None = None,
        status: str | None = None,
        q: str | None = None,
        limit: int = 20,
        offset: int = 0,
    ):
        query = db.query(MessageCampaign).filter(MessageCampaign.tenant_id == parse_id(tenant_id))
        query = _filter_definitions(query, MessageCampaign, channel, status, q)
        return query.order_by(MessageCampaign.updated_at.desc()).limit(limit).offset(offset).all()

    @staticmethod
    def create(db: Session, tenant_id, payload):
        data = payload.model_dump()
        fields = _definition_fields(data)
        default_status = CampaignStatus.scheduled.value if data.get("scheduled_at") else CampaignStatus.draft.value
        item = MessageCampaign(
            tenant_id=parse_id(tenant_id),
            status=_normalize_status(data.get("status") or default_status, _CAMPAIGN_STATUSES),
            scheduled_at=data.get("scheduled_at"),
            **fields,
        )
        db.add(item)
        db.commit()
        db.refresh(item)
        logger.info("message_campaign_created tenant_id=%s campaign_id=%s", item.tenant_id, item.id)
        return item

    @staticmethod
    def update(db: Session, tenant_id, campaign_id, payload):
        item = Campaigns.get(db, tenant_id, campaign_id)
        data = payload.model_dump(exclude_unset=True)
        if "scheduled_at" in data:
            item.scheduled_at = data.pop("scheduled_at")
        _apply_definition_patch(item, data, _CAMPAIGN_STATUSES)
        db.commit()
        db.refresh(item)
        return item

    @staticmethod
    def run(db: Session, tenant_id, campaign_id) -> dict:
        """Send the campaign now. Scheduling is informational only."""
        item = Campaigns.get(db, tenant_id, campaign_id)
        result = send(db, tenant_id, _send_request_for(item, "CAMPAIGN"), campaign_id=item.id)
        item.status = CampaignStatus.completed.value
        item.last_run_at = _now()
        db.commit()
        logger.info(
            "message_campaign_run tenant_id=%s campaign_id=%s broadcast_id=%s",
            item.tenant_id,
            item.id,
            result["broadcast_id"],
        )
        return result

    @staticmethod
    def history(db: Session, tenant_id, campaign_id, limit: int = 20, offset: int = 0):
        item = Campaigns.get(db, tenant_id, campaign_id)
        return Broadcasts.list(db, tenant_id, campaign_id=item.id, limit=limit, offset=offset)


broadcasts = Broadcasts()
deliveries = Deliveries()
immediates = Immediates()
campaigns = Campaigns()
