from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_db, get_tenant_id
from app.models.messaging.enums import RuleChannel
from app.schemas.common import ListResponse
from app.schemas.messaging.auto_reply import (
    AutoLogRead,
    AutoRuleCreate,
    AutoRuleRead,
    AutoRuleUpdate,
    InboundRequest,
    InboundResponse,
    OutboxRead,
    OutboxStatusUpdate,
    RuleMatchRequest,
    RuleMatchResponse,
)
from app.services.messaging import inbound as inbound_service
from app.services.messaging.rules import auto_reply_rules

router = APIRouter(prefix="/auto-reply", tags=["messaging-auto-reply"])


@router.get("/channels")
def list_channels():
    return {"items": [RuleChannel.line.value, RuleChannel.messenger.value]}


@router.get("/rules", response_model=ListResponse[AutoRuleRead])
def list_rules(
    channel: str | None = None,
    status: str | None = None,
    kind: str | None = None,
    q: str | None = None,
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    tenant_id: UUID = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    return auto_reply_rules.list_response(db, tenant_id, channel, status, kind, q, limit, offset)


@router.post("/rules", response_model=AutoRuleRead, status_code=status.HTTP_201_CREATED)
def create_rule(payload: AutoRuleCreate, tenant_id: UUID = Depends(get_tenant_id), db: Session = Depends(get_db)):
    return auto_reply_rules.create(db, tenant_id, payload)


@router.get("/rules/{rule_id}", response_model=AutoRuleRead)
def get_rule(rule_id: str, tenant_id: UUID = Depends(get_tenant_id), db: Session = Depends(get_db)):
    return auto_reply_rules.get(db, tenant_id, rule_id)


@router.patch("/rules/{rule_id}", response_model=AutoRuleRead)
def update_rule(
    rule_id: str,
    payload: AutoRuleUpdate,
    tenant_id: UUID = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    return auto_reply_rules.update(db, tenant_id, rule_id, payload)


@router.delete("/rules/{rule_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_rule(rule_id: str, tenant_id: UUID = Depends(get_tenant_id), db: Session = Depends(get_db)):
    auto_reply_rules.delete(db, tenant_id, rule_id)


@router.post("/test-match", response_model=RuleMatchResponse)
def test_match(payload: RuleMatchRequest, tenant_id: UUID = Depends(get_tenant_id), db: Session = Depends(get_db)):
    result = auto_reply_rules.test_match(db, tenant_id, payload.channel, payload.text, payload.kind)
    if result["rule"] is not None:
        result["rule"] = AutoRuleRead.model_validate(result["rule"])
    return result


@router.post("/inbound", response_model=InboundResponse)
def inbound(payload: InboundRequest, tenant_id: UUID = Depends(get_tenant_id), db: Session = Depends(get_db)):
    result = inbound_service.handle_inbound(
        db,
        tenant_id,
        payload.channel,
        payload.text,
        destination=payload.destination,
        inbound_meta=payload.inbound_meta,
    )
    return InboundResponse(
        log_id=result.log_id,
        matched=result.matched,
        label_matched_count=result.label_matched_count,
        assigned_tag_ids=result.assigned_tag_ids,
        tag_errors=[
            {"tag_id": error.tag_id, "code": error.code, "detail": error.detail} for error in result.tag_errors
        ],
    )


@router.get("/logs", response_model=list[AutoLogRead])
def list_logs(
    channel: str | None = None,
    limit: int | None = Query(default=None, ge=1),
    tenant_id: UUID = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    return inbound_service.list_logs(db, tenant_id, channel, limit)


@router.get("/outbox", response_model=list[OutboxRead])
def list_outbox(
    channel: str | None = None,
    status: str | None = None,
    limit: int | None = Query(default=None, ge=1),
    tenant_id: UUID = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    return inbound_service.list_outbox(db, tenant_id, channel, status, limit)


@router.post("/outbox/{outbox_id}/status", response_model=OutboxRead)
def record_outbox_status(
    outbox_id: str,
    payload: OutboxStatusUpdate,
    tenant_id: UUID = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    return inbound_service.record_outbox_status(db, tenant_id, outbox_id, payload.status, payload.error_message)
