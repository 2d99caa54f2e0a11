from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_db, get_tenant_id
from app.schemas.common import ListResponse
from app.schemas.messaging.message_center import (
    AudienceEstimateRequest,
    AudienceEstimateResponse,
    BroadcastRead,
    CampaignCreate,
    CampaignRead,
    CampaignUpdate,
    DeliveryRead,
    DeliveryStatsRead,
    DeliveryStatusUpdate,
    ImmediateCreate,
    ImmediateRead,
    ImmediateUpdate,
    SendRequest,
    SendResponse,
)
from app.services.messaging import audience as audience_service
from app.services.messaging import broadcasts as broadcast_service

router = APIRouter(prefix="/message-center", tags=["messaging-message-center"])


def _envelope(items, limit: int, offset: int) -> dict:
    return {"items": items, "count": len(items), "limit": limit, "offset": offset}


@router.post("/audience/estimate", response_model=AudienceEstimateResponse)
def estimate_audience(
    payload: AudienceEstimateRequest,
    tenant_id: UUID = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    return audience_service.estimate_audience(db, tenant_id, payload.channel, payload.audience)


@router.post("/send", response_model=SendResponse)
def send(payload: SendRequest, tenant_id: UUID = Depends(get_tenant_id), db: Session = Depends(get_db)):
    return broadcast_service.send(db, tenant_id, payload)


@router.get("/history", response_model=ListResponse[BroadcastRead])
def list_broadcasts(
    channel: str | None = None,
    q: str | None = None,
    limit: int = Query(default=20, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    tenant_id: UUID = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    return broadcast_service.broadcasts.list_response(db, tenant_id, channel, q, limit=limit, offset=offset)


@router.get("/deliveries", response_model=ListResponse[DeliveryRead])
def list_deliveries(
    broadcast_id: str | None = None,
    status: str | None = None,
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    tenant_id: UUID = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    return broadcast_service.deliveries.list_response(db, tenant_id, broadcast_id, status, limit, offset)


@router.get("/deliveries/stats", response_model=DeliveryStatsRead)
def delivery_stats(
    broadcast_id: str | None = None,
    tenant_id: UUID = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    return broadcast_service.broadcasts.delivery_stats(db, tenant_id, broadcast_id)


@router.post("/deliveries/{delivery_id}/status", response_model=DeliveryRead)
def record_delivery_status(
    delivery_id: str,
    payload: DeliveryStatusUpdate,
    tenant_id: UUID = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    return broadcast_service.deliveries.record_status(
        db, tenant_id, delivery_id, payload.status, payload.error_message
    )


@router.get("/immediates", response_model=ListResponse[ImmediateRead])
def list_immediates(
    channel: str | None = None,
    status: str | None = None,
    q: str | None = None,
    limit: int = Query(default=20, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    tenant_id: UUID = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    return broadcast_service.immediates.list_response(db, tenant_id, channel, status, q, limit, offset)


@router.post("/immediates", response_model=ImmediateRead, status_code=status.HTTP_201_CREATED)
def create_immediate(payload: ImmediateCreate, tenant_id: UUID = Depends(get_tenant_id), db: Session = Depends(get_db)):
    return broadcast_service.immediates.create(db, tenant_id, payload)


@router.get("/immediates/{immediate_id}", response_model=ImmediateRead)
def get_immediate(immediate_id: str, tenant_id: UUID = Depends(get_tenant_id), db: Session = Depends(get_db)):
    return broadcast_service.immediates.get(db, tenant_id, immediate_id)


@router.patch("/immediates/{immediate_id}", response_model=ImmediateRead)
def update_immediate(
    immediate_id: str,
    payload: ImmediateUpdate,
    tenant_id: UUID = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    return broadcast_service.immediates.update(db, tenant_id, immediate_id, payload)


@router.post("/immediates/{immediate_id}/send", response_model=SendResponse)
def send_immediate(immediate_id: str, tenant_id: UUID = Depends(get_tenant_id), db: Session = Depends(get_db)):
    return broadcast_service.immediates.send(db, tenant_id, immediate_id)


@router.get("/immediates/{immediate_id}/history", response_model=ListResponse[BroadcastRead])
def immediate_history(
    immediate_id: str,
    limit: int = Query(default=20, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    tenant_id: UUID = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    items = broadcast_service.immediates.history(db, tenant_id, immediate_id, limit, offset)
    return _envelope(items, limit, offset)


@router.get("/campaigns", response_model=ListResponse[CampaignRead])
def list_campaigns(
    channel: str | None = None,
    status: str | None = None,
    q: str | None = None,
    limit: int = Query(default=20, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    tenant_id: UUID = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    return broadcast_service.campaigns.list_response(db, tenant_id, channel, status, q, limit, offset)


@router.post("/campaigns", response_model=CampaignRead, status_code=status.HTTP_201_CREATED)
def create_campaign(payload: CampaignCreate, tenant_id: UUID = Depends(get_tenant_id), db: Session = Depends(get_db)):
    return broadcast_service.campaigns.create(db, tenant_id, payload)


@router.get("/campaigns/{campaign_id}", response_model=CampaignRead)
def get_campaign(campaign_id: str, tenant_id: UUID = Depends(get_tenant_id), db: Session = Depends(get_db)):
    return broadcast_service.campaigns.get(db, tenant_id, campaign_id)


@router.patch("/campaigns/{campaign_id}", response_model=CampaignRead)
def update_campaign(
    campaign_id: str,
    payload: CampaignUpdate,
    tenant_id: UUID = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    return broadcast_service.campaigns.update(db, tenant_id, campaign_id, payload)


@router.post("/campaigns/{campaign_id}/run", response_model=SendResponse)
def run_campaign(campaign_id: str, tenant_id: UUID = Depends(get_tenant_id), db: Session = Depends(get_db)):
    return broadcast_service.campaigns.run(db, tenant_id, campaign_id)


@router.get("/campaigns/{campaign_id}/history", response_model=ListResponse[BroadcastRead])
def campaign_history(
    campaign_id: str,
    limit: int = Query(default=20, ge=1, le=200),
    offset: int = Query(default=0, ge=0),
    tenant_id: UUID = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    items = broadcast_service.campaigns.history(db, tenant_id, campaign_id, limit, offset)
    return _envelope(items, limit, offset)
