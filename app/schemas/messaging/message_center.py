from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class AudienceSpec(BaseModel):
    mode: str
    destinations: list[str] | None = None
    customer_type: str | None = None
    tag_ids: list[str] | None = None


class AudienceEstimateRequest(BaseModel):
    channel: str | None = None
    audience: AudienceSpec | None = None


class AudienceEstimateResponse(BaseModel):
    count: int


class SendRequest(BaseModel):
    channel: str | None = None
    channel_account_id: str | None = None
    template_kind: str | None = None
    template_id: str | None = None
    name: str | None = None
    destinations: list[str] | None = None
    audience: AudienceSpec | None = None
    payload: dict | None = None
    metadata_: dict | None = Field(default=None, serialization_alias="metadata")


class SendResponse(BaseModel):
    broadcast_id: UUID
    queued: int
    status: str


class SavedSendBase(BaseModel):
    name: str | None = Field(default=None, max_length=200)
    status: str | None = None
    channel: str | None = None
    channel_account_id: str | None = None
    audience: AudienceSpec | None = None
    template_kind: str | None = None
    template_id: str | None = None
    payload: dict | None = None
    metadata_: dict | None = Field(default=None, serialization_alias="metadata")


class ImmediateCreate(SavedSendBase):
    pass


class ImmediateUpdate(SavedSendBase):
    pass


class SavedSendRead(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: UUID
    name: str
    status: str
    channel: str
    channel_account_id: UUID | None = None
    audience: dict | None = None
    template_kind: str
    template_id: UUID | None = None
    payload: dict | None = None
    metadata_: dict | None = Field(default=None, serialization_alias="metadata")
    created_at: datetime
    updated_at: datetime


class ImmediateRead(SavedSendRead):
    history_count: int = 0
    last_sent_at: datetime | None = None


class CampaignCreate(SavedSendBase):
    scheduled_at: datetime | None = None


class CampaignUpdate(SavedSendBase):
    scheduled_at: datetime | None = None


class CampaignRead(SavedSendRead):
    scheduled_at: datetime | None = None
    last_run_at: datetime | None = None


class BroadcastRead(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: UUID
    immediate_id: UUID | None = None
    campaign_id: UUID | None = None
    channel: str
    channel_account_id: UUID | None = None
    template_kind: str
    template_id: UUID | None = None
    name: str | None = None
    payload: dict | None = None
    stats: dict | None = None
    metadata_: dict | None = Field(default=None, serialization_alias="metadata")
    created_at: datetime


class DeliveryRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    broadcast_id: UUID
    destination: str
    status: str
    error_message: str | None = None
    sent_at: datetime | None = None
    created_at: datetime
    updated_at: datetime


class DeliveryStatusUpdate(BaseModel):
    status: str
    error_message: str | None = None


class DeliveryStatsRead(BaseModel):
    broadcast_id: UUID
    total: int
    queued: int
    sent: int
    failed: int
