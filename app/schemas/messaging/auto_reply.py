from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class AutoRuleBase(BaseModel):
    name: str | None = Field(default=None, max_length=200)
    status: str | None = None
    match_type: str | None = None
    # A list, or a comma-separated string.
    keywords: list[str] | str | None = None
    tag_ids: list[str] | None = None
    priority: int | None = None
    response_kind: str | None = None
    line_content_id: str | None = None
    messenger_content_id: str | None = None
    response_payload: dict | None = None
    metadata_: dict | None = Field(default=None, serialization_alias="metadata")


class AutoRuleCreate(AutoRuleBase):
    channel: str | None = None
    kind: str | None = None


class AutoRuleUpdate(AutoRuleBase):
    pass


class AutoRuleRead(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: UUID
    tenant_id: UUID
    channel: str
    name: str
    status: str
    match_type: str
    keywords: list[str]
    tag_ids: list[str] | None = None
    priority: int
    kind: str | None = None
    response_kind: str
    line_content_id: UUID | None = None
    messenger_content_id: UUID | None = None
    response_payload: dict | None = None
    metadata_: dict | None = Field(default=None, serialization_alias="metadata")
    created_at: datetime
    updated_at: datetime


class RuleMatchRequest(BaseModel):
    channel: str | None = None
    text: str = ""
    kind: str | None = None


class LabelMatchRead(BaseModel):
    rule_id: UUID
    name: str
    matched_keywords: list[str]
    tag_ids: list[str] = Field(default_factory=list)


class RuleMatchResponse(BaseModel):
    matched: bool
    rule: AutoRuleRead | None = None
    matched_keywords: list[str] = Field(default_factory=list)
    response_payload: dict | None = None
    label_matches: list[LabelMatchRead] = Field(default_factory=list)


class InboundRequest(BaseModel):
    channel: str
    text: str | None = None
    destination: str | None = None
    inbound_meta: dict | None = None


class TagWriteErrorRead(BaseModel):
    tag_id: str
    code: str
    detail: str


class InboundResponse(BaseModel):
    log_id: UUID
    matched: bool
    label_matched_count: int = 0
    assigned_tag_ids: list[str] = Field(default_factory=list)
    tag_errors: list[TagWriteErrorRead] = Field(default_factory=list)


class AutoLogRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    channel: str
    channel_account_id: UUID | None = None
    inbound_text: str | None = None
    inbound_meta: dict | None = None
    matched_rule_id: UUID | None = None
    matched_keywords: list[str] | None = None
    created_at: datetime


class OutboxRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    channel: str
    destination: str | None = None
    payload: dict | None = None
    status: str
    rule_id: UUID | None = None
    error_message: str | None = None
    processed_at: datetime | None = None
    created_at: datetime


class OutboxStatusUpdate(BaseModel):
    status: str
    error_message: str | None = None
