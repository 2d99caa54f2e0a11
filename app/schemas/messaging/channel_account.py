from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class ChannelAccountCreate(BaseModel):
    channel: str | None = None
    name: str | None = Field(default=None, max_length=160)
    status: str | None = None
    metadata_: dict | None = Field(default=None, serialization_alias="metadata")


class ChannelAccountUpdate(BaseModel):
    name: str | None = Field(default=None, max_length=160)
    status: str | None = None
    metadata_: dict | None = Field(default=None, serialization_alias="metadata")


class ChannelAccountRead(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: UUID
    channel: str
    name: str
    status: str
    metadata_: dict | None = Field(default=None, serialization_alias="metadata")
    created_at: datetime
    updated_at: datetime
