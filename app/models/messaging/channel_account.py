import uuid
from datetime import UTC, datetime

from sqlalchemy import JSON, DateTime, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from app.db import Base
from app.models.messaging.enums import ChannelAccountStatus


class ChannelAccount(Base):
    """Named per-tenant transport account (LINE OA, Messenger page, SMTP, SMS gateway)."""

    __tablename__ = "messaging_channel_accounts"
    __table_args__ = (
        UniqueConstraint("tenant_id", "channel", "name", name="uq_messaging_channel_accounts_tenant_channel_name"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)
    channel: Mapped[str] = mapped_column(String(32), nullable=False)
    name: Mapped[str] = mapped_column(String(160), nullable=False)
    status: Mapped[str] = mapped_column(String(32), default=ChannelAccountStatus.active.value)
    # Transport credentials, e.g. channelAccessToken or pageAccessToken.
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSON)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(UTC))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )
