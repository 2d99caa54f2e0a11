import uuid
from datetime import UTC, datetime

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.db import Base
from app.models.messaging.enums import MatchType, OutboxStatus, ResponseKind, RuleKind, RuleStatus


class ChatAutoRule(Base):
    __tablename__ = "chat_auto_rules"
    __table_args__ = (
        UniqueConstraint("tenant_id", "channel", "name", name="uq_chat_auto_rules_tenant_channel_name"),
        Index("ix_chat_auto_rules_lookup", "tenant_id", "channel", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    channel: Mapped[str] = mapped_column(String(32), nullable=False)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    status: Mapped[str] = mapped_column(String(32), default=RuleStatus.active.value)
    match_type: Mapped[str] = mapped_column(String(32), default=MatchType.contains.value)
    keywords: Mapped[list] = mapped_column(JSON, nullable=False)
    tag_ids: Mapped[list | None] = mapped_column(JSON)
    priority: Mapped[int] = mapped_column(Integer, nullable=False, default=0, server_default="0")

    response_kind: Mapped[str] = mapped_column(String(40), default=ResponseKind.raw.value)
    line_content_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))
    messenger_content_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))
    # Snapshot of the referenced content at save time, or the raw payload.
    response_payload: Mapped[dict | None] = mapped_column(JSON)
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSON)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(UTC))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    @property
    def kind(self) -> str | None:
        if isinstance(self.metadata_, dict):
            value = self.metadata_.get("kind")
            return str(value).upper() if value else None
        return None

    @property
    def is_label_rule(self) -> bool:
        return self.kind == RuleKind.label_keywords.value


class ChatAutoLog(Base):
    """One row per evaluated inbound message. Never updated."""

    __tablename__ = "chat_auto_logs"
    __table_args__ = (Index("ix_chat_auto_logs_tenant_created", "tenant_id", "created_at"),)

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)
    channel: Mapped[str] = mapped_column(String(32), nullable=False)
    channel_account_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))
    inbound_text: Mapped[str | None] = mapped_column(Text)
    inbound_meta: Mapped[dict | None] = mapped_column(JSON)
    matched_rule_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("chat_auto_rules.id", ondelete="SET NULL")
    )
    matched_keywords: Mapped[list | None] = mapped_column(JSON)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(UTC))

    matched_rule = relationship("ChatAutoRule")


class ChatAutoOutbox(Base):
    """Queued auto-reply, drained by the delivery worker."""

    __tablename__ = "chat_auto_outbox"
    __table_args__ = (Index("ix_chat_auto_outbox_status_created", "status", "created_at"),)

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)
    channel: Mapped[str] = mapped_column(String(32), nullable=False)
    destination: Mapped[str | None] = mapped_column(String(255))
    payload: Mapped[dict | None] = mapped_column(JSON)
    status: Mapped[str] = mapped_column(String(32), default=OutboxStatus.pending.value)
    rule_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("chat_auto_rules.id", ondelete="SET NULL")
    )
    error_message: Mapped[str | None] = mapped_column(Text)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(UTC))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )
