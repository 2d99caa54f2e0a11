"""Per-channel content stores referenced by templates.

Content CRUD lives in the content modules of the CDP layer. The engine only
reads ``content`` by (tenant, id) and copies it.
"""

import uuid
from datetime import UTC, datetime

from sqlalchemy import JSON, DateTime, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, declared_attr, mapped_column

from app.db import Base


class ContentColumns:
    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    type: Mapped[str] = mapped_column(String(40), default="TEXT")
    status: Mapped[str] = mapped_column(String(32), default="DRAFT")
    content: Mapped[dict | None] = mapped_column(JSON)
    metadata_: Mapped[dict | None] = mapped_column("metadata", JSON)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=lambda: datetime.now(UTC))
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(UTC),
        onupdate=lambda: datetime.now(UTC),
    )

    @declared_attr.directive
    def __table_args__(cls):
        return (UniqueConstraint("tenant_id", "name", name=f"uq_{cls.__tablename__}_tenant_name"),)


class LineContent(ContentColumns, Base):
    __tablename__ = "line_contents"


class MessengerContent(ContentColumns, Base):
    __tablename__ = "messenger_contents"


class EmailContent(ContentColumns, Base):
    __tablename__ = "email_contents"


class SmsContent(ContentColumns, Base):
    __tablename__ = "sms_contents"
