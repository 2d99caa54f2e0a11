"""Create messaging engine tables.

Revision ID: 1a2b3c4d5e6f
Revises:
Create Date: 2026-10-18
"""

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "1a2b3c4d5e6f"
down_revision = None
branch_labels = None
depends_on = None

_CONTENT_TABLES = ("line_contents", "messenger_contents", "email_contents", "sms_contents")


def _uuid():
    return postgresql.UUID(as_uuid=True)


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    op.create_table(
        "customers",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("tenant_id", _uuid(), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=True),
        sa.Column("type", sa.String(length=32), nullable=True),
        sa.Column("identifiers", sa.JSON(), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_customers_tenant_id", "customers", ["tenant_id"])

    op.create_table(
        "tags",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("tenant_id", _uuid(), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("color", sa.String(length=32), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("tenant_id", "name", name="uq_tags_tenant_name"),
    )
    op.create_index("ix_tags_tenant_id", "tags", ["tenant_id"])

    op.create_table(
        "customer_tags",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("tenant_id", _uuid(), nullable=False),
        sa.Column("customer_id", _uuid(), sa.ForeignKey("customers.id"), nullable=False),
        sa.Column("tag_id", _uuid(), sa.ForeignKey("tags.id"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint(
            "tenant_id", "customer_id", "tag_id", name="uq_customer_tags_tenant_customer_tag"
        ),
    )
    op.create_index("ix_customer_tags_tag_id", "customer_tags", ["tag_id"])

    for table in _CONTENT_TABLES:
        op.create_table(
            table,
            sa.Column("id", _uuid(), primary_key=True),
            sa.Column("tenant_id", _uuid(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("type", sa.String(length=40), nullable=True),
            sa.Column("status", sa.String(length=32), nullable=True),
            sa.Column("content", sa.JSON(), nullable=True),
            sa.Column("metadata", sa.JSON(), nullable=True),
            *_timestamps(),
            sa.UniqueConstraint("tenant_id", "name", name=f"uq_{table}_tenant_name"),
        )
        op.create_index(f"ix_{table}_tenant_id", table, ["tenant_id"])

    op.create_table(
        "messaging_channel_accounts",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("tenant_id", _uuid(), nullable=False),
        sa.Column("channel", sa.String(length=32), nullable=False),
        sa.Column("name", sa.String(length=160), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint(
            "tenant_id", "channel", "name", name="uq_messaging_channel_accounts_tenant_channel_name"
        ),
    )
    op.create_index("ix_messaging_channel_accounts_tenant_id", "messaging_channel_accounts", ["tenant_id"])

    op.create_table(
        "chat_auto_rules",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("tenant_id", _uuid(), nullable=False),
        sa.Column("channel", sa.String(length=32), nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=True),
        sa.Column("match_type", sa.String(length=32), nullable=True),
        sa.Column("keywords", sa.JSON(), nullable=False),
        sa.Column("tag_ids", sa.JSON(), nullable=True),
        sa.Column("priority", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("response_kind", sa.String(length=40), nullable=True),
        sa.Column("line_content_id", _uuid(), nullable=True),
        sa.Column("messenger_content_id", _uuid(), nullable=True),
        sa.Column("response_payload", sa.JSON(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("tenant_id", "channel", "name", name="uq_chat_auto_rules_tenant_channel_name"),
    )
    op.create_index("ix_chat_auto_rules_lookup", "chat_auto_rules", ["tenant_id", "channel", "status"])

    op.create_table(
        "chat_auto_logs",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("tenant_id", _uuid(), nullable=False),
        sa.Column("channel", sa.String(length=32), nullable=False),
        sa.Column("channel_account_id", _uuid(), nullable=True),
        sa.Column("inbound_text", sa.Text(), nullable=True),
        sa.Column("inbound_meta", sa.JSON(), nullable=True),
        sa.Column(
            "matched_rule_id",
            _uuid(),
            sa.ForeignKey("chat_auto_rules.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("matched_keywords", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_chat_auto_logs_tenant_created", "chat_auto_logs", ["tenant_id", "created_at"])

    op.create_table(
        "chat_auto_outbox",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("tenant_id", _uuid(), nullable=False),
        sa.Column("channel", sa.String(length=32), nullable=False),
        sa.Column("destination", sa.String(length=255), nullable=True),
        sa.Column("payload", sa.JSON(), nullable=True),
        sa.Column("status", sa.String(length=32), nullable=True),
        sa.Column(
            "rule_id",
            _uuid(),
            sa.ForeignKey("chat_auto_rules.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_chat_auto_outbox_tenant_id", "chat_auto_outbox", ["tenant_id"])
    op.create_index("ix_chat_auto_outbox_status_created", "chat_auto_outbox", ["status", "created_at"])

    for table in ("message_immediates", "message_campaigns"):
        extra = []
        if table == "message_campaigns":
            extra = [
                sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=True),
                sa.Column("last_run_at", sa.DateTime(timezone=True), nullable=True),
            ]
        op.create_table(
            table,
            sa.Column("id", _uuid(), primary_key=True),
            sa.Column("tenant_id", _uuid(), nullable=False),
            sa.Column("name", sa.String(length=200), nullable=False),
            sa.Column("status", sa.String(length=32), nullable=True),
            sa.Column("channel", sa.String(length=32), nullable=False),
            sa.Column("channel_account_id", _uuid(), nullable=True),
            sa.Column("audience", sa.JSON(), nullable=True),
            sa.Column("template_kind", sa.String(length=40), nullable=False),
            sa.Column("template_id", _uuid(), nullable=True),
            sa.Column("payload", sa.JSON(), nullable=True),
            *extra,
            sa.Column("metadata", sa.JSON(), nullable=True),
            *_timestamps(),
        )
        op.create_index(f"ix_{table}_tenant_id", table, ["tenant_id"])

    op.create_table(
        "message_broadcasts",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("tenant_id", _uuid(), nullable=False),
        sa.Column(
            "immediate_id",
            _uuid(),
            sa.ForeignKey("message_immediates.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "campaign_id",
            _uuid(),
            sa.ForeignKey("message_campaigns.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("channel", sa.String(length=32), nullable=False),
        sa.Column("channel_account_id", _uuid(), nullable=True),
        sa.Column("template_kind", sa.String(length=40), nullable=False),
        sa.Column("template_id", _uuid(), nullable=True),
        sa.Column("name", sa.String(length=200), nullable=True),
        sa.Column("payload", sa.JSON(), nullable=True),
        sa.Column("stats", sa.JSON(), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_message_broadcasts_tenant_created", "message_broadcasts", ["tenant_id", "created_at"])
    op.create_index("ix_message_broadcasts_immediate_id", "message_broadcasts", ["immediate_id"])
    op.create_index("ix_message_broadcasts_campaign_id", "message_broadcasts", ["campaign_id"])

    op.create_table(
        "message_deliveries",
        sa.Column("id", _uuid(), primary_key=True),
        sa.Column("tenant_id", _uuid(), nullable=False),
        sa.Column("broadcast_id", _uuid(), sa.ForeignKey("message_broadcasts.id"), nullable=False),
        sa.Column("destination", sa.String(length=255), nullable=False),
        sa.Column("status", sa.String(length=32), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index(
        "ix_message_deliveries_broadcast_status", "message_deliveries", ["broadcast_id", "status"]
    )
    op.create_index("ix_message_deliveries_status_created", "message_deliveries", ["status", "created_at"])


def downgrade() -> None:
    op.drop_table("message_deliveries")
    op.drop_table("message_broadcasts")
    op.drop_table("message_campaigns")
    op.drop_table("message_immediates")
    op.drop_table("chat_auto_outbox")
    op.drop_table("chat_auto_logs")
    op.drop_table("chat_auto_rules")
    op.drop_table("messaging_channel_accounts")
    for table in reversed(_CONTENT_TABLES):
        op.drop_table(table)
    op.drop_table("customer_tags")
    op.drop_table("tags")
    op.drop_table("customers")
