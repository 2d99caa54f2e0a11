"""Messaging engine services.

Submodules:
- keyword_matcher: pure keyword matching
- rules: auto-reply rule store and evaluation
- inbound: inbound dispatcher, activity listings, outbox worker callback
- templates: RAW/content template binding
- audience: manual and filter audience resolution
- broadcasts: broadcasts, deliveries, immediates and campaigns
- channel_accounts: per-tenant channel account registry
"""

from app.services.messaging.audience import estimate_audience, resolve_audience, uniq_destinations
from app.services.messaging.broadcasts import (
    Broadcasts,
    Campaigns,
    Deliveries,
    Immediates,
    campaigns,
    deliveries,
    immediates,
    send,
)
from app.services.messaging.channel_accounts import ChannelAccounts
from app.services.messaging.inbound import (
    InboundResult,
    TagWriteError,
    handle_inbound,
    list_logs,
    list_outbox,
    record_outbox_status,
)
from app.services.messaging.keyword_matcher import ensure_keywords, match_keywords
from app.services.messaging.rules import AutoReplyRules, auto_reply_rules

__all__ = [
    "AutoReplyRules",
    "Broadcasts",
    "Campaigns",
    "ChannelAccounts",
    "Deliveries",
    "Immediates",
    "InboundResult",
    "TagWriteError",
    "auto_reply_rules",
    "campaigns",
    "deliveries",
    "ensure_keywords",
    "estimate_audience",
    "handle_inbound",
    "immediates",
    "list_logs",
    "list_outbox",
    "match_keywords",
    "record_outbox_status",
    "resolve_audience",
    "send",
    "uniq_destinations",
]
