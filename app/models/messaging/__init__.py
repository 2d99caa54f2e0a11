from app.models.messaging.auto_reply import ChatAutoLog, ChatAutoOutbox, ChatAutoRule
from app.models.messaging.broadcast import MessageBroadcast, MessageCampaign, MessageDelivery, MessageImmediate
from app.models.messaging.channel_account import ChannelAccount
from app.models.messaging.content import EmailContent, LineContent, MessengerContent, SmsContent
from app.models.messaging.enums import (
    AudienceMode,
    CampaignStatus,
    ChannelAccountStatus,
    DeliveryStatus,
    ImmediateStatus,
    MatchType,
    MessageChannel,
    OutboxStatus,
    ResponseKind,
    RuleChannel,
    RuleKind,
    RuleStatus,
    TemplateKind,
)

__all__ = [
    "AudienceMode",
    "CampaignStatus",
    "ChannelAccount",
    "ChannelAccountStatus",
    "ChatAutoLog",
    "ChatAutoOutbox",
    "ChatAutoRule",
    "DeliveryStatus",
    "EmailContent",
    "ImmediateStatus",
    "LineContent",
    "MatchType",
    "MessageBroadcast",
    "MessageCampaign",
    "MessageChannel",
    "MessageDelivery",
    "MessageImmediate",
    "MessengerContent",
    "OutboxStatus",
    "ResponseKind",
    "RuleChannel",
    "RuleKind",
    "RuleStatus",
    "SmsContent",
    "TemplateKind",
]
