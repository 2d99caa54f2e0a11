from app.models.customer import Customer, CustomerTag, CustomerType, Tag  # noqa: F401
from app.models.messaging import (  # noqa: F401
    AudienceMode,
    CampaignStatus,
    ChannelAccount,
    ChannelAccountStatus,
    ChatAutoLog,
    ChatAutoOutbox,
    ChatAutoRule,
    DeliveryStatus,
    EmailContent,
    ImmediateStatus,
    LineContent,
    MatchType,
    MessageBroadcast,
    MessageCampaign,
    MessageChannel,
    MessageDelivery,
    MessageImmediate,
    MessengerContent,
    OutboxStatus,
    ResponseKind,
    RuleChannel,
    RuleKind,
    RuleStatus,
    SmsContent,
    TemplateKind,
)
