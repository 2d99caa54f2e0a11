import enum


class MessageChannel(enum.Enum):
    line = "LINE"
    messenger = "MESSENGER"
    email = "EMAIL"
    sms = "SMS"


class RuleChannel(enum.Enum):
    line = "LINE"
    messenger = "MESSENGER"
    all = "ALL"


class RuleStatus(enum.Enum):
    active = "ACTIVE"
    paused = "PAUSED"


class RuleKind(enum.Enum):
    label_keywords = "LABEL_KEYWORDS"


class MatchType(enum.Enum):
    contains = "CONTAINS"
    equals = "EQUALS"


class ResponseKind(enum.Enum):
    raw = "RAW"
    line_content = "LINE_CONTENT"
    messenger_content = "MESSENGER_CONTENT"


class TemplateKind(enum.Enum):
    raw = "RAW"
    line_content = "LINE_CONTENT"
    messenger_content = "MESSENGER_CONTENT"
    email_content = "EMAIL_CONTENT"
    sms_content = "SMS_CONTENT"


class OutboxStatus(enum.Enum):
    pending = "PENDING"
    sent = "SENT"
    failed = "FAILED"


class DeliveryStatus(enum.Enum):
    queued = "QUEUED"
    sent = "SENT"
    failed = "FAILED"


class ImmediateStatus(enum.Enum):
    draft = "DRAFT"
    sent = "SENT"
    archived = "ARCHIVED"


class CampaignStatus(enum.Enum):
    draft = "DRAFT"
    scheduled = "SCHEDULED"
    completed = "COMPLETED"
    archived = "ARCHIVED"


class ChannelAccountStatus(enum.Enum):
    active = "ACTIVE"
    disabled = "DISABLED"


class AudienceMode(enum.Enum):
    manual = "MANUAL"
    filter = "FILTER"
