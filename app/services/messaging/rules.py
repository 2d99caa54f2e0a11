"""Auto-reply rule store and rule evaluation."""

from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.logging import get_logger
from app.models.messaging.auto_reply import ChatAutoRule
from app.models.messaging.enums import MatchType, ResponseKind, RuleChannel, RuleKind, RuleStatus
from app.services.messaging.errors import MessagingNotFoundError, MessagingValidationError, parse_id
from app.services.messaging.keyword_matcher import ensure_keywords, match_keywords
from app.services.messaging.templates import RawResponse, ResponseBinding, resolve_template
from app.services.response import ListResponseMixin

logger = get_logger(__name__)

DUPLICATE_RULE_MESSAGE = "Rule name already exists for this channel"

_CHANNELS = {item.value for item in RuleChannel}
_STATUSES = {item.value for item in RuleStatus}
_MATCH_TYPES = {item.value for item in MatchType}
_RESPONSE_KINDS = {item.value for item in ResponseKind}

# response kind -> rule column holding the content id
_CONTENT_ID_FIELDS = {
    ResponseKind.line_content.value: "line_content_id",
    ResponseKind.messenger_content.value: "messenger_content_id",
}


@dataclass
class LabelMatch:
    rule: ChatAutoRule
    matched_keywords: list[str]


@dataclass
class RuleEvaluation:
    response_rule: ChatAutoRule | None = None
    response_keywords: list[str] = field(default_factory=list)
    label_matches: list[LabelMatch] = field(default_factory=list)

    @property
    def matched(self) -> bool:
        return self.response_rule is not None


def _upper(value) -> str:
    return str(value or "").strip().upper()


def _choice(value, allowed: set[str], label: str) -> str:
    normalized = _upper(value)
    if normalized not in allowed:
        raise MessagingValidationError(f"{label}_invalid", f"Invalid {label}")
    return normalized


def _normalize_tag_ids(values) -> list[str]:
    tag_ids: list[str] = []
    for value in values or []:
        text = str(value or "").strip()
        if not text:
            continue
        parse_id(text, "tag id")
        if text not in tag_ids:
            tag_ids.append(text)
    return tag_ids


def _label_kind_filter():
    return ChatAutoRule.metadata_["kind"].as_string() == RuleKind.label_keywords.value


def _ordered(query):
    return query.order_by(
        ChatAutoRule.priority.desc(),
        ChatAutoRule.updated_at.desc(),
        ChatAutoRule.created_at.desc(),
        ChatAutoRule.id.desc(),
    )


def _resolve_binding(db: Session, tenant_id, kind: str, content_id, payload) -> ResponseBinding:
    if kind == ResponseKind.raw.value:
        return RawResponse(payload=payload or None)
    if not content_id:
        raise MessagingValidationError(
            "template_id_required", f"{_CONTENT_ID_FIELDS[kind]} is required"
        )
    return resolve_template(db, tenant_id, kind, content_id)


def _apply_binding(rule: ChatAutoRule, binding: ResponseBinding) -> None:
    """Store the binding on the rule; the id column of the other kind is cleared."""
    rule.response_kind = binding.kind
    rule.response_payload = binding.payload
    rule.line_content_id = binding.template_id if binding.kind == ResponseKind.line_content.value else None
    rule.messenger_content_id = (
        binding.template_id if binding.kind == ResponseKind.messenger_content.value else None
    )


def active_rules(db: Session, tenant_id, channel: str) -> tuple[list[ChatAutoRule], list[ChatAutoRule]]:
    """Return ``(channel_rules, global_label_rules)`` in evaluation order."""
    tenant_uuid = parse_id(tenant_id)
    channel_rules = _ordered(
        db.query(ChatAutoRule)
        .filter(ChatAutoRule.tenant_id == tenant_uuid)
        .filter(ChatAutoRule.channel == channel)
        .filter(ChatAutoRule.status == RuleStatus.active.value)
    ).all()
    label_rules = _ordered(
        db.query(ChatAutoRule)
        .filter(ChatAutoRule.tenant_id == tenant_uuid)
        .filter(ChatAutoRule.channel == RuleChannel.all.value)
        .filter(ChatAutoRule.status == RuleStatus.active.value)
        .filter(_label_kind_filter())
    ).all()
    seen = {rule.id for rule in channel_rules}
    return channel_rules, [rule for rule in label_rules if rule.id not in seen]


def evaluate_rules(
    channel_rules: list[ChatAutoRule],
    label_rules: list[ChatAutoRule],
    text: str | None,
) -> RuleEvaluation:
    """First non-label hit in ``channel_rules`` is the response; label hits are collected."""
    result = RuleEvaluation()
    for rule in channel_rules:
        hits = match_keywords(rule.match_type, text, rule.keywords)
        if not hits:
            continue
        if rule.is_label_rule:
            result.label_matches.append(LabelMatch(rule=rule, matched_keywords=hits))
        elif result.response_rule is None:
            result.response_rule = rule
            result.response_keywords = hits
    for rule in label_rules:
        if not rule.is_label_rule:
            continue
        hits = match_keywords(rule.match_type, text, rule.keywords)
        if hits:
            result.label_matches.append(LabelMatch(rule=rule, matched_keywords=hits))
    return result


class AutoReplyRules(ListResponseMixin):
    @staticmethod
    def get(db: Session, tenant_id, rule_id):
        rule = (
            db.query(ChatAutoRule)
            .filter(ChatAutoRule.id == parse_id(rule_id))
            .filter(ChatAutoRule.tenant_id == parse_id(tenant_id))
            .first()
        )
        if not rule:
            raise MessagingNotFoundError("rule_not_found", "Rule not found")
        return rule

    @staticmethod
    def list(
        db: Session,
        tenant_id,
        channel: str | None = None,
        status: str | None = None,
        kind: str | None = None,
        q: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ):
        query = db.query(ChatAutoRule).filter(ChatAutoRule.tenant_id == parse_id(tenant_id))
        if channel:
            query = query.filter(ChatAutoRule.channel == _upper(channel))
        if status:
            query = query.filter(ChatAutoRule.status == _upper(status))
        if kind:
            query = query.filter(ChatAutoRule.metadata_["kind"].as_string() == _upper(kind))
        if q:
            query = query.filter(ChatAutoRule.name.ilike(f"%{q.strip()}%"))
        return (
            query.order_by(ChatAutoRule.updated_at.desc(), ChatAutoRule.created_at.desc())
            .limit(limit)
            .offset(offset)
            .all()
        )

    @staticmethod
    def create(db: Session, tenant_id, payload):
        data = payload.model_dump()
        metadata = dict(data.get("metadata_") or {})
        kind = _upper(data.get("kind") or metadata.get("kind"))
        is_label = kind == RuleKind.label_keywords.value

        if is_label:
            channel = RuleChannel.all.value
            metadata["kind"] = kind
        else:
            if not _upper(data.get("channel")):
                raise MessagingValidationError("channel_required", "channel is required")
            channel = _choice(data.get("channel"), _CHANNELS, "channel")
            if kind:
                metadata["kind"] = kind
        name = str(data.get("name") or "").strip()
        if not name:
            raise MessagingValidationError("name_required", "name is required")
        keywords = ensure_keywords(data.get("keywords"))
        if not keywords:
            raise MessagingValidationError("keywords_required", "keywords is required")

        rule = ChatAutoRule(
            tenant_id=parse_id(tenant_id),
            channel=channel,
            name=name,
            status=_choice(data.get("status") or RuleStatus.active.value, _STATUSES, "status"),
            match_type=_choice(data.get("match_type") or MatchType.contains.value, _MATCH_TYPES, "matchType"),
            keywords=keywords,
            tag_ids=_normalize_tag_ids(data.get("tag_ids")) or None,
            priority=data.get("priority") or 0,
            metadata_=metadata or None,
        )
        if is_label:
            _apply_binding(rule, RawResponse(payload=None))
        else:
            response_kind = _choice(
                data.get("response_kind") or ResponseKind.raw.value, _RESPONSE_KINDS, "responseKind"
            )
            content_id = data.get(_CONTENT_ID_FIELDS[response_kind]) if response_kind in _CONTENT_ID_FIELDS else None
            _apply_binding(
                rule,
                _resolve_binding(db, tenant_id, response_kind, content_id, data.get("response_payload")),
            )

        db.add(rule)
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            raise MessagingValidationError("rule_name_exists", DUPLICATE_RULE_MESSAGE) from exc
        db.refresh(rule)
        logger.info(
            "auto_reply_rule_created tenant_id=%s rule_id=%s channel=%s",
            rule.tenant_id,
            rule.id,
            rule.channel,
        )
        return rule

    @staticmethod
    def update(db: Session, tenant_id, rule_id, payload):
        rule = AutoReplyRules.get(db, tenant_id, rule_id)
        data = payload.model_dump(exclude_unset=True)

        if "name" in data:
            name = str(data["name"] or "").strip()
            if not name:
                raise MessagingValidationError("name_required", "name is required")
            rule.name = name
        if "status" in data:
            rule.status = _choice(data["status"], _STATUSES, "status")
        if "match_type" in data:
            rule.match_type = _choice(data["match_type"], _MATCH_TYPES, "matchType")
        if "keywords" in data:
            keywords = ensure_keywords(data["keywords"])
            if not keywords:
                raise MessagingValidationError("keywords_required", "keywords is required")
            rule.keywords = keywords
        if "tag_ids" in data:
            rule.tag_ids = _normalize_tag_ids(data["tag_ids"]) or None
        if "priority" in data:
            rule.priority = data["priority"] or 0
        if "metadata_" in data:
            metadata = dict(data["metadata_"] or {})
            if metadata.get("kind"):
                metadata["kind"] = _upper(metadata["kind"])
            rule.metadata_ = metadata or None

        binding_fields = {"response_kind", "line_content_id", "messenger_content_id", "response_payload"}
        if rule.is_label_rule:
            _apply_binding(rule, RawResponse(payload=None))
        elif binding_fields & data.keys():
            response_kind = _choice(
                data.get("response_kind") or rule.response_kind, _RESPONSE_KINDS, "responseKind"
            )
            if response_kind == ResponseKind.raw.value:
                if "response_payload" in data:
                    raw_payload = data["response_payload"]
                elif rule.response_kind == ResponseKind.raw.value:
                    raw_payload = rule.response_payload
                else:
                    raw_payload = None
                binding = RawResponse(payload=raw_payload or None)
            else:
                id_field = _CONTENT_ID_FIELDS[response_kind]
                content_id = data[id_field] if id_field in data else getattr(rule, id_field)
                binding = _resolve_binding(db, tenant_id, response_kind, content_id, None)
            _apply_binding(rule, binding)

        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            raise MessagingValidationError("rule_name_exists", DUPLICATE_RULE_MESSAGE) from exc
        db.refresh(rule)
        logger.info("auto_reply_rule_updated tenant_id=%s rule_id=%s", rule.tenant_id, rule.id)
        return rule

    @staticmethod
    def delete(db: Session, tenant_id, rule_id):
        rule = AutoReplyRules.get(db, tenant_id, rule_id)
        db.delete(rule)
        db.commit()
        logger.info("auto_reply_rule_deleted tenant_id=%s rule_id=%s", tenant_id, rule_id)

    @staticmethod
    def test_match(db: Session, tenant_id, channel: str | None, text: str | None, kind: str | None = None) -> dict:
        """Dry-run evaluation; nothing is persisted."""
        channel_value = _upper(channel)
        label_only = _upper(kind) == RuleKind.label_keywords.value
        if not channel_value and not label_only:
            raise MessagingValidationError("channel_required", "channel is required")

        if label_only:
            channel_rules, label_rules = active_rules(db, tenant_id, channel_value or RuleChannel.all.value)
            channel_rules = [rule for rule in channel_rules if rule.is_label_rule]
        else:
            channel_rules, label_rules = active_rules(db, tenant_id, channel_value)
        evaluation = evaluate_rules(channel_rules, label_rules, text)

        label_matches = [
            {
                "rule_id": match.rule.id,
                "name": match.rule.name,
                "matched_keywords": match.matched_keywords,
                "tag_ids": list(match.rule.tag_ids or []),
            }
            for match in evaluation.label_matches
        ]
        if label_only:
            first = evaluation.label_matches[0] if evaluation.label_matches else None
            return {
                "matched": first is not None,
                "rule": first.rule if first else None,
                "matched_keywords": first.matched_keywords if first else [],
                "response_payload": None,
                "label_matches": label_matches,
            }
        return {
            "matched": evaluation.matched,
            "rule": evaluation.response_rule,
            "matched_keywords": evaluation.response_keywords,
            "response_payload": evaluation.response_rule.response_payload if evaluation.response_rule else None,
            "label_matches": label_matches,
        }


auto_reply_rules = AutoReplyRules()
