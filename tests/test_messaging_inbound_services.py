"""Tests for the inbound auto-reply dispatcher."""

import uuid
from datetime import UTC, datetime, timedelta

import pytest
from sqlalchemy.exc import OperationalError

from app.models.customer import CustomerTag
from app.models.messaging.auto_reply import ChatAutoLog, ChatAutoOutbox
from app.services.messaging import inbound as inbound_service
from app.services.messaging.errors import MessagingNotFoundError, MessagingValidationError


def _outbox(db_session, tenant_id):
    return db_session.query(ChatAutoOutbox).filter(ChatAutoOutbox.tenant_id == tenant_id).all()


def _age(db_session, rule, minutes):
    rule.updated_at = datetime.now(UTC) - timedelta(minutes=minutes)
    db_session.commit()


def _customer_tag_ids(db_session, customer):
    rows = db_session.query(CustomerTag).filter(CustomerTag.customer_id == customer.id).all()
    return sorted(str(row.tag_id) for row in rows)


# =============================================================================
# Matching and persistence
# =============================================================================


def test_thai_keyword_end_to_end(db_session, tenant_id, make_rule):
    rule = make_rule(keywords=["price", "ราคา"], response_payload={"text": "See our price list"})

    result = inbound_service.handle_inbound(db_session, tenant_id, "line", "ขอถามราคาหน่อยครับ", destination="U123")

    assert result.matched is True
    assert result.assigned_tag_ids == []
    log = db_session.get(ChatAutoLog, result.log_id)
    assert log.channel == "LINE"
    assert log.matched_rule_id == rule.id
    assert log.matched_keywords == ["ราคา"]
    entries = _outbox(db_session, tenant_id)
    assert len(entries) == 1
    assert entries[0].status == "PENDING"
    assert entries[0].destination == "U123"
    assert entries[0].payload == {"text": "See our price list"}
    assert entries[0].rule_id == rule.id


def test_no_match_is_logged_without_outbox(db_session, tenant_id, make_rule):
    make_rule(keywords=["price"], response_payload={"text": "x"})

    result = inbound_service.handle_inbound(db_session, tenant_id, "LINE", "good morning", destination="U1")

    assert result.matched is False
    assert result.label_matched_count == 0
    log = db_session.get(ChatAutoLog, result.log_id)
    assert log.matched_rule_id is None
    assert log.matched_keywords is None
    assert log.inbound_text == "good morning"
    assert _outbox(db_session, tenant_id) == []


def test_first_match_wins_by_most_recent_update(db_session, tenant_id, make_rule):
    older = make_rule(name="older", keywords=["price"], response_payload={"text": "old"})
    newer = make_rule(name="newer", keywords=["price"], response_payload={"text": "new"})
    _age(db_session, older, 10)
    _age(db_session, newer, 1)

    result = inbound_service.handle_inbound(db_session, tenant_id, "LINE", "price?", destination="U1")

    assert db_session.get(ChatAutoLog, result.log_id).matched_rule_id == newer.id
    entries = _outbox(db_session, tenant_id)
    assert [entry.payload for entry in entries] == [{"text": "new"}]


def test_priority_sorts_ahead_of_recency(db_session, tenant_id, make_rule):
    important = make_rule(name="important", keywords=["price"], priority=10, response_payload={"text": "vip"})
    recent = make_rule(name="recent", keywords=["price"], response_payload={"text": "normal"})
    _age(db_session, important, 60)
    _age(db_session, recent, 1)

    result = inbound_service.handle_inbound(db_session, tenant_id, "LINE", "price", destination="U1")

    assert db_session.get(ChatAutoLog, result.log_id).matched_rule_id == important.id


def test_inactive_and_other_channel_rules_never_match(db_session, tenant_id, make_rule):
    make_rule(name="paused", keywords=["price"], status="PAUSED", response_payload={"text": "x"})
    make_rule(name="messenger", channel="MESSENGER", keywords=["price"], response_payload={"text": "y"})

    result = inbound_service.handle_inbound(db_session, tenant_id, "LINE", "price", destination="U1")

    assert result.matched is False


def test_match_without_payload_creates_no_outbox(db_session, tenant_id, make_rule):
    make_rule(keywords=["hello"])

    result = inbound_service.handle_inbound(db_session, tenant_id, "LINE", "hello", destination="U1")

    assert result.matched is True
    assert _outbox(db_session, tenant_id) == []


def test_other_tenant_rules_are_ignored(db_session, other_tenant_id, make_rule):
    make_rule(keywords=["hello"], response_payload={"text": "hi"})

    result = inbound_service.handle_inbound(db_session, other_tenant_id, "LINE", "hello")

    assert result.matched is False


def test_inbound_meta_channel_account_is_stored(db_session, tenant_id):
    account_id = uuid.uuid4()
    meta = {"sourceType": "user", "messageId": "m-1", "channel_account_id": str(account_id)}

    result = inbound_service.handle_inbound(db_session, tenant_id, "LINE", "hi", "U1", meta)

    log = db_session.get(ChatAutoLog, result.log_id)
    assert log.channel_account_id == account_id
    assert log.inbound_meta == meta


def test_channel_is_required(db_session, tenant_id):
    with pytest.raises(MessagingValidationError):
        inbound_service.handle_inbound(db_session, tenant_id, "", "hello")


# =============================================================================
# Label rules and tagging
# =============================================================================


def test_label_rule_does_not_block_response_rule(db_session, tenant_id, make_rule, make_tag, make_customer):
    tag = make_tag(name="interested")
    customer = make_customer(identifiers={"lineUserId": "U123"})
    response = make_rule(name="reply", keywords=["price"], response_payload={"text": "Prices"})
    label = make_rule(name="label", kind="LABEL_KEYWORDS", keywords=["price"], tag_ids=[str(tag.id)])
    _age(db_session, response, 10)
    _age(db_session, label, 1)

    result = inbound_service.handle_inbound(db_session, tenant_id, "LINE", "price list", destination="U123")

    assert result.matched is True
    assert result.label_matched_count == 1
    assert result.assigned_tag_ids == [str(tag.id)]
    assert db_session.get(ChatAutoLog, result.log_id).matched_rule_id == response.id
    assert len(_outbox(db_session, tenant_id)) == 1
    assert _customer_tag_ids(db_session, customer) == [str(tag.id)]


def test_label_only_match_tags_without_reply(db_session, tenant_id, make_rule, make_tag, make_customer):
    tag = make_tag()
    customer = make_customer(identifiers={"psid": "PSID-1"})
    make_rule(kind="LABEL_KEYWORDS", keywords=["refund"], tag_ids=[str(tag.id)])

    result = inbound_service.handle_inbound(db_session, tenant_id, "MESSENGER", "I want a REFUND", "PSID-1")

    assert result.matched is False
    assert result.label_matched_count == 1
    assert _outbox(db_session, tenant_id) == []
    assert _customer_tag_ids(db_session, customer) == [str(tag.id)]


def test_tag_ids_are_unioned_across_rules(db_session, tenant_id, make_rule, make_tag, make_customer):
    first, second = make_tag(), make_tag()
    customer = make_customer(identifiers={"lineUserId": "U9"})
    make_rule(keywords=["promo"], tag_ids=[str(first.id)], response_payload={"text": "Promo"})
    make_rule(name="l1", kind="LABEL_KEYWORDS", keywords=["promo"], tag_ids=[str(first.id), str(second.id)])

    result = inbound_service.handle_inbound(db_session, tenant_id, "LINE", "promo", destination="U9")

    assert sorted(result.assigned_tag_ids) == sorted([str(first.id), str(second.id)])
    assert _customer_tag_ids(db_session, customer) == sorted([str(first.id), str(second.id)])


def test_tagging_is_idempotent(db_session, tenant_id, make_rule, make_tag, make_customer):
    tag = make_tag()
    customer = make_customer(identifiers={"lineUserId": "U123"})
    make_rule(kind="LABEL_KEYWORDS", keywords=["price"], tag_ids=[str(tag.id)])

    first = inbound_service.handle_inbound(db_session, tenant_id, "LINE", "price", destination="U123")
    second = inbound_service.handle_inbound(db_session, tenant_id, "LINE", "price", destination="U123")

    assert first.assigned_tag_ids == [str(tag.id)]
    assert second.assigned_tag_ids == [str(tag.id)]
    assert second.tag_errors == []
    assert _customer_tag_ids(db_session, customer) == [str(tag.id)]


def test_tag_failures_are_reported_and_do_not_stop_other_tags(
    db_session, tenant_id, make_rule, make_tag, make_customer
):
    tag = make_tag()
    missing = str(uuid.uuid4())
    customer = make_customer(identifiers={"lineUserId": "U123"})
    make_rule(kind="LABEL_KEYWORDS", keywords=["price"], tag_ids=[missing, str(tag.id)])

    result = inbound_service.handle_inbound(db_session, tenant_id, "LINE", "price", destination="U123")

    assert result.assigned_tag_ids == [str(tag.id)]
    assert [(error.tag_id, error.code) for error in result.tag_errors] == [(missing, "tag_not_found")]
    assert _customer_tag_ids(db_session, customer) == [str(tag.id)]


def test_tag_lookup_error_is_reported_and_next_tag_still_attached(
    db_session, tenant_id, make_rule, make_tag, make_customer, monkeypatch
):
    broken = make_tag()
    good = make_tag()
    customer = make_customer(identifiers={"lineUserId": "U1"})
    make_rule(kind="LABEL_KEYWORDS", keywords=["price"], tag_ids=[str(broken.id), str(good.id)])
    original_get_tag = inbound_service.customer_directory.get_tag

    def flaky_get_tag(db, tenant, tag_id):
        if tag_id == broken.id:
            raise OperationalError("SELECT", {}, Exception("connection reset"))
        return original_get_tag(db, tenant, tag_id)

    monkeypatch.setattr(inbound_service.customer_directory, "get_tag", flaky_get_tag)

    result = inbound_service.handle_inbound(db_session, tenant_id, "LINE", "price", destination="U1")

    assert result.assigned_tag_ids == [str(good.id)]
    assert [(error.tag_id, error.code) for error in result.tag_errors] == [(str(broken.id), "tag_write_failed")]
    assert _customer_tag_ids(db_session, customer) == [str(good.id)]


def test_concurrent_tag_insert_counts_as_already_tagged(
    db_session, tenant_id, make_rule, make_tag, make_customer, tag_customer, monkeypatch
):
    tag = make_tag()
    customer = make_customer(identifiers={"lineUserId": "U1"})
    tag_customer(customer, tag)
    make_rule(kind="LABEL_KEYWORDS", keywords=["price"], tag_ids=[str(tag.id)])
    # The existence check misses a link another writer committed first.
    monkeypatch.setattr(inbound_service.customer_directory, "has_tag", lambda *args, **kwargs: False)

    result = inbound_service.handle_inbound(db_session, tenant_id, "LINE", "price", destination="U1")

    assert result.assigned_tag_ids == [str(tag.id)]
    assert result.tag_errors == []
    assert _customer_tag_ids(db_session, customer) == [str(tag.id)]


def test_tag_insert_failure_keeps_other_tags(
    db_session, tenant_id, make_rule, make_tag, make_customer, monkeypatch
):
    broken = make_tag()
    good = make_tag()
    customer = make_customer(identifiers={"lineUserId": "U1"})
    make_rule(kind="LABEL_KEYWORDS", keywords=["price"], tag_ids=[str(broken.id), str(good.id)])
    original_flush = db_session.flush

    def failing_flush(*args, **kwargs):
        if any(isinstance(obj, CustomerTag) and obj.tag_id == broken.id for obj in db_session.new):
            raise OperationalError("INSERT", {}, Exception("disk I/O error"))
        return original_flush(*args, **kwargs)

    monkeypatch.setattr(db_session, "flush", failing_flush)

    result = inbound_service.handle_inbound(db_session, tenant_id, "LINE", "price", destination="U1")

    assert result.assigned_tag_ids == [str(good.id)]
    assert [(error.tag_id, error.code) for error in result.tag_errors] == [(str(broken.id), "tag_write_failed")]
    assert _customer_tag_ids(db_session, customer) == [str(good.id)]


def test_tag_of_other_tenant_is_not_attached(db_session, tenant_id, other_tenant_id, make_rule, make_tag, make_customer):
    foreign = make_tag(tenant=other_tenant_id)
    customer = make_customer(identifiers={"lineUserId": "U123"})
    make_rule(kind="LABEL_KEYWORDS", keywords=["price"], tag_ids=[str(foreign.id)])

    result = inbound_service.handle_inbound(db_session, tenant_id, "LINE", "price", destination="U123")

    assert result.assigned_tag_ids == []
    assert len(result.tag_errors) == 1
    assert _customer_tag_ids(db_session, customer) == []


def test_no_tagging_without_destination_or_customer(db_session, tenant_id, make_rule, make_tag, make_customer):
    tag = make_tag()
    customer = make_customer(identifiers={"lineUserId": "U123"})
    make_rule(kind="LABEL_KEYWORDS", keywords=["price"], tag_ids=[str(tag.id)])

    without_destination = inbound_service.handle_inbound(db_session, tenant_id, "LINE", "price")
    unknown_sender = inbound_service.handle_inbound(db_session, tenant_id, "LINE", "price", destination="U-unknown")

    assert without_destination.assigned_tag_ids == []
    assert unknown_sender.assigned_tag_ids == []
    assert _customer_tag_ids(db_session, customer) == []


def test_customer_lookup_uses_channel_identifier(db_session, tenant_id, make_rule, make_tag, make_customer):
    tag = make_tag()
    # psid matches the destination, but LINE looks up lineUserId
    customer = make_customer(identifiers={"psid": "SAME-ID"})
    make_rule(kind="LABEL_KEYWORDS", keywords=["price"], tag_ids=[str(tag.id)])

    result = inbound_service.handle_inbound(db_session, tenant_id, "LINE", "price", destination="SAME-ID")

    assert result.assigned_tag_ids == []
    assert _customer_tag_ids(db_session, customer) == []


# =============================================================================
# Activity listings and worker callback
# =============================================================================


def test_list_logs_and_outbox(db_session, tenant_id, make_rule):
    make_rule(keywords=["hi"], response_payload={"text": "hello"})
    for _ in range(3):
        inbound_service.handle_inbound(db_session, tenant_id, "LINE", "hi", destination="U1")

    assert len(inbound_service.list_logs(db_session, tenant_id)) == 3
    assert len(inbound_service.list_logs(db_session, tenant_id, channel="line", limit=2)) == 2
    assert inbound_service.list_logs(db_session, tenant_id, channel="MESSENGER") == []
    assert len(inbound_service.list_outbox(db_session, tenant_id, status="pending")) == 3
    assert inbound_service.list_outbox(db_session, tenant_id, status="SENT") == []


def test_activity_limit_is_capped():
    assert inbound_service._activity_limit(None) == 50
    assert inbound_service._activity_limit(10) == 10
    assert inbound_service._activity_limit(5000) == 200


def test_record_outbox_status_transitions_once(db_session, tenant_id, make_rule):
    make_rule(keywords=["hi"], response_payload={"text": "hello"})
    inbound_service.handle_inbound(db_session, tenant_id, "LINE", "hi", destination="U1")
    entry = _outbox(db_session, tenant_id)[0]

    updated = inbound_service.record_outbox_status(db_session, tenant_id, entry.id, "failed", "token expired")

    assert updated.status == "FAILED"
    assert updated.error_message == "token expired"
    assert updated.processed_at is not None
    with pytest.raises(MessagingValidationError):
        inbound_service.record_outbox_status(db_session, tenant_id, entry.id, "SENT")


def test_record_outbox_status_rejects_unknown_entries_and_statuses(db_session, tenant_id, make_rule):
    with pytest.raises(MessagingNotFoundError):
        inbound_service.record_outbox_status(db_session, tenant_id, uuid.uuid4(), "SENT")
    make_rule(keywords=["hi"], response_payload={"text": "hello"})
    inbound_service.handle_inbound(db_session, tenant_id, "LINE", "hi", destination="U1")
    entry = _outbox(db_session, tenant_id)[0]
    with pytest.raises(MessagingValidationError):
        inbound_service.record_outbox_status(db_session, tenant_id, entry.id, "PENDING")
