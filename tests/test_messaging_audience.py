import uuid

import pytest

from app.schemas.messaging.message_center import AudienceSpec
from app.services.messaging import audience as audience_service
from app.services.messaging.errors import MessagingValidationError


def test_uniq_destinations_trims_and_dedupes_case_insensitively():
    values = [" U1 ", "u1", "", None, "U2", "  ", "a@example.com", "A@Example.com"]

    assert audience_service.uniq_destinations(values) == ["U1", "U2", "a@example.com"]
    assert audience_service.uniq_destinations(None) == []


def test_destination_key_for_channel():
    assert audience_service.destination_key_for_channel("email") == "email"
    assert audience_service.destination_key_for_channel("SMS") == "phone"
    assert audience_service.destination_key_for_channel("MESSENGER") == "psid"
    assert audience_service.destination_key_for_channel("LINE") == "lineUserId"
    assert audience_service.destination_key_for_channel("FAX") == "lineUserId"


def test_missing_audience_resolves_to_nothing(db_session, tenant_id):
    assert audience_service.resolve_audience(db_session, tenant_id, "LINE", None) == []


def test_manual_audience_is_deduplicated(db_session, tenant_id):
    audience = AudienceSpec(mode="manual", destinations=["U1", "u1 ", "U2"])

    assert audience_service.resolve_audience(db_session, tenant_id, "LINE", audience) == ["U1", "U2"]


def test_unknown_mode_is_rejected(db_session, tenant_id):
    with pytest.raises(MessagingValidationError) as exc:
        audience_service.resolve_audience(db_session, tenant_id, "LINE", {"mode": "everyone"})
    assert exc.value.detail == "Invalid audience mode"


def test_filter_audience_reads_channel_identifier(db_session, tenant_id, make_customer):
    make_customer(identifiers={"lineUserId": "U1", "email": "one@example.com"})
    make_customer(identifiers={"lineUserId": "U2"})
    make_customer(identifiers={"email": "three@example.com"})

    line = audience_service.resolve_audience(db_session, tenant_id, "LINE", {"mode": "FILTER"})
    email = audience_service.resolve_audience(db_session, tenant_id, "EMAIL", {"mode": "FILTER"})

    assert sorted(line) == ["U1", "U2"]
    assert sorted(email) == ["one@example.com", "three@example.com"]


def test_filter_audience_by_type_and_tags(db_session, tenant_id, make_customer, make_tag, tag_customer):
    vip = make_tag(name="vip")
    company = make_customer(identifiers={"lineUserId": "C1"}, type="COMPANY")
    tagged = make_customer(identifiers={"lineUserId": "I1"})
    make_customer(identifiers={"lineUserId": "I2"})
    tag_customer(tagged, vip)
    tag_customer(company, vip)

    by_type = audience_service.resolve_audience(
        db_session, tenant_id, "LINE", {"mode": "FILTER", "customer_type": "company"}
    )
    by_tag = audience_service.resolve_audience(
        db_session, tenant_id, "LINE", AudienceSpec(mode="FILTER", tag_ids=[str(vip.id)])
    )
    by_both = audience_service.resolve_audience(
        db_session,
        tenant_id,
        "LINE",
        {"mode": "FILTER", "customer_type": "INDIVIDUAL", "tag_ids": [str(vip.id)]},
    )

    assert by_type == ["C1"]
    assert sorted(by_tag) == ["C1", "I1"]
    assert by_both == ["I1"]


def test_filter_audience_ignores_other_tenants(db_session, tenant_id, other_tenant_id, make_customer):
    make_customer(identifiers={"lineUserId": "U1"}, tenant=other_tenant_id)

    assert audience_service.resolve_audience(db_session, tenant_id, "LINE", {"mode": "FILTER"}) == []


def test_filter_audience_with_unknown_tag_is_empty(db_session, tenant_id, make_customer):
    make_customer(identifiers={"lineUserId": "U1"})

    audience = {"mode": "FILTER", "tag_ids": [str(uuid.uuid4())]}
    assert audience_service.resolve_audience(db_session, tenant_id, "LINE", audience) == []


def test_filter_audience_with_malformed_tag_id_is_rejected(db_session, tenant_id):
    audience = {"mode": "FILTER", "tag_ids": ["not-a-uuid"]}

    with pytest.raises(MessagingValidationError) as exc:
        audience_service.resolve_audience(db_session, tenant_id, "LINE", audience)

    assert exc.value.code == "id_invalid"


def test_estimate_audience_counts(db_session, tenant_id, make_customer):
    make_customer(identifiers={"psid": "P1"})
    make_customer(identifiers={"psid": "P2"})

    result = audience_service.estimate_audience(db_session, tenant_id, "messenger", {"mode": "FILTER"})

    assert result == {"count": 2}


def test_estimate_audience_requires_channel(db_session, tenant_id):
    with pytest.raises(MessagingValidationError):
        audience_service.estimate_audience(db_session, tenant_id, None, {"mode": "MANUAL", "destinations": ["a"]})


def test_manual_email_audience_keeps_first_spelling(db_session, tenant_id):
    audience = {"mode": "MANUAL", "destinations": ["a@x.com", "A@x.com", "b@x.com"]}

    assert audience_service.resolve_audience(db_session, tenant_id, "EMAIL", audience) == ["a@x.com", "b@x.com"]
