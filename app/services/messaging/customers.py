"""Customer directory lookups used by the inbound dispatcher and audiences."""

from __future__ import annotations

import uuid

from sqlalchemy.orm import Session

from app.models.customer import Customer, CustomerTag, Tag
from app.services.messaging.errors import parse_id

FILTER_CANDIDATE_LIMIT = 20000


def find_by_identifier(db: Session, tenant_id, key: str, value: str) -> Customer | None:
    """JSON-path equality lookup on ``customers.identifiers[key]``."""
    if not key or not value:
        return None
    return (
        db.query(Customer)
        .filter(Customer.tenant_id == parse_id(tenant_id))
        .filter(Customer.identifiers[key].as_string() == value)
        .order_by(Customer.created_at.asc())
        .first()
    )


def list_by_filter(
    db: Session,
    tenant_id,
    customer_type: str | None = None,
    tag_ids: list | None = None,
    limit: int = FILTER_CANDIDATE_LIMIT,
) -> list[Customer]:
    query = db.query(Customer).filter(Customer.tenant_id == parse_id(tenant_id))
    if customer_type:
        query = query.filter(Customer.type == str(customer_type).strip().upper())
    if tag_ids:
        tag_uuids = [parse_id(tag_id, "tag id") for tag_id in tag_ids]
        tagged = (
            db.query(CustomerTag.customer_id)
            .filter(CustomerTag.tenant_id == parse_id(tenant_id))
            .filter(CustomerTag.tag_id.in_(tag_uuids))
        )
        query = query.filter(Customer.id.in_(tagged))
    return query.order_by(Customer.created_at.desc()).limit(limit).all()


def get_tag(db: Session, tenant_id, tag_id: uuid.UUID) -> Tag | None:
    return db.query(Tag).filter(Tag.id == tag_id).filter(Tag.tenant_id == parse_id(tenant_id)).first()


def has_tag(db: Session, tenant_id, customer_id: uuid.UUID, tag_id: uuid.UUID) -> bool:
    return (
        db.query(CustomerTag.id)
        .filter(CustomerTag.tenant_id == parse_id(tenant_id))
        .filter(CustomerTag.customer_id == customer_id)
        .filter(CustomerTag.tag_id == tag_id)
        .first()
        is not None
    )
