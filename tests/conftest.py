import contextlib
import os
import sqlite3
import uuid

import pytest
from dotenv import load_dotenv
from sqlalchemy import create_engine, event
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.db import Base

load_dotenv(os.path.join(os.getcwd(), ".env"))

# Register UUID adapter for SQLite - store as string
sqlite3.register_adapter(uuid.UUID, lambda u: str(u))


# Monkey-patch SQLAlchemy's UUID type for SQLite compatibility
# This must happen before any models are imported
from sqlalchemy.sql import sqltypes  # noqa: E402

_original_uuid_bind_processor = sqltypes.Uuid.bind_processor
_original_uuid_result_processor = sqltypes.Uuid.result_processor


def _sqlite_uuid_bind_processor(self, dialect):
    if dialect.name == "sqlite":
        def process(value):
            if value is not None:
                if isinstance(value, uuid.UUID):
                    return str(value)
                return str(uuid.UUID(value)) if value else None
            return None
        return process
    return _original_uuid_bind_processor(self, dialect)


def _sqlite_uuid_result_processor(self, dialect, coltype):
    if dialect.name == "sqlite":
        def process(value):
            if value is not None:
                if isinstance(value, uuid.UUID):
                    return value
                return uuid.UUID(value) if value else None
            return None
        return process
    return _original_uuid_result_processor(self, dialect, coltype)


sqltypes.Uuid.bind_processor = _sqlite_uuid_bind_processor
sqltypes.Uuid.result_processor = _sqlite_uuid_result_processor


import app.models  # noqa: F401,E402
from app.models.customer import Customer, CustomerTag, Tag  # noqa: E402
from app.models.messaging.content import EmailContent, LineContent, MessengerContent  # noqa: E402
from app.schemas.messaging.auto_reply import AutoRuleCreate  # noqa: E402
from app.services.messaging.rules import auto_reply_rules  # noqa: E402


def _resolve_test_database_url() -> str | None:
    raw_url = os.getenv("TEST_DATABASE_URL")
    if not raw_url:
        return None

    url = make_url(raw_url)
    if url.drivername.startswith("postgresql") and url.database != "message_engine_test":
        url = url.set(database="message_engine_test")
    return url.render_as_string(hide_password=False)


@pytest.fixture(scope="session")
def engine():
    database_url = _resolve_test_database_url()
    if database_url:
        engine = create_engine(database_url)
    else:
        engine = create_engine(
            "sqlite+pysqlite://",
            connect_args={
                "check_same_thread": False,
                "detect_types": sqlite3.PARSE_DECLTYPES | sqlite3.PARSE_COLNAMES,
            },
            poolclass=StaticPool,
        )

        @event.listens_for(engine, "connect")
        def _enable_foreign_keys(dbapi_connection, _connection_record):
            cursor = dbapi_connection.cursor()
            with contextlib.suppress(Exception):
                cursor.execute("PRAGMA foreign_keys=ON")
            cursor.close()

    Base.metadata.create_all(engine)

    return engine


@pytest.fixture()
def db_session(engine):
    connection = engine.connect()
    transaction = connection.begin()
    SessionLocal = sessionmaker(bind=connection, autoflush=False, autocommit=False)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


@pytest.fixture()
def tenant_id():
    """Every test runs in its own tenant so rows never collide across tests."""
    return uuid.uuid4()


@pytest.fixture()
def other_tenant_id():
    return uuid.uuid4()


@pytest.fixture()
def make_customer(db_session, tenant_id):
    def _make(identifiers=None, type="INDIVIDUAL", tenant=None, name="Customer"):
        customer = Customer(
            tenant_id=tenant or tenant_id,
            name=name,
            type=type,
            identifiers=identifiers or {},
        )
        db_session.add(customer)
        db_session.commit()
        db_session.refresh(customer)
        return customer

    return _make


@pytest.fixture()
def make_tag(db_session, tenant_id):
    def _make(name=None, tenant=None):
        tag = Tag(tenant_id=tenant or tenant_id, name=name or f"tag-{uuid.uuid4().hex[:8]}")
        db_session.add(tag)
        db_session.commit()
        db_session.refresh(tag)
        return tag

    return _make


@pytest.fixture()
def tag_customer(db_session, tenant_id):
    def _tag(customer, tag):
        link = CustomerTag(tenant_id=tenant_id, customer_id=customer.id, tag_id=tag.id)
        db_session.add(link)
        db_session.commit()
        return link

    return _tag


@pytest.fixture()
def line_content(db_session, tenant_id):
    content = LineContent(
        tenant_id=tenant_id,
        name="Price list",
        content={"type": "text", "text": "See our price list"},
    )
    db_session.add(content)
    db_session.commit()
    db_session.refresh(content)
    return content


@pytest.fixture()
def messenger_content(db_session, tenant_id):
    content = MessengerContent(
        tenant_id=tenant_id,
        name="Opening hours",
        content={"text": "We are open 9-18"},
    )
    db_session.add(content)
    db_session.commit()
    db_session.refresh(content)
    return content


@pytest.fixture()
def email_content(db_session, tenant_id):
    content = EmailContent(
        tenant_id=tenant_id,
        name="Newsletter",
        content={"subject": "News", "html": "<p>Hello</p>"},
    )
    db_session.add(content)
    db_session.commit()
    db_session.refresh(content)
    return content


@pytest.fixture()
def make_rule(db_session, tenant_id):
    def _make(**fields):
        fields.setdefault("channel", "LINE")
        fields.setdefault("name", f"rule-{uuid.uuid4().hex[:8]}")
        fields.setdefault("keywords", ["hello"])
        return auto_reply_rules.create(db_session, fields.pop("tenant", tenant_id), AutoRuleCreate(**fields))

    return _make
