from __future__ import annotations

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.logging import get_logger
from app.models.messaging.channel_account import ChannelAccount
from app.models.messaging.enums import ChannelAccountStatus, MessageChannel
from app.services.messaging.errors import MessagingNotFoundError, MessagingValidationError, parse_id
from app.services.response import ListResponseMixin

logger = get_logger(__name__)

_CHANNELS = {item.value for item in MessageChannel}
_STATUSES = {item.value for item in ChannelAccountStatus}


def _normalize_channel(value) -> str:
    channel = str(value or "").strip().upper()
    if not channel:
        raise MessagingValidationError("channel_required", "channel is required")
    if channel not in _CHANNELS:
        raise MessagingValidationError("channel_invalid", "Invalid channel")
    return channel


def _normalize_status(value) -> str:
    status = str(value or "").strip().upper()
    if status not in _STATUSES:
        raise MessagingValidationError("status_invalid", "Invalid status")
    return status


class ChannelAccounts(ListResponseMixin):
    @staticmethod
    def get(db: Session, tenant_id, account_id):
        account = (
            db.query(ChannelAccount)
            .filter(ChannelAccount.id == parse_id(account_id, "channelAccountId"))
            .filter(ChannelAccount.tenant_id == parse_id(tenant_id))
            .first()
        )
        if not account:
            raise MessagingNotFoundError("channel_account_not_found", "Channel account not found")
        return account

    @staticmethod
    def list(
        db: Session,
        tenant_id,
        channel: str | None = None,
        status: str | None = None,
        limit: int = 100,
        offset: int = 0,
    ):
        query = db.query(ChannelAccount).filter(ChannelAccount.tenant_id == parse_id(tenant_id))
        if channel:
            query = query.filter(ChannelAccount.channel == str(channel).upper())
        if status:
            query = query.filter(ChannelAccount.status == str(status).upper())
        return (
            query.order_by(ChannelAccount.channel.asc(), ChannelAccount.name.asc())
            .limit(limit)
            .offset(offset)
            .all()
        )

    @staticmethod
    def create(db: Session, tenant_id, payload):
        data = payload.model_dump()
        name = str(data.get("name") or "").strip()
        if not name:
            raise MessagingValidationError("name_required", "name is required")
        account = ChannelAccount(
            tenant_id=parse_id(tenant_id),
            channel=_normalize_channel(data.get("channel")),
            name=name,
            status=_normalize_status(data.get("status") or ChannelAccountStatus.active.value),
            metadata_=data.get("metadata_"),
        )
        db.add(account)
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            raise MessagingValidationError("channel_account_exists", "Channel account already exists") from exc
        db.refresh(account)
        logger.info("channel_account_created tenant_id=%s account_id=%s", account.tenant_id, account.id)
        return account

    @staticmethod
    def update(db: Session, tenant_id, account_id, payload):
        account = ChannelAccounts.get(db, tenant_id, account_id)
        data = payload.model_dump(exclude_unset=True)
        if "name" in data:
            name = str(data["name"] or "").strip()
            if not name:
                raise MessagingValidationError("name_required", "name is required")
            account.name = name
        if "status" in data:
            account.status = _normalize_status(data["status"])
        if "metadata_" in data:
            account.metadata_ = data["metadata_"]
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            raise MessagingValidationError("channel_account_exists", "Channel account already exists") from exc
        db.refresh(account)
        return account

    @staticmethod
    def delete(db: Session, tenant_id, account_id):
        account = ChannelAccounts.get(db, tenant_id, account_id)
        db.delete(account)
        db.commit()
        logger.info("channel_account_deleted tenant_id=%s account_id=%s", tenant_id, account_id)

    @staticmethod
    def resolve_active(db: Session, tenant_id, channel: str, account_id):
        """Account referenced by a send: must be ACTIVE and on the same channel."""
        if not account_id:
            return None
        account = ChannelAccounts.get(db, tenant_id, account_id)
        if account.channel != str(channel or "").upper():
            raise MessagingValidationError("channel_account_mismatch", "Channel account does not match channel")
        if account.status != ChannelAccountStatus.active.value:
            raise MessagingValidationError("channel_account_disabled", "Channel account is disabled")
        return account


channel_accounts = ChannelAccounts()
