from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.api.deps import get_db, get_tenant_id
from app.schemas.common import ListResponse
from app.schemas.messaging.channel_account import (
    ChannelAccountCreate,
    ChannelAccountRead,
    ChannelAccountUpdate,
)
from app.services.messaging.channel_accounts import channel_accounts

router = APIRouter(prefix="/channel-accounts", tags=["messaging-channel-accounts"])


@router.get("", response_model=ListResponse[ChannelAccountRead])
def list_channel_accounts(
    channel: str | None = None,
    status: str | None = None,
    limit: int = Query(default=100, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
    tenant_id: UUID = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    return channel_accounts.list_response(db, tenant_id, channel, status, limit, offset)


@router.post("", response_model=ChannelAccountRead, status_code=status.HTTP_201_CREATED)
def create_channel_account(
    payload: ChannelAccountCreate,
    tenant_id: UUID = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    return channel_accounts.create(db, tenant_id, payload)


@router.get("/{account_id}", response_model=ChannelAccountRead)
def get_channel_account(account_id: str, tenant_id: UUID = Depends(get_tenant_id), db: Session = Depends(get_db)):
    return channel_accounts.get(db, tenant_id, account_id)


@router.patch("/{account_id}", response_model=ChannelAccountRead)
def update_channel_account(
    account_id: str,
    payload: ChannelAccountUpdate,
    tenant_id: UUID = Depends(get_tenant_id),
    db: Session = Depends(get_db),
):
    return channel_accounts.update(db, tenant_id, account_id, payload)


@router.delete("/{account_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_channel_account(account_id: str, tenant_id: UUID = Depends(get_tenant_id), db: Session = Depends(get_db)):
    channel_accounts.delete(db, tenant_id, account_id)
