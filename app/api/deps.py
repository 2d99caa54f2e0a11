from fastapi import Header, HTTPException

from app.db import get_db
from app.services.common import coerce_uuid

__all__ = ["get_db", "get_tenant_id"]


def get_tenant_id(x_tenant_id: str | None = Header(default=None)):
    """Tenant scope for every messaging call; resolved upstream by the gateway."""
    if not x_tenant_id:
        raise HTTPException(status_code=400, detail="Tenant ID is required")
    return coerce_uuid(x_tenant_id)
