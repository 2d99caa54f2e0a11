from fastapi import APIRouter

from app.api.messaging.auto_reply import router as auto_reply_router
from app.api.messaging.channel_accounts import router as channel_accounts_router
from app.api.messaging.message_center import router as message_center_router

router = APIRouter(prefix="/messaging", tags=["messaging"])
router.include_router(auto_reply_router)
router.include_router(message_center_router)
router.include_router(channel_accounts_router)

__all__ = ["router"]
