from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from app.logging import get_logger
from app.services.messaging.errors import MessagingError

logger = get_logger(__name__)


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(MessagingError)
    async def _messaging_error_handler(request: Request, exc: MessagingError):
        if exc.status_code >= 500:
            logger.error("messaging_error path=%s code=%s detail=%s", request.url.path, exc.code, exc.detail)
        return JSONResponse(
            status_code=exc.status_code,
            content={"code": exc.code, "detail": exc.detail},
        )
