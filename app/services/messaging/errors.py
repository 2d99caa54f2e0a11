"""Error taxonomy for the messaging engine services."""

from __future__ import annotations

import uuid
from dataclasses import dataclass


@dataclass(frozen=True)
class MessagingError(Exception):
    code: str
    detail: str
    status_code: int = 400
    retryable: bool = False


class MessagingValidationError(MessagingError):
    def __init__(self, code: str, detail: str):
        super().__init__(code=code, detail=detail, status_code=400, retryable=False)


class MessagingNotFoundError(MessagingError):
    def __init__(self, code: str, detail: str):
        super().__init__(code=code, detail=detail, status_code=404, retryable=False)


def parse_id(value, label: str = "id") -> uuid.UUID:
    """UUID from caller input; malformed values are a validation error."""
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError) as exc:
        raise MessagingValidationError("id_invalid", f"Invalid {label}: {value}") from exc
