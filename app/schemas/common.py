"""
Shared Pydantic v2 building blocks reused across modules.

All API payloads and backup files use camelCase keys (``projectNumber``,
``deadlineDate`` ...).  ``CamelModel`` generates those aliases while still
accepting snake_case input, so schemas can be populated both from request
bodies and from ORM rows / JSON columns.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field
from pydantic.alias_generators import to_camel


def blank_to_none(value: Any) -> Any:
    """Treat ``""`` (and whitespace) as a missing value."""
    if isinstance(value, str) and not value.strip():
        return None
    return value


def to_naive_utc(value: Any) -> Any:
    """Normalise aware datetimes (ISO strings ending in ``Z``) to naive UTC."""
    if isinstance(value, str):
        value = blank_to_none(value)
        if value is None:
            return None
        value = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if isinstance(value, datetime) and value.tzinfo is not None:
        return value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


# Optional date where the empty string means "not set"
OptionalDate = Annotated[date | None, BeforeValidator(blank_to_none)]

# Optional timestamp stored as naive UTC
OptionalTimestamp = Annotated[datetime | None, BeforeValidator(to_naive_utc)]


def utc_now() -> datetime:
    """Current time as naive UTC, the form every stored timestamp uses."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class CamelModel(BaseModel):
    """Base schema with camelCase aliases and ORM attribute loading."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        from_attributes=True,
    )


class MessageResponse(BaseModel):
    """Generic message envelope for operations that do not return a resource.

    Attributes:
        message: Short human-readable result summary.
        detail: Optional extended information.
    """

    message: str = Field(..., description="操作结果摘要。")
    detail: str | None = Field(
        default=None,
        description="附加信息（错误上下文、提示等）。",
    )
