"""Pydantic v2 schemas for year buckets."""

from __future__ import annotations

from datetime import datetime

from pydantic import Field

from app.schemas.common import CamelModel, OptionalTimestamp


class YearCreate(CamelModel):
    year: int = Field(..., ge=1900, le=2200, description="年度，例如 2024。")


class YearResponse(CamelModel):
    id: int
    year: int
    created_at: datetime


class YearBackup(CamelModel):
    id: int | None = None
    year: int
    created_at: OptionalTimestamp = None
