"""Pydantic schemas for API request/response models."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel

from padsync.server.database import StoredRecord

# === Record schemas ===


class RecordSaveRequest(BaseModel):
    """Request body for a record write."""

    fields: dict[str, Any]
    expected_tag: str | None = None


class RecordResponse(BaseModel):
    """Record data in responses."""

    record_id: str
    fields: dict[str, Any]
    change_tag: str
    deleted: bool = False


class RecordListResponse(BaseModel):
    """Every live record of a type."""

    records: list[RecordResponse]
    cursor: int


class ChangeFeedResponse(BaseModel):
    """One page of the change feed."""

    records: list[RecordResponse]
    cursor: int
    has_more: bool


# === Health schema ===


class HealthResponse(BaseModel):
    """Health check response."""

    status: str


# === Converters ===


def record_to_response(record: StoredRecord) -> RecordResponse:
    """Convert a stored record to its response model."""
    return RecordResponse(
        record_id=record.record_id,
        fields=record.fields,
        change_tag=record.change_tag,
        deleted=record.deleted,
    )
