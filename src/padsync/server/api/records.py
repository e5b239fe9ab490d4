"""Record API routes (native-record transport).

Each write carries the change tag the writer last saw; a mismatch is
answered with 409 and the current server copy so the writer can merge.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from padsync.server.api.deps import get_db, get_hub, require_token
from padsync.server.database import Database, FeedExpiredError, RecordConflictError
from padsync.server.schemas import (
    ChangeFeedResponse,
    RecordListResponse,
    RecordResponse,
    RecordSaveRequest,
    record_to_response,
)
from padsync.server.ws import ChangeHub, kind_for_record_type

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/records",
    tags=["records"],
    dependencies=[Depends(require_token)],
)


@router.get("/{record_type}", response_model=RecordListResponse)
def list_records(
    record_type: str,
    db: Database = Depends(get_db),
) -> RecordListResponse:
    """Get every live record of a type with the current feed cursor."""
    records, cursor = db.list_records(record_type)
    return RecordListResponse(
        records=[record_to_response(r) for r in records],
        cursor=cursor,
    )


@router.get("/{record_type}/changes", response_model=ChangeFeedResponse)
def get_changes(
    record_type: str,
    cursor: int = Query(0, ge=0, description="Last change sequence already seen"),
    limit: int = Query(1000, ge=1, le=5000, description="Max changes to scan"),
    db: Database = Depends(get_db),
) -> ChangeFeedResponse:
    """Get records changed or deleted since a cursor.

    Returns 410 when the cursor predates the retained change log.
    """
    try:
        page = db.get_changes_since(record_type, cursor, limit)
    except FeedExpiredError as e:
        raise HTTPException(status_code=status.HTTP_410_GONE, detail=str(e)) from e
    return ChangeFeedResponse(
        records=[record_to_response(r) for r in page.records],
        cursor=page.cursor,
        has_more=page.has_more,
    )


@router.get("/{record_type}/{record_id}", response_model=RecordResponse)
def get_record(
    record_type: str,
    record_id: str,
    db: Database = Depends(get_db),
) -> RecordResponse:
    record = db.get_record(record_type, record_id)
    if record is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Record not found: {record_type}/{record_id}",
        )
    return record_to_response(record)


@router.put("/{record_type}/{record_id}", response_model=RecordResponse)
async def save_record(
    record_type: str,
    record_id: str,
    request: RecordSaveRequest,
    db: Database = Depends(get_db),
    hub: ChangeHub = Depends(get_hub),
) -> RecordResponse:
    """Create or update a record.

    Returns 409 with the current record when expected_tag is stale.
    """
    try:
        record = db.save_record(record_type, record_id, request.fields, request.expected_tag)
    except RecordConflictError as e:
        logger.info("Conflict on %s/%s", record_type, record_id)
        current = e.current.to_dict() if e.current else None
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"message": "Record was modified", "current": current},
        ) from e
    await hub.notify_change(kind_for_record_type(record_type))
    return record_to_response(record)


@router.delete("/{record_type}/{record_id}")
async def delete_record(
    record_type: str,
    record_id: str,
    db: Database = Depends(get_db),
    hub: ChangeHub = Depends(get_hub),
) -> Response:
    """Delete a record. Deleting an absent record succeeds."""
    if db.delete_record(record_type, record_id):
        await hub.notify_change(kind_for_record_type(record_type))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
