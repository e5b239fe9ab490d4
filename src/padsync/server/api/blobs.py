"""Blob storage API routes (key-value store for the blob transport)."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Request, Response, status

from padsync.server.api.deps import get_db, get_hub, require_token
from padsync.server.database import Database
from padsync.server.ws import ChangeHub, kind_for_blob_key

router = APIRouter(
    prefix="/api/blobs",
    tags=["blobs"],
    dependencies=[Depends(require_token)],
)


@router.get("")
def list_blobs(db: Database = Depends(get_db)) -> list[str]:
    """List stored keys."""
    return db.list_blob_keys()


@router.get("/{key}")
def get_blob(key: str, db: Database = Depends(get_db)) -> Response:
    """Download a blob."""
    value = db.get_blob(key)
    if value is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Blob not found: {key}",
        )
    return Response(content=value, media_type="application/octet-stream")


@router.put("/{key}")
async def put_blob(
    key: str,
    request: Request,
    db: Database = Depends(get_db),
    hub: ChangeHub = Depends(get_hub),
) -> Response:
    """Create or overwrite a blob."""
    data = await request.body()
    db.put_blob(key, data)
    await hub.notify_change(kind_for_blob_key(key))
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete("/{key}")
async def delete_blob(
    key: str,
    db: Database = Depends(get_db),
    hub: ChangeHub = Depends(get_hub),
) -> Response:
    """Delete a blob. Deleting an absent key succeeds."""
    if db.delete_blob(key):
        await hub.notify_change(kind_for_blob_key(key))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
