"""
Per-user product watch list.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from bazaar_track.dependencies import current_identity, get_document_store
from bazaar_track.identity import VerifiedIdentity
from bazaar_track.schemas import WatchListCreate
from bazaar_track.store import DocumentStore
from bazaar_track.routes.common import NEWEST_FIRST, WATCH_LIST, now_iso, without_id

router = APIRouter()


@router.get("/watchList")
def list_watch_list(
    store: DocumentStore = Depends(get_document_store),
    identity: VerifiedIdentity = Depends(current_identity),
):
    return store.find(WATCH_LIST, {"email": identity.email}, sort=NEWEST_FIRST)


@router.post("/watchList", status_code=201)
def add_to_watch_list(
    payload: WatchListCreate,
    store: DocumentStore = Depends(get_document_store),
    identity: VerifiedIdentity = Depends(current_identity),
):
    document = without_id(payload.model_dump())
    document.update(email=identity.email, createdAt=now_iso())
    entry_id = store.insert_one(WATCH_LIST, document)
    return {"inserted": True, "insertedId": entry_id}


@router.delete("/watchList/{entry_id}")
def remove_from_watch_list(
    entry_id: str,
    store: DocumentStore = Depends(get_document_store),
    identity: VerifiedIdentity = Depends(current_identity),
):
    deleted = store.delete_one(WATCH_LIST, {"_id": entry_id, "email": identity.email})
    if not deleted:
        return JSONResponse(
            status_code=status.HTTP_404_NOT_FOUND,
            content={"detail": "Watch list entry not found", "deletedCount": 0},
        )
    return {"deletedCount": deleted}
