from __future__ import annotations

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from bazaar_track.dependencies import get_document_store
from bazaar_track.errors import UpstreamFailure
from bazaar_track.store import DocumentStore

router = APIRouter()


@router.get("/", response_class=PlainTextResponse)
def root():
    return "bazaar track server running"


@router.get("/health")
def health(store: DocumentStore = Depends(get_document_store)):
    try:
        reachable = store.ping()
    except UpstreamFailure:
        reachable = False
    return {"status": "ok", "store": reachable}
