from __future__ import annotations

from fastapi import APIRouter, Depends

from bazaar_track.dependencies import current_identity, get_document_store
from bazaar_track.identity import VerifiedIdentity
from bazaar_track.schemas import ReviewCreate
from bazaar_track.store import DocumentStore
from bazaar_track.routes.common import REVIEWS, now_iso, without_id

router = APIRouter()


@router.post("/reviews", status_code=201)
def create_review(
    payload: ReviewCreate,
    store: DocumentStore = Depends(get_document_store),
    identity: VerifiedIdentity = Depends(current_identity),
):
    document = without_id(payload.model_dump())
    document.update(
        userEmail=identity.email,
        userName=payload.userName or identity.name,
        userPhoto=payload.userPhoto or identity.picture,
        date=now_iso(),
    )
    review_id = store.insert_one(REVIEWS, document)
    return {"inserted": True, "insertedId": review_id}


@router.get("/reviews/{product_id}")
def list_reviews(product_id: str, store: DocumentStore = Depends(get_document_store)):
    return store.find(REVIEWS, {"productId": product_id}, sort=[("date", -1)])
