"""
Vendor advertisements and the public highlights carousel.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query

from bazaar_track.auth import Role
from bazaar_track.dependencies import current_identity, current_role, get_document_store
from bazaar_track.errors import Forbidden, NotFound, ValidationError
from bazaar_track.identity import VerifiedIdentity
from bazaar_track.schemas import AdvertisementCreate, AdvertisementUpdate
from bazaar_track.store import DocumentStore
from bazaar_track.routes.common import ADVERTISEMENTS, NEWEST_FIRST, now_iso, without_id

logger = logging.getLogger(__name__)

router = APIRouter()


def _owned(ad_id: str, identity: VerifiedIdentity, role: str) -> dict:
    """Vendors only reach their own ads; admins reach every ad."""
    filters = {"_id": ad_id}
    if role != Role.ADMIN.value:
        filters["vendorEmail"] = identity.email
    return filters


@router.get("/advertisements")
def list_own_advertisements(
    vendorEmail: Optional[str] = None,
    store: DocumentStore = Depends(get_document_store),
    identity: VerifiedIdentity = Depends(current_identity),
    role: str = Depends(current_role),
):
    email = identity.email
    if role == Role.ADMIN.value and vendorEmail:
        email = vendorEmail
    return store.find(ADVERTISEMENTS, {"vendorEmail": email}, sort=NEWEST_FIRST)


@router.get("/advertisements/highlights")
def list_highlights(
    limit: int = Query(6, ge=1, le=50),
    store: DocumentStore = Depends(get_document_store),
):
    return store.find(
        ADVERTISEMENTS, {"status": "approved"}, sort=NEWEST_FIRST, limit=limit
    )


@router.get("/admin/advertisements")
def list_all_advertisements(store: DocumentStore = Depends(get_document_store)):
    return store.find(ADVERTISEMENTS, sort=NEWEST_FIRST)


@router.post("/advertisements", status_code=201)
def create_advertisement(
    payload: AdvertisementCreate,
    store: DocumentStore = Depends(get_document_store),
    identity: VerifiedIdentity = Depends(current_identity),
):
    document = without_id(payload.model_dump())
    now = now_iso()
    document.update(
        vendorEmail=payload.vendorEmail or identity.email,
        status="pending",
        createdAt=now,
        updatedAt=now,
    )
    ad_id = store.insert_one(ADVERTISEMENTS, document)
    return {"inserted": True, "insertedId": ad_id}


@router.patch("/advertisements/{ad_id}")
def update_advertisement(
    ad_id: str,
    payload: AdvertisementUpdate,
    store: DocumentStore = Depends(get_document_store),
    identity: VerifiedIdentity = Depends(current_identity),
    role: str = Depends(current_role),
):
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        raise ValidationError("No fields to update")
    if "status" in changes and role != Role.ADMIN.value:
        raise Forbidden("Only admins can change advertisement status")
    changes["updatedAt"] = now_iso()
    matched = store.update_one(ADVERTISEMENTS, _owned(ad_id, identity, role), changes)
    if not matched:
        raise NotFound("Advertisement not found")
    if "status" in changes:
        logger.info("Advertisement %s moderated: %s", ad_id, changes["status"])
    return {"modified": True}


@router.delete("/advertisements/{ad_id}")
def delete_advertisement(
    ad_id: str,
    store: DocumentStore = Depends(get_document_store),
    identity: VerifiedIdentity = Depends(current_identity),
    role: str = Depends(current_role),
):
    deleted = store.delete_one(ADVERTISEMENTS, _owned(ad_id, identity, role))
    if not deleted:
        raise NotFound("Advertisement not found")
    return {"deletedCount": deleted}
