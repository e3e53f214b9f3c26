"""
User records: signup-on-login, listing, search and role management.
"""

from __future__ import annotations

import logging
import re

from fastapi import APIRouter, Depends, Query

from bazaar_track.auth import Role, resolve_role
from bazaar_track.dependencies import get_document_store
from bazaar_track.errors import NotFound
from bazaar_track.schemas import InsertResponse, RoleUpdate, UserUpsert
from bazaar_track.store import DocumentStore
from bazaar_track.routes.common import NEWEST_FIRST, USERS, now_iso, without_id

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/users", response_model=InsertResponse, response_model_exclude_none=True)
def upsert_user(payload: UserUpsert, store: DocumentStore = Depends(get_document_store)):
    """
    Called by the client after every sign-in. Existing users only get their
    lastLogin refreshed. The lookup and the insert are not atomic.
    """
    now = now_iso()
    existing = store.find_one(USERS, {"email": payload.email})
    if existing:
        store.update_one(USERS, {"_id": existing["_id"]}, {"lastLogin": now})
        return InsertResponse(inserted=False, message="User already exists")

    document = without_id(payload.model_dump())
    document.update(role=Role.USER.value, createdAt=now, lastLogin=now)
    user_id = store.insert_one(USERS, document)
    logger.info("Registered user %s", payload.email)
    return InsertResponse(inserted=True, insertedId=user_id)


@router.get("/users")
def list_users(store: DocumentStore = Depends(get_document_store)):
    return store.find(USERS, sort=NEWEST_FIRST)


@router.get("/users/search")
def search_users(
    keyword: str = Query("", max_length=100),
    store: DocumentStore = Depends(get_document_store),
):
    if not keyword.strip():
        return store.find(USERS, sort=NEWEST_FIRST)
    pattern = {"$regex": re.escape(keyword.strip()), "$options": "i"}
    return store.find(
        USERS,
        {"$or": [{"name": pattern}, {"email": pattern}]},
        sort=NEWEST_FIRST,
    )


@router.get("/users/role/{email}")
def get_user_role(email: str, store: DocumentStore = Depends(get_document_store)):
    return {"email": email, "role": resolve_role(store, email)}


@router.patch("/users/{user_id}/role")
def update_user_role(
    user_id: str,
    payload: RoleUpdate,
    store: DocumentStore = Depends(get_document_store),
):
    matched = store.update_one(USERS, {"_id": user_id}, {"role": payload.role})
    if not matched:
        raise NotFound("User not found")
    logger.info("User %s is now %s", user_id, payload.role)
    return {"modified": True, "role": payload.role}
