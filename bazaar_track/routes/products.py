"""
Market products: public browsing, vendor submissions and admin moderation.
"""

from __future__ import annotations

import logging
from typing import Literal, Optional

from fastapi import APIRouter, Body, Depends, Query

from bazaar_track.dependencies import current_identity, get_document_store
from bazaar_track.errors import NotFound, ValidationError
from bazaar_track.identity import VerifiedIdentity
from bazaar_track.schemas import ProductCreate, ProductUpdate, RejectPayload
from bazaar_track.store import DocumentStore
from bazaar_track.routes.common import NEWEST_FIRST, PRODUCTS, now_iso, without_id

logger = logging.getLogger(__name__)

router = APIRouter()

PENDING = "pending"
APPROVED = "approved"
REJECTED = "rejected"


@router.get("/products")
def list_products(
    vendorEmail: Optional[str] = None,
    status: Optional[Literal["pending", "approved", "rejected"]] = None,
    store: DocumentStore = Depends(get_document_store),
):
    filters = {}
    if vendorEmail:
        filters["vendorEmail"] = vendorEmail
    if status:
        filters["status"] = status
    return store.find(PRODUCTS, filters, sort=NEWEST_FIRST)


@router.get("/products/approved")
def list_approved_products(
    sort: Optional[Literal["asc", "desc"]] = None,
    startDate: Optional[str] = None,
    endDate: Optional[str] = None,
    store: DocumentStore = Depends(get_document_store),
):
    filters: dict = {"status": APPROVED}
    date_range = {}
    if startDate:
        date_range["$gte"] = startDate
    if endDate:
        date_range["$lte"] = endDate
    if date_range:
        filters["date"] = date_range
    order = NEWEST_FIRST
    if sort:
        order = [("pricePerUnit", 1 if sort == "asc" else -1)]
    return store.find(PRODUCTS, filters, sort=order)


@router.get("/products/home")
def list_home_products(
    limit: int = Query(6, ge=1, le=50),
    store: DocumentStore = Depends(get_document_store),
):
    return store.find(PRODUCTS, {"status": APPROVED}, sort=NEWEST_FIRST, limit=limit)


@router.get("/products/pagination")
def paginate_products(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    store: DocumentStore = Depends(get_document_store),
):
    products = store.find(
        PRODUCTS, sort=NEWEST_FIRST, skip=(page - 1) * limit, limit=limit
    )
    return {
        "products": products,
        "total": store.count(PRODUCTS),
        "page": page,
        "limit": limit,
    }


@router.get("/products/{product_id}")
def get_product(product_id: str, store: DocumentStore = Depends(get_document_store)):
    product = store.find_one(PRODUCTS, {"_id": product_id})
    if not product:
        raise NotFound("Product not found")
    return product


@router.post("/products", status_code=201)
def create_product(
    payload: ProductCreate,
    store: DocumentStore = Depends(get_document_store),
    identity: VerifiedIdentity = Depends(current_identity),
):
    document = without_id(payload.model_dump())
    if not document.get("prices"):
        document["prices"] = [{"date": payload.date, "price": payload.pricePerUnit}]
    now = now_iso()
    document.update(status=PENDING, createdAt=now, updatedAt=now)
    product_id = store.insert_one(PRODUCTS, document)
    logger.info("Product %s submitted by %s", product_id, identity.email)
    return {"inserted": True, "insertedId": product_id}


@router.put("/products/{product_id}")
def update_product(
    product_id: str,
    payload: ProductUpdate,
    store: DocumentStore = Depends(get_document_store),
):
    existing = store.find_one(PRODUCTS, {"_id": product_id})
    if not existing:
        raise NotFound("Product not found")

    # Status, owner, timestamps and price history are server-owned and not
    # part of ProductUpdate. A null leaves the stored value unchanged.
    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if not changes:
        raise ValidationError("No fields to update")
    new_price = changes.get("pricePerUnit")
    if new_price is not None and new_price != existing.get("pricePerUnit"):
        prices = list(existing.get("prices") or [])
        prices.append({"date": changes.get("date") or now_iso()[:10], "price": new_price})
        changes["prices"] = prices
    changes["updatedAt"] = now_iso()
    store.update_one(PRODUCTS, {"_id": product_id}, changes)
    return store.find_one(PRODUCTS, {"_id": product_id})


@router.delete("/products/{product_id}")
def delete_product(product_id: str, store: DocumentStore = Depends(get_document_store)):
    deleted = store.delete_one(PRODUCTS, {"_id": product_id})
    if not deleted:
        raise NotFound("Product not found")
    return {"deletedCount": deleted}


def _moderate(store: DocumentStore, product_id: str, changes: dict) -> dict:
    changes["updatedAt"] = now_iso()
    matched = store.update_one(PRODUCTS, {"_id": product_id}, changes)
    if not matched:
        raise NotFound("Product not found")
    logger.info("Product %s moderated: %s", product_id, changes["status"])
    return {"modified": True, "status": changes["status"]}


@router.patch("/admin/products/{product_id}/approve")
def approve_product(product_id: str, store: DocumentStore = Depends(get_document_store)):
    return _moderate(store, product_id, {"status": APPROVED, "rejectionReason": None})


@router.patch("/admin/products/{product_id}/reject")
def reject_product(
    product_id: str,
    payload: Optional[RejectPayload] = Body(None),
    store: DocumentStore = Depends(get_document_store),
):
    reason = payload.reason if payload else None
    return _moderate(store, product_id, {"status": REJECTED, "rejectionReason": reason})
