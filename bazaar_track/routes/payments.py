"""
Payment intents, recorded payments and order views.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from bazaar_track.config import Settings
from bazaar_track.dependencies import (
    current_identity,
    get_app_settings,
    get_document_store,
    get_payment_gateway,
)
from bazaar_track.identity import VerifiedIdentity
from bazaar_track.payments import PaymentGateway, to_minor_units
from bazaar_track.schemas import PaymentCreate, PaymentIntentRequest, PaymentIntentResponse
from bazaar_track.store import DocumentStore
from bazaar_track.routes.common import NEWEST_FIRST, PAYMENTS, PRODUCTS, now_iso, without_id

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/create-payment-intent", response_model=PaymentIntentResponse)
def create_payment_intent(
    payload: PaymentIntentRequest,
    gateway: PaymentGateway = Depends(get_payment_gateway),
    settings: Settings = Depends(get_app_settings),
):
    currency = (payload.currency or settings.payment_currency).lower()
    client_secret = gateway.create_payment_intent(to_minor_units(payload.amount), currency)
    return PaymentIntentResponse(clientSecret=client_secret)


@router.post("/payments", status_code=201)
def record_payment(
    payload: PaymentCreate,
    store: DocumentStore = Depends(get_document_store),
    identity: VerifiedIdentity = Depends(current_identity),
    settings: Settings = Depends(get_app_settings),
):
    document = without_id(payload.model_dump())
    document.update(
        userEmail=identity.email,
        currency=(payload.currency or settings.payment_currency).lower(),
        status="paid",
        createdAt=now_iso(),
    )
    payment_id = store.insert_one(PAYMENTS, document)
    logger.info("Payment %s recorded for %s", payment_id, identity.email)
    return {"inserted": True, "insertedId": payment_id}


@router.get("/orders")
def list_orders(store: DocumentStore = Depends(get_document_store)):
    return store.find(PAYMENTS, sort=NEWEST_FIRST)


@router.get("/my-orders")
def list_my_orders(
    store: DocumentStore = Depends(get_document_store),
    identity: VerifiedIdentity = Depends(current_identity),
):
    payments = store.find(PAYMENTS, {"userEmail": identity.email}, sort=NEWEST_FIRST)
    product_ids = sorted({p["productId"] for p in payments if p.get("productId")})
    products = {
        product["_id"]: product
        for product in store.find(PRODUCTS, {"_id": {"$in": product_ids}})
    } if product_ids else {}
    return [
        {**payment, "product": products.get(payment.get("productId"))}
        for payment in payments
    ]
