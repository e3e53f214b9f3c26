"""
Dependency wiring for the FastAPI app.

``build_*`` functions pick a backend from settings once, at app creation.
``get_*`` functions hand the app-owned instances to request handlers.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import Depends, Request

from bazaar_track.auth import ACCESS_POLICY, AccessGate
from bazaar_track.chat import ChatModel, GeminiChatModel
from bazaar_track.config import Settings
from bazaar_track.errors import Unauthenticated
from bazaar_track.identity import (
    FirebaseIdentityVerifier,
    IdentityVerifier,
    StaticIdentityVerifier,
    VerifiedIdentity,
)
from bazaar_track.payments import InMemoryPaymentGateway, PaymentGateway, StripePaymentGateway
from bazaar_track.store import (
    DocumentStore,
    InMemoryDocumentStore,
    MongoDocumentStore,
    SqlDocumentStore,
)

logger = logging.getLogger(__name__)


def build_document_store(settings: Settings) -> DocumentStore:
    if settings.use_in_memory_backends:
        return InMemoryDocumentStore()
    if settings.mongodb_uri:
        return MongoDocumentStore(settings.mongodb_uri, settings.database_name)
    if settings.database_url:
        return SqlDocumentStore(settings.database_url)
    logger.warning("No MONGODB_URI or DATABASE_URL set, using the in-memory store")
    return InMemoryDocumentStore()


def build_identity_verifier(settings: Settings) -> IdentityVerifier:
    if settings.use_in_memory_backends or (
        settings.dev_identity_tokens
        and not (settings.firebase_service_account_file or settings.firebase_service_key)
    ):
        return StaticIdentityVerifier(dict(settings.dev_identity_tokens))
    return FirebaseIdentityVerifier(
        service_account_file=settings.firebase_service_account_file,
        service_key=settings.firebase_service_key,
    )


def build_payment_gateway(settings: Settings) -> PaymentGateway:
    if settings.use_in_memory_backends or not settings.stripe_secret_key:
        return InMemoryPaymentGateway()
    return StripePaymentGateway(settings.stripe_secret_key)


def build_chat_model(settings: Settings) -> ChatModel:
    return GeminiChatModel(settings.gemini_api_key, model=settings.chat_model)


def get_document_store(request: Request) -> DocumentStore:
    return request.app.state.store


def get_identity_verifier(request: Request) -> IdentityVerifier:
    return request.app.state.identity_verifier


def get_payment_gateway(request: Request) -> PaymentGateway:
    return request.app.state.payment_gateway


def get_chat_model(request: Request) -> ChatModel:
    return request.app.state.chat_model


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_access_gate(
    verifier: IdentityVerifier = Depends(get_identity_verifier),
    store: DocumentStore = Depends(get_document_store),
) -> AccessGate:
    return AccessGate(verifier, store)


def enforce_access_policy(
    request: Request, gate: AccessGate = Depends(get_access_gate)
) -> Optional[VerifiedIdentity]:
    """
    Router-wide dependency: looks up the matched route in ACCESS_POLICY and
    runs the gate when the route is listed.
    """
    route = request.scope.get("route")
    path = getattr(route, "path", request.url.path)
    required = ACCESS_POLICY.required_roles(request.method, path)
    if required is None:
        return None
    decision = gate.evaluate(request.headers.get("Authorization"), required)
    if not decision.admitted:
        raise decision.error
    request.state.identity = decision.identity
    request.state.role = decision.role
    return decision.identity


def current_identity(
    identity: Optional[VerifiedIdentity] = Depends(enforce_access_policy),
) -> VerifiedIdentity:
    if identity is None:
        # Public route asking for a caller.
        raise Unauthenticated()
    return identity


def current_role(
    request: Request, identity: VerifiedIdentity = Depends(current_identity)
) -> str:
    return request.state.role
