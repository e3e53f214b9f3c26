"""
FastAPI application entry point for the bazaar track backend.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from bazaar_track.chat import ChatModel
from bazaar_track.config import Settings, get_settings
from bazaar_track.dependencies import (
    build_chat_model,
    build_document_store,
    build_identity_verifier,
    build_payment_gateway,
)
from bazaar_track.errors import UpstreamFailure, install_error_handlers
from bazaar_track.identity import IdentityVerifier
from bazaar_track.payments import PaymentGateway
from bazaar_track.routes import router
from bazaar_track.store import DocumentStore

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    store: DocumentStore = app.state.store
    try:
        store.ping()
        logger.info("Pinged %s, store is reachable", store.__class__.__name__)
    except UpstreamFailure as exc:
        logger.error("Store ping failed at startup: %s", exc.detail)
    yield
    store.close()


def create_app(
    settings: Optional[Settings] = None,
    *,
    store: Optional[DocumentStore] = None,
    identity_verifier: Optional[IdentityVerifier] = None,
    payment_gateway: Optional[PaymentGateway] = None,
    chat_model: Optional[ChatModel] = None,
) -> FastAPI:
    """
    Build the app. Anything not passed in is built from settings; the store
    lives as long as the app does.
    """
    settings = settings or get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    app = FastAPI(title="Bazaar Track API", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.store = store if store is not None else build_document_store(settings)
    app.state.identity_verifier = identity_verifier or build_identity_verifier(settings)
    app.state.payment_gateway = payment_gateway or build_payment_gateway(settings)
    app.state.chat_model = chat_model or build_chat_model(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    install_error_handlers(app)
    app.include_router(router)
    return app


def main() -> None:
    import uvicorn

    settings = get_settings()
    uvicorn.run(create_app(settings), host="0.0.0.0", port=settings.port)


if __name__ == "__main__":
    main()
