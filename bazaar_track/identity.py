"""
Identity verification for bearer tokens.

Firebase Authentication issues the ID tokens the web client sends; the
static verifier stands in for it during development and tests.
"""

from __future__ import annotations

import base64
import json
import logging
from dataclasses import dataclass, field
from typing import Dict, Optional, Protocol

import firebase_admin
from firebase_admin import auth, credentials
from firebase_admin.exceptions import FirebaseError

from bazaar_track.errors import InvalidCredential, UpstreamFailure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class VerifiedIdentity:
    uid: str
    email: str
    name: Optional[str] = None
    picture: Optional[str] = None
    claims: dict = field(default_factory=dict, compare=False)


class IdentityVerifier(Protocol):
    """Turns a bearer token into a verified identity or raises InvalidCredential."""

    def verify(self, token: str) -> VerifiedIdentity:
        ...


def identity_from_claims(claims: dict) -> VerifiedIdentity:
    email = claims.get("email")
    if not email:
        raise InvalidCredential("Token carries no email claim")
    return VerifiedIdentity(
        uid=claims.get("uid") or claims.get("sub") or email,
        email=email,
        name=claims.get("name"),
        picture=claims.get("picture"),
        claims=dict(claims),
    )


@dataclass
class StaticIdentityVerifier:
    """Test double: a fixed table of token -> email."""

    tokens: Dict[str, str] = field(default_factory=dict)

    def verify(self, token: str) -> VerifiedIdentity:
        email = self.tokens.get(token)
        if email is None:
            raise InvalidCredential()
        return identity_from_claims({"uid": f"static:{email}", "email": email})


def _firebase_credential(
    service_account_file: Optional[str], service_key: Optional[str]
) -> credentials.Base:
    if service_account_file:
        return credentials.Certificate(service_account_file)
    if service_key:
        decoded = base64.b64decode(service_key).decode("utf-8")
        return credentials.Certificate(json.loads(decoded))
    return credentials.ApplicationDefault()


class FirebaseIdentityVerifier:
    """Verifies Firebase ID tokens with firebase-admin."""

    def __init__(
        self,
        service_account_file: Optional[str] = None,
        service_key: Optional[str] = None,
        app: Optional[firebase_admin.App] = None,
    ):
        if app is None:
            try:
                app = firebase_admin.get_app()
            except ValueError:
                app = firebase_admin.initialize_app(
                    _firebase_credential(service_account_file, service_key)
                )
                logger.info("Initialized firebase-admin app %s", app.name)
        self.app = app

    def verify(self, token: str) -> VerifiedIdentity:
        try:
            claims = auth.verify_id_token(token, app=self.app)
        except auth.CertificateFetchError as exc:
            logger.exception("Could not fetch Firebase public keys")
            raise UpstreamFailure(str(exc)) from exc
        except (ValueError, FirebaseError) as exc:
            logger.info("Token verification failed: %s", exc)
            raise InvalidCredential() from exc
        return identity_from_claims(claims)
