"""
Request authorization: role lookup, the access gate and the route policy.

The gate runs three named stages in order (presence, verification,
authorization). The first rejecting stage ends the evaluation.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, FrozenSet, Optional

from fastapi import HTTPException

from bazaar_track.errors import Forbidden, InvalidCredential, Unauthenticated
from bazaar_track.identity import IdentityVerifier, VerifiedIdentity
from bazaar_track.store import DocumentStore

logger = logging.getLogger(__name__)

USERS = "users"


class Role(str, Enum):
    GUEST = "guest"
    USER = "user"
    VENDOR = "vendor"
    ADMIN = "admin"


ASSIGNABLE_ROLES = (Role.USER.value, Role.VENDOR.value, Role.ADMIN.value)

ADMIN: FrozenSet[str] = frozenset({Role.ADMIN.value})
VENDOR: FrozenSet[str] = frozenset({Role.VENDOR.value})
STAFF: FrozenSet[str] = frozenset({Role.VENDOR.value, Role.ADMIN.value})
MEMBER: FrozenSet[str] = frozenset(ASSIGNABLE_ROLES)
ANY_IDENTITY: FrozenSet[str] = MEMBER | {Role.GUEST.value}


def resolve_role(store: DocumentStore, email: str) -> str:
    user = store.find_one(USERS, {"email": email})
    if not user or not user.get("role"):
        return Role.GUEST.value
    return user["role"]


@dataclass(frozen=True)
class GateDecision:
    admitted: bool
    stage: str
    identity: Optional[VerifiedIdentity] = None
    role: Optional[str] = None
    error: Optional[HTTPException] = None


@dataclass
class _GateState:
    authorization: Optional[str]
    required_roles: FrozenSet[str]
    token: Optional[str] = None
    identity: Optional[VerifiedIdentity] = None
    role: Optional[str] = None


class AccessGate:
    """Admits or rejects a request before its handler runs."""

    def __init__(self, verifier: IdentityVerifier, store: DocumentStore):
        self.verifier = verifier
        self.store = store
        self.stages: tuple[tuple[str, Callable[[_GateState], GateDecision]], ...] = (
            ("presence", self._check_presence),
            ("verification", self._verify),
            ("authorization", self._authorize),
        )

    def evaluate(
        self, authorization: Optional[str], required_roles: FrozenSet[str]
    ) -> GateDecision:
        state = _GateState(authorization=authorization, required_roles=required_roles)
        decision = GateDecision(admitted=False, stage="none")
        for name, stage in self.stages:
            decision = stage(state)
            if not decision.admitted:
                logger.info("Access gate rejected at %s: %s", name, decision.error.detail)
                return decision
        return decision

    def _check_presence(self, state: _GateState) -> GateDecision:
        scheme, _, token = (state.authorization or "").strip().partition(" ")
        token = token.strip()
        if scheme.lower() != "bearer" or not token:
            return GateDecision(False, "presence", error=Unauthenticated())
        state.token = token
        return GateDecision(True, "presence")

    def _verify(self, state: _GateState) -> GateDecision:
        try:
            state.identity = self.verifier.verify(state.token)
        except InvalidCredential as exc:
            return GateDecision(False, "verification", error=exc)
        return GateDecision(True, "verification", identity=state.identity)

    def _authorize(self, state: _GateState) -> GateDecision:
        state.role = resolve_role(self.store, state.identity.email)
        if state.role not in state.required_roles:
            return GateDecision(
                False,
                "authorization",
                identity=state.identity,
                role=state.role,
                error=Forbidden(),
            )
        return GateDecision(True, "authorization", identity=state.identity, role=state.role)


class AccessPolicy:
    """Declarative route -> required role set table. Unlisted routes are public."""

    def __init__(self, rules: Dict[tuple[str, str], FrozenSet[str]]):
        self.rules = {(method.upper(), path): roles for (method, path), roles in rules.items()}

    def required_roles(self, method: str, path: str) -> Optional[FrozenSet[str]]:
        return self.rules.get((method.upper(), path))

    def __contains__(self, key: tuple[str, str]) -> bool:
        method, path = key
        return (method.upper(), path) in self.rules


ACCESS_POLICY = AccessPolicy(
    {
        # users
        ("GET", "/users"): ADMIN,
        ("GET", "/users/search"): ADMIN,
        ("GET", "/users/role/{email}"): ANY_IDENTITY,
        ("PATCH", "/users/{user_id}/role"): ADMIN,
        # products
        ("GET", "/products/pagination"): ADMIN,
        ("POST", "/products"): VENDOR,
        ("PUT", "/products/{product_id}"): STAFF,
        ("DELETE", "/products/{product_id}"): STAFF,
        ("PATCH", "/admin/products/{product_id}/approve"): ADMIN,
        ("PATCH", "/admin/products/{product_id}/reject"): ADMIN,
        # advertisements
        ("GET", "/advertisements"): STAFF,
        ("POST", "/advertisements"): VENDOR,
        ("PATCH", "/advertisements/{ad_id}"): STAFF,
        ("DELETE", "/advertisements/{ad_id}"): STAFF,
        ("GET", "/admin/advertisements"): ADMIN,
        # payments
        ("POST", "/create-payment-intent"): MEMBER,
        ("POST", "/payments"): MEMBER,
        ("GET", "/orders"): ADMIN,
        ("GET", "/my-orders"): MEMBER,
        # watch list
        ("GET", "/watchList"): MEMBER,
        ("POST", "/watchList"): MEMBER,
        ("DELETE", "/watchList/{entry_id}"): MEMBER,
        # reviews
        ("POST", "/reviews"): MEMBER,
        # chat
        ("POST", "/api/chat"): MEMBER,
    }
)
