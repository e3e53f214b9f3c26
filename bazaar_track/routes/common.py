"""
Helpers shared by the route modules.
"""

from __future__ import annotations

from datetime import datetime, timezone

from bazaar_track.auth import USERS

PRODUCTS = "products"
ADVERTISEMENTS = "advertisements"
PAYMENTS = "payments"
WATCH_LIST = "watchList"
REVIEWS = "reviews"

NEWEST_FIRST = [("createdAt", -1)]


def now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def without_id(payload: dict) -> dict:
    """Drop client-supplied identifiers before writing."""
    return {k: v for k, v in payload.items() if k != "_id"}
