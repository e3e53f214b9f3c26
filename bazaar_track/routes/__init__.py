"""
HTTP routes for the bazaar track API.

Every route goes through ``enforce_access_policy``; whether it is gated is
decided by ``bazaar_track.auth.ACCESS_POLICY`` alone.
"""

from fastapi import APIRouter, Depends

from bazaar_track.dependencies import enforce_access_policy
from bazaar_track.routes import (
    advertisements,
    chat,
    health,
    payments,
    products,
    reviews,
    users,
    watchlist,
)

router = APIRouter(dependencies=[Depends(enforce_access_policy)])

for module in (health, users, products, advertisements, payments, watchlist, reviews, chat):
    router.include_router(module.router)
