"""
Pydantic request models for the bazaar track API.

Documents are schema-flexible, so most models accept extra fields and pass
them through to the store.
"""

from __future__ import annotations

import math
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


def _is_finite(value: Any) -> bool:
    if isinstance(value, float):
        return math.isfinite(value)
    if isinstance(value, dict):
        return all(_is_finite(item) for item in value.values())
    if isinstance(value, list):
        return all(_is_finite(item) for item in value)
    return True


class PassthroughModel(BaseModel):
    # JSON bodies may carry Infinity or NaN, which cannot be rendered back out.
    model_config = ConfigDict(extra="allow", allow_inf_nan=False)

    @model_validator(mode="after")
    def _reject_non_finite_extras(self):
        for name, value in (self.model_extra or {}).items():
            if not _is_finite(value):
                raise ValueError(f"{name} must be a finite number")
        return self


class UserUpsert(PassthroughModel):
    email: str = Field(..., min_length=3)
    name: Optional[str] = None
    photoURL: Optional[str] = None
    provider: Optional[str] = None


class RoleUpdate(BaseModel):
    role: Literal["user", "vendor", "admin"]


class PricePoint(BaseModel):
    date: str
    price: float = Field(..., ge=0, allow_inf_nan=False)


class ProductCreate(PassthroughModel):
    vendorEmail: str
    vendorName: Optional[str] = None
    marketName: str
    marketDescription: Optional[str] = None
    date: str
    itemName: str
    pricePerUnit: float = Field(..., ge=0)
    prices: Optional[list[PricePoint]] = None
    image: Optional[str] = None
    itemDescription: Optional[str] = None


class ProductUpdate(BaseModel):
    """Vendor-editable product fields. Anything else in the body is ignored."""

    model_config = ConfigDict(allow_inf_nan=False)

    vendorName: Optional[str] = None
    marketName: Optional[str] = None
    marketDescription: Optional[str] = None
    date: Optional[str] = None
    itemName: Optional[str] = None
    pricePerUnit: Optional[float] = Field(None, ge=0)
    image: Optional[str] = None
    itemDescription: Optional[str] = None


class RejectPayload(BaseModel):
    reason: Optional[str] = Field(None, max_length=1024)


class AdvertisementCreate(PassthroughModel):
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    image: str = Field(..., min_length=1)
    vendorEmail: Optional[str] = None


class AdvertisementUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    image: Optional[str] = None
    status: Optional[Literal["pending", "approved", "rejected"]] = None


class PaymentIntentRequest(BaseModel):
    amount: float = Field(..., gt=0, allow_inf_nan=False)
    currency: Optional[str] = Field(None, min_length=3, max_length=3)


class PaymentIntentResponse(BaseModel):
    clientSecret: str


class PaymentCreate(PassthroughModel):
    productId: str
    amount: float = Field(..., gt=0)
    transactionId: Optional[str] = None
    currency: Optional[str] = None


class WatchListCreate(PassthroughModel):
    productId: str
    itemName: Optional[str] = None
    marketName: Optional[str] = None


class ReviewCreate(PassthroughModel):
    productId: str
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=2000)
    userName: Optional[str] = None
    userPhoto: Optional[str] = None


class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1, max_length=4000)


class ChatResponse(BaseModel):
    reply: str


class InsertResponse(BaseModel):
    inserted: bool
    insertedId: Optional[str] = None
    message: Optional[str] = None
