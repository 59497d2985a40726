"""
Request models for the storefront API.

Orders, contact messages and newsletter signups keep any extra fields the
client sends, so stored records mirror the submitted body.
"""

import math
import re
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

ITEMS_REQUIRED = "Order must contain at least one item"
CUSTOMER_REQUIRED = "Customer name and email are required"
TOTAL_REQUIRED = "Valid total amount is required"
EMAIL_REQUIRED = "Valid email address is required"
FINITE_REQUIRED = "Numbers must be finite"


def is_valid_email(value) -> bool:
    return isinstance(value, str) and EMAIL_RE.match(value) is not None


def is_finite_number(value) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def has_non_finite(value) -> bool:
    """True if NaN or Infinity appears anywhere in a decoded JSON value."""
    if isinstance(value, float):
        return not math.isfinite(value)
    if isinstance(value, dict):
        return any(has_non_finite(v) for v in value.values())
    if isinstance(value, list):
        return any(has_non_finite(v) for v in value)
    return False


class OrderCreate(BaseModel):
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    items: list
    customer_info: dict = Field(..., alias="customerInfo")
    total: float = Field(..., gt=0, allow_inf_nan=False)

    @model_validator(mode="before")
    @classmethod
    def check_required(cls, data):
        # first failing check wins
        if not isinstance(data, dict):
            raise ValueError(ITEMS_REQUIRED)
        items = data.get("items")
        if not isinstance(items, list) or not items:
            raise ValueError(ITEMS_REQUIRED)
        customer = data.get("customerInfo", data.get("customer_info"))
        if not isinstance(customer, dict) or not customer.get("name") or not customer.get("email"):
            raise ValueError(CUSTOMER_REQUIRED)
        total = data.get("total")
        if not is_finite_number(total) or total <= 0:
            raise ValueError(TOTAL_REQUIRED)
        if has_non_finite(data):
            raise ValueError(FINITE_REQUIRED)
        return data

    @property
    def email(self):
        return self.customer_info.get("email")

    def to_record(self) -> dict:
        return self.model_dump(mode="json", by_alias=True)


class ContactCreate(BaseModel):
    model_config = ConfigDict(extra="allow")

    email: Optional[str] = None
    name: Optional[str] = None
    subject: Optional[str] = None
    message: Optional[str] = None

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        if not is_valid_email(v):
            raise ValueError(EMAIL_REQUIRED)
        return v

    @model_validator(mode="after")
    def require_email(self):
        if self.email is None:
            raise ValueError(EMAIL_REQUIRED)
        if has_non_finite(self.model_extra or {}):
            raise ValueError(FINITE_REQUIRED)
        return self

    def to_record(self) -> dict:
        return self.model_dump(mode="json", exclude_none=True)


class NewsletterSignup(BaseModel):
    email: Optional[str] = None
    name: Optional[str] = None

    @field_validator("email")
    @classmethod
    def validate_email(cls, v):
        if not is_valid_email(v):
            raise ValueError(EMAIL_REQUIRED)
        return v

    @model_validator(mode="after")
    def require_email(self):
        if self.email is None:
            raise ValueError(EMAIL_REQUIRED)
        return self
