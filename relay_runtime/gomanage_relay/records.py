"""Canonical (dashboard-facing) records.

Field names are snake_case in Python and camelCase on the wire.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

SyncStatus = Literal["synced", "pending", "error", "never"]
OrderStatus = Literal["draft", "pending", "confirmed", "shipped", "delivered", "cancelled"]


class CanonicalRecord(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    gomanage_id: str = ""
    sync_status: SyncStatus = "never"
    created_at: str = ""
    updated_at: str = ""

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True)


class Customer(CanonicalRecord):
    name: str = ""
    business_name: str = ""
    vat_number: str = ""
    email: str = ""
    phone: str = ""
    street_name: str = ""
    street_number: str = ""
    postal_code: str = ""
    city: str = ""
    province: str = ""
    country: str = ""


class Product(CanonicalRecord):
    product_id: str = ""
    brand_name: str = ""
    reference: str = ""
    description_short: str = ""
    description_long: str = ""
    base_price: float = 0.0
    stock_real: float = 0.0
    stock_reserved: float = 0.0
    category: str = ""


class Order(CanonicalRecord):
    order_number: str = ""
    reference: str = ""
    date: str = ""
    status: OrderStatus = "pending"
    customer_name: str = ""
    amount: float = 0.0
    tax_amount: float = 0.0
    shipping_cost: float = 0.0
    total_amount: float = Field(0.0, description="Gross amount (tax + shipping included)")
