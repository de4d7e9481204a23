"""Ingestion data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Mapping

RemoteRecord = dict[str, Any]


@dataclass(slots=True)
class GraphQLResponse:
    data: dict[str, Any] | None
    errors: list[Any] | None = None
    headers: Mapping[str, str] = field(default_factory=dict)


@dataclass(slots=True)
class ProductRecord:
    id: str
    title: str | None
    description: str | None
    vendor: str | None
    product_type: str | None
    handle: str | None
    status: str | None
    created_at: datetime | None
    updated_at: datetime | None


@dataclass(slots=True)
class VariantRecord:
    id: str
    product_id: str
    title: str | None
    price: Decimal | None
    compare_at_price: Decimal | None
    sku: str | None
    inventory_quantity: int | None
    weight: float | None
    unit_cost: Decimal | None
    created_at: datetime | None
    updated_at: datetime | None
