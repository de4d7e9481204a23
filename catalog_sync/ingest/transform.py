"""Map raw GraphQL nodes to persistence-ready records."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any

from catalog_sync.ingest.models import ProductRecord, RemoteRecord, VariantRecord
from catalog_sync.utils.dates import parse_remote_timestamp


def transform_product(node: RemoteRecord) -> ProductRecord:
    return ProductRecord(
        id=node["id"],
        title=node.get("title"),
        description=node.get("description"),
        vendor=node.get("vendor"),
        product_type=node.get("productType"),
        handle=node.get("handle"),
        status=node.get("status"),
        created_at=parse_remote_timestamp(node.get("createdAt")),
        updated_at=parse_remote_timestamp(node.get("updatedAt")),
    )


def transform_variant(node: RemoteRecord) -> VariantRecord:
    return VariantRecord(
        id=node["id"],
        product_id=node["productId"],
        title=node.get("title"),
        price=to_decimal(node.get("price")),
        compare_at_price=to_decimal(node.get("compareAtPrice")),
        sku=node.get("sku") or None,
        inventory_quantity=_to_int(node.get("inventoryQuantity")),
        weight=_to_float(node.get("weight")),
        unit_cost=to_decimal(node.get("unitCost")),
        created_at=parse_remote_timestamp(node.get("createdAt")),
        updated_at=parse_remote_timestamp(node.get("updatedAt")),
    )


def transform_products(nodes: list[RemoteRecord]) -> list[ProductRecord]:
    return [transform_product(node) for node in nodes]


def transform_variants(nodes: list[RemoteRecord]) -> list[VariantRecord]:
    return [transform_variant(node) for node in nodes]


def to_decimal(value: Any) -> Decimal | None:
    """Parse a money-like value; missing or blank stays ``None``, never zero."""
    if value in (None, ""):
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, dict):
        return to_decimal(value.get("amount"))
    try:
        return Decimal(str(value))
    except InvalidOperation as exc:
        raise ValueError(f"Not a decimal amount: {value!r}") from exc


def _to_int(value: Any) -> int | None:
    if value in (None, ""):
        return None
    return int(value)


def _to_float(value: Any) -> float | None:
    if value in (None, ""):
        return None
    return float(value)
