"""Local catalog tables."""

from __future__ import annotations

from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, MetaData, Numeric, Table, Text

metadata = MetaData()

products = Table(
    "products",
    metadata,
    Column("id", Text, primary_key=True),
    Column("title", Text),
    Column("description", Text),
    Column("vendor", Text),
    Column("product_type", Text),
    Column("handle", Text),
    Column("status", Text),
    Column("created_at", DateTime),
    Column("updated_at", DateTime),
)

variants = Table(
    "variants",
    metadata,
    Column("id", Text, primary_key=True),
    Column("product_id", Text, ForeignKey("products.id"), index=True),
    Column("title", Text),
    Column("price", Numeric(12, 2)),
    Column("compare_at_price", Numeric(12, 2)),
    Column("sku", Text),
    Column("inventory_quantity", Integer),
    Column("weight", Float),
    Column("unit_cost", Numeric(12, 2)),
    Column("created_at", DateTime),
    Column("updated_at", DateTime),
)

PRODUCT_CONFLICT_FIELDS = ("title", "description", "vendor", "product_type", "handle", "status", "updated_at")
VARIANT_CONFLICT_FIELDS = (
    "title",
    "price",
    "compare_at_price",
    "sku",
    "inventory_quantity",
    "weight",
    "unit_cost",
    "updated_at",
)
