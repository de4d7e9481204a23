"""GraphQL query builders and response extractors for the Shopify Admin API."""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any, Iterable

from catalog_sync.ingest.models import GraphQLResponse, RemoteRecord

# Variants beyond this many per product are not fetched.
VARIANTS_PER_PRODUCT = 100

PRODUCT_FIELDS = """
              id
              title
              description
              vendor
              productType
              handle
              status
              createdAt
              updatedAt
"""

PRODUCTS_QUERY = (
    """
    query getProducts($first: Int!, $cursor: String, $query: String) {
      products(first: $first, after: $cursor, query: $query) {
        edges {
          node {"""
    + PRODUCT_FIELDS
    + """          }
          cursor
        }
        pageInfo {
          hasNextPage
        }
      }
    }
    """
)

PRODUCT_QUERY = (
    """
    query getProduct($id: ID!) {
      product(id: $id) {"""
    + PRODUCT_FIELDS
    + """      }
    }
    """
)

VARIANTS_BATCH_QUERY = f"""
    query getVariantsBatch($first: Int!, $query: String!) {{
      products(first: $first, query: $query) {{
        edges {{
          node {{
            id
            variants(first: {VARIANTS_PER_PRODUCT}) {{
              edges {{
                node {{
                  id
                  title
                  price
                  compareAtPrice
                  sku
                  inventoryQuantity
                  weight
                  createdAt
                  updatedAt
                }}
              }}
            }}
          }}
        }}
      }}
    }}
    """

COST_QUERY = f"""
    query getCostData($first: Int!, $query: String!) {{
      products(first: $first, query: $query) {{
        edges {{
          node {{
            id
            variants(first: {VARIANTS_PER_PRODUCT}) {{
              edges {{
                node {{
                  id
                  inventoryItem {{
                    unitCost {{
                      amount
                    }}
                  }}
                }}
              }}
            }}
          }}
        }}
      }}
    }}
    """

Query = tuple[str, dict[str, Any]]


def numeric_id(gid: str) -> str:
    """``gid://shopify/Product/42`` -> ``42``; plain ids pass through."""
    return str(gid).rstrip("/").rsplit("/", 1)[-1]


def id_filter(ids: Iterable[str]) -> str:
    return " OR ".join(f"id:{numeric_id(value)}" for value in ids)


def product_gid(value: str) -> str:
    value = str(value)
    if value.startswith("gid://"):
        return value
    return f"gid://shopify/Product/{value}"


def build_products_query(page_size: int, *, search: str | None = None):
    def build(cursor: str | None) -> Query:
        variables: dict[str, Any] = {"first": page_size, "cursor": cursor}
        if search:
            variables["query"] = search
        return PRODUCTS_QUERY, variables

    return build


def build_product_query(product_id: str) -> Query:
    return PRODUCT_QUERY, {"id": product_gid(product_id)}


def build_variants_query(product_ids: list[str]) -> Query:
    return VARIANTS_BATCH_QUERY, {"first": len(product_ids), "query": id_filter(product_ids)}


def build_cost_query(product_ids: list[str]) -> Query:
    return COST_QUERY, {"first": len(product_ids), "query": id_filter(product_ids)}


def extract_product(response: GraphQLResponse) -> RemoteRecord | None:
    return (response.data or {}).get("product")


def extract_variants(response: GraphQLResponse) -> list[RemoteRecord]:
    variants: list[RemoteRecord] = []
    for product_edge in _product_edges(response):
        product_id = product_edge["node"]["id"]
        for variant_edge in (product_edge["node"].get("variants") or {}).get("edges", []):
            variants.append({**variant_edge["node"], "productId": product_id})
    return variants


def extract_costs(response: GraphQLResponse) -> dict[str, Decimal]:
    costs: dict[str, Decimal] = {}
    for product_edge in _product_edges(response):
        for variant_edge in (product_edge["node"].get("variants") or {}).get("edges", []):
            variant = variant_edge["node"]
            unit_cost = (variant.get("inventoryItem") or {}).get("unitCost")
            if not unit_cost or unit_cost.get("amount") in (None, ""):
                continue
            try:
                costs[variant["id"]] = Decimal(str(unit_cost["amount"]))
            except InvalidOperation:
                continue
    return costs


def _product_edges(response: GraphQLResponse) -> list[dict[str, Any]]:
    products = (response.data or {}).get("products") or {}
    return products.get("edges") or []
