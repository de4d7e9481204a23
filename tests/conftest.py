import re

import pytest
from sqlalchemy import create_engine

from catalog_sync.config import SyncConfig
from catalog_sync.db.schema import metadata
from catalog_sync.ingest.models import GraphQLResponse
from catalog_sync.sync.engine import CatalogSynchronizer

OPERATION_RE = re.compile(r"query\s+(\w+)")
ID_RE = re.compile(r"id:(\w+)")
SINCE_RE = re.compile(r"updated_at:>='([^']+)'")
DEFAULT_HEADERS = {"X-Shopify-Shop-Api-Call-Limit": "1/40"}


def make_catalog(count: int = 10, variants: dict[int, int] | None = None) -> list[dict]:
    """Products 1..count; ``variants`` maps product number to its variant count."""
    variants = {2: 2, 5: 1} if variants is None else variants
    catalog = []
    for n in range(1, count + 1):
        product = {
            "id": f"gid://shopify/Product/{n}",
            "title": f"Product {n}",
            "description": f"Description {n}",
            "vendor": "Acme",
            "productType": "Widget",
            "handle": f"product-{n}",
            "status": "ACTIVE",
            "createdAt": "2024-01-01T00:00:00Z",
            "updatedAt": f"2024-02-{n:02d}T12:00:00Z",
            "variants": [],
        }
        for k in range(1, variants.get(n, 0) + 1):
            product["variants"].append(
                {
                    "id": f"gid://shopify/ProductVariant/{n}0{k}",
                    "title": f"Size {k}",
                    "price": "19.99",
                    "compareAtPrice": "24.99" if k == 1 else None,
                    "sku": f"SKU-{n}-{k}",
                    "inventoryQuantity": 5 * k,
                    "weight": 0.5,
                    "createdAt": "2024-01-01T00:00:00Z",
                    "updatedAt": f"2024-02-{n:02d}T12:00:00Z",
                    "unitCost": "7.50",
                }
            )
        catalog.append(product)
    return catalog


class FakeCatalogAPI:
    """In-memory stand-in for the Shopify GraphQL endpoint."""

    def __init__(self, products: list[dict] | None = None, *, headers: dict[str, str] | None = None) -> None:
        self.products = make_catalog() if products is None else products
        self.headers = DEFAULT_HEADERS if headers is None else headers
        self.calls: list[tuple[str, dict]] = []
        # Consumed one per call before the catalog is consulted: exceptions are
        # raised, GraphQLResponse objects are returned as-is.
        self.failures: list = []
        self.closed = False

    async def close(self) -> None:
        self.closed = True

    def operations(self) -> list[str]:
        return [name for name, _ in self.calls]

    async def execute(self, query: str, variables: dict | None = None) -> GraphQLResponse:
        variables = variables or {}
        operation = OPERATION_RE.search(query).group(1)
        self.calls.append((operation, variables))
        if self.failures:
            failure = self.failures.pop(0)
            if isinstance(failure, BaseException):
                raise failure
            return failure
        handler = getattr(self, f"_{operation}")
        return GraphQLResponse(data=handler(variables), errors=None, headers=dict(self.headers))

    def _getProducts(self, variables: dict) -> dict:
        candidates = self.products
        match = SINCE_RE.search(variables.get("query") or "")
        if match:
            candidates = [p for p in candidates if p["updatedAt"] >= match.group(1)]
        start = 0
        if variables.get("cursor"):
            start = int(variables["cursor"][1:]) + 1
        page = candidates[start : start + variables["first"]]
        edges = [{"node": _product_node(p), "cursor": f"c{start + i}"} for i, p in enumerate(page)]
        return {
            "products": {
                "edges": edges,
                "pageInfo": {"hasNextPage": start + len(page) < len(candidates)},
            }
        }

    def _getProduct(self, variables: dict) -> dict:
        for product in self.products:
            if product["id"] == variables["id"]:
                return {"product": _product_node(product)}
        return {"product": None}

    def _getVariantsBatch(self, variables: dict) -> dict:
        edges = []
        for product in self._by_filter(variables["query"]):
            nodes = [{k: v for k, v in variant.items() if k != "unitCost"} for variant in product["variants"]]
            edges.append({"node": {"id": product["id"], "variants": {"edges": [{"node": n} for n in nodes]}}})
        return {"products": {"edges": edges}}

    def _getCostData(self, variables: dict) -> dict:
        edges = []
        for product in self._by_filter(variables["query"]):
            nodes = [
                {"id": variant["id"], "inventoryItem": {"unitCost": {"amount": variant["unitCost"]}}}
                for variant in product["variants"]
            ]
            edges.append({"node": {"id": product["id"], "variants": {"edges": [{"node": n} for n in nodes]}}})
        return {"products": {"edges": edges}}

    def _by_filter(self, query: str) -> list[dict]:
        wanted = set(ID_RE.findall(query))
        return [p for p in self.products if p["id"].rsplit("/", 1)[-1] in wanted]


def _product_node(product: dict) -> dict:
    return {k: v for k, v in product.items() if k != "variants"}


class RecordingSleep:
    def __init__(self) -> None:
        self.calls: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)


@pytest.fixture()
def engine(tmp_path):
    engine = create_engine(f"sqlite:///{tmp_path / 'catalog.db'}", future=True)
    metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def api():
    return FakeCatalogAPI()


@pytest.fixture()
def sleep():
    return RecordingSleep()


@pytest.fixture()
def config():
    return SyncConfig(batch_size=4, chunk_size=3, max_retries=3, base_delay_ms=100, max_delay_ms=1000)


@pytest.fixture()
def synchronizer(engine, api, config, sleep):
    return CatalogSynchronizer(engine, api, config, sleep=sleep, memory_reader=lambda: 0)
