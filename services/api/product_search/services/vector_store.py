"""Qdrant vector store access over its REST API.

Collection layout:
- One point per product, id = WooCommerce product id
- Cosine distance, vector size = Settings.embedding_dimensions
- Payload carries what search responses need without a WooCommerce round-trip
  (name, slug, price, categories, tags, in_stock, ...)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import logging
from typing import Any

import httpx

from product_search.services.embeddings import embed_text, prepare_product_text
from product_search.services.woocommerce_client import Product, strip_html
from product_search.settings import get_settings

logger = logging.getLogger("uvicorn.error")

UPSERT_BATCH_SIZE = 100


class QdrantError(RuntimeError):
    pass


@dataclass
class VectorHit:
    """A scored point returned by Qdrant."""

    id: int
    score: float
    payload: dict[str, Any]


@dataclass
class QdrantPoint:
    id: int
    vector: list[float]
    payload: dict[str, Any]


class QdrantClient:
    """Minimal Qdrant REST client for one collection."""

    def __init__(
        self,
        url: str | None = None,
        api_key: str | None = None,
        collection: str | None = None,
        *,
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        settings = get_settings()
        self.base_url = (url or settings.qdrant_url).rstrip("/")
        self.api_key = api_key if api_key is not None else settings.qdrant_api_key
        self.collection = collection or settings.qdrant_collection
        self.timeout = timeout
        self._transport = transport
        self._http_client: httpx.AsyncClient | None = None

    @property
    def headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["api-key"] = self.api_key
        return headers

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            self._http_client = httpx.AsyncClient(
                base_url=self.base_url,
                headers=self.headers,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._http_client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def _call(self, method: str, path: str, json: dict[str, Any] | None = None) -> httpx.Response:
        client = await self._get_client()
        try:
            return await client.request(method, path, json=json)
        except httpx.TransportError as e:
            raise QdrantError(f"Qdrant unreachable: {e}") from e

    async def ensure_collection(self, vector_size: int) -> bool:
        """Create the collection if missing.

        Returns:
            True if the collection was created, False if it already existed.
        """
        path = f"/collections/{self.collection}"
        check = await self._call("GET", path)
        if check.status_code == 200:
            logger.info(f"Qdrant collection {self.collection} already exists")
            return False
        if check.status_code != 404:
            raise QdrantError(f"Failed to check collection: {check.status_code} - {check.text[:200]}")

        resp = await self._call(
            "PUT",
            path,
            json={
                "vectors": {"size": vector_size, "distance": "Cosine"},
                "optimizers_config": {"default_segment_number": 2},
                "replication_factor": 1,
            },
        )
        if resp.status_code >= 400:
            raise QdrantError(f"Failed to create collection: {resp.status_code} - {resp.text[:200]}")
        logger.info(f"Created Qdrant collection: {self.collection} (size={vector_size})")
        return True

    async def upsert_points(self, points: list[QdrantPoint]) -> None:
        resp = await self._call(
            "PUT",
            f"/collections/{self.collection}/points",
            json={"points": [{"id": p.id, "vector": p.vector, "payload": p.payload} for p in points]},
        )
        if resp.status_code >= 400:
            logger.error(f"Qdrant upsert error: {resp.status_code} - {resp.text[:500]}")
            raise QdrantError(f"Failed to upsert points: {resp.status_code}")
        logger.info(f"Upserted {len(points)} points to Qdrant")

    async def search(
        self,
        vector: list[float],
        limit: int = 10,
        query_filter: dict[str, Any] | None = None,
    ) -> list[VectorHit]:
        body: dict[str, Any] = {
            "vector": vector,
            "limit": limit,
            "with_payload": True,
            "with_vector": False,
        }
        if query_filter:
            body["filter"] = query_filter

        resp = await self._call("POST", f"/collections/{self.collection}/points/search", json=body)
        if resp.status_code >= 400:
            raise QdrantError(f"Search failed: {resp.status_code} - {resp.text[:200]}")

        hits: list[VectorHit] = []
        for item in resp.json().get("result") or []:
            try:
                hits.append(
                    VectorHit(
                        id=int(item["id"]),
                        score=float(item.get("score") or 0.0),
                        payload=item.get("payload") or {},
                    )
                )
            except (KeyError, TypeError, ValueError):
                logger.warning(f"Skipping malformed Qdrant hit: {item!r}")
        return hits

    async def delete_points(self, ids: list[int]) -> None:
        resp = await self._call(
            "POST",
            f"/collections/{self.collection}/points/delete",
            json={"points": ids},
        )
        if resp.status_code >= 400:
            raise QdrantError(f"Failed to delete points: {resp.status_code}")
        logger.info(f"Deleted {len(ids)} points from Qdrant")

    async def health_check(self) -> bool:
        try:
            resp = await self._call("GET", "/collections")
        except QdrantError as e:
            logger.warning(f"Qdrant health check failed: {e}")
            return False
        return resp.status_code == 200


_client: QdrantClient | None = None


def get_qdrant_client() -> QdrantClient:
    """Process-wide client (lazily created from settings)."""
    global _client
    if _client is None:
        _client = QdrantClient()
    return _client


async def close_qdrant_client() -> None:
    global _client
    if _client is not None:
        await _client.close()
        _client = None


def build_filter(
    category: str | None = None,
    in_stock: bool | None = None,
    min_price: float | None = None,
    max_price: float | None = None,
) -> dict[str, Any] | None:
    """Qdrant `must` filter from optional search constraints.

    `category` may be a slug or a display name: it matches the payload slugs
    (normalized to slug form) or the exact category name.
    """
    must: list[dict[str, Any]] = []
    if category:
        slug = "-".join(category.strip().lower().split())
        must.append(
            {
                "should": [
                    {"key": "categories", "match": {"any": [slug]}},
                    {"key": "category_names", "match": {"any": [category.strip()]}},
                ]
            }
        )
    if in_stock is not None:
        must.append({"key": "in_stock", "match": {"value": in_stock}})

    price_range: dict[str, float] = {}
    if min_price is not None:
        price_range["gte"] = min_price
    if max_price is not None:
        price_range["lte"] = max_price
    if price_range:
        must.append({"key": "price", "range": price_range})

    return {"must": must} if must else None


def product_payload(product: Product) -> dict[str, Any]:
    return {
        "name": product.name,
        "slug": product.slug,
        "price": product.price,
        "sale_price": product.sale_price,
        "categories": product.category_slugs,
        "category_names": product.categories,
        "tags": product.tag_slugs,
        "in_stock": product.in_stock,
        "featured": product.featured,
        "image": product.image,
        "short_description": strip_html(product.short_description)[:200],
        "total_sales": product.total_sales,
        "average_rating": product.average_rating,
        "indexed_at": datetime.now(timezone.utc).isoformat(),
    }


async def index_products(products: list[Product], client: QdrantClient | None = None) -> int:
    """Embed and upsert products in batches.

    Returns:
        Number of points upserted.
    """
    qdrant = client or get_qdrant_client()
    await qdrant.ensure_collection(get_settings().embedding_dimensions)

    points: list[QdrantPoint] = []
    for product in products:
        vector = await embed_text(prepare_product_text(product))
        points.append(QdrantPoint(id=product.id, vector=vector, payload=product_payload(product)))

    for start in range(0, len(points), UPSERT_BATCH_SIZE):
        await qdrant.upsert_points(points[start : start + UPSERT_BATCH_SIZE])

    logger.info(f"Indexed {len(points)} products in Qdrant collection {qdrant.collection}")
    return len(points)


async def search_products(
    query: str,
    *,
    limit: int = 20,
    category: str | None = None,
    in_stock: bool | None = None,
    min_price: float | None = None,
    max_price: float | None = None,
    client: QdrantClient | None = None,
) -> list[VectorHit]:
    """Embed the query and run a filtered vector search."""
    qdrant = client or get_qdrant_client()
    vector = await embed_text(query)
    return await qdrant.search(
        vector,
        limit=limit,
        query_filter=build_filter(category, in_stock, min_price, max_price),
    )
