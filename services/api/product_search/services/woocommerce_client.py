"""WooCommerce REST client (read-only product catalog access).

The catalog is owned by WooCommerce; this service only reads products to build
its keyword index and vector payloads.

Retry policy:
- 5xx and transport errors: retry up to `retries` times with exponential
  backoff (1s, 2s, 4s, ...)
- 4xx: fail immediately
- Missing base URL: reads return an empty list (local/dev without a shop)
"""

from __future__ import annotations

import asyncio
import logging
import re
from dataclasses import dataclass, field
from typing import Any

import httpx

from product_search.settings import get_settings

logger = logging.getLogger("uvicorn.error")

_TAG_RE = re.compile(r"<[^>]*>")


class CatalogError(RuntimeError):
    pass


def strip_html(value: str | None) -> str:
    if not value:
        return ""
    return _TAG_RE.sub("", value)


def _to_float(value: Any) -> float | None:
    if value is None or value == "":
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


@dataclass
class Product:
    """Normalized WooCommerce product."""

    id: int
    name: str
    slug: str = ""
    description: str = ""
    short_description: str = ""
    price: float = 0.0
    sale_price: float | None = None
    categories: list[str] = field(default_factory=list)
    category_slugs: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    tag_slugs: list[str] = field(default_factory=list)
    attribute_options: list[str] = field(default_factory=list)
    stock_status: str = "instock"
    featured: bool = False
    average_rating: float = 0.0
    total_sales: int = 0
    image: str = ""

    @property
    def in_stock(self) -> bool:
        return self.stock_status == "instock"

    @classmethod
    def from_woocommerce(cls, data: dict[str, Any]) -> "Product":
        """Build from a WooCommerce `/products` item (prices arrive as strings)."""
        categories = [c for c in data.get("categories") or [] if isinstance(c, dict)]
        tags = [t for t in data.get("tags") or [] if isinstance(t, dict)]
        images = [i for i in data.get("images") or [] if isinstance(i, dict)]

        options: list[str] = []
        for attr in data.get("attributes") or []:
            if isinstance(attr, dict):
                options.extend(str(o) for o in attr.get("options") or [])

        try:
            total_sales = int(data.get("total_sales") or 0)
        except (TypeError, ValueError):
            total_sales = 0

        return cls(
            id=int(data["id"]),
            name=str(data.get("name") or ""),
            slug=str(data.get("slug") or ""),
            description=str(data.get("description") or ""),
            short_description=str(data.get("short_description") or ""),
            price=_to_float(data.get("price")) or 0.0,
            sale_price=_to_float(data.get("sale_price")),
            categories=[str(c.get("name") or "") for c in categories],
            category_slugs=[str(c.get("slug") or "") for c in categories],
            tags=[str(t.get("name") or "") for t in tags],
            tag_slugs=[str(t.get("slug") or "") for t in tags],
            attribute_options=options,
            stock_status=str(data.get("stock_status") or "instock"),
            featured=bool(data.get("featured") or False),
            average_rating=_to_float(data.get("average_rating")) or 0.0,
            total_sales=total_sales,
            image=str(images[0].get("src") or "") if images else "",
        )

    def matches_category(self, category: str) -> bool:
        """Case-insensitive match on category name or slug."""
        needle = category.lower()
        return any(needle in c.lower() for c in self.categories) or any(
            needle == s.lower() for s in self.category_slugs
        )


class WooCommerceClient:
    """Client for the WooCommerce v3 REST API."""

    def __init__(
        self,
        base_url: str | None = None,
        consumer_key: str | None = None,
        consumer_secret: str | None = None,
        *,
        timeout: float | None = None,
        retries: int | None = None,
        backoff_base: float = 1.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        settings = get_settings()
        self.base_url = (base_url if base_url is not None else settings.woocommerce_url).rstrip("/")
        self.consumer_key = consumer_key if consumer_key is not None else settings.woocommerce_consumer_key
        self.consumer_secret = (
            consumer_secret if consumer_secret is not None else settings.woocommerce_consumer_secret
        )
        self.timeout = timeout if timeout is not None else settings.woocommerce_timeout
        self.retries = retries if retries is not None else settings.woocommerce_retries
        self.backoff_base = backoff_base
        self._transport = transport
        self._http_client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._http_client is None:
            if not self.consumer_key or not self.consumer_secret:
                raise CatalogError(
                    "Missing WooCommerce API credentials (WC_CONSUMER_KEY / WC_CONSUMER_SECRET)"
                )
            self._http_client = httpx.AsyncClient(
                timeout=self.timeout,
                auth=(self.consumer_key, self.consumer_secret),
                transport=self._transport,
            )
        return self._http_client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._http_client:
            await self._http_client.aclose()
            self._http_client = None

    async def _request(self, path: str, params: dict[str, Any] | None = None) -> Any:
        if not self.base_url:
            logger.warning("WooCommerce API URL not configured, returning empty result")
            return []

        client = await self._get_client()
        url = f"{self.base_url}{path}"
        clean_params = {k: _param(v) for k, v in (params or {}).items() if v is not None}

        for attempt in range(self.retries + 1):
            try:
                resp = await client.get(url, params=clean_params)
            except httpx.TransportError as e:
                if attempt >= self.retries:
                    logger.error(f"WooCommerce request {path} failed after {attempt + 1} attempts: {e}")
                    raise CatalogError(f"WooCommerce request failed: {e}") from e
                logger.warning(f"WooCommerce request {path} failed on attempt {attempt + 1}, retrying: {e}")
                await self._sleep(attempt)
                continue

            if resp.status_code >= 500 and attempt < self.retries:
                logger.warning(
                    f"WooCommerce server error {resp.status_code} on attempt {attempt + 1}, retrying..."
                )
                await self._sleep(attempt)
                continue

            if resp.status_code >= 400:
                logger.error(f"WooCommerce API error: {resp.status_code} - {resp.text[:200]}")
                raise CatalogError(f"WooCommerce API error: {resp.status_code}")

            return resp.json()

        raise CatalogError("Max retries exceeded")

    async def _sleep(self, attempt: int) -> None:
        await asyncio.sleep(self.backoff_base * (2**attempt))

    async def get_raw_products(self, **params: Any) -> list[dict[str, Any]]:
        """GET /products with WooCommerce query params (per_page, page, status, ...).

        Items are returned as raw JSON so they can be cached in Redis as-is;
        use Product.from_woocommerce to normalize.
        """
        data = await self._request("/products", params)
        if not isinstance(data, list):
            raise CatalogError("Unexpected response from WooCommerce /products")
        return [item for item in data if isinstance(item, dict) and "id" in item]

    async def get_all_raw_products(self, per_page: int = 100, max_pages: int = 10) -> list[dict[str, Any]]:
        """Page through the published catalog until a short page."""
        items: list[dict[str, Any]] = []
        for page in range(1, max_pages + 1):
            batch = await self.get_raw_products(per_page=per_page, page=page, status="publish")
            items.extend(batch)
            if len(batch) < per_page:
                break
        else:
            logger.warning(f"WooCommerce catalog truncated at {max_pages} pages ({len(items)} products)")
        return items


def _param(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
