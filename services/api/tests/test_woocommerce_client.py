import httpx
import pytest

from product_search.services.woocommerce_client import CatalogError, Product, WooCommerceClient, strip_html


def _client(handler, **kwargs) -> WooCommerceClient:
    return WooCommerceClient(
        base_url="https://shop.test/wp-json/wc/v3/",
        consumer_key="ck_test",
        consumer_secret="cs_test",
        retries=kwargs.pop("retries", 2),
        backoff_base=0,
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


def _raw(product_id: int, **extra) -> dict:
    return {"id": product_id, "name": f"Product {product_id}", **extra}


def test_strip_html():
    assert strip_html("<p>Raw <em>honey</em></p>") == "Raw honey"
    assert strip_html(None) == ""


def test_product_from_woocommerce():
    product = Product.from_woocommerce(
        {
            "id": "42",
            "name": "Manuka Honey",
            "slug": "manuka-honey",
            "price": "39.00",
            "sale_price": "",
            "categories": [{"id": 1, "name": "Honey", "slug": "honey"}],
            "tags": [{"id": 2, "name": "Immune", "slug": "immune"}],
            "attributes": [{"name": "Size", "options": ["250g", "500g"]}],
            "images": [{"src": "https://shop.test/manuka.jpg"}],
            "stock_status": "outofstock",
            "average_rating": "4.50",
            "total_sales": "17",
        }
    )
    assert product.id == 42
    assert product.price == 39.0
    assert product.sale_price is None
    assert product.categories == ["Honey"]
    assert product.category_slugs == ["honey"]
    assert product.tags == ["Immune"]
    assert product.attribute_options == ["250g", "500g"]
    assert product.image == "https://shop.test/manuka.jpg"
    assert product.in_stock is False
    assert product.average_rating == 4.5
    assert product.total_sales == 17


def test_product_matches_category():
    product = Product(id=1, name="x", categories=["Raw Honey"], category_slugs=["raw-honey"])
    assert product.matches_category("honey")
    assert product.matches_category("raw-honey")
    assert not product.matches_category("spices")


@pytest.mark.asyncio
async def test_get_raw_products_sends_auth_and_params():
    seen: dict = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("authorization")
        return httpx.Response(200, json=[_raw(1), {"name": "no id"}])

    client = _client(handler)
    items = await client.get_raw_products(per_page=10, featured=True)
    await client.close()

    assert items == [_raw(1)]
    assert seen["url"].startswith("https://shop.test/wp-json/wc/v3/products?")
    assert "per_page=10" in seen["url"]
    assert "featured=true" in seen["url"]
    assert seen["auth"].startswith("Basic ")


@pytest.mark.asyncio
async def test_get_all_raw_products_pages_until_short_page():
    pages: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        page = request.url.params["page"]
        pages.append(page)
        assert request.url.params["status"] == "publish"
        if page == "1":
            return httpx.Response(200, json=[_raw(1), _raw(2)])
        return httpx.Response(200, json=[_raw(3)])

    items = await _client(handler).get_all_raw_products(per_page=2, max_pages=5)
    assert [i["id"] for i in items] == [1, 2, 3]
    assert pages == ["1", "2"]


@pytest.mark.asyncio
async def test_get_all_raw_products_stops_at_max_pages():
    items = await _client(lambda request: httpx.Response(200, json=[_raw(1)])).get_all_raw_products(
        per_page=1, max_pages=3
    )
    assert len(items) == 3


@pytest.mark.asyncio
async def test_server_errors_are_retried():
    attempts: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(1)
        if len(attempts) < 3:
            return httpx.Response(503, text="unavailable")
        return httpx.Response(200, json=[_raw(1)])

    items = await _client(handler, retries=2).get_raw_products()
    assert len(items) == 1
    assert len(attempts) == 3


@pytest.mark.asyncio
async def test_server_errors_exhaust_retries():
    attempts: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(1)
        return httpx.Response(502, text="bad gateway")

    with pytest.raises(CatalogError):
        await _client(handler, retries=1).get_raw_products()
    assert len(attempts) == 2


@pytest.mark.asyncio
async def test_client_errors_are_not_retried():
    attempts: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(1)
        return httpx.Response(401, json={"code": "woocommerce_rest_cannot_view"})

    with pytest.raises(CatalogError):
        await _client(handler).get_raw_products()
    assert len(attempts) == 1


@pytest.mark.asyncio
async def test_transport_errors_are_retried_then_raise():
    attempts: list[int] = []

    def handler(request: httpx.Request) -> httpx.Response:
        attempts.append(1)
        raise httpx.ConnectTimeout("timed out", request=request)

    with pytest.raises(CatalogError):
        await _client(handler, retries=2).get_raw_products()
    assert len(attempts) == 3


@pytest.mark.asyncio
async def test_missing_credentials_raise():
    client = WooCommerceClient(base_url="https://shop.test/wp-json/wc/v3", consumer_key="", consumer_secret="")
    with pytest.raises(CatalogError):
        await client.get_raw_products()


@pytest.mark.asyncio
async def test_unconfigured_url_returns_empty():
    client = WooCommerceClient(base_url="", consumer_key="ck", consumer_secret="cs")
    assert await client.get_raw_products() == []
