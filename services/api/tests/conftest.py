"""Shared fixtures: a small catalog and clean in-process caches per test."""

import pytest

from product_search.services import catalog as catalog_module
from product_search.services.recommendation_cache import recommendation_cache
from product_search.services.search_cache import (
    autocomplete_cache,
    embedding_cache,
    search_results_cache,
)
from product_search.services.woocommerce_client import Product


def make_product(product_id: int, name: str, **kwargs) -> Product:
    return Product(id=product_id, name=name, slug=name.lower().replace(" ", "-"), **kwargs)


@pytest.fixture
def products() -> list[Product]:
    return [
        make_product(
            1,
            "Organic Wildflower Honey",
            description="<p>Raw honey from wildflowers</p>",
            short_description="Pure raw honey",
            price=12.5,
            categories=["Honey"],
            category_slugs=["honey"],
            tags=["organic"],
            tag_slugs=["organic"],
            featured=True,
            average_rating=4.8,
            total_sales=120,
        ),
        make_product(
            2,
            "Turmeric Powder",
            description="Ground turmeric root for curries",
            price=6.0,
            categories=["Spices"],
            category_slugs=["spices"],
            tags=["anti-inflammatory"],
            tag_slugs=["anti-inflammatory"],
            average_rating=4.2,
            total_sales=80,
        ),
        make_product(
            3,
            "Basmati Rice",
            description="Long grain aromatic rice",
            price=9.0,
            categories=["Rice"],
            category_slugs=["rice"],
            stock_status="outofstock",
            total_sales=40,
        ),
        make_product(
            4,
            "Manuka Honey",
            description="Honey from New Zealand manuka bushes",
            price=39.0,
            categories=["Honey"],
            category_slugs=["honey"],
            tags=["immune"],
            tag_slugs=["immune"],
            average_rating=3.9,
            total_sales=60,
        ),
        make_product(
            5,
            "Cinnamon Sticks",
            description="Ceylon cinnamon",
            price=4.5,
            categories=["Spices"],
            category_slugs=["spices"],
            total_sales=10,
        ),
    ]


@pytest.fixture(autouse=True)
def clean_caches():
    """Module-level caches and the catalog snapshot are process globals."""
    yield
    for cache in (search_results_cache, autocomplete_cache, embedding_cache):
        cache.clear()
    recommendation_cache.invalidate_all()
    recommendation_cache.hits = 0
    recommendation_cache.misses = 0
    catalog_module._snapshot = None
