import pytest

from product_search.services.catalog import CatalogSnapshot
from product_search.services.embeddings import EmbeddingError
from product_search.services.hybrid_search import (
    HybridSearchOptions,
    blend_vector_results,
    calculate_score,
    expand_query,
    hybrid_vector_search,
    perform_hybrid_search,
    product_from_payload,
)
from product_search.services.vector_store import QdrantError, VectorHit
from product_search.services.woocommerce_client import Product


def _vector_search(hits: list[VectorHit]):
    calls: list[dict] = []

    async def fake(query: str, **kwargs) -> list[VectorHit]:
        calls.append({"query": query, **kwargs})
        return hits

    fake.calls = calls
    return fake


async def _failing_vector_search(query: str, **kwargs) -> list[VectorHit]:
    raise QdrantError("Qdrant unreachable: connection refused")


def test_expand_query_caps_at_three():
    assert expand_query("organic honey") == ["organic honey", "natural honey", "pure honey"]


def test_expand_query_without_synonyms():
    assert expand_query("basmati rice") == ["basmati rice"]


def test_expand_query_preserves_surrounding_text():
    assert expand_query("Cherry Carrot mix")[1] == "Cherry carrots mix"


def test_calculate_score_components():
    product = Product(
        id=1,
        name="Organic Honey",
        description="Raw organic honey",
        average_rating=4.5,
    )
    # 40 (name) + 20 (description) + 10 (rating)
    assert calculate_score(product, "organic honey") == 70
    # + 0.5 * 30 semantic
    assert calculate_score(product, "organic honey", 0.5) == 85


def test_calculate_score_partial_name_and_short_description():
    product = Product(id=1, name="Wildflower Honey", short_description="jar of honey and more")
    # 1 of 2 words in name -> 12.5; short description does not contain full query
    assert calculate_score(product, "honey jar") == 12.5
    assert calculate_score(product, "honey") == 40 + 15


def test_calculate_score_is_capped():
    product = Product(id=1, name="honey", description="honey", average_rating=5)
    assert calculate_score(product, "honey", 1.0) == 100


@pytest.mark.asyncio
async def test_hybrid_boosts_results_found_by_both(products):
    catalog = CatalogSnapshot.from_products(products)
    vector_search = _vector_search([VectorHit(id=1, score=0.9, payload={})])

    results = await perform_hybrid_search("honey", catalog, vector_search=vector_search)

    top = results[0]
    assert top.product.id == 1
    assert top.source == "hybrid"
    assert top.score == 100
    assert top.explanation == "Found in both semantic and keyword search"
    assert top.semantic_score == 0.9

    manuka = next(r for r in results if r.product.id == 4)
    assert manuka.source == "keyword"
    assert vector_search.calls[0]["limit"] == 20


@pytest.mark.asyncio
async def test_hybrid_falls_back_to_keyword_when_vector_store_fails(products):
    catalog = CatalogSnapshot.from_products(products)
    results = await perform_hybrid_search("honey", catalog, vector_search=_failing_vector_search)
    assert {r.product.id for r in results} == {1, 4}
    assert all(r.source == "keyword" for r in results)


@pytest.mark.asyncio
async def test_hybrid_embedding_failure_also_degrades(products):
    async def failing(query: str, **kwargs):
        raise EmbeddingError("OPENAI_API_KEY is not set")

    catalog = CatalogSnapshot.from_products(products)
    results = await perform_hybrid_search("rice", catalog, vector_search=failing)
    assert [r.product.id for r in results] == [3]


@pytest.mark.asyncio
async def test_hybrid_filters_apply_to_both_candidate_sets(products):
    catalog = CatalogSnapshot.from_products(products)
    vector_search = _vector_search([VectorHit(id=3, score=0.8, payload={}), VectorHit(id=2, score=0.7, payload={})])

    options = HybridSearchOptions(in_stock_only=True, category="spices")
    results = await perform_hybrid_search("rice", catalog, options, vector_search=vector_search)

    assert [r.product.id for r in results] == [2]
    assert vector_search.calls[0]["in_stock"] is True
    assert "category" not in vector_search.calls[0]
    assert vector_search.calls[0]["limit"] == 60


@pytest.mark.asyncio
async def test_hybrid_respects_limit(products):
    catalog = CatalogSnapshot.from_products(products)
    results = await perform_hybrid_search(
        "honey",
        catalog,
        HybridSearchOptions(limit=1),
        vector_search=_vector_search([]),
    )
    assert len(results) == 1


@pytest.mark.asyncio
async def test_hybrid_uses_payload_for_products_missing_from_catalog(products):
    catalog = CatalogSnapshot.from_products(products)
    hit = VectorHit(id=99, score=0.6, payload={"name": "Acacia Honey", "price": 8.0, "in_stock": True})
    results = await perform_hybrid_search("acacia", catalog, vector_search=_vector_search([hit]))
    assert results[0].product.id == 99
    assert results[0].product.name == "Acacia Honey"
    assert results[0].source == "semantic"


def test_product_from_payload():
    product = product_from_payload(
        7,
        {"name": "Green Tea", "categories": ["tea"], "category_names": ["Tea"], "in_stock": False},
    )
    assert product.id == 7
    assert product.categories == ["Tea"]
    assert product.category_slugs == ["tea"]
    assert product.in_stock is False


def test_blend_vector_results():
    hits = [
        VectorHit(id=1, score=0.5, payload={"name": "Organic Honey", "short_description": "raw honey"}),
        VectorHit(id=2, score=0.9, payload={"name": "Basmati Rice", "short_description": ""}),
    ]
    blended = blend_vector_results("honey", hits, semantic_weight=0.5, limit=10)

    by_id = {b.id: b for b in blended}
    # honey: +2 name, +1 description -> 3 / (1 * 3)
    assert by_id[1].keyword_score == 1.0
    assert by_id[1].match_type == "hybrid"
    assert by_id[1].score == 0.75
    assert by_id[2].keyword_score == 0.0
    assert by_id[2].match_type == "semantic"
    assert [b.id for b in blended] == [1, 2]


def test_blend_vector_results_keyword_only_match_type():
    hits = [VectorHit(id=1, score=0.0, payload={"name": "Honey"})]
    assert blend_vector_results("honey", hits)[0].match_type == "keyword"


@pytest.mark.asyncio
async def test_hybrid_vector_search_over_fetches():
    vector_search = _vector_search([])
    await hybrid_vector_search("honey", limit=5, vector_search=vector_search)
    assert vector_search.calls[0]["limit"] == 10


@pytest.mark.asyncio
async def test_hybrid_category_name_keeps_semantic_candidates(products):
    catalog = CatalogSnapshot.from_products(products)
    vector_search = _vector_search(
        [
            VectorHit(id=1, score=0.9, payload={}),
            VectorHit(id=2, score=0.8, payload={}),
            VectorHit(id=4, score=0.7, payload={}),
        ]
    )

    results = await perform_hybrid_search(
        "honey", catalog, HybridSearchOptions(category="Honey"), vector_search=vector_search
    )

    assert [(r.product.id, r.source) for r in results] == [(1, "hybrid"), (4, "hybrid")]
