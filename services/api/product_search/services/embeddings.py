"""Text embeddings for the vector store.

Providers (Settings.embedding_provider):
- "hash": deterministic hashed bag-of-words, no network, default
- "openai": OpenAI embeddings REST API via httpx

Embeddings are cached per text hash in the process-wide embedding cache.
"""

from __future__ import annotations

import hashlib
import logging
import math
import re
from typing import Any

import httpx

from product_search.services.search_cache import embedding_cache
from product_search.services.woocommerce_client import Product, strip_html
from product_search.settings import get_settings

logger = logging.getLogger("uvicorn.error")

_WS_RE = re.compile(r"\s+")


class EmbeddingError(RuntimeError):
    pass


def _int32(value: int) -> int:
    value &= 0xFFFFFFFF
    return value - 0x100000000 if value & 0x80000000 else value


def _word_hash(word: str) -> int:
    """31-multiplier string hash with signed 32-bit wrap-around."""
    h = 0
    for ch in word:
        h = _int32((h << 5) - h + ord(ch))
    return h


def create_simple_embedding(text: str, dimensions: int = 768) -> list[float]:
    """Hash each word into a bucket (plus half-weight neighbours), then L2-normalize."""
    words = [w for w in _WS_RE.split(text.lower().strip()) if w]
    embedding = [0.0] * dimensions
    if not words:
        return embedding

    weight = 1.0 / math.sqrt(len(words))
    for word in words:
        idx = abs(_word_hash(word)) % dimensions
        embedding[idx] += weight
        if idx > 0:
            embedding[idx - 1] += 0.5 * weight
        if idx < dimensions - 1:
            embedding[idx + 1] += 0.5 * weight

    norm = math.sqrt(sum(v * v for v in embedding))
    if norm > 0:
        return [v / norm for v in embedding]
    return embedding


def cosine_similarity(a: list[float], b: list[float]) -> float:
    if len(a) != len(b):
        raise ValueError(f"Vector size mismatch: {len(a)} != {len(b)}")
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)


def prepare_product_text(product: Product) -> str:
    """Text used to embed a product (name, summary, taxonomy, attributes)."""
    parts = [
        product.name,
        strip_html(product.short_description),
        " ".join(product.categories),
        " ".join(product.tags),
        " ".join(product.attribute_options),
    ]
    return " ".join(p for p in parts if p)


def _cache_key(provider: str, dimensions: int, text: str) -> str:
    digest = hashlib.sha256(text.encode("utf-8")).hexdigest()[:40]
    return f"{provider}:{dimensions}:{digest}"


async def embed_text(text: str) -> list[float]:
    """Embed text with the configured provider (cached)."""
    settings = get_settings()
    provider = settings.embedding_provider.lower()
    dimensions = settings.embedding_dimensions

    key = _cache_key(provider, dimensions, text)
    cached = embedding_cache.get(key)
    if cached is not None:
        return cached

    if provider == "hash":
        vector = create_simple_embedding(text, dimensions)
    elif provider == "openai":
        vector = await _embed_openai(text, dimensions)
    else:
        raise EmbeddingError(f"Unknown embedding provider: {settings.embedding_provider}")

    embedding_cache.set(key, vector)
    return vector


async def _embed_openai(text: str, dimensions: int) -> list[float]:
    settings = get_settings()
    if not settings.openai_api_key:
        raise EmbeddingError("OPENAI_API_KEY is not set")

    url = f"{settings.openai_base_url.rstrip('/')}/embeddings"
    headers = {"Authorization": f"Bearer {settings.openai_api_key}"}
    body: dict[str, Any] = {
        "model": settings.openai_model_embed,
        "input": text,
        "dimensions": dimensions,
    }

    try:
        async with httpx.AsyncClient(timeout=30.0) as client:
            resp = await client.post(url, headers=headers, json=body)
            if resp.status_code != 200:
                logger.error(f"OpenAI embeddings error: {resp.status_code} - {resp.text[:200]}")
            resp.raise_for_status()
            data = resp.json()
    except httpx.HTTPError as e:
        raise EmbeddingError(f"OpenAI embeddings request failed: {e}") from e

    try:
        vector = [float(v) for v in data["data"][0]["embedding"]]
    except (KeyError, IndexError, TypeError, ValueError) as e:
        raise EmbeddingError("Unexpected response from OpenAI embeddings") from e

    if len(vector) != dimensions:
        raise EmbeddingError(f"Expected {dimensions} dimensions, got {len(vector)}")
    return vector
