"""Keyword search over an in-memory product index.

Scoring:
1. Tokenize the query (lowercase, punctuation stripped, stop words dropped),
   optionally stemmed.
2. Per field (title, description, categories, tags), each query token takes its
   best match among the field tokens:
   - exact: 1.0
   - containment (either way): 0.8 * shorter/longer
   - fuzzy (Levenshtein similarity >= 0.75): 0.6 * similarity
3. Field scores are boosted (title 3.0, categories 2.0, tags 1.5,
   description 1.0), summed, and normalized by query token count.
4. Results below min_score are dropped; sorted by score DESC.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import re
from typing import Iterable

from product_search.services.woocommerce_client import Product, strip_html

STOP_WORDS = frozenset({"the", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with", "by"})

# Ordered: first applicable rule wins
_STEM_RULES: tuple[tuple[re.Pattern[str], str], ...] = tuple(
    (re.compile(pattern), repl)
    for pattern, repl in (
        (r"ies$", "y"),
        (r"ied$", "y"),
        (r"ying$", "y"),
        (r"ing$", ""),
        (r"ed$", ""),
        (r"es$", ""),
        (r"s$", ""),
        (r"ly$", ""),
        (r"er$", ""),
        (r"est$", ""),
    )
)

_NON_WORD_RE = re.compile(r"[^\w\s]")

EXACT_WEIGHT = 1.0
PARTIAL_WEIGHT = 0.8
FUZZY_WEIGHT = 0.6
FUZZY_THRESHOLD = 0.75

DEFAULT_BOOST: dict[str, float] = {
    "title": 3.0,
    "description": 1.0,
    "categories": 2.0,
    "tags": 1.5,
}


@dataclass
class SearchIndexEntry:
    """A product flattened for keyword matching."""

    product_id: int
    title: str
    description: str
    categories: list[str]
    tags: list[str]
    searchable_text: str
    tokens: list[str]
    slug: str = ""
    price: float = 0.0
    in_stock: bool = False
    featured: bool = False
    # Pre-tokenized fields, filled by build_search_index
    field_tokens: dict[str, list[str]] = field(default_factory=dict, repr=False)


@dataclass
class KeywordSearchOptions:
    fuzzy_match: bool = True
    stemming: bool = True
    min_score: float = 0.1
    boost: dict[str, float] = field(default_factory=lambda: dict(DEFAULT_BOOST))

    def boost_for(self, field_name: str) -> float:
        return self.boost.get(field_name, DEFAULT_BOOST[field_name])


@dataclass
class KeywordSearchResult:
    product_id: int
    slug: str
    title: str
    price: float
    categories: list[str]
    in_stock: bool
    featured: bool
    score: float
    matched_fields: list[str]
    matched_terms: list[str]


def tokenize(text: str) -> list[str]:
    """Lowercase, strip punctuation, drop 1-char tokens and stop words."""
    cleaned = _NON_WORD_RE.sub(" ", text.lower())
    return [t for t in cleaned.split() if len(t) > 1 and t not in STOP_WORDS]


def stem(word: str) -> str:
    """Strip one common English suffix.

    Words of 3 chars or fewer are left alone, and a rule is skipped if it would
    leave fewer than 2 chars.
    """
    stemmed = word.lower()
    if len(stemmed) <= 3:
        return stemmed

    for pattern, replacement in _STEM_RULES:
        if pattern.search(stemmed):
            candidate = pattern.sub(replacement, stemmed, count=1)
            if len(candidate) >= 2:
                return candidate

    return stemmed


def levenshtein_distance(a: str, b: str) -> int:
    if not a:
        return len(b)
    if not b:
        return len(a)

    previous = list(range(len(a) + 1))
    for j, cb in enumerate(b, start=1):
        current = [j] + [0] * len(a)
        for i, ca in enumerate(a, start=1):
            cost = 0 if ca == cb else 1
            current[i] = min(
                previous[i] + 1,  # deletion
                current[i - 1] + 1,  # insertion
                previous[i - 1] + cost,  # substitution
            )
        previous = current
    return previous[len(a)]


def similarity(a: str, b: str) -> float:
    """1 - normalized edit distance (1.0 for identical strings)."""
    max_len = max(len(a), len(b))
    if max_len == 0:
        return 1.0
    return 1 - levenshtein_distance(a, b) / max_len


def is_fuzzy_match(a: str, b: str, threshold: float = 0.7) -> bool:
    return similarity(a, b) >= threshold


def _dedupe(items: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(items))


def build_search_index(products: Iterable[Product]) -> list[SearchIndexEntry]:
    """Flatten products into index entries (one per product, same order)."""
    index: list[SearchIndexEntry] = []
    for product in products:
        title = product.name or ""
        description = strip_html(product.description or product.short_description)
        categories = list(product.categories)
        tags = list(product.tags)
        searchable_text = " ".join([title, description, *categories, *tags])

        index.append(
            SearchIndexEntry(
                product_id=product.id,
                title=title,
                description=description,
                categories=categories,
                tags=tags,
                searchable_text=searchable_text,
                tokens=tokenize(searchable_text),
                slug=product.slug,
                price=product.price,
                in_stock=product.in_stock,
                featured=product.featured,
                field_tokens={
                    "title": tokenize(title),
                    "description": tokenize(description),
                    "categories": tokenize(" ".join(categories)),
                    "tags": tokenize(" ".join(tags)),
                },
            )
        )
    return index


def _field_tokens(entry: SearchIndexEntry, field_name: str) -> list[str]:
    tokens = entry.field_tokens.get(field_name)
    if tokens is not None:
        return tokens
    # Entries built by hand (tests, callers) may not carry pre-tokenized fields
    raw = {
        "title": entry.title,
        "description": entry.description,
        "categories": " ".join(entry.categories),
        "tags": " ".join(entry.tags),
    }[field_name]
    return tokenize(raw)


def calculate_field_score(
    query_tokens: list[str],
    field_tokens: list[str],
    fuzzy_match: bool,
    stemming: bool,
) -> tuple[float, list[str]]:
    """Sum of each query token's best match against the field.

    Returns:
        (score, matched field tokens in query order)
    """
    processed = [stem(t) for t in field_tokens] if stemming else field_tokens
    score = 0.0
    matches: list[str] = []

    for query_token in query_tokens:
        best = 0.0
        matched = ""

        for field_token in processed:
            if query_token == field_token:
                candidate = EXACT_WEIGHT
            elif query_token in field_token or field_token in query_token:
                shorter, longer = sorted((len(query_token), len(field_token)))
                candidate = PARTIAL_WEIGHT * shorter / longer
            elif fuzzy_match:
                sim = similarity(query_token, field_token)
                if sim < FUZZY_THRESHOLD:
                    continue
                candidate = FUZZY_WEIGHT * sim
            else:
                continue

            if candidate > best:
                best = candidate
                matched = field_token
                if best == EXACT_WEIGHT:
                    break

        if best > 0:
            score += best
            matches.append(matched)

    return score, matches


def keyword_search(
    query: str,
    index: list[SearchIndexEntry],
    options: KeywordSearchOptions | None = None,
) -> list[KeywordSearchResult]:
    """Score every index entry against the query."""
    opts = options or KeywordSearchOptions()
    query_tokens = tokenize(query)
    processed_query = [stem(t) for t in query_tokens] if opts.stemming else query_tokens
    normalizer = max(len(query_tokens), 1)

    results: list[KeywordSearchResult] = []
    for entry in index:
        total = 0.0
        matched_fields: list[str] = []
        matched_terms: list[str] = []

        for field_name in ("title", "description", "categories", "tags"):
            score, matches = calculate_field_score(
                processed_query,
                _field_tokens(entry, field_name),
                opts.fuzzy_match,
                opts.stemming,
            )
            if score > 0:
                total += score * opts.boost_for(field_name)
                matched_fields.append(field_name)
                matched_terms.extend(matches)

        normalized = total / normalizer
        if total > 0 and normalized >= opts.min_score:
            results.append(
                KeywordSearchResult(
                    product_id=entry.product_id,
                    slug=entry.slug,
                    title=entry.title,
                    price=entry.price,
                    categories=list(entry.categories),
                    in_stock=entry.in_stock,
                    featured=entry.featured,
                    score=normalized,
                    matched_fields=_dedupe(matched_fields),
                    matched_terms=_dedupe(matched_terms),
                )
            )

    results.sort(key=lambda r: r.score, reverse=True)
    return results


def get_search_suggestions(
    partial_query: str,
    index: list[SearchIndexEntry],
    max_suggestions: int = 5,
) -> list[str]:
    """Title words and category names that extend the partial query."""
    lower = partial_query.lower()
    suggestions: dict[str, None] = {}

    for entry in index:
        for word in tokenize(entry.title):
            if word.startswith(lower) and len(word) > len(lower):
                suggestions[word] = None
                if len(suggestions) >= max_suggestions:
                    return list(suggestions)

        for category in entry.categories:
            category_lower = category.lower()
            if category_lower.startswith(lower) and len(category_lower) > len(lower):
                suggestions[category] = None
                if len(suggestions) >= max_suggestions:
                    return list(suggestions)

    return list(suggestions)[:max_suggestions]
