"""Query cleanup, spelling fixes, synonym variations and intent detection."""

from __future__ import annotations

from dataclasses import dataclass, field
import re
from typing import Literal

Intent = Literal["health", "category", "product", "general"]

MAX_SUGGESTIONS = 5

STOP_WORDS = frozenset(
    {
        "the", "and", "or", "but", "in", "on", "at", "to", "for", "of", "with",
        "by", "is", "are", "was", "were", "be", "been", "being", "have", "has",
        "had", "do", "does", "did", "will", "would", "should", "could", "can",
        "may", "might", "must", "shall", "a", "an",
    }
)

SYNONYMS: dict[str, list[str]] = {
    "healthy": ["nutritious", "wholesome", "beneficial", "good"],
    "organic": ["natural", "pure", "chemical-free", "pesticide-free"],
    "spicy": ["hot", "fiery", "pungent", "zesty"],
    "sweet": ["sugary", "honeyed", "syrupy", "saccharine"],
    "fresh": ["new", "crisp", "recently-made", "just-picked"],
}

MISSPELLINGS: dict[str, str] = {
    "tumeric": "turmeric",
    "cinamon": "cinnamon",
    "orgaic": "organic",
    "honny": "honey",
    "inflamation": "inflammation",
    "imune": "immune",
    "digestiv": "digestive",
    "antioxident": "antioxidant",
}

HEALTH_KEYWORDS = ("health", "benefits", "good for", "helps with", "cure", "treat", "remedy")
CATEGORY_KEYWORDS = ("spices", "honey", "rice", "tea", "herbs", "oils")
PRODUCT_KEYWORDS = ("buy", "price", "organic", "natural", "pure", "fresh")

_WS_RE = re.compile(r"\s+")
# "digestiv" must not fire inside an already-correct "digestive"
_MISSPELLING_RES = [
    (re.compile(rf"{re.escape(wrong)}(?![a-z])", re.IGNORECASE), right) for wrong, right in MISSPELLINGS.items()
]


@dataclass
class OptimizedQuery:
    optimized: str
    suggestions: list[str] = field(default_factory=list)
    corrections: list[str] = field(default_factory=list)


@dataclass
class QueryIntent:
    type: Intent
    confidence: float
    keywords: list[str]


def correct_common_misspellings(query: str) -> str:
    corrected = query
    for pattern, right in _MISSPELLING_RES:
        corrected = pattern.sub(right, corrected)
    return corrected


def remove_stop_words(query: str) -> str:
    return " ".join(w for w in query.split(" ") if len(w) > 2 and w not in STOP_WORDS)


def generate_synonym_variations(query: str) -> list[str]:
    variations: list[str] = []
    for word, synonyms in SYNONYMS.items():
        if word in query:
            variations.extend(query.replace(word, synonym) for synonym in synonyms)
    return variations


def optimize_query(query: str) -> OptimizedQuery:
    """Normalize the query and propose alternatives."""
    optimized = _WS_RE.sub(" ", query.strip().lower())
    suggestions: list[str] = []
    corrections: list[str] = []

    corrected = correct_common_misspellings(optimized)
    if corrected != optimized:
        corrections.append(corrected)
        optimized = corrected

    suggestions.extend(generate_synonym_variations(optimized))

    without_stop_words = remove_stop_words(optimized)
    if without_stop_words and without_stop_words != optimized:
        suggestions.append(without_stop_words)

    return OptimizedQuery(
        optimized=optimized,
        suggestions=list(dict.fromkeys(suggestions))[:MAX_SUGGESTIONS],
        corrections=corrections,
    )


def extract_intent(query: str) -> QueryIntent:
    lower = query.lower()
    scores: dict[Intent, int] = {
        "health": sum(1 for k in HEALTH_KEYWORDS if k in lower),
        "category": sum(1 for k in CATEGORY_KEYWORDS if k in lower),
        "product": sum(1 for k in PRODUCT_KEYWORDS if k in lower),
        "general": 1,
    }
    max_score = max(scores.values())
    # dict order breaks ties: health > category > product > general
    intent = next(name for name, score in scores.items() if score == max_score)

    keywords = [w for w in query.split(" ") if len(w) > 2 and w.lower() not in STOP_WORDS]
    return QueryIntent(
        type=intent,
        confidence=max_score / (len(query.split(" ")) + 1),
        keywords=keywords,
    )
