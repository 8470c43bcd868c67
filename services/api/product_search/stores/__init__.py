"""Data stores for persistence and caching.

Stores handle:
- PostgreSQL: DB session for search analytics
- Redis: shared catalog snapshot, locks, TTL policies
- Memory: per-process TTL/LRU caches for search results and recommendations

No search/scoring logic in stores - that belongs in services.
"""
