"""Search analytics backed by PostgreSQL.

Tracking is fire-and-forget from the request's point of view: if the database
is not initialized (tests / local minimal env) or a write fails, the search
still succeeds and the event is dropped with a warning.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
import logging
import re

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from product_search.models import SearchEvent, SearchEventType
from product_search.stores.postgres import get_session, is_db_initialized

logger = logging.getLogger("uvicorn.error")

_WS_RE = re.compile(r"\s+")
MAX_NORMALIZED_LEN = 200


@dataclass
class QueryCount:
    query: str
    count: int


@dataclass
class SearchSummary:
    days: int
    total_searches: int = 0
    total_clicks: int = 0
    click_through_rate: float = 0.0
    top_queries: list[QueryCount] = field(default_factory=list)
    zero_result_queries: list[QueryCount] = field(default_factory=list)


def normalize_query(query: str) -> str:
    return _WS_RE.sub(" ", query.strip().lower())[:MAX_NORMALIZED_LEN]


async def record_search(
    query: str,
    search_type: str,
    result_count: int,
    session_id: str | None = None,
) -> bool:
    """Persist a search event. Returns False if it could not be stored."""
    return await _record(
        SearchEvent(
            event_type=SearchEventType.SEARCH.value,
            session_id=session_id,
            query=query,
            normalized_query=normalize_query(query),
            search_type=search_type,
            result_count=result_count,
        )
    )


async def record_click(
    query: str,
    product_id: int,
    position: int,
    session_id: str | None = None,
) -> bool:
    """Persist a result click. Returns False if it could not be stored."""
    return await _record(
        SearchEvent(
            event_type=SearchEventType.CLICK.value,
            session_id=session_id,
            query=query,
            normalized_query=normalize_query(query),
            product_id=product_id,
            position=position,
        )
    )


async def _record(event: SearchEvent) -> bool:
    if not is_db_initialized():
        logger.debug("Search analytics skipped: database not initialized")
        return False
    try:
        async with get_session() as session:
            session.add(event)
    except (RuntimeError, SQLAlchemyError, OSError) as e:
        logger.warning(f"Failed to record {event.event_type} event: {e}")
        return False
    return True


async def get_popular_queries(limit: int = 8, days: int = 30) -> list[QueryCount]:
    """Most frequent queries that returned results."""
    since = datetime.now(timezone.utc) - timedelta(days=days)
    async with get_session() as session:
        rows = await session.execute(
            select(SearchEvent.normalized_query, func.count(SearchEvent.id).label("n"))
            .where(SearchEvent.event_type == SearchEventType.SEARCH.value)
            .where(SearchEvent.created_at >= since)
            .where(SearchEvent.result_count > 0)
            .group_by(SearchEvent.normalized_query)
            .order_by(func.count(SearchEvent.id).desc())
            .limit(limit)
        )
        return [QueryCount(query=q, count=n) for q, n in rows.all()]


async def get_search_summary(days: int = 7, limit: int = 10) -> SearchSummary:
    """Aggregate search activity over the last `days` days."""
    since = datetime.now(timezone.utc) - timedelta(days=days)
    summary = SearchSummary(days=days)

    async with get_session() as session:
        counts = await session.execute(
            select(SearchEvent.event_type, func.count(SearchEvent.id))
            .where(SearchEvent.created_at >= since)
            .group_by(SearchEvent.event_type)
        )
        by_type = dict(counts.all())
        summary.total_searches = int(by_type.get(SearchEventType.SEARCH.value, 0))
        summary.total_clicks = int(by_type.get(SearchEventType.CLICK.value, 0))

        top = await session.execute(
            select(SearchEvent.normalized_query, func.count(SearchEvent.id))
            .where(SearchEvent.event_type == SearchEventType.SEARCH.value)
            .where(SearchEvent.created_at >= since)
            .group_by(SearchEvent.normalized_query)
            .order_by(func.count(SearchEvent.id).desc())
            .limit(limit)
        )
        summary.top_queries = [QueryCount(query=q, count=n) for q, n in top.all()]

        zero = await session.execute(
            select(SearchEvent.normalized_query, func.count(SearchEvent.id))
            .where(SearchEvent.event_type == SearchEventType.SEARCH.value)
            .where(SearchEvent.created_at >= since)
            .where(SearchEvent.result_count == 0)
            .group_by(SearchEvent.normalized_query)
            .order_by(func.count(SearchEvent.id).desc())
            .limit(limit)
        )
        summary.zero_result_queries = [QueryCount(query=q, count=n) for q, n in zero.all()]

    if summary.total_searches:
        summary.click_through_rate = round(summary.total_clicks / summary.total_searches, 4)
    return summary
