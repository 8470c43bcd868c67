"""SQLAlchemy ORM models.

Models represent database tables:
- search_events: tracked searches and result clicks
"""

from product_search.models.search_event import SearchEvent, SearchEventType

__all__ = ["SearchEvent", "SearchEventType"]
