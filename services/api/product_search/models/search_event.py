"""Search event model.

One row per search request or result click. Used for:
- Popular queries (autocomplete trending)
- Zero-result queries (catalog gaps)
- Click-through rate
"""

from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from product_search.stores.postgres import Base


class SearchEventType(str, Enum):
    SEARCH = "search"
    CLICK = "click"


class SearchEvent(Base):
    """A tracked search or click."""

    __tablename__ = "search_events"

    id: Mapped[int] = mapped_column(primary_key=True)

    event_type: Mapped[str] = mapped_column(String(16), index=True)
    session_id: Mapped[str | None] = mapped_column(String(100), index=True)

    # Query
    query: Mapped[str] = mapped_column(Text)
    normalized_query: Mapped[str] = mapped_column(String(200), index=True)
    search_type: Mapped[str | None] = mapped_column(String(32))
    result_count: Mapped[int | None] = mapped_column(Integer)

    # Click
    product_id: Mapped[int | None] = mapped_column(Integer, index=True)
    position: Mapped[int | None] = mapped_column(Integer)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        index=True,
    )

    def __repr__(self) -> str:
        return f"<SearchEvent {self.event_type} {self.normalized_query!r}>"
