"""Per-domain visit counters reported by the browser extension (domain only, never full URLs)."""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict
from sqlalchemy import select

from pomotrack.core.calendar import ensure_utc, utc_now
from pomotrack.core.database import browse_stats, get_db_session, upsert
from pomotrack.core.errors import ValidationError
from pomotrack.core.logging import log_event


class BrowseStat(BaseModel):
    model_config = ConfigDict(frozen=True)

    domain: str
    count: int
    first_seen_at: Optional[datetime] = None
    last_visited_at: Optional[datetime] = None


def normalize_domain(raw: Optional[str]) -> str:
    value = (raw or "").strip().lower()
    if "://" in value:
        value = urlparse(value).hostname or ""
    value = value.split("/", 1)[0].rstrip(".")
    if not value:
        raise ValidationError("domain is required")
    if len(value) > 255 or any(ch.isspace() for ch in value):
        raise ValidationError("domain is invalid")
    return value


def record_visit(user_id: str, domain: str, visited_at: Optional[datetime] = None) -> BrowseStat:
    name = normalize_domain(domain)
    when = ensure_utc(visited_at) or utc_now()

    with get_db_session() as session:
        stmt = upsert(session, browse_stats).values(
            user_id=user_id,
            domain=name,
            visit_count=1,
            first_seen_at=when,
            last_visited_at=when,
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[browse_stats.c.user_id, browse_stats.c.domain],
            set_={
                "visit_count": browse_stats.c.visit_count + 1,
                "last_visited_at": stmt.excluded.last_visited_at,
            },
        ).returning(browse_stats.c.visit_count, browse_stats.c.first_seen_at, browse_stats.c.last_visited_at)
        row = session.execute(stmt).one()

    log_event("info", "browse.ping", user_id=user_id, event_type="browse.ping", extra={"domain": name})
    return BrowseStat(
        domain=name,
        count=int(row.visit_count),
        first_seen_at=ensure_utc(row.first_seen_at),
        last_visited_at=ensure_utc(row.last_visited_at),
    )


def _to_stat(row) -> BrowseStat:
    return BrowseStat(
        domain=row.domain,
        count=int(row.visit_count),
        first_seen_at=ensure_utc(row.first_seen_at),
        last_visited_at=ensure_utc(row.last_visited_at),
    )


def top_sites(user_id: str, limit: int = 10) -> List[BrowseStat]:
    with get_db_session() as session:
        rows = session.execute(
            select(browse_stats)
            .where(browse_stats.c.user_id == user_id)
            .order_by(browse_stats.c.visit_count.desc(), browse_stats.c.last_visited_at.desc())
            .limit(limit)
        ).all()
    return [_to_stat(row) for row in rows]


def last_site(user_id: str) -> Optional[BrowseStat]:
    with get_db_session() as session:
        row = session.execute(
            select(browse_stats)
            .where(browse_stats.c.user_id == user_id)
            .order_by(browse_stats.c.last_visited_at.desc())
            .limit(1)
        ).first()
    return _to_stat(row) if row else None
