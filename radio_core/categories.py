"""
Smart categories ("what fills your cup") and collection statistics.

Plain functions over a list of items; the caller supplies `now` in epoch ms.
"""
from typing import List, Optional, Sequence
from .config import settings
from .models import SmartCategories, TrackedItem

MS_PER_DAY = 24 * 60 * 60 * 1000


def _window_start(now: int) -> int:
    return now - settings.RECENT_WINDOW_DAYS * MS_PER_DAY


def heavy_rotation(items: Sequence[TrackedItem], limit: Optional[int] = None) -> List[TrackedItem]:
    """Most frequently played."""
    limit = settings.SMART_CATEGORY_LIMIT if limit is None else limit
    played = [i for i in items if i.sessions]
    return sorted(played, key=lambda i: len(i.sessions), reverse=True)[:limit]


def deep_listens(items: Sequence[TrackedItem], limit: Optional[int] = None) -> List[TrackedItem]:
    """Longest total listening time."""
    limit = settings.SMART_CATEGORY_LIMIT if limit is None else limit
    listened = [i for i in items if i.total_listen_time > 0]
    return sorted(listened, key=lambda i: i.total_listen_time, reverse=True)[:limit]


def current_vibe(items: Sequence[TrackedItem], now: int, limit: Optional[int] = None) -> List[TrackedItem]:
    """
    Recent and frequent: sessions inside the recent window, plus up to 1.0
    for how recently the item was last played.
    """
    limit = settings.SMART_CATEGORY_LIMIT if limit is None else limit
    start = _window_start(now)
    window = now - start

    scored = []
    for item in items:
        recent_count = sum(1 for s in item.sessions if s.started_at > start)
        if recent_count == 0:
            continue
        recency = 0.0
        if item.last_played_at and item.last_played_at > start:
            recency = (item.last_played_at - start) / window
        scored.append((recent_count + recency, item))

    scored.sort(key=lambda pair: pair[0], reverse=True)
    return [item for _, item in scored[:limit]]


def smart_categories(items: Sequence[TrackedItem], now: int) -> SmartCategories:
    return SmartCategories(
        heavy_rotation=heavy_rotation(items),
        deep_listens=deep_listens(items),
        current_vibe=current_vibe(items, now),
    )


def total_bookmark_count(items: Sequence[TrackedItem]) -> int:
    return sum(len(i.bookmarks) for i in items)


def most_bookmarked(items: Sequence[TrackedItem]) -> Optional[TrackedItem]:
    if not items:
        return None
    # max() keeps the first of equals, so ties go to the newest
    newest_first = sorted(items, key=lambda i: i.added_at, reverse=True)
    return max(newest_first, key=lambda i: len(i.bookmarks))


def recently_played(items: Sequence[TrackedItem], now: int) -> List[TrackedItem]:
    start = _window_start(now)
    recent = [i for i in items if i.last_played_at and i.last_played_at > start]
    return sorted(recent, key=lambda i: i.last_played_at or 0, reverse=True)
