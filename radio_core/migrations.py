"""
Schema migrations for persisted snapshots.

Each step takes the raw document of the previous version and returns the
document for its target version. Steps only fill in what is missing; they
never drop or reinterpret existing fields. New steps are appended to
MIGRATIONS with the next version number.
"""
import logging
from typing import Any, Callable, Dict, List, Tuple

logger = logging.getLogger(__name__)

CURRENT_VERSION = 5

Document = Dict[str, Any]


def _items(data: Document) -> List[Dict[str, Any]]:
    return [item for item in data.get("items", []) if isinstance(item, dict)]


def add_notes_cache(data: Document) -> Document:
    # Notes move to a cache keyed by sourceId so unlocked sources can have them too
    cache = data.get("notesCache")
    if not isinstance(cache, dict):
        cache = {}
    for item in _items(data):
        notes = item.get("notes")
        if notes and item.get("sourceId") not in cache:
            cache[item["sourceId"]] = notes
    data["notesCache"] = cache
    return data


def add_sessions(data: Document) -> Document:
    for item in _items(data):
        item.setdefault("sessions", [])
    return data


def add_engagement_counters(data: Document) -> Document:
    for item in _items(data):
        item.setdefault("skipCount", 0)
        item.setdefault("completionCount", 0)
    return data


def add_source_kind(data: Document) -> Document:
    # Everything saved before v5 came from YouTube
    for item in _items(data):
        item.setdefault("sourceKind", "youtube")
    return data


MIGRATIONS: List[Tuple[int, str, Callable[[Document], Document]]] = [
    (2, "notes cache", add_notes_cache),
    (3, "session tracking", add_sessions),
    (4, "engagement counters", add_engagement_counters),
    (5, "multi-source support", add_source_kind),
]


def stored_version(data: Document) -> int:
    version = data.get("version")
    if isinstance(version, bool) or not isinstance(version, int):
        return 1
    return version


def needs_migration(data: Document) -> bool:
    return stored_version(data) < CURRENT_VERSION


def migrate(data: Document) -> Document:
    """Bring a raw snapshot document up to CURRENT_VERSION in one pass."""
    version = stored_version(data)
    if version >= CURRENT_VERSION:
        return data

    logger.info(f"Migrating snapshot from version {version} to {CURRENT_VERSION}")
    for target, description, step in MIGRATIONS:
        if version < target:
            logger.info(f"v{target - 1} -> v{target}: {description}")
            data = step(data)

    data["version"] = CURRENT_VERSION
    return data
