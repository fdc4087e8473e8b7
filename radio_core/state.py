import copy
import fcntl
import json
import logging
import os
import shutil
import threading
import time
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union
from pydantic import ValidationError as PydanticValidationError
from .config import settings
from .errors import NotFoundError, PersistenceError, ValidationError
from .migrations import CURRENT_VERSION, migrate, needs_migration, stored_version
from .models import Bookmark, ListeningSession, PlayerSettings, Snapshot, SourceKind, TrackedItem
from .seeds import SEED_ITEMS

logger = logging.getLogger(__name__)

PLACEHOLDER_TITLE_PREFIX = "Frequency "


def now_ms() -> int:
    return int(time.time() * 1000)


class CollectionStore:
    """
    Persistent home of the tracked items.

    Every operation loads the full snapshot, works on it in memory and writes
    the full snapshot back. With no path the serialized document is kept in
    memory instead of on disk.
    """

    def __init__(self, path: Optional[str] = None, clock: Optional[Callable[[], int]] = None,
                 seed_on_first_run: Optional[bool] = None):
        self.path = Path(path) if path else None
        self.clock = clock or now_ms
        self.seed_on_first_run = settings.SEED_ON_FIRST_RUN if seed_on_first_run is None else seed_on_first_run
        self._memory: Optional[str] = None
        self._lock = threading.RLock()
        # Set while the stored document is newer than this code understands
        self.read_only = False

    # ------------------------------------------------------------------
    # Persistence

    def _read_raw(self) -> Optional[str]:
        if self._memory is not None or self.path is None:
            return self._memory
        if not self.path.exists():
            return None
        try:
            return self.path.read_text(encoding="utf-8")
        except OSError as e:
            logger.error(f"Failed to read snapshot from {self.path}: {e}")
            raise PersistenceError(f"Failed to read snapshot from {self.path}: {e}") from e

    def _write_raw(self, text: str):
        if self.path is None or not settings.PERSIST_ENABLED:
            self._memory = text
            return

        tmp_path = self.path.with_suffix(self.path.suffix + '.tmp')
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, 'w', encoding="utf-8") as f:
                try:
                    fcntl.flock(f, fcntl.LOCK_EX | fcntl.LOCK_NB)
                except BlockingIOError as e:
                    raise PersistenceError(f"Snapshot {self.path} is locked by another writer") from e

                try:
                    f.write(text)
                    f.flush()
                    os.fsync(f.fileno())
                finally:
                    fcntl.flock(f, fcntl.LOCK_UN)

            os.replace(tmp_path, self.path)

        except OSError as e:
            logger.error(f"Failed to save snapshot to {self.path}: {e}")
            raise PersistenceError(f"Failed to save snapshot to {self.path}: {e}") from e

    def _save(self, snapshot: Snapshot):
        if self.read_only:
            raise PersistenceError(f"Snapshot at {self.path} has a newer schema than v{CURRENT_VERSION}, refusing to overwrite it")
        self._write_raw(snapshot.model_dump_json(by_alias=True, exclude_none=True))

    def _default_snapshot(self) -> Snapshot:
        return Snapshot(version=CURRENT_VERSION)

    def _seed(self, snapshot: Snapshot):
        if snapshot.items:
            return
        logger.info("First run - seeding default frequencies")
        now = self.clock()
        for i, seed in enumerate(SEED_ITEMS):
            snapshot.items.append(TrackedItem(
                source_id=seed["source_id"],
                title=seed["title"],
                source_kind=seed.get("source_kind", SourceKind.YOUTUBE),
                added_at=now - i * 1000,  # stagger for sort order
            ))

    def _preserve_corrupt(self):
        if self._memory is not None or self.path is None or not self.path.exists():
            return
        backup = self.path.with_suffix(self.path.suffix + '.corrupt')
        try:
            shutil.copyfile(self.path, backup)
            logger.warning(f"Copied unreadable snapshot to {backup}")
        except OSError as e:
            logger.error(f"Failed to back up unreadable snapshot to {backup}: {e}")

    def _load(self) -> Snapshot:
        self.read_only = False
        raw = self._read_raw()
        if raw is None:
            snapshot = self._default_snapshot()
            if self.seed_on_first_run:
                self._seed(snapshot)
                self._save(snapshot)
            return snapshot

        try:
            data = json.loads(raw)
        except ValueError as e:
            logger.error(f"Failed to parse snapshot: {e}. Starting fresh.")
            self._preserve_corrupt()
            return self._default_snapshot()

        if not isinstance(data, dict) or not isinstance(data.get("items"), list):
            logger.warning("Invalid snapshot structure, starting fresh.")
            self._preserve_corrupt()
            return self._default_snapshot()

        migrated = needs_migration(data)
        if migrated:
            data = migrate(data)
        elif stored_version(data) > CURRENT_VERSION:
            logger.warning(f"Snapshot version {stored_version(data)} is newer than {CURRENT_VERSION}, reading as-is without writes")
            self.read_only = True

        try:
            snapshot = Snapshot.model_validate(data)
        except PydanticValidationError as e:
            logger.error(f"Stored snapshot failed validation: {e}. Starting fresh.", exc_info=True)
            self._preserve_corrupt()
            return self._default_snapshot()

        if migrated:
            self._save(snapshot)
        return snapshot

    def snapshot(self) -> Snapshot:
        """Current fully migrated snapshot."""
        with self._lock:
            return self._load()

    # ------------------------------------------------------------------
    # Items

    def add_item(self, source_id: str, title: str, source_kind: SourceKind = SourceKind.YOUTUBE) -> TrackedItem:
        source_kind = SourceKind(source_kind)
        with self._lock:
            snapshot = self._load()
            existing = snapshot.find(source_id)
            if existing:
                return existing

            item = TrackedItem(
                source_id=source_id,
                title=title,
                source_kind=source_kind,
                added_at=self.clock(),
            )
            snapshot.items.append(item)
            self._save(snapshot)
            logger.info(f"Locked {source_kind.value} source {source_id}")
            return item

    def remove_item(self, source_id: str):
        with self._lock:
            snapshot = self._load()
            remaining = [i for i in snapshot.items if i.source_id != source_id]
            if len(remaining) == len(snapshot.items):
                return
            snapshot.items = remaining
            self._save(snapshot)
            logger.info(f"Unlocked source {source_id}")

    def get_item(self, source_id: str) -> Optional[TrackedItem]:
        return self.snapshot().find(source_id)

    def is_locked(self, source_id: str) -> bool:
        return self.get_item(source_id) is not None

    def list_all(self) -> List[TrackedItem]:
        """All items, most recently added first."""
        return sorted(self.snapshot().items, key=lambda i: i.added_at, reverse=True)

    def update_last_played(self, source_id: str):
        with self._lock:
            snapshot = self._load()
            item = snapshot.find(source_id)
            if item:
                item.last_played_at = self.clock()
                self._save(snapshot)

    def update_title(self, source_id: str, title: str) -> bool:
        with self._lock:
            snapshot = self._load()
            item = snapshot.find(source_id)
            if not item:
                return False
            item.title = title
            self._save(snapshot)
            return True

    def items_with_placeholder_titles(self) -> List[TrackedItem]:
        """Items saved before their real title was known."""
        return [
            i for i in self.snapshot().items
            if i.title.startswith(PLACEHOLDER_TITLE_PREFIX) or i.title == "Unknown"
        ]

    # ------------------------------------------------------------------
    # Bookmarks

    def add_bookmark(self, source_id: str, timestamp: float):
        with self._lock:
            snapshot = self._load()
            item = snapshot.find(source_id)
            if not item:
                raise NotFoundError(source_id)
            if timestamp < 0:
                raise ValueError(f"Bookmark timestamp must be non-negative, got {timestamp}")

            tolerance = settings.BOOKMARK_TOLERANCE_SECONDS
            if any(abs(b.timestamp - timestamp) < tolerance for b in item.bookmarks):
                return

            item.bookmarks.append(Bookmark(timestamp=timestamp, created_at=self.clock()))
            item.bookmarks.sort(key=lambda b: b.timestamp)
            self._save(snapshot)

    def remove_bookmark(self, source_id: str, timestamp: float):
        with self._lock:
            snapshot = self._load()
            item = snapshot.find(source_id)
            if not item:
                raise NotFoundError(source_id)

            tolerance = settings.BOOKMARK_TOLERANCE_SECONDS
            item.bookmarks = [b for b in item.bookmarks if abs(b.timestamp - timestamp) >= tolerance]
            self._save(snapshot)

    def get_bookmarks(self, source_id: str) -> List[Bookmark]:
        item = self.get_item(source_id)
        return list(item.bookmarks) if item else []

    # ------------------------------------------------------------------
    # Behavioral events. Unknown sources are ignored.

    def record_session(self, source_id: str, duration_seconds: float):
        if duration_seconds < settings.MIN_SESSION_SECONDS:
            return

        with self._lock:
            snapshot = self._load()
            item = snapshot.find(source_id)
            if not item:
                logger.warning(f"Cannot record session: frequency {source_id} not found")
                return

            item.sessions.append(ListeningSession(
                started_at=self.clock() - int(duration_seconds * 1000),
                duration_seconds=duration_seconds,
            ))
            self._save(snapshot)

    def record_skip(self, source_id: str, position: int = 0):
        """
        Skips of items near the top of the list the user was browsing count
        double, since passing over something ranked highly is a stronger signal.
        """
        with self._lock:
            snapshot = self._load()
            item = snapshot.find(source_id)
            if not item:
                logger.warning(f"Cannot record skip: frequency {source_id} not found")
                return

            if position < settings.TOP_POSITION_CUTOFF:
                item.skip_count += settings.TOP_SKIP_WEIGHT
            else:
                item.skip_count += settings.DEFAULT_SKIP_WEIGHT
            self._save(snapshot)

    def record_completion(self, source_id: str):
        with self._lock:
            snapshot = self._load()
            item = snapshot.find(source_id)
            if not item:
                logger.warning(f"Cannot record completion: frequency {source_id} not found")
                return

            item.completion_count += 1
            self._save(snapshot)

    def set_duration(self, source_id: str, seconds: float):
        with self._lock:
            snapshot = self._load()
            item = snapshot.find(source_id)
            if item:
                item.total_duration = seconds
                self._save(snapshot)

    def total_listen_time(self, source_id: str) -> float:
        item = self.get_item(source_id)
        return item.total_listen_time if item else 0.0

    def play_count(self, source_id: str) -> int:
        item = self.get_item(source_id)
        return item.play_count if item else 0

    # ------------------------------------------------------------------
    # Notes cache

    def set_notes(self, source_id: str, notes: str):
        """Store notes for any source, locked or not."""
        with self._lock:
            snapshot = self._load()
            snapshot.notes_cache[source_id] = notes
            item = snapshot.find(source_id)
            if item:
                item.notes = notes
            self._save(snapshot)

    def get_notes(self, source_id: str) -> Optional[str]:
        snapshot = self.snapshot()
        if snapshot.notes_cache.get(source_id):
            return snapshot.notes_cache[source_id]
        item = snapshot.find(source_id)
        return item.notes if item and item.notes else None

    # ------------------------------------------------------------------
    # Player settings

    def _update_settings(self, **changes):
        with self._lock:
            snapshot = self._load()
            for key, value in changes.items():
                setattr(snapshot.settings, key, value)
            self._save(snapshot)

    def get_settings(self) -> PlayerSettings:
        return self.snapshot().settings

    def get_volume(self) -> float:
        return self.get_settings().volume

    def set_volume(self, volume: float):
        self._update_settings(volume=max(0.0, min(1.0, volume)))

    def get_last_source_id(self) -> Optional[str]:
        return self.get_settings().last_source_id

    def set_last_source_id(self, source_id: str):
        self._update_settings(last_source_id=source_id)

    def get_last_position(self) -> float:
        return self.get_settings().last_position

    def set_last_position(self, position: float):
        self._update_settings(last_position=position)

    # ------------------------------------------------------------------
    # Backup / restore

    def export_snapshot(self) -> str:
        return self.snapshot().model_dump_json(by_alias=True, exclude_none=True, indent=2)

    def import_snapshot(self, document: Union[str, bytes, Dict[str, Any]]) -> bool:
        """
        Replace the whole collection with `document`.

        The document is checked and migrated before anything is written; on
        any failure the stored snapshot is left exactly as it was.
        """
        try:
            snapshot = validate_document(document)
        except ValidationError as e:
            logger.error(f"Import failed: {e}")
            return False

        with self._lock:
            try:
                # refreshes read_only for the stored document
                self._load()
                self._save(snapshot)
            except PersistenceError as e:
                logger.error(f"Import failed: {e}")
                return False

        logger.info(f"Imported snapshot with {len(snapshot.items)} frequencies")
        return True

    def clear_all(self):
        with self._lock:
            self._memory = None
            self.read_only = False
            if self.path is not None:
                try:
                    self.path.unlink(missing_ok=True)
                except OSError as e:
                    logger.error(f"Failed to clear snapshot at {self.path}: {e}")
                    raise PersistenceError(f"Failed to clear snapshot at {self.path}: {e}") from e


def validate_document(document: Union[str, bytes, Dict[str, Any]]) -> Snapshot:
    """Check, migrate and parse an exported snapshot. Raises ValidationError."""
    if isinstance(document, (str, bytes)):
        try:
            data = json.loads(document)
        except ValueError as e:
            raise ValidationError(f"not valid JSON: {e}") from e
    else:
        data = copy.deepcopy(document)

    if not isinstance(data, dict):
        raise ValidationError("snapshot must be a JSON object")
    if not isinstance(data.get("items"), list):
        raise ValidationError("snapshot has no items list")
    if "version" in data:
        version = data["version"]
        if isinstance(version, bool) or not isinstance(version, int):
            raise ValidationError(f"invalid version {version!r}")
        if version > CURRENT_VERSION:
            raise ValidationError(f"version {version} is newer than supported version {CURRENT_VERSION}")
    if "settings" in data and not isinstance(data["settings"], dict):
        raise ValidationError("settings must be an object")

    seen = set()
    for index, item in enumerate(data["items"]):
        if not isinstance(item, dict):
            raise ValidationError(f"item {index} is not an object")
        source_id = item.get("sourceId")
        if not isinstance(source_id, str) or not source_id:
            raise ValidationError(f"item {index} has no sourceId")
        if not isinstance(item.get("title"), str):
            raise ValidationError(f"item {source_id} has no title")
        if not isinstance(item.get("bookmarks"), list):
            raise ValidationError(f"item {source_id} has no bookmarks list")
        if source_id in seen:
            raise ValidationError(f"duplicate sourceId {source_id}")
        seen.add(source_id)

    data = migrate(data)
    try:
        return Snapshot.model_validate(data)
    except PydanticValidationError as e:
        raise ValidationError(str(e)) from e


_store: Optional[CollectionStore] = None
_store_lock = threading.Lock()


def get_store() -> CollectionStore:
    """The process-wide store, built from settings.STATE_PATH on first use."""
    global _store
    with _store_lock:
        if _store is None:
            _store = CollectionStore(settings.STATE_PATH)
        return _store


def reset_store():
    global _store
    with _store_lock:
        _store = None
