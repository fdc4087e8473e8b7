from enum import Enum
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel
from typing import Dict, List, Optional
from .config import settings


class SourceKind(str, Enum):
    YOUTUBE = "youtube"
    SOUNDCLOUD = "soundcloud"


class CamelModel(BaseModel):
    # Persisted documents use camelCase keys
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Bookmark(CamelModel):
    timestamp: float = Field(ge=0)  # seconds into track
    created_at: int = 0  # epoch ms


class ListeningSession(CamelModel):
    started_at: int  # epoch ms, approximate
    duration_seconds: float = Field(ge=0)


def normalize_bookmarks(bookmarks: List[Bookmark], tolerance: Optional[float] = None) -> List[Bookmark]:
    """Sort by timestamp and drop any bookmark closer than `tolerance` to the one kept before it."""
    if tolerance is None:
        tolerance = settings.BOOKMARK_TOLERANCE_SECONDS
    kept: List[Bookmark] = []
    for bookmark in sorted(bookmarks, key=lambda b: b.timestamp):
        if kept and bookmark.timestamp - kept[-1].timestamp < tolerance:
            continue
        kept.append(bookmark)
    return kept


class TrackedItem(CamelModel):
    source_id: str = Field(min_length=1)
    source_kind: SourceKind = SourceKind.YOUTUBE
    title: str
    added_at: int
    last_played_at: Optional[int] = None
    total_duration: Optional[float] = None  # seconds
    notes: Optional[str] = None

    # Engagement counters
    skip_count: float = Field(0.0, ge=0)  # weighted by list position
    completion_count: int = Field(0, ge=0)

    bookmarks: List[Bookmark] = Field(default_factory=list)  # sorted, deduplicated
    sessions: List[ListeningSession] = Field(default_factory=list)  # append-only

    @field_validator("bookmarks")
    @classmethod
    def _sorted_unique_bookmarks(cls, v: List[Bookmark]) -> List[Bookmark]:
        return normalize_bookmarks(v)

    @property
    def play_count(self) -> int:
        return len(self.sessions)

    @property
    def total_listen_time(self) -> float:
        return sum(s.duration_seconds for s in self.sessions)


class PlayerSettings(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    volume: float = Field(default_factory=lambda: settings.DEFAULT_VOLUME, ge=0, le=1)
    last_source_id: Optional[str] = None
    last_position: float = 0.0


class Snapshot(CamelModel):
    items: List[TrackedItem] = Field(default_factory=list)
    notes_cache: Dict[str, str] = Field(default_factory=dict)  # sourceId -> notes
    settings: PlayerSettings = Field(default_factory=PlayerSettings)
    version: int

    def find(self, source_id: str) -> Optional[TrackedItem]:
        for item in self.items:
            if item.source_id == source_id:
                return item
        return None


class EngagementStats(CamelModel):
    stars: int
    skips: float
    completions: int
    plays: int
    confidence: float
    recency: float
    score: float


class SmartCategories(CamelModel):
    heavy_rotation: List[TrackedItem] = Field(default_factory=list)
    deep_listens: List[TrackedItem] = Field(default_factory=list)
    current_vibe: List[TrackedItem] = Field(default_factory=list)


class SourceDetection(CamelModel):
    source_kind: SourceKind
    source_id: str
