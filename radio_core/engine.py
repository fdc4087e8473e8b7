import logging
import math
from typing import Callable, List, Optional, Sequence
from .config import settings
from .models import Bookmark, EngagementStats, TrackedItem
from .state import now_ms

logger = logging.getLogger(__name__)

MS_PER_HOUR = 3600000


class RankingEngine:
    """
    Scores and orders tracked items from their stored behavior.

    Nothing here mutates items or caches results; every call recomputes from
    the snapshot it is given.
    """

    def __init__(self, clock: Optional[Callable[[], int]] = None):
        self.clock = clock or now_ms

    # ------------------------------------------------------------------
    # Engagement score

    def calculate_confidence(self, item: TrackedItem) -> float:
        """
        confidence = 1 + alpha * max(0, stars - skips*w_skip + completion_rate*w_completion*plays)
        """
        stars = len(item.bookmarks)
        plays = len(item.sessions)
        completion_rate = item.completion_count / plays if plays > 0 else 0

        raw_engagement = (
            stars * settings.STAR_WEIGHT
            - item.skip_count * settings.SKIP_WEIGHT
            + completion_rate * settings.COMPLETION_WEIGHT * plays
        )
        return 1 + settings.CONFIDENCE_ALPHA * max(0, raw_engagement)

    def calculate_recency(self, added_at: int, now: Optional[int] = None) -> float:
        """1.0 when just added, 0.5 after one half-life."""
        now = self.clock() if now is None else now
        hours = (now - added_at) / MS_PER_HOUR
        return 1 / (1 + hours / settings.RECENCY_HALF_LIFE_HOURS)

    def max_confidence(self, items: Sequence[TrackedItem]) -> float:
        return max([1.0] + [self.calculate_confidence(i) for i in items])

    def calculate_engagement_score(self, item: TrackedItem, max_confidence: float, now: Optional[int] = None) -> float:
        recency = self.calculate_recency(item.added_at, now)
        normalized = self.calculate_confidence(item) / max(1, max_confidence)
        return settings.RECENCY_WEIGHT * recency + settings.ENGAGEMENT_WEIGHT * normalized

    def rank(self, items: Sequence[TrackedItem]) -> List[TrackedItem]:
        """Items by engagement score, highest first. Ties keep their given order."""
        if not items:
            return []

        now = self.clock()
        max_conf = self.max_confidence(items)
        scored = [(self.calculate_engagement_score(i, max_conf, now), i) for i in items]
        scored.sort(key=lambda pair: pair[0], reverse=True)
        logger.debug(f"Ranked {len(scored)} frequencies (max confidence {max_conf:.1f})")
        return [item for _, item in scored]

    def engagement_stats(self, item: TrackedItem, items: Sequence[TrackedItem]) -> EngagementStats:
        now = self.clock()
        return EngagementStats(
            stars=len(item.bookmarks),
            skips=item.skip_count,
            completions=item.completion_count,
            plays=len(item.sessions),
            confidence=self.calculate_confidence(item),
            recency=self.calculate_recency(item.added_at, now),
            score=self.calculate_engagement_score(item, self.max_confidence(items), now),
        )

    # ------------------------------------------------------------------
    # Peaks

    def calculate_peaks(self, bookmarks: Sequence[Bookmark], cluster_gap: Optional[float] = None,
                        max_peaks: Optional[int] = None) -> List[float]:
        """
        Centers of bookmark clusters, in chronological order.

        Bookmarks no more than `cluster_gap` seconds from their predecessor
        share a cluster. The largest clusters are kept (earlier first on ties)
        and their centers rounded to whole seconds. With two bookmarks or
        fewer the timestamps are returned as they are.
        """
        if cluster_gap is None:
            cluster_gap = settings.PEAK_CLUSTER_GAP_SECONDS
        if max_peaks is None:
            max_peaks = settings.PEAK_MAX_COUNT

        if not bookmarks:
            return []
        if len(bookmarks) <= 2:
            return [b.timestamp for b in bookmarks]

        timestamps = sorted(b.timestamp for b in bookmarks)
        clusters: List[List[float]] = [[timestamps[0]]]
        for previous, current in zip(timestamps, timestamps[1:]):
            if current - previous <= cluster_gap:
                clusters[-1].append(current)
            else:
                clusters.append([current])

        peaks = [(sum(c) / len(c), len(c)) for c in clusters]
        peaks.sort(key=lambda p: (-p[1], p[0]))
        top = sorted(peaks[:max_peaks], key=lambda p: p[0])

        # Round half up, as a seek bar would
        return [math.floor(center + 0.5) for center, _ in top]

    def next_peak(self, peaks: Sequence[float], position: float) -> Optional[float]:
        """First peak past the playhead, wrapping around to the first one."""
        if not peaks:
            return None
        for peak in peaks:
            if peak > position + settings.PEAK_GUARD_SECONDS:
                return peak
        return peaks[0]

    def previous_peak(self, peaks: Sequence[float], position: float) -> Optional[float]:
        """Last peak before the playhead, wrapping around to the last one."""
        if not peaks:
            return None
        for peak in reversed(peaks):
            if peak < position - settings.PEAK_GUARD_SECONDS:
                return peak
        return peaks[-1]
