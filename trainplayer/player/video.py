"""
VideoWatchMonitor - Turn player time updates into watch credit.

Credit is the furthest point ever reached, so seeking backwards never
reduces it. Completion fires once, on the first sample whose maximum
reaches the content's threshold.
"""

import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, Optional

logger = logging.getLogger(__name__)


@dataclass
class WatchSample:
    """Result of one accepted time update."""
    current_percentage: float
    max_watched_percentage: float
    position_seconds: float
    completed_now: bool = False   # True only on the crossing sample


class VideoWatchMonitor:
    """
    Track watch percentage for one video content item in one session.

    Seed `initial_percentage` with the persisted value so credit carries
    over between sessions; pass `already_completed=True` when the threshold
    was crossed before, so completion is not raised again.
    """

    def __init__(
        self,
        content_id: str,
        min_watch_percentage: float = 90,
        initial_percentage: float = 0.0,
        already_completed: bool = False,
    ):
        self.content_id = content_id
        self.min_watch_percentage = min_watch_percentage
        self.max_watched_percentage = min(max(initial_percentage, 0.0), 100.0)
        self.last_position_seconds = 0.0
        self._completion_fired = already_completed

    @property
    def completed(self) -> bool:
        return self._completion_fired

    def record(self, current_time: float, duration: float) -> Optional[WatchSample]:
        """
        Feed one (currentTime, duration) sample.

        Returns None for samples that must be ignored (zero/NaN/negative
        duration, NaN position).
        """
        if duration is None or current_time is None:
            return None
        if math.isnan(duration) or duration <= 0 or math.isnan(current_time):
            logger.debug(f"Ignoring sample for {self.content_id}: time={current_time} duration={duration}")
            return None

        position = min(max(current_time, 0.0), duration)
        current_percentage = position / duration * 100
        self.max_watched_percentage = max(self.max_watched_percentage, current_percentage)
        self.last_position_seconds = position

        completed_now = False
        if not self._completion_fired and self.max_watched_percentage >= self.min_watch_percentage:
            self._completion_fired = True
            completed_now = True
            logger.info(
                f"Video {self.content_id} reached {self.max_watched_percentage:.1f}% "
                f"(threshold {self.min_watch_percentage}%)"
            )

        return WatchSample(
            current_percentage=current_percentage,
            max_watched_percentage=self.max_watched_percentage,
            position_seconds=position,
            completed_now=completed_now,
        )


class WriteThrottle:
    """
    Rate limit for progress writes.

    `ready()` turns True again `interval_seconds` after the last `mark()`.
    Completion writes and flushes skip the check.
    """

    def __init__(self, interval_seconds: float = 5.0, clock: Callable[[], float] = time.monotonic):
        self.interval_seconds = interval_seconds
        self._clock = clock
        self._last_write: Optional[float] = None

    def ready(self) -> bool:
        if self._last_write is None:
            return True
        return self._clock() - self._last_write >= self.interval_seconds

    def mark(self):
        self._last_write = self._clock()
