"""
video_gate.py — Course video playback and the soft "watched" signal
===================================================================
A course without ``videoKey`` is simply a course with no video; that is a
normal state, distinct from a URL fetch that failed.

Completion is declared when playback passes 90 % of the duration or the
player reports end-of-media.  It is a UI signal only: nothing is persisted
and the quiz stays reachable through "Skip to Quiz" either way.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from training_portal.models import Course
from training_portal.storage import ObjectStore

logger = logging.getLogger(__name__)

COMPLETION_RATIO = 0.9


class PlaybackStatus(str, Enum):
    NO_VIDEO = "no_video"
    READY    = "ready"
    FAILED   = "failed"


@dataclass(frozen=True)
class VideoPlayback:
    status:  PlaybackStatus
    url:     Optional[str] = None
    error:   Optional[str] = None

    @property
    def can_retry(self) -> bool:
        return self.status == PlaybackStatus.FAILED


class VideoGate:
    def __init__(self, object_store: ObjectStore, url_expiry: int = 3600):
        self.object_store = object_store
        self.url_expiry = url_expiry

    def playback_for(self, course: Course) -> VideoPlayback:
        if not course.video_key:
            return VideoPlayback(PlaybackStatus.NO_VIDEO)
        try:
            url = self.object_store.get_url(course.video_key, self.url_expiry)
        except Exception as exc:
            logger.error("Error loading video for course %s: %s", course.id, exc)
            return VideoPlayback(PlaybackStatus.FAILED, error=f"Failed to load video: {exc}")
        return VideoPlayback(PlaybackStatus.READY, url=url)


class WatchProgress:
    """Tracks player callbacks; ``completed`` latches once set."""

    def __init__(self, completion_ratio: float = COMPLETION_RATIO):
        self.completion_ratio = completion_ratio
        self.completed = False
        self.position = 0.0
        self.duration: Optional[float] = None

    def on_progress(self, position: float, duration: Optional[float]) -> bool:
        self.position = position
        if duration:
            self.duration = duration
            if not self.completed and position / duration > self.completion_ratio:
                self.completed = True
                logger.info("Video marked complete at %.0f%%", 100 * position / duration)
        return self.completed

    def on_end(self) -> bool:
        self.completed = True
        return self.completed

    @property
    def can_skip_to_quiz(self) -> bool:
        return True
