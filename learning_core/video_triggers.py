"""
Video timeline watcher.

Bookmark state machine:

    untriggered --(playback lands 0..FA_TRIGGER_TOLERANCE_MS past offset)-->
    triggered (pause player, request FA campaign, hold playback)
    --(release(trigger_id): campaign finished, skipped or failed)--> resumed
    --(drop_hold(trigger_id): learner pressed play in the player)--> resumed

In-lesson question triggers follow the same path with a wider window
(0..INLESSON_TRIGGER_TOLERANCE_MS) and request an in-lesson campaign
instead. A trigger id enters the triggered set once and never leaves it
for the rest of the visit, so seeking back over an offset cannot refire it.

Also reports watch progress: only past PROGRESS_MIN_WATCH_MS, at most
once per PROGRESS_INTERVAL_S while the player is playing, and on every
pause or end.

Nothing here awaits; time updates arrive several times a second.
"""

import logging
import time
from typing import Callable

from .config import (
    FA_TRIGGER_TOLERANCE_MS,
    INLESSON_TRIGGER_TOLERANCE_MS,
    PROGRESS_INTERVAL_S,
    PROGRESS_MIN_WATCH_MS,
)
from .enums import CampaignType, PlayerState
from .events import PausePlayer, ReportProgress, RequestCampaign, ResumePlayer, SeekPlayer
from .types import Trigger

logger = logging.getLogger(__name__)

FA_BOOKMARK_TYPE = "VISMARK"


def bookmarks_from_player(raw_bookmarks) -> list[Trigger]:
    """Turn the player's bookmark list into FA triggers.

    Only VISMARK bookmarks with a non-zero rel_offset (milliseconds)
    count; anything else in the list is ignored.
    """
    triggers = []
    for raw in raw_bookmarks or ():
        if not isinstance(raw, dict) or raw.get("artifact_type") != FA_BOOKMARK_TYPE:
            continue
        try:
            offset_ms = int(raw.get("rel_offset") or 0)
        except (TypeError, ValueError):
            logger.warning("Bookmark with unusable rel_offset: %r", raw)
            continue
        if offset_ms <= 0:
            continue
        bookmark_id = str(raw.get("id") or f"bookmark-{offset_ms}")
        topic = raw.get("text") or raw.get("title") or raw.get("name")
        triggers.append(Trigger(id=bookmark_id, offset_ms=offset_ms, topic=topic))
    return sorted(triggers, key=lambda t: t.offset_ms)


class VideoTriggerEngine:
    def __init__(
        self,
        inlesson_triggers: list[Trigger] | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ):
        self._clock = clock
        self._bookmarks: list[Trigger] = []
        self._bookmarks_loaded = False
        self._inlesson = list(inlesson_triggers or [])
        self._triggered: set[str] = set()
        self._held_by: str | None = None

        self.duration_ms: int | None = None
        self.position_ms = 0
        self.state = PlayerState.unstarted
        self._last_report_at: float | None = None
        self._outbox: list = []

    def drain(self) -> list:
        effects, self._outbox = self._outbox, []
        return effects

    @property
    def held_by(self) -> str | None:
        """Trigger currently holding playback paused, if any."""
        return self._held_by

    @property
    def bookmarks(self) -> list[Trigger]:
        return list(self._bookmarks)

    def has_fired(self, trigger_id: str) -> bool:
        return trigger_id in self._triggered

    # --- Player events ---

    def on_player_started(
        self, bookmarks=None, duration_ms: int | None = None
    ) -> None:
        self.state = PlayerState.playing
        if duration_ms:
            self.duration_ms = duration_ms
        if self._bookmarks_loaded:
            return
        self._bookmarks = bookmarks_from_player(bookmarks)
        self._bookmarks_loaded = True
        logger.info("Loaded %d FA bookmark(s)", len(self._bookmarks))

    def on_time_update(self, current_time_ms: int) -> None:
        self.position_ms = max(0, int(current_time_ms))

        if self._held_by is None:
            fired = self._check_bookmarks() or self._check_inlesson()
            if fired:
                return

        if self.state != PlayerState.playing or self.position_ms < PROGRESS_MIN_WATCH_MS:
            return
        now = self._clock()
        if self._last_report_at is None or now - self._last_report_at >= PROGRESS_INTERVAL_S:
            self._report_progress(video_ended=False)

    def on_player_state_change(self, state: PlayerState) -> None:
        self.state = PlayerState(state)
        if self.state == PlayerState.paused:
            if self.position_ms >= PROGRESS_MIN_WATCH_MS:
                self._report_progress(video_ended=False)
        elif self.state == PlayerState.ended:
            if self.duration_ms:
                self.position_ms = max(self.position_ms, self.duration_ms)
            if self.position_ms >= PROGRESS_MIN_WATCH_MS:
                self._report_progress(video_ended=True)

    # --- Commands from the session ---

    def release(self, trigger_id: str | None) -> bool:
        """Resume playback held by trigger_id. No-op if it is not the holder."""
        if self._held_by is None or (trigger_id is not None and trigger_id != self._held_by):
            logger.debug("Release for %s ignored; held by %s", trigger_id, self._held_by)
            return False
        released, self._held_by = self._held_by, None
        logger.info("Resuming playback after trigger %s", released)
        self._outbox.append(ResumePlayer(released))
        return True

    def drop_hold(self, trigger_id: str) -> bool:
        """Forget the hold without a resume command; the player is already playing."""
        if self._held_by is None or trigger_id != self._held_by:
            return False
        logger.info("Learner resumed playback held by trigger %s", trigger_id)
        self._held_by = None
        return True

    def play(self) -> bool:
        """Learner asked to play. Refused while a trigger holds playback."""
        if self._held_by is not None:
            logger.debug("Play ignored; playback held by %s", self._held_by)
            return False
        self._outbox.append(ResumePlayer())
        return True

    def seek(self, position_ms: int) -> None:
        self.position_ms = max(0, int(position_ms))
        self._outbox.append(SeekPlayer(self.position_ms))

    # --- Internals ---

    def _check_bookmarks(self) -> bool:
        for bookmark in self._bookmarks:
            if bookmark.id in self._triggered:
                continue
            if 0 <= self.position_ms - bookmark.offset_ms <= FA_TRIGGER_TOLERANCE_MS:
                self._fire(bookmark, CampaignType.formative_assessment)
                return True
        return False

    def _check_inlesson(self) -> bool:
        # Single candidate per tick: the first untriggered question in range
        candidate = next(
            (
                t
                for t in self._inlesson
                if t.id not in self._triggered
                and 0 <= self.position_ms - t.offset_ms <= INLESSON_TRIGGER_TOLERANCE_MS
            ),
            None,
        )
        if candidate is None:
            return False
        self._fire(candidate, CampaignType.inlesson)
        return True

    def _fire(self, trigger: Trigger, campaign_type: CampaignType) -> None:
        self._triggered.add(trigger.id)
        trigger.triggered = True
        self._held_by = trigger.id
        logger.info(
            "Trigger %s fired at %dms (offset %dms)",
            trigger.id,
            self.position_ms,
            trigger.offset_ms,
        )
        self._outbox.append(PausePlayer(trigger.id))
        self._outbox.append(
            RequestCampaign(
                campaign_type,
                trigger.id,
                topic=trigger.topic,
                question_id=trigger.question_id,
            )
        )

    def _completion_percentage(self) -> int:
        if not self.duration_ms:
            return 0
        return max(0, min(100, round(self.position_ms * 100 / self.duration_ms)))

    def _report_progress(self, *, video_ended: bool) -> None:
        self._last_report_at = self._clock()
        self._outbox.append(
            ReportProgress(
                last_position_s=self.position_ms // 1000,
                completion_percentage=self._completion_percentage(),
                video_ended=video_ended,
            )
        )
