from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Dict, List, Optional

import httpx
from apscheduler.schedulers.background import BackgroundScheduler
from pydantic import ValidationError

from lockchime.client.api import StatsClient
from lockchime.client.local_state import MY_STATS_KEY, STATS_MODE_KEY, LocalState
from lockchime.config import FLUSH_DEBOUNCE_SECONDS, REFRESH_INTERVAL_SECONDS
from lockchime.core.deltas import apply_event_delta, apply_global_delta, apply_personal_delta
from lockchime.models import AggregateSnapshot, EventType, SoundCounters
from lockchime.services.aggregation import validate_event

logger = logging.getLogger("lockchime.recorder")

WORLDWIDE = "worldwide"
PERSONAL = "personal"
STATS_MODES = (WORLDWIDE, PERSONAL)

FLUSH_JOB_ID = "stats-flush"
REFRESH_JOB_ID = "stats-refresh"


@dataclass
class PendingEvent:
    sound_id: str
    event: EventType


def _load_personal(state: LocalState) -> Dict[str, SoundCounters]:
    stored = state.get(MY_STATS_KEY) or {}
    mirror: Dict[str, SoundCounters] = {}
    if not isinstance(stored, dict):
        logger.warning("event=personal_stats_invalid reason=not_an_object")
        return mirror
    for sound_id, counters in stored.items():
        try:
            mirror[sound_id] = SoundCounters.model_validate(counters)
        except ValidationError:
            logger.warning("event=personal_stats_invalid sound_id=%s", sound_id)
    return mirror


class EventRecorder:
    """Records play/download/favorite events for one browsing session.

    Every event updates the personal mirror immediately. Plays and downloads
    are forwarded to the shared counters at most once per sound per session.
    Forwarded events are patched into the in-memory worldwide snapshot right
    away, queued, and sent after ``debounce_seconds`` without new events.
    Delivery is best effort: a failed send is logged and dropped.
    """

    def __init__(
        self,
        client: StatsClient,
        local_state: LocalState,
        debounce_seconds: float = FLUSH_DEBOUNCE_SECONDS,
        refresh_interval: int = REFRESH_INTERVAL_SECONDS,
        scheduler=None,
    ) -> None:
        self.client = client
        self.local_state = local_state
        self.debounce_seconds = debounce_seconds
        self.refresh_interval = refresh_interval
        self._scheduler = scheduler or BackgroundScheduler()

        self.personal: Dict[str, SoundCounters] = _load_personal(local_state)
        self.worldwide: Optional[AggregateSnapshot] = None
        saved_mode = local_state.get(STATS_MODE_KEY)
        self._mode = PERSONAL if saved_mode == PERSONAL else WORLDWIDE

        self._session_plays: set[str] = set()
        self._session_downloads: set[str] = set()
        self._pending: List[PendingEvent] = []
        self._in_flight: List[PendingEvent] = []
        # Guards mirror, dedup sets, worldwide snapshot and queue.
        self._queue_lock = threading.RLock()
        # One drain at a time, so batches reach the server in enqueue order.
        self._flush_lock = threading.Lock()

    @property
    def mode(self) -> str:
        return self._mode

    def set_mode(self, mode: str) -> None:
        if mode not in STATS_MODES:
            raise ValueError(f"mode must be one of {STATS_MODES}")
        self._mode = mode
        self.local_state.set(STATS_MODE_KEY, mode)

    @property
    def pending(self) -> List[PendingEvent]:
        with self._queue_lock:
            return list(self._pending)

    def start(self) -> None:
        """Load the worldwide snapshot and, if configured, keep refreshing it."""
        self.refresh()
        if self.refresh_interval > 0:
            self._ensure_scheduler()
            self._scheduler.add_job(
                self.refresh,
                "interval",
                seconds=self.refresh_interval,
                id=REFRESH_JOB_ID,
                replace_existing=True,
            )

    def refresh(self) -> bool:
        try:
            snapshot = self.client.fetch_stats()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("event=stats_fetch_failed error=%s", exc)
            return False
        with self._queue_lock:
            # Queued and unsent events are not on the server yet; keep them visible.
            for item in self._in_flight + self._pending:
                self._patch_worldwide(snapshot, item.sound_id, item.event)
            self.worldwide = snapshot
        return True

    def record_event(self, sound_id: str, event, skip_dedup: bool = False) -> bool:
        """Record one event. Returns True if it was queued for the shared counters."""
        event_type = validate_event(sound_id, event)
        with self._queue_lock:
            self._update_personal(sound_id, event_type)

            if not skip_dedup:
                seen = None
                if event_type is EventType.PLAY:
                    seen = self._session_plays
                elif event_type is EventType.DOWNLOAD:
                    seen = self._session_downloads
                if seen is not None:
                    if sound_id in seen:
                        return False
                    seen.add(sound_id)

            if self.worldwide is not None:
                self._patch_worldwide(self.worldwide, sound_id, event_type)
            self._pending.append(PendingEvent(sound_id, event_type))

        self._schedule_flush()
        return True

    def record_play(self, sound_id: str) -> bool:
        return self.record_event(sound_id, EventType.PLAY)

    def record_download(self, sound_id: str) -> bool:
        return self.record_event(sound_id, EventType.DOWNLOAD)

    def record_favorite(self, sound_id: str, is_favoriting: bool) -> bool:
        event = EventType.FAVORITE if is_favoriting else EventType.UNFAVORITE
        return self.record_event(sound_id, event)

    def flush(self) -> int:
        """Send every queued event in order. Returns how many were accepted."""
        with self._flush_lock:
            with self._queue_lock:
                batch, self._pending = self._pending, []
                self._in_flight = list(batch)
            sent = 0
            for item in batch:
                try:
                    self.client.send_event(item.sound_id, item.event)
                    sent += 1
                except (httpx.HTTPError, ValueError) as exc:
                    logger.error(
                        "event=stat_send_failed sound_id=%s type=%s error=%s",
                        item.sound_id,
                        item.event.value,
                        exc,
                    )
                with self._queue_lock:
                    self._in_flight.pop(0)
            if batch:
                logger.info("event=stats_flushed queued=%d sent=%d", len(batch), sent)
            return sent

    def close(self) -> None:
        if self._scheduler.running:
            for job_id in (FLUSH_JOB_ID, REFRESH_JOB_ID):
                if self._scheduler.get_job(job_id):
                    self._scheduler.remove_job(job_id)
        self.flush()
        if self._scheduler.running:
            self._scheduler.shutdown(wait=True)

    def _update_personal(self, sound_id: str, event: EventType) -> None:
        current = self.personal.get(sound_id) or SoundCounters()
        self.personal[sound_id] = apply_personal_delta(current, event)
        self.local_state.set(
            MY_STATS_KEY, {key: counters.model_dump() for key, counters in self.personal.items()}
        )

    @staticmethod
    def _patch_worldwide(snapshot: AggregateSnapshot, sound_id: str, event: EventType) -> None:
        snapshot.sounds[sound_id] = apply_event_delta(snapshot.counters_for(sound_id), event)
        snapshot.global_ = apply_global_delta(snapshot.global_, event)

    def _ensure_scheduler(self) -> None:
        if not self._scheduler.running:
            self._scheduler.start()

    def _schedule_flush(self) -> None:
        # Re-adding under the same id moves the deadline: a reset, not a second timer.
        self._ensure_scheduler()
        self._scheduler.add_job(
            self.flush,
            "date",
            run_date=datetime.now(timezone.utc) + timedelta(seconds=self.debounce_seconds),
            id=FLUSH_JOB_ID,
            replace_existing=True,
            max_instances=2,
            misfire_grace_time=None,
        )
