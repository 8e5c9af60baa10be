from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from lockchime.config import PLAY_SAMPLE_RATE
from lockchime.core.deltas import apply_event_delta, apply_global_delta
from lockchime.core.exceptions import InvalidEventError
from lockchime.models import EventType, SoundCounters
from lockchime.store import CounterStore

logger = logging.getLogger("lockchime")


def _utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


@dataclass
class EventOutcome:
    sampled: bool = False
    stats: Optional[SoundCounters] = None

    def to_response(self) -> dict:
        if self.sampled:
            return {"success": True, "sampled": True}
        return {"success": True, "stats": self.stats.model_dump()}


def validate_event(sound_id, event) -> EventType:
    if not isinstance(sound_id, str) or not sound_id:
        raise InvalidEventError("soundId must be a non-empty string")
    try:
        return EventType(event)
    except ValueError:
        raise InvalidEventError(f"unknown event {event!r}") from None


class AggregationService:
    """Reads and updates the shared counters.

    Writes are read-modify-write against the whole snapshot and are not atomic:
    two concurrent writers can read the same snapshot and one increment is
    lost. That is accepted for this write volume. Reads always return the full
    map, which is only reasonable while the catalog stays in the hundreds.
    """

    def __init__(
        self,
        store: CounterStore,
        sample_rate: float = PLAY_SAMPLE_RATE,
        rng: Optional[random.Random] = None,
        clock: Callable[[], str] = _utcnow_iso,
    ) -> None:
        if not 0 < sample_rate <= 1:
            raise ValueError("sample_rate must be in (0, 1]")
        self.store = store
        self.sample_rate = sample_rate
        # Expected increment of a sampled-in play; may be fractional (0.3 -> 3.33).
        inverse = 1 / sample_rate
        self.compensation = round(inverse) if abs(inverse - round(inverse)) < 1e-9 else inverse
        self._rng = rng or random.Random()
        self._clock = clock

    def read_all(self) -> dict:
        snapshot = self.store.read()
        return {
            "global": snapshot.global_.model_dump(by_alias=True),
            "top": {sound_id: counters.model_dump() for sound_id, counters in snapshot.sounds.items()},
        }

    def read_sound(self, sound_id: str) -> SoundCounters:
        return self.store.read().counters_for(sound_id)

    def _sampled_in(self) -> bool:
        return self.sample_rate >= 1 or self._rng.random() < self.sample_rate

    def _draw_compensation(self) -> int:
        """Round the compensation up or down at random so its mean stays exact."""
        whole = int(self.compensation)
        fraction = self.compensation - whole
        if fraction and self._rng.random() < fraction:
            whole += 1
        return whole

    def apply_event(self, sound_id, event) -> EventOutcome:
        event_type = validate_event(sound_id, event)

        amount = 1
        if event_type is EventType.PLAY:
            if not self._sampled_in():
                logger.debug("event=play_sampled_out sound_id=%s", sound_id)
                return EventOutcome(sampled=True)
            amount = self._draw_compensation()

        snapshot = self.store.read()
        counters = apply_event_delta(snapshot.counters_for(sound_id), event_type, amount)
        snapshot.sounds[sound_id] = counters
        totals = apply_global_delta(snapshot.global_, event_type, amount)
        snapshot.global_ = totals.model_copy(update={"last_updated": self._clock()})
        self.store.write(snapshot)

        logger.info(
            "event=stat_recorded sound_id=%s type=%s amount=%s plays=%s downloads=%s favorites=%s",
            sound_id,
            event_type.value,
            amount,
            counters.plays,
            counters.downloads,
            counters.favorites,
        )
        return EventOutcome(stats=counters)
