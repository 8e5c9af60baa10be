"""Counter arithmetic shared by the aggregation service and the client recorder.

Both sides must move counters identically, so the increment rules live here
and nowhere else. None of these functions mutate their inputs.
"""

from __future__ import annotations

from lockchime.models import EventType, GlobalCounters, SoundCounters


def apply_event_delta(counters: SoundCounters, event: EventType, amount: int = 1) -> SoundCounters:
    """Return a copy of ``counters`` with ``event`` applied ``amount`` times.

    ``amount`` only scales plays (sampling compensation); downloads and
    favorites always move by one. Favorites never drop below zero.
    """
    event = EventType(event)
    if event is EventType.PLAY:
        return counters.model_copy(update={"plays": counters.plays + amount})
    if event is EventType.DOWNLOAD:
        return counters.model_copy(update={"downloads": counters.downloads + 1})
    if event is EventType.FAVORITE:
        return counters.model_copy(update={"favorites": counters.favorites + 1})
    return counters.model_copy(update={"favorites": max(0, counters.favorites - 1)})


def apply_global_delta(totals: GlobalCounters, event: EventType, amount: int = 1) -> GlobalCounters:
    event = EventType(event)
    if event is EventType.PLAY:
        return totals.model_copy(update={"total_plays": totals.total_plays + amount})
    if event is EventType.DOWNLOAD:
        return totals.model_copy(update={"total_downloads": totals.total_downloads + 1})
    if event is EventType.FAVORITE:
        return totals.model_copy(update={"total_favorites": totals.total_favorites + 1})
    return totals.model_copy(update={"total_favorites": max(0, totals.total_favorites - 1)})


def apply_personal_delta(counters: SoundCounters, event: EventType) -> SoundCounters:
    """Personal favorites are a flag (0/1), everything else counts every call."""
    event = EventType(event)
    if event is EventType.FAVORITE:
        return counters.model_copy(update={"favorites": 1})
    if event is EventType.UNFAVORITE:
        return counters.model_copy(update={"favorites": 0})
    return apply_event_delta(counters, event)
