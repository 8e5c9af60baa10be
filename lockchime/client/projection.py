from __future__ import annotations

from typing import List, Mapping, NamedTuple

from lockchime.client.recorder import PERSONAL, EventRecorder
from lockchime.models import GlobalCounters, SoundCounters


class RankedSound(NamedTuple):
    sound_id: str
    stats: SoundCounters


def _rank(source: Mapping[str, SoundCounters], field: str, limit: int) -> List[RankedSound]:
    ranked = [RankedSound(sound_id, stats) for sound_id, stats in source.items() if getattr(stats, field) > 0]
    ranked.sort(key=lambda item: (-getattr(item.stats, field), item.sound_id))
    return ranked[: max(limit, 0)]


def top_by_plays(source: Mapping[str, SoundCounters], limit: int = 10) -> List[RankedSound]:
    return _rank(source, "plays", limit)


def top_by_favorites(source: Mapping[str, SoundCounters], limit: int = 10) -> List[RankedSound]:
    return _rank(source, "favorites", limit)


def personal_totals(mirror: Mapping[str, SoundCounters]) -> GlobalCounters:
    return GlobalCounters(
        total_plays=sum(s.plays for s in mirror.values()),
        total_downloads=sum(s.downloads for s in mirror.values()),
        total_favorites=sum(s.favorites for s in mirror.values()),
    )


class StatsView:
    """Mode-aware read side over a recorder's personal and worldwide counters."""

    def __init__(self, recorder: EventRecorder) -> None:
        self.recorder = recorder

    @property
    def source(self) -> Mapping[str, SoundCounters]:
        if self.recorder.mode == PERSONAL:
            return self.recorder.personal
        worldwide = self.recorder.worldwide
        return worldwide.sounds if worldwide is not None else {}

    def _counters(self, sound_id: str) -> SoundCounters:
        return self.source.get(sound_id) or SoundCounters()

    def play_count(self, sound_id: str) -> int:
        return self._counters(sound_id).plays

    def download_count(self, sound_id: str) -> int:
        return self._counters(sound_id).downloads

    def favorite_count(self, sound_id: str) -> int:
        return self._counters(sound_id).favorites

    def top_sounds(self, limit: int = 10) -> List[RankedSound]:
        return top_by_plays(self.source, limit)

    def top_favorited(self, limit: int = 10) -> List[RankedSound]:
        return top_by_favorites(self.source, limit)

    def global_stats(self) -> GlobalCounters:
        if self.recorder.mode == PERSONAL:
            return personal_totals(self.recorder.personal)
        worldwide = self.recorder.worldwide
        return worldwide.global_ if worldwide is not None else GlobalCounters()
