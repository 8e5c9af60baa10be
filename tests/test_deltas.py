import pytest

from lockchime.core.deltas import apply_event_delta, apply_global_delta, apply_personal_delta
from lockchime.models import EventType, GlobalCounters, SoundCounters


def test_play_uses_amount_other_events_move_by_one():
    counters = SoundCounters()
    assert apply_event_delta(counters, EventType.PLAY, 5).plays == 5
    assert apply_event_delta(counters, EventType.DOWNLOAD, 5).downloads == 1
    assert apply_event_delta(counters, EventType.FAVORITE, 5).favorites == 1


def test_unfavorite_floors_at_zero():
    counters = SoundCounters(favorites=1)
    once = apply_event_delta(counters, EventType.UNFAVORITE)
    twice = apply_event_delta(once, EventType.UNFAVORITE)
    assert once.favorites == 0
    assert twice.favorites == 0

    totals = apply_global_delta(GlobalCounters(), "unfavorite")
    assert totals.total_favorites == 0


def test_inputs_are_not_mutated():
    counters = SoundCounters(plays=1, downloads=2, favorites=3)
    apply_event_delta(counters, EventType.PLAY)
    apply_event_delta(counters, EventType.UNFAVORITE)
    assert counters == SoundCounters(plays=1, downloads=2, favorites=3)

    totals = GlobalCounters(total_plays=4)
    apply_global_delta(totals, EventType.PLAY, 5)
    assert totals.total_plays == 4


def test_download_and_favorite_sequences_sum_exactly():
    events = ["download", "favorite", "download", "unfavorite", "favorite", "favorite", "download"]
    counters = SoundCounters()
    totals = GlobalCounters()
    for event in events:
        counters = apply_event_delta(counters, event)
        totals = apply_global_delta(totals, event)

    assert counters == SoundCounters(plays=0, downloads=3, favorites=2)
    assert (totals.total_downloads, totals.total_favorites) == (3, 2)


def test_personal_favorite_is_a_flag():
    counters = SoundCounters()
    counters = apply_personal_delta(counters, EventType.FAVORITE)
    counters = apply_personal_delta(counters, EventType.FAVORITE)
    assert counters.favorites == 1
    counters = apply_personal_delta(counters, EventType.UNFAVORITE)
    assert counters.favorites == 0
    counters = apply_personal_delta(counters, EventType.PLAY)
    counters = apply_personal_delta(counters, EventType.PLAY)
    assert counters.plays == 2


def test_unknown_event_raises():
    with pytest.raises(ValueError):
        apply_event_delta(SoundCounters(), "skip")
