from __future__ import annotations

import httpx

from lockchime.config import STATS_API_URL
from lockchime.models import AggregateSnapshot, EventType, SoundCounters

STATS_PATH = "/api/stats"


class StatsClient:
    """Thin httpx wrapper around the stats endpoints.

    Pass ``http`` to reuse an existing client (a FastAPI ``TestClient`` works,
    it is an ``httpx.Client``). Errors surface as ``httpx.HTTPError``.
    """

    def __init__(self, base_url: str = STATS_API_URL, http: httpx.Client | None = None, timeout: float = 10.0):
        self._owns_http = http is None
        self._http = http or httpx.Client(base_url=base_url, timeout=timeout)

    def fetch_stats(self) -> AggregateSnapshot:
        response = self._http.get(STATS_PATH)
        response.raise_for_status()
        data = response.json()
        return AggregateSnapshot.model_validate({"sounds": data.get("top") or {}, "global": data.get("global") or {}})

    def fetch_sound(self, sound_id: str) -> SoundCounters:
        response = self._http.get(STATS_PATH, params={"sound": sound_id})
        response.raise_for_status()
        return SoundCounters.model_validate(response.json())

    def send_event(self, sound_id: str, event: EventType | str) -> dict:
        response = self._http.post(STATS_PATH, json={"soundId": sound_id, "event": EventType(event).value})
        response.raise_for_status()
        return response.json()

    def close(self) -> None:
        if self._owns_http:
            self._http.close()
