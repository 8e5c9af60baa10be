import importlib
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from lockchime.client.api import StatsClient
from lockchime.client.local_state import LocalState
from lockchime.client.recorder import EventRecorder


class ManualScheduler:
    running = False

    def start(self):
        self.running = True

    def add_job(self, *args, **kwargs):
        pass

    def get_job(self, job_id):
        return None

    def shutdown(self, wait=True):
        self.running = False


def _prepare_client(tmp_path, monkeypatch):
    project_root = Path(__file__).resolve().parents[1]
    project_root_str = str(project_root)
    if project_root_str not in sys.path:
        sys.path.insert(0, project_root_str)

    monkeypatch.setenv("DB_URL", f"sqlite:///{tmp_path / 'test.db'}")
    monkeypatch.setenv("STATS_BACKEND", "memory")
    monkeypatch.setenv("REDIS_URL", "")
    monkeypatch.setenv("RATE_LIMIT_PER_MINUTE", "100")
    monkeypatch.setenv("PLAY_SAMPLE_RATE", "1")

    module_order = [
        "lockchime.config",
        "lockchime.core.metrics",
        "lockchime.core.rate_limit",
        "lockchime.db",
        "lockchime.store",
        "lockchime.services.aggregation",
        "lockchime.api.routes",
        "lockchime.main",
    ]
    for module_name in module_order:
        module = importlib.import_module(module_name)
        importlib.reload(module)

    return TestClient(sys.modules["lockchime.main"].app)


@pytest.fixture
def http(tmp_path, monkeypatch):
    with _prepare_client(tmp_path, monkeypatch) as c:
        yield c


def test_stats_client_against_app(http):
    client = StatsClient(http=http)
    assert client.fetch_stats().sounds == {}

    assert client.send_event("nintendo_mario-coin", "download")["stats"]["downloads"] == 1
    assert client.fetch_sound("nintendo_mario-coin").downloads == 1
    snapshot = client.fetch_stats()
    assert snapshot.global_.total_downloads == 1


def test_recorder_end_to_end(http):
    recorder = EventRecorder(StatsClient(http=http), LocalState(), scheduler=ManualScheduler())
    recorder.start()

    recorder.record_play("x")
    recorder.record_play("x")
    recorder.record_favorite("x", True)
    recorder.record_favorite("x", False)
    recorder.record_favorite("x", False)
    recorder.close()

    recorder.refresh()
    assert recorder.worldwide.sounds["x"].plays == 1
    assert recorder.worldwide.sounds["x"].favorites == 0
    assert recorder.personal["x"].plays == 2


def test_server_errors_are_dropped_by_recorder(http):
    recorder = EventRecorder(StatsClient(http=http), LocalState(), scheduler=ManualScheduler())
    recorder.record_download("x")

    routes = sys.modules["lockchime.api.routes"]
    from lockchime.core.exceptions import StorageError

    class Broken:
        def apply_event(self, sound_id, event):
            raise StorageError("kv down")

    http.app.dependency_overrides[routes.get_aggregation_service] = lambda: Broken()
    assert recorder.flush() == 0
    assert recorder.pending == []
