import os
from dotenv import load_dotenv

load_dotenv()

# "auto" prefers Redis when REDIS_URL answers, otherwise the SQL table.
STATS_BACKEND = os.getenv("STATS_BACKEND", "auto").lower()
REDIS_URL = os.getenv("REDIS_URL", "")
DB_URL = os.getenv("DB_URL", "sqlite:///./stats.db")
STATS_KEY = os.getenv("STATS_KEY", "stats:_all")

DB_CONNECT_ARGS = {"check_same_thread": False} if DB_URL.startswith("sqlite") else {}

PLAY_SAMPLE_RATE = min(1.0, max(0.01, float(os.getenv("PLAY_SAMPLE_RATE", "0.2"))))
CORS_ORIGINS = os.getenv("CORS_ORIGINS", "*")
RATE_LIMIT_PER_MINUTE = int(os.getenv("RATE_LIMIT_PER_MINUTE", "120"))
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# Client side
STATS_API_URL = os.getenv("STATS_API_URL", "http://localhost:8000")
FLUSH_DEBOUNCE_SECONDS = float(os.getenv("FLUSH_DEBOUNCE_SECONDS", "1.0"))
REFRESH_INTERVAL_SECONDS = int(os.getenv("REFRESH_INTERVAL_SECONDS", "0"))
LOCAL_STATE_PATH = os.getenv(
    "LOCAL_STATE_PATH", os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "local_state.json"))
)
