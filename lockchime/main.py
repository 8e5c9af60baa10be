import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from lockchime.api.routes import router
from lockchime.config import CORS_ORIGINS, LOG_LEVEL
from lockchime.core.exceptions import register_exception_handlers

app = FastAPI(title="Lock Chime Stats API", version="1.0.0")

logging.basicConfig(level=getattr(logging, LOG_LEVEL, logging.INFO))
logger = logging.getLogger("lockchime")

origins = [origin.strip() for origin in CORS_ORIGINS.split(",")]
app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
)

app.include_router(router)
register_exception_handlers(app)

if __name__ == "__main__":
    import uvicorn

    uvicorn.run("lockchime.main:app", host="0.0.0.0", port=8000)
