from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse

from lockchime.config import RATE_LIMIT_PER_MINUTE
from lockchime.core.exceptions import InvalidEventError, StorageError
from lockchime.core.metrics import metrics
from lockchime.core.rate_limit import RateLimiter
from lockchime.models import EventRequest
from lockchime.services.aggregation import AggregationService
from lockchime.store import build_counter_store

router = APIRouter()

logger = logging.getLogger("lockchime")

rate_limiter = RateLimiter(RATE_LIMIT_PER_MINUTE)

_service: AggregationService | None = None


def get_aggregation_service() -> AggregationService:
    global _service
    if _service is None:
        _service = AggregationService(build_counter_store())
    return _service


async def enforce_rate_limit(request: Request):
    client = request.client.host if request.client else "unknown"
    allowed, retry_after = rate_limiter.hit(client)
    if not allowed:
        logger.warning("event=rate_limited client=%s retry_after=%s", client, retry_after)
        raise HTTPException(
            status_code=429,
            detail=f"Rate limit exceeded. Try again in {retry_after} seconds.",
            headers={"Retry-After": str(retry_after)},
        )


@router.get("/api/stats")
def read_stats(sound: Optional[str] = None, service: AggregationService = Depends(get_aggregation_service)):
    if sound:
        return service.read_sound(sound).model_dump()
    return service.read_all()


@router.post("/api/stats", dependencies=[Depends(enforce_rate_limit)])
def record_stat(body: EventRequest, service: AggregationService = Depends(get_aggregation_service)):
    metrics.record_received()
    try:
        outcome = service.apply_event(body.sound_id, body.event)
    except InvalidEventError:
        metrics.record_rejected()
        raise
    except StorageError:
        metrics.record_storage_failure()
        raise

    if outcome.sampled:
        metrics.record_sampled_out()
    else:
        metrics.record_recorded()
    return outcome.to_response()


@router.get("/metrics")
def metrics_snapshot():
    response = JSONResponse(metrics.snapshot())
    response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate"
    return response


@router.get("/health")
def health(service: AggregationService = Depends(get_aggregation_service)):
    return {"status": "ok", "backend": service.store.name}
