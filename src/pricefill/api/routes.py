"""JSON API endpoints for historical price lookups."""

from __future__ import annotations

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse

from pricefill.logging import get_logger
from pricefill.models import FailureKind

log = get_logger(__name__)

router = APIRouter()

_FAILURE_STATUS: dict[FailureKind, int] = {
    FailureKind.INVALID_INPUT: 422,
    FailureKind.FUTURE_INSTANT: 422,
    FailureKind.RATE_LIMIT_BUSY: 503,
    FailureKind.NO_DATA: 404,
}


@router.get("/price")
async def get_price(
    request: Request,
    token: str = Query(..., min_length=1),
    date: str = Query(..., description="Local time as YYYY-MM-DD HH:MM:SS"),
    tz: str = Query("UTC"),
    target: str = Query("high"),
) -> JSONResponse:
    """Resolve one token's high or low USD price at a local date and timezone.

    Concurrent requests share the app's single rate limiter and cache.
    """
    orchestrator = request.app.state.orchestrator
    if orchestrator is None:
        return JSONResponse(
            status_code=503,
            content={"error": "unavailable", "message": "Resolver not initialized"},
        )

    result = await orchestrator.resolve_price(token, date, tz, target)

    if result.failure is not None:
        log.info(
            "price_request_failed",
            token=token,
            date=date,
            tz=tz,
            target=target,
            failure=result.failure.value,
        )
        return JSONResponse(
            status_code=_FAILURE_STATUS[result.failure],
            content={"error": result.failure.value, "message": result.message},
        )

    return JSONResponse(
        content={
            "token": token.lower(),
            "date": date,
            "tz": tz.upper(),
            "target": target.lower(),
            "price": str(result.price),
            "source": result.source,
        }
    )
