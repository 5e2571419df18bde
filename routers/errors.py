# routers/errors.py
import os
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query, Response
from fastapi.responses import JSONResponse
from loguru import logger

from auth.auth import verify_cleanup_key
from services.error_logger import ErrorLogger
from services.schemas import CleanupResponse, ErrorStatsResponse
from .dependencies import get_error_logger

router = APIRouter(prefix="/api/errors", tags=["errors"])

DEFAULT_WINDOW_MINUTES = 60
MAX_WINDOW_MINUTES = 1440
ALERT_THRESHOLD = float(os.getenv("ERROR_ALERT_THRESHOLD", "1.0"))

NO_STORE = "no-cache, no-store, must-revalidate"


def _parse_minutes(raw: str | None) -> int | None:
    if raw is None or raw.strip() == "":
        return DEFAULT_WINDOW_MINUTES
    raw = raw.strip()
    # int() 자릿수 제한(4300)을 넘는 큰 값도 최대값으로 clamp
    if raw.isascii() and raw.isdigit() and len(raw.lstrip("0")) > 4:
        return MAX_WINDOW_MINUTES
    try:
        minutes = int(raw)
    except ValueError:
        return None
    if minutes < 1:
        return None
    return min(minutes, MAX_WINDOW_MINUTES)


# ===============================
#   GET /api/errors/stats
# ===============================
@router.get("/stats", response_model=ErrorStatsResponse)
def get_error_stats(
    minutes: str | None = Query(None),
    error_logger: ErrorLogger = Depends(get_error_logger),
):
    """
    최근 minutes 분 동안의 에러 통계 + 알림 임계치 초과 여부.
    """
    window = _parse_minutes(minutes)
    if window is None:
        return JSONResponse(
            status_code=400,
            content={"error": "Invalid minutes parameter. Must be a positive integer."},
        )

    try:
        stats = error_logger.get_error_stats(window)
        exceeded = error_logger.check_error_rate_threshold(ALERT_THRESHOLD, window)
    except Exception:
        logger.exception("[errors] stats endpoint failed")
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    body = ErrorStatsResponse(
        **stats.model_dump(),
        alert_threshold_exceeded=exceeded,
        window_minutes=window,
    )
    return JSONResponse(
        status_code=200,
        content=body.model_dump(mode="json"),
        headers={
            "Cache-Control": NO_STORE,
            "Access-Control-Allow-Origin": "*",
        },
    )


@router.options("/stats")
def options_error_stats():
    return Response(
        status_code=204,
        headers={
            "Access-Control-Allow-Origin": "*",
            "Access-Control-Allow-Methods": "GET, OPTIONS",
            "Access-Control-Allow-Headers": "Content-Type",
            "Access-Control-Max-Age": "86400",
        },
    )


# ===============================
#   POST /api/errors/cleanup
# ===============================
@router.post(
    "/cleanup",
    response_model=CleanupResponse,
    dependencies=[Depends(verify_cleanup_key)],
)
def cleanup_error_logs(error_logger: ErrorLogger = Depends(get_error_logger)):
    """보관 기간이 지난 에러 로그 삭제 (스케줄러/운영자 호출용)"""
    try:
        deleted = error_logger.cleanup_old_logs()
    except Exception:
        logger.exception("[cleanup] cleanup endpoint failed")
        return JSONResponse(
            status_code=500,
            content={"success": False, "error": "Internal server error"},
        )

    logger.info(f"[cleanup] deleted {deleted} error logs")
    body = CleanupResponse(
        success=True,
        deleted_count=deleted,
        retention_days=error_logger.retention_days,
        timestamp=datetime.now(timezone.utc),
    )
    return JSONResponse(
        status_code=200,
        content=body.model_dump(mode="json"),
        headers={"Cache-Control": NO_STORE},
    )
