# routers/health.py
import time
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse
from loguru import logger

from db_pipeline.error_log_store import ErrorRecordStore
from services.error_logger import EDGE_RAY_HEADER
from .dependencies import get_error_store

router = APIRouter(prefix="/api", tags=["health"])

VERSION = "1.0.0"


@router.get("/health")
def health(request: Request, store: ErrorRecordStore = Depends(get_error_store)):
    """
    DB 응답 여부를 확인. 정상이면 200, DB 장애면 503.
    """
    started = time.perf_counter()
    checks = []
    overall = "healthy"

    try:
        db_start = time.perf_counter()
        ok = store.ping()
        latency_ms = int((time.perf_counter() - db_start) * 1000)
        if ok:
            checks.append({
                "service": "database",
                "status": "healthy",
                "latency_ms": latency_ms,
                "message": "Database responding normally",
            })
        else:
            checks.append({
                "service": "database",
                "status": "degraded",
                "latency_ms": latency_ms,
                "message": "Database returned unexpected result",
            })
            overall = "degraded"
    except Exception as e:
        logger.warning(f"[health] database check failed: {e}")
        checks.append({
            "service": "database",
            "status": "unhealthy",
            "message": "Database unreachable",
        })
        overall = "unhealthy"

    checks.append({
        "service": "worker",
        "status": "healthy",
        "latency_ms": int((time.perf_counter() - started) * 1000),
        "message": "Worker executing normally",
    })

    ray_id = request.headers.get(EDGE_RAY_HEADER) or "unknown"
    return JSONResponse(
        status_code=503 if overall == "unhealthy" else 200,
        content={
            "status": overall,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": VERSION,
            "region": ray_id.split("-")[-1],
            "checks": checks,
        },
        headers={"Cache-Control": "no-cache, no-store, must-revalidate"},
    )


@router.head("/health")
def health_head(store: ErrorRecordStore = Depends(get_error_store)):
    try:
        store.ping()
    except Exception:
        return Response(status_code=503)
    return Response(status_code=200)
