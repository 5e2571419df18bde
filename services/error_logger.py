# services/error_logger.py
"""
서버 측 에러 로깅 파사드.

log_error 는 절대 예외를 밖으로 던지지 않는다. 저장에 실패하면 loguru 로만
남기고 끝낸다. 반대로 통계/정리(get_error_stats, cleanup_old_logs)는
관리용 경로라서 실패를 그대로 올려보낸다.
"""
from __future__ import annotations

import os
import secrets
import time
import traceback
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Mapping

from loguru import logger

from db_pipeline.error_log_store import ErrorRecordStore
from models.error_log import ErrorLevel, ErrorService
from services.fingerprint import first_stack_line, fingerprint
from services.schemas import ErrorContext, ErrorRecord, ErrorStats

DEFAULT_RETENTION_DAYS = int(os.getenv("ERROR_RETENTION_DAYS", "30"))
EDGE_RAY_HEADER = os.getenv("EDGE_RAY_HEADER", "cf-ray")

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


class ReportedError(Exception):
    """
    클라이언트가 보낸 message/stack 으로 다시 만든 에러.
    """

    def __init__(self, message: str, stack: str | None = None, error_code: str = "Error"):
        super().__init__(message)
        self.stack = stack
        self.error_code = error_code


def _utc_bucket() -> datetime:
    # 밀리초 단위로 자른 현재 시각이 중복 집계 단위
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)


def generate_request_id() -> str:
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"req_{int(time.time() * 1000)}_{suffix}"


def _extract_stack(error: Any) -> str | None:
    stack = getattr(error, "stack", None)
    if isinstance(stack, str) and stack:
        return stack
    if isinstance(error, BaseException):
        return "".join(traceback.format_exception(type(error), error, error.__traceback__))
    return None


def _extract_error_code(error: Any) -> str | None:
    if not isinstance(error, BaseException):
        return None
    code = getattr(error, "error_code", None)
    if isinstance(code, str) and code:
        return code
    return type(error).__name__


def extract_error_context(request) -> dict[str, Any]:
    """Starlette Request 에서 에러 컨텍스트 추출"""
    headers = request.headers
    return {
        "url": str(request.url),
        "method": request.method,
        "user_agent": headers.get("user-agent"),
        "ray_id": headers.get(EDGE_RAY_HEADER),
        "request_id": headers.get("x-request-id") or str(uuid.uuid4()),
    }


def determine_error_level(error: Any) -> ErrorLevel:
    """예외 클래스 이름으로 심각도 추정"""
    if isinstance(error, BaseException):
        name = type(error).__name__.lower()
        if any(k in name for k in ("database", "auth", "payment", "fatal")):
            return ErrorLevel.CRITICAL
        if any(k in name for k in ("validation", "timeout", "abort")):
            return ErrorLevel.WARN
    return ErrorLevel.ERROR


class ErrorLogger:
    def __init__(self, store: ErrorRecordStore, retention_days: int = DEFAULT_RETENTION_DAYS):
        self.store = store
        self.retention_days = retention_days

    def build_record(
        self,
        level: ErrorLevel | str,
        message: str,
        error: Any = None,
        context: Mapping[str, Any] | None = None,
        service: ErrorService | str = ErrorService.WORKER,
    ) -> ErrorRecord:
        ctx = dict(context or {})
        raw_url = ctx.get("url") or ""
        stack = _extract_stack(error)
        error_code = _extract_error_code(error)

        return ErrorRecord(
            timestamp=_utc_bucket(),
            level=ErrorLevel(level),
            service=ErrorService(service),
            message=message,
            stack=stack,
            error_code=error_code,
            context=ErrorContext(
                url=raw_url or "unknown",
                method=ctx.get("method") or "unknown",
                user_agent=ctx.get("user_agent"),
                ray_id=ctx.get("ray_id"),
                request_id=ctx.get("request_id") or generate_request_id(),
                user_id=ctx.get("user_id"),
                additional_data=ctx.get("additional_data"),
            ),
            fingerprint=fingerprint(message, error_code, raw_url, first_stack_line(stack)),
        )

    def log_error(
        self,
        level: ErrorLevel | str,
        message: str,
        error: Any = None,
        context: Mapping[str, Any] | None = None,
        service: ErrorService | str = ErrorService.WORKER,
    ) -> None:
        try:
            record = self.build_record(level, message, error, context, service)
            self.store.upsert(record)
        except Exception as log_exc:
            # 로깅 실패가 애플리케이션 실패가 되면 안 된다
            logger.error(f"[error-logger] error logging failed: {log_exc!r}")
            logger.error(
                f"[error-logger] original error: level={level} message={message!r} "
                f"error={error!r} context={context!r}"
            )

    # =========================================================
    #   관리용 (실패 시 예외 전파)
    # =========================================================
    def get_error_stats(self, window_minutes: int = 60) -> ErrorStats:
        since = datetime.now(timezone.utc) - timedelta(minutes=window_minutes)
        counts, recent = self.store.query_window(since)

        total = sum(counts.values())
        return ErrorStats(
            total_errors=total,
            error_rate=round(total / window_minutes, 2),
            critical_count=counts.get(ErrorLevel.CRITICAL.value, 0),
            error_count=counts.get(ErrorLevel.ERROR.value, 0),
            warn_count=counts.get(ErrorLevel.WARN.value, 0),
            recent_errors=recent,
        )

    def check_error_rate_threshold(
        self, threshold_percent: float = 1.0, window_minutes: int = 5
    ) -> bool:
        """
        분당 에러 수가 threshold 를 넘는지 확인.
        전체 요청 수를 따로 집계하지 않으므로 실제로는 '%'가 아니라
        분당 절대값 비교다.
        """
        stats = self.get_error_stats(window_minutes)
        return stats.error_rate > threshold_percent

    def cleanup_old_logs(self) -> int:
        cutoff = datetime.now(timezone.utc) - timedelta(days=self.retention_days)
        return self.store.purge_older_than(cutoff)
