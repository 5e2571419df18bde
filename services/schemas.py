# services/schemas.py
from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field

from models.error_log import ErrorLevel, ErrorService


class ErrorContext(BaseModel):
    url: str
    method: str
    user_agent: str | None = None
    ray_id: str | None = None
    request_id: str
    user_id: str | None = None
    additional_data: dict[str, Any] | None = None


class ErrorRecord(BaseModel):
    """저장 직전의 정규화된 에러 레코드"""

    timestamp: datetime
    level: ErrorLevel
    service: ErrorService
    message: str
    stack: str | None = None
    error_code: str | None = None
    context: ErrorContext
    fingerprint: str
    count: int = 1


class ErrorSummary(BaseModel):
    """목록 표시용 요약 (stack, additional_data 제외)"""

    id: int
    timestamp: datetime
    level: str
    service: str
    message: str
    error_code: str | None = None
    url: str
    method: str
    request_id: str
    fingerprint: str
    count: int

    class Config:
        from_attributes = True


class ErrorStats(BaseModel):
    total_errors: int = 0
    error_rate: float = 0.0  # 분당 에러 수
    critical_count: int = 0
    error_count: int = 0
    warn_count: int = 0
    recent_errors: list[ErrorSummary] = Field(default_factory=list)


class ErrorStatsResponse(ErrorStats):
    alert_threshold_exceeded: bool
    window_minutes: int


class ClientErrorReport(BaseModel):
    """POST /api/error-log 요청 바디"""

    level: ErrorLevel
    service: ErrorService
    message: str
    stack: str | None = None
    url: str
    userAgent: str | None = None
    additionalData: dict[str, Any] | None = None


class ErrorLogResponse(BaseModel):
    success: bool
    message: str
    request_id: str


class CleanupResponse(BaseModel):
    success: bool
    deleted_count: int
    retention_days: int
    timestamp: datetime
