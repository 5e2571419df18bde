# models/error_log.py
from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import (
    JSON,
    TIMESTAMP,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class ErrorLevel(str, Enum):
    """
    에러 심각도. 아래로 갈수록 낮은 단계.
    """

    CRITICAL = "critical"
    ERROR = "error"
    WARN = "warn"
    INFO = "info"

    @property
    def severity(self) -> int:
        return _SEVERITY[self]


_SEVERITY = {
    ErrorLevel.CRITICAL: 3,
    ErrorLevel.ERROR: 2,
    ErrorLevel.WARN: 1,
    ErrorLevel.INFO: 0,
}


class ErrorService(str, Enum):
    """에러 발생 위치 분류"""

    WORKER = "worker"
    FRONTEND = "frontend"
    DATA_STORE = "data-store"
    OBJECT_STORE = "object-store"
    EXTERNAL_API = "external-api"


class ErrorLog(Base):
    """
    error_logs 테이블.
    (fingerprint, timestamp) 조합이 같으면 새 row 대신 count 가 증가한다.
    """

    __tablename__ = "error_logs"
    __table_args__ = (
        UniqueConstraint("fingerprint", "timestamp", name="uq_error_logs_fingerprint_timestamp"),
        Index("ix_error_logs_timestamp", "timestamp"),
        Index("ix_error_logs_fingerprint", "fingerprint"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    timestamp: Mapped[datetime] = mapped_column(TIMESTAMP(timezone=True), nullable=False)

    level: Mapped[str] = mapped_column(String(16), nullable=False)
    service: Mapped[str] = mapped_column(String(32), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    stack: Mapped[str | None] = mapped_column(Text, nullable=True)
    error_code: Mapped[str | None] = mapped_column(String(128), nullable=True)

    # 요청 컨텍스트
    url: Mapped[str] = mapped_column(Text, nullable=False)
    method: Mapped[str] = mapped_column(String(16), nullable=False)
    user_agent: Mapped[str | None] = mapped_column(Text, nullable=True)
    ray_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    request_id: Mapped[str] = mapped_column(String(64), nullable=False)
    user_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    additional_data: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    fingerprint: Mapped[str] = mapped_column(String(32), nullable=False)
    count: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")
    last_seen: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, server_default=func.now()
    )
