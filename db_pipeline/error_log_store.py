# db_pipeline/error_log_store.py
from __future__ import annotations

from datetime import datetime, timezone

from loguru import logger
from sqlalchemy import delete, desc, func, select, text, update
from sqlalchemy.dialects import mysql, postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from models.error_log import ErrorLog
from services.schemas import ErrorRecord, ErrorSummary

RECENT_ERRORS_LIMIT = 50
UPSERT_MAX_ATTEMPTS = 3


class ErrorStoreError(RuntimeError):
    """에러 로그 저장소 작업 실패"""


def _as_utc(dt: datetime) -> datetime:
    # SQLite 는 tzinfo 없이 돌려준다. 저장 값은 항상 UTC.
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def _row_values(record: ErrorRecord) -> dict:
    ctx = record.context
    return {
        "timestamp": record.timestamp,
        "level": record.level.value,
        "service": record.service.value,
        "message": record.message,
        "stack": record.stack,
        "error_code": record.error_code,
        "url": ctx.url,
        "method": ctx.method,
        "user_agent": ctx.user_agent,
        "ray_id": ctx.ray_id,
        "request_id": ctx.request_id,
        "user_id": ctx.user_id,
        "additional_data": ctx.additional_data or {},
        "fingerprint": record.fingerprint,
        "count": 1,
        "last_seen": record.timestamp,
    }


class ErrorRecordStore:
    """
    error_logs 테이블 접근 계층.

    upsert 는 DB 의 충돌 처리 구문(ON CONFLICT / ON DUPLICATE KEY)으로
    한 번에 처리한다. 여러 프로세스가 동시에 같은 키를 써도 애플리케이션
    락 없이 count 가 정확히 증가한다.
    """

    def __init__(self, session_factory: sessionmaker[Session]):
        self.session_factory = session_factory

    # =========================================================
    #   UPSERT
    # =========================================================
    def upsert(self, record: ErrorRecord) -> None:
        values = _row_values(record)
        try:
            with self.session_factory() as session:
                dialect = session.get_bind().dialect.name
            stmt = self._conflict_insert(dialect, values)
            if stmt is None:
                self._upsert_with_retry(values)
                return
            with self.session_factory() as session, session.begin():
                session.execute(stmt)
        except SQLAlchemyError as e:
            raise ErrorStoreError(f"error log upsert failed: {e}") from e

    @staticmethod
    def _conflict_insert(dialect: str, values: dict):
        table = ErrorLog.__table__
        if dialect in ("postgresql", "sqlite"):
            insert = postgresql.insert if dialect == "postgresql" else sqlite.insert
            return (
                insert(ErrorLog)
                .values(**values)
                .on_conflict_do_update(
                    index_elements=["fingerprint", "timestamp"],
                    set_={
                        "count": table.c["count"] + 1,
                        "last_seen": func.now(),
                    },
                )
            )
        if dialect in ("mysql", "mariadb"):
            return (
                mysql.insert(ErrorLog)
                .values(**values)
                .on_duplicate_key_update(
                    count=table.c["count"] + 1,
                    last_seen=func.now(),
                )
            )
        return None

    def _upsert_with_retry(self, values: dict) -> None:
        """
        충돌 처리 구문이 없는 DB 용. UPDATE → INSERT 순서로 시도하고
        동시 INSERT 로 IntegrityError 가 나면 정해진 횟수만 재시도.
        """
        for attempt in range(1, UPSERT_MAX_ATTEMPTS + 1):
            try:
                with self.session_factory() as session, session.begin():
                    result = session.execute(
                        update(ErrorLog)
                        .where(
                            ErrorLog.fingerprint == values["fingerprint"],
                            ErrorLog.timestamp == values["timestamp"],
                        )
                        .values(count=ErrorLog.count + 1, last_seen=func.now())
                    )
                    if result.rowcount == 0:
                        session.add(ErrorLog(**values))
                return
            except IntegrityError:
                logger.warning(
                    f"[error-store] upsert conflict on {values['fingerprint']} "
                    f"(attempt {attempt}/{UPSERT_MAX_ATTEMPTS})"
                )
        raise ErrorStoreError(
            f"upsert gave up after {UPSERT_MAX_ATTEMPTS} attempts: {values['fingerprint']}"
        )

    # =========================================================
    #   조회 / 삭제
    # =========================================================
    def query_window(self, since: datetime) -> tuple[dict[str, int], list[ErrorSummary]]:
        """
        since 이후 레코드의 level 별 합계와 최근 50건 요약을 반환.
        """
        try:
            with self.session_factory() as session:
                rows = session.execute(
                    select(ErrorLog.level, func.sum(ErrorLog.count))
                    .where(ErrorLog.timestamp >= since)
                    .group_by(ErrorLog.level)
                ).all()
                counts = {level: int(total or 0) for level, total in rows}

                recent_rows = session.execute(
                    select(ErrorLog)
                    .where(ErrorLog.timestamp >= since)
                    .order_by(desc(ErrorLog.timestamp), desc(ErrorLog.id))
                    .limit(RECENT_ERRORS_LIMIT)
                ).scalars().all()
                recent = []
                for row in recent_rows:
                    summary = ErrorSummary.model_validate(row)
                    summary.timestamp = _as_utc(summary.timestamp)
                    recent.append(summary)
        except SQLAlchemyError as e:
            raise ErrorStoreError(f"error log query failed: {e}") from e
        return counts, recent

    def purge_older_than(self, cutoff: datetime) -> int:
        try:
            with self.session_factory() as session, session.begin():
                result = session.execute(
                    delete(ErrorLog).where(ErrorLog.timestamp < cutoff)
                )
                deleted = result.rowcount or 0
        except SQLAlchemyError as e:
            raise ErrorStoreError(f"error log purge failed: {e}") from e
        logger.info(f"[error-store] purged {deleted} rows older than {cutoff.isoformat()}")
        return deleted

    def ping(self) -> bool:
        try:
            with self.session_factory() as session:
                return session.execute(text("SELECT 1")).scalar() == 1
        except SQLAlchemyError as e:
            raise ErrorStoreError(f"error log store unreachable: {e}") from e
