# celery_task/maintenance_task.py
from loguru import logger

from db_module.connect_sqlalchemy_engine import get_session_factory
from db_pipeline.error_log_store import ErrorRecordStore
from services.error_logger import ErrorLogger

from . import celery_app


@celery_app.task(name="errors.cleanup_old_logs")
def cleanup_old_logs() -> int:
    """
    보관기간(ERROR_RETENTION_DAYS)이 지난 에러 로그 삭제.
    실패는 그대로 raise 해서 Celery 결과에 FAILURE 로 남긴다.
    """
    error_logger = ErrorLogger(ErrorRecordStore(get_session_factory()))
    deleted = error_logger.cleanup_old_logs()
    logger.info(
        f"[cleanup] deleted {deleted} error logs "
        f"(retention {error_logger.retention_days} days)"
    )
    return deleted
