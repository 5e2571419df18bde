# routers/dependencies.py
from fastapi import Depends

from db_module.connect_sqlalchemy_engine import get_session_factory
from db_pipeline.error_log_store import ErrorRecordStore
from services.error_logger import ErrorLogger


def get_error_store() -> ErrorRecordStore:
    return ErrorRecordStore(get_session_factory())


def get_error_logger(store: ErrorRecordStore = Depends(get_error_store)) -> ErrorLogger:
    return ErrorLogger(store)
