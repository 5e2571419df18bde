# db_module/connect_sqlalchemy_engine.py
from __future__ import annotations

import os

from loguru import logger
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./error_logs.db")
DB_POOL_SIZE = int(os.getenv("DB_POOL_SIZE", "5"))
DB_ECHO = os.getenv("DB_ECHO", "false").lower() == "true"

# 프로세스 단위 전역 리소스 (인스턴스 간 공유되지 않음)
_engine: Engine | None = None
_session_factory: sessionmaker[Session] | None = None

def get_engine() -> Engine:
    """
    엔진을 최초 호출 시점에 생성(lazy init)해서 반환.
    """
    global _engine
    if _engine is None:
        kwargs: dict = {"echo": DB_ECHO, "pool_pre_ping": True}
        if DATABASE_URL.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
        else:
            kwargs["pool_size"] = DB_POOL_SIZE
        _engine = create_engine(DATABASE_URL, **kwargs)
        logger.info(f"[db] engine created ({_engine.dialect.name})")
    return _engine

def get_session_factory() -> sessionmaker[Session]:
    global _session_factory
    if _session_factory is None:
        _session_factory = sessionmaker(
            bind=get_engine(), autoflush=False, expire_on_commit=False
        )
    return _session_factory

def dispose_engine() -> None:
    """
    커넥션 풀 반납. 앱 종료(lifespan shutdown) 시 호출.
    """
    global _engine, _session_factory
    if _engine is not None:
        _engine.dispose()
        logger.info("[db] engine disposed")
    _engine = None
    _session_factory = None
