# main.py
from contextlib import asynccontextmanager

from fastapi import FastAPI
from loguru import logger

from db_module.connect_sqlalchemy_engine import dispose_engine
from initial_settings.ensure_error_log_table import ensure_error_log_table
from routers import error_log, errors, health

import models  # noqa: F401 (모델 로딩용)


@asynccontextmanager
async def lifespan(app: FastAPI):
    ensure_error_log_table()
    yield
    # 종료 시 커넥션 풀 반납
    dispose_engine()
    logger.info("[app] shutdown complete")


app = FastAPI(title="Error telemetry backend", lifespan=lifespan)

# CORS 는 각 엔드포인트에서 직접 헤더를 붙인다 (preflight 204 응답 포함)

# 라우터 등록
app.include_router(error_log.router)
app.include_router(errors.router)
app.include_router(health.router)


@app.get("/")
def root():
    return {"msg": "Error telemetry backend"}


if __name__ == "__main__":
    import os

    import uvicorn

    uvicorn.run(app, host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", "8000")))
