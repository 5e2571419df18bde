# routers/error_log.py
"""
POST /api/error-log

브라우저/클라이언트 라이브러리에서 보낸 에러 리포트를 받아 저장.
검증 실패는 400, 그 외 예상 못한 실패는 500 (원인은 응답에 노출하지 않음).
"""
from typing import Any

from fastapi import APIRouter, Depends, Request, Response
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import ValidationError
from starlette.concurrency import run_in_threadpool

from models.error_log import ErrorLevel, ErrorService
from services.error_logger import ErrorLogger, ReportedError, extract_error_context
from services.schemas import ClientErrorReport, ErrorLogResponse
from .dependencies import get_error_logger

router = APIRouter(prefix="/api", tags=["error-log"])

REQUIRED_FIELDS = ("level", "service", "message", "url")
VALID_LEVELS = [lv.value for lv in ErrorLevel]
VALID_SERVICES = [sv.value for sv in ErrorService]

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type",
}


def _bad_request(message: str) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": message})


def _validate(body: Any) -> ClientErrorReport | JSONResponse:
    if not isinstance(body, dict):
        return _bad_request("Request body must be a JSON object")

    missing = [f for f in REQUIRED_FIELDS if not body.get(f)]
    if missing:
        return _bad_request(f"Missing required fields: {', '.join(missing)}")

    if body["level"] not in VALID_LEVELS:
        return _bad_request(f"Invalid level. Must be one of: {', '.join(VALID_LEVELS)}")
    if body["service"] not in VALID_SERVICES:
        return _bad_request(f"Invalid service. Must be one of: {', '.join(VALID_SERVICES)}")

    try:
        return ClientErrorReport.model_validate(body)
    except ValidationError as e:
        err = e.errors()[0]
        field = ".".join(str(p) for p in err["loc"])
        return _bad_request(f"Invalid field '{field}': {err['msg']}")


@router.post("/error-log", status_code=201, response_model=ErrorLogResponse)
async def post_error_log(
    request: Request,
    error_logger: ErrorLogger = Depends(get_error_logger),
):
    try:
        try:
            body = await request.json()
        except ValueError:
            return _bad_request("Request body must be valid JSON")

        report = _validate(body)
        if isinstance(report, JSONResponse):
            return report

        request_context = extract_error_context(request)
        context = {
            **request_context,
            "url": report.url,
            "user_agent": report.userAgent or request_context["user_agent"],
            "additional_data": report.additionalData,
        }
        error = ReportedError(report.message, stack=report.stack)

        # 동기 DB 호출이라 이벤트 루프를 막지 않도록 threadpool 에서 실행
        await run_in_threadpool(
            error_logger.log_error,
            report.level,
            report.message,
            error,
            context,
            report.service,
        )

        payload = ErrorLogResponse(
            success=True,
            message="Error logged successfully",
            request_id=request_context["request_id"],
        )
        return JSONResponse(
            status_code=201, content=payload.model_dump(), headers=CORS_HEADERS
        )
    except Exception:
        logger.exception("[error-log] endpoint failed")
        return JSONResponse(status_code=500, content={"error": "Internal server error"})


@router.options("/error-log")
def options_error_log():
    return Response(
        status_code=204,
        headers={**CORS_HEADERS, "Access-Control-Max-Age": "86400"},
    )
