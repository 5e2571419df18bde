# error_tracking/hooks.py
"""
전역 에러 훅.

- sys.excepthook / threading.excepthook : 잡히지 않은 예외
- asyncio loop exception handler        : 처리되지 않은 task 예외
- loguru sink (선택)                     : logger.exception 으로 남긴 에러

에러를 보고하는 도중 생긴 에러는 전부 삼킨다.
"""
from __future__ import annotations

import asyncio
import functools
import sys
import threading
import traceback
from typing import Any, Callable

from loguru import logger

from .reporter import ErrorReporter

_log = logger.bind(error_tracking=True)

_reporter: ErrorReporter | None = None
_listeners: list[Callable[[BaseException], None]] = []


def get_reporter() -> ErrorReporter | None:
    return _reporter


def log_error(
    level: str,
    message: str,
    error: Any = None,
    additional_data: dict[str, Any] | None = None,
    reporter: ErrorReporter | None = None,
) -> None:
    """현재 등록된 reporter 로 에러 전송. 실패해도 예외를 던지지 않는다."""
    try:
        target = reporter or _reporter
        if target is None:
            return
        target.log_error(level, message, error, additional_data)
    except Exception as e:
        _log.error(f"[error-tracking] error tracking failed: {e!r}")


def _source_location(error: BaseException) -> dict[str, Any]:
    frames = traceback.extract_tb(error.__traceback__)
    if not frames:
        return {}
    last = frames[-1]
    return {"filename": last.filename, "lineno": last.lineno, "function": last.name}


def _report_uncaught(error: BaseException, extra: dict[str, Any] | None = None) -> None:
    try:
        data = {**_source_location(error), **(extra or {})}
        log_error("error", str(error) or "Unhandled error", error, data)
        for listener in list(_listeners):
            listener(error)
    except Exception as e:
        _log.error(f"[error-tracking] uncaught error reporting failed: {e!r}")


def init_error_tracking(
    reporter: ErrorReporter,
    loop: asyncio.AbstractEventLoop | None = None,
    capture_log_errors: bool = False,
) -> Callable[[], None]:
    """
    전역 훅 설치. 설치 전 상태로 되돌리는 함수를 반환.
    """
    global _reporter
    _reporter = reporter

    prev_excepthook = sys.excepthook
    prev_thread_hook = threading.excepthook

    def _excepthook(exc_type, exc, tb):
        if not issubclass(exc_type, KeyboardInterrupt):
            _report_uncaught(exc)
        prev_excepthook(exc_type, exc, tb)

    def _thread_excepthook(args):
        if args.exc_value is not None and not issubclass(args.exc_type, SystemExit):
            thread_name = args.thread.name if args.thread else None
            _report_uncaught(args.exc_value, {"thread": thread_name})
        prev_thread_hook(args)

    sys.excepthook = _excepthook
    threading.excepthook = _thread_excepthook

    prev_loop_handler = None
    if loop is not None:
        prev_loop_handler = loop.get_exception_handler()

        def _loop_handler(lp, context):
            exc = context.get("exception")
            log_error(
                "error",
                "Unhandled task exception",
                exc,
                {
                    "reason": str(exc) if exc is not None else None,
                    "context_message": context.get("message"),
                    "task": repr(context.get("task") or context.get("future")),
                },
            )
            if prev_loop_handler is not None:
                prev_loop_handler(lp, context)
            else:
                lp.default_exception_handler(context)

        loop.set_exception_handler(_loop_handler)

    sink_id = None
    if capture_log_errors:

        def _sink(message):
            exc = message.record["exception"]
            if exc is None or exc.value is None:
                return
            log_error("error", str(exc.value) or message.record["message"], exc.value)

        sink_id = logger.add(
            _sink,
            level="ERROR",
            filter=lambda record: not record["extra"].get("error_tracking"),
            catch=True,
        )

    logger.info("[error-tracking] initialized")

    def uninstall() -> None:
        global _reporter
        sys.excepthook = prev_excepthook
        threading.excepthook = prev_thread_hook
        if loop is not None:
            loop.set_exception_handler(prev_loop_handler)
        if sink_id is not None:
            logger.remove(sink_id)
        _reporter = None

    return uninstall


def track_component_errors(
    component_name: str, reporter: ErrorReporter | None = None
) -> Callable[[], None]:
    """
    컴포넌트 단위 에러 리스너 등록. 반환된 함수를 호출하면 해제된다.
    """

    def _listener(error: BaseException) -> None:
        log_error(
            "error",
            f"Error in {component_name}",
            error,
            {"component": component_name},
            reporter=reporter,
        )

    _listeners.append(_listener)

    def remove() -> None:
        if _listener in _listeners:
            _listeners.remove(_listener)

    return remove


def with_error_tracking(context: str, reporter: ErrorReporter | None = None):
    """
    async 함수용 데코레이터. 실패를 보고한 뒤 원래 예외를 다시 던진다.
    """

    def decorator(fn):
        @functools.wraps(fn)
        async def wrapper(*args, **kwargs):
            try:
                return await fn(*args, **kwargs)
            except Exception as exc:
                log_error(
                    "error",
                    f"Error in {context}",
                    exc,
                    {"function": fn.__name__, "arguments": [repr(a) for a in args]},
                    reporter=reporter,
                )
                raise

        return wrapper

    return decorator
