# error_tracking/reporter.py
"""
클라이언트 측 에러 전송기.

log_error 는 payload 를 만들어 백그라운드 스레드에 넘기고 바로 반환한다.
전송 실패는 loguru 로만 남기고 호출한 쪽으로는 절대 올라가지 않는다.
ThreadPoolExecutor 스레드는 인터프리터 종료 시 join 되므로 진행 중인
전송은 프로세스가 끝나기 전에 마무리된다.
"""
from __future__ import annotations

import json
import os
import platform
import sys
import threading
import traceback
from concurrent.futures import Future, ThreadPoolExecutor, wait
from typing import Any

import httpx
from loguru import logger

SERVICE = "frontend"

# 자기 자신이 남긴 로그는 다시 전송하지 않도록 표시
_log = logger.bind(error_tracking=True)


def _default_source_url() -> str:
    script = os.path.basename(sys.argv[0]) if sys.argv and sys.argv[0] else "python"
    return f"app://{platform.node() or 'localhost'}/{script}"


def _default_user_agent() -> str:
    return (
        f"{platform.python_implementation()}/{platform.python_version()} "
        f"({platform.system()} {platform.release()}) httpx/{httpx.__version__}"
    )


def _jsonable(data: dict[str, Any]) -> dict[str, Any]:
    return json.loads(json.dumps(data, default=repr))


def format_stack(error: BaseException) -> str:
    return "".join(traceback.format_exception(type(error), error, error.__traceback__))


class ErrorReporter:
    def __init__(
        self,
        endpoint: str,
        source_url: str | None = None,
        transport: httpx.BaseTransport | None = None,
        timeout: float = 5.0,
        max_workers: int = 2,
    ):
        self.endpoint = endpoint
        self.source_url = source_url or _default_source_url()
        self.user_agent = _default_user_agent()
        self._client = httpx.Client(transport=transport, timeout=timeout)
        self._executor = ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="error-reporter"
        )
        self._pending: set[Future] = set()
        self._lock = threading.Lock()

    def build_payload(
        self,
        level: str,
        message: str,
        error: Any = None,
        additional_data: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "level": level,
            "service": SERVICE,
            "message": message,
            "url": self.source_url,
            "userAgent": self.user_agent,
        }
        if isinstance(error, BaseException):
            payload["stack"] = format_stack(error)
        if additional_data:
            payload["additionalData"] = _jsonable(additional_data)
        return payload

    def log_error(
        self,
        level: str,
        message: str,
        error: Any = None,
        additional_data: dict[str, Any] | None = None,
    ) -> Future | None:
        try:
            payload = self.build_payload(level, message, error, additional_data)
            future = self._executor.submit(self._send, payload)
        except Exception as e:
            _log.error(f"[error-tracking] error tracking failed: {e!r}")
            return None

        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._discard)
        return future

    def _discard(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)

    def _send(self, payload: dict[str, Any]) -> None:
        try:
            response = self._client.post(self.endpoint, json=payload)
            response.raise_for_status()
        except Exception as e:
            _log.error(f"[error-tracking] failed to log error to server: {e!r}")
            _log.error(
                f"[error-tracking] original error: level={payload['level']} "
                f"message={payload['message']!r}"
            )

    def flush(self, timeout: float | None = None) -> bool:
        """대기 중인 전송이 끝날 때까지 기다림. 모두 끝났으면 True."""
        with self._lock:
            pending = list(self._pending)
        if not pending:
            return True
        _, not_done = wait(pending, timeout=timeout)
        return not not_done

    def close(self) -> None:
        self.flush()
        self._executor.shutdown(wait=True)
        self._client.close()
