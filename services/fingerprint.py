# services/fingerprint.py
"""
에러 중복 제거용 fingerprint 생성.

같은 (에러 타입, 메시지, url, 첫 stack frame) 이면 언제 어디서 계산해도
같은 값이 나와야 한다. 프론트엔드가 쓰던 문자열 해시(31 곱셈, 32bit wrap,
base36)를 그대로 따라가서 기존에 저장된 fingerprint 와 호환된다.
"""
from __future__ import annotations

UNKNOWN_ERROR = "UnknownError"

_BASE36 = "0123456789abcdefghijklmnopqrstuvwxyz"


def _to_base36(n: int) -> str:
    if n == 0:
        return "0"
    digits = []
    while n:
        n, r = divmod(n, 36)
        digits.append(_BASE36[r])
    return "".join(reversed(digits))


def _string_hash(data: str) -> int:
    # UTF-16 code unit 단위로 계산 (브라우저 charCodeAt 과 동일)
    raw = data.encode("utf-16-le")
    h = 0
    for i in range(0, len(raw), 2):
        unit = raw[i] | (raw[i + 1] << 8)
        h = (h * 31 + unit) & 0xFFFFFFFF
    if h >= 0x80000000:
        h -= 0x100000000
    return h


def first_stack_line(stack: str | None) -> str:
    """
    stack 문자열에서 헤더(`Error: msg`, `Traceback ...`) 다음의
    첫 번째 비어있지 않은 줄을 반환. 없으면 빈 문자열.
    """
    if not stack:
        return ""
    for line in stack.splitlines()[1:]:
        if line.strip():
            return line.strip()
    return ""


def fingerprint(
    message: str,
    error_code: str | None,
    url: str,
    stack_line: str | None,
) -> str:
    data = f"{error_code or UNKNOWN_ERROR}:{message}:{url}:{stack_line or ''}"
    return f"fp_{_to_base36(abs(_string_hash(data)))}"
