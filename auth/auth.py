import os
import secrets

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

# ===== Cleanup API key =====
# 설정되지 않았으면 인증 없이 허용
ERROR_CLEANUP_API_KEY = os.getenv("ERROR_CLEANUP_API_KEY")
security = HTTPBearer(auto_error=False)


def verify_cleanup_key(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> None:
    if not ERROR_CLEANUP_API_KEY:
        return

    if credentials is None or credentials.scheme.lower() != "bearer":
        raise HTTPException(401, "Unauthorized")

    if not secrets.compare_digest(
        credentials.credentials.encode(), ERROR_CLEANUP_API_KEY.encode()
    ):
        raise HTTPException(401, "Unauthorized")
