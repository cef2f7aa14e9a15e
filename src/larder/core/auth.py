"""Bearer API-key check for the refresh, summary and report endpoints."""

import secrets

from fastapi import HTTPException, Security
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from larder.core.config import get_settings

bearer = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=401, detail=detail, headers={"WWW-Authenticate": "Bearer"})


async def verify_api_key(
    credentials: HTTPAuthorizationCredentials | None = Security(bearer),
) -> str:
    if credentials is None:
        raise _unauthorized("Missing API key")
    if not secrets.compare_digest(credentials.credentials, get_settings().api_key):
        raise _unauthorized("Invalid API key")
    return credentials.credentials
