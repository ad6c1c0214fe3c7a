"""
API Key Authentication

Bearer-token guard for the agent-facing v1 API. The API is disabled
entirely (503) until HATHI_API_KEY is configured.
"""

import secrets

from fastapi import Header, HTTPException, status

from hathi.core.config import settings


async def require_api_key(authorization: str | None = Header(default=None)) -> None:
    """
    FastAPI dependency validating ``Authorization: Bearer <key>``.

    Raises:
        HTTPException 503: API key not configured.
        HTTPException 401: Header missing or not a Bearer token.
        HTTPException 403: Token does not match.
    """
    api_key = settings.HATHI_API_KEY
    if not api_key:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Agent API is disabled. Set HATHI_API_KEY to enable it.",
        )

    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing or malformed Authorization header. Expected: Bearer <key>",
        )

    token = authorization[len("Bearer ") :]
    if not secrets.compare_digest(token.encode(), api_key.encode()):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Invalid API key.",
        )
