"""API key authentication for FastAPI endpoints."""

from typing import Any, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from edimport.config import ImporterConfig
from edimport.dependencies import get_app_config

bearer_scheme = HTTPBearer(auto_error=False)


async def verify_api_key(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    config: ImporterConfig = Depends(get_app_config),
) -> dict[str, Any]:
    """Verify the bearer token against configured API keys."""
    if config.dev_bypass_api_key:
        return {"id": "dev-bypass-user", "auth": "bypass"}

    if not credentials or credentials.scheme.lower() != "bearer":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing bearer token",
        )

    api_keys = config.get_api_keys()
    if not api_keys or credentials.credentials not in api_keys:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid API key",
        )

    return {"id": "api-key-user", "auth": "api_key"}
