"""
API key authentication for the HTTP surface.
"""
import os
import secrets

from fastapi import HTTPException, Security, status
from fastapi.security import APIKeyHeader

DEFAULT_API_KEY = "your-secret-key-change-me"

api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


def get_configured_api_key() -> str:
    """Key from ENERGY_ENGINE_API_KEY, read per request so rotation needs no restart"""
    return os.getenv("ENERGY_ENGINE_API_KEY", DEFAULT_API_KEY)


async def verify_api_key(api_key: str = Security(api_key_header)):
    """Reject requests without a matching X-API-Key header"""
    if not api_key or not secrets.compare_digest(api_key, get_configured_api_key()):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API Key"
        )
    return api_key
