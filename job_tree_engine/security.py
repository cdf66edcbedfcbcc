"""
security.py - API key check for the job query API
"""
import os

from fastapi import HTTPException, Security, status
from fastapi.security import APIKeyHeader

API_KEY_ENV = "JOB_TREE_API_KEY"

# Define the API Key header scheme
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)


def get_api_key(api_key_header: str = Security(api_key_header)) -> str:
    """
    Validate the API key. Without JOB_TREE_API_KEY set the API is open.
    """
    expected_key = os.getenv(API_KEY_ENV)

    if not expected_key:
        return "dev-key"

    if api_key_header == expected_key:
        return api_key_header

    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid or missing API Key"
    )
