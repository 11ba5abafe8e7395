"""
FastAPI dependency injection utilities.
Handles API key authentication and wiring of the renderer and upload pipeline.
"""
import logging
import secrets
from functools import lru_cache
from typing import Annotated, AsyncIterator, Optional

import httpx
from fastapi import Depends, Header, HTTPException, status

from forge_config import settings
from forge.core.finalizer import UploadFinalizer
from forge.core.platform import PlatformEndpoints
from forge.core.renderer import ReportRenderer
from forge.core.stager import ArtifactStager
from forge.core.token_acquirer import TokenAcquirer
from forge.core.token_cache import TokenCache
from forge.core.uploader import ArtifactUploader
from forge.orchestrator import UploadOrchestrator

logger = logging.getLogger(__name__)


async def verify_api_key(authorization: Annotated[Optional[str], Header()] = None) -> None:
    """
    Authenticate IFS Connect using the shared API key.

    Accepts both `Authorization: Bearer <key>` and a bare key.

    Raises:
        HTTPException: 401 when missing or invalid, 500 when no key is configured
    """
    if not authorization:
        logger.warning("Authentication failed: no authorization header")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required")

    token = authorization[len("Bearer "):] if authorization.startswith("Bearer ") else authorization

    if not settings.API_KEY:
        logger.error("API_KEY not configured in environment variables")
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Server configuration error")

    if not secrets.compare_digest(token.encode(), settings.API_KEY.encode()):
        logger.warning("Authentication failed: invalid API key")
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid authentication credentials")


@lru_cache(maxsize=1)
def get_token_cache() -> TokenCache:
    """Process-wide token cache; outlives every single upload."""
    acquirer = TokenAcquirer(timeout=settings.IFS_TIMEOUT_SECONDS)
    return TokenCache(
        acquirer,
        settings.service_credential,
        safety_margin=settings.TOKEN_SAFETY_MARGIN,
    )


async def get_orchestrator(
    token_cache: Annotated[TokenCache, Depends(get_token_cache)],
) -> AsyncIterator[UploadOrchestrator]:
    """One HTTP client per upload flow, shared by its three platform steps."""
    endpoints = PlatformEndpoints(base_url=settings.platform_base_url)
    async with httpx.AsyncClient(timeout=httpx.Timeout(settings.IFS_TIMEOUT_SECONDS)) as client:
        yield UploadOrchestrator(
            token_cache,
            ArtifactStager(client, endpoints),
            ArtifactUploader(client, endpoints, timeout=settings.IFS_TRANSFER_TIMEOUT_SECONDS),
            UploadFinalizer(client, endpoints),
        )


@lru_cache(maxsize=1)
def get_renderer() -> ReportRenderer:
    return ReportRenderer(
        server_url=settings.CRYSTAL_SERVER_URL,
        reports_path=settings.CRYSTAL_REPORTS_PATH,
        username=settings.CRYSTAL_USERNAME,
        password=settings.CRYSTAL_PASSWORD,
        timeout=settings.CRYSTAL_TIMEOUT_SECONDS,
    )


async def probe_url(url: str, timeout: float) -> bool:
    """Reachability check used by the detailed health endpoint."""
    if not url:
        return False
    try:
        async with httpx.AsyncClient(timeout=timeout) as client:
            await client.get(url)
        return True
    except httpx.HTTPError as exc:
        logger.warning("Health probe failed for %s: %s", url, exc.__class__.__name__)
        return False
