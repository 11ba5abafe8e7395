"""
Raw byte transfer into a staged FndTempLobs handle.

Once the PUT has been dispatched the handle may hold some or all of the bytes
even when the call fails, so a TransferFailure never means "no effect".
"""
from __future__ import annotations

import logging
from typing import Optional

import httpx

from forge.core.errors import TransferFailure
from forge.core.platform import PlatformEndpoints, bearer_headers, describe_response, describe_transport_error

logger = logging.getLogger(__name__)


class ArtifactUploader:
    def __init__(
        self,
        client: httpx.AsyncClient,
        endpoints: PlatformEndpoints,
        *,
        timeout: Optional[float] = None,
    ) -> None:
        self._client = client
        self._endpoints = endpoints
        # Large artifacts get their own budget, falling back to the client's default
        self._timeout = httpx.Timeout(timeout) if timeout is not None else None

    async def write_bytes(self, token: str, handle_id: str, data: bytes) -> None:
        url = self._endpoints.blob_data(handle_id)
        headers = bearer_headers(token, content_type="application/octet-stream")
        request_kwargs = {"content": data, "headers": headers}
        if self._timeout is not None:
            request_kwargs["timeout"] = self._timeout

        try:
            response = await self._client.put(url, **request_kwargs)
        except httpx.HTTPError as exc:
            raise TransferFailure(describe_transport_error(exc), handle_id=handle_id) from exc

        if response.is_error:
            raise TransferFailure(describe_response(response), status_code=response.status_code, handle_id=handle_id)

        logger.info("Uploaded %d bytes to temp lob %s", len(data), handle_id)
