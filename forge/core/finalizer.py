"""
Completion action that binds a staged handle to its print job.

Until this call succeeds the uploaded bytes have no visible link to the job;
an artifact counts as delivered only after it returns.
"""
from __future__ import annotations

import logging
from typing import Optional

import httpx

from forge.core.errors import FinalizationFailure
from forge.core.platform import PlatformEndpoints, bearer_headers, describe_response, describe_transport_error

logger = logging.getLogger(__name__)


class UploadFinalizer:
    def __init__(self, client: httpx.AsyncClient, endpoints: PlatformEndpoints) -> None:
        self._client = client
        self._endpoints = endpoints

    async def finalize(
        self,
        token: str,
        job_id: str,
        correlation_id: str,
        result_key: Optional[str],
        handle_id: str,
    ) -> None:
        payload = {
            "PrintJobId": job_id,
            "CorrelationId": correlation_id,
            "PdfTempLobId": handle_id,
        }
        # Absent result key is left out of the body, not sent as null
        if result_key is not None:
            payload["ResultKey"] = result_key
        try:
            response = await self._client.post(self._endpoints.upload_action, json=payload, headers=bearer_headers(token))
        except httpx.HTTPError as exc:
            raise FinalizationFailure(describe_transport_error(exc), handle_id=handle_id) from exc

        if response.is_error:
            raise FinalizationFailure(describe_response(response), status_code=response.status_code, handle_id=handle_id)

        logger.info("Upload action completed for job %s (lob %s)", job_id, handle_id)
