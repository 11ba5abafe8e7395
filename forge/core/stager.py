"""
Allocation of the FndTempLobs handle that receives the artifact bytes.

The gateway reports the created entity through the OData-EntityId header, e.g.
`https://host/.../FndTempLobs(LobId='3F2A...')`. The value is validated before
use; anything that does not look like a plain identifier is a StagingFailure.
"""
from __future__ import annotations

import logging
import re
from typing import Optional

import httpx

from forge.core.errors import StagingFailure
from forge.core.platform import PlatformEndpoints, bearer_headers, describe_response, describe_transport_error
from forge.schema.models import StagedHandle

logger = logging.getLogger(__name__)

LOB_ID_PATTERN = re.compile(r"LobId='([^']*)'")
HANDLE_ID_SHAPE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]{0,127}$")
HANDLE_HEADERS = ("OData-EntityId", "Location")


def parse_handle_id(value: Optional[str]) -> Optional[str]:
    """Return the LobId embedded in an entity reference, or None if malformed."""
    if not isinstance(value, str):
        return None
    matches = LOB_ID_PATTERN.findall(value)
    if len(matches) != 1:
        return None
    candidate = matches[0].strip()
    if not HANDLE_ID_SHAPE.match(candidate):
        return None
    return candidate


class ArtifactStager:
    def __init__(self, client: httpx.AsyncClient, endpoints: PlatformEndpoints) -> None:
        self._client = client
        self._endpoints = endpoints

    async def create_handle(self, token: str) -> StagedHandle:
        try:
            response = await self._client.post(self._endpoints.temp_lobs, json={}, headers=bearer_headers(token))
        except httpx.HTTPError as exc:
            raise StagingFailure(describe_transport_error(exc)) from exc

        if response.is_error:
            raise StagingFailure(describe_response(response), status_code=response.status_code)

        handle_id = self._extract(response)
        if handle_id is None:
            seen = {name: response.headers.get(name) for name in HANDLE_HEADERS if name in response.headers}
            raise StagingFailure(f"no parseable LobId in staging response (headers: {seen or 'none'})",
                                 status_code=response.status_code)

        logger.info("Created temp lob %s", handle_id)
        return StagedHandle(handle_id=handle_id)

    @staticmethod
    def _extract(response: httpx.Response) -> Optional[str]:
        for name in HANDLE_HEADERS:
            handle_id = parse_handle_id(response.headers.get(name))
            if handle_id:
                return handle_id

        # Some gateway versions return the created entity in the body instead
        if "json" not in response.headers.get("content-type", ""):
            return None
        try:
            body = response.json()
        except ValueError:
            return None
        if isinstance(body, dict) and isinstance(body.get("LobId"), str):
            candidate = body["LobId"].strip()
            if HANDLE_ID_SHAPE.match(candidate):
                return candidate
        return None
