"""
Password-grant credential exchange against the IFS identity endpoint.

Security: never log credentials or the issued token. Failures are surfaced as
AuthFailure with the upstream message attached and are never retried here,
since repeated bad attempts can lock the service account.
"""
from __future__ import annotations

import logging
import math
from typing import Any, Optional

import httpx

from forge.core.errors import AuthFailure
from forge.core.platform import describe_response, describe_transport_error
from forge.schema.models import AcquiredToken, ServiceCredential

logger = logging.getLogger(__name__)


class TokenAcquirer:
    """Exchange the fixed service credential for a bearer token and its TTL."""

    def __init__(
        self,
        *,
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._timeout = httpx.Timeout(timeout)
        # Small indirection to ease faking the identity server in tests
        self._transport = transport

    async def acquire(self, credential: ServiceCredential) -> AcquiredToken:
        data = {
            "grant_type": "password",
            "client_id": credential.client_id,
            "client_secret": credential.client_secret.get_secret_value(),
            "username": credential.service_username,
            "password": credential.service_password.get_secret_value(),
        }
        headers = {"Content-Type": "application/x-www-form-urlencoded"}

        logger.info("Requesting access token from identity endpoint for client_id=%s", credential.client_id)
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.post(credential.identity_endpoint, data=data, headers=headers)
        except httpx.HTTPError as exc:
            logger.error("Token request failed before a response arrived: %s", describe_transport_error(exc))
            raise AuthFailure(describe_transport_error(exc)) from exc

        if not response.is_success:
            message = describe_response(response)
            logger.error("Identity endpoint rejected credential exchange (HTTP %s): %s", response.status_code, message)
            raise AuthFailure(message, status_code=response.status_code)

        token = self._parse(response)
        logger.info("Access token obtained (expires_in=%ss)", token.expires_in)
        return token

    @staticmethod
    def _parse(response: httpx.Response) -> AcquiredToken:
        try:
            body: Any = response.json()
        except ValueError as exc:
            raise AuthFailure("token response is not JSON", status_code=response.status_code) from exc

        if not isinstance(body, dict):
            raise AuthFailure("token response is not a JSON object", status_code=response.status_code)

        access_token = body.get("access_token")
        if not isinstance(access_token, str) or not access_token:
            raise AuthFailure("token response has no access_token", status_code=response.status_code)

        raw_ttl = body.get("expires_in")
        try:
            expires_in = float(raw_ttl)
        except (TypeError, ValueError) as exc:
            raise AuthFailure(f"token response has invalid expires_in: {raw_ttl!r}", status_code=response.status_code) from exc
        if not math.isfinite(expires_in) or expires_in <= 0:
            raise AuthFailure(f"token response has non-positive expires_in: {raw_ttl!r}", status_code=response.status_code)

        return AcquiredToken(access_token=access_token, expires_in=expires_in)
