"""
Helpers shared by the three IFS Cloud upload steps.

Keeps URL templating, bearer headers and upstream diagnostics in one place so
the step components only deal with their own request and response shapes.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict

import httpx

# Upstream bodies can be whole HTML error pages
MAX_DIAGNOSTIC_CHARS = 500


@dataclass(frozen=True)
class PlatformEndpoints:
    base_url: str  # IFS Cloud URL + gateway projection path

    @property
    def temp_lobs(self) -> str:
        return f"{self.base_url.rstrip('/')}/FndTempLobs"

    def blob_data(self, handle_id: str) -> str:
        return f"{self.temp_lobs}(LobId='{handle_id}')/BlobData"

    @property
    def upload_action(self) -> str:
        return f"{self.base_url.rstrip('/')}/Upload"


def bearer_headers(token: str, content_type: str = "application/json") -> Dict[str, str]:
    return {"Authorization": f"Bearer {token}", "Content-Type": content_type}


def describe_response(response: httpx.Response) -> str:
    """Extract a short diagnostic message from an upstream error response."""
    try:
        body = response.json()
    except ValueError:
        text = response.text.strip()
        return text[:MAX_DIAGNOSTIC_CHARS] or response.reason_phrase or "no response body"

    if isinstance(body, dict):
        # OData errors: {"error": {"code": ..., "message": ...}}
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])[:MAX_DIAGNOSTIC_CHARS]
        for key in ("error_description", "message", "detail", "error"):
            if body.get(key):
                return str(body[key])[:MAX_DIAGNOSTIC_CHARS]
    return str(body)[:MAX_DIAGNOSTIC_CHARS]


def describe_transport_error(exc: httpx.HTTPError) -> str:
    if isinstance(exc, httpx.TimeoutException):
        return f"timed out: {exc.__class__.__name__}"
    return f"{exc.__class__.__name__}: {exc}"
