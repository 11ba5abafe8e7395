"""
Client for the Crystal Reports Server.

Maps the IFS layout name (.irg) to a Crystal report (.rpt), forwards the known
report parameters and returns the rendered PDF bytes. Rendering itself is
opaque to this service.
"""
from __future__ import annotations

import logging
import time
from typing import Any, Dict, Mapping, Optional

import httpx

from forge.core.errors import RenderFailure
from forge.core.platform import describe_response, describe_transport_error
from forge.schema.models import RenderedArtifact

logger = logging.getLogger(__name__)

LAYOUT_TO_REPORT: Dict[str, str] = {
    "invoice": "CustomerInvoice.rpt",
    "purchase_order": "PurchaseOrder.rpt",
    "delivery_note": "DeliveryNote.rpt",
}

# IFS payload field -> Crystal parameter name
REPORT_PARAMETERS: Dict[str, str] = {
    "invoiceNumber": "InvoiceNumber",
    "orderNumber": "OrderNumber",
    "customerNumber": "CustomerNumber",
    "fromDate": "FromDate",
    "toDate": "ToDate",
}


def map_layout_to_report(layout_name: str) -> str:
    base_name = layout_name.strip()
    if base_name.lower().endswith(".irg"):
        base_name = base_name[: -len(".irg")]
    return LAYOUT_TO_REPORT.get(base_name.lower(), f"{base_name}.rpt")


def extract_parameters(data: Mapping[str, Any]) -> Dict[str, str]:
    return {
        param: str(data[field])
        for field, param in REPORT_PARAMETERS.items()
        if data.get(field) not in (None, "")
    }


class ReportRenderer:
    def __init__(
        self,
        *,
        server_url: str,
        reports_path: str,
        username: str = "",
        password: str = "",
        timeout: float = 60.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._server_url = server_url.rstrip("/")
        self._reports_path = reports_path.rstrip("/")
        self._auth = httpx.BasicAuth(username, password) if username else None
        self._timeout = httpx.Timeout(timeout)
        self._transport = transport

    def report_url(self, report_name: str) -> str:
        return f"{self._server_url}{self._reports_path}/{report_name}"

    async def render(
        self,
        *,
        layout_name: str,
        data: Mapping[str, Any],
        report_id: str,
        trace_id: str,
    ) -> RenderedArtifact:
        report_name = map_layout_to_report(layout_name)
        params = {**extract_parameters(data), "output": "pdf"}
        logger.info("Rendering %s as %s (trace_id=%s, report_id=%s)", layout_name, report_name, trace_id, report_id)

        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                response = await client.get(
                    self.report_url(report_name),
                    params=params,
                    auth=self._auth,
                    headers={"Accept": "application/pdf"},
                )
        except httpx.HTTPError as exc:
            logger.error("Crystal Reports request failed (trace_id=%s): %s", trace_id, describe_transport_error(exc))
            raise RenderFailure(f"Crystal Reports generation failed: {describe_transport_error(exc)}") from exc

        if response.is_error:
            message = describe_response(response)
            logger.error("Crystal Reports rejected %s (HTTP %s, trace_id=%s): %s",
                         report_name, response.status_code, trace_id, message)
            raise RenderFailure(f"Crystal Reports generation failed: {message}", status_code=response.status_code)

        if not response.content:
            raise RenderFailure("Crystal Reports generation failed: empty document", status_code=response.status_code)

        artifact = RenderedArtifact(
            content=response.content,
            report_name=report_name,
            filename=f"{report_id}_{int(time.time() * 1000)}.pdf",
            content_type=response.headers.get("content-type", "application/pdf"),
        )
        logger.info("Rendered %s (%.2f KB, trace_id=%s)", report_name, artifact.size_bytes / 1024, trace_id)
        return artifact
