"""
FastAPI application entry point.
Receives report requests from IFS Connect with strict separation of concerns:
- API authenticates, validates input and dispatches
- Renderer produces the PDF
- Orchestrator owns the upload flow and its failure classification
"""
import logging
import time
from typing import Annotated

from fastapi import FastAPI, Depends, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from forge_config import settings
from forge.core.errors import AuthFailure, RenderFailure, UploadFailure
from forge.core.renderer import ReportRenderer
from forge.orchestrator import UploadOrchestrator
from forge.schema.models import UploadRequest
from api.schemas import ReportRequest, ReportResponse, ErrorResponse, StatusResponse, HealthResponse
from api.dependencies import verify_api_key, get_orchestrator, get_renderer, probe_url

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("reportforge.api")

STARTED_AT = time.monotonic()

# Initialize FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Middleware between IFS Connect, Crystal Reports Server and IFS Cloud",
    docs_url="/docs" if settings.DEBUG else None,
    redoc_url="/redoc" if settings.DEBUG else None,
)


def _uptime() -> float:
    return round(time.monotonic() - STARTED_AT, 3)


@app.get("/health", response_model=HealthResponse, tags=["Health"])
async def health_check():
    """
    Liveness check. Does not contact any upstream.
    """
    return HealthResponse(
        status="healthy",
        service=settings.APP_NAME,
        version=settings.APP_VERSION,
        uptime=_uptime(),
    )


@app.get("/health/detailed", response_model=HealthResponse, tags=["Health"])
async def detailed_health_check():
    """
    Readiness check including Crystal Reports Server and IFS Cloud reachability.
    """
    timeout = settings.HEALTH_PROBE_TIMEOUT_SECONDS
    crystal_ok = await probe_url(settings.CRYSTAL_SERVER_URL, timeout)
    ifs_ok = await probe_url(settings.IFS_CLOUD_URL, timeout)

    return HealthResponse(
        status="healthy" if crystal_ok and ifs_ok else "degraded",
        service=settings.APP_NAME,
        version=settings.APP_VERSION,
        uptime=_uptime(),
        checks={
            "crystalServer": "healthy" if crystal_ok else "unhealthy",
            "ifsCloud": "healthy" if ifs_ok else "unhealthy",
        },
    )


@app.post(
    "/api/reports",
    response_model=ReportResponse,
    responses={400: {"model": ErrorResponse}, 401: {"model": ErrorResponse}, 502: {"model": ErrorResponse}},
    dependencies=[Depends(verify_api_key)],
    tags=["Reports"],
)
async def generate_report(
    report: ReportRequest,
    renderer: Annotated[ReportRenderer, Depends(get_renderer)],
    orchestrator: Annotated[UploadOrchestrator, Depends(get_orchestrator)],
):
    """
    Generate a report and deliver it to IFS Cloud.

    **Flow:**
    1. Render the layout on Crystal Reports Server
    2. Stage, transfer and finalize the PDF in IFS Cloud

    The report counts as delivered only when the response is 200.
    """
    start = time.monotonic()
    logger.info("Report request received trace_id=%s layout=%s print_job=%s",
                report.trace_id, report.layout_name, report.print_job_key)

    artifact = await renderer.render(
        layout_name=report.layout_name,
        data=report.report_data(),
        report_id=report.report_key or report.trace_id,
        trace_id=report.trace_id,
    )

    result = await orchestrator.upload(UploadRequest(
        artifact=artifact.content,
        correlation_id=report.trace_id,
        job_id=report.print_job_key,
        result_key=report.data_key,
    ))

    processing_time = int((time.monotonic() - start) * 1000)
    logger.info("Report delivered trace_id=%s lob=%s in %dms", report.trace_id, result.handle_id, processing_time)

    return ReportResponse(
        message="Report generated and uploaded successfully",
        traceId=report.trace_id,
        layoutName=report.layout_name,
        lobId=result.handle_id,
        processingTime=processing_time,
    )


@app.get("/api/reports/status", response_model=StatusResponse, dependencies=[Depends(verify_api_key)], tags=["Reports"])
async def report_status():
    return StatusResponse(
        service=settings.APP_NAME,
        status="operational",
        crystalServer=settings.CRYSTAL_SERVER_URL,
        ifsCloud=settings.IFS_CLOUD_URL,
        uptime=_uptime(),
    )


def _error(status_code: int, body: ErrorResponse) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


@app.exception_handler(AuthFailure)
async def auth_failure_handler(request: Request, exc: AuthFailure):
    """
    Identity problems are configuration issues: operator attention, no retry.
    """
    logger.critical("IFS authentication failed, check service credentials: %s", exc)
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, ErrorResponse(
        error="Failed to authenticate with IFS Cloud" if settings.is_production else str(exc),
        category="configuration",
        retryable=False,
        step=exc.step,
    ))


@app.exception_handler(UploadFailure)
async def upload_failure_handler(request: Request, exc: UploadFailure):
    return _error(status.HTTP_502_BAD_GATEWAY, ErrorResponse(
        error=str(exc),
        category="delivery",
        retryable=exc.retryable,
        step=exc.step,
        lobId=exc.handle_id,
    ))


@app.exception_handler(RenderFailure)
async def render_failure_handler(request: Request, exc: RenderFailure):
    return _error(status.HTTP_502_BAD_GATEWAY, ErrorResponse(
        error=exc.message,
        category="delivery",
        retryable=exc.retryable,
        step=exc.step,
    ))


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    fields = sorted({str(err["loc"][-1]) for err in exc.errors() if err.get("loc")})
    logger.warning("Rejected invalid request on %s: %s", request.url.path, fields)
    return _error(status.HTTP_400_BAD_REQUEST, ErrorResponse(
        error=f"Missing or invalid fields: {', '.join(fields)}",
        category="validation",
    ))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    category = "auth" if exc.status_code == status.HTTP_401_UNAUTHORIZED else None
    return _error(exc.status_code, ErrorResponse(error=str(exc.detail), category=category))


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """
    Global exception handler for unexpected errors.
    """
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, ErrorResponse(
        error="An error occurred processing your request" if settings.is_production else str(exc),
        category="internal",
    ))


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api.main:app",
        host=settings.API_HOST,
        port=settings.API_PORT,
        reload=settings.DEBUG
    )
