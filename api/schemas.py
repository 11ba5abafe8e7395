"""
Pydantic schemas for API contracts.
Separates the IFS Connect payload from the upload contract.
"""
from typing import Optional, Literal, Dict, Any
from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field, field_validator


class ReportRequest(BaseModel):
    """
    Report generation request sent by IFS Connect.
    Unknown fields are kept and forwarded to the renderer as report data.
    """
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    trace_id: str = Field(..., alias="traceId", min_length=1, description="Correlation id threaded through the upload")
    layout_name: str = Field(..., alias="layoutName", min_length=1, description="IFS .irg layout name")
    print_job_key: str = Field(..., alias="printJobKey", min_length=1, description="IFS print job id")
    report_key: Optional[str] = Field(None, alias="reportKey")
    data_key: Optional[str] = Field(None, alias="dataKey", description="Result key for the upload action")
    language: Optional[str] = None
    number_formatting: Optional[str] = Field(None, alias="numberFormatting")

    @field_validator("trace_id", "layout_name", "print_job_key")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v

    def report_data(self) -> Dict[str, Any]:
        """Full payload as sent by IFS (camelCase keys), used as renderer input."""
        return self.model_dump(by_alias=True, exclude_none=True)


class ReportResponse(BaseModel):
    success: bool = True
    message: str
    traceId: str
    layoutName: str
    lobId: Optional[str] = None
    processingTime: int = Field(..., description="Milliseconds")


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    category: Optional[Literal["configuration", "delivery", "validation", "auth", "internal"]] = None
    retryable: Optional[bool] = None
    step: Optional[str] = None
    lobId: Optional[str] = None


class StatusResponse(BaseModel):
    success: bool = True
    service: str
    status: Literal["operational"]
    crystalServer: str
    ifsCloud: str
    uptime: float


class HealthResponse(BaseModel):
    """
    Health check response.
    """
    success: bool = True
    status: Literal["healthy", "degraded", "unhealthy"]
    service: str
    version: str
    timestamp: datetime = Field(default_factory=datetime.now)
    uptime: float
    checks: Dict[str, Literal["healthy", "unhealthy", "unknown"]] = Field(default_factory=dict)
