from typing import List, Optional, Dict, Literal, Any
from datetime import datetime
from pydantic import BaseModel, Field

UploadState = Literal["IDLE", "TOKEN_READY", "STAGED", "TRANSFERRED", "FINALIZED", "FAILED"]
UploadStep = Literal["token", "stage", "transfer", "finalize"]


class OrchestratorEvent(BaseModel):
    """
    An immutable record of one step of an upload flow.
    Used for logging and for operator diagnosis of partial failures.
    """
    timestamp: datetime = Field(default_factory=datetime.now)
    stage: UploadStep
    status: Literal["SUCCESS", "FAILURE", "CANCELLED"]
    # Details must be flat and serializable
    details: Dict[str, Any] = Field(default_factory=dict)


class UploadResult(BaseModel):
    """
    Final container of one upload flow.
    Carries the reached state and the ordered event history. A result is a
    delivery only when state == FINALIZED.
    """
    correlation_id: str
    job_id: str

    start_time: datetime
    end_time: Optional[datetime] = None

    success: bool = False
    state: UploadState = "IDLE"

    # Set as soon as staging succeeds, kept on failure for orphan diagnosis
    handle_id: Optional[str] = None

    failed_step: Optional[UploadStep] = None
    error_kind: Optional[str] = None
    error_message: Optional[str] = None

    events: List[OrchestratorEvent] = Field(default_factory=list)
