from pathlib import Path
from typing import Optional, Union

from pydantic import BaseModel, ConfigDict, Field, SecretStr


class ServiceCredential(BaseModel):  ## Fixed service identity, loaded once at startup
    model_config = ConfigDict(frozen=True)

    client_id: str
    client_secret: SecretStr
    service_username: str
    service_password: SecretStr
    identity_endpoint: str


class AcquiredToken(BaseModel):  ## Raw outcome of one credential exchange
    model_config = ConfigDict(frozen=True)

    access_token: str
    expires_in: float  # seconds, as declared by the identity server


class CachedToken(BaseModel):  ## The single cache cell, replaced whole on renewal
    model_config = ConfigDict(frozen=True)

    token_value: str
    expires_at: float  # seconds on the owning cache's clock

    def is_valid(self, now: float) -> bool:
        return bool(self.token_value) and now < self.expires_at


class UploadRequest(BaseModel):
    """
    Contract between the HTTP layer and the orchestrator.
    Identifiers are opaque and forwarded unmodified.
    """
    model_config = ConfigDict(frozen=True)

    artifact: bytes = Field(repr=False)
    correlation_id: str = Field(..., min_length=1)
    job_id: str = Field(..., min_length=1)
    result_key: Optional[str] = None

    @property
    def size_bytes(self) -> int:
        return len(self.artifact)

    @classmethod
    def from_file(
        cls,
        path: Union[str, Path],
        *,
        correlation_id: str,
        job_id: str,
        result_key: Optional[str] = None,
    ) -> "UploadRequest":
        """Build a request from an artifact already written to disk."""
        data = Path(path).read_bytes()
        return cls(artifact=data, correlation_id=correlation_id, job_id=job_id, result_key=result_key)


class StagedHandle(BaseModel):  ## Server-side temporary slot ("lob") owned by a single upload flow
    model_config = ConfigDict(frozen=True)

    handle_id: str


class RenderedArtifact(BaseModel):
    model_config = ConfigDict(frozen=True)

    content: bytes = Field(repr=False)
    report_name: str
    filename: str
    content_type: str = "application/pdf"

    @property
    def size_bytes(self) -> int:
        return len(self.content)
