"""
Shared fixtures: a controllable clock, a counting token acquirer and a scripted
IFS gateway served through httpx.MockTransport.
"""
from typing import List, Optional, Tuple

import anyio
import httpx
import pytest

from forge.core.finalizer import UploadFinalizer
from forge.core.platform import PlatformEndpoints
from forge.core.stager import ArtifactStager
from forge.core.token_cache import TokenCache
from forge.core.uploader import ArtifactUploader
from forge.orchestrator import UploadOrchestrator
from forge.schema.models import AcquiredToken, ServiceCredential

PLATFORM_BASE = "https://ifs.example.com/main/ifsapplications/projection/v1/ExternalReportsGateway.svc"
IDENTITY_ENDPOINT = "https://ifs.example.com/auth/realms/ifs/protocol/openid-connect/token"


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def credential():
    return ServiceCredential(
        client_id="reportforge",
        client_secret="client-s3cret",
        service_username="IFS_REPORTFORGE",
        service_password="svc-pa55",
        identity_endpoint=IDENTITY_ENDPOINT,
    )


class FakeClock:
    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeAcquirer:
    """Counts exchanges; yields once so concurrent callers can interleave."""

    def __init__(self, ttl: float = 3600.0):
        self.ttl = ttl
        self.calls = 0
        self.error: Optional[Exception] = None

    async def acquire(self, credential: ServiceCredential) -> AcquiredToken:
        self.calls += 1
        call = self.calls
        await anyio.sleep(0)
        if self.error is not None:
            raise self.error
        return AcquiredToken(access_token=f"token-{call}", expires_in=self.ttl)


class FakePlatform:
    """Scripted IFS External Reports Gateway. Records every call in order."""

    def __init__(self):
        self.calls: List[Tuple[str, httpx.Request]] = []
        self.stage_status = 201
        self.entity_header: Optional[str] = None  # overrides the generated header
        self.transfer_status = 204
        self.transfer_error: Optional[Exception] = None
        self.finalize_status = 200
        self.finalize_body: dict = {}
        self._lobs = 0

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        if request.method == "POST" and path.endswith("/FndTempLobs"):
            self.calls.append(("stage", request))
            if self.stage_status >= 400:
                return httpx.Response(self.stage_status, json={"error": {"code": "DATABASE_ERROR", "message": "stage rejected"}})
            self._lobs += 1
            header = self.entity_header
            if header is None:
                header = f"{PLATFORM_BASE}/FndTempLobs(LobId='LOB-{self._lobs:04d}')"
            return httpx.Response(self.stage_status, headers={"OData-EntityId": header})
        if request.method == "PUT" and path.endswith("/BlobData"):
            self.calls.append(("transfer", request))
            if self.transfer_error is not None:
                raise self.transfer_error
            return httpx.Response(self.transfer_status)
        if request.method == "POST" and path.endswith("/Upload"):
            self.calls.append(("finalize", request))
            return httpx.Response(self.finalize_status, json=self.finalize_body)
        return httpx.Response(404)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def count(self, step: str) -> int:
        return sum(1 for s, _ in self.calls if s == step)

    @property
    def steps(self) -> List[str]:
        return [s for s, _ in self.calls]


@pytest.fixture
def fake_clock():
    return FakeClock()


@pytest.fixture
def fake_acquirer():
    return FakeAcquirer()


@pytest.fixture
def fake_platform():
    return FakePlatform()


@pytest.fixture
def endpoints():
    return PlatformEndpoints(base_url=PLATFORM_BASE)


@pytest.fixture
def token_cache(fake_acquirer, credential, fake_clock):
    return TokenCache(fake_acquirer, credential, clock=fake_clock)


@pytest.fixture
def build_orchestrator(token_cache, endpoints):
    def _build(client: httpx.AsyncClient) -> UploadOrchestrator:
        return UploadOrchestrator(
            token_cache,
            ArtifactStager(client, endpoints),
            ArtifactUploader(client, endpoints),
            UploadFinalizer(client, endpoints),
        )
    return _build
