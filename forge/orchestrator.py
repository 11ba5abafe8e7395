import asyncio
import hashlib
import logging
import time
from datetime import datetime
from typing import Any, Optional

from .core.errors import FinalizationFailure, UploadFailure
from .core.finalizer import UploadFinalizer
from .core.stager import ArtifactStager
from .core.token_cache import TokenCache
from .core.uploader import ArtifactUploader
from .schema.models import UploadRequest
from .schema.orchestrator_models import OrchestratorEvent, UploadResult, UploadState, UploadStep

logger = logging.getLogger(__name__)

# Forward path of the state machine; FAILED is reachable from every state
_TRANSITIONS = {
    "IDLE": "TOKEN_READY",
    "TOKEN_READY": "STAGED",
    "STAGED": "TRANSFERRED",
    "TRANSFERRED": "FINALIZED",
}


class UploadOrchestrator:
    """
    Upload flow coordinator.
    Runs token -> stage -> transfer -> finalize in strict order, recording an
    event per step. Does NOT retry: the first failure is re-raised unchanged in
    kind, with the UploadResult attached for diagnosis. Retrying the whole flow
    is the caller's decision and always allocates a new handle.
    """

    def __init__(
        self,
        token_cache: TokenCache,
        stager: ArtifactStager,
        uploader: ArtifactUploader,
        finalizer: UploadFinalizer,
    ):
        self._token_cache = token_cache
        self._stager = stager
        self._uploader = uploader
        self._finalizer = finalizer

    @staticmethod
    def _advance(result: UploadResult, target: UploadState) -> None:
        if _TRANSITIONS.get(result.state) != target:
            raise RuntimeError(f"Illegal upload transition {result.state} -> {target}")
        result.state = target

    @staticmethod
    def _record(result: UploadResult, stage: UploadStep, started: float, **details: Any) -> None:
        result.events.append(OrchestratorEvent(
            stage=stage,
            status="SUCCESS",
            details={"duration_sec": round(time.time() - started, 4), **details},
        ))

    async def upload(self, request: UploadRequest) -> UploadResult:
        """
        Deliver one artifact.

        Returns:
            UploadResult with state FINALIZED.

        Raises:
            AuthFailure | StagingFailure | TransferFailure | FinalizationFailure,
            with `.result` set to the failed UploadResult.
        """
        result = UploadResult(
            correlation_id=request.correlation_id,
            job_id=request.job_id,
            start_time=datetime.now(),
        )
        step: UploadStep = "token"
        token: Optional[str] = None
        logger.info("Starting upload correlation_id=%s job_id=%s result_key=%s size_bytes=%d",
                    request.correlation_id, request.job_id, request.result_key, request.size_bytes)

        try:
            # ====================================================
            # 1. TOKEN
            # ====================================================
            started = time.time()
            token = await self._token_cache.get_valid_token()
            self._record(result, step, started)
            self._advance(result, "TOKEN_READY")

            # ====================================================
            # 2. STAGE
            # ====================================================
            step = "stage"
            started = time.time()
            handle = await self._stager.create_handle(token)
            result.handle_id = handle.handle_id
            self._record(result, step, started, handle_id=handle.handle_id)
            self._advance(result, "STAGED")

            # ====================================================
            # 3. TRANSFER
            # ====================================================
            step = "transfer"
            started = time.time()
            await self._uploader.write_bytes(token, handle.handle_id, request.artifact)
            self._record(
                result, step, started,
                size_bytes=request.size_bytes,
                artifact_sha256=hashlib.sha256(request.artifact).hexdigest(),
            )
            self._advance(result, "TRANSFERRED")

            # ====================================================
            # 4. FINALIZE
            # ====================================================
            step = "finalize"
            started = time.time()
            await self._finalizer.finalize(
                token,
                request.job_id,
                request.correlation_id,
                request.result_key,
                handle.handle_id,
            )
            self._record(result, step, started)
            self._advance(result, "FINALIZED")

        except UploadFailure as e:
            self._fail(result, step, e, token)
            raise

        except asyncio.CancelledError:
            # Already-acknowledged steps are not rolled back
            result.events.append(OrchestratorEvent(stage=step, status="CANCELLED", details={"handle_id": result.handle_id}))
            logger.warning("Upload cancelled during %s correlation_id=%s handle_id=%s",
                           step, request.correlation_id, result.handle_id)
            raise

        except Exception as e:
            result.state = "FAILED"
            result.failed_step = step
            result.error_kind = e.__class__.__name__
            result.error_message = str(e)
            logger.exception("Unexpected error during %s correlation_id=%s", step, request.correlation_id)
            raise

        finally:
            result.end_time = datetime.now()

        result.success = True
        logger.info("Upload finalized correlation_id=%s job_id=%s handle_id=%s",
                    request.correlation_id, request.job_id, result.handle_id)
        return result

    def _fail(self, result: UploadResult, step: UploadStep, error: UploadFailure, token: Optional[str]) -> None:
        if error.handle_id is None:
            error.handle_id = result.handle_id

        result.state = "FAILED"
        result.success = False
        result.failed_step = step
        result.error_kind = error.kind
        result.error_message = error.message
        result.events.append(OrchestratorEvent(
            stage=step,
            status="FAILURE",
            details={
                "error": error.message,
                "status_code": error.status_code,
                "handle_id": error.handle_id,
            },
        ))
        error.result = result

        # A rejected token on a platform step: next flow must re-authenticate,
        # unless another flow has already replaced it
        if error.status_code == 401 and step != "token":
            self._token_cache.invalidate(token)

        if isinstance(error, FinalizationFailure):
            logger.error(
                "ORPHANED temp lob %s: bytes uploaded but not linked to job %s (correlation_id=%s): %s",
                error.handle_id, result.job_id, result.correlation_id, error.message,
            )
        else:
            logger.error("Upload failed at %s correlation_id=%s handle_id=%s: %s",
                         step, result.correlation_id, error.handle_id, error)

