"""Face enrollment and verification API endpoints."""
from typing import List, NoReturn

from fastapi import APIRouter, Depends, File, Form, HTTPException, Response, UploadFile
from starlette.concurrency import run_in_threadpool

from faceauth.api.dependencies import get_engine
from faceauth.api.models.auth import EnrollmentResponse, ErrorDetail, VerificationResponse
from faceauth.core.exceptions import (
    EnrollmentInProgressError,
    FaceAuthError,
    ModelNotLoadedError,
    StorageError,
)
from faceauth.core.logging import get_logger
from faceauth.domain.entities.identity import EnrollmentSource
from faceauth.domain.interfaces.progress import RecordingProgressReporter
from faceauth.domain.value_objects.verification import EngineStatus, IdentitySummary
from faceauth.infrastructure.capture import InMemoryImageSource
from faceauth.services.engine import FaceAuthEngine, summarize

logger = get_logger(__name__)
router = APIRouter(
    tags=["face-auth"],
    responses={
        422: {"model": ErrorDetail, "description": "Enrollment or verification failed"},
        503: {"description": "Engine not initialized"},
    },
)


def raise_http_error(error: FaceAuthError) -> NoReturn:
    """Translate an engine error into an HTTPException."""
    if isinstance(error, EnrollmentInProgressError):
        status_code = 409
    elif isinstance(error, ModelNotLoadedError):
        status_code = 503
    elif isinstance(error, StorageError):
        status_code = 500
    else:
        status_code = 422

    body = ErrorDetail(error=error.code, message=str(error), details=error.details or None)
    raise HTTPException(status_code=status_code, detail=body.model_dump())


async def read_uploads(files: List[UploadFile]) -> List[bytes]:
    return [await upload.read() for upload in files]


@router.post(
    "/identities/{identity_id}/enroll",
    response_model=EnrollmentResponse,
    summary="Enroll an identity",
    description="Extracts embeddings from the uploaded photos and stores (or replaces) the identity.",
)
async def enroll_identity(
    identity_id: str,
    display_name: str = Form(...),
    source: EnrollmentSource = Form(EnrollmentSource.GALLERY),
    files: List[UploadFile] = File(...),
    engine: FaceAuthEngine = Depends(get_engine),
) -> EnrollmentResponse:
    """Enroll an identity from uploaded images.

    Raises:
        HTTPException: 409 if another enrollment runs, 422 if validation fails
    """
    images = await read_uploads(files)
    reporter = RecordingProgressReporter()
    try:
        record = await run_in_threadpool(
            engine.enroll,
            identity_id,
            display_name,
            InMemoryImageSource(images, kind=source),
            reporter,
        )
    except FaceAuthError as e:
        logger.warning("Enrollment request failed", identity_id=identity_id, error=e.code)
        raise_http_error(e)

    return EnrollmentResponse(identity=summarize(record), progress=reporter.events)


@router.post(
    "/verify",
    response_model=VerificationResponse,
    summary="Verify a probe",
    description="Matches the uploaded probe photos against every enrolled identity.",
)
async def verify_probe(
    files: List[UploadFile] = File(...),
    engine: FaceAuthEngine = Depends(get_engine),
) -> VerificationResponse:
    """Verify uploaded probe images.

    A completed attempt returns 200 with an accept or reject decision; a failed
    attempt (no face, unstable capture, ...) returns an error status.
    """
    images = await read_uploads(files)
    reporter = RecordingProgressReporter()
    try:
        decision = await run_in_threadpool(
            engine.verify,
            InMemoryImageSource(images, kind=EnrollmentSource.CAMERA),
            reporter,
        )
    except FaceAuthError as e:
        logger.warning("Verification request failed", error=e.code)
        raise_http_error(e)

    return VerificationResponse(decision=decision, progress=reporter.events)


@router.get("/status", response_model=EngineStatus, summary="Enrollment status")
async def get_status(engine: FaceAuthEngine = Depends(get_engine)) -> EngineStatus:
    return engine.status()


@router.get("/identities/last", response_model=IdentitySummary, summary="Most recently enrolled identity")
async def get_last_enrolled(engine: FaceAuthEngine = Depends(get_engine)) -> IdentitySummary:
    summary = engine.last_enrolled()
    if summary is None:
        raise HTTPException(status_code=404, detail="No enrolled identities")
    return summary


@router.delete("/identities/{identity_id}", status_code=204, summary="Remove one identity")
async def remove_identity(identity_id: str, engine: FaceAuthEngine = Depends(get_engine)) -> Response:
    try:
        removed = await run_in_threadpool(engine.remove, identity_id)
    except FaceAuthError as e:
        raise_http_error(e)
    if not removed:
        raise HTTPException(status_code=404, detail=f"Identity {identity_id!r} not enrolled")
    return Response(status_code=204)


@router.delete("/identities", status_code=204, summary="Remove every identity")
async def clear_identities(engine: FaceAuthEngine = Depends(get_engine)) -> Response:
    try:
        await run_in_threadpool(engine.clear)
    except FaceAuthError as e:
        raise_http_error(e)
    return Response(status_code=204)
