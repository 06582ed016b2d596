"""FastAPI application: token, config, and recognition job endpoints.

WHY: A browser front end must never hold the Watson API key. It asks
this server for the recognition settings and a short-lived bearer token,
or hands the audio to the server and polls an asynchronous job. Users
can then edit the transcript and download it as text.

HOW: One WatsonSTTClient is opened for the app's lifetime (so the IAM
token is cached across requests) and injected into endpoints through a
dependency. Created jobs are cached in a JobStore; POST /api/checkJob
refreshes a job from Watson and, once it completes, realigns the results
by speaker into transcript text. A background task expires stale jobs.
If a built front end exists in STATIC_DIR it is served at "/".

RULES:
- Missing APIKEY/URL is logged at startup; Watson endpoints then return 503
- Watson/IAM errors and network failures become 502 responses, except
  /api/token which returns 500 "Error retrieving token: ..." as plain text
- Unknown job IDs return 404
- A user-edited transcript is never overwritten by a later checkJob
- Python 3.9+ compatible (no match/case)
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Annotated
from urllib.parse import quote

import httpx
from fastapi import Depends, FastAPI, File, HTTPException, Request, UploadFile
from fastapi.responses import PlainTextResponse, Response
from fastapi.staticfiles import StaticFiles

from watson_transcriber import __version__
from watson_transcriber.api.client import WatsonAPIError, WatsonSTTClient
from watson_transcriber.config import (
    JOB_TTL_SECONDS,
    PORT,
    STATIC_DIR,
    content_type_for,
    stt_config,
)
from watson_transcriber.core.transcript import transcription_from_results
from watson_transcriber.server.jobs import Job, JobStatus, JobStore
from watson_transcriber.server.models import (
    CheckJobRequest,
    ConfigResponse,
    ErrorResponse,
    HealthResponse,
    JobCreatedResponse,
    JobResponse,
    TranscriptionUpdate,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# App and store setup
# ---------------------------------------------------------------------------

job_store = JobStore(ttl_seconds=JOB_TTL_SECONDS)


async def _periodic_cleanup() -> None:
    """Run job cleanup every 5 minutes."""
    while True:
        await asyncio.sleep(300)
        job_store.cleanup_expired()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the Watson client and start periodic cleanup; undo on shutdown."""
    app.state.stt_client = None
    try:
        client = WatsonSTTClient()
    except ValueError as exc:
        logger.error("%s - Watson endpoints are disabled", exc)
        client = None

    if client is not None:
        app.state.stt_client = await client.__aenter__()

    task = asyncio.create_task(_periodic_cleanup())
    yield
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass

    if client is not None:
        await client.__aexit__(None, None, None)


app = FastAPI(
    lifespan=lifespan,
    title="Watson Speech Transcriber API",
    description=(
        "Token exchange and asynchronous recognition jobs for IBM Watson "
        "Speech to Text, with speaker-labelled transcripts. Upload audio, "
        "poll the job, edit and download the transcript."
    ),
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
)


def get_stt_client(request: Request) -> WatsonSTTClient:
    """Dependency returning the app-wide Watson client."""
    client = getattr(request.app.state, "stt_client", None)
    if client is None:
        raise HTTPException(
            status_code=503,
            detail="Watson Speech to Text is not configured (APIKEY/URL missing).",
        )
    return client


SttClient = Annotated[WatsonSTTClient, Depends(get_stt_client)]


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _job_to_response(job: Job) -> JobResponse:
    """Convert an internal Job dataclass to a JobResponse Pydantic model."""
    completed = job.status == JobStatus.COMPLETED
    return JobResponse(
        id=job.id,
        status=job.status.value,
        filename=job.filename,
        updated=job.updated,
        results=job.results if completed else None,
        transcription=job.transcription if completed else None,
        edited=job.edited,
    )


def _get_job_or_404(job_id: str) -> Job:
    job = job_store.get_job(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found: {}".format(job_id))
    return job


# ---------------------------------------------------------------------------
# Endpoints: Configuration and authentication
# ---------------------------------------------------------------------------


@app.get(
    "/api/config",
    response_model=ConfigResponse,
    tags=["config"],
    summary="Get the recognition configuration",
    description="Returns the Watson URL, model and customization IDs used by the server.",
)
async def get_config() -> ConfigResponse:
    return ConfigResponse(**stt_config())


@app.get(
    "/api/token",
    response_class=PlainTextResponse,
    tags=["config"],
    summary="Get a Watson bearer token",
    description=(
        "Exchanges the server's API key for a short-lived IAM bearer token "
        "and returns it as plain text."
    ),
    responses={500: {"description": "Token exchange failed"}},
)
async def get_token(client: SttClient) -> PlainTextResponse:
    try:
        token = await client.get_token()
    except (WatsonAPIError, httpx.HTTPError) as exc:
        logger.error("Error retrieving token: %s", exc)
        return PlainTextResponse("Error retrieving token: {}".format(exc), status_code=500)
    return PlainTextResponse(token)


# ---------------------------------------------------------------------------
# Endpoints: Recognition jobs
# ---------------------------------------------------------------------------


@app.post(
    "/api/createJob",
    response_model=JobCreatedResponse,
    status_code=201,
    tags=["jobs"],
    summary="Create an asynchronous recognition job",
    description=(
        "Upload an audio file. The server creates a Watson recognition job "
        "with timestamps and speaker labels and returns the job descriptor. "
        "Poll POST /api/checkJob with the job ID for results."
    ),
    responses={
        400: {"model": ErrorResponse, "description": "Unsupported audio type"},
        429: {"model": ErrorResponse, "description": "Too many cached jobs"},
        502: {"model": ErrorResponse, "description": "Watson rejected the request"},
    },
)
async def create_job(
    client: SttClient,
    audio: Annotated[UploadFile, File(description="Audio file to transcribe")],
) -> JobCreatedResponse:
    # Sanitize filename to prevent path traversal
    filename = Path(audio.filename or "upload").name
    try:
        content_type = content_type_for(filename)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))

    if len(job_store.list_jobs()) >= job_store.max_jobs:
        raise HTTPException(
            status_code=429,
            detail="Maximum number of concurrent jobs ({}) reached".format(job_store.max_jobs),
        )

    logger.info("Creating job: %s", filename)
    content = await audio.read()
    try:
        watson_job = await client.create_job(content, content_type=content_type)
    except (WatsonAPIError, httpx.HTTPError) as exc:
        logger.error("Error creating job for %s: %s", filename, exc)
        raise HTTPException(status_code=502, detail=str(exc))

    try:
        job = job_store.add_job(
            watson_job.id,
            filename=filename,
            status=watson_job.status,
            created=watson_job.created,
            url=watson_job.url,
        )
    except ValueError as exc:
        raise HTTPException(status_code=429, detail=str(exc))

    return JobCreatedResponse(
        id=job.id,
        created=job.created,
        url=job.url,
        status=job.status.value,
        filename=job.filename,
    )


@app.post(
    "/api/checkJob",
    response_model=JobResponse,
    tags=["jobs"],
    summary="Check a recognition job",
    description=(
        "Refreshes the job from Watson. Once completed, the response carries "
        "the raw results and the speaker-labelled transcript."
    ),
    responses={
        404: {"model": ErrorResponse, "description": "Job not found"},
        502: {"model": ErrorResponse, "description": "Watson rejected the request"},
    },
)
async def check_job(body: CheckJobRequest, client: SttClient) -> JobResponse:
    job = _get_job_or_404(body.id)

    if job.status not in (JobStatus.COMPLETED, JobStatus.FAILED):
        logger.info("Checking job: %s Id: %s", job.filename, job.id)
        try:
            watson_job = await client.check_job(job.id)
        except (WatsonAPIError, httpx.HTTPError) as exc:
            logger.error("Error checking job %s: %s", job.id, exc)
            raise HTTPException(status_code=502, detail=str(exc))

        transcription = None
        if watson_job.is_complete and not job.edited:
            transcription = transcription_from_results(watson_job.results or [])
            logger.info("Completed job: %s Id: %s", job.filename, job.id)

        job = job_store.update_job(
            job.id,
            status=watson_job.status,
            updated=watson_job.updated,
            results=watson_job.results,
            transcription=transcription,
        ) or job

    return _job_to_response(job)


@app.put(
    "/api/jobs/{job_id}/transcription",
    response_model=JobResponse,
    tags=["jobs"],
    summary="Replace a job's transcript with edited text",
    responses={
        404: {"model": ErrorResponse, "description": "Job not found"},
        409: {"model": ErrorResponse, "description": "Job not yet completed"},
    },
)
async def update_transcription(job_id: str, body: TranscriptionUpdate) -> JobResponse:
    job = _get_job_or_404(job_id)
    if job.status != JobStatus.COMPLETED:
        raise HTTPException(
            status_code=409,
            detail="Job is not completed (current status: {}).".format(job.status.value),
        )
    job = job_store.update_job(job_id, transcription=body.transcription, edited=True) or job
    return _job_to_response(job)


@app.get(
    "/api/jobs/{job_id}/transcription",
    tags=["jobs"],
    summary="Download a job's transcript",
    description="Downloads the (possibly edited) transcript as '<filename>.txt'.",
    responses={
        404: {"model": ErrorResponse, "description": "Job not found"},
        409: {"model": ErrorResponse, "description": "Job not yet completed"},
    },
)
async def download_transcription(job_id: str) -> Response:
    job = _get_job_or_404(job_id)
    if job.status != JobStatus.COMPLETED:
        raise HTTPException(
            status_code=409,
            detail="Job is not completed (current status: {}).".format(job.status.value),
        )
    return Response(
        content=job.transcription.encode("utf-8"),
        media_type="text/plain; charset=utf-8",
        headers={
            "Content-Disposition": "attachment; filename*=UTF-8''{}".format(
                quote("{}.txt".format(job.filename))
            ),
        },
    )


@app.delete(
    "/api/jobs/{job_id}",
    status_code=204,
    tags=["jobs"],
    summary="Delete a recognition job",
    description="Removes the job from the cache and deletes it at Watson.",
    responses={404: {"model": ErrorResponse, "description": "Job not found"}},
)
async def delete_job(job_id: str, client: SttClient) -> Response:
    if not job_store.delete_job(job_id):
        raise HTTPException(status_code=404, detail="Job not found: {}".format(job_id))
    await client.delete_job(job_id)
    return Response(status_code=204)


# ---------------------------------------------------------------------------
# Endpoints: Health
# ---------------------------------------------------------------------------


@app.get(
    "/health",
    response_model=HealthResponse,
    tags=["health"],
    summary="Health check",
    description="Liveness check for load balancers and orchestrators.",
)
async def health_check() -> HealthResponse:
    return HealthResponse(status="ok", version=__version__)


# Front end (mounted last so the API routes take precedence)
if STATIC_DIR.is_dir():
    app.mount("/", StaticFiles(directory=STATIC_DIR, html=True), name="static")


def run_api():
    """Entry point for the watson-transcriber-api console script."""
    import uvicorn

    logging.basicConfig(
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        level=logging.INFO,
    )
    logger.info("Server running at port: %s", PORT)
    uvicorn.run(app, host="0.0.0.0", port=PORT)
