"""Async HTTP client for the Watson Speech to Text API.

WHY: The CLI and the HTTP server both need to exchange the API key for
a bearer token, run synchronous recognitions, create asynchronous
recognition jobs, and poll them. This module keeps the HTTP details in
one class so callers only deal with dicts and RecognitionJob objects.

HOW: Uses httpx.AsyncClient for non-blocking HTTP. WatsonSTTClient is an
async context manager — enter it to open the connection pool, exit to
close it. Recognition calls authenticate with an IAM bearer token that
is fetched on first use and cached until shortly before it expires.

RULES:
- Always use the async context manager (async with WatsonSTTClient() as client:)
- Every recognition requests timestamps and speaker_labels (needed for realignment)
- Learning opt-out header is sent on every recognition request
- Polling uses exponential backoff: 2s initial, 1.5x factor, 15s max, 60min timeout
- Non-2xx responses raise WatsonAPIError
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from pathlib import Path
from typing import Any, Dict, Optional

import httpx

from watson_transcriber.api.models import (
    JOB_COMPLETED,
    JOB_FAILED,
    AccessToken,
    RecognitionJob,
)
from watson_transcriber.config import (
    ACOUSTIC_CUSTOMIZATION_ID,
    IAM_URL,
    LANGUAGE_CUSTOMIZATION_ID,
    STT_MODEL,
    content_type_for,
    load_api_key,
    load_service_url,
)

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

_POLL_INITIAL_INTERVAL_S = 2.0
_POLL_BACKOFF_FACTOR = 1.5
_POLL_MAX_INTERVAL_S = 15.0
_POLL_TIMEOUT_S = 60 * 60  # 60 minutes

_IAM_GRANT_TYPE = "urn:ibm:params:oauth:grant-type:apikey"
_OPT_OUT_HEADER = {"X-Watson-Learning-Opt-Out": "true"}


class WatsonAPIError(Exception):
    """Raised when Watson (or IAM) returns an error response.

    RULES:
    - Always include status_code and message
    - message is the response body text or a summary
    """

    def __init__(self, status_code: int, message: str) -> None:
        self.status_code = status_code
        self.message = message
        super().__init__(f"Watson API error {status_code}: {message}")


class AuthenticationError(WatsonAPIError):
    """Raised when the IAM API-key exchange fails."""


class RecognitionError(Exception):
    """Raised when a recognition job fails or a stream reports an error."""


class RecognitionTimeoutError(TimeoutError):
    """Raised when polling a recognition job exceeds the maximum timeout."""


def recognition_params(
    model: Optional[str] = None,
    language_customization_id: Optional[str] = None,
    acoustic_customization_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Build the recognition query parameters shared by every mode.

    WHY: Synchronous, asynchronous and WebSocket recognition all accept
    the same model/customization settings, and the speaker realignment
    needs timestamps and speaker labels in every response.

    RULES:
    - None values are omitted (Watson rejects empty customization IDs)
    - Booleans are sent as lowercase strings
    """
    params: Dict[str, Any] = {
        "model": model or STT_MODEL,
        "timestamps": "true",
        "speaker_labels": "true",
        "smart_formatting": "true",
    }
    if language_customization_id:
        params["language_customization_id"] = language_customization_id
    if acoustic_customization_id:
        params["acoustic_customization_id"] = acoustic_customization_id
    return params


class WatsonSTTClient:
    """Async client for the Watson Speech to Text REST API.

    WHY: Provides a typed interface for token exchange, synchronous
    recognition, and the asynchronous job workflow
    (create → poll → read results → delete).

    HOW: Wraps httpx.AsyncClient. IAM tokens are requested from IAM_URL
    and cached on the instance. Recognition requests carry the bearer
    token and the configured model/customization parameters.

    RULES:
    - Use as: async with WatsonSTTClient() as client: ...
    - api_key defaults to load_api_key(), service_url to load_service_url()
    - model and customization IDs default to the config module
    - transport is for tests (httpx.MockTransport)
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        service_url: Optional[str] = None,
        model: Optional[str] = None,
        language_customization_id: Optional[str] = None,
        acoustic_customization_id: Optional[str] = None,
        iam_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._api_key = api_key or load_api_key()
        self.service_url = (service_url or load_service_url()).rstrip("/")
        self.model = model or STT_MODEL
        self.language_customization_id = language_customization_id or LANGUAGE_CUSTOMIZATION_ID
        self.acoustic_customization_id = acoustic_customization_id or ACOUSTIC_CUSTOMIZATION_ID
        self._iam_url = iam_url or IAM_URL
        self._transport = transport
        self._token: Optional[AccessToken] = None
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> WatsonSTTClient:
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(300.0, connect=30.0),
            transport=self._transport,
        )
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:  # noqa: ANN001
        if self._client:
            await self._client.aclose()
            self._client = None

    def _ensure_client(self) -> httpx.AsyncClient:
        """Return the active httpx client, raising if not in context manager."""
        if self._client is None:
            raise RuntimeError(
                "WatsonSTTClient must be used as an async context manager: "
                "async with WatsonSTTClient() as client: ..."
            )
        return self._client

    @property
    def params(self) -> Dict[str, Any]:
        return recognition_params(
            self.model,
            self.language_customization_id,
            self.acoustic_customization_id,
        )

    # ------------------------------------------------------------------
    # Authentication
    # ------------------------------------------------------------------

    async def get_token(self, force: bool = False) -> str:
        """Return a bearer token, exchanging the API key when needed.

        WHY: Browsers (and the WebSocket stream) must not see the API key;
        they authenticate with a short-lived IAM token instead.

        HOW: POSTs the API key to the IAM token endpoint with the apikey
        grant type. The token is cached until 60 seconds before expiry.

        RULES:
        - force=True always fetches a new token
        - Raises AuthenticationError on non-200 responses
        """
        if not force and self._token is not None and self._token.is_fresh():
            return self._token.access_token

        client = self._ensure_client()
        logger.info("Requesting authentication token")
        resp = await client.post(
            self._iam_url,
            data={"grant_type": _IAM_GRANT_TYPE, "apikey": self._api_key},
            headers={"Accept": "application/json"},
        )
        if resp.status_code != 200:
            raise AuthenticationError(resp.status_code, resp.text)

        self._token = AccessToken.from_dict(resp.json())
        return self._token.access_token

    async def _auth_headers(self, content_type: Optional[str] = None) -> Dict[str, str]:
        headers = {"Authorization": "Bearer {}".format(await self.get_token())}
        headers.update(_OPT_OUT_HEADER)
        if content_type:
            headers["Content-Type"] = content_type
        return headers

    # ------------------------------------------------------------------
    # Synchronous recognition
    # ------------------------------------------------------------------

    async def recognize(
        self,
        audio_path: Path,
        on_status: Callable[[str], None] | None = None,
    ) -> Dict[str, Any]:
        """Send an audio file to POST /v1/recognize and return the response.

        RULES:
        - The content type is derived from the file extension
        - Returns the raw response dict (results + speaker_labels)
        - Raises WatsonAPIError on non-200 responses
        """
        client = self._ensure_client()
        audio_path = Path(audio_path)
        if on_status:
            on_status("Recognizing {}...".format(audio_path.name))

        headers = await self._auth_headers(content_type_for(audio_path))
        resp = await client.post(
            "{}/v1/recognize".format(self.service_url),
            params=self.params,
            headers=headers,
            content=audio_path.read_bytes(),
        )
        if resp.status_code != 200:
            raise WatsonAPIError(resp.status_code, resp.text)
        return resp.json()

    # ------------------------------------------------------------------
    # Asynchronous recognition jobs
    # ------------------------------------------------------------------

    async def create_job(
        self,
        audio: Path | bytes,
        content_type: Optional[str] = None,
        on_status: Callable[[str], None] | None = None,
    ) -> RecognitionJob:
        """Create an asynchronous recognition job via POST /v1/recognitions.

        Args:
            audio: Path to an audio file, or the raw audio bytes.
            content_type: Required when audio is bytes; derived from the
                file extension otherwise.
            on_status: Optional callback for status updates.

        Returns:
            The new RecognitionJob (status "waiting" or "processing").
        """
        client = self._ensure_client()
        if isinstance(audio, (bytes, bytearray)):
            if not content_type:
                raise ValueError("content_type is required for raw audio bytes")
            body = bytes(audio)
        else:
            audio = Path(audio)
            content_type = content_type or content_type_for(audio)
            body = audio.read_bytes()

        if on_status:
            on_status("Creating recognition job...")

        headers = await self._auth_headers(content_type)
        resp = await client.post(
            "{}/v1/recognitions".format(self.service_url),
            params=self.params,
            headers=headers,
            content=body,
        )
        if resp.status_code not in (200, 201):
            raise WatsonAPIError(resp.status_code, resp.text)

        job = RecognitionJob.from_dict(resp.json())
        logger.info("Created recognition job %s (%s)", job.id, job.status)
        return job

    async def check_job(self, job_id: str) -> RecognitionJob:
        """Fetch the current state of a job via GET /v1/recognitions/{id}."""
        client = self._ensure_client()
        resp = await client.get(
            "{}/v1/recognitions/{}".format(self.service_url, job_id),
            headers=await self._auth_headers(),
        )
        if resp.status_code != 200:
            raise WatsonAPIError(resp.status_code, resp.text)
        return RecognitionJob.from_dict(resp.json())

    async def poll_until_complete(
        self,
        job_id: str,
        on_status: Callable[[str], None] | None = None,
    ) -> RecognitionJob:
        """Poll a recognition job until it completes or fails.

        HOW: Exponential backoff polling — starts at 2s intervals, grows
        by 1.5x per poll, capped at 15s. Total timeout is 60 minutes.

        RULES:
        - Returns the RecognitionJob when status is "completed"
        - Raises RecognitionError when status is "failed"
        - Raises RecognitionTimeoutError after 60 minutes
        """
        interval = _POLL_INITIAL_INTERVAL_S
        start_time = time.monotonic()

        while True:
            elapsed = time.monotonic() - start_time
            if elapsed > _POLL_TIMEOUT_S:
                raise RecognitionTimeoutError(
                    f"Recognition job {job_id} timed out after "
                    f"{elapsed:.0f}s (limit: {_POLL_TIMEOUT_S}s)"
                )

            job = await self.check_job(job_id)

            if on_status:
                elapsed_min = int(elapsed) // 60
                elapsed_sec = int(elapsed) % 60
                if job.status == JOB_COMPLETED:
                    on_status("Recognition complete.")
                elif job.status == JOB_FAILED:
                    on_status("Recognition failed.")
                else:
                    on_status(
                        f"Job {job.status}... (elapsed: {elapsed_min}m {elapsed_sec:02d}s)"
                    )

            if job.status == JOB_COMPLETED:
                return job

            if job.status == JOB_FAILED:
                raise RecognitionError(
                    "Recognition job {} failed: {}".format(
                        job_id, "; ".join(job.warnings) or "no details"
                    )
                )

            await asyncio.sleep(interval)
            interval = min(interval * _POLL_BACKOFF_FACTOR, _POLL_MAX_INTERVAL_S)

    async def delete_job(self, job_id: str) -> None:
        """Delete a recognition job from Watson (best-effort).

        Watson keeps completed jobs for a week; deleting them frees the
        per-instance job quota. Network errors are logged, not raised.
        """
        client = self._ensure_client()
        try:
            await client.delete(
                "{}/v1/recognitions/{}".format(self.service_url, job_id),
                headers=await self._auth_headers(),
            )
        except httpx.HTTPError:
            logger.warning("Failed to delete recognition job %s", job_id)
