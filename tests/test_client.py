"""Tests for the Watson STT HTTP client (api.client, api.models).

WHY: The client carries authentication, recognition parameters, and the
polling loop. A missing speaker_labels parameter or a token that is never
refreshed would break every caller, so these are checked directly.

HOW: httpx.MockTransport stands in for IAM and Watson. A small router
records each request and answers by path. Polling sleeps are patched out.

RULES:
- No network access; every request is answered by the mock transport
- Each test builds its own client
"""

from __future__ import annotations

import time
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from watson_transcriber.api.client import (
    AuthenticationError,
    RecognitionError,
    WatsonAPIError,
    WatsonSTTClient,
    recognition_params,
)
from watson_transcriber.api.models import AccessToken, RecognitionJob

SERVICE_URL = "https://stt.example.com"
IAM_URL = "https://iam.example.com/identity/token"


class Router:
    """Answers mock requests and records them."""

    def __init__(self, job_statuses=None, token_status=200):
        self.requests = []
        self.job_statuses = list(job_statuses or ["completed"])
        self.token_status = token_status
        self.token_count = 0

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if str(request.url).startswith(IAM_URL):
            if self.token_status != 200:
                return httpx.Response(self.token_status, text="invalid apikey")
            self.token_count += 1
            return httpx.Response(200, json={
                "access_token": "token-{}".format(self.token_count),
                "expiration": time.time() + 3600,
            })

        if path == "/v1/recognize":
            return httpx.Response(200, json={"results": [], "speaker_labels": []})

        if path == "/v1/recognitions" and request.method == "POST":
            return httpx.Response(201, json={
                "id": "job-1",
                "status": "waiting",
                "created": "2026-10-19T10:00:00.000Z",
                "url": SERVICE_URL + "/v1/recognitions/job-1",
            })

        if path == "/v1/recognitions/job-1" and request.method == "GET":
            status = self.job_statuses.pop(0) if len(self.job_statuses) > 1 else self.job_statuses[0]
            body = {"id": "job-1", "status": status, "updated": "2026-10-19T10:01:00.000Z"}
            if status == "completed":
                body["results"] = [{"results": [], "speaker_labels": []}]
            return httpx.Response(200, json=body)

        if path == "/v1/recognitions/job-1" and request.method == "DELETE":
            return httpx.Response(204)

        return httpx.Response(404, text="not found")


def _client(router: Router, **kwargs) -> WatsonSTTClient:
    return WatsonSTTClient(
        api_key="secret",
        service_url=SERVICE_URL,
        iam_url=IAM_URL,
        transport=httpx.MockTransport(router),
        **kwargs,
    )


def _audio(tmp_path, name="speech.wav", content=b"RIFF....WAVE"):
    path = tmp_path / name
    path.write_bytes(content)
    return path


# ---------------------------------------------------------------------------
# Models and parameters
# ---------------------------------------------------------------------------


class TestModels:

    def test_recognition_job_from_dict(self, completed_job):
        job = RecognitionJob.from_dict(completed_job)
        assert job.id == "job-123"
        assert job.is_complete
        assert not job.is_failed
        assert job.results[0]["speaker_labels"]
        assert job.warnings == []

    def test_access_token_freshness(self):
        assert AccessToken("t", time.time() + 3600).is_fresh()
        assert not AccessToken("t", time.time() + 30).is_fresh()

    def test_access_token_from_expires_in(self):
        token = AccessToken.from_dict({"access_token": "t", "expires_in": 3600})
        assert token.is_fresh()


class TestRecognitionParams:

    def test_always_requests_timestamps_and_speakers(self):
        params = recognition_params("en-US_BroadbandModel")
        assert params["model"] == "en-US_BroadbandModel"
        assert params["timestamps"] == "true"
        assert params["speaker_labels"] == "true"

    def test_customization_ids_omitted_when_unset(self):
        params = recognition_params("m")
        assert "language_customization_id" not in params
        assert "acoustic_customization_id" not in params

    def test_customization_ids_included(self):
        params = recognition_params("m", "lang-1", "ac-1")
        assert params["language_customization_id"] == "lang-1"
        assert params["acoustic_customization_id"] == "ac-1"


# ---------------------------------------------------------------------------
# Client
# ---------------------------------------------------------------------------


class TestClientLifecycle:

    @pytest.mark.asyncio
    async def test_requires_context_manager(self):
        client = _client(Router())
        with pytest.raises(RuntimeError, match="async context manager"):
            await client.get_token()

    def test_reads_credentials_from_env(self, stt_env):
        client = WatsonSTTClient()
        assert client.service_url == "https://stt.example.com"
        assert client.params["speaker_labels"] == "true"

    def test_missing_config_raises(self, monkeypatch):
        monkeypatch.delenv("APIKEY", raising=False)
        with pytest.raises(ValueError, match="APIKEY"):
            WatsonSTTClient(service_url=SERVICE_URL)


class TestTokens:

    @pytest.mark.asyncio
    async def test_token_exchange_sends_api_key(self):
        router = Router()
        async with _client(router) as client:
            token = await client.get_token()

        assert token == "token-1"
        body = router.requests[0].content.decode()
        assert "apikey=secret" in body
        assert "grant_type=urn%3Aibm%3Aparams%3Aoauth%3Agrant-type%3Aapikey" in body

    @pytest.mark.asyncio
    async def test_token_is_cached(self):
        router = Router()
        async with _client(router) as client:
            await client.get_token()
            await client.get_token()
        assert router.token_count == 1

    @pytest.mark.asyncio
    async def test_force_refresh(self):
        router = Router()
        async with _client(router) as client:
            await client.get_token()
            assert await client.get_token(force=True) == "token-2"

    @pytest.mark.asyncio
    async def test_token_failure_raises(self):
        async with _client(Router(token_status=400)) as client:
            with pytest.raises(AuthenticationError) as exc_info:
                await client.get_token()
        assert exc_info.value.status_code == 400


class TestRecognize:

    @pytest.mark.asyncio
    async def test_sync_recognize(self, tmp_path):
        router = Router()
        async with _client(router, model="en-GB_NarrowbandModel") as client:
            result = await client.recognize(_audio(tmp_path))

        assert result == {"results": [], "speaker_labels": []}
        request = router.requests[-1]
        assert request.headers["Authorization"] == "Bearer token-1"
        assert request.headers["Content-Type"] == "audio/wav"
        assert request.headers["X-Watson-Learning-Opt-Out"] == "true"
        assert request.url.params["model"] == "en-GB_NarrowbandModel"
        assert request.url.params["speaker_labels"] == "true"

    @pytest.mark.asyncio
    async def test_unsupported_extension(self, tmp_path):
        async with _client(Router()) as client:
            with pytest.raises(ValueError, match="Unsupported file type"):
                await client.recognize(_audio(tmp_path, name="notes.txt"))


class TestJobs:

    @pytest.mark.asyncio
    async def test_create_job_from_path(self, tmp_path):
        router = Router()
        async with _client(router) as client:
            job = await client.create_job(_audio(tmp_path, name="call.mp3"))

        assert job.id == "job-1"
        assert job.status == "waiting"
        assert router.requests[-1].headers["Content-Type"] == "audio/mp3"

    @pytest.mark.asyncio
    async def test_create_job_from_bytes_needs_content_type(self):
        async with _client(Router()) as client:
            with pytest.raises(ValueError, match="content_type"):
                await client.create_job(b"data")
            job = await client.create_job(b"data", content_type="audio/flac")
        assert job.id == "job-1"

    @pytest.mark.asyncio
    async def test_check_job(self):
        async with _client(Router(job_statuses=["processing"])) as client:
            job = await client.check_job("job-1")
        assert job.status == "processing"
        assert job.results is None

    @pytest.mark.asyncio
    async def test_check_unknown_job_raises(self):
        async with _client(Router()) as client:
            with pytest.raises(WatsonAPIError) as exc_info:
                await client.check_job("missing")
        assert exc_info.value.status_code == 404

    @pytest.mark.asyncio
    async def test_poll_until_complete(self):
        statuses = []
        router = Router(job_statuses=["waiting", "processing", "completed"])
        with patch("watson_transcriber.api.client.asyncio.sleep", new=AsyncMock()) as sleep:
            async with _client(router) as client:
                job = await client.poll_until_complete("job-1", on_status=statuses.append)

        assert job.is_complete
        assert sleep.await_count == 2
        assert statuses[-1] == "Recognition complete."

    @pytest.mark.asyncio
    async def test_poll_failed_job_raises(self):
        with patch("watson_transcriber.api.client.asyncio.sleep", new=AsyncMock()):
            async with _client(Router(job_statuses=["failed"])) as client:
                with pytest.raises(RecognitionError, match="job-1"):
                    await client.poll_until_complete("job-1")

    @pytest.mark.asyncio
    async def test_delete_job(self):
        router = Router()
        async with _client(router) as client:
            await client.delete_job("job-1")
        assert router.requests[-1].method == "DELETE"
        assert router.requests[-1].url.path == "/v1/recognitions/job-1"
