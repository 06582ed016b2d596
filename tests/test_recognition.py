"""Tests for the per-file recognition lifecycle (recognition.FileRecognition).

HOW: The Watson client is a MagicMock with AsyncMock methods; the
WebSocket stream is patched with a stub that replays a recognition.
"""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from watson_transcriber.api.client import WatsonAPIError
from watson_transcriber.api.models import RecognitionJob
from watson_transcriber.recognition import (
    STATUS_COMPLETED,
    STATUS_NOT_STARTED,
    STATUS_PROCESSING,
    FileRecognition,
)


@pytest.fixture
def audio(tmp_path):
    path = tmp_path / "meeting.wav"
    path.write_bytes(b"audio")
    return path


@pytest.fixture
def client():
    client = MagicMock()
    client.service_url = "https://stt.example.com"
    client.params = {"model": "m"}
    client.get_token = AsyncMock(return_value="tok")
    client.create_job = AsyncMock(return_value=RecognitionJob(
        id="job-1", status="waiting", created="c", url="u",
    ))
    return client


class TestInitialState:

    def test_not_started(self, audio, client):
        recognition = FileRecognition(audio, client)
        assert recognition.status == STATUS_NOT_STARTED
        assert not recognition.is_processing()
        assert not recognition.is_complete()
        assert recognition.name == "meeting.wav"

    @pytest.mark.asyncio
    async def test_check_before_create_returns_false(self, audio, client):
        client.check_job = AsyncMock()
        recognition = FileRecognition(audio, client)
        assert await recognition.check_job() is False
        client.check_job.assert_not_awaited()


class TestJobMode:

    @pytest.mark.asyncio
    async def test_create_then_complete(self, audio, client, completed_job):
        client.check_job = AsyncMock(return_value=RecognitionJob.from_dict(completed_job))
        recognition = FileRecognition(audio, client)

        await recognition.create_job()
        assert recognition.id == "job-1"
        assert recognition.is_processing()

        assert await recognition.check_job() is True
        assert recognition.is_complete()
        assert recognition.transcription.startswith("Speaker 0: Hi there. ")

    @pytest.mark.asyncio
    async def test_still_processing(self, audio, client):
        client.check_job = AsyncMock(return_value=RecognitionJob(id="job-1", status="processing"))
        recognition = FileRecognition(audio, client)
        await recognition.create_job()
        await recognition.check_job()
        assert recognition.status == STATUS_PROCESSING

    @pytest.mark.asyncio
    async def test_create_failure_is_surfaced(self, audio, client):
        client.create_job = AsyncMock(side_effect=WatsonAPIError(400, "bad audio"))
        recognition = FileRecognition(audio, client)
        await recognition.create_job()
        assert recognition.status == STATUS_COMPLETED
        assert "bad audio" in recognition.transcription

    @pytest.mark.asyncio
    async def test_failed_job(self, audio, client):
        client.check_job = AsyncMock(return_value=RecognitionJob(id="job-1", status="failed"))
        recognition = FileRecognition(audio, client)
        await recognition.create_job()
        await recognition.check_job()
        assert recognition.is_complete()
        assert recognition.transcription.startswith("Transcription error:")


class TestSyncMode:

    @pytest.mark.asyncio
    async def test_recognize(self, audio, client, recognition):
        client.recognize = AsyncMock(return_value=recognition)
        file_recognition = FileRecognition(audio, client)
        await file_recognition.recognize()
        assert file_recognition.is_complete()
        assert file_recognition.transcription.splitlines()[-1] == "Speaker 0: You. "


class TestStreamMode:

    @pytest.mark.asyncio
    async def test_transcribe(self, audio, client, recognition):
        from watson_transcriber.core.speakers import results_by_speaker

        stream = MagicMock()
        stream.run = AsyncMock(return_value=results_by_speaker(recognition))
        stream.recognition = recognition

        with patch("watson_transcriber.recognition.RecognizeStream", return_value=stream) as cls:
            file_recognition = FileRecognition(audio, client)
            await file_recognition.transcribe()

        cls.assert_called_once_with("https://stt.example.com", "tok", {"model": "m"})
        assert file_recognition.is_complete()
        assert file_recognition.transcription.splitlines()[0] == "Speaker 0: hi there "
        assert file_recognition.results == [recognition]

    @pytest.mark.asyncio
    async def test_stop_cancels_stream(self, audio, client):
        stream = MagicMock()
        recognition = FileRecognition(audio, client)
        recognition._stream = stream
        recognition.stop()
        stream.cancel.assert_called_once()

    def test_stop_without_stream_is_noop(self, audio, client):
        FileRecognition(audio, client).stop()


class TestSave:

    def test_save_next_to_audio(self, audio, client):
        recognition = FileRecognition(audio, client)
        recognition.transcription = "Speaker 0: Edited."
        path = recognition.save()
        assert path.name == "meeting.wav.txt"
        assert path.read_text(encoding="utf-8") == "Speaker 0: Edited."

    def test_save_to_output_dir(self, audio, client, tmp_path):
        out = tmp_path / "out"
        out.mkdir()
        path = FileRecognition(audio, client).save(out)
        assert path.parent == out
