"""Per-file recognition lifecycle: start, follow, edit, and save a transcript.

WHY: A user works on one audio file at a time: start a recognition
(streamed or as a job), watch the transcript grow, correct it, and save
it as text. FileRecognition keeps that state for one file so the CLI
(and any other front end) does not juggle job IDs and result dicts.

HOW: Wraps a WatsonSTTClient. create_job()/check_job() drive the async
job mode; transcribe() drives the WebSocket mode through RecognizeStream.
Either way, the speaker-labelled text ends up in ``transcription``,
which the caller may overwrite before calling save().

RULES:
- status is one of STATUS_NOT_STARTED, STATUS_PROCESSING, STATUS_COMPLETED
- check_job() before create_job() returns False and does nothing
- Errors are logged and surfaced in ``transcription``; the status becomes
  completed so the caller stops waiting
- save() writes "<audio filename>.txt"
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import websockets

from watson_transcriber.api.client import RecognitionError, WatsonAPIError, WatsonSTTClient
from watson_transcriber.api.models import JOB_COMPLETED, JOB_FAILED
from watson_transcriber.api.streaming import RecognizeStream
from watson_transcriber.core.transcript import transcription_from_results

logger = logging.getLogger(__name__)

STATUS_NOT_STARTED = "transcribe"
STATUS_PROCESSING = "processing"
STATUS_COMPLETED = "completed"

_PROCESSING_TEXT = "Processing... results may take a few moments to return"


class FileRecognition:
    """Recognition state for one audio file."""

    def __init__(self, path: Path, client: WatsonSTTClient) -> None:
        self.path = Path(path)
        self.client = client
        self.id: Optional[str] = None
        self.created: Optional[str] = None
        self.updated: Optional[str] = None
        self.url: Optional[str] = None
        self.status = STATUS_NOT_STARTED
        self.results: Optional[list] = None
        self.transcription = _PROCESSING_TEXT
        self._stream: Optional[RecognizeStream] = None

    @property
    def name(self) -> str:
        return self.path.name

    def is_processing(self) -> bool:
        return self.status == STATUS_PROCESSING

    def is_complete(self) -> bool:
        return self.status == STATUS_COMPLETED

    def _fail(self, exc: Exception) -> None:
        logger.error("Transcription of %s failed: %s", self.name, exc)
        self.transcription = "Transcription error: {}".format(exc)
        self.status = STATUS_COMPLETED

    # ------------------------------------------------------------------
    # Asynchronous job mode
    # ------------------------------------------------------------------

    async def create_job(self) -> None:
        """Submit the file as an asynchronous recognition job."""
        logger.info("Creating job: %s", self.name)
        self.status = STATUS_PROCESSING
        try:
            job = await self.client.create_job(self.path)
        except (WatsonAPIError, ValueError) as exc:
            self._fail(exc)
            return
        self.id = job.id
        self.created = job.created
        self.url = job.url
        self.transcription = "Processing... "

    async def check_job(self) -> bool:
        """Refresh the job state; returns False when no job exists yet."""
        if not self.id:
            return False

        logger.info("Checking job: %s Id: %s", self.name, self.id)
        try:
            job = await self.client.check_job(self.id)
        except WatsonAPIError as exc:
            self._fail(exc)
            return True

        self.updated = job.updated
        self.results = job.results

        if job.status == JOB_FAILED:
            self._fail(RecognitionError("recognition job {} failed".format(job.id)))
        elif job.status == JOB_COMPLETED:
            self.transcription = transcription_from_results(job.results or [])
            self.status = STATUS_COMPLETED
            logger.info("Completed job: %s Id: %s", self.name, self.id)
        return True

    # ------------------------------------------------------------------
    # Synchronous mode
    # ------------------------------------------------------------------

    async def recognize(self) -> None:
        """Recognize the file with a single POST /v1/recognize call."""
        self.status = STATUS_PROCESSING
        try:
            recognition = await self.client.recognize(self.path)
        except (WatsonAPIError, ValueError) as exc:
            self._fail(exc)
            return
        self.results = [recognition]
        self.transcription = transcription_from_results(self.results)
        self.status = STATUS_COMPLETED

    # ------------------------------------------------------------------
    # WebSocket mode
    # ------------------------------------------------------------------

    def _on_data(self, update: Dict[str, Any]) -> None:
        lines = []
        for result in update.get("results", []):
            alternatives = result.get("alternatives") or [{}]
            lines.append("Speaker {}: {}".format(
                result.get("speaker"), alternatives[0].get("transcript", "")
            ))
        self.transcription = "\n".join(lines)

    async def transcribe(self) -> None:
        """Recognize the file over a WebSocket, updating transcription live."""
        self.status = STATUS_PROCESSING
        try:
            token = await self.client.get_token()
            self._stream = RecognizeStream(self.client.service_url, token, self.client.params)
            recognition = await self._stream.run(self.path, on_data=self._on_data)
        except (WatsonAPIError, RecognitionError, websockets.WebSocketException, OSError) as exc:
            self._fail(exc)
            return

        self._on_data(recognition)
        self.results = [self._stream.recognition]
        self.status = STATUS_COMPLETED

    def stop(self) -> None:
        """Stop listening to a running WebSocket recognition."""
        if self._stream is not None:
            self._stream.cancel()

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def save(self, output_dir: Optional[Path] = None) -> Path:
        """Write the (possibly edited) transcription to "<filename>.txt"."""
        output_dir = Path(output_dir) if output_dir else self.path.parent
        out_path = output_dir / "{}.txt".format(self.name)
        out_path.write_text(self.transcription, encoding="utf-8")
        return out_path
