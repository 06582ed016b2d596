"""WebSocket streaming recognition against Watson's /v1/recognize socket.

WHY: The WebSocket interface returns results while the audio is still
being processed, so a caller can show a running transcript instead of
waiting for a job to finish. It is also the only mode where the caller
can stop listening part way through.

HOW: RecognizeStream opens wss://.../v1/recognize with the bearer token,
model and customization IDs in the query string, sends a "start" action,
streams the audio as binary frames, and sends a "stop" action. Incoming
text frames are JSON: result batches (merged by result_index), speaker
label batches (accumulated), state messages, and errors. After every
update the on_data callback receives the current recognition, realigned
by speaker once labels have arrived.

RULES:
- The second {"state": "listening"} message marks the end of the audio
- {"error": ...} raises RecognitionError
- cancel() makes run() return the recognition collected so far, even
  while the socket is silent (the listening task is cancelled)
- handle_message() is independent of the socket so it can be tested alone
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Callable
from pathlib import Path
from typing import Any, Dict, List, Optional
from urllib.parse import urlencode

import websockets

from watson_transcriber.api.client import RecognitionError
from watson_transcriber.config import content_type_for
from watson_transcriber.core.speakers import results_by_speaker

logger = logging.getLogger(__name__)

CHUNK_SIZE = 32 * 1024

# Recognition parameters the socket URL accepts; the rest go in the start message
_URL_PARAMS = ("model", "language_customization_id", "acoustic_customization_id")


def websocket_url(service_url: str) -> str:
    """Turn a Watson service URL into its recognize WebSocket URL.

    >>> websocket_url("https://api.us-south.speech-to-text.watson.cloud.ibm.com/instances/x")
    'wss://api.us-south.speech-to-text.watson.cloud.ibm.com/instances/x/v1/recognize'
    """
    url = service_url.rstrip("/")
    if url.startswith("https://"):
        url = "wss://" + url[len("https://"):]
    elif url.startswith("http://"):
        url = "ws://" + url[len("http://"):]
    return url + "/v1/recognize"


class RecognizeStream:
    """A single WebSocket recognition of one audio file.

    Usage:
        stream = RecognizeStream(client.service_url, token, client.params)
        recognition = await stream.run(path, on_data=print)
    """

    def __init__(
        self,
        service_url: str,
        access_token: str,
        params: Dict[str, Any],
        connect: Callable[..., Any] = websockets.connect,
    ) -> None:
        query = {k: v for k, v in params.items() if k in _URL_PARAMS}
        query["access_token"] = access_token
        query["x-watson-learning-opt-out"] = "true"
        self.url = "{}?{}".format(websocket_url(service_url), urlencode(query))
        self._connect = connect
        self._results: List[Dict[str, Any]] = []
        self._speaker_labels: List[Dict[str, Any]] = []
        self._listening_count = 0
        self._cancelled = False
        self._listener: Optional[asyncio.Future] = None
        self.finished = False

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def recognition(self) -> Dict[str, Any]:
        """The raw recognition collected so far."""
        return {
            "results": list(self._results),
            "result_index": 0,
            "speaker_labels": list(self._speaker_labels),
        }

    def current(self) -> Dict[str, Any]:
        """The recognition so far, realigned by speaker when labels exist."""
        if self._speaker_labels:
            return results_by_speaker(self.recognition)
        return {"results": list(self._results), "result_index": 0}

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Stop listening; run() returns what has been received."""
        self._cancelled = True
        if self._listener is not None and not self._listener.done():
            self._listener.cancel()

    def handle_message(self, message: str | bytes) -> bool:
        """Apply one incoming frame. Returns True when recognition is over."""
        if isinstance(message, bytes):
            message = message.decode("utf-8")
        data = json.loads(message)

        if "error" in data:
            raise RecognitionError("Transcription error: {}".format(data["error"]))

        if data.get("state") == "listening":
            self._listening_count += 1
            if self._listening_count > 1:
                self.finished = True
            return self.finished

        if "results" in data:
            index = int(data.get("result_index", 0))
            self._results[index:] = data["results"]

        if "speaker_labels" in data:
            self._speaker_labels.extend(data["speaker_labels"])

        return False

    # ------------------------------------------------------------------
    # Socket I/O
    # ------------------------------------------------------------------

    def _start_message(self, content_type: str) -> str:
        return json.dumps({
            "action": "start",
            "content-type": content_type,
            "interim_results": False,
            "timestamps": True,
            "speaker_labels": True,
            "smart_formatting": True,
        })

    async def run(
        self,
        audio_path: Path,
        on_data: Callable[[Dict[str, Any]], None] | None = None,
    ) -> Dict[str, Any]:
        """Stream an audio file and return the realigned recognition.

        Args:
            audio_path: Audio file to recognize.
            on_data: Called with current() after every results or
                speaker_labels message.

        Returns:
            current() at the time the stream finished or was cancelled.
        """
        audio_path = Path(audio_path)
        content_type = content_type_for(audio_path)
        logger.info("Transcription started: %s", audio_path.name)

        async with self._connect(self.url, close_timeout=10) as ws:
            await ws.send(self._start_message(content_type))
            with open(audio_path, "rb") as f:
                while not self._cancelled:
                    chunk = f.read(CHUNK_SIZE)
                    if not chunk:
                        break
                    await ws.send(chunk)
            await ws.send(json.dumps({"action": "stop"}))

            if not self._cancelled:
                self._listener = asyncio.ensure_future(self._listen(ws, audio_path.name, on_data))
                try:
                    await self._listener
                except asyncio.CancelledError:
                    if not self._cancelled:
                        raise
                finally:
                    self._listener = None

        if self._cancelled:
            logger.info("Transcription stopped: %s", audio_path.name)
        elif self.finished:
            logger.info("Transcription finished: %s", audio_path.name)
        return self.current()

    async def _listen(
        self,
        ws: Any,
        name: str,
        on_data: Callable[[Dict[str, Any]], None] | None,
    ) -> None:
        try:
            async for message in ws:
                if self._cancelled:
                    break
                done = self.handle_message(message)
                if on_data and not done:
                    on_data(self.current())
                if done:
                    break
        except websockets.ConnectionClosed:
            logger.info("Watson closed the connection for %s", name)
