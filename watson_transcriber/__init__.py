"""Watson Speech Transcriber — audio file transcription with speaker turns.

WHY: IBM Watson Speech to Text returns word timestamps and speaker labels
as two parallel arrays. Reading a transcript "by speaker" means stitching
those arrays back together. This package wraps the Watson API (token
exchange, async recognition jobs, WebSocket streaming), realigns speaker
labels into utterances, and exposes the result over a CLI and an HTTP API.

HOW: Three layers — ingest (api: REST client and WebSocket stream),
reshape (core: speaker realignment and transcript text), and serve
(server: FastAPI token/job endpoints; cli: terminal pipeline).

RULES:
- All Watson HTTP calls go through WatsonSTTClient
- core/ is pure: no network, no files
- Speaker realignment never mutates or aliases its input
"""

__version__ = "0.1.0"
