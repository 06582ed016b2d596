"""Watson Speech to Text API package — REST client and WebSocket stream.

WHY: Every recognition mode (synchronous, asynchronous job, WebSocket
streaming) talks to the same Watson instance with the same token and
recognition parameters. This package keeps that in one place.

HOW: WatsonSTTClient (httpx) handles IAM token exchange and the REST
endpoints; RecognizeStream (websockets) handles the streaming socket.

RULES:
- All HTTP calls go through WatsonSTTClient (no direct httpx usage elsewhere)
- Streaming reuses the client's token and recognition parameters
"""

from watson_transcriber.api.client import (
    AuthenticationError,
    RecognitionError,
    RecognitionTimeoutError,
    WatsonAPIError,
    WatsonSTTClient,
)
from watson_transcriber.api.models import AccessToken, RecognitionJob

__all__ = [
    "AccessToken",
    "AuthenticationError",
    "RecognitionError",
    "RecognitionJob",
    "RecognitionTimeoutError",
    "WatsonAPIError",
    "WatsonSTTClient",
]
