"""Pydantic request/response models for the HTTP API.

WHY: The FastAPI endpoints need typed schemas for request validation,
response serialization, and automatic OpenAPI documentation.

HOW: Each endpoint has its own response model; checkJob and the
transcript edit endpoint have request models. All fields carry
Field descriptions for the /docs UI.

RULES:
- All models use Field(description=...) for OpenAPI documentation
- Job fields keep Watson's names (id, created, updated, url, status)
- Python 3.9+ compatible (Optional from typing in field annotations)
"""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class CheckJobRequest(BaseModel):
    """Body of POST /api/checkJob."""

    id: str = Field(description="Recognition job ID returned by /api/createJob.")


class TranscriptionUpdate(BaseModel):
    """Body of PUT /api/jobs/{id}/transcription.

    WHY: Users correct the recognized text before downloading it.
    """

    transcription: str = Field(description="The edited transcript text.")


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class ConfigResponse(BaseModel):
    """Recognition settings used by the server."""

    url: Optional[str] = Field(default=None, description="Watson STT service URL.")
    model: str = Field(description="Recognition model name.")
    language_customization_id: Optional[str] = Field(
        default=None,
        description="Custom language model ID, if configured.",
    )
    acoustic_customization_id: Optional[str] = Field(
        default=None,
        description="Custom acoustic model ID, if configured.",
    )


class JobCreatedResponse(BaseModel):
    """Response returned when a recognition job is created.

    RULES:
    - id is the Watson job ID for subsequent /api/checkJob calls
    """

    id: str = Field(description="Recognition job ID.")
    created: Optional[str] = Field(default=None, description="Creation time reported by Watson.")
    url: Optional[str] = Field(default=None, description="Watson URL of the job resource.")
    status: str = Field(description="Initial job status (waiting or processing).")
    filename: str = Field(description="Original uploaded filename.")

    model_config = {"json_schema_extra": {
        "examples": [
            {
                "id": "4bd734c0-e575-21f3-de03-f932aa0468a0",
                "created": "2026-10-19T15:39:22.001Z",
                "url": "https://stream.watsonplatform.net/speech-to-text/api/v1/recognitions/4bd734c0",
                "status": "waiting",
                "filename": "interview.wav",
            }
        ]
    }}


class JobResponse(BaseModel):
    """Recognition job status response.

    RULES:
    - results and transcription are only populated once status is 'completed'
    """

    id: str = Field(description="Recognition job ID.")
    status: str = Field(description="Current job status.")
    filename: str = Field(description="Original uploaded filename.")
    updated: Optional[str] = Field(default=None, description="Last update time reported by Watson.")
    results: Optional[List[Dict[str, Any]]] = Field(
        default=None,
        description="Raw Watson results, only present when status is 'completed'.",
    )
    transcription: Optional[str] = Field(
        default=None,
        description="Speaker-labelled transcript, only present when status is 'completed'.",
    )
    edited: bool = Field(default=False, description="Whether the transcript was edited by a user.")


class ErrorResponse(BaseModel):
    """Standard error response body."""

    detail: str = Field(description="Human-readable error description.")


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(description="Service health status.", json_schema_extra={"example": "ok"})
    version: str = Field(description="API version string.", json_schema_extra={"example": "0.1.0"})
