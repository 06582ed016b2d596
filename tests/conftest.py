"""Shared test fixtures for the watson_transcriber test suite.

WHY: Several test modules need the same Watson recognition response:
two results, word timestamps, speaker labels, keyword spottings and word
alternatives. Centralizing it here keeps every test on the same data.

HOW: RECOGNITION is a Watson /v1/recognize response for the exchange
"hi there bob / how are you" with speakers 0 and 1. Fixtures return deep
copies so tests may mutate them freely.

RULES:
- Speaker labels line up 1:1 with the flattened word timestamps
- Keyword and word-alternative times sit inside single words
"""

from __future__ import annotations

import copy
from typing import Any, Dict

import pytest

RECOGNITION: Dict[str, Any] = {
    "result_index": 0,
    "results": [
        {
            "final": True,
            "alternatives": [
                {
                    "transcript": "hi there bob ",
                    "confidence": 0.91,
                    "timestamps": [
                        ["hi", 0.0, 1.0],
                        ["there", 1.0, 2.0],
                        ["bob", 2.0, 3.0],
                    ],
                }
            ],
            "keywords_result": {
                "there": [{"normalized_text": "there", "start_time": 1.0, "end_time": 2.0, "confidence": 0.9}],
                "bob": [{"normalized_text": "bob", "start_time": 2.0, "end_time": 3.0, "confidence": 0.8}],
            },
            "word_alternatives": [
                {"start_time": 0.0, "end_time": 1.0, "alternatives": [{"word": "hi", "confidence": 0.9}]},
                {"start_time": 2.0, "end_time": 3.0, "alternatives": [{"word": "bob", "confidence": 0.7}]},
            ],
        },
        {
            "final": True,
            "alternatives": [
                {
                    "transcript": "how are you ",
                    "confidence": 0.88,
                    "timestamps": [
                        ["how", 3.5, 3.8],
                        ["are", 3.8, 4.0],
                        ["you", 4.0, 4.3],
                    ],
                }
            ],
        },
    ],
    "speaker_labels": [
        {"from": 0.0, "to": 1.0, "speaker": 0, "confidence": 0.6, "final": False},
        {"from": 1.0, "to": 2.0, "speaker": 0, "confidence": 0.6, "final": False},
        {"from": 2.0, "to": 3.0, "speaker": 1, "confidence": 0.5, "final": False},
        {"from": 3.5, "to": 3.8, "speaker": 1, "confidence": 0.7, "final": False},
        {"from": 3.8, "to": 4.0, "speaker": 1, "confidence": 0.7, "final": False},
        {"from": 4.0, "to": 4.3, "speaker": 0, "confidence": 0.7, "final": True},
    ],
}


@pytest.fixture
def recognition() -> Dict[str, Any]:
    """A Watson recognition response with speaker labels."""
    return copy.deepcopy(RECOGNITION)


@pytest.fixture
def completed_job(recognition) -> Dict[str, Any]:
    """A completed GET /v1/recognitions/{id} job record."""
    return {
        "id": "job-123",
        "status": "completed",
        "created": "2026-10-19T10:00:00.000Z",
        "updated": "2026-10-19T10:01:00.000Z",
        "url": "https://stt.example.com/v1/recognitions/job-123",
        "results": [recognition],
    }


@pytest.fixture
def stt_env(monkeypatch):
    """Provide the required Watson environment variables."""
    monkeypatch.setenv("APIKEY", "test-api-key")
    monkeypatch.setenv("URL", "https://stt.example.com")
