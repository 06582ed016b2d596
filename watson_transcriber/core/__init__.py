"""Pure transcript reshaping: speaker realignment and transcript text.

Nothing in this package performs I/O apart from logging.
"""

from watson_transcriber.core.speakers import results_by_speaker
from watson_transcriber.core.transcript import (
    sentence_case,
    speaker_lines,
    transcription_from_results,
)

__all__ = [
    "results_by_speaker",
    "sentence_case",
    "speaker_lines",
    "transcription_from_results",
]
