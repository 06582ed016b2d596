"""Speaker-labelled transcript text built from realigned recognition results.

WHY: Users read, edit, and download transcripts as plain text, one line
per speaker turn ("Speaker 0: Hello there."). This module turns the
results_by_speaker() output, or a completed job's results, into that text.

HOW: results_by_speaker() splits the recognition into utterances; each
utterance becomes one "Speaker N: transcript" line. Completed jobs may
carry an error in place of a transcript, which is surfaced as the text.

RULES:
- One line per utterance, joined with "\\n"
- sentence_case() capitalises the first character, trims, appends ". "
- A job whose first result has an "error" field yields that error text
"""

from __future__ import annotations

from typing import Any, Dict, List

from watson_transcriber.core.speakers import results_by_speaker


def sentence_case(text: str) -> str:
    """Capitalise the first character and end the text as a sentence.

    >>> sentence_case("hello there ")
    'Hello there. '
    """
    return (text[:1].upper() + text[1:]).strip() + ". "


def _transcript_of(result: Dict[str, Any]) -> str:
    alternatives = result.get("alternatives") or [{}]
    return alternatives[0].get("transcript", "")


def speaker_lines(recognition: Dict[str, Any], sentence: bool = False) -> List[str]:
    """Return "Speaker N: text" lines for a recognition with speaker labels."""
    lines = []
    for result in results_by_speaker(recognition)["results"]:
        text = _transcript_of(result)
        if sentence:
            text = sentence_case(text)
        lines.append("Speaker {}: {}".format(result.get("speaker"), text))
    return lines


def transcription_from_results(results: List[Dict[str, Any]]) -> str:
    """Build the transcript text for a completed recognition job.

    Args:
        results: The job's "results" list; the first entry holds the
            recognition (results + speaker_labels) or an "error".

    Returns:
        The newline-joined speaker lines, or the sentence-cased error.
    """
    if not results:
        return ""
    first = results[0]
    if first.get("error"):
        return sentence_case(str(first["error"]))
    return "\n".join(speaker_lines(first, sentence=True))
