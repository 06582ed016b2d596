"""Speaker-label realignment: word timestamps + speaker labels → utterances.

WHY: With speaker_labels enabled, Watson returns recognition results
(one or more word timestamps each) and, separately, a flat list of
speaker labels meant to line up 1:1 with those word timestamps. Nothing
in the response says which words a speaker said as a block. Readers want
"Speaker 0: ...", "Speaker 1: ..." turns.

HOW: Three passes over the data:
  1. Match — walk speaker_labels once, advancing a cursor through the
     timestamps of the current result and rolling over to the next result
     when the current one runs out. Labels with no timestamp left, or
     whose span disagrees with the matched word, are logged and dropped.
  2. Group — consecutive matched words form an utterance until the
     speaker or the source result changes.
  3. Rebuild — each utterance becomes a result record with its own
     transcript, timestamps, speaker, and the keyword spottings and
     word alternatives that fall inside its time span.

RULES:
- Pure function: input is never mutated, output never aliases input
- The first utterance from a source result is a deep copy of that result
  (to keep unrelated fields); later ones start from {"alternatives": [{}]}
- Transcript = words joined by " " plus one trailing space
- Annotations are kept only when fully inside [start, end] of the utterance
- Mismatches are logged at ERROR and skipped, never raised
- result_index is always 0: the output covers the whole recognition so far
"""

from __future__ import annotations

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

# Positions inside a Watson timestamp triple: ["word", start, end]
WORD = 0
FROM = 1
TO = 2


@dataclass
class _MatchedWord:
    timestamp: list
    speaker: Any
    result_pos: int


@dataclass
class _Utterance:
    speaker: Any
    result_pos: int
    timestamps: List[list] = field(default_factory=list)

    @property
    def start(self) -> float:
        return self.timestamps[0][FROM]

    @property
    def end(self) -> float:
        return self.timestamps[-1][TO]


def _timestamps_of(result: Optional[Dict[str, Any]]) -> List[list]:
    if not result:
        return []
    alternatives = result.get("alternatives") or [{}]
    return alternatives[0].get("timestamps") or []


def match_speaker_labels(
    results: List[Dict[str, Any]],
    speaker_labels: List[Dict[str, Any]],
) -> List[_MatchedWord]:
    """Pair each speaker label with the word timestamp at the same position.

    The cursor only ever moves forward. When the current result has no
    timestamp at the cursor, it rolls over to index 0 of the next result.
    A label is dropped (and logged) when no result is left or when the
    matched word's span is not the label's span.
    """
    words: List[_MatchedWord] = []
    result_pos = 0
    ts_pos = -1

    for label in speaker_labels:
        ts_pos += 1
        timestamps = _timestamps_of(results[result_pos] if result_pos < len(results) else None)

        if ts_pos >= len(timestamps):
            ts_pos = 0
            result_pos += 1
            timestamps = _timestamps_of(results[result_pos] if result_pos < len(results) else None)

        if ts_pos >= len(timestamps):
            logger.warning(
                "No word timestamp left for speaker label %s (%s-%s); dropping it",
                label.get("speaker"), label.get("from"), label.get("to"),
            )
            continue

        timestamp = timestamps[ts_pos]
        if timestamp[FROM] != label.get("from") or timestamp[TO] != label.get("to"):
            logger.error(
                "Mismatch between speaker_label (%s-%s) and word timestamp %r",
                label.get("from"), label.get("to"), timestamp,
            )
            continue

        words.append(_MatchedWord(
            timestamp=list(timestamp),
            speaker=label.get("speaker"),
            result_pos=result_pos,
        ))

    return words


def group_utterances(words: List[_MatchedWord]) -> List[_Utterance]:
    """Merge consecutive words into utterances.

    A new utterance starts whenever the speaker or the source result changes.
    """
    utterances: List[_Utterance] = []
    for word in words:
        current = utterances[-1] if utterances else None
        if (
            current is None
            or current.speaker != word.speaker
            or current.result_pos != word.result_pos
        ):
            current = _Utterance(speaker=word.speaker, result_pos=word.result_pos)
            utterances.append(current)
        current.timestamps.append(word.timestamp)
    return utterances


def _within(entry: Dict[str, Any], start: float, end: float) -> bool:
    return entry.get("start_time", start - 1) >= start and entry.get("end_time", end + 1) <= end


def _build_result(
    utterance: _Utterance,
    source: Dict[str, Any],
    first_use: bool,
    final: bool,
) -> Dict[str, Any]:
    if first_use:
        result = copy.deepcopy(source)
        if not result.get("alternatives"):
            result["alternatives"] = [{}]
    else:
        result = {"alternatives": [{}]}

    result["speaker"] = utterance.speaker
    alternative = result["alternatives"][0]
    alternative["transcript"] = " ".join(str(ts[WORD]) for ts in utterance.timestamps) + " "
    alternative["timestamps"] = copy.deepcopy(utterance.timestamps)
    result["final"] = final

    start, end = utterance.start, utterance.end

    word_alternatives = source.get("word_alternatives")
    if word_alternatives is not None:
        result["word_alternatives"] = [
            copy.deepcopy(walt) for walt in word_alternatives if _within(walt, start, end)
        ]

    keywords = source.get("keywords_result")
    if keywords is not None:
        kept: Dict[str, list] = {}
        for keyword, spottings in keywords.items():
            inside = [copy.deepcopy(s) for s in spottings if _within(s, start, end)]
            if inside:
                kept[keyword] = inside
        result["keywords_result"] = kept

    return result


def results_by_speaker(recognition: Dict[str, Any]) -> Dict[str, Any]:
    """Rebuild a Watson recognition response as one result per utterance.

    WHY: Watson's speaker_labels are a flat list aligned to word
    timestamps, not to results. Callers that display "Speaker N: text"
    need results that each belong to exactly one speaker.

    HOW: match_speaker_labels → group_utterances → one result record per
    utterance. See the module docstring for the record rules.

    RULES:
    - Missing speaker_labels or results → empty results list
    - final is taken from the last speaker label (False when there are none)
    - Never raises on inconsistent input; offending labels are dropped

    Args:
        recognition: A Watson response (or completed job result) dict with
            "results" and "speaker_labels".

    Returns:
        {"results": [...], "result_index": 0}
    """
    results = recognition.get("results") or []
    speaker_labels = recognition.get("speaker_labels") or []

    final = bool(speaker_labels) and bool(speaker_labels[-1].get("final", False))

    words = match_speaker_labels(results, speaker_labels)
    utterances = group_utterances(words)

    rebuilt: List[Dict[str, Any]] = []
    previous: Optional[_Utterance] = None
    for utterance in utterances:
        first_use = previous is None or previous.result_pos != utterance.result_pos
        rebuilt.append(_build_result(utterance, results[utterance.result_pos], first_use, final))
        previous = utterance

    return {"results": rebuilt, "result_index": 0}
