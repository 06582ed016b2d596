"""Command-line interface for the Watson Speech Transcriber.

WHY: Users need a simple way to transcribe an audio file from the
terminal and get a speaker-labelled text file, without running the web
server. The CLI wires together file validation, the Watson recognition
mode of choice, speaker realignment, and saving.

HOW: Uses argparse to accept an input file, the recognition mode
(async job, synchronous request, or WebSocket stream), model and
customization overrides, and an output directory. Runs the async
pipeline via asyncio.run(). Status messages go to stderr; the transcript
is saved next to the source (or to --output-dir) as "<filename>.txt".

RULES:
- Positional argument: input audio file path
- Validates file extension against SUPPORTED_AUDIO_FORMATS before any API call
- --mode: async (default), sync, or stream
- --json also writes "<filename>.json" with the speaker-realigned results
- Status output goes to stderr (not stdout)
- Async jobs are always deleted at Watson, even when polling fails
"""

from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import List, Optional

from watson_transcriber.api.client import WatsonSTTClient
from watson_transcriber.config import (
    ACOUSTIC_CUSTOMIZATION_ID,
    LANGUAGE_CUSTOMIZATION_ID,
    STT_MODEL,
    SUPPORTED_AUDIO_FORMATS,
)
from watson_transcriber.core.speakers import results_by_speaker
from watson_transcriber.recognition import FileRecognition

MODES = ("async", "sync", "stream")


def _status(msg: str) -> None:
    """Print a status message to stderr.

    WHY: Status output must not pollute stdout so the CLI can be piped.
    """
    print(msg, file=sys.stderr, flush=True)


def _fail(msg: str) -> None:
    print("Error: {}".format(msg), file=sys.stderr)
    sys.exit(1)


async def _run_job(recognition: FileRecognition) -> None:
    """Create an async job, wait for it, and load its transcript."""
    client = recognition.client
    await recognition.create_job()
    if recognition.is_complete():
        # create_job() failed; the error is in the transcription
        return
    _status("  Job id: {}".format(recognition.id))
    try:
        await client.poll_until_complete(recognition.id, on_status=_status)
        await recognition.check_job()
    finally:
        # Also runs when polling fails or is interrupted
        await client.delete_job(recognition.id)


async def _run_pipeline(args: argparse.Namespace) -> None:
    """Execute the full transcription pipeline.

    RULES:
    - Validate file and output directory before any API call
    - A recognition error is printed and exits with status 1
    - Saves the transcript (and optionally JSON) to the output directory
    """
    input_path = Path(args.input_file).resolve()

    if not input_path.is_file():
        _fail("File not found: {}".format(input_path))

    ext = input_path.suffix.lower()
    if ext not in SUPPORTED_AUDIO_FORMATS:
        _fail("Unsupported file type '{}'. Supported formats: {}".format(
            ext, ", ".join(sorted(SUPPORTED_AUDIO_FORMATS))
        ))

    output_dir = Path(args.output_dir).resolve() if args.output_dir else input_path.parent
    if not output_dir.is_dir():
        _fail("Output directory does not exist: {}".format(output_dir))

    recognition: Optional[FileRecognition] = None
    try:
        async with WatsonSTTClient(
            model=args.model,
            language_customization_id=args.language_customization_id,
            acoustic_customization_id=args.acoustic_customization_id,
        ) as client:
            recognition = FileRecognition(input_path, client)
            _status("Transcribing {} ({} mode, model {})...".format(
                input_path.name, args.mode, client.model
            ))

            if args.mode == "sync":
                await recognition.recognize()
            elif args.mode == "stream":
                await recognition.transcribe()
            else:
                await _run_job(recognition)

    except KeyboardInterrupt:
        if recognition is not None:
            recognition.stop()
        _status("\nCancelled by user.")
        sys.exit(130)
    except ValueError as e:
        # Config errors (missing API key or URL)
        _fail(str(e))
    except Exception as e:
        _fail(str(e))

    if recognition.transcription.startswith("Transcription error:"):
        _fail(recognition.transcription)

    saved = recognition.save(output_dir)
    _status("Saved: {}".format(saved))

    if args.json and recognition.results:
        json_path = output_dir / "{}.json".format(input_path.name)
        realigned = [results_by_speaker(r) for r in recognition.results if "results" in r]
        json_path.write_text(json.dumps(realigned, indent=2), encoding="utf-8")
        _status("Saved: {}".format(json_path))

    print(recognition.transcription)


def build_parser() -> argparse.ArgumentParser:
    """Build the argparse parser for the CLI.

    WHY: Separating parser construction from main() makes the CLI
    testable — tests can inspect the parser without running the pipeline.
    """
    parser = argparse.ArgumentParser(
        prog="watson-transcriber",
        description="Transcribe an audio file with IBM Watson Speech to Text "
                    "and write a speaker-labelled transcript.",
    )

    parser.add_argument(
        "input_file",
        help="Path to the audio file to transcribe.",
    )

    parser.add_argument(
        "--mode",
        choices=MODES,
        default="async",
        help="Recognition mode (default: %(default)s).",
    )

    parser.add_argument(
        "--model",
        default=STT_MODEL,
        help="Recognition model (default: %(default)s).",
    )

    parser.add_argument(
        "--language-customization-id",
        default=LANGUAGE_CUSTOMIZATION_ID,
        help="Custom language model ID.",
    )

    parser.add_argument(
        "--acoustic-customization-id",
        default=ACOUSTIC_CUSTOMIZATION_ID,
        help="Custom acoustic model ID.",
    )

    parser.add_argument(
        "--output-dir",
        default=None,
        help="Directory to save output files (default: same as input file).",
    )

    parser.add_argument(
        "--json",
        action="store_true",
        help="Also save the speaker-realigned results as JSON.",
    )

    return parser


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the CLI.

    RULES:
    - argv=None means use sys.argv (normal CLI invocation)
    - Explicit argv is for testing
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    asyncio.run(_run_pipeline(args))


if __name__ == "__main__":
    main()
