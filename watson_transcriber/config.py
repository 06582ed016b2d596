"""Configuration constants, audio format mappings, and .env loading.

WHY: The server, CLI, and client all need the same Watson credentials,
model choice, and customization IDs. Keeping them in one module makes
them easy to find and override without touching logic.

HOW: python-dotenv loads the .env file on import. Constants are read
from the environment with defaults. The load_*() functions give a clear
error when a required value is missing.

RULES:
- APIKEY and URL are required; load_api_key()/load_service_url() raise ValueError
- Customization IDs are None when unset (never empty strings)
- SUPPORTED_AUDIO_FORMATS maps lowercase extensions to Watson content types
- All defaults can be overridden via environment variables
"""

from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

# Load .env from the project root (where the script is run from)
load_dotenv()

# ---------------------------------------------------------------------------
# Supported audio file extensions → Watson content types
# ---------------------------------------------------------------------------

SUPPORTED_AUDIO_FORMATS: dict[str, str] = {
    ".wav": "audio/wav",
    ".mp3": "audio/mp3",
    ".ogg": "audio/ogg",
    ".opus": "audio/ogg;codecs=opus",
    ".flac": "audio/flac",
    ".webm": "audio/webm",
    ".l16": "audio/l16",
    ".mulaw": "audio/mulaw",
    ".basic": "audio/basic",
}
"""Audio file extensions accepted by Watson STT (lowercase, with dot)."""


def content_type_for(filename: str | Path) -> str:
    """Return the Watson content type for an audio filename.

    RULES:
    - Extension lookup is case-insensitive
    - Raises ValueError for unsupported extensions
    """
    ext = Path(filename).suffix.lower()
    try:
        return SUPPORTED_AUDIO_FORMATS[ext]
    except KeyError:
        raise ValueError(
            "Unsupported file type '{}'. Supported formats: {}".format(
                ext, ", ".join(sorted(SUPPORTED_AUDIO_FORMATS))
            )
        ) from None


# ---------------------------------------------------------------------------
# Watson configuration defaults
# ---------------------------------------------------------------------------


def _optional(name: str) -> str | None:
    value = os.getenv(name, "").strip()
    return value or None


STT_URL = _optional("URL")
STT_MODEL = os.getenv("MODEL", "en-US_NarrowbandModel")
LANGUAGE_CUSTOMIZATION_ID = _optional("LANGUAGE_CUSTOMIZATION_ID")
ACOUSTIC_CUSTOMIZATION_ID = _optional("ACOUSTIC_CUSTOMIZATION_ID")
IAM_URL = os.getenv("IAM_URL", "https://iam.cloud.ibm.com/identity/token")

# ---------------------------------------------------------------------------
# Server configuration
# ---------------------------------------------------------------------------

PORT = int(os.getenv("PORT", "3000"))
STATIC_DIR = Path(os.getenv("STATIC_DIR", "dist"))
JOB_TTL_SECONDS = int(os.getenv("JOB_TTL_SECONDS", "3600"))


def load_api_key() -> str:
    """Load the IBM Cloud API key from the environment.

    WHY: The key is needed to exchange for IAM tokens. Loading it from
    the environment (via .env) keeps it out of source code.

    RULES:
    - Raises ValueError if the key is missing or empty
    - Never returns a default/placeholder value
    """
    key = os.getenv("APIKEY", "").strip()
    if not key:
        raise ValueError(
            "No Watson APIKEY provided. Add APIKEY to the .env file."
        )
    return key


def load_service_url() -> str:
    """Load the Watson STT service URL from the environment.

    RULES:
    - Raises ValueError if the URL is missing or empty
    - Trailing slashes are stripped
    """
    url = os.getenv("URL", "").strip()
    if not url:
        raise ValueError(
            "No Watson STT URL provided. Add URL to the .env file."
        )
    return url.rstrip("/")


def stt_config() -> dict[str, str | None]:
    """Return the recognition settings shared with clients.

    This is the payload of GET /api/config: the service URL, model and
    customization IDs a browser needs to open its own recognition call.
    """
    return {
        "url": STT_URL,
        "model": STT_MODEL,
        "language_customization_id": LANGUAGE_CUSTOMIZATION_ID,
        "acoustic_customization_id": ACOUSTIC_CUSTOMIZATION_ID,
    }
