"""Watson STT request/response dataclasses.

WHY: The recognitions API returns job records and the IAM service
returns token records as plain JSON. Typed dataclasses make the fields
that the rest of the package relies on explicit.

HOW: Each dataclass maps a Watson JSON object, with a from_dict()
factory for parsing. Recognition results stay as plain dicts: the
speaker realignment works on the raw JSON shape and must keep fields it
does not know about.

RULES:
- RecognitionJob.status is one of JOB_STATUSES
- results is None until the job is completed (or failed)
- AccessToken.expiration is epoch seconds as reported by IAM
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

JOB_WAITING = "waiting"
JOB_PROCESSING = "processing"
JOB_COMPLETED = "completed"
JOB_FAILED = "failed"

JOB_STATUSES = (JOB_WAITING, JOB_PROCESSING, JOB_COMPLETED, JOB_FAILED)


@dataclass
class RecognitionJob:
    """An asynchronous recognition job from POST/GET /v1/recognitions.

    RULES:
    - id, status are always present
    - created/updated are ISO 8601 strings from Watson
    - url is the job's own resource URL
    - warnings is a list of strings (may be empty)
    """

    id: str
    status: str
    created: Optional[str] = None
    updated: Optional[str] = None
    url: Optional[str] = None
    results: Optional[List[Dict[str, Any]]] = None
    warnings: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> RecognitionJob:
        return cls(
            id=data["id"],
            status=data["status"],
            created=data.get("created"),
            updated=data.get("updated"),
            url=data.get("url"),
            results=data.get("results"),
            warnings=list(data.get("warnings") or []),
        )

    @property
    def is_complete(self) -> bool:
        return self.status == JOB_COMPLETED

    @property
    def is_failed(self) -> bool:
        return self.status == JOB_FAILED


@dataclass
class AccessToken:
    """An IAM bearer token and its expiry.

    RULES:
    - is_fresh() is False once within `margin` seconds of expiration
    """

    access_token: str
    expiration: float

    @classmethod
    def from_dict(cls, data: dict) -> AccessToken:
        expiration = data.get("expiration")
        if expiration is None:
            expiration = time.time() + float(data.get("expires_in", 3600))
        return cls(access_token=data["access_token"], expiration=float(expiration))

    def is_fresh(self, margin: float = 60.0) -> bool:
        return time.time() < self.expiration - margin
