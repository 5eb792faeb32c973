"""
Failure taxonomy for the tenbagger analysis pipeline.

Every failure that leaves the pipeline is mapped onto one AnalysisErrorKind.
The classifier works on raw exception text because the provider embeds
status codes and quota/safety markers in its messages.
"""
from __future__ import annotations

import json
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Union

TIMEOUT_SENTINEL = "TIMEOUT"
API_KEY_MISSING = "API_KEY_MISSING"
DETAIL_MAX_CHARS = 150


class AnalysisErrorKind(str, Enum):
    CREDENTIAL_MISSING = "credential_missing"
    CREDENTIAL_INVALID = "credential_invalid"
    QUOTA_EXCEEDED = "quota_exceeded"
    TIMEOUT = "timeout"
    SAFETY_BLOCKED = "safety_blocked"
    MALFORMED_RESPONSE = "malformed_response"
    UNKNOWN_UPSTREAM = "unknown_upstream_error"


class TenbaggerError(Exception):
    """Base class for failures raised inside the pipeline."""


class CredentialMissingError(TenbaggerError):
    def __init__(self, message: str = API_KEY_MISSING):
        super().__init__(message)


class AnalysisTimeoutError(TenbaggerError):
    def __init__(self, timeout_ms: int):
        self.timeout_ms = timeout_ms
        super().__init__(f"{TIMEOUT_SENTINEL}: no response within {timeout_ms} ms")


class SafetyBlockedError(TenbaggerError):
    pass


class MalformedResponseError(TenbaggerError):
    def __init__(self, message: str = "Could not extract a JSON object from the model response"):
        super().__init__(message)


# Lower-cased substrings. Order between groups is fixed by classify_error.
QUOTA_MARKERS = ("quota", "429", "resource_exhausted", "rate limit", "rate_limit", "too many requests")
MISSING_MARKERS = ("api_key_missing", "api key must be set", "missing api key", "no api key")
INVALID_MARKERS = (
    "api_key_invalid",
    "api key not valid",
    "invalid api key",
    "401",
    "403",
    "unauthenticated",
    "unauthorized",
    "permission_denied",
    "requested entity was not found",
)
SAFETY_MARKERS = ("safety", "blocked", "prohibited_content")


def _unwrap_provider_json(message: str) -> str:
    """Provider errors sometimes arrive as a JSON document; pull out code/status/message."""
    text = message.strip()
    if not text.startswith("{"):
        return message
    try:
        payload = json.loads(text)
    except ValueError:
        return message
    err = payload.get("error") if isinstance(payload, dict) else None
    if not isinstance(err, dict):
        return message
    parts = [str(err[k]) for k in ("code", "status", "message") if err.get(k) not in (None, "")]
    return " ".join(parts) or message


def error_text(err: Union[BaseException, str, None]) -> str:
    """Flatten an error into the text the classifier inspects."""
    if err is None:
        return ""
    if isinstance(err, str):
        return _unwrap_provider_json(err)

    message = _unwrap_provider_json(str(err))
    # google.genai.errors.APIError carries these as attributes
    extras = [str(getattr(err, attr)) for attr in ("code", "status") if getattr(err, attr, None)]
    extras = [e for e in extras if e not in message]
    if extras:
        message = f"{' '.join(extras)} {message}"
    return message


def _marker_pattern(markers) -> re.Pattern:
    # status codes must stand alone so ids like 88429 do not match
    parts = [rf"\b{m}\b" if m.isdigit() else re.escape(m) for m in markers]
    return re.compile("|".join(parts))


_QUOTA_RE = _marker_pattern(QUOTA_MARKERS)
_MISSING_RE = _marker_pattern(MISSING_MARKERS)
_INVALID_RE = _marker_pattern(INVALID_MARKERS)
_SAFETY_RE = _marker_pattern(SAFETY_MARKERS)


def _format_limit(ms: int) -> str:
    if ms % 1000 == 0:
        return f"{ms // 1000}s"
    return f"{ms} ms"


def classify_error(err: Union[BaseException, str, None]) -> AnalysisErrorKind:
    if isinstance(err, AnalysisTimeoutError):
        return AnalysisErrorKind.TIMEOUT

    message = error_text(err)
    if message.strip().startswith(TIMEOUT_SENTINEL):
        return AnalysisErrorKind.TIMEOUT

    lowered = message.lower()
    if _QUOTA_RE.search(lowered):
        return AnalysisErrorKind.QUOTA_EXCEEDED
    if isinstance(err, CredentialMissingError) or _MISSING_RE.search(lowered):
        return AnalysisErrorKind.CREDENTIAL_MISSING
    if _INVALID_RE.search(lowered):
        return AnalysisErrorKind.CREDENTIAL_INVALID
    if isinstance(err, SafetyBlockedError) or _SAFETY_RE.search(lowered):
        return AnalysisErrorKind.SAFETY_BLOCKED
    if isinstance(err, MalformedResponseError):
        return AnalysisErrorKind.MALFORMED_RESPONSE
    return AnalysisErrorKind.UNKNOWN_UPSTREAM


@dataclass(frozen=True)
class ErrorReport:
    kind: AnalysisErrorKind
    message: str
    detail: str
    offer_alternate_credential: bool = False
    retry_later: bool = False

    def to_body(self) -> Dict[str, Any]:
        """Client-facing error body, shared by the JSON and SSE endpoints."""
        return {
            "error": self.kind.value,
            "message": self.message,
            "detail": self.detail,
            "canUseAlternateKey": self.offer_alternate_credential,
            "retryLater": self.retry_later,
        }


def describe_error(
    err: Union[BaseException, str, None],
    *,
    timeout_ms: Optional[int] = None,
) -> ErrorReport:
    kind = classify_error(err)
    detail = error_text(err)[:DETAIL_MAX_CHARS]

    if kind is AnalysisErrorKind.TIMEOUT:
        ms = timeout_ms or getattr(err, "timeout_ms", None)
        limit = f" ({_format_limit(ms)} limit)" if ms else ""
        return ErrorReport(
            kind,
            f"The analysis took too long{limit}. Check the ticker or try again later.",
            detail,
            retry_later=True,
        )
    if kind is AnalysisErrorKind.QUOTA_EXCEEDED:
        return ErrorReport(
            kind,
            "The shared API quota is exhausted. Connect your own Gemini API key to continue.",
            detail,
            offer_alternate_credential=True,
        )
    if kind is AnalysisErrorKind.CREDENTIAL_MISSING:
        return ErrorReport(
            kind,
            "A Gemini API key is required. Supply your own key to run the analysis.",
            detail,
            offer_alternate_credential=True,
        )
    if kind is AnalysisErrorKind.CREDENTIAL_INVALID:
        return ErrorReport(
            kind,
            "The Gemini API key was rejected. Check the key or supply a different one.",
            detail,
            offer_alternate_credential=True,
        )
    if kind is AnalysisErrorKind.SAFETY_BLOCKED:
        return ErrorReport(
            kind,
            "The analysis was blocked by the provider's safety policy. Try a different ticker.",
            detail,
        )
    return ErrorReport(kind, f"Analysis failed: {detail}", detail)


class AnalysisError(Exception):
    """Raised to callers of the pipeline; always carries a classified report."""

    def __init__(self, report: ErrorReport):
        self.report = report
        super().__init__(report.message)

    @property
    def kind(self) -> AnalysisErrorKind:
        return self.report.kind
