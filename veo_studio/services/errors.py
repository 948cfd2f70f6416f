import json
from typing import Any, Dict, Optional

QUOTA_EXHAUSTED_STATUS = "RESOURCE_EXHAUSTED"
# HTTP status and google.rpc code for RESOURCE_EXHAUSTED.
_QUOTA_CODES = {429, 8}

QUOTA_EXCEEDED_MESSAGE = (
    "The video generation quota for this API key has been exhausted. "
    "Check the billing details and plan limits of your account, then try again later."
)


class VideoStudioError(RuntimeError):
    """Base class for errors that end a generation attempt."""

    @property
    def user_message(self) -> str:
        return str(self)


class ConfigurationError(VideoStudioError):
    pass


class ProviderError(VideoStudioError):
    """The provider call failed, either in transport or with an error payload."""

    def __init__(self, message: str, status: Optional[str] = None, code: Optional[int] = None):
        super().__init__(message)
        self.status = status
        self.code = code


class QuotaExceededError(ProviderError):
    @property
    def user_message(self) -> str:
        return QUOTA_EXCEEDED_MESSAGE


class EmptyResultError(VideoStudioError):
    def __init__(self, message: str = "No videos were generated."):
        super().__init__(message)


class PollTimeoutError(VideoStudioError):
    pass


class GenerationInProgressError(VideoStudioError):
    def __init__(self, message: str = "A video is already being generated. Wait for it to finish."):
        super().__init__(message)


def is_quota_status(status: Optional[str], code: Optional[int] = None) -> bool:
    if status and str(status).upper() == QUOTA_EXHAUSTED_STATUS:
        return True
    return code in _QUOTA_CODES


def error_from_payload(payload: Dict[str, Any], fallback: str = "Video generation failed.") -> ProviderError:
    """Build a typed error from a provider ``{"status", "code", "message"}`` payload."""
    status = payload.get("status")
    code = payload.get("code")
    try:
        code = int(code) if code is not None else None
    except (TypeError, ValueError):
        code = None
    message = payload.get("message") or fallback
    error_cls = QuotaExceededError if is_quota_status(status, code) else ProviderError
    return error_cls(str(message), status=status, code=code)


def classify_error_text(text: str) -> ProviderError:
    """Turn a raw error string into a typed provider error.

    Provider error bodies look like ``{"error": {"status": ..., "message": ...}}``.
    Anything that does not parse as such keeps the raw text as its message.
    """
    try:
        parsed = json.loads(text)
    except (TypeError, ValueError):
        return ProviderError(text)

    payload = parsed.get("error") if isinstance(parsed, dict) else None
    if isinstance(payload, dict) and is_quota_status(payload.get("status")):
        return QuotaExceededError(
            str(payload.get("message") or text),
            status=payload.get("status"),
            code=payload.get("code"),
        )
    return ProviderError(text)
