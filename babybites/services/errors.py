"""
Error taxonomy for the API.

Every error carries the HTTP status it maps to and a public `error` string.
Routers let these propagate; main.py installs one handler that renders
them as `{"error", "message"?, "details"?}`.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional


class BabyBitesError(Exception):
    status_code = 500
    error = "Internal server error"

    def __init__(
        self,
        message: Optional[str] = None,
        details: Optional[List[Dict[str, Any]]] = None,
        headers: Optional[Dict[str, str]] = None,
        error: Optional[str] = None,
    ):
        if error:
            self.error = error
        super().__init__(message or self.error)
        self.message = message
        self.details = details or []
        self.headers = headers or {}

    def to_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"error": self.error}
        if self.message:
            body["message"] = self.message
        if self.details:
            body["details"] = self.details
        return body


class RequestValidationFailed(BabyBitesError):
    status_code = 400
    error = "Validation failed"


class Conflict(BabyBitesError):
    status_code = 400
    error = "Already exists"


class AuthenticationRequired(BabyBitesError):
    status_code = 401
    error = "Unauthorized"


class Forbidden(BabyBitesError):
    status_code = 403
    error = "Unauthorized"


class QuotaExceeded(BabyBitesError):
    status_code = 403
    error = "Weekly plan limit reached"

    def __init__(self, message: Optional[str] = None, **kwargs):
        super().__init__(message or "Upgrade to Pro for unlimited meal plans", **kwargs)


class NotFound(BabyBitesError):
    status_code = 404
    error = "Not found"


class SubjectNotFound(NotFound):
    error = "Baby not found"


class RateLimited(BabyBitesError):
    status_code = 429
    error = "Too many requests"

    def __init__(self, message: Optional[str] = None, retry_after: int = 0, **kwargs):
        super().__init__(message, **kwargs)
        self.retry_after = retry_after

    def to_body(self) -> Dict[str, Any]:
        body = super().to_body()
        body["retryAfter"] = self.retry_after
        return body


class GenerationFailed(BabyBitesError):
    """The generative call failed, timed out or returned non-conformant output."""

    status_code = 500
    error = "Failed to generate meal plan"

    def __init__(
        self,
        reason: str,
        issues: Optional[List[Dict[str, Any]]] = None,
        error: Optional[str] = None,
    ):
        # issues stay server-side; the caller only sees the generic failure
        super().__init__(None, error=error)
        self.reason = reason
        self.issues = issues or []

    def __str__(self) -> str:
        return f"{self.reason}: {self.issues}" if self.issues else self.reason


class PersistenceFailed(BabyBitesError):
    status_code = 500
    error = "Failed to save meal plan"


class StorageUnavailable(BabyBitesError):
    status_code = 500
    error = "Internal server error"


class WebhookSignatureError(BabyBitesError):
    status_code = 400
    error = "Invalid signature"


class WebhookProcessingFailed(BabyBitesError):
    status_code = 500
    error = "Webhook processing failed"


class LinkExpired(BabyBitesError):
    status_code = 410
    error = "This share link has expired"
