"""Typed errors raised by the capture core."""


class KioskError(Exception):
    """Base class for errors surfaced to kiosk callers."""

    code = "error"
    status_code = 500
    state = "error"
    message = "Something went wrong."

    def __init__(self, detail: str | None = None) -> None:
        super().__init__(detail or self.message)
        self.detail = detail or self.message


class DeviceBusyError(KioskError):
    """Device is already claimed by another session."""

    code = "busy"
    status_code = 409
    state = "try_again"
    message = "This camera is in use right now. Please try again shortly."


class DeviceUnavailableError(KioskError):
    """Device is offline or its subscription is inactive."""

    code = "device_unavailable"
    status_code = 503
    state = "try_again"
    message = "This camera is currently unavailable. Please try again later."


class DeviceNotFoundError(KioskError):
    code = "device_not_found"
    status_code = 404
    state = "invalid"
    message = "Camera not registered."


class SessionNotFoundError(KioskError):
    code = "session_not_found"
    status_code = 404
    state = "invalid"
    message = "Session not found."


class PreconditionFailedError(KioskError):
    """Session phase or lock ownership does not allow the operation."""

    code = "precondition_failed"
    status_code = 409
    state = "refresh"
    message = "Session state changed. Please refresh."


class InvalidOverlayError(KioskError):
    code = "invalid_overlay"
    status_code = 400
    state = "invalid"
    message = "Selected overlay is not available."


class SubprocessFailureError(KioskError):
    """Transcoding or acquisition subprocess failed."""

    code = "subprocess_failure"
    status_code = 502
    state = "retry"
    message = "Capture failed. Please try again."


class UpstreamUnavailableError(KioskError):
    """Storage or payment processor could not be reached."""

    code = "upstream_unavailable"
    status_code = 503
    state = "retry"
    message = "Service temporarily unavailable. Please try again."


class GrantError(KioskError):
    """Base class for terminal download grant failures."""

    status_code = 404
    state = "link_invalid"


class GrantExhaustedError(GrantError):
    code = "grant_exhausted"
    status_code = 410
    state = "link_used_up"
    message = "This link has reached its maximum number of downloads."


class GrantExpiredError(GrantError):
    code = "grant_expired"
    status_code = 410
    state = "link_expired"
    message = "This download link has expired."


class GrantInvalidError(GrantError):
    code = "grant_invalid"
    message = "This download link is not valid."


class WebhookSignatureError(KioskError):
    code = "bad_signature"
    status_code = 400
    state = "invalid"
    message = "Webhook signature verification failed."
