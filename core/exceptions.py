"""
Domain exceptions for the business case question (BCQ) workflow.

Every exception carries the HTTP status and machine-readable error code the
error handlers render, so routes can simply let them propagate.
"""

from fastapi import status


class BCQError(Exception):
    """Base exception for BCQ workflow errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code: str = "BCQ_ERROR"
    default_message: str = "The request could not be completed"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


# ==================== Authorization ==================== #
class InvalidAccessError(BCQError):
    """Raised for a bad token or an unknown application. The two are indistinguishable."""

    status_code = status.HTTP_404_NOT_FOUND
    error_code = "INVALID_ACCESS"
    default_message = (
        "This link is invalid or has expired. Please contact the recruiter "
        "for a new link."
    )


class AccessTokenAlreadyIssuedError(BCQError):
    """Raised when an access token is requested for an application that already has one."""

    status_code = status.HTTP_409_CONFLICT
    error_code = "ACCESS_TOKEN_ALREADY_ISSUED"
    default_message = "An access token has already been issued for this application"


class ApplicationNotFoundError(BCQError):
    """Raised on recruiter-side lookups of an unknown application."""

    status_code = status.HTTP_404_NOT_FOUND
    error_code = "APPLICATION_NOT_FOUND"
    default_message = "Application not found"


class ResponseNotFoundError(BCQError):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "RESPONSE_NOT_FOUND"
    default_message = "Response not found"


# ==================== Capture ==================== #
class CaptureDeviceError(BCQError):
    """Raised by capture devices when the camera or microphone is unavailable."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    error_code = "CAPTURE_DEVICE_UNAVAILABLE"
    default_message = "Camera or microphone is unavailable"


class RecordingStateError(BCQError):
    """Raised when a recorder action is not valid in its current state."""

    status_code = status.HTTP_409_CONFLICT
    error_code = "RECORDING_STATE"
    default_message = "Recorder is not in a state that allows this action"


# ==================== Submission ==================== #
class InvalidRecordingError(BCQError):
    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "INVALID_RECORDING"
    default_message = "Recording is empty. Please try recording again."


class RecordingTooLargeError(InvalidRecordingError):
    status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
    error_code = "RECORDING_TOO_LARGE"
    default_message = "Recording is too large. Please record a shorter video."


class UploadError(BCQError):
    status_code = status.HTTP_502_BAD_GATEWAY
    error_code = "UPLOAD_FAILED"
    default_message = "Failed to upload video. Please try again."


class SessionStateError(BCQError):
    """Raised when a session action is not allowed in the current state."""

    status_code = status.HTTP_409_CONFLICT
    error_code = "SESSION_STATE"
    default_message = "This action is not available right now"


class QuestionNotFoundError(BCQError):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "QUESTION_NOT_FOUND"
    default_message = "Question not found for this job"


# ==================== AI gateway ==================== #
class GatewayError(BCQError):
    """Generic non-2xx or malformed response from the AI gateway."""

    status_code = status.HTTP_502_BAD_GATEWAY
    error_code = "AI_GATEWAY_ERROR"
    default_message = "AI service request failed. Please try again."


class GatewayRateLimitError(GatewayError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    error_code = "AI_RATE_LIMITED"
    default_message = "AI service is busy. Please try again in a few minutes."


class GatewayQuotaExhaustedError(GatewayError):
    status_code = status.HTTP_402_PAYMENT_REQUIRED
    error_code = "AI_QUOTA_EXHAUSTED"
    default_message = "AI service quota exhausted. Please contact support."


class GatewayNotConfiguredError(GatewayError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code = "AI_NOT_CONFIGURED"
    default_message = "AI service not configured. Please contact support."


# ==================== Transcription ==================== #
class TranscriptionError(BCQError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code = "TRANSCRIPTION_FAILED"
    default_message = "Transcription failed. Please try again."


class PayloadTooLargeError(TranscriptionError):
    status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
    error_code = "PAYLOAD_TOO_LARGE"
    default_message = "Media is too large to transcribe"


class InvalidPayloadError(TranscriptionError):
    status_code = status.HTTP_400_BAD_REQUEST
    error_code = "INVALID_PAYLOAD"
    default_message = "No media source provided. Please try recording again."


class EmptyTranscriptError(TranscriptionError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    error_code = "EMPTY_TRANSCRIPT"
    default_message = "Transcription returned empty. The audio may be silent or unclear."


# ==================== Analysis ==================== #
class AnalysisError(BCQError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    error_code = "ANALYSIS_FAILED"
    default_message = "Response analysis failed"


class MissingTranscriptError(AnalysisError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    error_code = "MISSING_TRANSCRIPT"
    default_message = "No transcription available for analysis"


class MediaNotFoundError(TranscriptionError):
    status_code = status.HTTP_404_NOT_FOUND
    error_code = "MEDIA_NOT_FOUND"
    default_message = "Failed to access video"
