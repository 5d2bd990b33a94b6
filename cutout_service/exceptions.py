"""Custom exceptions for the cutout service."""

from __future__ import annotations

from typing import Optional


class CutoutServiceError(Exception):
    """Base exception for all service errors.

    Attributes:
        message: Human-readable error description
        error_code: Optional error code for programmatic handling
    """

    def __init__(self, message: str, error_code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code

    def __str__(self) -> str:
        if self.error_code:
            return f"[{self.error_code}] {self.message}"
        return self.message


class ConfigurationError(CutoutServiceError):
    """Missing or invalid settings."""

    def __init__(self, message: str, config_key: Optional[str] = None):
        super().__init__(message, error_code="CONFIG_ERROR")
        self.config_key = config_key


class ValidationError(CutoutServiceError):
    """Submitted form input is unusable.

    Attributes:
        field: The form field that failed validation (if applicable)
    """

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message, error_code="VALIDATION_ERROR")
        self.field = field


class ImageLoadError(CutoutServiceError):
    """An image could not be decoded or fetched."""

    def __init__(self, message: str, source: Optional[str] = None):
        super().__init__(message, error_code="IMAGE_ERROR")
        self.source = source

    def __str__(self) -> str:
        if self.source:
            return f"{super().__str__()} (source: {self.source})"
        return super().__str__()


class PredictionError(CutoutServiceError):
    """Base for failures of a remote prediction job.

    Attributes:
        prediction_id: Remote job identifier, when one was assigned
    """

    def __init__(
        self,
        message: str,
        prediction_id: Optional[str] = None,
        error_code: str = "PREDICTION_ERROR",
    ):
        super().__init__(message, error_code=error_code)
        self.prediction_id = prediction_id


class StartupError(PredictionError):
    """The inference service did not return a job identifier."""

    def __init__(self, message: str = "Failed to start prediction"):
        super().__init__(message, error_code="STARTUP_ERROR")


class PredictionFailedError(PredictionError):
    """The remote job reached a failed (or canceled) status."""

    def __init__(
        self,
        message: str = "Prediction failed",
        prediction_id: Optional[str] = None,
        remote_error: Optional[str] = None,
    ):
        super().__init__(message, prediction_id=prediction_id, error_code="PREDICTION_FAILED")
        self.remote_error = remote_error


class PredictionTimeoutError(PredictionError, TimeoutError):
    """The poll budget ran out before the job finished."""

    def __init__(self, message: str, prediction_id: Optional[str] = None):
        super().__init__(message, prediction_id=prediction_id, error_code="PREDICTION_TIMEOUT")


class PredictionCancelledError(PredictionError):
    """The caller cancelled an in-flight poll."""

    def __init__(self, message: str = "Prediction cancelled", prediction_id: Optional[str] = None):
        super().__init__(message, prediction_id=prediction_id, error_code="PREDICTION_CANCELLED")


class BackgroundRemovalError(CutoutServiceError):
    """Background removal failed for any reason; the cause is chained."""

    def __init__(self, message: str = "Failed to process image with Replicate"):
        super().__init__(message, error_code="BACKGROUND_REMOVAL_ERROR")
