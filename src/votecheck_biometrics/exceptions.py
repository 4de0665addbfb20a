"""
Custom exception classes for the VoteCheck biometric gate.

This module defines a hierarchy of custom exceptions to enable precise
error handling throughout the capture and verification pipeline. Each
exception carries context information for structured logging.

Capture failures are user-facing: their message is the contract shown to
the voter, so ``str()`` of a ``CaptureFailedError`` is exactly that message
with no code or context appended.
"""

from typing import Optional, Dict, Any

from .utils import to_percentage


class VoteCheckError(Exception):
    """
    Base exception class for all VoteCheck related errors.

    Parameters
    ----------
    message : str
        Human-readable error message.
    context : dict, optional
        Additional context information about the error.
    error_code : str, optional
        Unique error code for programmatic handling.
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.message = message
        self.context = context or {}
        self.error_code = error_code
        super().__init__(self.message)

    def __str__(self) -> str:
        """Return a formatted string representation of the error."""
        parts = [self.message]

        if self.error_code:
            parts.append(f"[Error Code: {self.error_code}]")

        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            parts.append(f"[Context: {context_str}]")

        return " ".join(parts)

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert the exception to a dictionary for structured logging.

        Returns
        -------
        dict
            Dictionary representation of the exception.
        """
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "error_code": self.error_code,
            "context": self.context,
        }


class BiometricProcessingError(VoteCheckError):
    """
    Exception raised for errors during biometric processing.

    This includes sample validation, aggregation, matching and the
    capture pipeline itself.
    """

    def __init__(
        self,
        message: str,
        processing_stage: Optional[str] = None,
        session_id: Optional[str] = None,
        **kwargs,
    ) -> None:
        context = kwargs.get("context", {})
        if processing_stage:
            context["processing_stage"] = processing_stage
        if session_id:
            context["session_id"] = session_id

        super().__init__(message, context, kwargs.get("error_code"))


class InvalidSampleError(BiometricProcessingError):
    """Exception raised when a biometric record is malformed at construction."""

    def __init__(self, message: str, field_name: str, **kwargs) -> None:
        super().__init__(
            message,
            processing_stage="validation",
            context={"field": field_name},
            error_code="BIOMETRIC_001",
        )


class EmbeddingDimensionError(BiometricProcessingError):
    """Exception raised when embeddings of different dimensionality are combined."""

    def __init__(self, message: str, dimensions: list, **kwargs) -> None:
        super().__init__(
            message,
            processing_stage=kwargs.get("processing_stage", "aggregation"),
            context={"dimensions": dimensions},
            error_code="BIOMETRIC_002",
        )


class LandmarkDimensionError(BiometricProcessingError):
    """Exception raised when landmark vectors of different lengths are averaged."""

    def __init__(self, message: str, dimensions: list, **kwargs) -> None:
        super().__init__(
            message,
            processing_stage="aggregation",
            context={"dimensions": dimensions},
            error_code="BIOMETRIC_003",
        )


class FrameFormatError(BiometricProcessingError):
    """Exception raised when a frame cannot be interpreted as an image."""

    def __init__(self, message: str, frame_shape: tuple = (), **kwargs) -> None:
        super().__init__(
            message,
            processing_stage=kwargs.get("processing_stage", "frame_analysis"),
            context={"frame_shape": frame_shape},
            error_code="BIOMETRIC_004",
        )


class CaptureFailedError(BiometricProcessingError):
    """
    Session-fatal capture failure.

    Every subclass discards the collected samples and requires a full
    restart of the capture session. The message is shown verbatim.
    """

    def __str__(self) -> str:
        return self.message


class LivenessFailure(CaptureFailedError):
    """Exception raised when a frame fails the per-sample liveness check."""

    def __init__(self, sample_index: int, reason: str, **kwargs) -> None:
        self.sample_index = sample_index
        self.reason = reason
        message = f"Liveness check failed during capture {sample_index}: {reason}"
        super().__init__(
            message,
            processing_stage="liveness",
            session_id=kwargs.get("session_id"),
            context={"sample_index": sample_index, "reason": reason},
            error_code="CAPTURE_001",
        )


class QualityFailure(CaptureFailedError):
    """Exception raised when a sample falls below the quality threshold."""

    def __init__(self, sample_index: int, quality: float, **kwargs) -> None:
        self.sample_index = sample_index
        self.quality = quality
        self.percentage = to_percentage(quality)
        message = (
            f"Sample {sample_index} quality too low ({self.percentage}%). "
            "Please ensure good lighting and clear face visibility."
        )
        super().__init__(
            message,
            processing_stage="quality_gate",
            session_id=kwargs.get("session_id"),
            context={"sample_index": sample_index, "percentage": self.percentage},
            error_code="CAPTURE_002",
        )


class AntiSpoofingFailure(CaptureFailedError):
    """Exception raised when the session-level anti-spoofing validation fails."""

    def __init__(self, score: float, checks: Optional[Dict[str, bool]] = None, **kwargs) -> None:
        self.score = score
        self.checks = dict(checks or {})
        message = f"Security validation failed. Score: {to_percentage(score)}%"
        super().__init__(
            message,
            processing_stage="anti_spoofing",
            session_id=kwargs.get("session_id"),
            context={"score": score, "checks": self.checks},
            error_code="CAPTURE_003",
        )


class ExtractionError(CaptureFailedError):
    """Exception raised when the embedding extractor fails."""

    def __init__(self, message: str, correlation_id: Optional[str] = None, **kwargs) -> None:
        self.correlation_id = correlation_id
        super().__init__(
            message,
            processing_stage="extraction",
            session_id=kwargs.get("session_id"),
            context={"correlation_id": correlation_id},
            error_code=kwargs.get("error_code", "CAPTURE_004"),
        )


class ExtractionTimeout(ExtractionError):
    """Exception raised when an extraction request exceeds its time bound."""

    def __init__(self, timeout_seconds: float, correlation_id: Optional[str] = None, **kwargs) -> None:
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Face feature extraction timed out after {timeout_seconds:g} seconds",
            correlation_id=correlation_id,
            session_id=kwargs.get("session_id"),
            error_code="CAPTURE_005",
        )


class CaptureCancelledError(BiometricProcessingError):
    """Exception raised inside a capture that was superseded by a reset."""

    def __init__(self, session_id: Optional[str] = None, **kwargs) -> None:
        super().__init__(
            "Capture session was reset",
            processing_stage="capture",
            session_id=session_id,
            error_code="CAPTURE_006",
        )


class CaptureInProgressError(BiometricProcessingError):
    """Exception raised when an operation needs an idle orchestrator."""

    def __init__(self, message: str = "A capture session is already running", **kwargs) -> None:
        super().__init__(message, processing_stage="capture", error_code="CAPTURE_007")


class SecurityCheckError(VoteCheckError):
    """Exception raised for misuse of the security check ledger."""

    def __init__(self, message: str, check_name: Optional[str] = None, **kwargs) -> None:
        context = kwargs.get("context", {})
        if check_name:
            context["check_name"] = check_name

        super().__init__(message, context, kwargs.get("error_code", "CHECK_001"))


class InvalidStatusTransitionError(SecurityCheckError):
    """Exception raised when a security check status would move backwards."""

    def __init__(self, check_name: str, current: str, requested: str, **kwargs) -> None:
        super().__init__(
            f"Cannot move check '{check_name}' from {current} to {requested}",
            check_name=check_name,
            context={"current_status": current, "requested_status": requested},
            error_code="CHECK_002",
        )


class TemplateStoreError(VoteCheckError):
    """Exception raised for errors reading or writing enrolled templates."""

    def __init__(self, message: str, user_id: Optional[str] = None, **kwargs) -> None:
        context = kwargs.get("context", {})
        if user_id:
            context["user_id"] = user_id

        super().__init__(message, context, kwargs.get("error_code", "STORE_001"))


class TemplateNotFoundError(TemplateStoreError):
    """Exception raised when no template is enrolled for a user."""

    def __init__(self, user_id: str, **kwargs) -> None:
        super().__init__(
            "No registered face data found",
            user_id=user_id,
            error_code="STORE_002",
        )


class ConfigurationError(VoteCheckError):
    """
    Exception raised for configuration-related errors.

    This includes invalid configuration values or missing required inputs
    such as an empty frames directory.
    """

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_value: Optional[str] = None,
        **kwargs,
    ) -> None:
        context = kwargs.get("context", {})
        if config_key:
            context["config_key"] = config_key
        if config_value:
            context["config_value"] = config_value

        super().__init__(message, context, kwargs.get("error_code", "CONFIG_001"))
