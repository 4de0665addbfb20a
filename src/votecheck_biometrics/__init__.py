"""
VoteCheck Biometrics - Voter Eligibility Biometric Gate

Captures a short burst of face samples from a live video source, rejects
presentation attacks with per-sample liveness and session-level
anti-spoofing checks, and either enrolls the aggregated face template or
compares it against a voter's enrolled template.
"""

__version__ = "1.0.0"

from .capture import CaptureOrchestrator
from .data_models import (
    BiometricSample,
    CaptureResult,
    CaptureState,
    CheckStatus,
    EnrolledTemplate,
    FaceComparisonResult,
    FaceEmbeddingResult,
    SecurityCheck,
)
from .exceptions import (
    AntiSpoofingFailure,
    CaptureFailedError,
    LivenessFailure,
    QualityFailure,
    VoteCheckError,
)
from .extraction import ExtractionWorkerPool
from .matching import SimilarityMatcher
from .verification import BiometricVerificationService

__all__ = [
    "AntiSpoofingFailure",
    "BiometricSample",
    "BiometricVerificationService",
    "CaptureFailedError",
    "CaptureOrchestrator",
    "CaptureResult",
    "CaptureState",
    "CheckStatus",
    "EnrolledTemplate",
    "ExtractionWorkerPool",
    "FaceComparisonResult",
    "FaceEmbeddingResult",
    "LivenessFailure",
    "QualityFailure",
    "SecurityCheck",
    "SimilarityMatcher",
    "VoteCheckError",
]
