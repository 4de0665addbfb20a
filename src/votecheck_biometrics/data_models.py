"""
Data models for the VoteCheck biometric gate.

This module defines the records that flow through the capture and
verification pipeline. Vector-carrying records validate their inputs at
construction and hold read-only float64 copies, so malformed data is
rejected at the boundary rather than deep inside aggregation or matching.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, FrozenSet, List, Optional, Sequence, Tuple

import numpy as np

from .constants import FRAME_HISTORY_SIZE, QUALITY_THRESHOLD, REQUIRED_SAMPLES
from .exceptions import InvalidSampleError
from .frame_history import FrameHistory
from .utils import generate_session_id


def as_vector(values: Any, field_name: str) -> np.ndarray:
    """
    Convert ``values`` to a read-only 1-D float64 vector.

    Raises
    ------
    InvalidSampleError
        If the input is not a non-empty, finite, one-dimensional sequence.
    """
    try:
        vector = np.array(values, dtype=np.float64)
    except (TypeError, ValueError) as e:
        raise InvalidSampleError(
            f"{field_name} must be a numeric vector: {e}", field_name=field_name
        )

    if vector.ndim != 1:
        raise InvalidSampleError(
            f"{field_name} must be a 1D vector, got {vector.ndim}D",
            field_name=field_name,
        )

    if vector.size == 0:
        raise InvalidSampleError(f"{field_name} cannot be empty", field_name=field_name)

    if not np.all(np.isfinite(vector)):
        raise InvalidSampleError(
            f"{field_name} contains non-finite values", field_name=field_name
        )

    vector.setflags(write=False)
    return vector


def _as_optional_vector(values: Any, field_name: str) -> Optional[np.ndarray]:
    if values is None:
        return None
    return as_vector(values, field_name)


def _validate_unit_interval(value: Any, field_name: str) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float, np.floating)):
        raise InvalidSampleError(f"{field_name} must be a number", field_name=field_name)

    value = float(value)
    if not 0.0 <= value <= 1.0:
        raise InvalidSampleError(
            f"{field_name} must be between 0.0 and 1.0, got {value}",
            field_name=field_name,
        )
    return value


@dataclass(frozen=True, eq=False)
class BiometricSample:
    """
    One accepted face sample from a capture session.

    Parameters
    ----------
    embedding : array-like
        Fixed-length facial feature vector.
    quality : float
        Extraction quality score between 0.0 and 1.0.
    landmarks : array-like, optional
        Flattened facial landmark coordinates.

    Examples
    --------
    >>> sample = BiometricSample(embedding=[0.1, 0.2], quality=0.9)
    >>> sample.dimension
    2
    """

    embedding: np.ndarray
    quality: float
    landmarks: Optional[np.ndarray] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "embedding", as_vector(self.embedding, "embedding"))
        object.__setattr__(self, "quality", _validate_unit_interval(self.quality, "quality"))
        object.__setattr__(
            self, "landmarks", _as_optional_vector(self.landmarks, "landmarks")
        )

    @property
    def dimension(self) -> int:
        return int(self.embedding.shape[0])

    @property
    def has_landmarks(self) -> bool:
        return self.landmarks is not None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "embedding": self.embedding.tolist(),
            "quality": self.quality,
            "landmarks": None if self.landmarks is None else self.landmarks.tolist(),
        }


@dataclass(frozen=True, eq=False)
class ExtractionResult:
    """
    Output of an embedding extractor for a single frame.

    ``embedding`` is None when the extractor found no usable face; such a
    result never passes the quality gate.
    """

    embedding: Optional[np.ndarray]
    quality: float
    landmarks: Optional[np.ndarray] = None

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "embedding", _as_optional_vector(self.embedding, "embedding")
        )
        object.__setattr__(self, "quality", _validate_unit_interval(self.quality, "quality"))
        object.__setattr__(
            self, "landmarks", _as_optional_vector(self.landmarks, "landmarks")
        )

    def to_sample(self) -> BiometricSample:
        """Promote the extraction to an accepted sample."""
        if self.embedding is None:
            raise InvalidSampleError(
                "Cannot build a sample without an embedding", field_name="embedding"
            )
        return BiometricSample(
            embedding=self.embedding, quality=self.quality, landmarks=self.landmarks
        )


@dataclass(frozen=True)
class LivenessResult:
    """Per-frame liveness judgement. Confidence is advisory only."""

    is_live: bool
    confidence: float
    reason: str


@dataclass(frozen=True)
class AntiSpoofingResult:
    """
    Session-level anti-spoofing outcome.

    Parameters
    ----------
    passed : bool
        Whether the session may complete.
    score : float
        Fraction of sub-checks that passed, between 0.0 and 1.0.
    checks : Dict[str, bool]
        Outcome of every executed sub-check, keyed by name.
    """

    passed: bool
    score: float
    checks: Dict[str, bool] = field(default_factory=dict)

    @property
    def executed_checks(self) -> FrozenSet[str]:
        return frozenset(self.checks)

    @property
    def failed_checks(self) -> List[str]:
        return [name for name, ok in self.checks.items() if not ok]

    def to_dict(self) -> Dict[str, Any]:
        return {"passed": self.passed, "score": self.score, "checks": dict(self.checks)}


class CheckStatus(str, Enum):
    """Status of a named security check. Values order from pending to terminal."""

    PENDING = "pending"
    CHECKING = "checking"
    PASSED = "passed"
    FAILED = "failed"

    @property
    def rank(self) -> int:
        return {"pending": 0, "checking": 1, "passed": 2, "failed": 2}[self.value]

    @property
    def is_terminal(self) -> bool:
        return self.rank == 2


@dataclass
class SecurityCheck:
    """A named check surfaced to the UI together with its current status."""

    name: str
    description: str
    status: CheckStatus = CheckStatus.PENDING

    def to_dict(self) -> Dict[str, str]:
        return {
            "name": self.name,
            "status": self.status.value,
            "description": self.description,
        }


@dataclass(frozen=True, eq=False)
class FaceEmbeddingResult:
    """
    Aggregated template produced by a completed capture session.

    Parameters
    ----------
    avg_embedding : np.ndarray
        Elementwise mean of all sample embeddings.
    avg_quality : float
        Mean sample quality; diagnostic only.
    avg_landmarks : np.ndarray, optional
        Elementwise mean over the samples that carried landmarks.
    samples_count : int
        Number of samples aggregated.
    """

    avg_embedding: np.ndarray
    avg_quality: float
    avg_landmarks: Optional[np.ndarray] = None
    samples_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "avg_embedding": self.avg_embedding.tolist(),
            "avg_quality": self.avg_quality,
            "avg_landmarks": (
                None if self.avg_landmarks is None else self.avg_landmarks.tolist()
            ),
            "samples_count": self.samples_count,
        }


@dataclass(frozen=True)
class FaceComparisonResult:
    """
    Outcome of comparing a probe embedding against an enrolled template.

    ``details`` holds the individual similarity measures that went into
    ``similarity``.
    """

    similarity: float
    confidence: float
    threshold: float
    details: Dict[str, float] = field(default_factory=dict)

    @property
    def is_match(self) -> bool:
        return self.similarity >= self.threshold

    def to_dict(self) -> Dict[str, Any]:
        return {
            "similarity": self.similarity,
            "confidence": self.confidence,
            "threshold": self.threshold,
            "is_match": self.is_match,
            "details": dict(self.details),
        }


@dataclass(frozen=True, eq=False)
class EnrolledTemplate:
    """
    Reference template stored for a registered voter.

    The template is owned by external persistence; the pipeline only reads
    it during verification and produces a new one during registration.
    """

    user_id: str
    embedding: np.ndarray
    landmarks: Optional[np.ndarray] = None
    quality: Optional[float] = None
    samples_count: int = REQUIRED_SAMPLES
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        if not self.user_id or not isinstance(self.user_id, str):
            raise InvalidSampleError("user_id must be a non-empty string", field_name="user_id")

        object.__setattr__(self, "embedding", as_vector(self.embedding, "embedding"))
        object.__setattr__(
            self, "landmarks", _as_optional_vector(self.landmarks, "landmarks")
        )
        if self.quality is not None:
            object.__setattr__(
                self, "quality", _validate_unit_interval(self.quality, "quality")
            )

    @classmethod
    def from_embedding_result(
        cls, user_id: str, result: FaceEmbeddingResult
    ) -> "EnrolledTemplate":
        return cls(
            user_id=user_id,
            embedding=result.avg_embedding,
            landmarks=result.avg_landmarks,
            quality=result.avg_quality,
            samples_count=result.samples_count,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "embedding": self.embedding.tolist(),
            "landmarks": None if self.landmarks is None else self.landmarks.tolist(),
            "quality": self.quality,
            "samples_count": self.samples_count,
            "created_at": self.created_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EnrolledTemplate":
        return cls(
            user_id=data["user_id"],
            embedding=data["embedding"],
            landmarks=data.get("landmarks"),
            quality=data.get("quality"),
            samples_count=int(data.get("samples_count", REQUIRED_SAMPLES)),
            created_at=datetime.fromisoformat(data["created_at"])
            if data.get("created_at")
            else datetime.now(timezone.utc),
        )


class CaptureState(str, Enum):
    """States of the capture orchestrator."""

    IDLE = "idle"
    CAPTURING = "capturing"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass
class CaptureSession:
    """
    Transient state of one capture session.

    The session owns its frame history. ``progress`` only moves forward
    while capturing; ``reset`` is the single way back to zero.
    """

    required_samples: int = REQUIRED_SAMPLES
    session_id: str = field(default_factory=generate_session_id)
    samples: List[BiometricSample] = field(default_factory=list)
    progress: float = 0.0
    is_capturing: bool = False
    error: Optional[str] = None
    state: CaptureState = CaptureState.IDLE
    frame_history: FrameHistory = field(
        default_factory=lambda: FrameHistory(FRAME_HISTORY_SIZE)
    )

    def add_sample(self, sample: BiometricSample) -> None:
        """
        Append an accepted sample.

        Raises
        ------
        InvalidSampleError
            If the session is full, the sample is below the quality
            threshold, or its dimension differs from earlier samples.
        """
        if len(self.samples) >= self.required_samples:
            raise InvalidSampleError(
                f"Session already holds {self.required_samples} samples",
                field_name="samples",
            )
        if sample.quality < QUALITY_THRESHOLD:
            raise InvalidSampleError(
                f"Sample quality {sample.quality:.3f} below threshold {QUALITY_THRESHOLD}",
                field_name="quality",
            )
        if self.samples and sample.dimension != self.samples[0].dimension:
            raise InvalidSampleError(
                f"Embedding dimension {sample.dimension} differs from session "
                f"dimension {self.samples[0].dimension}",
                field_name="embedding",
            )
        self.samples.append(sample)

    def advance_progress(self, value: float) -> None:
        """Move progress forward to ``value``; lower values are ignored."""
        self.progress = max(self.progress, min(100.0, float(value)))

    def reset(self) -> None:
        """Return to idle with no samples, zero progress and an empty history."""
        self.samples = []
        self.progress = 0.0
        self.is_capturing = False
        self.error = None
        self.state = CaptureState.IDLE
        self.frame_history.clear()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "session_id": self.session_id,
            "state": self.state.value,
            "samples": len(self.samples),
            "required_samples": self.required_samples,
            "progress": self.progress,
            "is_capturing": self.is_capturing,
            "error": self.error,
        }


@dataclass(frozen=True)
class CaptureResult:
    """Everything a completed capture session hands to its caller."""

    session_id: str
    samples: Tuple[BiometricSample, ...]
    anti_spoofing: AntiSpoofingResult
    embedding: FaceEmbeddingResult

    @property
    def samples_count(self) -> int:
        return len(self.samples)


def sample_dimensions(samples: Sequence[BiometricSample]) -> List[int]:
    """Embedding dimension of every sample, in order."""
    return [sample.dimension for sample in samples]
