"""
Face matching for the VoteCheck biometric gate.

The matcher compares a probe embedding from a fresh capture against the
voter's enrolled template. Cosine similarity is mapped from [-1, 1] onto
[0, 1], so identical embeddings score exactly 1.0 and opposite ones 0.0.

When both sides carry landmark sets of the same length, the decision also
uses landmark agreement and the geometric consistency of the landmark
layout (pairwise point distances, scale-normalized).
"""

from typing import Optional

import numpy as np
import structlog
from scipy.spatial.distance import pdist

from .constants import COMPARISON_WEIGHTS, DEFAULT_SIMILARITY_THRESHOLD
from .data_models import FaceComparisonResult, as_vector
from .exceptions import EmbeddingDimensionError
from .utils import timer

# Initialize structured logger
logger = structlog.get_logger(__name__)


def cosine_similarity(vec1: np.ndarray, vec2: np.ndarray) -> float:
    """
    Cosine similarity in [-1, 1].

    A zero-norm vector has no direction: two identical zero vectors score
    1.0, a zero vector against anything else scores 0.0.

    Examples
    --------
    >>> cosine_similarity(np.array([1.0, 0.0]), np.array([0.0, 1.0]))
    0.0
    """
    norm1 = float(np.linalg.norm(vec1))
    norm2 = float(np.linalg.norm(vec2))
    if norm1 == 0.0 or norm2 == 0.0:
        return 1.0 if np.array_equal(vec1, vec2) else 0.0

    cosine = float(np.dot(vec1, vec2)) / (norm1 * norm2)
    return float(np.clip(round(cosine, 12), -1.0, 1.0))


def landmark_similarity(landmarks1: np.ndarray, landmarks2: np.ndarray) -> float:
    """One minus the mean absolute coordinate difference, clipped to [0, 1]."""
    return float(np.clip(1.0 - np.mean(np.abs(landmarks1 - landmarks2)), 0.0, 1.0))


def geometric_consistency(landmarks1: np.ndarray, landmarks2: np.ndarray) -> float:
    """
    Agreement of the two landmark layouts, independent of scale.

    Landmarks are flattened ``(x, y)`` pairs. The pairwise distance profile
    of each layout is divided by its mean, and the score is one minus the
    mean absolute difference of the two profiles.
    """
    if landmarks1.shape[0] % 2 or landmarks1.shape[0] < 4:
        return 1.0

    profile1 = pdist(landmarks1.reshape(-1, 2))
    profile2 = pdist(landmarks2.reshape(-1, 2))
    scale1, scale2 = float(np.mean(profile1)), float(np.mean(profile2))
    if scale1 == 0.0 or scale2 == 0.0:
        return 1.0 if scale1 == scale2 else 0.0

    diff = np.mean(np.abs(profile1 / scale1 - profile2 / scale2))
    return float(np.clip(1.0 - diff, 0.0, 1.0))


class SimilarityMatcher:
    """
    Compares a probe embedding with an enrolled template.

    Parameters
    ----------
    threshold : float, default=DEFAULT_SIMILARITY_THRESHOLD
        Decision threshold on normalized similarity. Raising it trades
        false accepts for false rejects.

    Examples
    --------
    >>> matcher = SimilarityMatcher(threshold=0.9)
    >>> result = matcher.compare([0.3, 0.4], [0.3, 0.4])
    >>> result.similarity, result.is_match
    (1.0, True)
    """

    def __init__(self, threshold: float = DEFAULT_SIMILARITY_THRESHOLD) -> None:
        if not 0.0 <= threshold <= 1.0:
            raise ValueError(f"threshold must be between 0.0 and 1.0, got {threshold}")

        self.threshold = threshold
        self.weights = dict(COMPARISON_WEIGHTS)

        logger.info("SimilarityMatcher initialized", threshold=threshold)

    @timer
    def compare(
        self,
        probe_embedding,
        enrolled_embedding,
        probe_landmarks=None,
        enrolled_landmarks=None,
    ) -> FaceComparisonResult:
        """
        Compare two embeddings and render a match decision.

        Parameters
        ----------
        probe_embedding : array-like
            Embedding from the current capture.
        enrolled_embedding : array-like
            Enrolled reference embedding.
        probe_landmarks, enrolled_landmarks : array-like, optional
            Landmark sets; used only when both are present with equal length.

        Returns
        -------
        FaceComparisonResult
            Similarity in [0, 1], confidence, and the threshold applied.

        Raises
        ------
        EmbeddingDimensionError
            If the embeddings differ in length.
        """
        probe = as_vector(probe_embedding, "probe_embedding")
        enrolled = as_vector(enrolled_embedding, "enrolled_embedding")

        if probe.shape != enrolled.shape:
            raise EmbeddingDimensionError(
                "Probe and enrolled embeddings differ in dimensionality",
                dimensions=[int(probe.shape[0]), int(enrolled.shape[0])],
                processing_stage="matching",
            )

        embedding_similarity = (cosine_similarity(probe, enrolled) + 1.0) / 2.0
        details = {"embedding_similarity": embedding_similarity}

        landmarks = self._comparable_landmarks(probe_landmarks, enrolled_landmarks)
        if landmarks is None:
            similarity = embedding_similarity
            confidence = embedding_similarity
        else:
            landmark_score = landmark_similarity(*landmarks)
            geometric_score = geometric_consistency(*landmarks)
            details["landmark_similarity"] = landmark_score
            details["geometric_consistency"] = geometric_score

            similarity = (
                self.weights["embedding"] * embedding_similarity
                + self.weights["landmark"] * landmark_score
                + self.weights["geometric"] * geometric_score
            )
            # Agreement between the measures drives confidence
            confidence = 1.0 - float(
                np.var([embedding_similarity, landmark_score, geometric_score])
            )

        result = FaceComparisonResult(
            similarity=float(np.clip(round(similarity, 12), 0.0, 1.0)),
            confidence=float(np.clip(confidence, 0.0, 1.0)),
            threshold=self.threshold,
            details=details,
        )

        logger.info(
            "Face comparison completed",
            similarity=result.similarity,
            threshold=self.threshold,
            is_match=result.is_match,
            used_landmarks=landmarks is not None,
        )
        return result

    def _comparable_landmarks(self, probe_landmarks, enrolled_landmarks) -> Optional[tuple]:
        if probe_landmarks is None or enrolled_landmarks is None:
            return None

        probe = as_vector(probe_landmarks, "probe_landmarks")
        enrolled = as_vector(enrolled_landmarks, "enrolled_landmarks")
        if probe.shape != enrolled.shape:
            logger.warning(
                "Landmark sets differ in length; comparing embeddings only",
                probe_length=int(probe.shape[0]),
                enrolled_length=int(enrolled.shape[0]),
            )
            return None
        return probe, enrolled
