"""
Template aggregation for the VoteCheck biometric gate.

A completed capture session holds several accepted samples of the same
face. This module folds them into one template: the elementwise mean of
the embeddings, the elementwise mean of whatever landmark sets were
captured, and the mean quality for diagnostics.
"""

from typing import List, Optional, Sequence

import numpy as np
import structlog

from .data_models import BiometricSample, FaceEmbeddingResult, sample_dimensions
from .exceptions import (
    EmbeddingDimensionError,
    InvalidSampleError,
    LandmarkDimensionError,
)
from .utils import timer

# Initialize structured logger
logger = structlog.get_logger(__name__)


def average_vectors(vectors: Sequence[np.ndarray]) -> np.ndarray:
    """
    Elementwise arithmetic mean of equally sized vectors.

    The caller is responsible for checking dimensions; ``np.vstack`` raises
    on ragged input.

    Examples
    --------
    >>> average_vectors([np.array([1.0, 0.0]), np.array([0.0, 1.0])])
    array([0.5, 0.5])
    """
    return np.vstack(vectors).mean(axis=0)


class EmbeddingAggregator:
    """
    Combines accepted samples into one averaged template.

    Examples
    --------
    >>> aggregator = EmbeddingAggregator()
    >>> samples = [
    ...     BiometricSample(embedding=[1.0, 0.0], quality=0.6),
    ...     BiometricSample(embedding=[0.0, 1.0], quality=1.0),
    ... ]
    >>> result = aggregator.process_captures(samples)
    >>> result.avg_embedding.tolist(), result.avg_quality
    ([0.5, 0.5], 0.8)
    """

    @timer
    def process_captures(self, samples: Sequence[BiometricSample]) -> FaceEmbeddingResult:
        """
        Aggregate samples into a single template.

        Parameters
        ----------
        samples : Sequence[BiometricSample]
            Accepted samples of one capture session.

        Returns
        -------
        FaceEmbeddingResult
            Averaged embedding, averaged landmarks (absent when no sample
            carried landmarks) and mean quality.

        Raises
        ------
        InvalidSampleError
            If ``samples`` is empty.
        EmbeddingDimensionError
            If the embeddings do not share one dimensionality.
        LandmarkDimensionError
            If the landmark vectors do not share one length.
        """
        if not samples:
            raise InvalidSampleError("Cannot aggregate an empty sample set", field_name="samples")

        dimensions = sample_dimensions(samples)
        if len(set(dimensions)) != 1:
            raise EmbeddingDimensionError(
                "All embeddings in a session must share one dimensionality",
                dimensions=dimensions,
            )

        avg_embedding = average_vectors([s.embedding for s in samples])
        avg_landmarks = self._average_landmarks(samples)
        avg_quality = float(np.mean([s.quality for s in samples]))

        avg_embedding.setflags(write=False)

        logger.info(
            "Samples aggregated",
            samples=len(samples),
            dimension=dimensions[0],
            landmark_samples=sum(1 for s in samples if s.has_landmarks),
            avg_quality=avg_quality,
        )

        return FaceEmbeddingResult(
            avg_embedding=avg_embedding,
            avg_quality=avg_quality,
            avg_landmarks=avg_landmarks,
            samples_count=len(samples),
        )

    def _average_landmarks(self, samples: Sequence[BiometricSample]) -> Optional[np.ndarray]:
        landmark_sets: List[np.ndarray] = [
            s.landmarks for s in samples if s.landmarks is not None
        ]
        if not landmark_sets:
            return None

        lengths = [int(l.shape[0]) for l in landmark_sets]
        if len(set(lengths)) != 1:
            raise LandmarkDimensionError(
                "Landmark vectors differ in length across samples",
                dimensions=lengths,
            )

        avg_landmarks = average_vectors(landmark_sets)
        avg_landmarks.setflags(write=False)
        return avg_landmarks
