import numpy as np
import pytest

from votecheck_biometrics.aggregation import EmbeddingAggregator
from votecheck_biometrics.data_models import BiometricSample
from votecheck_biometrics.exceptions import (
    EmbeddingDimensionError,
    InvalidSampleError,
    LandmarkDimensionError,
)
from votecheck_biometrics.matching import (
    SimilarityMatcher,
    cosine_similarity,
    geometric_consistency,
)


class TestAggregation:
    def test_averages_embeddings_and_quality(self):
        samples = [
            BiometricSample(embedding=[1.0, 0.0, 2.0], quality=0.6),
            BiometricSample(embedding=[0.0, 1.0, 4.0], quality=1.0),
        ]

        result = EmbeddingAggregator().process_captures(samples)

        assert result.avg_embedding.tolist() == [0.5, 0.5, 3.0]
        assert result.avg_quality == pytest.approx(0.8)
        assert result.avg_landmarks is None
        assert result.samples_count == 2

    def test_average_quality_of_three(self):
        samples = [
            BiometricSample(embedding=[1.0], quality=q) for q in (0.6, 0.8, 1.0)
        ]

        assert EmbeddingAggregator().process_captures(samples).avg_quality == pytest.approx(0.8)

    def test_identical_samples_reproduce_embedding(self, rng):
        embedding = rng.normal(size=128)
        samples = [BiometricSample(embedding=embedding, quality=0.9) for _ in range(7)]

        result = EmbeddingAggregator().process_captures(samples)

        np.testing.assert_allclose(result.avg_embedding, embedding)

    def test_landmarks_averaged_over_samples_that_have_them(self):
        samples = [
            BiometricSample(embedding=[1.0], quality=0.9, landmarks=[0.0, 2.0]),
            BiometricSample(embedding=[1.0], quality=0.9),
            BiometricSample(embedding=[1.0], quality=0.9, landmarks=[2.0, 4.0]),
        ]

        result = EmbeddingAggregator().process_captures(samples)

        assert result.avg_landmarks.tolist() == [1.0, 3.0]

    def test_empty_input_rejected(self):
        with pytest.raises(InvalidSampleError):
            EmbeddingAggregator().process_captures([])

    def test_mixed_dimensions_rejected(self):
        samples = [
            BiometricSample(embedding=[1.0, 2.0], quality=0.9),
            BiometricSample(embedding=[1.0, 2.0, 3.0], quality=0.9),
        ]
        with pytest.raises(EmbeddingDimensionError):
            EmbeddingAggregator().process_captures(samples)

    def test_mixed_landmark_lengths_rejected(self):
        samples = [
            BiometricSample(embedding=[1.0], quality=0.9, landmarks=[0.1, 0.2]),
            BiometricSample(embedding=[1.0], quality=0.9, landmarks=[0.1, 0.2, 0.3, 0.4]),
        ]
        with pytest.raises(LandmarkDimensionError):
            EmbeddingAggregator().process_captures(samples)

    def test_result_is_read_only(self):
        samples = [BiometricSample(embedding=[1.0, 2.0], quality=0.9)]
        result = EmbeddingAggregator().process_captures(samples)

        with pytest.raises(ValueError):
            result.avg_embedding[0] = 0.0


class TestCosineSimilarity:
    def test_orthogonal_vectors(self):
        assert cosine_similarity(np.array([1.0, 0.0]), np.array([0.0, 1.0])) == 0.0

    def test_zero_vector(self):
        assert cosine_similarity(np.zeros(3), np.ones(3)) == 0.0

    def test_identical_zero_vectors(self):
        assert cosine_similarity(np.zeros(3), np.zeros(3)) == 1.0


class TestSimilarityMatcher:
    def test_self_comparison_is_perfect(self, rng):
        embedding = rng.normal(size=128)

        result = SimilarityMatcher().compare(embedding, embedding)

        assert result.similarity == 1.0
        assert result.is_match
        assert result.confidence == result.similarity

    def test_zero_embedding_matches_itself(self):
        result = SimilarityMatcher(threshold=0.9).compare(np.zeros(4), np.zeros(4))

        assert result.similarity == 1.0
        assert result.is_match

    def test_zero_embedding_against_nonzero_scores_half(self):
        result = SimilarityMatcher(threshold=0.9).compare(np.zeros(4), np.ones(4))

        assert result.similarity == 0.5
        assert not result.is_match

    def test_opposite_embeddings_score_zero(self):
        result = SimilarityMatcher().compare([1.0, 2.0], [-1.0, -2.0])

        assert result.similarity == 0.0
        assert not result.is_match

    def test_orthogonal_embeddings_score_half(self):
        result = SimilarityMatcher().compare([1.0, 0.0], [0.0, 1.0])

        assert result.similarity == 0.5
        assert not result.is_match

    def test_decision_follows_threshold(self):
        probe, enrolled = [1.0, 0.0], [1.0, 1.0]
        # cos = 0.7071..., normalized similarity = 0.8535...
        assert SimilarityMatcher(threshold=0.85).compare(probe, enrolled).is_match
        assert not SimilarityMatcher(threshold=0.86).compare(probe, enrolled).is_match

    def test_dimension_mismatch_raises(self):
        with pytest.raises(EmbeddingDimensionError):
            SimilarityMatcher().compare([1.0, 2.0], [1.0, 2.0, 3.0])

    def test_invalid_threshold(self):
        with pytest.raises(ValueError):
            SimilarityMatcher(threshold=-0.1)

    def test_landmark_aware_self_comparison(self, rng):
        embedding = rng.normal(size=64)
        landmarks = rng.uniform(0, 1, size=20)

        result = SimilarityMatcher().compare(
            embedding, embedding, probe_landmarks=landmarks, enrolled_landmarks=landmarks
        )

        assert result.similarity == pytest.approx(1.0)
        assert result.confidence == pytest.approx(1.0)
        assert result.details["landmark_similarity"] == 1.0
        assert result.details["geometric_consistency"] == pytest.approx(1.0)

    def test_landmark_weighting(self):
        embedding = [1.0, 0.0]
        probe_landmarks = [0.0, 0.0, 1.0, 0.0, 0.0, 1.0]
        enrolled_landmarks = [0.2, 0.2, 1.2, 0.2, 0.2, 1.2]

        result = SimilarityMatcher().compare(
            embedding,
            embedding,
            probe_landmarks=probe_landmarks,
            enrolled_landmarks=enrolled_landmarks,
        )

        # Shifted layout: landmarks differ by 0.2, geometry is identical
        assert result.details["landmark_similarity"] == pytest.approx(0.8)
        assert result.details["geometric_consistency"] == pytest.approx(1.0)
        assert result.similarity == pytest.approx(0.6 + 0.25 * 0.8 + 0.15)

    def test_mismatched_landmarks_are_ignored(self):
        result = SimilarityMatcher().compare(
            [1.0, 2.0], [1.0, 2.0], probe_landmarks=[0.1, 0.2], enrolled_landmarks=[0.1]
        )

        assert set(result.details) == {"embedding_similarity"}
        assert result.similarity == 1.0

    def test_geometric_consistency_is_scale_free(self):
        layout = np.array([0.0, 0.0, 1.0, 0.0, 0.0, 1.0, 1.0, 1.0])

        assert geometric_consistency(layout, layout * 3.0) == pytest.approx(1.0)
