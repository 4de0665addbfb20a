import numpy as np
import pytest

from votecheck_biometrics.anti_spoofing import AntiSpoofingValidator
from votecheck_biometrics.exceptions import FrameFormatError
from votecheck_biometrics.frame_history import FrameHistory
from votecheck_biometrics.liveness import LivenessDetector, frame_differences
from votecheck_biometrics.quality_assessment import (
    FrameQualityAssessor,
    QualityGate,
    to_grayscale,
)


class TestQualityGate:
    def test_threshold_is_inclusive(self):
        gate = QualityGate()

        assert gate.accept(0.6)
        assert gate.accept(1.0)
        assert not gate.accept(0.5999)

    def test_rejects_invalid_threshold(self):
        with pytest.raises(ValueError):
            QualityGate(threshold=1.2)


class TestGrayscale:
    @pytest.mark.parametrize("shape", [(8, 8), (8, 8, 1), (8, 8, 3), (8, 8, 4)])
    def test_supported_layouts(self, shape):
        assert to_grayscale(np.zeros(shape, dtype=np.uint8)).shape == (8, 8)

    def test_float_frames_are_clipped(self):
        gray = to_grayscale(np.full((4, 4), 300.0))

        assert gray.dtype == np.uint8
        assert gray.max() == 255

    @pytest.mark.parametrize("frame", [np.zeros((8, 8, 2), dtype=np.uint8), np.zeros((0, 0))])
    def test_unsupported_frames(self, frame):
        with pytest.raises(FrameFormatError):
            to_grayscale(frame)


def test_quality_assessor_prefers_textured_frames(noise_frames):
    assessor = FrameQualityAssessor()
    flat = np.full((64, 64), 128, dtype=np.uint8)

    assert assessor.assess(noise_frames[0]) > assessor.assess(flat)
    assert assessor.assess(flat) == pytest.approx(0.42)


class TestFrameHistory:
    def test_keeps_most_recent_frames(self):
        history = FrameHistory(capacity=3)
        frames = [np.full((4, 4), i, dtype=np.uint8) for i in range(5)]
        for frame in frames:
            history.append(frame)

        assert len(history) == 3
        assert history.is_full
        assert all(kept is frame for kept, frame in zip(history.frames(), frames[2:]))
        assert history.latest is frames[-1]

    def test_latest_on_empty_history(self):
        with pytest.raises(IndexError):
            FrameHistory().latest

    def test_rejects_non_frames(self):
        history = FrameHistory()

        with pytest.raises(FrameFormatError):
            history.append(np.zeros(10))
        with pytest.raises(FrameFormatError):
            history.append([[0, 1], [1, 0]])

    def test_clear(self, noise_frames):
        history = FrameHistory()
        for frame in noise_frames:
            history.append(frame)
        history.clear()

        assert len(history) == 0


class TestLiveness:
    def test_moving_subject_is_live(self, noise_frames):
        result = LivenessDetector().detect_liveness(noise_frames[-1], noise_frames[:-1])

        assert result.is_live
        assert result.reason == "Natural movement detected"
        assert 0.0 < result.confidence <= 1.0

    def test_still_photo_is_not_live(self):
        still = np.full((32, 32, 3), 90, dtype=np.uint8)
        result = LivenessDetector().detect_liveness(still, [still] * 6)

        assert not result.is_live
        assert result.reason == "No significant movement detected"

    def test_too_few_frames(self, noise_frames):
        result = LivenessDetector().detect_liveness(noise_frames[1], noise_frames[:1])

        assert not result.is_live
        assert result.reason == "Insufficient frames for liveness detection"

    def test_single_jolt_is_not_enough(self):
        # One swap between two photos: motion without sustained micro-movement
        first = np.full((32, 32), 100, dtype=np.uint8)
        second = np.full((32, 32), 110, dtype=np.uint8)
        frames = [first] * 9 + [second]

        result = LivenessDetector().detect_liveness(frames[-1], frames)

        assert not result.is_live
        assert result.reason == "No significant movement detected"

    def test_current_frame_is_not_counted_twice(self, noise_frames):
        history = noise_frames[:2]
        result = LivenessDetector().detect_liveness(history[-1], history)

        assert result.reason == "Insufficient frames for liveness detection"

    def test_mixed_resolutions_rejected(self, rng):
        frames = [
            rng.integers(0, 256, (32, 32), dtype=np.uint8),
            rng.integers(0, 256, (16, 16), dtype=np.uint8),
        ]
        with pytest.raises(FrameFormatError):
            frame_differences(frames)


class TestAntiSpoofing:
    def test_live_textured_capture_passes(self, noise_frames):
        result = AntiSpoofingValidator().perform_anti_spoofing_checks(
            noise_frames[-1], noise_frames
        )

        assert result.passed
        assert result.score == 1.0
        assert set(result.checks) == {
            "texture_analysis",
            "depth_estimation",
            "reflection_detection",
            "frequency_analysis",
        }

    def test_flat_static_presentation_fails(self):
        flat = np.full((64, 64), 128, dtype=np.uint8)
        result = AntiSpoofingValidator().perform_anti_spoofing_checks(flat, [flat] * 5)

        assert not result.passed
        assert result.score == 0.25
        assert result.failed_checks == [
            "texture_analysis",
            "depth_estimation",
            "frequency_analysis",
        ]

    def test_glare_fails_reflection_check(self, noise_frames):
        glare = noise_frames[-1].copy()
        glare[:32, :, :] = 255

        validator = AntiSpoofingValidator()
        assert not validator.detect_reflections(to_grayscale(glare), [])

    def test_periodic_pattern_fails_frequency_check(self):
        x = np.arange(64)
        stripes = (127 + 100 * np.sin(2 * np.pi * x / 8)).astype(np.uint8)
        screen = np.tile(stripes, (64, 1))

        assert not AntiSpoofingValidator().analyze_frequency_patterns(screen, [])

    def test_single_frame_has_no_depth(self, noise_frames):
        gray = to_grayscale(noise_frames[0])

        assert not AntiSpoofingValidator().estimate_depth_variation(gray, [gray])

    def test_score_is_fraction_of_passed_checks(self, noise_frames):
        # Static textured photo: only the temporal check fails
        photo = noise_frames[0]
        result = AntiSpoofingValidator().perform_anti_spoofing_checks(photo, [photo] * 5)

        assert result.score == 0.75
        assert result.passed
        assert result.failed_checks == ["depth_estimation"]
