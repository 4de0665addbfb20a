"""
Session-level anti-spoofing validation for the VoteCheck biometric gate.

Liveness is judged per sample on a short window. Anti-spoofing runs once,
after all samples are in, over the final frame and the full accumulated
history. It looks for presentation-attack artefacts that only show up in
aggregate:

- texture_analysis: printed photos and screens lose fine texture, so the
  Laplacian variance of the final frame collapses
- depth_estimation: a flat presentation held still shows almost no
  per-pixel variation over time
- reflection_detection: screens and glossy prints produce large saturated
  glare regions
- frequency_analysis: replay on a screen adds periodic moire patterns that
  concentrate spectral energy in a few frequencies

The score is the fraction of sub-checks that passed.
"""

from typing import Callable, Dict, Iterable, List

import cv2
import numpy as np
import structlog

from .constants import (
    ANTI_SPOOFING_CHECKS,
    ANTI_SPOOFING_PASS_SCORE,
    MAX_SPECTRAL_PEAK_RATIO,
    MAX_SPECULAR_RATIO,
    MIN_TEMPORAL_DEVIATION,
    MIN_TEXTURE_VARIANCE,
    SPECULAR_INTENSITY,
)
from .data_models import AntiSpoofingResult
from .exceptions import FrameFormatError
from .quality_assessment import to_grayscale

# Initialize structured logger
logger = structlog.get_logger(__name__)


class AntiSpoofingValidator:
    """
    Aggregate presentation-attack check over a whole capture window.

    Parameters
    ----------
    pass_score : float, default=ANTI_SPOOFING_PASS_SCORE
        Minimum fraction of sub-checks that must pass.
    min_texture_variance : float, default=MIN_TEXTURE_VARIANCE
        Minimum Laplacian variance of the final frame.
    min_temporal_deviation : float, default=MIN_TEMPORAL_DEVIATION
        Minimum mean per-pixel standard deviation across the history.
    specular_intensity : int, default=SPECULAR_INTENSITY
        Gray level at or above which a pixel counts as glare.
    max_specular_ratio : float, default=MAX_SPECULAR_RATIO
        Maximum tolerated fraction of glare pixels.
    max_spectral_peak_ratio : float, default=MAX_SPECTRAL_PEAK_RATIO
        Maximum share of non-DC spectral energy held by a single frequency.

    Examples
    --------
    >>> validator = AntiSpoofingValidator()
    >>> flat = [np.full((32, 32), 128, dtype=np.uint8)] * 5
    >>> validator.perform_anti_spoofing_checks(flat[-1], flat).passed
    False
    """

    def __init__(
        self,
        pass_score: float = ANTI_SPOOFING_PASS_SCORE,
        min_texture_variance: float = MIN_TEXTURE_VARIANCE,
        min_temporal_deviation: float = MIN_TEMPORAL_DEVIATION,
        specular_intensity: int = SPECULAR_INTENSITY,
        max_specular_ratio: float = MAX_SPECULAR_RATIO,
        max_spectral_peak_ratio: float = MAX_SPECTRAL_PEAK_RATIO,
    ) -> None:
        self.pass_score = pass_score
        self.min_texture_variance = min_texture_variance
        self.min_temporal_deviation = min_temporal_deviation
        self.specular_intensity = specular_intensity
        self.max_specular_ratio = max_specular_ratio
        self.max_spectral_peak_ratio = max_spectral_peak_ratio

        available = {
            "texture_analysis": self.analyze_texture,
            "depth_estimation": self.estimate_depth_variation,
            "reflection_detection": self.detect_reflections,
            "frequency_analysis": self.analyze_frequency_patterns,
        }
        self._checks: Dict[str, Callable[[np.ndarray, List[np.ndarray]], bool]] = {
            name: available[name] for name in ANTI_SPOOFING_CHECKS
        }

        logger.info(
            "AntiSpoofingValidator initialized",
            pass_score=pass_score,
            checks=list(self._checks),
        )

    def perform_anti_spoofing_checks(
        self, frame: np.ndarray, frame_history: Iterable[np.ndarray]
    ) -> AntiSpoofingResult:
        """
        Run every sub-check against the final frame and the full history.

        Parameters
        ----------
        frame : np.ndarray
            Final frame of the capture.
        frame_history : Iterable[np.ndarray]
            Accumulated frames, oldest first.

        Returns
        -------
        AntiSpoofingResult
            ``passed`` gates session completion; ``score`` and ``checks``
            are diagnostics.
        """
        frames = list(frame_history)
        if not frames or frames[-1] is not frame:
            frames.append(frame)
        history = [to_grayscale(f) for f in frames]
        gray = history[-1]

        checks = {name: bool(check(gray, history)) for name, check in self._checks.items()}
        score = sum(checks.values()) / len(checks)
        passed = score >= self.pass_score

        log = logger.info if passed else logger.warning
        log(
            "Anti-spoofing checks completed",
            passed=passed,
            score=score,
            failed_checks=[name for name, ok in checks.items() if not ok],
            frames=len(history),
        )

        return AntiSpoofingResult(passed=passed, score=score, checks=checks)

    def analyze_texture(self, gray: np.ndarray, history: List[np.ndarray]) -> bool:
        laplacian_var = float(cv2.Laplacian(gray, cv2.CV_64F).var())
        return laplacian_var >= self.min_texture_variance

    def estimate_depth_variation(self, gray: np.ndarray, history: List[np.ndarray]) -> bool:
        frames = [f for f in history if f.shape == gray.shape]
        if len(frames) < 2:
            return False
        stack = np.stack(frames).astype(np.float64)
        temporal_deviation = float(np.mean(np.std(stack, axis=0)))
        return temporal_deviation >= self.min_temporal_deviation

    def detect_reflections(self, gray: np.ndarray, history: List[np.ndarray]) -> bool:
        specular_ratio = float(np.mean(gray >= self.specular_intensity))
        return specular_ratio <= self.max_specular_ratio

    def analyze_frequency_patterns(
        self, gray: np.ndarray, history: List[np.ndarray]
    ) -> bool:
        if gray.ndim != 2:
            raise FrameFormatError("Expected a grayscale frame", frame_shape=gray.shape)

        centered = gray.astype(np.float64) - float(np.mean(gray))
        magnitude = np.abs(np.fft.rfft2(centered))
        total_energy = float(np.sum(magnitude))
        if total_energy == 0.0:
            # No spectral content at all: a uniform surface
            return False

        peak_ratio = float(np.max(magnitude)) / total_energy
        return peak_ratio <= self.max_spectral_peak_ratio

