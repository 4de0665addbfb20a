"""
Biometric quality assessment for the VoteCheck biometric gate.

Two pieces live here. ``QualityGate`` is the acceptance rule applied to
every captured sample. ``FrameQualityAssessor`` scores a raw frame from
sharpness, illumination and contrast; the reference extractor uses it to
attach a quality score to each embedding.
"""

from typing import Dict

import cv2
import numpy as np
import structlog

from .constants import QUALITY_THRESHOLD
from .exceptions import FrameFormatError

# Initialize structured logger
logger = structlog.get_logger(__name__)


class QualityGate:
    """
    Threshold check on a single sample's quality score.

    Parameters
    ----------
    threshold : float, default=QUALITY_THRESHOLD
        Minimum acceptable quality. Samples exactly at the threshold pass.

    Examples
    --------
    >>> gate = QualityGate()
    >>> gate.accept(0.6), gate.accept(0.59)
    (True, False)
    """

    def __init__(self, threshold: float = QUALITY_THRESHOLD) -> None:
        if not 0.0 <= threshold <= 1.0:
            raise ValueError(f"threshold must be between 0.0 and 1.0, got {threshold}")
        self.threshold = threshold

    def accept(self, quality: float) -> bool:
        return quality >= self.threshold


def to_grayscale(frame: np.ndarray) -> np.ndarray:
    """
    Convert a frame to a 2-D uint8 grayscale image.

    Raises
    ------
    FrameFormatError
        If the frame has an unsupported shape.
    """
    if not isinstance(frame, np.ndarray) or frame.size == 0:
        raise FrameFormatError(
            "Frame must be a non-empty numpy array",
            frame_shape=getattr(frame, "shape", ()),
        )

    if frame.dtype != np.uint8:
        frame = np.clip(frame, 0, 255).astype(np.uint8)

    if frame.ndim == 2:
        return frame
    if frame.ndim == 3 and frame.shape[2] == 1:
        return frame[:, :, 0]
    if frame.ndim == 3 and frame.shape[2] == 3:
        return cv2.cvtColor(frame, cv2.COLOR_RGB2GRAY)
    if frame.ndim == 3 and frame.shape[2] == 4:
        return cv2.cvtColor(frame, cv2.COLOR_RGBA2GRAY)

    raise FrameFormatError("Unsupported frame layout", frame_shape=frame.shape)


class FrameQualityAssessor:
    """
    Heuristic image quality scoring for a face frame.

    The score combines sharpness (Laplacian variance), illumination (mean
    brightness) and contrast (brightness standard deviation) with fixed
    weights, mirroring the components used for enrollment photos.
    """

    weights: Dict[str, float] = {
        "sharpness": 0.45,
        "illumination": 0.3,
        "contrast": 0.25,
    }

    def score_components(self, frame: np.ndarray) -> Dict[str, float]:
        gray = to_grayscale(frame)
        components = {}

        laplacian_var = float(cv2.Laplacian(gray, cv2.CV_64F).var())
        if laplacian_var < 50:
            components["sharpness"] = 0.1  # Very blurry
        elif laplacian_var < 100:
            components["sharpness"] = 0.5  # Somewhat blurry
        elif laplacian_var < 200:
            components["sharpness"] = 0.8  # Acceptable
        else:
            components["sharpness"] = 1.0

        mean_brightness = float(np.mean(gray))
        if mean_brightness < 30 or mean_brightness > 220:
            components["illumination"] = 0.2  # Too dark/bright
        elif mean_brightness < 60 or mean_brightness > 200:
            components["illumination"] = 0.6
        else:
            components["illumination"] = 1.0

        brightness_std = float(np.std(gray))
        if brightness_std < 15:
            components["contrast"] = 0.3
        elif brightness_std < 30:
            components["contrast"] = 0.7
        else:
            components["contrast"] = 1.0

        return components

    def assess(self, frame: np.ndarray) -> float:
        """
        Score a frame between 0.0 (poor) and 1.0 (excellent).

        Examples
        --------
        >>> flat = np.full((64, 64), 128, dtype=np.uint8)
        >>> round(FrameQualityAssessor().assess(flat), 3)
        0.42
        """
        components = self.score_components(frame)
        total = sum(components[name] * weight for name, weight in self.weights.items())
        total = max(0.0, min(1.0, total))

        logger.debug("Frame quality assessed", total_score=total, components=components)
        return total
