"""
Per-sample liveness detection for the VoteCheck biometric gate.

A static photo held in front of the camera produces near-identical frames;
a live subject produces small, continuous movement. The detector measures
grayscale inter-frame differences over the bounded frame history and
combines two signals:

- motion: the mean normalized difference between consecutive frames
- micro-movement: the fraction of consecutive frame pairs that moved at all

A single jolt (a photo being swapped in) gives motion but little
micro-movement; a still photo gives neither.
"""

from typing import Dict, Iterable, List, Optional

import numpy as np
import structlog

from .constants import (
    LIVENESS_THRESHOLD,
    LIVENESS_WEIGHTS,
    MIN_LIVENESS_FRAMES,
    MOTION_SATURATION,
    MOTION_THRESHOLD,
)
from .data_models import LivenessResult
from .exceptions import FrameFormatError
from .quality_assessment import to_grayscale

# Initialize structured logger
logger = structlog.get_logger(__name__)


def frame_differences(frames: List[np.ndarray]) -> np.ndarray:
    """
    Mean absolute grayscale difference of each consecutive frame pair,
    normalized to [0, 1].

    Raises
    ------
    FrameFormatError
        If the frames do not share one resolution.
    """
    grays = [to_grayscale(frame).astype(np.int16) for frame in frames]

    shapes = {gray.shape for gray in grays}
    if len(shapes) > 1:
        raise FrameFormatError(
            "Frame history contains frames of different resolutions",
            frame_shape=tuple(sorted(shapes)),
            processing_stage="liveness",
        )

    return np.array(
        [
            float(np.mean(np.abs(current - previous))) / 255.0
            for previous, current in zip(grays, grays[1:])
        ]
    )


class LivenessDetector:
    """
    Motion-based liveness detector over a bounded frame window.

    Parameters
    ----------
    min_frames : int, default=MIN_LIVENESS_FRAMES
        Frames required before a judgement is made.
    motion_threshold : float, default=MOTION_THRESHOLD
        Normalized difference above which a frame pair counts as moving.
    motion_saturation : float, default=MOTION_SATURATION
        Motion level that earns the full motion component.
    liveness_threshold : float, default=LIVENESS_THRESHOLD
        Combined score required to judge the subject live.
    weights : Dict[str, float], optional
        Weights for the ``motion`` and ``micro_movement`` components.

    Examples
    --------
    >>> detector = LivenessDetector()
    >>> still = [np.zeros((8, 8), dtype=np.uint8)] * 5
    >>> detector.detect_liveness(still[-1], still).is_live
    False
    """

    def __init__(
        self,
        min_frames: int = MIN_LIVENESS_FRAMES,
        motion_threshold: float = MOTION_THRESHOLD,
        motion_saturation: float = MOTION_SATURATION,
        liveness_threshold: float = LIVENESS_THRESHOLD,
        weights: Optional[Dict[str, float]] = None,
    ) -> None:
        if min_frames < 2:
            raise ValueError(f"min_frames must be at least 2, got {min_frames}")
        if motion_saturation <= 0:
            raise ValueError("motion_saturation must be positive")

        self.min_frames = min_frames
        self.motion_threshold = motion_threshold
        self.motion_saturation = motion_saturation
        self.liveness_threshold = liveness_threshold
        self.weights = dict(weights or LIVENESS_WEIGHTS)

        logger.info(
            "LivenessDetector initialized",
            min_frames=min_frames,
            motion_threshold=motion_threshold,
            liveness_threshold=liveness_threshold,
        )

    def detect_liveness(
        self, frame: np.ndarray, frame_history: Iterable[np.ndarray]
    ) -> LivenessResult:
        """
        Judge whether ``frame`` shows a live subject given the recent history.

        Parameters
        ----------
        frame : np.ndarray
            Current frame. Appended to the window unless it is already the
            newest history entry.
        frame_history : Iterable[np.ndarray]
            Recent frames, oldest first.

        Returns
        -------
        LivenessResult
            Decision, advisory confidence and a human-readable reason.
        """
        frames = list(frame_history)
        if not frames or frames[-1] is not frame:
            frames.append(frame)

        if len(frames) < self.min_frames:
            logger.debug("Not enough frames for liveness", frames=len(frames))
            return LivenessResult(
                is_live=False,
                confidence=0.0,
                reason="Insufficient frames for liveness detection",
            )

        diffs = frame_differences(frames)
        motion_score = float(np.mean(diffs))
        micro_movement = float(np.mean(diffs >= self.motion_threshold))

        motion_component = min(motion_score / self.motion_saturation, 1.0)
        score = (
            self.weights["motion"] * motion_component
            + self.weights["micro_movement"] * micro_movement
        )
        is_live = motion_score >= self.motion_threshold and score >= self.liveness_threshold

        if is_live:
            reason = "Natural movement detected"
        elif motion_score < self.motion_threshold:
            reason = "No significant movement detected"
        else:
            reason = "Insufficient liveness indicators"

        logger.debug(
            "Liveness evaluated",
            frames=len(frames),
            motion_score=motion_score,
            micro_movement=micro_movement,
            score=score,
            is_live=is_live,
        )

        return LivenessResult(is_live=is_live, confidence=min(score, 1.0), reason=reason)
