"""
Bounded frame history for a capture session.

The history is a ring buffer of the most recent raw frames. It belongs to
one capture session and is cleared whenever that session is reset.
"""

from collections import deque
from typing import Deque, Iterator, List

import numpy as np

from .constants import FRAME_HISTORY_SIZE
from .exceptions import FrameFormatError


class FrameHistory:
    """
    Ring buffer of recent video frames, overwritten oldest-first.

    Parameters
    ----------
    capacity : int, default=FRAME_HISTORY_SIZE
        Maximum number of frames retained.

    Examples
    --------
    >>> history = FrameHistory(capacity=3)
    >>> for _ in range(5):
    ...     history.append(np.zeros((4, 4), dtype=np.uint8))
    >>> len(history)
    3
    """

    def __init__(self, capacity: int = FRAME_HISTORY_SIZE) -> None:
        if capacity < 1:
            raise ValueError(f"capacity must be positive, got {capacity}")

        self.capacity = capacity
        self._frames: Deque[np.ndarray] = deque(maxlen=capacity)

    def append(self, frame: np.ndarray) -> None:
        """
        Add a frame, evicting the oldest one when full.

        Raises
        ------
        FrameFormatError
            If the frame is not a 2-D (grayscale) or 3-D (color) array.
        """
        if not isinstance(frame, np.ndarray) or frame.ndim not in (2, 3) or frame.size == 0:
            raise FrameFormatError(
                "Frame must be a non-empty 2D or 3D numpy array",
                frame_shape=getattr(frame, "shape", ()),
            )
        self._frames.append(frame)

    def clear(self) -> None:
        self._frames.clear()

    @property
    def latest(self) -> np.ndarray:
        """Most recently appended frame."""
        if not self._frames:
            raise IndexError("Frame history is empty")
        return self._frames[-1]

    @property
    def is_full(self) -> bool:
        return len(self._frames) == self.capacity

    def frames(self) -> List[np.ndarray]:
        """Snapshot of the buffered frames, oldest first."""
        return list(self._frames)

    def __len__(self) -> int:
        return len(self._frames)

    def __iter__(self) -> Iterator[np.ndarray]:
        return iter(list(self._frames))

    def __repr__(self) -> str:
        return f"FrameHistory(capacity={self.capacity}, frames={len(self._frames)})"
