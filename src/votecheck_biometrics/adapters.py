"""
Reference adapters for running the capture pipeline without a browser.

``DirectoryFrameSource`` replays still images from a directory as if they
were a live camera stream, and ``LoggingAnnouncer`` routes accessibility
announcements to the structured log. Both are used by the command-line
interface.
"""

from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple

import cv2
import numpy as np
import structlog

from .constants import FRAME_EXTENSIONS
from .exceptions import ConfigurationError, FrameFormatError

# Initialize structured logger
logger = structlog.get_logger(__name__)


def list_frame_files(directory: Path, extensions: Sequence[str] = FRAME_EXTENSIONS) -> List[Path]:
    """Image files directly under ``directory``, sorted by name."""
    directory = Path(directory)
    if not directory.is_dir():
        return []

    suffixes = {ext.lower() for ext in extensions}
    return sorted(p for p in directory.iterdir() if p.is_file() and p.suffix.lower() in suffixes)


def load_frame(path: Path) -> np.ndarray:
    """
    Decode an image file into an RGB uint8 array.

    Raises
    ------
    FrameFormatError
        If the file cannot be read or decoded.
    """
    try:
        data = np.frombuffer(Path(path).read_bytes(), np.uint8)
    except OSError as e:
        raise FrameFormatError(f"Cannot read frame {path}: {e}", processing_stage="frame_source")

    image = cv2.imdecode(data, cv2.IMREAD_COLOR)
    if image is None:
        raise FrameFormatError(f"Cannot decode frame {path}", processing_stage="frame_source")

    return cv2.cvtColor(image, cv2.COLOR_BGR2RGB)


class DirectoryFrameSource:
    """
    Video frame source replaying the images of a directory.

    Frames are returned in file name order and the sequence starts over
    when exhausted. Decoded frames are cached while the source is open.

    Parameters
    ----------
    directory : Path
        Directory holding the frame images.
    extensions : Sequence[str], default=FRAME_EXTENSIONS
        Accepted file suffixes.
    """

    def __init__(self, directory: Path, extensions: Sequence[str] = FRAME_EXTENSIONS) -> None:
        self.directory = Path(directory)
        self.extensions = tuple(extensions)
        self._files: List[Path] = []
        self._cache: Dict[Path, np.ndarray] = {}
        self._position = 0
        self._is_open = False

    @property
    def is_open(self) -> bool:
        return self._is_open

    def open(self) -> None:
        files = list_frame_files(self.directory, self.extensions)
        if not files:
            raise ConfigurationError(
                f"No frame images found in {self.directory}",
                config_key="frames_dir",
                config_value=str(self.directory),
            )

        self._files = files
        self._cache.clear()
        self._position = 0
        self._is_open = True
        logger.info("Frame source opened", directory=str(self.directory), frames=len(files))

    def read_frame(self) -> np.ndarray:
        if not self._is_open:
            raise RuntimeError("Frame source is not open")

        path = self._files[self._position % len(self._files)]
        self._position += 1

        if path not in self._cache:
            self._cache[path] = load_frame(path)
        return self._cache[path]

    def close(self) -> None:
        if self._is_open:
            logger.info("Frame source closed", directory=str(self.directory), frames_read=self._position)
        self._is_open = False
        self._files = []
        self._cache.clear()


class LoggingAnnouncer:
    """
    Accessibility announcer that writes announcements to the log.

    Polite announcements are logged at INFO, assertive ones at WARNING.
    The most recent announcements are kept for inspection.
    """

    def __init__(self, keep: Optional[int] = 50) -> None:
        self.keep = keep
        self.announcements: List[Tuple[str, str]] = []

    def announce(self, text: str, priority: str = "polite") -> None:
        if priority not in ("polite", "assertive"):
            raise ValueError(f"Unknown announcement priority '{priority}'")

        self.announcements.append((text, priority))
        if self.keep is not None and len(self.announcements) > self.keep:
            del self.announcements[: len(self.announcements) - self.keep]

        if priority == "assertive":
            logger.warning("Announcement", text=text, priority=priority)
        else:
            logger.info("Announcement", text=text, priority=priority)
