import threading
from typing import List, Optional, Sequence

import numpy as np
import pytest

from votecheck_biometrics.data_models import ExtractionResult
from votecheck_biometrics.extraction import ExtractionWorkerPool

EMBEDDING = np.linspace(0.1, 1.0, 128)


def noise_frame(rng: np.random.Generator, size: int = 64) -> np.ndarray:
    return rng.integers(0, 256, size=(size, size, 3), dtype=np.uint8)


class NoiseFrameSource:
    """Camera stand-in producing a fresh random frame on every read."""

    def __init__(self, seed: int = 0, size: int = 64) -> None:
        self.rng = np.random.default_rng(seed)
        self.size = size
        self.open_calls = 0
        self.close_calls = 0
        self.reads = 0

    @property
    def is_open(self) -> bool:
        return self.open_calls > self.close_calls

    def open(self) -> None:
        self.open_calls += 1

    def read_frame(self) -> np.ndarray:
        self.reads += 1
        return noise_frame(self.rng, self.size)

    def close(self) -> None:
        self.close_calls += 1


class CyclingFrameSource(NoiseFrameSource):
    """Camera stand-in replaying a fixed list of frames."""

    def __init__(self, frames: Sequence[np.ndarray]) -> None:
        super().__init__()
        self.frames = list(frames)

    def read_frame(self) -> np.ndarray:
        frame = self.frames[self.reads % len(self.frames)]
        self.reads += 1
        return frame


class FakeExtractor:
    """Extractor returning a fixed embedding with scripted qualities."""

    def __init__(
        self,
        qualities: Sequence[float] = (0.9,),
        embedding: Optional[np.ndarray] = None,
        landmarks: Optional[np.ndarray] = None,
        missing_face_at: Optional[int] = None,
    ) -> None:
        self.qualities = list(qualities)
        self.embedding = EMBEDDING if embedding is None else embedding
        self.landmarks = landmarks
        self.missing_face_at = missing_face_at
        self.calls = 0
        self._lock = threading.Lock()

    def extract(self, frame: np.ndarray) -> ExtractionResult:
        with self._lock:
            self.calls += 1
            call = self.calls

        quality = self.qualities[min(call, len(self.qualities)) - 1]
        if self.missing_face_at == call:
            return ExtractionResult(embedding=None, quality=quality)
        return ExtractionResult(
            embedding=self.embedding, quality=quality, landmarks=self.landmarks
        )


class RecordingAnnouncer:
    def __init__(self) -> None:
        self.announcements: List[tuple] = []

    def announce(self, text: str, priority: str = "polite") -> None:
        self.announcements.append((text, priority))


class RecordingSleep:
    """Async sleep replacement that records delays without waiting."""

    def __init__(self, on_call=None) -> None:
        self.delays: List[float] = []
        self.on_call = on_call

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        if self.on_call is not None:
            self.on_call(len(self.delays))


@pytest.fixture
def rng():
    return np.random.default_rng(1234)


@pytest.fixture
def noise_frames(rng):
    return [noise_frame(rng) for _ in range(10)]


@pytest.fixture
def extractor():
    return FakeExtractor()


@pytest.fixture
def pool(extractor):
    pool = ExtractionWorkerPool(extractor, max_workers=2, timeout_seconds=5.0)
    yield pool
    pool.shutdown()


@pytest.fixture
def announcer():
    return RecordingAnnouncer()


@pytest.fixture
def sleep():
    return RecordingSleep()
