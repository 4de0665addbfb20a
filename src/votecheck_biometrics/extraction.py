"""
Embedding extraction for the VoteCheck biometric gate.

Extraction is the heaviest step of a capture, so it runs off the capture
coroutine on a bounded thread pool. Every request carries a correlation id
that must come back on its response, and every request is bounded by a
timeout. A timeout is fatal for the capture session; it is never retried.

The module also ships ``PixelSamplingExtractor``, a model-free reference
extractor used by the CLI and for local testing. Production deployments
plug their face model in through the ``EmbeddingExtractor`` protocol.
"""

import asyncio
import threading
from collections.abc import Mapping
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from typing import Dict, Optional

import cv2
import numpy as np
import structlog

from . import config
from .constants import EMBEDDING_DIM, EXTRACTION_INPUT_SIZE
from .data_models import ExtractionResult
from .exceptions import ExtractionError, ExtractionTimeout
from .interfaces import EmbeddingExtractor
from .quality_assessment import FrameQualityAssessor, to_grayscale
from .utils import generate_correlation_id

# Initialize structured logger
logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class ExtractionRequest:
    correlation_id: str
    frame: np.ndarray


@dataclass(frozen=True)
class ExtractionResponse:
    correlation_id: str
    result: ExtractionResult


class ExtractionWorkerPool:
    """
    Bounded worker pool running an ``EmbeddingExtractor``.

    Parameters
    ----------
    extractor : EmbeddingExtractor
        The face model boundary.
    max_workers : int, default=config.EXTRACTION_WORKERS
        Number of worker threads.
    timeout_seconds : float, default=config.EXTRACTION_TIMEOUT_SECONDS
        Upper bound for one request.

    Examples
    --------
    >>> with ExtractionWorkerPool(PixelSamplingExtractor()) as pool:
    ...     result = asyncio.run(pool.submit(frame))  # doctest: +SKIP
    """

    def __init__(
        self,
        extractor: EmbeddingExtractor,
        max_workers: Optional[int] = None,
        timeout_seconds: Optional[float] = None,
    ) -> None:
        self.extractor = extractor
        self.max_workers = max_workers or config.EXTRACTION_WORKERS
        self.timeout_seconds = (
            config.EXTRACTION_TIMEOUT_SECONDS if timeout_seconds is None else timeout_seconds
        )
        if self.max_workers < 1:
            raise ValueError("max_workers must be at least 1")
        if self.timeout_seconds <= 0:
            raise ValueError("timeout_seconds must be positive")

        self._executor = ThreadPoolExecutor(
            max_workers=self.max_workers, thread_name_prefix="votecheck-extract"
        )
        self._pending: Dict[str, Future] = {}
        self._lock = threading.Lock()

        logger.info(
            "ExtractionWorkerPool initialized",
            max_workers=self.max_workers,
            timeout_seconds=self.timeout_seconds,
            extractor=type(extractor).__name__,
        )

    def _handle(self, request: ExtractionRequest) -> ExtractionResponse:
        result = self.extractor.extract(request.frame)
        if isinstance(result, Mapping):
            result = ExtractionResult(**result)
        if not isinstance(result, ExtractionResult):
            raise TypeError(
                f"Extractor returned {type(result).__name__}, expected ExtractionResult"
            )
        return ExtractionResponse(correlation_id=request.correlation_id, result=result)

    async def submit(
        self, frame: np.ndarray, session_id: Optional[str] = None
    ) -> ExtractionResult:
        """
        Extract features from ``frame`` on the pool and await the response.

        Raises
        ------
        ExtractionTimeout
            If the request does not complete within ``timeout_seconds``.
        ExtractionError
            If the extractor fails or answers with a foreign correlation id.
        """
        request = ExtractionRequest(
            correlation_id=generate_correlation_id(), frame=np.array(frame, copy=True)
        )
        future = self._executor.submit(self._handle, request)
        with self._lock:
            self._pending[request.correlation_id] = future

        logger.debug(
            "Extraction request submitted",
            correlation_id=request.correlation_id,
            session_id=session_id,
        )

        try:
            response = await asyncio.wait_for(
                asyncio.wrap_future(future), timeout=self.timeout_seconds
            )
        except asyncio.TimeoutError:
            future.cancel()
            logger.error(
                "Extraction request timed out",
                correlation_id=request.correlation_id,
                timeout_seconds=self.timeout_seconds,
                session_id=session_id,
            )
            raise ExtractionTimeout(
                self.timeout_seconds,
                correlation_id=request.correlation_id,
                session_id=session_id,
            )
        except asyncio.CancelledError:
            future.cancel()
            raise
        except ExtractionError:
            raise
        except Exception as e:
            logger.error(
                "Extraction request failed",
                correlation_id=request.correlation_id,
                error=str(e),
                error_type=type(e).__name__,
                session_id=session_id,
            )
            raise ExtractionError(
                f"Face feature extraction failed: {e}",
                correlation_id=request.correlation_id,
                session_id=session_id,
            ) from e
        finally:
            with self._lock:
                self._pending.pop(request.correlation_id, None)

        if response.correlation_id != request.correlation_id:
            raise ExtractionError(
                "Extraction response does not match its request",
                correlation_id=request.correlation_id,
                session_id=session_id,
            )

        return response.result

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    def cancel_pending(self) -> int:
        """Cancel every outstanding request; returns how many were pending."""
        with self._lock:
            futures = list(self._pending.values())
            self._pending.clear()

        for future in futures:
            future.cancel()

        if futures:
            logger.info("Pending extraction requests cancelled", count=len(futures))
        return len(futures)

    def shutdown(self, wait: bool = True) -> None:
        self.cancel_pending()
        self._executor.shutdown(wait=wait, cancel_futures=True)

    def __enter__(self) -> "ExtractionWorkerPool":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.shutdown()


class PixelSamplingExtractor:
    """
    Model-free reference extractor.

    The frame is converted to grayscale, resized to a fixed square and
    scaled to [0, 1]; the embedding is an evenly strided sample of the
    flattened pixels. Quality comes from ``FrameQualityAssessor``.

    Parameters
    ----------
    embedding_dim : int, default=EMBEDDING_DIM
        Length of the produced embedding.
    input_size : int, default=EXTRACTION_INPUT_SIZE
        Side length the frame is resized to.
    """

    def __init__(
        self,
        embedding_dim: int = EMBEDDING_DIM,
        input_size: int = EXTRACTION_INPUT_SIZE,
        quality_assessor: Optional[FrameQualityAssessor] = None,
    ) -> None:
        if embedding_dim < 1 or embedding_dim > input_size * input_size:
            raise ValueError("embedding_dim must be between 1 and input_size**2")

        self.embedding_dim = embedding_dim
        self.input_size = input_size
        self.quality_assessor = quality_assessor or FrameQualityAssessor()

    def extract(self, frame: np.ndarray) -> ExtractionResult:
        gray = to_grayscale(frame)
        resized = cv2.resize(
            gray, (self.input_size, self.input_size), interpolation=cv2.INTER_NEAREST
        )
        values = resized.astype(np.float64).ravel() / 255.0

        step = values.size // self.embedding_dim
        embedding = values[: step * self.embedding_dim : step]

        return ExtractionResult(
            embedding=embedding, quality=self.quality_assessor.assess(frame)
        )
