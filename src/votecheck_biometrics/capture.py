"""
Capture orchestration for the VoteCheck biometric gate.

``CaptureOrchestrator`` drives one capture session end to end:

1. wait out the inter-sample delay while pulling frames into the history
2. run liveness detection on the newest frame and the history
3. extract features on the worker pool and apply the quality gate
4. record the sample and advance progress

After the last sample it runs the session-level anti-spoofing validation
and aggregates the samples into a template.

Any failure is fatal for the whole session: collected samples are
discarded and the voter has to start again. Only one session runs at a
time; starting a capture while another is active resets the old one
first. ``reset_capture`` cancels synchronously, and a superseded capture
never writes to the session again.
"""

import asyncio
from typing import Awaitable, Callable, List, Optional

import numpy as np
import structlog

from . import config
from .aggregation import EmbeddingAggregator
from .anti_spoofing import AntiSpoofingValidator
from .constants import (
    AGGREGATION_PROGRESS,
    ANTI_SPOOFING_CHECK,
    ANTI_SPOOFING_PROGRESS,
    CAPTURE_PROGRESS_SHARE,
    COMPLETED_PROGRESS,
    FRAME_INTERVAL_SECONDS,
    INTER_SAMPLE_DELAY_SECONDS,
    LIVENESS_CHECK,
    QUALITY_CHECK,
    REQUIRED_SAMPLES,
)
from .data_models import (
    BiometricSample,
    CaptureResult,
    CaptureSession,
    CaptureState,
    CheckStatus,
    SecurityCheck,
)
from .exceptions import (
    AntiSpoofingFailure,
    CaptureCancelledError,
    CaptureFailedError,
    ConfigurationError,
    LivenessFailure,
    QualityFailure,
)
from .extraction import ExtractionWorkerPool
from .frame_history import FrameHistory
from .interfaces import AccessibilityAnnouncer, VideoFrameSource
from .liveness import LivenessDetector
from .quality_assessment import QualityGate
from .security_checks import SecurityCheckLedger

# Initialize structured logger
logger = structlog.get_logger(__name__)

Sleep = Callable[[float], Awaitable[None]]


def _current_task() -> Optional[asyncio.Task]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None


class CaptureOrchestrator:
    """
    Single-flight state machine for a biometric capture session.

    States move ``IDLE -> CAPTURING -> COMPLETED | FAILED``; ``reset_capture``
    returns to ``IDLE`` from anywhere.

    Parameters
    ----------
    extraction_pool : ExtractionWorkerPool
        Worker pool wrapping the face model.
    liveness_detector : LivenessDetector, optional
        Per-sample liveness check.
    quality_gate : QualityGate, optional
        Per-sample quality threshold.
    anti_spoofing_validator : AntiSpoofingValidator, optional
        Session-level presentation-attack check.
    aggregator : EmbeddingAggregator, optional
        Folds accepted samples into a template.
    ledger : SecurityCheckLedger, optional
        Named check statuses surfaced to the UI.
    announcer : AccessibilityAnnouncer, optional
        Receives status announcements; nothing is announced when omitted.
    inter_sample_delay : float, default=INTER_SAMPLE_DELAY_SECONDS
        Delay before each sample. Cannot be lowered below the default.
    frame_interval : float, default=FRAME_INTERVAL_SECONDS
        Spacing of frames pulled into the history during the delay.
    history_size : int, default=config.FRAME_HISTORY_SIZE
        Capacity of the frame history ring buffer.
    sleep : Callable[[float], Awaitable[None]], default=asyncio.sleep
        Coroutine used to wait.

    Examples
    --------
    >>> orchestrator = CaptureOrchestrator(ExtractionWorkerPool(extractor))
    >>> result = await orchestrator.capture(camera)  # doctest: +SKIP
    >>> result.samples_count
    7
    """

    def __init__(
        self,
        extraction_pool: ExtractionWorkerPool,
        liveness_detector: Optional[LivenessDetector] = None,
        quality_gate: Optional[QualityGate] = None,
        anti_spoofing_validator: Optional[AntiSpoofingValidator] = None,
        aggregator: Optional[EmbeddingAggregator] = None,
        ledger: Optional[SecurityCheckLedger] = None,
        announcer: Optional[AccessibilityAnnouncer] = None,
        inter_sample_delay: float = INTER_SAMPLE_DELAY_SECONDS,
        frame_interval: float = FRAME_INTERVAL_SECONDS,
        history_size: Optional[int] = None,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        if inter_sample_delay < INTER_SAMPLE_DELAY_SECONDS:
            raise ConfigurationError(
                f"inter_sample_delay cannot be below {INTER_SAMPLE_DELAY_SECONDS} seconds",
                config_key="inter_sample_delay",
                config_value=str(inter_sample_delay),
            )
        if frame_interval <= 0 or frame_interval > inter_sample_delay:
            raise ConfigurationError(
                "frame_interval must be positive and no longer than inter_sample_delay",
                config_key="frame_interval",
                config_value=str(frame_interval),
            )

        self.extraction_pool = extraction_pool
        self.liveness_detector = liveness_detector or LivenessDetector()
        self.quality_gate = quality_gate or QualityGate()
        self.anti_spoofing_validator = anti_spoofing_validator or AntiSpoofingValidator()
        self.aggregator = aggregator or EmbeddingAggregator()
        self.ledger = ledger or SecurityCheckLedger()
        self.announcer = announcer
        self.inter_sample_delay = inter_sample_delay
        self.frame_interval = frame_interval
        self.history_size = history_size or config.FRAME_HISTORY_SIZE
        self._sleep = sleep

        self.session = CaptureSession(
            required_samples=REQUIRED_SAMPLES,
            frame_history=FrameHistory(self.history_size),
        )
        self._generation = 0
        self._task: Optional[asyncio.Task] = None

        logger.info(
            "CaptureOrchestrator initialized",
            required_samples=REQUIRED_SAMPLES,
            inter_sample_delay=inter_sample_delay,
            frame_interval=frame_interval,
            history_size=self.history_size,
            announcer=type(announcer).__name__ if announcer else None,
        )

    # ------------------------------------------------------------------
    # Observable state
    # ------------------------------------------------------------------
    @property
    def state(self) -> CaptureState:
        return self.session.state

    @property
    def progress(self) -> float:
        return self.session.progress

    @property
    def samples(self) -> List[BiometricSample]:
        return list(self.session.samples)

    @property
    def is_capturing(self) -> bool:
        return self.session.is_capturing

    @property
    def error(self) -> Optional[str]:
        return self.session.error

    @property
    def required_samples(self) -> int:
        return self.session.required_samples

    @property
    def security_checks(self) -> List[SecurityCheck]:
        return self.ledger.snapshot()

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------
    async def capture(self, frame_source: VideoFrameSource) -> CaptureResult:
        """
        Run a full capture session against ``frame_source``.

        The source is opened before the first frame and closed on every
        terminal transition.

        Returns
        -------
        CaptureResult
            Samples in capture order, the anti-spoofing outcome and the
            aggregated template.

        Raises
        ------
        LivenessFailure, QualityFailure, AntiSpoofingFailure, ExtractionError
            Session-fatal failures; the message is user-facing.
        CaptureCancelledError
            If ``reset_capture`` superseded this capture.
        """
        previous = self._task
        if self.session.is_capturing or (previous is not None and not previous.done()):
            logger.warning(
                "Capture requested while another is active; resetting",
                session_id=self.session.session_id,
            )
            self.reset_capture()
            if previous is not None and previous is not _current_task():
                # The superseded capture must release the device first
                await asyncio.wait({previous})

        generation = self._begin()
        session_id = self.session.session_id

        frame_source.open()
        try:
            await self._collect_samples(frame_source, generation)
            return self._finalize(generation)
        except CaptureCancelledError:
            raise
        except asyncio.CancelledError:
            if self._is_stale(generation):
                raise CaptureCancelledError(session_id) from None
            self._fail(generation, "Capture was cancelled")
            raise
        except CaptureFailedError as e:
            if self._is_stale(generation):
                raise CaptureCancelledError(session_id) from e
            self._fail(generation, e.message)
            raise
        except Exception as e:
            if self._is_stale(generation):
                raise CaptureCancelledError(session_id) from e
            self._fail(generation, getattr(e, "message", str(e)))
            raise
        finally:
            frame_source.close()
            if not self._is_stale(generation):
                self._task = None

    def reset_capture(self) -> None:
        """
        Abort any capture and return to ``IDLE``.

        Synchronous: on return the session is empty with zero progress, and
        the superseded capture can no longer change it.
        """
        self._generation += 1
        cancelled_requests = self.extraction_pool.cancel_pending()

        task, self._task = self._task, None
        if task is not None and not task.done() and task is not _current_task():
            task.cancel()

        self.session.reset()
        self.ledger.reset()

        logger.info(
            "Capture reset",
            session_id=self.session.session_id,
            cancelled_requests=cancelled_requests,
        )

    def _begin(self) -> int:
        self._generation += 1
        self.session = CaptureSession(
            required_samples=REQUIRED_SAMPLES,
            frame_history=FrameHistory(self.history_size),
        )
        self.session.state = CaptureState.CAPTURING
        self.session.is_capturing = True
        self._task = _current_task()

        self.ledger.reset()
        self.ledger.start(LIVENESS_CHECK)

        logger.info("Capture session started", session_id=self.session.session_id)
        return self._generation

    def _is_stale(self, generation: int) -> bool:
        return generation != self._generation

    def _ensure_current(self, generation: int) -> None:
        if self._is_stale(generation):
            raise CaptureCancelledError(self.session.session_id)

    # ------------------------------------------------------------------
    # Capture steps
    # ------------------------------------------------------------------
    async def _collect_samples(self, frame_source: VideoFrameSource, generation: int) -> None:
        session = self.session
        required = session.required_samples

        for index in range(1, required + 1):
            await self._pump_frames(frame_source, generation)
            frame = session.frame_history.latest

            liveness = self.liveness_detector.detect_liveness(
                frame, session.frame_history.frames()
            )
            if not liveness.is_live:
                self._mark(LIVENESS_CHECK, CheckStatus.FAILED)
                raise LivenessFailure(index, liveness.reason, session_id=session.session_id)

            if index == 1:
                self._mark(QUALITY_CHECK, CheckStatus.CHECKING)
            extraction = await self.extraction_pool.submit(frame, session.session_id)
            self._ensure_current(generation)

            if extraction.embedding is None or not self.quality_gate.accept(extraction.quality):
                self._mark(QUALITY_CHECK, CheckStatus.FAILED)
                raise QualityFailure(index, extraction.quality, session_id=session.session_id)

            session.add_sample(extraction.to_sample())
            session.advance_progress(index / required * CAPTURE_PROGRESS_SHARE)

            logger.info(
                "Capture sample accepted",
                session_id=session.session_id,
                sample_index=index,
                quality=extraction.quality,
                liveness_confidence=liveness.confidence,
                progress=session.progress,
            )
            self._announce(f"Sample {index} of {required} captured", "polite")

    async def _pump_frames(self, frame_source: VideoFrameSource, generation: int) -> None:
        ticks = max(1, round(self.inter_sample_delay / self.frame_interval))
        interval = self.inter_sample_delay / ticks

        for _ in range(ticks):
            await self._sleep(interval)
            self._ensure_current(generation)
            frame = frame_source.read_frame()
            self._ensure_current(generation)
            self.session.frame_history.append(np.asarray(frame))

    def _finalize(self, generation: int) -> CaptureResult:
        session = self.session
        self._ensure_current(generation)

        self._mark(LIVENESS_CHECK, CheckStatus.PASSED)
        self._mark(QUALITY_CHECK, CheckStatus.PASSED)

        session.advance_progress(ANTI_SPOOFING_PROGRESS)
        self._announce("Performing security validation...", "polite")
        self._mark(ANTI_SPOOFING_CHECK, CheckStatus.CHECKING)

        history = session.frame_history
        anti_spoofing = self.anti_spoofing_validator.perform_anti_spoofing_checks(
            history.latest, history.frames()
        )
        if not anti_spoofing.passed:
            self._mark(ANTI_SPOOFING_CHECK, CheckStatus.FAILED)
            raise AntiSpoofingFailure(
                anti_spoofing.score, anti_spoofing.checks, session_id=session.session_id
            )

        self._mark(ANTI_SPOOFING_CHECK, CheckStatus.PASSED)
        self._announce("Security validation passed", "polite")

        session.advance_progress(AGGREGATION_PROGRESS)
        embedding = self.aggregator.process_captures(session.samples)

        session.advance_progress(COMPLETED_PROGRESS)
        session.state = CaptureState.COMPLETED
        session.is_capturing = False
        history.clear()

        logger.info(
            "Capture session completed",
            session_id=session.session_id,
            samples=len(session.samples),
            avg_quality=embedding.avg_quality,
            anti_spoofing_score=anti_spoofing.score,
        )

        return CaptureResult(
            session_id=session.session_id,
            samples=tuple(session.samples),
            anti_spoofing=anti_spoofing,
            embedding=embedding,
        )

    def _fail(self, generation: int, message: str) -> None:
        if self._is_stale(generation):
            return

        session = self.session
        session.samples = []
        session.progress = 0.0
        session.is_capturing = False
        session.state = CaptureState.FAILED
        session.error = message
        session.frame_history.clear()
        self.ledger.fail_in_progress()

        logger.warning("Capture session failed", session_id=session.session_id, error=message)
        self._announce(message, "assertive")

    def _mark(self, name: str, status: CheckStatus) -> None:
        if name in self.ledger:
            self.ledger.update(name, status)

    def _announce(self, text: str, priority: str) -> None:
        if self.announcer is None:
            return
        try:
            self.announcer.announce(text, priority)
        except Exception as e:
            # Announcements are fire-and-forget; the capture carries on
            logger.warning(
                "Accessibility announcement failed",
                error=str(e),
                error_type=type(e).__name__,
            )
