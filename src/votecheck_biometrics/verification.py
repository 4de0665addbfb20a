"""
Registration and verification flows for the VoteCheck biometric gate.

Registration runs a full capture session and stores the aggregated
template for the voter. Verification loads the voter's template, runs a
fresh capture, and compares the two with the similarity matcher. Both flows
share the orchestrator's security check ledger, so the UI sees one ordered
list of checks from the first frame to the match decision.
"""

from typing import Optional

import structlog

from . import config
from .capture import CaptureOrchestrator
from .constants import FACE_MATCHING_CHECK
from .data_models import EnrolledTemplate, FaceComparisonResult, FaceEmbeddingResult
from .exceptions import CaptureCancelledError, CaptureInProgressError
from .interfaces import EnrolledTemplateStore, VideoFrameSource
from .matching import SimilarityMatcher

# Initialize structured logger
logger = structlog.get_logger(__name__)


class BiometricVerificationService:
    """
    Voter registration and verification on top of a capture orchestrator.

    Parameters
    ----------
    orchestrator : CaptureOrchestrator
        Runs the capture sessions.
    template_store : EnrolledTemplateStore
        Persistence for enrolled templates.
    matcher : SimilarityMatcher, optional
        Decision rule for verification. Defaults to the configured threshold.
    """

    def __init__(
        self,
        orchestrator: CaptureOrchestrator,
        template_store: EnrolledTemplateStore,
        matcher: Optional[SimilarityMatcher] = None,
    ) -> None:
        self.orchestrator = orchestrator
        self.template_store = template_store
        self.matcher = matcher or SimilarityMatcher(threshold=config.SIMILARITY_THRESHOLD)
        self._active_flow: Optional[str] = None

    @property
    def ledger(self):
        return self.orchestrator.ledger

    async def register(self, user_id: str, frame_source: VideoFrameSource) -> FaceEmbeddingResult:
        """
        Capture a voter's face and store the aggregated template.

        Raises
        ------
        CaptureFailedError
            If the capture session fails; nothing is stored.
        CaptureInProgressError
            If another registration or verification is running.
        """
        self._enter("register")
        try:
            logger.info("Registration started", user_id=user_id)
            result = await self.orchestrator.capture(frame_source)

            template = EnrolledTemplate.from_embedding_result(user_id, result.embedding)
            self.template_store.store(user_id, template)

            logger.info(
                "Registration completed",
                user_id=user_id,
                session_id=result.session_id,
                samples=result.samples_count,
                avg_quality=result.embedding.avg_quality,
            )
            return result.embedding
        except CaptureCancelledError:
            logger.info("Registration cancelled", user_id=user_id)
            raise
        except Exception:
            self.ledger.fail_in_progress()
            logger.warning("Registration failed", user_id=user_id)
            raise
        finally:
            self._active_flow = None

    async def verify(self, user_id: str, frame_source: VideoFrameSource) -> FaceComparisonResult:
        """
        Verify a voter against their enrolled template.

        A non-matching face is a normal outcome: the result is returned with
        ``is_match`` False and the Face Matching check marked failed.

        Raises
        ------
        TemplateNotFoundError
            If the voter has no enrolled template. No capture is started.
        CaptureFailedError
            If the capture session fails.
        CaptureInProgressError
            If another registration or verification is running.
        """
        self._enter("verify")
        try:
            logger.info("Verification started", user_id=user_id)
            template = self.template_store.fetch(user_id)

            result = await self.orchestrator.capture(frame_source)

            self.ledger.start(FACE_MATCHING_CHECK)
            comparison = self.matcher.compare(
                result.embedding.avg_embedding,
                template.embedding,
                probe_landmarks=result.embedding.avg_landmarks,
                enrolled_landmarks=template.landmarks,
            )
            if comparison.is_match:
                self.ledger.mark_passed(FACE_MATCHING_CHECK)
            else:
                self.ledger.mark_failed(FACE_MATCHING_CHECK)

            logger.info(
                "Verification completed",
                user_id=user_id,
                session_id=result.session_id,
                similarity=comparison.similarity,
                confidence=comparison.confidence,
                is_match=comparison.is_match,
            )
            return comparison
        except CaptureCancelledError:
            logger.info("Verification cancelled", user_id=user_id)
            raise
        except Exception:
            self.ledger.fail_in_progress()
            logger.warning("Verification failed", user_id=user_id)
            raise
        finally:
            self._active_flow = None

    def _enter(self, flow: str) -> None:
        if self._active_flow is not None:
            raise CaptureInProgressError(
                f"Cannot start {flow} while {self._active_flow} is running"
            )
        self._active_flow = flow
