"""
Ports to the collaborators the capture pipeline depends on.

Camera access, the face model, accessibility output and template
persistence all live outside this package. The pipeline talks to them
only through these protocols.
"""

from __future__ import annotations

from typing import Literal, Protocol

import numpy as np

from .data_models import EnrolledTemplate, ExtractionResult

AnnouncementPriority = Literal["polite", "assertive"]


class VideoFrameSource(Protocol):
    """Exclusively owned video device yielding the current frame on demand."""

    def open(self) -> None:
        ...

    def read_frame(self) -> np.ndarray:
        """Return the current frame as an HxW or HxWxC uint8 array."""
        ...

    def close(self) -> None:
        ...


class EmbeddingExtractor(Protocol):
    """The face model boundary."""

    def extract(self, frame: np.ndarray) -> ExtractionResult:
        ...


class AccessibilityAnnouncer(Protocol):
    """Fire-and-forget status announcements for assistive technology."""

    def announce(self, text: str, priority: AnnouncementPriority = "polite") -> None:
        ...


class EnrolledTemplateStore(Protocol):
    """External persistence of enrolled templates."""

    def fetch(self, user_id: str) -> EnrolledTemplate:
        """Return the template for ``user_id`` or raise ``TemplateNotFoundError``."""
        ...

    def store(self, user_id: str, template: EnrolledTemplate) -> None:
        ...
