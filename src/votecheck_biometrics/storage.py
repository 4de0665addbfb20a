"""
Enrolled template persistence for the VoteCheck biometric gate.

Two ``EnrolledTemplateStore`` implementations are provided: an in-memory
store for tests and short-lived processes, and a JSON file store used by
the command-line interface. The JSON layout is a single object keyed by
user id, each value being ``EnrolledTemplate.to_dict()``.
"""

import json
import threading
from pathlib import Path
from typing import Dict, List, Optional

import structlog

from . import config
from .data_models import EnrolledTemplate
from .exceptions import InvalidSampleError, TemplateNotFoundError, TemplateStoreError

# Initialize structured logger
logger = structlog.get_logger(__name__)


def _check_user(user_id: str, template: EnrolledTemplate) -> None:
    if template.user_id != user_id:
        raise TemplateStoreError(
            f"Template belongs to '{template.user_id}', not '{user_id}'",
            user_id=user_id,
        )


class InMemoryTemplateStore:
    """Template store backed by a dictionary."""

    def __init__(self) -> None:
        self._templates: Dict[str, EnrolledTemplate] = {}
        self._lock = threading.Lock()

    def fetch(self, user_id: str) -> EnrolledTemplate:
        with self._lock:
            try:
                return self._templates[user_id]
            except KeyError:
                raise TemplateNotFoundError(user_id)

    def store(self, user_id: str, template: EnrolledTemplate) -> None:
        _check_user(user_id, template)
        with self._lock:
            self._templates[user_id] = template
        logger.debug("Template stored", user_id=user_id, store="memory")

    def user_ids(self) -> List[str]:
        with self._lock:
            return sorted(self._templates)

    def __contains__(self, user_id: object) -> bool:
        with self._lock:
            return user_id in self._templates

    def __len__(self) -> int:
        with self._lock:
            return len(self._templates)


class JsonTemplateStore:
    """
    Template store persisted as a JSON file.

    Writes go to a temporary file that then replaces the store file, so an
    interrupted write leaves the previous contents intact.

    Parameters
    ----------
    path : Path, default=config.TEMPLATE_STORE_PATH
        Location of the JSON file. Parent directories are created on write.

    Examples
    --------
    >>> store = JsonTemplateStore(Path("./data/templates.json"))
    >>> store.store("voter-1", template)  # doctest: +SKIP
    >>> store.fetch("voter-1").samples_count
    7
    """

    def __init__(self, path: Optional[Path] = None) -> None:
        self.path = Path(path) if path is not None else config.TEMPLATE_STORE_PATH
        self._lock = threading.Lock()

    def fetch(self, user_id: str) -> EnrolledTemplate:
        with self._lock:
            data = self._load()

        if user_id not in data:
            raise TemplateNotFoundError(user_id)

        try:
            return EnrolledTemplate.from_dict(data[user_id])
        except (KeyError, TypeError, ValueError, InvalidSampleError) as e:
            raise TemplateStoreError(
                f"Stored template is corrupted: {e}", user_id=user_id
            ) from e

    def store(self, user_id: str, template: EnrolledTemplate) -> None:
        _check_user(user_id, template)
        with self._lock:
            data = self._load()
            data[user_id] = template.to_dict()
            self._save(data)

        logger.info("Template stored", user_id=user_id, path=str(self.path))

    def user_ids(self) -> List[str]:
        with self._lock:
            return sorted(self._load())

    def _load(self) -> Dict[str, dict]:
        if not self.path.exists():
            return {}

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise TemplateStoreError(f"Cannot read template store {self.path}: {e}") from e

        if not isinstance(data, dict):
            raise TemplateStoreError(f"Template store {self.path} must hold a JSON object")
        return data

    def _save(self, data: Dict[str, dict]) -> None:
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2, ensure_ascii=False)
            tmp_path.replace(self.path)
        except OSError as e:
            raise TemplateStoreError(f"Cannot write template store {self.path}: {e}") from e
