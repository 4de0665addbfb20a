"""
Security check ledger for the VoteCheck biometric gate.

The ledger keeps the ordered list of named checks the UI shows while a
voter is being verified. Within a session a check only moves forward:
pending, then checking, then passed or failed. Starting a new session
resets every check to pending.
"""

from typing import Dict, Iterable, List, Tuple

import structlog

from .constants import DEFAULT_SECURITY_CHECKS
from .data_models import CheckStatus, SecurityCheck
from .exceptions import InvalidStatusTransitionError, SecurityCheckError

# Initialize structured logger
logger = structlog.get_logger(__name__)


class SecurityCheckLedger:
    """
    Ordered, forward-only record of named security check statuses.

    Parameters
    ----------
    checks : Iterable[Tuple[str, str]], default=DEFAULT_SECURITY_CHECKS
        ``(name, description)`` pairs in display order.

    Examples
    --------
    >>> ledger = SecurityCheckLedger()
    >>> ledger.start("Liveness Detection")
    >>> ledger.status("Liveness Detection").value
    'checking'
    """

    def __init__(self, checks: Iterable[Tuple[str, str]] = DEFAULT_SECURITY_CHECKS) -> None:
        self._checks: Dict[str, SecurityCheck] = {}
        for name, description in checks:
            if name in self._checks:
                raise SecurityCheckError(f"Duplicate security check '{name}'", check_name=name)
            self._checks[name] = SecurityCheck(name=name, description=description)

    def _get(self, name: str) -> SecurityCheck:
        try:
            return self._checks[name]
        except KeyError:
            raise SecurityCheckError(f"Unknown security check '{name}'", check_name=name)

    def update(self, name: str, status: CheckStatus) -> None:
        """
        Move a check to ``status``.

        Setting the current status again is a no-op.

        Raises
        ------
        InvalidStatusTransitionError
            If the move would not advance the check (for example from
            passed back to pending, or from passed to failed).
        """
        status = CheckStatus(status)
        check = self._get(name)
        if check.status == status:
            return

        if status.rank <= check.status.rank:
            raise InvalidStatusTransitionError(name, check.status.value, status.value)

        logger.debug(
            "Security check updated",
            check=name,
            previous=check.status.value,
            status=status.value,
        )
        check.status = status

    def start(self, name: str) -> None:
        self.update(name, CheckStatus.CHECKING)

    def mark_passed(self, name: str) -> None:
        self.update(name, CheckStatus.PASSED)

    def mark_failed(self, name: str) -> None:
        self.update(name, CheckStatus.FAILED)

    def fail_in_progress(self) -> List[str]:
        """Mark every check still ``checking`` as failed; returns their names."""
        failed = [c.name for c in self._checks.values() if c.status == CheckStatus.CHECKING]
        for name in failed:
            self.mark_failed(name)
        return failed

    def reset(self) -> None:
        """Return every check to pending for a new session."""
        for check in self._checks.values():
            check.status = CheckStatus.PENDING

    def status(self, name: str) -> CheckStatus:
        return self._get(name).status

    def snapshot(self) -> List[SecurityCheck]:
        """Copies of all checks in display order."""
        return [SecurityCheck(c.name, c.description, c.status) for c in self._checks.values()]

    @property
    def all_passed(self) -> bool:
        return all(c.status == CheckStatus.PASSED for c in self._checks.values())

    def to_list(self) -> List[Dict[str, str]]:
        return [c.to_dict() for c in self._checks.values()]

    def __contains__(self, name: object) -> bool:
        return name in self._checks

    def __len__(self) -> int:
        return len(self._checks)
