import pytest

from votecheck_biometrics.constants import (
    ANTI_SPOOFING_CHECK,
    FACE_MATCHING_CHECK,
    LIVENESS_CHECK,
    QUALITY_CHECK,
)
from votecheck_biometrics.data_models import CheckStatus
from votecheck_biometrics.exceptions import InvalidStatusTransitionError, SecurityCheckError
from votecheck_biometrics.security_checks import SecurityCheckLedger


@pytest.fixture
def ledger():
    return SecurityCheckLedger()


def test_default_checks_in_display_order(ledger):
    assert [check.name for check in ledger.snapshot()] == [
        LIVENESS_CHECK,
        ANTI_SPOOFING_CHECK,
        QUALITY_CHECK,
        FACE_MATCHING_CHECK,
    ]
    assert all(check.status == CheckStatus.PENDING for check in ledger.snapshot())
    assert ledger.to_list()[0] == {
        "name": LIVENESS_CHECK,
        "status": "pending",
        "description": "Verifying live human presence",
    }


def test_forward_transitions(ledger):
    ledger.start(LIVENESS_CHECK)
    ledger.mark_passed(LIVENESS_CHECK)
    ledger.mark_failed(QUALITY_CHECK)

    assert ledger.status(LIVENESS_CHECK) == CheckStatus.PASSED
    assert ledger.status(QUALITY_CHECK) == CheckStatus.FAILED


def test_repeating_a_status_is_noop(ledger):
    ledger.start(LIVENESS_CHECK)
    ledger.start(LIVENESS_CHECK)

    assert ledger.status(LIVENESS_CHECK) == CheckStatus.CHECKING


@pytest.mark.parametrize(
    "first, second",
    [
        (CheckStatus.PASSED, CheckStatus.PENDING),
        (CheckStatus.PASSED, CheckStatus.FAILED),
        (CheckStatus.FAILED, CheckStatus.PASSED),
        (CheckStatus.CHECKING, CheckStatus.PENDING),
    ],
)
def test_backward_transitions_rejected(ledger, first, second):
    ledger.update(LIVENESS_CHECK, first)

    with pytest.raises(InvalidStatusTransitionError):
        ledger.update(LIVENESS_CHECK, second)
    assert ledger.status(LIVENESS_CHECK) == first


def test_unknown_check(ledger):
    with pytest.raises(SecurityCheckError):
        ledger.start("Fingerprint")


def test_fail_in_progress(ledger):
    ledger.start(LIVENESS_CHECK)
    ledger.start(QUALITY_CHECK)
    ledger.mark_passed(QUALITY_CHECK)

    assert ledger.fail_in_progress() == [LIVENESS_CHECK]
    assert ledger.status(LIVENESS_CHECK) == CheckStatus.FAILED
    assert ledger.status(QUALITY_CHECK) == CheckStatus.PASSED


def test_reset_returns_to_pending(ledger):
    ledger.mark_failed(LIVENESS_CHECK)
    ledger.reset()

    assert ledger.status(LIVENESS_CHECK) == CheckStatus.PENDING


def test_snapshot_is_a_copy(ledger):
    snapshot = ledger.snapshot()
    snapshot[0].status = CheckStatus.PASSED

    assert ledger.status(LIVENESS_CHECK) == CheckStatus.PENDING


def test_all_passed(ledger):
    for name in (LIVENESS_CHECK, ANTI_SPOOFING_CHECK, QUALITY_CHECK):
        ledger.mark_passed(name)
    assert not ledger.all_passed

    ledger.mark_passed(FACE_MATCHING_CHECK)
    assert ledger.all_passed


def test_duplicate_names_rejected():
    with pytest.raises(SecurityCheckError):
        SecurityCheckLedger([("A", "first"), ("A", "second")])
