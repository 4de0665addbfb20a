import json

import cv2
import numpy as np
import pytest

from conftest import RecordingSleep
from votecheck_biometrics.adapters import DirectoryFrameSource, LoggingAnnouncer, load_frame
from votecheck_biometrics.capture import CaptureOrchestrator
from votecheck_biometrics.cli import VoteCheckCLI
from votecheck_biometrics.exceptions import ConfigurationError, FrameFormatError
from votecheck_biometrics.storage import JsonTemplateStore
from votecheck_biometrics.verification import BiometricVerificationService


class FastCLI(VoteCheckCLI):
    """CLI whose capture delays are recorded instead of waited."""

    def _build_service(self, args, pool):
        orchestrator = CaptureOrchestrator(
            pool, announcer=LoggingAnnouncer(), sleep=RecordingSleep()
        )
        return BiometricVerificationService(orchestrator, JsonTemplateStore(args.store))


@pytest.fixture
def frames_dir(tmp_path, rng):
    directory = tmp_path / "frames"
    directory.mkdir()
    for index in range(5):
        frame = rng.integers(0, 256, size=(64, 64, 3), dtype=np.uint8)
        cv2.imwrite(str(directory / f"frame_{index:02d}.png"), frame)
    (directory / "notes.txt").write_text("not a frame")
    return directory


class TestDirectoryFrameSource:
    def test_cycles_through_images(self, frames_dir):
        source = DirectoryFrameSource(frames_dir)
        source.open()

        frames = [source.read_frame() for _ in range(6)]
        source.close()

        assert frames[0].shape == (64, 64, 3)
        assert frames[5] is frames[0]
        assert not source.is_open

    def test_empty_directory(self, tmp_path):
        with pytest.raises(ConfigurationError):
            DirectoryFrameSource(tmp_path).open()

    def test_read_before_open(self, frames_dir):
        with pytest.raises(RuntimeError):
            DirectoryFrameSource(frames_dir).read_frame()

    def test_undecodable_file(self, tmp_path):
        path = tmp_path / "broken.png"
        path.write_bytes(b"not an image")

        with pytest.raises(FrameFormatError):
            load_frame(path)


def test_logging_announcer_keeps_recent():
    announcer = LoggingAnnouncer(keep=2)
    for text in ("one", "two", "three"):
        announcer.announce(text)
    announcer.announce("alert", "assertive")

    assert announcer.announcements == [("three", "polite"), ("alert", "assertive")]
    with pytest.raises(ValueError):
        announcer.announce("x", "loud")


def test_register_then_verify(frames_dir, tmp_path, capsys):
    store = tmp_path / "store.json"
    base = ["--user-id", "voter-1", "--frames-dir", str(frames_dir), "--store", str(store)]

    assert FastCLI().run_from_args(["register"] + base) == 0
    assert "voter-1" in json.loads(store.read_text(encoding="utf-8"))

    assert FastCLI().run_from_args(["verify"] + base) == 0
    assert "Result: MATCH" in capsys.readouterr().out


def test_verify_unregistered_voter(frames_dir, tmp_path, capsys):
    code = FastCLI().run_from_args(
        [
            "verify",
            "--user-id",
            "ghost",
            "--frames-dir",
            str(frames_dir),
            "--store",
            str(tmp_path / "store.json"),
        ]
    )

    assert code == 1
    assert "No registered face data found" in capsys.readouterr().err


def test_static_frames_fail_capture(tmp_path, capsys):
    directory = tmp_path / "still"
    directory.mkdir()
    cv2.imwrite(str(directory / "photo.png"), np.full((64, 64, 3), 120, dtype=np.uint8))

    code = FastCLI().run_from_args(
        [
            "register",
            "--user-id",
            "voter-1",
            "--frames-dir",
            str(directory),
            "--store",
            str(tmp_path / "store.json"),
        ]
    )

    assert code == 1
    assert (
        "Liveness check failed during capture 1: No significant movement detected"
        in capsys.readouterr().err
    )


def test_missing_subcommand_exits():
    with pytest.raises(SystemExit):
        VoteCheckCLI().run_from_args([])
