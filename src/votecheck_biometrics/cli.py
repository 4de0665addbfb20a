import sys
import argparse
import asyncio
from pathlib import Path
from typing import Optional, List
import structlog

from .adapters import DirectoryFrameSource, LoggingAnnouncer
from .capture import CaptureOrchestrator
from .config import TEMPLATE_STORE_PATH
from .data_models import SecurityCheck
from .exceptions import CaptureFailedError, VoteCheckError
from .extraction import ExtractionWorkerPool, PixelSamplingExtractor
from .storage import JsonTemplateStore
from .utils import configure_logging, to_percentage
from .verification import BiometricVerificationService

# Initialize structured logger
logger = structlog.get_logger(__name__)


class VoteCheckCLI:
    """Main command-line interface for the VoteCheck biometric gate."""

    def __init__(self) -> None:
        self.parser = self._create_argument_parser()

    def _create_argument_parser(self) -> argparse.ArgumentParser:
        """Creates the argument parser for the CLI."""
        parser = argparse.ArgumentParser(
            prog="votecheck-biometrics",
            description="VoteCheck - Biometric voter eligibility gate",
            formatter_class=argparse.RawDescriptionHelpFormatter,
        )

        subparsers = parser.add_subparsers(dest="command", required=True)
        self._add_flow_command(
            subparsers, "register", "Capture a voter's face from a frames directory and enroll it."
        )
        self._add_flow_command(
            subparsers, "verify", "Capture a voter's face and compare it with the enrolled template."
        )

        return parser

    def _add_flow_command(self, subparsers, name: str, help_text: str) -> None:
        """Add a capture flow command and its arguments."""
        flow_parser = subparsers.add_parser(name, help=help_text)

        flow_parser.add_argument("--user-id", required=True, help="Voter identifier.")
        flow_parser.add_argument(
            "--frames-dir",
            type=Path,
            required=True,
            help="Directory of images replayed as the camera stream.",
        )
        flow_parser.add_argument(
            "--store",
            type=Path,
            default=TEMPLATE_STORE_PATH,
            help=f"JSON template store. Default: {TEMPLATE_STORE_PATH}",
        )

    def _build_service(self, args: argparse.Namespace, pool: ExtractionWorkerPool) -> BiometricVerificationService:
        orchestrator = CaptureOrchestrator(pool, announcer=LoggingAnnouncer())
        return BiometricVerificationService(orchestrator, JsonTemplateStore(args.store))

    def _execute_flow_command(self, args: argparse.Namespace) -> int:
        """Execute a register or verify command."""
        logger.info("Starting capture flow", command=args.command, user_id=args.user_id)

        source = DirectoryFrameSource(args.frames_dir)
        try:
            with ExtractionWorkerPool(PixelSamplingExtractor()) as pool:
                service = self._build_service(args, pool)

                if args.command == "register":
                    result = asyncio.run(service.register(args.user_id, source))
                    self._display_registration(args, result)
                    exit_code = 0
                else:
                    comparison = asyncio.run(service.verify(args.user_id, source))
                    self._display_verification(args, comparison)
                    exit_code = 0 if comparison.is_match else 1

                self._display_checks(service.ledger.snapshot())
                return exit_code

        except CaptureFailedError as e:
            logger.warning("Capture failed", error_code=e.error_code, error=e.message)
            print(f"\n[FAILED] {e.message}", file=sys.stderr)
            return 1
        except VoteCheckError as e:
            logger.error("A known application error occurred", error=str(e), exc_info=True)
            print(f"\n[ERROR] {e.message}", file=sys.stderr)
            return 1
        except Exception as e:
            logger.error("An unexpected fatal error occurred", error=str(e), exc_info=True)
            print(f"\n[FATAL ERROR] An unexpected error occurred: {e}", file=sys.stderr)
            return 1

    def _display_registration(self, args: argparse.Namespace, result) -> None:
        """Display a summary of a registration."""
        print("\n" + "=" * 60)
        print("VOTECHECK - REGISTRATION")
        print("=" * 60)
        print(f"User ID: {args.user_id}")
        print(f"Samples captured: {result.samples_count}")
        print(f"Average quality: {to_percentage(result.avg_quality)}%")
        print(f"Template stored in: {args.store}")

    def _display_verification(self, args: argparse.Namespace, comparison) -> None:
        """Display a summary of a verification."""
        print("\n" + "=" * 60)
        print("VOTECHECK - VERIFICATION")
        print("=" * 60)
        print(f"User ID: {args.user_id}")
        print(f"Similarity: {to_percentage(comparison.similarity)}%")
        print(f"Confidence: {to_percentage(comparison.confidence)}%")
        print(f"Threshold: {to_percentage(comparison.threshold)}%")
        print(f"Result: {'MATCH' if comparison.is_match else 'NO MATCH'}")

    def _display_checks(self, checks: List[SecurityCheck]) -> None:
        print("-" * 60)
        for check in checks:
            print(f"  {check.name:<20} {check.status.value}")
        print("=" * 60)

    def run_from_args(self, args_list: Optional[List[str]] = None) -> int:
        """Run the CLI with provided arguments."""
        try:
            args = self.parser.parse_args(args_list)
            configure_logging()
            if args.command in ("register", "verify"):
                return self._execute_flow_command(args)
            else:
                self.parser.print_help()
                return 1
        except KeyboardInterrupt:
            print("\nOperation cancelled by user.", file=sys.stderr)
            return 130


def main() -> int:
    """Main entry point for the CLI."""
    cli = VoteCheckCLI()
    return cli.run_from_args()


if __name__ == "__main__":
    sys.exit(main())
