import argparse
import logging
import signal
import sys
from pathlib import Path
from typing import List, NoReturn, Optional

from quote_intake.utils.colors import Colors
from quote_intake.utils.config import ConfigurationError
from quote_intake.utils.exceptions import IntakeError
from quote_intake.modules.record_report import (
    format_outcome,
    format_record,
    read_record,
    write_record,
)
from quote_intake.modules.submission_client import ApprovedQuote


EXIT_OK = 0
EXIT_ERROR = 1
EXIT_DECLINED = 2

DEFAULT_OUTPUT = "quote_record.json"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="quote-intake",
        description="Extract cyber insurance quote requests from broker emails and PDF applications.",
    )
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--env-file", default=".env", help="Configuration file (default: .env)")
    commands = parser.add_subparsers(dest="command", required=True)

    analyze = commands.add_parser("analyze", parents=[common],
                                  help="Extract a quote record for review")
    analyze.add_argument("--email", help="Broker email file (.eml)")
    analyze.add_argument("--pdf", action="append", default=[], metavar="FILE",
                         help="PDF application (repeatable)")
    analyze.add_argument("--output", default=DEFAULT_OUTPUT,
                         help=f"Where to write the editable record (default: {DEFAULT_OUTPUT})")

    submit = commands.add_parser("submit", parents=[common], help="Submit a reviewed record")
    submit.add_argument("record", help="Record JSON written by 'analyze'")
    submit.add_argument("--env", choices=("test", "prod"), default=None,
                        help="Submission environment (default: K2_CYBER_ENV or prod)")
    submit.add_argument("--yes", action="store_true", help="Skip the confirmation prompt")
    return parser


class AppRunner:
    """Parses arguments, runs one command and maps the outcome to an exit code."""

    def __init__(self, args: Optional[List[str]] = None, pipeline=None) -> None:
        """
        Initialize the runner with CLI arguments.

        Args:
            args: Command line arguments without the program name (defaults to sys.argv[1:])
            pipeline: Pre-built QuoteIntakePipeline (tests inject one)
        """
        self.args = build_parser().parse_args(args if args is not None else sys.argv[1:])
        self._pipeline = pipeline
        self.logger = logging.getLogger("AppRunner")

    @property
    def pipeline(self):
        if self._pipeline is None:
            from quote_intake.main import QuoteIntakePipeline
            self._pipeline = QuoteIntakePipeline(self.args.env_file)
        return self._pipeline

    def run(self) -> int:
        """Execute the selected command and return the exit code."""
        self.setup_signal_handlers()
        self.print_banner()
        try:
            if self.args.command == "analyze":
                return self.run_analyze()
            return self.run_submit()
        except ConfigurationError as e:
            print(f"\n{Colors.RED}❌ Configuration Error:{Colors.RESET} {e}", file=sys.stderr)
            return EXIT_ERROR
        except IntakeError as e:
            self.logger.debug("Command failed", exc_info=True)
            print("\n" + Colors.error(f"❌ {e.user_message}"), file=sys.stderr)
            return EXIT_ERROR
        except (OSError, ValueError) as e:
            print(f"\n{Colors.RED}❌ {e}{Colors.RESET}", file=sys.stderr)
            return EXIT_ERROR

    def setup_signal_handlers(self) -> None:
        """Register handlers for graceful shutdown."""
        signal.signal(signal.SIGTERM, self._signal_handler)

    @staticmethod
    def _signal_handler(signum, frame) -> NoReturn:
        print("\nReceived shutdown signal, stopping...")
        raise KeyboardInterrupt

    def print_banner(self) -> None:
        """Print the application banner."""
        print(Colors.colorize("=" * 80, Colors.CYAN))
        print(Colors.colorize("Quote Intake", Colors.BOLD + Colors.CYAN))
        print(Colors.colorize("Broker email and PDF application extraction", Colors.GREY))
        print(Colors.colorize("=" * 80, Colors.CYAN))

    def run_analyze(self) -> int:
        if not self.args.email and not self.args.pdf:
            print(Colors.warning("Please provide at least one --pdf OR an --email file to analyze."))
            return EXIT_ERROR

        print(Colors.success("🔎 Analyzing..."))
        record, warnings = self.pipeline.analyze(self.args.email, self.args.pdf)

        print(format_record(record, warnings))
        output = write_record(record, self.args.output, warnings)
        print(f"\nRecord written to {Colors.BOLD}{output}{Colors.RESET}.")
        print(f"{Colors.GREY}Review and edit it, then run: quote-intake submit {output}{Colors.RESET}")
        return EXIT_OK

    def run_submit(self) -> int:
        record_path = Path(self.args.record)
        record = read_record(record_path)
        print(format_record(record))

        if not self.args.yes and not self.confirm(self.args.env):
            print(Colors.warning("Submission cancelled."))
            return EXIT_ERROR

        result = self.pipeline.submit(record, self.args.env)
        print()
        print(format_outcome(result))
        return EXIT_OK if isinstance(result, ApprovedQuote) else EXIT_DECLINED

    @staticmethod
    def confirm(environment: Optional[str]) -> bool:
        """
        Ask before submitting

        Submitting twice can create two quotes, so a non-interactive run
        without --yes is refused.
        """
        if not sys.stdin.isatty():
            print(Colors.warning("Not a terminal; pass --yes to submit."))
            return False
        target = environment or "configured"
        try:
            response = input(f"Submit this quote to the {target} environment? [y/N] ").strip().lower()
        except EOFError:
            return False
        return response in ("y", "yes")
