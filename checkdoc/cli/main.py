"""
checkdoc CLI — Check a document against a rule set.

Exit codes:
    0  no MUST violations
    1  at least one MUST violation
    2  rule set or document could not be loaded/parsed
"""

import argparse
import sys
from pathlib import Path
from typing import Optional

from checkdoc import __version__
from checkdoc.core.context import CheckRequest
from checkdoc.core.engine import Engine
from checkdoc.core.errors import CheckdocError
from checkdoc.core.logging import configure_logging
from checkdoc.ir.enums import CheckStatus, ReportFormat
from checkdoc.policy.loader import list_rulesets, load_ruleset

EXIT_OK = 0
EXIT_VIOLATIONS = 1
EXIT_ERROR = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="checkdoc",
        description="Rule-based document compliance checker",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"checkdoc {__version__}",
    )
    parser.add_argument(
        "document",
        nargs="?",
        help="Path to the document to check (use - for stdin)",
    )
    parser.add_argument(
        "-r",
        "--ruleset",
        type=str,
        default=None,
        help="Rule set file (YAML/JSON) or bundled rule set name",
    )
    parser.add_argument(
        "-f",
        "--format",
        choices=[f.value for f in ReportFormat],
        default=ReportFormat.CHECKLIST.value,
        help="Report format (default: checklist)",
    )
    parser.add_argument(
        "-o",
        "--output",
        type=str,
        default=None,
        help="Output file path (default: stdout)",
    )
    parser.add_argument(
        "--rule-timeout",
        type=float,
        default=None,
        help="Maximum evaluation time per rule in seconds (or CHECKDOC_RULE_TIMEOUT)",
    )
    parser.add_argument(
        "--workers",
        type=int,
        default=None,
        help="Evaluate rules on N threads (or CHECKDOC_MAX_WORKERS)",
    )
    parser.add_argument(
        "--lenient-fences",
        action="store_true",
        help="Let an unterminated code fence run to the end of the document",
    )
    parser.add_argument(
        "--list-rulesets",
        action="store_true",
        help="List bundled rule sets and exit",
    )

    # Logging configuration
    parser.add_argument(
        "--log-level",
        type=str,
        choices=["silent", "info", "verbose", "debug"],
        default=None,
        help="Log verbosity level (default: info, or CHECKDOC_LOG_LEVEL env var)",
    )
    parser.add_argument(
        "--log-channel",
        type=str,
        default=None,
        help="Comma-separated log channels to show (pipeline,load,parse,evaluate,score,render,system). Default: all",
    )
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    channels = None
    if args.log_channel:
        channels = [ch.strip() for ch in args.log_channel.split(",")]
    configure_logging(level=args.log_level, channels=channels, force=True)

    if args.list_rulesets:
        for name in list_rulesets():
            print(name)
        return EXIT_OK

    if args.document is None or args.ruleset is None:
        parser.print_usage(sys.stderr)
        _error("a document and --ruleset are required")
        return EXIT_ERROR

    return run_check(args)


def run_check(args: argparse.Namespace) -> int:
    """Run one check and write the report."""
    try:
        ruleset = load_ruleset(args.ruleset)
    except (CheckdocError, FileNotFoundError) as e:
        _error(f"cannot load rule set: {e}")
        return EXIT_ERROR

    try:
        if args.document == "-":
            text = sys.stdin.buffer.read()
            source = "<stdin>"
        else:
            text = Path(args.document).read_bytes()
            source = args.document
    except OSError as e:
        _error(f"cannot read document: {e}")
        return EXIT_ERROR

    try:
        settings = ruleset.settings.with_env()
    except CheckdocError as e:
        _error(f"invalid settings: {e}")
        return EXIT_ERROR
    settings = settings.merged(
        rule_timeout=args.rule_timeout,
        max_workers=args.workers,
        strict_fences=False if args.lenient_fences else None,
    )

    request = CheckRequest(
        text=text,
        ruleset=ruleset,
        source=source,
        format=ReportFormat(args.format),
        settings=settings,
    )
    result = Engine().run(request)

    if result.status == CheckStatus.ERROR:
        _error(result.error_message or "check failed")
        return EXIT_ERROR

    if args.output:
        Path(args.output).write_text(result.rendered, encoding="utf-8")
    else:
        sys.stdout.write(result.rendered)
        sys.stdout.flush()

    return EXIT_OK if result.report.passed else EXIT_VIOLATIONS


def _error(message: str) -> None:
    print(f"checkdoc: error: {message}", file=sys.stderr)


if __name__ == "__main__":
    sys.exit(main())
