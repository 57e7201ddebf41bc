"""Command-line interface for multi-page audits."""

import asyncio
import json
import sys
from typing import Optional

from siteaudit.access import AccessGate
from siteaudit.analyzer import HttpPageAnalyzer
from siteaudit.config import Config, settings
from siteaudit.controller import RunController
from siteaudit.exceptions import AccessDenied, StructuralError, ValidationFailure
from siteaudit.logging_config import get_logger, get_progress_logger, setup_logging
from siteaudit.models import AggregateResult, ProgressEvent, SlotState, ValidationEntry
from siteaudit.probe import HttpProber
from siteaudit.validator import UrlValidator

logger = get_logger(__name__)
progress = get_progress_logger()


def print_validation_report(report: list[ValidationEntry]) -> None:
    """Print a validation report in a formatted way."""
    print(f"\nURL Validation Results")
    print(f"{'-' * 60}")
    for entry in report:
        mark = "✅" if entry.is_valid else "❌"
        print(f"  {mark} {entry.path:<20} {entry.url}")
        if entry.error:
            print(f"      {entry.error}")


def print_aggregate(domain: str, result: AggregateResult) -> None:
    """Print an aggregate result in a formatted way."""
    print(f"\n{'=' * 60}")
    print(f"Multi-Page Audit for: {domain}")
    print(f"{'=' * 60}")

    if result.average_score is None:
        print(f"\n📊 Average Score: n/a (no page completed)")
    else:
        print(f"\n📊 Average Score: {result.average_score:.1f}/100")
    print(f"  • Completed: {result.completed_count}/{result.total_pages}")
    print(f"  • Failed: {result.failed_count}")
    print(f"  • Success rate: {result.success_rate}%")

    if result.category_averages:
        print(f"\nCategory Averages:")
        for name, value in result.category_averages.items():
            print(f"  • {name}: {value:.1f}")

    print(f"\nPages:")
    for slot in result.per_slot:
        if slot.state is SlotState.COMPLETED:
            print(f"  ✅ {slot.url}: {slot.score:g}/100 ({slot.load_time_ms:.0f} ms)")
        else:
            error = slot.analysis_error or slot.validation_error or slot.state.value
            print(f"  ❌ {slot.url}: {error}")

    print(f"\n{'=' * 60}\n")


def _print_progress(event: ProgressEvent) -> None:
    if event.state is SlotState.ANALYZING and event.step:
        detail = f" - {event.step_detail}" if event.step_detail else ""
        progress.info(f"[{event.slot_index + 1}] {event.step}{detail}")
    elif event.state in (SlotState.COMPLETED, SlotState.FAILED):
        progress.info(f"[{event.slot_index + 1}] {event.state.value}: {event.url}")


def _build_controller(args, config: Config) -> RunController:
    analyzer_url = args.analyzer_url or config.analyzer_url
    if not analyzer_url:
        print("Error: analysis endpoint is required. Set AUDIT_ANALYZER_URL or use --analyzer-url")
        sys.exit(1)

    config.max_concurrency = args.max_concurrent or config.max_concurrency
    config.page_timeout = args.timeout or config.page_timeout
    logger.info(
        f"Using analysis endpoint {analyzer_url} "
        f"(max concurrent: {config.max_concurrency}, timeout: {config.page_timeout:g}s)"
    )
    return RunController.from_config(
        config,
        analyzer=HttpPageAnalyzer(analyzer_url),
        on_progress=_print_progress if args.output == "text" else None,
    )


def validate_command(args) -> int:
    """Check that every page of a domain is reachable."""
    config = Config.from_env()
    prober = HttpProber(timeout=config.probe_timeout, user_agent=config.user_agent)
    controller = RunController(
        validator=UrlValidator(prober),
        analyzer=None,
        access_gate=AccessGate(config.access_secret),
    )

    try:
        run = controller.create_run(args.domain, args.paths)
    except StructuralError as e:
        print(f"Error: {e}")
        return 2

    report = asyncio.run(controller.validate(run))

    if args.output == "json":
        print(json.dumps([entry.to_dict() for entry in report], indent=2))
    else:
        print_validation_report(report)

    return 0 if all(entry.is_valid for entry in report) else 1


def run_command(args) -> int:
    """Validate and audit every page of a domain."""
    config = Config.from_env()
    controller = _build_controller(args, config)

    try:
        run = controller.create_run(args.domain, args.paths)
        result = asyncio.run(controller.execute(run, args.password or ""))
    except StructuralError as e:
        print(f"Error: {e}")
        return 2
    except AccessDenied as e:
        print(f"Error: {e}")
        return 3
    except ValidationFailure as e:
        print(f"Error: {e}")
        print_validation_report(e.report)
        return 1

    if args.output == "json":
        output = json.dumps(result.to_dict(), indent=2, default=str)
        if args.output_file:
            with open(args.output_file, "w") as f:
                f.write(output)
            print(f"\nReport written to {args.output_file}")
        else:
            print(output)
    else:
        print_aggregate(run.domain, result)

    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Main CLI entry point."""
    import argparse

    parser = argparse.ArgumentParser(
        description="Site Audit - validate and score up to 5 pages of one domain"
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=settings.LOG_LEVEL.upper() if settings.LOG_LEVEL else "INFO",
        help="Set logging verbosity (default: INFO)",
    )
    parser.add_argument(
        "--log-file",
        help="Write logs to file in addition to console",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    validate_parser = subparsers.add_parser(
        "validate", help="Check every page URL is reachable."
    )
    run_parser = subparsers.add_parser(
        "run", help="Validate and audit every page URL."
    )

    for sub in (validate_parser, run_parser):
        sub.add_argument("domain", help="Base domain, e.g. https://example.com")
        sub.add_argument("paths", nargs="+", help="Page paths (1-5), e.g. / /about")
        sub.add_argument(
            "--output",
            "-o",
            choices=["text", "json"],
            default="text",
            help="Output format (default: text)",
        )

    run_parser.add_argument(
        "--password",
        "-p",
        help="Access password for multi-page analysis",
    )
    run_parser.add_argument(
        "--analyzer-url",
        help="Page analysis endpoint (default: AUDIT_ANALYZER_URL)",
    )
    run_parser.add_argument(
        "--max-concurrent",
        type=int,
        help="Pages analyzed at once (default: AUDIT_MAX_CONCURRENCY or 1)",
    )
    run_parser.add_argument(
        "--timeout",
        type=float,
        help="Per-page analysis timeout in seconds (default: 120)",
    )
    run_parser.add_argument(
        "--output-file",
        "-f",
        help="Write output to file (only for json format)",
    )

    validate_parser.set_defaults(func=validate_command)
    run_parser.set_defaults(func=run_command)

    args = parser.parse_args(argv)

    setup_logging(
        level=args.log_level,
        log_file=getattr(args, 'log_file', None),
    )

    if hasattr(args, "func"):
        return args.func(args)

    parser.print_help()
    return 0


if __name__ == "__main__":
    sys.exit(main())
