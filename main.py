#!/usr/bin/env python3
"""Intune Assignment Report CLI.

This module provides a command-line interface that resolves, for a set of
Entra ID groups, which Intune configuration objects include or exclude each
group, and writes one row per group with one membership trail per category.

Architecture:
    - Uses GraphClient as the shared HTTP layer for all API calls
    - TokenManager handles the OAuth2 client credentials flow
    - GraphGroupResolver turns names into group identities
    - BuildReportUseCase runs every category through CategoryProcessor
    - An IReportExporter writes the result (CSV, XLSX or JSON)

Environment Variables Required:
    - INTUNE_TENANT_ID: Directory (tenant) ID
    - INTUNE_CLIENT_ID: Application (client) ID
    - INTUNE_CLIENT_SECRET: Client secret
    - INTUNE_TOKEN_URL: Token endpoint (optional, derived from the tenant)
    - INTUNE_GRAPH_URL: Graph base URL (optional, defaults to the beta endpoint)

Example Usage:
    $ python main.py --group "Sales Laptops"
    $ python main.py --group "Sales Laptops" --all-devices --format xlsx
    $ python main.py --group "HR" --category mobileApps --category intents
    $ python main.py --group "HR" --concurrency 8 --parallel-categories
"""
import argparse
import asyncio
import logging
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

# Local imports
from src.intune.api import (
    AuthenticationError,
    ConfigurationError,
    GraphClient,
    TokenManager,
    TransportError,
    with_timeout,
)
from src.intune.assignments.adapters import (
    EXPORTERS,
    GraphConfigurationAPI,
    GraphGroupResolver,
    exporter_for,
)
from src.intune.assignments.domain import (
    ALL_DEVICES_GROUP,
    ALL_USERS_GROUP,
    CATEGORY_TABLE,
    select_categories,
)
from src.intune.assignments.use_cases import AssignmentReport, BuildReportUseCase

logger = logging.getLogger(__name__)


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    # Suppress noisy loggers
    logging.getLogger("aiohttp").setLevel(logging.WARNING)


def requested_group_names(args: argparse.Namespace) -> list[str]:
    """Collect group names in the order given, pseudo-groups last."""
    names = [name for name in (args.group or []) if name.strip()]
    if args.all_users:
        names.append(ALL_USERS_GROUP.display_name)
    if args.all_devices:
        names.append(ALL_DEVICES_GROUP.display_name)
    return names


def resolve_output(args: argparse.Namespace) -> tuple[Path, str]:
    """Work out the output path and format.

    --format wins; otherwise the output suffix decides; otherwise CSV.
    """
    fmt = args.format
    if fmt is None and args.output:
        fmt = Path(args.output).suffix.lstrip(".").lower() or None
    fmt = fmt or "csv"

    if args.output:
        return Path(args.output), fmt

    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    return Path(f"intune_assignments_{stamp}.{fmt}"), fmt


def print_summary(report: AssignmentReport, output: Path) -> None:
    summary = report.summary

    print("\n" + "=" * 60)
    print("REPORT COMPLETE")
    print("=" * 60)
    print(f"Groups:               {len(report.groups)}")
    print(f"Categories processed: {len(summary.categories)}")
    print(f"Trail entries:        {summary.entries_added}")
    if summary.duration_seconds is not None:
        print(f"Duration:             {summary.duration_seconds:.1f}s")
    print(f"Output:               {output}")

    if report.unresolved_groups:
        print(f"\nUnresolved groups ({len(report.unresolved_groups)}):")
        for name in report.unresolved_groups:
            print(f"  - {name}")

    if summary.skipped_categories:
        print(f"\nSkipped categories ({len(summary.skipped_categories)}):")
        for name, reason in summary.skipped_categories.items():
            print(f"  - {name}: {reason}")

    if summary.skipped_objects:
        print(f"\nSkipped objects ({len(summary.skipped_objects)}):")
        for skipped in summary.skipped_objects:
            print(f"  - {skipped.category}/{skipped.display_name}: {skipped.reason}")

    if summary.skipped_records:
        print(f"\nMalformed assignment records ({summary.normalization_errors}):")
        for record in summary.skipped_records:
            print(f"  - {record.category}/{record.object_id}: {record.reason}")


async def run_report(
    args: argparse.Namespace,
    token_manager: Optional[TokenManager] = None,
) -> int:
    """Main report orchestration function.

    Args:
        args: Parsed command-line arguments
        token_manager: Optional pre-built token manager (env is used otherwise)

    Returns:
        Process exit code
    """
    start_time = datetime.now(timezone.utc)
    print(f"[Main] Starting at {start_time.isoformat()}")

    names = requested_group_names(args)
    if not names:
        print("[Main] No groups requested. Use --group, --all-users or --all-devices")
        return 1

    try:
        categories = select_categories(args.category)
        output, fmt = resolve_output(args)
        exporter = exporter_for(fmt)
        token_manager = token_manager or TokenManager()
    except ConfigurationError as e:
        print(f"[Main] Configuration error: {e}")
        return 1

    try:
        async with GraphClient(token_manager) as client:
            use_case = BuildReportUseCase(
                api=GraphConfigurationAPI(client),
                group_resolver=GraphGroupResolver(client),
                categories=categories,
                max_concurrency=args.concurrency,
                parallel_categories=args.parallel_categories,
            )

            groups, unresolved = await use_case.resolve_groups(names)
            for name in unresolved:
                print(f"[Main] Group not found, skipping: {name}")
            if not groups:
                print("[Main] None of the requested groups could be resolved")
                return 1

            print(
                f"[Main] Reporting on {len(groups)} group(s) "
                f"across {len(categories)} categories"
            )
            report = await with_timeout(
                use_case.execute_for_groups,
                args.timeout,
                groups,
            )
            report.unresolved_groups = unresolved

    except ConfigurationError as e:
        print(f"[Main] Configuration error: {e}")
        return 1
    except AuthenticationError as e:
        print(f"[Main] Authentication failed: {e}")
        return 1
    except TransportError as e:
        print(f"[Main] Graph request failed: {e}")
        return 1
    except asyncio.TimeoutError:
        print(f"[Main] Timed out after {args.timeout}s, no report written")
        return 1

    summary = report.summary
    if summary.skipped_categories and not summary.categories:
        print("[Main] Every category was skipped, no report written")
        for name, reason in summary.skipped_categories.items():
            print(f"  - {name}: {reason}")
        return 1

    try:
        exporter.export(report, output)
    except OSError as e:
        print(f"[Main] Could not write report to {output}: {e}")
        return 1

    print_summary(report, output)

    duration = (datetime.now(timezone.utc) - start_time).total_seconds()
    print(f"\n[Main] Completed in {duration:.1f} seconds")
    return 0


def positive_seconds(value: str) -> float:
    seconds = float(value)
    if seconds <= 0:
        raise argparse.ArgumentTypeError(f"must be greater than 0, got {value}")
    return seconds


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Report which Intune configuration objects include or exclude Entra ID groups",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py --group "Sales Laptops"                  # All categories, CSV
  python main.py --group "HR" --all-users --format xlsx   # Add the All Users pseudo-group
  python main.py --group "HR" --category mobileApps       # One category only
  python main.py --group "HR" --concurrency 8 --timeout 600
        """
    )

    # Group selection
    group_group = parser.add_argument_group("Group Selection")
    group_group.add_argument(
        "--group",
        action="append",
        metavar="NAME",
        help="Display name of a group to report on (repeatable)"
    )
    group_group.add_argument(
        "--all-users",
        action="store_true",
        help="Include the All Users pseudo-group"
    )
    group_group.add_argument(
        "--all-devices",
        action="store_true",
        help="Include the All Devices pseudo-group"
    )

    # Category selection
    category_group = parser.add_argument_group("Category Selection")
    category_group.add_argument(
        "--category",
        action="append",
        metavar="NAME",
        choices=[d.name for d in CATEGORY_TABLE],
        help="Limit the report to a category (repeatable, default: all)"
    )

    # Output options
    output_group = parser.add_argument_group("Output Options")
    output_group.add_argument(
        "--output",
        type=str,
        metavar="FILE",
        help="Report file (default: intune_assignments_<timestamp>.<format>)"
    )
    output_group.add_argument(
        "--format",
        choices=sorted(EXPORTERS),
        help="Report format (default: from --output suffix, else csv)"
    )

    # Execution options
    exec_group = parser.add_argument_group("Execution Options")
    exec_group.add_argument(
        "--concurrency",
        type=int,
        default=1,
        metavar="N",
        help="Assignment fetches in flight per category (default: 1)"
    )
    exec_group.add_argument(
        "--parallel-categories",
        action="store_true",
        help="Process categories concurrently"
    )
    exec_group.add_argument(
        "--timeout",
        type=positive_seconds,
        metavar="SECONDS",
        help="Abort the run after SECONDS without writing a report"
    )
    exec_group.add_argument(
        "--verbose",
        "-v",
        action="store_true",
        help="Enable debug logging"
    )

    return parser


def main():
    args = build_parser().parse_args()
    configure_logging(args.verbose)

    # Run the async report
    sys.exit(asyncio.run(run_report(args)))


if __name__ == "__main__":
    main()
