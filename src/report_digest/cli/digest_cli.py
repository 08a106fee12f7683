"""
Report digest CLI.

Usage:
    report-digest ingest --input chat.txt
    report-digest ingest --input entries.json --extracted
    report-digest list [--start YYYY-MM-DD] [--end YYYY-MM-DD] [--keywords-only] [--department 蔬果]
    report-digest matrix [filters]
    report-digest stats [filters]
    report-digest export --format csv|xlsx --layout flat|matrix [filters] [--output-dir DIR]
    report-digest watch [--metrics-port 9108]
    report-digest --metrics <command>   (print Prometheus metrics after the command)
"""

import argparse
import sys
import textwrap
import time
from pathlib import Path

from pydantic import ValidationError

from report_digest.export import MISSING_MARKER
from report_digest.observability.logger import get_logger
from report_digest.observability.metrics import start_metrics_server

from .common import (
    add_config_argument,
    add_filter_arguments,
    filter_from_args,
    open_service,
    print_metrics,
    print_status,
)

logger = get_logger(__name__)


def read_input(path: str) -> str:
    """Read pasted chat text from a file, or stdin for '-'."""
    if path == "-":
        return sys.stdin.read()
    return Path(path).read_text(encoding="utf-8")


def ingest_command(args):
    """
    Extract reports from a chat log and merge them into the record set.

    Args:
        args: Command line arguments
    """
    try:
        raw_text = read_input(args.input)
    except OSError as e:
        print(f"\nError: cannot read {args.input}: {e}")
        sys.exit(1)

    service = open_service(args, extracted=args.extracted, with_extractor=True)
    try:
        status = service.ingest_text(raw_text)
        print_status(status)
        if status.ok:
            print(f"  added: {status.added}, rejected: {status.rejected}")
        else:
            sys.exit(1)
    finally:
        service.close()


def list_command(args):
    """Print the filtered reports, newest date first."""
    criteria = filter_from_args(args)
    service = open_service(args)
    try:
        records = service.list_reports(criteria)
    finally:
        service.close()

    if not records:
        print("\nNo reports found.")
        return

    print(f"\n{'=' * 80}")
    print(f"REPORTS ({len(records)})")
    print(f"{'=' * 80}\n")

    for record in records:
        keywords = ", ".join(record.matched_keywords) or "-"
        print(f"{record.date}  {record.department:<6} {record.employee_name}  [{record.id}]")
        print(f"  keywords: {keywords}")
        print(textwrap.indent(record.content or "-", "    "))
        if record.next_steps:
            print("  next steps:")
            print(textwrap.indent(record.next_steps, "    "))
        if record.blockers:
            print("  blockers:")
            print(textwrap.indent(record.blockers, "    "))
        print(f"{'-' * 80}")


def matrix_command(args):
    """Print report counts per date and department; gaps show the missing marker."""
    criteria = filter_from_args(args)
    service = open_service(args)
    try:
        rows = service.matrix(criteria)
        departments = service.config.departments
    finally:
        service.close()

    if not rows:
        print("\nNo reports found.")
        return

    header = f"{'Date':<12}" + "".join(f"{d:<8}" for d in departments)
    print(f"\n{header}")
    print(f"{'-' * len(header)}")
    for row in rows:
        cells = "".join(
            f"{(MISSING_MARKER if cell.missing else str(cell.count)):<8}" for cell in row.cells
        )
        print(f"{row.date:<12}{cells}")


def stats_command(args):
    """Print department distribution and per-person workload."""
    criteria = filter_from_args(args)
    service = open_service(args)
    try:
        stats = service.stats(criteria)
    finally:
        service.close()

    print(f"\n{'=' * 60}")
    print("REPORT STATISTICS")
    print(f"{'=' * 60}\n")
    print(f"Total reports: {stats.total}\n")

    print("By department:")
    for entry in stats.departments:
        print(f"  {entry.department:<10} {entry.count:>6}")

    print("\nBy person:")
    for entry in stats.workload:
        print(f"  {entry.display_name:<24} {entry.count:>6}")
    print()


def export_command(args):
    """Write the filtered reports to a CSV or XLSX file."""
    criteria = filter_from_args(args)
    service = open_service(args)
    try:
        status = service.export(
            fmt=args.format,
            layout=args.layout,
            criteria=criteria,
            output_dir=args.output_dir,
        )
    finally:
        service.close()

    print_status(status)
    if not status.ok:
        sys.exit(1)


def watch_command(args):
    """
    Follow a live collection until interrupted, optionally serving metrics.

    Args:
        args: Command line arguments
    """
    service = open_service(args)
    try:
        if args.metrics_port:
            start_metrics_server(args.metrics_port)
            print(f"\nServing metrics on port {args.metrics_port}")

        def on_change(records):
            print(f"{time.strftime('%H:%M:%S')}  {len(records)} reports")

        status = service.start_sync(on_change=on_change)
        print_status(status)
        if not status.ok:
            sys.exit(1)

        reported = None
        while True:
            time.sleep(args.interval)
            error = getattr(service.coordinator, "last_error", None)
            if error is not None and error is not reported:
                print(f"  ! live collection error: {error.message}")
            reported = error
    finally:
        service.close()


def main():
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Normalize and summarize daily work reports from group chats",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Extract reports from a pasted chat log
  report-digest ingest --input chat.txt

  # Load entries that were extracted earlier
  report-digest ingest --input entries.json --extracted

  # Export one week as a date x department workbook
  report-digest export --format xlsx --layout matrix --start 2024-05-01 --end 2024-05-07

  # Follow a live collection and expose metrics to a scraper
  report-digest watch --metrics-port 9108
        """
    )
    add_config_argument(parser)
    parser.add_argument(
        "--metrics",
        action="store_true",
        help="Print Prometheus metrics collected by this run after the command"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    ingest_parser = subparsers.add_parser("ingest", help="Extract and store reports from a chat log")
    ingest_parser.add_argument(
        "--input",
        required=True,
        help="Chat log file ('-' reads stdin)"
    )
    ingest_parser.add_argument(
        "--extracted",
        action="store_true",
        help="Input is already a JSON array of extracted entries (no model call)"
    )

    list_parser = subparsers.add_parser("list", help="List stored reports")
    add_filter_arguments(list_parser)

    matrix_parser = subparsers.add_parser("matrix", help="Show the date x department matrix")
    add_filter_arguments(matrix_parser)

    stats_parser = subparsers.add_parser("stats", help="Show department and workload statistics")
    add_filter_arguments(stats_parser)

    export_parser = subparsers.add_parser("export", help="Export reports to CSV or XLSX")
    export_parser.add_argument(
        "--format",
        default="csv",
        choices=["csv", "xlsx"],
        help="Output format (default: csv)"
    )
    export_parser.add_argument(
        "--layout",
        default="flat",
        choices=["flat", "matrix"],
        help="One row per report (flat) or per date (matrix) (default: flat)"
    )
    export_parser.add_argument(
        "--output-dir",
        default=".",
        help="Directory for the exported file (default: current directory)"
    )
    add_filter_arguments(export_parser)

    watch_parser = subparsers.add_parser("watch", help="Follow a live collection until interrupted")
    watch_parser.add_argument(
        "--metrics-port",
        type=int,
        help="Serve Prometheus metrics on this port while watching"
    )
    watch_parser.add_argument(
        "--interval",
        type=float,
        default=5.0,
        help="Seconds between health checks (default: 5)"
    )

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    handlers = {
        "ingest": ingest_command,
        "list": list_command,
        "matrix": matrix_command,
        "stats": stats_command,
        "export": export_command,
        "watch": watch_command,
    }

    try:
        handlers[args.command](args)
    except ValidationError as e:
        print(f"\nInvalid filter: {e}")
        sys.exit(2)
    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        sys.exit(130)
    except Exception as e:
        logger.error(f"Command {args.command} failed: {e}", exc_info=True)
        print(f"\nError: {e}")
        sys.exit(1)
    finally:
        if args.metrics:
            print_metrics()


if __name__ == "__main__":
    main()
