"""
Admin CLI for destructive and operational tasks.

Usage:
    report-digest-admin delete --id <record_id>
    report-digest-admin clear [--yes]
"""

import argparse
import getpass
import sys

from report_digest.observability.logger import get_logger

from .common import add_config_argument, open_service, print_status

logger = get_logger(__name__)


def delete_command(args):
    """
    Delete one report by id.

    Args:
        args: Command line arguments
    """
    logger.info(f"Deleting report {args.id}")
    service = open_service(args)
    try:
        status = service.delete(args.id)
    finally:
        service.close()

    print_status(status)
    if not status.ok:
        sys.exit(1)


def clear_command(args):
    """
    Delete every stored report after confirmation and the operator passphrase.

    Args:
        args: Command line arguments
    """
    confirmed = args.yes
    if not confirmed:
        answer = input("This deletes ALL stored reports and cannot be undone. Type 'yes' to continue: ")
        confirmed = answer.strip().lower() == "yes"
    if not confirmed:
        print("\nAborted.")
        return

    passphrase = getpass.getpass("Operator passphrase: ")

    service = open_service(args)
    try:
        status = service.clear_all(confirmed=confirmed, passphrase=passphrase)
    finally:
        service.close()

    print_status(status)
    if not status.ok:
        sys.exit(1)


def main():
    """Main entry point for admin CLI."""
    parser = argparse.ArgumentParser(
        description="Admin CLI for the report digest",
        formatter_class=argparse.RawDescriptionHelpFormatter
    )
    add_config_argument(parser)

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    delete_parser = subparsers.add_parser("delete", help="Delete one report")
    delete_parser.add_argument(
        "--id",
        required=True,
        help="Report id to delete"
    )

    clear_parser = subparsers.add_parser("clear", help="Delete all reports")
    clear_parser.add_argument(
        "--yes",
        action="store_true",
        help="Skip the confirmation prompt (the passphrase is still required)"
    )

    args = parser.parse_args()

    if not args.command:
        parser.print_help()
        sys.exit(1)

    try:
        if args.command == "delete":
            delete_command(args)
        elif args.command == "clear":
            clear_command(args)
        else:
            parser.print_help()
            sys.exit(1)

    except KeyboardInterrupt:
        print("\n\nInterrupted by user")
        sys.exit(130)


if __name__ == "__main__":
    main()
