#!/usr/bin/env python
"""
Command-line interface for the Construction Pay Application System.

This module provides the main entry point for the CPAS CLI, with commands
for pay applications, change orders, project statistics and reports. Every
command works on a single project file.
"""

import argparse
import datetime
import logging
import sys
from typing import List, Optional, Sequence

from cpas.billing.carry_forward import latest_application
from cpas.billing.change_orders import net_change_orders, pending_change_orders_total
from cpas.billing.engine import BillingEngine, PayAppCalculation
from cpas.billing.exceptions import (
    FinalizationBlockedError, ImmutableApplicationError, InvalidTransitionError, OutOfSequenceError
)
from cpas.billing.lifecycle import PayApplicationDraft, mark_paid
from cpas.billing.models import PayApplication, ProjectData, ValidationResult
from cpas.billing.money import format_currency, format_percent
from cpas.billing.stats import project_stats
from cpas.config import ConfigError, configure_logging, get_section
from cpas.data.loader import ProjectFileError, load_project_file, save_project_file
from cpas.reporting.excel_exporter import g702_rows
from cpas.reporting.generator import REPORT_FORMATS, ReportGenerator

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_INVALID = 1
EXIT_USAGE = 2


class CommandError(Exception):
    """Raised for problems with a command's arguments or target."""
    pass


def _parse_date(value: str) -> datetime.date:
    try:
        return datetime.date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid date: {value}. Expected YYYY-MM-DD.")


def _parse_assignment(value: str):
    """Parse ``SOV_ID=AMOUNT``."""
    sov_id, sep, amount = value.partition('=')
    if not sep or not sov_id.strip():
        raise argparse.ArgumentTypeError(f"Invalid value: {value}. Expected SOV_ID=AMOUNT.")
    return sov_id.strip(), amount.strip()


def setup_app_commands(subparsers):
    """Set up pay application commands.

    Args:
        subparsers: argparse subparsers object
    """
    app_parser = subparsers.add_parser('app', help='Pay application commands')
    app_subparsers = app_parser.add_subparsers(dest='app_command', help='Pay application command')

    # Show command
    show_parser = app_subparsers.add_parser('show', help='Show a pay application (G702 and G703)')
    show_parser.add_argument('file', help='Project file')
    show_parser.add_argument('number', nargs='?', type=int,
                             help='Application number (defaults to the latest)')

    # New command
    new_parser = app_subparsers.add_parser('new', help='Calculate a new pay application')
    new_parser.add_argument('file', help='Project file')
    new_parser.add_argument('--number', type=int, help='Application number (defaults to the next one)')
    new_parser.add_argument('--period-from', type=_parse_date, help='Period start (YYYY-MM-DD)')
    new_parser.add_argument('--period-to', type=_parse_date, help='Period end (YYYY-MM-DD)')
    new_parser.add_argument('--work', type=_parse_assignment, action='append', default=[],
                            metavar='SOV_ID=AMOUNT', help='Work completed this period for an SOV item')
    new_parser.add_argument('--stored', type=_parse_assignment, action='append', default=[],
                            metavar='SOV_ID=AMOUNT', help='Materials presently stored for an SOV item')
    new_parser.add_argument('--bill-remaining', action='store_true',
                            help='Bill the remaining balance of every item')
    new_parser.add_argument('--save', action='store_true', help='Save the result as a draft')

    # Validate command
    validate_parser = app_subparsers.add_parser('validate', help='Validate a pay application')
    validate_parser.add_argument('file', help='Project file')
    validate_parser.add_argument('number', type=int, help='Application number')

    # Submit command
    submit_parser = app_subparsers.add_parser('submit', help='Submit a draft pay application')
    submit_parser.add_argument('file', help='Project file')
    submit_parser.add_argument('number', type=int, help='Application number')
    submit_parser.add_argument('--accept-warnings', action='store_true',
                               help='Submit even if validation reports warnings')

    # Paid command
    paid_parser = app_subparsers.add_parser('paid', help='Record payment of a submitted pay application')
    paid_parser.add_argument('file', help='Project file')
    paid_parser.add_argument('number', type=int, help='Application number')


def setup_co_commands(subparsers):
    """Set up change order commands.

    Args:
        subparsers: argparse subparsers object
    """
    co_parser = subparsers.add_parser('co', help='Change order commands')
    co_subparsers = co_parser.add_subparsers(dest='co_command', help='Change order command')

    list_parser = co_subparsers.add_parser('list', help='List change orders')
    list_parser.add_argument('file', help='Project file')


def setup_project_commands(subparsers):
    """Set up project commands.

    Args:
        subparsers: argparse subparsers object
    """
    project_parser = subparsers.add_parser('project', help='Project commands')
    project_subparsers = project_parser.add_subparsers(dest='project_command', help='Project command')

    stats_parser = project_subparsers.add_parser('stats', help='Show project statistics')
    stats_parser.add_argument('file', help='Project file')


def setup_report_commands(subparsers):
    """Set up report commands.

    Args:
        subparsers: argparse subparsers object
    """
    report_parser = subparsers.add_parser('report', help='Export a pay application')
    report_parser.add_argument('file', help='Project file')
    report_parser.add_argument('number', type=int, help='Application number')
    report_parser.add_argument('--format', choices=REPORT_FORMATS,
                               help='Report format (defaults to reporting.default_format)')
    report_parser.add_argument('--output', help='Output path (printed to stdout if omitted)')


def _print_table(headers: Sequence[str], rows: List[Sequence[str]], right_align: Sequence[int] = ()) -> None:
    """Print rows in fixed-width columns."""
    max_widths = [len(header) for header in headers]
    for row in rows:
        for i, value in enumerate(row):
            max_widths[i] = max(max_widths[i], len(value))

    def _line(values):
        cells = [
            value.rjust(max_widths[i]) if i in right_align else value.ljust(max_widths[i])
            for i, value in enumerate(values)
        ]
        return "  ".join(cells).rstrip()

    print(_line(headers))
    print("  ".join("-" * width for width in max_widths))
    for row in rows:
        print(_line(row))


def print_validation(validation: ValidationResult) -> None:
    if not validation.errors and not validation.warnings:
        print("No validation issues.")
        return
    for issue in validation.errors:
        item = f" [item {issue.line_item}]" if issue.line_item else ""
        print(f"ERROR {issue.code}{item}: {issue.message}")
    for issue in validation.warnings:
        item = f" [item {issue.line_item}]" if issue.line_item else ""
        override = " (can be overridden)" if issue.can_override else ""
        print(f"WARNING {issue.code}{item}: {issue.message}{override}")


def print_pay_application(
    data: ProjectData,
    number: int,
    status: str,
    period_from: Optional[datetime.date],
    period_to: Optional[datetime.date],
    calculation: PayAppCalculation
) -> None:
    """Print the G702 summary, the G703 rows and the validation result."""
    period = f"{period_from or '?'} to {period_to or '?'}"
    print(f"{data.project.name} - Pay Application #{number} ({status}), period {period}")
    print()

    _print_table(
        ["Line", "Description", "Amount"],
        [[line, label, format_currency(amount)] for line, label, amount in g702_rows(calculation.summary)],
        right_align=(2,)
    )
    print()

    rows = [
        [
            item.item_number, item.description,
            format_currency(item.scheduled_value), format_currency(item.work_completed_previous),
            format_currency(item.work_completed_this_period), format_currency(item.materials_stored),
            format_currency(item.total_completed_and_stored), format_percent(item.percent_complete),
            format_currency(item.balance_to_finish), format_currency(item.retainage),
        ]
        for item in calculation.line_items
    ]
    totals = calculation.totals
    rows.append([
        "", "Total",
        format_currency(totals.total_scheduled_value), format_currency(totals.total_work_previous),
        format_currency(totals.total_work_this_period), format_currency(totals.total_materials_stored),
        format_currency(totals.total_completed_and_stored), "",
        format_currency(totals.total_balance_to_finish),
        format_currency(calculation.summary.line5c_total_retainage),
    ])
    _print_table(
        ["Item", "Description", "Scheduled", "Previous", "This Period", "Stored",
         "Completed", "%", "Balance", "Retainage"],
        rows,
        right_align=range(2, 10)
    )
    print()
    print_validation(calculation.validation)


def _load(args) -> ProjectData:
    return load_project_file(args.file, config=get_section('billing'))


def _engine() -> BillingEngine:
    return BillingEngine(get_section('billing'))


def _get_application(data: ProjectData, number: int) -> PayApplication:
    application = data.get_application(number)
    if application is None:
        raise CommandError(f"Pay application #{number} not found")
    return application


def show_application(args) -> int:
    """Show a saved pay application.

    Args:
        args: Command-line arguments
    """
    data = _load(args)
    if args.number is not None:
        application = _get_application(data, args.number)
    elif data.pay_applications:
        application = data.pay_applications[-1]
    else:
        raise CommandError("The project has no pay applications")

    calculation = _engine().snapshot_calculation(application)
    print_pay_application(
        data, application.application_number, application.status.value,
        application.period_from, application.period_to, calculation
    )
    return EXIT_OK


def new_application(args) -> int:
    """Calculate a new pay application and optionally save it as a draft.

    Args:
        args: Command-line arguments
    """
    data = _load(args)
    draft = PayApplicationDraft(
        data,
        application_number=args.number,
        period_from=args.period_from,
        period_to=args.period_to,
        engine=_engine(),
    )

    try:
        for sov_id, amount in args.stored:
            draft.set_materials_stored(sov_id, amount)
        if args.bill_remaining:
            draft.bill_remaining()
        for sov_id, amount in args.work:
            draft.set_work_this_period(sov_id, amount)
    except KeyError as e:
        raise CommandError(e.args[0])

    calculation = draft.calculate()
    print_pay_application(
        data, draft.application_number, "draft", draft.period_from, draft.period_to, calculation
    )

    if args.save:
        save_project_file(data.with_application(draft.snapshot()), args.file)
        print(f"\nSaved draft pay application #{draft.application_number} to {args.file}")
    return EXIT_OK


def validate_application(args) -> int:
    """Validate a pay application. Returns 1 when it has errors.

    Args:
        args: Command-line arguments
    """
    data = _load(args)
    application = _get_application(data, args.number)
    calculation = _engine().snapshot_calculation(application)
    print_validation(calculation.validation)
    return EXIT_OK if calculation.is_valid else EXIT_INVALID


def submit_application(args) -> int:
    """Submit a draft pay application.

    Args:
        args: Command-line arguments
    """
    data = _load(args)
    application = _get_application(data, args.number)
    draft = PayApplicationDraft.from_snapshot(data, application, engine=_engine())

    try:
        submitted = draft.freeze(accept_warnings=args.accept_warnings)
    except FinalizationBlockedError as e:
        print(f"Cannot submit pay application #{args.number}: {e}")
        print_validation(e.validation)
        if e.validation.is_valid:
            print("Use --accept-warnings to submit anyway.")
        return EXIT_INVALID

    save_project_file(data.with_application(submitted), args.file)
    print(
        f"Submitted pay application #{args.number}: "
        f"current payment due {format_currency(submitted.current_payment_due)}"
    )
    return EXIT_OK


def record_payment(args) -> int:
    """Mark a submitted pay application as paid.

    Args:
        args: Command-line arguments
    """
    data = _load(args)
    paid = mark_paid(_get_application(data, args.number))
    save_project_file(data.with_application(paid), args.file)
    print(f"Pay application #{args.number} marked paid")
    return EXIT_OK


def list_change_orders(args) -> int:
    """List change orders with approved and pending totals.

    Args:
        args: Command-line arguments
    """
    data = _load(args)
    if not data.change_orders:
        print("No change orders")
    else:
        _print_table(
            ["CO #", "Description", "Amount", "Status", "Approved"],
            [
                [str(co.co_number), co.description, format_currency(co.amount), co.status.value,
                 co.date_approved.isoformat() if co.date_approved else ""]
                for co in data.change_orders
            ],
            right_align=(2,)
        )
        print()
    print(f"Net approved change orders: {format_currency(net_change_orders(data.change_orders))}")
    print(f"Pending change orders:      {format_currency(pending_change_orders_total(data.change_orders))}")
    return EXIT_OK


def show_project_stats(args) -> int:
    """Show headline statistics for a project.

    Args:
        args: Command-line arguments
    """
    data = _load(args)
    stats = project_stats(data)
    latest = latest_application(data.pay_applications)

    print(f"Project: {data.project.name}")
    _print_table(
        ["Statistic", "Value"],
        [
            ["Original contract sum", format_currency(stats.original_contract_sum)],
            ["Net change orders", format_currency(stats.net_change_orders)],
            ["Pending change orders", format_currency(stats.pending_change_orders)],
            ["Contract sum to date", format_currency(stats.contract_sum_to_date)],
            ["Schedule of values total", format_currency(stats.sov_total)],
            ["Total billed (line 6)", format_currency(stats.total_billed)],
            ["Percent complete", format_percent(stats.percent_complete)],
            ["Retainage held", format_currency(stats.retainage_held)],
            ["Applications submitted", str(stats.application_count)],
            ["Latest application", f"#{latest.application_number} ({latest.status.value})" if latest else "none"],
            ["Next application number", str(stats.next_application_number)],
            ["Next billing date", stats.next_billing_date.isoformat()],
        ],
        right_align=(1,)
    )
    return EXIT_OK


def generate_report(args) -> int:
    """Generate a report for one pay application.

    Args:
        args: Command-line arguments
    """
    data = _load(args)
    _get_application(data, args.number)
    generator = ReportGenerator(get_section('reporting'), engine=_engine())

    try:
        result = generator.generate_pay_application_report(
            data, args.number, output_path=args.output, format=args.format
        )
    except ValueError as e:
        raise CommandError(str(e))

    if result['path']:
        print(f"Report saved to {result['path']}")
    else:
        print(result['content'])
    return EXIT_OK


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='cpas', description='Construction Pay Application System')

    # Add subcommand parsers
    subparsers = parser.add_subparsers(dest='command', help='Command')

    # Set up command groups
    setup_app_commands(subparsers)
    setup_co_commands(subparsers)
    setup_project_commands(subparsers)
    setup_report_commands(subparsers)

    # Add global arguments
    parser.add_argument('-v', '--verbose', action='store_true', help='Enable debug logging')
    return parser


def parse_args(args=None):
    """Parse command-line arguments.

    Args:
        args: Command-line arguments (defaults to sys.argv[1:])

    Returns:
        Parsed arguments
    """
    return build_parser().parse_args(args)


COMMANDS = {
    ('app', 'show'): show_application,
    ('app', 'new'): new_application,
    ('app', 'validate'): validate_application,
    ('app', 'submit'): submit_application,
    ('app', 'paid'): record_payment,
    ('co', 'list'): list_change_orders,
    ('project', 'stats'): show_project_stats,
    ('report', None): generate_report,
}


def main(argv=None) -> int:
    """Main entry point for the CPAS CLI.

    Returns:
        Exit code: 0 on success, 1 on validation failure, 2 on file or usage errors
    """
    parser = build_parser()
    args = parser.parse_args(argv)

    configure_logging(get_section('logging'), verbose=args.verbose)

    sub_command = getattr(args, f"{args.command}_command", None) if args.command else None
    handler = COMMANDS.get((args.command, sub_command))
    if handler is None:
        parser.print_help()
        return EXIT_USAGE

    logger.debug(f"Running command: {args.command} {sub_command or ''}".rstrip())
    try:
        return handler(args)
    except (ProjectFileError, ConfigError, CommandError,
            ImmutableApplicationError, InvalidTransitionError, OutOfSequenceError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_USAGE


if __name__ == '__main__':
    sys.exit(main())
