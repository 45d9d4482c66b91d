# =============================================================================
# DAIRY BILLING ENGINE - MAIN ENTRY POINT
# =============================================================================
# Command-line interface over the billing engine.
#
# Usage:
#   python main.py periods --store http://localhost:5000
#   python main.py classify 2026-01-15 --store snapshots/
#   python main.py derive --qty-kg 10.3 --fat 4.5 --clr 28
#   python main.py bill-check --period 0-2026-2 --store snapshots/
#   python main.py supply-analysis --period 0-2026-2 --category Farmer
#   python main.py compare --periods 0-2026-1 0-2026-2
#   python main.py farmer-bill --period 0-2026-2 --farmer 17
#   python main.py export --period 0-2026-2 --xlsx out/bill_check.xlsx
#   python main.py validate
# =============================================================================

import argparse
import logging
from datetime import date
from pathlib import Path

import pandas as pd

from billing.periods import (
    base_for_key,
    generate_periods,
    classify_date,
    period_date_range,
    period_name_for_date,
    validate_base_periods,
)
from billing.reports import (
    bill_check_report,
    farmer_bill_report,
    unit_supply_analysis,
    procurement_comparison,
)
from billing.settings import (
    DEFAULT_CONFIG_DIR,
    SettingsError,
    category_order,
    load_settings,
    period_window,
    validate_settings,
)
from billing.store import JsonStore, StoreError
from billing.valuation import ValuationConstants, derive_fields
from billing.presentation import blank_if_none, format_currency, format_period_range
from ui.report_frames import (
    bill_check_frame,
    comparison_frame,
    export_frames,
    farmer_bill_frame,
    farmer_bills_frame,
    periods_frame,
    supply_analysis_frame,
)


LOGGER = logging.getLogger("billing.cli")


def _reference_date(args) -> date:
    return args.today or date.today()


def _print_errors(errors) -> None:
    if errors:
        print("\nERRORS:")
        for error in errors:
            print(f"  - {error}")


def _print_frame(frame: pd.DataFrame) -> None:
    with pd.option_context("display.max_rows", None, "display.max_columns", None, "display.width", 200):
        print(frame.to_string())


def show_periods(args, settings: dict, store: JsonStore):
    """Print the generated bill periods, locked periods included."""
    epoch, months_ahead = period_window(settings)
    extra_ids = store.locked_periods() + list(args.extra or [])
    periods = generate_periods(
        store.bill_periods(),
        extra_ids=extra_ids,
        reference_now=_reference_date(args),
        epoch=epoch,
        months_ahead=months_ahead,
    )
    print(f"\nBILL PERIODS ({len(periods)})")
    print("-" * 40)
    _print_frame(periods_frame(periods))
    return periods


def show_classification(args, settings: dict, store: JsonStore):
    base_periods = store.bill_periods()
    unique_id = classify_date(args.date, base_periods)
    print(f"Date:        {args.date}")
    print(f"Bill period: {unique_id or '-'}")
    print(f"Name:        {period_name_for_date(args.date, base_periods)}")
    return unique_id


def show_derived(args, settings: dict):
    constants = ValuationConstants.from_settings(settings)
    derived = derive_fields(args.qty_kg, args.fat, clr=args.clr, snf=args.snf, constants=constants)
    snf = derived.snf if derived.snf_recomputed else args.snf
    print(f"  SNF %:     {blank_if_none(snf, constants.snf_places) or '-'}")
    print(f"  Liters:    {blank_if_none(derived.qty, constants.qty_places) or '-'}")
    print(f"  Kg Fat:    {blank_if_none(derived.kg_fat, constants.kg_fat_places) or '-'}")
    print(f"  Kg SNF:    {blank_if_none(derived.kg_snf, constants.kg_snf_places) or '-'}")
    return derived


def build_bill_check(args, store: JsonStore):
    return bill_check_report(
        store.collections(),
        store.farmers(),
        store.branches(),
        store.bill_periods(),
        args.period,
        rate_configs=store.rate_configs(),
    )


def build_supply_analysis(args, settings: dict, store: JsonStore):
    reports = settings.get("reports", {})
    return unit_supply_analysis(
        store.collections(),
        store.farmers(),
        store.branches(),
        store.bill_periods(),
        args.period,
        category=getattr(args, "category", "All"),
        category_order=category_order(settings),
        default_category=reports.get("default_category", "Other"),
    )


def show_bill_check(args, settings: dict, store: JsonStore):
    report = build_bill_check(args, store)
    _print_errors(report.errors)
    if report.period is None:
        return report
    print(f"\nBILL CHECK - {report.period.name} (FY {report.period.financial_year})")
    print("-" * 40)
    _print_frame(bill_check_frame(report))
    return report


def show_supply_analysis(args, settings: dict, store: JsonStore):
    report = build_supply_analysis(args, settings, store)
    _print_errors(report.errors)
    if report.period is None:
        return report
    print(f"\nSUPPLY ANALYSIS - {report.period.name} ({report.days} days)")
    print("-" * 40)
    _print_frame(supply_analysis_frame(report))
    return report


def show_comparison(args, settings: dict, store: JsonStore):
    date_range = (args.date_from, args.date_to) if args.date_from and args.date_to else None
    report = procurement_comparison(
        store.collections(),
        store.farmers(),
        base_periods=store.bill_periods(),
        farmer_ids=args.farmer,
        period_ids=args.periods,
        date_range=date_range,
        shift=args.shift,
        single_farmer=bool(args.farmer) and len(args.farmer) == 1,
    )
    _print_errors(report.errors)
    if not report.errors:
        print(f"\nPROCUREMENT COMPARISON ({len(report.rows)} farmers)")
        print("-" * 40)
        _print_frame(comparison_frame(report))
    return report


def build_farmer_bills(args, store: JsonStore):
    return farmer_bill_report(
        store.collections(),
        store.farmers(),
        store.bill_periods(),
        args.period,
        adjustments=store.adjustments(),
        farmer_id=getattr(args, "farmer", None),
        branch_id=getattr(args, "branch", None),
    )


def show_farmer_bills(args, settings: dict, store: JsonStore):
    """Print one statement per farmer, or a summary when no farmer is given."""
    report = build_farmer_bills(args, store)
    _print_errors(report.errors)
    if report.period is None or report.errors:
        return report

    base = base_for_key(report.period.key, store.bill_periods())
    start, end = period_date_range(report.period.key, base)
    print(f"\nMILK BILL - {report.period.name} ({format_period_range(start, end)})")
    print("-" * 40)
    if not report.bills:
        print("No data found for this selection")
        return report

    if args.farmer:
        for bill in report.bills:
            print(f"{bill.code} {bill.name} ({bill.village})")
            _print_frame(farmer_bill_frame(bill))
            print(f"NET PAYABLE: {format_currency(bill.net_payable)}")
    else:
        _print_frame(farmer_bills_frame(report))
        print(f"\nTotal net payable: {format_currency(report.total_net_payable)}")
    return report


def export_workbook(args, settings: dict, store: JsonStore):
    """Write bill check, supply analysis and period sheets to one workbook."""
    bill_check = build_bill_check(args, store)
    supply = build_supply_analysis(args, settings, store)
    bills = build_farmer_bills(args, store)
    _print_errors(bill_check.errors)
    if bill_check.period is None:
        return None

    epoch, months_ahead = period_window(settings)
    periods = generate_periods(
        store.bill_periods(),
        extra_ids=store.locked_periods(),
        reference_now=_reference_date(args),
        epoch=epoch,
        months_ahead=months_ahead,
    )
    output = export_frames(
        {
            "Bill Check": bill_check_frame(bill_check),
            "Supply Analysis": supply_analysis_frame(supply),
            "Farmer Bills": farmer_bills_frame(bills),
            "Bill Periods": periods_frame(periods),
        },
        Path(args.xlsx),
    )
    print(f"Wrote report workbook to: {output}")
    return output


def run_validation(args, settings: dict, store: JsonStore) -> int:
    """Validate configuration and base cycle definitions."""
    print("\n" + "=" * 60)
    print("RUNNING VALIDATION")
    print("=" * 60)

    errors = validate_settings(settings)
    if args.store:
        errors.extend(validate_base_periods(store.bill_periods()))

    if errors:
        print("\nFAILED:")
        for error in errors:
            print(f"  - {error}")
        return 1
    print("\nPASSED")
    return 0


def build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--config-dir", default=str(DEFAULT_CONFIG_DIR),
                        help="Configuration directory")
    common.add_argument("--profile", "-p", default="base",
                        help="Configuration profile merged over base.yaml")
    common.add_argument("--store", "-s",
                        help="Store URL or snapshot directory (overrides configuration)")
    common.add_argument("--today", type=date.fromisoformat, help="Reference date YYYY-MM-DD (defaults to today)")
    common.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    parser = argparse.ArgumentParser(description="Dairy Billing Engine")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    periods_parser = subparsers.add_parser("periods", parents=[common], help="List bill periods")
    periods_parser.add_argument("--extra", nargs="*", help="Extra period ids to include")

    classify_parser = subparsers.add_parser("classify", parents=[common],
                                            help="Bill period of a date")
    classify_parser.add_argument("date", help="Date YYYY-MM-DD")

    derive_parser = subparsers.add_parser("derive", parents=[common],
                                          help="Derived fields of one collection entry")
    derive_parser.add_argument("--qty-kg", type=float, required=True)
    derive_parser.add_argument("--fat", type=float, required=True)
    derive_parser.add_argument("--clr", type=float)
    derive_parser.add_argument("--snf", type=float)

    bill_parser = subparsers.add_parser("bill-check", parents=[common],
                                        help="Per-branch bill check for a period")
    bill_parser.add_argument("--period", required=True, help="Bill period id")

    supply_parser = subparsers.add_parser("supply-analysis", parents=[common],
                                          help="Unit/category supply for a period")
    supply_parser.add_argument("--period", required=True, help="Bill period id")
    supply_parser.add_argument("--category", default="All", help="Supplier category filter")

    compare_parser = subparsers.add_parser("compare", parents=[common],
                                           help="Farmer procurement comparison")
    compare_parser.add_argument("--periods", nargs="*", help="Bill period ids")
    compare_parser.add_argument("--from", dest="date_from", help="Start date YYYY-MM-DD")
    compare_parser.add_argument("--to", dest="date_to", help="End date YYYY-MM-DD")
    compare_parser.add_argument("--shift", default="Both", choices=["AM", "PM", "Both"])
    compare_parser.add_argument("--farmer", nargs="*", help="Farmer ids (default: all)")

    export_parser = subparsers.add_parser("export", parents=[common],
                                          help="Export period reports to .xlsx")
    export_parser.add_argument("--period", required=True, help="Bill period id")
    export_parser.add_argument("--category", default="All", help="Supplier category filter")
    export_parser.add_argument("--xlsx", required=True, help="Output workbook path")

    farmer_bill_parser = subparsers.add_parser("farmer-bill", parents=[common],
                                               help="Farmer payment statements for a period")
    farmer_bill_parser.add_argument("--period", required=True, help="Bill period id")
    farmer_bill_parser.add_argument("--farmer", help="Farmer id (default: summary of all farmers)")
    farmer_bill_parser.add_argument("--branch", help="Restrict to one branch id")

    subparsers.add_parser("validate", parents=[common], help="Validate configuration")

    return parser


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 0

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        settings = load_settings(args.profile, Path(args.config_dir))
    except SettingsError as exc:
        print(f"Configuration error: {exc}")
        return 1

    if args.command == "validate":
        store = JsonStore.from_settings(settings, args.store)
        try:
            return run_validation(args, settings, store)
        except StoreError as exc:
            print(f"Store error: {exc}")
            return 1

    errors = validate_settings(settings)
    if errors:
        _print_errors(errors)
        return 1

    if args.command == "derive":
        show_derived(args, settings)
        return 0

    store = JsonStore.from_settings(settings, args.store)
    handlers = {
        "periods": show_periods,
        "classify": show_classification,
        "bill-check": show_bill_check,
        "supply-analysis": show_supply_analysis,
        "compare": show_comparison,
        "farmer-bill": show_farmer_bills,
        "export": export_workbook,
    }
    try:
        handlers[args.command](args, settings, store)
    except StoreError as exc:
        LOGGER.error("Store request failed: %s", exc)
        print(f"Store error: {exc}")
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
