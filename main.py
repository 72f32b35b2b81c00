# =============================================================================
# ELV COMPLIANCE ENGINE - MAIN ENTRY POINT
# =============================================================================
# Command-line interface for running the compliance engine.
#
# Usage:
#   python main.py report --from 2025-04-01 --to 2025-09-30 --material Steel
#   python main.py rank --set recyclers --weight K1=40 --weight K2=60
#   python main.py options --model evitara
#   python main.py validate --profile strict
#   python main.py build-catalog-from-workbook --xlsx catalog.xlsx
# =============================================================================

import argparse
import logging
import sys
from datetime import date
from pathlib import Path

import yaml

from compliance.catalog import load_catalog_file, validate_catalog
from compliance.config import load_profile_config
from compliance.filters import FilterState, default_filter_state
from compliance.logging_conf import configure_logging
from compliance.ranking import WeightValidationError, WeightVector, ranking_rows
from compliance.report import build_report, cost_by_material
from compliance.validation_report import generate_validation_report, format_report
from compliance.workbook_bridge import load_catalog_from_workbook

logger = logging.getLogger(__name__)

SELECTION_ARGS = ["material", "model", "supplier", "grade", "hs_code"]


def load_inputs(args):
    """Load profile config and catalog, printing catalog integrity errors."""
    config = load_profile_config(args.profile, Path(args.config_dir))
    catalog = load_catalog_file(Path(args.catalog))

    errors = validate_catalog(catalog)
    if errors:
        print("\nCATALOG ERRORS:")
        for error in errors:
            print(f"  - {error}")
    return config, catalog


def filter_state_from_args(args, config) -> FilterState:
    start_month = config.get("fiscal_year", {}).get("start_month", 4)
    default = default_filter_state(date.today(), start_month)
    return FilterState(
        date_from=date.fromisoformat(args.date_from) if args.date_from else default.date_from,
        date_to=date.fromisoformat(args.date_to) if args.date_to else default.date_to,
    )


def selections_from_args(args):
    return {
        name: getattr(args, name)
        for name in SELECTION_ARGS
        if getattr(args, name, None)
    }


def run_report(args):
    """Build a report for one selection and print summary."""
    config, catalog = load_inputs(args)
    filter_state = filter_state_from_args(args, config)
    report = build_report(catalog, config, filter_state, selections_from_args(args))

    print(f"\nCompliance report: {filter_state.date_from} to {filter_state.date_to}")
    print("-" * 40)

    if report.errors:
        print("\nERRORS:")
        for error in report.errors:
            print(f"  - {error}")

    if report.warnings:
        print("\nWARNINGS:")
        for warning in report.warnings:
            print(f"  - {warning}")

    print("\nKEY METRICS:")
    print(f"  Fiscal Year:         {', '.join(report.fiscal_years)}")
    print(f"  Proration Factor:    {report.proration_factor:.3f}")
    print(f"  Active Models:       {sum(report.market_split.values())} "
          f"(Domestic {report.market_split.get('Domestic', 0)}, Export {report.market_split.get('Export', 0)})")
    print(f"  Carbon Price:        EUR {report.carbon_price:,.2f} / tCO2e")
    print(f"  Parts:               {report.part_status.total}")
    print(f"  Compliant Parts:     {report.part_status.compliant_pct:.1f}%")
    print(f"  Parts At Risk:       {report.part_status.at_risk}")
    print(f"  Projected CBAM Cost: EUR {report.total_projected_cost:,.0f}")

    print("\nCBAM COST BY MATERIAL:")
    for material, amount in cost_by_material(report).items():
        print(f"  {material:12}: EUR {amount:>15,.0f}")

    print("\nMODELS:")
    for row in report.model_rows:
        epr = f"{row['epr_actual']:.1f}% / {row['epr_target']:.1f}%" if row["epr_target"] is not None else "n/a"
        print(
            f"  {row['name']:16} readiness {row['cbam_readiness']:5.1f}%  {row['status']:14}"
            f"  EPR {epr}  {row['epr_status'] or ''}"
        )

    print("\nRVSF TARGETS:")
    for name, value in report.rvsf_targets.items():
        print(f"  {name:20}: {value:>10,.1f}")

    print("\nMATERIAL TARGETS:")
    for row in report.material_rows:
        print(
            f"  {row['material']:12}: {row['achieved']:>8,.0f} / {row['prorated_target']:>8,.0f} "
            f"{row['unit']}  ({row['progress_pct']:.1f}%)  {row['status']}"
        )

    return report


def parse_weights(pairs):
    weights = {}
    for pair in pairs or []:
        kpi_id, _, value = pair.partition("=")
        weights[kpi_id.strip()] = float(value)
    return weights


def run_rank(args):
    """Rank the entities of one ranking set and print the evaluation matrix."""
    _, catalog = load_inputs(args)
    ranking = catalog.ranking_set(args.set)
    vector = WeightVector(ranking.kpis)

    for kpi_id, value in parse_weights(args.weight).items():
        vector.set_weight(kpi_id, value)

    try:
        vector.save()
    except WeightValidationError as exc:
        print(f"\n{exc}")
        print("Ranking with the default weights instead.")
        vector.cancel()

    ranked = vector.rank(ranking.entity_scores)

    print(f"\nRanking: {args.set}")
    print("-" * 40)
    print("WEIGHTS:")
    for kpi in ranking.kpis:
        print(f"  {kpi.name:30}: {vector.committed[kpi.kpi_id]:5.1f}%")

    print("\nRESULTS:")
    for row in ranking_rows(ranked, ranking.kpis):
        print(f"  {row['position']:>2}. {row['entity']:30} {row['total']:6.2f}")

    return ranked


def run_options(args):
    """Print the resolved option set of every part filter."""
    config, catalog = load_inputs(args)
    report = build_report(
        catalog, config, filter_state_from_args(args, config), selections_from_args(args)
    )

    print("\nFILTER OPTIONS:")
    for name, values in report.options.items():
        print(f"  {name:10}: {', '.join(str(v) for v in values)}")

    return report.options


def run_validation(args):
    """Run invariant checks over the default report and every ranking set."""
    print("\n" + "=" * 60)
    print("RUNNING VALIDATION")
    print("=" * 60)

    config, catalog = load_inputs(args)
    report = build_report(catalog, config, filter_state_from_args(args, config))

    rankings = {}
    for name, ranking in catalog.rankings.items():
        vector = WeightVector(ranking.kpis)
        rankings[name] = (vector.rank(ranking.entity_scores), vector.committed)

    validation = generate_validation_report(args.profile, report, rankings)
    print(format_report(validation))
    return validation


def build_from_workbook(workbook: Path, output: Path):
    """Build catalog YAML from workbook sheets."""
    catalog = load_catalog_from_workbook(workbook)
    output.parent.mkdir(parents=True, exist_ok=True)
    with open(output, "w", encoding="utf-8") as handle:
        yaml.safe_dump(catalog, handle, sort_keys=False, allow_unicode=True)
    print(f"Wrote workbook-based catalog to: {output}")


def add_common_args(parser):
    parser.add_argument("--config-dir", default="config", help="Configuration directory")
    parser.add_argument("--profile", "-p", default="base", help="Configuration profile")
    parser.add_argument("--catalog", "-c", default="data/catalog.yaml", help="Catalog YAML")


def add_selection_args(parser):
    parser.add_argument("--from", dest="date_from", help="Window start (YYYY-MM-DD)")
    parser.add_argument("--to", dest="date_to", help="Window end (YYYY-MM-DD)")
    for name in SELECTION_ARGS:
        parser.add_argument(f"--{name.replace('_', '-')}", dest=name, action="append",
                            help=f"Filter by {name.replace('_', ' ')} (repeatable)")


def main(argv=None):
    parser = argparse.ArgumentParser(description="ELV Compliance Engine")
    parser.add_argument("--log-level", default="WARNING", help="Logging level")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    report_parser = subparsers.add_parser("report", help="Build a compliance report")
    add_common_args(report_parser)
    add_selection_args(report_parser)

    rank_parser = subparsers.add_parser("rank", help="Rank entities by weighted KPIs")
    add_common_args(rank_parser)
    rank_parser.add_argument("--set", "-s", default="recyclers", help="Ranking set name")
    rank_parser.add_argument("--weight", "-w", action="append",
                             help="KPI weight as KPI_ID=PCT (repeatable)")

    options_parser = subparsers.add_parser("options", help="Resolve filter options")
    add_common_args(options_parser)
    add_selection_args(options_parser)

    val_parser = subparsers.add_parser("validate", help="Run validation")
    add_common_args(val_parser)
    val_parser.set_defaults(date_from=None, date_to=None)

    build_parser = subparsers.add_parser(
        "build-catalog-from-workbook",
        help="Generate catalog YAML from a compliance workbook"
    )
    build_parser.add_argument("--xlsx", required=True, help="Path to workbook file")
    build_parser.add_argument("--output", default="data/catalog.yaml", help="Output catalog YAML path")

    args = parser.parse_args(argv)
    configure_logging(args.log_level)

    try:
        if args.command == "report":
            run_report(args)
        elif args.command == "rank":
            run_rank(args)
        elif args.command == "options":
            run_options(args)
        elif args.command == "validate":
            run_validation(args)
        elif args.command == "build-catalog-from-workbook":
            build_from_workbook(Path(args.xlsx), Path(args.output))
        else:
            parser.print_help()
    except (KeyError, ValueError, FileNotFoundError) as exc:
        logger.error("%s", exc)
        sys.exit(1)


if __name__ == "__main__":
    main()
