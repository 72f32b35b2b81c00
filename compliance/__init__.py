# =============================================================================
# ELV COMPLIANCE ENGINE - COMPLIANCE PACKAGE
# =============================================================================
# This package contains all calculation engines for the compliance dashboard.
#
# Modules:
# - catalog: Typed read-only reference data (parts, models, KPIs, scores)
# - aggregation: Counting, summing and percentage helpers
# - filters: Cascading filter option resolution
# - proration: Fiscal-year window proration
# - cbam: Carbon-border liability and readiness
# - classifier: Compliant / Warning / Non-Compliant status bands
# - ranking: Weighted KPI evaluation matrix
# - targets: Session target overlay and material target rows
# - report: Orchestrates the engines into ready-to-render tables
# - validation_report: Invariant checks over report and ranking output
# - workbook_bridge: Catalog workbook (xlsx) reader
# - logging_conf: Root logger setup for the CLI
# =============================================================================

__version__ = "0.1.0"
