# =============================================================================
# DAIRY BILLING ENGINE - CORE PACKAGE
# =============================================================================
# Pure calculation modules for milk procurement billing.
#
# Modules:
# - period_key: Composite bill-period identifier
# - periods: Bill-period calendar (generation, date classification, naming)
# - valuation: Derived collection fields (SNF, liters, kg fat, kg SNF)
# - aggregation: Grouped sums and payment ratios over collections
# - rates: Target Kg-Fat rate lookup
# - reports: Bill check, supply analysis, procurement comparison
# - collection_import: Bulk-import row normalisation
# - presentation: Display sentinels and formatting
# - settings: YAML configuration
# - store: JSON collection-store client
# =============================================================================

__version__ = "0.1.0"
