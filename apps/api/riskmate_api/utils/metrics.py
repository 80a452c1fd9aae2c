"""Prometheus metrics."""

from prometheus_client import Counter, Histogram

# Append metrics
ledger_appends = Counter(
    "riskmate_ledger_appends_total",
    "Total ledger append attempts by outcome",
    ["outcome"],
)

ledger_append_retries = Counter(
    "riskmate_ledger_append_retries_total",
    "Appends retried after losing a sequence race",
)

# Verification metrics
ledger_verifications = Counter(
    "riskmate_ledger_verifications_total",
    "Total ledger verifications",
    ["scope", "status"],
)

ledger_chain_verify_duration = Histogram(
    "riskmate_ledger_chain_verify_duration_seconds",
    "Full chain verification duration",
)

# Reporting cache metrics
reporting_cache_requests = Counter(
    "riskmate_reporting_cache_requests_total",
    "Reporting cache lookups",
    ["result"],
)

reporting_cache_invalidations = Counter(
    "riskmate_reporting_cache_invalidations_total",
    "Reporting cache invalidations triggered by material events",
)
