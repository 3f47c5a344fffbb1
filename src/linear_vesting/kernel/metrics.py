"""
Prometheus metrics for the vesting ledger.

Counters only; the ledger has no background work to time or gauge beyond
what the pool projection already reports.
"""

from prometheus_client import Counter

# ============================================================================
# Journal Metrics
# ============================================================================

events_appended_total = Counter(
    "vesting_events_appended_total",
    "Total number of events appended to the ledger journal",
    ["event_type"],
)

# ============================================================================
# Operation Metrics
# ============================================================================

operations_total = Counter(
    "vesting_operations_total",
    "Total number of ledger operations processed",
    ["operation", "status"],  # status: success, rejected
)

grants_created_total = Counter(
    "vesting_grants_created_total",
    "Total number of grants created",
)

units_granted_total = Counter(
    "vesting_units_granted_total",
    "Total units allocated to grants",
)

units_claimed_total = Counter(
    "vesting_units_claimed_total",
    "Total units paid out by claims",
)


def track_operation(operation: str, succeeded: bool) -> None:
    """Record the outcome of one ledger operation"""
    operations_total.labels(
        operation=operation,
        status="success" if succeeded else "rejected",
    ).inc()
