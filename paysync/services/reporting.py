"""Read-side aggregation over locator output and fetched gateway orders."""

from collections import Counter
from typing import Iterable

from paysync.models.reconciliation import PendingOrder, PendingOrdersSummary

BREAKDOWN_STATUSES = ("created", "attempted", "paid", "cancelled")


def pending_summary(pending: Iterable[PendingOrder]) -> PendingOrdersSummary:
    orders = list(pending)
    return PendingOrdersSummary(
        total_pending=len(orders),
        total_amount=sum(o.amount or 0 for o in orders),
    )


def status_breakdown(statuses: Iterable[str]) -> dict[str, int]:
    """Counts of created/attempted/paid/cancelled; other statuses are not broken out."""
    counts = Counter(statuses)
    return {s: counts.get(s, 0) for s in BREAKDOWN_STATUSES}


def status_tally(statuses: Iterable[str]) -> dict[str, int]:
    """Counts for every status seen."""
    return dict(Counter(statuses))
