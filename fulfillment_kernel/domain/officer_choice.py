"""
Module: fulfillment_kernel.domain.officer_choice
Responsibility: Pick the least-loaded eligible officer from a set of
    workload snapshots.
Architecture position: Kernel > Domain.  Zero I/O.  WorkloadSelector loads
    the snapshots; this module only decides.

Algorithm:
    1. Drop the excluded officer, inactive accounts and anyone not AVAILABLE.
    2. Drop officers at or over capacity (active_orders_count >= max).
    3. Sort by active_orders_count, then by officer id (lexicographic).
    4. Return the first, or None when nobody is eligible.

There is no fallback to unavailable officers: an empty result
is a capacity outcome the caller logs, not an error.
"""

from collections.abc import Iterable

from fulfillment_kernel.domain.dtos import OfficerWorkload
from fulfillment_kernel.domain.statuses import AvailabilityStatus


def is_eligible(candidate: OfficerWorkload) -> bool:
    """Whether the officer can take one more order right now."""
    return (
        candidate.is_active
        and candidate.availability_status == AvailabilityStatus.AVAILABLE
        and candidate.active_orders_count < candidate.max_active_orders
    )


def choose_officer(
    candidates: Iterable[OfficerWorkload],
    exclude_officer_id: str | None = None,
) -> OfficerWorkload | None:
    """Return the best eligible candidate, or None."""
    eligible = [
        c for c in candidates
        if c.officer_id != exclude_officer_id and is_eligible(c)
    ]
    if not eligible:
        return None
    eligible.sort(key=lambda c: (c.active_orders_count, c.officer_id))
    return eligible[0]
