"""
Ranking of attributed totals into bounded contributor lists.
"""

from typing import List, Mapping

from perfkit.backend.models import ContributorEntry

DEFAULT_TOP_N = 10


def percent_of(value: float, total: float) -> float:
    """Share of ``total`` held by ``value``, clamped to [0, 100]"""
    if total <= 0:
        return 0.0
    return min(max(value / total * 100, 0.0), 100.0)


def top_n(
    totals: Mapping[str, int],
    grand_total: int,
    n: int = DEFAULT_TOP_N,
) -> List[ContributorEntry]:
    """
    Return the ``n`` largest totals, largest first.

    Entries with equal values keep the order in which their keys were first
    inserted into ``totals``. Each entry's percent is its share of
    ``grand_total``, or 0 when the grand total is not positive.

    Args:
        totals: Attribution key to accumulated value
        grand_total: Total the percentages are relative to
        n: Maximum number of entries to return

    Returns:
        List[ContributorEntry]: At most ``n`` entries
    """
    if n <= 0:
        return []

    # sorted() is stable, so ties keep insertion order
    ranked = sorted(totals.items(), key=lambda item: item[1], reverse=True)

    return [
        ContributorEntry(name=name, value=value, percent=percent_of(value, grand_total))
        for name, value in ranked[:n]
    ]
