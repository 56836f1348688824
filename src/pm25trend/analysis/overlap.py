"""
Site overlap between periods.

Finds monitors that reported in both of two periods within one state and
ranks them by how much data they have. Choosing the representative site
is left to the caller.
"""

from dataclasses import dataclass

import pandas as pd

from pm25trend.analysis.aggregate import DEFAULT_QUANTILES, GroupKey, GroupSummary, summarize
from pm25trend.etl.merge import MergedDataset
from pm25trend.ingestion.binding import SiteKey
from pm25trend.normalization.columns import SITE_KEY_COLUMNS
from pm25trend.utils.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True, eq=False)
class SiteOverlap:
    """
    Monitors present in both compared periods.

    Attributes:
        state_code: State the comparison is restricted to.
        periods: The two compared periods.
        sites: Site keys observed in both periods.
        candidates: One row per overlapping site with ``n_<period>`` (rows)
            and ``present_<period>`` (non-missing values) per period,
            ``total`` rows and ``rank`` (1 = most rows).
    """

    state_code: int
    periods: tuple[int, int]
    sites: frozenset[SiteKey]
    candidates: pd.DataFrame

    def __len__(self) -> int:
        return len(self.sites)

    def ranked(self) -> list[SiteKey]:
        """Overlapping sites, most observations first."""
        return [
            SiteKey(int(s), int(c), int(i))
            for s, c, i in self.candidates[SITE_KEY_COLUMNS].itertuples(
                index=False, name=None
            )
        ]


def _check_periods(dataset: MergedDataset, periods: tuple[int, int]) -> None:
    first, second = periods
    if first == second:
        msg = f"Need two different periods to compare, got {periods}"
        raise ValueError(msg)
    unknown = [p for p in periods if p not in dataset.periods]
    if unknown:
        msg = f"Periods {unknown} not in dataset (has {list(dataset.periods)})"
        raise ValueError(msg)


def resolve_site_overlap(
    dataset: MergedDataset,
    state_code: int,
    periods: tuple[int, int],
) -> SiteOverlap:
    """
    Intersect the monitors of two periods within one state.

    Args:
        dataset: Merged observations.
        state_code: State to restrict to.
        periods: The two periods to compare.

    Returns:
        SiteOverlap with the shared sites and their ranked observation counts.

    Raises:
        ValueError: If the periods are equal or not in the dataset.
    """
    _check_periods(dataset, periods)
    first, second = periods

    in_state = dataset.for_state(state_code).for_periods(periods)
    sites = in_state.site_keys(first) & in_state.site_keys(second)

    counts = summarize(in_state, by=(GroupKey.PERIOD, GroupKey.SITE))

    rows = []
    for site in sites:
        row: dict[str, int] = site._asdict()
        for period in periods:
            stats = counts.get((period, site))
            row[f"n_{period}"] = stats.n_rows
            row[f"present_{period}"] = stats.count
        row["total"] = row[f"n_{first}"] + row[f"n_{second}"]
        rows.append(row)

    columns = [
        *SITE_KEY_COLUMNS,
        *(f"{prefix}_{p}" for p in periods for prefix in ("n", "present")),
        "total",
    ]
    candidates = (
        pd.DataFrame(rows, columns=columns)
        .sort_values(
            ["total", *SITE_KEY_COLUMNS], ascending=[False, True, True, True]
        )
        .reset_index(drop=True)
    )
    candidates["rank"] = range(1, len(candidates) + 1)

    log.info(
        "Resolved site overlap",
        state=state_code,
        periods=list(periods),
        sites_first=len(in_state.site_keys(first)),
        sites_second=len(in_state.site_keys(second)),
        overlap=len(sites),
    )

    return SiteOverlap(
        state_code=state_code,
        periods=periods,
        sites=frozenset(sites),
        candidates=candidates,
    )


def site_comparison(
    dataset: MergedDataset,
    site: SiteKey,
    periods: tuple[int, int] | None = None,
    quantiles: tuple[float, float] = DEFAULT_QUANTILES,
) -> GroupSummary:
    """
    Before/after statistics for one chosen monitor.

    Args:
        dataset: Merged observations.
        site: Monitor picked by the caller, e.g. from ``SiteOverlap.ranked()``.
        periods: Periods to compare (defaults to all periods).
        quantiles: Lower and upper box quantiles.

    Returns:
        Summary of the site's values grouped by period.
    """
    subset = dataset.for_site(site)
    if periods is not None:
        _check_periods(dataset, periods)
        subset = subset.for_periods(periods)
    return summarize(subset, by=(GroupKey.PERIOD,), quantiles=quantiles)
