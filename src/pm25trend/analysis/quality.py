"""
Data quality assessment for measurement values.

Reports missing and negative rates per group and judges them against
the configured policy. Thresholds are never built in: without a threshold
a rate is reported but not judged.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from typing import Any

from pm25trend.analysis.aggregate import GroupKey, summarize
from pm25trend.config.settings import QualityPolicy
from pm25trend.etl.merge import MergedDataset
from pm25trend.normalization.columns import VALUE
from pm25trend.utils.logging import get_logger

log = get_logger(__name__)


def _judge(rate: float | None, limit: float | None) -> bool | None:
    if rate is None or limit is None:
        return None
    return rate <= limit


@dataclass(frozen=True)
class QualityFinding:
    """
    Quality rates of one group.

    Attributes:
        key: Group key.
        n_rows: Rows in the group.
        missing_rate: Share of rows with a missing value.
        negative_rate: Share of present values below zero.
        missing_ok: Whether missing_rate is within policy (None if not judged).
        negative_ok: Whether negative_rate is within policy (None if not judged).
    """

    key: tuple[Any, ...]
    n_rows: int
    missing_rate: float | None
    negative_rate: float | None
    missing_ok: bool | None
    negative_ok: bool | None

    @property
    def passed(self) -> bool:
        """False only if a judged rate exceeds its threshold."""
        return self.missing_ok is not False and self.negative_ok is not False


@dataclass(frozen=True)
class QualityAssessment:
    """
    Quality findings for a merged dataset.

    Attributes:
        policy: Thresholds applied.
        by: Grouping of the findings.
        findings: One finding per group.
        rejected_records: Lines skipped for arity mismatch, per period.
        coerced_cells: Cells set to missing by failed coercion, per period.
    """

    policy: QualityPolicy
    by: tuple[GroupKey, ...]
    findings: list[QualityFinding]
    rejected_records: dict[int, int]
    coerced_cells: dict[int, int]

    @property
    def passed(self) -> bool:
        """Whether every group is within policy."""
        return all(finding.passed for finding in self.findings)

    def failures(self) -> list[QualityFinding]:
        """Groups that exceed a threshold."""
        return [finding for finding in self.findings if not finding.passed]


def assess_quality(
    dataset: MergedDataset,
    policy: QualityPolicy,
    by: Iterable[GroupKey | str] = (GroupKey.PERIOD,),
    field: str = VALUE,
) -> QualityAssessment:
    """
    Assess missing and negative rates of a measurement column.

    Args:
        dataset: Merged observations.
        policy: Acceptable rates.
        by: Grouping dimensions for the rates.
        field: Measurement column.

    Returns:
        QualityAssessment object. Every merged period has a finding when
        grouping by period, including periods without rows.
    """
    summary = summarize(dataset, by=by, field=field, periods=dataset.periods)

    findings = [
        QualityFinding(
            key=key,
            n_rows=stats.n_rows,
            missing_rate=stats.missing_rate,
            negative_rate=stats.negative_rate,
            missing_ok=_judge(stats.missing_rate, policy.max_missing_rate),
            negative_ok=_judge(stats.negative_rate, policy.max_negative_rate),
        )
        for key, stats in summary.items()
    ]

    assessment = QualityAssessment(
        policy=policy,
        by=summary.by,
        findings=findings,
        rejected_records={p: r.rejected_records for p, r in dataset.reports.items()},
        coerced_cells={p: r.coerced_to_missing for p, r in dataset.reports.items()},
    )

    for finding in findings:
        log.info(
            "Quality assessment",
            group=list(finding.key),
            rows=finding.n_rows,
            missing_rate=finding.missing_rate,
            negative_rate=finding.negative_rate,
        )
    if not assessment.passed:
        log.warning(
            "Quality thresholds exceeded",
            groups=[list(f.key) for f in assessment.failures()],
        )

    return assessment
