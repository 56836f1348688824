"""
Analysis layer: grouped statistics, site overlap and data quality.
"""

from pm25trend.analysis.aggregate import GroupKey, GroupStatistics, GroupSummary, summarize
from pm25trend.analysis.overlap import SiteOverlap, resolve_site_overlap, site_comparison
from pm25trend.analysis.quality import QualityAssessment, QualityFinding, assess_quality

__all__ = [
    "GroupKey",
    "GroupStatistics",
    "GroupSummary",
    "QualityAssessment",
    "QualityFinding",
    "SiteOverlap",
    "assess_quality",
    "resolve_site_overlap",
    "site_comparison",
    "summarize",
]
