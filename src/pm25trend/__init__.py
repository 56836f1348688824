"""
pm25trend: PM2.5 Monitoring Trend Pipeline.

This package reads yearly EPA fine-particulate monitoring extracts,
merges them into one tagged dataset and computes the grouped statistics
and site overlaps used to compare periods.
"""

from importlib.metadata import version

__version__ = version("pm25trend")

__all__ = ["__version__"]
