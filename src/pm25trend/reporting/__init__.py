"""Console reporting for analysis results."""

from pm25trend.reporting.console import ConsoleReporter

__all__ = ["ConsoleReporter"]
