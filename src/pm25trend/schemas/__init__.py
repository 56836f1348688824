"""
Schema definitions using Pandera for data validation.

All data contracts are defined here to ensure explicit,
validated data structures throughout the pipeline.
"""

from pm25trend.schemas.monitoring import (
    MergedObservationSchema,
    MonitoringObservationSchema,
)

__all__ = [
    "MergedObservationSchema",
    "MonitoringObservationSchema",
]
