"""
Merging and orchestration for PM2.5 period data.

``pm25trend.etl.merge`` unions period datasets; ``pm25trend.etl.pipeline``
runs load, merge, summary, quality and overlap steps end to end.
"""
