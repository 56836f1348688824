"""
Data normalization layer for standardizing data formats.

Handles column naming and date parsing to ensure consistent
data representation across period files.
"""
