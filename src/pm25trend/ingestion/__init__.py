"""
Data ingestion layer for loading period files with schema validation.

All raw data loading happens through this module to ensure
consistent parsing, typing and validation at system boundaries.
"""
