"""
durloader - streaming bulk loader for quarterly DUR claim extracts.

Reads delimited claim files, maps drifting headers onto the canonical
record, validates each row and writes bounded batches into PostgreSQL
with one array-bound INSERT per batch.
"""

__version__ = "0.3.0"
