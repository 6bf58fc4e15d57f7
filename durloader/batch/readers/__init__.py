"""
Delimited source readers.
"""

from .csv_reader import CSVReader, CsvFileInfo, DelimitedSource, SourceRow

__all__ = [
    "CSVReader",
    "CsvFileInfo",
    "DelimitedSource",
    "SourceRow",
]
