#!/usr/bin/env python3
"""
Exceptions raised by the report pipeline.

Only fatal conditions are exceptions. Missing population targets, ambiguous
lookups and negative daily deltas are handled in the data itself.
"""


class ReportError(Exception):
    """Base class for all report pipeline errors"""


class MalformedInputError(ReportError, ValueError):
    """Input table cannot be tidied (bad date header, non-numeric count, duplicate key, missing column)"""


class DataFetchError(ReportError, RuntimeError):
    """A source table could not be retrieved"""

    def __init__(self, source_key: str, reason: str):
        self.source_key = source_key
        self.reason = reason
        super().__init__(f"Failed to fetch '{source_key}': {reason}")
