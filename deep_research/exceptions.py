"""Error taxonomy for the research pipeline.

Provider and parsing failures are always recovered where they happen.
Persistence failures are the only errors allowed to end a run.
"""

from __future__ import annotations


class ResearchError(Exception):
    """Base class for pipeline errors."""


class ProviderTransientError(ResearchError):
    """A single search, extract or generation call failed."""

    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(f"{provider}: {message}")


class MalformedOutputError(ResearchError):
    """A generation call returned text that does not hold the expected structure."""

    def __init__(self, message: str, raw: str = ""):
        self.raw = raw
        super().__init__(message)


class PersistenceError(ResearchError):
    """Writing or reading run state failed."""

    def __init__(self, operation: str, table: str, message: str):
        self.operation = operation
        self.table = table
        super().__init__(f"{operation} on {table} failed: {message}")
