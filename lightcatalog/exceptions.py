"""Catalog ingestion errors."""
from __future__ import annotations


class CatalogError(Exception):
    """Base class for errors surfaced while loading a catalog."""


class SourceUnavailableError(CatalogError):
    """The source could not be reached, answered with an error, or sent an unusable body."""

    def __init__(self, message: str = "Source unavailable"):
        super().__init__(message)


class EmptyResultError(CatalogError):
    """The source answered but produced no usable channels."""

    def __init__(self, message: str = "No channels found"):
        super().__init__(message)
