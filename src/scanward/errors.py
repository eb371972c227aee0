"""Exception types shared across scanward."""

from __future__ import annotations


class ScanwardError(Exception):
    """Base exception for all scanward errors."""


class FeedError(ScanwardError):
    """The remote vulnerability feed failed (timeout, HTTP error, bad JSON)."""


class PolicyLoadError(ScanwardError):
    """A policy or suppression document could not be interpreted."""


class StoreError(ScanwardError):
    """The persistence layer was used incorrectly or is unavailable."""
