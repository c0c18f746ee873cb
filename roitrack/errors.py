"""
Exception types raised by the tracker.

Every error here is recoverable at the session boundary: a failing frame
leaves the session untouched and the caller simply retries on the next frame.
"""


class TrackerError(Exception):
    """Base class for all tracker errors."""


class InvalidInput(TrackerError):
    """Malformed geometry: bad ROI, box list shape, seed index or seed point."""


class InvalidSeed(TrackerError):
    """Seed neighbourhood has too few coloured pixels to build a histogram."""


class UnsupportedFormat(TrackerError):
    """Frame buffer layout or dtype is not recognised."""


class InitializationError(TrackerError):
    """Session resources could not be allocated; tracking cannot start."""
