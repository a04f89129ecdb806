"""Typed failures raised at the storage boundary.

Each error also derives from the closest built-in exception so callers that
only know about ``FileNotFoundError`` / ``ValueError`` / ``OSError`` keep
working.
"""

from __future__ import annotations


class CTRotatorError(Exception):
    """Base class for all failures reported by :mod:`ct_rotator`."""


class NotFoundError(CTRotatorError, FileNotFoundError):
    """No matching slice records exist in the input location."""


class FormatError(CTRotatorError, ValueError):
    """A slice is missing required fields or disagrees with the stack."""


class SliceIOError(CTRotatorError, OSError):
    """Reading or writing a slice failed at the storage boundary."""
