"""Errors raised by the vendor clients."""

from __future__ import annotations


class VendorError(RuntimeError):
    """An upstream GPS vendor could not be reached or returned an unusable response."""
