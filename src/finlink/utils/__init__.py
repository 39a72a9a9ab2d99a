"""Shared helpers for finlink."""

from .dates import to_iso_timestamp

__all__ = ["to_iso_timestamp"]
