"""Shared helpers."""

from designhub.utils.dates import ensure_aware, overlaps, parse_datetime, to_iso

__all__ = ["ensure_aware", "overlaps", "parse_datetime", "to_iso"]
