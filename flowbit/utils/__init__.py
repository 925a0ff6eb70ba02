"""Utility functions."""

from flowbit.utils.timezone import get_utc_now, isoformat, seconds_since, to_utc

__all__ = ["get_utc_now", "isoformat", "seconds_since", "to_utc"]
