# app/services/overlap.py
from __future__ import annotations

from datetime import datetime


def overlaps(
    start_a: datetime,
    end_a: datetime,
    start_b: datetime,
    end_b: datetime,
) -> bool:
    """
    Half-open interval overlap test.

    Two ranges [start_a, end_a) and [start_b, end_b) overlap when
    start_a < end_b and end_a > start_b. Ranges that only touch at an
    endpoint (10:00-11:00 and 11:00-12:00) do not overlap.

    The formula is applied literally; no validation of start < end.
    """
    return start_a < end_b and end_a > start_b
