# fieldops/core.py

"""Interval arithmetic shared by availability, conflict and suggestion code.

All intervals are half-open ``[start, end)``: an interval that ends exactly
when another begins does not overlap it.
"""

from datetime import datetime, timedelta, timezone, tzinfo
from typing import Iterable, Iterator, List, NamedTuple, Optional


class Interval(NamedTuple):
    start: datetime
    end: datetime

    @property
    def duration(self) -> timedelta:
        return self.end - self.start


class BusyInterval(NamedTuple):
    start: datetime
    end: datetime
    schedule_id: Optional[int] = None


def overlaps(start_a, end_a, start_b, end_b) -> bool:
    return start_a < end_b and start_b < end_a


def to_utc(value: datetime, assume_tz: Optional[tzinfo] = None) -> datetime:
    """Return ``value`` as an aware UTC datetime; naive values are read in ``assume_tz``."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=assume_tz or timezone.utc)
    return value.astimezone(timezone.utc)


def clip(intervals: Iterable, start: datetime, end: datetime) -> List[Interval]:
    clipped = []
    for iv in intervals:
        lo = max(iv.start, start)
        hi = min(iv.end, end)
        if lo < hi:
            clipped.append(Interval(lo, hi))
    return clipped


def merge_intervals(intervals: Iterable, join_touching: bool = True) -> List[Interval]:
    """Sort by start and collapse overlapping (and, by default, touching) intervals."""
    merged: List[Interval] = []
    for iv in sorted(intervals, key=lambda i: (i.start, i.end)):
        if iv.end <= iv.start:
            continue
        if merged:
            last = merged[-1]
            if iv.start < last.end or (join_touching and iv.start == last.end):
                if iv.end > last.end:
                    merged[-1] = Interval(last.start, iv.end)
                continue
        merged.append(Interval(iv.start, iv.end))
    return merged


def subtract_intervals(open_intervals: Iterable, blocked: Iterable) -> Iterator[Interval]:
    """Yield the parts of ``open_intervals`` not covered by ``blocked``.

    Output is ascending, non-overlapping and never contains empty intervals.
    """
    busy = merge_intervals(blocked)
    i = 0
    for block in merge_intervals(open_intervals):
        cursor = block.start
        while i < len(busy) and busy[i].end <= cursor:
            i += 1
        j = i
        while j < len(busy) and busy[j].start < block.end:
            if busy[j].start > cursor:
                yield Interval(cursor, busy[j].start)
            cursor = max(cursor, busy[j].end)
            if cursor >= block.end:
                break
            j += 1
        if cursor < block.end:
            yield Interval(cursor, block.end)


def covers(intervals: Iterable, start: datetime, end: datetime) -> bool:
    """True when a single (merged) interval contains all of ``[start, end)``."""
    for iv in merge_intervals(intervals):
        if iv.start <= start and end <= iv.end:
            return True
    return False
