from typing import Iterable, List, Optional

from slotbook.scheduling.availability import Interval


CANCELLED = "CANCELLED"


class BusyIntervals:
    """Busy time from internal bookings and external calendar blocks.

    Buffers widen the candidate slot, never the busy interval. Cancelled
    bookings never count as busy.
    """

    def __init__(
        self,
        bookings: Iterable = (),
        external: Iterable = (),
        buffer_before: int = 0,
        buffer_after: int = 0,
        ignore_booking_id: Optional[int] = None,
    ):
        self.buffer_before = buffer_before or 0
        self.buffer_after = buffer_after or 0
        self.intervals: List[Interval] = []
        for b in bookings:
            if b.status == CANCELLED:
                continue
            if ignore_booking_id is not None and b.id == ignore_booking_id:
                continue
            self.intervals.append(Interval.of(b.start_utc, b.end_utc))
        for busy in external:
            self.intervals.append(_external_interval(busy))

    def conflicts(self, slot: Interval) -> bool:
        padded = slot.expanded(self.buffer_before, self.buffer_after)
        return any(padded.overlaps(busy) for busy in self.intervals)

    def __len__(self):
        return len(self.intervals)


def _external_interval(busy) -> Interval:
    if isinstance(busy, Interval):
        return busy
    if isinstance(busy, dict):
        return Interval.of(busy["start"], busy["end"])
    start, end = busy
    return Interval.of(start, end)
