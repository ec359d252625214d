"""One policy for calendar sync, refunds and email around a booking.

Side effects run after the booking row is safely written. Their failures are
logged with enough context to fix things by hand and never reach the caller.
"""
import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional


log = logging.getLogger(__name__)


@dataclass
class SideEffectOutcome:
    operation: str
    ok: bool
    value: Any = None
    error: Optional[str] = None


def fire(operation: str, fn: Callable, *args, booking_id=None, **kwargs) -> SideEffectOutcome:
    try:
        value = fn(*args, **kwargs)
    except Exception as e:
        log.exception("Side effect %s failed for booking %s: %s", operation, booking_id, e)
        return SideEffectOutcome(operation, False, error=str(e))
    return SideEffectOutcome(operation, True, value=value)
