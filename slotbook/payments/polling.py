"""Client side of the paid-booking success page.

After Stripe redirects back, the booking may not exist yet because it is
created by the webhook. The page polls /api/bookings/status at a fixed
interval for a bounded number of attempts, then settles on "delayed"
instead of an error: the payment can still go through and the
confirmation email will still arrive.
"""
import logging
import time
from dataclasses import dataclass
from typing import Optional

import requests
from flask import current_app, has_app_context


log = logging.getLogger(__name__)

CONFIRMED = "confirmed"
FAILED = "failed"
DELAYED = "delayed"

DEFAULT_INTERVAL_SECONDS = 2.0
DEFAULT_MAX_ATTEMPTS = 15


@dataclass
class PollOutcome:
    status: str
    attempts: int
    booking: Optional[dict] = None


def poll_booking_status(
    base_url: str,
    session_id: str,
    interval: Optional[float] = None,
    max_attempts: Optional[int] = None,
    session=None,
    sleep=time.sleep,
    timeout: float = 10,
) -> PollOutcome:
    """Poll until the checkout is confirmed or failed, or attempts run out.

    not_found and pending keep polling, as do transport errors. interval and
    max_attempts default to the app's STATUS_POLL_* settings when called
    inside an app context.
    """
    cfg = current_app.config if has_app_context() else {}
    if interval is None:
        interval = cfg.get("STATUS_POLL_INTERVAL_SECONDS", DEFAULT_INTERVAL_SECONDS)
    if max_attempts is None:
        max_attempts = cfg.get("STATUS_POLL_MAX_ATTEMPTS", DEFAULT_MAX_ATTEMPTS)
    http = session or requests.Session()
    url = base_url.rstrip("/") + "/api/bookings/status"
    for attempt in range(1, max_attempts + 1):
        try:
            resp = http.get(url, params={"session_id": session_id}, timeout=timeout)
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as e:
            log.info("Status poll %s/%s for %s failed: %s", attempt, max_attempts, session_id, e)
            data = {}

        status = data.get("status")
        if status == CONFIRMED:
            return PollOutcome(CONFIRMED, attempt, data.get("booking"))
        if status == FAILED:
            return PollOutcome(FAILED, attempt)
        if attempt < max_attempts:
            sleep(interval)
    return PollOutcome(DELAYED, max_attempts)
