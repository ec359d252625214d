import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

import stripe
from flask import current_app

from slotbook.errors import PaymentNotConfigured
from slotbook.scheduling.timeutil import ensure_utc, utcnow


log = logging.getLogger(__name__)


@dataclass
class CheckoutResult:
    session_id: str
    url: str


@dataclass
class RefundResult:
    success: bool
    refund_id: Optional[str] = None
    error: Optional[str] = None


def is_stripe_configured() -> bool:
    key = current_app.config.get("STRIPE_SECRET_KEY")
    return bool(key and key.startswith("sk_"))


def _configure_stripe() -> None:
    if not is_stripe_configured():
        raise PaymentNotConfigured("Stripe is not configured")
    stripe.api_key = current_app.config["STRIPE_SECRET_KEY"]
    stripe.default_http_client = stripe.RequestsClient(
        timeout=current_app.config.get("UPSTREAM_TIMEOUT_SECONDS", 10)
    )


def create_checkout_session(
    *,
    event_type_id: int,
    event_title: str,
    price_cents: int,
    host_name: str,
    guest_email: str,
    guest_name: str,
    guest_timezone: str,
    booking_start_time: str,
    booking_notes: Optional[str],
    success_url: str,
    cancel_url: str,
) -> CheckoutResult:
    """Stripe Checkout session with inline price data.

    The intended booking rides along as session metadata; nothing is
    booked until the webhook confirms payment.
    """
    _configure_stripe()
    expiry_minutes = current_app.config.get("CHECKOUT_EXPIRY_MINUTES", 30)
    expires_at = int((utcnow() + timedelta(minutes=expiry_minutes)).timestamp())

    session = stripe.checkout.Session.create(
        mode="payment",
        payment_method_types=["card"],
        customer_email=guest_email,
        line_items=[{
            "price_data": {
                "currency": current_app.config.get("STRIPE_CURRENCY", "usd"),
                "unit_amount": price_cents,
                "product_data": {
                    "name": event_title,
                    "description": f"Meeting with {host_name}",
                },
            },
            "quantity": 1,
        }],
        metadata={
            "event_type_id": str(event_type_id),
            "guest_email": guest_email,
            "guest_name": guest_name,
            "guest_timezone": guest_timezone,
            "booking_start_time": booking_start_time,
            "booking_notes": booking_notes or "",
        },
        success_url=success_url,
        cancel_url=cancel_url,
        expires_at=expires_at,
    )
    if not session.get("url"):
        raise RuntimeError("Stripe returned a checkout session without a URL")
    return CheckoutResult(session["id"], session["url"])


def is_eligible_for_refund(booking_start: datetime, refund_window_hours: int, now: Optional[datetime] = None) -> bool:
    """True while at least refund_window_hours remain before booking_start."""
    remaining = ensure_utc(booking_start) - (now or utcnow())
    return remaining >= timedelta(hours=refund_window_hours)


def process_refund(payment_intent_id: str, amount_cents: Optional[int] = None) -> RefundResult:
    """Refund a payment intent in full, or amount_cents of it."""
    try:
        _configure_stripe()
        params = {"payment_intent": payment_intent_id}
        if amount_cents is not None:
            params["amount"] = amount_cents
        refund = stripe.Refund.create(**params)
    except Exception as e:
        log.warning("Refund failed for payment intent %s: %s", payment_intent_id, e)
        return RefundResult(False, error=str(e))
    return RefundResult(True, refund_id=refund["id"])


def construct_webhook_event(payload: bytes, signature: str):
    secret = current_app.config.get("STRIPE_WEBHOOK_SECRET")
    if not secret:
        raise PaymentNotConfigured("Stripe webhook secret not configured")
    return stripe.Webhook.construct_event(payload, signature, secret)
