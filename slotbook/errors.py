import logging

from flask import jsonify, request


log = logging.getLogger(__name__)


class BookingError(Exception):
    """Base class for errors surfaced to HTTP callers as JSON."""

    status_code = 500
    code = "error"

    def __init__(self, message: str = "", *, code: str | None = None):
        super().__init__(message)
        self.message = message or self.__class__.__name__
        if code:
            self.code = code

    def to_dict(self):
        return {"error": self.message, "code": self.code}


class NotFound(BookingError):
    status_code = 404
    code = "not_found"


class InvalidInput(BookingError):
    status_code = 400
    code = "invalid_input"


class InvalidTimeFormat(InvalidInput):
    code = "invalid_time_format"


class InvalidState(BookingError):
    status_code = 400
    code = "invalid_state"


class AlreadyCancelled(BookingError):
    status_code = 409
    code = "already_cancelled"


class BookingLimitExceeded(BookingError):
    status_code = 409
    code = "booking_limit_exceeded"


class SlotUnavailable(BookingError):
    status_code = 409
    code = "slot_unavailable"


class PaymentRequired(BookingError):
    status_code = 402
    code = "payment_required"


class PaymentNotConfigured(BookingError):
    status_code = 400
    code = "payment_not_configured"


class UpstreamUnavailable(BookingError):
    status_code = 502
    code = "upstream_unavailable"


class ConfigurationError(BookingError):
    status_code = 500
    code = "configuration_error"


def register_error_handlers(app):
    @app.errorhandler(BookingError)
    def _booking_error(exc: BookingError):
        if exc.status_code >= 500:
            log.error("%s: %s", exc.__class__.__name__, exc.message)
        return jsonify(exc.to_dict()), exc.status_code


def json_body() -> dict:
    """The request's JSON object, or {} when there is no JSON body."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidInput("Request body must be a JSON object")
    return data
