from __future__ import annotations


class DataGodError(Exception):
    """Base error carrying a stable code and the HTTP status it maps to."""

    code = "INTERNAL_ERROR"
    http_status = 500

    def __init__(self, message: str = "", *, code: str | None = None):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__
        if code:
            self.code = code

    def to_dict(self) -> dict:
        return {"error": self.message, "code": self.code}


class WebhookAuthError(DataGodError):
    code = "INVALID_SIGNATURE"
    http_status = 401


class WebhookPayloadError(DataGodError):
    code = "INVALID_PAYLOAD"
    http_status = 400


class PaymentNotFound(DataGodError):
    code = "PAYMENT_NOT_FOUND"
    http_status = 404


class WebhookProcessingError(DataGodError):
    code = "WEBHOOK_PROCESSING_FAILED"
    http_status = 500


class OrderNotFound(DataGodError):
    code = "ORDER_NOT_FOUND"
    http_status = 404


class IllegalTransition(DataGodError):
    code = "ILLEGAL_TRANSITION"
    http_status = 409


def error_response(err: DataGodError):
    from flask import jsonify

    return jsonify(err.to_dict()), err.http_status
