"""API error taxonomy. Each error carries an HTTP status and a short machine-readable reason
that is returned as {"ok": false, "error": reason} and recorded on the audit event."""


class ApiError(Exception):
    status_code = 500

    def __init__(self, reason: str, *, headers: dict[str, str] | None = None):
        super().__init__(reason)
        self.reason = reason
        self.headers = headers or {}


class BadRequest(ApiError):
    status_code = 400


class PayloadTooLarge(BadRequest):
    status_code = 413


class Unauthorized(ApiError):
    status_code = 401


class NotFound(ApiError):
    status_code = 404


class Conflict(ApiError):
    status_code = 409


class RateLimited(ApiError):
    status_code = 429


class Internal(ApiError):
    status_code = 500
