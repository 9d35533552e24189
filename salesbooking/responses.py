"""JSON envelope helper shared by every endpoint and exception handler."""
from typing import Any

from fastapi.responses import JSONResponse

NO_STORE = {"Cache-Control": "no-store"}


def json_response(status_code: int, body: dict[str, Any], headers: dict[str, str] | None = None) -> JSONResponse:
    """Build the JSON response; content type is always application/json."""
    return JSONResponse(status_code=status_code, content=body, headers=headers or None)


def ok(fields: dict[str, Any] | None = None, headers: dict[str, str] | None = None) -> JSONResponse:
    return json_response(200, {"ok": True, **(fields or {})}, headers)


def error(status_code: int, reason: str, headers: dict[str, str] | None = None) -> JSONResponse:
    return json_response(status_code, {"ok": False, "error": reason}, {**NO_STORE, **(headers or {})})
