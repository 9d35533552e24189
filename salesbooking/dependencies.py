"""Shared dependencies: client identity, bounded JSON bodies, rate limiting."""
import json
from typing import Type, TypeVar

from fastapi import Request
from pydantic import BaseModel, ValidationError

from salesbooking.errors import BadRequest, PayloadTooLarge, RateLimited
from salesbooking.services.audit_log import token_hash_prefix
from salesbooking.services.rate_limit import RateLimiter, RateLimitResult

M = TypeVar("M", bound=BaseModel)

# Proxy / CDN headers checked in order before the socket peer
_CLIENT_IP_HEADERS = ("x-nf-client-connection-ip", "x-forwarded-for", "cf-connecting-ip", "client-ip", "x-real-ip")
_USER_AGENT_LEN = 300


def get_client_ip(request: Request) -> str:
    for header in _CLIENT_IP_HEADERS:
        value = request.headers.get(header)
        if value:
            ip = value.split(",")[0].strip()
            if ip:
                return ip
    if request.client and request.client.host:
        return request.client.host
    return "unknown"


def get_user_agent(request: Request) -> str | None:
    return (request.headers.get("user-agent") or "").strip()[:_USER_AGENT_LEN] or None


def json_body(model: Type[M], max_bytes: int):
    """Dependency: raw body size is checked before it is parsed and validated into `model`."""

    async def dependency(request: Request) -> M:
        declared = request.headers.get("content-length")
        if declared and declared.isdigit() and int(declared) > max_bytes:
            raise PayloadTooLarge("request_too_large")
        raw = await request.body()
        if len(raw) > max_bytes:
            raise PayloadTooLarge("request_too_large")
        try:
            data = json.loads(raw) if raw.strip() else {}
        except ValueError:
            raise BadRequest("invalid_json")
        if not isinstance(data, dict):
            raise BadRequest("invalid_json")
        try:
            return model.model_validate(data)
        except ValidationError:
            raise BadRequest("invalid_input")

    return dependency


def check_rate_limit(
    request: Request,
    limiter: RateLimiter,
    endpoint: str,
    rule: tuple[int, int],
    *,
    ip: str | None = None,
    token: str | None = None,
) -> RateLimitResult:
    """Apply one limiter rule keyed on the client IP or on the token (hashed, never raw).
    The IP result is kept on request.state so later responses carry its headers."""
    max_requests, window_seconds = rule
    if token is not None:
        key = f"{endpoint}:tok:{token_hash_prefix(token)}"
    else:
        key = f"{endpoint}:ip:{ip or get_client_ip(request)}"
    result = limiter.check(key, max_requests, window_seconds * 1000)
    if not result.allowed:
        raise RateLimited("rate_limited", headers=result.retry_headers())
    if token is None:
        request.state.rate_limit = result
    return result
