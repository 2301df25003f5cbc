"""Typed errors raised by domain code and rendered once by the dispatcher."""

from __future__ import annotations

import logging
from typing import Any

import httpx

logger = logging.getLogger(__name__)


class HubSpotError(Exception):
    """Base for every error that should reach the user as a message, not a traceback."""

    def __init__(self, message: str, *, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.cause = cause


class ValidationError(HubSpotError):
    pass


class ServerlessError(HubSpotError):
    pass


class FileSystemError(HubSpotError):
    def __init__(
        self,
        message: str,
        *,
        filepath: str | None = None,
        operation: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message, cause=cause)
        self.filepath = filepath
        self.operation = operation


class HubSpotApiError(HubSpotError):
    def __init__(
        self,
        message: str,
        *,
        status: int | None = None,
        method: str | None = None,
        url: str | None = None,
        category: str | None = None,
        sub_category: str | None = None,
        correlation_id: str | None = None,
        data: dict[str, Any] | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message, cause=cause)
        self.status = status
        self.method = method
        self.url = url
        self.category = category
        self.sub_category = sub_category
        self.correlation_id = correlation_id
        self.data = data or {}

    @property
    def is_not_found(self) -> bool:
        return self.status == 404


class HubSpotAuthError(HubSpotApiError):
    pass


def api_error_from_response(response: httpx.Response, *, error_cls: type[HubSpotApiError] | None = None) -> HubSpotApiError:
    """Build a HubSpotApiError from a non-2xx httpx response."""
    body: dict[str, Any] = {}
    try:
        parsed = response.json()
        if isinstance(parsed, dict):
            body = parsed
    except ValueError:
        pass
    message = str(body.get("message") or response.reason_phrase or "Request failed")
    status = response.status_code
    if error_cls is None:
        error_cls = HubSpotAuthError if status == 401 else HubSpotApiError
    try:
        request: httpx.Request | None = response.request
    except RuntimeError:
        request = None
    return error_cls(
        message,
        status=status,
        method=request.method if request is not None else None,
        url=str(request.url) if request is not None else None,
        category=body.get("category"),
        sub_category=body.get("subCategory"),
        correlation_id=body.get("correlationId"),
        data=body,
    )


_STATUS_MESSAGES = {
    400: "The {request} was bad.",
    401: "The {request} was unauthorized.",
    403: "The {request} was forbidden.",
    404: "The {request} was not found.",
    408: "The {request} timed out.",
    429: "The {request} surpassed the HubSpot rate limit. Retry in one minute.",
    502: "The {request} failed due to a server error. Try again in a few minutes.",
    503: "The {request} could not be handled at this time. Try again in a few minutes.",
}


def describe_error(err: BaseException, context: dict[str, Any] | None = None) -> str:
    """Human-readable text for an error, with request/account context when available."""
    context = context or {}
    if isinstance(err, HubSpotApiError) and err.status is not None:
        if context.get("request"):
            request = f"request for '{context['request']}'"
        elif err.method:
            request = f"{err.method.upper()} request"
        else:
            request = "request"
        if context.get("accountId"):
            request += f" in account {context['accountId']}"
        base = _STATUS_MESSAGES.get(err.status)
        if base is None:
            base = "The {request} failed" + (" due to a server error." if err.status >= 500 else ".")
        text = base.format(request=request)
        if err.message and err.message not in text:
            text = f"{text} {err.message}"
        if err.correlation_id:
            text += f" (correlationId: {err.correlation_id})"
        return text
    if isinstance(err, FileSystemError):
        parts = [err.message]
        if err.filepath and err.filepath not in err.message:
            parts.append(f"[{err.operation or 'access'} {err.filepath}]")
        return " ".join(parts)
    if isinstance(err, HubSpotError):
        return err.message
    return f"{type(err).__name__}: {err}"


def log_error(err: BaseException, context: dict[str, Any] | None = None) -> None:
    logger.error(describe_error(err, context))
    logger.debug("Error details", exc_info=err)
