"""Invocation of a single handler call and its execution record."""

from __future__ import annotations

import asyncio
import contextvars
import inspect
import io
import json
import logging
import sys
import threading
import time
from dataclasses import dataclass, field
from typing import Any, TextIO

from starlette.concurrency import run_in_threadpool

from hubspot_cli.constants import MAX_HANDLER_WAIT, MAX_RUNTIME
from hubspot_cli.serverless.registry import HandlerFn

logger = logging.getLogger(__name__)

SUCCESS = "SUCCESS"
UNHANDLED_ERROR = "UNHANDLED_ERROR"
HANDLED_ERROR = "HANDLED_ERROR"


class LogCollector:
    """Per-invocation log sink, passed to handlers as ``context["log"]``."""

    def __init__(self, *, echo: TextIO | None = None) -> None:
        self.lines: list[str] = []
        self._echo = echo
        self._partial = ""

    def _add(self, line: str) -> None:
        self.lines.append(line)
        if self._echo is not None:
            self._echo.write(line + "\n")

    def log(self, *args: Any) -> None:
        self._add(" ".join(a if isinstance(a, str) else json.dumps(a, default=str) for a in args))

    def _fmt(self, level: str, msg: Any, args: tuple[Any, ...]) -> None:
        text = str(msg) % args if args else str(msg)
        self._add(f"{level} {text}")

    def debug(self, msg: Any, *args: Any) -> None:
        self._fmt("DEBUG", msg, args)

    def info(self, msg: Any, *args: Any) -> None:
        self._fmt("INFO", msg, args)

    def warning(self, msg: Any, *args: Any) -> None:
        self._fmt("WARNING", msg, args)

    def error(self, msg: Any, *args: Any) -> None:
        self._fmt("ERROR", msg, args)

    def write(self, s: str) -> int:
        # print() output arrives in fragments; keep whole lines only.
        buf = self._partial + s
        *complete, self._partial = buf.split("\n")
        for line in complete:
            self._add(line)
        return len(s)

    def flush(self) -> None:
        if self._partial:
            self._add(self._partial)
            self._partial = ""

    @property
    def text(self) -> str:
        return "\n".join(self.lines)


_current_collector: contextvars.ContextVar[LogCollector | None] = contextvars.ContextVar(
    "hubspot_function_collector", default=None
)


class _ContextStdout(io.TextIOBase):
    """Routes writes to the collector bound in the current context, else to the real stream."""

    def __init__(self, real: TextIO) -> None:
        self.real = real

    def write(self, s: str) -> int:
        collector = _current_collector.get()
        if collector is not None:
            return collector.write(s)
        return self.real.write(s)

    def flush(self) -> None:
        self.real.flush()

    def isatty(self) -> bool:
        return self.real.isatty()


_install_lock = threading.Lock()


def install_stdout_capture() -> None:
    with _install_lock:
        if not isinstance(sys.stdout, _ContextStdout):
            sys.stdout = _ContextStdout(sys.stdout)


def uninstall_stdout_capture() -> None:
    with _install_lock:
        if isinstance(sys.stdout, _ContextStdout):
            sys.stdout = sys.stdout.real


@dataclass
class ExecutionRecord:
    status: str
    created_at: int
    execution_time: int
    logs: list[str] = field(default_factory=list)
    payload: Any = None
    error: dict[str, Any] | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "status": self.status,
            "createdAt": self.created_at,
            "executionTime": self.execution_time,
            "log": "\n".join(self.logs),
            "payload": self.payload,
        }
        if self.error is not None:
            out["error"] = self.error
        return out


@dataclass
class InvocationResult:
    record: ExecutionRecord
    status_code: int
    body: Any
    headers: dict[str, str] = field(default_factory=dict)


class _ResponseSlot:
    def __init__(self) -> None:
        self.payload: Any = None
        self.sent = False
        self.done = threading.Event()

    def send(self, payload: Any = None) -> None:
        if self.sent:
            logger.warning("send_response called more than once; ignoring extra call")
            return
        self.payload = payload
        self.sent = True
        self.done.set()


def _run_sync(handler: HandlerFn, context: dict[str, Any], slot: _ResponseSlot, collector: LogCollector) -> Any:
    token = _current_collector.set(collector)
    try:
        return handler(context, slot.send)
    finally:
        collector.flush()
        _current_collector.reset(token)


async def _run_async(handler: HandlerFn, context: dict[str, Any], slot: _ResponseSlot, collector: LogCollector) -> Any:
    token = _current_collector.set(collector)
    try:
        return await handler(context, slot.send)
    finally:
        collector.flush()
        _current_collector.reset(token)


def _error_payload(exc: BaseException) -> dict[str, Any]:
    return {"type": type(exc).__name__, "message": str(exc)}


def response_from_payload(payload: Any) -> tuple[int, Any, dict[str, str]]:
    """Split a handler payload into status code, body and headers.

    A dict carrying ``statusCode`` is a full response; anything else is a bare
    JSON body. Raises ``ValueError`` or ``TypeError`` for a malformed response.
    """
    if not (isinstance(payload, dict) and "statusCode" in payload):
        body, status_code, headers = payload, 200, {}
    else:
        raw_status = payload["statusCode"]
        if isinstance(raw_status, bool):
            raise ValueError(f"statusCode must be an integer, got {raw_status!r}")
        try:
            status_code = int(raw_status)
        except (TypeError, ValueError):
            raise ValueError(f"statusCode must be an integer, got {raw_status!r}") from None
        if not 100 <= status_code <= 599:
            raise ValueError(f"statusCode {status_code} is not a valid HTTP status")
        raw_headers = payload.get("headers") or {}
        if not isinstance(raw_headers, dict):
            raise ValueError(f"headers must be an object, got {type(raw_headers).__name__}")
        body = payload.get("body")
        headers = {str(k): str(v) for k, v in raw_headers.items()}
    if not isinstance(body, (bytes, bytearray)):
        json.dumps(body)
    return status_code, body, headers


async def invoke(
    handler: HandlerFn,
    context: dict[str, Any],
    *,
    collector: LogCollector | None = None,
    ceiling_ms: int = MAX_RUNTIME,
    hard_timeout_ms: int = MAX_HANDLER_WAIT,
) -> InvocationResult:
    """Run ``handler`` once and describe what happened.

    A handler that responds late still gets its response through; the caller
    warns about runtimes over ``ceiling_ms``. A handler that returns without
    responding gets until ``ceiling_ms`` for a deferred ``send_response`` call.
    Only a handler still running after ``hard_timeout_ms`` is cut off.

    Never raises for handler failures: exceptions and malformed responses
    become an ``UNHANDLED_ERROR`` record and a 500 with a sanitized body.
    """
    collector = collector or LogCollector()
    context["log"] = collector
    slot = _ResponseSlot()
    created_at = int(time.time() * 1000)
    started = time.perf_counter()
    error: BaseException | None = None
    returned: Any = None

    try:
        if inspect.iscoroutinefunction(handler):
            returned = await asyncio.wait_for(_run_async(handler, context, slot, collector), hard_timeout_ms / 1000)
        else:
            returned = await asyncio.wait_for(
                run_in_threadpool(_run_sync, handler, context, slot, collector), hard_timeout_ms / 1000
            )
    except asyncio.TimeoutError:
        if not slot.sent:
            logger.warning("Handler still running after %sms; its response will be discarded", hard_timeout_ms)
            error = TimeoutError(f"Function did not respond within {hard_timeout_ms}ms")
    except Exception as e:  # noqa: BLE001 - handler code is untrusted
        error = e

    if error is None and not slot.sent and returned is None:
        # send_response may still arrive from work the handler left running.
        remaining = max(0.0, ceiling_ms / 1000 - (time.perf_counter() - started))
        if not await run_in_threadpool(slot.done.wait, remaining):
            error = TimeoutError(f"Function did not call send_response within {ceiling_ms}ms")

    elapsed = int((time.perf_counter() - started) * 1000)

    if error is None and not slot.sent:
        slot.send(returned)

    if error is None:
        try:
            status_code, body, headers = response_from_payload(slot.payload)
        except (TypeError, ValueError) as e:
            error = ValueError(f"Invalid function response: {e}")

    if error is not None:
        err = _error_payload(error)
        record = ExecutionRecord(
            status=UNHANDLED_ERROR,
            created_at=created_at,
            execution_time=elapsed,
            logs=list(collector.lines),
            payload=None,
            error=err,
        )
        logger.debug("Handler failed", exc_info=error)
        return InvocationResult(record=record, status_code=500, body={"status": UNHANDLED_ERROR, "message": err["message"]})

    record = ExecutionRecord(
        status=SUCCESS if status_code < 400 else HANDLED_ERROR,
        created_at=created_at,
        execution_time=elapsed,
        logs=list(collector.lines),
        payload=slot.payload,
    )
    return InvocationResult(record=record, status_code=status_code, body=body, headers=headers)
