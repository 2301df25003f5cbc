from __future__ import annotations

import logging
import os
import re

_SECRET_PATTERNS = (
    re.compile(r"(hapikey=)[^&\s]+"),
    re.compile(r"(Bearer )[A-Za-z0-9\-_.]+"),
    re.compile(r"(\"(?:personalAccessKey|accessToken|refreshToken|clientSecret|apiKey)\"\s*:\s*\")[^\"]+"),
)

QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access")


def configure_logging(verbose_int: int = 0) -> None:
    """Configure root logging for a CLI invocation.

    INFO prints bare messages; DEBUG adds timestamps and logger names.
    """
    level = logging.DEBUG if (verbose_int or 0) >= 1 else logging.INFO

    # LOG_LEVEL wins over --debug.
    env_level = os.environ.get("LOG_LEVEL")
    if env_level:
        level = getattr(logging, env_level.upper(), level)

    fmt = "%(asctime)s %(levelname)s %(name)s - %(message)s" if level <= logging.DEBUG else "%(message)s"

    # httpx logs full request URLs, and API-key accounts carry the key in the query.
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    root = logging.getLogger()
    if root.handlers:
        root.setLevel(level)
        for h in root.handlers:
            h.setLevel(level)
            h.setFormatter(logging.Formatter(fmt))
        return

    logging.basicConfig(level=level, format=fmt)


def redact(text: str) -> str:
    """Mask tokens and keys embedded in a log line."""
    for pat in _SECRET_PATTERNS:
        text = pat.sub(r"\1***REDACTED***", text)
    return text
