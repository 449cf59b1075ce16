"""Secure structured logging for Decision Memory hooks.

Hook processes talk to the host over stdout, so every handler installed here
writes to stderr.

Features:
    - Sensitive data masking (API keys, passwords)
    - JSON structured logging format
    - Optional hook-name prefix ([hook=xxx]) for multi-hook log streams
"""

from __future__ import annotations

import json
import logging
import re
import sys
from datetime import datetime, timezone

# Patterns to mask in logs
SENSITIVE_PATTERNS = [
    (re.compile(r'api[_-]?key["\']?\s*[:=]\s*["\']?[\w-]+', re.I), "api_key=***MASKED***"),
    (re.compile(r"sk-[a-zA-Z0-9]{20,}"), "***OPENAI_KEY***"),
    (re.compile(r'password["\']?\s*[:=]\s*["\']?[^\s"\']+', re.I), "password=***MASKED***"),
]


def mask_sensitive(text: str) -> str:
    """Apply every masking pattern to *text*."""
    for pattern, replacement in SENSITIVE_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


class SecureFormatter(logging.Formatter):
    """Formatter that masks sensitive data and tags the active hook."""

    def __init__(
        self,
        fmt: str | None = None,
        datefmt: str | None = None,
        hook_name: str = "",
    ) -> None:
        """Initialize the secure formatter.

        Args:
            fmt: Format string for log messages.
            datefmt: Date format string.
            hook_name: Hook identifier inserted as a [hook=xxx] prefix.
        """
        super().__init__(fmt=fmt, datefmt=datefmt)
        self.hook_name = hook_name

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)

        if self.hook_name:
            prefix = f"[hook={self.hook_name}] "
            # "2024-01-15 10:30:00 - logger - LEVEL - message"
            parts = message.split(" - ", 3)
            if len(parts) == 4:
                message = f"{parts[0]} - {parts[1]} - {parts[2]} - {prefix}{parts[3]}"
            else:
                message = prefix + message

        return mask_sensitive(message)


class JSONFormatter(logging.Formatter):
    """JSON formatter for structured logging."""

    def __init__(self, hook_name: str = "") -> None:
        super().__init__()
        self.hook_name = hook_name

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON with sensitive data masked."""
        log_data: dict[str, str | None] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if self.hook_name:
            log_data["hook"] = self.hook_name

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        return mask_sensitive(json.dumps(log_data, ensure_ascii=False))


def configure_logging(
    level: str = "ERROR",
    json_format: bool = False,
    mask_sensitive: bool = True,
    hook_name: str = "",
) -> None:
    """Configure logging for the application.

    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR).
        json_format: Use JSON format for structured logging.
        mask_sensitive: Mask sensitive data in logs.
        hook_name: Hook identifier added to every line.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    # stdout is reserved for the hook response document
    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setLevel(level)

    if json_format:
        formatter: logging.Formatter = JSONFormatter(hook_name=hook_name)
    elif mask_sensitive:
        formatter = SecureFormatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
            hook_name=hook_name,
        )
    else:
        formatter = logging.Formatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )

    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)
