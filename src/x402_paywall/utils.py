"""
Shared helpers: logging setup, base64-JSON codec and display formatting.
"""

import base64
import binascii
import json
import logging
from typing import Any, Optional

LOGGER_NAME = "x402_paywall"

logger = logging.getLogger(LOGGER_NAME)
logger.addHandler(logging.NullHandler())


def setup_logger(level: str = "INFO", fmt: Optional[str] = None) -> logging.Logger:
    """
    Attach a stream handler to the package logger.

    Safe to call more than once; the handler is only added the first time.

    Args:
        level: Logging level name (e.g. "DEBUG", "INFO").
        fmt: Optional log record format.

    Returns:
        The configured package logger.
    """
    logger.setLevel(getattr(logging, str(level).upper(), logging.INFO))
    if not any(getattr(h, "_x402_paywall", False) for h in logger.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(fmt or "%(asctime)s %(levelname)s %(name)s %(message)s"))
        handler._x402_paywall = True
        logger.addHandler(handler)
    return logger


def _b64decode(data: str) -> bytes:
    padding = "=" * (-len(data) % 4)
    return base64.b64decode(data + padding, validate=True)


def encode_base64_json(value: Any) -> str:
    """Serialize ``value`` to compact JSON and base64-encode it."""
    raw = json.dumps(value, separators=(",", ":"), ensure_ascii=False)
    return base64.b64encode(raw.encode("utf-8")).decode("ascii")


def decode_base64_json(value: Optional[str]) -> Optional[Any]:
    """
    Decode a header value carrying base64(JSON), falling back to plain JSON.

    Returns:
        The decoded JSON value, or None when the input is empty or neither
        form can be parsed.
    """
    if not value:
        return None
    text = value.strip()
    try:
        return json.loads(_b64decode(text).decode("utf-8"))
    except (binascii.Error, UnicodeDecodeError, ValueError):
        pass
    try:
        return json.loads(text)
    except ValueError:
        return None


def shorten_address(address: Optional[str]) -> str:
    """Render ``0x1234...abcd`` style short addresses."""
    if not address:
        return ""
    return f"{address[:6]}...{address[-4:]}"
