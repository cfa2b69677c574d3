"""
Logging setup using loguru
"""

from loguru import logger
import json
import sys

MAX_PAYLOAD_CHARS = 2000


def setup_logger(level: str = "INFO"):
    """Setup logger with coloured formatting"""
    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>",
        colorize=True
    )
    return logger


def truncate_payload(value, limit: int = MAX_PAYLOAD_CHARS) -> str:
    """Render a payload for a log line, cut to `limit` characters"""
    if value is None:
        return "null"
    if isinstance(value, (bytes, bytearray)):
        text = value.decode("utf-8", errors="replace")
    elif isinstance(value, str):
        text = value
    else:
        try:
            text = json.dumps(value, default=str, ensure_ascii=False)
        except (TypeError, ValueError):
            text = repr(value)
    if len(text) <= limit:
        return text
    return f"{text[:limit]}... ({len(text) - limit} more chars)"
