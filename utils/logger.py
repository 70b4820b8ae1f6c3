import logging
import os
import sys
from typing import Optional


_DEFAULT_FORMAT = "%(asctime)s %(levelname)s %(message)s"


def _ensure_root_handler() -> None:
    # httpx logs every request URL at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    root_logger = logging.getLogger()
    if root_logger.handlers:
        return
    handler = logging.StreamHandler(stream=sys.stdout)
    formatter = logging.Formatter(_DEFAULT_FORMAT)
    handler.setFormatter(formatter)
    root_logger.addHandler(handler)
    root_logger.setLevel(os.getenv("LOG_LEVEL", "INFO").upper())


class _TaggedAdapter(logging.LoggerAdapter):
    def process(self, msg, kwargs):
        tag = self.extra.get("tag", "")
        if tag and not str(msg).startswith(tag):
            msg = f"{tag} {msg}"
        return msg, kwargs


def get_logger(tag: str, name: Optional[str] = None) -> logging.LoggerAdapter:
    """
    Return a logger that injects a [TAG] prefix into records.
    Example: logger = get_logger("RELAY") → logs like: [RELAY] message
    """
    _ensure_root_handler()
    logger_name = name or "gemini_relay"
    base = logging.getLogger(logger_name)
    return _TaggedAdapter(base, {"tag": f"[{tag}]"})
