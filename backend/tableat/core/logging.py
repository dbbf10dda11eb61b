"""Process-wide logging setup: JSON lines in production, plain text in debug."""

import json
import logging
import re
import sys
from typing import Optional

_RESTAURANT_PATH = re.compile(r"/restaurants/([^/]+)")


class JSONFormatter(logging.Formatter):
    """One JSON object per record, with the restaurant id when one is attached."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "module": record.module,
            "line": record.lineno,
        }
        restaurant_id = getattr(record, "restaurant_id", None)
        if restaurant_id:
            payload["restaurant_id"] = restaurant_id
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def configure_logging(level: str = "INFO", json_output: bool = True) -> None:
    root = logging.getLogger()
    root.setLevel(getattr(logging, level))
    root.handlers.clear()

    if json_output:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(JSONFormatter())
    else:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
    root.addHandler(handler)


def restaurant_from_path(path: str) -> Optional[str]:
    """Pull the restaurant id out of a request path, if it carries one."""
    match = _RESTAURANT_PATH.search(path)
    return match.group(1) if match else None
