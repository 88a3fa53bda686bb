"""
Logging Setup
Root logger configuration for addons built with this package
"""
import json
import logging

LEVELS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "error": logging.ERROR,
}

CONSOLE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class JsonFormatter(logging.Formatter):
    """One JSON object per line, for ELK / Loki style log collection"""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "ts": self.formatTime(record, "%Y-%m-%dT%H:%M:%S%z"),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
        }
        if record.exc_info:
            payload["stacktrace"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def configure_logging(level: str = "info", encoding: str = "console") -> None:
    """
    Configure the root logger

    Args:
        level: "debug", "info", "warn" or "error"
        encoding: "console" or "json"
    """
    if level not in LEVELS:
        raise ValueError(f'Unknown log level "{level}" - only knows {list(LEVELS)}')

    handler = logging.StreamHandler()
    if encoding == "json":
        handler.setFormatter(JsonFormatter())
    else:
        handler.setFormatter(logging.Formatter(CONSOLE_FORMAT))

    logging.basicConfig(level=LEVELS[level], handlers=[handler], force=True)
