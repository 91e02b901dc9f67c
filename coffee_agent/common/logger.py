"""
Logging setup for the research, people, outreach and chat components.

Every message logged through AgentLogger carries a short run id and the
component name, so the concurrent branches of one request can be told apart:

    2025-01-01 12:00:00 [INFO] coffee_agent.agents.people_agent: [run:1a2b3c4d] [people] Found 3 people at Acme

With LOG_FORMAT=json each record becomes one JSON object per line.
"""

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, Optional

SIMPLE_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
SIMPLE_DATEFMT = "%Y-%m-%d %H:%M:%S"


class JsonLineFormatter(logging.Formatter):
    """One JSON object per record; message text is escaped by json.dumps."""

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "time": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


class AgentLogger:
    """
    Logger adding ``[run:…]`` and ``[component]`` prefixes to each message.

    Args:
        name: Logger name (usually __name__)
        run_id: Request identifier; only the first 8 characters are shown
        component: e.g. "research", "people", "outreach", "chat"
    """

    def __init__(
        self,
        name: str,
        run_id: Optional[str] = None,
        component: Optional[str] = None,
    ):
        self.logger = logging.getLogger(name)
        self.run_id = run_id
        self.component = component

    @property
    def level(self) -> int:
        return self.logger.level

    def _prefix(self, message: str) -> str:
        tags = []
        if self.run_id:
            tags.append(f"[run:{self.run_id[:8]}]")
        if self.component:
            tags.append(f"[{self.component}]")
        return " ".join(tags + [message]) if tags else message

    def debug(self, message: str, **kwargs):
        self.logger.debug(self._prefix(message), **kwargs)

    def info(self, message: str, **kwargs):
        self.logger.info(self._prefix(message), **kwargs)

    def warning(self, message: str, **kwargs):
        self.logger.warning(self._prefix(message), **kwargs)

    def error(self, message: str, **kwargs):
        self.logger.error(self._prefix(message), **kwargs)

    def exception(self, message: str, **kwargs):
        self.logger.exception(self._prefix(message), **kwargs)


def setup_logging(level: str = "INFO", format: str = "simple") -> None:
    """
    Install one stdout handler on the root logger.

    Args:
        level: DEBUG, INFO, WARNING or ERROR (unknown names fall back to INFO)
        format: "simple" for human-readable lines, "json" for JSON lines
    """
    log_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    for existing in list(root_logger.handlers):
        root_logger.removeHandler(existing)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(log_level)
    if format == "json":
        handler.setFormatter(JsonLineFormatter())
    else:
        handler.setFormatter(logging.Formatter(SIMPLE_FORMAT, datefmt=SIMPLE_DATEFMT))

    root_logger.addHandler(handler)
    root_logger.setLevel(log_level)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


def get_logger(
    name: str,
    run_id: Optional[str] = None,
    component: Optional[str] = None,
) -> AgentLogger:
    return AgentLogger(name, run_id, component)
