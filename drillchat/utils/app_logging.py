import json
import logging
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Optional

from ..config import settings


# attributes every LogRecord carries; anything else came in through `extra=`
_RECORD_ATTRS = frozenset(vars(logging.LogRecord("", 0, "", 0, "", (), None))) | {"message", "asctime"}


class JsonFormatter(logging.Formatter):
    """
    One JSON object per line: timestamp, level, process session id and logger
    name, then the event. A dict message (`log.info({"event": ...})`) is
    merged in as fields; any other message lands under "message".
    """

    def __init__(self, session_id: str):
        super().__init__()
        self.session_id = session_id

    def format(self, record: logging.LogRecord) -> str:
        entry: Dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(timespec="milliseconds"),
            "level": record.levelname,
            "session_id": self.session_id,
            "logger": record.name,
        }
        if isinstance(record.msg, dict):
            entry.update(record.msg)
        else:
            entry["message"] = record.getMessage()

        entry.update({k: v for k, v in vars(record).items() if k not in _RECORD_ATTRS and k not in entry})
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False, default=str)


def setup_logging(
    app_name: Optional[str] = None,
    level: Optional[str] = None,
    to_console: bool = True,
    to_file: Optional[bool] = None,
    session_id: Optional[str] = None,
) -> logging.Logger:
    """
    Configure the `app_name` logger with JSON handlers.
    Every module logger (`drillchat.graph.datablocks`, ...) propagates here.
    Safe to call more than once; existing handlers are replaced.
    """
    app_name = app_name or settings.logging_app_name
    level = (level or settings.log_level).upper()
    to_file = settings.log_to_file if to_file is None else to_file
    session_id = session_id or str(uuid.uuid4())

    logger = logging.getLogger(app_name)
    logger.setLevel(level)
    logger.propagate = False

    for h in logger.handlers[:]:
        logger.removeHandler(h)

    formatter = JsonFormatter(session_id)

    if to_file:
        log_dir = Path(settings.log_dir)
        log_dir.mkdir(parents=True, exist_ok=True)
        current_day = datetime.now().strftime("%Y-%m-%d")
        fh = logging.FileHandler(log_dir / f"{app_name}_{current_day}.log", encoding="utf-8")
        fh.setFormatter(formatter)
        logger.addHandler(fh)

    if to_console:
        sh = logging.StreamHandler()
        sh.setFormatter(formatter)
        logger.addHandler(sh)

    logger.info({"event": "logger_initialized", "app_name": app_name, "level": level})
    return logger


def get_logger(area: str) -> logging.Logger:
    """Module logger under the application namespace, e.g. get_logger("llm.openrouter")."""
    return logging.getLogger(f"{settings.logging_app_name}.{area}")
