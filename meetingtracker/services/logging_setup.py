"""Process-wide logging: a rotating DEBUG file per boot plus INFO on stderr."""

import faulthandler
import logging
import os
from datetime import datetime
from logging.handlers import RotatingFileHandler
from typing import Optional, TextIO

LOG_FORMAT = "[%(asctime)s] [%(name)s] %(message)s"
LOG_DATE_FORMAT = "%H:%M:%S"

# Libraries that log every HTTP connection or multipart chunk at DEBUG.
NOISY_LOGGERS = ("urllib3", "multipart", "python_multipart", "faster_whisper")

_crash_log: Optional[TextIO] = None


def _attach(logger: logging.Logger, handlers: list[logging.Handler], level: int) -> None:
    logger.setLevel(level)
    logger.handlers = list(handlers)
    logger.propagate = False


def configure_logging(logs_dir: str) -> str:
    """Route all logging (uvicorn included) to ``logs_dir/server_<ts>.log``.

    Returns the path of the new log file.
    """
    os.makedirs(logs_dir, exist_ok=True)
    log_path = os.path.join(
        logs_dir, f"server_{datetime.now().strftime('%Y-%m-%d_%H-%M-%S')}.log"
    )
    formatter = logging.Formatter(LOG_FORMAT, LOG_DATE_FORMAT)

    file_handler = RotatingFileHandler(log_path, maxBytes=5_000_000, backupCount=3)
    file_handler.name = "meetingtracker_file"
    file_handler.setLevel(logging.DEBUG)

    stream_handler = logging.StreamHandler()
    stream_handler.name = "meetingtracker_stream"
    stream_handler.setLevel(logging.INFO)

    handlers: list[logging.Handler] = [file_handler, stream_handler]
    for handler in handlers:
        handler.setFormatter(formatter)

    _attach(logging.getLogger(), handlers, logging.DEBUG)
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        _attach(logging.getLogger(name), handlers, logging.INFO)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logging.getLogger("meetingtracker.boot").info("Logging initialized: %s", log_path)
    return log_path


def enable_crash_logging(logs_dir: str) -> str:
    """Dump all thread stacks to ``logs_dir/crash.log`` on a hard crash.

    Safe to call more than once; the file is opened a single time.
    """
    global _crash_log
    crash_log_path = os.path.join(logs_dir, "crash.log")
    if _crash_log is None:
        os.makedirs(logs_dir, exist_ok=True)
        _crash_log = open(crash_log_path, "a", encoding="utf-8")
        faulthandler.enable(file=_crash_log, all_threads=True)
    return crash_log_path
