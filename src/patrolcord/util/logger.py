import logging
from logging.handlers import RotatingFileHandler
import sys
from pathlib import Path
from datetime import datetime
from prompt_toolkit import print_formatted_text
from prompt_toolkit.formatted_text import ANSI

LOGS_DIR: Path = (Path(__file__).parents[3] / "logs").resolve()

LOG_FORMAT: str = "[%(asctime)s] [%(levelname)s] [%(name)s] %(message)s"
DATE_FORMAT: str = "%Y-%m-%d %H-%M-%S"

LOG_COLORS = {
    "DEBUG": "\033[36m",
    "INFO": "\033[32m",
    "WARNING": "\033[33m",
    "ERROR": "\033[31m",
    "CRITICAL": "\033[1;31m",
}
RESET_COLOR = "\033[0m"

# Library loggers that would otherwise flood the console with gateway chatter
QUIET_LIBRARIES = ("discord", "aiosqlite")

# One file per process, opened lazily by the first logger
_session_log: Path | None = None


class ColorFormatter(logging.Formatter):
    """Prefix each line with the ANSI colour of its level."""

    def format(self, record: logging.LogRecord) -> str:
        color = LOG_COLORS.get(record.levelname)
        message = super().format(record)
        return f"{color}{message}{RESET_COLOR}" if color else message


class PromptToolkitHandler(logging.Handler):
    """Console handler printing through prompt_toolkit so ANSI output renders on every terminal."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            print_formatted_text(ANSI(self.format(record)))
        except Exception:
            self.handleError(record)


def should_use_color() -> bool:
    try:
        return sys.stderr.isatty()
    except Exception:
        return False


def _session_log_path() -> Path:
    global _session_log
    if _session_log is None:
        LOGS_DIR.mkdir(parents=True, exist_ok=True)
        _session_log = LOGS_DIR / f"{datetime.now().strftime(DATE_FORMAT)}.log"
    return _session_log


def get_logger(logger_name: str) -> logging.Logger:
    """Return ``logger_name`` wired to the console (INFO+) and the session log file (DEBUG+)."""
    logger = logging.getLogger(logger_name)
    if logger.handlers:
        return logger

    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    console = PromptToolkitHandler(logging.INFO)
    formatter_cls = ColorFormatter if should_use_color() else logging.Formatter
    console.setFormatter(formatter_cls(LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(console)

    file_handler = RotatingFileHandler(_session_log_path(), maxBytes=5 * 1024 * 1024, backupCount=3, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    logger.addHandler(file_handler)

    return logger


def handle_exception(exception_type, exception_instance, exception_traceback) -> None:
    """``sys.excepthook`` replacement: log uncaught errors, let Ctrl+C through untouched."""
    if issubclass(exception_type, KeyboardInterrupt):
        sys.__excepthook__(exception_type, exception_instance, exception_traceback)
        return
    get_logger("patrolcord").critical(
        "Uncaught exception", exc_info=(exception_type, exception_instance, exception_traceback)
    )


for _name in QUIET_LIBRARIES:
    logging.getLogger(_name).setLevel(logging.WARNING)
