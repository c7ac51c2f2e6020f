import logging
import logging.handlers
import os
from pathlib import Path
from typing import Optional

# Correction submissions and resolutions, written to corrections.log
AUDIT_LOGGER_NAME = "records_cli.audit"
AUDIT_LOG_FILE = "corrections.log"
MAIN_LOG_FILE = "records-cli.log"

LEVEL_MAP = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

DEFAULT_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
MAX_FILE_SIZE = 10 * 1024 * 1024  # 10 MB
BACKUP_COUNT = 5


def _level(name: Optional[str], default: int) -> int:
    return LEVEL_MAP.get((name or "").upper(), default)


class LoggingConfig:
    """Console plus rotating file logging for the records CLI."""

    def __init__(self, logs_dir: Optional[str] = None):
        self._logs_dir = logs_dir
        self._configured = False

    @property
    def logs_dir(self) -> Path:
        # Resolved on use so RECORDS_LOG_DIR may be set after import
        return Path(self._logs_dir or os.getenv("RECORDS_LOG_DIR", "logs"))

    def _rotating_handler(
        self, file_name: str, level: int, log_format: str
    ) -> logging.handlers.RotatingFileHandler:
        self.logs_dir.mkdir(parents=True, exist_ok=True)
        handler = logging.handlers.RotatingFileHandler(
            self.logs_dir / file_name,
            maxBytes=MAX_FILE_SIZE,
            backupCount=BACKUP_COUNT,
            encoding="utf-8",
        )
        handler.setLevel(level)
        handler.setFormatter(logging.Formatter(log_format))
        return handler

    def setup_logging(
        self,
        log_level: str = "INFO",
        console_level: Optional[str] = None,
        file_level: Optional[str] = None,
        log_format: str = DEFAULT_FORMAT,
    ) -> None:
        """
        Configure the root logger once per process.

        Args:
            log_level: Default level, used for the file when file_level is unset
            console_level: Level for stderr output, WARNING when unset so
                command output stays readable
            file_level: Level for logs/records-cli.log
            log_format: Format string shared by both handlers
        """
        if self._configured:
            return

        file_log_level = _level(file_level or log_level, logging.INFO)
        console_log_level = _level(console_level, logging.WARNING)

        root_logger = logging.getLogger()
        root_logger.setLevel(min(console_log_level, file_log_level))
        root_logger.handlers.clear()

        console_handler = logging.StreamHandler()
        console_handler.setLevel(console_log_level)
        console_handler.setFormatter(logging.Formatter(log_format))
        root_logger.addHandler(console_handler)
        root_logger.addHandler(
            self._rotating_handler(MAIN_LOG_FILE, file_log_level, log_format)
        )

        self._configured = True
        logging.getLogger(__name__).info(
            f"Logging to {(self.logs_dir / MAIN_LOG_FILE).absolute()} "
            f"(console: {logging.getLevelName(console_log_level)}, "
            f"file: {logging.getLevelName(file_log_level)})"
        )

    def create_specialized_logger(
        self, name: str, log_file: str, level: str = "INFO"
    ) -> logging.Logger:
        """Logger ``name`` that additionally writes to its own file in the logs directory."""
        logger = logging.getLogger(name)
        logger.setLevel(_level(level, logging.INFO))

        target = str((self.logs_dir / log_file).absolute())
        has_handler = any(
            isinstance(h, logging.handlers.RotatingFileHandler) and h.baseFilename == target
            for h in logger.handlers
        )
        if not has_handler:
            logger.addHandler(self._rotating_handler(log_file, logging.NOTSET, DEFAULT_FORMAT))
        return logger


# Global instance
_logging_config = LoggingConfig()


def setup_logging(**kwargs) -> None:
    _logging_config.setup_logging(**kwargs)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def create_specialized_logger(name: str, log_file: str, **kwargs) -> logging.Logger:
    return _logging_config.create_specialized_logger(name, log_file, **kwargs)


def configure_from_env() -> None:
    """Set up logging from LOG_LEVEL, CONSOLE_LOG_LEVEL and FILE_LOG_LEVEL."""
    setup_logging(
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        console_level=os.getenv("CONSOLE_LOG_LEVEL"),
        file_level=os.getenv("FILE_LOG_LEVEL"),
    )
    create_specialized_logger(AUDIT_LOGGER_NAME, AUDIT_LOG_FILE)
