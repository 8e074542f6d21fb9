"""
Structured logging for the allocation engine.

Engine modules log through ``logging.getLogger(__name__)`` and pass ids,
reasons and attempt counts in ``extra``; in staging and production those
fields become keys of one JSON document per line.
"""
import logging
import sys
from typing import Any, Dict

from pythonjsonlogger import jsonlogger

from core.settings import settings


class EngineJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter stamping level, logger and deployment environment."""

    def add_fields(
        self,
        log_record: Dict[str, Any],
        record: logging.LogRecord,
        message_dict: Dict[str, Any]
    ) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record['level'] = record.levelname
        log_record['logger'] = record.name
        log_record['environment'] = settings.app_env


def setup_logging() -> None:
    """
    Install one stdout handler on the root logger.

    JSON in staging and production, plain text in development and test.
    """
    use_json = settings.app_env in ("production", "staging")

    if use_json:
        formatter = EngineJsonFormatter(fmt='%(asctime)s %(message)s')
    else:
        formatter = logging.Formatter(
            fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, settings.log_level))

    # Statement logging only when explicitly asked for
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.db_echo else logging.WARNING
    )
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


class LogContext:
    """
    Carries fields shared by several log calls about one booking request.

    Example:
        with LogContext(logger, restaurant_id=rid, party_size=4) as ctx:
            ctx.log("info", "Allocation committed", table_id=tid)
    """

    def __init__(self, logger: logging.Logger, **fields: Any):
        self.logger = logger
        self.fields = fields

    def __enter__(self) -> 'LogContext':
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        if exc_type is not None:
            self.log("debug", f"Request ended with {exc_type.__name__}")

    def log(self, level: str, message: str, **extra_fields: Any) -> None:
        getattr(self.logger, level.lower())(message, extra={**self.fields, **extra_fields})
