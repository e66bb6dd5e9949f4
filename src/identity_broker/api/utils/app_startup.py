"""Loguru setup for the broker process."""

import logging
import sys
from pathlib import Path

from loguru import logger

from src.identity_broker.runtime.config.config_data import LoggingConfig
from src.identity_broker.runtime.context import get_config

# Every line carries the request's trace id; "-" outside a request
LINE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "[<cyan>{extra[trace_id]}</cyan>] | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - "
    "<level>{message}</level>"
)

QUIET_LOGGERS = {
    "sqlalchemy.engine": logging.WARNING,
    "sqlalchemy.pool": logging.WARNING,
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "uvicorn.access": logging.CRITICAL,
}


class InterceptHandler(logging.Handler):
    """Forward stdlib ``logging`` records (uvicorn, sqlalchemy, httpx) to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        # request.start / request.end already cover access logging
        if record.name == "uvicorn.access":
            return

        try:
            level: str | int = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        logger.opt(depth=2, exception=record.exc_info).bind(
            logger_name=record.name
        ).log(level, record.getMessage())


def _add_file_sink(cfg: LoggingConfig, verbose: bool) -> None:
    path = Path(cfg.file)
    path.parent.mkdir(parents=True, exist_ok=True)
    as_json = cfg.format == "json"
    logger.add(
        str(path),
        level=cfg.level,
        format="{message}" if as_json else LINE_FORMAT,
        serialize=as_json,
        rotation=f"{cfg.max_size_mb} MB",
        retention=cfg.backup_count,
        compression="zip",
        enqueue=True,
        backtrace=verbose,
        diagnose=verbose,
    )


def _route_stdlib_logging() -> None:
    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in list(logging.root.manager.loggerDict):
        stdlib_logger = logging.getLogger(name)
        stdlib_logger.handlers = []
        stdlib_logger.propagate = True
    for name, level in QUIET_LOGGERS.items():
        logging.getLogger(name).setLevel(level)


def configure_logging() -> None:
    """Replace loguru's default sink with the configured console and file sinks."""
    config = get_config()
    cfg = config.logging
    # Variable values in tracebacks can include tokens; keep them out of production logs
    verbose = config.app.environment != "production"

    logger.remove()
    logger.configure(extra={"trace_id": "-"})
    logger.add(
        sys.stderr,
        level=cfg.level,
        format=LINE_FORMAT,
        colorize=True,
        backtrace=verbose,
        diagnose=verbose,
    )
    if cfg.file:
        _add_file_sink(cfg, verbose)

    _route_stdlib_logging()
    logger.bind(environment=config.app.environment, file=cfg.file).info(
        "Logging configured at {} ({})", cfg.level, cfg.format
    )
