# devicehub/core/config.py
import os
import sys
import logging
from pathlib import Path
from typing import List

from dotenv import load_dotenv
from loguru import logger

project_root = Path(__file__).resolve().parent.parent.parent
dotenv_path = project_root / ".env"

# Values already present in the environment win over the .env file
if dotenv_path.is_file():
    logger.debug(f"Loading environment variables from: {dotenv_path}")
    load_dotenv(dotenv_path=dotenv_path, override=False)
else:
    logger.debug(f".env file not found at {dotenv_path}. Relying on system environment variables.")


class InterceptHandler(logging.Handler):
    """Routes records from the standard logging module into loguru."""
    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1
        logger.opt(depth=depth, exception=record.exc_info).log(level, record.getMessage())


def setup_logging():
    """Configure loguru sinks and intercept uvicorn/fastapi/starlette logging."""
    log_level_name = os.getenv("LOG_LEVEL", "INFO").upper()
    log_level = logging.getLevelName(log_level_name)

    log_format = (
        "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}</green> | "
        "<level>{level: <8}</level> | "
        "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
    )
    log_file_path_str = os.getenv("LOG_FILE_PATH", "logs/device_hub_{time:YYYY-MM-DD}.log")
    log_rotation = os.getenv("LOG_ROTATION", "1 day")
    log_retention = os.getenv("LOG_RETENTION", "7 days")
    log_serialize = os.getenv("LOG_SERIALIZE", "False").lower() == "true"

    logger.remove()

    # Console
    logger.add(
        sys.stderr,
        level=log_level,
        format=log_format,
        colorize=True,
    )

    # File (empty LOG_FILE_PATH disables it)
    if log_file_path_str:
        log_file_path = Path(log_file_path_str)
        try:
            log_file_path.parent.mkdir(parents=True, exist_ok=True)
            logger.add(
                log_file_path,
                level=log_level,
                format=log_format,
                rotation=log_rotation,
                retention=log_retention,
                serialize=log_serialize,
                enqueue=True,
                backtrace=True,
                diagnose=False,
                encoding="utf-8",
            )
            logger.info(f"File logging enabled at: {log_file_path}")
        except OSError as e:
            logger.error(f"Failed to setup file logging at {log_file_path}: {e}")

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in list(logging.root.manager.loggerDict):
        if name.startswith(("uvicorn", "fastapi", "starlette", "apscheduler")):
            existing_logger = logging.getLogger(name)
            existing_logger.handlers = [InterceptHandler()]
            existing_logger.propagate = False

    logger.info(f"Loguru logging setup complete. Level: {log_level_name}")


def _get_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Invalid {name}={raw!r}. Using default: {default}.")
        return default


def _get_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


# --- JWT ---
SECRET_KEY: str = os.getenv("SECRET_KEY")
if not SECRET_KEY:
    logger.critical("FATAL: SECRET_KEY environment variable is not set.")
    raise ValueError("SECRET_KEY environment variable is not set.")

ALGORITHM: str = os.getenv("ALGORITHM", "HS256")
ACCESS_TOKEN_EXPIRE_MINUTES: int = _get_int("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 24)
REMEMBER_ME_EXPIRE_MINUTES: int = _get_int("REMEMBER_ME_EXPIRE_MINUTES", 60 * 24 * 30)

# --- Database ---
MONGODB_URL: str = os.getenv("MONGODB_URL")
if not MONGODB_URL:
    logger.critical("FATAL: MONGODB_URL environment variable is not set.")
    raise ValueError("MONGODB_URL environment variable is not set.")

_default_db_name = "device_hub"
_path_part = MONGODB_URL.split("://", 1)[-1].split("/", 1)
if len(_path_part) == 2:
    _candidate = _path_part[1].split("?")[0]
    if _candidate:
        _default_db_name = _candidate
DATABASE_NAME: str = os.getenv("DATABASE_NAME", _default_db_name)

# Multi-document transactions need a replica set
MONGODB_TRANSACTIONS: bool = _get_bool("MONGODB_TRANSACTIONS", False)
DEVICE_LOCK_TIMEOUT_SECONDS: int = _get_int("DEVICE_LOCK_TIMEOUT_SECONDS", 5)
DEVICE_LOCK_STALE_SECONDS: int = _get_int("DEVICE_LOCK_STALE_SECONDS", 30)

# --- HTTP ---
CORS_ORIGINS: List[str] = [o.strip() for o in os.getenv("CORS_ORIGINS", "").split(",") if o.strip()]
RATE_LIMIT_ENABLED: bool = _get_bool("RATE_LIMIT_ENABLED", True)

# --- Scheduler ---
SCHEDULER_ENABLED: bool = _get_bool("SCHEDULER_ENABLED", True)
SCHEDULER_TIMEZONE: str = os.getenv("SCHEDULER_TIMEZONE", "UTC")
OVERDUE_CHECK_HOURS: int = _get_int("OVERDUE_CHECK_HOURS", 6)

logger.info(f"JWT Algorithm: {ALGORITHM}")
logger.info(f"Access Token Expire Minutes: {ACCESS_TOKEN_EXPIRE_MINUTES}")
logger.info(f"Database Name: {DATABASE_NAME} (transactions: {MONGODB_TRANSACTIONS})")
