"""
Logging setup - rotating file log plus console output
"""
import logging
from logging.handlers import RotatingFileHandler
import os

from .config import settings

LOG_FORMAT = '%(asctime)s - %(levelname)s - %(message)s'

_configured = False


def setup_logging(log_dir: str = None, level: str = None) -> None:
    """Configure root logging once (file rotation 20MB x 5, console)"""
    global _configured
    if _configured:
        return

    log_dir = log_dir or settings.LOGS_PATH
    level = getattr(logging, (level or settings.LOG_LEVEL).upper(), logging.INFO)
    os.makedirs(log_dir, exist_ok=True)

    file_handler = RotatingFileHandler(
        os.path.join(log_dir, "stockin.log"),
        maxBytes=20*1024*1024,  # 20MB
        backupCount=5,
        encoding='utf-8'
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt='%Y-%m-%d %H:%M:%S'))

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt='%H:%M:%S'))

    # Quiet noisy loggers before basicConfig
    for noisy in ('sqlalchemy', 'sqlalchemy.engine', 'sqlalchemy.pool', 'httpx', 'httpcore'):
        logging.getLogger(noisy).setLevel(logging.WARNING)

    logging.basicConfig(level=level, handlers=[file_handler, console_handler])
    _configured = True
