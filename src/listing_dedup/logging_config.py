"""
Logging setup for entry points (API server, batch runs)
"""
import logging
import sys
from typing import Optional

from .config import ProjectConfig

LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'
LOG_FILE_NAME = "dedup.log"


def setup_logging(config: Optional[ProjectConfig] = None, log_to_file: bool = True) -> logging.Logger:
    """
    Configure the root logger with a console handler and, optionally, a file
    handler under ``config.logs_dir``.

    Args:
        config: Project configuration (defaults to environment-derived config)
        log_to_file: Whether to also write to logs/dedup.log

    Returns:
        The configured root logger
    """
    config = config or ProjectConfig.from_env()
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=LOG_DATE_FORMAT)

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, config.log_level, logging.INFO))
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    if log_to_file:
        try:
            config.logs_dir.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(config.logs_dir / LOG_FILE_NAME, encoding='utf-8')
            file_handler.setFormatter(formatter)
            root_logger.addHandler(file_handler)
        except OSError as e:
            root_logger.warning(f"File logging disabled: {e}")

    # Third-party chatter
    logging.getLogger("sentence_transformers").setLevel(logging.WARNING)
    logging.getLogger("werkzeug").setLevel(logging.WARNING)

    return root_logger
