import sys
from typing import Optional

from loguru import logger


def setup_logging(log_level: str = "INFO", log_file: Optional[str] = None) -> None:
    """Настраивает вывод loguru: консоль и, если задан, файл с ротацией."""
    logger.remove()
    logger.add(sys.stderr, level=log_level.upper())
    if log_file:
        logger.add(log_file, level=log_level.upper(), rotation="10 MB", retention=5)
    logger.debug(f"Логирование настроено: уровень {log_level}, файл {log_file}")
