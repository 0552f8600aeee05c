import logging
import sys
from typing import Optional

from config.settings import Settings


def setup_logger(name: str = "perp_book", level: Optional[int] = None) -> logging.Logger:
    """컴포넌트별 로거 설정 및 반환"""
    cfg = Settings.logging

    logger = logging.getLogger(name)
    if level is None:
        level = logging.getLevelName(cfg.log_level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logger.setLevel(level)
    logger.handlers.clear()
    logger.propagate = False

    formatter = logging.Formatter(cfg.log_format, datefmt=cfg.date_format)

    # 콘솔 출력
    console = logging.StreamHandler(sys.stdout)
    console.setFormatter(formatter)
    logger.addHandler(console)

    # 파일 출력 (분석용)
    file_handler = logging.FileHandler(cfg.log_file, encoding="utf-8", delay=True)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    return logger
