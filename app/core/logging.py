"""日志配置模块

统一配置 loguru 的输出目标
"""

import sys

from loguru import logger

from .config import Settings


def setup_logging(settings: Settings) -> None:
    """配置应用日志

    控制台输出便于本地调试，文件按天滚动并以JSON格式保存30天

    Args:
        settings: 应用配置
    """
    level = "DEBUG" if settings.debug else "INFO"

    logger.remove()
    logger.add(sys.stderr, level=level)
    logger.add(
        "logs/app_{time:YYYY-MM-DD}.log",
        rotation="1 day",
        retention="30 days",
        level=level,
        format="{time:YYYY-MM-DD HH:mm:ss} | {level} | {name}:{function}:{line} | {message}",
        serialize=True
    )
