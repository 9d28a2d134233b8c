"""日志模块

提供日志配置与管理：
- setup_logger / setup_root_logger: 日志器配置
- get_logger: 按模块名获取日志器
- TimeAndSizeRotatingFileHandler: 时间+大小双重轮转的日志处理器

使用示例:
    from ytree.log import setup_logger, get_logger

    setup_logger("ytree", level="DEBUG", log_file="logs/tree_{date}.log")
    logger = get_logger()
"""

from .logger import (
    setup_logger,
    setup_root_logger,
    create_formatter,
    MicrosecondFormatter,
    DEFAULT_LOG_FORMAT,
    orm_logger,
    tree_logger,
    logger,
    get_logger,
)

from .handlers import TimeAndSizeRotatingFileHandler

__all__ = [
    "setup_logger",
    "setup_root_logger",
    "create_formatter",
    "MicrosecondFormatter",
    "DEFAULT_LOG_FORMAT",
    "orm_logger",
    "tree_logger",
    "logger",
    "get_logger",
    "TimeAndSizeRotatingFileHandler",
]
