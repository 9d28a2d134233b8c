"""自定义日志处理器模块

提供按日期 + 文件大小双重轮转的日志处理器：
- 文件名支持 {date} 占位符，每天午夜切换到新的日期文件
- 同一天内超过指定大小时，进行序号轮转
- 自动创建日志目录

使用示例:
    from ytree.log import TimeAndSizeRotatingFileHandler
    import logging

    handler = TimeAndSizeRotatingFileHandler(
        filename="logs/tree_{date}.log",
        maxBytes=10*1024*1024,
        backupCount=5,
    )

    logger = logging.getLogger('ytree')
    logger.addHandler(handler)
"""

import os
import time
from datetime import datetime
from logging.handlers import RotatingFileHandler


class TimeAndSizeRotatingFileHandler(RotatingFileHandler):
    """时间和大小双重轮转的日志处理器

    文件命名规则：
    - 基本文件名使用 {date} 占位符，如 "tree_{date}.log"
    - 运行时替换为实际日期，如 "tree_2026-01-09.log"
    - 大小轮转时添加序号，如 "tree_2026-01-09.1.log"

    Args:
        filename: 日志文件名模板，使用 {date} 作为日期占位符
        maxBytes: 单个文件最大字节数，0表示不限制大小
        backupCount: 保留的备份文件数量（同一天内的序号备份）
        encoding: 文件编码
        delay: 是否延迟打开文件
    """

    def __init__(
        self,
        filename: str,
        maxBytes: int = 0,
        backupCount: int = 0,
        encoding: str = None,
        delay: bool = False,
    ):
        # 保存原始文件名模板，用于生成新的带日期的文件名
        self.filename_template = filename

        current_date = datetime.now().strftime("%Y-%m-%d")
        initial_filename = filename.replace("{date}", current_date)

        log_dir = os.path.dirname(initial_filename)
        if log_dir and not os.path.exists(log_dir):
            os.makedirs(log_dir, exist_ok=True)

        super().__init__(
            initial_filename,
            mode='a',
            maxBytes=maxBytes,
            backupCount=backupCount,
            encoding=encoding,
            delay=delay
        )

        self.current_date = current_date
        self.rollover_at = self._compute_rollover_time()

    def _compute_rollover_time(self) -> float:
        """计算下次轮转时间（午夜）"""
        today = datetime.now().replace(hour=0, minute=0, second=0, microsecond=0)
        return today.timestamp() + 86400

    def shouldRollover(self, record) -> int:
        """判断是否需要轮转日志文件

        Returns:
            int: 1表示需要轮转，0表示不需要
        """
        if time.time() >= self.rollover_at:
            return 1

        if self.maxBytes > 0:
            msg = "%s\n" % self.format(record)
            if self.stream is None:
                self.stream = self._open()
            if self.stream.tell() + len(msg) >= self.maxBytes:
                return 1

        return 0

    def doRollover(self):
        """执行日志轮转

        - 新的一天：切换到新的日期文件
        - 同一天文件过大：创建带序号的备份文件
        """
        if self.stream:
            self.stream.close()
            self.stream = None

        current_date = datetime.now().strftime("%Y-%m-%d")

        if current_date != self.current_date:
            self.current_date = current_date
            self.rollover_at = self._compute_rollover_time()
        elif self.backupCount > 0:
            base_name, ext = os.path.splitext(self.baseFilename)

            for i in range(self.backupCount - 1, 0, -1):
                sfn = f"{base_name}.{i}{ext}"
                dfn = f"{base_name}.{i+1}{ext}"
                if os.path.exists(sfn):
                    if os.path.exists(dfn):
                        os.remove(dfn)
                    os.rename(sfn, dfn)

            dfn = f"{base_name}.1{ext}"
            if os.path.exists(dfn):
                os.remove(dfn)
            if os.path.exists(self.baseFilename):
                os.rename(self.baseFilename, dfn)

        self.baseFilename = os.path.abspath(
            self.filename_template.replace("{date}", current_date)
        )

        if not self.delay:
            self.stream = self._open()


__all__ = [
    "TimeAndSizeRotatingFileHandler",
]
