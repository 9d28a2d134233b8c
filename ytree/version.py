"""版本信息"""

__version__ = "0.3.0"
__author__ = "yafo-ai"
__description__ = "基于物化路径（Materialized Path）的 SQLAlchemy 树形结构引擎"
