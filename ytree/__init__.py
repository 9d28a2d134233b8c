"""
YTree - 基于物化路径的 SQLAlchemy 树形结构引擎

提供树形模型、配置、日志、异常等基础功能
"""

from .version import __version__, __author__, __description__

# 导出ORM基类
from .orm import (
    Base,
    CoreModel,
    BaseModel,
    init_database,
    get_engine,
    db_session_scope,
)

# 导出树形结构
from .orm.tree import (
    TreeMixin,
    TreeFieldsMixin,
    TreeConfig,
    OrphanStrategy,
    PathCodec,
)

# 导出异常
from .exceptions import (
    ErrorCode,
    BusinessException,
)
from .orm.tree import (
    TreeError,
    TreeConfigurationError,
    TreeValidationError,
    RestrictDeleteError,
    NodeNotFoundError,
)

# 导出日志
from .log import setup_logger, get_logger

__all__ = [
    "__version__",
    "__author__",
    "__description__",
    "Base",
    "CoreModel",
    "BaseModel",
    "init_database",
    "get_engine",
    "db_session_scope",
    "TreeMixin",
    "TreeFieldsMixin",
    "TreeConfig",
    "OrphanStrategy",
    "PathCodec",
    "ErrorCode",
    "BusinessException",
    "TreeError",
    "TreeConfigurationError",
    "TreeValidationError",
    "RestrictDeleteError",
    "NodeNotFoundError",
    "setup_logger",
    "get_logger",
]
