"""ORM模块

提供树形模型所需的 ORM 基础：
- CoreModel: 核心模型基类，包含ID、时间戳、CRUD、生命周期钩子
- BaseModel: 业务模型基类，继承CoreModel，添加name/code/note等常用字段
- 数据库会话管理
- 树形结构扩展（ytree.orm.tree）

使用示例:
    from ytree.orm import BaseModel, init_database
    from ytree.orm.tree import TreeFieldsMixin, TreeMixin

    class Category(BaseModel, TreeFieldsMixin, TreeMixin):
        __tablename__ = "category"

    init_database("sqlite:///./tree.db")
"""

from .id_model import IdModel, Base
from .core_model import CoreModel, PKType
from .base_model import BaseModel
from .primary_key_config import (
    IdType,
    PrimaryKeyConfig,
    configure_primary_key,
    generate_uuid,
)
from .db_session import (
    # 管理器单例
    db_manager,
    # 公开 API
    init_database,
    get_engine,
    on_request_end,
    db_session_scope,
    with_db_session,
)

__all__ = [
    # 基类
    "Base",
    "IdModel",
    "CoreModel",
    "BaseModel",
    "PKType",

    # 主键
    "IdType",
    "PrimaryKeyConfig",
    "configure_primary_key",
    "generate_uuid",

    # 会话
    "db_manager",
    "init_database",
    "get_engine",
    "on_request_end",
    "db_session_scope",
    "with_db_session",
]
