"""树形结构扩展模块

提供通用的树形结构支持，使用物化路径（Materialized Path）模式。

主要组件:
- TreeMixin: 树形查询、关系判断、保存/删除钩子
- TreeFieldsMixin: 标准的 path / depth 字段定义
- TreeConfig / OrphanStrategy: 模型级别的树形配置
- PathCodec: 路径编解码
- TreeConditions: 查询条件工厂
- TreeMutator / OrphanResolver: 级联改写与孤儿节点处理
- 工具函数: 树形数据组织与处理

使用示例:
    from ytree.orm import BaseModel
    from ytree.orm.tree import TreeMixin, TreeFieldsMixin

    class Category(BaseModel, TreeFieldsMixin, TreeMixin):
        __tablename__ = "category"
        __tree_options__ = {
            "orphan_strategy": "rootify",
            "cache_depth": True,
        }

    node = Category.get(1)
    node.children().all()           # 直接子节点
    node.descendants().all()        # 全部子孙节点
    node.ancestors().all()          # 全部祖先节点（根 → 父）
    node.move_to(other, commit=True)

    tree = Category.arrange_serializable()   # 嵌套树结构
"""

from .exceptions import (
    TreeValidationIssue,
    TreeError,
    TreeConfigurationError,
    TreeValidationError,
    MalformedPathError,
    AncestryCycleError,
    RestrictDeleteError,
    NodeNotFoundError,
)
from .tree_path import PathCodec
from .tree_config import OrphanStrategy, TreeConfig, TreeBinding
from .tree_conditions import DEPTH_OPERATORS, TreeConditions
from .tree_mutator import TreeMutator
from .orphan_strategy import OrphanResolver
from .tree_mixin import TreeMixin
from .tree_fields import TreeFieldsMixin
from .tree_utils import (
    arrange_nodes,
    arrange_serializable,
    sort_by_path,
)

__all__ = [
    # Mixin 类
    "TreeMixin",
    "TreeFieldsMixin",

    # 配置
    "OrphanStrategy",
    "TreeConfig",
    "TreeBinding",

    # 组件
    "PathCodec",
    "DEPTH_OPERATORS",
    "TreeConditions",
    "TreeMutator",
    "OrphanResolver",

    # 异常
    "TreeValidationIssue",
    "TreeError",
    "TreeConfigurationError",
    "TreeValidationError",
    "MalformedPathError",
    "AncestryCycleError",
    "RestrictDeleteError",
    "NodeNotFoundError",

    # 工具函数
    "arrange_nodes",
    "arrange_serializable",
    "sort_by_path",
]
