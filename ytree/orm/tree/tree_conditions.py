"""树形查询条件

根据参照节点构造 SQLAlchemy 布尔表达式，所有条件只依赖物化路径字段：

    root                      path IS NULL OR path = ''
    ancestors(n)              id IN n.ancestor_ids
    children(n)               path = n.child_path
    descendants(n)            path = n.child_path OR path LIKE 'n.child_path/%'
    subtree(n)                descendants(n) OR id = n.id
    siblings(n)               path = n.path
    siblings_and_descendants  path = n.path OR path LIKE 'n.path/%'
    path(n)                   id IN n.ancestor_ids + [n.id]

前缀匹配按分隔符对齐并转义 LIKE 通配符，"12" 不会被前缀 "1" 匹配。
构造过程不访问数据库，也不修改任何状态。
"""

import operator
from typing import Any, Callable, Dict, List

from sqlalchemy import false, func, or_, true
from sqlalchemy.sql.elements import ColumnElement

from .exceptions import TreeConfigurationError
from .tree_config import TreeBinding


# 深度过滤选项 → 比较运算
DEPTH_OPERATORS: Dict[str, Callable[[Any, Any], Any]] = {
    "before_depth": operator.lt,
    "to_depth": operator.le,
    "at_depth": operator.eq,
    "from_depth": operator.ge,
    "after_depth": operator.gt,
}


class TreeConditions:
    """树形查询条件工厂

    Args:
        binding: 模型的 TreeBinding

    使用示例:
        conditions = TreeConditions(Category.tree_binding())
        session.query(Category).filter(conditions.descendants(node))
    """

    def __init__(self, binding: TreeBinding):
        self.binding = binding
        self.codec = binding.codec

    def _prefixed(self, prefix: str) -> ColumnElement:
        path_attr = self.binding.path_attr
        return or_(
            path_attr == prefix,
            path_attr.startswith(prefix + self.codec.SEPARATOR, autoescape=True),
        )

    def root(self) -> ColumnElement:
        path_attr = self.binding.path_attr
        return or_(path_attr.is_(None), path_attr == "")

    def ancestors(self, node) -> ColumnElement:
        ids = self.binding.ancestor_ids(node)
        if not ids:
            return false()
        return self.binding.pk_attr.in_(ids)

    def children(self, node) -> ColumnElement:
        return self.binding.path_attr == self.binding.child_path(node)

    def descendants(self, node) -> ColumnElement:
        return self.descendants_of_path(self.binding.child_path(node))

    def descendants_of_path(self, child_path: str) -> ColumnElement:
        """路径等于 child_path 或位于其下的所有行"""
        return self._prefixed(child_path)

    def subtree(self, node) -> ColumnElement:
        return or_(
            self.descendants(node),
            self.binding.pk_attr == self.binding.get_id(node),
        )

    def siblings(self, node) -> ColumnElement:
        path = self.binding.get_path(node)
        if not path:
            return self.root()
        return self.binding.path_attr == path

    def siblings_and_descendants(self, node) -> ColumnElement:
        path = self.binding.get_path(node)
        if not path:
            # 根节点的兄弟及其子孙就是整个作用域
            return true()
        return self._prefixed(path)

    def path(self, node) -> ColumnElement:
        return self.binding.pk_attr.in_(self.binding.path_ids(node))

    def scope(self, node) -> ColumnElement:
        scope_attr = self.binding.scope_attr
        if scope_attr is None:
            return true()
        value = self.binding.get_scope(node)
        if value is None:
            return scope_attr.is_(None)
        return scope_attr == value

    # ==================== 深度过滤 ====================

    def depth(self, option: str, value: int) -> ColumnElement:
        """单个深度过滤条件

        Args:
            option: before_depth / to_depth / at_depth / from_depth / after_depth
            value: 深度值

        Raises:
            TreeConfigurationError: 未启用深度缓存，或未知的过滤选项
        """
        depth_attr = self.binding.depth_attr
        if depth_attr is None:
            raise TreeConfigurationError(
                f"{self.binding.model.__name__} 未启用 cache_depth，不能使用深度过滤 {option}"
            )
        compare = DEPTH_OPERATORS.get(option)
        if compare is None:
            raise TreeConfigurationError(
                f"未知的深度过滤选项: {option}，可选项: {list(DEPTH_OPERATORS)}"
            )
        return compare(depth_attr, value)

    def depth_filters(self, **options: int) -> List[ColumnElement]:
        """绝对深度过滤条件列表"""
        return [self.depth(option, value) for option, value in options.items()]

    def relative_depth(self, node, **options: int) -> List[ColumnElement]:
        """相对参照节点深度的过滤条件

        node.descendants(before_depth=2) 表示深度小于 node 深度 + 2 的子孙。
        """
        base = self.binding.depth_of(node)
        return [self.depth(option, base + value) for option, value in options.items()]

    # ==================== 排序 ====================

    def order_by_path(self) -> ColumnElement:
        """按路径排序，根节点（NULL/空路径）排在最前

        键宽度不一致时只是前序遍历的近似。
        """
        return func.coalesce(self.binding.path_attr, "")


__all__ = [
    "DEPTH_OPERATORS",
    "TreeConditions",
]
