"""孤儿节点处理

删除已持久化的节点前，按模型配置的策略处理它的子孙节点。
以 A(1) ← B(2, "1") ← C(3, "1/2") 删除 A 为例：

    destroy   B、C 一并删除
    rootify   B → 根节点，C → "2"
    adopt     B → 根节点，C → "2"（从祖先列表中去掉 1）
    restrict  A 存在子节点，抛出 RestrictDeleteError，不做任何修改

rootify 与 adopt 的区别体现在删除中间节点时：删除 B 时 rootify 让 C 成为根，
adopt 让 C 挂到 A 下（"1"）。
"""

from typing import Callable, Dict, List

from sqlalchemy.orm import object_session

from ...log import get_logger
from .exceptions import RestrictDeleteError
from .tree_conditions import TreeConditions
from .tree_config import OrphanStrategy, TreeBinding

logger = get_logger("ytree.orm.tree.orphan")


class OrphanResolver:
    """孤儿节点策略执行器

    Args:
        binding: 模型的 TreeBinding
    """

    def __init__(self, binding: TreeBinding):
        self.binding = binding
        self.codec = binding.codec
        self.conditions = TreeConditions(binding)
        self._handlers: Dict[OrphanStrategy, Callable] = {
            OrphanStrategy.DESTROY: self.destroy,
            OrphanStrategy.ROOTIFY: self.rootify,
            OrphanStrategy.ADOPT: self.adopt,
            OrphanStrategy.RESTRICT: self.restrict,
        }

    def resolve(self, node, strategy: OrphanStrategy = None) -> int:
        """按策略处理即将被删除的节点的子孙

        新建（未持久化）的节点没有子孙，直接跳过。

        Returns:
            受影响的子孙数量

        Raises:
            RestrictDeleteError: restrict 策略下节点仍有子节点
        """
        if self.binding.is_new(node):
            return 0
        strategy = OrphanStrategy.parse(strategy or self.binding.config.orphan_strategy)
        count = self._handlers[strategy](node)
        logger.debug(
            f"{self.binding.model.__name__}[{self.binding.get_id(node)}] "
            f"孤儿策略 {strategy}，处理 {count} 个子孙节点"
        )
        return count

    def _descendants(self, node) -> List:
        session = object_session(node)
        return (
            self.binding.query(session, unscoped=True)
            .filter(self.conditions.descendants(node))
            .all()
        )

    def _rewrite(self, row, path):
        self.binding.set_path(row, path)
        self.binding.refresh_depth(row)
        row.save(raw=True)

    def destroy(self, node) -> int:
        session = object_session(node)
        with session.no_autoflush:
            descendants = self._descendants(node)
            for descendant in descendants:
                descendant.delete(raw=True)
        return len(descendants)

    def rootify(self, node) -> int:
        child_path = self.binding.child_path(node)
        session = object_session(node)
        with session.no_autoflush:
            descendants = self._descendants(node)
            for descendant in descendants:
                self._rewrite(
                    descendant,
                    self.codec.strip_prefix(self.binding.get_path(descendant), child_path),
                )
        return len(descendants)

    def adopt(self, node) -> int:
        node_id = self.binding.get_id(node)
        session = object_session(node)
        with session.no_autoflush:
            descendants = self._descendants(node)
            for descendant in descendants:
                ancestor_ids = [
                    ancestor_id
                    for ancestor_id in self.binding.ancestor_ids(descendant)
                    if ancestor_id != node_id
                ]
                self._rewrite(descendant, self.codec.encode(ancestor_ids))
        return len(descendants)

    def restrict(self, node) -> int:
        session = object_session(node)
        with session.no_autoflush:
            has_children = (
                self.binding.query(session, unscoped=True)
                .filter(self.conditions.children(node))
                .first()
            ) is not None
        if has_children:
            node_id = self.binding.get_id(node)
            logger.warning(f"{self.binding.model.__name__}[{node_id}] 存在子节点，restrict 策略拒绝删除")
            raise RestrictDeleteError(node_id)
        return 0


__all__ = [
    "OrphanResolver",
]
