"""路径级联改写

已持久化的节点路径发生变化（换父节点）后，所有子孙节点路径开头的
旧 child_path 需要替换为新的 child_path：

    移动前  B(2, "1")     C(3, "1/2")    D(4, "1/2/3")
    B 变为根节点
    移动后  B(2, None)    C(3, "2")      D(4, "2/3")

子孙节点按前缀一次性全部查出（不受作用域和默认过滤影响），逐行原始写入，
改写过程不会再次触发级联。多行之间不保证原子性，需要调用方放在同一事务中。
"""

from typing import Any, Iterable, List, Optional

from sqlalchemy.orm import object_session

from ...log import get_logger
from .tree_conditions import TreeConditions
from .tree_config import TreeBinding

logger = get_logger("ytree.orm.tree.mutator")


class TreeMutator:
    """级联改写与祖先 touch

    Args:
        binding: 模型的 TreeBinding
    """

    def __init__(self, binding: TreeBinding):
        self.binding = binding
        self.codec = binding.codec
        self.conditions = TreeConditions(binding)

    def cascade(self, node, old_path: Optional[str]) -> int:
        """把子孙节点路径中的旧前缀改写为新前缀

        Args:
            node: 已持久化且路径已修改（尚未写入）的节点
            old_path: 节点上次持久化的路径

        Returns:
            改写的行数
        """
        binding = self.binding
        node_id = binding.get_id(node)
        old_child_path = self.codec.child_path(old_path, node_id)
        new_child_path = self.codec.child_path(binding.get_path(node), node_id)
        if old_child_path == new_child_path:
            return 0

        session = object_session(node)
        with session.no_autoflush:
            rows = (
                binding.query(session, unscoped=True)
                .filter(self.conditions.descendants_of_path(old_child_path))
                .all()
            )
            for row in rows:
                binding.set_path(
                    row,
                    self.codec.replace_prefix(binding.get_path(row), old_child_path, new_child_path),
                )
                binding.refresh_depth(row)
                row.save(raw=True)

        logger.debug(
            f"{binding.model.__name__}[{node_id}] 路径 {old_child_path!r} -> {new_child_path!r}，"
            f"级联改写 {len(rows)} 个子孙节点"
        )
        return len(rows)

    def touch_ancestors(self, node, *paths: Optional[str]) -> int:
        """更新给定路径中全部祖先的 updated_at（原始写入）

        Args:
            node: 触发的节点，用于获取 session
            *paths: 需要 touch 的祖先路径，通常是旧路径和新路径

        Returns:
            touch 的祖先数量
        """
        ids = self._collect_ids(paths)
        if not ids:
            return 0

        session = object_session(node) or node.session
        with session.no_autoflush:
            ancestors = (
                self.binding.query(session, unscoped=True)
                .filter(self.binding.pk_attr.in_(ids))
                .all()
            )
            for ancestor in ancestors:
                ancestor.touch()

        logger.debug(f"{self.binding.model.__name__} touch 祖先节点 {ids}")
        return len(ancestors)

    def _collect_ids(self, paths: Iterable[Optional[str]]) -> List[Any]:
        ids: List[Any] = []
        for path in paths:
            if not self.codec.is_valid(path):
                continue
            for ancestor_id in self.codec.decode(path):
                if ancestor_id not in ids:
                    ids.append(ancestor_id)
        return ids


__all__ = [
    "TreeMutator",
]
