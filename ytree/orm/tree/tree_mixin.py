"""树形结构 Mixin

提供通用的树形操作方法，使用物化路径（Materialized Path）模式。

物化路径模式说明：
    - 每个节点只保存从根到父节点的祖先ID路径，如 "1/2"，根节点为空
    - 优点：查询祖先/子孙/兄弟都是对同一列的等值或前缀匹配
    - 缺点：移动节点时需要改写所有子孙的路径（保存时自动级联）

使用示例:
    from ytree.orm import BaseModel
    from ytree.orm.tree import TreeFieldsMixin, TreeMixin

    class Category(BaseModel, TreeFieldsMixin, TreeMixin):
        __tablename__ = "category"
        __tree_options__ = {"orphan_strategy": "adopt", "cache_depth": True}

    books = Category(name="图书").save(commit=True)
    novel = Category(name="小说", parent=books).save(commit=True)

    novel.ancestors().all()     # [books]
    books.children().all()      # [novel]
    novel.parent = None         # 移到根级别
    novel.save(commit=True)     # 子孙路径自动级联改写
"""

from typing import Any, Callable, ClassVar, Dict, List, Optional

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import Query, Session, object_session

from ...exceptions import ErrorCode
from ...log import get_logger
from .exceptions import (
    AncestryCycleError,
    MalformedPathError,
    NodeNotFoundError,
    TreeConfigurationError,
    TreeValidationError,
    TreeValidationIssue,
)
from .orphan_strategy import OrphanResolver
from .tree_conditions import TreeConditions
from .tree_config import TreeBinding, TreeConfig, resolve_tree_config
from .tree_mutator import TreeMutator
from . import tree_utils

logger = get_logger("ytree.orm.tree")


class TreeMixin:
    """树形结构 Mixin

    与 CoreModel 一起使用，通过 before_save / after_save / before_delete / after_delete
    钩子接入保存流程：

        保存:  作用域继承 → 深度缓存 → 校验 → 路径变化时级联改写子孙 → touch 祖先
        删除:  孤儿策略处理子孙 → 删除自身 → touch 祖先

    字段要求:
        - 路径字段（默认 path，可用 TreeFieldsMixin 提供）
        - 深度字段（开启 cache_depth 时，默认 depth）
        - 作用域字段（配置 scope 时）

    可配置属性（子类可覆盖）:
        - __tree_options__: 选项字典，见 TreeConfig
        - __tree_config__: 直接指定 TreeConfig（可与 __tree_options__ 组合）
        - __tree_default_filter__: 返回可见性过滤条件的类方法，
          作用于所有带作用域的读取，级联改写与孤儿处理不受影响

    命名说明:
        路径字段默认名为 path，因此"从根到自身的节点"查询命名为 path_nodes()；
        深度字段默认名为 depth，按路径计算的深度为 tree_depth。
    """

    __tree_config__: ClassVar[TreeConfig] = TreeConfig()

    # 最近一次 validate() / save() 的校验问题
    tree_errors = ()

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)
        inherited = None
        for klass in cls.__mro__[1:]:
            if "__tree_config__" in klass.__dict__:
                inherited = klass.__dict__["__tree_config__"]
                break
        cls.__tree_config__ = resolve_tree_config(cls, inherited)

    # ==================== 配置与组件 ====================

    @classmethod
    def tree_binding(cls) -> TreeBinding:
        """获取模型的 TreeBinding（首次使用时解析并缓存在类上）"""
        binding = cls.__dict__.get("_tree_binding")
        if binding is None:
            binding = cls.__tree_config__.bind(cls)
            setattr(cls, "_tree_binding", binding)
        return binding

    @classmethod
    def tree_conditions(cls) -> TreeConditions:
        return TreeConditions(cls.tree_binding())

    @classmethod
    def _tree_session(cls) -> Session:
        query = getattr(cls, "query", None)
        if query is not None:
            return query.session
        from ..db_session import db_manager
        return db_manager.get_session()

    def _node_session(self) -> Session:
        return object_session(self) or self._tree_session()

    @classmethod
    def tree_query(cls, unscoped: bool = False) -> Query:
        """模型查询

        Args:
            unscoped: True 时不附加 __tree_default_filter__
        """
        return cls.tree_binding().query(cls._tree_session(), unscoped=unscoped)

    @classmethod
    def _find_unscoped(cls, node_id: Any, session: Optional[Session] = None):
        binding = cls.tree_binding()
        session = session or cls._tree_session()
        with session.no_autoflush:
            return (
                binding.query(session, unscoped=True)
                .filter(binding.pk_attr == node_id)
                .first()
            )

    @classmethod
    def _resolve_node(cls, node_or_id: Any):
        """参数可以是节点对象或主键，主键按非作用域查询

        Raises:
            NodeNotFoundError: 主键对应的节点不存在
        """
        if isinstance(node_or_id, TreeMixin):
            return node_or_id
        node = cls._find_unscoped(node_or_id)
        if node is None:
            raise NodeNotFoundError(node_or_id, cls.__name__)
        return node

    # ==================== 派生属性 ====================

    @property
    def ancestor_ids(self) -> List[Any]:
        """祖先ID列表（根 → 父）"""
        return self.tree_binding().ancestor_ids(self)

    @property
    def path_ids(self) -> List[Any]:
        """从根到自身的ID列表"""
        return self.tree_binding().path_ids(self)

    @property
    def child_path(self) -> str:
        """子节点应携带的路径，新节点调用会抛出 TreeError"""
        return self.tree_binding().child_path(self)

    @property
    def tree_depth(self) -> int:
        """按路径计算的深度，根节点为 0"""
        return self.tree_binding().depth_of(self)

    @property
    def root_id(self) -> Any:
        return self.tree_binding().root_id(self)

    @property
    def parent_id(self) -> Any:
        return self.tree_binding().parent_id(self)

    @parent_id.setter
    def parent_id(self, value: Any):
        if value is None or value == "":
            self.parent = None
        else:
            parent = self._find_unscoped(value, self._node_session())
            if parent is None:
                raise NodeNotFoundError(value, type(self).__name__)
            self.parent = parent

    @property
    def parent(self):
        """父节点（非作用域查询），根节点返回 None

        Raises:
            NodeNotFoundError: 路径引用的父节点不存在
        """
        parent_id = self.parent_id
        if parent_id is None:
            return None
        parent = self._find_unscoped(parent_id, self._node_session())
        if parent is None:
            raise NodeNotFoundError(parent_id, type(self).__name__)
        return parent

    @parent.setter
    def parent(self, parent):
        binding = self.tree_binding()
        binding.set_path(self, None if parent is None else binding.child_path(parent))

    @property
    def root(self):
        """根节点（非作用域查询），自身是根时返回自身"""
        root_id = self.root_id
        if root_id == self.tree_binding().get_id(self):
            return self
        root = self._find_unscoped(root_id, self._node_session())
        if root is None:
            raise NodeNotFoundError(root_id, type(self).__name__)
        return root

    def path_string(self, delimiter: str = "/") -> str:
        """从根到自身的ID串，如 "1/2/3" """
        return delimiter.join(str(node_id) for node_id in self.path_ids)

    # ==================== 节点查询 ====================

    def _scoped_query(self) -> Query:
        binding = self.tree_binding()
        conditions = TreeConditions(binding)
        return binding.query(self._node_session()).filter(conditions.scope(self))

    def _traverse(self, condition_name: str, **depth_options: int) -> Query:
        conditions = self.tree_conditions()
        condition = getattr(conditions, condition_name)(self)
        return (
            self._scoped_query()
            .filter(condition, *conditions.relative_depth(self, **depth_options))
            .order_by(conditions.order_by_path(), self.tree_binding().pk_attr)
        )

    def ancestors(self, **depth_options: int) -> Query:
        """祖先节点查询（根 → 父）

        深度选项相对当前节点，如 ancestors(from_depth=-1) 只返回父节点。
        """
        return self._traverse("ancestors", **depth_options)

    def path_nodes(self, **depth_options: int) -> Query:
        """从根到自身的全部节点"""
        return self._traverse("path", **depth_options)

    def children(self) -> Query:
        return self._traverse("children")

    def descendants(self, **depth_options: int) -> Query:
        """全部子孙节点，如 descendants(before_depth=2) 只返回子节点和孙节点"""
        return self._traverse("descendants", **depth_options)

    def subtree(self, **depth_options: int) -> Query:
        """自身及全部子孙"""
        return self._traverse("subtree", **depth_options)

    def siblings(self) -> Query:
        """兄弟节点（包含自身）"""
        return self._traverse("siblings")

    def siblings_and_descendants(self) -> Query:
        return self._traverse("siblings_and_descendants")

    def roots(self) -> Query:
        """与当前节点同一作用域的全部根节点"""
        conditions = self.tree_conditions()
        return (
            self._scoped_query()
            .filter(conditions.root())
            .order_by(conditions.order_by_path(), self.tree_binding().pk_attr)
        )

    def _ids(self, query: Query) -> List[Any]:
        return [row[0] for row in query.with_entities(self.tree_binding().pk_attr)]

    def child_ids(self) -> List[Any]:
        return self._ids(self.children())

    def sibling_ids(self) -> List[Any]:
        return self._ids(self.siblings())

    def descendant_ids(self, **depth_options: int) -> List[Any]:
        return self._ids(self.descendants(**depth_options))

    def subtree_ids(self, **depth_options: int) -> List[Any]:
        return self._ids(self.subtree(**depth_options))

    # ==================== 关系判断 ====================

    def is_root(self) -> bool:
        return not self.tree_binding().get_path(self)

    def is_ancestor_of(self, node) -> bool:
        return self.tree_binding().get_id(self) in node.ancestor_ids

    def is_descendant_of(self, node) -> bool:
        return node.tree_binding().get_id(node) in self.ancestor_ids

    def is_parent_of(self, node) -> bool:
        return node.parent_id is not None and node.parent_id == self.tree_binding().get_id(self)

    def is_child_of(self, node) -> bool:
        return self.parent_id is not None and self.parent_id == node.tree_binding().get_id(node)

    def is_root_of(self, node) -> bool:
        return node.root_id == self.tree_binding().get_id(self)

    def is_sibling_of(self, node) -> bool:
        """路径相同且属于同一作用域（节点与自身也互为兄弟）"""
        binding = self.tree_binding()
        return (
            (binding.get_path(self) or None) == (binding.get_path(node) or None)
            and binding.get_scope(self) == binding.get_scope(node)
        )

    def has_children(self) -> bool:
        return self.children().first() is not None

    def is_childless(self) -> bool:
        return not self.has_children()

    def has_siblings(self) -> bool:
        return self.siblings().count() > 1

    def is_only_child(self) -> bool:
        return not self.has_siblings()

    # ==================== 类级别查询 ====================

    @classmethod
    def roots_query(cls) -> Query:
        """所有作用域的根节点"""
        conditions = cls.tree_conditions()
        return (
            cls.tree_query()
            .filter(conditions.root())
            .order_by(conditions.order_by_path(), cls.tree_binding().pk_attr)
        )

    @classmethod
    def roots_of(cls, node_or_id: Any) -> Query:
        return cls._resolve_node(node_or_id).roots()

    @classmethod
    def ancestors_of(cls, node_or_id: Any, **depth_options: int) -> Query:
        return cls._resolve_node(node_or_id).ancestors(**depth_options)

    @classmethod
    def children_of(cls, node_or_id: Any) -> Query:
        return cls._resolve_node(node_or_id).children()

    @classmethod
    def descendants_of(cls, node_or_id: Any, **depth_options: int) -> Query:
        return cls._resolve_node(node_or_id).descendants(**depth_options)

    @classmethod
    def subtree_of(cls, node_or_id: Any, **depth_options: int) -> Query:
        return cls._resolve_node(node_or_id).subtree(**depth_options)

    @classmethod
    def siblings_of(cls, node_or_id: Any) -> Query:
        return cls._resolve_node(node_or_id).siblings()

    @classmethod
    def path_of(cls, node_or_id: Any, **depth_options: int) -> Query:
        return cls._resolve_node(node_or_id).path_nodes(**depth_options)

    @classmethod
    def _depth_query(cls, option: str, depth: int) -> Query:
        return cls.tree_query().filter(cls.tree_conditions().depth(option, depth))

    @classmethod
    def before_depth(cls, depth: int) -> Query:
        return cls._depth_query("before_depth", depth)

    @classmethod
    def to_depth(cls, depth: int) -> Query:
        return cls._depth_query("to_depth", depth)

    @classmethod
    def at_depth(cls, depth: int) -> Query:
        return cls._depth_query("at_depth", depth)

    @classmethod
    def from_depth(cls, depth: int) -> Query:
        return cls._depth_query("from_depth", depth)

    @classmethod
    def after_depth(cls, depth: int) -> Query:
        return cls._depth_query("after_depth", depth)

    @classmethod
    def ordered_by_path(cls, query: Optional[Query] = None, *order_by: Any) -> Query:
        """按路径排序（根节点在前），可追加其他排序字段"""
        query = query if query is not None else cls.tree_query()
        return query.order_by(cls.tree_conditions().order_by_path(), *order_by)

    # ==================== 树形组织 ====================

    @classmethod
    def arrange(cls, query: Optional[Query] = None) -> Dict[Any, Dict]:
        """把查询结果组织为嵌套字典 {node: {child: {...}}}

        使用示例:
            Category.arrange()                  # 整个森林
            Category.arrange(node.subtree())    # 某个子树
        """
        nodes = cls.ordered_by_path(query, cls.tree_binding().pk_attr).all()
        return tree_utils.arrange_nodes(nodes)

    @classmethod
    def arrange_serializable(
        cls,
        query: Optional[Query] = None,
        serializer: Optional[Callable] = None,
    ) -> List[Dict[str, Any]]:
        """嵌套列表形式的树，每个节点带 children 字段"""
        return tree_utils.arrange_serializable(cls.arrange(query), serializer)

    @classmethod
    def sort_by_path(cls, nodes: List[Any], key: Optional[Callable] = None) -> List[Any]:
        """内存中的前序排序，同级节点可按 key 排序"""
        return tree_utils.sort_by_path(nodes, key)

    # ==================== 校验 ====================

    def tree_issues(self) -> List[TreeValidationIssue]:
        """收集当前节点的树形校验问题（不修改节点）"""
        binding = self.tree_binding()
        issues: List[TreeValidationIssue] = []
        path = binding.get_path(self)

        if not binding.codec.is_valid(path):
            issues.append(TreeValidationIssue(
                field=binding.path_key,
                code=ErrorCode.TREE_MALFORMED_PATH,
                message=f"路径格式错误: {path!r}",
            ))
        else:
            node_id = binding.get_id(self)
            if node_id is not None and node_id in binding.codec.decode(path):
                issues.append(TreeValidationIssue(
                    field=binding.path_key,
                    code=ErrorCode.TREE_CYCLE,
                    message=f"节点 {node_id} 不能是自身的祖先",
                ))

        # 超长路径在部分数据库上会被截断，截断后的路径指向错误的祖先
        max_length = binding.path_max_length
        if path and max_length is not None and len(path) > max_length:
            issues.append(TreeValidationIssue(
                field=binding.path_key,
                code=ErrorCode.TREE_PATH_TOO_LONG,
                message=f"路径长度 {len(path)} 超过字段上限 {max_length}，树的层级过深",
            ))

        if binding.depth_key is not None:
            depth = getattr(self, binding.depth_key)
            if not isinstance(depth, int) or isinstance(depth, bool) or depth < 0:
                issues.append(TreeValidationIssue(
                    field=binding.depth_key,
                    code=ErrorCode.VALIDATION_ERROR,
                    message=f"深度必须是非负整数: {depth!r}",
                ))

        return issues

    def validate(self) -> bool:
        """校验节点，问题记录在 tree_errors 中，不抛出异常"""
        self.tree_binding().refresh_depth(self)
        self.tree_errors = self.tree_issues()
        return not self.tree_errors

    @staticmethod
    def _validation_error(issues: List[TreeValidationIssue]) -> TreeValidationError:
        codes = {issue.code for issue in issues}
        if ErrorCode.TREE_CYCLE in codes:
            return AncestryCycleError(issues)
        if ErrorCode.TREE_MALFORMED_PATH in codes:
            return MalformedPathError(issues)
        return TreeValidationError(issues)

    # ==================== 保存/删除钩子 ====================

    def _inherit_tree_scope(self, binding: TreeBinding):
        if binding.scope_key is None or binding.get_scope(self) is not None:
            return
        if not binding.codec.is_valid(binding.get_path(self)):
            return
        parent_id = binding.parent_id(self)
        if parent_id is None:
            return
        parent = self._find_unscoped(parent_id, self._node_session())
        if parent is not None:
            binding.set_scope(self, binding.get_scope(parent))

    def before_save(self):
        binding = self.tree_binding()
        if binding.get_path(self) == "":
            binding.set_path(self, None)

        self._inherit_tree_scope(binding)

        if not self.validate():
            issues = self.tree_errors
            if not binding.is_new(self):
                binding.set_path(self, binding.persisted_path(self))
                binding.refresh_depth(self)
            logger.warning(
                f"{type(self).__name__}[{binding.get_id(self)}] 拒绝保存: "
                f"{[issue.message for issue in issues]}"
            )
            raise self._validation_error(issues)

        is_new = binding.is_new(self)
        old_path = binding.persisted_path(self)

        if binding.config.touch and (is_new or sa_inspect(self).modified):
            self._tree_touch_paths = (old_path, binding.get_path(self))

        if not is_new and binding.path_changed(self):
            TreeMutator(binding).cascade(self, old_path)

    def _flush_tree_changes(self):
        # 写入后立即 flush：持久化路径与内存一致，自增主键也在此时分配
        session = object_session(self)
        if session is not None:
            session.flush()

    def after_save(self):
        self._flush_tree_changes()
        paths = self.__dict__.pop("_tree_touch_paths", None)
        if paths is not None:
            TreeMutator(self.tree_binding()).touch_ancestors(self, *paths)

    def before_delete(self):
        binding = self.tree_binding()
        OrphanResolver(binding).resolve(self)
        if binding.config.touch:
            self._tree_touch_paths = (binding.persisted_path(self), binding.get_path(self))

    def after_delete(self):
        self._flush_tree_changes()
        paths = self.__dict__.pop("_tree_touch_paths", None)
        if paths is not None:
            TreeMutator(self.tree_binding()).touch_ancestors(self, *paths)

    # ==================== 节点操作 ====================

    def move_to(self, new_parent: Any, commit: bool = False):
        """移动节点到新的父节点下并保存

        Args:
            new_parent: 新父节点对象或主键，None 表示移动到根级别
            commit: 是否立即提交

        Raises:
            NodeNotFoundError: 新父节点不存在
            AncestryCycleError: 新父节点是自身或自身的子孙
        """
        if new_parent is None or isinstance(new_parent, TreeMixin):
            self.parent = new_parent
        else:
            self.parent_id = new_parent
        return self.save(commit=commit)

    # ==================== 维护 ====================

    @classmethod
    def rebuild_depth_cache(cls, commit: bool = False) -> int:
        """按路径重算全部节点的深度缓存

        Returns:
            深度发生变化的节点数量

        Raises:
            TreeConfigurationError: 未启用 cache_depth
        """
        binding = cls.tree_binding()
        if binding.depth_key is None:
            raise TreeConfigurationError(f"{cls.__name__} 未启用 cache_depth，无法重建深度缓存")

        session = cls._tree_session()
        count = 0
        for node in binding.query(session, unscoped=True).all():
            if not binding.codec.is_valid(binding.get_path(node)):
                continue
            depth = binding.depth_of(node)
            if getattr(node, binding.depth_key) != depth:
                setattr(node, binding.depth_key, depth)
                node.save(raw=True)
                count += 1
        if commit:
            session.commit()
        logger.debug(f"{cls.__name__} 重建深度缓存，更新 {count} 个节点")
        return count

    @classmethod
    def check_tree_integrity(cls, raise_on_error: bool = False) -> List[TreeValidationIssue]:
        """检查全表的树形数据完整性

        检查项：路径格式、节点引用自身、引用不存在的祖先、路径与父节点路径不一致。

        Args:
            raise_on_error: 发现问题时抛出 TreeValidationError

        Returns:
            问题列表，无问题返回空列表
        """
        binding = cls.tree_binding()
        nodes = binding.query(cls._tree_session(), unscoped=True).all()
        by_id = {binding.get_id(node): node for node in nodes}
        issues: List[TreeValidationIssue] = []

        for node in nodes:
            node_id = binding.get_id(node)
            path = binding.get_path(node)
            if not binding.codec.is_valid(path):
                issues.append(TreeValidationIssue(
                    binding.path_key, ErrorCode.TREE_MALFORMED_PATH,
                    f"节点 {node_id} 路径格式错误: {path!r}",
                ))
                continue

            ancestor_ids = binding.codec.decode(path)
            if node_id in ancestor_ids:
                issues.append(TreeValidationIssue(
                    binding.path_key, ErrorCode.TREE_CYCLE,
                    f"节点 {node_id} 的路径包含自身: {path!r}",
                ))
                continue

            missing = [ancestor_id for ancestor_id in ancestor_ids if ancestor_id not in by_id]
            if missing:
                issues.append(TreeValidationIssue(
                    binding.path_key, ErrorCode.NODE_NOT_FOUND,
                    f"节点 {node_id} 引用了不存在的祖先 {missing}",
                ))
                continue

            if ancestor_ids:
                parent = by_id[ancestor_ids[-1]]
                if binding.codec.is_valid(binding.get_path(parent)) and binding.path_ids(parent) != ancestor_ids:
                    issues.append(TreeValidationIssue(
                        binding.path_key, ErrorCode.VALIDATION_ERROR,
                        f"节点 {node_id} 的路径 {path!r} 与父节点 {binding.get_id(parent)} 的路径不一致",
                    ))

        if issues and raise_on_error:
            raise TreeValidationError(issues, message=f"{cls.__name__} 树形数据不完整")
        return issues


__all__ = ["TreeMixin"]
