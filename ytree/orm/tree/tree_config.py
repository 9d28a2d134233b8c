"""树形结构配置

- OrphanStrategy: 删除节点时子孙节点的处理策略
- TreeConfig: 模型级别的不可变配置，在类定义时校验
- TreeBinding: 配置在具体模型上的解析结果（主键/路径/深度/作用域属性），
  每个模型类只解析一次，之后显式传给条件构造、级联改写、孤儿处理等组件

使用示例:
    class Category(BaseModel, TreeFieldsMixin, TreeMixin):
        __tree_options__ = {
            "orphan_strategy": "rootify",
            "cache_depth": True,
            "scope": "tenant_id",
        }
"""

import dataclasses
import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import Query, Session, object_session

from .exceptions import TreeConfigurationError, TreeError
from .tree_path import PathCodec


class OrphanStrategy(str, Enum):
    """孤儿节点策略

    - DESTROY: 删除全部子孙节点（默认）
    - ROOTIFY: 直接子节点变为根节点，更深的子孙保留原有层次
    - ADOPT: 子孙节点交给被删节点的父节点收养
    - RESTRICT: 存在子节点时禁止删除
    """
    DESTROY = "destroy"
    ROOTIFY = "rootify"
    ADOPT = "adopt"
    RESTRICT = "restrict"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: Any) -> "OrphanStrategy":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).lower())
        except ValueError:
            allowed = [s.value for s in cls]
            raise TreeConfigurationError(
                f"不支持的孤儿节点策略: {value}，可选值: {allowed}"
            ) from None


@dataclass(frozen=True)
class TreeConfig:
    """树形模型配置（不可变）

    Attributes:
        path_column: 物化路径字段名
        orphan_strategy: 孤儿节点策略
        scope: 作用域字段名或关联名（关联名 "tenant" 对应字段 "tenant_id"）
        cache_depth: 是否缓存深度
        depth_cache_column: 深度缓存字段名
        touch: 保存/删除后是否更新新旧祖先的 updated_at
        primary_key_format: 路径中单个主键的正则，默认按主键类型推断
    """
    path_column: str = "path"
    orphan_strategy: OrphanStrategy = OrphanStrategy.DESTROY
    scope: Optional[str] = None
    cache_depth: bool = False
    depth_cache_column: str = "depth"
    touch: bool = False
    primary_key_format: Optional[str] = None

    def __post_init__(self):
        object.__setattr__(self, "orphan_strategy", OrphanStrategy.parse(self.orphan_strategy))
        if not self.path_column:
            raise TreeConfigurationError("path_column 不能为空")
        if self.cache_depth and not self.depth_cache_column:
            raise TreeConfigurationError("启用 cache_depth 时 depth_cache_column 不能为空")
        if self.primary_key_format is not None:
            try:
                re.compile(self.primary_key_format)
            except re.error as e:
                raise TreeConfigurationError(f"primary_key_format 不是合法的正则: {e}") from None

    @classmethod
    def option_names(cls) -> List[str]:
        return [f.name for f in dataclasses.fields(cls)]

    @classmethod
    def from_options(cls, options: Mapping[str, Any], base: Optional["TreeConfig"] = None) -> "TreeConfig":
        """从选项字典创建配置

        Args:
            options: 选项字典，键必须是 TreeConfig 的字段名
            base: 基础配置，未指定的选项沿用基础配置的值

        Raises:
            TreeConfigurationError: 存在未知选项或选项值非法
        """
        unknown = sorted(set(options) - set(cls.option_names()))
        if unknown:
            raise TreeConfigurationError(
                f"未知的树形配置项: {unknown}，可选项: {cls.option_names()}"
            )
        return dataclasses.replace(base or cls(), **dict(options))

    @classmethod
    def from_settings(cls, settings: Any, **overrides: Any) -> "TreeConfig":
        """从 TreeSettings（pydantic-settings）创建配置"""
        options = {name: getattr(settings, name) for name in cls.option_names() if hasattr(settings, name)}
        options.update(overrides)
        return cls.from_options(options)

    def bind(self, model: type) -> "TreeBinding":
        return TreeBinding.resolve(model, self)


@dataclass(frozen=True)
class TreeBinding:
    """模型上解析后的树形属性访问器

    只保存属性名，不保存任何节点状态，可在线程间共享。
    """
    model: type
    config: TreeConfig
    codec: PathCodec
    pk_key: str
    path_key: str
    depth_key: Optional[str] = None
    scope_key: Optional[str] = None
    # 路径字段声明的最大长度，Text 等无长度类型为 None
    path_max_length: Optional[int] = None

    @classmethod
    def resolve(cls, model: type, config: TreeConfig) -> "TreeBinding":
        """在已映射的模型类上解析配置

        Raises:
            TreeConfigurationError: 主键不是单列，或配置的字段不存在
        """
        mapper = sa_inspect(model)
        column_keys = set(mapper.column_attrs.keys())

        if len(mapper.primary_key) != 1:
            raise TreeConfigurationError(f"{model.__name__} 必须使用单列主键")
        pk_column = mapper.primary_key[0]
        pk_key = mapper.get_property_by_column(pk_column).key
        try:
            key_type = pk_column.type.python_type
        except NotImplementedError:
            key_type = str

        if config.path_column not in column_keys:
            raise TreeConfigurationError(
                f"{model.__name__} 没有路径字段 {config.path_column!r}"
            )
        path_column = mapper.column_attrs[config.path_column].columns[0]
        path_max_length = getattr(path_column.type, "length", None)

        depth_key = None
        if config.cache_depth:
            if config.depth_cache_column not in column_keys:
                raise TreeConfigurationError(
                    f"{model.__name__} 没有深度缓存字段 {config.depth_cache_column!r}"
                )
            depth_key = config.depth_cache_column

        scope_key = None
        if config.scope:
            if config.scope in column_keys:
                scope_key = config.scope
            elif config.scope in mapper.relationships.keys() and f"{config.scope}_id" in column_keys:
                scope_key = f"{config.scope}_id"
            else:
                raise TreeConfigurationError(
                    f"{model.__name__} 没有作用域字段或关联 {config.scope!r}"
                )

        return cls(
            model=model,
            config=config,
            codec=PathCodec(key_type, config.primary_key_format),
            pk_key=pk_key,
            path_key=config.path_column,
            depth_key=depth_key,
            scope_key=scope_key,
            path_max_length=path_max_length,
        )

    # ==================== 映射属性 ====================

    @property
    def pk_attr(self):
        return getattr(self.model, self.pk_key)

    @property
    def path_attr(self):
        return getattr(self.model, self.path_key)

    @property
    def depth_attr(self):
        return getattr(self.model, self.depth_key) if self.depth_key else None

    @property
    def scope_attr(self):
        return getattr(self.model, self.scope_key) if self.scope_key else None

    # ==================== 行访问 ====================

    def get_id(self, node) -> Any:
        return getattr(node, self.pk_key)

    def get_path(self, node) -> Optional[str]:
        return getattr(node, self.path_key)

    def set_path(self, node, value: Optional[str]):
        # 根节点统一存为 NULL
        setattr(node, self.path_key, value or None)

    def get_scope(self, node) -> Any:
        return getattr(node, self.scope_key) if self.scope_key else None

    def set_scope(self, node, value: Any):
        if self.scope_key:
            setattr(node, self.scope_key, value)

    def is_new(self, node) -> bool:
        """新建的、尚未持久化的节点"""
        return not sa_inspect(node).has_identity

    def persisted_path(self, node) -> Optional[str]:
        """节点上次持久化的路径

        优先从属性历史获取；历史中没有旧值时（属性在修改前未加载）从数据库读取。
        """
        if self.is_new(node):
            return None
        history = sa_inspect(node).attrs[self.path_key].history
        if not history.has_changes():
            return self.get_path(node)
        if history.deleted:
            return history.deleted[0]
        session = object_session(node)
        if session is None:
            return None
        with session.no_autoflush:
            return session.query(self.path_attr).filter(self.pk_attr == self.get_id(node)).scalar()

    def path_changed(self, node) -> bool:
        if self.is_new(node):
            return False
        return (self.persisted_path(node) or None) != (self.get_path(node) or None)

    # ==================== 派生值 ====================

    def ancestor_ids(self, node) -> List[Any]:
        return self.codec.decode(self.get_path(node))

    def parent_id(self, node) -> Any:
        ids = self.ancestor_ids(node)
        return ids[-1] if ids else None

    def root_id(self, node) -> Any:
        ids = self.ancestor_ids(node)
        return ids[0] if ids else self.get_id(node)

    def path_ids(self, node) -> List[Any]:
        return self.ancestor_ids(node) + [self.get_id(node)]

    def depth_of(self, node) -> int:
        return len(self.ancestor_ids(node))

    def child_path(self, node) -> str:
        """子节点应携带的路径，只对已持久化的节点有意义

        基于节点已持久化的路径计算，节点自身有未保存的移动时，
        数据库中的子孙仍然位于旧的 child_path 之下。

        Raises:
            TreeError: 节点尚未持久化
        """
        if self.is_new(node):
            raise TreeError(
                f"{self.model.__name__} 新节点尚未保存，不能作为父节点",
                node_id=self.get_id(node),
            )
        return self.codec.child_path(self.persisted_path(node), self.get_id(node))

    def refresh_depth(self, node):
        """按当前路径重算深度缓存，路径不合法时保持原值交由校验报告"""
        if self.depth_key is None:
            return
        if self.codec.is_valid(self.get_path(node)):
            setattr(node, self.depth_key, self.depth_of(node))

    # ==================== 查询 ====================

    def query(self, session: Session, unscoped: bool = False) -> Query:
        """模型查询

        Args:
            session: 使用的 session
            unscoped: True 时不附加模型的 __tree_default_filter__ 可见性过滤
        """
        query = session.query(self.model)
        if not unscoped:
            default_filter = getattr(self.model, "__tree_default_filter__", None)
            if default_filter is not None:
                clause = default_filter() if callable(default_filter) else default_filter
                if clause is not None:
                    query = query.filter(clause)
        return query


def resolve_tree_config(cls: type, inherited: Optional[TreeConfig] = None) -> TreeConfig:
    """在类定义时合并 __tree_config__ 与 __tree_options__

    Raises:
        TreeConfigurationError: 未知配置项或非法值
    """
    config = cls.__dict__.get("__tree_config__")
    options: Optional[Dict[str, Any]] = cls.__dict__.get("__tree_options__")
    if config is not None and not isinstance(config, TreeConfig):
        raise TreeConfigurationError(f"{cls.__name__}.__tree_config__ 必须是 TreeConfig 实例")
    base = config or inherited or TreeConfig()
    if options:
        return TreeConfig.from_options(options, base=base)
    return base


__all__ = [
    "OrphanStrategy",
    "TreeConfig",
    "TreeBinding",
    "resolve_tree_config",
]
