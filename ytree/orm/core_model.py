"""
ORM基础模型

提供常用的CRUD操作、生命周期钩子、序列化等功能
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional, TypeVar, Union, ClassVar, Any, TYPE_CHECKING

from sqlalchemy import DateTime, func, inspect
from sqlalchemy.orm import Mapped, mapped_column, declared_attr, Session, Query, object_session

if TYPE_CHECKING:
    from typing_extensions import Self

from .id_model import IdModel
from .utils import to_snake_case


T = TypeVar("T")

# 主键类型别名：支持整数（自增）或字符串（UUID）
PKType = Union[int, str]


class CoreModel(IdModel):
    """ORM基础模型类

    继承自 IdModel，提供功能：
    - 动态主键字段（继承自 IdModel）
    - 自动表名生成（驼峰转下划线）
    - 常用CRUD操作方法
    - 保存/删除生命周期钩子
    - 数据序列化方法

    生命周期钩子:
        save() / delete() 会按名称查找并调用以下钩子（存在时才调用），
        Mixin（如 TreeMixin）通过实现这些方法接入保存流程：
        - before_save(): 写入 session 之前，可抛出异常阻止保存
        - after_save(): 写入 session 之后
        - before_delete(): 删除之前，可抛出异常阻止删除
        - after_delete(): 删除之后

        raw=True 时跳过所有钩子，只做原始写入。

    使用示例:
        from ytree.orm import BaseModel, init_database

        init_database("sqlite:///./tree.db")

        class Category(BaseModel):
            title: Mapped[str] = mapped_column(String(100))

        category = Category(title="图书")
        category.save(commit=True)
    """
    __abstract__ = True

    # 允许非 Mapped[] 的类型注解
    __allow_unmapped__ = True

    # query 属性需要在 init_database 后通过 scoped_session.query_property() 设置
    if TYPE_CHECKING:
        query: ClassVar[Query[Self]]
    query = None

    @declared_attr.directive
    def __tablename__(cls) -> str:
        """驼峰命名转下划线"""
        name = cls.__name__
        if '_' in name:
            raise ValueError(f'{name}字符中包含下划线，无法转换')
        return to_snake_case(name)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=False),
        server_default=func.now(),
        comment="创建时间"
    )
    updated_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=False),
        nullable=True,
        onupdate=func.now(),
        comment="更新时间"
    )

    # 系统字段列表（构造时自动忽略这些字段）
    _system_fields: ClassVar[set] = {'id', 'created_at', 'updated_at'}

    def __init__(self, **kwargs):
        """初始化模型实例

        自动忽略系统字段（id, created_at, updated_at），
        这些字段由系统自动管理，用户传入的值会被静默忽略。
        """
        for field in self._system_fields:
            kwargs.pop(field, None)
        super().__init__(**kwargs)

    def __repr__(self):
        return f"<{self.__class__.__name__} id={self.id}>"

    @property
    def session(self) -> Session:
        """获取当前session

        优先使用对象已绑定的 session，其次从 query 属性获取，最后使用全局 scoped_session
        """
        session = object_session(self)
        if session is not None:
            return session
        if self.__class__.query is not None:
            return self.__class__.query.session
        from .db_session import db_manager
        return db_manager.get_session()

    @property
    def is_new_record(self) -> bool:
        """是否是尚未持久化的新对象"""
        return not inspect(self).has_identity

    # ==================== CRUD 操作方法 ====================

    def save(self, commit: bool = False, raw: bool = False) -> Self:
        """保存对象（自动判断新增或更新）

        Args:
            commit: 是否立即提交，默认False
            raw: 原始写入，跳过 before_save / after_save 钩子。
                 树形结构的级联改写、孤儿处理内部使用，避免递归触发钩子。

        Returns:
            self: 返回自身，支持链式调用
        """
        if not raw:
            self._call_hook("before_save")
        # session.add() 是幂等的，对已在 session 中的对象调用是安全的
        self.session.add(self)
        if not raw:
            self._call_hook("after_save")
        self.__is_commit(commit)
        return self

    @classmethod
    def save_all(cls, objects: list, commit: bool = False, raw: bool = False):
        """批量保存对象，逐个执行保存钩子

        Args:
            objects: 对象列表
            commit: 是否立即提交，默认False
            raw: 是否跳过钩子

        Returns:
            保存的对象列表
        """
        if not objects:
            return objects
        for obj in objects:
            obj.save(raw=raw)
        if commit:
            cls.query.session.commit()
        return objects

    def update(self, commit: bool = False, **kwargs) -> Self:
        """更新对象属性并保存

        使用示例:
            node.update(title="新标题", commit=True)
            node.update(parent=other)
        """
        for key, value in kwargs.items():
            if hasattr(self, key):
                setattr(self, key, value)
        return self.save(commit=commit)

    def delete(self, commit: bool = False, raw: bool = False):
        """删除对象

        Args:
            commit: 是否立即提交，默认False
            raw: 原始删除，跳过 before_delete / after_delete 钩子
        """
        if not raw:
            self._call_hook("before_delete")
        self.session.delete(self)
        if not raw:
            self._call_hook("after_delete")
        self.__is_commit(commit)

    def touch(self, commit: bool = False) -> Self:
        """只更新 updated_at（原始写入，不触发钩子）"""
        self.updated_at = datetime.now()
        return self.save(commit=commit, raw=True)

    def refresh(self, attribute_names: list = None) -> Self:
        """从数据库重新加载对象状态

        Args:
            attribute_names: 可选，指定要刷新的属性列表
        """
        if attribute_names:
            self.session.refresh(self, attribute_names)
        else:
            self.session.refresh(self)
        return self

    @classmethod
    def get(cls, id: PKType):
        """根据ID获取对象，不存在返回None"""
        return cls.query.filter_by(id=id).first()

    @classmethod
    def get_all(cls):
        """获取所有对象"""
        return cls.query.all()

    # ==================== 序列化方法 ====================

    def to_dict(self, exclude: set = None) -> dict:
        """转换为字典

        Args:
            exclude: 需要排除的字段集合

        Returns:
            字典格式的对象数据
        """
        exclude = exclude or set()
        return {
            c.key: getattr(self, c.key)
            for c in inspect(self).mapper.column_attrs
            if c.key not in exclude
        }

    # ==================== 内部方法 ====================

    def _call_hook(self, hook_name: str, **context) -> Any:
        """调用钩子方法

        Args:
            hook_name: 钩子方法名
            **context: 传递给钩子的上下文参数

        Returns:
            钩子返回值，如果钩子不存在返回 None
        """
        hook = getattr(self, hook_name, None)
        if hook is not None and callable(hook):
            return hook(**context)
        return None

    def __is_commit(self, commit=False):
        """根据参数决定是否提交"""
        if commit:
            self.session.commit()


__all__ = [
    "CoreModel",
    "PKType",
]
