"""ID模型基类

提供主键（ID）相关的功能：
- 动态主键类型定义（支持自增、UUID）
- 主键生成策略配置

使用说明：
    IdModel 是 CoreModel 的父类，专门负责 ID 相关的功能。
    一般情况下，用户应该使用 CoreModel 或 BaseModel，而不是直接使用 IdModel。
"""

from __future__ import annotations

from sqlalchemy import Column, Integer, String
from sqlalchemy.orm import declared_attr, declarative_base, Mapped
from typing import Optional, ClassVar, Union

from .primary_key_config import PrimaryKeyConfig, IdType, generate_uuid


# 声明基类
Base = declarative_base()


class IdModel(Base):
    """ID模型基类

    主键策略优先级：
        模型级别 __pk_strategy__ > 模型级别 id_type > 全局配置 > 默认值(AUTO_INCREMENT)

    UUID 主键在构造对象时立即生成，而不是等到 INSERT，
    这样新节点在 flush 之前就能作为父节点参与路径计算。

    使用示例:
        class Category(IdModel):
            __tablename__ = "category"
            id_type = IdType.UUID
    """
    __abstract__ = True

    id_type: ClassVar[Optional[IdType]] = None

    # 实际类型可能是 int（自增）或 str（UUID）
    id: Mapped[Union[int, str]]

    def __init_subclass__(cls, **kwargs):
        super().__init_subclass__(**kwargs)

        if getattr(cls, 'id_type', None) is not None:
            if not hasattr(cls, '__pk_strategy__'):
                cls.__pk_strategy__ = cls.id_type

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        if self.id is None and self.get_pk_strategy() == IdType.UUID:
            self.id = generate_uuid()

    @classmethod
    def get_pk_strategy(cls) -> IdType:
        """获取模型实际生效的主键策略"""
        strategy = getattr(cls, '__pk_strategy__', None)
        if strategy is None:
            strategy = PrimaryKeyConfig.get_strategy()
        return strategy

    @declared_attr
    def id(cls):
        """动态主键字段，根据配置自动确定类型"""
        id_type = cls.get_pk_strategy()

        if id_type == IdType.AUTO_INCREMENT:
            return Column(Integer, primary_key=True, autoincrement=True, comment='主键ID')
        elif id_type == IdType.UUID:
            return Column(String(36), primary_key=True, comment='主键ID（UUID）')
        else:
            raise ValueError(f'不支持的主键类型：{id_type}')
