"""
主键策略全局配置管理

提供全局配置接口，用于设置和获取主键生成策略。
树形路径中保存的是主键的字符串形式，因此主键类型同时决定了路径的解析方式：
- AUTO_INCREMENT: 整数主键，路径片段解析为 int
- UUID: 字符串主键，路径片段原样返回
"""

import uuid
from enum import Enum


class IdType(Enum):
    """主键类型枚举"""
    AUTO_INCREMENT = "auto_increment"  # 自增ID
    UUID = "uuid"  # UUID

    def __str__(self) -> str:
        return self.value

    def __repr__(self) -> str:
        return f"IdType.{self.name}"


def generate_uuid() -> str:
    """生成完整UUID（36位）

    Examples:
        >>> len(generate_uuid())
        36
    """
    return str(uuid.uuid4())


class PrimaryKeyConfig:
    """主键策略全局配置类

    使用类变量存储全局配置，模型级别可通过 id_type / __pk_strategy__ 覆盖。
    """
    _strategy: IdType = IdType.AUTO_INCREMENT

    @classmethod
    def configure(cls, strategy: IdType = IdType.AUTO_INCREMENT):
        """配置全局主键策略

        注意：必须在定义模型之前调用，主键列类型在类定义时确定。

        Args:
            strategy: 主键策略（IdType 枚举）

        Raises:
            ValueError: 不支持的主键策略
        """
        if not isinstance(strategy, IdType):
            raise ValueError(f"不支持的主键类型：{strategy}")
        cls._strategy = strategy

    @classmethod
    def get_strategy(cls) -> IdType:
        """获取当前主键策略"""
        return cls._strategy

    @classmethod
    def reset(cls):
        """重置为默认配置（主要用于测试）"""
        cls._strategy = IdType.AUTO_INCREMENT


def configure_primary_key(strategy: IdType = IdType.AUTO_INCREMENT):
    """配置全局主键策略（便捷函数）

    Examples:
        >>> from ytree.orm import configure_primary_key, IdType
        >>> configure_primary_key(strategy=IdType.UUID)
    """
    PrimaryKeyConfig.configure(strategy=strategy)


__all__ = [
    "IdType",
    "PrimaryKeyConfig",
    "configure_primary_key",
    "generate_uuid",
]
