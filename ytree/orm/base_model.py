"""业务模型基类

包含常用业务字段的模型基类，继承自 CoreModel。
"""

from typing import Optional

from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from .core_model import CoreModel


class BaseModel(CoreModel):
    """业务模型基类，包含常用业务字段

    包含字段（BaseModel 新增）:
        - name: 名称
        - code: 编码
        - note: 备注

    继承字段（来自 CoreModel）:
        - id: 主键
        - created_at: 创建时间
        - updated_at: 更新时间

    使用示例:
        class Category(BaseModel, TreeFieldsMixin, TreeMixin):
            __tablename__ = "category"

        Category(name="图书").save(commit=True)
        Category.get_by_name("图书")
    """
    __abstract__ = True

    name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, default=None, comment="名称")
    code: Mapped[Optional[str]] = mapped_column(String(255), nullable=True, default=None, comment="编码")
    note: Mapped[Optional[str]] = mapped_column(String(1000), nullable=True, default=None, comment="备注")

    @classmethod
    def get_by_name(cls, name: str):
        """根据名称获取对象"""
        return cls.query.filter_by(name=name).first()

    @classmethod
    def get_by_code(cls, code: str):
        """根据编码获取对象"""
        return cls.query.filter_by(code=code).first()


__all__ = [
    "BaseModel",
]
