"""树形结构字段定义

提供标准的树形字段定义 Mixin，简化模型定义。

使用示例:
    from ytree.orm import BaseModel
    from ytree.orm.tree import TreeFieldsMixin, TreeMixin

    class Category(BaseModel, TreeFieldsMixin, TreeMixin):
        __tablename__ = "category"
        __tree_options__ = {"cache_depth": True}

        title = mapped_column(String(100))
"""

from typing import Optional

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column


class TreeFieldsMixin:
    """树形结构字段 Mixin

    提供标准的树形字段定义，包括：
    - path: 祖先ID路径（如 "1/2"），根节点为 NULL
    - depth: 深度缓存（根节点为 0），需要 __tree_options__ 开启 cache_depth 才会维护

    path 最长 500 个字符，每层占用"主键长度 + 1"：整数主键约可容纳上百层，
    UUID 主键（36 位）约 13 层。超出时保存会被拒绝（TREE_PATH_TOO_LONG），
    更深的树需要在模型中用更长的 String 或 Text 重新声明 path 字段。

    注意：
    - 字段名与 TreeConfig 的默认值一致，改名时需同时配置 path_column / depth_cache_column
    - 继承顺序：TreeFieldsMixin 应在 TreeMixin 之前
    """

    # active_history: 修改前自动加载旧值，级联改写依赖旧路径
    path: Mapped[Optional[str]] = mapped_column(
        String(500),
        nullable=True,
        default=None,
        index=True,
        active_history=True,
        comment="祖先ID路径（如 1/2），根节点为空"
    )

    depth: Mapped[int] = mapped_column(
        Integer,
        default=0,
        nullable=False,
        index=True,
        comment="节点深度（根节点为0）"
    )


__all__ = [
    "TreeFieldsMixin",
]
