"""树形结构异常定义

提供树形结构相关的异常类，全部挂在 ytree.exceptions 的业务异常体系下。
"""

from dataclasses import dataclass
from typing import Any, List, Optional

from ...exceptions import (
    ErrorCode,
    BusinessException,
    ResourceNotFoundException,
    ValidationException,
)


@dataclass(frozen=True)
class TreeValidationIssue:
    """单条校验问题

    Attributes:
        field: 出错的字段名（如 "path"、"depth"）
        code: 错误代码
        message: 错误描述
    """
    field: str
    code: str
    message: str


class TreeError(BusinessException):
    """树形结构基础异常"""

    def __init__(
        self,
        message: str = "树形结构操作失败",
        code: str = ErrorCode.TREE_ERROR,
        details: Optional[List[str]] = None,
        **extra: Any
    ):
        super().__init__(message=message, code=code, details=details, **extra)


class TreeConfigurationError(TreeError):
    """树形配置错误

    未知的配置项、非法的孤儿策略、在未启用深度缓存时使用深度过滤等。
    """

    def __init__(self, message: str = "树形结构配置错误", **extra: Any):
        super().__init__(message=message, code=ErrorCode.TREE_CONFIGURATION_ERROR, **extra)


class TreeValidationError(ValidationException):
    """节点校验失败

    Attributes:
        errors: TreeValidationIssue 列表
    """

    default_message = "树节点校验失败"
    default_code = ErrorCode.VALIDATION_ERROR

    def __init__(
        self,
        errors: Optional[List[TreeValidationIssue]] = None,
        message: Optional[str] = None,
        **extra: Any
    ):
        self.errors = list(errors or [])
        super().__init__(
            message=message or self.default_message,
            code=self.default_code,
            details=[issue.message for issue in self.errors],
            **extra
        )


class MalformedPathError(TreeValidationError):
    """路径格式错误（解码失败或不符合语法）"""

    default_message = "节点路径格式错误"
    default_code = ErrorCode.TREE_MALFORMED_PATH


class AncestryCycleError(TreeValidationError):
    """节点不能成为自身的后代"""

    default_message = "节点不能是自身的祖先"
    default_code = ErrorCode.TREE_CYCLE


class RestrictDeleteError(TreeError):
    """restrict 策略下删除仍有子节点的节点

    Attributes:
        node_id: 被拒绝删除的节点ID
    """

    def __init__(self, node_id: Any, message: Optional[str] = None):
        self.node_id = node_id
        super().__init__(
            message=message or f"节点 {node_id} 存在子节点，不能删除",
            code=ErrorCode.TREE_RESTRICT_DELETE,
            node_id=node_id,
        )


class NodeNotFoundError(ResourceNotFoundException):
    """按ID查找父节点/根节点/祖先节点失败

    Attributes:
        node_id: 未找到的节点ID
    """

    def __init__(self, node_id: Any, model_name: Optional[str] = None):
        self.node_id = node_id
        name = model_name or "节点"
        super().__init__(
            message=f"{name} {node_id} 不存在",
            code=ErrorCode.NODE_NOT_FOUND,
            node_id=node_id,
        )


__all__ = [
    "TreeValidationIssue",
    "TreeError",
    "TreeConfigurationError",
    "TreeValidationError",
    "MalformedPathError",
    "AncestryCycleError",
    "RestrictDeleteError",
    "NodeNotFoundError",
]
