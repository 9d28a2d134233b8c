"""异常模块

提供统一的业务异常体系，树形结构相关异常见 ytree.orm.tree.exceptions。
"""

from .exceptions import (
    ErrorCode,
    ErrorCodeType,
    BusinessException,
    ResourceNotFoundException,
    ValidationException,
)

__all__ = [
    "ErrorCode",
    "ErrorCodeType",
    "BusinessException",
    "ResourceNotFoundException",
    "ValidationException",
]
