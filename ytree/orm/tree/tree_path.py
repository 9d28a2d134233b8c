"""物化路径编解码

路径保存从根节点到父节点的全部祖先ID，以 "/" 连接：

    根节点        path = None（空路径视为根）
    1 的子节点    path = "1"
    2 的子节点    path = "1/2"

路径中每一段都必须符合主键的字面格式，整数主键默认 0|[1-9][0-9]*（不允许前导零，保证一个ID只有一种写法），
字符串主键（UUID 等）默认 [-A-Za-z0-9_]+。

使用示例:
    codec = PathCodec(int)
    codec.encode([1, 2])         # "1/2"
    codec.decode("1/2")          # [1, 2]
    codec.child_path("1/2", 3)   # "1/2/3"
    codec.is_valid("1//2")       # False
"""

import re
from typing import Any, List, Optional, Sequence

from ...exceptions import ErrorCode
from .exceptions import MalformedPathError, TreeValidationIssue


class PathCodec:
    """路径编解码器

    Args:
        key_type: 主键的 Python 类型，int 解析为整数，其他类型原样返回字符串
        key_format: 单个主键的正则（不含锚点），默认按 key_type 推断
    """

    SEPARATOR = "/"
    INTEGER_KEY_FORMAT = r"0|[1-9][0-9]*"
    STRING_KEY_FORMAT = r"[-A-Za-z0-9_]+"

    def __init__(self, key_type: type = int, key_format: Optional[str] = None):
        self.key_type = key_type
        if key_format is None:
            key_format = self.INTEGER_KEY_FORMAT if self._is_integer_key() else self.STRING_KEY_FORMAT
        self.key_format = key_format
        self._path_re = re.compile(
            rf"\A(?:{key_format})(?:{re.escape(self.SEPARATOR)}(?:{key_format}))*\Z"
        )

    def __repr__(self) -> str:
        return f"PathCodec(key_type={self.key_type.__name__}, key_format={self.key_format!r})"

    def _is_integer_key(self) -> bool:
        return issubclass(self.key_type, int) and not issubclass(self.key_type, bool)

    def _cast(self, token: str) -> Any:
        if self._is_integer_key():
            return int(token)
        return token

    def encode(self, ids: Sequence[Any]) -> str:
        """祖先ID列表编码为路径，空列表返回空字符串"""
        return self.SEPARATOR.join(str(node_id) for node_id in ids)

    def decode(self, path: Optional[str]) -> List[Any]:
        """路径解码为祖先ID列表（根 → 父）

        Raises:
            MalformedPathError: 路径不符合语法
        """
        if not path:
            return []
        if not self.is_valid(path):
            raise MalformedPathError([
                TreeValidationIssue(
                    field="path",
                    code=ErrorCode.TREE_MALFORMED_PATH,
                    message=f"路径格式错误: {path!r}",
                )
            ])
        return [self._cast(token) for token in path.split(self.SEPARATOR)]

    def is_valid(self, path: Optional[str]) -> bool:
        """检查路径语法，None 和 "" 都是合法的根路径"""
        if path is None or path == "":
            return True
        if not isinstance(path, str):
            return False
        return self._path_re.match(path) is not None

    def child_path(self, path: Optional[str], node_id: Any) -> str:
        """节点的子节点应携带的路径"""
        if not path:
            return str(node_id)
        return f"{path}{self.SEPARATOR}{node_id}"

    def is_within(self, path: Optional[str], prefix: str) -> bool:
        """path 是否等于 prefix 或以 "prefix/" 开头（按分隔符对齐）"""
        if not path:
            return False
        return path == prefix or path.startswith(prefix + self.SEPARATOR)

    def replace_prefix(self, path: str, old_prefix: str, new_prefix: str) -> str:
        """把路径开头的 old_prefix 替换为 new_prefix，其余部分保持不变

        Raises:
            ValueError: path 不在 old_prefix 之下
        """
        if not self.is_within(path, old_prefix):
            raise ValueError(f"路径 {path!r} 不以 {old_prefix!r} 开头")
        return new_prefix + path[len(old_prefix):]

    def strip_prefix(self, path: str, prefix: str) -> str:
        """去掉路径开头的 "prefix/"，path 等于 prefix 时返回 ""

        Raises:
            ValueError: path 不在 prefix 之下
        """
        if not self.is_within(path, prefix):
            raise ValueError(f"路径 {path!r} 不以 {prefix!r} 开头")
        return path[len(prefix) + len(self.SEPARATOR):]


__all__ = [
    "PathCodec",
]
