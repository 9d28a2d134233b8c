"""物化路径编解码 PathCodec 测试

测试内容：
1. 编码 / 解码
2. 路径语法校验
3. 前缀替换与去除
"""

import pytest

from ytree.exceptions import ErrorCode
from ytree.orm.tree import PathCodec, MalformedPathError

UUID_A = "6f1c3f8e-1d2b-4c1a-9a55-0d3c2b1a0e9f"
UUID_B = "a0b1c2d3-e4f5-4a6b-8c7d-9e0f1a2b3c4d"
UUID_C = "0e9f1a2b-3c4d-4e5f-8a9b-c0d1e2f3a4b5"


class TestEncodeDecode:
    """编码解码测试"""

    def test_encode_ids(self):
        codec = PathCodec(int)

        assert codec.encode([1, 2, 3]) == "1/2/3"
        assert codec.encode([]) == ""

    def test_decode_integer_path(self):
        codec = PathCodec(int)

        assert codec.decode("1/2/3") == [1, 2, 3]
        assert codec.decode("42") == [42]

    def test_decode_root_path(self):
        """None 与空字符串都表示根节点"""
        codec = PathCodec(int)

        assert codec.decode(None) == []
        assert codec.decode("") == []

    def test_decode_string_keys_kept_as_str(self):
        codec = PathCodec(str)
        uuid_a = "6f1c3f8e-1d2b-4c1a-9a55-0d3c2b1a0e9f"
        uuid_b = "a0b1c2d3-e4f5-4a6b-8c7d-9e0f1a2b3c4d"

        assert codec.decode(f"{uuid_a}/{uuid_b}") == [uuid_a, uuid_b]

    def test_decode_malformed_path_raises(self):
        codec = PathCodec(int)

        with pytest.raises(MalformedPathError) as exc_info:
            codec.decode("1//2")

        assert exc_info.value.code == ErrorCode.TREE_MALFORMED_PATH
        assert exc_info.value.errors[0].field == "path"

    def test_child_path(self):
        codec = PathCodec(int)

        assert codec.child_path(None, 1) == "1"
        assert codec.child_path("", 1) == "1"
        assert codec.child_path("1/2", 3) == "1/2/3"


class TestRoundTrip:
    """编码与解码互逆"""

    @pytest.mark.parametrize("ids", [
        [0],
        [7],
        [1, 2],
        [10, 2, 300],
        [1, 12, 123, 1234, 12345],
        [999999999999, 1],
        list(range(1, 30)),
    ])
    def test_integer_ids(self, ids):
        codec = PathCodec(int)

        assert codec.decode(codec.encode(ids)) == ids

    @pytest.mark.parametrize("ids", [
        [UUID_A],
        [UUID_A, UUID_B],
        [UUID_C, UUID_B, UUID_A],
        ["a", "b_c", "d-e"],
    ])
    def test_string_ids(self, ids):
        codec = PathCodec(str)

        assert codec.decode(codec.encode(ids)) == ids

    @pytest.mark.parametrize("path", ["", "0", "5", "1/2", "10/0/3", "100/20/3000/4"])
    def test_integer_paths(self, path):
        codec = PathCodec(int)

        assert codec.is_valid(path)
        assert codec.encode(codec.decode(path)) == path

    @pytest.mark.parametrize("path", [UUID_A, f"{UUID_A}/{UUID_B}", "a/b_c/d-e"])
    def test_string_paths(self, path):
        codec = PathCodec(str)

        assert codec.encode(codec.decode(path)) == path

    @pytest.mark.parametrize("path", ["01", "1/02", "007/1"])
    def test_zero_padded_keys_rejected(self, path):
        """补零的ID会被解码成另一种写法，因此不属于合法路径"""
        codec = PathCodec(int)

        assert codec.is_valid(path) is False
        with pytest.raises(MalformedPathError):
            codec.decode(path)


class TestPathValidation:
    """路径语法校验测试"""

    @pytest.mark.parametrize("path", [None, "", "0", "1", "1/2", "10/200/3000"])
    def test_valid_integer_paths(self, path):
        assert PathCodec(int).is_valid(path) is True

    @pytest.mark.parametrize("path", ["/1", "1/", "1//2", "a/1", "1/2 ", " 1", "1.5", "01", "1/02", "00"])
    def test_invalid_integer_paths(self, path):
        assert PathCodec(int).is_valid(path) is False

    def test_string_key_allows_uuid_characters(self):
        codec = PathCodec(str)

        assert codec.is_valid("abc-123_x/def") is True
        assert codec.is_valid("abc/d.e") is False

    def test_custom_key_format(self):
        codec = PathCodec(str, key_format=r"[a-z]{2}")

        assert codec.is_valid("ab/cd") is True
        assert codec.is_valid("abc") is False

    def test_non_string_path_is_invalid(self):
        assert PathCodec(int).is_valid(12) is False


class TestPrefixOperations:
    """前缀匹配、替换与去除测试"""

    def test_is_within_aligned_on_separator(self):
        codec = PathCodec(int)

        assert codec.is_within("1/2", "1/2") is True
        assert codec.is_within("1/2/3", "1/2") is True
        # "12" 不在 "1" 之下
        assert codec.is_within("12", "1") is False
        assert codec.is_within("1/23", "1/2") is False
        assert codec.is_within(None, "1") is False

    def test_replace_prefix(self):
        codec = PathCodec(int)

        assert codec.replace_prefix("1/2", "1/2", "2") == "2"
        assert codec.replace_prefix("1/2/3", "1/2", "5/2") == "5/2/3"

    def test_replace_prefix_requires_prefix(self):
        with pytest.raises(ValueError):
            PathCodec(int).replace_prefix("3/4", "1", "2")

    def test_strip_prefix(self):
        codec = PathCodec(int)

        assert codec.strip_prefix("1", "1") == ""
        assert codec.strip_prefix("1/2/3", "1") == "2/3"

    def test_strip_prefix_requires_prefix(self):
        with pytest.raises(ValueError):
            PathCodec(int).strip_prefix("12/3", "1")
