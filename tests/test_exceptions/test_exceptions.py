"""异常体系测试"""

from ytree.exceptions import (
    ErrorCode,
    BusinessException,
    ResourceNotFoundException,
    ValidationException,
)
from ytree.orm.tree import (
    TreeError,
    TreeConfigurationError,
    TreeValidationError,
    TreeValidationIssue,
    AncestryCycleError,
    MalformedPathError,
    RestrictDeleteError,
    NodeNotFoundError,
)


class TestBusinessException:
    """业务异常基类测试"""

    def test_defaults(self):
        exc = BusinessException("出错了")

        assert exc.message == "出错了"
        assert exc.code == ErrorCode.BUSINESS_ERROR
        assert exc.details == []
        assert str(exc) == "出错了"

    def test_to_dict_returns_copies(self):
        exc = BusinessException("出错了", details=["a"], node_id=1)

        data = exc.to_dict()
        data["details"].append("b")

        assert data["extra"] == {"node_id": 1}
        assert exc.details == ["a"]

    def test_default_codes(self):
        assert ResourceNotFoundException().code == ErrorCode.RESOURCE_NOT_FOUND
        assert ValidationException().code == ErrorCode.VALIDATION_ERROR

    def test_repr(self):
        text = repr(BusinessException("出错了"))

        assert text.startswith("BusinessException(message='出错了'")
        assert "BUSINESS_ERROR" in text

    def test_error_code_is_str(self):
        assert ErrorCode.TREE_CYCLE == "TREE_CYCLE"


class TestTreeExceptions:
    """树形异常测试"""

    def test_hierarchy(self):
        assert issubclass(TreeConfigurationError, TreeError)
        assert issubclass(RestrictDeleteError, TreeError)
        assert issubclass(TreeError, BusinessException)
        assert issubclass(AncestryCycleError, TreeValidationError)
        assert issubclass(MalformedPathError, TreeValidationError)
        assert issubclass(TreeValidationError, ValidationException)
        assert issubclass(NodeNotFoundError, ResourceNotFoundException)

    def test_validation_error_carries_issues(self):
        issue = TreeValidationIssue("path", ErrorCode.TREE_CYCLE, "节点 1 不能是自身的祖先")

        exc = AncestryCycleError([issue])

        assert exc.errors == [issue]
        assert exc.details == ["节点 1 不能是自身的祖先"]
        assert exc.code == ErrorCode.TREE_CYCLE

    def test_restrict_delete_error(self):
        exc = RestrictDeleteError(5)

        assert exc.node_id == 5
        assert exc.code == ErrorCode.TREE_RESTRICT_DELETE
        assert exc.extra == {"node_id": 5}

    def test_node_not_found_error(self):
        exc = NodeNotFoundError(7, "Category")

        assert isinstance(exc, ResourceNotFoundException)
        assert "Category" in exc.message
        assert exc.code == ErrorCode.NODE_NOT_FOUND
