"""树形结构 TreeMixin 测试

测试 TreeMixin 的核心功能：
1. 基本树形操作（创建根/子节点、派生属性）
2. 树形查询方法
3. 节点移动与级联改写
4. 校验（环、路径格式）
5. 树形组织（arrange）
"""

import pytest
from sqlalchemy import String
from sqlalchemy.orm import Mapped, mapped_column

from ytree.exceptions import ErrorCode
from ytree.orm import BaseModel
from ytree.orm.tree import (
    TreeMixin,
    TreeFieldsMixin,
    TreeError,
    AncestryCycleError,
    MalformedPathError,
    NodeNotFoundError,
    TreeValidationError,
)


# ==================== 测试模型定义 ====================

class TreeMenu(BaseModel, TreeFieldsMixin, TreeMixin):
    """菜单模型 - 使用 TreeFieldsMixin，开启深度缓存"""
    __tablename__ = "test_tree_menu"
    __table_args__ = {'extend_existing': True}
    __tree_options__ = {"cache_depth": True}

    title: Mapped[str] = mapped_column(String(100), nullable=True)


# ==================== 辅助函数 ====================

def build_chain():
    """A ← B ← C"""
    a = TreeMenu(name="A").save(commit=True)
    b = TreeMenu(name="B", parent=a).save(commit=True)
    c = TreeMenu(name="C", parent=b).save(commit=True)
    return a, b, c


def build_tree():
    """
    A
    ├── B
    │   ├── D
    │   └── E
    └── C
    """
    a = TreeMenu(name="A").save(commit=True)
    b = TreeMenu(name="B", parent=a).save(commit=True)
    c = TreeMenu(name="C", parent=a).save(commit=True)
    d = TreeMenu(name="D", parent=b).save(commit=True)
    e = TreeMenu(name="E", parent=b).save(commit=True)
    return a, b, c, d, e


def names(query_or_nodes):
    return [node.name for node in query_or_nodes]


# ==================== 测试类 ====================

class TestBasicTreeOperations:
    """基本树形操作测试"""

    @pytest.fixture(autouse=True)
    def setup_db(self, session_scope):
        self.session_scope = session_scope

    def test_create_root_node(self):
        """测试创建根节点"""
        root = TreeMenu(name="Root").save(commit=True)

        assert root.path is None
        assert root.depth == 0
        assert root.parent_id is None
        assert root.parent is None
        assert root.is_root() is True
        assert root.ancestor_ids == []
        assert root.root_id == root.id
        assert root.root is root

    def test_create_child_node(self):
        """测试创建子节点"""
        root = TreeMenu(name="Root").save(commit=True)
        child = TreeMenu(name="Child", parent=root).save(commit=True)

        assert child.path == str(root.id)
        assert child.depth == 1
        assert child.parent_id == root.id
        assert child.parent.id == root.id
        assert child.is_root() is False

    def test_create_child_by_parent_id(self):
        """测试通过 parent_id 指定父节点"""
        root = TreeMenu(name="Root").save(commit=True)
        child = TreeMenu(name="Child", parent_id=root.id).save(commit=True)

        assert child.path == str(root.id)
        assert child.parent_id == root.id

    def test_parent_id_not_found(self):
        """测试 parent_id 指向不存在的节点"""
        with pytest.raises(NodeNotFoundError) as exc_info:
            TreeMenu(name="Orphan", parent_id=999)

        assert exc_info.value.code == ErrorCode.NODE_NOT_FOUND
        assert exc_info.value.node_id == 999

    def test_unsaved_node_cannot_be_parent(self):
        """测试未保存的节点不能作为父节点"""
        draft = TreeMenu(name="Draft")

        with pytest.raises(TreeError):
            TreeMenu(name="Child", parent=draft)

    def test_save_without_commit_assigns_id(self):
        """测试保存后（未提交）即可作为父节点"""
        root = TreeMenu(name="Root").save()
        assert root.id is not None

        child = TreeMenu(name="Child", parent=root).save()
        self.session_scope.commit()

        assert child.path == str(root.id)

    def test_derived_attributes(self):
        """测试派生属性"""
        a, b, c = build_chain()

        assert c.ancestor_ids == [a.id, b.id]
        assert c.path_ids == [a.id, b.id, c.id]
        assert c.parent_id == b.id
        assert c.root_id == a.id
        assert c.root.id == a.id
        assert c.tree_depth == 2
        assert c.depth == 2
        assert b.child_path == f"{a.id}/{b.id}"
        assert c.path_string() == f"{a.id}/{b.id}/{c.id}"
        assert c.path_string(" > ") == f"{a.id} > {b.id} > {c.id}"

    def test_empty_path_stored_as_null(self):
        """测试空路径统一保存为 NULL"""
        root = TreeMenu(name="Root", path="").save(commit=True)

        assert root.path is None
        assert root.is_root() is True


class TestTreeQueries:
    """树形查询方法测试"""

    @pytest.fixture(autouse=True)
    def setup_db(self, session_scope):
        self.session_scope = session_scope

    def test_ancestors(self):
        a, b, c = build_chain()

        assert names(c.ancestors()) == ["A", "B"]
        assert a.ancestors().all() == []

    def test_path_nodes(self):
        a, b, c = build_chain()

        assert names(c.path_nodes()) == ["A", "B", "C"]
        assert names(a.path_nodes()) == ["A"]

    def test_children(self):
        a, b, c, d, e = build_tree()

        assert sorted(names(a.children())) == ["B", "C"]
        assert sorted(names(b.children())) == ["D", "E"]
        assert c.children().all() == []

    def test_descendants(self):
        a, b, c, d, e = build_tree()

        assert sorted(names(a.descendants())) == ["B", "C", "D", "E"]
        assert sorted(names(b.descendants())) == ["D", "E"]

    def test_subtree(self):
        a, b, c, d, e = build_tree()

        assert sorted(names(b.subtree())) == ["B", "D", "E"]

    def test_siblings_include_self(self):
        a, b, c, d, e = build_tree()

        assert sorted(names(d.siblings())) == ["D", "E"]
        assert sorted(names(b.siblings())) == ["B", "C"]

    def test_root_siblings_are_roots(self):
        a = TreeMenu(name="A").save(commit=True)
        TreeMenu(name="X").save(commit=True)
        TreeMenu(name="Child", parent=a).save(commit=True)

        assert sorted(names(a.siblings())) == ["A", "X"]
        assert sorted(names(a.roots())) == ["A", "X"]

    def test_siblings_and_descendants(self):
        a, b, c, d, e = build_tree()

        assert sorted(names(b.siblings_and_descendants())) == ["B", "C", "D", "E"]

    def test_id_helpers(self):
        a, b, c, d, e = build_tree()

        assert sorted(a.child_ids()) == sorted([b.id, c.id])
        assert sorted(d.sibling_ids()) == sorted([d.id, e.id])
        assert sorted(b.descendant_ids()) == sorted([d.id, e.id])
        assert sorted(b.subtree_ids()) == sorted([b.id, d.id, e.id])

    def test_prefix_not_confused_with_longer_ids(self):
        """测试前缀匹配按分隔符对齐：节点 1 的子孙不包含节点 12 的子孙"""
        nodes = [TreeMenu(name=f"N{i}").save(commit=True) for i in range(1, 13)]
        n1, n12 = nodes[0], nodes[11]
        assert (n1.id, n12.id) == (1, 12)

        TreeMenu(name="under-12", parent=n12).save(commit=True)
        TreeMenu(name="under-1", parent=n1).save(commit=True)

        assert names(n1.descendants()) == ["under-1"]
        assert names(n12.descendants()) == ["under-12"]

    def test_relative_depth_options(self):
        """测试相对深度选项"""
        a, b, c, d, e = build_tree()

        assert sorted(names(a.descendants(at_depth=1))) == ["B", "C"]
        assert sorted(names(a.descendants(after_depth=1))) == ["D", "E"]
        assert sorted(names(a.subtree(to_depth=1))) == ["A", "B", "C"]
        assert names(d.ancestors(from_depth=-1)) == ["B"]
        assert names(d.path_nodes(before_depth=-1)) == ["A"]

    def test_class_level_queries(self):
        """测试类级别的查询入口（支持节点或主键）"""
        a, b, c, d, e = build_tree()

        assert names(TreeMenu.roots_query()) == ["A"]
        assert sorted(names(TreeMenu.children_of(a.id))) == ["B", "C"]
        assert sorted(names(TreeMenu.descendants_of(b))) == ["D", "E"]
        assert names(TreeMenu.ancestors_of(d.id)) == ["A", "B"]
        assert sorted(names(TreeMenu.subtree_of(b.id))) == ["B", "D", "E"]
        assert sorted(names(TreeMenu.siblings_of(d.id))) == ["D", "E"]
        assert names(TreeMenu.path_of(d.id)) == ["A", "B", "D"]
        assert names(TreeMenu.roots_of(e.id)) == ["A"]

    def test_class_level_query_missing_node(self):
        with pytest.raises(NodeNotFoundError):
            TreeMenu.children_of(999)

    def test_depth_scopes(self):
        """测试绝对深度过滤"""
        build_tree()

        assert names(TreeMenu.at_depth(0)) == ["A"]
        assert sorted(names(TreeMenu.at_depth(2))) == ["D", "E"]
        assert sorted(names(TreeMenu.before_depth(1))) == ["A"]
        assert sorted(names(TreeMenu.to_depth(1))) == ["A", "B", "C"]
        assert sorted(names(TreeMenu.from_depth(1))) == ["B", "C", "D", "E"]
        assert sorted(names(TreeMenu.after_depth(1))) == ["D", "E"]

    def test_ordered_by_path_puts_roots_first(self):
        a, b, c, d, e = build_tree()

        ordered = TreeMenu.ordered_by_path(None, TreeMenu.id).all()

        assert ordered[0].name == "A"
        assert names(ordered[1:3]) == ["B", "C"]


class TestTreePredicates:
    """关系判断测试"""

    @pytest.fixture(autouse=True)
    def setup_db(self, session_scope):
        self.session_scope = session_scope

    def test_ancestor_descendant(self):
        a, b, c, d, e = build_tree()

        assert a.is_ancestor_of(d) is True
        assert d.is_descendant_of(a) is True
        assert c.is_ancestor_of(d) is False
        assert a.is_descendant_of(a) is False

    def test_parent_child(self):
        a, b, c, d, e = build_tree()

        assert b.is_parent_of(d) is True
        assert d.is_child_of(b) is True
        assert a.is_parent_of(d) is False
        assert a.is_child_of(b) is False

    def test_root_of(self):
        a, b, c, d, e = build_tree()

        assert a.is_root_of(e) is True
        assert a.is_root_of(a) is True
        assert b.is_root_of(e) is False

    def test_sibling_of(self):
        a, b, c, d, e = build_tree()

        assert d.is_sibling_of(e) is True
        assert d.is_sibling_of(d) is True
        assert d.is_sibling_of(c) is False

    def test_children_predicates(self):
        a, b, c, d, e = build_tree()

        assert a.has_children() is True
        assert c.has_children() is False
        assert c.is_childless() is True

    def test_sibling_predicates(self):
        a, b, c, d, e = build_tree()

        assert d.has_siblings() is True
        assert a.has_siblings() is False
        assert a.is_only_child() is True


class TestNodeMove:
    """节点移动测试"""

    @pytest.fixture(autouse=True)
    def setup_db(self, session_scope):
        self.session_scope = session_scope

    def test_move_to_root_cascades(self):
        """测试 B 移到根级别后 C 的路径跟随改写"""
        a, b, c = build_chain()

        b.parent = None
        b.save(commit=True)

        assert b.path is None
        assert b.depth == 0
        assert c.path == str(b.id)
        assert c.depth == 1
        assert a.children().all() == []

    def test_move_under_other_parent_cascades(self):
        a, b, c, d, e = build_tree()

        b.move_to(c, commit=True)

        assert b.path == f"{a.id}/{c.id}"
        assert d.path == f"{a.id}/{c.id}/{b.id}"
        assert e.path == f"{a.id}/{c.id}/{b.id}"
        assert d.depth == 3
        assert sorted(names(c.descendants())) == ["B", "D", "E"]

    def test_move_to_by_id(self):
        a, b, c, d, e = build_tree()

        d.move_to(c.id, commit=True)

        assert d.parent_id == c.id
        assert sorted(names(b.children())) == ["E"]

    def test_move_to_root_by_none(self):
        a, b, c, d, e = build_tree()

        b.move_to(None, commit=True)

        assert b.is_root() is True
        assert d.path == str(b.id)
        assert sorted(names(TreeMenu.roots_query())) == ["A", "B"]

    def test_update_parent(self):
        """测试通过 update() 修改父节点"""
        a, b, c, d, e = build_tree()

        e.update(parent=c, commit=True)

        assert e.parent_id == c.id

    def test_move_under_descendant_rejected(self):
        """测试不能移动到自己的子孙节点下"""
        a, b, c = build_chain()
        old_path = b.path

        b.parent = c
        with pytest.raises(AncestryCycleError) as exc_info:
            b.save()

        assert exc_info.value.code == ErrorCode.TREE_CYCLE
        # 内存中的路径恢复为已持久化的值
        assert b.path == old_path
        self.session_scope.rollback()
        assert TreeMenu.get(c.id).path == f"{a.id}/{b.id}"

    def test_move_under_self_rejected(self):
        a = TreeMenu(name="A").save(commit=True)

        with pytest.raises(AncestryCycleError):
            a.move_to(a)

        assert a.path is None

    def test_unchanged_path_does_not_cascade(self):
        a, b, c = build_chain()

        b.title = "renamed"
        b.save(commit=True)

        assert c.path == f"{a.id}/{b.id}"


class TestTreeValidation:
    """校验测试"""

    @pytest.fixture(autouse=True)
    def setup_db(self, session_scope):
        self.session_scope = session_scope

    def test_malformed_path_rejected(self):
        node = TreeMenu(name="Bad", path="1//2")

        with pytest.raises(MalformedPathError) as exc_info:
            node.save()

        assert exc_info.value.code == ErrorCode.TREE_MALFORMED_PATH
        assert any(issue.field == "path" for issue in exc_info.value.errors)

    def test_validate_collects_errors(self):
        a = TreeMenu(name="A").save(commit=True)
        a.path = "x/y"

        assert a.validate() is False
        assert a.tree_errors[0].code == ErrorCode.TREE_MALFORMED_PATH

        a.path = None
        assert a.validate() is True
        assert list(a.tree_errors) == []

    def test_zero_padded_parent_id_rejected(self):
        """"01" 与 "1" 指向同一父节点，但不会被 children/descendants 查询命中"""
        a = TreeMenu(name="A").save(commit=True)
        b = TreeMenu(name="B", parent=a).save(commit=True)
        b.path = f"0{a.id}"

        assert b.validate() is False
        assert b.tree_errors[0].code == ErrorCode.TREE_MALFORMED_PATH

        with pytest.raises(MalformedPathError):
            b.save()

        assert b.path == str(a.id)

    def test_self_reference_detected(self):
        a = TreeMenu(name="A").save(commit=True)
        a.path = str(a.id)

        assert a.validate() is False
        assert a.tree_errors[0].code == ErrorCode.TREE_CYCLE

    def test_validation_error_details(self):
        a = TreeMenu(name="A").save(commit=True)
        a.path = str(a.id)

        with pytest.raises(TreeValidationError) as exc_info:
            a.save()

        assert exc_info.value.to_dict()["code"] == ErrorCode.TREE_CYCLE
        assert len(exc_info.value.details) == 1


class TestArrange:
    """树形组织测试"""

    @pytest.fixture(autouse=True)
    def setup_db(self, session_scope):
        self.session_scope = session_scope

    def test_arrange_whole_forest(self):
        a, b, c, d, e = build_tree()
        x = TreeMenu(name="X").save(commit=True)

        arranged = TreeMenu.arrange()

        assert [node.name for node in arranged] == ["A", "X"]
        children = arranged[a]
        assert sorted(node.name for node in children) == ["B", "C"]
        assert sorted(node.name for node in children[b]) == ["D", "E"]
        assert arranged[x] == {}

    def test_arrange_subtree(self):
        a, b, c, d, e = build_tree()

        arranged = TreeMenu.arrange(b.subtree())

        assert list(arranged) == [b]
        assert sorted(node.name for node in arranged[b]) == ["D", "E"]

    def test_arrange_serializable(self):
        build_tree()

        tree = TreeMenu.arrange_serializable()

        assert len(tree) == 1
        assert tree[0]["name"] == "A"
        assert sorted(child["name"] for child in tree[0]["children"]) == ["B", "C"]

    def test_arrange_serializable_custom_serializer(self):
        build_tree()

        tree = TreeMenu.arrange_serializable(
            serializer=lambda node, children: {"label": node.name, "items": children}
        )

        assert tree[0]["label"] == "A"
        assert len(tree[0]["items"]) == 2

    def test_sort_by_path_preorder(self):
        a, b, c, d, e = build_tree()

        nodes = TreeMenu.sort_by_path([e, c, a, d, b], key=lambda node: node.name)

        assert names(nodes) == ["A", "B", "D", "E", "C"]
