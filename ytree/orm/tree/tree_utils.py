"""树形结构工具函数

基于节点 id / parent_id（由路径派生）在内存中组织查询结果。

使用示例:
    from ytree.orm.tree import arrange_nodes, arrange_serializable, sort_by_path

    # 节点对象 → 嵌套字典 {node: {child: {...}}}
    arranged = arrange_nodes(Category.ordered_by_path().all())

    # 嵌套字典 → 可序列化的列表
    tree = arrange_serializable(arranged)
    # [{"id": 1, "name": "A", ..., "children": [{"id": 2, ..., "children": []}]}]

    # 内存中的前序排序，同级按名称
    nodes = sort_by_path(Category.ordered_by_path().all(), key=lambda n: n.name)
"""

from typing import Any, Callable, Dict, List, Optional


def arrange_nodes(nodes: List[Any]) -> Dict[Any, Dict]:
    """将节点列表组织为嵌套字典

    父节点不在列表中的节点作为顶层节点，子节点顺序与输入顺序一致。
    节点对象需要提供 id 与 parent_id 属性（TreeMixin 节点）。

    Args:
        nodes: 节点对象列表

    Returns:
        {node: {child: {grandchild: {}}}}
    """
    node_ids = {node.id for node in nodes}
    index: Dict[Any, Dict] = {}
    arranged: Dict[Any, Dict] = {}

    for node in nodes:
        children = index.setdefault(node.id, {})
        parent_id = node.parent_id
        index.setdefault(parent_id, {})[node] = children
        if parent_id not in node_ids:
            arranged[node] = children

    return arranged


def arrange_serializable(
    arranged: Dict[Any, Dict],
    serializer: Optional[Callable[[Any, List[Dict[str, Any]]], Dict[str, Any]]] = None,
    children_field: str = "children",
) -> List[Dict[str, Any]]:
    """将 arrange_nodes 的结果转换为可序列化的嵌套列表

    Args:
        arranged: arrange_nodes() 的返回值
        serializer: 自定义序列化函数 (node, children) -> dict，
                    默认使用 node.to_dict() 并附加 children 字段
        children_field: 子节点列表字段名
    """
    result: List[Dict[str, Any]] = []
    for node, children in arranged.items():
        serialized_children = arrange_serializable(children, serializer, children_field)
        if serializer is not None:
            result.append(serializer(node, serialized_children))
        else:
            data = node.to_dict()
            data[children_field] = serialized_children
            result.append(data)
    return result


def sort_by_path(nodes: List[Any], key: Optional[Callable[[Any], Any]] = None) -> List[Any]:
    """在内存中将节点按真正的前序遍历排序

    数据库中按路径字符串排序只是前序遍历的近似，这里先组织为树再展开。

    Args:
        nodes: 节点对象列表
        key: 同级节点的排序函数，不指定时保持输入顺序
    """
    result: List[Any] = []

    def walk(level: Dict[Any, Dict]):
        siblings = list(level)
        if key is not None:
            siblings.sort(key=key)
        for node in siblings:
            result.append(node)
            walk(level[node])

    walk(arrange_nodes(nodes))
    return result


__all__ = [
    "arrange_nodes",
    "arrange_serializable",
    "sort_by_path",
]
