"""
课程内容树：节点类型、路径工具与不可变快照

层级固定为 Course → Subject → Module → Chapter → Slide。
快照中的节点均为冻结对象，任何修改都通过 dataclasses.replace 生成新树。
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, Iterator, List, Mapping, Optional, Set, Tuple


class NodeType(Enum):
    """内容树节点类型"""
    COURSE = "Course"
    SUBJECT = "Subject"
    MODULE = "Module"
    CHAPTER = "Chapter"
    SLIDE = "Slide"

    @classmethod
    def from_wire(cls, value: str) -> "NodeType":
        """从 'MODULE' / 'module' / 'Module' 等写法解析"""
        normalized = str(value).strip().upper()
        for member in cls:
            if member.name == normalized:
                return member
        raise ValueError(f"unknown node type: {value!r}")

    @property
    def child_type(self) -> Optional["NodeType"]:
        return _CHILD_TYPES.get(self)

    @property
    def prefix(self) -> str:
        return SEGMENT_PREFIXES[self]


_CHILD_TYPES = {
    NodeType.COURSE: NodeType.SUBJECT,
    NodeType.SUBJECT: NodeType.MODULE,
    NodeType.MODULE: NodeType.CHAPTER,
    NodeType.CHAPTER: NodeType.SLIDE,
}

SEGMENT_PREFIXES = {
    NodeType.COURSE: "C",
    NodeType.SUBJECT: "S",
    NodeType.MODULE: "M",
    NodeType.CHAPTER: "CH",
    NodeType.SLIDE: "SL",
}

PATH_SEPARATOR = "."


def split_path(path: Optional[str]) -> List[str]:
    """拆分路径，忽略空段"""
    if not path:
        return []
    return [segment.strip() for segment in path.split(PATH_SEPARATOR) if segment.strip()]


def join_path(*segments: str) -> str:
    return PATH_SEPARATOR.join(s for s in segments if s)


def type_for_depth(depth: int) -> Optional[NodeType]:
    """按深度推断节点类型（0 为 Course）"""
    ordered = list(NodeType)
    if 0 <= depth < len(ordered):
        return ordered[depth]
    return None


def type_from_segment(segment: str) -> Optional[NodeType]:
    """按段前缀推断类型，最长前缀优先（CH 先于 C）"""
    upper = segment.upper()
    for node_type in sorted(NodeType, key=lambda t: -len(t.prefix)):
        prefix = node_type.prefix
        if upper.startswith(prefix) and upper[len(prefix):len(prefix) + 1].isdigit():
            return node_type
    return None


@dataclass(frozen=True)
class ContentNode:
    """内容树节点"""
    id: str
    name: str
    type: NodeType
    path: str
    children: Tuple["ContentNode", ...] = ()
    attributes: Mapping[str, Any] = field(default_factory=dict)
    placeholder: bool = False

    @property
    def slide_type(self) -> Optional[str]:
        return self.attributes.get("slide_type")

    @property
    def is_video(self) -> bool:
        return self.type is NodeType.SLIDE and self.slide_type == "video"

    def child(self, node_id: str) -> Optional["ContentNode"]:
        for child in self.children:
            if child.id == node_id:
                return child
        return None

    def with_children(self, children: Tuple["ContentNode", ...]) -> "ContentNode":
        return replace(self, children=tuple(children))

    def walk(self) -> Iterator["ContentNode"]:
        """深度优先遍历（含自身）"""
        yield self
        for child in self.children:
            yield from child.walk()

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "path": self.path,
            "children": [child.to_dict() for child in self.children],
        }
        if self.attributes:
            data["attributes"] = dict(self.attributes)
        if self.placeholder:
            data["placeholder"] = True
        return data


@dataclass(frozen=True)
class ContentTree:
    """内容树快照，根层为课程列表"""
    courses: Tuple[ContentNode, ...] = ()

    def walk(self) -> Iterator[ContentNode]:
        for course in self.courses:
            yield from course.walk()

    def all_paths(self, include_placeholders: bool = True) -> Set[str]:
        return {
            node.path for node in self.walk()
            if include_placeholders or not node.placeholder
        }

    def find_by_path(self, path: str) -> Optional[ContentNode]:
        segments = split_path(path)
        if not segments:
            return None
        current = None
        siblings = self.courses
        for segment in segments:
            current = next((n for n in siblings if n.id == segment), None)
            if current is None:
                return None
            siblings = current.children
        return current

    def find_by_id(self, node_id: str, node_type: Optional[NodeType] = None,
                   within: Optional[str] = None) -> Optional[ContentNode]:
        """按 id 查找（可限定类型与子树），返回深度优先的第一个匹配"""
        if within:
            root = self.find_by_path(within)
            nodes = root.walk() if root else iter(())
        else:
            nodes = self.walk()
        for node in nodes:
            if node.id == node_id and (node_type is None or node.type is node_type):
                return node
        return None

    def find_by_name(self, name: str, node_type: Optional[NodeType] = None,
                     within: Optional[str] = None) -> Optional[ContentNode]:
        """按名称查找（忽略首尾空白与大小写），用于只给出 name 的 UPDATE/DELETE"""
        wanted = name.strip().casefold()
        if within:
            root = self.find_by_path(within)
            nodes = root.walk() if root else iter(())
        else:
            nodes = self.walk()
        for node in nodes:
            if node.placeholder or node.name.strip().casefold() != wanted:
                continue
            if node_type is None or node.type is node_type:
                return node
        return None

    def paths_by_type(self, node_type: NodeType, include_placeholders: bool = False) -> List[str]:
        """某一类型全部节点的路径，按深度优先顺序"""
        return [
            node.path for node in self.walk()
            if node.type is node_type and (include_placeholders or not node.placeholder)
        ]

    def __len__(self) -> int:
        return sum(1 for _ in self.walk())

    def to_dict(self) -> Dict[str, Any]:
        return {"courses": [course.to_dict() for course in self.courses]}
