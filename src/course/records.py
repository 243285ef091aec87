"""
结构化编辑记录解码

数据块中的原始记录按 targetType 做标签联合校验，
成功则得到 Modification，失败返回 None（丢弃，不抛异常）。
"""

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator, model_validator

from .tree import NodeType, PATH_SEPARATOR, join_path, split_path

logger = logging.getLogger(__name__)


class Action(Enum):
    ADD = "ADD"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


SLIDE_KINDS = (
    "presentation", "document", "pdf", "video", "quiz", "assignment",
    "question", "jupyter-notebook", "scratch-project", "code-editor",
)
SLIDE_KIND_ALIASES = {
    "youtube": "video",
    "assessment": "quiz",
    "text": "document",
}
DEFAULT_SLIDE_KIND = "document"

# 扁平记录中可并入 node 的字段
_FLAT_NODE_FIELDS = ("id", "name", "description", "content", "slideType", "slide_type")


def normalize_slide_kind(value: Any) -> str:
    kind = str(value).strip().lower()
    kind = SLIDE_KIND_ALIASES.get(kind, kind)
    return kind if kind in SLIDE_KINDS else DEFAULT_SLIDE_KIND


def _slug(name: str) -> str:
    return re.sub(r"[^0-9A-Za-z_-]+", "", name.replace(" ", "-")) or name


class NodePayload(BaseModel):
    """节点载荷，额外字段原样保留"""
    model_config = ConfigDict(extra="allow")

    id: str
    name: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("id")
    @classmethod
    def _non_empty_id(cls, value: str) -> str:
        value = value.strip()
        if not value or PATH_SEPARATOR in value:
            raise ValueError("node id must be a single non-empty path segment")
        return value


class SlideNodePayload(NodePayload):
    slide_type: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _collect_slide_type(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        data = dict(data)
        kind = data.pop("slideType", None) or data.get("slide_type") or data.pop("type", None)
        if kind:
            data["slide_type"] = normalize_slide_kind(kind)
        return data


class _Record(BaseModel):
    model_config = ConfigDict(extra="ignore")

    action: Literal["ADD", "UPDATE", "DELETE"]
    parent_path: Optional[str] = None
    path: Optional[str] = None
    node: NodePayload


class CourseRecord(_Record):
    target_type: Literal["COURSE"]


class SubjectRecord(_Record):
    target_type: Literal["SUBJECT"]


class ModuleRecord(_Record):
    target_type: Literal["MODULE"]


class ChapterRecord(_Record):
    target_type: Literal["CHAPTER"]


class SlideRecord(_Record):
    target_type: Literal["SLIDE"]
    node: SlideNodePayload


ModificationRecord = Annotated[
    Union[CourseRecord, SubjectRecord, ModuleRecord, ChapterRecord, SlideRecord],
    Field(discriminator="target_type"),
]
_RECORD_ADAPTER = TypeAdapter(ModificationRecord)


class TodoRecord(BaseModel):
    """数据块中显式给出的待办记录"""
    model_config = ConfigDict(extra="ignore")

    title: str
    path: Optional[str] = None
    type: Optional[str] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class Modification:
    """一条已校验的结构化编辑"""
    action: Action
    target_type: NodeType
    node: Mapping[str, Any] = field(default_factory=dict)
    parent_path: Optional[str] = None
    path: Optional[str] = None
    # id 由 name 推导而来，UPDATE/DELETE 需要按名称定位
    id_from_name: bool = False

    @property
    def node_id(self) -> str:
        return self.node["id"]

    @property
    def name(self) -> Optional[str]:
        return self.node.get("name")

    @property
    def identity(self) -> Tuple[str, str, str]:
        """去重键: (targetType, node.id, action)"""
        return (self.target_type.value, self.node_id, self.action.value)

    @property
    def fields(self) -> Dict[str, Any]:
        """除 id 外的可合并字段"""
        return {k: v for k, v in self.node.items() if k != "id"}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "action": self.action.value,
            "targetType": self.target_type.name,
            "parentPath": self.parent_path,
            "path": self.path,
            "node": dict(self.node),
        }


def _prepare(raw: Mapping[str, Any]) -> Optional[Dict[str, Any]]:
    """把宽松的原始记录整理成标签联合可校验的形状"""
    action = raw.get("action")
    target = raw.get("targetType", raw.get("target_type"))
    if not isinstance(action, str) or not isinstance(target, str):
        return None

    node = raw.get("node")
    if isinstance(node, dict):
        node = dict(node)
    elif raw.get("name"):
        node = {k: raw[k] for k in _FLAT_NODE_FIELDS if raw.get(k) is not None}
        if target.strip().upper() == "SLIDE" and raw.get("type") and "slideType" not in node:
            node["slideType"] = raw["type"]
    else:
        return None

    node_path = node.pop("path", None)
    path = raw.get("path") or node_path
    if not node.get("name") and raw.get("name"):
        node["name"] = raw["name"]
    parent_path = raw.get("parentPath", raw.get("parent_path"))

    id_from_name = False
    if not node.get("id"):
        if path:
            node["id"] = split_path(path)[-1]
        elif node.get("name"):
            node["id"] = _slug(str(node["name"]))
            id_from_name = True
        else:
            return None

    if not parent_path and path:
        segments = split_path(path)
        if len(segments) > 1:
            parent_path = join_path(*segments[:-1])

    return {
        "action": action.strip().upper(),
        "target_type": target.strip().upper(),
        "parent_path": parent_path or None,
        "path": path or None,
        "node": node,
        "id_from_name": id_from_name,
    }


def decode_modification(raw: Any) -> Optional[Modification]:
    """校验单条原始记录，不合格返回 None"""
    if not isinstance(raw, dict):
        return None
    prepared = _prepare(raw)
    if prepared is None:
        return None
    id_from_name = prepared.pop("id_from_name")
    try:
        record = _RECORD_ADAPTER.validate_python(prepared)
    except ValidationError as e:
        logger.debug(f"丢弃无效编辑记录: {e.error_count()} 个错误")
        return None

    node = record.node.model_dump(exclude_none=True)
    if record.action == "ADD" and not node.get("name"):
        node["name"] = node["id"]

    parent_path = join_path(*split_path(record.parent_path)) or None
    if parent_path:
        path = join_path(parent_path, node["id"])
    elif record.target_type == "COURSE":
        path = node["id"]
    else:
        path = join_path(*split_path(record.path)) or None

    return Modification(
        action=Action(record.action),
        target_type=NodeType.from_wire(record.target_type),
        node=node,
        parent_path=parent_path,
        path=path,
        id_from_name=id_from_name,
    )


def decode_todo(raw: Any) -> Optional[TodoRecord]:
    if not isinstance(raw, dict):
        return None
    try:
        return TodoRecord.model_validate(raw)
    except ValidationError:
        return None


# 嵌套大纲: 顶层键 → 节点类型，子节点键 → 子节点类型
_OUTLINE_ROOTS = (("tree", "subject"), ("subjects", "subject"), ("modules", "module"))
_OUTLINE_CHILDREN = (("modules", "module"), ("chapters", "chapter"), ("slides", "slide"))


def outline_todos(data: Mapping[str, Any]) -> List[TodoRecord]:
    """
    从嵌套大纲（tree / subjects / modules）派生带路径的待办

    每个有 name 的节点生成一条 "Create {type}: {name}"；
    路径优先用节点自带的 path，否则为父路径加上 id（或去掉空白的 name）。
    没有 name 的节点连同其子树一起跳过。
    """
    todos: List[TodoRecord] = []

    def visit(node: Any, node_type: str, parent_path: str):
        if not isinstance(node, dict) or not node.get("name"):
            return
        name = str(node["name"])
        segment = str(node.get("id") or re.sub(r"\s+", "", name))
        path = node.get("path") or join_path(parent_path, segment)
        todos.append(TodoRecord(
            title=f"Create {node_type}: {name}",
            path=path,
            type=node_type,
            description=f'Generate {node_type} content for "{name}"',
        ))
        for key, child_type in _OUTLINE_CHILDREN:
            children = node.get(key)
            if isinstance(children, list):
                for child in children:
                    visit(child, child_type, path)

    for key, node_type in _OUTLINE_ROOTS:
        roots = data.get(key)
        if isinstance(roots, list):
            for root in roots:
                visit(root, node_type, "")
            break
    return todos
