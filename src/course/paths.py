"""
路径数据登记

按响应记录每条编辑与带路径待办落在哪个路径上，
供按响应、按路径、按类型查询。同一路径后写入的覆盖先写入的。
"""

import logging
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .records import Action, Modification, TodoRecord

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PathEntry:
    path: str
    type: str
    name: str
    action: str
    description: Optional[str] = None
    content: Optional[str] = None
    slide_type: Optional[str] = None
    metadata: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_modification(cls, mod: Modification) -> Optional["PathEntry"]:
        if not mod.path:
            return None
        return cls(
            path=mod.path,
            type=mod.target_type.value.lower(),
            name=mod.name or mod.node_id,
            action=mod.action.value,
            description=mod.node.get("description"),
            content=mod.node.get("content"),
            slide_type=mod.node.get("slide_type"),
            metadata={"parentPath": mod.parent_path, "modification": mod.to_dict()},
        )

    @classmethod
    def from_todo(cls, todo: TodoRecord) -> Optional["PathEntry"]:
        if not todo.path:
            return None
        return cls(
            path=todo.path,
            type=(todo.type or "task").strip().lower(),
            name=todo.title,
            action=Action.ADD.value,
            description=todo.description,
            metadata={"isTodo": True},
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "path": self.path,
            "type": self.type,
            "name": self.name,
            "action": self.action,
        }
        if self.description is not None:
            data["description"] = self.description
        if self.content is not None:
            data["content"] = self.content
        if self.slide_type is not None:
            data["slideType"] = self.slide_type
        if self.metadata:
            data["metadata"] = dict(self.metadata)
        return data


class PathRegistry:
    """按响应保存路径数据"""

    def __init__(self):
        self._by_response: Dict[str, Dict[str, PathEntry]] = {}
        self._lock = Lock()

    def record(self, response_id: str, modifications: Iterable[Modification] = (),
               todos: Iterable[TodoRecord] = ()) -> List[PathEntry]:
        """登记一批编辑与待办，返回新写入的条目"""
        entries = [PathEntry.from_modification(mod) for mod in modifications]
        entries += [PathEntry.from_todo(todo) for todo in todos]
        entries = [entry for entry in entries if entry is not None]
        if not entries:
            return []
        with self._lock:
            paths = self._by_response.setdefault(response_id, {})
            for entry in entries:
                paths[entry.path] = entry
        logger.debug(f"🗂️ 登记路径 [{response_id}]: {[e.path for e in entries]}")
        return entries

    def path_data(self, response_id: str) -> Optional[Dict[str, PathEntry]]:
        """某个响应的路径数据；未登记过的响应返回 None"""
        with self._lock:
            paths = self._by_response.get(response_id)
            return dict(paths) if paths is not None else None

    def all_path_data(self) -> Dict[str, PathEntry]:
        """合并所有响应，后登记的响应覆盖先登记的"""
        merged: Dict[str, PathEntry] = {}
        with self._lock:
            for paths in self._by_response.values():
                merged.update(paths)
        return merged

    def path_data_by_key(self, path: str) -> Optional[PathEntry]:
        """按登记顺序返回第一个包含该路径的响应中的条目"""
        with self._lock:
            for paths in self._by_response.values():
                if path in paths:
                    return paths[path]
        return None

    def paths_by_type(self, entry_type: str) -> List[PathEntry]:
        wanted = entry_type.strip().lower()
        return [entry for entry in self.all_path_data().values() if entry.type == wanted]

    def response_ids(self) -> List[str]:
        with self._lock:
            return list(self._by_response)

    def clear(self):
        with self._lock:
            self._by_response.clear()

    def __len__(self) -> int:
        return len(self.all_path_data())
