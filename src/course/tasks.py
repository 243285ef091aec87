"""
待办追踪：从编辑记录派生任务，并按内容树快照对账完成状态

完成标记是单调的：对账只会把任务置为完成，从不回退。
"""

import logging
import re
import time
from dataclasses import dataclass, field, replace
from threading import Lock
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from .records import Action, Modification, TodoRecord
from .tree import ContentTree

logger = logging.getLogger(__name__)

_ACTION_VERBS = {
    Action.ADD: "Create",
    Action.UPDATE: "Update",
}


@dataclass(frozen=True)
class TodoTask:
    id: str
    title: str
    description: str
    type: str
    path: Optional[str] = None
    completed: bool = False
    created_at: float = field(default_factory=time.time)
    completed_at: Optional[float] = None
    response_id: Optional[str] = None
    metadata: Mapping[str, Any] = field(default_factory=dict)

    def complete(self, at: Optional[float] = None) -> "TodoTask":
        if self.completed:
            return self
        return replace(self, completed=True, completed_at=at if at is not None else time.time())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "type": self.type,
            "path": self.path,
            "completed": self.completed,
            "createdAt": self.created_at,
            "completedAt": self.completed_at,
            "responseId": self.response_id,
        }


def task_id_for(task_type: str, path: str) -> str:
    return f"{task_type}:{path}"


def derive_tasks(modifications: Iterable[Modification],
                 response_id: Optional[str] = None) -> List[TodoTask]:
    """每条带路径的 ADD/UPDATE 编辑生成一个未完成任务"""
    tasks = []
    seen = set()
    for mod in modifications:
        verb = _ACTION_VERBS.get(mod.action)
        if verb is None or not mod.path:
            continue
        task_type = mod.target_type.value.lower()
        task_id = task_id_for(task_type, mod.path)
        if task_id in seen:
            continue
        seen.add(task_id)
        name = mod.name or mod.node_id
        tasks.append(TodoTask(
            id=task_id,
            title=f"{verb} {task_type}: {name}",
            description=f'Generate {task_type} content for "{name}"',
            type=task_type,
            path=mod.path,
            response_id=response_id,
            metadata={"modification": mod.to_dict()},
        ))
    return tasks


def tasks_from_records(records: Iterable[TodoRecord],
                       response_id: Optional[str] = None) -> List[TodoTask]:
    """数据块中显式给出的 todos"""
    tasks = []
    for record in records:
        task_type = (record.type or "task").strip().lower()
        if record.path:
            task_id = task_id_for(task_type, record.path)
        else:
            task_id = f"todo:{re.sub(r'[^0-9a-z]+', '-', record.title.lower()).strip('-')}"
        tasks.append(TodoTask(
            id=task_id,
            title=record.title,
            description=record.description or record.title,
            type=task_type,
            path=record.path,
            response_id=response_id,
        ))
    return tasks


def reconcile(tasks: Iterable[TodoTask], tree: ContentTree,
              now: Optional[float] = None) -> List[TodoTask]:
    """路径已在树中落地的未完成任务置为完成；已完成的保持不变"""
    materialized = tree.all_paths(include_placeholders=False)
    at = now if now is not None else time.time()
    return [
        task.complete(at) if not task.completed and task.path in materialized else task
        for task in tasks
    ]


class TaskTracker:
    """任务列表持有者，对外只暴露只读视图"""

    def __init__(self):
        self._tasks: Dict[str, TodoTask] = {}
        self._lock = Lock()

    @property
    def tasks(self) -> Tuple[TodoTask, ...]:
        with self._lock:
            return tuple(self._tasks.values())

    def get(self, task_id: str) -> Optional[TodoTask]:
        with self._lock:
            return self._tasks.get(task_id)

    def add(self, tasks: Iterable[TodoTask]) -> List[TodoTask]:
        """登记新任务，已存在的 id 忽略"""
        added = []
        with self._lock:
            for task in tasks:
                if task.id in self._tasks:
                    continue
                self._tasks[task.id] = task
                added.append(task)
        if added:
            logger.info(f"📋 新增 {len(added)} 个待办任务")
        return added

    def sync(self, tree: ContentTree) -> List[TodoTask]:
        """对账，返回本次新完成的任务"""
        with self._lock:
            current = list(self._tasks.values())
            updated = reconcile(current, tree)
            newly = [new for old, new in zip(current, updated) if new is not old]
            for task in newly:
                self._tasks[task.id] = task
        for task in newly:
            logger.info(f"✅ 任务自动完成: {task.title} ({task.path})")
        return newly

    def mark_done(self, task_id: str) -> TodoTask:
        """手动完成，不受树状态约束"""
        with self._lock:
            task = self._tasks[task_id]
            task = self._tasks[task_id] = task.complete()
        return task

    def reopen(self, task_id: str) -> TodoTask:
        """仅供用户显式操作调用"""
        with self._lock:
            task = self._tasks[task_id]
            task = self._tasks[task_id] = replace(task, completed=False, completed_at=None)
        return task

    def pending(self) -> List[TodoTask]:
        return [t for t in self.tasks if not t.completed]

    def completed(self) -> List[TodoTask]:
        return [t for t in self.tasks if t.completed]

    def clear(self):
        with self._lock:
            self._tasks.clear()
