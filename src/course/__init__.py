"""课程内容树模块"""

from .tree import ContentNode, ContentTree, NodeType, split_path, join_path
from .records import Action, Modification, TodoRecord, decode_modification, decode_todo
from .mutator import MutationReport, TreeMutator
from .store import TreeStore
from .tasks import TaskTracker, TodoTask, derive_tasks, reconcile, tasks_from_records

__all__ = [
    "Action",
    "ContentNode",
    "ContentTree",
    "Modification",
    "MutationReport",
    "NodeType",
    "TaskTracker",
    "TodoRecord",
    "TodoTask",
    "TreeMutator",
    "TreeStore",
    "decode_modification",
    "decode_todo",
    "derive_tasks",
    "join_path",
    "reconcile",
    "split_path",
    "tasks_from_records",
]
