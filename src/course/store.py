"""内容树快照持有者，跨响应共享的唯一资源"""

import logging
from threading import Lock
from typing import Callable, Iterable, List, Optional, Tuple

from .mutator import MutationReport, TreeMutator
from .records import Modification
from .tree import ContentTree

logger = logging.getLogger(__name__)

TreeListener = Callable[[ContentTree, MutationReport], None]


class TreeStore:
    """
    保存当前内容树快照

    所有写入都经过 TreeMutator 的纯函数，读者只会看到变更前或变更后的完整快照。
    """

    def __init__(self, tree: Optional[ContentTree] = None, mutator: Optional[TreeMutator] = None):
        self._tree = tree or ContentTree()
        self._mutator = mutator or TreeMutator()
        self._version = 0
        self._lock = Lock()
        self._listeners: List[TreeListener] = []

    @property
    def snapshot(self) -> ContentTree:
        return self._tree

    @property
    def version(self) -> int:
        return self._version

    def subscribe(self, listener: TreeListener):
        self._listeners.append(listener)

    def apply(self, modifications: Iterable[Modification]) -> Tuple[ContentTree, MutationReport]:
        with self._lock:
            tree, report = self._mutator.apply_with_report(self._tree, list(modifications))
            if report.changed:
                self._tree = tree
                self._version += 1
        if report.changed:
            logger.info(
                f"🌳 内容树 v{self._version}: +{len(report.added)} ~{len(report.updated)} -{len(report.deleted)}"
            )
            for listener in self._listeners:
                listener(tree, report)
        return self._tree, report

    def replace(self, tree: ContentTree):
        with self._lock:
            self._tree = tree
            self._version += 1

    def reset(self):
        self.replace(ContentTree())
