"""
课程构建会话

把内容树、任务追踪、路径登记、分段日志、响应录制与流处理器组装在一起。
会话由调用方显式创建与释放，所有组件都是会话实例的成员，没有进程级单例。
"""

import logging
from typing import Any, Dict, Optional

from src.core.capture import ResponseCaptureService
from src.core.constants import CAPTURE_DIR
from src.course.paths import PathRegistry
from src.course.store import TreeStore
from src.course.tasks import TaskTracker
from src.stream.processor import StreamProcessor
from src.stream.sections import SectionAccumulator

logger = logging.getLogger(__name__)


class BuilderSession:
    """一个课程构建会话"""

    def __init__(
        self,
        tree_store: Optional[TreeStore] = None,
        task_tracker: Optional[TaskTracker] = None,
        sections: Optional[SectionAccumulator] = None,
        capture: Optional[ResponseCaptureService] = None,
        paths: Optional[PathRegistry] = None
    ):
        self.tree_store = tree_store or TreeStore()
        self.task_tracker = task_tracker or TaskTracker()
        self.paths = paths if paths is not None else PathRegistry()
        self.sections = sections or SectionAccumulator()
        self.capture = capture
        self.processor = StreamProcessor(
            self.tree_store,
            self.task_tracker,
            sections=self.sections,
            capture=self.capture,
            paths=self.paths,
        )
        self.config: Dict[str, Any] = {}

    @classmethod
    def create(cls, config: Optional[Dict[str, Any]] = None) -> "BuilderSession":
        """按配置创建会话"""
        config = config or {}
        capture_config = config.get("capture", {})
        capture = None
        if capture_config.get("enabled", False):
            capture = ResponseCaptureService.create(
                directory=capture_config.get("directory", CAPTURE_DIR),
            )
            logger.info(f"🎥 响应录制已启用: {capture.directory}")
        session = cls(capture=capture)
        session.config = config
        return session

    def dispose(self):
        self.processor.dispose()
        if self.capture is not None:
            self.capture.dispose()
        logger.info("👋 构建会话已释放")

    def clear(self):
        """清空内容树、任务、路径登记与分段，录制保留"""
        self.processor.dispose()
        self.tree_store.reset()
        self.task_tracker.clear()
        self.paths.clear()
        self.sections.clear()
        logger.info("🧹 构建会话已清空")

    def debug_snapshot(self) -> Dict[str, Any]:
        """调试用的只读快照"""
        tree = self.tree_store.snapshot
        return {
            "tree": tree.to_dict(),
            "tree_version": self.tree_store.version,
            "node_count": len(tree),
            "tasks": [task.to_dict() for task in self.task_tracker.tasks],
            "pending_tasks": len(self.task_tracker.pending()),
            "path_count": len(self.paths),
            "responses": [state.get_stats() for state in self.processor.states()],
            "sections": {
                response_id: self.sections.count(response_id)
                for response_id in self.sections.response_ids()
            },
            "captures": self.capture.list_ids() if self.capture is not None else [],
            "extractor_stats": self.processor.extractor.get_stats(),
        }
