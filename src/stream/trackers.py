"""流式状态：处理状态枚举、响应阶段、单响应状态快照"""

import time
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional, Tuple


class ProcessingStatus(Enum):
    """RECEIVING 阶段内部的处理状态"""
    IDLE = "idle"
    THINKING = "thinking"
    GENERATING = "generating"


class ResponsePhase(Enum):
    """响应生命周期"""
    RECEIVING = "receiving"
    COMPLETE = "complete"
    ERROR = "error"


ModificationKey = Tuple[str, str, str]


@dataclass(frozen=True)
class StreamState:
    """
    单个响应的流式状态

    buffer 保存规范化后的累计文本；text_cursor 之前的文本已完成分类，
    scan_offset 之前的数据块已完成提取。状态只通过 reducer 生成新值。
    """
    response_id: str
    buffer: str = ""
    processing_status: ProcessingStatus = ProcessingStatus.IDLE
    seen_modification_keys: FrozenSet[ModificationKey] = frozenset()
    text_cursor: int = 0
    scan_offset: int = 0
    phase: ResponsePhase = ResponsePhase.RECEIVING
    live: bool = True
    chunks_processed: int = 0
    failed_chunks: int = 0
    error: Optional[str] = None
    user_prompt: str = ""
    model: str = "unknown"
    started_at: float = field(default_factory=time.time)
    finished_at: Optional[float] = None

    @property
    def is_receiving(self) -> bool:
        return self.phase is ResponsePhase.RECEIVING

    def cancelled(self) -> "StreamState":
        return replace(self, live=False)

    def completed(self) -> "StreamState":
        return replace(
            self,
            phase=ResponsePhase.COMPLETE,
            processing_status=ProcessingStatus.IDLE,
            finished_at=time.time(),
        )

    def errored(self, message: str) -> "StreamState":
        return replace(self, phase=ResponsePhase.ERROR, error=message, finished_at=time.time())

    def get_stats(self) -> Dict[str, Any]:
        return {
            "response_id": self.response_id,
            "phase": self.phase.value,
            "processing_status": self.processing_status.value,
            "live": self.live,
            "buffer_length": len(self.buffer),
            "chunks_processed": self.chunks_processed,
            "failed_chunks": self.failed_chunks,
            "seen_modifications": len(self.seen_modification_keys),
            "error": self.error,
        }
