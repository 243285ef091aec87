"""响应录制：保存每个响应的原始片段，用于调试与确定性回放"""

import json
import logging
import os
import time
from dataclasses import dataclass, field
from threading import Lock
from typing import Any, Dict, List, Optional

from .constants import CAPTURE_DIR

logger = logging.getLogger(__name__)


@dataclass
class CaptureRecord:
    id: str
    timestamp: float
    user_prompt: str = ""
    model: str = "unknown"
    chunks: List[str] = field(default_factory=list)
    full_response: str = ""
    duration_ms: int = 0
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "userPrompt": self.user_prompt,
            "model": self.model,
            "chunks": list(self.chunks),
            "fullResponse": self.full_response,
            "durationMs": self.duration_ms,
            "error": self.error,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CaptureRecord":
        return cls(
            id=data["id"],
            timestamp=data.get("timestamp", 0.0),
            user_prompt=data.get("userPrompt", ""),
            model=data.get("model", "unknown"),
            chunks=list(data.get("chunks", [])),
            full_response=data.get("fullResponse", ""),
            duration_ms=data.get("durationMs", 0),
            error=data.get("error"),
        )


class ResponseCaptureService:
    """
    响应录制服务

    由会话显式创建与释放（create / dispose），不使用进程级全局状态。
    directory 为 None 时只保存在内存中。
    """

    def __init__(self, directory: Optional[str] = CAPTURE_DIR, enabled: bool = True):
        self.directory = directory
        self.enabled = enabled
        self._records: Dict[str, CaptureRecord] = {}
        self._lock = Lock()
        self._disposed = False

    @classmethod
    def create(cls, directory: Optional[str] = CAPTURE_DIR, enabled: bool = True) -> "ResponseCaptureService":
        service = cls(directory=directory, enabled=enabled)
        if enabled and directory:
            os.makedirs(directory, exist_ok=True)
        return service

    def dispose(self):
        with self._lock:
            self._records.clear()
            self._disposed = True

    @property
    def active(self) -> bool:
        return self.enabled and not self._disposed

    def _path_for(self, response_id: str) -> str:
        return os.path.join(self.directory, f"{response_id}.json")

    def start(self, response_id: str, user_prompt: str = "", model: str = "unknown"):
        if not self.active:
            return
        with self._lock:
            self._records[response_id] = CaptureRecord(
                id=response_id,
                timestamp=time.time(),
                user_prompt=user_prompt,
                model=model,
            )

    def record_chunk(self, response_id: str, chunk: str):
        if not self.active:
            return
        with self._lock:
            record = self._records.get(response_id)
            if record is not None:
                record.chunks.append(chunk)

    def finish(self, response_id: str, full_response: str = "",
               error: Optional[str] = None) -> Optional[CaptureRecord]:
        if not self.active:
            return None
        with self._lock:
            record = self._records.get(response_id)
            if record is None:
                return None
            record.full_response = full_response or "".join(record.chunks)
            record.duration_ms = int((time.time() - record.timestamp) * 1000)
            record.error = error
        self.save(record)
        return record

    def save(self, record: CaptureRecord):
        if not self.directory:
            return
        try:
            with open(self._path_for(record.id), 'w', encoding='utf-8') as f:
                json.dump(record.to_dict(), f, ensure_ascii=False, indent=2)
        except OSError as e:
            logger.warning(f"⚠️ 保存响应录制失败: {e}")

    def get(self, response_id: str) -> Optional[CaptureRecord]:
        with self._lock:
            record = self._records.get(response_id)
        if record is not None or not self.directory:
            return record
        return self.load(self._path_for(response_id))

    def load(self, path: str) -> Optional[CaptureRecord]:
        try:
            with open(path, 'r', encoding='utf-8') as f:
                return CaptureRecord.from_dict(json.load(f))
        except FileNotFoundError:
            return None
        except (OSError, ValueError, KeyError) as e:
            logger.warning(f"⚠️ 加载响应录制失败: {e}")
            return None

    def list_ids(self) -> List[str]:
        with self._lock:
            ids = set(self._records)
        if self.directory and os.path.isdir(self.directory):
            ids.update(name[:-5] for name in os.listdir(self.directory) if name.endswith(".json"))
        return sorted(ids)
