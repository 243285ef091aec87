"""输出分段与分段日志"""

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from threading import Lock
from typing import Any, Dict, List, Mapping, Tuple


class SectionType(Enum):
    THINKING = "thinking"
    GENERATING = "generating"
    TEXT = "text"
    STRUCTURED = "structured"


@dataclass(frozen=True)
class Section:
    """已分类、可渲染的输出单元，发出后内容不可变"""
    id: str
    type: SectionType
    content: str
    timestamp: float
    metadata: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def create(cls, section_type: SectionType, content: str, **metadata) -> "Section":
        return cls(
            id=str(uuid.uuid4()),
            type=section_type,
            content=content,
            timestamp=time.time(),
            metadata=metadata,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "content": self.content,
            "timestamp": self.timestamp,
            "metadata": dict(self.metadata),
        }


class SectionAccumulator:
    """按响应 id 保存有序分段，只追加"""

    def __init__(self):
        self._logs: Dict[str, List[Section]] = {}
        self._lock = Lock()

    def append(self, response_id: str, section: Section):
        with self._lock:
            self._logs.setdefault(response_id, []).append(section)

    def get_sections(self, response_id: str, after: int = 0) -> Tuple[Section, ...]:
        """返回快照副本；读者在流中途轮询只会看到不断增长的前缀"""
        with self._lock:
            return tuple(self._logs.get(response_id, ())[max(0, after):])

    def count(self, response_id: str) -> int:
        with self._lock:
            return len(self._logs.get(response_id, ()))

    def response_ids(self) -> List[str]:
        with self._lock:
            return list(self._logs)

    def clear(self):
        with self._lock:
            self._logs.clear()
