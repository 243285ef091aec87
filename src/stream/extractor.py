"""
结构化编辑提取器

在累计缓冲区上增量扫描完整数据块，解码其中的编辑记录并按身份键去重。
缓冲区只增长时，重复提取不会再返回已返回过的记录。
"""

import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Tuple

from src.course.records import Modification, TodoRecord, decode_modification, decode_todo, outline_todos

from .parsers import BalancedBlockScanner
from .trackers import ModificationKey

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExtractedBlock:
    """一个成功解析的数据块"""
    start: int
    end: int
    raw: str
    modifications: Tuple[Modification, ...]
    todos: Tuple[TodoRecord, ...]
    dropped: int
    duplicates: int


@dataclass(frozen=True)
class ExtractionResult:
    modifications: Tuple[Modification, ...]
    todos: Tuple[TodoRecord, ...]
    updated_seen_keys: FrozenSet[ModificationKey]
    blocks: Tuple[ExtractedBlock, ...]
    resume_offset: int


def _records_of(data: Dict[str, Any]) -> List[Any]:
    records = data.get("modifications")
    if isinstance(records, list):
        return records
    if "action" in data and ("targetType" in data or "target_type" in data):
        return [data]
    return []


class ModificationExtractor:
    """从累计缓冲区提取去重后的 Modification"""

    def __init__(self, scanner: Optional[BalancedBlockScanner] = None):
        self.scanner = scanner or BalancedBlockScanner()
        self.blocks_parsed = 0
        self.parse_errors = 0
        self.records_dropped = 0
        self.duplicates_skipped = 0

    def extract(
        self,
        buffer: str,
        already_seen_keys: Iterable[ModificationKey] = frozenset(),
        start: int = 0
    ) -> ExtractionResult:
        """
        扫描 buffer[start:] 中的完整数据块

        未闭合的尾部块留在缓冲区等待下一次提取；
        平衡但无法解析的块直接丢弃，继续处理后面的块。
        """
        seen = set(already_seen_keys)
        scan = self.scanner.scan(buffer, start)
        modifications: List[Modification] = []
        todos: List[TodoRecord] = []
        blocks: List[ExtractedBlock] = []

        for span in scan.blocks:
            raw = buffer[span.start:span.end]
            try:
                data = json.loads(raw)
            except ValueError:
                self.parse_errors += 1
                logger.debug(f"丢弃无法解析的数据块 @{span.start}: {raw[:80]!r}")
                continue
            if not isinstance(data, dict):
                continue
            self.blocks_parsed += 1

            accepted = []
            dropped = duplicates = 0
            records = _records_of(data)
            for record in records:
                mod = decode_modification(record)
                if mod is None:
                    dropped += 1
                    continue
                if mod.identity in seen:
                    duplicates += 1
                    continue
                seen.add(mod.identity)
                accepted.append(mod)

            block_todos = []
            if isinstance(data.get("todos"), list):
                for record in data["todos"]:
                    todo = decode_todo(record)
                    if todo is None:
                        dropped += 1
                    else:
                        block_todos.append(todo)
            if not records:
                block_todos.extend(outline_todos(data))

            self.records_dropped += dropped
            self.duplicates_skipped += duplicates
            modifications.extend(accepted)
            todos.extend(block_todos)
            blocks.append(ExtractedBlock(
                start=span.start,
                end=span.end,
                raw=raw,
                modifications=tuple(accepted),
                todos=tuple(block_todos),
                dropped=dropped,
                duplicates=duplicates,
            ))

        return ExtractionResult(
            modifications=tuple(modifications),
            todos=tuple(todos),
            updated_seen_keys=frozenset(seen),
            blocks=tuple(blocks),
            resume_offset=scan.resume_offset,
        )

    def get_stats(self) -> Dict[str, Any]:
        return {
            "blocks_parsed": self.blocks_parsed,
            "parse_errors": self.parse_errors,
            "records_dropped": self.records_dropped,
            "duplicates_skipped": self.duplicates_skipped,
        }
