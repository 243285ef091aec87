"""
流式片段分类器

标记检测基于累计缓冲区（标记可能被拆在两个片段之间），
而分段内容只取当前片段，避免重复输出已见过的文本。
"""

import re
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from src.core.constants import GENERATING_MARKERS, THINKING_MARKERS

from .parsers import BalancedBlockScanner, BlockSpan
from .sections import Section, SectionType
from .trackers import ProcessingStatus

FENCE_PATTERN = re.compile(r"```[\w-]*")
FENCE = "```"

Span = Tuple[int, int]


@dataclass(frozen=True)
class Classification:
    status: ProcessingStatus
    section: Optional[Section]
    text: str
    text_cursor: int
    in_structured_block: bool


class StreamChunkClassifier:
    """根据片段与累计缓冲区判断新激活的语义标记"""

    def __init__(
        self,
        thinking_markers: Iterable[str] = THINKING_MARKERS,
        generating_markers: Iterable[str] = GENERATING_MARKERS,
        scanner: Optional[BalancedBlockScanner] = None
    ):
        self.markers: Dict[str, ProcessingStatus] = {}
        for marker in thinking_markers:
            self.markers[marker] = ProcessingStatus.THINKING
        for marker in generating_markers:
            self.markers[marker] = ProcessingStatus.GENERATING
        self.scanner = scanner or BalancedBlockScanner()
        self._lookback = max([len(m) for m in self.markers] + [len(FENCE) + 16])

    def _find_markers(self, text: str, start: int) -> List[Tuple[int, int, ProcessingStatus]]:
        found = []
        for marker, status in self.markers.items():
            pos = text.find(marker, start)
            while pos != -1:
                found.append((pos, pos + len(marker), status))
                pos = text.find(marker, pos + len(marker))
        found.sort()
        return found

    def _partial_tail(self, text: str) -> int:
        """缓冲区末尾可能是某个标记前缀的长度，暂不输出"""
        longest = 0
        for token in list(self.markers) + [FENCE]:
            for i in range(len(token) - 1, longest, -1):
                if text.endswith(token[:i]):
                    longest = i
                    break
        return longest

    def _visible(self, text: str, start: int, end: int, excluded: List[Span]) -> str:
        pieces = []
        cursor = start
        for s, e in sorted(excluded):
            if e <= cursor or s >= end:
                continue
            if s > cursor:
                pieces.append(text[cursor:s])
            cursor = max(cursor, e)
        if cursor < end:
            pieces.append(text[cursor:end])
        return "".join(pieces)

    def _layout(self, combined: str, text_cursor: int):
        """返回 (完整块, 未完成块起点, 有效标记, 排除区间)"""
        scan = self.scanner.scan(combined, text_cursor)
        blocks: Tuple[BlockSpan, ...] = scan.blocks
        open_start = scan.open_start
        window = max(0, text_cursor - self._lookback)

        def inside_data(pos: int) -> bool:
            if open_start is not None and pos >= open_start:
                return True
            return any(block.covers(pos) for block in blocks)

        markers = [m for m in self._find_markers(combined, window) if not inside_data(m[0])]
        excluded: List[Span] = [(b.start, b.end) for b in blocks]
        excluded.extend((s, e) for s, e, _ in markers)
        excluded.extend(
            (m.start() + window, m.end() + window)
            for m in FENCE_PATTERN.finditer(combined[window:])
            if not inside_data(m.start() + window)
        )
        return blocks, open_start, markers, excluded

    def classify(
        self,
        chunk: str,
        buffer: str,
        current_status: ProcessingStatus,
        text_cursor: Optional[int] = None
    ) -> Classification:
        """
        对一个规范化片段分类

        Args:
            chunk: 当前片段（已规范化）
            buffer: 追加当前片段之前的累计缓冲区
            current_status: 当前处理状态
            text_cursor: 已分类文本的位置，默认为 buffer 末尾
        """
        combined = buffer + chunk
        chunk_start = len(buffer)
        if text_cursor is None:
            text_cursor = chunk_start

        blocks, open_start, markers, excluded = self._layout(combined, text_cursor)

        # 状态粘滞：只有出现另一个标记才切换
        status = current_status
        for _, end, marker_status in markers:
            if end > chunk_start:
                status = marker_status

        if open_start is not None:
            safe_end = open_start
        else:
            safe_end = len(combined) - self._partial_tail(combined)
        safe_end = max(safe_end, text_cursor)

        section = None
        text = ""
        if status is not current_status and status is not ProcessingStatus.IDLE:
            content = self._visible(combined, text_cursor, safe_end, excluded).strip()
            section = Section.create(SectionType(status.value), content)
        elif status is not ProcessingStatus.THINKING:
            text = self._visible(combined, text_cursor, safe_end, excluded)
            if not text.strip():
                text = ""

        return Classification(
            status=status,
            section=section,
            text=text,
            text_cursor=safe_end,
            in_structured_block=open_start is not None,
        )

    def flush(self, buffer: str, status: ProcessingStatus, text_cursor: int) -> str:
        """流结束时释放剩余文本（包括被暂扣的标记前缀与未闭合的数据块）"""
        if status is ProcessingStatus.THINKING or text_cursor >= len(buffer):
            return ""
        _, _, _, excluded = self._layout(buffer, text_cursor)
        text = self._visible(buffer, text_cursor, len(buffer), excluded)
        return text if text.strip() else ""
