"""
数据块扫描器，在不完整的流式文本中定位完整的 JSON 对象

按深度追踪 {} 与 []，字符串字面量内的分隔符不计入深度。
深度未回到零的尾部块视为未完成，留待下一次扫描。
"""

from dataclasses import dataclass
from typing import List, Optional, Tuple


@dataclass(frozen=True)
class BlockSpan:
    start: int
    end: int

    def covers(self, index: int) -> bool:
        return self.start <= index < self.end


@dataclass(frozen=True)
class ScanResult:
    blocks: Tuple[BlockSpan, ...]
    open_start: Optional[int]
    length: int

    @property
    def resume_offset(self) -> int:
        """下一次扫描的起点：未完成块的开头，否则文本末尾"""
        return self.open_start if self.open_start is not None else self.length


class BalancedBlockScanner:
    """深度感知的数据块扫描器"""

    CLOSERS = {'{': '}', '[': ']'}

    COMPLETE = "complete"
    INCOMPLETE = "incomplete"
    MISMATCH = "mismatch"

    LITERALS = ("true", "false", "null")
    NUMBER_START = "-0123456789"
    NUMBER_CHARS = "0123456789+-.eE"

    def _next_significant(self, text: str, index: int) -> Optional[str]:
        while index < len(text):
            if not text[index].isspace():
                return text[index]
            index += 1
        return None

    def _match(self, text: str, start: int) -> Tuple[str, int]:
        """
        从 start 处的 '{' 开始匹配，返回 (状态, 结束位置)

        字符串外只接受 JSON 词法单元（结构符号、数字、true/false/null），
        字符串内不允许裸换行；正文里误出现的 {" 因此尽早判为 MISMATCH，
        不会一直挂起等待闭合。
        """
        expected: List[str] = []
        in_string = False
        escaped = False
        i = start
        while i < len(text):
            ch = text[i]
            if in_string:
                if escaped:
                    escaped = False
                elif ch == '\\':
                    escaped = True
                elif ch == '"':
                    in_string = False
                elif ch == '\n':
                    return self.MISMATCH, i + 1
            elif ch == '"':
                in_string = True
            elif ch in self.CLOSERS:
                expected.append(self.CLOSERS[ch])
            elif ch in '}]':
                if not expected or expected.pop() != ch:
                    return self.MISMATCH, i + 1
                if not expected:
                    return self.COMPLETE, i + 1
            elif ch in self.NUMBER_START:
                while i < len(text) and text[i] in self.NUMBER_CHARS:
                    i += 1
                continue
            elif ch.isalpha():
                end = i
                while end < len(text) and text[end].isalpha():
                    end += 1
                word = text[i:end]
                if end == len(text):
                    if not any(literal.startswith(word) for literal in self.LITERALS):
                        return self.MISMATCH, end
                elif word not in self.LITERALS:
                    return self.MISMATCH, end
                i = end
                continue
            elif not (ch.isspace() or ch in ':,'):
                return self.MISMATCH, i + 1
            i += 1
        return self.INCOMPLETE, len(text)

    def scan(self, text: str, start: int = 0) -> ScanResult:
        """扫描 text[start:]，返回完整块与未完成块起点"""
        blocks: List[BlockSpan] = []
        i = max(0, start)
        while i < len(text):
            if text[i] != '{':
                i += 1
                continue

            # 只把 {" 或 {} 开头的花括号视为数据块，正文里的花括号跳过
            nxt = self._next_significant(text, i + 1)
            if nxt is None:
                return ScanResult(tuple(blocks), i, len(text))
            if nxt not in '"}':
                i += 1
                continue

            status, end = self._match(text, i)
            if status == self.INCOMPLETE:
                return ScanResult(tuple(blocks), i, len(text))
            if status == self.COMPLETE:
                blocks.append(BlockSpan(i, end))
                i = end
            else:
                i += 1
        return ScanResult(tuple(blocks), None, len(text))
