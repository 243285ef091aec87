"""传输层帧剥离"""

from typing import Iterable

from src.core.constants import DONE_SENTINEL, LINE_PREFIXES

# SSE 中除 data 以外的字段行
_SSE_FIELDS = ("event:", "id:", "retry:")


class ChunkNormalizer:
    """
    去掉片段中的传输帧（如 SSE 的 "data:" 行前缀），无状态

    含帧的片段：只保留 data 行内容，同一事件内多行以换行连接，事件之间直接拼接。
    不含帧的片段原样返回（仅统一换行符）。
    """

    def __init__(self, prefixes: Iterable[str] = LINE_PREFIXES, done_sentinel: str = DONE_SENTINEL):
        self.prefixes = tuple(prefixes)
        self.done_sentinel = done_sentinel

    def _strip_prefix(self, line: str):
        """返回 (去前缀后的内容, 是否带前缀)；兼容 data:data: 重复前缀"""
        framed = False
        while True:
            for prefix in self.prefixes:
                if line.startswith(prefix):
                    line = line[len(prefix):]
                    if line.startswith(" "):
                        line = line[1:]
                    framed = True
                    break
            else:
                return line, framed

    def normalize(self, fragment: str) -> str:
        if not fragment:
            return ""
        text = fragment.replace("\r\n", "\n")
        lines = text.split("\n")

        stripped = [self._strip_prefix(line) for line in lines]
        if not any(framed for _, framed in stripped):
            return text

        events = []
        current = []
        for (content, framed), raw in zip(stripped, lines):
            if framed:
                if content.strip() != self.done_sentinel:
                    current.append(content)
            elif not raw.strip():
                if current:
                    events.append("\n".join(current))
                    current = []
            elif raw.startswith(":") or raw.startswith(_SSE_FIELDS):
                continue
            else:
                # 帧内续行（上一片段截断的 data 行）
                current.append(raw)
        if current:
            events.append("\n".join(current))
        return "".join(events)
