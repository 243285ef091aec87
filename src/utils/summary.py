"""从生成文本中提取简短摘要"""

import re
from typing import List

FALLBACK_SUMMARY = "Course content generated successfully!"
MAX_SUMMARY_LINES = 8

_HIGHLIGHT_PATTERN = re.compile(r"^(#{1,6}\s|\*\*|📚|🎯|📋|✅|-\s\*\*)")
_PATH_PATTERN = re.compile(r"\b\w+\.\w+\.\w+")
_TECHNICAL_PREFIXES = ("path:", "id:", "slide:", "depth:", "parentpath:", "targettype:")


def _is_technical(line: str) -> bool:
    lowered = line.lower()
    if lowered.startswith(_TECHNICAL_PREFIXES):
        return True
    if line.startswith(("{", "}", "[", "]", "```", '"')):
        return True
    return bool(_PATH_PATTERN.search(line))


def extract_summary(text: str) -> str:
    """
    提取标题、加粗行与带图标的要点行作为摘要

    去掉数据块与路径等技术细节；找不到要点时取前几行正文，仍为空则返回默认文案。
    """
    if not text:
        return FALLBACK_SUMMARY

    text = re.sub(r"```[\s\S]*?```", "", text)
    lines = [line.strip() for line in text.splitlines()]
    lines = [line for line in lines if line and not _is_technical(line)]

    highlights: List[str] = [line for line in lines if _HIGHLIGHT_PATTERN.match(line)]
    chosen = highlights or lines[:5]
    if not chosen:
        return FALLBACK_SUMMARY
    return "\n".join(chosen[:MAX_SUMMARY_LINES])
