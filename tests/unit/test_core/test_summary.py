"""
摘要提取单元测试
"""
import pytest

from src.utils.summary import FALLBACK_SUMMARY, extract_summary


@pytest.mark.unit
class TestExtractSummary:
    """摘要提取测试"""

    def test_highlights_kept(self):
        """测试保留标题、加粗行与图标行"""
        text = "\n".join([
            "Some intro text",
            "## Python Basics",
            "**Module 1: Intro**",
            "📚 Five chapters planned",
            "plain line",
        ])

        assert extract_summary(text) == "## Python Basics\n**Module 1: Intro**\n📚 Five chapters planned"

    def test_technical_lines_skipped(self):
        """测试跳过路径与数据块等技术细节"""
        text = "\n".join([
            "## Outline",
            "path: C1.S1.M1",
            "**See C1.S1.M1 for details**",
            '```json\n{"modifications": []}\n```',
            "🎯 Learn variables",
        ])

        assert extract_summary(text) == "## Outline\n🎯 Learn variables"

    def test_first_lines_when_no_highlights(self):
        """测试没有要点时取前五行"""
        text = "\n".join(f"line {i}" for i in range(10))

        assert extract_summary(text) == "\n".join(f"line {i}" for i in range(5))

    def test_capped_at_eight_lines(self):
        text = "\n".join(f"## Heading {i}" for i in range(12))

        assert len(extract_summary(text).splitlines()) == 8

    @pytest.mark.parametrize("text", ["", '{"modifications": []}', "id: M1\ndepth: 2"])
    def test_fallback(self, text):
        """测试无可用内容时返回默认文案"""
        assert extract_summary(text) == FALLBACK_SUMMARY
