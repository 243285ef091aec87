"""
ChunkNormalizer 单元测试
"""
import pytest

from src.stream.normalizer import ChunkNormalizer
from tests.factories import TestDataBuilder


@pytest.mark.unit
class TestChunkNormalizer:
    """传输帧剥离测试"""

    def test_strips_data_prefix(self, normalizer):
        """测试去掉 data: 前缀"""
        assert normalizer.normalize("data: hello\n\n") == "hello"

    def test_unframed_text_passes_through(self, normalizer):
        """测试不含帧的片段原样返回"""
        assert normalizer.normalize("plain text ") == "plain text "

    def test_unifies_line_endings(self, normalizer):
        """测试统一换行符"""
        assert normalizer.normalize("line one\r\nline two") == "line one\nline two"

    def test_done_sentinel_dropped(self, normalizer):
        """测试 [DONE] 哨兵被丢弃"""
        assert normalizer.normalize("data: [DONE]\n\n") == ""

    def test_multiline_event_joined_with_newline(self, normalizer):
        """测试同一事件内多行 data 以换行连接"""
        assert normalizer.normalize("data: a\ndata: b\n\n") == "a\nb"

    def test_events_concatenated(self, normalizer):
        """测试多个事件直接拼接"""
        fragment = TestDataBuilder.create_sse('{"modifications":', '[]}')
        assert normalizer.normalize(fragment) == '{"modifications":[]}'

    def test_comments_and_fields_skipped(self, normalizer):
        """测试注释行与 event/id 字段行被跳过"""
        fragment = ": keepalive\nevent: message\nid: 7\ndata: x\n\n"
        assert normalizer.normalize(fragment) == "x"

    def test_repeated_prefix(self, normalizer):
        """测试重复前缀"""
        assert normalizer.normalize("data:data: x") == "x"

    def test_empty_fragment(self, normalizer):
        """测试空片段"""
        assert normalizer.normalize("") == ""

    def test_custom_prefix(self):
        """测试自定义行前缀"""
        normalizer = ChunkNormalizer(prefixes=("chunk:",))
        assert normalizer.normalize("chunk: hi\n\n") == "hi"
