"""
响应录制与回放单元测试
"""
import json
import os

import pytest

from src.core.capture import CaptureRecord, ResponseCaptureService
from src.course.store import TreeStore
from src.course.tasks import TaskTracker
from src.stream.processor import StreamProcessor, replay_capture
from tests.factories import SCENARIO_FRAGMENTS, TestDataBuilder


@pytest.mark.unit
class TestResponseCaptureService:
    """录制服务测试"""

    def test_records_raw_chunks(self, capture, tree_store, task_tracker):
        """测试录制原始片段（含传输帧）并写入文件"""
        processor = StreamProcessor(tree_store, task_tracker, capture=capture)
        processor.begin("r1", user_prompt="Build a Python course", model="test-model")
        raw = [TestDataBuilder.create_sse(chunk) for chunk in SCENARIO_FRAGMENTS]

        for chunk in raw:
            processor.on_chunk("r1", chunk)
        processor.on_complete("r1")

        record = capture.get("r1")
        assert record.chunks == raw
        assert record.full_response == "".join(SCENARIO_FRAGMENTS)
        assert record.user_prompt == "Build a Python course"
        with open(os.path.join(capture.directory, "r1.json"), encoding="utf-8") as f:
            assert json.load(f)["model"] == "test-model"

    def test_error_recorded(self, capture, processor):
        """测试传输失败写入录制"""
        processor.capture = capture
        processor.begin("r1")
        processor.on_chunk("r1", "partial")

        processor.on_error("r1", "timeout")

        assert capture.get("r1").error == "timeout"

    def test_load_from_directory(self, capture):
        """测试从目录加载录制"""
        record = CaptureRecord(id="saved", timestamp=1.0, chunks=["a", "b"], model="m")
        capture.save(record)

        fresh = ResponseCaptureService(directory=capture.directory)

        assert fresh.get("saved").chunks == ["a", "b"]
        assert "saved" in fresh.list_ids()

    def test_disabled_service(self, tmp_path):
        """测试关闭时不录制"""
        service = ResponseCaptureService(directory=str(tmp_path), enabled=False)
        service.start("r1")
        service.record_chunk("r1", "x")

        assert service.finish("r1") is None
        assert service.get("r1") is None

    def test_missing_record(self, capture):
        assert capture.get("missing") is None


@pytest.mark.unit
class TestReplayCapture:
    """确定性回放测试"""

    def test_replay_rebuilds_same_tree(self, capture):
        """测试回放录制得到相同内容树"""
        # Arrange
        recorded = StreamProcessor(TreeStore(), TaskTracker(), capture=capture)
        recorded.begin("r1")
        for chunk in TestDataBuilder.split_every("".join(SCENARIO_FRAGMENTS), 9):
            recorded.on_chunk("r1", chunk)
        recorded.on_complete("r1")

        replayed = StreamProcessor(TreeStore(), TaskTracker())

        # Act
        response_id = replay_capture(replayed, capture.get("r1"))

        # Assert
        assert response_id != "r1"
        assert replayed.tree_store.snapshot == recorded.tree_store.snapshot
        assert [s.type for s in replayed.get_sections(response_id)] == \
            [s.type for s in recorded.get_sections("r1")]

    def test_replay_errored_record(self, processor):
        """测试回放失败的录制以 ERROR 结束"""
        record = CaptureRecord(id="bad", timestamp=0.0, chunks=["partial"], error="timeout")

        response_id = replay_capture(processor, record, response_id="replay-1")

        assert response_id == "replay-1"
        assert processor.state(response_id).error == "timeout"
