"""
TreeStore 单元测试
"""
import pytest

from tests.factories import TestDataBuilder


@pytest.mark.unit
class TestTreeStore:
    """快照持有者测试"""

    def test_version_increments_on_change(self, tree_store):
        """测试只有实际变更才增加版本号"""
        tree_store.apply([TestDataBuilder.create_modification()])
        tree_store.apply([TestDataBuilder.create_modification()])

        assert tree_store.version == 1
        assert tree_store.snapshot.find_by_path("C1.S1.M1") is not None

    def test_listeners_notified(self, tree_store):
        """测试变更后通知订阅者"""
        seen = []
        tree_store.subscribe(lambda tree, report: seen.append(report.added))

        tree_store.apply([TestDataBuilder.create_modification()])

        assert seen == [["C1.S1.M1"]]

    def test_snapshot_is_stable(self, tree_store):
        """测试读者持有的快照不受后续写入影响"""
        before = tree_store.snapshot

        tree_store.apply([TestDataBuilder.create_modification()])

        assert len(before) == 0
        assert len(tree_store.snapshot) == 3

    def test_reset(self, tree_store):
        tree_store.apply([TestDataBuilder.create_modification()])
        tree_store.reset()

        assert len(tree_store.snapshot) == 0
        assert tree_store.version == 2
