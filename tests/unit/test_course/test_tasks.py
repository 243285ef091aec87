"""
TaskTracker 单元测试

专注于测试：
- 任务派生
- 对账完成（单调）
- 手动操作
"""
import pytest

from src.course.mutator import TreeMutator
from src.course.records import TodoRecord
from src.course.tasks import TaskTracker, derive_tasks, reconcile, tasks_from_records
from src.course.tree import ContentTree
from tests.factories import TestDataBuilder

build = TestDataBuilder.create_modification


@pytest.mark.unit
class TestDeriveTasks:
    """任务派生测试"""

    def test_add_creates_task(self):
        """测试 ADD 派生创建任务"""
        tasks = derive_tasks([build()], response_id="r1")

        assert len(tasks) == 1
        task = tasks[0]
        assert task.title == "Create module: Intro"
        assert task.path == "C1.S1.M1"
        assert task.id == "module:C1.S1.M1"
        assert task.completed is False
        assert task.response_id == "r1"

    def test_update_and_delete(self):
        """测试 UPDATE 派生更新任务，DELETE 不派生"""
        tasks = derive_tasks([
            build(action="UPDATE", name="Intro v2"),
            build(action="DELETE", node_id="M2"),
        ])

        assert [t.title for t in tasks] == ["Update module: Intro v2"]

    def test_explicit_todo_records(self):
        """测试显式 todos 记录"""
        tasks = tasks_from_records([
            TodoRecord(title="Write quiz", path="C1.S1.M1.CH1.Q1", type="Slide"),
            TodoRecord(title="Review the outline!"),
        ])

        assert tasks[0].id == "slide:C1.S1.M1.CH1.Q1"
        assert tasks[1].id == "todo:review-the-outline"
        assert tasks[1].description == "Review the outline!"


@pytest.mark.unit
class TestReconcile:
    """对账测试"""

    def test_completes_when_path_exists(self):
        """测试路径落地后任务完成"""
        tasks = derive_tasks([build()])
        tree = TreeMutator().apply(ContentTree(), [build()])

        result = reconcile(tasks, tree, now=100.0)

        assert result[0].completed is True
        assert result[0].completed_at == 100.0

    def test_pending_when_path_missing(self):
        """测试路径未落地时保持未完成"""
        result = reconcile(derive_tasks([build()]), ContentTree())

        assert result[0].completed is False

    def test_placeholder_does_not_complete(self):
        """测试占位节点不算落地"""
        subject_task = derive_tasks([build(target_type="SUBJECT", node_id="S1", parent_path="C1")])
        tree = TreeMutator().apply(ContentTree(), [build()])

        assert reconcile(subject_task, tree)[0].completed is False

    def test_monotonic(self):
        """测试已完成任务不会因路径消失而回退"""
        tree = TreeMutator().apply(ContentTree(), [build()])
        done = reconcile(derive_tasks([build()]), tree, now=1.0)

        again = reconcile(done, ContentTree(), now=2.0)

        assert again[0].completed is True
        assert again[0].completed_at == 1.0


@pytest.mark.unit
class TestTaskTracker:
    """任务追踪器测试"""

    def test_add_skips_existing_ids(self, task_tracker):
        """测试重复 id 的任务被忽略"""
        first = task_tracker.add(derive_tasks([build()], "r1"))
        second = task_tracker.add(derive_tasks([build()], "r2"))

        assert len(first) == 1
        assert second == []
        assert task_tracker.get("module:C1.S1.M1").response_id == "r1"

    def test_sync_returns_newly_completed(self, task_tracker):
        """测试对账只返回新完成的任务"""
        task_tracker.add(derive_tasks([build()]))
        tree = TreeMutator().apply(ContentTree(), [build()])

        newly = task_tracker.sync(tree)
        again = task_tracker.sync(tree)

        assert [t.id for t in newly] == ["module:C1.S1.M1"]
        assert again == []
        assert task_tracker.pending() == []
        assert len(task_tracker.completed()) == 1

    def test_mark_done_and_reopen(self, task_tracker):
        """测试手动完成与重新打开"""
        task_tracker.add(derive_tasks([build()]))

        assert task_tracker.mark_done("module:C1.S1.M1").completed is True
        assert task_tracker.reopen("module:C1.S1.M1").completed is False

    def test_mark_done_unknown(self, task_tracker):
        """测试未知任务 id"""
        with pytest.raises(KeyError):
            task_tracker.mark_done("missing")

    def test_tasks_view_is_read_only(self, task_tracker):
        """测试对外只暴露不可变视图"""
        task_tracker.add(derive_tasks([build()]))

        assert isinstance(task_tracker.tasks, tuple)
        task_tracker.clear()
        assert task_tracker.tasks == ()
