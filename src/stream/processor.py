"""
流式响应处理器

片段 → 规范化 → 分类 → 追加缓冲区 → 提取编辑 → 变更内容树 → 任务对账 → 文本分段。
单个响应的片段严格按到达顺序逐个处理；每个响应独占自己的 StreamState，
只有内容树在响应之间共享。
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, replace
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple

from src.core.capture import CaptureRecord, ResponseCaptureService
from src.course.paths import PathRegistry
from src.course.records import Modification, TodoRecord
from src.course.store import TreeStore
from src.course.tasks import TaskTracker, TodoTask, derive_tasks, tasks_from_records

from .classifier import StreamChunkClassifier
from .extractor import ModificationExtractor
from .normalizer import ChunkNormalizer
from .sections import Section, SectionAccumulator, SectionType
from .trackers import StreamState

logger = logging.getLogger(__name__)


class StreamTransportError(Exception):
    """传输失败或超时，对该响应是终止性的"""
    pass


class UnknownResponseError(Exception):
    """回调引用了未开始的响应 id"""
    pass


class ResponseClosedError(Exception):
    """响应已结束（COMPLETE/ERROR）后又收到回调"""
    pass


@dataclass(frozen=True)
class ChunkStep:
    """reducer 的一步输出"""
    state: StreamState
    sections: Tuple[Section, ...] = ()
    modifications: Tuple[Modification, ...] = ()
    todos: Tuple[TodoRecord, ...] = ()
    failed: bool = False


@dataclass(frozen=True)
class ChunkOutcome:
    """一次回调对外可见的结果"""
    response_id: str
    sections: Tuple[Section, ...] = ()
    modifications: Tuple[Modification, ...] = ()
    new_tasks: Tuple[TodoTask, ...] = ()
    completed_tasks: Tuple[TodoTask, ...] = ()
    tree_version: int = 0
    stale: bool = False


def reduce_chunk(
    state: StreamState,
    raw_chunk: str,
    normalizer: ChunkNormalizer,
    classifier: StreamChunkClassifier,
    extractor: ModificationExtractor
) -> ChunkStep:
    """
    (state, chunk) -> state'

    分类或提取抛出的异常在此捕获：该片段不产生结构变更，
    但原文仍保留在缓冲区中，供后续片段重新提取。
    """
    chunk = normalizer.normalize(raw_chunk)
    buffer = state.buffer + chunk
    failed = False

    classification = None
    try:
        classification = classifier.classify(chunk, state.buffer, state.processing_status, state.text_cursor)
    except Exception:
        failed = True
        logger.exception(f"❌ 片段分类异常 [{state.response_id}]")

    extraction = None
    try:
        extraction = extractor.extract(buffer, state.seen_modification_keys, state.scan_offset)
    except Exception:
        failed = True
        logger.exception(f"❌ 编辑提取异常 [{state.response_id}]")

    sections: List[Section] = []
    changes: Dict[str, Any] = {
        "buffer": buffer,
        "chunks_processed": state.chunks_processed + 1,
        "failed_chunks": state.failed_chunks + (1 if failed else 0),
    }

    if classification is not None:
        changes["processing_status"] = classification.status
        changes["text_cursor"] = classification.text_cursor
        if classification.section is not None:
            sections.append(classification.section)

    modifications: Tuple[Modification, ...] = ()
    todos: Tuple[TodoRecord, ...] = ()
    if extraction is not None:
        changes["seen_modification_keys"] = extraction.updated_seen_keys
        changes["scan_offset"] = extraction.resume_offset
        modifications = extraction.modifications
        todos = extraction.todos
        for block in extraction.blocks:
            sections.append(Section.create(
                SectionType.STRUCTURED,
                block.raw,
                modifications=len(block.modifications),
                duplicates=block.duplicates,
                dropped=block.dropped,
                todos=len(block.todos),
            ))

    if classification is not None and classification.text:
        sections.append(Section.create(SectionType.TEXT, classification.text))

    return ChunkStep(
        state=replace(state, **changes),
        sections=tuple(sections),
        modifications=modifications,
        todos=todos,
        failed=failed,
    )


def reduce_flush(state: StreamState, classifier: StreamChunkClassifier) -> ChunkStep:
    """流结束：释放暂扣文本，状态进入 COMPLETE"""
    sections: Tuple[Section, ...] = ()
    try:
        text = classifier.flush(state.buffer, state.processing_status, state.text_cursor)
    except Exception:
        logger.exception(f"❌ 收尾分类异常 [{state.response_id}]")
        text = ""
    if text:
        sections = (Section.create(SectionType.TEXT, text),)
    state = replace(state, text_cursor=len(state.buffer)).completed()
    return ChunkStep(state=state, sections=sections)


class StreamProcessor:
    """按响应 id 驱动流水线，维护每个响应的状态与存活标记"""

    def __init__(
        self,
        tree_store: TreeStore,
        task_tracker: TaskTracker,
        sections: Optional[SectionAccumulator] = None,
        capture: Optional[ResponseCaptureService] = None,
        normalizer: Optional[ChunkNormalizer] = None,
        classifier: Optional[StreamChunkClassifier] = None,
        extractor: Optional[ModificationExtractor] = None,
        paths: Optional[PathRegistry] = None
    ):
        self.tree_store = tree_store
        self.task_tracker = task_tracker
        self.paths = paths if paths is not None else PathRegistry()
        self.sections = sections or SectionAccumulator()
        self.capture = capture
        self.normalizer = normalizer or ChunkNormalizer()
        self.classifier = classifier or StreamChunkClassifier()
        self.extractor = extractor or ModificationExtractor()
        self._states: Dict[str, StreamState] = {}

    # --- 生命周期 ---

    def begin(self, response_id: Optional[str] = None, user_prompt: str = "",
              model: str = "unknown", supersede: bool = True) -> str:
        """
        开始一个新响应

        supersede 为 True 时（编辑重发、重新生成），仍在接收中的其他响应全部作废，
        之后到达的旧片段不会再触碰内容树。
        """
        response_id = response_id or f"response-{uuid.uuid4().hex[:12]}"
        if response_id in self._states:
            raise ValueError(f"response id already used: {response_id}")
        if supersede:
            for other_id, other in list(self._states.items()):
                if other.live and other.is_receiving:
                    self.cancel(other_id)
        self._states[response_id] = StreamState(
            response_id=response_id,
            user_prompt=user_prompt,
            model=model,
        )
        if self.capture is not None:
            self.capture.start(response_id, user_prompt, model)
        logger.info(f"🧵 响应开始: {response_id}")
        return response_id

    def cancel(self, response_id: str) -> StreamState:
        state = self._require(response_id)
        if state.live:
            state = self._states[response_id] = state.cancelled()
            logger.info(f"🛑 响应已作废: {response_id}")
        return state

    def is_live(self, response_id: str) -> bool:
        state = self._states.get(response_id)
        return state is not None and state.live and state.is_receiving

    def state(self, response_id: str) -> StreamState:
        return self._require(response_id)

    def states(self) -> List[StreamState]:
        return list(self._states.values())

    def get_sections(self, response_id: str, after: int = 0) -> Tuple[Section, ...]:
        self._require(response_id)
        return self.sections.get_sections(response_id, after)

    def _require(self, response_id: str) -> StreamState:
        try:
            return self._states[response_id]
        except KeyError:
            raise UnknownResponseError(response_id) from None

    def _check_open(self, response_id: str) -> Optional[StreamState]:
        """返回可处理的状态；作废的响应返回 None"""
        state = self._require(response_id)
        if not state.live:
            logger.info(f"⏭️ 忽略已作废响应的回调: {response_id}")
            return None
        if not state.is_receiving:
            raise ResponseClosedError(f"{response_id} is {state.phase.value}")
        return state

    # --- 回调 ---

    def on_chunk(self, response_id: str, raw_chunk: str) -> ChunkOutcome:
        state = self._check_open(response_id)
        if state is None:
            return ChunkOutcome(response_id, tree_version=self.tree_store.version, stale=True)
        if self.capture is not None:
            self.capture.record_chunk(response_id, raw_chunk)

        step = reduce_chunk(state, raw_chunk, self.normalizer, self.classifier, self.extractor)
        self._states[response_id] = step.state
        return self._publish(response_id, step)

    def on_complete(self, response_id: str, final_text: str = "") -> ChunkOutcome:
        state = self._check_open(response_id)
        if state is None:
            return ChunkOutcome(response_id, tree_version=self.tree_store.version, stale=True)

        steps = []
        final = self.normalizer.normalize(final_text) if final_text else ""
        if len(final) > len(state.buffer) and final.startswith(state.buffer):
            # 最终文本比已收到的片段多出的尾部按一个片段处理
            step = reduce_chunk(state, final[len(state.buffer):], self.normalizer,
                                self.classifier, self.extractor)
            state = step.state
            steps.append(step)

        flush = reduce_flush(state, self.classifier)
        steps.append(flush)
        self._states[response_id] = flush.state

        outcome = self._publish(response_id, ChunkStep(
            state=flush.state,
            sections=tuple(s for step in steps for s in step.sections),
            modifications=tuple(m for step in steps for m in step.modifications),
            todos=tuple(t for step in steps for t in step.todos),
        ))
        if self.capture is not None:
            self.capture.finish(response_id, final_text or state.buffer)
        logger.info(f"🏁 响应完成: {response_id} ({flush.state.chunks_processed} 个片段)")
        return outcome

    def on_error(self, response_id: str, error: Any) -> StreamState:
        state = self._check_open(response_id)
        if state is None:
            return self._states[response_id]
        message = str(error) or error.__class__.__name__
        state = self._states[response_id] = state.errored(message)
        if self.capture is not None:
            self.capture.finish(response_id, state.buffer, error=message)
        logger.warning(f"⚠️ 响应传输失败 [{response_id}]: {message}")
        return state

    def _publish(self, response_id: str, step: ChunkStep) -> ChunkOutcome:
        for section in step.sections:
            self.sections.append(response_id, section)

        new_tasks: List[TodoTask] = []
        completed: List[TodoTask] = []
        if step.modifications or step.todos:
            self.paths.record(response_id, step.modifications, step.todos)
        if step.modifications:
            try:
                self.tree_store.apply(step.modifications)
            except Exception:
                logger.exception(f"❌ 内容树变更异常 [{response_id}]")
            new_tasks.extend(self.task_tracker.add(derive_tasks(step.modifications, response_id)))
        if step.todos:
            new_tasks.extend(self.task_tracker.add(tasks_from_records(step.todos, response_id)))
        if step.modifications or new_tasks:
            completed = self.task_tracker.sync(self.tree_store.snapshot)

        return ChunkOutcome(
            response_id=response_id,
            sections=step.sections,
            modifications=step.modifications,
            new_tasks=tuple(new_tasks),
            completed_tasks=tuple(completed),
            tree_version=self.tree_store.version,
        )

    # --- 流驱动 ---

    async def _drain(self, response_id: str, fragments: AsyncIterator[str]):
        iterator = fragments.__aiter__()
        while True:
            try:
                raw = await iterator.__anext__()
            except StopAsyncIteration:
                return
            except StreamTransportError:
                raise
            except Exception as e:
                raise StreamTransportError(str(e) or e.__class__.__name__) from e
            if not self.is_live(response_id):
                logger.info(f"⏭️ 响应已作废，停止读取: {response_id}")
                return
            self.on_chunk(response_id, raw)

    async def consume(
        self,
        response_id: str,
        fragments: AsyncIterator[str],
        timeout: Optional[float] = None
    ) -> StreamState:
        """
        读取流来源直到结束

        Args:
            response_id: 已 begin 的响应 id
            fragments: 片段的异步迭代器
            timeout: 调用方规定的最长时长（秒），超时进入 ERROR
        """
        try:
            await asyncio.wait_for(self._drain(response_id, fragments), timeout)
        except asyncio.TimeoutError:
            error = StreamTransportError(f"stream exceeded {timeout}s")
            self.on_error(response_id, error)
            raise error from None
        except StreamTransportError as e:
            self.on_error(response_id, e)
            raise

        if self.is_live(response_id):
            self.on_complete(response_id)
        return self._states[response_id]

    def get_stats(self) -> Dict[str, Any]:
        return {
            "responses": [state.get_stats() for state in self._states.values()],
            "extractor_stats": self.extractor.get_stats(),
            "tree_version": self.tree_store.version,
            "path_count": len(self.paths),
        }

    def dispose(self):
        for response_id, state in list(self._states.items()):
            if state.live and state.is_receiving:
                self.cancel(response_id)
        self._states.clear()


def replay_capture(processor: StreamProcessor, record: CaptureRecord,
                   response_id: Optional[str] = None) -> str:
    """把录制的片段按原顺序重新送入流水线"""
    response_id = processor.begin(
        response_id or f"replay-{record.id}-{uuid.uuid4().hex[:6]}",
        user_prompt=record.user_prompt,
        model=record.model,
        supersede=False,
    )
    for chunk in record.chunks:
        processor.on_chunk(response_id, chunk)
    if record.error:
        processor.on_error(response_id, record.error)
    else:
        processor.on_complete(response_id)
    return response_id


def get_stream_processor(tree_store: Optional[TreeStore] = None,
                         task_tracker: Optional[TaskTracker] = None, **kwargs) -> StreamProcessor:
    """创建流处理器实例"""
    return StreamProcessor(tree_store or TreeStore(), task_tracker or TaskTracker(), **kwargs)
