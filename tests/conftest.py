"""
pytest配置文件 - 全局fixtures和测试配置
"""
import pytest
from fastapi.testclient import TestClient

from src.api.routes import create_app
from src.builder.session import BuilderSession
from src.core.capture import ResponseCaptureService
from src.course.mutator import TreeMutator
from src.course.store import TreeStore
from src.course.tasks import TaskTracker
from src.stream.classifier import StreamChunkClassifier
from src.stream.extractor import ModificationExtractor
from src.stream.normalizer import ChunkNormalizer
from src.stream.processor import StreamProcessor


@pytest.fixture
def normalizer() -> ChunkNormalizer:
    return ChunkNormalizer()


@pytest.fixture
def classifier() -> StreamChunkClassifier:
    return StreamChunkClassifier()


@pytest.fixture
def extractor() -> ModificationExtractor:
    return ModificationExtractor()


@pytest.fixture
def mutator() -> TreeMutator:
    return TreeMutator()


@pytest.fixture
def tree_store() -> TreeStore:
    return TreeStore()


@pytest.fixture
def task_tracker() -> TaskTracker:
    return TaskTracker()


@pytest.fixture
def capture(tmp_path) -> ResponseCaptureService:
    """写入临时目录的录制服务"""
    service = ResponseCaptureService.create(directory=str(tmp_path / "captures"))
    yield service
    service.dispose()


@pytest.fixture
def processor(tree_store, task_tracker) -> StreamProcessor:
    return StreamProcessor(tree_store, task_tracker)


@pytest.fixture
def session(capture) -> BuilderSession:
    """带录制的构建会话"""
    session = BuilderSession(capture=capture)
    yield session
    session.dispose()


@pytest.fixture
def client(session) -> TestClient:
    """测试客户端"""
    return TestClient(create_app(session))
