"""
HTTP 路由单元测试
"""
import httpx
import pytest
from fastapi import status
from fastapi.testclient import TestClient

from src.api.generation_client import GenerationClient
from src.api.routes import create_app
from tests.factories import SCENARIO_FRAGMENTS


class ClosingGenerationClient(GenerationClient):
    """记录 close 调用"""

    def __init__(self):
        super().__init__(
            url="http://generation.test/v1/chat/completions",
            transport=httpx.MockTransport(lambda request: httpx.Response(200, text="")),
        )
        self.closed = False

    async def close(self):
        self.closed = True
        await super().close()


def start(client, response_id="r1", **extra):
    response = client.post("/v1/responses", json={"responseId": response_id, **extra})
    assert response.status_code == status.HTTP_200_OK
    return response.json()["responseId"]


@pytest.mark.unit
class TestResponseRoutes:
    """响应回调路由测试"""

    def test_health(self, client):
        response = client.get("/health")

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["status"] == "ok"

    def test_start_generates_id(self, client):
        """测试未给出 id 时自动生成"""
        response = client.post("/v1/responses", json={})

        assert response.json()["responseId"].startswith("response-")

    def test_duplicate_start(self, client):
        start(client)

        response = client.post("/v1/responses", json={"responseId": "r1"})

        assert response.status_code == status.HTTP_409_CONFLICT

    def test_chunk_flow(self, client):
        """测试推送片段后返回分段与内容树版本"""
        start(client)

        replies = [
            client.post("/v1/responses/r1/chunks", json={"chunk": chunk}).json()
            for chunk in SCENARIO_FRAGMENTS
        ]

        assert replies[0]["sections"][0]["type"] == "thinking"
        assert replies[2]["sections"][0]["type"] == "structured"
        assert replies[2]["treeVersion"] == 1
        assert replies[2]["newTasks"][0]["title"] == "Create module: Intro"
        assert replies[2]["completedTasks"][0]["path"] == "C1.S1.M1"

    def test_complete_returns_summary(self, client):
        start(client)
        client.post("/v1/responses/r1/chunks", json={"chunk": "## Python course\nBody text"})

        response = client.post("/v1/responses/r1/complete", json={})

        assert response.status_code == status.HTTP_200_OK
        assert response.json()["summary"] == "## Python course"

    def test_unknown_response(self, client):
        """测试未知响应 id 返回 404"""
        response = client.post("/v1/responses/missing/chunks", json={"chunk": "x"})

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_chunk_after_complete(self, client):
        """测试结束后推送返回 409"""
        start(client)
        client.post("/v1/responses/r1/complete", json={})

        response = client.post("/v1/responses/r1/chunks", json={"chunk": "late"})

        assert response.status_code == status.HTTP_409_CONFLICT

    def test_error_and_state(self, client):
        start(client)

        client.post("/v1/responses/r1/error", json={"error": "reset"})
        response = client.get("/v1/responses/r1")

        assert response.json()["phase"] == "error"
        assert response.json()["error"] == "reset"

    def test_cancel(self, client):
        """测试作废后的片段被忽略"""
        start(client)
        client.post("/v1/responses/r1/cancel")

        reply = client.post("/v1/responses/r1/chunks", json={"chunk": SCENARIO_FRAGMENTS[2]}).json()

        assert reply["stale"] is True
        assert client.get("/v1/tree").json()["tree"] == {"courses": []}

    def test_sections_after(self, client):
        """测试增量读取分段"""
        start(client)
        for chunk in SCENARIO_FRAGMENTS:
            client.post("/v1/responses/r1/chunks", json={"chunk": chunk})

        response = client.get("/v1/responses/r1/sections", params={"after": 1})

        assert [s["type"] for s in response.json()["sections"]] == ["structured"]


@pytest.mark.unit
class TestTreeAndTodoRoutes:
    """内容树与待办路由测试"""

    @pytest.fixture
    def built(self, client):
        start(client)
        for chunk in SCENARIO_FRAGMENTS:
            client.post("/v1/responses/r1/chunks", json={"chunk": chunk})
        client.post("/v1/responses/r1/complete", json={})
        return client

    def test_tree(self, built):
        data = built.get("/v1/tree").json()

        assert data["version"] == 1
        module = data["tree"]["courses"][0]["children"][0]["children"][0]
        assert module == {"id": "M1", "name": "Intro", "type": "Module", "path": "C1.S1.M1", "children": []}

    def test_todos(self, built):
        todos = built.get("/v1/todos").json()["todos"]

        assert [t["completed"] for t in todos] == [True]

    def test_complete_unknown_todo(self, client):
        response = client.post("/v1/todos/missing/complete")

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_debug(self, built):
        assert built.get("/v1/debug").json()["node_count"] == 3

    def test_tree_paths_by_type(self, built):
        """测试按类型列出内容树路径，占位节点不计"""
        modules = built.get("/v1/tree/paths", params={"type": "module"})
        subjects = built.get("/v1/tree/paths", params={"type": "SUBJECT"})

        assert modules.json() == {"type": "Module", "paths": ["C1.S1.M1"]}
        assert subjects.json()["paths"] == []
        assert built.get("/v1/tree/paths", params={"type": "lesson"}).status_code == status.HTTP_400_BAD_REQUEST

    def test_path_data_listing(self, built):
        """测试路径数据列表、按类型过滤与按路径查找"""
        all_paths = built.get("/v1/paths").json()["paths"]
        chapters = built.get("/v1/paths", params={"type": "chapter"}).json()["paths"]
        entry = built.get("/v1/paths/C1.S1.M1")

        assert [p["path"] for p in all_paths] == ["C1.S1.M1"]
        assert chapters == []
        assert entry.json()["name"] == "Intro"
        assert entry.json()["type"] == "module"
        assert built.get("/v1/paths/C1.S9").status_code == status.HTTP_404_NOT_FOUND

    def test_response_paths(self, built):
        """测试单个响应的路径数据"""
        data = built.get("/v1/responses/r1/paths").json()

        assert data["responseId"] == "r1"
        assert [p["action"] for p in data["paths"]] == ["ADD"]
        assert built.get("/v1/responses/missing/paths").status_code == status.HTTP_404_NOT_FOUND


@pytest.mark.unit
class TestCaptureRoutes:
    """录制与回放路由测试"""

    def test_capture_and_replay(self, client):
        """测试查看录制并回放"""
        start(client)
        for chunk in SCENARIO_FRAGMENTS:
            client.post("/v1/responses/r1/chunks", json={"chunk": chunk})
        client.post("/v1/responses/r1/complete", json={})

        record = client.get("/v1/captures/r1").json()
        replay = client.post("/v1/captures/r1/replay", json={"responseId": "again"})

        assert record["chunks"] == SCENARIO_FRAGMENTS
        assert replay.status_code == status.HTTP_200_OK
        assert replay.json()["responseId"] == "again"
        assert replay.json()["state"]["phase"] == "complete"
        assert replay.json()["treeVersion"] == 1

    def test_unknown_capture(self, client):
        assert client.get("/v1/captures/missing").status_code == status.HTTP_404_NOT_FOUND
        assert client.post("/v1/captures/missing/replay").status_code == status.HTTP_404_NOT_FOUND

    def test_generate_without_client(self, client):
        """测试未配置生成服务时返回 503"""
        response = client.post("/v1/generate", json={"prompt": "Build a course"})

        assert response.status_code == status.HTTP_503_SERVICE_UNAVAILABLE


@pytest.mark.unit
class TestAppLifespan:
    """应用生命周期测试"""

    def test_generation_client_closed_on_shutdown(self, session):
        """测试应用关闭时关闭生成服务客户端"""
        # Arrange
        generation_client = ClosingGenerationClient()
        app = create_app(session, generation_client)

        # Act
        with TestClient(app) as client:
            health = client.get("/health").json()
            assert generation_client.closed is False

        # Assert
        assert health["generation"] is True
        assert generation_client.closed is True
