"""FastAPI路由模块"""

import asyncio
import logging
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware

from src.api.generation_client import GenerationClient
from src.api.schemas import (
    ChunkRequest,
    CompleteRequest,
    ErrorRequest,
    GenerateRequest,
    ReplayRequest,
    ResponseStartRequest,
)
from src.builder.session import BuilderSession
from src.course.tree import NodeType
from src.stream.processor import (
    ChunkOutcome,
    ResponseClosedError,
    StreamTransportError,
    UnknownResponseError,
    replay_capture,
)
from src.utils.summary import extract_summary

logger = logging.getLogger(__name__)


def outcome_to_dict(outcome: ChunkOutcome) -> Dict[str, Any]:
    return {
        "responseId": outcome.response_id,
        "sections": [section.to_dict() for section in outcome.sections],
        "modifications": [mod.to_dict() for mod in outcome.modifications],
        "newTasks": [task.to_dict() for task in outcome.new_tasks],
        "completedTasks": [task.to_dict() for task in outcome.completed_tasks],
        "treeVersion": outcome.tree_version,
        "stale": outcome.stale,
    }


def create_app(session: BuilderSession, generation_client: Optional[GenerationClient] = None) -> FastAPI:
    """创建FastAPI应用"""

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """应用生命周期管理"""
        yield
        if generation_client is not None:
            logger.info("🔌 关闭生成服务客户端")
            await generation_client.close()

    app = FastAPI(title="Course Stream Builder", lifespan=lifespan)
    processor = session.processor

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def call(fn, *args):
        """把处理器异常映射为 HTTP 状态码"""
        try:
            return fn(*args)
        except UnknownResponseError as e:
            raise HTTPException(status_code=404, detail=f"unknown response: {e}")
        except ResponseClosedError as e:
            raise HTTPException(status_code=409, detail=str(e))

    @app.get("/health")
    async def health():
        return {
            "status": "ok",
            "tree_version": session.tree_store.version,
            "generation": generation_client is not None,
        }

    @app.post("/v1/responses")
    async def start_response(body: ResponseStartRequest):
        try:
            response_id = processor.begin(body.response_id, body.user_prompt, body.model, body.supersede)
        except ValueError as e:
            raise HTTPException(status_code=409, detail=str(e))
        return {"responseId": response_id}

    @app.post("/v1/responses/{response_id}/chunks")
    async def push_chunk(response_id: str, body: ChunkRequest):
        return outcome_to_dict(call(processor.on_chunk, response_id, body.chunk))

    @app.post("/v1/responses/{response_id}/complete")
    async def complete_response(response_id: str, body: CompleteRequest):
        result = outcome_to_dict(call(processor.on_complete, response_id, body.final_text))
        result["summary"] = extract_summary(processor.state(response_id).buffer)
        return result

    @app.post("/v1/responses/{response_id}/error")
    async def fail_response(response_id: str, body: ErrorRequest):
        return call(processor.on_error, response_id, body.error).get_stats()

    @app.post("/v1/responses/{response_id}/cancel")
    async def cancel_response(response_id: str):
        return call(processor.cancel, response_id).get_stats()

    @app.get("/v1/responses/{response_id}")
    async def get_response(response_id: str):
        return call(processor.state, response_id).get_stats()

    @app.get("/v1/responses/{response_id}/sections")
    async def get_sections(response_id: str, after: int = 0):
        sections = call(processor.get_sections, response_id, after)
        return {"responseId": response_id, "sections": [s.to_dict() for s in sections]}

    @app.get("/v1/tree")
    async def get_tree():
        return {
            "version": session.tree_store.version,
            "tree": session.tree_store.snapshot.to_dict(),
        }

    @app.get("/v1/tree/paths")
    async def get_tree_paths(type: str):
        try:
            node_type = NodeType.from_wire(type)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
        return {"type": node_type.value, "paths": session.tree_store.snapshot.paths_by_type(node_type)}

    @app.get("/v1/paths")
    async def list_paths(type: Optional[str] = None):
        if type:
            entries = session.paths.paths_by_type(type)
        else:
            entries = list(session.paths.all_path_data().values())
        return {"paths": [entry.to_dict() for entry in entries]}

    @app.get("/v1/paths/{path}")
    async def get_path(path: str):
        entry = session.paths.path_data_by_key(path)
        if entry is None:
            raise HTTPException(status_code=404, detail=f"unknown path: {path}")
        return entry.to_dict()

    @app.get("/v1/responses/{response_id}/paths")
    async def get_response_paths(response_id: str):
        call(processor.state, response_id)
        paths = session.paths.path_data(response_id) or {}
        return {"responseId": response_id, "paths": [entry.to_dict() for entry in paths.values()]}

    @app.get("/v1/todos")
    async def list_todos():
        return {"todos": [task.to_dict() for task in session.task_tracker.tasks]}

    @app.post("/v1/todos/{task_id}/complete")
    async def complete_todo(task_id: str):
        try:
            return session.task_tracker.mark_done(task_id).to_dict()
        except KeyError:
            raise HTTPException(status_code=404, detail=f"unknown task: {task_id}")

    @app.get("/v1/debug")
    async def debug_snapshot():
        return session.debug_snapshot()

    @app.post("/v1/generate")
    async def generate(body: GenerateRequest):
        if generation_client is None:
            raise HTTPException(status_code=503, detail="generation service not configured")
        messages = body.chat_messages()
        if not messages:
            raise HTTPException(status_code=400, detail="prompt or messages required")

        model = body.model or generation_client.model
        try:
            response_id = processor.begin(body.response_id, messages[-1]["content"], model)
        except ValueError as e:
            raise HTTPException(status_code=409, detail=str(e))
        timeout = body.timeout or generation_client.timeout
        try:
            state = await processor.consume(
                response_id,
                generation_client.stream_chat(messages, model),
                timeout=timeout,
            )
        except StreamTransportError as e:
            raise HTTPException(status_code=502, detail={"responseId": response_id, "error": str(e)})
        except asyncio.CancelledError:
            logger.warning(f"⚠️ 生成请求已取消: {response_id}")
            processor.cancel(response_id)
            raise

        return {
            "responseId": response_id,
            "state": state.get_stats(),
            "summary": extract_summary(state.buffer),
            "sections": [s.to_dict() for s in processor.get_sections(response_id)],
            "treeVersion": session.tree_store.version,
        }

    @app.get("/v1/captures")
    async def list_captures():
        if session.capture is None:
            return {"captures": []}
        return {"captures": session.capture.list_ids()}

    @app.get("/v1/captures/{capture_id}")
    async def get_capture(capture_id: str):
        record = session.capture.get(capture_id) if session.capture is not None else None
        if record is None:
            raise HTTPException(status_code=404, detail=f"unknown capture: {capture_id}")
        return record.to_dict()

    @app.post("/v1/captures/{capture_id}/replay")
    async def replay(capture_id: str, body: Optional[ReplayRequest] = None):
        record = session.capture.get(capture_id) if session.capture is not None else None
        if record is None:
            raise HTTPException(status_code=404, detail=f"unknown capture: {capture_id}")
        response_id = replay_capture(processor, record, body.response_id if body else None)
        return {
            "responseId": response_id,
            "state": processor.state(response_id).get_stats(),
            "treeVersion": session.tree_store.version,
        }

    return app
