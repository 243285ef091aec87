"""
WebSocket 处理模块

流来源（浏览器脚本或其他生成端）通过 WebSocket 推送片段：
- response_start: 开始一个响应
- chunk: 推送一个原始片段
- complete: 流结束
- error: 传输失败
- cancel: 作废响应
每条消息的应答包含新增分段与内容树版本。
"""

import json
import logging
import time
from typing import Any, Dict, Set

import websockets

from src.builder.session import BuilderSession
from src.stream.processor import ResponseClosedError, UnknownResponseError
from src.utils.summary import extract_summary

logger = logging.getLogger(__name__)


class StreamSourceHandler:
    """WebSocket 连接处理器，可直接作为 websockets.serve 的回调"""

    def __init__(self, session: BuilderSession):
        self.session = session
        self.clients: Set[Any] = set()

    async def __call__(self, websocket) -> None:
        logger.info("🔌 WebSocket 客户端已连接")
        self.clients.add(websocket)
        try:
            async for message in websocket:
                reply = self.handle_message(message)
                await websocket.send(json.dumps(reply, ensure_ascii=False))
        except websockets.ConnectionClosed:
            logger.info("🔌 WebSocket 客户端已断开")
        finally:
            self.clients.discard(websocket)

    def handle_message(self, message: str) -> Dict[str, Any]:
        try:
            data = json.loads(message)
        except (TypeError, ValueError):
            return {"type": "error", "error": "invalid json"}
        if not isinstance(data, dict):
            return {"type": "error", "error": "invalid message"}

        msg_type = data.get("type")
        response_id = data.get("responseId")
        try:
            return self._dispatch(msg_type, response_id, data)
        except UnknownResponseError:
            return {"type": "error", "responseId": response_id, "error": "unknown response"}
        except ResponseClosedError as e:
            return {"type": "error", "responseId": response_id, "error": str(e)}
        except ValueError as e:
            return {"type": "error", "responseId": response_id, "error": str(e)}

    def _dispatch(self, msg_type: str, response_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        processor = self.session.processor

        if msg_type == "response_start":
            response_id = processor.begin(
                response_id,
                user_prompt=data.get("userPrompt", ""),
                model=data.get("model", "unknown"),
                supersede=data.get("supersede", True),
            )
            return {"type": "started", "responseId": response_id, "server_time": time.time()}

        if msg_type == "chunk":
            outcome = processor.on_chunk(response_id, data.get("chunk", ""))
            return self._ack(outcome)

        if msg_type == "complete":
            outcome = processor.on_complete(response_id, data.get("finalText", ""))
            reply = self._ack(outcome)
            reply["summary"] = extract_summary(processor.state(response_id).buffer)
            return reply

        if msg_type == "error":
            state = processor.on_error(response_id, data.get("error", "stream error"))
            return {"type": "ack", "responseId": response_id, "phase": state.phase.value}

        if msg_type == "cancel":
            state = processor.cancel(response_id)
            return {"type": "ack", "responseId": response_id, "live": state.live}

        logger.warning(f"⚠️ 未知 WS 消息类型: {msg_type}")
        return {"type": "error", "error": f"unknown message type: {msg_type}"}

    def _ack(self, outcome) -> Dict[str, Any]:
        return {
            "type": "ack",
            "responseId": outcome.response_id,
            "sections": [section.to_dict() for section in outcome.sections],
            "treeVersion": outcome.tree_version,
            "completedTasks": [task.id for task in outcome.completed_tasks],
            "stale": outcome.stale,
        }
