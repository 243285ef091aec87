"""生成服务客户端（OpenAI 兼容的 SSE 流式接口）"""

import json
import logging
from typing import Any, AsyncIterator, Dict, List, Optional

import httpx

from src.core.constants import DEFAULT_GENERATION_TIMEOUT, DONE_SENTINEL, THINKING_MARKERS
from src.stream.processor import StreamTransportError

logger = logging.getLogger(__name__)


class GenerationClient:
    """
    把生成服务的 SSE 流转成文本片段

    delta.content 原样输出；推理内容（reasoning）首次出现时先输出思考标记，
    让下游分类器进入 thinking 状态。
    """

    def __init__(self, url: str, api_key: str = "", model: str = "unknown",
                 timeout: Optional[float] = DEFAULT_GENERATION_TIMEOUT,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.url = url
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.client = httpx.AsyncClient(
            timeout=httpx.Timeout(connect=30.0, read=timeout, write=30.0, pool=10.0),
            transport=transport,
        )

    @classmethod
    def from_config(cls, config: Dict[str, Any]) -> Optional["GenerationClient"]:
        generation = config.get("generation", {})
        if not generation.get("url"):
            return None
        return cls(
            url=generation["url"],
            api_key=generation.get("api_key", ""),
            model=generation.get("model", "unknown"),
            timeout=generation.get("timeout", DEFAULT_GENERATION_TIMEOUT),
        )

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json", "Accept": "text/event-stream"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def stream_chat(self, messages: List[Dict[str, str]],
                          model: Optional[str] = None) -> AsyncIterator[str]:
        body = {"model": model or self.model, "messages": messages, "stream": True}
        thinking_sent = False
        try:
            async with self.client.stream("POST", self.url, headers=self._headers(), json=body) as response:
                if response.status_code != 200:
                    detail = (await response.aread()).decode("utf-8", errors="replace")
                    raise StreamTransportError(f"HTTP {response.status_code}: {detail[:200]}")

                async for line in response.aiter_lines():
                    line = line.strip()
                    if not line.startswith("data:"):
                        continue
                    payload = line[len("data:"):].strip()
                    if payload == DONE_SENTINEL:
                        return
                    try:
                        data = json.loads(payload)
                    except json.JSONDecodeError:
                        logger.debug(f"跳过无法解析的 SSE 行: {payload[:80]!r}")
                        continue

                    for choice in data.get("choices", []):
                        delta = choice.get("delta") or {}
                        reasoning = delta.get("reasoning") or delta.get("reasoning_content")
                        if reasoning:
                            if not thinking_sent:
                                thinking_sent = True
                                yield THINKING_MARKERS[0] + "\n"
                            yield reasoning
                        content = delta.get("content")
                        if content:
                            yield content
        except httpx.HTTPError as e:
            logger.warning(f"⚠️ 生成服务请求失败: {e}")
            raise StreamTransportError(str(e) or e.__class__.__name__) from e

    async def close(self):
        await self.client.aclose()
