"""
GenerationClient 单元测试
"""
import json

import httpx
import pytest

from src.api.generation_client import GenerationClient
from src.stream.processor import StreamTransportError


def sse_body(*deltas, done=True):
    lines = []
    for delta in deltas:
        lines.append("data: " + json.dumps({"choices": [{"index": 0, "delta": delta}]}))
        lines.append("")
    if done:
        lines.extend(["data: [DONE]", ""])
        lines.extend(["data: " + json.dumps({"choices": [{"delta": {"content": "after done"}}]}), ""])
    return "\n".join(lines)


def make_client(handler, **kwargs):
    return GenerationClient(
        url="http://generation.test/v1/chat/completions",
        model="test-model",
        transport=httpx.MockTransport(handler),
        **kwargs,
    )


async def collect(client, messages=None):
    return [piece async for piece in client.stream_chat(messages or [{"role": "user", "content": "hi"}])]


@pytest.mark.unit
class TestGenerationClient:
    """生成服务客户端测试"""

    @pytest.mark.asyncio
    async def test_streams_content(self):
        """测试输出 delta.content 并在 [DONE] 处停止"""
        def handler(request):
            return httpx.Response(200, text=sse_body({"content": "Hello "}, {"content": "world"}))

        client = make_client(handler)
        try:
            assert await collect(client) == ["Hello ", "world"]
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_reasoning_prefixed_with_thinking_marker(self):
        """测试推理内容前只输出一次思考标记"""
        def handler(request):
            return httpx.Response(200, text=sse_body(
                {"reasoning": "plan "},
                {"reasoning": "more"},
                {"content": "[Generating...] done"},
            ))

        client = make_client(handler)
        try:
            pieces = await collect(client)
        finally:
            await client.close()

        assert pieces == ["[Thinking...]\n", "plan ", "more", "[Generating...] done"]

    @pytest.mark.asyncio
    async def test_request_body_and_auth(self):
        """测试请求体与鉴权头"""
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, text=sse_body())

        client = make_client(handler, api_key="sk-test")
        try:
            await collect(client)
        finally:
            await client.close()

        assert seen["body"]["stream"] is True
        assert seen["body"]["model"] == "test-model"
        assert seen["auth"] == "Bearer sk-test"

    @pytest.mark.asyncio
    async def test_http_error_status(self):
        """测试非 200 响应转为传输错误"""
        def handler(request):
            return httpx.Response(500, text="upstream down")

        client = make_client(handler)
        try:
            with pytest.raises(StreamTransportError, match="HTTP 500"):
                await collect(client)
        finally:
            await client.close()

    @pytest.mark.asyncio
    async def test_connection_error(self):
        """测试连接失败转为传输错误"""
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        client = make_client(handler)
        try:
            with pytest.raises(StreamTransportError):
                await collect(client)
        finally:
            await client.close()

    def test_from_config(self):
        """测试未配置地址时不创建客户端"""
        assert GenerationClient.from_config({"generation": {"url": ""}}) is None
        client = GenerationClient.from_config({"generation": {"url": "http://x", "timeout": None}})
        assert client.timeout is None
