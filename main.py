"""Course Stream Builder 入口"""
import asyncio
import logging

import uvicorn
import websockets

from src.core import load_config, setup_logging
from src.api import GenerationClient, create_app
from src.builder import BuilderSession
from src.websocket import StreamSourceHandler

logger = logging.getLogger(__name__)


async def main():
    """启动服务器"""
    config = load_config()
    setup_logging(config.get("logging"))

    session = BuilderSession.create(config)
    generation_client = GenerationClient.from_config(config)
    if generation_client is None:
        logger.info("📄 未配置生成服务，只接受推送的片段")

    app = create_app(session, generation_client)

    api_config = config["api"]
    ws_config = config["websocket"]

    uvicorn_config = uvicorn.Config(app, host=api_config["host"], port=api_config["port"], log_config=None)
    server = uvicorn.Server(uvicorn_config)

    logger.info("🚀 课程构建服务已启动")
    logger.info(f"   - API: http://{api_config['host']}:{api_config['port']}")

    try:
        if ws_config.get("enabled", True):
            handler = StreamSourceHandler(session)
            async with websockets.serve(handler, ws_config["host"], ws_config["port"]):
                logger.info(f"   - WS:  ws://{ws_config['host']}:{ws_config['port']}")
                await server.serve()
        else:
            await server.serve()
    finally:
        session.dispose()


if __name__ == "__main__":
    asyncio.run(main())
