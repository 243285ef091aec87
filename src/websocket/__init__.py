"""
websocket - WebSocket 通信模块

接收流来源推送的响应片段，驱动构建会话的流处理器。
"""

from .handler import StreamSourceHandler

__all__ = ["StreamSourceHandler"]
