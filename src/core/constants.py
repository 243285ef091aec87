"""
核心常量定义模块

包含服务端口、配置文件路径、流式标记等全局常量。
"""

# API和WebSocket服务端口
PORT_API = 7860
PORT_WS = 7861

# 配置文件路径
CONFIG_FILE = "config/config.json"
CAPTURE_DIR = "captures"

# 流式状态标记（区分大小写）
THINKING_MARKERS = ("[Thinking...]", "🤔")
GENERATING_MARKERS = ("[Generating...]", "🚀")

# 传输层行前缀
LINE_PREFIXES = ("data:",)
DONE_SENTINEL = "[DONE]"

# 生成服务默认超时（秒）
DEFAULT_GENERATION_TIMEOUT = 180.0
