"""配置加载"""

import copy
import json
import logging
import os
from typing import Dict, Any

from .constants import (
    CONFIG_FILE,
    CAPTURE_DIR,
    PORT_API,
    PORT_WS,
    DEFAULT_GENERATION_TIMEOUT,
)

logger = logging.getLogger(__name__)


DEFAULT_CONFIG: Dict[str, Any] = {
    "api": {
        "host": "0.0.0.0",
        "port": PORT_API,
    },
    "websocket": {
        "enabled": True,
        "host": "0.0.0.0",
        "port": PORT_WS,
    },
    "generation": {
        "url": "",
        "api_key": "",
        "model": "google/gemini-2.5-pro",
        "timeout": DEFAULT_GENERATION_TIMEOUT,
    },
    "capture": {
        "enabled": False,
        "directory": CAPTURE_DIR,
    },
    "logging": {},
}

# 环境变量 -> (分组, 键)
ENV_OVERRIDES = {
    "COURSE_STREAM_GENERATION_URL": ("generation", "url"),
    "COURSE_STREAM_API_KEY": ("generation", "api_key"),
    "COURSE_STREAM_LOG_LEVEL": ("logging", "level"),
}


def _merge(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    """递归合并配置，override 优先"""
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            _merge(base[key], value)
        else:
            base[key] = value
    return base


def load_config(path: str = CONFIG_FILE) -> Dict[str, Any]:
    """加载配置"""
    config = copy.deepcopy(DEFAULT_CONFIG)
    if os.path.exists(path):
        try:
            with open(path, 'r', encoding='utf-8') as f:
                _merge(config, json.load(f))
        except (OSError, ValueError) as e:
            logger.warning(f"⚠️ 加载配置失败: {e}")

    for env_name, (section, key) in ENV_OVERRIDES.items():
        value = os.getenv(env_name)
        if value:
            config.setdefault(section, {})[key] = value
    return config
