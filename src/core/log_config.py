"""
日志配置
"""
import logging
import logging.config
import os
from typing import Dict, Any, Optional

from pydantic import BaseModel, Field


class LoggingConfig(BaseModel):
    """日志配置"""

    level: str = Field(default="INFO", description="日志级别")
    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="日志格式"
    )

    # 控制台配置
    console_enabled: bool = Field(default=True, description="是否启用控制台日志")
    console_level: str = Field(default="INFO", description="控制台日志级别")

    # 文件配置
    file_enabled: bool = Field(default=False, description="是否启用文件日志")
    file_path: str = Field(default="logs/course_stream.log", description="日志文件路径")
    file_max_size: int = Field(default=10485760, description="日志文件最大大小（字节）")
    file_backup_count: int = Field(default=5, description="日志文件备份数量")

    def get_logging_config(self) -> Dict[str, Any]:
        """获取logging配置字典"""
        config: Dict[str, Any] = {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "default": {
                    "format": self.format,
                },
                "detailed": {
                    "format": "%(asctime)s - %(name)s - %(levelname)s - %(module)s - %(funcName)s - %(lineno)d - %(message)s",
                },
            },
            "handlers": {},
            "loggers": {
                "": {
                    "level": self.level.upper(),
                    "handlers": [],
                },
                "uvicorn": {
                    "level": "INFO",
                    "handlers": [],
                    "propagate": True,
                },
            },
        }

        if self.console_enabled:
            config["handlers"]["console"] = {
                "class": "logging.StreamHandler",
                "level": self.console_level.upper(),
                "formatter": "default",
                "stream": "ext://sys.stdout",
            }
            config["loggers"][""]["handlers"].append("console")

        if self.file_enabled:
            config["handlers"]["file"] = {
                "class": "logging.handlers.RotatingFileHandler",
                "level": self.level.upper(),
                "formatter": "detailed",
                "filename": self.file_path,
                "maxBytes": self.file_max_size,
                "backupCount": self.file_backup_count,
                "encoding": "utf-8",
            }
            config["loggers"][""]["handlers"].append("file")

        return config


def setup_logging(settings: Optional[Dict[str, Any]] = None) -> LoggingConfig:
    """根据配置初始化日志系统"""
    logging_config = LoggingConfig(**(settings or {}))
    if logging_config.file_enabled:
        log_dir = os.path.dirname(logging_config.file_path)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
    logging.config.dictConfig(logging_config.get_logging_config())
    return logging_config
