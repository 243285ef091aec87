"""核心模块"""

from .constants import *
from .config import load_config
from .log_config import LoggingConfig, setup_logging
from .capture import CaptureRecord, ResponseCaptureService

__all__ = [
    'PORT_API',
    'PORT_WS',
    'CONFIG_FILE',
    'CAPTURE_DIR',
    'THINKING_MARKERS',
    'GENERATING_MARKERS',
    'load_config',
    'LoggingConfig',
    'setup_logging',
    'CaptureRecord',
    'ResponseCaptureService',
]
