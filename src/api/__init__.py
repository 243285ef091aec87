"""API接口模块"""

from src.api.generation_client import GenerationClient
from src.api.routes import create_app

__all__ = [
    'GenerationClient',
    'create_app',
]
