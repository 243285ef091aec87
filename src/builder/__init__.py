"""课程构建会话模块"""

from .session import BuilderSession

__all__ = ["BuilderSession"]
