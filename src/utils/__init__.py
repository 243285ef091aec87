"""工具函数模块"""

from src.utils.summary import FALLBACK_SUMMARY, extract_summary

__all__ = [
    'FALLBACK_SUMMARY',
    'extract_summary',
]
