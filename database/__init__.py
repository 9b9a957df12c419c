"""健身房数据库模块

通过 DatabaseManager 统一访问所有账本与目录仓库。
"""
from .manager import DatabaseManager

__all__ = ["DatabaseManager"]
