"""数据库连接与基础设施管理。

本模块负责数据库的底层基础设施，包括：
- 数据库引擎创建（SQLite 或任意同步驱动的数据库URL）
- 会话（Session）管理
- 数据库表创建
- 原始SQL执行

本模块不包含任何业务逻辑，仅提供数据库基础操作。
"""
import os
from typing import Optional, Any
from sqlalchemy import create_engine, text
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker, Session

from .models import Base
from config.settings import settings


class DatabaseConnection:
    """数据库连接管理器。

    负责数据库引擎的创建和会话管理。会话工厂设置
    ``expire_on_commit=False``，仓库方法返回的对象在会话关闭后仍可读取。

    Attributes:
        database_url: 数据库连接URL。
        engine: SQLAlchemy引擎对象。
        SessionLocal: 会话工厂。

    Example:
        ```python
        conn = DatabaseConnection("sqlite:///data/gym.db")

        # 使用默认配置
        conn = DatabaseConnection()
        ```
    """

    def __init__(self, database_url: Optional[str] = None) -> None:
        """初始化数据库连接。

        Args:
            database_url: 数据库连接URL，如果为None则使用settings中的配置。
        """
        self.database_url: str = database_url or settings.database_url

        connect_args = {}
        if self.database_url.startswith("sqlite"):
            connect_args = {"check_same_thread": False}
            self._ensure_sqlite_dir()

        self.engine = create_engine(
            self.database_url, echo=False, connect_args=connect_args
        )
        self.SessionLocal = sessionmaker(
            bind=self.engine, autocommit=False, autoflush=False,
            expire_on_commit=False
        )

    def _ensure_sqlite_dir(self) -> None:
        """SQLite 文件所在目录不存在时自动创建。"""
        db_path = make_url(self.database_url).database
        if db_path and db_path != ":memory:":
            directory = os.path.dirname(os.path.abspath(db_path))
            os.makedirs(directory, exist_ok=True)

    def create_tables(self) -> None:
        """创建所有数据库表（幂等操作）。"""
        Base.metadata.create_all(self.engine)

    def get_session(self) -> Session:
        """获取数据库会话。"""
        return self.SessionLocal()

    def execute_raw_sql(self, sql: str, params: Optional[dict] = None) -> Any:
        """执行原始SQL语句。

        注意：此方法应谨慎使用，建议优先使用ORM方法。

        Args:
            sql: SQL语句字符串。
            params: SQL参数字典（可选）。

        Returns:
            查询语句返回全部行，其余语句返回受影响行数。
        """
        with self.get_session() as session:
            result = session.execute(text(sql), params or {})
            rows = result.fetchall() if result.returns_rows else result.rowcount
            session.commit()
            return rows

    def close(self) -> None:
        """关闭数据库连接，释放引擎资源。"""
        if self.engine is not None:
            self.engine.dispose()
