"""通用 CRUD 基类。

所有仓库继承 BaseCRUD，获得按主键查询、按条件查询、创建、更新、删除
等通用能力。每个方法都接受可选的外部会话：

- 传入 ``session`` 时在该会话中执行，不提交，由调用方统一提交
  （用于跨仓库的组合操作）；
- 不传时自动开启新会话并在成功后提交，异常时回滚。
"""
import uuid
from typing import Any, Callable, Dict, List, Optional, Type, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from loguru import logger

from .connection import DatabaseConnection

T = TypeVar("T")


def generate_id(prefix: str) -> str:
    """生成带前缀的字符串主键，如 ``rec-9f1c2a7b3d4e``。"""
    return f"{prefix}-{uuid.uuid4().hex[:12]}"


def round_money(value: Optional[float]) -> float:
    return round(float(value or 0), 2)


class BaseCRUD:
    """仓库基类。

    Attributes:
        conn: 数据库连接管理器。
    """

    def __init__(self, conn: DatabaseConnection) -> None:
        self.conn = conn

    def _get_session(self) -> Session:
        return self.conn.get_session()

    def _run(self, work: Callable[[Session], T],
             session: Optional[Session] = None) -> T:
        """在外部会话或新会话中执行 ``work``。

        新会话在 ``work`` 正常返回后提交；``work`` 抛出异常时会话关闭，
        未提交的修改全部回滚。
        """
        if session is not None:
            return work(session)

        with self._get_session() as sess:
            try:
                result = work(sess)
                sess.commit()
            except SQLAlchemyError:
                logger.exception("Database operation failed, rolled back")
                raise
            return result

    def get_by_id(self, model: Type[T], record_id: Any,
                  session: Optional[Session] = None) -> Optional[T]:
        """按主键查询。

        Args:
            model: ORM 模型类。
            record_id: 主键值。

        Returns:
            模型对象，不存在返回 None。
        """
        return self._run(lambda sess: sess.get(model, record_id), session)

    def get_all(self, model: Type[T],
                filters: Optional[Dict[str, Any]] = None,
                session: Optional[Session] = None) -> List[T]:
        """按等值条件查询全部记录。

        Args:
            model: ORM 模型类。
            filters: 字段名到值的等值过滤条件（可选）。

        Returns:
            模型对象列表。
        """
        def _query(sess):
            query = sess.query(model)
            for key, value in (filters or {}).items():
                query = query.filter(getattr(model, key) == value)
            return query.all()

        return self._run(_query, session)

    def create(self, model: Type[T], session: Optional[Session] = None,
               **kwargs) -> T:
        """创建记录。

        Args:
            model: ORM 模型类。
            **kwargs: 字段值。

        Returns:
            新创建的模型对象。
        """
        def _do(sess):
            obj = model(**kwargs)
            sess.add(obj)
            sess.flush()
            return obj

        return self._run(_do, session)

    def update_by_id(self, model: Type[T], record_id: Any,
                     session: Optional[Session] = None,
                     **kwargs) -> Optional[T]:
        """按主键更新字段。

        Args:
            model: ORM 模型类。
            record_id: 主键值。
            **kwargs: 要更新的字段值。

        Returns:
            更新后的模型对象，不存在返回 None。
        """
        def _do(sess):
            obj = sess.get(model, record_id)
            if obj is None:
                return None
            for key, value in kwargs.items():
                setattr(obj, key, value)
            sess.flush()
            return obj

        return self._run(_do, session)

    def delete_by_id(self, model: Type[T], record_id: Any,
                     session: Optional[Session] = None) -> bool:
        """按主键删除。

        Returns:
            删除成功返回 True，记录不存在返回 False。
        """
        def _do(sess):
            obj = sess.get(model, record_id)
            if obj is None:
                return False
            sess.delete(obj)
            sess.flush()
            return True

        return self._run(_do, session)
