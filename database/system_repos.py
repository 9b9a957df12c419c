"""系统数据仓库 —— 前台辅助数据的数据访问层。

管理前台待办任务（支持按日/周/月重复）和每日免费通行码，
这些数据不参与账务计算。
"""
import random
from typing import Optional, List
from datetime import date
from sqlalchemy.orm import Session
from loguru import logger

from business.dates import parse_date, to_ymd, today_or
from .base_crud import BaseCRUD, generate_id
from .connection import DatabaseConnection
from .models import Task, FreePass, Recurrence


def is_scheduled_for(task: Task, day: date) -> bool:
    """判断任务是否安排在指定日期。

    - none：仅在到期日当天
    - daily：到期日当天及以后每天
    - weekly：到期日之后与到期日同一星期几
    - monthly：到期日之后与到期日同一日号
    """
    start = parse_date(task.due_date)
    if start is None or day < start:
        return False
    recurrence = Recurrence(task.recurrence or Recurrence.NONE.value)
    if recurrence == Recurrence.DAILY:
        return True
    if recurrence == Recurrence.WEEKLY:
        return day.weekday() == start.weekday()
    if recurrence == Recurrence.MONTHLY:
        return day.day == start.day
    return day == start


def is_completed_on(task: Task, day: date) -> bool:
    return to_ymd(day) in (task.completed_on or [])


class TaskRepository(BaseCRUD):
    """前台待办任务 仓库。

    重复任务按天记录完成情况：``completed_on`` 保存已完成日期
    （``YYYY-MM-DD``，升序）。
    """

    def __init__(self, conn: DatabaseConnection) -> None:
        super().__init__(conn)

    def add(self, title: str, due_date: date,
            recurrence: str = Recurrence.NONE.value,
            details: str = "", client_id: Optional[str] = None,
            client_name: Optional[str] = None,
            session: Optional[Session] = None) -> Task:
        """新增任务。

        Args:
            title: 任务标题。
            due_date: 到期日（重复任务的起始日）。
            recurrence: 重复周期：none / daily / weekly / monthly。
            details: 任务说明。
            client_id: 关联的会员或散客ID（可选）。
            client_name: 关联的客户姓名（可选）。

        Returns:
            新创建的 Task 对象。

        Raises:
            ValueError: 重复周期无效。
        """
        task = self.create(
            Task, session=session,
            id=generate_id("task"), title=title, details=details or "",
            due_date=parse_date(due_date),
            recurrence=Recurrence(recurrence).value,
            client_id=client_id, client_name=client_name, completed_on=[],
        )
        logger.info(f"Task added: '{task.title}' ({task.recurrence})")
        return task

    def update(self, task_id: str, session: Optional[Session] = None,
               **fields) -> Optional[Task]:
        if "recurrence" in fields:
            fields["recurrence"] = Recurrence(fields["recurrence"]).value
        if "due_date" in fields:
            fields["due_date"] = parse_date(fields["due_date"])
        return self.update_by_id(Task, task_id, session=session, **fields)

    def delete(self, task_id: str,
               session: Optional[Session] = None) -> bool:
        return self.delete_by_id(Task, task_id, session=session)

    def list_all(self, session: Optional[Session] = None) -> List[Task]:
        def _query(sess):
            return sess.query(Task).order_by(Task.due_date).all()

        return self._run(_query, session)

    def toggle_completion(self, task_id: str, day: date,
                          session: Optional[Session] = None
                          ) -> Optional[Task]:
        """切换任务在指定日期的完成状态。

        Returns:
            更新后的 Task 对象，任务不存在返回 None。
        """
        key = to_ymd(day)

        def _do(sess):
            task = sess.get(Task, task_id)
            if task is None:
                return None
            done = list(task.completed_on or [])
            if key in done:
                done.remove(key)
            else:
                done.append(key)
            task.completed_on = sorted(done)
            sess.flush()
            return task

        return self._run(_do, session)

    def get_scheduled_for(self, day: date,
                          session: Optional[Session] = None) -> List[Task]:
        """查询安排在指定日期的全部任务。"""
        def _query(sess):
            candidates = sess.query(Task).filter(Task.due_date <= day).all()
            return [t for t in candidates if is_scheduled_for(t, day)]

        return self._run(_query, session)

    def get_pending_for(self, day: date,
                        session: Optional[Session] = None) -> List[Task]:
        """查询安排在指定日期且当天尚未完成的任务。"""
        return [
            t for t in self.get_scheduled_for(day, session=session)
            if not is_completed_on(t, day)
        ]


class FreePassRepository(BaseCRUD):
    """每日免费通行码 仓库。

    每天一个 4 位数字码，重新生成会覆盖当天的码；
    过去日期的码不再有效。
    """

    def __init__(self, conn: DatabaseConnection) -> None:
        super().__init__(conn)

    def generate_code(self, today: Optional[date] = None,
                      session: Optional[Session] = None) -> str:
        """生成（或重新生成）当天的通行码。"""
        today = today_or(today)
        code = str(random.randint(1000, 9999))

        def _do(sess):
            entry = sess.get(FreePass, today)
            if entry is None:
                entry = FreePass(pass_date=today, code=code)
                sess.add(entry)
            else:
                entry.code = code
            sess.flush()
            return entry.code

        result = self._run(_do, session)
        logger.info(f"Free pass code generated for {today.isoformat()}")
        return result

    def todays_code(self, today: Optional[date] = None,
                    session: Optional[Session] = None) -> Optional[str]:
        """获取当天的通行码，当天尚未生成返回 None。"""
        today = today_or(today)

        def _query(sess):
            entry = sess.get(FreePass, today)
            return entry.code if entry is not None else None

        return self._run(_query, session)

    def verify(self, code: str, today: Optional[date] = None,
               session: Optional[Session] = None) -> bool:
        current = self.todays_code(today, session=session)
        return current is not None and code.strip() == current
