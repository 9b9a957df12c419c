"""定时任务的业务逻辑

- 每日待办提醒：列出今天应完成但尚未完成的前台任务
"""
from datetime import date
from typing import List, Optional

from loguru import logger

from config.settings import settings
from .dates import today_or
from .scheduler import Scheduler, parse_time_of_day

TASK_REMINDER_JOB_ID = "task_reminder"


def remind_due_tasks(db, today: Optional[date] = None) -> List:
    """记录今天到期且未完成的任务

    Args:
        db: DatabaseManager 实例
        today: 参照日期

    Returns:
        需要提醒的任务列表
    """
    today = today_or(today)
    pending = db.tasks.get_pending_for(today)
    for task in pending:
        logger.info(f"Task reminder: '{task.title}' is due today ({today.isoformat()})")
    if not pending:
        logger.debug(f"No tasks due on {today.isoformat()}")
    return pending


def register_task_reminder(scheduler: Scheduler, db,
                           time_of_day: Optional[str] = None) -> None:
    """注册每日待办提醒任务

    Args:
        scheduler: 调度器
        db: DatabaseManager 实例
        time_of_day: 提醒时间 ``HH:MM``，默认取 settings.task_reminder_time
    """
    hour, minute = parse_time_of_day(time_of_day or settings.task_reminder_time)
    scheduler.add_daily_task(
        remind_due_tasks,
        hour=hour,
        minute=minute,
        task_id=TASK_REMINDER_JOB_ID,
        task_name="Task reminder",
        args=(db,),
    )
