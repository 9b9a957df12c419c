"""定时任务调度器 - 通用的任务调度框架

具体的业务任务逻辑在 business/scheduler_tasks.py 中
"""
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from typing import Callable, Tuple
from loguru import logger
import asyncio


def parse_time_of_day(value: str) -> Tuple[int, int]:
    """解析 ``HH:MM`` 形式的时间

    Raises:
        ValueError: 格式无效或超出范围
    """
    try:
        hour_str, minute_str = value.strip().split(":")
        hour, minute = int(hour_str), int(minute_str)
    except ValueError:
        raise ValueError(f"Invalid time format: {value}, expected HH:MM")
    if not (0 <= hour <= 23 and 0 <= minute <= 59):
        raise ValueError(f"Invalid time of day: {value}")
    return hour, minute


class Scheduler:
    """定时任务调度器

    通用的任务调度框架，不包含具体的业务逻辑
    业务逻辑通过回调函数注入
    """

    def __init__(self):
        """初始化调度器"""
        try:
            loop = asyncio.get_event_loop()
            if loop.is_closed():
                loop = asyncio.new_event_loop()
                asyncio.set_event_loop(loop)
        except RuntimeError:
            loop = asyncio.new_event_loop()
            asyncio.set_event_loop(loop)
        self.scheduler = AsyncIOScheduler(event_loop=loop)

    def add_daily_task(
        self,
        task_func: Callable,
        hour: int = 8,
        minute: int = 0,
        task_id: str = 'daily_task',
        task_name: str = 'Daily task',
        args: tuple = ()
    ):
        """添加每日定时任务

        Args:
            task_func: 任务函数（普通函数或 async 函数）
            hour: 小时 (0-23)
            minute: 分钟 (0-59)
            task_id: 任务ID
            task_name: 任务名称
            args: 传给任务函数的位置参数
        """
        self.scheduler.add_job(
            task_func,
            trigger=CronTrigger(hour=hour, minute=minute),
            id=task_id,
            name=task_name,
            args=args,
            replace_existing=True
        )
        logger.info(f"Added daily task '{task_name}' at {hour:02d}:{minute:02d}")

    def has_job(self, job_id: str) -> bool:
        return self.scheduler.get_job(job_id) is not None

    def start(self):
        """启动调度器"""
        self.scheduler.start()
        logger.info("Scheduler started")

    def stop(self):
        """停止调度器"""
        self.scheduler.shutdown()
        logger.info("Scheduler stopped")

    def remove_job(self, job_id: str):
        """移除任务

        Args:
            job_id: 任务ID
        """
        if not self.has_job(job_id):
            logger.warning(f"Job {job_id} not found")
            return
        self.scheduler.remove_job(job_id)
        logger.info(f"Job {job_id} removed")
