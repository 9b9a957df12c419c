"""全局配置管理

所有用户可配置项均通过 .env 文件设置，运行时自动加载到此处。

使用方式：
    1. 运行 python scripts/setup_env.py 生成 .env 文件
    2. 或手动创建 .env 文件
"""
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """应用配置 - 所有字段均可通过 .env 或环境变量覆盖"""

    # ========== 数据库 ==========
    database_url: str = "sqlite:///data/gym.db"

    # ========== 账务与会籍 ==========
    currency_symbol: str = "₱"
    session_plan_validity_months: int = 3
    lapsed_membership_days: int = 365

    # ========== 训练/饮食计划生成（默认 MiniMax，Anthropic 兼容接口） ==========
    planner_api_key: str = ""
    planner_model: str = "MiniMax-M2.5"
    planner_base_url: str = "https://api.minimaxi.com/anthropic"
    planner_timeout: int = 60

    # ========== 定时任务 ==========
    task_reminder_time: str = "08:00"

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = False
        extra = "ignore"


# 全局配置实例
settings = Settings()
