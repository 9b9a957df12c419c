#!/usr/bin/env python3
"""交互式生成 .env 配置文件

使用方式：
    python scripts/setup_env.py

会引导用户填写必要的配置项，生成 .env 文件。
"""
import os
import sys

# 项目根目录
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
ENV_FILE = os.path.join(PROJECT_ROOT, ".env")


# 配置项定义：(env_key, 描述, 默认值, 是否必填)
CONFIG_ITEMS = [
    # === 数据库 ===
    ("DATABASE_URL", "数据库连接地址", "sqlite:///data/gym.db", False),

    # === 账务与会籍 ===
    ("CURRENCY_SYMBOL", "货币符号", "₱", False),
    ("SESSION_PLAN_VALIDITY_MONTHS", "课程包有效期（月）", "3", False),
    ("LAPSED_MEMBERSHIP_DAYS", "到期超过多少天视为停用", "365", False),

    # === 训练/饮食计划生成 ===
    ("PLANNER_API_KEY", "计划生成 API Key（留空则不可用，MiniMax 从 https://platform.minimaxi.com 获取）", "", False),
    ("PLANNER_MODEL", "计划生成模型名称", "MiniMax-M2.5", False),
    ("PLANNER_BASE_URL", "计划生成 API 地址（Anthropic 兼容接口）", "https://api.minimaxi.com/anthropic", False),
    ("PLANNER_TIMEOUT", "计划生成请求超时（秒）", "60", False),

    # === 定时任务 ===
    ("TASK_REMINDER_TIME", "每日待办提醒时间", "08:00", False),
]


SECTION_HEADERS = {
    "DATABASE": "# === 数据库配置 ===",
    "CURRENCY": "# === 账务与会籍配置 ===",
    "PLANNER": "# === 计划生成配置 ===",
    "TASK": "# === 定时任务配置 ===",
}


def ask(key, desc, default, required):
    """提示用户输入单个配置项，空输入使用默认值"""
    req_tag = " [必填]" if required else ""
    default_hint = f" (默认: {default})" if default else ""
    print(f"📝 {desc}{req_tag}")

    while True:
        value = input(f"  {key}={default_hint}: ").strip()
        if not value:
            value = default
        if required and not value:
            print(f"  ❌ {key} 是必填项，请输入值。")
            continue
        return value


def main():
    print()
    print("=" * 60)
    print("  Gym Manager 配置向导")
    print("  生成 .env 配置文件")
    print("=" * 60)
    print()

    if os.path.exists(ENV_FILE):
        print(f"⚠️  检测到已有 .env 文件: {ENV_FILE}")
        choice = input("是否覆盖？(y/N): ").strip().lower()
        if choice != "y":
            print("已取消。")
            return
        print()

    env_lines = [
        "# Gym Manager 配置文件",
        "# 由 scripts/setup_env.py 自动生成",
    ]

    for key, desc, default, required in CONFIG_ITEMS:
        header = SECTION_HEADERS.get(key.split("_")[0])
        if header:
            env_lines.append("")
            env_lines.append(header)

        value = ask(key, desc, default, required)
        env_lines.append(f"{key}={value}")
        print()

    with open(ENV_FILE, "w", encoding="utf-8") as f:
        f.write("\n".join(env_lines) + "\n")

    print("=" * 60)
    print(f"  ✅ 配置文件已生成: {ENV_FILE}")
    print()
    print("  初始化数据库：")
    print("    python scripts/init_db.py")
    print("=" * 60)


if __name__ == "__main__":
    sys.exit(main())
