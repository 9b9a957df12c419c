"""初始化数据库"""
import sys
import os

# 添加项目根目录到路径
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from database import DatabaseManager
from config.business_config import business_config
from loguru import logger


def init_database(database_url=None):
    """初始化数据库和默认目录（价目表、商品、教练、班级）"""
    logger.info("Initializing database...")

    db = DatabaseManager(database_url)

    logger.info("Creating tables...")
    db.create_tables()

    # 已存在的目录项按ID跳过，可重复执行
    logger.info("Seeding catalog...")
    counts = db.seed_catalog(business_config)
    for name, count in counts.items():
        logger.info(f"Seeded {count} {name.replace('_', ' ')}")

    db.close()
    logger.info("Database initialization completed!")
    return counts


if __name__ == "__main__":
    init_database()
