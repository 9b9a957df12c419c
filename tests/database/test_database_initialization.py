"""数据库初始化测试。

测试表结构创建、SQLite 目录自动创建、原始SQL执行、目录种子脚本，
以及数据库异常时的回滚行为。
"""
import os
import shutil
import tempfile

import pytest
from sqlalchemy import inspect
from sqlalchemy.exc import IntegrityError

from database import DatabaseManager
from scripts.init_db import init_database


@pytest.fixture
def temp_dir():
    path = tempfile.mkdtemp(prefix="db-init-")
    yield path
    shutil.rmtree(path, ignore_errors=True)


class TestDatabaseInitialization:
    """数据库初始化测试类。"""

    def test_create_tables(self, temp_db):
        """测试创建数据库表。"""
        tables = inspect(temp_db.engine).get_table_names()
        for name in ("coaches", "price_plans", "products", "gym_classes",
                     "class_attendance", "members", "walkin_clients",
                     "checkin_records", "tasks", "free_passes"):
            assert name in tables

    def test_create_tables_is_idempotent(self, temp_db):
        """重复建表不影响已有数据。"""
        temp_db.members.enroll({"name": "Juan"})
        temp_db.create_tables()
        assert len(temp_db.members.list_all()) == 1

    def test_sqlite_directory_created(self, temp_dir):
        """SQLite 文件所在目录不存在时自动创建。"""
        db_path = os.path.join(temp_dir, "nested", "dir", "gym.db")
        db = DatabaseManager(f"sqlite:///{db_path}")
        try:
            assert db.database_url == f"sqlite:///{db_path}"
            assert os.path.isdir(os.path.dirname(db_path))
        finally:
            db.close()

    def test_execute_raw_sql(self, seeded_db):
        """查询语句返回行，更新语句返回影响行数。"""
        rows = seeded_db.execute_raw_sql(
            "SELECT name FROM coaches WHERE id = :id", {"id": "coach-1"})
        assert rows[0][0] == "COACH JAYSON"
        changed = seeded_db.execute_raw_sql(
            "UPDATE products SET stock = 0 WHERE category = :c",
            {"c": "Apparel"})
        assert changed == 2

    def test_init_database_script(self, temp_dir):
        """初始化脚本建表并写入默认目录，可重复执行。"""
        url = f"sqlite:///{os.path.join(temp_dir, 'init.db')}"
        assert init_database(url) == {"price_plans": 28, "products": 14,
                                      "coaches": 3, "classes": 1}
        assert init_database(url)["price_plans"] == 0


class TestRollback:
    """数据库异常回滚测试。"""

    def test_duplicate_key_raises_and_rolls_back(self, temp_db):
        temp_db.coaches.add("COACH JAYSON", coach_id="coach-1")
        with pytest.raises(IntegrityError):
            temp_db.coaches.add("COACH DUPLICATE", coach_id="coach-1")

        coaches = temp_db.coaches.list_all()
        assert [c.name for c in coaches] == ["COACH JAYSON"]

    def test_failed_transaction_leaves_no_partial_writes(self, seeded_db):
        """跨账本操作中途失败时，前面的写入一并回滚。"""
        def _work(sess):
            seeded_db.members.enroll({"name": "Juan"}, session=sess)
            seeded_db.coaches.add("COACH X", coach_id="coach-1", session=sess)

        with pytest.raises(IntegrityError):
            seeded_db._transaction(_work)
        assert seeded_db.members.list_all() == []
