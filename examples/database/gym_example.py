"""健身房前台一日流程示例

本示例展示前台一天的完整流程：
1. 初始化数据库和默认目录（价目表、商品、教练、班级）
2. 会员入会（线上付款）
3. 签到机签到、前台确认
4. 当日账单：商品、储物柜、部分付款
5. 散客购买跆拳道课程包
6. 离场与欠款结转
7. 每日记录与未结账单

运行方式：
    python examples/database/gym_example.py
"""
import sys
from datetime import date, datetime
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[2]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from database import DatabaseManager

DATA_DIR = PROJECT_ROOT / "data"
DB_PATH = DATA_DIR / "gym_example.db"

DAY_1 = datetime(2024, 1, 10, 9, 0, 0)
DAY_2 = datetime(2024, 1, 12, 18, 0, 0)


def build_manager() -> DatabaseManager:
    """初始化数据库管理器"""
    DATA_DIR.mkdir(exist_ok=True)
    if DB_PATH.exists():
        DB_PATH.unlink()  # 删除旧数据库，重新开始
    db = DatabaseManager(f"sqlite:///{DB_PATH}")
    db.create_tables()
    return db


def enroll_member(db: DatabaseManager) -> str:
    """会员入会并线上购买月卡"""
    print("\n💳 步骤 1: 会员入会")
    print("-" * 60)

    member = db.save_member({"name": "Juan Dela Cruz"}, ["price-2"], now=DAY_1)
    print(f"✅ 会员已创建: {member.name} ({member.id})")
    print(f"   到期日: {member.due_date}")
    return member.id


def member_visit(db: DatabaseManager, member_id: str) -> str:
    """签到机签到，前台确认后记账"""
    print("\n🏋️ 步骤 2: 会员签到与当日账单")
    print("-" * 60)

    result = db.kiosk_member_checkin(member_id, now=DAY_1)
    print(f"📟 签到机: {result.message}")

    pending = db.checkins.find_pending_for_member(member_id)
    record = db.confirm_pending_record(pending.id, today=DAY_1.date())
    print(f"✅ 前台已确认签到: {record.id}")

    db.add_products_to_record(record.id, [
        {"product_id": "prod-3", "quantity": 2},
        {"product_id": "prod-7", "quantity": 1},
    ])
    print(db.add_plans_to_tab(record.id, ["price-locker-1"],
                              today=DAY_1.date()).message)

    payment = db.checkins.record_payment(record.id, 200, date(2024, 2, 1))
    print(f"💰 {payment.message}")

    db.checkins.request_checkout(record.id)
    checkout = db.checkins.confirm_checkout(record.id, date(2024, 2, 1),
                                            now=DAY_1)
    print(f"🚪 {checkout.message}")
    return record.id


def walkin_visit(db: DatabaseManager) -> None:
    """散客登记并购买跆拳道课程包"""
    print("\n🥋 步骤 3: 散客购买课程包")
    print("-" * 60)

    print(db.kiosk_walkin_checkin("Ana Santos", "09170000000", now=DAY_1).message)
    pending = next(r for r in db.checkins.get_pending()
                   if r.record_type == "Walk-in")
    record = db.add_services_to_walkin(pending.id, ["class-tkd-bgn"])
    print(f"   教练: {record.coach_assigned}，课程包: "
          f"{record.session_plan_name} ({record.session_plan_total} 次)")

    record = db.confirm_pending_record(pending.id, {"amount_paid": 3500},
                                       today=DAY_1.date())
    client = db.walkins.get(record.walkin_client_id)
    print(f"✅ 散客档案已创建: {client.name} ({client.id})")


def next_visit(db: DatabaseManager, member_id: str) -> None:
    """第二次到访：上次欠款结转到新记录"""
    print("\n🔁 步骤 4: 欠款结转")
    print("-" * 60)

    db.kiosk_member_checkin(member_id, now=DAY_2)
    pending = db.checkins.find_pending_for_member(member_id)
    print(f"   新记录结转欠款: ₱{pending.carried_over_balance:.2f}")
    print(f"   新记录余额: ₱{pending.balance:.2f}")


def print_report(db: DatabaseManager, member_id: str) -> None:
    """打印每日记录与未结账单"""
    print("\n" + "=" * 60)
    print("📊 前台报表")
    print("=" * 60)

    records = db.get_daily_records(DAY_1.date())
    print(f"\n📅 {DAY_1.date()} 的签到记录（共 {len(records)} 条）：")
    for i, item in enumerate(records, 1):
        print(f"   {i}. {item['type']} - {item['name']} "
              f"应付 ₱{item['amount_due']:.2f} 余额 ₱{item['balance']:.2f}")

    print("\n💸 未结账单：")
    for item in db.get_open_balances():
        print(f"   - {item['name']}: ₱{item['balance']:.2f}")

    print("\n⚠️ 会员提醒：")
    for alert in db.get_member_alerts(member_id, today=DAY_2.date()):
        print(f"   - {alert}")

    print(f"\n💾 数据库文件: {DB_PATH}")


def run_front_desk_day(db: DatabaseManager) -> str:
    """在已建表的数据库上执行完整流程，返回会员编号"""
    db.seed_catalog()
    member_id = enroll_member(db)
    member_visit(db, member_id)
    walkin_visit(db)
    next_visit(db, member_id)
    return member_id


def main() -> None:
    """主函数"""
    print("=" * 60)
    print("🏋️ 健身房前台一日流程示例")
    print("=" * 60)

    db = build_manager()
    print(f"\n✅ 数据库已初始化: {DB_PATH}")

    member_id = run_front_desk_day(db)
    print_report(db, member_id)
    db.close()

    print("\n" + "=" * 60)
    print("✅ 示例完成！")
    print("=" * 60)


if __name__ == "__main__":
    main()
