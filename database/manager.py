"""数据库管理器 —— 统一门面（Facade）。

DatabaseManager 是 database 模块的统一入口，组合了所有子仓库，
提供两套 API：

1. **子仓库访问**（细粒度）：
   通过 ``db.members``、``db.checkins`` 等属性直接访问子仓库，
   返回 ORM 对象，适合单一账本内的操作。

2. **便捷方法**（粗粒度）：
   跨账本的业务操作（如 ``add_plans_to_tab()``、``kiosk_member_checkin()``）
   在同一个会话内完成，要么全部生效，要么全部回滚；
   查询类便捷方法返回字典，适合上层界面直接展示。
"""
from typing import Optional, List, Dict, Any, Callable, TypeVar
from datetime import date, datetime
from sqlalchemy.orm import Session
from loguru import logger

from business.dates import parse_date, today_or, to_ymd
from business.member_csv import ImportResult, parse_members_csv, export_members_csv
from business.member_status import MemberStatus, derive_member_status, member_alerts
from business.results import OperationResult
from config.business_config import BusinessConfig, business_config
from config.settings import settings
from .connection import DatabaseConnection
from .entity_repos import (
    CoachRepository, ProductRepository, PricePlanRepository, ClassRepository
)
from .business_repos import (
    MemberRepository, WalkinClientRepository, CheckinRecordRepository,
    add_history,
)
from .system_repos import TaskRepository, FreePassRepository
from .models import (
    Coach, Product, PricePlan, GymClass, Member, WalkinClient, CheckinRecord,
    HistoryEntryType, RecordType, RecordStatus, PendingAction,
)

T = TypeVar("T")


class DatabaseManager:
    """数据库管理器 —— 统一门面。

    Attributes:
        conn: 数据库连接管理器。
        coaches: 教练仓库。
        products: 商品仓库。
        price_plans: 价目表仓库。
        classes: 课程班级仓库。
        members: 会员账本。
        walkins: 散客账本。
        checkins: 签到记录账本。
        tasks: 待办任务仓库。
        free_passes: 免费通行码仓库。

    Example::

        db = DatabaseManager("sqlite:///data/gym.db")
        db.create_tables()
        db.seed_catalog()

        # 通过子仓库访问（返回 ORM 对象）
        member = db.members.enroll({"name": "Juan Dela Cruz"})

        # 通过便捷方法访问
        result = db.kiosk_member_checkin(member.id)
    """

    def __init__(self, database_url: Optional[str] = None) -> None:
        """初始化数据库管理器。

        Args:
            database_url: 数据库连接URL。如果为None则使用settings配置。
        """
        # 基础设施层
        self.conn = DatabaseConnection(database_url)

        # 目录实体仓库
        self.coaches = CoachRepository(self.conn)
        self.products = ProductRepository(self.conn)
        self.price_plans = PricePlanRepository(self.conn)
        self.classes = ClassRepository(self.conn)

        # 账本仓库
        self.members = MemberRepository(self.conn)
        self.walkins = WalkinClientRepository(self.conn)
        self.checkins = CheckinRecordRepository(
            self.conn, self.walkins, self.classes
        )

        # 系统数据仓库
        self.tasks = TaskRepository(self.conn)
        self.free_passes = FreePassRepository(self.conn)

    # ================================================================
    # 基础设施方法
    # ================================================================

    def create_tables(self) -> None:
        """创建所有数据库表（幂等操作）。"""
        self.conn.create_tables()

    def get_session(self) -> Session:
        """获取数据库会话。"""
        return self.conn.get_session()

    @property
    def database_url(self) -> str:
        """数据库连接URL。"""
        return self.conn.database_url

    @property
    def engine(self):
        """SQLAlchemy 引擎对象。"""
        return self.conn.engine

    def execute_raw_sql(self, sql: str,
                        params: Optional[dict] = None) -> Any:
        """执行原始 SQL 语句。

        注意：应优先使用 ORM 方法，仅在必要时使用原始 SQL。
        """
        return self.conn.execute_raw_sql(sql, params)

    def close(self) -> None:
        """关闭数据库连接，释放所有资源。"""
        self.conn.close()

    def _transaction(self, work: Callable[[Session], T]) -> T:
        """在单个会话中执行跨账本操作，正常返回后提交。"""
        with self.conn.get_session() as sess:
            result = work(sess)
            sess.commit()
            return result

    def seed_catalog(self, config: Optional[BusinessConfig] = None
                     ) -> Dict[str, int]:
        """写入默认目录（价目表、商品、教练、班级），已存在的ID跳过。

        Args:
            config: 业务配置，默认使用全局 business_config。

        Returns:
            各类目录新写入的数量。
        """
        config = config or business_config

        def _do(sess):
            counts = {"price_plans": 0, "products": 0, "coaches": 0,
                      "classes": 0}
            for item in config.get_coaches():
                if sess.get(Coach, item["id"]) is None:
                    self.coaches.add(
                        item["name"], item.get("mobile_number"),
                        item.get("address"), item.get("skills"),
                        coach_id=item["id"], session=sess)
                    counts["coaches"] += 1
            for item in config.get_price_plans():
                if sess.get(PricePlan, item["id"]) is None:
                    self.price_plans.add(
                        item["name"], item["amount"], item["plan_type"],
                        plan_id=item["id"], session=sess)
                    counts["price_plans"] += 1
            for item in config.get_products():
                if sess.get(Product, item["id"]) is None:
                    self.products.add(
                        item["name"], item["price"], item.get("category"),
                        item.get("stock", 0), product_id=item["id"],
                        session=sess)
                    counts["products"] += 1
            for item in config.get_classes():
                if sess.get(GymClass, item["id"]) is None:
                    self.classes.add(item["name"], item.get("coach_id"),
                                     class_id=item["id"], session=sess)
                    counts["classes"] += 1
            return counts

        counts = self._transaction(_do)
        logger.info(f"Catalog seeded: {counts}")
        return counts

    # ================================================================
    # 会员与散客
    # ================================================================

    def save_member(self, member_data: Dict[str, Any],
                    plan_ids: Optional[List[str]] = None,
                    start_date: Optional[date] = None,
                    now: Optional[datetime] = None) -> Member:
        """新建或更新会员，并为本次购买的每个套餐记录一条线上付款记录。

        线上付款记录直接为 Confirmed 且已离场、已全额付清，只用于留痕。

        Args:
            member_data: 会员字段字典；含已存在的 ``id`` 时为更新。
            plan_ids: 本次购买的套餐ID列表（可选）。
            start_date: 续费周期起始日（可选）。
            now: 操作时间。

        Returns:
            保存后的 Member 对象。
        """
        now = now or datetime.now()
        today = now.date()

        def _do(sess):
            plans = self.price_plans.get_many(plan_ids or [], session=sess)
            member_id = member_data.get("id")
            if member_id and sess.get(Member, member_id) is not None:
                fields = {k: v for k, v in member_data.items() if k != "id"}
                member = self.members.update(member_id, fields, plans,
                                             start_date, today, session=sess)
            else:
                member = self.members.enroll(member_data, plans, start_date,
                                             today, session=sess)

            for plan in plans:
                self.checkins.create({
                    "record_type": RecordType.MEMBER.value,
                    "name": member.name,
                    "gym_number": member.id,
                    "photo_url": member.photo_url,
                    "status": RecordStatus.CONFIRMED.value,
                    "payment_plan": f"Online Payment: {plan.name}",
                    "payment_amount": plan.amount,
                    "amount_due": plan.amount,
                    "amount_paid": plan.amount,
                    "checkout_timestamp": now,
                }, now=now, session=sess)
            return member

        return self._transaction(_do)

    def convert_walkin_to_member(self, client_id: str,
                                 member_data: Optional[Dict[str, Any]] = None,
                                 today: Optional[date] = None
                                 ) -> Optional[Member]:
        """将散客转为会员：用散客资料入会，然后删除散客档案。

        Returns:
            新会员对象，散客不存在返回 None。
        """
        def _do(sess):
            client = sess.get(WalkinClient, client_id)
            if client is None:
                logger.warning(f"Walk-in client not found: {client_id}")
                return None
            data = {
                "name": client.name,
                "photo_url": client.photo_url,
                "details": (f"Contact: {client.contact_number}"
                            if client.contact_number else ""),
            }
            data.update(member_data or {})
            member = self.members.enroll(data, today=today, session=sess)
            self.walkins.delete(client_id, session=sess)
            return member

        member = self._transaction(_do)
        if member is not None:
            logger.info(f"Walk-in {client_id} converted to member {member.id}")
        return member

    def import_members_csv(self, text: str) -> ImportResult:
        """导入会员 CSV：有效行写入（编号相同则覆盖），错误行汇总返回。"""
        result = parse_members_csv(text)
        if result.members:
            self.members.bulk_upsert(result.members)
        if result.errors:
            logger.warning(f"Member import finished with {len(result.errors)} error(s)")
        return result

    def export_members_csv(self) -> str:
        return export_members_csv(self.members.list_all())

    # ================================================================
    # 前台账单
    # ================================================================

    def confirm_pending_record(self, record_id: str,
                               updates: Optional[Dict[str, Any]] = None,
                               today: Optional[date] = None
                               ) -> Optional[CheckinRecord]:
        """确认待处理记录（散客档案的新建/更新在同一事务中完成）。"""
        return self.checkins.confirm(record_id, updates, today)

    def confirm_unfreeze(self, record_id: str,
                         today: Optional[date] = None) -> OperationResult:
        """确认签到机发来的解冻请求：解冻会员并确认签到。"""
        def _do(sess):
            record = sess.get(CheckinRecord, record_id)
            if (record is None
                    or record.pending_action != PendingAction.UNFREEZE.value):
                return OperationResult.error("No unfreeze request found.")
            if self.members.unfreeze(record.gym_number, today,
                                     session=sess) is None:
                sess.rollback()
                return OperationResult.error(
                    f"{record.name}'s account is not frozen.")
            if self.checkins.confirm(record_id, today=today,
                                     session=sess) is None:
                sess.rollback()
                return OperationResult.error(
                    f"{record.name} is already checked in today.")
            return OperationResult.ok(
                f"{record.name}'s account has been unfrozen.")

        return self._transaction(_do)

    def add_products_to_record(self, record_id: str,
                               items: List[Dict[str, Any]]
                               ) -> Optional[CheckinRecord]:
        """向账单追加商品并扣减库存。

        Args:
            record_id: 记录ID。
            items: ``[{"product_id": ..., "quantity": ...}]``。

        Returns:
            更新后的记录；记录不可追加或商品不存在返回 None。
        """
        def _do(sess):
            lines = []
            for item in items:
                product = sess.get(Product, item["product_id"])
                if product is None:
                    logger.warning(f"Product not found: {item['product_id']}")
                    return None
                lines.append({"product_id": product.id, "name": product.name,
                              "quantity": int(item.get("quantity", 1)),
                              "price": product.price})
            record = self.checkins.add_products(record_id, lines, session=sess)
            if record is None:
                return None
            for line in lines:
                self.products.update_stock(line["product_id"],
                                           -line["quantity"], session=sess)
            return record

        return self._transaction(_do)

    def add_plans_to_tab(self, record_id: str, plan_ids: List[str],
                         today: Optional[date] = None) -> OperationResult:
        """将套餐记入当日账单；会员记录同时以“记账”方式更新会员账本。"""
        def _do(sess):
            plans = self.price_plans.get_many(plan_ids, session=sess)
            if not plans:
                return OperationResult.error("Please select at least one plan.")
            record = self.checkins.add_plans_to_tab(record_id, plans,
                                                    session=sess)
            if record is None:
                return OperationResult.error(
                    "This record can no longer accept new charges.")
            if record.record_type == RecordType.MEMBER.value:
                self.members.apply_plans(record.gym_number, plans, False,
                                         today=today, session=sess)
            total = sum(p.amount for p in plans)
            return OperationResult.ok(
                f"Added {settings.currency_symbol}{total:.2f} to "
                f"{record.name}'s tab.")

        return self._transaction(_do)

    def add_services_to_walkin(self, record_id: str,
                               plan_ids: List[str]) -> Optional[CheckinRecord]:
        def _do(sess):
            plans = self.price_plans.get_many(plan_ids, session=sess)
            return self.checkins.add_services_to_walkin(record_id, plans,
                                                        session=sess)

        return self._transaction(_do)

    def add_service_payment_to_pending_member(self, member_id: str,
                                              plan_id: str,
                                              today: Optional[date] = None
                                              ) -> OperationResult:
        """待处理会员签到时当场付清一项服务：应用套餐并确认签到。"""
        def _do(sess):
            plans = self.price_plans.get_many([plan_id], session=sess)
            if not plans:
                return OperationResult.error("Selected plan not found.")
            plan = plans[0]
            record = self.checkins.find_pending_for_member(member_id,
                                                           session=sess)
            if record is None:
                return OperationResult.error(
                    f"Could not find a pending check-in for member {member_id}.")
            if self.members.apply_plans(member_id, [plan], True, today=today,
                                        session=sess) is None:
                return OperationResult.error("Member not found.")
            confirmed = self.checkins.confirm(record.id, {
                "payment_plan": f"Service: {plan.name}",
                "payment_amount": plan.amount,
                "amount_due": plan.amount,
                "amount_paid": plan.amount,
            }, today, session=sess)
            if confirmed is None:
                sess.rollback()
                return OperationResult.error(
                    f"{record.name} is already checked in today.")
            return OperationResult.ok(
                f"Payment for {plan.name} recorded and check-in confirmed "
                f"for {record.name}.")

        return self._transaction(_do)

    def pay_renewals(self, record_id: str, plan_ids: List[str],
                     today: Optional[date] = None) -> OperationResult:
        """会员当场全额续费：更新会员账本并记入账单（余额不变）。"""
        def _do(sess):
            plans = self.price_plans.get_many(plan_ids, session=sess)
            record = sess.get(CheckinRecord, record_id)
            if not plans or record is None:
                return OperationResult.error("Record or plans not found.")
            if record.record_type == RecordType.MEMBER.value:
                self.members.apply_plans(record.gym_number, plans, True,
                                         today=today, session=sess)
            self.checkins.add_renewal_payments(record_id, plans, session=sess)
            return OperationResult.ok(f"Renewal recorded for {record.name}.")

        return self._transaction(_do)

    def pay_partial_dues(self, record_id: str, plan_ids: List[str],
                         amount: float, due_date: date,
                         today: Optional[date] = None) -> OperationResult:
        """会员部分付款续费：剩余金额计入余额并约定还款日。"""
        due_date = parse_date(due_date)
        if due_date is None:
            raise ValueError("A valid balance due date is required")

        def _do(sess):
            plans = self.price_plans.get_many(plan_ids, session=sess)
            record = sess.get(CheckinRecord, record_id)
            if not plans or record is None:
                return OperationResult.error("Record or plans not found.")
            updated = self.checkins.add_partial_dues_payment(
                record_id, plans, amount, due_date, session=sess)
            if updated is None:
                return OperationResult.error("Invalid payment amount.")
            if record.record_type == RecordType.MEMBER.value:
                self.members.apply_plans(record.gym_number, plans, True,
                                         today=today, session=sess)
            return OperationResult.ok(
                f"Partial payment recorded for {record.name}. Remaining "
                f"balance: {settings.currency_symbol}{updated.balance:.2f}.")

        return self._transaction(_do)

    def settle_and_pay(self, record_id: str, amount: float,
                       settled_product_ids: List[str],
                       new_due_date: Optional[date] = None
                       ) -> OperationResult:
        """结算当日账单：记录付款并在客户历史中留痕。"""
        def _do(sess):
            result = self.checkins.process_payment(
                record_id, amount, settled_product_ids, new_due_date,
                session=sess)
            if not result:
                return result
            record = sess.get(CheckinRecord, record_id)
            if record.record_type == RecordType.MEMBER.value:
                self.members.add_payment_history(
                    record.gym_number, amount, "Payment for daily tab.",
                    session=sess)
            elif record.walkin_client_id:
                self.walkins.add_payment_history(
                    record.walkin_client_id, amount, "Payment for daily tab.",
                    session=sess)
            return result

        return self._transaction(_do)

    def complete_coach_session(self, record_id: str,
                               today: Optional[date] = None
                               ) -> OperationResult:
        """教练标记课程完成：扣减会员或散客的课程次数，并标记签到记录。

        每条签到记录最多扣减一次。
        """
        def _do(sess):
            record = sess.get(CheckinRecord, record_id)
            if record is None:
                return OperationResult.error("Check-in record not found.")
            if record.session_completed:
                return OperationResult.info(
                    f"Session already marked complete for {record.name}.")
            if record.record_type == RecordType.MEMBER.value:
                result = self.members.mark_session_complete(
                    record.gym_number, today, session=sess)
            elif record.walkin_client_id:
                result = self.walkins.use_session(
                    record.walkin_client_id, today, session=sess)
            else:
                result = OperationResult.error(
                    "Client does not have a session plan.")
            if result:
                self.checkins.mark_session_completed(record_id, session=sess)
            return result

        return self._transaction(_do)

    # ================================================================
    # 签到机
    # ================================================================

    def kiosk_member_checkin(self, gym_number: str, wants_coach: bool = False,
                             now: Optional[datetime] = None) -> OperationResult:
        """会员在签到机签到。

        按推导出的会员状态生成待处理记录：正常会员为 ``check-in``，
        冻结会员为 ``unfreeze``，其余（停用、到期、课程用完）为 ``payment``。
        """
        now = now or datetime.now()
        today = now.date()

        def _do(sess):
            member = self.members.find_by_gym_number(gym_number, session=sess)
            if member is None:
                return OperationResult.error(
                    "Member not found. Please see the front desk for assistance.")
            if self.checkins.get_active_for_client(
                    RecordType.MEMBER.value, member.id, today,
                    session=sess) is not None:
                return OperationResult.info(
                    f"{member.name} is already checked in. Please request "
                    f"checkout when leaving.")
            if self.checkins.find_pending_for_member(
                    member.id, today, session=sess) is not None:
                return OperationResult.info(
                    f"A request for {member.name} is already waiting for the "
                    f"front desk.")

            status = derive_member_status(member, today)
            draft = {
                "record_type": RecordType.MEMBER.value,
                "name": member.name,
                "gym_number": member.id,
                "photo_url": member.photo_url,
                "status": RecordStatus.PENDING.value,
            }
            if status == MemberStatus.ACTIVE:
                needs_coach = (wants_coach and bool(member.has_coach)
                               and member.remaining_sessions > 0)
                draft.update(pending_action=PendingAction.CHECK_IN.value,
                             needs_coach=needs_coach,
                             coach_assigned=member.coach_name if needs_coach else None)
                result = OperationResult.ok(
                    f"Check-in request sent for {member.name}. Please wait "
                    f"for front desk confirmation.")
            elif status == MemberStatus.FROZEN:
                draft["pending_action"] = PendingAction.UNFREEZE.value
                result = OperationResult.info(
                    "Unfreeze request sent. Please confirm with the front desk.")
            else:
                draft["pending_action"] = PendingAction.PAYMENT.value
                result = OperationResult.info(
                    f"Welcome, {member.name}! Your membership requires "
                    f"renewal. Please see the front desk.")

            self.checkins.create(draft, now=now, session=sess)
            return result

        return self._transaction(_do)

    def kiosk_walkin_checkin(self, name: str, contact_number: str,
                             client_id: Optional[str] = None,
                             photo_url: Optional[str] = None,
                             now: Optional[datetime] = None
                             ) -> OperationResult:
        """散客在签到机登记到访，生成待付款的待处理记录。"""
        if not (name or "").strip() or not (contact_number or "").strip():
            return OperationResult.error(
                "Please fill in both your name and contact number.")
        now = now or datetime.now()

        def _do(sess):
            if client_id and sess.get(WalkinClient, client_id) is None:
                return OperationResult.error("Walk-in client not found.")
            record = self.checkins.create({
                "record_type": RecordType.WALK_IN.value,
                "name": name.strip(),
                "contact_number": contact_number.strip(),
                "photo_url": photo_url,
                "walkin_client_id": client_id,
                "status": RecordStatus.PENDING.value,
                "pending_action": PendingAction.PAYMENT.value,
                "amount_due": 0,
                "amount_paid": 0,
                "is_new_walkin": client_id is None,
            }, now=now, session=sess)
            if record is None:
                return OperationResult.info(
                    f"{name.strip()} is already checked in today.")
            return OperationResult.ok(
                f"Thank you, {name.strip()}! Please proceed to the front desk.")

        return self._transaction(_do)

    def kiosk_use_walkin_session(self, client_id: str,
                                 now: Optional[datetime] = None
                                 ) -> OperationResult:
        """散客使用课程包签到：生成需要教练的待处理记录。

        次数在教练标记完成时才扣减。
        """
        now = now or datetime.now()

        def _do(sess):
            client = sess.get(WalkinClient, client_id)
            if client is None or not client.session_plan_name:
                return OperationResult.error(
                    "Client does not have a session plan.")
            if (client.session_plan_used or 0) >= (client.session_plan_total or 0):
                return OperationResult.error(
                    "No sessions remaining. Please purchase a new plan.")
            record = self.checkins.create({
                "record_type": RecordType.WALK_IN.value,
                "name": client.name,
                "contact_number": client.contact_number,
                "photo_url": client.photo_url,
                "walkin_client_id": client.id,
                "status": RecordStatus.PENDING.value,
                "pending_action": PendingAction.CHECK_IN.value,
                "payment_plan": f"Use Session: {client.session_plan_name}",
                "payment_amount": 0,
                "amount_due": 0,
                "needs_coach": True,
                "coach_assigned": self.classes.coach_name_for_class(
                    client.session_plan_name, session=sess),
            }, now=now, session=sess)
            if record is None:
                return OperationResult.info(
                    f"{client.name} is already checked in today.")
            return OperationResult.ok(
                f"Session request sent for {client.name}. Please wait for "
                f"front desk confirmation.")

        return self._transaction(_do)

    def kiosk_request_checkout(self, query: str,
                               now: Optional[datetime] = None
                               ) -> OperationResult:
        """按会员编号或姓名查找今天在馆的记录并请求离场。"""
        now = now or datetime.now()
        text = query.strip().lower()
        gym_number = f"g-{text}" if text.isdigit() else text

        def _do(sess):
            active = self.checkins.get_active(now.date(), session=sess)
            record = next(
                (r for r in active
                 if (r.gym_number or "").lower() == gym_number
                 or (text and text in r.name.lower())),
                None)
            if record is None:
                return OperationResult.error(
                    "No active check-in found. Please see the front desk.")
            if not self.checkins.request_checkout(record.id, session=sess):
                return OperationResult.info(
                    f"A checkout request for {record.name} is already pending.")
            return OperationResult.ok(
                f"Checkout request sent for {record.name}. Please see the "
                f"front desk.")

        return self._transaction(_do)

    # ================================================================
    # 便捷查询方法
    # ================================================================

    def get_member_status(self, member_id: str,
                          today: Optional[date] = None
                          ) -> Optional[MemberStatus]:
        member = self.members.get(member_id)
        if member is None:
            return None
        return derive_member_status(member, today)

    def get_member_alerts(self, member_id: str,
                          today: Optional[date] = None) -> List[str]:
        """获取会员提醒（含签到记录中的未结欠款）。"""
        member = self.members.get(member_id)
        if member is None:
            return []
        balance = self.checkins.client_open_balance(
            RecordType.MEMBER.value, member_id)
        return member_alerts(member, balance, today)

    def get_member_list(self, today: Optional[date] = None
                        ) -> List[Dict[str, Any]]:
        """获取会员列表（状态为推导结果）。

        Returns:
            会员信息字典列表。
        """
        today = today_or(today)
        return [
            {
                "id": m.id,
                "name": m.name,
                "status": derive_member_status(m, today).label,
                "membership_type": m.membership_type,
                "due_date": to_ymd(m.due_date),
                "coach_name": m.coach_name,
                "remaining_sessions": m.remaining_sessions if m.has_coach else None,
            }
            for m in self.members.list_all()
        ]

    def get_daily_records(self, target_date) -> List[Dict[str, Any]]:
        """获取指定日期的签到记录。

        Args:
            target_date: 日期，支持 ``YYYY-MM-DD`` 字符串或 date 对象。

        Returns:
            记录字典列表。

        Raises:
            ValueError: 日期无法解析。
        """
        parsed = parse_date(target_date)
        if parsed is None:
            raise ValueError(f"Invalid date: {target_date!r}")
        return [self._record_dict(r) for r in self.checkins.get_by_date(parsed)]

    def get_open_balances(self) -> List[Dict[str, Any]]:
        """获取所有未结清账单（按还款日排序）。"""
        return [self._record_dict(r) for r in self.checkins.get_open_balances()]

    @staticmethod
    def _record_dict(record: CheckinRecord) -> Dict[str, Any]:
        return {
            "id": record.id,
            "timestamp": record.timestamp.isoformat(timespec="seconds"),
            "type": record.record_type,
            "name": record.name,
            "client_id": record.client_id,
            "status": record.status,
            "pending_action": record.pending_action,
            "payment_plan": record.payment_plan,
            "amount_due": record.amount_due,
            "amount_paid": record.amount_paid,
            "balance": record.balance,
            "carried_over_balance": record.carried_over_balance or 0,
            "balance_due_date": to_ymd(record.balance_due_date) or None,
            "checked_out": record.checkout_timestamp is not None,
        }

    def add_member_note(self, member_id: str, title: str,
                        details: Optional[str] = None) -> Optional[Member]:
        """为会员添加一条备注历史。"""
        def _do(sess):
            member = sess.get(Member, member_id)
            if member is None:
                return None
            add_history(member, HistoryEntryType.NOTE, title, details)
            return member

        return self._transaction(_do)
