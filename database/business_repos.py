"""业务记录仓库 —— 会员、散客与签到账单的数据访问层。

管理系统中的三个账本：

- 会员账本：续费、课程包、储物柜、年费，以及历史记录
- 散客账本：联系方式、最近到访、可选的单一课程包
- 签到记录账本（核心）：每次到访一条记录，承载当日账单的
  应付/已付/余额、前次欠款结转、明细与离场流程

所有修改签到记录金额的方法都会重新计算 ``balance = amount_due - amount_paid``，
并在余额不为正时清除欠款还款日。
"""
import re
from typing import Optional, List, Dict, Any, Iterable
from datetime import date, datetime, time, timedelta
from sqlalchemy import func
from sqlalchemy.orm import Session
from loguru import logger

from business.dates import (
    add_days, add_months, extend_from, format_display,
    is_past_or_today, parse_date, today_or,
)
from business.plan_effects import PlanEffect, PlanType, session_count_from_name
from business.results import OperationResult
from business.confirmation import (
    plan_confirmation_effects, RegisterWalkinClient,
    RecordWalkinVisit, AttachWalkinSessionPlan,
)
from config.settings import settings
from .base_crud import BaseCRUD, generate_id, round_money
from .connection import DatabaseConnection
from .entity_repos import PricePlanRepository, ClassRepository
from .models import (
    Member, WalkinClient, CheckinRecord, PricePlan,
    HistoryEntryType, MemberStatusValue, RecordType, RecordStatus,
    PendingAction,
)


def add_history(entity, entry_type: HistoryEntryType, title: str,
                details: Optional[str] = None,
                payment_amount: Optional[float] = None) -> None:
    """在会员/散客历史记录最前面插入一条记录。

    JSON 列需要整体赋值新列表，原地修改不会被 ORM 检测到。
    """
    entry = {
        "timestamp": datetime.now().isoformat(timespec="seconds"),
        "type": entry_type.value,
        "title": title,
        "details": details,
        "payment_amount": (
            round_money(payment_amount) if payment_amount is not None else None
        ),
    }
    entity.history = [entry] + list(entity.history or [])


def _day_bounds(day: date):
    start = datetime.combine(day, time.min)
    return start, start + timedelta(days=1)


def _currency(amount: float) -> str:
    return f"{settings.currency_symbol}{amount:.2f}"


# ================================================================
# 会员账本
# ================================================================

def apply_plan_to_member(member: Member, plan: PricePlan, as_payment: bool,
                         start_date: Optional[date] = None,
                         today: Optional[date] = None) -> None:
    """按套餐效果修改会员账本，并记录一条历史。

    Args:
        member: 会员对象（就地修改）。
        plan: 套餐（读取 effect 及其参数）。
        as_payment: True 表示已付款；False 表示记入当日账单，
            历史记录类型为 note 且不带金额。
        start_date: 会员已到期时可指定新周期的起始日。
        today: 参照日期。
    """
    today = today_or(today)
    entry_type = HistoryEntryType.PAYMENT if as_payment else HistoryEntryType.NOTE
    paid = plan.amount if as_payment else None
    effect = PlanEffect(plan.effect or PlanEffect.NONE.value)

    if effect == PlanEffect.SESSION_GRANT:
        sessions_to_add = plan.session_count or 1
        member.has_coach = True
        if plan.training_type:
            member.training_type = plan.training_type

        remaining = (member.total_sessions or 0) - (member.sessions_used or 0)
        expired = (member.session_expiry_date is not None
                   and member.session_expiry_date < today)
        if remaining <= 0 or expired:
            member.total_sessions = sessions_to_add
            member.sessions_used = 0
        else:
            member.total_sessions = (member.total_sessions or 0) + sessions_to_add
        member.session_expiry_date = add_months(
            today, settings.session_plan_validity_months)

        title = ("Coach/Class Plan Purchased" if as_payment
                 else "Coach/Class Plan Added to Tab")
        add_history(member, entry_type, title,
                    f"Plan: {plan.name}. New total sessions: "
                    f"{member.total_sessions}.", paid)

    elif effect == PlanEffect.LOCKER_EXTENSION:
        start = extend_from(member.locker_due_date, today)
        new_due = add_months(start, plan.effect_months or 1)
        member.locker_start_date = member.locker_start_date or today
        member.locker_due_date = new_due
        title = "Locker Rental Paid" if as_payment else "Locker Added to Tab"
        add_history(member, entry_type, title,
                    f"Plan: {plan.name}. New Due Date: "
                    f"{format_display(new_due)}", paid)

    elif effect == PlanEffect.FEE_EXTENSION:
        start = extend_from(member.membership_fee_due_date, today)
        new_due = add_months(start, plan.effect_months or 12)
        member.membership_fee_last_paid = today
        member.membership_fee_due_date = new_due
        title = "Membership Fee Paid" if as_payment else "Fee Added to Tab"
        add_history(member, entry_type, title,
                    f"Plan: {plan.name}. New Due Date: "
                    f"{format_display(new_due)}", paid)

    elif effect == PlanEffect.RENEWAL:
        currently_due = (member.due_date is None
                         or is_past_or_today(member.due_date, today))
        if currently_due:
            period_start = parse_date(start_date) or today
        else:
            period_start = member.due_date

        new_due = add_days(
            add_months(period_start, plan.effect_months or 0),
            plan.effect_days or 0,
        )
        member.status = MemberStatusValue.ACTIVE.value
        member.last_payment_date = today
        member.subscription_start_date = period_start
        member.due_date = new_due
        if plan.membership_type_override:
            member.membership_type = plan.membership_type_override
        title = "Membership Renewed" if as_payment else "Renewal Added to Tab"
        add_history(member, entry_type, title,
                    f"Plan: {plan.name}. New Due Date: "
                    f"{format_display(new_due)}", paid)


class MemberRepository(BaseCRUD):
    """会员 仓库。

    会员编号按 ``G-NNNN`` 顺序分配；套餐购买按套餐效果修改续费、
    课程、储物柜、年费等字段，每个套餐对应一条历史记录。
    """

    def __init__(self, conn: DatabaseConnection) -> None:
        super().__init__(conn)

    def get(self, member_id: str,
            session: Optional[Session] = None) -> Optional[Member]:
        return self.get_by_id(Member, member_id, session=session)

    def list_all(self, session: Optional[Session] = None) -> List[Member]:
        def _query(sess):
            return sess.query(Member).order_by(Member.id).all()

        return self._run(_query, session)

    def search(self, keyword: str,
               session: Optional[Session] = None) -> List[Member]:
        """按姓名或会员编号搜索会员（不区分大小写）。"""
        def _query(sess):
            pattern = f"%{keyword.lower()}%"
            return sess.query(Member).filter(
                func.lower(Member.name).like(pattern)
                | func.lower(Member.id).like(pattern)
            ).order_by(Member.id).all()

        return self._run(_query, session)

    def find_by_gym_number(self, gym_number: str,
                           session: Optional[Session] = None
                           ) -> Optional[Member]:
        """按会员编号查询，支持 ``0001`` 或 ``G-0001``，不区分大小写。"""
        text = gym_number.strip()
        if text.isdigit():
            text = f"G-{text}"

        def _query(sess):
            return sess.query(Member).filter(
                func.lower(Member.id) == text.lower()
            ).first()

        return self._run(_query, session)

    def next_member_id(self, session: Optional[Session] = None) -> str:
        """计算下一个会员编号（现有编号数字后缀最大值加一）。"""
        def _query(sess):
            max_id = 0
            for (member_id,) in sess.query(Member.id).all():
                match = re.search(r"\d+$", member_id)
                if match:
                    max_id = max(max_id, int(match.group()))
            return f"G-{max_id + 1:04d}"

        return self._run(_query, session)

    def enroll(self, member_data: Dict[str, Any],
               plans: Optional[List[PricePlan]] = None,
               start_date: Optional[date] = None,
               today: Optional[date] = None,
               session: Optional[Session] = None) -> Member:
        """新会员入会。

        Args:
            member_data: 会员字段字典（name 必填，其余可选）。
            plans: 入会时一并购买的套餐（可选）。
            start_date: 续费类套餐的周期起始日（可选）。
            today: 入会日期。

        Returns:
            新创建的 Member 对象。

        Raises:
            ValueError: 缺少会员姓名。
        """
        if not (member_data.get("name") or "").strip():
            raise ValueError("Member name is required")
        today = today_or(today)

        def _do(sess):
            data = dict(member_data)
            data.setdefault("status", MemberStatusValue.ACTIVE.value)
            data.setdefault("membership_type", "REGULAR")
            data.update(
                id=self.next_member_id(session=sess),
                membership_start_date=today,
                subscription_start_date=today,
                last_payment_date=today,
                due_date=add_months(today, 1),
                history=[],
            )
            member = Member(**data)
            add_history(member, HistoryEntryType.STATUS_CHANGE,
                        "Member Created",
                        f"Initial Status: {member.status}. Due Date: "
                        f"{format_display(member.due_date)}")
            for plan in plans or []:
                apply_plan_to_member(member, plan, True, start_date, today)
            sess.add(member)
            sess.flush()
            return member

        member = self._run(_do, session)
        logger.info(f"Member enrolled: {member.name} ({member.id})")
        return member

    def update(self, member_id: str, fields: Dict[str, Any],
               plans: Optional[List[PricePlan]] = None,
               start_date: Optional[date] = None,
               today: Optional[date] = None,
               session: Optional[Session] = None) -> Optional[Member]:
        """更新会员资料，并可同时购买套餐。

        人工修改状态或更换班级时会写入历史记录。

        Returns:
            更新后的 Member 对象，会员不存在返回 None。
        """
        def _do(sess):
            member = sess.get(Member, member_id)
            if member is None:
                logger.warning(f"Member not found for update: {member_id}")
                return None

            new_status = fields.get("status")
            if new_status and new_status.lower() != (member.status or "").lower():
                add_history(member, HistoryEntryType.STATUS_CHANGE,
                            "Status Updated",
                            f'Status manually updated from "{member.status}" '
                            f'to "{new_status}"')
            if "class_id" in fields and fields["class_id"] != member.class_id:
                old_name = member.class_name or "Unassigned"
                new_name = fields.get("class_name") or "Unassigned"
                add_history(member, HistoryEntryType.STATUS_CHANGE,
                            "Class Changed",
                            f'Class changed from "{old_name}" to "{new_name}"')

            for key, value in fields.items():
                if key not in ("id", "history"):
                    setattr(member, key, value)
            for plan in plans or []:
                apply_plan_to_member(member, plan, True, start_date, today)
            sess.flush()
            return member

        return self._run(_do, session)

    def apply_plans(self, member_id: str, plans: List[PricePlan],
                    as_payment: bool = True,
                    start_date: Optional[date] = None,
                    today: Optional[date] = None,
                    session: Optional[Session] = None) -> Optional[Member]:
        """为会员应用一组套餐。

        Args:
            member_id: 会员编号。
            plans: 套餐列表。
            as_payment: 是否已付款（False 表示记入账单）。
            start_date: 已到期时续费周期的起始日（可选）。
            today: 参照日期。

        Returns:
            更新后的 Member 对象，会员不存在返回 None。
        """
        def _do(sess):
            member = sess.get(Member, member_id)
            if member is None:
                logger.warning(f"Member not found for plans: {member_id}")
                return None
            for plan in plans:
                apply_plan_to_member(member, plan, as_payment, start_date, today)
            sess.flush()
            return member

        member = self._run(_do, session)
        if member is not None:
            logger.info(
                f"Applied {len(plans)} plan(s) to {member_id} "
                f"({'payment' if as_payment else 'tab'})"
            )
        return member

    def renew(self, member_id: str, plan_name: str, amount: float,
              today: Optional[date] = None,
              session: Optional[Session] = None) -> Optional[Member]:
        """按付款说明续费（套餐效果由名称推断）。"""
        plan = PricePlan(
            id="", name=plan_name, amount=round_money(amount),
            plan_type=PlanType.MEMBER.value,
            **PricePlanRepository._effect_fields(plan_name, PlanType.MEMBER.value),
        )
        return self.apply_plans(member_id, [plan], True, today=today,
                                session=session)

    def use_session(self, member_id: str,
                    session: Optional[Session] = None) -> bool:
        """扣减一次课程。

        Returns:
            扣减成功返回 True；会员不存在、没有教练计划或次数已用完返回 False。
        """
        def _do(sess):
            member = sess.get(Member, member_id)
            if member is None or not member.has_coach:
                return False
            used, total = member.sessions_used or 0, member.total_sessions or 0
            if used >= total:
                return False
            member.sessions_used = used + 1
            add_history(member, HistoryEntryType.SESSION_UPDATE, "Session Used",
                        f"1 session used. {total - used - 1} remaining.")
            sess.flush()
            return True

        return self._run(_do, session)

    def mark_session_complete(self, member_id: str,
                              today: Optional[date] = None,
                              session: Optional[Session] = None
                              ) -> OperationResult:
        """教练标记一次课程完成。

        - 课程包已过期：提示过期，未停用的会员改为 Inactive 并清零次数
        - 没有教练计划或总次数为 0：返回错误，不修改
        - 次数已用完：提示无剩余，状态改为 Sessions
        - 否则扣减一次，最后一次时状态改为 Sessions

        Returns:
            OperationResult。
        """
        def _do(sess):
            member = sess.get(Member, member_id)
            if member is None:
                return OperationResult.error("Member not found.")

            total = member.total_sessions or 0
            used = member.sessions_used or 0

            if is_past_or_today(member.session_expiry_date, today):
                if (member.status or "").lower() != "inactive":
                    member.status = MemberStatusValue.INACTIVE.value
                    member.total_sessions = 0
                    member.sessions_used = 0
                    add_history(member, HistoryEntryType.STATUS_CHANGE,
                                "Sessions Expired",
                                f"Coaching sessions expired on "
                                f"{format_display(member.session_expiry_date)}.")
                    sess.flush()
                return OperationResult.info(
                    f"{member.name}'s sessions have expired. Please ask them "
                    f"to purchase a new package.")

            if not member.has_coach or total <= 0:
                return OperationResult.error(
                    f"{member.name} does not have an active coaching plan.")

            if used >= total:
                if (member.status or "").lower() != "sessions":
                    member.status = MemberStatusValue.SESSIONS.value
                    add_history(member, HistoryEntryType.STATUS_CHANGE,
                                "Sessions Finished",
                                "No remaining sessions. Status updated.")
                    sess.flush()
                return OperationResult.info(
                    f"{member.name} has no remaining sessions to use.")

            used += 1
            remaining = total - used
            member.sessions_used = used
            add_history(member, HistoryEntryType.SESSION_UPDATE,
                        "Session Marked Complete",
                        f"1 session used. {remaining} remaining.")
            if used >= total:
                member.status = MemberStatusValue.SESSIONS.value
                add_history(member, HistoryEntryType.STATUS_CHANGE,
                            "Sessions Finished",
                            "Completed all available coaching sessions.")
                sess.flush()
                return OperationResult.ok(
                    f"{member.name} has completed all available sessions. "
                    f"Please ask if they would like to renew their package.")
            sess.flush()
            return OperationResult.ok(
                f"Session marked as complete for {member.name}. "
                f"{remaining} sessions remaining.")

        result = self._run(_do, session)
        log = logger.info if result.success else logger.warning
        log(f"Session completion for {member_id}: {result.message}")
        return result

    def unfreeze(self, member_id: str, today: Optional[date] = None,
                 session: Optional[Session] = None) -> Optional[Member]:
        """解冻会员：到期日 = 今天 + 冻结时剩余天数（无记录时 30 天）。

        Returns:
            更新后的 Member 对象；会员不存在或未冻结返回 None。
        """
        today = today_or(today)

        def _do(sess):
            member = sess.get(Member, member_id)
            if member is None or (member.status or "").lower() != "frozen":
                logger.warning(f"Member {member_id} is not frozen")
                return None
            days = member.days_remaining_on_freeze or 0
            new_due = add_days(today, days if days > 0 else 30)
            member.status = MemberStatusValue.ACTIVE.value
            member.due_date = new_due
            member.days_remaining_on_freeze = 0
            add_history(member, HistoryEntryType.STATUS_CHANGE,
                        "Account Unfrozen",
                        f"New Due Date: {format_display(new_due)}")
            sess.flush()
            return member

        return self._run(_do, session)

    def add_payment_history(self, member_id: str, amount: float, notes: str,
                            session: Optional[Session] = None
                            ) -> Optional[Member]:
        """记录一笔付款历史（不修改账本字段）。"""
        def _do(sess):
            member = sess.get(Member, member_id)
            if member is None:
                return None
            add_history(member, HistoryEntryType.PAYMENT, "Payment Made",
                        notes, amount)
            sess.flush()
            return member

        return self._run(_do, session)

    def bulk_upsert(self, members: Iterable[Dict[str, Any]],
                    session: Optional[Session] = None) -> int:
        """批量导入会员，编号已存在则覆盖。

        Returns:
            写入的会员数量。
        """
        def _do(sess):
            count = 0
            for data in members:
                member = sess.get(Member, data["id"])
                if member is None:
                    member = Member(id=data["id"], history=[])
                    sess.add(member)
                for key, value in data.items():
                    if key != "id":
                        setattr(member, key, value)
                count += 1
            sess.flush()
            return count

        count = self._run(_do, session)
        logger.info(f"Imported {count} member(s)")
        return count

    def delete(self, member_id: str,
               session: Optional[Session] = None) -> bool:
        return self.delete_by_id(Member, member_id, session=session)


# ================================================================
# 散客账本
# ================================================================

class WalkinClientRepository(BaseCRUD):
    """散客 仓库。

    散客没有周期会籍，只维护联系方式、最近到访和单一课程包。
    """

    def __init__(self, conn: DatabaseConnection) -> None:
        super().__init__(conn)

    def get(self, client_id: str,
            session: Optional[Session] = None) -> Optional[WalkinClient]:
        return self.get_by_id(WalkinClient, client_id, session=session)

    def list_all(self, session: Optional[Session] = None
                 ) -> List[WalkinClient]:
        def _query(sess):
            return sess.query(WalkinClient).order_by(
                WalkinClient.created_at.desc()).all()

        return self._run(_query, session)

    def search(self, keyword: str,
               session: Optional[Session] = None) -> List[WalkinClient]:
        """按姓名或电话搜索散客。"""
        def _query(sess):
            pattern = f"%{keyword.lower()}%"
            return sess.query(WalkinClient).filter(
                func.lower(WalkinClient.name).like(pattern)
                | WalkinClient.contact_number.like(pattern)
            ).all()

        return self._run(_query, session)

    def register(self, name: str, contact_number: str = "",
                 photo_url: Optional[str] = None,
                 last_visit: Optional[date] = None,
                 session_plan_name: Optional[str] = None,
                 session_plan_total: Optional[int] = None,
                 session: Optional[Session] = None) -> WalkinClient:
        """登记新散客，可同时挂载课程包。

        Returns:
            新创建的 WalkinClient 对象。
        """
        def _do(sess):
            client = WalkinClient(
                id=generate_id("walkin"), name=name,
                contact_number=contact_number or "", photo_url=photo_url,
                last_visit=last_visit, history=[],
            )
            add_history(client, HistoryEntryType.STATUS_CHANGE,
                        "Client Created",
                        f"Client profile created for {name}.")
            if session_plan_name:
                client.session_plan_name = session_plan_name
                client.session_plan_total = session_plan_total or 0
                client.session_plan_used = 0
                add_history(client, HistoryEntryType.PAYMENT,
                            "Session Plan Added",
                            f"Initial plan: {session_plan_name} "
                            f"({client.session_plan_total} sessions).")
            sess.add(client)
            sess.flush()
            return client

        client = self._run(_do, session)
        logger.info(f"Walk-in client registered: {client.name} ({client.id})")
        return client

    def update(self, client_id: str, session: Optional[Session] = None,
               **fields) -> Optional[WalkinClient]:
        """更新散客资料，写入一条通用的资料更新历史。"""
        def _do(sess):
            client = sess.get(WalkinClient, client_id)
            if client is None:
                logger.warning(f"Walk-in client not found: {client_id}")
                return None
            for key, value in fields.items():
                if key not in ("id", "history"):
                    setattr(client, key, value)
            add_history(client, HistoryEntryType.STATUS_CHANGE,
                        "Client Details Updated",
                        "Profile information was modified.")
            sess.flush()
            return client

        return self._run(_do, session)

    def set_session_plan(self, client_id: str, name: Optional[str],
                         total: int = 0,
                         session: Optional[Session] = None
                         ) -> Optional[WalkinClient]:
        """挂载全新的课程包（已用次数归零）；``name`` 为空时移除课程包。"""
        def _do(sess):
            client = sess.get(WalkinClient, client_id)
            if client is None:
                logger.warning(f"Walk-in client not found: {client_id}")
                return None
            client.session_plan_name = name or None
            client.session_plan_total = total if name else None
            client.session_plan_used = 0 if name else None
            client.session_plan_last_used = None
            if name:
                add_history(client, HistoryEntryType.PAYMENT,
                            "Session Plan Purchased",
                            f"Plan: {name} ({total} sessions).")
            sess.flush()
            return client

        return self._run(_do, session)

    def use_session(self, client_id: str, today: Optional[date] = None,
                    session: Optional[Session] = None) -> OperationResult:
        """散客使用一次课程包。

        Returns:
            OperationResult；没有课程包或次数已用完时失败且不修改。
        """
        today = today_or(today)

        def _do(sess):
            client = sess.get(WalkinClient, client_id)
            if client is None:
                return OperationResult.error("Walk-in client not found.")
            if not client.session_plan_name:
                return OperationResult.error(
                    "Client does not have a session plan.")
            used = client.session_plan_used or 0
            total = client.session_plan_total or 0
            if used >= total:
                return OperationResult.error("No sessions remaining.")

            client.session_plan_used = used + 1
            client.session_plan_last_used = today
            client.last_visit = today
            remaining = total - used - 1
            add_history(client, HistoryEntryType.SESSION_UPDATE,
                        "Session Used",
                        f"1 session used. {remaining} sessions remaining.")
            sess.flush()
            return OperationResult.ok(
                f"Session used for {client.name}. "
                f"{remaining} sessions remaining.")

        result = self._run(_do, session)
        log = logger.info if result.success else logger.warning
        log(f"Walk-in session use for {client_id}: {result.message}")
        return result

    def add_payment_history(self, client_id: str, amount: float, notes: str,
                            session: Optional[Session] = None
                            ) -> Optional[WalkinClient]:
        def _do(sess):
            client = sess.get(WalkinClient, client_id)
            if client is None:
                return None
            add_history(client, HistoryEntryType.PAYMENT, "Payment Made",
                        notes, amount)
            sess.flush()
            return client

        return self._run(_do, session)

    def delete(self, client_id: str,
               session: Optional[Session] = None) -> bool:
        return self.delete_by_id(WalkinClient, client_id, session=session)


# ================================================================
# 签到记录账本
# ================================================================

def _set_amounts(record: CheckinRecord, amount_due: float,
                 amount_paid: float) -> None:
    """写入应付/已付并重新计算余额；余额不为正时清除还款日。"""
    record.amount_due = round_money(amount_due)
    record.amount_paid = round_money(amount_paid)
    record.balance = round_money(record.amount_due - record.amount_paid)
    if record.balance <= 0:
        record.balance_due_date = None


def _plan_line_items(plans: List[PricePlan]) -> List[Dict[str, Any]]:
    return [
        {"item_id": generate_id("item"), "product_id": p.id, "name": p.name,
         "quantity": 1, "price": round_money(p.amount)}
        for p in plans
    ]


def _join_plan_text(current: Optional[str], addition: str) -> str:
    return " + ".join(part for part in (current, addition) if part)


class CheckinRecordRepository(BaseCRUD):
    """签到记录 仓库（核心账本）。

    状态流转：Pending → Confirmed / Cancelled；
    Confirmed → 请求离场（pending_action=checkout）→ 已离场。

    确认散客记录时会新建或更新散客档案，这些写入与记录本身的
    修改在同一个会话中完成。
    """

    def __init__(self, conn: DatabaseConnection,
                 walkin_repo: WalkinClientRepository,
                 class_repo: ClassRepository) -> None:
        super().__init__(conn)
        self._walkins = walkin_repo
        self._classes = class_repo

    # ---------------- 查询 ----------------

    def get(self, record_id: str,
            session: Optional[Session] = None) -> Optional[CheckinRecord]:
        return self.get_by_id(CheckinRecord, record_id, session=session)

    def list_all(self, session: Optional[Session] = None
                 ) -> List[CheckinRecord]:
        def _query(sess):
            return sess.query(CheckinRecord).order_by(
                CheckinRecord.timestamp.desc()).all()

        return self._run(_query, session)

    def get_by_date(self, target_date: date,
                    session: Optional[Session] = None
                    ) -> List[CheckinRecord]:
        """查询指定日期创建的记录。"""
        start, end = _day_bounds(target_date)

        def _query(sess):
            return sess.query(CheckinRecord).filter(
                CheckinRecord.timestamp >= start,
                CheckinRecord.timestamp < end,
            ).order_by(CheckinRecord.timestamp.desc()).all()

        return self._run(_query, session)

    def get_pending(self, session: Optional[Session] = None
                    ) -> List[CheckinRecord]:
        return self.get_all(
            CheckinRecord, filters={"status": RecordStatus.PENDING.value},
            session=session
        )

    def find_pending_for_member(self, gym_number: str,
                                target_date: Optional[date] = None,
                                session: Optional[Session] = None
                                ) -> Optional[CheckinRecord]:
        """查询会员最近的待处理记录；给出日期时只查当天创建的记录。"""
        def _query(sess):
            query = sess.query(CheckinRecord).filter(
                CheckinRecord.gym_number == gym_number,
                CheckinRecord.status == RecordStatus.PENDING.value,
            )
            if target_date is not None:
                start, end = _day_bounds(target_date)
                query = query.filter(CheckinRecord.timestamp >= start,
                                     CheckinRecord.timestamp < end)
            return query.order_by(CheckinRecord.timestamp.desc()).first()

        return self._run(_query, session)

    @staticmethod
    def _client_filter(record_type: str, client_id: str):
        if RecordType(record_type) == RecordType.MEMBER:
            return CheckinRecord.gym_number == client_id
        return CheckinRecord.walkin_client_id == client_id

    def get_active(self, target_date: date,
                   session: Optional[Session] = None) -> List[CheckinRecord]:
        """查询指定日期仍在馆内的记录（已确认且未离场）。"""
        start, end = _day_bounds(target_date)

        def _query(sess):
            return sess.query(CheckinRecord).filter(
                CheckinRecord.status == RecordStatus.CONFIRMED.value,
                CheckinRecord.checkout_timestamp.is_(None),
                CheckinRecord.timestamp >= start,
                CheckinRecord.timestamp < end,
            ).order_by(CheckinRecord.timestamp).all()

        return self._run(_query, session)

    def get_active_for_client(self, record_type: str, client_id: str,
                              target_date: date,
                              session: Optional[Session] = None
                              ) -> Optional[CheckinRecord]:
        start, end = _day_bounds(target_date)

        def _query(sess):
            return sess.query(CheckinRecord).filter(
                self._client_filter(record_type, client_id),
                CheckinRecord.status == RecordStatus.CONFIRMED.value,
                CheckinRecord.checkout_timestamp.is_(None),
                CheckinRecord.timestamp >= start,
                CheckinRecord.timestamp < end,
            ).first()

        return self._run(_query, session)

    def get_open_balances(self, session: Optional[Session] = None
                          ) -> List[CheckinRecord]:
        """查询所有未结清（余额为正）的记录，按还款日排序。"""
        def _query(sess):
            return sess.query(CheckinRecord).filter(
                CheckinRecord.balance > 0,
                CheckinRecord.status != RecordStatus.CANCELLED.value,
            ).order_by(CheckinRecord.balance_due_date,
                       CheckinRecord.timestamp).all()

        return self._run(_query, session)

    def client_open_balance(self, record_type: str, client_id: str,
                            session: Optional[Session] = None) -> float:
        """客户所有记录的未结欠款合计。"""
        def _query(sess):
            total = sess.query(func.sum(CheckinRecord.balance)).filter(
                self._client_filter(record_type, client_id),
                CheckinRecord.balance > 0,
                CheckinRecord.status != RecordStatus.CANCELLED.value,
            ).scalar()
            return round_money(total)

        return self._run(_query, session)

    # ---------------- 创建与确认 ----------------

    def create(self, draft: Dict[str, Any], now: Optional[datetime] = None,
               session: Optional[Session] = None) -> Optional[CheckinRecord]:
        """创建签到记录。

        创建前汇总该客户已离场且仍有欠款的旧记录，作为
        ``carried_over_balance`` 计入新记录的应付与余额，旧记录的欠款清零
        （应付同步减少，转出金额记入 ``carried_forward_balance``）。
        未显式给出应付金额的 Pending 记录，应付 = 套餐金额 + 结转欠款。

        Args:
            draft: 记录字段字典，``record_type`` 必填
                （Member / Walk-in），其余字段可选。
            now: 创建时间，默认当前时间。

        Returns:
            新创建的 CheckinRecord；客户当天已有在馆记录时返回 None。

        Raises:
            ValueError: 记录类型无效。
        """
        record_type = RecordType(draft.get("record_type")).value
        now = now or datetime.now()
        data = {k: v for k, v in draft.items() if k not in ("id", "timestamp")}
        data["record_type"] = record_type
        data.setdefault("status", RecordStatus.PENDING.value)
        client_id = (data.get("gym_number") if record_type == RecordType.MEMBER.value
                     else data.get("walkin_client_id"))

        record_id = generate_id("rec")

        def _do(sess):
            if client_id and data.get("checkout_timestamp") is None:
                active = self.get_active_for_client(
                    record_type, client_id, now.date(), session=sess)
                if active is not None:
                    logger.warning(
                        f"Client {client_id} already has an active record "
                        f"today ({active.id})")
                    return None

            carried = 0.0
            if client_id and data.get("checkout_timestamp") is None:
                previous = sess.query(CheckinRecord).filter(
                    self._client_filter(record_type, client_id),
                    CheckinRecord.checkout_timestamp.isnot(None),
                    CheckinRecord.balance > 0,
                ).all()
                for old in previous:
                    moved = round_money(old.balance)
                    carried += moved
                    old.carried_forward_balance = round_money(
                        (old.carried_forward_balance or 0) + moved)
                    old.carried_forward_to = record_id
                    _set_amounts(old, old.amount_due - moved, old.amount_paid)
                carried = round_money(carried)

            payment_amount = round_money(data.get("payment_amount"))
            explicit_due = data.get("amount_due") is not None
            amount_due = data.get("amount_due") if explicit_due else payment_amount
            amount_paid = data.get("amount_paid") or 0
            if carried > 0:
                amount_due = round_money(amount_due) + carried
                if data.get("payment_plan"):
                    data["payment_plan"] = (
                        f"{data['payment_plan']} (+{_currency(carried)} prev bal)")
            if data["status"] == RecordStatus.PENDING.value and not explicit_due:
                amount_due = payment_amount + carried
                amount_paid = 0

            items = [
                {**item, "item_id": item.get("item_id") or generate_id("item")}
                for item in data.pop("products_purchased", None) or []
            ]
            for key in ("amount_due", "amount_paid", "balance",
                        "carried_over_balance", "carried_forward_balance"):
                data.pop(key, None)

            record = CheckinRecord(
                **data,
                id=record_id,
                timestamp=now,
                carried_over_balance=carried,
                carried_forward_balance=0,
                products_purchased=items,
            )
            if record.payment_plan is not None:
                record.payment_amount = payment_amount
            _set_amounts(record, amount_due, amount_paid)
            sess.add(record)
            sess.flush()
            return record

        record = self._run(_do, session)
        if record is not None:
            carry_note = (f", carried over {_currency(record.carried_over_balance)}"
                          if record.carried_over_balance else "")
            logger.info(
                f"Check-in record created: {record.id} {record.record_type} "
                f"'{record.name}' [{record.status}] due "
                f"{_currency(record.amount_due)}{carry_note}")
        return record

    def _apply_confirmation_effect(self, record: CheckinRecord, effect,
                                   sess: Session) -> None:
        if isinstance(effect, RegisterWalkinClient):
            client = self._walkins.register(
                effect.name, effect.contact_number, effect.photo_url,
                effect.last_visit, effect.session_plan_name,
                effect.session_plan_total, session=sess,
            )
            record.walkin_client_id = client.id
        elif isinstance(effect, RecordWalkinVisit):
            self._walkins.update(
                effect.client_id, session=sess, name=effect.name,
                contact_number=effect.contact_number,
                photo_url=effect.photo_url, last_visit=effect.last_visit,
            )
        elif isinstance(effect, AttachWalkinSessionPlan):
            self._walkins.set_session_plan(
                effect.client_id, effect.name, effect.total, session=sess)

    def confirm(self, record_id: str, updates: Optional[Dict[str, Any]] = None,
                today: Optional[date] = None,
                session: Optional[Session] = None) -> Optional[CheckinRecord]:
        """确认待处理记录。

        先合并确认时的字段修改；覆盖 ``amount_due`` 时结转欠款仍叠加在
        新的应付之上。新散客或回访散客（``is_new_walkin``）
        会新建或更新散客档案并挂载课程包。最后状态置为 Confirmed，
        清除 ``is_new_walkin`` 和待处理动作。会员课程不在此处扣次。

        Returns:
            确认后的 CheckinRecord；记录不存在、不是 Pending，
            或客户当天已有在馆记录时返回 None。
        """
        today = today_or(today)

        def _do(sess):
            record = sess.get(CheckinRecord, record_id)
            if record is None:
                logger.warning(f"Check-in record not found: {record_id}")
                return None
            if record.status != RecordStatus.PENDING.value:
                logger.warning(
                    f"Record {record_id} is {record.status}, not Pending")
                return None

            client_id = record.client_id
            if client_id:
                active = self.get_active_for_client(
                    record.record_type, client_id, record.timestamp.date(),
                    session=sess)
                if active is not None:
                    logger.warning(
                        f"Client {client_id} already has an active record "
                        f"({active.id}); not confirming {record_id}")
                    return None

            changes = updates or {}
            for key, value in changes.items():
                if key not in ("id", "amount_due", "amount_paid", "balance",
                               "carried_over_balance"):
                    setattr(record, key, value)
            amount_due = record.amount_due
            if "amount_due" in changes:
                # 结转欠款始终计入应付
                amount_due = (round_money(changes["amount_due"])
                              + (record.carried_over_balance or 0))
            _set_amounts(record, amount_due,
                         changes.get("amount_paid", record.amount_paid))

            for effect in plan_confirmation_effects(record, today):
                self._apply_confirmation_effect(record, effect, sess)

            record.is_new_walkin = False
            record.status = RecordStatus.CONFIRMED.value
            record.pending_action = None
            sess.flush()
            return record

        record = self._run(_do, session)
        if record is not None:
            logger.info(f"Check-in record confirmed: {record.id} '{record.name}'")
        return record

    def cancel(self, record_id: str, reason: str,
               session: Optional[Session] = None) -> Optional[CheckinRecord]:
        """取消待处理记录（必须给出原因）。

        该记录结转来的欠款退回原记录，由客户下一条记录重新结转。
        """
        if not (reason or "").strip():
            logger.warning(f"Cancellation of {record_id} refused: no reason")
            return None

        def _do(sess):
            record = sess.get(CheckinRecord, record_id)
            if record is None or record.status != RecordStatus.PENDING.value:
                logger.warning(f"Record {record_id} cannot be cancelled")
                return None

            carried = round_money(record.carried_over_balance)
            if carried > 0:
                sources = sess.query(CheckinRecord).filter(
                    CheckinRecord.carried_forward_to == record.id).all()
                for old in sources:
                    moved = round_money(old.carried_forward_balance)
                    old.carried_forward_balance = 0
                    old.carried_forward_to = None
                    _set_amounts(old, old.amount_due + moved, old.amount_paid)
                suffix = f" (+{_currency(carried)} prev bal)"
                if record.payment_plan and record.payment_plan.endswith(suffix):
                    record.payment_plan = record.payment_plan[:-len(suffix)]
                record.carried_over_balance = 0
                _set_amounts(record, record.amount_due - carried,
                             record.amount_paid)
                logger.info(f"Carried balance {_currency(carried)} returned "
                            f"to {len(sources)} record(s) from {record_id}")

            record.status = RecordStatus.CANCELLED.value
            record.cancellation_reason = reason.strip()
            record.pending_action = None
            sess.flush()
            return record

        record = self._run(_do, session)
        if record is not None:
            logger.info(f"Check-in record cancelled: {record_id} ({reason})")
        return record

    # ---------------- 离场 ----------------

    def request_checkout(self, record_id: str,
                         session: Optional[Session] = None) -> bool:
        """请求离场：仅限已确认、未离场且没有待处理动作的记录。"""
        def _do(sess):
            record = sess.get(CheckinRecord, record_id)
            if (record is None
                    or record.status != RecordStatus.CONFIRMED.value
                    or record.checkout_timestamp is not None
                    or record.pending_action):
                return False
            record.pending_action = PendingAction.CHECKOUT.value
            sess.flush()
            return True

        success = self._run(_do, session)
        if success:
            logger.info(f"Checkout requested: {record_id}")
        else:
            logger.warning(f"Checkout request refused: {record_id}")
        return success

    def confirm_checkout(self, record_id: str,
                         balance_due_date: Optional[date] = None,
                         now: Optional[datetime] = None,
                         session: Optional[Session] = None
                         ) -> OperationResult:
        """确认离场。

        仍有欠款时必须给出晚于离场当天的还款日，否则拒绝；
        通过后写入离场时间与还款日，清除待处理动作。

        Raises:
            ValueError: 还款日无法解析。
        """
        due_date = parse_date(balance_due_date)
        if balance_due_date is not None and due_date is None:
            raise ValueError(f"Invalid payment date: {balance_due_date!r}")
        checkout_at = now or datetime.now()

        def _do(sess):
            record = sess.get(CheckinRecord, record_id)
            if record is None:
                return OperationResult.error("Check-in record not found.")
            if record.pending_action != PendingAction.CHECKOUT.value:
                return OperationResult.error(
                    f"No pending checkout request for {record.name}.")
            if record.balance > 0 and due_date is None:
                return OperationResult.error(
                    f"Cannot confirm checkout for {record.name}. An "
                    f"outstanding balance of {_currency(record.balance)} must "
                    f"be settled first or a future payment date must be set.")
            if record.balance > 0 and due_date <= checkout_at.date():
                return OperationResult.error(
                    f"The payment date for {record.name} must be after "
                    f"{format_display(checkout_at.date())}.")

            record.checkout_timestamp = checkout_at
            record.pending_action = None
            if record.balance > 0:
                record.balance_due_date = due_date
            else:
                record.balance_due_date = None
            sess.flush()
            return OperationResult.ok(f"{record.name} has been checked out.")

        result = self._run(_do, session)
        log = logger.info if result.success else logger.warning
        log(f"Checkout confirmation for {record_id}: {result.message}")
        return result

    def cancel_pending_checkout(self, record_id: str,
                                session: Optional[Session] = None) -> bool:
        """撤销离场请求，恢复为普通的已确认状态。"""
        def _do(sess):
            record = sess.get(CheckinRecord, record_id)
            if record is None or record.pending_action != PendingAction.CHECKOUT.value:
                return False
            record.pending_action = None
            sess.flush()
            return True

        return self._run(_do, session)

    # ---------------- 账单明细 ----------------

    @staticmethod
    def _is_open(record: Optional[CheckinRecord]) -> bool:
        return (record is not None
                and record.status != RecordStatus.CANCELLED.value
                and record.checkout_timestamp is None)

    def _append_items(self, record_id: str, items: List[Dict[str, Any]],
                      sess: Session) -> Optional[CheckinRecord]:
        record = sess.get(CheckinRecord, record_id)
        if not self._is_open(record):
            logger.warning(f"Record {record_id} is not open for new charges")
            return None
        total = sum(i["price"] * i["quantity"] for i in items)
        record.products_purchased = list(record.products_purchased or []) + items
        _set_amounts(record, record.amount_due + total, record.amount_paid)
        return record

    def add_products(self, record_id: str, products: List[Dict[str, Any]],
                     session: Optional[Session] = None
                     ) -> Optional[CheckinRecord]:
        """向账单追加商品。

        Args:
            record_id: 记录ID。
            products: 商品明细列表，每项含 product_id、name、quantity、price。

        Returns:
            更新后的 CheckinRecord；记录已离场、已取消或不存在返回 None。
        """
        items = [
            {"item_id": generate_id("item"), "product_id": p["product_id"],
             "name": p["name"], "quantity": int(p.get("quantity", 1)),
             "price": round_money(p["price"])}
            for p in products
        ]

        def _do(sess):
            record = self._append_items(record_id, items, sess)
            if record is not None:
                sess.flush()
            return record

        return self._run(_do, session)

    def add_plans_to_tab(self, record_id: str, plans: List[PricePlan],
                         session: Optional[Session] = None
                         ) -> Optional[CheckinRecord]:
        """向账单追加套餐；包含教练套餐时标记需要教练。"""
        def _do(sess):
            record = self._append_items(record_id, _plan_line_items(plans), sess)
            if record is None:
                return None
            if any(p.plan_type == PlanType.COACH.value for p in plans):
                record.needs_coach = True
            sess.flush()
            return record

        return self._run(_do, session)

    def add_services_to_walkin(self, record_id: str, plans: List[PricePlan],
                               session: Optional[Session] = None
                               ) -> Optional[CheckinRecord]:
        """向散客账单追加服务。

        名称含 ``N Sessions`` 的套餐会成为散客的新课程包（新散客先暂存在
        记录上，确认时挂载）；教练/课程类服务标记需要教练，课程服务
        指派该课程班级的教练并记录班级名称。
        """
        def _do(sess):
            record = sess.get(CheckinRecord, record_id)
            if record is None or record.record_type != RecordType.WALK_IN.value:
                logger.warning(f"Record {record_id} is not a walk-in record")
                return None
            record = self._append_items(record_id, _plan_line_items(plans), sess)
            if record is None:
                return None

            session_plan = next(
                (p for p in plans if "sessions" in p.name.lower()), None)
            if session_plan is not None:
                total = session_count_from_name(session_plan.name, default=0)
                if total > 0:
                    if record.walkin_client_id and not record.is_new_walkin:
                        self._walkins.set_session_plan(
                            record.walkin_client_id, session_plan.name, total,
                            session=sess)
                    else:
                        record.session_plan_name = session_plan.name
                        record.session_plan_total = total

            coached = any(
                p.plan_type in (PlanType.COACH.value, PlanType.CLASS.value)
                or any(k in p.name.lower() for k in ("pt", "boxing", "muaythai"))
                for p in plans
            )
            record.needs_coach = bool(record.needs_coach or coached)

            class_plan = next(
                (p for p in plans if p.plan_type == PlanType.CLASS.value), None)
            if class_plan is not None:
                record.class_name = class_plan.name
                coach_name = self._classes.coach_name_for_class(
                    class_plan.name, session=sess)
                if coach_name:
                    record.coach_assigned = coach_name
            sess.flush()
            return record

        return self._run(_do, session)

    def remove_item(self, record_id: str, item_id: str,
                    session: Optional[Session] = None
                    ) -> Optional[CheckinRecord]:
        """删除一条账单明细，应付与余额扣减该行金额。"""
        def _do(sess):
            record = sess.get(CheckinRecord, record_id)
            if record is None:
                return None
            items = list(record.products_purchased or [])
            target = next((i for i in items if i["item_id"] == item_id), None)
            if target is None:
                logger.warning(f"Item {item_id} not found on {record_id}")
                return None
            record.products_purchased = [i for i in items if i is not target]
            _set_amounts(record,
                         record.amount_due - target["price"] * target["quantity"],
                         record.amount_paid)
            sess.flush()
            return record

        return self._run(_do, session)

    # ---------------- 付款 ----------------

    def _pay(self, record_id: str, amount: float,
             new_due_date: Optional[date],
             settled_product_ids: Optional[List[str]],
             session: Optional[Session]) -> OperationResult:
        amount = round_money(amount)

        def _do(sess):
            record = sess.get(CheckinRecord, record_id)
            if record is None:
                return OperationResult.error("Check-in record not found.")
            if amount <= 0 or amount > record.balance:
                return OperationResult.error(
                    f"Payment must be greater than zero and no more than the "
                    f"balance of {_currency(record.balance)}.")

            if settled_product_ids:
                settled = set(settled_product_ids)
                record.products_purchased = [
                    i for i in record.products_purchased or []
                    if i["product_id"] not in settled
                ]
            _set_amounts(record, record.amount_due, record.amount_paid + amount)
            if record.balance > 0:
                record.balance_due_date = parse_date(new_due_date)
            sess.flush()
            return OperationResult.ok(
                f"Payment of {_currency(amount)} recorded for {record.name}. "
                f"Remaining balance: {_currency(record.balance)}.")

        result = self._run(_do, session)
        log = logger.info if result.success else logger.warning
        log(f"Payment on {record_id}: {result.message}")
        return result

    def record_payment(self, record_id: str, amount: float,
                       new_due_date: Optional[date] = None,
                       session: Optional[Session] = None) -> OperationResult:
        """记录一笔付款。

        付款金额须满足 ``0 < amount <= balance``；付款后仍有余额时
        使用新的还款日，结清时清除还款日。
        """
        return self._pay(record_id, amount, new_due_date, None, session)

    def process_payment(self, record_id: str, amount: float,
                        settled_product_ids: List[str],
                        new_due_date: Optional[date] = None,
                        session: Optional[Session] = None) -> OperationResult:
        """结算付款，并从账单中移除已结清的明细。"""
        return self._pay(record_id, amount, new_due_date,
                         settled_product_ids, session)

    def add_renewal_payments(self, record_id: str, plans: List[PricePlan],
                             session: Optional[Session] = None
                             ) -> Optional[CheckinRecord]:
        """记录当场全额付清的续费（应付与已付同时增加，余额不变）。"""
        total = round_money(sum(p.amount for p in plans))
        names = " + ".join(f"Renewal: {p.name}" for p in plans)

        def _do(sess):
            record = sess.get(CheckinRecord, record_id)
            if record is None:
                return None
            record.payment_plan = _join_plan_text(record.payment_plan, names)
            record.payment_amount = round_money(
                (record.payment_amount or 0) + total)
            _set_amounts(record, record.amount_due + total,
                         record.amount_paid + total)
            sess.flush()
            return record

        return self._run(_do, session)

    def add_partial_dues_payment(self, record_id: str, plans: List[PricePlan],
                                 amount: float, due_date: date,
                                 session: Optional[Session] = None
                                 ) -> Optional[CheckinRecord]:
        """记录部分付款的费用：应付增加费用总额，已付增加实付金额。"""
        total = round_money(sum(p.amount for p in plans))
        names = " + ".join(f"Due: {p.name}" for p in plans)
        amount = round_money(amount)

        def _do(sess):
            record = sess.get(CheckinRecord, record_id)
            if record is None:
                return None
            if amount < 0 or amount > record.balance + total:
                logger.warning(f"Partial payment {amount} out of range on {record_id}")
                return None
            record.payment_plan = _join_plan_text(record.payment_plan, names)
            record.payment_amount = round_money(
                (record.payment_amount or 0) + total)
            _set_amounts(record, record.amount_due + total,
                         record.amount_paid + amount)
            if record.balance > 0:
                record.balance_due_date = parse_date(due_date)
            sess.flush()
            return record

        return self._run(_do, session)

    # ---------------- 教练 ----------------

    def assign_coach(self, record_id: str, coach_name: str,
                     session: Optional[Session] = None
                     ) -> Optional[CheckinRecord]:
        return self.update_by_id(CheckinRecord, record_id, session=session,
                                 coach_assigned=coach_name)

    def mark_session_completed(self, record_id: str,
                               session: Optional[Session] = None
                               ) -> Optional[CheckinRecord]:
        return self.update_by_id(CheckinRecord, record_id, session=session,
                                 session_completed=True)
