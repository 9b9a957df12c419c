"""会员状态推导 —— 全系统唯一的会员状态来源。

会员表中的 ``status`` 字段只记录人工设置或账本写入的值，
前台、看板、签到机等所有展示场景都应读取 :func:`derive_member_status`
的结果，而不是各自重新判断。
"""
from datetime import date
from enum import Enum
from typing import List, Optional

from config.settings import settings
from .dates import add_days, format_display, is_past_or_today, today_or

# 这些会籍类型不收取年度会籍费
FEE_EXEMPT_TYPES = ("LIFETIME", "FREE ANNUAL", "NO MF")


class MemberStatus(str, Enum):
    """推导出的会员状态"""
    ACTIVE = "active"
    INACTIVE = "inactive"
    FROZEN = "frozen"
    DUE = "due"
    SESSIONS_FINISHED = "sessions"

    @property
    def label(self) -> str:
        return _LABELS[self]


_LABELS = {
    MemberStatus.ACTIVE: "Active",
    MemberStatus.INACTIVE: "Inactive",
    MemberStatus.FROZEN: "Frozen",
    MemberStatus.DUE: "Due",
    MemberStatus.SESSIONS_FINISHED: "Sessions Finished",
}


def is_fee_exempt(membership_type: Optional[str]) -> bool:
    return (membership_type or "").upper() in FEE_EXEMPT_TYPES


def sessions_finished(member, today: Optional[date] = None) -> bool:
    """有教练计划且课程包已用完或已过期。"""
    if not member.has_coach:
        return False
    total = member.total_sessions or 0
    remaining = total - (member.sessions_used or 0)
    expired = is_past_or_today(member.session_expiry_date, today)
    return (remaining <= 0 and total > 0) or expired


def derive_member_status(member, today: Optional[date] = None,
                         lapsed_days: Optional[int] = None) -> MemberStatus:
    """根据存储的事实推导会员当前状态。

    判断顺序：
    1. 人工设置的 Inactive / Frozen 优先
    2. 到期日早于 ``lapsed_days`` 天之前视为 Inactive
    3. 会籍、年费（豁免类型除外）或储物柜到期（含当天）视为 Due
    4. 有教练计划且课程用完或过期视为 Sessions Finished
    5. 其余为 Active

    Args:
        member: 会员对象（Member 或具有相同属性的对象）。
        today: 参照日期，默认系统当天。
        lapsed_days: 长期未续费阈值，默认取 settings.lapsed_membership_days。

    Returns:
        MemberStatus 枚举值。
    """
    today = today_or(today)
    if lapsed_days is None:
        lapsed_days = settings.lapsed_membership_days

    stored = (member.status or "").lower()
    if stored == MemberStatus.INACTIVE.value:
        return MemberStatus.INACTIVE
    if stored == MemberStatus.FROZEN.value:
        return MemberStatus.FROZEN

    if member.due_date and member.due_date < add_days(today, -lapsed_days):
        return MemberStatus.INACTIVE

    fee_due = (member.membership_fee_due_date is not None
               and is_past_or_today(member.membership_fee_due_date, today)
               and not is_fee_exempt(member.membership_type))
    locker_due = is_past_or_today(member.locker_due_date, today)
    if is_past_or_today(member.due_date, today) or fee_due or locker_due:
        return MemberStatus.DUE

    if sessions_finished(member, today):
        return MemberStatus.SESSIONS_FINISHED

    return MemberStatus.ACTIVE


def member_alerts(member, open_balance: float = 0,
                  today: Optional[date] = None) -> List[str]:
    """生成会员列表中展示的提醒信息。

    Args:
        member: 会员对象。
        open_balance: 该会员在签到记录中的未结欠款合计。
        today: 参照日期。

    Returns:
        提醒文本列表，无提醒时为空列表。
    """
    alerts = []
    currency = settings.currency_symbol

    if ((member.status or "").lower() == MemberStatus.DUE.value
            or is_past_or_today(member.due_date, today)):
        alerts.append(f"Membership overdue ({format_display(member.due_date)})")

    if (is_past_or_today(member.membership_fee_due_date, today)
            and not is_fee_exempt(member.membership_type)):
        alerts.append(
            f"Membership Fee overdue "
            f"({format_display(member.membership_fee_due_date)})"
        )

    if is_past_or_today(member.locker_due_date, today):
        alerts.append(f"Locker overdue ({format_display(member.locker_due_date)})")

    if member.has_coach:
        total = member.total_sessions or 0
        if total > 0 and total - (member.sessions_used or 0) <= 0:
            alerts.append("All coaching sessions have been used.")
        if is_past_or_today(member.session_expiry_date, today):
            alerts.append(
                f"Coaching sessions expired on "
                f"{format_display(member.session_expiry_date)}."
            )

    if open_balance > 0:
        alerts.append(f"Outstanding balance of {currency}{open_balance:.2f}.")

    details = (member.details or "").strip()
    if details:
        suffix = "..." if len(member.details) > 50 else ""
        alerts.append(f"Note: {member.details[:50]}{suffix}")

    return alerts
