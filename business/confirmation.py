"""签到确认的跨账本效果。

确认一条待处理签到记录时，散客记录可能需要新建或更新散客档案、
重新挂载课程包。这些后续写入不在记录的 setter 里嵌套执行，
而是由 :func:`plan_confirmation_effects` 先算出一组效果对象，
再由签到记录仓库在确认记录的同一个会话里依次落库。
"""
from dataclasses import dataclass
from datetime import date
from typing import List, Optional, Union

from .dates import today_or


@dataclass(frozen=True)
class RegisterWalkinClient:
    """新建散客档案，并将其ID回写到签到记录。"""
    name: str
    contact_number: str
    photo_url: Optional[str]
    last_visit: date
    session_plan_name: Optional[str] = None
    session_plan_total: Optional[int] = None


@dataclass(frozen=True)
class RecordWalkinVisit:
    """更新已有散客的资料和最近到访日期。"""
    client_id: str
    name: str
    contact_number: str
    photo_url: Optional[str]
    last_visit: date


@dataclass(frozen=True)
class AttachWalkinSessionPlan:
    """为已有散客挂载一个全新的课程包（已用次数归零）。"""
    client_id: str
    name: str
    total: int


ConfirmationEffect = Union[
    RegisterWalkinClient, RecordWalkinVisit, AttachWalkinSessionPlan
]


def plan_confirmation_effects(record, today: Optional[date] = None
                              ) -> List[ConfirmationEffect]:
    """计算确认签到记录时需要执行的跨账本效果。

    只有 ``is_new_walkin`` 为真的散客记录才会产生效果；
    会员的课程扣次不在确认时进行，而是在教练标记课程完成时进行。

    Args:
        record: 已合并确认时字段修改的签到记录。
        today: 到访日期，默认系统当天。

    Returns:
        效果对象列表，可能为空。
    """
    if not record.is_new_walkin:
        return []

    visit_day = today_or(today)
    has_plan = bool(record.session_plan_name)

    if record.walkin_client_id:
        effects: List[ConfirmationEffect] = [RecordWalkinVisit(
            client_id=record.walkin_client_id,
            name=record.name,
            contact_number=record.contact_number or "",
            photo_url=record.photo_url,
            last_visit=visit_day,
        )]
        if has_plan:
            effects.append(AttachWalkinSessionPlan(
                client_id=record.walkin_client_id,
                name=record.session_plan_name,
                total=record.session_plan_total or 0,
            ))
        return effects

    return [RegisterWalkinClient(
        name=record.name,
        contact_number=record.contact_number or "",
        photo_url=record.photo_url,
        last_visit=visit_day,
        session_plan_name=record.session_plan_name if has_plan else None,
        session_plan_total=record.session_plan_total if has_plan else None,
    )]
