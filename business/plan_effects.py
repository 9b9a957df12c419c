"""价目表套餐效果 —— 套餐购买后对会员账本产生的影响。

每个套餐在新增或编辑时通过 :func:`infer_plan_effect` 计算一次效果，
结果作为显式字段保存在套餐上，购买时直接按效果分派，不再重复解析名称：

- ``renewal``: 会籍续费，按自然月/天顺延到期日
- ``session_grant``: 增加私教/课程次数
- ``locker_extension``: 储物柜续租一个月
- ``fee_extension``: 年度会籍费顺延一年
- ``none``: 无会籍影响（如散客日票）
"""
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional


class PlanType(str, Enum):
    """套餐类别（用于展示分组）"""
    MEMBER = "member"
    WALK_IN = "walk-in"
    COACH = "coach"
    CLASS = "class"


class PlanEffect(str, Enum):
    """套餐效果"""
    RENEWAL = "renewal"
    SESSION_GRANT = "session_grant"
    LOCKER_EXTENSION = "locker_extension"
    FEE_EXTENSION = "fee_extension"
    NONE = "none"


@dataclass(frozen=True)
class PlanEffectSpec:
    """套餐效果及其参数。

    Attributes:
        effect: 效果类型。
        months: 续费顺延的月数（renewal / locker / fee）。
        days: 续费顺延的天数（按天续费的套餐）。
        session_count: 增加的课程次数（session_grant）。
        membership_type_override: 续费后改写的会籍类型（如 ``NO MF``）。
        training_type: 课程套餐对应的训练类型。
    """
    effect: PlanEffect
    months: int = 0
    days: int = 0
    session_count: int = 0
    membership_type_override: Optional[str] = None
    training_type: Optional[str] = None


_SESSION_COUNT = re.compile(r"(\d+)\s*SESSION", re.IGNORECASE)

# 按名称关键字识别续费周期，顺序即优先级
_RENEWAL_KEYWORDS = (
    ("yearly", 12, 0, None),
    ("6 months", 6, 0, None),
    ("3 months", 3, 0, None),
    ("no mf", 1, 0, "NO MF"),
    ("monthly", 1, 0, None),
    ("daily", 0, 1, None),
)

_TRAINING_TYPES = (
    ("boxing", "Boxing Training"),
    ("muaythai", "Muaythai Training"),
    ("taekwondo", "Taekwondo Training"),
    ("pt -", "Loss Weight/Circuit Training"),
)


def session_count_from_name(name: str, default: int = 1) -> int:
    """从套餐名称中提取次数，如 ``PT - 6 Sessions`` 得到 6。"""
    match = _SESSION_COUNT.search(name or "")
    return int(match.group(1)) if match else default


def training_type_from_name(name: str) -> Optional[str]:
    lowered = (name or "").lower()
    for keyword, training_type in _TRAINING_TYPES:
        if keyword in lowered:
            return training_type
    return None


def infer_plan_effect(name: str, plan_type: str) -> PlanEffectSpec:
    """根据套餐名称和类别推断套餐效果。

    Args:
        name: 套餐名称。
        plan_type: 套餐类别（member / walk-in / coach / class）。

    Returns:
        PlanEffectSpec 对象。
    """
    lowered = (name or "").lower()
    plan_type = PlanType(plan_type).value

    is_session_plan = plan_type == PlanType.COACH.value or (
        plan_type == PlanType.CLASS.value and "session" in lowered
    )
    if is_session_plan:
        return PlanEffectSpec(
            effect=PlanEffect.SESSION_GRANT,
            session_count=session_count_from_name(name),
            training_type=training_type_from_name(name),
        )

    # 散客次卡（名称含 N Sessions）作为散客课程包
    if plan_type == PlanType.WALK_IN.value and "sessions" in lowered:
        count = session_count_from_name(name, default=0)
        if count > 0:
            return PlanEffectSpec(
                effect=PlanEffect.SESSION_GRANT, session_count=count,
                training_type=training_type_from_name(name),
            )
    if plan_type == PlanType.WALK_IN.value:
        return PlanEffectSpec(effect=PlanEffect.NONE)

    if "locker rental" in lowered:
        return PlanEffectSpec(effect=PlanEffect.LOCKER_EXTENSION, months=1)
    if "membership fee" in lowered:
        return PlanEffectSpec(effect=PlanEffect.FEE_EXTENSION, months=12)

    for keyword, months, days, type_override in _RENEWAL_KEYWORDS:
        if keyword in lowered:
            return PlanEffectSpec(
                effect=PlanEffect.RENEWAL, months=months, days=days,
                membership_type_override=type_override,
            )

    return PlanEffectSpec(effect=PlanEffect.NONE)
