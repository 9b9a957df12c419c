"""日期工具 —— 账务与会籍计算所依赖的纯函数。

- 解析多种格式的日期字符串（YYYY-MM-DD / DD-MM-YYYY / DD/MM/YYYY）
- 自然月/自然年的日期加减（月末自动回退到当月最后一天）
- 判断日期是否已到期（早于或等于今天）

所有函数均不访问数据库，``today`` 参数可注入以便测试。
"""
import calendar
import re
from datetime import date, datetime, timedelta
from typing import Optional, Union

DateLike = Union[str, date, datetime, None]

_SEPARATOR = re.compile(r"[-/]")


def parse_date(value: DateLike) -> Optional[date]:
    """将日期值解析为 date 对象。

    字符串按分隔符拆成三段，哪一段大于 1000 即视为年份：
    ``2024-02-05``、``05-02-2024``、``05/02/2024`` 都得到 2024年2月5日。
    不合法的日期（如 2月30日）直接拒绝，而不是顺延到下个月。
    带时间的 ISO 字符串退化为 ``datetime.fromisoformat`` 解析。

    Args:
        value: 日期字符串、date 或 datetime 对象。

    Returns:
        date 对象；空值或无法解析时返回 None。
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    if not text:
        return None

    parts = _SEPARATOR.split(text)
    if len(parts) == 3 and all(p.strip().isdigit() for p in parts):
        first, second, third = (int(p) for p in parts)
        year = month = day = None
        if first > 1000:
            year, month, day = first, second, third
        elif third > 1000:
            day, month, year = first, second, third

        if year is not None:
            try:
                return date(year, month, day)
            except ValueError:
                return None

    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if 1900 < parsed.year < 2100:
        return parsed.date()
    return None


def to_ymd(value: DateLike) -> str:
    """格式化为 ``YYYY-MM-DD``，无法解析时返回空字符串。"""
    parsed = parse_date(value)
    return parsed.isoformat() if parsed else ""


def format_display(value: DateLike) -> str:
    """格式化为 ``Jan 1, 2024`` 形式，无法解析时返回 ``N/A``。"""
    parsed = parse_date(value)
    if not parsed:
        return "N/A"
    return f"{parsed.strftime('%b')} {parsed.day}, {parsed.year}"


def add_days(start: date, days: int) -> date:
    return start + timedelta(days=days)


def add_months(start: date, months: int) -> date:
    """按自然月加减，保留日号；目标月份没有该日时取月末。"""
    month_index = start.month - 1 + months
    year = start.year + month_index // 12
    month = month_index % 12 + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def add_years(start: date, years: int = 1) -> date:
    return add_months(start, years * 12)


def today_or(today: Optional[date] = None) -> date:
    return today or date.today()


def is_past_or_today(value: DateLike, today: Optional[date] = None) -> bool:
    """判断日期是否早于或等于今天（即已到期）。

    Args:
        value: 待判断的日期。
        today: 参照日期，默认为系统当天。

    Returns:
        已到期返回 True；空值或无法解析返回 False。
    """
    parsed = parse_date(value)
    if parsed is None:
        return False
    return parsed <= today_or(today)


def extend_from(current_due: Optional[date], today: date) -> date:
    """续费起算日：现有到期日在未来则从到期日顺延，否则从今天起算。"""
    if current_due and current_due > today:
        return current_due
    return today
