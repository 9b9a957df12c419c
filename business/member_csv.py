"""会员批量导入/导出（CSV）。

导入时按表头定位各列，缺少必需列直接整体拒绝；数据行逐行校验，
有问题的行记录错误信息并跳过，其余行照常导入。
"""
import csv
import io
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from .dates import parse_date, to_ymd

REQUIRED_HEADERS = [
    "gymnumber", "name", "status", "membershiptype", "details",
    "hascoach", "coachname", "trainingtype",
]

OPTIONAL_HEADERS = [
    "photourl", "joiningdate", "subscriptionstartdate", "duedate",
    "membershipfeelastpaid", "totalsessions", "sessionsused",
    "membershipfeeduedate", "sessionexpirydate", "lockerstartdate",
    "lockerduedate",
]

EXPORT_HEADERS = [
    "gymnumber", "name", "photourl", "status", "membershiptype", "details",
    "hascoach", "coachname", "trainingtype", "joiningdate",
    "subscriptionstartdate", "duedate", "membershipfeelastpaid",
    "totalsessions", "sessionsused", "membershipfeeduedate",
    "sessionexpirydate", "lockerstartdate", "lockerduedate",
]

# CSV 列名 -> Member 日期字段
_DATE_COLUMNS = {
    "joiningdate": "membership_start_date",
    "subscriptionstartdate": "subscription_start_date",
    "duedate": "due_date",
    "membershipfeelastpaid": "membership_fee_last_paid",
    "membershipfeeduedate": "membership_fee_due_date",
    "sessionexpirydate": "session_expiry_date",
    "lockerstartdate": "locker_start_date",
    "lockerduedate": "locker_due_date",
}

_TRUTHY = ("true", "yes", "1")


@dataclass
class ImportResult:
    """CSV 解析结果。

    Attributes:
        members: 可导入的会员数据字典列表（键为 Member 字段名）。
        errors: 行级错误信息列表。
    """
    members: List[Dict[str, Any]] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)


def _normalize_header(header: str) -> str:
    return "".join(header.replace('"', "").split()).lower()


def _parse_bool(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in _TRUTHY


def _parse_int(value: Optional[str]) -> int:
    try:
        return int((value or "").strip())
    except ValueError:
        return 0


def parse_members_csv(text: str) -> ImportResult:
    """解析会员 CSV 文本。

    Args:
        text: CSV 全文，首行为表头。

    Returns:
        ImportResult，其中 errors 为空表示全部行都有效。
    """
    result = ImportResult()
    lines = text.strip().replace("\r", "").split("\n")
    if len(lines) < 2:
        result.errors.append(
            "CSV file must have a header and at least one data row."
        )
        return result

    rows = list(csv.reader(lines, skipinitialspace=True))
    headers = [_normalize_header(h) for h in rows[0]]
    if not any(headers):
        result.errors.append("CSV file is empty or missing a header.")
        return result

    missing = [h for h in REQUIRED_HEADERS if h not in headers]
    if missing:
        result.errors.append(
            f"Invalid CSV header. Missing required column(s): "
            f"[{', '.join(missing)}]. Detected headers: [{', '.join(headers)}]"
        )
        return result

    index = {h: headers.index(h)
             for h in REQUIRED_HEADERS + OPTIONAL_HEADERS if h in headers}

    for offset, values in enumerate(rows[1:]):
        row_num = offset + 2
        if not any(v.strip() for v in values):
            continue
        values = [v.strip() for v in values]
        if len(values) < len(headers):
            result.errors.append(
                f"Row {row_num}: Malformed data. Expected {len(headers)} "
                f"columns, found {len(values)}. Skipping row."
            )
            continue

        def col(name: str) -> Optional[str]:
            return values[index[name]] if name in index else None

        member_id, name = col("gymnumber"), col("name")
        status, membership_type = col("status"), col("membershiptype")
        if not (member_id and name and status and membership_type):
            result.errors.append(
                f"Row {row_num}: Missing essential data (gymnumber, name, "
                f"status, or membershipType). Skipping row."
            )
            continue

        has_coach = _parse_bool(col("hascoach"))
        member: Dict[str, Any] = {
            "id": member_id,
            "name": name,
            "photo_url": col("photourl") or None,
            "status": status,
            "membership_type": membership_type,
            "details": col("details") or "",
            "has_coach": has_coach,
            "coach_name": (col("coachname") or "") if has_coach else None,
            "training_type": col("trainingtype") or "",
        }
        for column, attr in _DATE_COLUMNS.items():
            member[attr] = parse_date(col(column))
        if "totalsessions" in index:
            member["total_sessions"] = _parse_int(col("totalsessions"))
        if "sessionsused" in index:
            member["sessions_used"] = _parse_int(col("sessionsused"))

        result.members.append(member)

    return result


def _row_for(member) -> List[Any]:
    def value(v):
        return "" if v is None else v

    return [
        member.id, member.name, value(member.photo_url), member.status,
        member.membership_type, value(member.details),
        "true" if member.has_coach else "false", value(member.coach_name),
        value(member.training_type), to_ymd(member.membership_start_date),
        to_ymd(member.subscription_start_date), to_ymd(member.due_date),
        to_ymd(member.membership_fee_last_paid),
        value(member.total_sessions), value(member.sessions_used),
        to_ymd(member.membership_fee_due_date),
        to_ymd(member.session_expiry_date), to_ymd(member.locker_start_date),
        to_ymd(member.locker_due_date),
    ]


def export_members_csv(members: Iterable) -> str:
    """导出会员为 CSV 文本（包含全部列，含逗号/引号/换行的值加引号）。"""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(EXPORT_HEADERS)
    for member in members:
        writer.writerow(_row_for(member))
    return buffer.getvalue()
