"""SQLAlchemy ORM 模型定义。

本模块定义了所有数据库表的ORM模型，包括：
- 会员、散客、教练等基础实体
- 价目表、商品、课程班级等目录数据
- 签到记录（每日账单）等核心业务记录
- 待办任务、每日免费通行码等辅助数据

金额字段统一使用 DECIMAL(10,2)，读取时返回 float，运算后保留两位小数。
"""
from enum import Enum
from typing import Dict, Any, List, Optional
from sqlalchemy import (
    Column, Integer, String, Text, Boolean, Date, DateTime,
    DECIMAL, ForeignKey, JSON, UniqueConstraint
)
from sqlalchemy.orm import declarative_base
from sqlalchemy.orm import relationship
from datetime import datetime, date

# SQLAlchemy declarative base，所有模型都继承自此类
Base = declarative_base()

# 允许使用旧式类型注解（兼容 SQLAlchemy 2.0）
Base.__allow_unmapped__ = True


def Money(**kwargs) -> Column:
    """金额列：DECIMAL(10,2)，以 float 读回。"""
    return Column(DECIMAL(10, 2, asdecimal=False), **kwargs)


class MemberStatusValue(str, Enum):
    """会员存储状态（人工设置或账本写入）"""
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    FROZEN = "Frozen"
    DUE = "Due"
    SESSIONS = "Sessions"


class HistoryEntryType(str, Enum):
    """会员/散客历史记录类型"""
    STATUS_CHANGE = "status_change"
    PAYMENT = "payment"
    SESSION_UPDATE = "session_update"
    NOTE = "note"


class RecordType(str, Enum):
    """签到记录类型"""
    MEMBER = "Member"
    WALK_IN = "Walk-in"


class RecordStatus(str, Enum):
    """签到记录状态"""
    PENDING = "Pending"
    CONFIRMED = "Confirmed"
    CANCELLED = "Cancelled"


class PendingAction(str, Enum):
    """签到记录待处理动作"""
    PAYMENT = "payment"
    UNFREEZE = "unfreeze"
    CHECK_IN = "check-in"
    CHECKOUT = "checkout"


class Recurrence(str, Enum):
    """任务重复周期"""
    NONE = "none"
    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"


class Coach(Base):
    """教练表模型。

    Attributes:
        id: 主键，字符串（如 coach-1）。
        name: 教练姓名，必填。
        mobile_number: 手机号。
        address: 地址。
        skills: 擅长项目列表（JSON）。
    """
    __tablename__ = "coaches"

    id: str = Column(String(40), primary_key=True)
    name: str = Column(String(100), nullable=False)
    mobile_number: Optional[str] = Column(String(30))
    address: Optional[str] = Column(String(200))
    skills: List[str] = Column(JSON, default=list)
    created_at: datetime = Column(DateTime, default=datetime.utcnow)

    classes: List["GymClass"] = relationship("GymClass", back_populates="coach")


class PricePlan(Base):
    """价目表套餐模型。

    套餐效果在新增/编辑时计算一次并保存（见 business.plan_effects），
    购买时按 ``effect`` 字段分派，不再解析名称。

    Attributes:
        id: 主键，字符串（如 price-2）。
        name: 套餐名称，必填。
        amount: 价格，DECIMAL(10,2)。
        plan_type: 类别：member / walk-in / coach / class。
        effect: 效果：renewal / session_grant / locker_extension / fee_extension / none。
        effect_months: 顺延月数。
        effect_days: 顺延天数。
        session_count: 赠送次数。
        membership_type_override: 续费后改写的会籍类型。
        training_type: 训练类型（课程套餐）。
    """
    __tablename__ = "price_plans"

    id: str = Column(String(40), primary_key=True)
    name: str = Column(String(100), nullable=False)
    amount: float = Money(nullable=False, default=0)
    plan_type: str = Column(String(20), nullable=False)
    effect: str = Column(String(20), nullable=False, default="none")
    effect_months: int = Column(Integer, default=0)
    effect_days: int = Column(Integer, default=0)
    session_count: int = Column(Integer, default=0)
    membership_type_override: Optional[str] = Column(String(50))
    training_type: Optional[str] = Column(String(50))
    created_at: datetime = Column(DateTime, default=datetime.utcnow)


class Product(Base):
    """商品表模型（饮品、补剂、服饰、租借服务等）。

    Attributes:
        id: 主键，字符串（如 prod-1）。
        name: 商品名称。
        category: 商品类别。
        price: 单价。
        stock: 库存数量。
    """
    __tablename__ = "products"

    id: str = Column(String(40), primary_key=True)
    name: str = Column(String(100), nullable=False)
    category: Optional[str] = Column(String(50))
    price: float = Money(nullable=False, default=0)
    stock: int = Column(Integer, default=0)
    created_at: datetime = Column(DateTime, default=datetime.utcnow)


class GymClass(Base):
    """课程班级表模型（如跆拳道班）。"""
    __tablename__ = "gym_classes"

    id: str = Column(String(40), primary_key=True)
    name: str = Column(String(100), nullable=False)
    coach_id: Optional[str] = Column(String(40), ForeignKey("coaches.id"))
    created_at: datetime = Column(DateTime, default=datetime.utcnow)

    coach: Optional["Coach"] = relationship("Coach", back_populates="classes")
    attendance: List["ClassAttendance"] = relationship(
        "ClassAttendance", back_populates="gym_class",
        cascade="all, delete-orphan",
        order_by="ClassAttendance.attendance_date",
    )


class ClassAttendance(Base):
    """班级出勤表模型。

    每个班级每天至多一条出勤记录，重复点名会覆盖当天的记录。
    """
    __tablename__ = "class_attendance"
    __table_args__ = (
        UniqueConstraint("class_id", "attendance_date",
                         name="uq_class_attendance_day"),
    )

    id: int = Column(Integer, primary_key=True, autoincrement=True)
    class_id: str = Column(String(40), ForeignKey("gym_classes.id"), nullable=False)
    attendance_date: date = Column(Date, nullable=False)
    present_member_ids: List[str] = Column(JSON, default=list)

    gym_class: "GymClass" = relationship("GymClass", back_populates="attendance")


class Member(Base):
    """会员表模型。

    会员编号按 ``G-NNNN`` 顺序分配。``status`` 保存人工设置或账本写入的
    状态，前台展示请使用 business.member_status 推导出的状态。

    Attributes:
        id: 会员编号（如 G-0001）。
        status: 存储状态：Active / Inactive / Frozen / Due / Sessions。
        membership_type: 会籍类型（如 REGULAR、NO MF、LIFETIME）。
        due_date: 会籍到期日，由最近一次续费加套餐周期得出。
        total_sessions / sessions_used: 私教/课程次数。
        session_expiry_date: 课程包有效期。
        locker_start_date / locker_due_date: 储物柜租期。
        membership_fee_last_paid / membership_fee_due_date: 年度会籍费。
        days_remaining_on_freeze: 冻结时剩余天数。
        history: 历史记录列表（JSON，最新在前）。
    """
    __tablename__ = "members"

    id: str = Column(String(20), primary_key=True)
    name: str = Column(String(100), nullable=False)
    photo_url: Optional[str] = Column(Text)
    status: str = Column(String(20), nullable=False, default="Active")
    membership_type: str = Column(String(50), default="REGULAR")
    details: Optional[str] = Column(Text, default="")
    has_coach: bool = Column(Boolean, default=False)
    coach_name: Optional[str] = Column(String(100))
    training_type: Optional[str] = Column(String(50))
    membership_start_date: Optional[date] = Column(Date)
    subscription_start_date: Optional[date] = Column(Date)
    last_payment_date: Optional[date] = Column(Date)
    due_date: Optional[date] = Column(Date)
    total_sessions: int = Column(Integer, default=0)
    sessions_used: int = Column(Integer, default=0)
    session_expiry_date: Optional[date] = Column(Date)
    days_remaining_on_freeze: int = Column(Integer, default=0)
    membership_fee_last_paid: Optional[date] = Column(Date)
    membership_fee_due_date: Optional[date] = Column(Date)
    locker_start_date: Optional[date] = Column(Date)
    locker_due_date: Optional[date] = Column(Date)
    class_id: Optional[str] = Column(String(40), ForeignKey("gym_classes.id"))
    class_name: Optional[str] = Column(String(100))
    history: List[Dict[str, Any]] = Column(JSON, default=list)
    created_at: datetime = Column(DateTime, default=datetime.utcnow)

    @property
    def remaining_sessions(self) -> int:
        return (self.total_sessions or 0) - (self.sessions_used or 0)


class WalkinClient(Base):
    """散客表模型。

    散客没有周期会籍，只有可选的单一课程包（session plan）。

    Attributes:
        id: 主键，字符串（如 walkin-3f2a...）。
        contact_number: 联系电话。
        last_visit: 最近到访日期。
        session_plan_name / session_plan_total / session_plan_used: 课程包。
        session_plan_last_used: 课程包最近使用日期。
        history: 历史记录列表（JSON，最新在前）。
    """
    __tablename__ = "walkin_clients"

    id: str = Column(String(40), primary_key=True)
    name: str = Column(String(100), nullable=False)
    contact_number: Optional[str] = Column(String(30), default="")
    photo_url: Optional[str] = Column(Text)
    last_visit: Optional[date] = Column(Date)
    session_plan_name: Optional[str] = Column(String(100))
    session_plan_total: Optional[int] = Column(Integer)
    session_plan_used: Optional[int] = Column(Integer)
    session_plan_last_used: Optional[date] = Column(Date)
    history: List[Dict[str, Any]] = Column(JSON, default=list)
    created_at: datetime = Column(DateTime, default=datetime.utcnow)

    @property
    def session_plan(self) -> Optional[Dict[str, Any]]:
        if not self.session_plan_name:
            return None
        return {
            "name": self.session_plan_name,
            "total": self.session_plan_total or 0,
            "used": self.session_plan_used or 0,
            "last_session_used_date": self.session_plan_last_used,
        }


class CheckinRecord(Base):
    """签到记录表模型（核心账单表）。

    每次到访/签到请求一条记录，状态流转：
    Pending → Confirmed / Cancelled；Confirmed → 待离场（pending_action=checkout）
    → 已离场（checkout_timestamp 非空）。

    金额关系在任何修改之后都满足 ``balance == amount_due - amount_paid``。
    前次到访未结清的欠款在客户下次签到时结转（carried_over_balance），
    被结转的旧记录以 carried_forward_balance 记下转出的金额。

    Attributes:
        id: 主键，字符串（如 rec-...）。
        timestamp: 创建时间。
        record_type: Member / Walk-in。
        gym_number: 会员编号（会员记录）。
        walkin_client_id: 散客ID（散客记录）。
        status: Pending / Confirmed / Cancelled。
        pending_action: payment / unfreeze / check-in / checkout，可为空。
        amount_due / amount_paid / balance: 应付、已付、余额。
        carried_over_balance: 从旧记录结转来的欠款。
        carried_forward_balance: 结转到新记录的欠款。
        carried_forward_to: 接收结转欠款的新记录ID，取消该记录时据此退回欠款。
        payment_plan / payment_amount: 付款说明及原始套餐金额。
        products_purchased: 账单明细（JSON）：itemId、productId、name、quantity、price。
        balance_due_date: 欠款约定还款日，仅当 balance > 0 时存在。
        checkout_timestamp: 离场时间，为空表示仍在馆内。
    """
    __tablename__ = "checkin_records"

    id: str = Column(String(40), primary_key=True)
    timestamp: datetime = Column(DateTime, nullable=False, default=datetime.now)
    record_type: str = Column(String(10), nullable=False)
    name: str = Column(String(100), nullable=False, default="")
    gym_number: Optional[str] = Column(String(20), index=True)
    walkin_client_id: Optional[str] = Column(String(40), index=True)
    photo_url: Optional[str] = Column(Text)
    contact_number: Optional[str] = Column(String(30))
    status: str = Column(String(12), nullable=False, default="Pending")
    pending_action: Optional[str] = Column(String(12))
    amount_due: float = Money(nullable=False, default=0)
    amount_paid: float = Money(nullable=False, default=0)
    balance: float = Money(nullable=False, default=0)
    carried_over_balance: float = Money(default=0)
    carried_forward_balance: float = Money(default=0)
    carried_forward_to: Optional[str] = Column(String(40), index=True)
    payment_plan: Optional[str] = Column(Text)
    payment_amount: Optional[float] = Money()
    products_purchased: List[Dict[str, Any]] = Column(JSON, default=list)
    balance_due_date: Optional[date] = Column(Date)
    checkout_timestamp: Optional[datetime] = Column(DateTime)
    cancellation_reason: Optional[str] = Column(Text)
    coach_assigned: Optional[str] = Column(String(100))
    class_name: Optional[str] = Column(String(100))
    needs_coach: bool = Column(Boolean, default=False)
    session_completed: bool = Column(Boolean, default=False)
    is_new_walkin: bool = Column(Boolean, default=False)
    session_plan_name: Optional[str] = Column(String(100))
    session_plan_total: Optional[int] = Column(Integer)

    @property
    def client_id(self) -> Optional[str]:
        if self.record_type == RecordType.MEMBER.value:
            return self.gym_number
        return self.walkin_client_id

    @property
    def payment_details(self) -> Optional[Dict[str, Any]]:
        if self.payment_plan is None:
            return None
        return {"plan": self.payment_plan, "amount": self.payment_amount or 0}

    @property
    def is_active(self) -> bool:
        """已确认且尚未离场。"""
        return (self.status == RecordStatus.CONFIRMED.value
                and self.checkout_timestamp is None)


class Task(Base):
    """前台待办任务表模型（支持按日/周/月重复）。"""
    __tablename__ = "tasks"

    id: str = Column(String(40), primary_key=True)
    title: str = Column(String(200), nullable=False)
    details: Optional[str] = Column(Text, default="")
    due_date: date = Column(Date, nullable=False)
    recurrence: str = Column(String(10), nullable=False, default="none")
    client_id: Optional[str] = Column(String(40))
    client_name: Optional[str] = Column(String(100))
    completed_on: List[str] = Column(JSON, default=list)  # YYYY-MM-DD 列表
    created_at: datetime = Column(DateTime, default=datetime.utcnow)


class FreePass(Base):
    """每日免费通行码表模型（每天一个4位数字码）。"""
    __tablename__ = "free_passes"

    pass_date: date = Column(Date, primary_key=True)
    code: str = Column(String(4), nullable=False)
    created_at: datetime = Column(DateTime, default=datetime.utcnow)
