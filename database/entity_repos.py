"""实体仓库 —— 目录类基础实体的数据访问层。

管理教练、商品、价目表套餐和课程班级，这些实体是前台收费与签到
流程引用的基础数据，本身不参与账本计算。

每个仓库继承 BaseCRUD 获得通用能力，并添加领域特定的查询方法。
"""
from datetime import date
from typing import Optional, List, Dict, Any
from sqlalchemy.orm import Session
from loguru import logger

from business.plan_effects import infer_plan_effect, PlanType
from .base_crud import BaseCRUD, generate_id, round_money
from .connection import DatabaseConnection
from .models import Coach, Product, PricePlan, GymClass, ClassAttendance


class CoachRepository(BaseCRUD):
    """教练 仓库。"""

    def __init__(self, conn: DatabaseConnection) -> None:
        super().__init__(conn)

    def add(self, name: str, mobile_number: Optional[str] = None,
            address: Optional[str] = None,
            skills: Optional[List[str]] = None,
            coach_id: Optional[str] = None,
            session: Optional[Session] = None) -> Coach:
        """新增教练。

        Args:
            name: 教练姓名。
            mobile_number: 手机号（可选）。
            address: 地址（可选）。
            skills: 擅长项目列表（可选）。
            coach_id: 指定ID（可选，种子数据使用）。

        Returns:
            新创建的 Coach 对象。
        """
        coach = self.create(
            Coach, session=session,
            id=coach_id or generate_id("coach"), name=name,
            mobile_number=mobile_number, address=address,
            skills=list(skills or []),
        )
        logger.info(f"Coach added: {coach.name} ({coach.id})")
        return coach

    def update(self, coach_id: str, session: Optional[Session] = None,
               **fields) -> Optional[Coach]:
        """更新教练信息。"""
        if "skills" in fields:
            fields["skills"] = list(fields["skills"] or [])
        return self.update_by_id(Coach, coach_id, session=session, **fields)

    def delete(self, coach_id: str,
               session: Optional[Session] = None) -> bool:
        return self.delete_by_id(Coach, coach_id, session=session)

    def list_all(self, session: Optional[Session] = None) -> List[Coach]:
        def _query(sess):
            return sess.query(Coach).order_by(Coach.name).all()

        return self._run(_query, session)

    def get_by_name(self, name: str,
                    session: Optional[Session] = None) -> Optional[Coach]:
        def _query(sess):
            return sess.query(Coach).filter(Coach.name == name).first()

        return self._run(_query, session)


class ProductRepository(BaseCRUD):
    """商品 仓库。

    管理商品信息和库存：饮品、补剂、服饰、周边以及租借服务。
    """

    def __init__(self, conn: DatabaseConnection) -> None:
        super().__init__(conn)

    def add(self, name: str, price: float, category: Optional[str] = None,
            stock: int = 0, product_id: Optional[str] = None,
            session: Optional[Session] = None) -> Product:
        """新增商品。

        Args:
            name: 商品名称。
            price: 单价。
            category: 商品类别（可选）。
            stock: 初始库存。
            product_id: 指定ID（可选，种子数据使用）。

        Returns:
            新创建的 Product 对象。
        """
        product = self.create(
            Product, session=session,
            id=product_id or generate_id("prod"), name=name,
            category=category, price=round_money(price), stock=stock,
        )
        logger.info(f"Product added: {product.name} ({product.id})")
        return product

    def update(self, product_id: str, session: Optional[Session] = None,
               **fields) -> Optional[Product]:
        if "price" in fields:
            fields["price"] = round_money(fields["price"])
        return self.update_by_id(Product, product_id, session=session,
                                 **fields)

    def delete(self, product_id: str,
               session: Optional[Session] = None) -> bool:
        return self.delete_by_id(Product, product_id, session=session)

    def list_all(self, session: Optional[Session] = None) -> List[Product]:
        def _query(sess):
            return sess.query(Product).order_by(Product.category,
                                                Product.name).all()

        return self._run(_query, session)

    def update_stock(self, product_id: str, quantity_change: int,
                     session: Optional[Session] = None) -> Optional[Product]:
        """更新商品库存（增/减）。

        Args:
            product_id: 商品ID。
            quantity_change: 变动数量（正数入库，负数出库）。

        Returns:
            更新后的 Product 对象，商品不存在返回 None。
        """
        def _do(sess):
            product = sess.get(Product, product_id)
            if product is None:
                logger.warning(f"Product not found for stock update: {product_id}")
                return None
            product.stock = (product.stock or 0) + quantity_change
            sess.flush()
            return product

        return self._run(_do, session)


class PricePlanRepository(BaseCRUD):
    """价目表 仓库。

    套餐新增或改名时重新计算其效果（见 business.plan_effects），
    购买时只读取保存下来的效果字段。
    """

    def __init__(self, conn: DatabaseConnection) -> None:
        super().__init__(conn)

    @staticmethod
    def _effect_fields(name: str, plan_type: str) -> Dict[str, Any]:
        spec = infer_plan_effect(name, plan_type)
        return {
            "effect": spec.effect.value,
            "effect_months": spec.months,
            "effect_days": spec.days,
            "session_count": spec.session_count,
            "membership_type_override": spec.membership_type_override,
            "training_type": spec.training_type,
        }

    def add(self, name: str, amount: float, plan_type: str,
            plan_id: Optional[str] = None,
            session: Optional[Session] = None) -> PricePlan:
        """新增套餐。

        Args:
            name: 套餐名称。
            amount: 价格。
            plan_type: 类别：member / walk-in / coach / class。
            plan_id: 指定ID（可选，种子数据使用）。

        Returns:
            新创建的 PricePlan 对象。

        Raises:
            ValueError: 类别无效。
        """
        plan_type = PlanType(plan_type).value
        plan = self.create(
            PricePlan, session=session,
            id=plan_id or generate_id("price"), name=name,
            amount=round_money(amount), plan_type=plan_type,
            **self._effect_fields(name, plan_type),
        )
        logger.info(f"Price plan added: {plan.name} -> {plan.effect}")
        return plan

    def update(self, plan_id: str, session: Optional[Session] = None,
               **fields) -> Optional[PricePlan]:
        """更新套餐；名称或类别变化时重新计算效果。"""
        def _do(sess):
            plan = sess.get(PricePlan, plan_id)
            if plan is None:
                return None
            if "amount" in fields:
                fields["amount"] = round_money(fields["amount"])
            if "plan_type" in fields:
                fields["plan_type"] = PlanType(fields["plan_type"]).value
            for key, value in fields.items():
                setattr(plan, key, value)
            if "name" in fields or "plan_type" in fields:
                for key, value in self._effect_fields(
                        plan.name, plan.plan_type).items():
                    setattr(plan, key, value)
            sess.flush()
            return plan

        return self._run(_do, session)

    def delete(self, plan_id: str,
               session: Optional[Session] = None) -> bool:
        return self.delete_by_id(PricePlan, plan_id, session=session)

    def list_all(self, session: Optional[Session] = None) -> List[PricePlan]:
        def _query(sess):
            return sess.query(PricePlan).order_by(PricePlan.plan_type,
                                                  PricePlan.amount).all()

        return self._run(_query, session)

    def get_by_type(self, plan_type: str,
                    session: Optional[Session] = None) -> List[PricePlan]:
        """按类别查询套餐（用于展示分组）。"""
        return self.get_all(
            PricePlan, filters={"plan_type": PlanType(plan_type).value},
            session=session
        )

    def get_many(self, plan_ids: List[str],
                 session: Optional[Session] = None) -> List[PricePlan]:
        """按ID列表查询套餐，保持传入顺序，忽略不存在的ID。"""
        def _query(sess):
            found = {p.id: p for p in sess.query(PricePlan).filter(
                PricePlan.id.in_(plan_ids)).all()}
            return [found[pid] for pid in plan_ids if pid in found]

        return self._run(_query, session)


class ClassRepository(BaseCRUD):
    """课程班级 仓库。

    管理班级及每日出勤。出勤按 (班级, 日期) 唯一，重复点名覆盖当天记录。
    """

    def __init__(self, conn: DatabaseConnection) -> None:
        super().__init__(conn)

    def add(self, name: str, coach_id: Optional[str] = None,
            class_id: Optional[str] = None,
            session: Optional[Session] = None) -> GymClass:
        gym_class = self.create(
            GymClass, session=session,
            id=class_id or generate_id("class"), name=name,
            coach_id=coach_id,
        )
        logger.info(f"Class added: {gym_class.name} ({gym_class.id})")
        return gym_class

    def update(self, class_id: str, session: Optional[Session] = None,
               **fields) -> Optional[GymClass]:
        return self.update_by_id(GymClass, class_id, session=session,
                                 **fields)

    def delete(self, class_id: str,
               session: Optional[Session] = None) -> bool:
        return self.delete_by_id(GymClass, class_id, session=session)

    def list_with_coach(self, session: Optional[Session] = None
                        ) -> List[Dict[str, Any]]:
        """列出班级及其教练姓名。"""
        def _query(sess):
            rows = sess.query(GymClass, Coach.name).outerjoin(
                Coach, GymClass.coach_id == Coach.id
            ).order_by(GymClass.name).all()
            return [
                {"id": c.id, "name": c.name, "coach_id": c.coach_id,
                 "coach_name": coach_name}
                for c, coach_name in rows
            ]

        return self._run(_query, session)

    def coach_name_for_class(self, class_name: str,
                             session: Optional[Session] = None
                             ) -> Optional[str]:
        """查询名称包含于 ``class_name`` 的班级的教练姓名。"""
        def _query(sess):
            rows = sess.query(GymClass.name, Coach.name).join(
                Coach, GymClass.coach_id == Coach.id
            ).all()
            lowered = class_name.lower()
            for name, coach_name in rows:
                if name.lower() in lowered:
                    return coach_name
            return None

        return self._run(_query, session)

    def mark_attendance(self, class_id: str, attendance_date: date,
                        present_member_ids: List[str],
                        session: Optional[Session] = None
                        ) -> Optional[ClassAttendance]:
        """记录班级出勤（按日期覆盖）。

        Args:
            class_id: 班级ID。
            attendance_date: 出勤日期。
            present_member_ids: 出勤会员ID列表。

        Returns:
            当天的 ClassAttendance 对象，班级不存在返回 None。
        """
        def _do(sess):
            if sess.get(GymClass, class_id) is None:
                logger.warning(f"Class not found for attendance: {class_id}")
                return None
            entry = sess.query(ClassAttendance).filter(
                ClassAttendance.class_id == class_id,
                ClassAttendance.attendance_date == attendance_date,
            ).first()
            if entry is None:
                entry = ClassAttendance(class_id=class_id,
                                        attendance_date=attendance_date)
                sess.add(entry)
            entry.present_member_ids = list(present_member_ids)
            sess.flush()
            return entry

        result = self._run(_do, session)
        if result is not None:
            logger.info(
                f"Attendance marked for {class_id} on {attendance_date}: "
                f"{len(present_member_ids)} present"
            )
        return result

    def get_attendance(self, class_id: str,
                       attendance_date: Optional[date] = None,
                       session: Optional[Session] = None
                       ) -> List[ClassAttendance]:
        """查询班级出勤记录，可按日期过滤，按日期排序。"""
        def _query(sess):
            query = sess.query(ClassAttendance).filter(
                ClassAttendance.class_id == class_id)
            if attendance_date is not None:
                query = query.filter(
                    ClassAttendance.attendance_date == attendance_date)
            return query.order_by(ClassAttendance.attendance_date).all()

        return self._run(_query, session)
