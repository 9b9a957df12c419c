"""
业务配置接口 - 支持可替换的种子目录

新场馆可以实现自己的业务配置（价目表、商品、教练、班级），替换默认配置。
初始化数据库时由 DatabaseManager.seed_catalog 写入。
"""
from abc import ABC, abstractmethod
from typing import List, Dict, Any


class BusinessConfig(ABC):
    """业务配置抽象基类"""

    @abstractmethod
    def get_price_plans(self) -> List[Dict[str, Any]]:
        """获取默认价目表"""
        pass

    @abstractmethod
    def get_products(self) -> List[Dict[str, Any]]:
        """获取默认商品目录"""
        pass

    @abstractmethod
    def get_coaches(self) -> List[Dict[str, Any]]:
        """获取默认教练"""
        pass

    @abstractmethod
    def get_classes(self) -> List[Dict[str, Any]]:
        """获取默认课程班级"""
        pass


class GymConfig(BusinessConfig):
    """健身房默认配置"""

    def get_price_plans(self) -> List[Dict[str, Any]]:
        return [
            # 会员套餐
            {"id": "price-1", "name": "Daily", "amount": 100, "plan_type": "member"},
            {"id": "price-2", "name": "Monthly", "amount": 900, "plan_type": "member"},
            {"id": "price-promo-3", "name": "3 Months Promo", "amount": 2200, "plan_type": "member"},
            {"id": "price-promo-6", "name": "6 Months Promo", "amount": 4000, "plan_type": "member"},
            {"id": "price-4", "name": "Yearly", "amount": 6500, "plan_type": "member"},
            {"id": "price-locker-1", "name": "Locker Rental", "amount": 300, "plan_type": "member"},
            {"id": "price-mf-1", "name": "Membership Fee (Annual)", "amount": 500, "plan_type": "member"},
            {"id": "price-nomf-1", "name": "Monthly (No MF)", "amount": 1100, "plan_type": "member"},
            # 散客
            {"id": "price-5", "name": "Walk-in Daily", "amount": 150, "plan_type": "walk-in"},
            {"id": "price-walkin-student", "name": "Student/PWD/SC Daily", "amount": 100, "plan_type": "walk-in"},
            {"id": "price-walkin-pt", "name": "Walk-in PT", "amount": 450, "plan_type": "walk-in"},
            {"id": "price-walkin-box", "name": "Walk-in Boxing", "amount": 450, "plan_type": "walk-in"},
            {"id": "price-walkin-muay", "name": "Walk-in Muaythai", "amount": 500, "plan_type": "walk-in"},
            {"id": "price-free-pass", "name": "Free Pass Entry", "amount": 0, "plan_type": "walk-in"},
            # 私教
            {"id": "coach-pt-1", "name": "PT - 1 Session", "amount": 400, "plan_type": "coach"},
            {"id": "coach-pt-2", "name": "PT - 6 Sessions", "amount": 2200, "plan_type": "coach"},
            {"id": "coach-pt-3", "name": "PT - 16 Sessions", "amount": 5600, "plan_type": "coach"},
            {"id": "coach-pt-4", "name": "PT - 24 Sessions", "amount": 7800, "plan_type": "coach"},
            # 拳击
            {"id": "coach-box-1", "name": "Boxing - 1 Session", "amount": 400, "plan_type": "coach"},
            {"id": "coach-box-2", "name": "Boxing - 6 Sessions", "amount": 2200, "plan_type": "coach"},
            {"id": "coach-box-3", "name": "Boxing - 16 Sessions", "amount": 5600, "plan_type": "coach"},
            {"id": "coach-box-4", "name": "Boxing - 24 Sessions", "amount": 7800, "plan_type": "coach"},
            # 泰拳
            {"id": "coach-muay-1", "name": "Muaythai - 1 Session", "amount": 450, "plan_type": "coach"},
            {"id": "coach-muay-2", "name": "Muaythai - 6 Sessions", "amount": 2500, "plan_type": "coach"},
            {"id": "coach-muay-3", "name": "Muaythai - 16 Sessions", "amount": 6400, "plan_type": "coach"},
            {"id": "coach-muay-4", "name": "Muaythai - 24 Sessions", "amount": 8400, "plan_type": "coach"},
            # 课程班
            {"id": "class-tkd-bgn", "name": "Taekwondo - Beginner (8 Sessions)", "amount": 3500, "plan_type": "class"},
            {"id": "class-tkd-adv", "name": "Taekwondo - Advanced (8 Sessions)", "amount": 2800, "plan_type": "class"},
        ]

    def get_products(self) -> List[Dict[str, Any]]:
        return [
            {"id": "prod-1", "name": "Water Refill", "category": "Services", "price": 10, "stock": 999},
            {"id": "prod-2", "name": "Summit Water Bottle", "category": "Drinks", "price": 20, "stock": 100},
            {"id": "prod-3", "name": "Energy Drinks-Cobra", "category": "Drinks", "price": 35, "stock": 50},
            {"id": "prod-4", "name": "Energy Drinks-Gatorade", "category": "Drinks", "price": 55, "stock": 50},
            {"id": "prod-5", "name": "Energy Drinks-Pocari Sweat", "category": "Drinks", "price": 55, "stock": 50},
            {"id": "prod-6", "name": "VITA MILK", "category": "Drinks", "price": 40, "stock": 50},
            {"id": "prod-7", "name": "WHEY PROTEIN", "category": "Supplements", "price": 50, "stock": 100},
            {"id": "prod-8", "name": "AMINO TABLET", "category": "Supplements", "price": 20, "stock": 200},
            {"id": "prod-9", "name": "CREATINE", "category": "Supplements", "price": 35, "stock": 100},
            {"id": "prod-10", "name": "DRI-FIT SHIRT", "category": "Apparel", "price": 350, "stock": 20},
            {"id": "prod-11", "name": "TUMBLER", "category": "Merchandise", "price": 300, "stock": 30},
            {"id": "prod-12", "name": "GLOVES RENTAL", "category": "Services", "price": 100, "stock": 999},
            {"id": "prod-13", "name": "GNEX CAP", "category": "Merchandise", "price": 200, "stock": 30},
            {"id": "prod-14", "name": "HANDWRAPS", "category": "Apparel", "price": 450, "stock": 50},
        ]

    def get_coaches(self) -> List[Dict[str, Any]]:
        return [
            {"id": "coach-1", "name": "COACH JAYSON", "mobile_number": "09171234567",
             "address": "Quezon City", "skills": ["Bodybuilding", "Strength Training"]},
            {"id": "coach-2", "name": "COACH RALPH", "mobile_number": "09187654321",
             "address": "Makati City", "skills": ["Circuit Training", "Weight Loss", "Boxing"]},
            {"id": "coach-3", "name": "COACH WIL", "mobile_number": "09191112233",
             "address": "Taguig City", "skills": ["Muay Thai", "Taekwondo", "Functional Fitness"]},
        ]

    def get_classes(self) -> List[Dict[str, Any]]:
        return [
            {"id": "class-1", "name": "Taekwondo", "coach_id": "coach-2"},
        ]


# 全局业务配置实例（可以在初始化脚本中替换）
business_config: BusinessConfig = GymConfig()
