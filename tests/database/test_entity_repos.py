"""Catalog repository tests.

Covers CoachRepository, ProductRepository, PricePlanRepository and
ClassRepository, including plan effect inference on add/rename and
per-day class attendance.
"""
from datetime import date

import pytest

from database.models import Product


class TestCoachRepository:
    """Test CoachRepository operations."""

    def test_add_and_list_sorted(self, temp_db):
        temp_db.coaches.add("COACH WIL", skills=["Muay Thai"])
        temp_db.coaches.add("COACH JAYSON", "0917", "Quezon City",
                            ["Bodybuilding"])
        coaches = temp_db.coaches.list_all()
        assert [c.name for c in coaches] == ["COACH JAYSON", "COACH WIL"]
        assert coaches[0].id.startswith("coach-")
        assert coaches[0].skills == ["Bodybuilding"]

    def test_update_and_delete(self, temp_db):
        coach = temp_db.coaches.add("COACH RALPH")
        updated = temp_db.coaches.update(coach.id, skills=("Boxing",),
                                         mobile_number="0918")
        assert updated.skills == ["Boxing"]
        assert temp_db.coaches.get_by_name("COACH RALPH").mobile_number == "0918"

        assert temp_db.coaches.delete(coach.id) is True
        assert temp_db.coaches.get_by_name("COACH RALPH") is None


class TestProductRepository:
    """Test ProductRepository operations."""

    def test_add_rounds_price(self, temp_db):
        product = temp_db.products.add("Protein Bar", 45.499, "Supplements", 10)
        assert product.price == 45.5
        assert product.stock == 10

    def test_update_stock(self, seeded_db):
        seeded_db.products.update_stock("prod-2", -3)
        seeded_db.products.update_stock("prod-2", 10)
        assert seeded_db.products.get_by_id(Product, "prod-2").stock == 107

    def test_update_stock_missing_product(self, temp_db):
        assert temp_db.products.update_stock("prod-404", 1) is None

    def test_list_grouped_by_category(self, seeded_db):
        categories = [p.category for p in seeded_db.products.list_all()]
        assert categories == sorted(categories)


class TestPricePlanRepository:
    """Test plan effect inference and lookups."""

    @pytest.mark.parametrize("name, effect, months, days", [
        ("Monthly", "renewal", 1, 0),
        ("Yearly", "renewal", 12, 0),
        ("3 Months Promo", "renewal", 3, 0),
        ("Daily", "renewal", 0, 1),
        ("Locker Rental", "locker_extension", 1, 0),
        ("Membership Fee (Annual)", "fee_extension", 12, 0),
    ])
    def test_member_plan_effects(self, temp_db, name, effect, months, days):
        plan = temp_db.price_plans.add(name, 100, "member")
        assert plan.effect == effect
        assert plan.effect_months == months
        assert plan.effect_days == days

    def test_no_mf_override(self, temp_db):
        plan = temp_db.price_plans.add("Monthly (No MF)", 1100, "member")
        assert plan.effect == "renewal"
        assert plan.membership_type_override == "NO MF"

    def test_coach_plan_grants_sessions(self, temp_db):
        plan = temp_db.price_plans.add("Muaythai - 16 Sessions", 6400, "coach")
        assert plan.effect == "session_grant"
        assert plan.session_count == 16
        assert plan.training_type == "Muaythai Training"

    def test_walkin_daily_has_no_effect(self, temp_db):
        plan = temp_db.price_plans.add("Walk-in Daily", 150, "walk-in")
        assert plan.effect == "none"

    def test_invalid_plan_type(self, temp_db):
        with pytest.raises(ValueError):
            temp_db.price_plans.add("Mystery", 1, "vip")

    def test_rename_recomputes_effect(self, temp_db):
        plan = temp_db.price_plans.add("Monthly", 900, "member")
        updated = temp_db.price_plans.update(plan.id, name="Daily")
        assert updated.effect_months == 0
        assert updated.effect_days == 1

    def test_amount_change_keeps_effect(self, temp_db):
        plan = temp_db.price_plans.add("Monthly", 900, "member")
        updated = temp_db.price_plans.update(plan.id, amount=950)
        assert updated.amount == 950
        assert updated.effect == "renewal"

    def test_get_many_keeps_order(self, seeded_db):
        plans = seeded_db.price_plans.get_many(
            ["price-locker-1", "missing", "price-2"])
        assert [p.id for p in plans] == ["price-locker-1", "price-2"]

    def test_get_by_type(self, seeded_db):
        assert len(seeded_db.price_plans.get_by_type("coach")) == 12
        assert len(seeded_db.price_plans.get_by_type("class")) == 2


class TestClassRepository:
    """Test classes, coach lookup and attendance."""

    def test_list_with_coach(self, seeded_db):
        assert seeded_db.classes.list_with_coach() == [{
            "id": "class-1", "name": "Taekwondo", "coach_id": "coach-2",
            "coach_name": "COACH RALPH",
        }]

    def test_coach_name_for_class(self, seeded_db):
        assert seeded_db.classes.coach_name_for_class(
            "Taekwondo - Advanced (8 Sessions)") == "COACH RALPH"
        assert seeded_db.classes.coach_name_for_class("Yoga Flow") is None

    def test_attendance_overwrites_same_day(self, seeded_db):
        day = date(2024, 2, 5)
        seeded_db.classes.mark_attendance("class-1", day, ["G-0001"])
        seeded_db.classes.mark_attendance("class-1", day,
                                          ["G-0001", "G-0002"])
        seeded_db.classes.mark_attendance("class-1", date(2024, 2, 6),
                                          ["G-0003"])

        entries = seeded_db.classes.get_attendance("class-1")
        assert [e.attendance_date for e in entries] == [day, date(2024, 2, 6)]
        assert entries[0].present_member_ids == ["G-0001", "G-0002"]
        assert len(seeded_db.classes.get_attendance("class-1", day)) == 1

    def test_attendance_unknown_class(self, seeded_db):
        assert seeded_db.classes.mark_attendance(
            "class-404", date(2024, 2, 5), ["G-0001"]) is None
