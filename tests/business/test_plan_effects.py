"""Plan effect inference tests."""
import pytest

from business.plan_effects import (
    PlanEffect, infer_plan_effect, session_count_from_name,
    training_type_from_name,
)
from config.business_config import GymConfig


class TestInferPlanEffect:
    """Test infer_plan_effect() over names used by the front desk."""

    @pytest.mark.parametrize("name, months, days, override", [
        ("Yearly", 12, 0, None),
        ("6 Months Promo", 6, 0, None),
        ("3 Months Promo", 3, 0, None),
        ("Monthly (No MF)", 1, 0, "NO MF"),
        ("Monthly", 1, 0, None),
        ("Daily", 0, 1, None),
    ])
    def test_renewals(self, name, months, days, override):
        spec = infer_plan_effect(name, "member")
        assert spec.effect == PlanEffect.RENEWAL
        assert (spec.months, spec.days) == (months, days)
        assert spec.membership_type_override == override

    def test_locker_and_fee(self):
        assert infer_plan_effect("Locker Rental", "member").effect == \
            PlanEffect.LOCKER_EXTENSION
        fee = infer_plan_effect("Membership Fee (Annual)", "member")
        assert fee.effect == PlanEffect.FEE_EXTENSION
        assert fee.months == 12

    def test_coach_plan(self):
        spec = infer_plan_effect("Boxing - 6 Sessions", "coach")
        assert spec.effect == PlanEffect.SESSION_GRANT
        assert spec.session_count == 6
        assert spec.training_type == "Boxing Training"

    def test_class_pack(self):
        spec = infer_plan_effect("Taekwondo - Beginner (8 Sessions)", "class")
        assert spec.effect == PlanEffect.SESSION_GRANT
        assert spec.session_count == 8
        assert spec.training_type == "Taekwondo Training"

    def test_walkin_pack(self):
        spec = infer_plan_effect("Walk-in 10 Sessions Card", "walk-in")
        assert spec.effect == PlanEffect.SESSION_GRANT
        assert spec.session_count == 10

    @pytest.mark.parametrize("name", ["Walk-in Daily", "Walk-in PT",
                                      "Free Pass Entry"])
    def test_walkin_without_pack(self, name):
        assert infer_plan_effect(name, "walk-in").effect == PlanEffect.NONE

    def test_unknown_member_plan(self):
        assert infer_plan_effect("Towel Service", "member").effect == \
            PlanEffect.NONE

    def test_invalid_type(self):
        with pytest.raises(ValueError):
            infer_plan_effect("Monthly", "premium")

    def test_default_catalog_has_no_unmapped_member_plans(self):
        for item in GymConfig().get_price_plans():
            if item["plan_type"] == "member":
                spec = infer_plan_effect(item["name"], item["plan_type"])
                assert spec.effect != PlanEffect.NONE, item["name"]


class TestNameHelpers:
    """Test session count and training type extraction."""

    def test_session_count(self):
        assert session_count_from_name("PT - 24 Sessions") == 24
        assert session_count_from_name("PT - 1 Session") == 1
        assert session_count_from_name("Gloves") == 1
        assert session_count_from_name("Gloves", default=0) == 0

    def test_training_type(self):
        assert training_type_from_name("PT - 6 Sessions") == \
            "Loss Weight/Circuit Training"
        assert training_type_from_name("Muaythai - 1 Session") == \
            "Muaythai Training"
        assert training_type_from_name("Yoga") is None
