"""Check-in record ledger tests.

Covers CheckinRecordRepository:
- create (pending amount derivation, carry-over of prior debt,
  one active record per client per day)
- payments (range validation, due date handling, settled items)
- checkout request / confirmation / cancellation
- line items (products, plans, walk-in services, removal)
- renewal and partial dues payments
- the balance == amount_due - amount_paid invariant
"""
from datetime import date, datetime

import pytest


DAY_1 = datetime(2024, 1, 10, 9, 0, 0)
DAY_2 = datetime(2024, 1, 12, 18, 30, 0)
DAY_3 = datetime(2024, 1, 15, 7, 45, 0)


def _assert_balanced(record):
    assert record.balance == pytest.approx(record.amount_due - record.amount_paid)
    if record.balance <= 0:
        assert record.balance_due_date is None


def _checked_out_with_debt(db, make_record, due, paid, now, due_date):
    record = make_record(amount_due=due, now=now)
    if paid:
        db.checkins.record_payment(record.id, paid, due_date)
    db.checkins.request_checkout(record.id)
    result = db.checkins.confirm_checkout(record.id, due_date, now=now)
    assert result.success
    return db.checkins.get(record.id)


class TestCreate:
    """Test CheckinRecordRepository.create()."""

    def test_pending_amount_from_payment_details(self, temp_db):
        record = temp_db.checkins.create({
            "record_type": "Member", "name": "Juan", "gym_number": "G-0001",
            "payment_plan": "Monthly", "payment_amount": 900,
        }, now=DAY_1)
        assert record.status == "Pending"
        assert record.amount_due == 900
        assert record.amount_paid == 0
        assert record.balance == 900
        assert record.payment_details == {"plan": "Monthly", "amount": 900}

    def test_explicit_amounts_kept(self, make_record):
        record = make_record(amount_due=500, amount_paid=200)
        assert record.amount_due == 500
        assert record.amount_paid == 200
        assert record.balance == 300

    def test_invalid_record_type_raises(self, temp_db):
        with pytest.raises(ValueError):
            temp_db.checkins.create({"record_type": "Guest", "name": "x"})

    def test_one_active_record_per_client_per_day(self, make_record):
        assert make_record() is not None
        assert make_record() is None

    def test_new_record_allowed_after_checkout(self, temp_db, make_record):
        record = make_record()
        temp_db.checkins.request_checkout(record.id)
        temp_db.checkins.confirm_checkout(record.id, now=DAY_1)
        assert make_record() is not None

    def test_active_record_on_other_day_does_not_block(self, make_record):
        assert make_record(now=DAY_1) is not None
        assert make_record(now=DAY_2) is not None


class TestCarryOver:
    """Test carry-over of unsettled debt into the next record."""

    def test_debt_carried_into_next_record(self, temp_db, make_record):
        old = _checked_out_with_debt(temp_db, make_record, 500, 300, DAY_1,
                                     date(2024, 3, 1))
        assert old.balance == 200

        new = temp_db.checkins.create({
            "record_type": "Member", "name": "Juan", "gym_number": "G-0001",
            "payment_plan": "Monthly", "payment_amount": 900,
        }, now=DAY_2)

        assert new.carried_over_balance == 200
        assert new.amount_due == 1100
        assert new.balance == 1100
        assert new.payment_plan == "Monthly (+₱200.00 prev bal)"
        assert new.payment_amount == 900

        source = temp_db.checkins.get(old.id)
        assert source.balance == 0
        assert source.carried_forward_balance == 200
        assert source.balance_due_date is None
        _assert_balanced(source)

    def test_multiple_sources_summed(self, temp_db, make_record):
        # Records created already checked out (online payments) keep their debt
        make_record(amount_due=150, checkout_timestamp=DAY_1, now=DAY_1)
        make_record(amount_due=250, checkout_timestamp=DAY_2, now=DAY_2)

        new = make_record(now=DAY_3)
        assert new.carried_over_balance == 400
        assert new.balance == 400
        assert temp_db.checkins.client_open_balance("Member", "G-0001") == 400

    def test_debt_carried_only_once(self, temp_db, make_record):
        _checked_out_with_debt(temp_db, make_record, 250, 100, DAY_1,
                               date(2024, 2, 1))
        first = make_record(now=DAY_2)
        assert first.carried_over_balance == 150

        temp_db.checkins.request_checkout(first.id)
        temp_db.checkins.confirm_checkout(first.id, date(2024, 2, 1), now=DAY_2)
        following = make_record(now=DAY_3)
        assert following.carried_over_balance == 150
        assert temp_db.checkins.client_open_balance("Member", "G-0001") == 150

    def test_open_record_debt_not_carried(self, temp_db, make_record):
        make_record(amount_due=400, now=DAY_1)
        new = make_record(now=DAY_2)
        assert new.carried_over_balance == 0

    def test_other_clients_unaffected(self, temp_db, make_record):
        _checked_out_with_debt(temp_db, make_record, 500, 0, DAY_1,
                               date(2024, 3, 1))
        other = make_record(gym_number="G-0002", name="Maria", now=DAY_2)
        assert other.carried_over_balance == 0


class TestPayments:
    """Test record_payment and process_payment."""

    def test_partial_payment_with_due_date(self, temp_db, make_record):
        record = make_record(amount_due=500)
        result = temp_db.checkins.record_payment(record.id, 300,
                                                 date(2024, 3, 1))
        assert result.success
        stored = temp_db.checkins.get(record.id)
        assert stored.amount_paid == 300
        assert stored.balance == 200
        assert stored.balance_due_date == date(2024, 3, 1)

    @pytest.mark.parametrize("amount", [0, -50, 500.01])
    def test_out_of_range_payment_refused(self, temp_db, make_record, amount):
        record = make_record(amount_due=500)
        result = temp_db.checkins.record_payment(record.id, amount)
        assert not result
        assert result.level == "error"
        stored = temp_db.checkins.get(record.id)
        assert stored.amount_paid == 0
        assert stored.balance == 500

    def test_full_payment_clears_due_date(self, temp_db, make_record):
        record = make_record(amount_due=500)
        temp_db.checkins.record_payment(record.id, 300, date(2024, 3, 1))
        temp_db.checkins.record_payment(record.id, 200, date(2024, 4, 1))
        stored = temp_db.checkins.get(record.id)
        assert stored.balance == 0
        assert stored.balance_due_date is None

    def test_process_payment_drops_settled_items(self, temp_db, make_record):
        record = make_record()
        temp_db.checkins.add_products(record.id, [
            {"product_id": "prod-1", "name": "Water Refill", "quantity": 1,
             "price": 10},
            {"product_id": "prod-6", "name": "VITA MILK", "quantity": 2,
             "price": 40},
        ])
        result = temp_db.checkins.process_payment(record.id, 10, ["prod-1"])
        assert result.success
        stored = temp_db.checkins.get(record.id)
        assert [i["product_id"] for i in stored.products_purchased] == ["prod-6"]
        assert stored.amount_paid == 10
        assert stored.balance == 80

    def test_payment_on_missing_record(self, temp_db):
        result = temp_db.checkins.record_payment("rec-missing", 10)
        assert result.message == "Check-in record not found."


class TestCheckout:
    """Test the checkout sub-state machine."""

    def test_request_checkout_requires_confirmed(self, temp_db, make_record):
        pending = make_record(status="Pending")
        assert temp_db.checkins.request_checkout(pending.id) is False

    def test_request_checkout_only_once(self, temp_db, make_record):
        record = make_record()
        assert temp_db.checkins.request_checkout(record.id) is True
        assert temp_db.checkins.request_checkout(record.id) is False
        assert temp_db.checkins.get(record.id).pending_action == "checkout"

    def test_checkout_refused_with_balance_and_no_date(self, temp_db,
                                                       make_record):
        record = make_record(amount_due=200)
        temp_db.checkins.request_checkout(record.id)
        result = temp_db.checkins.confirm_checkout(record.id, now=DAY_1)
        assert not result
        assert "outstanding balance of ₱200.00" in result.message
        stored = temp_db.checkins.get(record.id)
        assert stored.checkout_timestamp is None
        assert stored.pending_action == "checkout"

    def test_checkout_with_due_date(self, temp_db, make_record):
        record = make_record(amount_due=200)
        temp_db.checkins.request_checkout(record.id)
        result = temp_db.checkins.confirm_checkout(record.id, date(2024, 2, 1),
                                                   now=DAY_1)
        assert result.success
        stored = temp_db.checkins.get(record.id)
        assert stored.checkout_timestamp == DAY_1
        assert stored.balance_due_date == date(2024, 2, 1)
        assert stored.pending_action is None

    def test_checkout_rejects_unparseable_date(self, temp_db, make_record):
        record = make_record(amount_due=500)
        temp_db.checkins.request_checkout(record.id)
        with pytest.raises(ValueError):
            temp_db.checkins.confirm_checkout(record.id, "someday", now=DAY_1)
        stored = temp_db.checkins.get(record.id)
        assert stored.checkout_timestamp is None
        assert stored.balance == 500

    @pytest.mark.parametrize("due_date", [date(2024, 1, 5), date(2024, 1, 10)])
    def test_checkout_refused_without_future_date(self, temp_db, make_record,
                                                  due_date):
        record = make_record(amount_due=500)
        temp_db.checkins.request_checkout(record.id)
        result = temp_db.checkins.confirm_checkout(record.id, due_date,
                                                   now=DAY_1)
        assert not result
        assert result.message == (
            "The payment date for Juan Dela Cruz must be after Jan 10, 2024.")
        stored = temp_db.checkins.get(record.id)
        assert stored.checkout_timestamp is None
        assert stored.pending_action == "checkout"

    def test_checkout_settled_record(self, temp_db, make_record):
        record = make_record(amount_due=0)
        temp_db.checkins.request_checkout(record.id)
        result = temp_db.checkins.confirm_checkout(record.id, now=DAY_1)
        assert result.success
        assert result.message == "Juan Dela Cruz has been checked out."

    def test_confirm_checkout_requires_request(self, temp_db, make_record):
        record = make_record()
        result = temp_db.checkins.confirm_checkout(record.id, now=DAY_1)
        assert not result
        assert temp_db.checkins.get(record.id).checkout_timestamp is None

    def test_cancel_pending_checkout(self, temp_db, make_record):
        record = make_record()
        temp_db.checkins.request_checkout(record.id)
        assert temp_db.checkins.cancel_pending_checkout(record.id) is True
        stored = temp_db.checkins.get(record.id)
        assert stored.pending_action is None
        assert stored.is_active is True
        assert temp_db.checkins.cancel_pending_checkout(record.id) is False


class TestConfirmAndCancel:
    """Test confirm() and cancel()."""

    def test_confirm_member_record(self, temp_db, make_record):
        record = make_record(status="Pending", pending_action="check-in")
        confirmed = temp_db.checkins.confirm(record.id, today=DAY_1.date())
        assert confirmed.status == "Confirmed"
        assert confirmed.pending_action is None

    def test_confirm_applies_amount_updates(self, temp_db, make_record):
        record = make_record(status="Pending", amount_due=900)
        confirmed = temp_db.checkins.confirm(
            record.id, {"amount_paid": 900, "payment_plan": "Service: Monthly"})
        assert confirmed.balance == 0
        assert confirmed.payment_plan == "Service: Monthly"

    def test_confirm_refused_when_already_active(self, temp_db, make_record):
        pending = make_record(status="Pending")
        assert make_record() is not None
        assert temp_db.checkins.confirm(pending.id) is None
        assert temp_db.checkins.get(pending.id).status == "Pending"

    def test_confirm_only_pending(self, temp_db, make_record):
        record = make_record()
        assert temp_db.checkins.confirm(record.id) is None

    def test_cancel_requires_reason(self, temp_db, make_record):
        record = make_record(status="Pending")
        assert temp_db.checkins.cancel(record.id, " ") is None
        cancelled = temp_db.checkins.cancel(record.id, "Left without paying")
        assert cancelled.status == "Cancelled"
        assert cancelled.cancellation_reason == "Left without paying"

    def test_cancel_confirmed_refused(self, temp_db, make_record):
        record = make_record()
        assert temp_db.checkins.cancel(record.id, "mistake") is None

    def test_confirm_amount_override_keeps_carried_debt(self, temp_db,
                                                        make_record):
        _checked_out_with_debt(temp_db, make_record, 500, 300, DAY_1,
                               date(2024, 3, 1))
        pending = make_record(status="Pending", now=DAY_2)
        assert pending.carried_over_balance == 200

        confirmed = temp_db.checkins.confirm(
            pending.id, {"amount_due": 100, "amount_paid": 100},
            today=DAY_2.date())
        assert confirmed.amount_due == 300
        assert confirmed.amount_paid == 100
        assert confirmed.balance == 200
        _assert_balanced(confirmed)
        assert temp_db.checkins.client_open_balance("Member", "G-0001") == 200

    def test_cancel_returns_carried_debt(self, temp_db, make_record):
        old = _checked_out_with_debt(temp_db, make_record, 500, 300, DAY_1,
                                     date(2024, 3, 1))
        pending = make_record(status="Pending", payment_plan="Monthly",
                              payment_amount=900, now=DAY_2)
        assert pending.payment_plan == "Monthly (+₱200.00 prev bal)"

        cancelled = temp_db.checkins.cancel(pending.id, "Client left")
        assert cancelled.carried_over_balance == 0
        assert cancelled.balance == 0
        assert cancelled.payment_plan == "Monthly"

        source = temp_db.checkins.get(old.id)
        assert source.balance == 200
        assert source.carried_forward_balance == 0
        assert source.carried_forward_to is None
        _assert_balanced(source)
        assert temp_db.checkins.client_open_balance("Member", "G-0001") == 200

        following = make_record(now=DAY_3)
        assert following.carried_over_balance == 200
        assert temp_db.checkins.get(old.id).carried_forward_to == following.id


class TestLineItems:
    """Test adding and removing tab items."""

    def test_add_products(self, temp_db, make_record):
        record = make_record()
        updated = temp_db.checkins.add_products(record.id, [
            {"product_id": "prod-7", "name": "WHEY PROTEIN", "quantity": 2,
             "price": 50},
        ])
        assert updated.amount_due == 100
        assert updated.balance == 100
        item = updated.products_purchased[0]
        assert item["item_id"].startswith("item-")
        assert item["quantity"] == 2

    def test_add_to_checked_out_record_refused(self, temp_db, make_record):
        record = make_record()
        temp_db.checkins.request_checkout(record.id)
        temp_db.checkins.confirm_checkout(record.id, now=DAY_1)
        assert temp_db.checkins.add_products(record.id, [
            {"product_id": "prod-1", "name": "Water", "price": 10}]) is None

    def test_add_coach_plan_sets_needs_coach(self, seeded_db, make_record, plan):
        record = make_record()
        updated = seeded_db.checkins.add_plans_to_tab(
            record.id, [plan("coach-pt-2")])
        assert updated.needs_coach is True
        assert updated.amount_due == 2200
        assert updated.products_purchased[0]["product_id"] == "coach-pt-2"

    def test_add_member_plan_keeps_needs_coach(self, seeded_db, make_record, plan):
        record = make_record()
        updated = seeded_db.checkins.add_plans_to_tab(record.id, [plan("price-2")])
        assert updated.needs_coach is False

    def test_remove_item_clears_due_date(self, temp_db, make_record):
        record = make_record()
        temp_db.checkins.add_products(record.id, [
            {"product_id": "prod-10", "name": "DRI-FIT SHIRT", "quantity": 1,
             "price": 350},
        ])
        temp_db.checkins.record_payment(record.id, 100, date(2024, 2, 1))
        item_id = temp_db.checkins.get(record.id).products_purchased[0]["item_id"]

        updated = temp_db.checkins.remove_item(record.id, item_id)

        assert updated.products_purchased == []
        assert updated.amount_due == 0
        assert updated.balance_due_date is None
        _assert_balanced(updated)

    def test_remove_unknown_item(self, temp_db, make_record):
        record = make_record()
        assert temp_db.checkins.remove_item(record.id, "item-nope") is None


class TestWalkinServices:
    """Test add_services_to_walkin."""

    def test_class_pack_for_new_walkin(self, seeded_db, plan):
        record = seeded_db.checkins.create({
            "record_type": "Walk-in", "name": "Ana", "contact_number": "0917",
            "amount_due": 0, "is_new_walkin": True,
        }, now=DAY_1)
        updated = seeded_db.checkins.add_services_to_walkin(
            record.id, [plan("class-tkd-bgn")])
        assert updated.amount_due == 3500
        assert updated.needs_coach is True
        assert updated.class_name == "Taekwondo - Beginner (8 Sessions)"
        assert updated.coach_assigned == "COACH RALPH"
        assert updated.session_plan_name == "Taekwondo - Beginner (8 Sessions)"
        assert updated.session_plan_total == 8

    def test_confirm_registers_client_with_pack(self, seeded_db, plan):
        record = seeded_db.checkins.create({
            "record_type": "Walk-in", "name": "Ana", "contact_number": "0917",
            "amount_due": 0, "is_new_walkin": True,
        }, now=DAY_1)
        seeded_db.checkins.add_services_to_walkin(
            record.id, [plan("class-tkd-bgn")])

        confirmed = seeded_db.checkins.confirm(record.id, today=DAY_1.date())

        assert confirmed.is_new_walkin is False
        client = seeded_db.walkins.get(confirmed.walkin_client_id)
        assert client.name == "Ana"
        assert client.last_visit == DAY_1.date()
        assert client.session_plan_name == "Taekwondo - Beginner (8 Sessions)"
        assert client.session_plan_total == 8
        assert client.session_plan_used == 0

    def test_walkin_pt_needs_coach(self, seeded_db, plan):
        record = seeded_db.checkins.create({
            "record_type": "Walk-in", "name": "Ana", "amount_due": 0,
            "is_new_walkin": True,
        }, now=DAY_1)
        updated = seeded_db.checkins.add_services_to_walkin(
            record.id, [plan("price-walkin-pt")])
        assert updated.needs_coach is True
        assert updated.session_plan_name is None

    def test_existing_client_gets_plan_directly(self, seeded_db, plan):
        client = seeded_db.walkins.register("Ana", "0917")
        record = seeded_db.checkins.create({
            "record_type": "Walk-in", "name": "Ana",
            "walkin_client_id": client.id, "status": "Confirmed",
            "amount_due": 0,
        }, now=DAY_1)
        seeded_db.checkins.add_services_to_walkin(
            record.id, [plan("class-tkd-adv")])
        stored = seeded_db.walkins.get(client.id)
        assert stored.session_plan == {
            "name": "Taekwondo - Advanced (8 Sessions)", "total": 8,
            "used": 0, "last_session_used_date": None,
        }

    def test_member_record_refused(self, seeded_db, make_record, plan):
        record = make_record()
        assert seeded_db.checkins.add_services_to_walkin(
            record.id, [plan("price-5")]) is None


class TestRenewalAndDues:
    """Test add_renewal_payments and add_partial_dues_payment."""

    def test_renewal_paid_in_full(self, seeded_db, make_record, plan):
        record = make_record(amount_due=100, payment_plan="Daily",
                             payment_amount=100)
        updated = seeded_db.checkins.add_renewal_payments(
            record.id, [plan("price-2"), plan("price-locker-1")])
        assert updated.payment_plan == (
            "Daily + Renewal: Monthly + Renewal: Locker Rental")
        assert updated.amount_due == 1300
        assert updated.amount_paid == 1200
        assert updated.balance == 100
        assert updated.payment_amount == 1300

    def test_partial_dues(self, seeded_db, make_record, plan):
        record = make_record()
        updated = seeded_db.checkins.add_partial_dues_payment(
            record.id, [plan("price-2")], 500, date(2024, 2, 1))
        assert updated.payment_plan == "Due: Monthly"
        assert updated.amount_due == 900
        assert updated.amount_paid == 500
        assert updated.balance == 400
        assert updated.balance_due_date == date(2024, 2, 1)

    def test_partial_dues_paid_fully_drops_date(self, seeded_db, make_record,
                                                plan):
        record = make_record()
        updated = seeded_db.checkins.add_partial_dues_payment(
            record.id, [plan("price-2")], 900, date(2024, 2, 1))
        assert updated.balance == 0
        assert updated.balance_due_date is None


class TestCoachFields:
    """Test assign_coach and mark_session_completed."""

    def test_assign_coach_leaves_amounts(self, temp_db, make_record):
        record = make_record(amount_due=300)
        updated = temp_db.checkins.assign_coach(record.id, "COACH WIL")
        assert updated.coach_assigned == "COACH WIL"
        assert updated.balance == 300

    def test_mark_session_completed(self, temp_db, make_record):
        record = make_record()
        assert temp_db.checkins.mark_session_completed(record.id).session_completed


class TestQueries:
    """Test ledger queries and the balance invariant across operations."""

    def test_open_balances_sorted_by_due_date(self, temp_db, make_record):
        late = _checked_out_with_debt(temp_db, make_record, 300, 0, DAY_1,
                                      date(2024, 3, 1))
        early = make_record(gym_number="G-0002", name="Maria", amount_due=100)
        temp_db.checkins.request_checkout(early.id)
        temp_db.checkins.confirm_checkout(early.id, date(2024, 2, 1), now=DAY_1)
        make_record(gym_number="G-0003", name="Paid", amount_due=0)

        ids = [r.id for r in temp_db.checkins.get_open_balances()]
        assert ids == [early.id, late.id]

    def test_active_and_daily_queries(self, temp_db, make_record):
        first = make_record(now=DAY_1)
        make_record(gym_number="G-0002", name="Maria", now=DAY_2)
        assert [r.id for r in temp_db.checkins.get_active(DAY_1.date())] == [first.id]
        assert len(temp_db.checkins.get_by_date(DAY_2.date())) == 1

    def test_invariant_holds_after_mixed_operations(self, seeded_db,
                                                    make_record, plan):
        record = make_record(amount_due=250.5)
        seeded_db.checkins.add_plans_to_tab(record.id, [plan("price-locker-1")])
        seeded_db.checkins.add_products(record.id, [
            {"product_id": "prod-3", "name": "Cobra", "quantity": 3,
             "price": 35},
        ])
        seeded_db.checkins.record_payment(record.id, 99.99, date(2024, 2, 1))
        seeded_db.checkins.add_renewal_payments(record.id, [plan("price-2")])

        for stored in seeded_db.checkins.list_all():
            _assert_balanced(stored)
        stored = seeded_db.checkins.get(record.id)
        assert stored.balance == pytest.approx(250.5 + 300 + 105 - 99.99)
