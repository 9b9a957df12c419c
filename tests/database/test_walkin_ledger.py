"""Walk-in client ledger tests.

Covers WalkinClientRepository: registration history, profile updates,
session pack assignment and session use.
"""
from datetime import date


TODAY = date(2024, 1, 10)


class TestRegister:
    """Test WalkinClientRepository.register()."""

    def test_register_writes_creation_history(self, temp_db):
        client = temp_db.walkins.register("Ana Santos", "09170000000",
                                          last_visit=TODAY)
        assert client.id.startswith("walkin-")
        assert client.session_plan is None
        assert client.history[0]["title"] == "Client Created"
        assert client.history[0]["type"] == "status_change"

    def test_register_with_session_plan(self, temp_db):
        client = temp_db.walkins.register(
            "Ana Santos", "0917", session_plan_name="Boxing - 6 Sessions",
            session_plan_total=6)
        assert client.session_plan == {
            "name": "Boxing - 6 Sessions", "total": 6, "used": 0,
            "last_session_used_date": None,
        }
        assert [h["title"] for h in client.history] == [
            "Session Plan Added", "Client Created"]

    def test_search_by_name_or_contact(self, temp_db):
        temp_db.walkins.register("Ana Santos", "09171112222")
        temp_db.walkins.register("Ben Cruz", "09183334444")
        assert [c.name for c in temp_db.walkins.search("ana")] == ["Ana Santos"]
        assert [c.name for c in temp_db.walkins.search("0918")] == ["Ben Cruz"]


class TestUpdate:
    """Test profile updates and session plan assignment."""

    def test_update_records_history(self, temp_db):
        client = temp_db.walkins.register("Ana", "0917")
        updated = temp_db.walkins.update(client.id, contact_number="0999",
                                         last_visit=TODAY)
        assert updated.contact_number == "0999"
        assert updated.last_visit == TODAY
        assert updated.history[0]["title"] == "Client Details Updated"

    def test_update_missing_client(self, temp_db):
        assert temp_db.walkins.update("walkin-missing", name="x") is None

    def test_set_session_plan_resets_usage(self, temp_db):
        client = temp_db.walkins.register(
            "Ana", "0917", session_plan_name="PT - 6 Sessions",
            session_plan_total=6)
        temp_db.walkins.use_session(client.id, TODAY)

        updated = temp_db.walkins.set_session_plan(client.id,
                                                   "PT - 16 Sessions", 16)
        assert updated.session_plan_total == 16
        assert updated.session_plan_used == 0
        assert updated.session_plan_last_used is None

    def test_clear_session_plan(self, temp_db):
        client = temp_db.walkins.register(
            "Ana", "0917", session_plan_name="PT - 6 Sessions",
            session_plan_total=6)
        cleared = temp_db.walkins.set_session_plan(client.id, None)
        assert cleared.session_plan is None


class TestUseSession:
    """Test WalkinClientRepository.use_session()."""

    def test_use_session_counts_up(self, temp_db):
        client = temp_db.walkins.register(
            "Ana", "0917", session_plan_name="Taekwondo - Beginner (8 Sessions)",
            session_plan_total=8)
        result = temp_db.walkins.use_session(client.id, TODAY)

        assert result.success
        assert result.message == "Session used for Ana. 7 sessions remaining."
        stored = temp_db.walkins.get(client.id)
        assert stored.session_plan_used == 1
        assert stored.session_plan_last_used == TODAY
        assert stored.last_visit == TODAY
        assert stored.history[0]["type"] == "session_update"

    def test_exhausted_pack_refused(self, temp_db):
        client = temp_db.walkins.register(
            "Ana", "0917", session_plan_name="Taekwondo - Beginner (8 Sessions)",
            session_plan_total=8)
        for _ in range(8):
            assert temp_db.walkins.use_session(client.id, TODAY)

        result = temp_db.walkins.use_session(client.id, TODAY)
        assert not result
        assert result.message == "No sessions remaining."
        assert temp_db.walkins.get(client.id).session_plan_used == 8

    def test_no_plan_refused(self, temp_db):
        client = temp_db.walkins.register("Ana", "0917")
        result = temp_db.walkins.use_session(client.id, TODAY)
        assert result.message == "Client does not have a session plan."

    def test_missing_client(self, temp_db):
        result = temp_db.walkins.use_session("walkin-missing", TODAY)
        assert result.message == "Walk-in client not found."


class TestPaymentHistory:
    """Test add_payment_history()."""

    def test_payment_entry(self, temp_db):
        client = temp_db.walkins.register("Ana", "0917")
        updated = temp_db.walkins.add_payment_history(client.id, 150,
                                                      "Walk-in Daily")
        entry = updated.history[0]
        assert entry["type"] == "payment"
        assert entry["payment_amount"] == 150.0
        assert entry["details"] == "Walk-in Daily"
