"""
Completion evidence store tests.

Covers manual toggles, snapshot-derived evidence and its idempotence.
"""

from datetime import date

import pytest

from fieldops.models import RouteSchedule, StockSnapshot, VisitLog
from fieldops.services import snapshot_service, visit_service
from fieldops.validation import NotFoundError, ValidationError


MONDAY = date(2026, 10, 19)  # day_of_week 1


@pytest.fixture
def monday_route(admin, merchandiser, make_store, make_schedule):
    store = make_store("Alpha")
    return make_schedule(merchandiser, store, 1, admin)


def _logs(db_session, schedule_id):
    db_session.expire_all()
    return db_session.query(VisitLog).filter_by(route_schedule_id=schedule_id).all()


class TestToggleVisit:
    def test_first_toggle_creates_completed_log(self, db_session, monday_route, merchandiser):
        result = visit_service.toggle_visit(monday_route.id, "2026-10-19", actor_id=merchandiser.id)

        assert result["is_completed"] is True
        logs = _logs(db_session, monday_route.id)
        assert len(logs) == 1
        assert logs[0].visit_date == MONDAY
        assert logs[0].completed_at is not None
        assert logs[0].user_id == merchandiser.id

    def test_second_toggle_flips_back(self, db_session, monday_route):
        visit_service.toggle_visit(monday_route.id, MONDAY)
        result = visit_service.toggle_visit(monday_route.id, MONDAY)

        assert result["is_completed"] is False
        logs = _logs(db_session, monday_route.id)
        assert len(logs) == 1
        assert logs[0].is_completed is False
        assert logs[0].completed_at is None

    def test_toggle_off_clears_snapshot_link(self, db_session, monday_route, merchandiser, make_product):
        product = make_product("Juice")
        snapshot = StockSnapshot(
            store_id=monday_route.store_id, product_id=product.id, date=MONDAY, user_id=merchandiser.id
        )
        db_session.add(snapshot)
        db_session.commit()
        visit_service.record_visit_from_snapshot(
            monday_route.store_id, merchandiser.id, MONDAY, snapshot_id=snapshot.id
        )

        visit_service.toggle_visit(monday_route.id, MONDAY)

        log = _logs(db_session, monday_route.id)[0]
        assert log.is_completed is False
        assert log.completed_by_snapshot_id is None

    def test_unknown_schedule(self, db_session):
        with pytest.raises(NotFoundError):
            visit_service.toggle_visit(4242, MONDAY)

    @pytest.mark.parametrize("bad", [None, "", "19/10/2026", "2026-10-19T10:00:00"])
    def test_visit_date_is_validated(self, db_session, monday_route, bad):
        with pytest.raises(ValidationError):
            visit_service.toggle_visit(monday_route.id, bad)


class TestRecordVisitFromSnapshot:
    def test_marks_scheduled_visit_complete(self, db_session, monday_route, merchandiser):
        result = visit_service.record_visit_from_snapshot(monday_route.store_id, merchandiser.id, "2026-10-19")

        assert result["is_completed"] is True
        assert result["no_schedule"] is False
        assert result["route_schedule_id"] == monday_route.id
        assert _logs(db_session, monday_route.id)[0].is_completed is True

    def test_duplicate_delivery_is_idempotent(self, db_session, monday_route, merchandiser):
        for _ in range(3):
            visit_service.record_visit_from_snapshot(monday_route.store_id, merchandiser.id, MONDAY)

        logs = _logs(db_session, monday_route.id)
        assert len(logs) == 1
        assert logs[0].is_completed is True

    def test_overrides_manual_untoggle(self, db_session, monday_route, merchandiser):
        visit_service.toggle_visit(monday_route.id, MONDAY)
        visit_service.toggle_visit(monday_route.id, MONDAY)
        assert _logs(db_session, monday_route.id)[0].is_completed is False

        visit_service.record_visit_from_snapshot(monday_route.store_id, merchandiser.id, MONDAY)

        logs = _logs(db_session, monday_route.id)
        assert len(logs) == 1
        assert logs[0].is_completed is True

    def test_unscheduled_store_is_noop_success(self, db_session, monday_route, merchandiser, make_store):
        elsewhere = make_store("Elsewhere")

        result = visit_service.record_visit_from_snapshot(elsewhere.id, merchandiser.id, MONDAY)

        assert result["no_schedule"] is True
        assert result["is_completed"] is False
        assert db_session.query(VisitLog).count() == 0

    def test_wrong_weekday_is_noop(self, db_session, monday_route, merchandiser):
        result = visit_service.record_visit_from_snapshot(monday_route.store_id, merchandiser.id, date(2026, 10, 20))
        assert result["no_schedule"] is True

    def test_other_users_schedule_not_matched(self, db_session, monday_route, make_user):
        stranger = make_user(username="stranger")
        result = visit_service.record_visit_from_snapshot(monday_route.store_id, stranger.id, MONDAY)
        assert result["no_schedule"] is True

    def test_respects_effective_bounds(self, db_session, monday_route, merchandiser):
        monday_route.effective_from = date(2026, 11, 1)
        db_session.commit()

        result = visit_service.record_visit_from_snapshot(monday_route.store_id, merchandiser.id, MONDAY)

        assert result["no_schedule"] is True
        assert db_session.query(RouteSchedule).count() == 1
        assert db_session.query(VisitLog).count() == 0


class TestLostInsertRace:
    """A write that loses the unique-constraint race retries onto the winner's row."""

    def test_concurrent_first_toggles_leave_one_row(self, db_session, monday_route, lose_insert_race):
        schedule_id, store_id, user_id = monday_route.id, monday_route.store_id, monday_route.user_id

        def winner():
            db_session.add(VisitLog(
                route_schedule_id=schedule_id, store_id=store_id, user_id=user_id,
                visit_date=MONDAY, is_completed=True,
            ))

        lose_insert_race(winner)
        result = visit_service.toggle_visit(schedule_id, MONDAY)

        # Both toggles land, serialized: the winner turned it on, this one off.
        assert result["is_completed"] is False
        logs = _logs(db_session, schedule_id)
        assert len(logs) == 1
        assert logs[0].is_completed is False
        assert logs[0].completed_at is None

    def test_concurrent_snapshots_leave_one_completed_row(
        self, db_session, monday_route, merchandiser, make_product, lose_insert_race
    ):
        schedule_id, store_id, user_id = monday_route.id, monday_route.store_id, merchandiser.id
        first = StockSnapshot(store_id=store_id, product_id=make_product("Juice").id, date=MONDAY, user_id=user_id)
        second = StockSnapshot(store_id=store_id, product_id=make_product("Water").id, date=MONDAY, user_id=user_id)
        db_session.add_all([first, second])
        db_session.commit()
        first_id, second_id = first.id, second.id

        def winner():
            db_session.add(VisitLog(
                route_schedule_id=schedule_id, store_id=store_id, user_id=user_id,
                visit_date=MONDAY, is_completed=True, completed_by_snapshot_id=first_id,
            ))

        lose_insert_race(winner)
        result = visit_service.record_visit_from_snapshot(store_id, user_id, MONDAY, snapshot_id=second_id)

        assert result["is_completed"] is True
        logs = _logs(db_session, schedule_id)
        assert len(logs) == 1
        assert logs[0].is_completed is True
        assert logs[0].completed_by_snapshot_id == second_id

    def test_concurrent_snapshot_upsert_updates_winner(
        self, db_session, monday_route, merchandiser, make_product, lose_insert_race
    ):
        store_id, user_id = monday_route.store_id, merchandiser.id
        product_id = make_product("Juice").id

        def winner():
            db_session.add(StockSnapshot(store_id=store_id, product_id=product_id, date=MONDAY, user_id=user_id, qty=1))

        lose_insert_race(winner)
        result = snapshot_service.add_snapshot(
            {"store_id": store_id, "product_id": product_id, "date": MONDAY.isoformat(), "qty": 9},
            user_id,
        )

        assert result["created"] is False
        assert result["snapshot"]["qty"] == 9
        db_session.expire_all()
        assert db_session.query(StockSnapshot).count() == 1
        assert len(_logs(db_session, monday_route.id)) == 1
