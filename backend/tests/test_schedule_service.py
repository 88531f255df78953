"""
Schedule template store tests.
"""

from datetime import date, timedelta

import pytest

from fieldops.models import RouteSchedule, RouteTask, Task, VisitLog
from fieldops.models.auth import ROLE_GENERAL_MANAGER, ROLE_SALES_MANAGER
from fieldops.models.tasks import TASK_COMPLETED
from fieldops.services import schedule_service
from fieldops.services.calendar_service import business_today
from fieldops.validation import ConflictError, NotFoundError, ValidationError


class TestAddSchedule:
    def test_fans_out_over_stores(self, db_session, admin, merchandiser, make_store):
        s1, s2 = make_store("Alpha"), make_store("Beta")

        result = schedule_service.add_schedule(
            user_id=merchandiser.id, store_ids=[s1.id, s2.id], day_of_week=1, created_by=admin.id
        )

        assert result["count"] == 2
        assert result["skipped"] == 0
        assert db_session.query(RouteSchedule).filter_by(user_id=merchandiser.id).count() == 2

    def test_duplicate_slots_are_silently_skipped(self, db_session, admin, merchandiser, make_store):
        s1, s2 = make_store("Alpha"), make_store("Beta")
        schedule_service.add_schedule(
            user_id=merchandiser.id, store_ids=[s1.id], day_of_week=3, created_by=admin.id
        )

        result = schedule_service.add_schedule(
            user_id=merchandiser.id, store_ids=[s1.id, s2.id, s1.id], day_of_week=3, created_by=admin.id
        )

        assert result["count"] == 1
        assert result["skipped"] == 1
        assert db_session.query(RouteSchedule).count() == 2

    def test_same_store_other_day_is_a_new_slot(self, db_session, admin, merchandiser, make_store):
        store = make_store("Alpha")
        schedule_service.add_schedule(user_id=merchandiser.id, store_ids=[store.id], day_of_week=0, created_by=admin.id)
        result = schedule_service.add_schedule(
            user_id=merchandiser.id, store_ids=[store.id], day_of_week=4, created_by=admin.id
        )
        assert result["count"] == 1

    @pytest.mark.parametrize("dow", [-1, 7, "x", None, True])
    def test_invalid_day_of_week(self, db_session, admin, merchandiser, make_store, dow):
        store = make_store("Alpha")
        with pytest.raises(ValidationError):
            schedule_service.add_schedule(
                user_id=merchandiser.id, store_ids=[store.id], day_of_week=dow, created_by=admin.id
            )

    def test_empty_store_list_rejected(self, db_session, admin, merchandiser):
        with pytest.raises(ValidationError):
            schedule_service.add_schedule(user_id=merchandiser.id, store_ids=[], day_of_week=1, created_by=admin.id)

    def test_unknown_store_rejected(self, db_session, admin, merchandiser, make_store):
        store = make_store("Alpha")
        with pytest.raises(NotFoundError):
            schedule_service.add_schedule(
                user_id=merchandiser.id, store_ids=[store.id, 99999], day_of_week=1, created_by=admin.id
            )
        assert db_session.query(RouteSchedule).count() == 0

    def test_concurrent_insert_of_same_slot_is_skipped(self, db_session, admin, merchandiser, make_store, lose_insert_race):
        store_id, user_id, admin_id = make_store("Alpha").id, merchandiser.id, admin.id

        def winner():
            db_session.add(RouteSchedule(user_id=user_id, store_id=store_id, day_of_week=2, created_by=admin_id))

        lose_insert_race(winner)
        result = schedule_service.add_schedule(
            user_id=user_id, store_ids=[store_id], day_of_week=2, created_by=admin_id
        )

        assert result == {"ids": [], "count": 0, "skipped": 1}
        assert db_session.query(RouteSchedule).filter_by(user_id=user_id, store_id=store_id, day_of_week=2).count() == 1

    def test_unknown_user_rejected(self, db_session, admin, make_store):
        store = make_store("Alpha")
        with pytest.raises(NotFoundError):
            schedule_service.add_schedule(user_id=99999, store_ids=[store.id], day_of_week=1, created_by=admin.id)


class TestUpdateSchedule:
    def test_moves_to_new_day(self, db_session, admin, merchandiser, make_store, make_schedule):
        schedule = make_schedule(merchandiser, make_store("Alpha"), 1, admin)

        updated = schedule_service.update_schedule(schedule.id, {"day_of_week": 5})

        assert updated.day_of_week == 5

    def test_conflicting_slot_rejected(self, db_session, admin, merchandiser, make_store, make_schedule):
        store = make_store("Alpha")
        make_schedule(merchandiser, store, 1, admin)
        other = make_schedule(merchandiser, store, 2, admin)

        with pytest.raises(ConflictError):
            schedule_service.update_schedule(other.id, {"day_of_week": 1})

        db_session.expire_all()
        assert db_session.get(RouteSchedule, other.id).day_of_week == 2

    def test_effective_bounds_must_be_ordered(self, db_session, admin, merchandiser, make_store, make_schedule):
        schedule = make_schedule(merchandiser, make_store("Alpha"), 1, admin)
        with pytest.raises(ValidationError):
            schedule_service.update_schedule(
                schedule.id, {"effective_from": "2026-05-01", "effective_until": "2026-04-01"}
            )

    def test_moving_slot_drops_open_occurrences(self, db_session, admin, merchandiser, make_store, make_schedule):
        store = make_store("Alpha")
        schedule = make_schedule(merchandiser, store, 1, admin)
        today = business_today()
        past, future, later = today - timedelta(days=7), today + timedelta(days=7), today + timedelta(days=14)

        def route_task(day, completed=False):
            task = Task(title="Visit Alpha", assigned_to=merchandiser.id, assigned_by=admin.id)
            if completed:
                task.status = TASK_COMPLETED
            db_session.add(task)
            db_session.flush()
            db_session.add(RouteTask(
                route_schedule_id=schedule.id, task_id=task.id, scheduled_date=day,
                store_id=store.id, user_id=merchandiser.id, is_completed=completed,
            ))

        route_task(past)
        route_task(future)
        route_task(later, completed=True)
        db_session.add(VisitLog(
            route_schedule_id=schedule.id, store_id=store.id, user_id=merchandiser.id,
            visit_date=future, is_completed=False,
        ))
        db_session.add(VisitLog(
            route_schedule_id=schedule.id, store_id=store.id, user_id=merchandiser.id,
            visit_date=later, is_completed=True,
        ))
        db_session.commit()

        schedule_service.update_schedule(schedule.id, {"day_of_week": 5})

        db_session.expire_all()
        assert sorted(rt.scheduled_date for rt in db_session.query(RouteTask).all()) == [past, later]
        assert db_session.query(Task).count() == 2
        assert [log.visit_date for log in db_session.query(VisitLog).all()] == [later]

    def test_effective_bounds_change_keeps_occurrences(self, db_session, admin, merchandiser, make_store, make_schedule):
        store = make_store("Alpha")
        schedule = make_schedule(merchandiser, store, 1, admin)
        db_session.add(VisitLog(
            route_schedule_id=schedule.id, store_id=store.id, user_id=merchandiser.id,
            visit_date=business_today() + timedelta(days=7), is_completed=False,
        ))
        db_session.commit()

        schedule_service.update_schedule(schedule.id, {"effective_until": "2099-01-01"})

        db_session.expire_all()
        assert db_session.query(VisitLog).count() == 1

    def test_slot_taken_concurrently_is_a_conflict(
        self, db_session, admin, merchandiser, make_store, make_schedule, monkeypatch
    ):
        store = make_store("Alpha")
        schedule = make_schedule(merchandiser, store, 1, admin)
        schedule_id, store_id, user_id, admin_id = schedule.id, store.id, merchandiser.id, admin.id

        # Another manager claims Friday after the clash check has passed.
        def today_after_competing_write():
            db_session.add(RouteSchedule(user_id=user_id, store_id=store_id, day_of_week=5, created_by=admin_id))
            db_session.commit()
            return business_today()

        monkeypatch.setattr(schedule_service, "business_today", today_after_competing_write)

        with pytest.raises(ConflictError):
            schedule_service.update_schedule(schedule_id, {"day_of_week": 5})

        db_session.expire_all()
        assert db_session.get(RouteSchedule, schedule_id).day_of_week == 1
        assert db_session.query(RouteSchedule).filter_by(user_id=user_id, day_of_week=5).count() == 1

    def test_missing_schedule(self, db_session):
        with pytest.raises(NotFoundError):
            schedule_service.update_schedule(12345, {"day_of_week": 1})


class TestDeleteSchedule:
    def test_cascades_to_visit_logs_and_route_tasks(self, db_session, admin, merchandiser, make_store, make_schedule):
        store = make_store("Alpha")
        schedule = make_schedule(merchandiser, store, 1, admin)
        keep = make_schedule(merchandiser, make_store("Beta"), 1, admin)

        task = Task(title="Visit Alpha", assigned_to=merchandiser.id, assigned_by=admin.id)
        db_session.add(task)
        db_session.flush()
        db_session.add(RouteTask(
            route_schedule_id=schedule.id, task_id=task.id, scheduled_date=date(2026, 10, 19),
            store_id=store.id, user_id=merchandiser.id,
        ))
        db_session.add(VisitLog(
            route_schedule_id=schedule.id, store_id=store.id, user_id=merchandiser.id,
            visit_date=date(2026, 10, 19), is_completed=True,
        ))
        db_session.add(VisitLog(
            route_schedule_id=keep.id, store_id=keep.store_id, user_id=merchandiser.id,
            visit_date=date(2026, 10, 19), is_completed=True,
        ))
        db_session.commit()
        schedule_id = schedule.id

        result = schedule_service.delete_schedule(schedule_id)

        assert result == {"deleted_tasks": 1, "deleted_visit_logs": 1}
        assert db_session.get(RouteSchedule, schedule_id) is None
        assert db_session.query(VisitLog).filter_by(route_schedule_id=schedule_id).count() == 0
        assert db_session.query(RouteTask).count() == 0
        assert db_session.query(Task).count() == 0
        assert db_session.query(VisitLog).filter_by(route_schedule_id=keep.id).count() == 1

    def test_missing_schedule(self, db_session):
        with pytest.raises(NotFoundError):
            schedule_service.delete_schedule(12345)


class TestReadPaths:
    def test_list_for_user_has_display_fields(self, db_session, admin, merchandiser, make_store, make_schedule):
        make_schedule(merchandiser, make_store("Zeta", code="Z1"), 2, admin)
        make_schedule(merchandiser, make_store("Alpha"), 2, admin)

        rows = schedule_service.list_for_user(merchandiser.id)

        assert [r["store_name"] for r in rows] == ["Alpha", "Zeta"]
        assert rows[1]["store_code"] == "Z1"
        assert rows[0]["user_name"] == "Mona Merch"
        assert rows[0]["created_by_name"] == "Admin"

    def test_list_by_day_filters(self, db_session, admin, merchandiser, make_store, make_schedule):
        make_schedule(merchandiser, make_store("Alpha"), 2, admin)
        make_schedule(merchandiser, make_store("Beta"), 3, admin)

        rows = schedule_service.list_by_day(3)

        assert [r["store_name"] for r in rows] == ["Beta"]

    def test_supervisor_team_is_direct_reports(
        self, db_session, admin, supervisor, merchandiser, make_user, make_store, make_schedule
    ):
        outsider = make_user(username="outsider")
        store = make_store("Alpha")
        make_schedule(merchandiser, store, 1, admin)
        make_schedule(outsider, store, 1, admin)

        rows = schedule_service.list_team(supervisor)

        assert {r["user_id"] for r in rows} == {merchandiser.id}

    def test_team_scope_by_role(self, db_session, supervisor, merchandiser, make_user):
        gm = make_user(ROLE_GENERAL_MANAGER)
        sm = make_user(ROLE_SALES_MANAGER)

        assert schedule_service.team_user_ids(gm) is None
        assert set(schedule_service.team_user_ids(sm)) == {supervisor.id, merchandiser.id}
        assert schedule_service.team_user_ids(merchandiser) == [merchandiser.id]
