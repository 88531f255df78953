"""
Route schedule API tests.

Verifies:
- Projection endpoints return the rolling window with completion state
- Field roles are pinned to their own routes
- Template writes require a route manager role
- Toggle is limited to the assigned user or a manager
"""

from fieldops.models import RouteSchedule, VisitLog
from fieldops.services.calendar_service import business_today, day_of_week_for


def _today_route(make_store, make_schedule, user, creator, store_name="Alpha"):
    today = business_today()
    schedule = make_schedule(user, make_store(store_name), day_of_week_for(today), creator)
    return schedule, today


class TestProjection:
    def test_requires_auth(self, client, db_session):
        assert client.get("/api/route-schedules").status_code == 401
        assert client.get("/api/route-schedules/my").status_code == 401

    def test_my_projection_starts_today(self, client, db_session, admin, merchandiser, make_store, make_schedule, headers_for):
        schedule, today = _today_route(make_store, make_schedule, merchandiser, admin)

        resp = client.get("/api/route-schedules/my", headers=headers_for(merchandiser))

        assert resp.status_code == 200
        body = resp.get_json()
        assert len(body["window"]) == 7
        assert body["window"][0]["date"] == today.isoformat()
        assert body["visits"][0]["route_schedule_id"] == schedule.id
        assert body["visits"][0]["visit_date"] == today.isoformat()
        assert body["visits"][0]["is_completed"] is False
        assert body["summary"] == {"total": 1, "completed": 0, "pending": 1}

    def test_field_user_cannot_read_other_routes(
        self, client, db_session, admin, merchandiser, make_user, make_store, make_schedule, headers_for
    ):
        other = make_user(username="other")
        _today_route(make_store, make_schedule, other, admin)

        resp = client.get(f"/api/route-schedules?user_id={other.id}", headers=headers_for(merchandiser))

        assert resp.status_code == 200
        assert resp.get_json()["visits"] == []

    def test_manager_sees_everyone(
        self, client, db_session, admin, merchandiser, make_user, make_store, make_schedule, headers_for
    ):
        other = make_user(username="other")
        _today_route(make_store, make_schedule, merchandiser, admin, "Alpha")
        _today_route(make_store, make_schedule, other, admin, "Beta")

        everyone = client.get("/api/route-schedules", headers=headers_for(admin)).get_json()
        scoped = client.get(f"/api/route-schedules?user_id={other.id}", headers=headers_for(admin)).get_json()

        assert everyone["summary"]["total"] == 2
        assert [v["user_id"] for v in scoped["visits"]] == [other.id]

    def test_bad_user_id(self, client, db_session, admin, headers_for):
        resp = client.get("/api/route-schedules?user_id=abc", headers=headers_for(admin))
        assert resp.status_code == 400


class TestTemplateWrites:
    def test_manager_creates_schedules(self, client, db_session, supervisor, merchandiser, make_store, headers_for):
        a, b = make_store("Alpha"), make_store("Beta")

        resp = client.post(
            "/api/route-schedules",
            json={"user_id": merchandiser.id, "store_ids": [a.id, b.id], "day_of_week": 2},
            headers=headers_for(supervisor),
        )

        assert resp.status_code == 201
        assert resp.get_json()["count"] == 2

    def test_single_store_id_accepted(self, client, db_session, admin, merchandiser, make_store, headers_for):
        store = make_store("Alpha")
        resp = client.post(
            "/api/route-schedules",
            json={"user_id": merchandiser.id, "store_id": store.id, "day_of_week": 0},
            headers=headers_for(admin),
        )
        assert resp.status_code == 201
        assert resp.get_json()["count"] == 1

    def test_field_user_cannot_create(self, client, db_session, merchandiser, make_store, headers_for):
        store = make_store("Alpha")
        resp = client.post(
            "/api/route-schedules",
            json={"user_id": merchandiser.id, "store_ids": [store.id], "day_of_week": 2},
            headers=headers_for(merchandiser),
        )
        assert resp.status_code == 403

    def test_validation_and_not_found(self, client, db_session, admin, merchandiser, make_store, headers_for):
        store = make_store("Alpha")
        headers = headers_for(admin)

        bad_day = client.post(
            "/api/route-schedules",
            json={"user_id": merchandiser.id, "store_ids": [store.id], "day_of_week": 9},
            headers=headers,
        )
        missing_store = client.post(
            "/api/route-schedules",
            json={"user_id": merchandiser.id, "store_ids": [999], "day_of_week": 1},
            headers=headers,
        )

        assert bad_day.status_code == 400
        assert missing_store.status_code == 404

    def test_update_conflict(self, client, db_session, admin, merchandiser, make_store, make_schedule, headers_for):
        store = make_store("Alpha")
        make_schedule(merchandiser, store, 1, admin)
        other = make_schedule(merchandiser, store, 2, admin)

        resp = client.put(f"/api/route-schedules/{other.id}", json={"day_of_week": 1}, headers=headers_for(admin))

        assert resp.status_code == 409

    def test_delete_cascades(self, client, db_session, admin, merchandiser, make_store, make_schedule, headers_for):
        schedule, today = _today_route(make_store, make_schedule, merchandiser, admin)
        schedule_id = schedule.id
        client.post(
            f"/api/route-schedules/{schedule_id}/toggle-visit",
            json={"visit_date": today.isoformat()},
            headers=headers_for(merchandiser),
        )

        resp = client.delete(f"/api/route-schedules/{schedule_id}", headers=headers_for(admin))

        assert resp.status_code == 200
        assert resp.get_json()["deleted_visit_logs"] == 1
        db_session.expire_all()
        assert db_session.get(RouteSchedule, schedule_id) is None
        assert db_session.query(VisitLog).count() == 0

    def test_delete_missing(self, client, db_session, admin, headers_for):
        assert client.delete("/api/route-schedules/4242", headers=headers_for(admin)).status_code == 404


class TestToggleVisit:
    def test_owner_toggles_and_projection_reflects_it(
        self, client, db_session, admin, merchandiser, make_store, make_schedule, headers_for
    ):
        schedule, today = _today_route(make_store, make_schedule, merchandiser, admin)
        headers = headers_for(merchandiser)

        resp = client.post(
            f"/api/route-schedules/{schedule.id}/toggle-visit",
            json={"visit_date": today.isoformat()},
            headers=headers,
        )

        assert resp.status_code == 200
        assert resp.get_json()["is_completed"] is True
        projection = client.get("/api/route-schedules/my", headers=headers).get_json()
        assert projection["visits"][0]["is_completed"] is True
        assert projection["summary"]["completed"] == 1

    def test_other_field_user_forbidden(
        self, client, db_session, admin, merchandiser, make_user, make_store, make_schedule, headers_for
    ):
        schedule, today = _today_route(make_store, make_schedule, merchandiser, admin)
        intruder = make_user(username="intruder")

        resp = client.post(
            f"/api/route-schedules/{schedule.id}/toggle-visit",
            json={"visit_date": today.isoformat()},
            headers=headers_for(intruder),
        )

        assert resp.status_code == 403

    def test_missing_date_and_schedule(self, client, db_session, admin, merchandiser, make_store, make_schedule, headers_for):
        schedule, _ = _today_route(make_store, make_schedule, merchandiser, admin)
        headers = headers_for(admin)

        assert client.post(f"/api/route-schedules/{schedule.id}/toggle-visit", json={}, headers=headers).status_code == 400
        assert client.post(
            "/api/route-schedules/4242/toggle-visit", json={"visit_date": "2026-10-19"}, headers=headers
        ).status_code == 404


class TestReadHelpers:
    def test_templates_by_day_team_and_visit_count(
        self, client, db_session, admin, supervisor, merchandiser, make_store, make_schedule, headers_for
    ):
        schedule, today = _today_route(make_store, make_schedule, merchandiser, admin)
        client.post(
            f"/api/route-schedules/{schedule.id}/toggle-visit",
            json={"visit_date": today.isoformat()},
            headers=headers_for(merchandiser),
        )
        sup_headers = headers_for(supervisor)

        templates = client.get("/api/route-schedules/templates", headers=headers_for(merchandiser)).get_json()
        by_day = client.get(f"/api/route-schedules/by-day/{day_of_week_for(today)}", headers=sup_headers).get_json()
        team = client.get("/api/route-schedules/team", headers=sup_headers).get_json()
        count = client.get(
            f"/api/route-schedules/visit-count?user_id={merchandiser.id}", headers=sup_headers
        ).get_json()

        assert [r["id"] for r in templates["schedules"]] == [schedule.id]
        assert [r["id"] for r in by_day["schedules"]] == [schedule.id]
        assert [r["user_id"] for r in team["schedules"]] == [merchandiser.id]
        assert team["monthly_visit_counts"] == {str(merchandiser.id): 1}
        assert count == {"user_id": merchandiser.id, "count": 1}

    def test_team_requires_manager(self, client, db_session, merchandiser, headers_for):
        assert client.get("/api/route-schedules/team", headers=headers_for(merchandiser)).status_code == 403
