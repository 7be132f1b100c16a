from datetime import time

import pytest
from sqlalchemy import select

from fieldops.models.route import Route, RouteStatus
from fieldops.models.route_progress import RouteProgress
from fieldops.models.task import TaskStatus
from tests.conftest import ROUTE_DAY

DAY = ROUTE_DAY.isoformat()


def _optimize(client, business, **body):
    payload = {"business_id": business.id, "date": DAY}
    payload.update(body)
    return client.post("/api/routes/optimize", json=payload)


def test_optimize_plans_and_persists_routes(client, db, business, make_team, make_task):
    team = make_team()
    tasks = [make_task(40.0, -74.0), make_task(40.03, -74.03), make_task(40.06, -74.06)]

    response = _optimize(client, business, params={"consider_weather": False})

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["total_tasks"] == 3
    assert body["assigned_tasks"] == 3
    route = body["routes"][0]
    assert route["team_id"] == team.id
    assert route["route_date"] == DAY
    assert route["status"] == RouteStatus.optimized.value
    assert sorted(route["tasks"]) == sorted(t.id for t in tasks)
    assert [s["arrival_time"] for s in route["sequence"]] == ["08:00", "08:45", "09:30"]
    assert 60 <= route["optimization_score"] <= 100

    db.expire_all()
    assert db.query(Route).count() == 1
    assert {t.status for t in tasks} == {TaskStatus.assigned}


def test_request_id_is_echoed(client, business):
    response = client.get("/api/routes/optimized", params={"business_id": business.id}, headers={"X-Request-ID": "abc-123"})

    assert response.status_code == 200
    assert response.headers["X-Request-ID"] == "abc-123"


def test_optimize_without_tasks_is_no_eligible_work(client, business, make_team):
    make_team()

    response = _optimize(client, business)

    assert response.status_code == 422
    assert response.json() == {
        "success": False,
        "message": "No eligible tasks found for optimization",
        "error": "no_eligible_work",
    }


def test_unknown_business_is_not_found(client):
    response = client.post("/api/routes/optimize", json={"business_id": 999, "date": DAY})

    assert response.status_code == 404
    assert response.json()["error"] == "not_found"


def test_date_and_month_together_are_rejected(client, business):
    response = client.get(
        "/api/routes/optimized",
        params={"business_id": business.id, "date": DAY, "month": DAY[:7]},
    )

    assert response.status_code == 400
    assert response.json()["error"] == "invalid_input"


def test_malformed_body_is_invalid_input(client, business):
    response = client.post("/api/routes/optimize", json={"business_id": "not-a-number"})

    assert response.status_code == 422
    assert response.json()["error"] == "invalid_input"


def test_optimized_routes_are_listed_for_the_month(client, business, make_team, make_task):
    make_team()
    make_task()
    _optimize(client, business)

    response = client.get("/api/routes/optimized", params={"business_id": business.id, "month": DAY[:7]})

    body = response.json()
    assert body["period"] == DAY[:7]
    assert len(body["routes"]) == 1


def test_assign_then_progress_then_snapshot(client, db, business, make_team, make_task):
    planner = make_team()
    crew = make_team(name="Team Bravo", external_identifier="crew-9")
    task = make_task()
    route_id = _optimize(client, business, team_ids=[str(planner.id)]).json()["routes"][0]["route_id"]

    assigned = client.post(
        f"/api/routes/{route_id}/assign",
        json={"business_id": business.id, "team_id": "crew-9", "assigned_by": "dispatcher"},
    )
    assert assigned.status_code == 200
    assert assigned.json()["team_id"] == crew.id
    assert assigned.json()["status"] == RouteStatus.assigned.value

    started = client.put(
        f"/api/routes/{route_id}/progress",
        json={"event": "started", "business_id": business.id, "team_id": "crew-9", "task_id": task.id},
    )
    assert started.status_code == 200
    assert started.json()["task_status"] == TaskStatus.in_progress.value

    snapshot = client.get("/api/routes/teams/crew-9/progress", params={"business_id": business.id, "date": DAY})
    body = snapshot.json()
    assert body["route_id"] == route_id
    assert body["team_name"] == "Team Bravo"
    assert body["route_status"] == "in_progress"

    again = client.post(f"/api/routes/{route_id}/assign", json={"business_id": business.id, "team_id": str(planner.id)})
    assert again.status_code == 400


def test_unknown_progress_event_is_rejected(client, business, make_team, make_task):
    team = make_team()
    task = make_task()

    response = client.put(
        "/api/routes/route-x/progress",
        json={"event": "teleported", "business_id": business.id, "team_id": str(team.id), "task_id": task.id},
    )

    assert response.status_code == 422


def test_reoptimize_route(client, business, make_team, make_task):
    make_team()
    make_task(40.0, -74.0)
    make_task(40.2, -74.2)
    route_id = _optimize(client, business).json()["routes"][0]["route_id"]

    response = client.post(f"/api/routes/{route_id}/reoptimize", json={"business_id": business.id})

    assert response.status_code == 200
    assert response.json()["route"]["route_id"] == route_id
    assert len(response.json()["route"]["sequence"]) == 2


def test_reoptimize_unknown_route(client, business):
    response = client.post("/api/routes/route-missing/reoptimize", json={"business_id": business.id})

    assert response.status_code == 404


def test_validate_reports_skill_mismatch(client, business, make_team, make_task):
    team = make_team(skills=["plumbing"])
    task = make_task(skills_required=["electrical"])

    response = client.get(
        f"/api/routes/teams/{team.id}/validate",
        params={"business_id": business.id, "task_ids": [task.id]},
    )

    body = response.json()
    assert response.status_code == 200
    assert body["valid"] is False
    assert [v["type"] for v in body["violations"]] == ["skill_mismatch"]
    assert body["metrics"]["task_count"] == 1


def test_metrics_for_unknown_tasks_is_not_found(client, business, make_team):
    team = make_team()

    response = client.get(
        f"/api/routes/teams/{team.id}/metrics",
        params={"business_id": business.id, "task_ids": [12345]},
    )

    assert response.status_code == 404


def test_metrics_in_given_order(client, business, make_team, make_task):
    team = make_team()
    a = make_task(40.0, -74.0, estimated_duration=20)
    b = make_task(40.0, -74.0, estimated_duration=40)

    response = client.get(
        f"/api/routes/teams/{team.id}/metrics",
        params={"business_id": business.id, "task_ids": [a.id, b.id]},
    )

    metrics = response.json()["metrics"]
    assert metrics["total_distance"] == 0
    assert metrics["total_time"] == 60
    assert metrics["optimization_score"] == 100


def test_stats_after_completion(client, business, make_team, make_task):
    team = make_team()
    task = make_task()
    route_id = _optimize(client, business).json()["routes"][0]["route_id"]
    client.put(
        f"/api/routes/{route_id}/progress",
        json={"event": "completed", "business_id": business.id, "team_id": str(team.id), "task_id": task.id},
    )

    response = client.get("/api/routes/stats", params={"business_id": business.id, "date": DAY})

    stats = response.json()["stats"]
    assert stats["routes_count"] == 1
    assert stats["total_tasks"] == 1
    assert stats["completed_tasks"] == 1
    assert stats["avg_execution_time"] == 30
    assert stats["teams_with_routes"] == 1


def test_health(client):
    assert client.get("/health").json()["status"] == "healthy"


def test_optimize_with_date_and_month_is_invalid_input(client, business):
    response = _optimize(client, business, month=DAY[:7])

    assert response.status_code == 400
    assert response.json()["error"] == "invalid_input"


def _live_progress(db, team):
    return db.execute(
        select(RouteProgress).where(RouteProgress.team_id == team.id, RouteProgress.is_deleted.is_(False))
    ).scalars().all()


def test_rerun_for_a_planned_day_keeps_earlier_work(client, db, business, make_team, make_task):
    team = make_team()
    first = [make_task(40.0, -74.0), make_task(40.03, -74.03)]
    old_route_id = _optimize(client, business).json()["routes"][0]["route_id"]

    late = make_task(40.06, -74.06)
    response = _optimize(client, business)

    body = response.json()
    assert response.status_code == 200
    assert body["total_tasks"] == 3
    assert body["assigned_tasks"] == 3
    assert body["warnings"] == []
    route = body["routes"][0]
    assert route["route_id"] != old_route_id
    assert sorted(route["tasks"]) == sorted(t.id for t in [*first, late])

    db.expire_all()
    live = db.execute(select(Route).where(Route.is_deleted.is_(False))).scalars().all()
    assert [r.route_code for r in live] == [route["route_id"]]
    assert {t.status for t in [*first, late]} == {TaskStatus.assigned}
    assert {t.assigned_route_id for t in [*first, late]} == {live[0].id}
    assert len(_live_progress(db, team)) == 1


def test_rerun_with_less_capacity_reports_released_work(client, db, business, make_team, make_task):
    team = make_team()
    tasks = [make_task(40.0, -74.0), make_task(40.03, -74.03), make_task(40.06, -74.06)]
    old_route_id = _optimize(client, business).json()["routes"][0]["route_id"]

    team.max_daily_tasks = 2
    db.add(team)
    db.commit()
    body = _optimize(client, business).json()

    assert body["assigned_tasks"] == 2
    [dropped_id] = body["unassigned_task_ids"]
    assert body["warnings"] == [f"Task {dropped_id} released from superseded route {old_route_id}"]

    db.expire_all()
    dropped = next(t for t in tasks if t.id == dropped_id)
    assert dropped.status == TaskStatus.pending
    assert dropped.assigned_route_id is None


def test_assign_to_another_team_moves_tasks_and_progress(client, db, business, make_team, make_task):
    planner = make_team()
    crew = make_team(name="Team Bravo")
    planned, own = make_task(40.0, -74.0), make_task(40.1, -74.1)
    route_id = _optimize(client, business, team_ids=[str(planner.id)], task_ids=[planned.id]).json()["routes"][0]["route_id"]
    crew_route_id = _optimize(client, business, team_ids=[str(crew.id)], task_ids=[own.id]).json()["routes"][0]["route_id"]

    response = client.post(f"/api/routes/{route_id}/assign", json={"business_id": business.id, "team_id": str(crew.id)})

    assert response.status_code == 200
    assert response.json()["warnings"] == [f"Task {own.id} released from superseded route {crew_route_id}"]

    db.expire_all()
    assert planned.assigned_team_id == crew.id
    assert own.status == TaskStatus.pending
    assert _live_progress(db, planner) == []
    [progress] = _live_progress(db, crew)
    assert progress.route_id == db.execute(select(Route.id).where(Route.route_code == route_id)).scalar_one()
    assert progress.team_name == "Team Bravo"
    assert progress.progress_updates[-1]["status"] == "route_assigned"

    snapshot = client.get(f"/api/routes/teams/{crew.id}/progress", params={"business_id": business.id, "date": DAY}).json()
    assert snapshot["route_id"] == route_id


def test_assign_to_team_without_required_skills_is_rejected(client, db, business, make_team, make_task):
    planner = make_team(skills=["electrical"])
    crew = make_team(name="Team Bravo", skills=["plumbing"])
    task = make_task(skills_required=["electrical"])
    route_id = _optimize(client, business, team_ids=[str(planner.id)]).json()["routes"][0]["route_id"]

    response = client.post(f"/api/routes/{route_id}/assign", json={"business_id": business.id, "team_id": str(crew.id)})

    assert response.status_code == 400
    assert f"Task {task.name} requires skills: electrical" in response.json()["message"]
    db.expire_all()
    assert db.execute(select(Route).where(Route.route_code == route_id)).scalar_one().team_id == planner.id


def test_assign_with_missing_equipment_returns_warning(client, business, make_team, make_task):
    planner = make_team(equipment=["ladder"])
    crew = make_team(name="Team Bravo")
    task = make_task(equipment_required=["ladder"])
    route_id = _optimize(client, business, team_ids=[str(planner.id)]).json()["routes"][0]["route_id"]

    response = client.post(f"/api/routes/{route_id}/assign", json={"business_id": business.id, "team_id": str(crew.id)})

    assert response.status_code == 200
    assert response.json()["warnings"] == [f"Task {task.name} requires equipment: ladder"]


def test_assign_to_team_with_started_route_is_rejected(client, db, business, make_team, make_task):
    planner = make_team()
    crew = make_team(name="Team Bravo")
    planned, busy = make_task(40.0, -74.0), make_task(40.1, -74.1)
    route_id = _optimize(client, business, team_ids=[str(planner.id)], task_ids=[planned.id]).json()["routes"][0]["route_id"]
    crew_route_id = _optimize(client, business, team_ids=[str(crew.id)], task_ids=[busy.id]).json()["routes"][0]["route_id"]
    client.put(
        f"/api/routes/{crew_route_id}/progress",
        json={"event": "started", "business_id": business.id, "team_id": str(crew.id), "task_id": busy.id},
    )

    response = client.post(f"/api/routes/{route_id}/assign", json={"business_id": business.id, "team_id": str(crew.id)})

    assert response.status_code == 400
    db.expire_all()
    assert len(_live_progress(db, crew)) == 1
    assert busy.status == TaskStatus.in_progress


def _set_route_status(db, route_id, status):
    route = db.execute(select(Route).where(Route.route_code == route_id)).scalar_one()
    route.status = status
    db.add(route)
    db.commit()


@pytest.mark.parametrize("status", [RouteStatus.in_progress, RouteStatus.completed, RouteStatus.cancelled])
def test_assign_is_rejected_for_started_or_closed_routes(client, db, business, make_team, make_task, status):
    make_team()
    crew = make_team(name="Team Bravo")
    make_task()
    route_id = _optimize(client, business).json()["routes"][0]["route_id"]
    _set_route_status(db, route_id, status)

    response = client.post(f"/api/routes/{route_id}/assign", json={"business_id": business.id, "team_id": str(crew.id)})

    assert response.status_code == 400
    assert response.json()["message"] == f"Route {route_id} is {status.value} and cannot be assigned"


@pytest.mark.parametrize("status", [RouteStatus.completed, RouteStatus.cancelled])
def test_reoptimize_is_rejected_for_closed_routes(client, db, business, make_team, make_task, status):
    make_team()
    make_task()
    route_id = _optimize(client, business).json()["routes"][0]["route_id"]
    _set_route_status(db, route_id, status)

    response = client.post(f"/api/routes/{route_id}/reoptimize", json={"business_id": business.id})

    assert response.status_code == 400
    assert response.json()["error"] == "invalid_input"


def test_reoptimize_is_allowed_while_in_progress(client, db, business, make_team, make_task):
    make_team()
    make_task()
    route_id = _optimize(client, business).json()["routes"][0]["route_id"]
    _set_route_status(db, route_id, RouteStatus.in_progress)

    response = client.post(f"/api/routes/{route_id}/reoptimize", json={"business_id": business.id})

    assert response.status_code == 200


def test_validate_reports_working_hours_exceeded(client, business, make_team, make_task):
    team = make_team(work_start_time=time(8, 0), work_end_time=time(8, 30))
    task = make_task(estimated_duration=60)

    response = client.get(
        f"/api/routes/teams/{team.id}/validate",
        params={"business_id": business.id, "task_ids": [task.id]},
    )

    body = response.json()
    assert response.status_code == 200
    assert body["valid"] is True
    assert [v["type"] for v in body["violations"]] == ["working_hours_exceeded"]
    assert body["violations"][0]["severity"] == "warning"
