from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from app.core.constants import RoleEnum


def test_enrollment_endpoints_smoke(client: TestClient, user_factory, roadmap_factory, auth_headers):
    learner = user_factory()
    roadmap = roadmap_factory(lesson_count=2)
    headers = auth_headers(learner)

    client.post(f"/enrollments/roadmaps/{roadmap.id}", headers=headers)

    endpoints = [
        ("GET", f"/enrollments/roadmaps/{roadmap.id}"),
        ("GET", f"/enrollments/roadmaps/{roadmap.id}/status"),
        ("GET", f"/enrollments/roadmaps/{roadmap.id}/completion-rate"),
        ("GET", f"/enrollments/roadmaps/{roadmap.id}/statistics"),
        ("POST", f"/enrollments/roadmaps/{roadmap.id}/recalculate"),
        ("GET", "/enrollments/me"),
        ("GET", "/enrollments/me/stats"),
        ("GET", "/enrollments/me/streak"),
    ]

    for method, endpoint in endpoints:
        response = client.request(method, endpoint, headers=headers)
        assert 200 <= response.status_code < 300, f"{method} {endpoint} => {response.status_code}: {response.text}"


def test_enroll_and_unenroll(client: TestClient, db_session: Session, user_factory, roadmap_factory, auth_headers):
    learner = user_factory()
    roadmap = roadmap_factory(lesson_count=2)
    headers = auth_headers(learner)

    response = client.post(f"/enrollments/roadmaps/{roadmap.id}", headers=headers)
    assert response.status_code == 201, response.text
    body = response.json()
    assert body["data"]["user_id"] == learner.id
    assert body["data"]["progress"] == 0
    assert body["data"]["progress_source"] == "calculated"

    status = client.get(f"/enrollments/roadmaps/{roadmap.id}/status", headers=headers)
    assert status.json()["data"] == {"roadmap_id": roadmap.id, "is_enrolled": True}

    response = client.delete(f"/enrollments/roadmaps/{roadmap.id}", headers=headers)
    assert response.status_code == 200
    assert response.json()["data"] is True

    response = client.delete(f"/enrollments/roadmaps/{roadmap.id}", headers=headers)
    assert response.status_code == 200
    assert response.json()["data"] is False


def test_double_enroll_returns_conflict(client: TestClient, user_factory, roadmap_factory, auth_headers):
    learner = user_factory()
    roadmap = roadmap_factory(lesson_count=1)
    headers = auth_headers(learner)

    client.post(f"/enrollments/roadmaps/{roadmap.id}", headers=headers)
    response = client.post(f"/enrollments/roadmaps/{roadmap.id}", headers=headers)

    assert response.status_code == 409
    body = response.json()
    assert body["error"]["code"] == "CONFLICT"
    assert body["error"]["message"] == "User is already enrolled in this roadmap"
    assert "X-Request-ID" in response.headers


def test_enroll_in_missing_roadmap_returns_not_found(client: TestClient, user_factory, auth_headers):
    learner = user_factory()

    response = client.post("/enrollments/roadmaps/9999", headers=auth_headers(learner))

    assert response.status_code == 404
    assert response.json()["error"]["code"] == "NOT_FOUND"


def test_enrollment_details_when_not_enrolled(client: TestClient, user_factory, roadmap_factory, auth_headers):
    learner = user_factory()
    roadmap = roadmap_factory(lesson_count=1)

    response = client.get(f"/enrollments/roadmaps/{roadmap.id}", headers=auth_headers(learner))

    assert response.status_code == 404
    assert response.json()["error"]["message"] == "User is not enrolled in this roadmap"


def test_manual_progress_update(client: TestClient, user_factory, roadmap_factory, auth_headers):
    learner = user_factory()
    roadmap = roadmap_factory(lesson_count=4)
    headers = auth_headers(learner)
    client.post(f"/enrollments/roadmaps/{roadmap.id}", headers=headers)

    response = client.put(
        f"/enrollments/roadmaps/{roadmap.id}/progress",
        headers=headers,
        json={"progress": 57},
    )
    assert response.status_code == 200, response.text
    assert response.json()["data"]["progress"] == 57
    assert response.json()["data"]["progress_source"] == "manual"

    response = client.put(
        f"/enrollments/roadmaps/{roadmap.id}/progress",
        headers=headers,
        json={"progress": 150},
    )
    assert response.status_code == 400
    assert response.json()["error"]["code"] == "BAD_REQUEST"


def test_my_enrollments_with_status_filter(client: TestClient, user_factory, roadmap_factory, auth_headers):
    learner = user_factory()
    roadmap = roadmap_factory(lesson_count=1)
    headers = auth_headers(learner)
    client.post(f"/enrollments/roadmaps/{roadmap.id}", headers=headers)

    response = client.get("/enrollments/me", headers=headers, params={"status": "enrolled"})
    assert response.status_code == 200
    data = response.json()["data"]
    assert len(data) == 1
    assert data[0]["roadmap"]["id"] == roadmap.id
    assert data[0]["roadmap"]["enrolled_users"] == 1

    response = client.get("/enrollments/me", headers=headers, params={"status": "completed"})
    assert response.json()["data"] == []

    response = client.get("/enrollments/me", headers=headers, params={"status": "paused"})
    assert response.status_code == 422
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"


def test_bulk_enroll_requires_admin(client: TestClient, user_factory, roadmap_factory, auth_headers):
    learner = user_factory()
    roadmap = roadmap_factory(lesson_count=1)

    response = client.post(
        f"/enrollments/roadmaps/{roadmap.id}/bulk",
        headers=auth_headers(learner),
        json={"user_ids": [learner.id]},
    )

    assert response.status_code == 403
    assert response.json()["error"]["code"] == "FORBIDDEN"


def test_bulk_enroll_as_admin(client: TestClient, user_factory, roadmap_factory, auth_headers):
    admin = user_factory(role=RoleEnum.ADMIN)
    learners = [user_factory() for _ in range(4)]
    roadmap = roadmap_factory(lesson_count=1)
    client.post(f"/enrollments/roadmaps/{roadmap.id}", headers=auth_headers(learners[0]))
    newcomer = user_factory()

    response = client.post(
        f"/enrollments/roadmaps/{roadmap.id}/bulk",
        headers=auth_headers(admin),
        json={"user_ids": [u.id for u in learners] + [newcomer.id]},
    )

    assert response.status_code == 200, response.text
    data = response.json()["data"]
    assert sorted(data["successful"]) == sorted([u.id for u in learners[1:]] + [newcomer.id])
    assert data["failed"] == [{
        "user_id": learners[0].id,
        "code": "CONFLICT",
        "error": "User is already enrolled in this roadmap",
    }]

    response = client.post(
        f"/enrollments/roadmaps/{roadmap.id}/bulk",
        headers=auth_headers(admin),
        json={"user_ids": []},
    )
    assert response.status_code == 400


def test_recent_enrollments_for_admin(client: TestClient, user_factory, roadmap_factory, auth_headers):
    admin = user_factory(role=RoleEnum.ADMIN)
    roadmap = roadmap_factory(lesson_count=1)
    for _ in range(3):
        client.post(f"/enrollments/roadmaps/{roadmap.id}", headers=auth_headers(user_factory()))

    response = client.get("/enrollments/recent", headers=auth_headers(admin), params={"limit": 2})
    assert response.status_code == 200
    assert len(response.json()["data"]) == 2

    response = client.get("/enrollments/recent", headers=auth_headers(admin), params={"limit": 500})
    assert response.status_code == 400


def test_requests_without_token_are_rejected(client: TestClient, roadmap_factory):
    roadmap = roadmap_factory(lesson_count=1)

    response = client.post(f"/enrollments/roadmaps/{roadmap.id}")

    assert response.status_code in (401, 403)


def test_inactive_user_is_forbidden(client: TestClient, user_factory, roadmap_factory, auth_headers):
    learner = user_factory(is_active=False)
    roadmap = roadmap_factory(lesson_count=1)

    response = client.post(f"/enrollments/roadmaps/{roadmap.id}", headers=auth_headers(learner))

    assert response.status_code == 403
