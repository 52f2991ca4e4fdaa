from fastapi.testclient import TestClient

from helpdesk.api.errors import status_for
from helpdesk.core.exceptions import AuthorizationError, ValidationError
from helpdesk.core.roles import Role

ADMIN = {
    "username": "rootadmin",
    "password": "Admin#1234",
    "first_name": "Root",
    "last_name": "Admin",
    "email": "root@uni.edu",
}


def login(client: TestClient, username: str, password: str) -> dict:
    response = client.post("/api/v1/auth/login", data={"username": username, "password": password})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


def setup_admin(client: TestClient) -> dict:
    response = client.post("/api/v1/auth/setup", json=ADMIN)
    assert response.status_code == 200
    return login(client, ADMIN["username"], ADMIN["password"])


def register_student(client: TestClient, admin_headers: dict, username="student01") -> dict:
    invite = client.post(
        "/api/v1/auth/invites", json={"roles": [Role.STUDENT.bit]}, headers=admin_headers
    )
    assert invite.status_code == 200
    response = client.post(
        "/api/v1/auth/register",
        json={
            "invite_code": invite.json()["code"],
            "username": username,
            "password": "Secret#123",
            "first_name": "Test",
            "last_name": "Student",
            "email": f"{username}@uni.edu",
        },
    )
    assert response.status_code == 200
    return response.json()


def test_authorization_error_is_a_validation_error_mapped_to_403():
    error = AuthorizationError("Admins only.")
    assert isinstance(error, ValidationError)
    assert status_for(error) == 403
    assert status_for(ValidationError("Bad title.")) == 400


def test_health(client: TestClient):
    assert client.get("/health").json() == {"status": "ok"}


def test_setup_and_me(client: TestClient):
    headers = setup_admin(client)
    response = client.get("/api/v1/auth/me", headers=headers)
    assert response.status_code == 200
    data = response.json()
    assert data["username"] == "rootadmin"
    assert "Admin" in data["role_names"]

    # 第二次初始化被拒绝
    assert client.post("/api/v1/auth/setup", json=ADMIN).status_code == 400


def test_register_and_login(client: TestClient):
    headers = setup_admin(client)
    data = register_student(client, headers)
    assert data["role_names"] == ["User", "Student"]
    assert "password" not in data and "password_hash" not in data

    student_headers = login(client, "student01", "Secret#123")
    assert client.get("/api/v1/auth/me", headers=student_headers).json()["username"] == "student01"


def test_login_with_wrong_password(client: TestClient):
    setup_admin(client)
    response = client.post("/api/v1/auth/login", data={"username": "rootadmin", "password": "nope"})
    assert response.status_code == 401


def test_requires_token(client: TestClient):
    assert client.get("/api/v1/auth/me").status_code == 401
    assert client.get("/api/v1/auth/me", headers={"Authorization": "Bearer forged.token"}).status_code == 401


def test_student_cannot_create_invites(client: TestClient):
    headers = setup_admin(client)
    register_student(client, headers)
    student_headers = login(client, "student01", "Secret#123")
    response = client.post(
        "/api/v1/auth/invites", json={"roles": [Role.STUDENT.bit]}, headers=student_headers
    )
    assert response.status_code == 403


def test_question_flow(client: TestClient):
    admin_headers = setup_admin(client)
    register_student(client, admin_headers)
    headers = login(client, "student01", "Secret#123")

    created = client.post(
        "/api/v1/questions/",
        json={"title": "Loop invariants", "content": "How do I prove a loop invariant holds?"},
        headers=headers,
    )
    assert created.status_code == 200
    question_id = created.json()["id"]

    bad = client.post("/api/v1/questions/", json={"title": "Hi", "content": "too short"}, headers=headers)
    assert bad.status_code == 400

    answer = client.post(
        f"/api/v1/questions/{question_id}/answers",
        json={"content": "Show initialization and maintenance"},
        headers=admin_headers,
    )
    assert answer.status_code == 200
    answer_id = answer.json()["id"]

    pinned = client.post(f"/api/v1/questions/answers/{answer_id}/pin", headers=headers)
    assert pinned.status_code == 200
    assert pinned.json()["is_pinned"] is True

    listed = client.get("/api/v1/questions/", params={"q": "invariant"})
    assert [q["id"] for q in listed.json()] == [question_id]
    assert client.get("/api/v1/questions/999").status_code == 404


def test_admin_request_flow(client: TestClient):
    admin_headers = setup_admin(client)
    student = register_student(client, admin_headers)

    created = client.post(
        "/api/v1/requests/admin",
        json={"target_id": student["id"], "type": "RequestPassword", "reason": "Locked out of account"},
        headers=admin_headers,
    )
    assert created.status_code == 200
    request_id = created.json()["id"]
    assert created.json()["state"] == "Pending"

    decided = client.post(
        f"/api/v1/requests/admin/{request_id}/decision", json={"approve": True}, headers=admin_headers
    )
    assert decided.status_code == 200
    otp = decided.json()["one_time_password"]
    assert otp

    again = client.post(
        f"/api/v1/requests/admin/{request_id}/decision", json={"approve": False}, headers=admin_headers
    )
    assert again.status_code == 409

    reset = client.post(
        "/api/v1/auth/password/reset",
        json={"username": "student01", "one_time_password": otp, "new_password": "Fresh#Start1"},
    )
    assert reset.status_code == 200
    login(client, "student01", "Fresh#Start1")


def test_student_admin_request_is_forbidden(client: TestClient):
    admin_headers = setup_admin(client)
    register_student(client, admin_headers)
    other = register_student(client, admin_headers, username="student02")
    headers = login(client, "student01", "Secret#123")
    response = client.post(
        "/api/v1/requests/admin",
        json={"target_id": other["id"], "type": "DeleteUser", "reason": "I do not like them"},
        headers=headers,
    )
    assert response.status_code == 403


def test_reviewer_request_and_rating(client: TestClient):
    admin_headers = setup_admin(client)
    student = register_student(client, admin_headers)
    student_headers = login(client, "student01", "Secret#123")
    me = client.get("/api/v1/auth/me", headers=admin_headers).json()

    created = client.post(
        "/api/v1/requests/reviewer", json={"instructor_id": me["id"]}, headers=student_headers
    )
    assert created.status_code == 200
    assert created.json()["status"] is None

    pending = client.get("/api/v1/requests/reviewer/pending", headers=admin_headers).json()
    assert [r["id"] for r in pending] == [created.json()["id"]]

    decided = client.post(
        f"/api/v1/requests/reviewer/{created.json()['id']}/decision",
        json={"approve": True},
        headers=admin_headers,
    )
    assert decided.json()["status"] is True

    trusted = client.put(f"/api/v1/reviews/trusted/{student['id']}", json={"rank": 1}, headers=admin_headers)
    assert trusted.status_code == 200
    assert trusted.json()["rank"] == 1

    rating = client.get(f"/api/v1/reviews/reviewers/{student['id']}/rating")
    assert rating.json() == {"reviewer_id": student["id"], "rating": 0}
    assert client.get("/api/v1/reviews/reviewers/999/rating").status_code == 404


def test_admin_request_listing_is_role_gated(client: TestClient):
    admin_headers = setup_admin(client)
    student = register_student(client, admin_headers)
    created = client.post(
        "/api/v1/requests/admin",
        json={"target_id": student["id"], "type": "DeleteUser", "reason": "Private reason text"},
        headers=admin_headers,
    )
    assert created.status_code == 200

    listed = client.get("/api/v1/requests/admin", params={"action": "DeleteUser"}, headers=admin_headers)
    assert listed.status_code == 200
    assert [r["id"] for r in listed.json()] == [created.json()["id"]]

    student_headers = login(client, "student01", "Secret#123")
    response = client.get("/api/v1/requests/admin", params={"action": "DeleteUser"}, headers=student_headers)
    assert response.status_code == 403
    assert "Private reason text" not in response.text
