"""Contract tests for the auth, users and posts API endpoints."""

from __future__ import annotations

import uuid

from fastapi.testclient import TestClient

API_PREFIX = "/api/v1"


def _assert_uuid(value: str) -> None:
    uuid.UUID(value)


def _assert_error_envelope(payload: dict, code: str, message: str | None = None) -> None:
    assert payload["success"] is False
    assert payload["code"] == code
    assert isinstance(payload["error"], str) and payload["error"]
    assert isinstance(payload["timestamp"], str)
    _assert_uuid(payload["request_id"])
    if message is not None:
        assert payload["error"] == message


def _assert_user_contract(payload: dict) -> None:
    assert set(payload) == {"id", "username", "created_at"}
    _assert_uuid(payload["id"])
    assert isinstance(payload["username"], str)


def _assert_post_contract(payload: dict) -> None:
    for field in ("id", "user_id", "title", "content", "created_at"):
        assert field in payload
    _assert_uuid(payload["id"])
    _assert_uuid(payload["user_id"])


def _register(client: TestClient, username: str, password: str = "secret-pass") -> dict:
    response = client.post(
        f"{API_PREFIX}/auth/register",
        json={"username": username, "password": password},
    )
    assert response.status_code == 201
    return response.json()["data"]["user"]


def _login(client: TestClient, username: str, password: str = "secret-pass") -> dict[str, str]:
    response = client.post(
        f"{API_PREFIX}/auth/login",
        json={"username": username, "password": password},
    )
    assert response.status_code == 200
    token = response.json()["data"]["access_token"]
    return {"Authorization": f"Bearer {token}"}


def _create_post(client: TestClient, headers: dict[str, str], title: str = "Hello") -> dict:
    response = client.post(
        f"{API_PREFIX}/posts",
        json={"title": title, "content": "First words"},
        headers=headers,
    )
    assert response.status_code == 201
    return response.json()["data"]


def test_health(client: TestClient) -> None:
    response = client.get("/health")

    assert response.status_code == 200
    payload = response.json()
    assert payload["success"] is True
    assert payload["data"] == {"status": "ok"}
    assert payload["message"] == "Server is healthy"
    assert response.headers["X-Request-ID"]


def test_register_and_login(client: TestClient) -> None:
    response = client.post(
        f"{API_PREFIX}/auth/register",
        json={"username": "alice", "password": "secret-pass"},
    )

    assert response.status_code == 201
    data = response.json()["data"]
    assert data["message"] == "User registered successfully"
    _assert_user_contract(data["user"])

    login = client.post(
        f"{API_PREFIX}/auth/login",
        json={"username": "alice", "password": "secret-pass"},
    )
    assert login.status_code == 200
    body = login.json()["data"]
    assert body["token_type"] == "Bearer"
    assert body["expires_in"] == 86400
    assert body["access_token"]
    assert body["user"]["id"] == data["user"]["id"]


def test_duplicate_registration_conflicts(client: TestClient) -> None:
    _register(client, "alice")

    response = client.post(
        f"{API_PREFIX}/auth/register",
        json={"username": "alice", "password": "another-pass"},
    )

    assert response.status_code == 409
    payload = response.json()
    _assert_error_envelope(payload, "CONFLICT", "user already exists")
    assert payload["details"] == "username 'alice' is already taken"


def test_registration_validation_reports_every_field(client: TestClient) -> None:
    response = client.post(
        f"{API_PREFIX}/auth/register",
        json={"username": "al", "password": "123"},
    )

    assert response.status_code == 400
    payload = response.json()
    _assert_error_envelope(payload, "VALIDATION_ERROR", "Multiple validation errors")
    issues = {item["context"]["field"]: item["details"] for item in payload["context"]["validation_errors"]}
    assert issues == {
        "username": "Username must be at least 3 characters long",
        "password": "Password must be at least 6 characters long",
    }


def test_registration_rejects_dangerous_usernames(client: TestClient) -> None:
    injection = client.post(
        f"{API_PREFIX}/auth/register",
        json={"username": "bob'; --", "password": "secret-pass"},
    ).json()
    script = client.post(
        f"{API_PREFIX}/auth/register",
        json={"username": "<script>x", "password": "secret-pass"},
    ).json()

    assert injection["context"]["validation_errors"][0]["details"] == "Username contains invalid characters"
    assert script["context"]["validation_errors"][0]["details"] == "Username contains potentially dangerous content"


def test_login_failures(client: TestClient) -> None:
    _register(client, "alice")

    wrong = client.post(f"{API_PREFIX}/auth/login", json={"username": "alice", "password": "nope-nope"})
    assert wrong.status_code == 401
    _assert_error_envelope(wrong.json(), "UNAUTHORIZED", "Invalid username or password")

    unknown = client.post(f"{API_PREFIX}/auth/login", json={"username": "mallory", "password": "secret-pass"})
    assert unknown.status_code == 401

    empty = client.post(f"{API_PREFIX}/auth/login", json={"username": "", "password": "x"})
    assert empty.status_code == 400
    _assert_error_envelope(empty.json(), "BAD_REQUEST", "Username is required")


def test_malformed_json_body(client: TestClient) -> None:
    response = client.post(
        f"{API_PREFIX}/auth/register",
        content="{broken",
        headers={"Content-Type": "application/json"},
    )

    assert response.status_code == 400
    _assert_error_envelope(response.json(), "BAD_REQUEST", "Invalid JSON payload")


def test_refresh_requires_token_near_expiry(client: TestClient) -> None:
    _register(client, "alice")
    headers = _login(client, "alice")

    response = client.post(f"{API_PREFIX}/auth/refresh", headers=headers)

    assert response.status_code == 400
    _assert_error_envelope(response.json(), "BAD_REQUEST", "Token is still valid, refresh not needed")


def test_create_get_and_list_users(client: TestClient) -> None:
    created = client.post(f"{API_PREFIX}/users", json={"username": "carol", "password": "secret-pass"})
    assert created.status_code == 201
    assert created.json()["message"] == "Resource created successfully"
    user = created.json()["data"]["user"]
    _assert_user_contract(user)

    fetched = client.get(f"{API_PREFIX}/users/{user['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["data"]["user"] == user

    listed = client.get(f"{API_PREFIX}/users")
    assert listed.status_code == 200
    assert listed.json()["data"]["count"] == 1
    assert listed.json()["data"]["users"] == [user]
    assert "meta" not in listed.json()


def test_paginated_user_listing(client: TestClient) -> None:
    for name in ("carol", "dave", "erin"):
        _register(client, name)

    response = client.get(f"{API_PREFIX}/users", params={"page": "1", "page_size": "2"})

    assert response.status_code == 200
    payload = response.json()
    assert payload["message"] == "Users retrieved successfully"
    assert len(payload["data"]) == 2
    assert payload["meta"] == {
        "page": 1,
        "page_size": 2,
        "total": 3,
        "total_pages": 2,
        "has_next": True,
        "has_previous": False,
    }


def test_user_lookup_errors(client: TestClient) -> None:
    malformed = client.get(f"{API_PREFIX}/users/not-a-uuid")
    assert malformed.status_code == 400
    _assert_error_envelope(malformed.json(), "BAD_REQUEST", "Invalid user ID format")

    missing = client.get(f"{API_PREFIX}/users/{uuid.uuid4()}")
    assert missing.status_code == 404
    _assert_error_envelope(missing.json(), "NOT_FOUND", "user not found")

    missing_posts = client.get(f"{API_PREFIX}/users/{uuid.uuid4()}/posts")
    assert missing_posts.status_code == 404


def test_post_mutations_require_bearer_token(client: TestClient) -> None:
    body = {"title": "Hello", "content": "World"}

    missing = client.post(f"{API_PREFIX}/posts", json=body)
    assert missing.status_code == 401
    _assert_error_envelope(missing.json(), "UNAUTHORIZED", "Authorization header required")

    wrong_scheme = client.post(f"{API_PREFIX}/posts", json=body, headers={"Authorization": "Token abc"})
    assert wrong_scheme.status_code == 401
    _assert_error_envelope(
        wrong_scheme.json(),
        "UNAUTHORIZED",
        "Invalid authorization format. Use 'Bearer <token>'",
    )

    bad_token = client.post(f"{API_PREFIX}/posts", json=body, headers={"Authorization": "Bearer abc.def.ghi"})
    assert bad_token.status_code == 401
    _assert_error_envelope(bad_token.json(), "UNAUTHORIZED", "Invalid or expired token")

    delete = client.delete(f"{API_PREFIX}/posts/{uuid.uuid4()}")
    assert delete.status_code == 401


def test_post_lifecycle(client: TestClient) -> None:
    author = _register(client, "alice")
    headers = _login(client, "alice")

    post = _create_post(client, headers)
    _assert_post_contract(post)
    assert post["user_id"] == author["id"]
    assert post["title"] == "Hello"

    fetched = client.get(f"{API_PREFIX}/posts/{post['id']}")
    assert fetched.status_code == 200
    assert fetched.json()["data"]["id"] == post["id"]

    updated = client.put(
        f"{API_PREFIX}/posts/{post['id']}",
        json={"title": "Hello again"},
        headers=headers,
    )
    assert updated.status_code == 200
    assert updated.json()["data"]["title"] == "Hello again"
    assert updated.json()["data"]["content"] == "First words"

    by_author = client.get(f"{API_PREFIX}/users/{author['id']}/posts")
    assert by_author.json()["data"]["count"] == 1

    deleted = client.delete(f"{API_PREFIX}/posts/{post['id']}", headers=headers)
    assert deleted.status_code == 204
    assert deleted.content == b""

    gone = client.get(f"{API_PREFIX}/posts/{post['id']}")
    assert gone.status_code == 404
    _assert_error_envelope(gone.json(), "NOT_FOUND", "post not found")


def test_post_validation_and_id_errors(client: TestClient) -> None:
    _register(client, "alice")
    headers = _login(client, "alice")

    invalid = client.post(f"{API_PREFIX}/posts", json={"title": " ", "content": ""}, headers=headers)
    assert invalid.status_code == 400
    fields = [item["context"]["field"] for item in invalid.json()["context"]["validation_errors"]]
    assert fields == ["title", "content"]

    post = _create_post(client, headers)
    blank_update = client.put(f"{API_PREFIX}/posts/{post['id']}", json={"content": ""}, headers=headers)
    assert blank_update.status_code == 400
    assert blank_update.json()["code"] == "VALIDATION_ERROR"

    malformed = client.get(f"{API_PREFIX}/posts/12345")
    assert malformed.status_code == 400
    _assert_error_envelope(malformed.json(), "BAD_REQUEST", "Invalid post ID format")


def test_paginated_post_listing(client: TestClient) -> None:
    _register(client, "alice")
    headers = _login(client, "alice")
    for index in range(3):
        _create_post(client, headers, title=f"Post {index}")

    simple = client.get(f"{API_PREFIX}/posts").json()["data"]
    assert simple["count"] == 3

    page = client.get(f"{API_PREFIX}/posts", params={"page": "2", "page_size": "2"}).json()
    assert page["message"] == "Posts retrieved successfully"
    assert len(page["data"]) == 1
    assert page["meta"]["has_previous"] is True
    assert page["meta"]["has_next"] is False


def test_authenticated_requests_log_user_id(client: TestClient, log_capture) -> None:
    author = _register(client, "alice")
    headers = _login(client, "alice")
    _create_post(client, headers)

    http_records = [r for r in log_capture.records() if r["message"] == "HTTP POST /api/v1/posts"]
    assert http_records[-1]["user_id"] == author["id"]
    assert http_records[-1]["status_code"] == 201

    db_records = [r for r in log_capture.records() if r.get("component") == "database"]
    assert db_records
