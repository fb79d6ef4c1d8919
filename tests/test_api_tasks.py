"""
tests/test_api_tasks.py -- Integration tests for the task routes.

Coverage:
  - Create: owner forced to the caller; user_id in the body is a 422
  - List/search: scoped to the caller, admin sees everything
  - Single task: owner 200, other user 403, admin 200; missing is 403 for
    users and 404 for admins; ids outside SQLite INTEGER range are 422
  - PATCH/DELETE ownership and empty-body handling
  - Every task route is 401 without a token

Fixtures used (from conftest.py):
  - api: ApiEnv with admin, user1 and user2 plus a bearer header for each.
    The database is shared by every test in this module, so assertions use
    membership on freshly created tasks rather than exact collection sizes.
"""

from __future__ import annotations

import pytest


def _create(api, headers, title: str, description: str = "") -> dict:
    resp = api.client.post("/api/tasks", headers=headers, json={"title": title, "description": description})
    assert resp.status_code == 201, resp.text
    return resp.json()


class TestCreate:
    def test_owner_is_caller(self, api):
        task = _create(api, api.user1_headers, "Water plants", "balcony")
        assert task["user_id"] == api.user1_id
        assert task["title"] == "Water plants"
        assert task["completed"] is False
        assert task["created_at"]

    def test_user_id_in_body_is_rejected(self, api):
        resp = api.client.post(
            "/api/tasks",
            headers=api.user1_headers,
            json={"title": "Sneaky", "user_id": api.user2_id},
        )
        assert resp.status_code == 422
        assert "user_id" in resp.json()["detail"]
        assert all(t.title != "Sneaky" for t in api.task_store.list_tasks())

    def test_blank_title_rejected(self, api):
        resp = api.client.post("/api/tasks", headers=api.user1_headers, json={"title": "   "})
        assert resp.status_code == 422

    def test_validation_error_does_not_echo_input(self, api):
        resp = api.client.post(
            "/api/tasks",
            headers=api.user1_headers,
            json={"title": "ok", "completed": "<script>alert(1)</script>"},
        )
        assert resp.status_code == 422
        assert "<script>" not in resp.text


class TestListAndSearch:
    def test_user_sees_only_own_tasks(self, api):
        mine = _create(api, api.user1_headers, "user1 list item")
        theirs = _create(api, api.user2_headers, "user2 list item")
        ids = {t["id"] for t in api.client.get("/api/tasks", headers=api.user1_headers).json()}
        assert mine["id"] in ids
        assert theirs["id"] not in ids

    def test_admin_sees_all_tasks(self, api):
        a = _create(api, api.user1_headers, "visible to admin 1")
        b = _create(api, api.user2_headers, "visible to admin 2")
        ids = {t["id"] for t in api.client.get("/api/tasks", headers=api.admin_headers).json()}
        assert {a["id"], b["id"]} <= ids

    def test_search_is_scoped(self, api):
        mine = _create(api, api.user1_headers, "Quokka feeding")
        theirs = _create(api, api.user2_headers, "Quokka grooming")
        resp = api.client.get("/api/tasks/search", params={"query": "quokka"}, headers=api.user1_headers)
        assert resp.status_code == 200
        assert [t["id"] for t in resp.json()] == [mine["id"]]
        admin_ids = {
            t["id"]
            for t in api.client.get("/api/tasks/search", params={"query": "quokka"}, headers=api.admin_headers).json()
        }
        assert {mine["id"], theirs["id"]} <= admin_ids

    def test_search_injection_is_literal(self, api):
        _create(api, api.user1_headers, "Ordinary task")
        resp = api.client.get("/api/tasks/search", params={"query": "' OR '1'='1"}, headers=api.user1_headers)
        assert resp.status_code == 200
        assert resp.json() == []

    def test_search_wildcard_is_literal(self, api):
        resp = api.client.get("/api/tasks/search", params={"query": "%"}, headers=api.user1_headers)
        assert resp.status_code == 200
        assert all("%" in t["title"] + t["description"] for t in resp.json())

    def test_search_query_too_long(self, api):
        resp = api.client.get("/api/tasks/search", params={"query": "x" * 201}, headers=api.user1_headers)
        assert resp.status_code == 422


class TestSingleTask:
    @pytest.fixture
    def user2_task(self, api) -> dict:
        return _create(api, api.user2_headers, "user2 private", "secret notes")

    def test_owner_can_read(self, api, user2_task):
        resp = api.client.get(f"/api/tasks/{user2_task['id']}", headers=api.user2_headers)
        assert resp.status_code == 200
        assert resp.json()["description"] == "secret notes"

    def test_other_user_forbidden(self, api, user2_task):
        resp = api.client.get(f"/api/tasks/{user2_task['id']}", headers=api.user1_headers)
        assert resp.status_code == 403
        assert resp.json() == {"error": "Forbidden"}
        assert "secret notes" not in resp.text

    def test_admin_can_read_any(self, api, user2_task):
        resp = api.client.get(f"/api/tasks/{user2_task['id']}", headers=api.admin_headers)
        assert resp.status_code == 200

    def test_missing_task_looks_like_foreign_task(self, api, user2_task):
        """A non-admin cannot tell a missing id from someone else's task."""
        missing = api.client.get("/api/tasks/999999", headers=api.user1_headers)
        foreign = api.client.get(f"/api/tasks/{user2_task['id']}", headers=api.user1_headers)
        assert missing.status_code == foreign.status_code == 403
        assert missing.json() == foreign.json() == {"error": "Forbidden"}

    def test_missing_task_is_404_for_admin(self, api):
        resp = api.client.get("/api/tasks/999999", headers=api.admin_headers)
        assert resp.status_code == 404
        assert resp.json() == {"error": "Task not found."}

    def test_missing_task_patch_and_delete_forbidden_for_user(self, api):
        assert api.client.patch("/api/tasks/999999", headers=api.user1_headers, json={"title": "x"}).status_code == 403
        assert api.client.delete("/api/tasks/999999", headers=api.user1_headers).status_code == 403

    @pytest.mark.parametrize("task_id", ["0", "-1", str(10**30), str(2**63)])
    def test_out_of_range_id_rejected(self, api, task_id):
        for method in ("GET", "DELETE"):
            resp = api.client.request(method, f"/api/tasks/{task_id}", headers=api.admin_headers)
            assert resp.status_code == 422
        resp = api.client.patch(f"/api/tasks/{task_id}", headers=api.admin_headers, json={"title": "x"})
        assert resp.status_code == 422

    def test_largest_id_is_a_plain_miss(self, api):
        resp = api.client.get(f"/api/tasks/{2**63 - 1}", headers=api.admin_headers)
        assert resp.status_code == 404

    def test_non_integer_id(self, api):
        resp = api.client.get("/api/tasks/abc", headers=api.user1_headers)
        assert resp.status_code == 422

    def test_owner_can_patch(self, api, user2_task):
        resp = api.client.patch(
            f"/api/tasks/{user2_task['id']}",
            headers=api.user2_headers,
            json={"completed": True},
        )
        assert resp.status_code == 200
        assert resp.json()["completed"] is True
        assert resp.json()["title"] == "user2 private"

    def test_other_user_cannot_patch(self, api, user2_task):
        resp = api.client.patch(
            f"/api/tasks/{user2_task['id']}",
            headers=api.user1_headers,
            json={"title": "hijacked"},
        )
        assert resp.status_code == 403
        assert api.task_store.get_task(user2_task["id"]).title == "user2 private"

    def test_patch_cannot_change_owner(self, api, user2_task):
        resp = api.client.patch(
            f"/api/tasks/{user2_task['id']}",
            headers=api.user2_headers,
            json={"user_id": api.user1_id},
        )
        assert resp.status_code == 422
        assert api.task_store.get_task(user2_task["id"]).user_id == api.user2_id

    def test_empty_patch(self, api, user2_task):
        resp = api.client.patch(f"/api/tasks/{user2_task['id']}", headers=api.user2_headers, json={})
        assert resp.status_code == 400
        assert resp.json() == {"error": "No fields to update."}

    def test_other_user_cannot_delete(self, api, user2_task):
        resp = api.client.delete(f"/api/tasks/{user2_task['id']}", headers=api.user1_headers)
        assert resp.status_code == 403
        assert api.task_store.get_task(user2_task["id"]) is not None

    def test_owner_can_delete(self, api, user2_task):
        resp = api.client.delete(f"/api/tasks/{user2_task['id']}", headers=api.user2_headers)
        assert resp.status_code == 204
        assert api.task_store.get_task(user2_task["id"]) is None

    def test_admin_can_delete_any(self, api, user2_task):
        resp = api.client.delete(f"/api/tasks/{user2_task['id']}", headers=api.admin_headers)
        assert resp.status_code == 204


@pytest.mark.parametrize(
    ("method", "path"),
    [
        ("GET", "/api/tasks"),
        ("POST", "/api/tasks"),
        ("GET", "/api/tasks/search"),
        ("GET", "/api/tasks/1"),
        ("PATCH", "/api/tasks/1"),
        ("DELETE", "/api/tasks/1"),
    ],
)
def test_task_routes_require_token(api, method, path):
    resp = api.client.request(method, path, json={"title": "x"} if method in ("POST", "PATCH") else None)
    assert resp.status_code == 401
    assert resp.json() == {"error": "Authentication required"}
