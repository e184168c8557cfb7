"""End-to-end tests for tracked writes, undo and the activity feed over HTTP."""
from sqlalchemy.exc import OperationalError

from app.services.change_log import ChangeLogStore
from tests.conftest import create_test_issue, create_test_project, create_test_user


def _boom(*args, **kwargs):
    raise OperationalError("INSERT INTO change_records", {}, Exception("disk full"))


class TestHealth:
    def test_health(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert "X-Request-ID" in resp.headers


class TestTrackedWrites:
    def test_create_issue_returns_change_id(self, client):
        user = create_test_user(client)
        project = create_test_project(client, user["user_id"])
        data = create_test_issue(client, user["user_id"], project["entity_id"], title="Crash")
        assert data["entity_type"] == "issue"
        assert data["entity"]["title"] == "Crash"
        assert data["change_id"] is not None
        assert data["audit_warning"] is None

        change = client.get(f"/api/changes/{data['change_id']}").json()
        assert change["operation"] == "CREATE"
        assert change["before"] is None
        assert change["after"]["title"] == "Crash"

    def test_project_owner_defaults_to_actor(self, client):
        user = create_test_user(client)
        project = create_test_project(client, user["user_id"])
        assert project["entity"]["owner_id"] == user["user_id"]

    def test_unknown_actor_rejected(self, client):
        resp = client.post("/api/projects/?actor_id=nobody", json={"name": "X"})
        assert resp.status_code == 404

    def test_missing_actor_rejected(self, client):
        resp = client.post("/api/projects/", json={"name": "X"})
        assert resp.status_code == 422

    def test_invalid_status_rejected(self, client):
        user = create_test_user(client)
        project = create_test_project(client, user["user_id"])
        resp = client.post(f"/api/issues/?actor_id={user['user_id']}", json={
            "project_id": project["entity_id"], "title": "T", "status": "someday",
        })
        assert resp.status_code == 400

    def test_issue_in_missing_project(self, client):
        user = create_test_user(client)
        resp = client.post(f"/api/issues/?actor_id={user['user_id']}", json={"project_id": 99, "title": "T"})
        assert resp.status_code == 404

    def test_patch_logs_update(self, client):
        user = create_test_user(client)
        project = create_test_project(client, user["user_id"])
        issue = create_test_issue(client, user["user_id"], project["entity_id"])
        resp = client.patch(
            f"/api/issues/{issue['entity_id']}?actor_id={user['user_id']}", json={"status": "done"}
        )
        assert resp.status_code == 200
        change = client.get(f"/api/changes/{resp.json()['change_id']}").json()
        assert change["before"]["status"] == "todo"
        assert change["after"]["status"] == "done"

    def test_noop_patch_has_no_change(self, client):
        user = create_test_user(client)
        project = create_test_project(client, user["user_id"])
        issue = create_test_issue(client, user["user_id"], project["entity_id"])
        resp = client.patch(
            f"/api/issues/{issue['entity_id']}?actor_id={user['user_id']}", json={"status": "todo"}
        )
        assert resp.status_code == 200
        assert resp.json()["change_id"] is None

    def test_delete_issue(self, client):
        user = create_test_user(client)
        project = create_test_project(client, user["user_id"])
        issue = create_test_issue(client, user["user_id"], project["entity_id"])
        resp = client.delete(f"/api/issues/{issue['entity_id']}?actor_id={user['user_id']}")
        assert resp.status_code == 200
        assert resp.json()["entity"] is None
        assert client.get(f"/api/issues/{issue['entity_id']}").status_code == 404

    def test_milestone_roundtrip(self, client):
        user = create_test_user(client)
        project = create_test_project(client, user["user_id"])
        resp = client.post(f"/api/milestones/?actor_id={user['user_id']}", json={
            "project_id": project["entity_id"], "name": "Beta", "due_date": "2026-12-01",
        })
        assert resp.status_code == 201
        assert resp.json()["entity"]["due_date"] == "2026-12-01"

    def test_audit_warning_header(self, client, monkeypatch):
        user = create_test_user(client)
        project = create_test_project(client, user["user_id"])
        monkeypatch.setattr(ChangeLogStore, "append", _boom)

        resp = client.post(f"/api/issues/?actor_id={user['user_id']}", json={
            "project_id": project["entity_id"], "title": "Unlogged",
        })
        assert resp.status_code == 201
        assert resp.headers["X-Audit-Warning"] == "Mutation succeeded, audit trail incomplete"
        assert resp.json()["change_id"] is None
        assert client.get(f"/api/issues/{resp.json()['entity_id']}").status_code == 200


class TestUndoRoutes:
    def test_undo_update(self, client):
        user = create_test_user(client)
        project = create_test_project(client, user["user_id"])
        issue = create_test_issue(client, user["user_id"], project["entity_id"])
        patched = client.patch(
            f"/api/issues/{issue['entity_id']}?actor_id={user['user_id']}", json={"priority": 1}
        ).json()

        resp = client.post(f"/api/changes/{patched['change_id']}/undo?actor_id={user['user_id']}")
        assert resp.status_code == 200
        body = resp.json()
        assert body["inverse_operation"] == "UPDATE"
        assert body["state"] == "match"
        assert body["restored_fields"] == ["priority"]
        assert client.get(f"/api/issues/{issue['entity_id']}").json()["priority"] == 3

    def test_second_undo_is_409(self, client):
        user = create_test_user(client)
        project = create_test_project(client, user["user_id"])
        issue = create_test_issue(client, user["user_id"], project["entity_id"])

        url = f"/api/changes/{issue['change_id']}/undo?actor_id={user['user_id']}"
        assert client.post(url).status_code == 200
        resp = client.post(url)
        assert resp.status_code == 409
        assert resp.json()["error"] == "AlreadyRolledBack"

    def test_undo_unknown_change_is_404(self, client):
        user = create_test_user(client)
        resp = client.post(f"/api/changes/9999/undo?actor_id={user['user_id']}")
        assert resp.status_code == 404
        assert resp.json()["error"] == "NotFound"

    def test_undo_of_deleted_entity_is_410(self, client):
        user = create_test_user(client)
        project = create_test_project(client, user["user_id"])
        issue = create_test_issue(client, user["user_id"], project["entity_id"])
        client.delete(f"/api/issues/{issue['entity_id']}?actor_id={user['user_id']}")

        resp = client.post(f"/api/changes/{issue['change_id']}/undo?actor_id={user['user_id']}")
        assert resp.status_code == 410
        assert resp.json()["error"] == "EntityGone"

    def test_undo_delete_restores_issue(self, client):
        user = create_test_user(client)
        project = create_test_project(client, user["user_id"])
        issue = create_test_issue(client, user["user_id"], project["entity_id"], title="Back again")
        deleted = client.delete(f"/api/issues/{issue['entity_id']}?actor_id={user['user_id']}").json()

        resp = client.post(f"/api/changes/{deleted['change_id']}/undo?actor_id={user['user_id']}")
        assert resp.status_code == 200
        body = resp.json()
        assert body["state"] == "recreated"
        restored = client.get(f"/api/issues/{body['restored_entity_id']}").json()
        assert restored["title"] == "Back again"

    def test_undo_last(self, client):
        user = create_test_user(client)
        project = create_test_project(client, user["user_id"])
        issue = create_test_issue(client, user["user_id"], project["entity_id"])
        client.patch(f"/api/issues/{issue['entity_id']}?actor_id={user['user_id']}", json={"status": "done"})

        resp = client.post("/api/undo/", json={"actor_id": user["user_id"], "count": 2})
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["undone_count"] == 2
        assert [op["inverse_operation"] for op in body["operations"]] == ["UPDATE", "DELETE"]
        assert client.get(f"/api/issues/{issue['entity_id']}").status_code == 404
        assert client.get(f"/api/projects/{project['entity_id']}").status_code == 200

    def test_undo_last_nothing_left(self, client):
        user = create_test_user(client)
        resp = client.post("/api/undo/", json={"actor_id": user["user_id"]})
        assert resp.status_code == 404

    def test_undo_last_unknown_actor(self, client):
        resp = client.post("/api/undo/", json={"actor_id": "ghost"})
        assert resp.status_code == 404

    def test_undo_last_rejects_zero_count(self, client):
        user = create_test_user(client)
        resp = client.post("/api/undo/", json={"actor_id": user["user_id"], "count": 0})
        assert resp.status_code == 422


class TestChangeListing:
    def test_list_changes_filtered_by_actor(self, client):
        alice = create_test_user(client, name="Alice")
        bob = create_test_user(client, name="Bob")
        create_test_project(client, alice["user_id"], name="A")
        create_test_project(client, bob["user_id"], name="B")

        everything = client.get("/api/changes/").json()
        assert len(everything) == 2
        assert everything[0]["actor_id"] == bob["user_id"]

        mine = client.get(f"/api/changes/?actor_id={alice['user_id']}").json()
        assert [c["after"]["name"] for c in mine] == ["A"]


class TestActivityFeed:
    def test_feed_describes_changes(self, client):
        user = create_test_user(client)
        project = create_test_project(client, user["user_id"], name="Apollo")
        issue = create_test_issue(client, user["user_id"], project["entity_id"], title="Crash")
        client.patch(
            f"/api/issues/{issue['entity_id']}?actor_id={user['user_id']}", json={"status": "done"}
        )

        feed = client.get("/api/activity/").json()
        assert [item["description"] for item in feed] == [
            f'changed status from "todo" to "done" on issue #{issue["entity_id"]}',
            'created issue "Crash"',
            'created project "Apollo"',
        ]

    def test_feed_marks_undone(self, client):
        user = create_test_user(client)
        project = create_test_project(client, user["user_id"], name="Apollo")
        client.post(f"/api/changes/{project['change_id']}/undo?actor_id={user['user_id']}")

        feed = client.get("/api/activity/").json()
        assert feed[0]["description"] == 'created project "Apollo" (undone)'
        assert feed[0]["rolled_back"] is True

    def test_entity_history(self, client):
        user = create_test_user(client)
        project = create_test_project(client, user["user_id"])
        issue = create_test_issue(client, user["user_id"], project["entity_id"])
        client.patch(f"/api/issues/{issue['entity_id']}?actor_id={user['user_id']}", json={"priority": 2})

        history = client.get(f"/api/activity/issue/{issue['entity_id']}").json()
        assert [h["operation"] for h in history] == ["UPDATE", "CREATE"]
        assert history[0]["description"] == f'changed priority from "Medium" to "High" on issue #{issue["entity_id"]}'

    def test_feed_limit(self, client):
        user = create_test_user(client)
        for n in range(3):
            create_test_project(client, user["user_id"], name=f"P{n}")
        assert len(client.get("/api/activity/?limit=2").json()) == 2
