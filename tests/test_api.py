"""
Integration tests for the HTTP API (prosync.api).

Uses FastAPI's TestClient against a temporary SQLite store; see conftest.
"""

from __future__ import annotations

import pytest

KEY = "sk-ant-test-0123456789"


class TestPlumbing:
    def test_health(self, client):
        response = client.get("/v1/health")
        assert response.status_code == 200
        assert response.json() == {"ok": True, "backend": "sqlite"}
        assert response.headers["Cache-Control"] == "no-store"
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert "X-Request-ID" in response.headers

    @pytest.mark.parametrize(
        "method, path",
        [
            ("get", "/v1/tasks"),
            ("get", "/v1/time-entries"),
            ("get", "/v1/expenses"),
            ("get", "/v1/notifications"),
            ("get", "/v1/settings"),
            ("get", "/v1/dashboard/stats"),
            ("get", "/v1/risks"),
            ("get", "/v1/tickets"),
        ],
    )
    def test_user_header_required(self, client, method, path):
        response = getattr(client, method)(path)
        assert response.status_code == 401
        assert response.json()["error"] == "authentication_required"

    def test_error_envelope_echoes_request_id(self, client, alice):
        response = client.get("/v1/tasks/missing", headers={**alice, "X-Request-ID": "req-123"})
        assert response.status_code == 404
        body = response.json()
        assert body["error"] == "not_found"
        assert body["request_id"] == "req-123"
        assert response.headers["X-Request-ID"] == "req-123"
        assert response.headers["Cache-Control"] == "no-store"

    def test_pydantic_validation_is_422(self, client, alice):
        assert client.post("/v1/tasks", json={"title": ""}, headers=alice).status_code == 422
        assert client.post("/v1/expenses", json={"amount": -5}, headers=alice).status_code == 422
        assert client.post("/v1/risks", json={"title": "r", "probability": 2, "impact": 0.1}, headers=alice).status_code == 422

    def test_service_validation_is_400(self, client, alice):
        response = client.post("/v1/tasks", json={"title": "t", "due_date": "next week"}, headers=alice)
        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"


class TestTasksAndProjects:
    def test_task_lifecycle(self, client, alice, bob):
        created = client.post("/v1/tasks", json={"title": "Write brief", "priority": "high"}, headers=alice)
        assert created.status_code == 201
        task = created.json()
        assert task["status"] == "todo"
        assert task["created_by"] == "alice"

        listed = client.get("/v1/tasks", headers=alice).json()
        assert listed["total"] == 1
        assert client.get("/v1/tasks", headers=bob).json()["total"] == 0
        assert client.get(f"/v1/tasks/{task['id']}", headers=bob).status_code == 404

        patched = client.patch(f"/v1/tasks/{task['id']}", json={"status": "completed"}, headers=alice).json()
        assert patched["status"] == "completed"
        assert patched["completed_at"]
        assert patched["priority"] == "high"

        filtered = client.get("/v1/tasks", params={"status": "todo"}, headers=alice).json()
        assert filtered["items"] == []

        deleted = client.delete(f"/v1/tasks/{task['id']}", headers=alice)
        assert deleted.json() == {"deleted": True, "id": task["id"]}
        assert client.get(f"/v1/tasks/{task['id']}", headers=alice).status_code == 404

    def test_assignment_notifies_assignee(self, client, alice, bob):
        client.post("/v1/tasks", json={"title": "Review", "assignee_id": "bob"}, headers=alice)
        notes = client.get("/v1/notifications", headers=bob).json()
        assert notes["unread_count"] == 1
        assert notes["items"][0]["title"] == "New Task Assigned"
        assert client.get("/v1/tasks", headers=bob).json()["total"] == 1

    def test_analyze_priorities(self, client, alice):
        client.post("/v1/tasks", json={"title": "someday"}, headers=alice)
        client.post(
            "/v1/tasks", json={"title": "launch", "due_date": "2026-11-01", "effort": "high"}, headers=alice
        )
        client.post("/v1/tasks", json={"title": "shipped", "status": "completed"}, headers=alice)
        result = client.post("/v1/tasks/analyze-priorities", json={}, headers=alice).json()
        suggested = {item["title"]: item["ai_priority"] for item in result["items"]}
        assert suggested == {"someday": "medium", "launch": "high"}

    def test_project_progress(self, client, alice):
        project = client.post("/v1/projects", json={"name": "Apollo"}, headers=alice).json()
        assert project["status"] == "active"
        for status in ("completed", "todo"):
            client.post("/v1/tasks", json={"title": status, "status": status, "project_id": project["id"]}, headers=alice)
        progress = client.get(f"/v1/projects/{project['id']}/progress", headers=alice).json()
        assert progress["total_tasks"] == 2
        assert progress["completion_percent"] == 50

    def test_boards_and_sprints(self, client, alice, bob):
        project = client.post("/v1/projects", json={"name": "Apollo"}, headers=alice).json()
        created = client.post(
            "/v1/boards", json={"project_id": project["id"], "name": "Delivery", "type": "scrum"}, headers=alice
        )
        assert created.status_code == 201
        board = created.json()
        stolen = client.post("/v1/boards", json={"project_id": project["id"], "name": "x"}, headers=bob)
        assert stolen.status_code == 404
        bad_type = client.post(
            "/v1/boards", json={"project_id": project["id"], "name": "x", "type": "wall"}, headers=alice
        )
        assert bad_type.status_code == 422
        boards = client.get(f"/v1/projects/{project['id']}/boards", headers=alice).json()
        assert [b["name"] for b in boards["items"]] == ["Delivery"]

        sprint = client.post(f"/v1/boards/{board['id']}/sprints", json={"name": "Sprint 1"}, headers=alice).json()
        assert sprint["status"] == "planned"
        task = client.post("/v1/tasks", json={"title": "Ship", "status": "completed"}, headers=alice).json()
        added = client.post(
            f"/v1/sprints/{sprint['id']}/tasks", json={"task_id": task["id"], "story_points": 3}, headers=alice
        )
        assert added.status_code == 201
        assert added.json()["initial_story_points"] == 3
        assert client.get(f"/v1/sprints/{sprint['id']}/tasks", headers=alice).json()["total"] == 1
        assert client.get(f"/v1/sprints/{sprint['id']}", headers=bob).status_code == 404

        velocity = client.get(f"/v1/sprints/{sprint['id']}/velocity", headers=alice).json()
        assert velocity["velocity"] == 3
        closed = client.patch(f"/v1/sprints/{sprint['id']}", json={"status": "completed"}, headers=alice).json()
        assert closed["velocity"] == 3

        removed = client.delete(f"/v1/sprints/{sprint['id']}/tasks/{task['id']}", headers=alice)
        assert removed.json() == {"deleted": True, "id": task["id"]}
        deleted = client.delete(f"/v1/boards/{board['id']}", headers=alice)
        assert deleted.json() == {"deleted": True, "id": board["id"]}
        assert client.get(f"/v1/sprints/{sprint['id']}", headers=alice).status_code == 404


class TestTimeAndExpenses:
    def test_time_entries(self, client, alice):
        entry = client.post("/v1/time-entries", json={"time_spent": 45, "billable": True}, headers=alice)
        assert entry.status_code == 201
        assert entry.json()["project"] == "General"

        summary = client.get("/v1/time-entries/summary", headers=alice)
        assert summary.status_code == 200

        entry_id = entry.json()["id"]
        patched = client.patch(f"/v1/time-entries/{entry_id}", json={"time_spent": 50}, headers=alice).json()
        assert patched["time_spent"] == 50
        assert client.delete(f"/v1/time-entries/{entry_id}", headers=alice).json()["deleted"] is True
        assert client.get("/v1/time-entries", headers=alice).json()["total"] == 0

    def test_expenses_and_budget(self, client, alice, bob):
        project = client.post("/v1/projects", json={"name": "Apollo"}, headers=alice).json()
        budget = client.put(f"/v1/budgets/{project['id']}", json={"total": 100}, headers=alice)
        assert budget.status_code == 200

        expense = client.post(
            "/v1/expenses", json={"amount": 85, "currency": "usd", "project_id": project["id"]}, headers=alice
        ).json()
        assert expense["status"] == "pending"
        assert expense["currency"] == "USD"

        status = client.get(f"/v1/budgets/{project['id']}", headers=alice).json()
        assert status["spent"] == 85.0
        assert status["percent_used"] == 85.0
        assert client.get(f"/v1/budgets/{project['id']}", headers=bob).status_code == 404
        assert client.put(f"/v1/budgets/{project['id']}", json={"total": 1}, headers=bob).status_code == 404

        titles = [n["title"] for n in client.get("/v1/notifications", headers=alice).json()["items"]]
        assert "Budget Alert" in titles

        approved = client.post(f"/v1/expenses/{expense['id']}/approve", headers=bob).json()
        assert approved["status"] == "approved"
        assert approved["reviewed_by"] == "bob"

        listing = client.get("/v1/expenses", headers=alice).json()
        assert listing["total"] == 1
        assert listing["total_amount"] == 85.0

    def test_categories(self, client, alice):
        created = client.post("/v1/expense-categories", json={"name": "Travel"}, headers=alice)
        assert created.status_code == 201
        assert client.get("/v1/expense-categories", headers=alice).json()["total"] == 1
        category_id = created.json()["id"]
        assert client.delete(f"/v1/expense-categories/{category_id}", headers=alice).status_code == 200


class TestClientsResourcesRisks:
    def test_clients_and_notes(self, client, alice, bob):
        acme = client.post("/v1/clients", json={"name": "Acme", "company": "Acme Corp"}, headers=alice).json()
        note = client.post(f"/v1/clients/{acme['id']}/notes", json={"content": "Called"}, headers=alice)
        assert note.status_code == 201
        assert client.get(f"/v1/clients/{acme['id']}/notes", headers=alice).json()["total"] == 1
        assert client.get("/v1/clients", params={"q": "corp"}, headers=alice).json()["total"] == 1
        assert client.get(f"/v1/clients/{acme['id']}", headers=bob).status_code == 404

        edited = client.patch(f"/v1/client-notes/{note.json()['id']}", json={"content": "Emailed"}, headers=alice)
        assert edited.json()["content"] == "Emailed"
        client.delete(f"/v1/clients/{acme['id']}", headers=alice)
        assert client.get("/v1/clients", headers=alice).json()["total"] == 0

    def test_resources(self, client, alice):
        dev = client.post("/v1/resources", json={"name": "Dana", "role": "Developer"}, headers=alice).json()
        skill = client.post(f"/v1/resources/{dev['id']}/skills", json={"skill": "Python"}, headers=alice)
        assert skill.status_code == 201
        assert skill.json()["level"] == "intermediate"
        matrix = client.get("/v1/skills/matrix", headers=alice).json()["matrix"]
        assert "Python" in matrix

        allocation = client.post("/v1/allocations", json={"resource_id": dev["id"], "percent": 60}, headers=alice)
        assert allocation.status_code == 201
        over = client.post("/v1/allocations", json={"resource_id": dev["id"], "percent": 50}, headers=alice)
        assert over.status_code == 201
        titles = [n["title"] for n in client.get("/v1/notifications", headers=alice).json()["items"]]
        assert "Resource Overallocated" in titles

        capacity = client.get("/v1/capacity", headers=alice)
        assert capacity.status_code == 200

        member = client.post("/v1/team-members", json={"name": "Fran"}, headers=alice)
        assert member.status_code == 201
        assert client.get("/v1/team-members", headers=alice).json()["total"] == 1

    def test_risks(self, client, alice, bob):
        risk = client.post("/v1/risks", json={"title": "Vendor delay", "probability": 0.8, "impact": 0.9}, headers=alice)
        assert risk.status_code == 201
        risk_id = risk.json()["id"]
        assert risk.json()["risk_score"] == 0.72

        # Risks are shared across users.
        assert client.get(f"/v1/risks/{risk_id}", headers=bob).status_code == 200

        mitigation = client.post(f"/v1/risks/{risk_id}/mitigations", json={"action": "Second vendor"}, headers=bob)
        assert mitigation.status_code == 201
        assert client.get(f"/v1/risks/{risk_id}/mitigations", headers=alice).json()["total"] == 1

        analytics = client.get("/v1/risks/analytics", headers=alice).json()
        assert analytics["total"] == 1

        assert client.delete(f"/v1/risks/{risk_id}", headers=alice).json()["deleted"] is True
        assert client.get(f"/v1/risks/{risk_id}", headers=alice).status_code == 404


class TestNotifications:
    def test_read_state(self, client, alice, bob):
        client.post("/v1/tasks", json={"title": "one", "assignee_id": "bob"}, headers=alice)
        client.post("/v1/tasks", json={"title": "two", "assignee_id": "bob"}, headers=alice)
        items = client.get("/v1/notifications", headers=bob).json()["items"]
        assert len(items) == 2

        read = client.post(f"/v1/notifications/{items[0]['id']}/read", headers=bob).json()
        assert read["read"] is True
        assert client.post(f"/v1/notifications/{items[0]['id']}/read", headers=alice).status_code == 404

        unread = client.get("/v1/notifications", params={"unread_only": True}, headers=bob).json()
        assert unread["total"] == 1
        assert client.post("/v1/notifications/read-all", headers=bob).json() == {"updated": 1}
        assert client.get("/v1/notifications", headers=bob).json()["unread_count"] == 0

        deleted = client.delete(f"/v1/notifications/{items[1]['id']}", headers=bob)
        assert deleted.json() == {"deleted": True, "id": items[1]["id"]}


class TestKnowledgeAndServiceDesk:
    def test_pages(self, client, alice, bob):
        created = client.post("/v1/knowledge/pages", json={"title": "On-call Guide", "content": "Page the lead"}, headers=alice)
        assert created.status_code == 201
        page = created.json()
        assert page["slug"] == "on-call-guide"

        assert client.get("/v1/knowledge/pages/on-call-guide").json()["id"] == page["id"]
        assert client.get("/v1/knowledge/search", params={"q": "lead"}).json()["total"] == 1

        client.patch(f"/v1/knowledge/pages/id/{page['id']}", json={"content": "Page the manager"}, headers=bob)
        versions = client.get(f"/v1/knowledge/pages/id/{page['id']}/versions").json()
        assert versions["total"] >= 1

        comment = client.post(f"/v1/knowledge/pages/id/{page['id']}/comments", json={"content": "Nice"}, headers=bob)
        assert comment.status_code == 201
        resolved = client.post(f"/v1/knowledge/comments/{comment.json()['id']}/resolve", headers=alice).json()
        assert resolved["is_resolved"] is True

        archived = client.delete(f"/v1/knowledge/pages/id/{page['id']}", headers=alice).json()
        assert archived["deleted"] is True
        assert client.get("/v1/knowledge/pages/on-call-guide").status_code == 404

    def test_tickets(self, client, alice, bob):
        created = client.post(
            "/v1/tickets", json={"title": "VPN down", "priority": "critical", "assigned_to": "bob"}, headers=alice
        )
        assert created.status_code == 201
        ticket = created.json()
        assert ticket["ticket_number"] == "TKT-00001"
        assert ticket["status"] == "open"
        assert ticket["sla_due"]

        assert client.get("/v1/notifications", headers=bob).json()["unread_count"] == 1

        client.post(f"/v1/tickets/{ticket['id']}/comments", json={"content": "public"}, headers=bob)
        client.post(f"/v1/tickets/{ticket['id']}/comments", json={"content": "internal", "is_private": True}, headers=bob)
        public = client.get(
            f"/v1/tickets/{ticket['id']}/comments", params={"include_private": False}, headers=alice
        ).json()
        everything = client.get(f"/v1/tickets/{ticket['id']}/comments", headers=bob).json()
        assert public["total"] == 1
        assert everything["total"] == 2

        resolved = client.patch(f"/v1/tickets/{ticket['id']}", json={"status": "resolved"}, headers=bob).json()
        assert resolved["resolved_at"]
        assert client.get("/v1/tickets/sla-breaches", headers=alice).json()["total"] == 0

    def test_change_requests_and_problems(self, client, alice):
        change = client.post("/v1/change-requests", json={"title": "Upgrade DB"}, headers=alice)
        assert change.status_code == 201
        assert change.json()["status"] == "draft"
        patched = client.patch(f"/v1/change-requests/{change.json()['id']}", json={"status": "review"}, headers=alice)
        assert patched.json()["status"] == "review"

        problem = client.post("/v1/problems", json={"title": "Flaky VPN"}, headers=alice)
        assert problem.status_code == 201
        assert client.get("/v1/problems", headers=alice).json()["total"] == 1


class TestSettingsDashboardValidation:
    def test_settings(self, client, alice):
        defaults = client.get("/v1/settings", headers=alice).json()
        assert defaults["theme"] == "system"
        assert defaults["is_default"] is True

        saved = client.put("/v1/settings", json={"theme": "dark"}, headers=alice)
        assert saved.status_code == 200
        assert client.get("/v1/settings", headers=alice).json()["theme"] == "dark"

        assert client.delete("/v1/settings", headers=alice).json() == {"deleted": True}
        assert client.delete("/v1/settings", headers=alice).json() == {"deleted": False}

    def test_dashboard(self, client, alice):
        client.post("/v1/tasks", json={"title": "done", "status": "completed"}, headers=alice)
        stats = client.get("/v1/dashboard/stats", headers=alice).json()
        assert stats["completed_tasks"] == 1
        assert client.get("/v1/dashboard/productivity", headers=alice).json()["tasks_completed"] == 1
        assert client.get("/v1/dashboard/activity", params={"days": 30}, headers=alice).json()["days"] == 30
        assert client.get("/v1/dashboard/activity", params={"days": 0}, headers=alice).status_code == 422

    @pytest.mark.parametrize(
        "payload, expected",
        [
            ({"type": "email", "data": "ada@example.com"}, {"valid": True, "error": None}),
            ({"type": "password", "data": "short"}, {"valid": False, "error": "Password must be at least 8 characters long"}),
            ({"type": "color", "data": "red"}, {"valid": False, "error": "Unknown validation type: color"}),
        ],
    )
    def test_validate(self, client, payload, expected):
        response = client.post("/v1/validate", json=payload)
        assert response.status_code == 200
        assert response.json() == expected


class TestAssistant:
    def test_chat_requires_key(self, client, alice, monkeypatch):
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        response = client.post("/v1/ai/chat", json={"message": "hi"}, headers=alice)
        assert response.status_code == 503
        assert response.json()["error"] == "missing_api_key"

    def test_chat_flow(self, client, alice, fake_ai):
        saved = client.put("/v1/ai/keys/anthropic", json={"api_key": KEY}, headers=alice).json()
        assert saved["key_hint"] == "sk-a...6789"
        assert client.get("/v1/ai/keys", headers=alice).json()["total"] == 1

        response = client.post(
            "/v1/ai/chat",
            json={"message": "What is due?", "history": [{"role": "user", "content": "hello"}]},
            headers=alice,
        )
        assert response.status_code == 200
        assert response.json()["reply"] == "Here is a summary."
        assert fake_ai.api_keys == [KEY]
        assert "user: hello" in fake_ai.calls[0]["messages"][0]["content"]

        history = client.get("/v1/ai/history", headers=alice).json()
        assert history["total"] == 1

        assert client.delete("/v1/ai/keys/anthropic", headers=alice).json() == {"deleted": True, "provider": "anthropic"}
        assert client.delete("/v1/ai/keys/anthropic", headers=alice).status_code == 404

    def test_search(self, client, alice):
        client.post("/v1/tasks", json={"title": "Invoice Acme"}, headers=alice)
        found = client.get("/v1/ai/search", params={"q": "invoice"}, headers=alice).json()
        assert [t["title"] for t in found["tasks"]] == ["Invoice Acme"]
