"""
Tests for prosync.services.clients, prosync.services.resources and prosync.services.risks.
"""

from __future__ import annotations

import pytest

from prosync.exceptions import RecordNotFoundError, ValidationError
from prosync.services.resources import capacity_status
from prosync.services.risks import risk_score


class TestClients:
    def test_create_notifies_and_defaults(self, services):
        client = services.clients.create_client("alice", {"name": "Acme", "email": "ops@acme.test"})
        assert client["status"] == "active"
        notes = services.notifications.list_notifications("alice")
        assert notes[0]["message"] == 'New client "Acme" has been added'

    def test_invalid_email(self, services):
        with pytest.raises(ValidationError) as excinfo:
            services.clients.create_client("alice", {"name": "Acme", "email": "not-an-email"})
        assert excinfo.value.field == "email"

    def test_search_and_order(self, services):
        services.clients.create_client("alice", {"name": "Zeta", "company": "Initech"})
        services.clients.create_client("alice", {"name": "Alpha", "company": "Globex"})
        services.clients.create_client("bob", {"name": "Globex Bob"})

        assert [c["name"] for c in services.clients.list_clients("alice")] == ["Alpha", "Zeta"]
        assert [c["name"] for c in services.clients.list_clients("alice", q="GLOBEX")] == ["Alpha"]

    def test_notes_lifecycle_and_cascade(self, services):
        client = services.clients.create_client("alice", {"name": "Acme"})
        first = services.clients.create_note("alice", client["id"], "Kickoff call")
        services.clients.create_note("alice", client["id"], "Sent proposal")

        notes = services.clients.list_notes("alice", client["id"])
        assert [n["content"] for n in notes] == ["Sent proposal", "Kickoff call"]

        updated = services.clients.update_note("alice", first["id"], "Kickoff call (moved)")
        assert updated["content"] == "Kickoff call (moved)"
        with pytest.raises(RecordNotFoundError):
            services.clients.update_note("bob", first["id"], "hijack")

        services.clients.delete_client("alice", client["id"])
        assert services.clients.list_clients("alice") == []
        assert services.clients.store.count("client_notes") == 0

    def test_notes_require_own_client(self, services):
        client = services.clients.create_client("alice", {"name": "Acme"})
        with pytest.raises(RecordNotFoundError):
            services.clients.create_note("bob", client["id"], "sneaky")


class TestResources:
    def test_capacity_status_thresholds(self):
        assert capacity_status(101) == "over"
        assert capacity_status(100) == "optimal"
        assert capacity_status(70) == "optimal"
        assert capacity_status(69.9) == "under"

    def test_allocation_bounds(self, services):
        resource = services.resources.create_resource("alice", {"name": "Dana"})
        for bad in (0, -5, 101, "lots"):
            with pytest.raises(ValidationError):
                services.resources.create_allocation("alice", {"resource_id": resource["id"], "percent": bad})

    def test_overallocation_notifies_once(self, services):
        resource = services.resources.create_resource("alice", {"name": "Dana"})
        services.resources.create_allocation("alice", {"resource_id": resource["id"], "percent": 60})
        services.resources.create_allocation("alice", {"resource_id": resource["id"], "percent": 40})
        assert services.notifications.list_notifications("alice") == []

        services.resources.create_allocation("alice", {"resource_id": resource["id"], "percent": 10})
        services.resources.create_allocation("alice", {"resource_id": resource["id"], "percent": 10})
        notes = services.notifications.list_notifications("alice")
        assert [n["title"] for n in notes] == ["Resource Overallocated"]

    def test_raising_an_allocation_past_full_notifies(self, services):
        resource = services.resources.create_resource("alice", {"name": "Dana"})
        first = services.resources.create_allocation("alice", {"resource_id": resource["id"], "percent": 60})
        services.resources.create_allocation("alice", {"resource_id": resource["id"], "percent": 30})
        services.resources.update_allocation("alice", first["id"], {"notes": "steady"})
        assert services.notifications.list_notifications("alice") == []

        updated = services.resources.update_allocation("alice", first["id"], {"percent": 90})
        assert updated["percent"] == 90
        notes = services.notifications.list_notifications("alice")
        assert [(n["title"], n["related_id"]) for n in notes] == [("Resource Overallocated", resource["id"])]

        services.resources.update_allocation("alice", first["id"], {"percent": 95})
        assert len(services.notifications.list_notifications("alice")) == 1

    def test_capacity_report(self, services):
        over = services.resources.create_resource("alice", {"name": "Avery"})
        optimal = services.resources.create_resource("alice", {"name": "Blake"})
        services.resources.create_resource("alice", {"name": "Casey"})
        services.resources.create_allocation("alice", {"resource_id": over["id"], "percent": 80})
        services.resources.create_allocation("alice", {"resource_id": over["id"], "percent": 30})
        services.resources.create_allocation("alice", {"resource_id": optimal["id"], "percent": 75})

        report = services.resources.capacity_report("alice")
        assert report["total_resources"] == 3
        assert report["summary"] == {"over": 1, "optimal": 1, "under": 1}
        rows = {r["name"]: r for r in report["resources"]}
        assert rows["Avery"]["allocated"] == 110.0
        assert rows["Avery"]["available"] == 0.0
        assert rows["Blake"]["available"] == 25.0
        assert rows["Casey"]["status"] == "under"

    def test_skills_and_matrix(self, services):
        dana = services.resources.create_resource("alice", {"name": "Dana"})
        eli = services.resources.create_resource("alice", {"name": "Eli"})
        services.resources.add_skill("alice", eli["id"], "python", "expert")
        services.resources.add_skill("alice", dana["id"], "python")
        skill = services.resources.add_skill("alice", dana["id"], "sql")

        assert services.resources.skill_matrix("alice") == {"python": ["Dana", "Eli"], "sql": ["Dana"]}
        assert [s["skill"] for s in services.resources.list_skills("alice", dana["id"])] == ["python", "sql"]

        services.resources.remove_skill("alice", skill["id"])
        assert services.resources.skill_matrix("alice") == {"python": ["Dana", "Eli"]}

    def test_delete_cascades(self, services):
        resource = services.resources.create_resource("alice", {"name": "Dana"})
        services.resources.create_allocation("alice", {"resource_id": resource["id"], "percent": 50})
        services.resources.add_skill("alice", resource["id"], "python")
        services.resources.delete_resource("alice", resource["id"])
        assert services.resources.list_allocations("alice") == []
        assert services.resources.store.count("resource_skills") == 0

    def test_team_directory(self, services):
        member = services.resources.add_team_member("alice", {"name": "Fran", "email": "fran@x.test"})
        assert member["role"] == "member"
        assert [m["name"] for m in services.resources.list_team_members("alice")] == ["Fran"]
        with pytest.raises(RecordNotFoundError):
            services.resources.remove_team_member("bob", member["id"])
        services.resources.remove_team_member("alice", member["id"])
        assert services.resources.list_team_members("alice") == []


class TestRisks:
    def test_score(self):
        assert risk_score(0.5, 0.5) == 0.25
        assert risk_score(0.9, 0.8) == 0.72

    def test_create_validates_and_notifies(self, services):
        with pytest.raises(ValidationError):
            services.risks.create_risk("alice", {"title": "x", "probability": 1.5, "impact": 0.5})
        with pytest.raises(ValidationError):
            services.risks.create_risk("alice", {"title": "x", "probability": 0.5})

        risk = services.risks.create_risk("alice", {"title": "Vendor delay", "probability": 0.9, "impact": 0.8})
        assert risk["risk_score"] == 0.72
        assert risk["status"] == "open"
        titles = {n["title"] for n in services.notifications.list_notifications("alice")}
        assert titles == {"New Risk Identified", "High Risk Alert"}

    def test_low_risk_skips_high_alert(self, services):
        services.risks.create_risk("alice", {"title": "Minor", "probability": 0.2, "impact": 0.5})
        titles = [n["title"] for n in services.notifications.list_notifications("alice")]
        assert titles == ["New Risk Identified"]

    def test_update_recomputes_from_merged_values(self, services):
        risk = services.risks.create_risk("alice", {"title": "x", "probability": 0.5, "impact": 0.4})
        updated = services.risks.update_risk("alice", risk["id"], {"impact": 1.0})
        assert updated["risk_score"] == 0.5

    def test_mitigated_transition_notifies(self, services):
        risk = services.risks.create_risk("alice", {"title": "Outage", "probability": 0.1, "impact": 0.1})
        services.risks.update_risk("bob", risk["id"], {"status": "mitigated"})
        titles = [n["title"] for n in services.notifications.list_notifications("bob")]
        assert titles == ["Risk Mitigated"]

    def test_list_sorted_by_score_and_shared(self, services):
        services.risks.create_risk("alice", {"title": "low", "probability": 0.1, "impact": 0.1})
        services.risks.create_risk("bob", {"title": "high", "probability": 0.9, "impact": 0.9})
        services.risks.create_risk("alice", {"title": "mid", "probability": 0.6, "impact": 0.6})
        assert [r["title"] for r in services.risks.list_risks()] == ["high", "mid", "low"]

    def test_mitigations_and_cascade(self, services):
        risk = services.risks.create_risk("alice", {"title": "x", "probability": 0.5, "impact": 0.5})
        mitigation = services.risks.create_mitigation("alice", risk["id"], {"action": "Add backup vendor"})
        assert mitigation["status"] == "planned"
        updated = services.risks.update_mitigation(mitigation["id"], {"status": "completed"})
        assert updated["status"] == "completed"
        with pytest.raises(ValidationError):
            services.risks.update_mitigation(mitigation["id"], {"status": "abandoned"})

        services.risks.delete_risk(risk["id"])
        assert services.risks.list_mitigations() == []
        with pytest.raises(RecordNotFoundError):
            services.risks.get_risk(risk["id"])

    def test_analytics(self, services):
        services.risks.create_risk("alice", {"title": "a", "probability": 0.9, "impact": 0.9, "category": "schedule"})
        services.risks.create_risk("alice", {"title": "b", "probability": 0.6, "impact": 0.6})
        services.risks.create_risk("alice", {"title": "c", "probability": 0.1, "impact": 0.5, "status": "closed"})
        stats = services.risks.analytics()
        assert stats["total"] == 3
        assert (stats["high"], stats["medium"], stats["low"]) == (1, 1, 1)
        assert stats["by_category"] == {"schedule": 1, "general": 2}
        assert stats["by_status"] == {"open": 2, "closed": 1}
