"""
事件审计 API 测试
"""
from fastapi.testclient import TestClient


class TestEventAudit:
    """GET /events"""

    def test_room_assignment_is_recorded(self, client: TestClient, clean_event_bus, admin_auth_headers,
                                         operator_auth_headers, sample_room, sample_patient):
        client.put(f"/rooms/{sample_room.id}/assign", headers=operator_auth_headers,
                   json={"patient_id": sample_patient.id})

        response = client.get("/events", headers=admin_auth_headers)

        assert response.status_code == 200
        events = response.json()
        assert events[0]["event_type"] == "room.assigned"
        assert events[0]["source"] == "room_occupancy"
        assert events[0]["data"]["room_number"] == "101"
        assert events[0]["data"]["patient_ref"] == str(sample_patient.id)

    def test_filter_by_event_type_pattern(self, client: TestClient, clean_event_bus, admin_auth_headers,
                                          operator_auth_headers, sample_room, sample_patient):
        client.put(f"/rooms/{sample_room.id}/assign", headers=operator_auth_headers,
                   json={"patient_id": sample_patient.id})
        client.put(f"/rooms/{sample_room.id}/release", headers=operator_auth_headers)

        response = client.get("/events", params={"event_type": "room.*", "limit": 1},
                              headers=admin_auth_headers)

        assert [e["event_type"] for e in response.json()] == ["room.released"]

        bills = client.get("/events", params={"event_type": "bill.*"}, headers=admin_auth_headers)
        assert bills.json() == []

    def test_operator_forbidden(self, client: TestClient, operator_auth_headers):
        response = client.get("/events", headers=operator_auth_headers)
        assert response.status_code == 403

    def test_limit_is_bounded(self, client: TestClient, admin_auth_headers):
        response = client.get("/events", params={"limit": 0}, headers=admin_auth_headers)
        assert response.status_code == 422
