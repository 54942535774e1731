"""
Tests: HTTP surface.

Validates that:
1. Payloads and responses use camelCase field names
2. Malformed input returns 400 with field-level messages
3. Rows of other users read as 404
4. Dose writes move the inventory counter and medication deletes cascade
"""
from datetime import datetime

import pytest

from conftest import OTHER_USER_ID, WEDNESDAY_7AM, WEDNESDAY_9AM
from schemas import MedicationIn

MEDICATION = {
    "name": "Latanoprost",
    "dosage": "1 drop",
    "eye": "both",
    "capColor": "#00AAFF",
    "remainingDoses": 60,
    "totalDoses": 60,
}


@pytest.fixture
def med_id(client):
    response = client.post("/api/medications", json=MEDICATION)
    assert response.status_code == 201
    return response.json()["id"]


def create_schedule(client, med_id, **overrides):
    body = {"medicationId": med_id, "time": "08:00", "daysOfWeek": ["Monday", "Wednesday", "Friday"], "eye": "both"}
    body.update(overrides)
    return client.post("/api/schedules", json=body)


def test_root(client):
    assert client.get("/").json() == {"message": "EyeCare Tracker API is running"}


def test_default_user(client):
    assert client.get("/api/user").json() == {"id": 1, "username": "testuser"}


def test_create_medication_returns_camel_case(client):
    response = client.post("/api/medications", json=MEDICATION)

    assert response.status_code == 201
    body = response.json()
    assert body["capColor"] == "#00AAFF"
    assert body["remainingDoses"] == 60
    assert body["userId"] == 1
    assert "createdAt" in body


def test_medication_defaults(client):
    body = client.post("/api/medications", json={"name": "Artificial tears"}).json()

    assert body["eye"] == "both"
    assert body["capColor"] == "#000000"
    assert body["remainingDoses"] is None


@pytest.mark.parametrize("field,value", [
    ("name", ""),
    ("eye", "middle"),
    ("capColor", "blue"),
    ("capColor", "#12345"),
    ("remainingDoses", -1),
    ("totalDoses", 0),
])
def test_invalid_medication_is_rejected(client, field, value):
    response = client.post("/api/medications", json={**MEDICATION, field: value})

    assert response.status_code == 400
    body = response.json()
    assert body["message"] == "Invalid medication data"
    assert body["errors"][0]["field"] == field


@pytest.mark.parametrize("overrides,field", [
    ({"time": "25:00"}, "time"),
    ({"time": "8am"}, "time"),
    ({"daysOfWeek": ["Funday"]}, "daysOfWeek.0"),
    ({"daysOfWeek": []}, "daysOfWeek"),
    ({"eye": "none"}, "eye"),
])
def test_invalid_schedule_is_rejected(client, med_id, overrides, field):
    response = create_schedule(client, med_id, **overrides)

    assert response.status_code == 400
    body = response.json()
    assert body["message"] == "Invalid schedule data"
    assert body["errors"][0]["field"] == field


def test_schedule_time_is_zero_padded(client, med_id):
    response = create_schedule(client, med_id, time="8:05")

    assert response.status_code == 201
    assert response.json()["time"] == "08:05"


def test_schedule_for_unknown_medication_is_not_found(client):
    response = create_schedule(client, 999)

    assert response.status_code == 404
    assert response.json() == {"detail": "Medication not found"}


def test_foreign_medication_reads_as_not_found(client, store):
    foreign = store.create_medication(OTHER_USER_ID, MedicationIn(name="Timolol"))

    assert client.get(f"/api/medications/{foreign.id}").status_code == 404
    assert client.put(f"/api/medications/{foreign.id}", json={"dosage": "2"}).status_code == 404
    assert client.delete(f"/api/medications/{foreign.id}").status_code == 404
    assert client.get("/api/medications").json() == []


def test_update_medication_is_partial(client, med_id):
    response = client.put(f"/api/medications/{med_id}", json={"dosage": "2 drops"})

    assert response.status_code == 200
    assert response.json()["dosage"] == "2 drops"
    assert response.json()["name"] == "Latanoprost"


def test_dose_recording_moves_inventory(client, med_id):
    def remaining():
        return client.get(f"/api/medications/{med_id}").json()["remainingDoses"]

    dose_ids = []
    for _ in range(3):
        response = client.post("/api/doses", json={"medicationId": med_id, "eye": "both"})
        assert response.status_code == 201
        dose_ids.append(response.json()["id"])
    assert remaining() == 57

    skipped = client.post("/api/doses", json={"medicationId": med_id, "eye": "both", "skipped": True})
    assert skipped.json()["skipped"] is True
    assert remaining() == 57

    assert client.delete(f"/api/doses/{dose_ids[0]}").status_code == 204
    assert remaining() == 58
    assert client.delete(f"/api/doses/{dose_ids[0]}").status_code == 404


def test_dose_with_invalid_eye_is_rejected(client, med_id):
    response = client.post("/api/doses", json={"medicationId": med_id, "eye": "nose"})

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid dose data"


def test_dose_range_filter(client, med_id):
    for ts in ("2024-01-01T08:00:00", "2024-01-02T08:00:00", "2024-01-03T08:00:00"):
        client.post("/api/doses", json={"medicationId": med_id, "eye": "both", "timestamp": ts})

    response = client.get("/api/doses", params={"startDate": "2024-01-02T00:00:00", "endDate": "2024-01-03T08:00:00"})

    assert [d["timestamp"] for d in response.json()] == ["2024-01-02T08:00:00", "2024-01-03T08:00:00"]
    assert len(client.get("/api/doses").json()) == 3


def test_delete_medication_cascades(client, med_id):
    create_schedule(client, med_id, time="08:00")
    create_schedule(client, med_id, time="20:00")
    for _ in range(3):
        client.post("/api/doses", json={"medicationId": med_id, "eye": "both"})

    assert client.delete(f"/api/medications/{med_id}").status_code == 204

    assert client.get("/api/schedules").json() == []
    assert client.get("/api/doses").json() == []
    assert client.delete(f"/api/medications/{med_id}").status_code == 404


def test_next_doses(client, med_id, frozen_now):
    create_schedule(client, med_id, time="08:00")
    frozen_now(WEDNESDAY_7AM)

    doses = client.get("/api/next-doses").json()

    assert doses[0] == {
        "scheduleId": 1,
        "medicationId": med_id,
        "medicationName": "Latanoprost",
        "time": "08:00",
        "eye": "both",
        "dosage": "1 drop",
        "capColor": "#00AAFF",
        "date": "2024-01-03",
    }
    assert len(client.get("/api/next-doses", params={"count": 1}).json()) == 1


def test_next_doses_rejects_negative_count(client):
    assert client.get("/api/next-doses", params={"count": -1}).status_code == 400


def test_today_schedule(client, med_id, frozen_now):
    create_schedule(client, med_id, time="08:00")
    create_schedule(client, med_id, time="06:00", daysOfWeek=["Tuesday"])
    frozen_now(WEDNESDAY_9AM)

    assert [d["time"] for d in client.get("/api/today").json()] == ["08:00"]


def test_adherence_stats(client, med_id, frozen_now):
    frozen_now(WEDNESDAY_9AM)
    create_schedule(client, med_id, daysOfWeek=["Wednesday"])
    client.post("/api/doses", json={"medicationId": med_id, "eye": "both", "timestamp": "2024-01-03T08:00:00"})

    default = client.get("/api/adherence-stats").json()
    assert len(default) == 7
    assert default[-1] == {"date": "2024-01-03", "scheduled": 1, "completed": 1}

    assert len(client.get("/api/adherence-stats", params={"days": 30}).json()) == 30
    assert len(client.get("/api/adherence-stats", params={"days": 400}).json()) == 400


def test_adherence_summary(client, med_id, frozen_now):
    frozen_now(WEDNESDAY_9AM)
    create_schedule(client, med_id, daysOfWeek=["Wednesday"])
    create_schedule(client, med_id, time="20:00", daysOfWeek=["Wednesday"])
    client.post("/api/doses", json={"medicationId": med_id, "eye": "both", "timestamp": "2024-01-03T08:00:00"})

    summary = client.get("/api/adherence-stats/summary", params={"days": 1}).json()

    assert summary == {"days": [{"date": "2024-01-03", "scheduled": 2, "completed": 1}], "rate": 50.0}


def test_adherence_summary_without_schedules(client, frozen_now):
    summary = client.get("/api/adherence-stats/summary").json()

    assert len(summary["days"]) == 7
    assert summary["rate"] is None


def test_inventory_endpoints(client, med_id):
    for _ in range(30):
        client.post("/api/doses", json={"medicationId": med_id, "eye": "both"})
    client.post("/api/medications", json={"name": "Artificial tears"})

    inventory = client.get(f"/api/medications/{med_id}/inventory").json()
    assert inventory["percent"] == 50
    assert inventory["tier"] == "warning"
    assert inventory["message"] == "Refill soon"
    assert len(client.get("/api/inventory").json()) == 1


def test_appointments_crud(client, frozen_now):
    frozen_now(WEDNESDAY_9AM)
    body = {"doctorName": "Dr. Iris", "appointmentType": "Checkup", "dateTime": "2024-01-10T10:00:00"}
    created = client.post("/api/appointments", json=body)
    assert created.status_code == 201
    appointment_id = created.json()["id"]
    assert created.json()["reminderSent"] is False

    client.post("/api/appointments", json={**body, "dateTime": "2024-01-05T10:00:00"})
    listed = client.get("/api/appointments").json()
    assert [a["dateTime"] for a in listed] == ["2024-01-05T10:00:00", "2024-01-10T10:00:00"]
    assert client.get("/api/appointments/next").json()["dateTime"] == "2024-01-05T10:00:00"

    updated = client.put(f"/api/appointments/{appointment_id}", json={"location": "Eye Clinic"})
    assert updated.json()["location"] == "Eye Clinic"

    assert client.delete(f"/api/appointments/{appointment_id}").status_code == 204
    assert client.get(f"/api/appointments/{appointment_id}").status_code == 404


def test_appointment_requires_doctor(client):
    response = client.post("/api/appointments", json={
        "doctorName": "", "appointmentType": "Checkup", "dateTime": "2024-01-10T10:00:00",
    })

    assert response.status_code == 400
    assert response.json()["errors"][0]["field"] == "doctorName"


def test_join_views(client, med_id):
    create_schedule(client, med_id)

    grouped = client.get("/api/medications-with-schedules").json()
    joined = client.get("/api/schedules-with-medications").json()

    assert grouped[0]["schedules"][0]["medicationId"] == med_id
    assert joined[0]["medication"]["name"] == "Latanoprost"


def test_storage_diagnostics(client):
    body = client.get("/test").json()

    assert body["storage"] == "memory"
    assert body["database"] == "✅ Connected & Working"
