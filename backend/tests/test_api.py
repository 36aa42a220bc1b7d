import pytest

from classgrid.models.room import RoomStatus
from classgrid.models.timetable import Day


@pytest.fixture()
def seeded(db, factory):
    r1 = factory.room("R1", capacity=50, building="Main")
    r2 = factory.room("R2", capacity=55, building="Main")
    section = factory.section("S1", strength=40)
    subject = factory.subject("MATH", name="Math")
    lecturer = factory.faculty("Dr. Rao")
    timetable = factory.timetable(section, [(Day.monday, 1, subject, lecturer, r1)])
    return {"r1": r1, "r2": r2, "section": section, "subject": subject, "faculty": lecturer, "timetable": timetable}


def test_health(client):
    response = client.get("/api/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_routes_require_a_bearer_token(client, seeded):
    response = client.get("/api/rooms/")
    assert response.status_code in {401, 403}


def test_mutations_require_admin_or_scheduler(client, seeded, viewer_headers):
    response = client.patch(
        f"/api/rooms/{seeded['r1'].id}/status",
        json={"status": RoomStatus.closed.value},
        headers=viewer_headers,
    )
    assert response.status_code == 403


def test_room_listing_filters_by_status(client, seeded, admin_headers):
    response = client.get("/api/rooms/", params={"status": "active"}, headers=admin_headers)

    assert response.status_code == 200
    assert [room["code"] for room in response.json()] == ["R1", "R2"]


def test_status_change_opens_conflict_and_regeneration_resolves_it(client, seeded, admin_headers):
    r1 = seeded["r1"]

    impact = client.get(f"/api/rooms/{r1.id}/scheduled-classes", headers=admin_headers)
    assert impact.json()["count"] == 1

    changed = client.patch(f"/api/rooms/{r1.id}/status", json={"status": "in_maintenance"}, headers=admin_headers)
    assert changed.status_code == 200
    body = changed.json()
    assert body["previous_status"] == "active"
    conflict = body["conflict"]
    assert conflict["status"] == "active"
    assert len(conflict["entries"]) == 1

    listed = client.get("/api/conflicts/", params={"status": "active"}, headers=admin_headers)
    assert [item["id"] for item in listed.json()] == [conflict["id"]]

    entry_id = conflict["entries"][0]["id"]
    suggestions = client.get(
        f"/api/conflicts/{conflict['id']}/entries/{entry_id}/suggestions", headers=admin_headers
    )
    assert suggestions.json()[0]["room"]["code"] == "R2"

    report = client.post(f"/api/conflicts/{conflict['id']}/auto-regenerate", headers=admin_headers)
    assert report.status_code == 200
    assert report.json()["resolved"] == 1
    assert report.json()["assignments"][0]["new_room"] == "R2"

    status = client.get(f"/api/conflicts/{conflict['id']}/status", headers=admin_headers)
    assert status.json()["status"] == "resolved"

    again = client.post(f"/api/conflicts/{conflict['id']}/auto-regenerate", headers=admin_headers)
    assert again.status_code == 409
    assert "message" in again.json()

    logs = client.get("/api/audit-logs/", params={"conflict_id": conflict["id"]}, headers=admin_headers)
    assert logs.json()["total"] == 1
    assert logs.json()["logs"][0]["change_type"] == "auto_regeneration"

    item_id = conflict["entries"][0]["schedule_item_id"]
    history = client.get(f"/api/audit-logs/entries/{item_id}", headers=admin_headers)
    assert [entry["new_room_code"] for entry in history.json()] == ["R2"]


def test_manual_adjust_and_dismiss(client, seeded, admin_headers):
    r1 = seeded["r1"]
    conflict = client.patch(
        f"/api/rooms/{r1.id}/status", json={"status": "closed"}, headers=admin_headers
    ).json()["conflict"]
    entry_id = conflict["entries"][0]["id"]

    validation = client.post(
        f"/api/conflicts/{conflict['id']}/validate",
        json={"entry_id": entry_id, "new_room_id": seeded["r2"].id},
        headers=admin_headers,
    )
    assert validation.json()["is_valid"]

    dismissed = client.post(f"/api/conflicts/{conflict['id']}/dismiss", headers=admin_headers)
    assert dismissed.json()["status"] == "dismissed"

    adjusted = client.post(
        f"/api/conflicts/{conflict['id']}/manual-adjust",
        json={"assignments": [{"entry_id": entry_id, "new_room_id": seeded["r2"].id}]},
        headers=admin_headers,
    )
    assert adjusted.status_code == 409


def test_unknown_conflict_returns_404(client, admin_headers):
    response = client.get("/api/conflicts/missing", headers=admin_headers)

    assert response.status_code == 404
    assert response.json()["details"] == {"resource_type": "Conflict", "resource_id": "missing"}


def test_generate_and_publish_through_the_api(client, factory, admin_headers):
    factory.room("C101", capacity=50)
    section = factory.section("S9", strength=40)
    factory.mapping(section, factory.subject("ALGO", weekly_periods=2), factory.faculty("Dr. Nair"))

    sufficiency = client.get(f"/api/timetable/sections/{section.id}/sufficiency", headers=admin_headers)
    assert sufficiency.json()["sufficient"]

    generated = client.post(f"/api/timetable/sections/{section.id}/generate", headers=admin_headers)
    assert generated.status_code == 200
    timetable_id = generated.json()["timetable"]["id"]

    published = client.post(f"/api/timetable/{timetable_id}/publish", headers=admin_headers)
    assert published.json()["is_published"]

    history = client.get(f"/api/timetable/sections/{section.id}/history", headers=admin_headers)
    assert [entry["version"] for entry in history.json()] == ["1.0"]


def test_force_update_endpoint(client, seeded, admin_headers):
    item = seeded["timetable"].items[0]

    response = client.post(
        "/api/conflicts/force-update",
        json={"schedule_item_id": item.id, "new_room_id": seeded["r2"].id, "reason": "Swap for exam"},
        headers=admin_headers,
    )

    assert response.status_code == 200
    assert response.json()["new_room_code"] == "R2"
    assert response.json()["old_room_code"] == "R1"
