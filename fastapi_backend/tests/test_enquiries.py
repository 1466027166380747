from typing import Any, Dict

import pytest
from bson import ObjectId

from src.newsdesk.documents import Enquiry, registry


def _enquiry_body(**overrides: Any) -> Dict[str, Any]:
    body = {
        "name": "Dana Reader",
        "email": "Dana@newsroom.io",
        "subject": "Correction request",
        "message": "The article on fusion misquotes the lab director.",
    }
    body.update(overrides)
    return body


@pytest.fixture
def submit(client, database):
    def _submit(**overrides: Any) -> Dict[str, Any]:
        resp = client.post("/enquiries", json=_enquiry_body(**overrides))
        assert resp.status_code == 201
        return registry.collection(database, Enquiry).find_one(sort=[("_id", -1)])

    return _submit


def test_submit_stores_enquiry_with_request_metadata(client, database):
    resp = client.post("/enquiries", json=_enquiry_body(), headers={"User-Agent": "pytest-agent"})

    assert resp.status_code == 201
    assert resp.json() == {"success": True, "message": "Enquiry submitted successfully"}
    stored = registry.collection(database, Enquiry).find_one()
    assert stored["status"] == "new"
    assert stored["type"] == "general"
    assert stored["email"] == "dana@newsroom.io"
    assert stored["ipAddress"] == "testclient"
    assert stored["userAgent"] == "pytest-agent"


@pytest.mark.parametrize(
    "overrides",
    [
        {"name": "D"},
        {"subject": "Hi"},
        {"message": "Too short"},
        {"email": "dana-at-newsroom"},
        {"type": "complaint"},
    ],
)
def test_submit_validation(client, overrides):
    resp = client.post("/enquiries", json=_enquiry_body(**overrides))

    assert resp.status_code == 400
    assert resp.json()["success"] is False


def test_admin_endpoints_require_token(client):
    assert client.get("/enquiries").status_code == 401
    assert client.get("/enquiries/stats").status_code == 401


def test_list_reports_unread_count(client, submit, auth_headers):
    first = submit()
    submit(type="support")
    client.get(f"/enquiries/{first['_id']}", headers=auth_headers)

    body = client.get("/enquiries", headers=auth_headers).json()
    support = client.get("/enquiries", params={"type": "support"}, headers=auth_headers).json()

    assert body["pagination"]["total"] == 2
    assert body["unreadCount"] == 1
    assert support["pagination"]["total"] == 1


def test_opening_an_enquiry_marks_it_read(client, submit, auth_headers):
    enquiry = submit()

    resp = client.get(f"/enquiries/{enquiry['_id']}", headers=auth_headers)

    assert resp.json()["data"]["status"] == "read"


def test_opening_does_not_downgrade_replied(client, submit, auth_headers):
    enquiry = submit()
    client.patch(f"/enquiries/{enquiry['_id']}/status", json={"status": "replied"}, headers=auth_headers)

    resp = client.get(f"/enquiries/{enquiry['_id']}", headers=auth_headers)

    assert resp.json()["data"]["status"] == "replied"


def test_unknown_enquiry(client, auth_headers):
    assert client.get(f"/enquiries/{ObjectId()}", headers=auth_headers).status_code == 404
    assert client.delete(f"/enquiries/{ObjectId()}", headers=auth_headers).status_code == 404


def test_status_update_rejects_unknown_status(client, submit, auth_headers):
    enquiry = submit()

    resp = client.patch(f"/enquiries/{enquiry['_id']}/status", json={"status": "spam"}, headers=auth_headers)

    assert resp.status_code == 400


def test_reply_records_admin_and_marks_replied(client, submit, make_admin):
    enquiry = submit()
    admin = make_admin(email="desk@newsroom.io")

    resp = client.post(
        f"/enquiries/{enquiry['_id']}/reply",
        json={"reply": "  Thanks, we have corrected the quote.  "},
        headers=admin["headers"],
    )

    data = resp.json()["data"]
    assert resp.status_code == 200
    assert data["status"] == "replied"
    assert data["reply"] == "Thanks, we have corrected the quote."
    assert data["repliedBy"] == "desk@newsroom.io"
    assert data["repliedAt"]


def test_reply_must_have_substance(client, submit, auth_headers):
    enquiry = submit()

    resp = client.post(f"/enquiries/{enquiry['_id']}/reply", json={"reply": "ok"}, headers=auth_headers)

    assert resp.status_code == 400


def test_toggle_important(client, submit, auth_headers):
    enquiry = submit()
    url = f"/enquiries/{enquiry['_id']}/important"

    first = client.patch(url, headers=auth_headers).json()
    second = client.patch(url, headers=auth_headers).json()

    assert first["data"]["isImportant"] is True
    assert first["message"] == "Marked as important"
    assert second["data"]["isImportant"] is False


def test_stats_group_by_status_and_type(client, submit, auth_headers):
    submit()
    submit(type="feedback")
    third = submit(type="feedback")
    client.patch(f"/enquiries/{third['_id']}/status", json={"status": "archived"}, headers=auth_headers)

    data = client.get("/enquiries/stats", headers=auth_headers).json()["data"]

    assert data["total"] == 3
    assert data["byStatus"] == {"new": 2, "archived": 1}
    assert data["byType"] == {"feedback": 2, "general": 1}


def test_bulk_status_and_bulk_delete(client, submit, auth_headers, database):
    ids = [str(submit()["_id"]) for _ in range(3)]

    updated = client.post("/enquiries/bulk-status", json={"ids": ids[:2], "status": "archived"}, headers=auth_headers)
    deleted = client.post("/enquiries/bulk-delete", json={"ids": ids[1:]}, headers=auth_headers)

    assert updated.json()["message"] == "2 enquiries updated"
    assert deleted.json()["message"] == "2 enquiries deleted"
    remaining = list(registry.collection(database, Enquiry).find())
    assert [(str(e["_id"]), e["status"]) for e in remaining] == [(ids[0], "archived")]


def test_bulk_operations_need_ids(client, auth_headers):
    assert client.post("/enquiries/bulk-delete", json={"ids": []}, headers=auth_headers).status_code == 400
    assert client.post("/enquiries/bulk-delete", json={"ids": ["nope"]}, headers=auth_headers).status_code == 400


def test_delete_enquiry(client, submit, auth_headers):
    enquiry = submit()

    resp = client.delete(f"/enquiries/{enquiry['_id']}", headers=auth_headers)

    assert resp.json() == {"success": True, "message": "Enquiry deleted"}
