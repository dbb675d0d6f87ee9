import re

from models import Complaint, Volunteer


def _assign(client, admin_headers, complaint_id, volunteer_id):
    response = client.put(
        f"/api/admin/complaints/{complaint_id}/assign",
        json={"volunteerId": volunteer_id},
        headers=admin_headers,
    )
    assert response.status_code == 200, response.text


def test_registration_and_approval_flow(client, admin, test_db, outbox):
    account, admin_headers = admin
    payload = {"name": "Nina Helper", "email": "nina@test.com", "password": "secret123"}

    response = client.post("/api/admin/volunteers/register", json=payload)
    assert response.status_code == 201
    volunteer = response.json()["volunteer"]
    assert volunteer["status"] == "pending"
    assert response.json()["message"] == (
        "Volunteer registration successful. Waiting for admin approval."
    )

    duplicate = client.post("/api/admin/volunteers/register", json=payload)
    assert duplicate.status_code == 400
    assert duplicate.json()["message"] == "Volunteer with this email already exists"

    login = client.post(
        "/api/admin/volunteers/login", json={"email": "nina@test.com", "password": "secret123"}
    )
    assert login.status_code == 401
    assert login.json()["message"] == "Your account is pending approval by admin"

    approved = client.put(
        f"/api/admin/volunteers/{volunteer['id']}/approve", headers=admin_headers
    )
    assert approved.status_code == 200
    body = approved.json()["volunteer"]
    assert body["status"] == "approved"
    assert body["approved_by_id"] == account.id
    assert body["approved_at"] is not None
    assert outbox[-1].to == "nina@test.com"

    again = client.put(f"/api/admin/volunteers/{volunteer['id']}/approve", headers=admin_headers)
    assert again.status_code == 400
    assert again.json()["message"] == "Volunteer already approved"

    login = client.post(
        "/api/admin/volunteers/login", json={"email": "nina@test.com", "password": "secret123"}
    )
    assert login.status_code == 200
    token = login.json()["token"]
    me = client.get("/api/admin/volunteers/me", headers={"Authorization": f"Bearer {token}"})
    assert me.json()["volunteer"]["email"] == "nina@test.com"


def test_block_toggle(client, admin, volunteer):
    _, admin_headers = admin
    helper, helper_headers = volunteer

    blocked = client.put(f"/api/admin/volunteers/{helper.id}/block", headers=admin_headers)
    assert blocked.json()["volunteer"]["status"] == "blocked"
    assert client.get("/api/volunteer/complaints", headers=helper_headers).status_code == 403
    login = client.post(
        "/api/admin/volunteers/login",
        json={"email": "volunteer@test.com", "password": "password123"},
    )
    assert login.json()["message"] == "Your account has been blocked"

    unblocked = client.put(f"/api/admin/volunteers/{helper.id}/block", headers=admin_headers)
    assert unblocked.json()["volunteer"]["status"] == "approved"


def test_admin_creates_and_lists_volunteers(client, admin, make_volunteer):
    account, admin_headers = admin
    make_volunteer(email="waiting@test.com", status="pending")

    response = client.post(
        "/api/admin/volunteers",
        json={"name": "Direct Hire", "email": "direct@test.com", "password": "secret123"},
        headers=admin_headers,
    )
    assert response.status_code == 201
    assert response.json()["volunteer"]["status"] == "approved"
    assert response.json()["volunteer"]["approved_by_id"] == account.id

    pending = client.get(
        "/api/admin/volunteers", params={"status": "pending"}, headers=admin_headers
    ).json()
    assert [v["email"] for v in pending["volunteers"]] == ["waiting@test.com"]


def test_volunteer_status_updates(client, admin, citizen, volunteer, make_complaint):
    _, admin_headers = admin
    _, citizen_headers = citizen
    helper, helper_headers = volunteer
    complaint_id = make_complaint(citizen_headers)["id"]
    _assign(client, admin_headers, complaint_id, helper.id)

    response = client.put(
        f"/api/volunteer/complaints/{complaint_id}/status",
        json={"status": "in_review"},
        headers=helper_headers,
    )
    assert response.status_code == 200
    assert response.json()["complaint"]["status"] == "in_review"

    response = client.put(
        f"/api/volunteer/complaints/{complaint_id}/status",
        json={"status": "rejected"},
        headers=helper_headers,
    )
    assert response.status_code == 400
    assert response.json()["message"] == (
        "Invalid status value. Allowed: assigned, in_review, resolved"
    )

    response = client.put(
        f"/api/volunteer/complaints/{complaint_id}/status",
        json={"status": "resolved"},
        headers=helper_headers,
    )
    assert response.json()["complaint"]["status"] == "resolved"

    stats = client.get(
        "/api/volunteer/complaints/stats/dashboard", headers=helper_headers
    ).json()["stats"]
    assert stats == {"total": 1, "assigned": 0, "resolved": 1}


def test_volunteer_cannot_touch_unassigned_complaint(
    client, admin, citizen, make_volunteer, make_complaint
):
    _, admin_headers = admin
    _, citizen_headers = citizen
    owner, _ = make_volunteer(email="owner@test.com")
    _, outsider_headers = make_volunteer(email="outsider@test.com")
    complaint_id = make_complaint(citizen_headers)["id"]
    _assign(client, admin_headers, complaint_id, owner.id)

    response = client.put(
        f"/api/volunteer/complaints/{complaint_id}/status",
        json={"status": "resolved"},
        headers=outsider_headers,
    )
    assert response.status_code == 404
    assert response.json()["message"] == "Complaint not found or not assigned to you"

    assert client.get(
        f"/api/volunteer/complaints/{complaint_id}", headers=outsider_headers
    ).status_code == 404
    assert client.get("/api/volunteer/complaints", headers=outsider_headers).json()["count"] == 0


def test_deleting_volunteer_leaves_reference(
    client, admin, citizen, volunteer, make_complaint, test_db
):
    _, admin_headers = admin
    _, citizen_headers = citizen
    helper, _ = volunteer
    complaint_id = make_complaint(citizen_headers)["id"]
    helper_id = helper.id
    _assign(client, admin_headers, complaint_id, helper_id)

    response = client.delete(f"/api/admin/volunteers/{helper_id}", headers=admin_headers)
    assert response.status_code == 200

    test_db.expire_all()
    assert test_db.get(Volunteer, helper_id) is None
    complaint = test_db.get(Complaint, complaint_id)
    assert complaint.assigned_to == helper_id

    detail = client.get(f"/api/admin/complaints/{complaint_id}", headers=admin_headers)
    assert detail.status_code == 200
    assert detail.json()["complaint"]["assignee"] is None


def test_volunteer_password_reset(client, volunteer, outbox):
    response = client.post(
        "/api/admin/volunteers/forgot-password", json={"email": "volunteer@test.com"}
    )
    assert response.status_code == 200
    assert "/volunteer/reset-password/" in outbox[-1].html
    assert "10 minutes" in outbox[-1].html
    token = re.search(r"reset-password/([0-9a-f]{40})", outbox[-1].html).group(1)

    response = client.put(
        f"/api/admin/volunteers/reset-password/{token}", json={"password": "fresh123"}
    )
    assert response.status_code == 200
    login = client.post(
        "/api/admin/volunteers/login",
        json={"email": "volunteer@test.com", "password": "fresh123"},
    )
    assert login.status_code == 200
