from models import Admin, Comment, Complaint, User, Vote, Volunteer


def test_admin_login_and_inactive(client, admin, test_db):
    account, _ = admin
    response = client.post(
        "/api/admin/auth/login", json={"email": "admin@test.com", "password": "password123"}
    )
    assert response.status_code == 200
    assert response.json()["admin"]["role"] == "super_admin"

    test_db.add(
        Admin(
            name="Sleepy",
            email="sleepy@test.com",
            password_hash=account.password_hash,
            is_active=False,
        )
    )
    test_db.commit()
    response = client.post(
        "/api/admin/auth/login", json={"email": "sleepy@test.com", "password": "password123"}
    )
    assert response.status_code == 401
    assert response.json()["message"] == "Admin account is inactive"


def test_citizen_token_cannot_reach_admin_routes(client, citizen):
    _, headers = citizen
    response = client.get("/api/admin/complaints", headers=headers)
    assert response.status_code == 403


def test_register_admin_and_toggle_active(client, admin):
    account, headers = admin
    response = client.post(
        "/api/admin/auth/register",
        json={"name": "Second Admin", "email": "second@test.com", "password": "secret123"},
        headers=headers,
    )
    assert response.status_code == 201
    created = response.json()["admin"]
    assert created["created_by_id"] == account.id
    assert created["role"] == "admin"

    duplicate = client.post(
        "/api/admin/auth/register",
        json={"name": "Second Admin", "email": "second@test.com", "password": "secret123"},
        headers=headers,
    )
    assert duplicate.status_code == 400

    toggled = client.put(f"/api/admin/auth/{created['id']}/toggle-active", headers=headers)
    assert toggled.json()["admin"]["is_active"] is False

    response = client.put(f"/api/admin/auth/{account.id}/toggle-active", headers=headers)
    assert response.status_code == 400
    assert response.json()["message"] == "Cannot deactivate super admin"

    listed = client.get("/api/admin/auth/admins", headers=headers).json()
    assert listed["count"] == 2


def test_admin_can_resolve_directly(client, admin, citizen, make_complaint):
    _, admin_headers = admin
    _, citizen_headers = citizen
    complaint_id = make_complaint(citizen_headers)["id"]

    response = client.put(
        f"/api/admin/complaints/{complaint_id}/status",
        json={"status": "resolved"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    assert response.json()["complaint"]["status"] == "resolved"

    # Admins may reopen a resolved complaint
    response = client.put(
        f"/api/admin/complaints/{complaint_id}/status",
        json={"status": "received"},
        headers=admin_headers,
    )
    assert response.json()["complaint"]["status"] == "received"

    response = client.put(
        f"/api/admin/complaints/{complaint_id}/status",
        json={"status": "closed"},
        headers=admin_headers,
    )
    assert response.status_code == 400


def test_assign_requires_approved_volunteer(
    client, admin, citizen, make_volunteer, make_complaint, test_db
):
    _, admin_headers = admin
    _, citizen_headers = citizen
    pending, _ = make_volunteer(email="pending@test.com", status="pending")
    complaint_id = make_complaint(citizen_headers)["id"]

    response = client.put(
        f"/api/admin/complaints/{complaint_id}/assign",
        json={"volunteerId": pending.id},
        headers=admin_headers,
    )
    assert response.status_code == 400
    complaint = test_db.get(Complaint, complaint_id)
    assert complaint.assigned_to is None
    assert complaint.status == "received"

    response = client.put(
        f"/api/admin/complaints/{complaint_id}/assign", json={}, headers=admin_headers
    )
    assert response.status_code == 400
    assert response.json()["message"] == "Please provide volunteer ID"

    response = client.put(
        f"/api/admin/complaints/{complaint_id}/assign",
        json={"volunteerId": 999},
        headers=admin_headers,
    )
    assert response.status_code == 404


def test_assign_reassign_and_unassign(
    client, admin, citizen, make_volunteer, make_complaint, test_db, outbox
):
    _, admin_headers = admin
    _, citizen_headers = citizen
    first, _ = make_volunteer(email="first@test.com")
    second, _ = make_volunteer(email="second@test.com")
    complaint_id = make_complaint(citizen_headers)["id"]

    for _ in range(2):
        response = client.put(
            f"/api/admin/complaints/{complaint_id}/assign",
            json={"volunteerId": first.id},
            headers=admin_headers,
        )
        assert response.status_code == 200
    body = response.json()
    assert body["complaint"]["status"] == "assigned"
    assert body["complaint"]["assigned_to"] == first.id
    assert body["complaint"]["assignee"]["email"] == "first@test.com"

    test_db.expire_all()
    assert [c.id for c in test_db.get(Volunteer, first.id).assigned_complaints] == [complaint_id]
    assert outbox[-1].to == "first@test.com"
    assert outbox[-1].subject == "New Complaint Assigned to You"

    client.put(
        f"/api/admin/complaints/{complaint_id}/assign",
        json={"volunteerId": second.id},
        headers=admin_headers,
    )
    test_db.expire_all()
    assert test_db.get(Volunteer, first.id).assigned_complaints == []
    assert [c.id for c in test_db.get(Volunteer, second.id).assigned_complaints] == [complaint_id]

    response = client.put(
        f"/api/admin/complaints/{complaint_id}/unassign", headers=admin_headers
    )
    assert response.status_code == 200
    assert response.json()["complaint"]["status"] == "in_review"
    assert response.json()["complaint"]["assigned_to"] is None
    test_db.expire_all()
    assert test_db.get(Volunteer, second.id).assigned_complaints == []

    response = client.put(
        f"/api/admin/complaints/{complaint_id}/unassign", headers=admin_headers
    )
    assert response.status_code == 400


def test_admin_list_filters(client, admin, citizen, volunteer, make_complaint):
    _, admin_headers = admin
    _, citizen_headers = citizen
    helper, _ = volunteer
    assigned_id = make_complaint(citizen_headers, title="Assigned one")["id"]
    make_complaint(citizen_headers, title="Open one", priority="high")
    client.put(
        f"/api/admin/complaints/{assigned_id}/assign",
        json={"volunteerId": helper.id},
        headers=admin_headers,
    )

    assigned = client.get(
        "/api/admin/complaints", params={"assigned": "true"}, headers=admin_headers
    ).json()
    assert [c["title"] for c in assigned["complaints"]] == ["Assigned one"]

    unassigned = client.get(
        "/api/admin/complaints", params={"assigned": "false"}, headers=admin_headers
    ).json()
    assert [c["title"] for c in unassigned["complaints"]] == ["Open one"]

    stats = client.get(
        "/api/admin/complaints/stats/dashboard", headers=admin_headers
    ).json()["stats"]
    assert stats["complaints"]["total"] == 2
    assert stats["complaints"]["assigned"] == 1
    assert stats["complaints"]["pending"] == 1
    assert stats["priority"]["high"] == 1
    assert stats["users"] == 1
    assert stats["volunteers"]["approved"] == 1


def test_delete_complaint_cascades(
    client, admin, make_citizen, volunteer, make_complaint, test_db
):
    _, admin_headers = admin
    _, owner = make_citizen(email="owner@test.com")
    _, other = make_citizen(email="other@test.com")
    helper, _ = volunteer
    complaint_id = make_complaint(owner)["id"]
    client.post("/api/comments", json={"complaint_id": complaint_id, "content": "a"}, headers=other)
    client.post("/api/votes/%s" % complaint_id, json={"vote_type": "upvote"}, headers=other)
    client.put(
        f"/api/admin/complaints/{complaint_id}/assign",
        json={"volunteerId": helper.id},
        headers=admin_headers,
    )

    detail = client.get(f"/api/admin/complaints/{complaint_id}", headers=admin_headers).json()
    assert len(detail["comments"]) == 1

    response = client.delete(f"/api/admin/complaints/{complaint_id}", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["message"] == "Complaint and associated comments deleted successfully"

    test_db.expire_all()
    assert test_db.query(Complaint).count() == 0
    assert test_db.query(Comment).count() == 0
    assert test_db.query(Vote).count() == 0
    assert test_db.get(Volunteer, helper.id).assigned_complaints == []


def test_admin_deletes_comment(client, admin, citizen, make_complaint):
    _, admin_headers = admin
    _, headers = citizen
    complaint_id = make_complaint(headers)["id"]
    comment_id = client.post(
        "/api/comments", json={"complaint_id": complaint_id, "content": "spam"}, headers=headers
    ).json()["comment"]["id"]

    response = client.delete(
        f"/api/admin/complaints/{complaint_id}/comments/{comment_id}", headers=admin_headers
    )
    assert response.status_code == 200
    response = client.delete(
        f"/api/admin/complaints/{complaint_id}/comments/{comment_id}", headers=admin_headers
    )
    assert response.status_code == 404


def test_admin_user_management(client, admin, make_citizen, make_complaint, test_db):
    _, admin_headers = admin
    target, target_headers = make_citizen(email="target@test.com")
    _, other_headers = make_citizen(email="other@test.com")

    own_id = make_complaint(target_headers, title="Target complaint")["id"]
    other_id = make_complaint(other_headers, title="Other complaint")["id"]
    client.post(f"/api/votes/{other_id}", json={"vote_type": "upvote"}, headers=target_headers)
    comment_id = client.post(
        "/api/comments", json={"complaint_id": other_id, "content": "hi"}, headers=other_headers
    ).json()["comment"]["id"]
    client.post(f"/api/comments/{comment_id}/like", headers=target_headers)
    client.post(
        "/api/comments", json={"complaint_id": other_id, "content": "me"}, headers=target_headers
    )

    listing = client.get("/api/admin/users", headers=admin_headers).json()
    counts = {u["email"]: u["complaints_count"] for u in listing["users"]}
    assert counts == {"target@test.com": 1, "other@test.com": 1}

    detail = client.get(f"/api/admin/users/{target.id}", headers=admin_headers).json()
    assert detail["complaints_count"] == 1

    blocked = client.put(f"/api/admin/users/{target.id}/block", headers=admin_headers).json()
    assert blocked["user"]["is_blocked"] is True
    assert client.get("/api/auth/me", headers=target_headers).status_code == 403
    only_blocked = client.get(
        "/api/admin/users", params={"is_blocked": True}, headers=admin_headers
    ).json()
    assert only_blocked["count"] == 1

    target_id = target.id
    response = client.delete(f"/api/admin/users/{target_id}", headers=admin_headers)
    assert response.status_code == 200

    test_db.expire_all()
    assert test_db.get(User, target_id) is None
    assert test_db.get(Complaint, own_id) is None
    other = test_db.get(Complaint, other_id)
    assert other.upvotes == 0
    remaining = test_db.query(Comment).all()
    assert [c.id for c in remaining] == [comment_id]
    assert remaining[0].likes == 0
    assert remaining[0].liked_by == []
