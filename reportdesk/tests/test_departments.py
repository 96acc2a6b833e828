"""
Tests for department endpoints
"""
from fastapi import status

from reportdesk.models import AuditLog, Department, Role, User
from reportdesk.services import directory_service, report_service
from reportdesk.tests.factories import WEEK, auth_headers, make_user, pdf_bytes


def test_create_department_as_hr(client, db, hr_user):
    headers = auth_headers(client, "harriet")
    hod = make_user(db, "henry", Role.HOD)

    response = client.post(
        "/api/v1/departments",
        json={"name": "Research", "description": "R&D", "head_user_id": hod.id},
        headers=headers,
    )

    assert response.status_code == status.HTTP_201_CREATED
    data = response.json()
    assert data["name"] == "Research"
    assert data["head_user_id"] == hod.id
    assert data["created_at"].endswith("Z")

    db.refresh(hod)
    assert hod.department_id == data["id"]
    assert db.query(AuditLog).filter(AuditLog.action == "DEPARTMENT_CREATE").count() == 1


def test_create_department_duplicate_name(client, department, admin_user):
    response = client.post(
        "/api/v1/departments",
        json={"name": "engineering"},
        headers=auth_headers(client, "admin"),
    )
    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.json()["code"] == "CONFLICT"


def test_create_department_forbidden_for_staff(client, staff_user):
    response = client.post(
        "/api/v1/departments",
        json={"name": "Shadow IT"},
        headers=auth_headers(client, "alice"),
    )
    assert response.status_code == status.HTTP_403_FORBIDDEN
    assert response.json()["code"] == "FORBIDDEN"


def test_second_headship_is_conflict(client, db, hod_user, other_department, admin_user):
    response = client.patch(
        f"/api/v1/departments/{other_department.id}",
        json={"head_user_id": hod_user.id},
        headers=auth_headers(client, "admin"),
    )
    assert response.status_code == status.HTTP_409_CONFLICT

    db.refresh(other_department)
    assert other_department.head_user_id is None


def test_head_must_be_hod(client, staff_user, other_department, admin_user):
    response = client.patch(
        f"/api/v1/departments/{other_department.id}",
        json={"head_user_id": staff_user.id},
        headers=auth_headers(client, "admin"),
    )
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    assert response.json()["field"] == "head_user_id"


def test_update_and_clear_head(client, db, department, hod_user, hr_user):
    headers = auth_headers(client, "harriet")

    response = client.patch(
        f"/api/v1/departments/{department.id}",
        json={"description": "Platform and product"},
        headers=headers,
    )
    assert response.status_code == 200
    assert response.json()["description"] == "Platform and product"
    assert response.json()["head_user_id"] == hod_user.id

    response = client.patch(f"/api/v1/departments/{department.id}", json={"head_user_id": None}, headers=headers)
    assert response.status_code == 200
    assert response.json()["head_user_id"] is None


def test_list_and_get_departments(client, department, other_department, staff_user):
    headers = auth_headers(client, "alice")

    response = client.get("/api/v1/departments", headers=headers)
    assert response.status_code == 200
    assert [d["name"] for d in response.json()] == ["Engineering", "Finance"]

    assert client.get(f"/api/v1/departments/{department.id}", headers=headers).status_code == 200
    assert client.get("/api/v1/departments/9999", headers=headers).status_code == 404


def test_assign_and_remove_staff(client, db, department, other_department, staff_user, hr_user):
    headers = auth_headers(client, "harriet")
    newcomer = make_user(db, "nina", Role.STAFF)

    response = client.post(
        f"/api/v1/departments/{other_department.id}/staff",
        json={"staff_ids": [staff_user.id, newcomer.id]},
        headers=headers,
    )
    assert response.status_code == 200
    assert response.json() == {"department_id": other_department.id, "assigned_count": 2}

    db.refresh(staff_user)
    assert staff_user.department_id == other_department.id

    response = client.delete(f"/api/v1/departments/{other_department.id}/staff/{newcomer.id}", headers=headers)
    assert response.status_code == 204
    db.refresh(newcomer)
    assert newcomer.department_id is None

    # not a member any more
    response = client.delete(f"/api/v1/departments/{other_department.id}/staff/{newcomer.id}", headers=headers)
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_assigning_hod_as_staff_is_rejected(client, db, other_department, admin_user):
    hod = make_user(db, "henry", Role.HOD)
    response = client.post(
        f"/api/v1/departments/{other_department.id}/staff",
        json={"staff_ids": [hod.id]},
        headers=auth_headers(client, "admin"),
    )
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
    assert response.json()["field"] == "staff_ids"


def test_assign_unknown_user(client, department, admin_user):
    response = client.post(
        f"/api/v1/departments/{department.id}/staff",
        json={"staff_ids": [4242]},
        headers=auth_headers(client, "admin"),
    )
    assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


def test_cannot_remove_department_head(client, department, hod_user, admin_user):
    response = client.delete(
        f"/api/v1/departments/{department.id}/staff/{hod_user.id}",
        headers=auth_headers(client, "admin"),
    )
    assert response.status_code == status.HTTP_409_CONFLICT


def test_department_staff_scoped_to_head(client, department, other_department, hod_user, other_hod, staff_user, other_staff):
    carol = auth_headers(client, "carol")

    response = client.get(f"/api/v1/departments/{department.id}/staff", headers=carol)
    assert response.status_code == 200
    assert {u["username"] for u in response.json()} == {"alice", "bob", "carol"}

    response = client.get(f"/api/v1/departments/{other_department.id}/staff", headers=carol)
    assert response.status_code == status.HTTP_403_FORBIDDEN

    response = client.get(f"/api/v1/departments/{department.id}/staff", headers=auth_headers(client, "alice"))
    assert response.status_code == status.HTTP_403_FORBIDDEN


def test_delete_department(client, db, department, other_department, staff_user, admin_user, hr_user):
    admin = auth_headers(client, "admin")

    # HR manages departments but cannot delete them
    response = client.delete(f"/api/v1/departments/{other_department.id}", headers=auth_headers(client, "harriet"))
    assert response.status_code == status.HTTP_403_FORBIDDEN

    response = client.delete(f"/api/v1/departments/{department.id}", headers=admin)
    assert response.status_code == status.HTTP_409_CONFLICT

    response = client.delete(f"/api/v1/departments/{other_department.id}", headers=admin)
    assert response.status_code == 204
    assert db.get(Department, other_department.id) is None


def test_delete_department_with_reports(client, db, file_store, department, hod_user, staff_user, admin_user):
    report_service.submit_report(db, staff_user, file_store, WEEK, pdf_bytes(), "application/pdf")

    # move everyone out; the submitted report still references the department
    department.head_user_id = None
    for user in db.query(User).filter(User.department_id == department.id).all():
        user.department_id = None
    db.commit()

    response = client.delete(f"/api/v1/departments/{department.id}", headers=auth_headers(client, "admin"))
    assert response.status_code == status.HTTP_409_CONFLICT
    assert "reports" in response.json()["detail"]


def test_name_taken_between_check_and_insert(client, db, admin_user, monkeypatch):
    real_check = directory_service._ensure_unique_name

    def check_then_lose_race(session, name, exclude_id=None):
        real_check(session, name, exclude_id)
        session.add(Department(name=name))
        session.commit()

    monkeypatch.setattr(directory_service, "_ensure_unique_name", check_then_lose_race)
    response = client.post("/api/v1/departments", json={"name": "Research"}, headers=auth_headers(client, "admin"))

    assert response.status_code == status.HTTP_409_CONFLICT
    assert response.json()["code"] == "CONFLICT"
    assert db.query(Department).filter(Department.name == "Research").count() == 1


def test_replaced_head_leaves_department(client, db, department, hod_user, staff_user, admin_user):
    successor = make_user(db, "henry", Role.HOD)

    response = client.patch(
        f"/api/v1/departments/{department.id}",
        json={"head_user_id": successor.id},
        headers=auth_headers(client, "admin"),
    )
    assert response.status_code == 200
    assert response.json()["head_user_id"] == successor.id

    db.expire_all()
    assert directory_service.department_of(db, hod_user.id) is None
    assert directory_service.department_of(db, successor.id).id == department.id
    assert directory_service.staff_of(db, department.id) == {staff_user.id, successor.id}
    assert directory_service.headed_department_id(db, db.get(User, hod_user.id)) is None


def test_cleared_head_leaves_department(client, db, department, hod_user, admin_user):
    response = client.patch(
        f"/api/v1/departments/{department.id}",
        json={"head_user_id": None},
        headers=auth_headers(client, "admin"),
    )
    assert response.status_code == 200

    db.expire_all()
    assert db.get(User, hod_user.id).department_id is None
    assert hod_user.id not in directory_service.staff_of(db, department.id)


def test_reassigning_same_head_keeps_department(client, db, department, hod_user, admin_user):
    response = client.patch(
        f"/api/v1/departments/{department.id}",
        json={"head_user_id": hod_user.id},
        headers=auth_headers(client, "admin"),
    )
    assert response.status_code == 200

    db.expire_all()
    assert db.get(User, hod_user.id).department_id == department.id
