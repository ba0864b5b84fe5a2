"""HTTP surface: auth, permissions and the payroll flow end to end."""
from decimal import Decimal

from tests.conftest import TEST_PASSWORD, auth_headers


EMPLOYEE_PAYLOAD = {
    "first_name": "Ravi",
    "last_name": "Kumar",
    "date_of_joining": "2025-06-01",
    "ctc": "600000",
    "auto_compute_salary": True,
}


async def create_employee(client, headers, **overrides):
    resp = await client.post("/api/v1/employees", json={**EMPLOYEE_PAYLOAD, **overrides}, headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


async def test_health(client):
    resp = await client.get("/")
    assert resp.status_code == 200
    assert "version" in resp.json()


async def test_login_and_me(client, admin_user):
    resp = await client.post("/api/v1/auth/login", json={"email": admin_user.email, "password": TEST_PASSWORD})
    assert resp.status_code == 200
    tokens = resp.json()
    assert tokens["token_type"] == "bearer"

    me = await client.get("/api/v1/auth/me", headers={"Authorization": f"Bearer {tokens['access_token']}"})
    assert me.status_code == 200
    assert me.json()["role"] == "ADMIN"
    assert "payroll:finalize" in me.json()["permissions"]


async def test_login_wrong_password(client, admin_user):
    resp = await client.post("/api/v1/auth/login", json={"email": admin_user.email, "password": "wrong-pass"})
    assert resp.status_code == 401


async def test_refresh_issues_new_access_token(client, admin_user):
    login = await client.post("/api/v1/auth/login", json={"email": admin_user.email, "password": TEST_PASSWORD})
    resp = await client.post("/api/v1/auth/refresh", json={"refresh_token": login.json()["refresh_token"]})
    assert resp.status_code == 200
    assert resp.json()["access_token"]


async def test_requests_without_token_are_rejected(client):
    resp = await client.get("/api/v1/employees")
    assert resp.status_code in (401, 403)


async def test_employee_role_cannot_list_employees(client, employee_account):
    user, _ = employee_account
    resp = await client.get("/api/v1/employees", headers=auth_headers(user))
    assert resp.status_code == 403


async def test_create_employee_generates_code_and_salary(client, hr_headers):
    body = await create_employee(client, hr_headers)

    assert body["employee_code"] == "EMP-0001"
    assert body["full_name"] == "Ravi Kumar"
    assert Decimal(body["basic_salary"]) == Decimal("25000.00")
    assert Decimal(body["special_allowance"]) == Decimal("20700.00")
    assert Decimal(body["professional_tax"]) == Decimal("200.00")

    second = await create_employee(client, hr_headers, first_name="Meera")
    assert second["employee_code"] == "EMP-0002"


async def test_duplicate_employee_code_conflicts(client, hr_headers):
    await create_employee(client, hr_headers, employee_code="EMP-0100")
    resp = await client.post(
        "/api/v1/employees",
        json={**EMPLOYEE_PAYLOAD, "employee_code": "EMP-0100"},
        headers=hr_headers,
    )
    assert resp.status_code == 409


async def test_salary_breakdown_preview(client, hr_headers):
    resp = await client.post("/api/v1/employees/salary-breakdown", json={"ctc": "600000"}, headers=hr_headers)
    assert resp.status_code == 200
    body = resp.json()
    assert Decimal(body["monthly"]["gross"]) == Decimal("48200.00")
    assert Decimal(body["net_monthly"]) == Decimal("46200.00")
    assert Decimal(body["annual"]["basic"]) == Decimal("300000.00")


async def test_attendance_rejects_impossible_day_counts(client, hr_headers):
    employee = await create_employee(client, hr_headers)
    resp = await client.post(
        "/api/v1/attendance",
        json={
            "employee_id": employee["id"],
            "month": "January",
            "year": "2026",
            "total_working_days": 26,
            "present_days": 25,
            "absent_days": 3,
        },
        headers=hr_headers,
    )
    assert resp.status_code == 422


async def test_payroll_flow(client, admin_headers, hr_headers):
    employee = await create_employee(client, hr_headers)

    attendance = await client.post(
        "/api/v1/attendance",
        json={
            "employee_id": employee["id"],
            "month": "January",
            "year": "2026",
            "total_working_days": 26,
            "present_days": 24,
            "unpaid_leave": 2,
        },
        headers=hr_headers,
    )
    assert attendance.status_code == 201
    assert attendance.json()["loss_of_pay_days"] == 2

    empty = await client.get("/api/v1/payruns/period/January/2026", headers=hr_headers)
    assert empty.status_code == 200
    assert empty.json() is None

    generated = await client.post(
        "/api/v1/payruns/generate",
        json={"month": "January", "year": "2026"},
        headers=hr_headers,
    )
    assert generated.status_code == 201, generated.text
    run = generated.json()
    assert run["status"] == "DRAFT"
    assert run["processed_count"] == 1
    assert run["failures"] == []
    record = run["records"][0]
    assert record["attendance_source"] == "RECORDED"
    assert Decimal(record["net_pay"]) == Decimal(record["gross_salary"]) - Decimal(record["total_deductions"])

    again = await client.post(
        "/api/v1/payruns/generate",
        json={"month": "January", "year": "2026"},
        headers=hr_headers,
    )
    assert again.status_code == 409

    # HR generates; only admins finalize
    forbidden = await client.post(f"/api/v1/payruns/{run['id']}/finalize", headers=hr_headers)
    assert forbidden.status_code == 403

    finalized = await client.post(f"/api/v1/payruns/{run['id']}/finalize", headers=admin_headers)
    assert finalized.status_code == 200
    assert finalized.json()["status"] == "FINALIZED"

    twice = await client.post(f"/api/v1/payruns/{run['id']}/finalize", headers=admin_headers)
    assert twice.status_code == 409

    locked = await client.put(
        f"/api/v1/attendance/{attendance.json()['id']}",
        json={"present_days": 26, "unpaid_leave": 0},
        headers=hr_headers,
    )
    assert locked.status_code == 409

    listing = await client.get("/api/v1/payruns", headers=hr_headers)
    assert listing.json()["total"] == 1

    blocked = await client.delete(f"/api/v1/employees/{employee['id']}?hard=true", headers=hr_headers)
    assert blocked.status_code == 409


async def test_soft_and_hard_delete_employee(client, hr_headers):
    employee = await create_employee(client, hr_headers)

    soft = await client.delete(f"/api/v1/employees/{employee['id']}", headers=hr_headers)
    assert soft.status_code == 200
    fetched = await client.get(f"/api/v1/employees/{employee['id']}", headers=hr_headers)
    assert fetched.json()["status"] == "INACTIVE"

    hard = await client.delete(f"/api/v1/employees/{employee['id']}?hard=true", headers=hr_headers)
    assert hard.status_code == 200
    gone = await client.get(f"/api/v1/employees/{employee['id']}", headers=hr_headers)
    assert gone.status_code == 404


async def test_employee_applies_for_own_leave(client, employee_account, hr_headers):
    user, employee = employee_account
    headers = auth_headers(user)

    resp = await client.post(
        "/api/v1/leaves",
        json={"leave_type": "CASUAL", "start_date": "2026-01-05", "end_date": "2026-01-06", "reason": "Travel"},
        headers=headers,
    )
    assert resp.status_code == 201
    leave = resp.json()
    assert leave["employee_id"] == str(employee.id)

    own = await client.get("/api/v1/leaves", headers=headers)
    assert own.json()["total"] == 1

    approve = await client.post(f"/api/v1/leaves/{leave['id']}/manager-approve", json={}, headers=headers)
    assert approve.status_code == 403

    approve = await client.post(f"/api/v1/leaves/{leave['id']}/manager-approve", json={}, headers=hr_headers)
    assert approve.json()["status"] == "MANAGER_APPROVED"


async def test_letters_are_self_service(client, employee_account, make_employee):
    user, employee = employee_account
    headers = auth_headers(user)

    own = await client.get(f"/api/v1/letters/{employee.id}/annexure", headers=headers)
    assert own.status_code == 200

    other = await make_employee()
    resp = await client.get(f"/api/v1/letters/{other.id}/appointment", headers=headers)
    assert resp.status_code == 403


async def test_audit_log_records_employee_creation(client, admin_headers, hr_headers):
    await create_employee(client, hr_headers)
    resp = await client.get("/api/v1/audit-logs?entity_type=employee", headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["total"] >= 1


async def test_finalize_after_attendance_edit_needs_regeneration(client, admin_headers, hr_headers):
    employee = await create_employee(client, hr_headers)
    attendance = await client.post(
        "/api/v1/attendance",
        json={
            "employee_id": employee["id"],
            "month": "March",
            "year": "2026",
            "total_working_days": 26,
            "present_days": 26,
        },
        headers=hr_headers,
    )
    assert attendance.status_code == 201

    run = (await client.post(
        "/api/v1/payruns/generate",
        json={"month": "March", "year": "2026"},
        headers=hr_headers,
    )).json()

    edited = await client.put(
        f"/api/v1/attendance/{attendance.json()['id']}",
        json={"present_days": 23, "unpaid_leave": 3},
        headers=hr_headers,
    )
    assert edited.status_code == 200, edited.text

    stale = await client.post(f"/api/v1/payruns/{run['id']}/finalize", headers=admin_headers)
    assert stale.status_code == 409
    assert "regenerate" in stale.json()["detail"]

    rerun = await client.post(
        "/api/v1/payruns/generate",
        json={"month": "March", "year": "2026", "regenerate": True},
        headers=hr_headers,
    )
    assert rerun.json()["records"][0]["loss_of_pay_days"] == 3

    finalized = await client.post(f"/api/v1/payruns/{run['id']}/finalize", headers=admin_headers)
    assert finalized.status_code == 200
