from datetime import date

import pytest

from app.models.leave import LeaveStatus, LeaveType
from app.services.leave_service import LeaveError, LeaveService, count_leave_days


def test_leave_days_include_both_ends():
    assert count_leave_days(date(2026, 1, 5), date(2026, 1, 5)) == 1
    assert count_leave_days(date(2026, 1, 30), date(2026, 2, 2)) == 4


async def apply(db, employee, start=date(2026, 1, 5), end=date(2026, 1, 7), leave_type=LeaveType.CASUAL):
    leave = await LeaveService(db).create(employee.id, leave_type, start, end, "Family function")
    await db.commit()
    return leave


async def test_two_stage_approval(db, make_employee, hr_user):
    employee = await make_employee()
    service = LeaveService(db)
    leave = await apply(db, employee)
    assert leave.status == LeaveStatus.PENDING.value
    assert leave.number_of_days == 3

    leave = await service.manager_approve(leave.id, hr_user.id, "ok")
    assert leave.status == LeaveStatus.MANAGER_APPROVED.value
    assert leave.manager_comments == "ok"

    leave = await service.admin_approve(leave.id, hr_user.id)
    assert leave.status == LeaveStatus.ADMIN_APPROVED.value
    assert leave.admin_approved_at is not None


async def test_admin_approval_requires_manager_first(db, make_employee, hr_user):
    employee = await make_employee()
    leave = await apply(db, employee)

    with pytest.raises(LeaveError) as exc:
        await LeaveService(db).admin_approve(leave.id, hr_user.id)
    assert exc.value.status_code == 400


async def test_closed_requests_cannot_change(db, make_employee, hr_user):
    employee = await make_employee()
    service = LeaveService(db)
    leave = await apply(db, employee)
    await service.reject(leave.id, hr_user.id, "Quarter close")

    with pytest.raises(LeaveError):
        await service.manager_approve(leave.id, hr_user.id)
    with pytest.raises(LeaveError):
        await service.cancel(leave.id)


async def test_overlapping_request_conflicts(db, make_employee):
    employee = await make_employee()
    await apply(db, employee)

    with pytest.raises(LeaveError) as exc:
        await apply(db, employee, start=date(2026, 1, 7), end=date(2026, 1, 9))
    assert exc.value.status_code == 409


async def test_cancelled_request_frees_the_dates(db, make_employee):
    employee = await make_employee()
    leave = await apply(db, employee)
    await LeaveService(db).cancel(leave.id)
    await db.commit()

    again = await apply(db, employee)
    assert again.status == LeaveStatus.PENDING.value


async def test_end_before_start_is_rejected(db, make_employee):
    employee = await make_employee()
    with pytest.raises(LeaveError):
        await apply(db, employee, start=date(2026, 1, 9), end=date(2026, 1, 7))


async def test_statistics_count_only_approved_days(db, make_employee, hr_user):
    employee = await make_employee()
    service = LeaveService(db)

    approved = await apply(db, employee)
    await service.manager_approve(approved.id, hr_user.id)
    await service.admin_approve(approved.id, hr_user.id)
    sick = await apply(db, employee, start=date(2026, 2, 2), end=date(2026, 2, 3), leave_type=LeaveType.SICK)
    await service.manager_approve(sick.id, hr_user.id)
    await service.admin_approve(sick.id, hr_user.id)
    await apply(db, employee, start=date(2026, 3, 2), end=date(2026, 3, 2))
    await apply(db, employee, start=date(2025, 12, 1), end=date(2025, 12, 1))
    await db.commit()

    stats = await service.statistics(employee.id, 2026)

    assert stats["approved_days"] == 5
    assert stats["approved_days_by_type"] == {"CASUAL": 3, "SICK": 2}
    assert stats["pending_requests"] == 2
