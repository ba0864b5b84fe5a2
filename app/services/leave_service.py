"""Leave requests and their two-stage approval workflow.

PENDING -> MANAGER_APPROVED -> ADMIN_APPROVED
PENDING | MANAGER_APPROVED -> REJECTED | CANCELLED
"""
from datetime import datetime, date, timezone
from typing import Dict, List, Optional
import uuid
import logging

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.hr import Employee
from app.models.leave import LeaveRequest, LeaveStatus, LeaveType
from app.services.audit_service import AuditService


logger = logging.getLogger(__name__)

# Requests in these states block overlapping applications
BLOCKING_STATUSES = (
    LeaveStatus.PENDING.value,
    LeaveStatus.MANAGER_APPROVED.value,
    LeaveStatus.ADMIN_APPROVED.value,
)

OPEN_STATUSES = (LeaveStatus.PENDING.value, LeaveStatus.MANAGER_APPROVED.value)


class LeaveError(Exception):
    """Custom exception for leave workflow errors."""
    def __init__(self, message: str, details: Dict = None, status_code: int = 400):
        self.message = message
        self.details = details or {}
        self.status_code = status_code
        super().__init__(self.message)


def count_leave_days(start_date: date, end_date: date) -> int:
    """Calendar days, both ends included."""
    return (end_date - start_date).days + 1


def _state(leave: LeaveRequest) -> Dict:
    return {"status": leave.status}


class LeaveService:
    """Service for applying for, approving and reporting on leave."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.audit = AuditService(db)

    async def get(self, leave_id: uuid.UUID) -> LeaveRequest:
        leave = await self.db.get(LeaveRequest, leave_id)
        if leave is None:
            raise LeaveError("Leave request not found", status_code=404)
        return leave

    async def create(
        self,
        employee_id: uuid.UUID,
        leave_type: LeaveType,
        start_date: date,
        end_date: date,
        reason: str,
        user_id: Optional[uuid.UUID] = None,
    ) -> LeaveRequest:
        if end_date < start_date:
            raise LeaveError("End date cannot be before start date")

        employee = await self.db.get(Employee, employee_id)
        if employee is None:
            raise LeaveError("Employee not found", status_code=404)

        overlapping = await self.db.execute(
            select(LeaveRequest.id).where(
                LeaveRequest.employee_id == employee_id,
                LeaveRequest.status.in_(BLOCKING_STATUSES),
                LeaveRequest.start_date <= end_date,
                LeaveRequest.end_date >= start_date,
            )
        )
        if overlapping.first() is not None:
            raise LeaveError(
                "You already have leave applied or approved for these dates",
                {"start_date": start_date.isoformat(), "end_date": end_date.isoformat()},
                status_code=409,
            )

        leave = LeaveRequest(
            id=uuid.uuid4(),
            employee_id=employee_id,
            leave_type=leave_type.value,
            start_date=start_date,
            end_date=end_date,
            number_of_days=count_leave_days(start_date, end_date),
            reason=reason,
            status=LeaveStatus.PENDING.value,
        )
        self.db.add(leave)
        await self.db.flush()

        await self.audit.log_created(
            "LEAVE_REQUEST",
            leave.id,
            {
                "employee_id": str(employee_id),
                "leave_type": leave.leave_type,
                "start_date": start_date,
                "end_date": end_date,
                "number_of_days": leave.number_of_days,
            },
            user_id=user_id,
        )
        return leave

    async def _transition(
        self,
        leave: LeaveRequest,
        action: str,
        old_state: Dict,
        user_id: Optional[uuid.UUID],
        comments: Optional[str] = None,
    ) -> LeaveRequest:
        await self.db.flush()
        await self.audit.log(
            action=action,
            entity_type="LEAVE_REQUEST",
            entity_id=leave.id,
            user_id=user_id,
            old_values=old_state,
            new_values=_state(leave),
            description=comments,
        )
        logger.info("Leave request %s: %s -> %s", leave.id, old_state["status"], leave.status)
        return leave

    async def manager_approve(
        self,
        leave_id: uuid.UUID,
        user_id: uuid.UUID,
        comments: Optional[str] = None,
    ) -> LeaveRequest:
        leave = await self.get(leave_id)
        if leave.status != LeaveStatus.PENDING.value:
            raise LeaveError(f"Leave request is {leave.status} and cannot be approved by manager")

        old = _state(leave)
        leave.status = LeaveStatus.MANAGER_APPROVED.value
        leave.manager_approved_by = user_id
        leave.manager_approved_at = datetime.now(timezone.utc)
        leave.manager_comments = comments
        return await self._transition(leave, "MANAGER_APPROVE", old, user_id, comments)

    async def admin_approve(
        self,
        leave_id: uuid.UUID,
        user_id: uuid.UUID,
        comments: Optional[str] = None,
    ) -> LeaveRequest:
        leave = await self.get(leave_id)
        if leave.status != LeaveStatus.MANAGER_APPROVED.value:
            raise LeaveError(f"Leave request is {leave.status}; manager approval is required first")

        old = _state(leave)
        leave.status = LeaveStatus.ADMIN_APPROVED.value
        leave.admin_approved_by = user_id
        leave.admin_approved_at = datetime.now(timezone.utc)
        leave.admin_comments = comments
        return await self._transition(leave, "ADMIN_APPROVE", old, user_id, comments)

    async def reject(
        self,
        leave_id: uuid.UUID,
        user_id: uuid.UUID,
        reason: Optional[str] = None,
    ) -> LeaveRequest:
        leave = await self.get(leave_id)
        if leave.status not in OPEN_STATUSES:
            raise LeaveError(f"Leave request is {leave.status} and cannot be rejected")

        old = _state(leave)
        leave.status = LeaveStatus.REJECTED.value
        leave.rejected_by = user_id
        leave.rejected_at = datetime.now(timezone.utc)
        leave.rejection_reason = reason
        return await self._transition(leave, "REJECT", old, user_id, reason)

    async def cancel(self, leave_id: uuid.UUID, user_id: Optional[uuid.UUID] = None) -> LeaveRequest:
        leave = await self.get(leave_id)
        if leave.status not in OPEN_STATUSES:
            raise LeaveError(f"Leave request is {leave.status} and cannot be cancelled")

        old = _state(leave)
        leave.status = LeaveStatus.CANCELLED.value
        return await self._transition(leave, "CANCEL", old, user_id)

    async def list_requests(
        self,
        employee_id: Optional[uuid.UUID] = None,
        status: Optional[str] = None,
        reporting_manager_id: Optional[uuid.UUID] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[List[LeaveRequest], int]:
        stmt = select(LeaveRequest)
        if employee_id:
            stmt = stmt.where(LeaveRequest.employee_id == employee_id)
        if status:
            stmt = stmt.where(LeaveRequest.status == status)
        if reporting_manager_id:
            stmt = stmt.join(Employee, LeaveRequest.employee_id == Employee.id).where(
                Employee.reporting_manager_id == reporting_manager_id
            )

        total = (await self.db.execute(select(func.count()).select_from(stmt.subquery()))).scalar()

        stmt = stmt.order_by(LeaveRequest.created_at.desc()).offset(skip).limit(limit)
        result = await self.db.execute(stmt)
        return list(result.scalars().all()), total

    async def statistics(self, employee_id: uuid.UUID, year: int) -> Dict:
        """Approved days per leave type in a calendar year and the pending count."""
        year_start, year_end = date(year, 1, 1), date(year, 12, 31)
        result = await self.db.execute(
            select(LeaveRequest.leave_type, func.sum(LeaveRequest.number_of_days))
            .where(
                LeaveRequest.employee_id == employee_id,
                LeaveRequest.status == LeaveStatus.ADMIN_APPROVED.value,
                LeaveRequest.start_date >= year_start,
                LeaveRequest.start_date <= year_end,
            )
            .group_by(LeaveRequest.leave_type)
        )
        by_type = {leave_type: int(days or 0) for leave_type, days in result.all()}

        pending = (await self.db.execute(
            select(func.count(LeaveRequest.id)).where(
                LeaveRequest.employee_id == employee_id,
                LeaveRequest.status == LeaveStatus.PENDING.value,
            )
        )).scalar() or 0

        return {
            "employee_id": employee_id,
            "year": year,
            "approved_days": sum(by_type.values()),
            "approved_days_by_type": by_type,
            "pending_requests": pending,
        }
