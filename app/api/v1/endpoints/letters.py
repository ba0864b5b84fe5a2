"""HR letter endpoints (appointment letter and salary annexure)."""
from datetime import date
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, status

from app.api.deps import DB, Permissions, require_permissions, ensure_employee_access
from app.schemas.letter import LetterResponse
from app.services.letter_service import LetterService, LetterType, LetterError

router = APIRouter()


async def _generate(db, checker, employee_id: UUID, letter_type: LetterType, letter_date: Optional[date] = None):
    ensure_employee_access(checker, employee_id)
    try:
        return await LetterService(db).generate(employee_id, letter_type, letter_date)
    except LetterError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=e.message)


@router.get("/{employee_id}/appointment", response_model=LetterResponse, dependencies=[Depends(require_permissions("letters:view"))])
async def appointment_letter(
    employee_id: UUID,
    db: DB,
    checker: Permissions,
    letter_date: Optional[date] = None,
):
    """Appointment letter as HTML and base64."""
    return await _generate(db, checker, employee_id, LetterType.APPOINTMENT, letter_date)


@router.get("/{employee_id}/annexure", response_model=LetterResponse, dependencies=[Depends(require_permissions("letters:view"))])
async def salary_annexure(
    employee_id: UUID,
    db: DB,
    checker: Permissions,
):
    """Monthly and annual salary breakdown annexure."""
    return await _generate(db, checker, employee_id, LetterType.ANNEXURE)
