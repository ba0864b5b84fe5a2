"""
Audit trail for HR and payroll changes.

Entries are added to the caller's session and flushed; they commit or roll
back together with the change they describe.
"""
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, Dict, Any, List
import uuid
import logging

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.audit_log import AuditLog


logger = logging.getLogger(__name__)


def _normalize(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, dict):
        return {k: _normalize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_normalize(v) for v in value]
    return value


def changed_values(old: Dict[str, Any], new: Dict[str, Any]) -> tuple[Dict[str, Any], Dict[str, Any]]:
    """
    Keep only the keys whose value differs between `old` and `new`.

    Decimal("100") and Decimal("100.00") compare equal, so a re-save of the
    same salary figure is not reported as a change.
    """
    before, after = {}, {}
    for key in new.keys() | old.keys():
        if old.get(key) != new.get(key):
            before[key] = old.get(key)
            after[key] = new.get(key)
    return before, after


class AuditService:
    """Writes and queries the audit_logs table."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def log(
        self,
        action: str,
        entity_type: str,
        entity_id: Optional[uuid.UUID] = None,
        user_id: Optional[uuid.UUID] = None,
        old_values: Optional[Dict[str, Any]] = None,
        new_values: Optional[Dict[str, Any]] = None,
        description: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> AuditLog:
        """
        Record one action on an entity.

        Action and entity type are stored upper-case (GENERATE, PAY_RUN, ...).
        Money is stored as its decimal string so "1800.00" is kept exactly.
        """
        entry = AuditLog(
            action=action.upper(),
            entity_type=entity_type.upper(),
            entity_id=entity_id,
            user_id=user_id,
            old_values=_normalize(old_values) if old_values is not None else None,
            new_values=_normalize(new_values) if new_values is not None else None,
            description=description,
            ip_address=ip_address,
            user_agent=user_agent[:500] if user_agent else None,
        )
        self.db.add(entry)
        await self.db.flush()
        logger.debug("Audit %s %s %s", entry.action, entry.entity_type, entity_id)
        return entry

    async def log_created(
        self,
        entity_type: str,
        entity_id: uuid.UUID,
        data: Dict[str, Any],
        user_id: Optional[uuid.UUID] = None,
        description: Optional[str] = None,
    ) -> AuditLog:
        return await self.log("CREATE", entity_type, entity_id, user_id, new_values=data, description=description)

    async def log_updated(
        self,
        entity_type: str,
        entity_id: uuid.UUID,
        old_data: Dict[str, Any],
        new_data: Dict[str, Any],
        user_id: Optional[uuid.UUID] = None,
        description: Optional[str] = None,
    ) -> Optional[AuditLog]:
        """Record only the fields that changed. Nothing is written for a no-op update."""
        before, after = changed_values(old_data, new_data)
        if not after:
            return None
        return await self.log(
            "UPDATE", entity_type, entity_id, user_id,
            old_values=before, new_values=after, description=description,
        )

    async def log_deleted(
        self,
        entity_type: str,
        entity_id: uuid.UUID,
        data: Dict[str, Any],
        user_id: Optional[uuid.UUID] = None,
        description: Optional[str] = None,
    ) -> AuditLog:
        return await self.log("DELETE", entity_type, entity_id, user_id, old_values=data, description=description)

    async def get_audit_logs(
        self,
        entity_type: Optional[str] = None,
        entity_id: Optional[uuid.UUID] = None,
        user_id: Optional[uuid.UUID] = None,
        action: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        skip: int = 0,
        limit: int = 50,
    ) -> tuple[List[AuditLog], int]:
        """Filtered entries, newest first, with the unpaginated total."""
        filters = []
        if entity_type:
            filters.append(AuditLog.entity_type == entity_type.upper())
        if entity_id:
            filters.append(AuditLog.entity_id == entity_id)
        if user_id:
            filters.append(AuditLog.user_id == user_id)
        if action:
            filters.append(AuditLog.action == action.upper())
        if start_date:
            filters.append(AuditLog.created_at >= start_date)
        if end_date:
            filters.append(AuditLog.created_at <= end_date)

        total = (await self.db.execute(select(func.count(AuditLog.id)).where(*filters))).scalar() or 0

        result = await self.db.execute(
            select(AuditLog)
            .where(*filters)
            .order_by(AuditLog.created_at.desc(), AuditLog.id)
            .offset(skip)
            .limit(limit)
        )
        return list(result.scalars().all()), total

    async def entity_history(self, entity_type: str, entity_id: uuid.UUID) -> List[AuditLog]:
        """Every entry for one entity, oldest first (e.g. a pay run's generate/regenerate/finalize trail)."""
        result = await self.db.execute(
            select(AuditLog)
            .where(AuditLog.entity_type == entity_type.upper(), AuditLog.entity_id == entity_id)
            .order_by(AuditLog.created_at, AuditLog.id)
        )
        return list(result.scalars().all())
