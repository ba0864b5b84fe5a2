from decimal import Decimal
import uuid

from app.models.hr import Month
from app.services.audit_service import AuditService, changed_values
from app.services.payrun_service import PayRunService


def test_changed_values_ignores_equal_decimals():
    before, after = changed_values(
        {"basic_salary": Decimal("25000"), "hra": Decimal("2500.00"), "status": "ACTIVE"},
        {"basic_salary": Decimal("25000.00"), "hra": Decimal("3000.00"), "status": "ACTIVE"},
    )
    assert before == {"hra": Decimal("2500.00")}
    assert after == {"hra": Decimal("3000.00")}


async def test_no_op_update_writes_nothing(db):
    service = AuditService(db)
    entity_id = uuid.uuid4()

    assert await service.log_updated("employee", entity_id, {"a": 1}, {"a": 1}) is None
    entry = await service.log_updated("employee", entity_id, {"a": 1}, {"a": 2})

    assert entry.entity_type == "EMPLOYEE"
    assert entry.old_values == {"a": 1}
    logs, total = await service.get_audit_logs(entity_type="employee")
    assert total == 1


async def test_pay_run_history_is_ordered(db, make_employee):
    await make_employee()
    payruns = PayRunService(db)
    run = await payruns.generate(Month.JANUARY, "2026")
    await payruns.generate(Month.JANUARY, "2026", regenerate=True)
    await payruns.finalize(run.id)

    history = await AuditService(db).entity_history("PAY_RUN", run.id)

    assert [h.action for h in history] == ["GENERATE", "REGENERATE", "FINALIZE"]
    assert history[1].old_values["version"] == 1
    assert history[1].new_values["version"] == 2
    assert history[2].new_values["advances_settled"] == 0
