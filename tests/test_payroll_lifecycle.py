import pytest
from datetime import date, datetime, timezone
from decimal import Decimal

from sqlalchemy import text

from brgy_payroll.core.exceptions import BulkOperationError, ConfigurationError, NotFoundError, StateError
from brgy_payroll.models.attendance_deduction import AttendanceDeduction
from brgy_payroll.models.deduction import CalculationType, DeductionInstance, DeductionType
from brgy_payroll.models.loan import Loan, LoanStatus
from brgy_payroll.models.overload_pay import OverloadPay
from brgy_payroll.models.payroll import PayrollEntry, PayrollStatus
from brgy_payroll.schemas.deduction import DeductionTypeUpdate
from brgy_payroll.schemas.payroll import PayPeriod
from brgy_payroll.services import deduction_service, payroll_service

FIRST_HALF = PayPeriod(start=date(2025, 6, 1), end=date(2025, 6, 15))
SECOND_HALF = PayPeriod(start=date(2025, 6, 16), end=date(2025, 6, 30))


def _utc(*args):
    return datetime(*args, tzinfo=timezone.utc)


def seed_ledger(db, person):
    """
    20,000 salary, 500 overtime, PhilHealth 4.5%, a 150 canteen charge,
    a 24,000 loan at 10% and one 555.00 attendance deduction.
    Net for June 1-15: 20,500 - (555 + 900 + 150 + 1,200) = 17,695.00
    """
    philhealth = DeductionType(
        name="PhilHealth", is_mandatory=True,
        calculation_type=CalculationType.PERCENTAGE, percentage_value=Decimal("4.5"),
    )
    canteen = DeductionType(name="Canteen", calculation_type=CalculationType.FIXED, amount=Decimal("150"))
    db.add_all([philhealth, canteen])
    db.flush()
    db.add_all([
        DeductionInstance(users_id=person.id, deduction_types_id=philhealth.id,
                          amount=Decimal("900"), applied_at=_utc(2025, 1, 10)),
        DeductionInstance(users_id=person.id, deduction_types_id=canteen.id,
                          amount=Decimal("150"), applied_at=_utc(2025, 6, 5)),
        Loan(users_id=person.id, amount=Decimal("24000"), balance=Decimal("24000"),
             monthly_payment_percent=Decimal("10"), term_months=10, status=LoanStatus.ACTIVE),
        AttendanceDeduction(users_id=person.id, late_minutes=75, absent_days=Decimal("1"),
                            amount=Decimal("555"), applied_at=_utc(2025, 6, 3)),
        OverloadPay(users_id=person.id, amount=Decimal("500"), applied_at=_utc(2025, 6, 2)),
    ])
    db.commit()
    return philhealth.id


@pytest.fixture
def staff(db_session, make_person):
    person = make_person(salary="20000.00", name="Maria Santos")
    seed_ledger(db_session, person)
    return person


def _only_entry(db):
    return db.query(PayrollEntry).one()


def test_generate_creates_pending_entry(db_session, staff):
    result = payroll_service.generate_payroll(db_session, FIRST_HALF)

    assert result["created"] == 1
    assert result["errors"] == []
    entry = _only_entry(db_session)
    assert entry.status == PayrollStatus.PENDING
    assert entry.basic_salary == Decimal("20500.00")
    assert entry.overtime == Decimal("500.00")
    assert entry.deductions == Decimal("2805.00")
    assert entry.net_pay == Decimal("17695.00")
    assert entry.breakdown_snapshot["net_pay"] == "17695.00"


def test_generate_overwrites_pending_entry(db_session, staff):
    payroll_service.generate_payroll(db_session, FIRST_HALF)
    db_session.add(OverloadPay(users_id=staff.id, amount=Decimal("100"), applied_at=_utc(2025, 6, 9)))
    db_session.commit()

    result = payroll_service.generate_payroll(db_session, FIRST_HALF)

    assert result["created"] == 0
    assert result["overwritten"] == 1
    assert _only_entry(db_session).net_pay == Decimal("17795.00")


def test_generate_reports_incomplete_salary_setup(db_session, staff, make_person):
    unassigned = make_person(with_position=False)

    result = payroll_service.generate_payroll(db_session, FIRST_HALF)

    assert result["created"] == 1
    assert [e["users_id"] for e in result["errors"]] == [unassigned.id]
    assert result["errors"][0]["code"] == "CONFIGURATION_ERROR"


def test_generate_with_repeated_person_creates_one_entry(db_session, staff):
    result = payroll_service.generate_payroll(db_session, FIRST_HALF, users_ids=[staff.id, staff.id])

    assert result["created"] == 1
    assert result["overwritten"] == 0
    assert len(result["entry_ids"]) == 1
    assert _only_entry(db_session).net_pay == Decimal("17695.00")


def test_charge_after_local_midnight_belongs_to_next_period(db_session, staff):
    canteen = db_session.query(DeductionType).filter(DeductionType.name == "Canteen").one()
    # 06:00 on June 16 in Manila
    late_charge = DeductionInstance(users_id=staff.id, deduction_types_id=canteen.id,
                                    amount=Decimal("75"), applied_at=_utc(2025, 6, 15, 22, 0))
    db_session.add(late_charge)
    db_session.commit()

    first = payroll_service.compute_breakdown(db_session, staff, FIRST_HALF)
    second = payroll_service.compute_breakdown(db_session, staff, SECOND_HALF)

    assert late_charge.id not in [line.id for line in first.other_items]
    assert [line.id for line in second.other_items] == [late_charge.id]
    assert second.other_total == Decimal("75.00")


def test_release_freezes_snapshot_and_settles_items(db_session, staff):
    payroll_service.generate_payroll(db_session, FIRST_HALF)

    report = payroll_service.release_payroll(db_session, FIRST_HALF)

    assert report["released"] == 1
    assert report["archived_deductions"] == 1
    assert report["archived_attendance_deductions"] == 1
    assert report["loans_posted"] == 1

    entry = _only_entry(db_session)
    assert entry.status == PayrollStatus.RELEASED
    assert entry.released_at is not None
    assert entry.breakdown_snapshot["net_pay"] == "17695.00"
    assert entry.breakdown_snapshot["loan_total"] == "1200.00"

    mandatory, canteen = db_session.query(DeductionInstance).order_by(DeductionInstance.id).all()
    assert mandatory.archived_at is None
    assert canteen.archived_at is not None
    assert db_session.query(AttendanceDeduction).one().archived_at is not None
    assert db_session.query(Loan).one().balance == Decimal("22800")


def test_generate_skips_released_entries(db_session, staff):
    payroll_service.generate_payroll(db_session, FIRST_HALF)
    payroll_service.release_payroll(db_session, FIRST_HALF)

    result = payroll_service.generate_payroll(db_session, FIRST_HALF)

    assert result["created"] == 0
    assert result["overwritten"] == 0
    assert result["skipped"][0]["status"] == "RELEASED"
    assert _only_entry(db_session).net_pay == Decimal("17695.00")


def test_released_snapshot_survives_deduction_type_change(db_session, make_person):
    person = make_person(salary="20000.00")
    philhealth_id = seed_ledger(db_session, person)
    payroll_service.generate_payroll(db_session, FIRST_HALF)
    payroll_service.release_payroll(db_session, FIRST_HALF)
    entry_id = _only_entry(db_session).id

    updated = deduction_service.update_deduction_type(
        db_session, philhealth_id, DeductionTypeUpdate(percentage_value=Decimal("5"))
    )
    assert updated["recalculated_instances"] == 1

    view = payroll_service.get_entry_breakdown(db_session, entry_id)
    assert view["source"] == "snapshot"
    assert view["breakdown"]["mandatory_total"] == "900.00"
    assert view["breakdown"]["net_pay"] == "17695.00"
    assert payroll_service.get_entry(db_session, entry_id).net_pay == Decimal("17695.00")

    # the next period picks up the new rate
    payroll_service.generate_payroll(db_session, SECOND_HALF)
    next_entry = db_session.query(PayrollEntry).filter(PayrollEntry.period_start == SECOND_HALF.start).one()
    assert next_entry.breakdown_snapshot["mandatory_total"] == "1000.00"


def test_released_entry_rejects_direct_modification(db_session, staff):
    payroll_service.generate_payroll(db_session, FIRST_HALF)
    payroll_service.release_payroll(db_session, FIRST_HALF)

    entry = _only_entry(db_session)
    entry.net_pay = Decimal("1.00")
    with pytest.raises(StateError):
        db_session.commit()
    db_session.rollback()

    assert _only_entry(db_session).net_pay == Decimal("17695.00")


def test_released_entry_cannot_return_to_pending(db_session, staff):
    payroll_service.generate_payroll(db_session, FIRST_HALF)
    payroll_service.release_payroll(db_session, FIRST_HALF)

    entry = _only_entry(db_session)
    entry.status = PayrollStatus.PENDING
    with pytest.raises(StateError):
        db_session.commit()
    db_session.rollback()

    assert _only_entry(db_session).status == PayrollStatus.RELEASED


def test_archive_transitions(db_session, staff):
    payroll_service.generate_payroll(db_session, FIRST_HALF)
    entry_id = _only_entry(db_session).id

    with pytest.raises(StateError):
        payroll_service.archive_entry(db_session, entry_id)

    payroll_service.release_payroll(db_session, FIRST_HALF)
    archived = payroll_service.archive_entry(db_session, entry_id)
    assert archived["status"] == "ARCHIVED"
    assert archived["archived_at"] is not None

    with pytest.raises(StateError):
        payroll_service.archive_entry(db_session, entry_id)


def test_archive_period_needs_released_entries(db_session, staff):
    payroll_service.generate_payroll(db_session, FIRST_HALF)
    with pytest.raises(StateError):
        payroll_service.archive_period(db_session, FIRST_HALF)

    payroll_service.release_payroll(db_session, FIRST_HALF)
    result = payroll_service.archive_period(db_session, FIRST_HALF)
    assert result["archived"] == 1
    assert _only_entry(db_session).status == PayrollStatus.ARCHIVED


def test_release_archives_previous_periods(db_session, staff):
    payroll_service.generate_payroll(db_session, FIRST_HALF)
    payroll_service.release_payroll(db_session, FIRST_HALF)
    payroll_service.generate_payroll(db_session, SECOND_HALF)

    report = payroll_service.release_payroll(db_session, SECOND_HALF)

    assert report["archived_previous"] == 1
    first = db_session.query(PayrollEntry).filter(PayrollEntry.period_start == FIRST_HALF.start).one()
    second = db_session.query(PayrollEntry).filter(PayrollEntry.period_start == SECOND_HALF.start).one()
    assert first.status == PayrollStatus.ARCHIVED
    assert second.status == PayrollStatus.RELEASED
    assert db_session.query(Loan).one().balance == Decimal("21600")


def test_loan_completes_when_balance_is_paid(db_session, make_person):
    person = make_person(salary="20000.00")
    db_session.add(Loan(users_id=person.id, amount=Decimal("24000"), balance=Decimal("1000"),
                        monthly_payment_percent=Decimal("10"), term_months=10, status=LoanStatus.ACTIVE))
    db_session.commit()
    payroll_service.generate_payroll(db_session, FIRST_HALF)

    report = payroll_service.release_payroll(db_session, FIRST_HALF)

    assert report["loans_completed"] == 1
    loan = db_session.query(Loan).one()
    assert loan.balance == Decimal("0")
    assert loan.status == LoanStatus.COMPLETED
    assert loan.archived_at is not None
    assert _only_entry(db_session).net_pay == Decimal("18800.00")


def test_release_requires_pending_entries(db_session, staff):
    with pytest.raises(StateError):
        payroll_service.release_payroll(db_session, FIRST_HALF)


def test_release_rejects_entry_from_other_period(db_session, staff):
    payroll_service.generate_payroll(db_session, FIRST_HALF)
    entry_id = _only_entry(db_session).id

    with pytest.raises(StateError):
        payroll_service.release_payroll(db_session, SECOND_HALF, entry_ids=[entry_id])
    with pytest.raises(NotFoundError):
        payroll_service.release_payroll(db_session, FIRST_HALF, entry_ids=[entry_id, 987654])
    assert _only_entry(db_session).status == PayrollStatus.PENDING


def test_release_failure_rolls_back_every_entry(db_session, staff, make_person):
    other = make_person(salary="15000.00")
    payroll_service.generate_payroll(db_session, FIRST_HALF)
    entries = db_session.query(PayrollEntry).order_by(PayrollEntry.users_id).all()
    snapshots = {e.id: e.breakdown_snapshot for e in entries}
    # staff is released first, then the second person fails
    other.position = None
    db_session.commit()

    with pytest.raises(ConfigurationError):
        payroll_service.release_payroll(db_session, FIRST_HALF)

    db_session.expire_all()
    entries = db_session.query(PayrollEntry).order_by(PayrollEntry.users_id).all()
    assert [e.status for e in entries] == [PayrollStatus.PENDING, PayrollStatus.PENDING]
    assert all(e.released_at is None for e in entries)
    assert {e.id: e.breakdown_snapshot for e in entries} == snapshots
    assert db_session.query(Loan).one().balance == Decimal("24000")
    assert db_session.query(DeductionInstance).filter(DeductionInstance.archived_at.isnot(None)).count() == 0
    assert db_session.query(AttendanceDeduction).one().archived_at is None


def test_bulk_delete_is_all_or_nothing(db_session, staff, make_person):
    make_person(salary="15000.00")
    payroll_service.generate_payroll(db_session, FIRST_HALF)
    ids = [e.id for e in db_session.query(PayrollEntry).order_by(PayrollEntry.id).all()]

    with pytest.raises(BulkOperationError) as exc:
        payroll_service.delete_entries(db_session, [ids[0], 987654, ids[1]])

    assert exc.value.index == 1
    assert exc.value.succeeded == 1
    assert exc.value.details["committed"] == 0
    assert db_session.query(PayrollEntry).count() == 2

    result = payroll_service.delete_entries(db_session, ids)
    assert result["deleted"] == 2
    assert db_session.query(PayrollEntry).count() == 0


def test_bulk_delete_collapses_repeated_ids(db_session, staff):
    payroll_service.generate_payroll(db_session, FIRST_HALF)
    entry_id = _only_entry(db_session).id

    result = payroll_service.delete_entries(db_session, [entry_id, entry_id])

    assert result["deleted"] == 1
    assert result["entry_ids"] == [entry_id]
    assert db_session.query(PayrollEntry).count() == 0


def test_clear_pending_keeps_released(db_session, staff, make_person):
    payroll_service.generate_payroll(db_session, FIRST_HALF)
    payroll_service.release_payroll(db_session, FIRST_HALF)
    make_person(salary="15000.00")
    payroll_service.generate_payroll(db_session, FIRST_HALF)

    result = payroll_service.clear_pending(db_session, FIRST_HALF)

    assert result["deleted"] == 1
    assert _only_entry(db_session).status == PayrollStatus.RELEASED


def test_summary_payslip_and_history(db_session, staff):
    payroll_service.generate_payroll(db_session, FIRST_HALF)
    with pytest.raises(NotFoundError):
        payroll_service.get_latest_payslip(db_session, staff.id)

    payroll_service.release_payroll(db_session, FIRST_HALF)

    summary = payroll_service.get_period_summary(db_session, FIRST_HALF)
    assert summary["total_employees"] == 1
    assert summary["total_gross_salary"] == "20500.00"
    assert summary["total_net_salary"] == "17695.00"
    assert summary["has_released"] is True
    assert summary["status_counts"]["RELEASED"] == 1

    payslip = payroll_service.get_latest_payslip(db_session, staff.id)
    assert payslip["breakdown"]["net_pay"] == "17695.00"
    assert payslip["breakdown"]["attendance_items"][0]["amount"] == "555.00"
    assert len(payroll_service.get_payroll_history(db_session, staff.id)) == 1


def test_load_snapshot_never_recomputes():
    entry = PayrollEntry(id=42, status=PayrollStatus.RELEASED, breakdown_snapshot=None)
    with pytest.raises(StateError) as exc:
        payroll_service.load_snapshot(entry)
    assert "backfill" in exc.value.message


def test_corrupt_snapshot_is_reported(db_session, staff):
    payroll_service.generate_payroll(db_session, FIRST_HALF)
    payroll_service.release_payroll(db_session, FIRST_HALF)
    snapshot = dict(_only_entry(db_session).breakdown_snapshot)
    snapshot["net_pay"] = "99999.00"

    detached = PayrollEntry(id=7, status=PayrollStatus.RELEASED, breakdown_snapshot=snapshot)
    with pytest.raises(StateError) as exc:
        payroll_service.load_snapshot(detached)
    assert "inconsistent" in exc.value.message


def test_backfill_legacy_entry_without_snapshot(db_session, staff):
    payroll_service.generate_payroll(db_session, FIRST_HALF)
    payroll_service.release_payroll(db_session, FIRST_HALF)
    entry_id = _only_entry(db_session).id

    # rows written before snapshots existed
    db_session.execute(text("PRAGMA ignore_check_constraints = ON"))
    try:
        db_session.execute(
            text("UPDATE payroll_entries SET breakdown_snapshot = NULL WHERE id = :id"), {"id": entry_id}
        )
        db_session.commit()
    finally:
        db_session.execute(text("PRAGMA ignore_check_constraints = OFF"))
    db_session.expire_all()

    with pytest.raises(StateError):
        payroll_service.get_entry_breakdown(db_session, entry_id)

    result = payroll_service.backfill_snapshot(db_session, entry_id)
    # canteen and attendance were settled on release, so today's ledger differs
    assert result["drift"] == "-705.00"
    view = payroll_service.get_entry_breakdown(db_session, entry_id)
    assert view["source"] == "snapshot"
    assert view["entry"]["net_pay"] == "17695.00"

    with pytest.raises(StateError):
        payroll_service.backfill_snapshot(db_session, entry_id)
