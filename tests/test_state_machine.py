from datetime import datetime, timedelta, timezone

import pytest

from lifecycle.errors import IllegalTransitionError, InvalidStatusError
from lifecycle.models import Equipment, EquipmentStatus
from lifecycle.state_machine import (
    EquipmentStatusMachine,
    StrictTransitionPolicy,
    parse_status,
)

T0 = datetime(2024, 5, 6, 8, 0, tzinfo=timezone.utc)
T1 = T0 + timedelta(hours=1)
T2 = T0 + timedelta(hours=2)


def make_equipment(status=EquipmentStatus.PENDING, **kw):
    return Equipment(
        id=1, code="EQ-0001", description="Kit", type="Kit", quantity=1,
        client_id=1, received_by=1, received_at=T0, status=status, **kw
    )


def test_parse_status():
    assert parse_status("CLEANING") is EquipmentStatus.CLEANING
    assert parse_status(EquipmentStatus.RETURNED) is EquipmentStatus.RETURNED
    with pytest.raises(InvalidStatusError):
        parse_status("WASHING")
    with pytest.raises(InvalidStatusError):
        parse_status("cleaning")


def test_entering_cleaning_stamps_start():
    m = EquipmentStatusMachine()
    updated, tr = m.transition(make_equipment(), "CLEANING", T1)
    assert updated.status == EquipmentStatus.CLEANING
    assert updated.cleaning_started_at == T1
    assert tr.reason == "STATUS_ADVANCED"
    assert tr.stamped == ("cleaning_started_at",)


def test_same_status_does_not_restamp():
    m = EquipmentStatusMachine()
    eq, _ = m.transition(make_equipment(), EquipmentStatus.CLEANING, T1)
    again, tr = m.transition(eq, EquipmentStatus.CLEANING, T2)
    assert again.cleaning_started_at == T1
    assert tr.reason == "STATUS_UNCHANGED"
    assert tr.stamped == ()


def test_reentry_keeps_first_stamp():
    m = EquipmentStatusMachine()
    eq, _ = m.transition(make_equipment(), EquipmentStatus.CLEANING, T0)
    eq, tr = m.transition(eq, EquipmentStatus.PENDING, T1)
    assert tr.reason == "BACKWARD_TRANSITION"
    assert eq.cleaning_started_at == T0
    eq, _ = m.transition(eq, EquipmentStatus.CLEANING, T2)
    assert eq.cleaning_started_at == T0


def test_permissive_allows_skips_and_backward_moves():
    m = EquipmentStatusMachine()
    eq, tr = m.transition(make_equipment(), EquipmentStatus.FINISHED, T1)
    assert tr.reason == "SKIPPED_TRANSITION"
    assert eq.cleaning_finished_at == T1
    assert eq.cleaning_started_at is None
    eq, tr = m.transition(eq, EquipmentStatus.PENDING, T2)
    assert eq.status == EquipmentStatus.PENDING
    assert eq.cleaning_finished_at == T1


def test_set_returned_directly_does_not_stamp_return():
    m = EquipmentStatusMachine()
    eq, tr = m.transition(make_equipment(), EquipmentStatus.RETURNED, T1)
    assert eq.status == EquipmentStatus.RETURNED
    assert eq.returned_at is None
    assert tr.stamped == ()


def test_return_from_any_status_when_permissive():
    m = EquipmentStatusMachine()
    eq, tr = m.return_equipment(make_equipment(), 3, "ok", T1)
    assert eq.status == EquipmentStatus.RETURNED
    assert (eq.returned_at, eq.returned_by, eq.return_comments) == (T1, 3, "ok")
    assert tr.reason == "EQUIPMENT_RETURNED"


def test_second_return_keeps_first_stamps():
    m = EquipmentStatusMachine()
    eq, _ = m.return_equipment(make_equipment(), 3, None, T1)
    eq, tr = m.return_equipment(eq, 2, "again", T2)
    assert (eq.returned_at, eq.returned_by, eq.return_comments) == (T1, 3, None)
    assert tr.reason == "ALREADY_RETURNED"


def test_strict_forward_only():
    m = EquipmentStatusMachine(StrictTransitionPolicy())
    with pytest.raises(IllegalTransitionError):
        m.transition(make_equipment(), EquipmentStatus.FINISHED, T1)
    eq, _ = m.transition(make_equipment(), EquipmentStatus.CLEANING, T1)
    with pytest.raises(IllegalTransitionError):
        m.transition(eq, EquipmentStatus.PENDING, T2)
    same, tr = m.transition(eq, EquipmentStatus.CLEANING, T2)
    assert tr.reason == "STATUS_UNCHANGED"


def test_strict_return_requires_finished():
    m = EquipmentStatusMachine(StrictTransitionPolicy())
    with pytest.raises(IllegalTransitionError):
        m.return_equipment(make_equipment(), 3, None, T1)
    eq, tr = m.return_equipment(make_equipment(EquipmentStatus.FINISHED), 3, None, T1)
    assert eq.status == EquipmentStatus.RETURNED


def test_strict_advance_walks_intermediate_states():
    m = EquipmentStatusMachine(StrictTransitionPolicy())
    eq, results = m.advance_to(make_equipment(), EquipmentStatus.FINISHED, T1)
    assert [r.next_status for r in results] == [EquipmentStatus.CLEANING, EquipmentStatus.FINISHED]
    assert eq.cleaning_started_at == T1
    assert eq.cleaning_finished_at == T1


def test_strict_advance_never_goes_backward():
    m = EquipmentStatusMachine(StrictTransitionPolicy())
    start = make_equipment(EquipmentStatus.RETURNED)
    eq, results = m.advance_to(start, EquipmentStatus.FINISHED, T1)
    assert results == []
    assert eq == start
