# lifecycle/state_machine.py
from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Any, List, Optional, Set, Tuple

from lifecycle.errors import IllegalTransitionError, InvalidStatusError
from lifecycle.models import STATUS_ORDER, Equipment, EquipmentStatus


# Forward single-step transitions: (current_status, new_status)
_FORWARD: Set[Tuple[EquipmentStatus, EquipmentStatus]] = {
    (EquipmentStatus.PENDING, EquipmentStatus.CLEANING),
    (EquipmentStatus.CLEANING, EquipmentStatus.FINISHED),
    (EquipmentStatus.FINISHED, EquipmentStatus.RETURNED),
}

# Timestamp stamped on first entry into a status
_ENTRY_STAMPS = {
    EquipmentStatus.CLEANING: "cleaning_started_at",
    EquipmentStatus.FINISHED: "cleaning_finished_at",
}


def parse_status(value: Any) -> EquipmentStatus:
    if isinstance(value, EquipmentStatus):
        return value
    try:
        return EquipmentStatus(value)
    except ValueError:
        raise InvalidStatusError(value, [s.value for s in EquipmentStatus]) from None


def _rank(status: EquipmentStatus) -> int:
    return STATUS_ORDER.index(status)


@dataclass(frozen=True)
class TransitionResult:
    prev_status: EquipmentStatus
    next_status: EquipmentStatus
    reason: str  # machine-friendly reason code, written to the audit log
    stamped: Tuple[str, ...] = ()


class PermissiveTransitionPolicy:
    """
    Accepts every status change: backward moves, skipped states and returns
    from any status are all allowed (manual corrections by staff).
    """

    def check(self, prev: EquipmentStatus, nxt: EquipmentStatus) -> None:
        return None

    def check_return(self, prev: EquipmentStatus) -> None:
        return None

    def path(self, prev: EquipmentStatus, target: EquipmentStatus) -> List[EquipmentStatus]:
        return [target]


class StrictTransitionPolicy:
    """
    Only forward single steps PENDING -> CLEANING -> FINISHED -> RETURNED
    (plus same-status no-ops). Everything else raises IllegalTransitionError.
    """

    def check(self, prev: EquipmentStatus, nxt: EquipmentStatus) -> None:
        if prev == nxt or (prev, nxt) in _FORWARD:
            return None
        raise IllegalTransitionError(prev, nxt)

    def check_return(self, prev: EquipmentStatus) -> None:
        self.check(prev, EquipmentStatus.RETURNED)

    def path(self, prev: EquipmentStatus, target: EquipmentStatus) -> List[EquipmentStatus]:
        """Intermediate forward states from prev to target; empty if target is behind prev."""
        if _rank(target) < _rank(prev):
            return []
        return list(STATUS_ORDER[_rank(prev) + 1:_rank(target) + 1]) or [target]


def _reason(prev: EquipmentStatus, nxt: EquipmentStatus) -> str:
    if prev == nxt:
        return "STATUS_UNCHANGED"
    if _rank(nxt) < _rank(prev):
        return "BACKWARD_TRANSITION"
    if (prev, nxt) in _FORWARD:
        return "STATUS_ADVANCED"
    return "SKIPPED_TRANSITION"


class EquipmentStatusMachine:
    """
    Computes status changes for an equipment record.

    Key properties:
    - entering CLEANING stamps cleaning_started_at, entering FINISHED stamps
      cleaning_finished_at; a stamp that is already set is never overwritten.
    - the policy decides which moves are legal (permissive by default).
    - records are never mutated; callers persist the returned copy.
    """

    def __init__(self, policy=None) -> None:
        self.policy = policy or PermissiveTransitionPolicy()

    def transition(
        self,
        equipment: Equipment,
        new_status: Any,
        now: datetime,
    ) -> Tuple[Equipment, TransitionResult]:
        nxt = parse_status(new_status)
        prev = equipment.status
        self.policy.check(prev, nxt)

        changes = {}
        stamped = []
        field = _ENTRY_STAMPS.get(nxt)
        if field and prev != nxt and getattr(equipment, field) is None:
            changes[field] = now
            stamped.append(field)
        changes["status"] = nxt

        updated = replace(equipment, **changes)
        return updated, TransitionResult(
            prev_status=prev,
            next_status=nxt,
            reason=_reason(prev, nxt),
            stamped=tuple(stamped),
        )

    def advance_to(
        self,
        equipment: Equipment,
        target: EquipmentStatus,
        now: datetime,
    ) -> Tuple[Equipment, List[TransitionResult]]:
        """
        Moves towards target following the policy's path. Under the strict
        policy a target behind the current status leaves the record as is.
        """
        results = []
        for status in self.policy.path(equipment.status, target):
            equipment, tr = self.transition(equipment, status, now)
            results.append(tr)
        return equipment, results

    def return_equipment(
        self,
        equipment: Equipment,
        returned_by: int,
        comments: Optional[str],
        now: datetime,
    ) -> Tuple[Equipment, TransitionResult]:
        prev = equipment.status
        self.policy.check_return(prev)

        if equipment.returned_at is not None:
            # first return wins; status is still forced back to RETURNED
            updated = replace(equipment, status=EquipmentStatus.RETURNED)
            return updated, TransitionResult(
                prev_status=prev,
                next_status=EquipmentStatus.RETURNED,
                reason="ALREADY_RETURNED",
            )

        updated = replace(
            equipment,
            status=EquipmentStatus.RETURNED,
            returned_at=now,
            returned_by=returned_by,
            return_comments=comments,
        )
        return updated, TransitionResult(
            prev_status=prev,
            next_status=EquipmentStatus.RETURNED,
            reason="EQUIPMENT_RETURNED",
            stamped=("returned_at", "returned_by"),
        )
