# lifecycle/service.py
from __future__ import annotations

import threading
from dataclasses import asdict, dataclass, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple

from lifecycle.checklist import checklist_progress, ordered, seed_checklist
from lifecycle.codes import generate_code
from lifecycle.errors import InvalidStatusError, NotFoundError, ValidationError
from lifecycle.inference import infer_status
from lifecycle.models import (
    CleaningStep,
    Client,
    Equipment,
    EquipmentStatus,
    User,
    UserRole,
)
from lifecycle.state_machine import EquipmentStatusMachine, TransitionResult, parse_status


class Trigger(str, Enum):
    MANUAL = "MANUAL"                     # set_status called directly
    STEP_COMPLETION = "STEP_COMPLETION"   # inferred from the checklist
    RETURN = "RETURN"


@dataclass(frozen=True)
class TransitionRecord:
    equipment_id: int
    code: str
    trigger: Trigger
    prev_status: EquipmentStatus
    next_status: EquipmentStatus
    reason: str
    stamped: Tuple[str, ...]
    timestamp_utc: str
    details: Dict[str, Any]

    def as_dict(self) -> Dict[str, Any]:
        d = asdict(self)
        d["trigger"] = self.trigger.value
        d["prev_status"] = self.prev_status.value
        d["next_status"] = self.next_status.value
        d["stamped"] = list(self.stamped)
        return d


def parse_role(value: Any) -> UserRole:
    if isinstance(value, UserRole):
        return value
    try:
        return UserRole(value)
    except ValueError:
        raise InvalidStatusError(value, [r.value for r in UserRole]) from None


def _require_text(field: str, value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(field, "must be a non-empty string")
    return value.strip()


def _require_positive_int(field: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValidationError(field, f"must be an integer >= 1, got {value!r}")
    return value


class LifecycleService:
    """
    The logical operations the HTTP layer calls: clients, users, equipment
    reception, status changes, returns and the cleaning checklist.

    Combines
      - EntityStore (injected persistence)
      - EquipmentStatusMachine (status changes + timestamp stamps)
      - the step-completion inference rule
    Every read-decide-write sequence runs under one lock, so a concurrent
    caller never sees two FINISHED transitions or duplicate codes.
    """

    def __init__(
        self,
        store,
        machine: Optional[EquipmentStatusMachine] = None,
        audit=None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.store = store
        self.machine = machine or EquipmentStatusMachine()
        self.audit = audit
        self._clock = clock or self.now_utc
        self._lock = threading.RLock()

    @staticmethod
    def now_utc() -> datetime:
        return datetime.now(timezone.utc)

    # -------------------------------
    # Clients
    # -------------------------------

    def create_client(self, name: str, email: str, phone: str) -> Client:
        values = {
            "name": _require_text("name", name),
            "email": _require_text("email", email),
            "phone": _require_text("phone", phone),
        }
        client = self.store.create("client", values)
        self._event("CLIENT_CREATED", client_id=client.id)
        return client

    def get_client(self, client_id: int) -> Client:
        return self.store.get("client", client_id)

    def list_clients(self) -> List[Client]:
        return self.store.list("client")

    def delete_client(self, client_id: int) -> None:
        """
        Deletes without cascading. Equipment still pointing at the client is
        flagged in the audit log and reported by orphaned_equipment().
        """
        with self._lock:
            self.store.get("client", client_id)
            remaining = [e.id for e in self.store.list("equipment") if e.client_id == client_id]
            self.store.delete("client", client_id)
        self._event("CLIENT_DELETED", client_id=client_id)
        if remaining:
            self._event("DANGLING_CLIENT_REFERENCE", client_id=client_id, equipment_ids=remaining)

    # -------------------------------
    # Users
    # -------------------------------

    def register_user(self, name: str, email: str, password: str, role: Any = UserRole.CLIENT) -> User:
        values = {
            "name": _require_text("name", name),
            "email": _require_text("email", email),
            "password": _require_text("password", password),
            "role": parse_role(role),
        }
        with self._lock:
            if self.find_user_by_email(values["email"]) is not None:
                raise ValidationError("email", "already registered")
            user = self.store.create("user", values)
        self._event("USER_REGISTERED", user_id=user.id, role=user.role.value)
        return user

    def get_user(self, user_id: int) -> User:
        return self.store.get("user", user_id)

    def find_user_by_email(self, email: str) -> Optional[User]:
        wanted = email.strip().lower()
        for u in self.store.list("user"):
            if u.email.lower() == wanted:
                return u
        return None

    def list_users(self) -> List[User]:
        return self.store.list("user")

    def list_employees(self) -> List[User]:
        return [u for u in self.store.list("user") if u.role == UserRole.EMPLOYEE]

    def update_user_role(self, user_id: int, role: Any) -> User:
        new_role = parse_role(role)
        user = self.store.update("user", user_id, {"role": new_role})
        self._event("USER_ROLE_CHANGED", user_id=user_id, role=new_role.value)
        return user

    def delete_user(self, user_id: int) -> None:
        self.store.delete("user", user_id)
        self._event("USER_DELETED", user_id=user_id)

    # -------------------------------
    # Equipment
    # -------------------------------

    def create_equipment(
        self,
        client_id: int,
        received_by: int,
        description: str,
        equipment_type: str,
        quantity: int = 1,
    ) -> Equipment:
        values = {
            "description": _require_text("description", description),
            "type": _require_text("type", equipment_type),
            "quantity": _require_positive_int("quantity", quantity),
            "status": EquipmentStatus.PENDING,
        }
        with self._lock:
            # references are checked under the lock so delete_client cannot slip in between
            values["client_id"] = self._require_ref("client_id", "client", client_id)
            values["received_by"] = self._require_ref("received_by", "user", received_by)
            values["received_at"] = self._clock()
            equipment = self.store.create(
                "equipment", values, derive=lambda new_id: {"code": generate_code(new_id)}
            )
            seed_checklist(self.store, equipment.id)
        self._event("EQUIPMENT_RECEIVED", equipment_id=equipment.id, code=equipment.code,
                    client_id=equipment.client_id, received_by=equipment.received_by)
        return equipment

    def get_equipment(self, equipment_id: int) -> Equipment:
        with self._lock:
            return self.store.get("equipment", equipment_id)

    def list_equipment(self, status: Any = None) -> List[Equipment]:
        wanted = None if status is None else parse_status(status)
        with self._lock:
            items = self.store.list("equipment")
        if wanted is None:
            return items
        return [e for e in items if e.status == wanted]

    def list_finished_equipment(self) -> List[Equipment]:
        return self.list_equipment(EquipmentStatus.FINISHED)

    def orphaned_equipment(self) -> List[Equipment]:
        """Equipment whose client_id no longer resolves to a client."""
        with self._lock:
            client_ids = {c.id for c in self.store.list("client")}
            return [e for e in self.store.list("equipment") if e.client_id not in client_ids]

    def set_status(self, equipment_id: int, status: Any) -> Equipment:
        new_status = parse_status(status)
        with self._lock:
            equipment = self.store.get("equipment", equipment_id)
            updated, tr = self.machine.transition(equipment, new_status, self._clock())
            updated = self._persist(equipment, updated)
            self._record(Trigger.MANUAL, updated, tr, {})
        return updated

    def return_equipment(self, equipment_id: int, returned_by: int, comments: Optional[str] = None) -> Equipment:
        if comments is not None and not isinstance(comments, str):
            raise ValidationError("comments", "must be a string")
        with self._lock:
            equipment = self.store.get("equipment", equipment_id)
            self._require_ref("returned_by", "user", returned_by)
            updated, tr = self.machine.return_equipment(equipment, returned_by, comments, self._clock())
            updated = self._persist(equipment, updated)
            self._record(Trigger.RETURN, updated, tr, {"returned_by": returned_by, "comments": comments})
        return updated

    # -------------------------------
    # Cleaning checklist
    # -------------------------------

    def list_cleaning_steps(self, equipment_id: int) -> List[CleaningStep]:
        with self._lock:
            self.store.get("equipment", equipment_id)
            return ordered(self._steps_of(equipment_id))

    def cleaning_progress(self, equipment_id: int) -> float:
        return checklist_progress(self.list_cleaning_steps(equipment_id))

    def set_step_completion(self, step_id: int, completed: bool) -> CleaningStep:
        if not isinstance(completed, bool):
            raise ValidationError("completed", f"must be a boolean, got {completed!r}")

        results = []
        with self._lock:
            step = self.store.get("cleaning_step", step_id)
            now = self._clock()
            step = self.store.update("cleaning_step", step_id, {
                "completed": completed,
                "completed_at": now if completed else None,
            })

            target = infer_status(step, self._steps_of(step.equipment_id))
            if target is not None:
                equipment = self.store.get("equipment", step.equipment_id)
                updated, results = self.machine.advance_to(equipment, target, now)
                equipment = self._persist(equipment, updated)

            self._event("STEP_COMPLETION_SET", step_id=step.id, equipment_id=step.equipment_id,
                        step=step.step, completed=completed)
            for tr in results:
                self._record(Trigger.STEP_COMPLETION, equipment, tr, {"step_id": step.id, "step": step.step})
        return step

    # -------------------------------
    # Helpers
    # -------------------------------

    def _steps_of(self, equipment_id: int) -> List[CleaningStep]:
        return [s for s in self.store.list("cleaning_step") if s.equipment_id == equipment_id]

    def _require_ref(self, field: str, kind: str, record_id: Any) -> int:
        _require_positive_int(field, record_id)
        try:
            self.store.get(kind, record_id)
        except NotFoundError:
            raise ValidationError(field, f"unknown {kind} {record_id}") from None
        return record_id

    def _persist(self, before: Equipment, after: Equipment) -> Equipment:
        patch = {
            f.name: getattr(after, f.name)
            for f in fields(after)
            if getattr(after, f.name) != getattr(before, f.name)
        }
        if not patch:
            return before
        return self.store.update("equipment", before.id, patch)

    def _record(self, trigger: Trigger, equipment: Equipment, tr: TransitionResult, details: Dict[str, Any]) -> None:
        # same-status calls are no-ops, not transitions
        if self.audit is None or tr.prev_status == tr.next_status:
            return
        self.audit.log_transition(TransitionRecord(
            equipment_id=equipment.id,
            code=equipment.code,
            trigger=trigger,
            prev_status=tr.prev_status,
            next_status=tr.next_status,
            reason=tr.reason,
            stamped=tr.stamped,
            timestamp_utc=self._clock().isoformat(),
            details=details,
        ))

    def _event(self, event_type: str, **payload: Any) -> None:
        if self.audit is not None:
            self.audit.log_event({"type": event_type, **payload})
