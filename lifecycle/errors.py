# lifecycle/errors.py
from __future__ import annotations

from typing import Any, Optional


class LifecycleError(Exception):
    """Base class for every error raised by the equipment life-cycle core."""


class NotFoundError(LifecycleError, LookupError):
    def __init__(self, kind: str, record_id: Any) -> None:
        super().__init__(f"{kind} {record_id} not found")
        self.kind = kind
        self.record_id = record_id


class InvalidStatusError(LifecycleError, ValueError):
    """Unrecognized enum value (equipment status or user role)."""

    def __init__(self, value: Any, allowed: Optional[list] = None) -> None:
        msg = f"invalid value: {value!r}"
        if allowed:
            msg += f" (expected one of {', '.join(allowed)})"
        super().__init__(msg)
        self.value = value
        self.allowed = allowed or []


class ValidationError(LifecycleError, ValueError):
    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message


class DuplicateChecklistError(LifecycleError):
    def __init__(self, equipment_id: int) -> None:
        super().__init__(f"checklist already exists for equipment {equipment_id}")
        self.equipment_id = equipment_id


class IllegalTransitionError(LifecycleError):
    def __init__(self, prev_status: Any, next_status: Any) -> None:
        super().__init__(f"ILLEGAL_TRANSITION:{getattr(prev_status, 'value', prev_status)}"
                         f"->{getattr(next_status, 'value', next_status)}")
        self.prev_status = prev_status
        self.next_status = next_status
