# lifecycle/models.py
from __future__ import annotations

from dataclasses import asdict, dataclass, fields
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Type


class UserRole(str, Enum):
    CLIENT = "CLIENT"
    EMPLOYEE = "EMPLOYEE"
    MANAGER = "MANAGER"


class EquipmentStatus(str, Enum):
    PENDING = "PENDING"      # received, waiting for the checklist to start
    CLEANING = "CLEANING"
    FINISHED = "FINISHED"    # all checklist steps completed
    RETURNED = "RETURNED"    # handed back to the client (terminal)


# Life-cycle order, used for strict-mode checks and report ordering
STATUS_ORDER = (
    EquipmentStatus.PENDING,
    EquipmentStatus.CLEANING,
    EquipmentStatus.FINISHED,
    EquipmentStatus.RETURNED,
)


@dataclass(frozen=True)
class User:
    id: int
    name: str
    email: str
    password: str  # opaque credential, hashed outside this package
    role: UserRole = UserRole.CLIENT


@dataclass(frozen=True)
class Client:
    id: int
    name: str
    email: str
    phone: str


@dataclass(frozen=True)
class Equipment:
    id: int
    code: str
    description: str
    type: str
    quantity: int
    client_id: int
    received_by: int
    received_at: datetime
    status: EquipmentStatus = EquipmentStatus.PENDING
    cleaning_started_at: Optional[datetime] = None
    cleaning_finished_at: Optional[datetime] = None
    returned_at: Optional[datetime] = None
    returned_by: Optional[int] = None
    return_comments: Optional[str] = None


@dataclass(frozen=True)
class CleaningStep:
    id: int
    equipment_id: int
    step: str
    ordinal: int
    completed: bool = False
    completed_at: Optional[datetime] = None


_DATETIME_FIELDS = {
    "received_at",
    "cleaning_started_at",
    "cleaning_finished_at",
    "returned_at",
    "completed_at",
}

_ENUM_FIELDS: Dict[str, Type[Enum]] = {
    "role": UserRole,
    "status": EquipmentStatus,
}


def to_dict(record: Any) -> Dict[str, Any]:
    """JSON-friendly dict of a record (datetimes as ISO strings, enums as values)."""
    out = asdict(record)
    for k, v in out.items():
        if isinstance(v, datetime):
            out[k] = v.isoformat()
        elif isinstance(v, Enum):
            out[k] = v.value
    return out


def from_dict(cls: Type[Any], data: Dict[str, Any]) -> Any:
    known = {f.name for f in fields(cls)}
    kwargs: Dict[str, Any] = {}
    for k, v in data.items():
        if k not in known:
            continue
        if v is not None and k in _DATETIME_FIELDS and isinstance(v, str):
            v = datetime.fromisoformat(v)
        elif v is not None and k in _ENUM_FIELDS:
            v = _ENUM_FIELDS[k](v)
        kwargs[k] = v
    return cls(**kwargs)
