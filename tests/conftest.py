from datetime import datetime, timedelta, timezone

import pytest

from backoffice.audit_logger import AuditLogger
from backoffice.store import MemoryStore
from lifecycle.models import UserRole
from lifecycle.service import LifecycleService


class FakeClock:
    """Deterministic clock: every call returns a time `step` later than the previous one."""

    def __init__(self, start=None, step=timedelta(minutes=10)):
        self.now = start or datetime(2024, 5, 6, 8, 0, tzinfo=timezone.utc)
        self.step = step

    def __call__(self):
        t = self.now
        self.now = self.now + self.step
        return t


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def service(store, clock):
    return LifecycleService(store, clock=clock)


@pytest.fixture
def audit(tmp_path):
    return AuditLogger(
        db_path=str(tmp_path / "logs" / "audit.sqlite"),
        event_log_path=str(tmp_path / "logs" / "events.log"),
        transition_log_path=str(tmp_path / "logs" / "transitions.log"),
    )


@pytest.fixture
def people(service):
    """One client and three users (ids 1, 2, 3)."""
    client = service.create_client("Hospital Santa Clara", "contato@santaclara.com.br", "(11) 3555-9000")
    receiver = service.register_user("Ana", "ana@cme.local", "x", UserRole.EMPLOYEE)
    other = service.register_user("Bruno", "bruno@cme.local", "x", UserRole.EMPLOYEE)
    manager = service.register_user("Carla", "carla@cme.local", "x", UserRole.MANAGER)
    return {"client": client, "receiver": receiver, "other": other, "manager": manager}


@pytest.fixture
def equipment(service, people):
    return service.create_equipment(
        client_id=people["client"].id,
        received_by=people["receiver"].id,
        description="Caixa de instrumental",
        equipment_type="Kit",
        quantity=2,
    )
