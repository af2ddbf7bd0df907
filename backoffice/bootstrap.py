from __future__ import annotations

from typing import Optional

from backoffice.audit_logger import AuditLogger
from backoffice.config_loader import SystemConfig
from backoffice.store import open_store
from lifecycle.service import LifecycleService
from lifecycle.state_machine import (
    EquipmentStatusMachine,
    PermissiveTransitionPolicy,
    StrictTransitionPolicy,
)

# Development clients present on a fresh store
INITIAL_CLIENTS = (
    {"name": "Hospital Santa Clara", "email": "contato@santaclara.com.br", "phone": "(11) 3555-9000"},
    {"name": "Hospital São Lucas", "email": "atendimento@saolucas.com.br", "phone": "(11) 3777-8520"},
    {"name": "Clínica Médica Bem Estar", "email": "clinica@bemestar.com.br", "phone": "(11) 2222-3333"},
)


def build_service(cfg: SystemConfig, audit: Optional[AuditLogger] = None, clock=None) -> LifecycleService:
    store = open_store(cfg.store_backend, cfg.store_db_path)
    policy = StrictTransitionPolicy() if cfg.strict_transitions else PermissiveTransitionPolicy()

    if audit is None:
        audit = AuditLogger(
            db_path=cfg.db_path,
            event_log_path=cfg.event_log_path,
            transition_log_path=cfg.transition_log_path,
        )

    service = LifecycleService(store, machine=EquipmentStatusMachine(policy), audit=audit, clock=clock)

    # a durable store keeps its clients between runs
    if cfg.seed_initial_clients and not service.list_clients():
        for c in INITIAL_CLIENTS:
            service.create_client(**c)
    return service
