from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict
import yaml


@dataclass(frozen=True)
class SystemConfig:
    store_backend: str
    store_db_path: str

    strict_transitions: bool
    seed_initial_clients: bool

    db_path: str
    event_log_path: str
    transition_log_path: str

    report_table_dir: str
    report_graph_dir: str


def load_system_config(path: str = "config/system_config.yaml") -> SystemConfig:
    with open(path, "r", encoding="utf-8") as f:
        cfg: Dict[str, Any] = yaml.safe_load(f) or {}

    store = cfg.get("store", {})
    lifecycle = cfg.get("lifecycle", {})
    seed = cfg.get("seed", {})
    logging = cfg.get("logging", {})
    reports = cfg.get("reports", {})

    backend = str(store.get("backend", "memory"))
    if backend not in ("memory", "sqlite"):
        raise ValueError(f"store.backend must be 'memory' or 'sqlite', got {backend!r}")

    return SystemConfig(
        store_backend=backend,
        store_db_path=str(store.get("db_path", "data/store.sqlite")),

        strict_transitions=bool(lifecycle.get("strict_transitions", False)),
        seed_initial_clients=bool(seed.get("initial_clients", True)),

        db_path=str(logging.get("db_path", "logs/audit.sqlite")),
        event_log_path=str(logging.get("event_log_path", "logs/events.log")),
        transition_log_path=str(logging.get("transition_log_path", "logs/transitions.log")),

        report_table_dir=str(reports.get("table_dir", "results/tables")),
        report_graph_dir=str(reports.get("graph_dir", "results/graphs")),
    )
