from __future__ import annotations

import json
import os
import sqlite3
from datetime import datetime, timezone
from typing import Any, Dict

from lifecycle.service import TransitionRecord


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _ensure_parent(path: str) -> None:
    os.makedirs(os.path.dirname(path) or ".", exist_ok=True)


class AuditLogger:
    """
    Logs:
      1) operation events (append-only JSON lines file)
      2) status transitions (append-only JSON lines file)
      3) structured transitions in SQLite (queryable for reports)
    """

    def __init__(self, db_path: str, event_log_path: str, transition_log_path: str) -> None:
        self.db_path = db_path
        self.event_log_path = event_log_path
        self.transition_log_path = transition_log_path

        _ensure_parent(db_path)
        _ensure_parent(event_log_path)
        _ensure_parent(transition_log_path)

        self._init_db()

    def _init_db(self) -> None:
        con = sqlite3.connect(self.db_path)
        cur = con.cursor()
        cur.execute("""
        CREATE TABLE IF NOT EXISTS transitions (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            timestamp_utc TEXT NOT NULL,
            equipment_id INTEGER NOT NULL,
            code TEXT NOT NULL,
            trigger TEXT NOT NULL,
            prev_status TEXT NOT NULL,
            next_status TEXT NOT NULL,
            reason TEXT NOT NULL,
            stamped TEXT NOT NULL,
            details_json TEXT NOT NULL
        )
        """)
        con.commit()
        con.close()

    def log_event(self, event: Dict[str, Any]) -> None:
        record = {"timestamp_utc": _now_iso(), **event}
        with open(self.event_log_path, "a", encoding="utf-8") as f:
            f.write(json.dumps(record, default=str) + "\n")

    def log_transition(self, t: TransitionRecord) -> None:
        # file log
        record = t.as_dict()
        with open(self.transition_log_path, "a", encoding="utf-8") as f:
            f.write(json.dumps(record, default=str) + "\n")

        # sqlite log
        con = sqlite3.connect(self.db_path)
        cur = con.cursor()
        cur.execute(
            """
            INSERT INTO transitions (timestamp_utc, equipment_id, code, trigger, prev_status, next_status, reason, stamped, details_json)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                t.timestamp_utc,
                t.equipment_id,
                t.code,
                t.trigger.value,
                t.prev_status.value,
                t.next_status.value,
                t.reason,
                ",".join(t.stamped),
                json.dumps(t.details, default=str),
            ),
        )
        con.commit()
        con.close()
