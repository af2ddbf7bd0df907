# backoffice/store.py
from __future__ import annotations

import json
import os
import sqlite3
import threading
from dataclasses import fields, replace
from typing import Any, Callable, Dict, List, Optional

from lifecycle.errors import NotFoundError, ValidationError
from lifecycle.models import CleaningStep, Client, Equipment, User, from_dict, to_dict
from lifecycle.sequences import SequenceRegistry

KINDS: Dict[str, type] = {
    "user": User,
    "client": Client,
    "equipment": Equipment,
    "cleaning_step": CleaningStep,
}

Derive = Callable[[int], Dict[str, Any]]


class EntityStore:
    """
    Key-value persistence for users, clients, equipment and cleaning steps.

    Every call either fully applies or raises without side effects. Ids are
    assigned per kind starting at 1 and are never reused.
    """

    def create(self, kind: str, values: Dict[str, Any], derive: Optional[Derive] = None) -> Any:
        raise NotImplementedError

    def get(self, kind: str, record_id: int) -> Any:
        raise NotImplementedError

    def list(self, kind: str) -> List[Any]:
        raise NotImplementedError

    def update(self, kind: str, record_id: int, patch: Dict[str, Any]) -> Any:
        raise NotImplementedError

    def delete(self, kind: str, record_id: int) -> None:
        raise NotImplementedError

    # -------------------------------
    # Shared helpers
    # -------------------------------

    @staticmethod
    def _model(kind: str) -> type:
        if kind not in KINDS:
            raise ValueError(f"unknown entity kind: {kind!r}")
        return KINDS[kind]

    @staticmethod
    def _build(cls: type, record_id: int, values: Dict[str, Any]) -> Any:
        known = {f.name for f in fields(cls)}
        unknown = set(values) - known
        if unknown:
            raise ValidationError(sorted(unknown)[0], "unknown field")
        if "id" in values:
            raise ValidationError("id", "ids are assigned by the store")
        try:
            return cls(id=record_id, **values)
        except TypeError as e:
            raise ValidationError(cls.__name__, str(e)) from e

    @staticmethod
    def _patched(record: Any, patch: Dict[str, Any]) -> Any:
        known = {f.name for f in fields(record)}
        for key in patch:
            if key == "id":
                raise ValidationError("id", "ids cannot be changed")
            if key not in known:
                raise ValidationError(key, "unknown field")
        return replace(record, **patch)


class MemoryStore(EntityStore):
    """Process-memory backend. Nothing survives a restart."""

    def __init__(self) -> None:
        self._seq = SequenceRegistry(KINDS)
        self._rows: Dict[str, Dict[int, Any]] = {kind: {} for kind in KINDS}
        self._lock = threading.RLock()

    def create(self, kind: str, values: Dict[str, Any], derive: Optional[Derive] = None) -> Any:
        cls = self._model(kind)
        with self._lock:
            # the id is only consumed once the record is valid
            record_id = self._seq.peek(kind)
            merged = dict(values)
            if derive is not None:
                merged.update(derive(record_id))
            record = self._build(cls, record_id, merged)
            self._seq.issue(kind)
            self._rows[kind][record_id] = record
            return record

    def get(self, kind: str, record_id: int) -> Any:
        self._model(kind)
        with self._lock:
            record = self._rows[kind].get(record_id)
        if record is None:
            raise NotFoundError(kind, record_id)
        return record

    def list(self, kind: str) -> List[Any]:
        self._model(kind)
        with self._lock:
            return [self._rows[kind][k] for k in sorted(self._rows[kind])]

    def update(self, kind: str, record_id: int, patch: Dict[str, Any]) -> Any:
        with self._lock:
            record = self._patched(self.get(kind, record_id), patch)
            self._rows[kind][record_id] = record
            return record

    def delete(self, kind: str, record_id: int) -> None:
        self._model(kind)
        with self._lock:
            if record_id not in self._rows[kind]:
                raise NotFoundError(kind, record_id)
            del self._rows[kind][record_id]


class SqliteStore(EntityStore):
    """
    Durable backend: one JSON row per record plus a per-kind sequence table,
    so ids keep increasing across restarts.
    """

    def __init__(self, db_path: str) -> None:
        self.db_path = db_path
        os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
        self._lock = threading.RLock()
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path)

    def _init_db(self) -> None:
        con = self._connect()
        try:
            with con:
                con.execute("""
                CREATE TABLE IF NOT EXISTS sequences (
                    kind TEXT PRIMARY KEY,
                    next_id INTEGER NOT NULL
                )
                """)
                con.execute("""
                CREATE TABLE IF NOT EXISTS records (
                    kind TEXT NOT NULL,
                    id INTEGER NOT NULL,
                    data_json TEXT NOT NULL,
                    PRIMARY KEY (kind, id)
                )
                """)
                for kind in KINDS:
                    con.execute("INSERT OR IGNORE INTO sequences (kind, next_id) VALUES (?, 1)", (kind,))
        finally:
            con.close()

    def create(self, kind: str, values: Dict[str, Any], derive: Optional[Derive] = None) -> Any:
        cls = self._model(kind)
        with self._lock:
            con = self._connect()
            try:
                with con:
                    (record_id,) = con.execute(
                        "SELECT next_id FROM sequences WHERE kind = ?", (kind,)
                    ).fetchone()
                    merged = dict(values)
                    if derive is not None:
                        merged.update(derive(record_id))
                    record = self._build(cls, record_id, merged)
                    con.execute("UPDATE sequences SET next_id = ? WHERE kind = ?", (record_id + 1, kind))
                    con.execute(
                        "INSERT INTO records (kind, id, data_json) VALUES (?, ?, ?)",
                        (kind, record_id, json.dumps(to_dict(record))),
                    )
                return record
            finally:
                con.close()

    def get(self, kind: str, record_id: int) -> Any:
        cls = self._model(kind)
        con = self._connect()
        try:
            row = con.execute(
                "SELECT data_json FROM records WHERE kind = ? AND id = ?", (kind, record_id)
            ).fetchone()
        finally:
            con.close()
        if row is None:
            raise NotFoundError(kind, record_id)
        return from_dict(cls, json.loads(row[0]))

    def list(self, kind: str) -> List[Any]:
        cls = self._model(kind)
        con = self._connect()
        try:
            rows = con.execute(
                "SELECT data_json FROM records WHERE kind = ? ORDER BY id", (kind,)
            ).fetchall()
        finally:
            con.close()
        return [from_dict(cls, json.loads(r[0])) for r in rows]

    def update(self, kind: str, record_id: int, patch: Dict[str, Any]) -> Any:
        with self._lock:
            record = self._patched(self.get(kind, record_id), patch)
            con = self._connect()
            try:
                with con:
                    con.execute(
                        "UPDATE records SET data_json = ? WHERE kind = ? AND id = ?",
                        (json.dumps(to_dict(record)), kind, record_id),
                    )
            finally:
                con.close()
            return record

    def delete(self, kind: str, record_id: int) -> None:
        self._model(kind)
        with self._lock:
            con = self._connect()
            try:
                with con:
                    cur = con.execute("DELETE FROM records WHERE kind = ? AND id = ?", (kind, record_id))
                    if cur.rowcount == 0:
                        raise NotFoundError(kind, record_id)
            finally:
                con.close()


def open_store(backend: str = "memory", db_path: str = "data/store.sqlite") -> EntityStore:
    if backend == "memory":
        return MemoryStore()
    if backend == "sqlite":
        return SqliteStore(db_path)
    raise ValueError(f"unknown store backend: {backend!r}")
