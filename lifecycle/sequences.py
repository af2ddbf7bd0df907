# lifecycle/sequences.py
from __future__ import annotations

import threading
from typing import Dict, Iterable, Optional


class SequenceGenerator:
    """
    Monotonic id counter for one entity kind.
    Properties:
      - starts at start_counter (>= 1)
      - strictly increasing
      - an issued id is never handed out again, even after the record is deleted
    """

    def __init__(self, start_counter: int = 1) -> None:
        if start_counter < 1:
            raise ValueError("start_counter must be >= 1")
        self._counter: int = start_counter
        self._lock = threading.Lock()

    def peek(self) -> int:
        return self._counter

    def issue(self) -> int:
        with self._lock:
            value = self._counter
            self._counter += 1
            return value


class SequenceRegistry:
    """One SequenceGenerator per entity kind. Owned by a store."""

    def __init__(self, kinds: Iterable[str], start_counters: Optional[Dict[str, int]] = None) -> None:
        starts = start_counters or {}
        self._by_kind: Dict[str, SequenceGenerator] = {
            kind: SequenceGenerator(start_counter=starts.get(kind, 1)) for kind in kinds
        }

    def peek(self, kind: str) -> int:
        return self._by_kind[kind].peek()

    def issue(self, kind: str) -> int:
        return self._by_kind[kind].issue()
