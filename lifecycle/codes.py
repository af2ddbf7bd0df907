# lifecycle/codes.py
from __future__ import annotations

from lifecycle.errors import ValidationError

CODE_PREFIX = "EQ-"
CODE_WIDTH = 4


def generate_code(next_id: int) -> str:
    """
    Equipment code for the id the store is about to assign, e.g. 7 -> "EQ-0007".
    Ids past 9999 keep all their digits ("EQ-10000"), so distinct ids never share a code.
    """
    if isinstance(next_id, bool) or not isinstance(next_id, int) or next_id < 1:
        raise ValidationError("id", f"must be a positive integer, got {next_id!r}")
    return f"{CODE_PREFIX}{next_id:0{CODE_WIDTH}d}"
