# lifecycle/inference.py
from __future__ import annotations

from typing import Optional, Sequence

from lifecycle.checklist import is_kickoff
from lifecycle.models import CleaningStep, EquipmentStatus


def infer_status(step: CleaningStep, steps: Sequence[CleaningStep]) -> Optional[EquipmentStatus]:
    """
    Status implied by a step completion event, or None for no change.

    `step` is the step as just persisted; `steps` is the equipment's full
    checklist (the persisted copy of `step` may be stale in it, the id wins).
    Un-completing a step never implies a status.
    """
    if not step.completed:
        return None

    all_done = all(s.completed or s.id == step.id for s in steps)
    if all_done:
        return EquipmentStatus.FINISHED
    if is_kickoff(step):
        return EquipmentStatus.CLEANING
    return None
