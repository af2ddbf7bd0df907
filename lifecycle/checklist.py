# lifecycle/checklist.py
from __future__ import annotations

from dataclasses import dataclass
from typing import List, Sequence, Tuple

from lifecycle.errors import DuplicateChecklistError
from lifecycle.models import CleaningStep


@dataclass(frozen=True)
class StepTemplate:
    ordinal: int
    name: str
    kickoff: bool = False  # completing this step means cleaning has begun


CHECKLIST: Tuple[StepTemplate, ...] = (
    StepTemplate(0, "Recebimento", kickoff=True),
    StepTemplate(1, "Triagem Inicial"),
    StepTemplate(2, "Limpeza Básica"),
    StepTemplate(3, "Limpeza Profunda"),
    StepTemplate(4, "Esterilização"),
    StepTemplate(5, "Inspeção Final"),
)

STEP_NAMES: Tuple[str, ...] = tuple(t.name for t in CHECKLIST)


def is_kickoff(step: CleaningStep) -> bool:
    if 0 <= step.ordinal < len(CHECKLIST):
        return CHECKLIST[step.ordinal].kickoff
    return False


def seed_checklist(store, equipment_id: int) -> List[CleaningStep]:
    """
    Creates the six checklist steps for a freshly created equipment record,
    in checklist order, all incomplete.
    """
    # raises NotFoundError for an unknown equipment
    store.get("equipment", equipment_id)

    existing = [s for s in store.list("cleaning_step") if s.equipment_id == equipment_id]
    if existing:
        raise DuplicateChecklistError(equipment_id)

    created = []
    for t in CHECKLIST:
        created.append(store.create("cleaning_step", {
            "equipment_id": equipment_id,
            "step": t.name,
            "ordinal": t.ordinal,
            "completed": False,
            "completed_at": None,
        }))
    return created


def ordered(steps: Sequence[CleaningStep]) -> List[CleaningStep]:
    return sorted(steps, key=lambda s: (s.ordinal, s.id))


def checklist_progress(steps: Sequence[CleaningStep]) -> float:
    """Completed share of the checklist in percent (0.0 when there are no steps)."""
    if not steps:
        return 0.0
    done = sum(1 for s in steps if s.completed)
    return round(done * 100.0 / len(steps), 1)
