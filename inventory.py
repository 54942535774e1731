"""
Remaining-supply percentage and refill urgency.

The days-to-refill hint is a fixed linear heuristic, not a consumption model.
"""
import math
from dataclasses import dataclass
from typing import Optional

from schemas import Medication, MedicationInventory, RefillStatus

OK_THRESHOLD = 50
WARNING_THRESHOLD = 20


def remaining_percent(remaining: Optional[int], total: Optional[int]) -> int:
    if not total:
        return 0
    percent = math.floor((remaining or 0) / total * 100 + 0.5)
    return max(0, min(100, percent))


def refill_status(percent: int) -> RefillStatus:
    if percent > OK_THRESHOLD:
        days = math.ceil((percent - WARNING_THRESHOLD) / 5)
        return RefillStatus(message=f"Refill in {days} days", tier="ok")
    if percent > WARNING_THRESHOLD:
        return RefillStatus(message="Refill soon", tier="warning")
    return RefillStatus(message="Refill now!", tier="critical")


@dataclass(frozen=True)
class InventoryPolicy:
    """How dose writes move the remaining-doses counter.

    With the defaults an increment can push remaining past total.
    """
    floor_at_zero: bool = True
    cap_at_total: bool = False

    def decrement(self, remaining: int) -> int:
        remaining -= 1
        if self.floor_at_zero:
            remaining = max(0, remaining)
        return remaining

    def increment(self, remaining: int, total: Optional[int]) -> int:
        remaining += 1
        if self.cap_at_total and total is not None:
            remaining = min(total, remaining)
        return remaining


def medication_inventory(medication: Medication) -> Optional[MedicationInventory]:
    """Inventory view, or None when the medication does not track counts."""
    if medication.remaining_doses is None or not medication.total_doses:
        return None
    percent = remaining_percent(medication.remaining_doses, medication.total_doses)
    status = refill_status(percent)
    return MedicationInventory(
        medication_id=medication.id,
        name=medication.name,
        remaining_doses=medication.remaining_doses,
        total_doses=medication.total_doses,
        percent=percent,
        message=status.message,
        tier=status.tier,
    )
