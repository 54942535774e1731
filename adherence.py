from collections import Counter
from datetime import datetime, timedelta
from typing import List, Optional

import config
from dosing import active_schedules, runs_on
from schemas import AdherenceDay
from storage import Storage


def compute_adherence_stats(storage: Storage, user_id: int, days: int = 7,
                            now: Optional[datetime] = None) -> List[AdherenceDay]:
    """Scheduled vs completed doses per day over a trailing window ending today.

    `scheduled` counts matching schedules once per day; `completed` counts
    non-skipped doses by local calendar day and is not capped at `scheduled`.
    """
    if days <= 0:
        return []
    today = (now or config.local_now()).date()
    schedules = active_schedules(storage, user_id)

    completed_by_day = Counter(
        config.to_local(dose.timestamp).date()
        for dose in storage.get_doses(user_id)
        if not dose.skipped
    )

    stats = []
    for i in range(days):
        day = today - timedelta(days=days - 1 - i)
        stats.append(AdherenceDay(
            date=day.isoformat(),
            scheduled=sum(1 for s in schedules if runs_on(s, day)),
            completed=completed_by_day.get(day, 0),
        ))
    return stats


def adherence_rate(stats: List[AdherenceDay]) -> Optional[float]:
    scheduled = sum(s.scheduled for s in stats)
    if not scheduled:
        return None
    completed = sum(s.completed for s in stats)
    return round(100.0 * completed / scheduled, 1)
