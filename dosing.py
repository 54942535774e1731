"""
Schedule expansion: projects active schedules onto calendar dates.
"""
from datetime import date, datetime, timedelta
from typing import List, Optional

import config
from schemas import WEEKDAYS, NextDose, Schedule
from storage import Storage

LOOKAHEAD_DAYS = 7


def weekday_name(day: date) -> str:
    # date.weekday() is 0=Monday; WEEKDAYS starts on Sunday
    return WEEKDAYS[(day.weekday() + 1) % 7]


def runs_on(schedule: Schedule, day: date) -> bool:
    return weekday_name(day) in schedule.days_of_week


def active_schedules(storage: Storage, user_id: int) -> List[Schedule]:
    return [s for s in storage.get_schedules(user_id) if s.active]


def compute_next_doses(storage: Storage, user_id: int, count: int = 5,
                       now: Optional[datetime] = None) -> List[NextDose]:
    """Upcoming doses over the next seven days, soonest first.

    Today's doses are included only when their time is still ahead of `now`;
    passed doses are dropped, not reported as missed. There is no wraparound
    past the seven-day window, so fewer than `count` entries may come back.
    """
    if count <= 0:
        return []
    now = now or config.local_now()
    today = now.date()
    time_now = now.strftime("%H:%M")

    result = []
    for schedule in active_schedules(storage, user_id):
        medication = None
        for offset in range(LOOKAHEAD_DAYS):
            target = today + timedelta(days=offset)
            if not runs_on(schedule, target):
                continue
            # HH:MM is zero padded so string order is chronological
            if offset == 0 and schedule.time <= time_now:
                continue
            medication = medication or storage.get_medication(schedule.medication_id)
            if medication is None:
                break
            result.append(NextDose(
                schedule_id=schedule.id,
                medication_id=medication.id,
                medication_name=medication.name,
                time=schedule.time,
                eye=schedule.eye,
                dosage=medication.dosage,
                cap_color=medication.cap_color,
                date=target,
            ))

    result.sort(key=lambda d: (d.date, d.time))
    return result[:count]


def doses_for_day(storage: Storage, user_id: int, day: date) -> List[NextDose]:
    """Every active schedule entry for one calendar day, passed or not."""
    result = []
    for schedule in active_schedules(storage, user_id):
        if not runs_on(schedule, day):
            continue
        medication = storage.get_medication(schedule.medication_id)
        if medication is None:
            continue
        result.append(NextDose(
            schedule_id=schedule.id,
            medication_id=medication.id,
            medication_name=medication.name,
            time=schedule.time,
            eye=schedule.eye,
            dosage=medication.dosage,
            cap_color=medication.cap_color,
            date=day,
        ))
    result.sort(key=lambda d: d.time)
    return result
