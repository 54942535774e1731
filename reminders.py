"""
Periodic reminder poller.

Each tick re-queries the next-dose projection and announces doses that fall
within the lead time. A dose whose time passed while no tick ran (process
asleep, interval too long) is never announced afterwards.
"""
import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Set, Tuple

from apscheduler.schedulers.asyncio import AsyncIOScheduler

import config
from dosing import compute_next_doses
from schemas import NextDose, Reminder
from storage import Storage

logger = logging.getLogger(__name__)

EYE_LABELS = {"left": "left eye", "right": "right eye", "both": "both eyes"}


def log_reminder(reminder: Reminder):
    logger.info("Reminder: %s - %s", reminder.title, reminder.body)


def dose_due_at(dose: NextDose) -> datetime:
    hours, minutes = (int(part) for part in dose.time.split(":"))
    return datetime(dose.date.year, dose.date.month, dose.date.day, hours, minutes)


class ReminderPoller:
    def __init__(self, storage: Storage, user_id: int,
                 notify: Callable[[Reminder], None] = log_reminder,
                 lead_minutes: int = 5, interval_seconds: int = 60,
                 appointment_lead_hours: int = 24):
        self.storage = storage
        self.user_id = user_id
        self.notify = notify
        self.lead = timedelta(minutes=lead_minutes)
        self.interval_seconds = interval_seconds
        self.appointment_lead = timedelta(hours=appointment_lead_hours)
        self.announced: Set[Tuple[int, str, str]] = set()
        self.scheduler: Optional[AsyncIOScheduler] = None

    def tick(self, now: Optional[datetime] = None) -> List[Reminder]:
        now = now or config.local_now()
        self._forget_before(now)
        reminders = self._dose_reminders(now) + self._appointment_reminders(now)
        for reminder in reminders:
            self.notify(reminder)
        return reminders

    def _forget_before(self, now: datetime):
        today = now.date().isoformat()
        self.announced = {key for key in self.announced if key[1] >= today}

    def _dose_reminders(self, now: datetime) -> List[Reminder]:
        # Doses within the lead window are always today or just past midnight,
        # so the first entries of the projection are enough.
        reminders = []
        for dose in compute_next_doses(self.storage, self.user_id, count=50, now=now):
            due_at = dose_due_at(dose)
            if due_at > now + self.lead:
                break
            key = (dose.schedule_id, dose.date.isoformat(), dose.time)
            if due_at < now or key in self.announced:
                continue
            self.announced.add(key)
            reminders.append(Reminder(
                kind="dose",
                title=f"Time for {dose.medication_name}",
                body=f"Due at {due_at.strftime('%I:%M %p').lstrip('0')} for {EYE_LABELS.get(dose.eye, dose.eye)}",
                tag=f"med-reminder-{dose.medication_id}-{dose.time}",
                due_at=due_at,
            ))
        return reminders

    def _appointment_reminders(self, now: datetime) -> List[Reminder]:
        reminders = []
        for appointment in self.storage.get_appointments(self.user_id):
            if appointment.reminder_sent:
                continue
            if not now <= appointment.date_time <= now + self.appointment_lead:
                continue
            self.storage.update_appointment(appointment.id, {"reminder_sent": True})
            where = f" at {appointment.location}" if appointment.location else ""
            reminders.append(Reminder(
                kind="appointment",
                title=f"Eye appointment with {appointment.doctor_name}",
                body=f"{appointment.appointment_type}{where} on {appointment.date_time.strftime('%B %d, %Y %H:%M')}",
                tag=f"appointment-reminder-{appointment.id}",
                due_at=appointment.date_time,
            ))
        return reminders

    def _run(self):
        try:
            self.tick()
        except Exception:
            # A failed tick must not stop later ones
            logger.exception("Reminder tick failed")

    def start(self):
        if self.scheduler is not None:
            return
        self.scheduler = AsyncIOScheduler()
        self.scheduler.add_job(self._run, "interval", seconds=self.interval_seconds, id="reminders")
        self.scheduler.start()
        logger.info("Reminder poller started, every %ss with %s lead", self.interval_seconds, self.lead)

    def shutdown(self):
        if self.scheduler is None:
            return
        self.scheduler.shutdown(wait=False)
        self.scheduler = None
        logger.info("Reminder poller stopped")
