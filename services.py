"""
Write paths and owned lookups on top of the entity store.

Anything belonging to another user is reported as not found.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional

import config
from errors import NotFoundError, ValidationError
from inventory import InventoryPolicy
from schemas import (
    Appointment, AppointmentIn, AppointmentUpdate, Dose, DoseIn, Medication, MedicationIn,
    MedicationUpdate, MedicationWithSchedules, Schedule, ScheduleIn, ScheduleUpdate,
    ScheduleWithMedication,
)
from storage import Storage

logger = logging.getLogger(__name__)

MEDICATION_REQUIRED = ("name", "eye", "cap_color")
SCHEDULE_REQUIRED = ("time", "days_of_week", "eye", "active")
APPOINTMENT_REQUIRED = ("doctor_name", "appointment_type", "date_time", "reminder_sent")


def default_policy() -> InventoryPolicy:
    return InventoryPolicy(
        floor_at_zero=config.INVENTORY_FLOOR_AT_ZERO,
        cap_at_total=config.INVENTORY_CAP_AT_TOTAL,
    )


def _changes(update, required: Iterable[str], entity: str) -> Dict[str, Any]:
    changes = update.model_dump(exclude_unset=True)
    for field in required:
        if field in changes and changes[field] is None:
            raise ValidationError.for_field(field, f"{field} cannot be null", entity=entity)
    return changes


# ---------- Owned lookups ----------
def get_owned_medication(storage: Storage, user_id: int, medication_id: int) -> Medication:
    medication = storage.get_medication(medication_id)
    if medication is None or medication.user_id != user_id:
        raise NotFoundError("medication", medication_id)
    return medication


def get_owned_schedule(storage: Storage, user_id: int, schedule_id: int) -> Schedule:
    schedule = storage.get_schedule(schedule_id)
    if schedule is None or schedule.user_id != user_id:
        raise NotFoundError("schedule", schedule_id)
    return schedule


def get_owned_dose(storage: Storage, user_id: int, dose_id: int) -> Dose:
    dose = storage.get_dose(dose_id)
    if dose is None or dose.user_id != user_id:
        raise NotFoundError("dose", dose_id)
    return dose


def get_owned_appointment(storage: Storage, user_id: int, appointment_id: int) -> Appointment:
    appointment = storage.get_appointment(appointment_id)
    if appointment is None or appointment.user_id != user_id:
        raise NotFoundError("appointment", appointment_id)
    return appointment


# ---------- Medications ----------
def create_medication(storage: Storage, user_id: int, payload: MedicationIn) -> Medication:
    medication = storage.create_medication(user_id, payload)
    logger.info("Created medication %s for user %s", medication.id, user_id)
    return medication


def update_medication(storage: Storage, user_id: int, medication_id: int,
                      payload: MedicationUpdate) -> Medication:
    get_owned_medication(storage, user_id, medication_id)
    changes = _changes(payload, MEDICATION_REQUIRED, "medication")
    return storage.update_medication(medication_id, changes)


def delete_medication(storage: Storage, user_id: int, medication_id: int) -> bool:
    """Delete a medication with every schedule and dose that references it."""
    medication = storage.get_medication(medication_id)
    if medication is None or medication.user_id != user_id:
        return False

    schedules = storage.get_schedules_by_medication(medication_id)
    for schedule in schedules:
        storage.delete_schedule(schedule.id)
    doses = storage.get_doses_by_medication(medication_id)
    for dose in doses:
        storage.delete_dose(dose.id)

    deleted = storage.delete_medication(medication_id)
    logger.info(
        "Deleted medication %s with %s schedules and %s doses",
        medication_id, len(schedules), len(doses),
    )
    return deleted


def get_medications_with_schedules(storage: Storage, user_id: int) -> List[MedicationWithSchedules]:
    return [
        MedicationWithSchedules(**m.model_dump(), schedules=storage.get_schedules_by_medication(m.id))
        for m in storage.get_medications(user_id)
    ]


# ---------- Schedules ----------
def create_schedule(storage: Storage, user_id: int, payload: ScheduleIn) -> Schedule:
    get_owned_medication(storage, user_id, payload.medication_id)
    return storage.create_schedule(user_id, payload)


def update_schedule(storage: Storage, user_id: int, schedule_id: int,
                    payload: ScheduleUpdate) -> Schedule:
    get_owned_schedule(storage, user_id, schedule_id)
    changes = _changes(payload, SCHEDULE_REQUIRED, "schedule")
    return storage.update_schedule(schedule_id, changes)


def delete_schedule(storage: Storage, user_id: int, schedule_id: int) -> None:
    get_owned_schedule(storage, user_id, schedule_id)
    storage.delete_schedule(schedule_id)


def get_schedules_with_medications(storage: Storage, user_id: int) -> List[ScheduleWithMedication]:
    result = []
    for schedule in storage.get_schedules(user_id):
        medication = storage.get_medication(schedule.medication_id)
        if medication:
            result.append(ScheduleWithMedication(**schedule.model_dump(), medication=medication))
    return result


# ---------- Doses ----------
def record_dose(storage: Storage, user_id: int, payload: DoseIn,
                policy: Optional[InventoryPolicy] = None) -> Dose:
    """Persist a dose; a taken (not skipped) dose uses one from the bottle."""
    policy = policy or default_policy()
    medication = get_owned_medication(storage, user_id, payload.medication_id)
    if payload.schedule_id is not None:
        get_owned_schedule(storage, user_id, payload.schedule_id)

    timestamp = config.to_local(payload.timestamp) if payload.timestamp else config.local_now()
    dose = storage.create_dose(user_id, payload.model_copy(update={"timestamp": timestamp}))

    if not dose.skipped and medication.remaining_doses is not None:
        remaining = policy.decrement(medication.remaining_doses)
        storage.update_medication(medication.id, {"remaining_doses": remaining})
        logger.info("Recorded dose %s, medication %s has %s doses left", dose.id, medication.id, remaining)
    else:
        logger.info("Recorded dose %s (skipped=%s) for medication %s", dose.id, dose.skipped, medication.id)
    return dose


def delete_dose(storage: Storage, user_id: int, dose_id: int,
                policy: Optional[InventoryPolicy] = None) -> None:
    """Delete a dose and give a taken dose back to the bottle."""
    policy = policy or default_policy()
    dose = get_owned_dose(storage, user_id, dose_id)

    if not dose.skipped:
        medication = storage.get_medication(dose.medication_id)
        if medication is not None and medication.remaining_doses is not None:
            remaining = policy.increment(medication.remaining_doses, medication.total_doses)
            storage.update_medication(medication.id, {"remaining_doses": remaining})

    storage.delete_dose(dose_id)
    logger.info("Deleted dose %s", dose_id)


# ---------- Appointments ----------
def create_appointment(storage: Storage, user_id: int, payload: AppointmentIn) -> Appointment:
    payload = payload.model_copy(update={"date_time": config.to_local(payload.date_time)})
    return storage.create_appointment(user_id, payload)


def update_appointment(storage: Storage, user_id: int, appointment_id: int,
                       payload: AppointmentUpdate) -> Appointment:
    get_owned_appointment(storage, user_id, appointment_id)
    changes = _changes(payload, APPOINTMENT_REQUIRED, "appointment")
    if "date_time" in changes:
        changes["date_time"] = config.to_local(changes["date_time"])
    return storage.update_appointment(appointment_id, changes)


def delete_appointment(storage: Storage, user_id: int, appointment_id: int) -> None:
    get_owned_appointment(storage, user_id, appointment_id)
    storage.delete_appointment(appointment_id)


def next_appointment(storage: Storage, user_id: int, now=None) -> Appointment:
    now = now or config.local_now()
    for appointment in storage.get_appointments(user_id):
        if appointment.date_time >= now:
            return appointment
    raise NotFoundError("appointment")
