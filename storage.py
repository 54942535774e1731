"""
Entity store for medications, schedules, doses and appointments.

Pure CRUD keyed by numeric ids. Business rules (inventory counters, cascades,
ownership) live in services.py so both backends behave identically.
"""
import itertools
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

import config
import database
from schemas import (
    Appointment, AppointmentIn, Dose, DoseIn, Medication, MedicationIn, Schedule, ScheduleIn,
)

logger = logging.getLogger(__name__)


class Storage(ABC):
    # Medications
    @abstractmethod
    def get_medications(self, user_id: int) -> List[Medication]: ...

    @abstractmethod
    def get_medication(self, medication_id: int) -> Optional[Medication]: ...

    @abstractmethod
    def create_medication(self, user_id: int, data: MedicationIn) -> Medication: ...

    @abstractmethod
    def update_medication(self, medication_id: int, changes: Dict[str, Any]) -> Optional[Medication]: ...

    @abstractmethod
    def delete_medication(self, medication_id: int) -> bool: ...

    # Schedules
    @abstractmethod
    def get_schedules(self, user_id: int) -> List[Schedule]: ...

    @abstractmethod
    def get_schedules_by_medication(self, medication_id: int) -> List[Schedule]: ...

    @abstractmethod
    def get_schedule(self, schedule_id: int) -> Optional[Schedule]: ...

    @abstractmethod
    def create_schedule(self, user_id: int, data: ScheduleIn) -> Schedule: ...

    @abstractmethod
    def update_schedule(self, schedule_id: int, changes: Dict[str, Any]) -> Optional[Schedule]: ...

    @abstractmethod
    def delete_schedule(self, schedule_id: int) -> bool: ...

    # Doses
    @abstractmethod
    def get_doses(self, user_id: int) -> List[Dose]: ...

    @abstractmethod
    def get_doses_by_medication(self, medication_id: int) -> List[Dose]: ...

    @abstractmethod
    def get_dose(self, dose_id: int) -> Optional[Dose]: ...

    @abstractmethod
    def create_dose(self, user_id: int, data: DoseIn) -> Dose: ...

    @abstractmethod
    def delete_dose(self, dose_id: int) -> bool: ...

    # Appointments
    @abstractmethod
    def get_appointments(self, user_id: int) -> List[Appointment]: ...

    @abstractmethod
    def get_appointment(self, appointment_id: int) -> Optional[Appointment]: ...

    @abstractmethod
    def create_appointment(self, user_id: int, data: AppointmentIn) -> Appointment: ...

    @abstractmethod
    def update_appointment(self, appointment_id: int, changes: Dict[str, Any]) -> Optional[Appointment]: ...

    @abstractmethod
    def delete_appointment(self, appointment_id: int) -> bool: ...

    def get_doses_for_date_range(self, user_id: int, start: datetime, end: datetime) -> List[Dose]:
        """Doses with start <= timestamp <= end, compared in local time."""
        start, end = config.to_local(start), config.to_local(end)
        return [d for d in self.get_doses(user_id) if start <= config.to_local(d.timestamp) <= end]

    def describe(self) -> Dict[str, Any]:
        return {"backend": type(self).__name__}


class MemStorage(Storage):
    """Dict-backed store. Ids start at 1 per entity kind."""

    def __init__(self):
        self.medications: Dict[int, Medication] = {}
        self.schedules: Dict[int, Schedule] = {}
        self.doses: Dict[int, Dose] = {}
        self.appointments: Dict[int, Appointment] = {}
        self._ids = {name: itertools.count(1) for name in ("medication", "schedule", "dose", "appointment")}

    def _next_id(self, kind: str) -> int:
        return next(self._ids[kind])

    # Medications
    def get_medications(self, user_id):
        return [m for m in self.medications.values() if m.user_id == user_id]

    def get_medication(self, medication_id):
        return self.medications.get(medication_id)

    def create_medication(self, user_id, data):
        medication = Medication(
            **data.model_dump(), id=self._next_id("medication"), user_id=user_id, created_at=config.local_now()
        )
        self.medications[medication.id] = medication
        return medication

    def update_medication(self, medication_id, changes):
        existing = self.medications.get(medication_id)
        if existing is None:
            return None
        updated = existing.model_copy(update=changes)
        self.medications[medication_id] = updated
        return updated

    def delete_medication(self, medication_id):
        return self.medications.pop(medication_id, None) is not None

    # Schedules
    def get_schedules(self, user_id):
        return [s for s in self.schedules.values() if s.user_id == user_id]

    def get_schedules_by_medication(self, medication_id):
        return [s for s in self.schedules.values() if s.medication_id == medication_id]

    def get_schedule(self, schedule_id):
        return self.schedules.get(schedule_id)

    def create_schedule(self, user_id, data):
        schedule = Schedule(
            **data.model_dump(), id=self._next_id("schedule"), user_id=user_id, created_at=config.local_now()
        )
        self.schedules[schedule.id] = schedule
        return schedule

    def update_schedule(self, schedule_id, changes):
        existing = self.schedules.get(schedule_id)
        if existing is None:
            return None
        updated = existing.model_copy(update=changes)
        self.schedules[schedule_id] = updated
        return updated

    def delete_schedule(self, schedule_id):
        return self.schedules.pop(schedule_id, None) is not None

    # Doses
    def get_doses(self, user_id):
        return [d for d in self.doses.values() if d.user_id == user_id]

    def get_doses_by_medication(self, medication_id):
        return [d for d in self.doses.values() if d.medication_id == medication_id]

    def get_dose(self, dose_id):
        return self.doses.get(dose_id)

    def create_dose(self, user_id, data):
        fields = data.model_dump()
        fields["timestamp"] = data.timestamp or config.local_now()
        dose = Dose(**fields, id=self._next_id("dose"), user_id=user_id)
        self.doses[dose.id] = dose
        return dose

    def delete_dose(self, dose_id):
        return self.doses.pop(dose_id, None) is not None

    # Appointments
    def get_appointments(self, user_id):
        return sorted(
            (a for a in self.appointments.values() if a.user_id == user_id),
            key=lambda a: a.date_time,
        )

    def get_appointment(self, appointment_id):
        return self.appointments.get(appointment_id)

    def create_appointment(self, user_id, data):
        appointment = Appointment(**data.model_dump(), id=self._next_id("appointment"), user_id=user_id)
        self.appointments[appointment.id] = appointment
        return appointment

    def update_appointment(self, appointment_id, changes):
        existing = self.appointments.get(appointment_id)
        if existing is None:
            return None
        updated = existing.model_copy(update=changes)
        self.appointments[appointment_id] = updated
        return updated

    def delete_appointment(self, appointment_id):
        return self.appointments.pop(appointment_id, None) is not None

    def describe(self):
        return {
            "backend": "memory",
            "collections": {
                "medication": len(self.medications),
                "schedule": len(self.schedules),
                "dose": len(self.doses),
                "appointment": len(self.appointments),
            },
        }


class MongoStorage(Storage):
    """MongoDB-backed store. One collection per entity plus `counters` for ids."""

    def __init__(self, db):
        if db is None:
            raise RuntimeError("Database not configured")
        self.db = db

    def _one(self, model, collection, doc_id):
        doc = database.get_document(self.db, collection, doc_id)
        return model(**doc) if doc else None

    def _many(self, model, collection, filter_dict, sort=None):
        return [model(**doc) for doc in database.get_documents(self.db, collection, filter_dict, sort=sort)]

    def _update(self, model, collection, doc_id, changes):
        doc = database.update_document(self.db, collection, doc_id, changes)
        return model(**doc) if doc else None

    # Medications
    def get_medications(self, user_id):
        return self._many(Medication, "medication", {"user_id": user_id}, sort=[("id", 1)])

    def get_medication(self, medication_id):
        return self._one(Medication, "medication", medication_id)

    def create_medication(self, user_id, data):
        doc = {**data.model_dump(), "user_id": user_id, "created_at": config.local_now()}
        return Medication(**database.create_document(self.db, "medication", doc))

    def update_medication(self, medication_id, changes):
        return self._update(Medication, "medication", medication_id, changes)

    def delete_medication(self, medication_id):
        return database.delete_document(self.db, "medication", medication_id)

    # Schedules
    def get_schedules(self, user_id):
        return self._many(Schedule, "schedule", {"user_id": user_id}, sort=[("id", 1)])

    def get_schedules_by_medication(self, medication_id):
        return self._many(Schedule, "schedule", {"medication_id": medication_id}, sort=[("id", 1)])

    def get_schedule(self, schedule_id):
        return self._one(Schedule, "schedule", schedule_id)

    def create_schedule(self, user_id, data):
        doc = {**data.model_dump(), "user_id": user_id, "created_at": config.local_now()}
        return Schedule(**database.create_document(self.db, "schedule", doc))

    def update_schedule(self, schedule_id, changes):
        return self._update(Schedule, "schedule", schedule_id, changes)

    def delete_schedule(self, schedule_id):
        return database.delete_document(self.db, "schedule", schedule_id)

    # Doses
    def get_doses(self, user_id):
        return self._many(Dose, "dose", {"user_id": user_id}, sort=[("timestamp", 1)])

    def get_doses_by_medication(self, medication_id):
        return self._many(Dose, "dose", {"medication_id": medication_id}, sort=[("timestamp", 1)])

    def get_doses_for_date_range(self, user_id, start, end):
        query = {
            "user_id": user_id,
            "timestamp": {"$gte": config.to_local(start), "$lte": config.to_local(end)},
        }
        return self._many(Dose, "dose", query, sort=[("timestamp", 1)])

    def get_dose(self, dose_id):
        return self._one(Dose, "dose", dose_id)

    def create_dose(self, user_id, data):
        doc = {**data.model_dump(), "user_id": user_id}
        doc["timestamp"] = data.timestamp or config.local_now()
        return Dose(**database.create_document(self.db, "dose", doc))

    def delete_dose(self, dose_id):
        return database.delete_document(self.db, "dose", dose_id)

    # Appointments
    def get_appointments(self, user_id):
        return self._many(Appointment, "appointment", {"user_id": user_id}, sort=[("date_time", 1)])

    def get_appointment(self, appointment_id):
        return self._one(Appointment, "appointment", appointment_id)

    def create_appointment(self, user_id, data):
        doc = {**data.model_dump(), "user_id": user_id}
        return Appointment(**database.create_document(self.db, "appointment", doc))

    def update_appointment(self, appointment_id, changes):
        return self._update(Appointment, "appointment", appointment_id, changes)

    def delete_appointment(self, appointment_id):
        return database.delete_document(self.db, "appointment", appointment_id)

    def describe(self):
        return {
            "backend": "mongo",
            "database_name": self.db.name,
            "collections": self.db.list_collection_names()[:10],
        }


_storage: Optional[Storage] = None


def get_storage() -> Storage:
    """Process-wide store selected by STORAGE_BACKEND."""
    global _storage
    if _storage is None:
        if config.STORAGE_BACKEND == "mongo":
            _storage = MongoStorage(database.db)
        else:
            _storage = MemStorage()
        logger.info("Using %s storage backend", config.STORAGE_BACKEND)
    return _storage
