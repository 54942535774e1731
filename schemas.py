"""
Schemas for the EyeCare Tracker

Each stored model corresponds to a MongoDB collection. The collection name is the
lowercase of the class name (Medication -> "medication"). Input models carry the
field validation; projection models are computed per request and never stored.

Fields are snake_case in Python and camelCase on the wire.
"""
import re
from datetime import datetime, date as dt_date
from typing import Annotated, List, Literal, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, StringConstraints
from pydantic.alias_generators import to_camel

WEEKDAYS = ("Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday")

TIME_PATTERN = re.compile(r"^([0-1]?[0-9]|2[0-3]):([0-5][0-9])$")

Eye = Literal["left", "right", "both"]
Weekday = Literal["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]
RefillTier = Literal["ok", "warning", "critical"]


def normalize_time(value: str) -> str:
    match = TIME_PATTERN.match(value.strip())
    if not match:
        raise ValueError("Time must be in HH:MM format")
    hours, minutes = match.groups()
    return f"{int(hours):02d}:{minutes}"


def unique_weekdays(days: List[str]) -> List[str]:
    if not days:
        raise ValueError("At least one day of the week is required")
    return [d for d in WEEKDAYS if d in set(days)]


TimeOfDay = Annotated[str, AfterValidator(normalize_time)]
HexColor = Annotated[str, StringConstraints(pattern=r"^#([A-Fa-f0-9]{6}|[A-Fa-f0-9]{3})$")]
RequiredText = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
WeekdaySet = Annotated[List[Weekday], AfterValidator(unique_weekdays)]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class User(CamelModel):
    id: int
    username: str


# ---------- Medications ----------
class MedicationIn(CamelModel):
    name: RequiredText = Field(..., description="Medication name")
    dosage: Optional[str] = Field(None, description="Dosage e.g. 1 drop")
    instructions: Optional[str] = Field(None, description="Free-form instructions")
    eye: Eye = Field("both", description="Target eye")
    cap_color: HexColor = Field("#000000", description="Bottle cap color as hex")
    expiry_date: Optional[datetime] = Field(None, description="Bottle expiry date")
    bottle_open_date: Optional[datetime] = Field(None, description="Date the bottle was opened")
    remaining_doses: Optional[int] = Field(None, ge=0, description="Doses left in the bottle")
    total_doses: Optional[int] = Field(None, ge=1, description="Doses in a full bottle")


class MedicationUpdate(CamelModel):
    name: Optional[RequiredText] = None
    dosage: Optional[str] = None
    instructions: Optional[str] = None
    eye: Optional[Eye] = None
    cap_color: Optional[HexColor] = None
    expiry_date: Optional[datetime] = None
    bottle_open_date: Optional[datetime] = None
    remaining_doses: Optional[int] = Field(None, ge=0)
    total_doses: Optional[int] = Field(None, ge=1)


class Medication(MedicationIn):
    id: int
    user_id: int = Field(..., description="Owner user ID")
    created_at: datetime


# ---------- Schedules ----------
class ScheduleIn(CamelModel):
    medication_id: int = Field(..., description="Medication this schedule belongs to")
    time: TimeOfDay = Field(..., description="Time of day in HH:MM 24h format")
    days_of_week: WeekdaySet = Field(..., description="Weekday names, e.g. ['Monday', 'Friday']")
    eye: Eye
    active: bool = True


class ScheduleUpdate(CamelModel):
    time: Optional[TimeOfDay] = None
    days_of_week: Optional[WeekdaySet] = None
    eye: Optional[Eye] = None
    active: Optional[bool] = None


class Schedule(ScheduleIn):
    id: int
    user_id: int
    created_at: datetime


# ---------- Doses ----------
class DoseIn(CamelModel):
    medication_id: int
    schedule_id: Optional[int] = None
    eye: Eye
    timestamp: Optional[datetime] = Field(None, description="When the dose was taken, defaults to now")
    skipped: bool = False
    notes: Optional[str] = None


class Dose(DoseIn):
    id: int
    user_id: int
    timestamp: datetime


# ---------- Appointments ----------
class AppointmentIn(CamelModel):
    doctor_name: RequiredText
    appointment_type: RequiredText
    date_time: datetime
    location: Optional[str] = None
    notes: Optional[str] = None
    reminder_sent: bool = False


class AppointmentUpdate(CamelModel):
    doctor_name: Optional[RequiredText] = None
    appointment_type: Optional[RequiredText] = None
    date_time: Optional[datetime] = None
    location: Optional[str] = None
    notes: Optional[str] = None
    reminder_sent: Optional[bool] = None


class Appointment(AppointmentIn):
    id: int
    user_id: int


# ---------- Projections ----------
class NextDose(CamelModel):
    schedule_id: int
    medication_id: int
    medication_name: str
    time: str
    eye: str
    dosage: Optional[str] = None
    cap_color: Optional[str] = None
    date: dt_date


class AdherenceDay(CamelModel):
    date: str
    scheduled: int
    completed: int


class AdherenceSummary(CamelModel):
    days: List[AdherenceDay]
    rate: Optional[float] = Field(None, description="Completed as a percentage of scheduled, may exceed 100")


class RefillStatus(CamelModel):
    message: str
    tier: RefillTier


class MedicationInventory(CamelModel):
    medication_id: int
    name: str
    remaining_doses: int
    total_doses: int
    percent: int
    message: str
    tier: RefillTier


class MedicationWithSchedules(Medication):
    schedules: List[Schedule] = []


class ScheduleWithMedication(Schedule):
    medication: Medication


class Reminder(CamelModel):
    kind: Literal["dose", "appointment"]
    title: str
    body: str
    tag: str
    due_at: datetime
