import os
import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import config
import services
from adherence import adherence_rate, compute_adherence_stats
from dosing import compute_next_doses, doses_for_day
from errors import NotFoundError, ValidationError
from inventory import InventoryPolicy, medication_inventory
from reminders import ReminderPoller
from schemas import (
    AdherenceDay, AdherenceSummary, Appointment, AppointmentIn, AppointmentUpdate, Dose, DoseIn, Medication,
    MedicationIn, MedicationInventory, MedicationUpdate, MedicationWithSchedules, NextDose,
    Schedule, ScheduleIn, ScheduleUpdate, ScheduleWithMedication, User,
)
from storage import Storage, get_storage

config.configure_logging()
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    poller = None
    if config.REMINDERS_ENABLED:
        poller = ReminderPoller(
            get_storage(),
            config.DEFAULT_USER_ID,
            lead_minutes=config.REMINDER_LEAD_MINUTES,
            interval_seconds=config.REMINDER_INTERVAL_SECONDS,
            appointment_lead_hours=config.APPOINTMENT_REMINDER_HOURS,
        )
        poller.start()
    yield
    if poller is not None:
        poller.shutdown()


app = FastAPI(title="EyeCare Tracker API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------- Helpers ----------
ENTITY_BY_PREFIX = {
    "medications": "medication",
    "schedules": "schedule",
    "doses": "dose",
    "appointments": "appointment",
}


def entity_for_path(path: str) -> Optional[str]:
    parts = [p for p in path.split("/") if p]
    if len(parts) >= 2 and parts[0] == "api":
        return ENTITY_BY_PREFIX.get(parts[1])
    return None


def field_errors(exc: RequestValidationError):
    errors = []
    for err in exc.errors():
        # first loc entry is body/query/path
        loc = [str(part) for part in err.get("loc", ())[1:]]
        errors.append({"field": ".".join(loc) or "body", "message": err.get("msg", "Invalid value")})
    return errors


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    entity = entity_for_path(request.url.path)
    message = f"Invalid {entity} data" if entity else "Invalid request data"
    errors = field_errors(exc)
    logger.warning("%s on %s %s: %s", message, request.method, request.url.path, [e["field"] for e in errors])
    return JSONResponse(status_code=400, content={"message": message, "errors": errors})


@app.exception_handler(ValidationError)
async def validation_handler(request: Request, exc: ValidationError):
    logger.warning("%s on %s %s", exc.message, request.method, request.url.path)
    return JSONResponse(status_code=400, content={"message": exc.message, "errors": exc.errors})


@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": exc.detail})


# ---------- Dependencies ----------
def get_store() -> Storage:
    return get_storage()


def get_policy() -> InventoryPolicy:
    return services.default_policy()


def get_current_user() -> User:
    # No authentication: every request acts as the default user
    return User(id=config.DEFAULT_USER_ID, username=config.DEFAULT_USERNAME)


# ---------- Routes ----------
@app.get("/")
def read_root():
    return {"message": "EyeCare Tracker API is running"}


@app.get("/api/user", response_model=User)
def read_user(user: User = Depends(get_current_user)):
    return user


# ---- Medications ----
@app.get("/api/medications", response_model=List[Medication])
def list_medications(user: User = Depends(get_current_user), store: Storage = Depends(get_store)):
    return store.get_medications(user.id)


@app.get("/api/medications/{medication_id}", response_model=Medication)
def read_medication(medication_id: int, user: User = Depends(get_current_user),
                    store: Storage = Depends(get_store)):
    return services.get_owned_medication(store, user.id, medication_id)


@app.post("/api/medications", response_model=Medication, status_code=201)
def create_medication(payload: MedicationIn, user: User = Depends(get_current_user),
                      store: Storage = Depends(get_store)):
    return services.create_medication(store, user.id, payload)


@app.put("/api/medications/{medication_id}", response_model=Medication)
def update_medication(medication_id: int, payload: MedicationUpdate, user: User = Depends(get_current_user),
                      store: Storage = Depends(get_store)):
    return services.update_medication(store, user.id, medication_id, payload)


@app.delete("/api/medications/{medication_id}", status_code=204)
def delete_medication(medication_id: int, user: User = Depends(get_current_user),
                      store: Storage = Depends(get_store)):
    if not services.delete_medication(store, user.id, medication_id):
        raise HTTPException(status_code=404, detail="Medication not found")
    return Response(status_code=204)


@app.get("/api/medications/{medication_id}/inventory", response_model=MedicationInventory)
def read_medication_inventory(medication_id: int, user: User = Depends(get_current_user),
                              store: Storage = Depends(get_store)):
    medication = services.get_owned_medication(store, user.id, medication_id)
    inventory = medication_inventory(medication)
    if inventory is None:
        raise HTTPException(status_code=404, detail="Medication does not track inventory")
    return inventory


@app.get("/api/inventory", response_model=List[MedicationInventory])
def list_inventory(user: User = Depends(get_current_user), store: Storage = Depends(get_store)):
    result = []
    for medication in store.get_medications(user.id):
        inventory = medication_inventory(medication)
        if inventory is not None:
            result.append(inventory)
    return result


# ---- Schedules ----
@app.get("/api/schedules", response_model=List[Schedule])
def list_schedules(user: User = Depends(get_current_user), store: Storage = Depends(get_store)):
    return store.get_schedules(user.id)


@app.get("/api/schedules/{schedule_id}", response_model=Schedule)
def read_schedule(schedule_id: int, user: User = Depends(get_current_user), store: Storage = Depends(get_store)):
    return services.get_owned_schedule(store, user.id, schedule_id)


@app.post("/api/schedules", response_model=Schedule, status_code=201)
def create_schedule(payload: ScheduleIn, user: User = Depends(get_current_user),
                    store: Storage = Depends(get_store)):
    return services.create_schedule(store, user.id, payload)


@app.put("/api/schedules/{schedule_id}", response_model=Schedule)
def update_schedule(schedule_id: int, payload: ScheduleUpdate, user: User = Depends(get_current_user),
                    store: Storage = Depends(get_store)):
    return services.update_schedule(store, user.id, schedule_id, payload)


@app.delete("/api/schedules/{schedule_id}", status_code=204)
def delete_schedule(schedule_id: int, user: User = Depends(get_current_user), store: Storage = Depends(get_store)):
    services.delete_schedule(store, user.id, schedule_id)
    return Response(status_code=204)


# ---- Doses ----
@app.get("/api/doses", response_model=List[Dose])
def list_doses(start_date: Optional[datetime] = Query(None, alias="startDate"),
               end_date: Optional[datetime] = Query(None, alias="endDate"),
               user: User = Depends(get_current_user), store: Storage = Depends(get_store)):
    if start_date and end_date:
        return store.get_doses_for_date_range(user.id, start_date, end_date)
    return store.get_doses(user.id)


@app.post("/api/doses", response_model=Dose, status_code=201)
def record_dose(payload: DoseIn, user: User = Depends(get_current_user), store: Storage = Depends(get_store),
                policy: InventoryPolicy = Depends(get_policy)):
    return services.record_dose(store, user.id, payload, policy)


@app.delete("/api/doses/{dose_id}", status_code=204)
def delete_dose(dose_id: int, user: User = Depends(get_current_user), store: Storage = Depends(get_store),
                policy: InventoryPolicy = Depends(get_policy)):
    services.delete_dose(store, user.id, dose_id, policy)
    return Response(status_code=204)


# ---- Appointments ----
@app.get("/api/appointments", response_model=List[Appointment])
def list_appointments(user: User = Depends(get_current_user), store: Storage = Depends(get_store)):
    return store.get_appointments(user.id)


@app.get("/api/appointments/next", response_model=Appointment)
def read_next_appointment(user: User = Depends(get_current_user), store: Storage = Depends(get_store)):
    return services.next_appointment(store, user.id)


@app.get("/api/appointments/{appointment_id}", response_model=Appointment)
def read_appointment(appointment_id: int, user: User = Depends(get_current_user),
                     store: Storage = Depends(get_store)):
    return services.get_owned_appointment(store, user.id, appointment_id)


@app.post("/api/appointments", response_model=Appointment, status_code=201)
def create_appointment(payload: AppointmentIn, user: User = Depends(get_current_user),
                       store: Storage = Depends(get_store)):
    return services.create_appointment(store, user.id, payload)


@app.put("/api/appointments/{appointment_id}", response_model=Appointment)
def update_appointment(appointment_id: int, payload: AppointmentUpdate, user: User = Depends(get_current_user),
                       store: Storage = Depends(get_store)):
    return services.update_appointment(store, user.id, appointment_id, payload)


@app.delete("/api/appointments/{appointment_id}", status_code=204)
def delete_appointment(appointment_id: int, user: User = Depends(get_current_user),
                       store: Storage = Depends(get_store)):
    services.delete_appointment(store, user.id, appointment_id)
    return Response(status_code=204)


# ---- Views ----
@app.get("/api/medications-with-schedules", response_model=List[MedicationWithSchedules])
def medications_with_schedules(user: User = Depends(get_current_user), store: Storage = Depends(get_store)):
    return services.get_medications_with_schedules(store, user.id)


@app.get("/api/schedules-with-medications", response_model=List[ScheduleWithMedication])
def schedules_with_medications(user: User = Depends(get_current_user), store: Storage = Depends(get_store)):
    return services.get_schedules_with_medications(store, user.id)


@app.get("/api/next-doses", response_model=List[NextDose])
def next_doses(count: int = Query(5, ge=0), user: User = Depends(get_current_user),
               store: Storage = Depends(get_store)):
    return compute_next_doses(store, user.id, count)


@app.get("/api/today", response_model=List[NextDose])
def today_schedule(user: User = Depends(get_current_user), store: Storage = Depends(get_store)):
    return doses_for_day(store, user.id, config.local_now().date())


@app.get("/api/adherence-stats", response_model=List[AdherenceDay])
def adherence_stats(days: int = Query(7, ge=1), user: User = Depends(get_current_user),
                    store: Storage = Depends(get_store)):
    return compute_adherence_stats(store, user.id, days)


@app.get("/api/adherence-stats/summary", response_model=AdherenceSummary)
def adherence_summary(days: int = Query(7, ge=1), user: User = Depends(get_current_user),
                      store: Storage = Depends(get_store)):
    stats = compute_adherence_stats(store, user.id, days)
    return AdherenceSummary(days=stats, rate=adherence_rate(stats))


@app.get("/test")
def test_storage(store: Storage = Depends(get_store)):
    response = {
        "backend": "✅ Running",
        "storage": config.STORAGE_BACKEND,
        "database": "❌ Not Available",
        "collections": {},
    }

    try:
        info = store.describe()
        response["collections"] = info.get("collections", {})
        response["database"] = "✅ Connected & Working"
    except Exception as e:
        response["database"] = f"❌ Error: {str(e)[:50]}"

    response["database_url"] = "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set"
    response["database_name"] = "✅ Set" if os.getenv("DATABASE_NAME") else "❌ Not Set"

    return response


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
