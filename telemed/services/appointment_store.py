"""
Appointment Store
Persistence for appointments: creation with slot-conflict detection,
participant queries and status writes. Status is only written from
telemed.services.lifecycle.
"""
import logging
from datetime import timedelta
from typing import List, Optional

from telemed.errors import Conflict, NotFound
from telemed.extensions import db
from telemed.models import Appointment
from telemed.models.base import utcnow

logger = logging.getLogger(__name__)


def get_appointment(appointment_id: int) -> Appointment:
    appointment = db.session.get(Appointment, appointment_id)
    if not appointment:
        raise NotFound('Appointment not found')
    return appointment


def find_conflicting_appointment(doctor_id: int, date_time, window_minutes: int) -> Optional[Appointment]:
    """First non-cancelled appointment of the doctor within +/- window of date_time."""
    window = timedelta(minutes=window_minutes)
    return Appointment.query.filter(
        Appointment.doctor_id == doctor_id,
        Appointment.date_time >= date_time - window,
        Appointment.date_time <= date_time + window,
        Appointment.status != 'cancelled',
    ).order_by(Appointment.date_time.asc()).first()


def create_appointment(
    patient_id: int,
    doctor_id: int,
    date_time,
    note: Optional[str] = None,
    window_minutes: int = 30,
) -> Appointment:
    """
    Insert a pending appointment. The overlap check runs here only; later
    status changes never re-check it.
    """
    conflicting = find_conflicting_appointment(doctor_id, date_time, window_minutes)
    if conflicting:
        logger.info(
            "Slot conflict for doctor %s at %s (appointment %s)",
            doctor_id, date_time.isoformat(), conflicting.id
        )
        raise Conflict('Time slot not available')

    appointment = Appointment(
        patient_id=patient_id,
        doctor_id=doctor_id,
        date_time=date_time,
        note=note or None,
        status='pending',
    )
    db.session.add(appointment)
    db.session.flush()  # Get appointment.id
    return appointment


def list_appointments(
    patient_id: Optional[int] = None,
    doctor_id: Optional[int] = None,
    status: Optional[str] = None,
    upcoming: bool = False,
) -> List[Appointment]:
    """Appointments matching the filters, sorted by date_time ascending."""
    query = Appointment.query
    if patient_id is not None:
        query = query.filter(Appointment.patient_id == patient_id)
    if doctor_id is not None:
        query = query.filter(Appointment.doctor_id == doctor_id)
    if status:
        query = query.filter(Appointment.status == status)
    if upcoming:
        query = query.filter(Appointment.date_time >= utcnow())
    return query.order_by(Appointment.date_time.asc(), Appointment.id.asc()).all()


def compare_and_set_status(appointment: Appointment, expected: str, new_status: str) -> bool:
    """
    Single UPDATE guarded by the current status. Returns False when another
    request changed the status first; nothing is written in that case.
    """
    updated = Appointment.query.filter(
        Appointment.id == appointment.id,
        Appointment.status == expected,
    ).update({Appointment.status: new_status}, synchronize_session='fetch')
    if updated:
        db.session.refresh(appointment)
    return bool(updated)


def force_status(appointment_id: int, new_status: str) -> int:
    """Unconditional status write; used by payment settlement."""
    return Appointment.query.filter(
        Appointment.id == appointment_id
    ).update({Appointment.status: new_status}, synchronize_session='fetch')
