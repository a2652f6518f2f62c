"""
Prescription Record
One prescription per appointment; medication lines kept in submission order.
"""
import logging
from typing import List, Optional

from sqlalchemy.exc import IntegrityError

from telemed.errors import AlreadyExists, InvalidArgument, NotFound
from telemed.extensions import db
from telemed.models import Prescription
from telemed.models.prescription import MEDICATION_OPTIONAL_FIELDS, MEDICATION_REQUIRED_FIELDS
from telemed.utils.validation import clean_text

logger = logging.getLogger(__name__)


def normalize_medications(items) -> List[dict]:
    """
    Keep the rows that have every required field non-empty, in order.
    Incomplete rows are dropped; zero remaining rows is an error.
    """
    if not isinstance(items, list):
        raise InvalidArgument('Field "medications" must be a list')

    valid = []
    for item in items:
        if not isinstance(item, dict):
            continue
        row = {field: clean_text(item.get(field)) for field in MEDICATION_REQUIRED_FIELDS}
        if not all(row.values()):
            continue
        for field in MEDICATION_OPTIONAL_FIELDS:
            value = item.get(field)
            if isinstance(value, (int, float)) and not isinstance(value, bool):
                value = str(value)
            value = clean_text(value)
            if value:
                row[field] = value
        valid.append(row)

    if not valid:
        raise InvalidArgument(
            'At least one medication with name, dosage, frequency and duration is required'
        )
    if len(valid) < len(items):
        logger.info("Dropped %d incomplete medication row(s)", len(items) - len(valid))
    return valid


def get_prescription(prescription_id: int) -> Prescription:
    prescription = db.session.get(Prescription, prescription_id)
    if not prescription:
        raise NotFound('Prescription not found')
    return prescription


def get_prescription_for_appointment(appointment_id: int) -> Optional[Prescription]:
    return Prescription.query.filter_by(appointment_id=appointment_id).first()


def list_prescriptions(
    patient_id: Optional[int] = None,
    doctor_id: Optional[int] = None,
    status: Optional[str] = None,
) -> List[Prescription]:
    """Newest first."""
    query = Prescription.query
    if patient_id is not None:
        query = query.filter(Prescription.patient_id == patient_id)
    if doctor_id is not None:
        query = query.filter(Prescription.doctor_id == doctor_id)
    if status:
        query = query.filter(Prescription.status == status)
    return query.order_by(Prescription.created_at.desc(), Prescription.id.desc()).all()


def create_prescription(
    appointment,
    diagnosis: str,
    medications: List[dict],
    instructions: Optional[str] = None,
    follow_up_date=None,
    notes: Optional[str] = None,
) -> Prescription:
    """Insert the appointment's prescription; a second one is AlreadyExists."""
    if get_prescription_for_appointment(appointment.id) is not None:
        raise AlreadyExists('Prescription already exists for this appointment')

    prescription = Prescription(
        appointment_id=appointment.id,
        doctor_id=appointment.doctor_id,
        patient_id=appointment.patient_id,
        diagnosis=diagnosis,
        instructions=instructions or None,
        follow_up_date=follow_up_date,
        notes=notes or None,
        status='active',
    )
    prescription.medications = medications
    db.session.add(prescription)
    try:
        db.session.flush()
    except IntegrityError:
        # Lost the race against a concurrent create for the same appointment
        db.session.rollback()
        raise AlreadyExists('Prescription already exists for this appointment')
    return prescription


def update_prescription(prescription: Prescription, **fields) -> Prescription:
    """
    Partial update: only truthy values overwrite. An empty string therefore
    means "leave unchanged", same as an absent field.
    """
    for field in ('diagnosis', 'instructions', 'follow_up_date', 'notes', 'status'):
        value = fields.get(field)
        if value:
            setattr(prescription, field, value)
    if fields.get('medications'):
        prescription.medications = fields['medications']
    db.session.flush()
    return prescription
