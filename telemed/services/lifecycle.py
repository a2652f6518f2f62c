"""
Appointment Lifecycle Controller

The only code allowed to change an appointment's status. Every operation
takes the resolved caller (a User), checks role and ownership, checks the
current state, writes through the store modules and commits once.

    pending      -> confirmed, cancelled                 (doctor)
    confirmed    -> completed, cancelled                 (doctor)
    confirmed    -> paid                                 (payment settlement)
    paid         -> consultation                         (doctor)
    consultation -> completed                            (doctor)

With STRICT_STATUS_TRANSITIONS off, update_status only checks ownership and
the status value, matching the legacy API.
"""
import logging
from typing import List, Optional

from flask import current_app

from telemed.errors import Conflict, FailedPrecondition, Forbidden, InvalidArgument, NotFound
from telemed.extensions import db
from telemed.models import Appointment, Payment, Prescription, User
from telemed.models import appointment as appointment_model
from telemed.models import payment as payment_model
from telemed.models import prescription as prescription_model
from telemed.models.base import utcnow
from telemed.services import appointment_store, payment_ledger, prescription_record
from telemed.services.notification_service import notify_transition
from telemed.services.payment_methods import get_payment_method, validate_payment_details
from telemed.utils.audit import log_audit
from telemed.utils.validation import clean_text, parse_datetime, parse_int, require_choice

logger = logging.getLogger(__name__)

# Targets a doctor may request through update_status
DOCTOR_SETTABLE_STATUSES = ('confirmed', 'paid', 'consultation', 'completed', 'cancelled')

# Edges a doctor may take through update_status in strict mode
DOCTOR_TRANSITIONS = {
    'pending': ('confirmed', 'cancelled'),
    'confirmed': ('completed', 'cancelled'),
    'paid': ('consultation',),
    'consultation': ('completed',),
    'completed': (),
    'cancelled': (),
}


def can_transition(current: str, new_status: str) -> bool:
    return new_status in DOCTOR_TRANSITIONS.get(current, ())


def _strict():
    return current_app.config.get('STRICT_STATUS_TRANSITIONS', True)


def _ensure_can_view(caller: User, record) -> None:
    if not (record.is_participant(caller.id) or caller.is_admin()):
        raise Forbidden('Not authorized')


def _ensure_owning_doctor(caller: User, appointment: Appointment, message='Not authorized') -> None:
    if appointment.doctor_id != caller.id:
        raise Forbidden(message)


# ── Appointments ─────────────────────────────────────────────────────────────

def book_appointment(caller: User, doctor_id, date_time, note=None) -> Appointment:
    """Patient books a doctor for a future slot; the appointment starts pending."""
    if not caller.is_patient():
        raise Forbidden('Only patients can book appointments')

    doctor_id = parse_int(doctor_id, 'doctorId')
    doctor = db.session.get(User, doctor_id)
    if not doctor or not doctor.is_doctor() or not doctor.is_active:
        raise NotFound('Doctor not found')

    appointment_time = parse_datetime(date_time, 'dateTime')
    if appointment_time <= utcnow():
        raise InvalidArgument('Appointment must be in the future')

    if note is not None and not isinstance(note, str):
        raise InvalidArgument('Field "note" must be a string')
    note = clean_text(note)
    max_length = current_app.config.get('APPOINTMENT_NOTE_MAX_LENGTH', 500)
    if len(note) > max_length:
        raise InvalidArgument(f'Note too long (max {max_length} characters)')

    appointment = appointment_store.create_appointment(
        patient_id=caller.id,
        doctor_id=doctor.id,
        date_time=appointment_time,
        note=note,
        window_minutes=current_app.config.get('APPOINTMENT_CONFLICT_WINDOW_MINUTES', 30),
    )
    db.session.commit()

    logger.info(f"Appointment {appointment.id} booked by patient {caller.id} with doctor {doctor.id}")
    log_audit('appointment', 'create', user_id=caller.id, entity_id=appointment.id,
              details={'doctor_id': doctor.id, 'date_time': appointment.date_time.isoformat()})
    notify_transition(caller.id, doctor.id, appointment.id, 'booked')
    return appointment


def list_my_appointments(caller: User, status=None, upcoming=False) -> List[Appointment]:
    if status:
        require_choice(status, appointment_model.STATUSES)

    if caller.is_patient():
        return appointment_store.list_appointments(patient_id=caller.id, status=status, upcoming=upcoming)
    if caller.is_doctor():
        return appointment_store.list_appointments(doctor_id=caller.id, status=status, upcoming=upcoming)
    return appointment_store.list_appointments(status=status, upcoming=upcoming)


def get_appointment(caller: User, appointment_id) -> Appointment:
    appointment = appointment_store.get_appointment(appointment_id)
    _ensure_can_view(caller, appointment)
    return appointment


def _apply_transition(caller: User, appointment: Appointment, new_status: str) -> Appointment:
    previous = appointment.status
    if not appointment_store.compare_and_set_status(appointment, previous, new_status):
        raise FailedPrecondition('Appointment status changed concurrently, reload and retry')
    db.session.commit()

    logger.info(f"Appointment {appointment.id}: {previous} -> {new_status} by user {caller.id}")
    log_audit('appointment', 'status', user_id=caller.id, entity_id=appointment.id,
              details={'from': previous, 'to': new_status})
    notify_transition(caller.id, appointment.patient_id, appointment.id, new_status)
    return appointment


def update_status(caller: User, appointment_id, new_status) -> Appointment:
    """Owning doctor moves the appointment along the transition table."""
    require_choice(new_status, DOCTOR_SETTABLE_STATUSES)

    appointment = appointment_store.get_appointment(appointment_id)
    _ensure_owning_doctor(caller, appointment)

    if _strict():
        if new_status == 'paid':
            raise FailedPrecondition('Appointment becomes paid only when its payment is completed')
        if not can_transition(appointment.status, new_status):
            raise FailedPrecondition(
                f'Cannot change appointment status from {appointment.status} to {new_status}'
            )

    return _apply_transition(caller, appointment, new_status)


def start_consultation(caller: User, appointment_id) -> Appointment:
    appointment = appointment_store.get_appointment(appointment_id)
    _ensure_owning_doctor(caller, appointment)

    if appointment.status != 'paid':
        raise FailedPrecondition('Appointment must be paid before starting consultation')

    return _apply_transition(caller, appointment, 'consultation')


# ── Payments ─────────────────────────────────────────────────────────────────

def create_payment(caller: User, appointment_id, payment_method, payment_details=None):
    """
    Create the appointment's payment, or revive a failed/cancelled one.

    Returns (payment, created) where created is False for a revival.
    """
    appointment_id = parse_int(appointment_id, 'appointmentId')
    appointment = appointment_store.get_appointment(appointment_id)
    if appointment.patient_id != caller.id:
        raise Forbidden('Not authorized to pay for this appointment')

    if appointment.status != 'confirmed':
        raise FailedPrecondition('Appointment must be confirmed before payment')

    get_payment_method(payment_method)
    details = validate_payment_details(payment_method, payment_details)
    attempts = current_app.config.get('TRANSACTION_ID_ATTEMPTS', 3)

    existing = payment_ledger.get_payment_for_appointment(appointment.id)
    if existing is not None:
        if existing.status == 'completed':
            raise FailedPrecondition('Payment already completed for this appointment')
        if existing.status == 'pending':
            raise Conflict('Appointment already has a pending payment')

        payment = payment_ledger.revive_payment(existing, payment_method, details, attempts=attempts)
        db.session.commit()
        logger.info(f"Payment {payment.id} revived as {payment.transaction_id} for appointment {appointment.id}")
        log_audit('payment', 'revive', user_id=caller.id, entity_id=payment.id,
                  details={'appointment_id': appointment.id, 'method': payment_method,
                           'transaction_id': payment.transaction_id})
        return payment, False

    payment = payment_ledger.create_payment(
        appointment,
        amount=current_app.config.get('CONSULTATION_FEE', 500),
        currency=current_app.config.get('PAYMENT_CURRENCY', 'ETB'),
        payment_method=payment_method,
        payment_details=details,
        attempts=attempts,
    )
    db.session.commit()

    logger.info(f"Payment {payment.id} ({payment.transaction_id}) created for appointment {appointment_id}")
    log_audit('payment', 'create', user_id=caller.id, entity_id=payment.id,
              details={'appointment_id': appointment_id, 'method': payment_method,
                       'transaction_id': payment.transaction_id})
    return payment, True


def get_payment(caller: User, payment_id) -> Payment:
    payment = payment_ledger.get_payment(payment_id)
    _ensure_can_view(caller, payment)
    return payment


def get_payment_by_appointment(caller: User, appointment_id) -> Payment:
    appointment = appointment_store.get_appointment(appointment_id)
    _ensure_can_view(caller, appointment)
    payment = payment_ledger.get_payment_for_appointment(appointment.id)
    if payment is None:
        raise NotFound('No payment found for this appointment')
    return payment


def list_my_payments(caller: User, status=None) -> List[Payment]:
    if status:
        require_choice(status, payment_model.STATUSES)
    if caller.is_patient():
        return payment_ledger.list_payments(patient_id=caller.id, status=status)
    if caller.is_doctor():
        return payment_ledger.list_payments(doctor_id=caller.id, status=status)
    return payment_ledger.list_payments(status=status)


def settle_payment(payment: Payment, notes: Optional[str] = None) -> Payment:
    """
    Mark the payment completed and force its appointment to paid in one
    transaction. The appointment write is an overwrite, not a guarded
    transition: it lands whatever the appointment's previous status was.
    """
    payment_ledger.set_status(payment, 'completed', notes)
    appointment_store.force_status(payment.appointment_id, 'paid')
    db.session.commit()
    return payment


def update_payment_status(caller: User, payment_id, new_status, notes=None) -> Payment:
    """Any participant (or an admin) records the outcome of a payment attempt."""
    require_choice(new_status, payment_model.STATUSES)

    payment = payment_ledger.get_payment(payment_id)
    _ensure_can_view(caller, payment)

    previous = payment.status
    notes = clean_text(notes) or None

    if new_status == 'completed':
        settle_payment(payment, notes)
    else:
        payment_ledger.set_status(payment, new_status, notes)
        db.session.commit()

    logger.info(f"Payment {payment.id}: {previous} -> {new_status} by user {caller.id}")
    log_audit('payment', 'settle' if new_status == 'completed' else 'status', user_id=caller.id,
              entity_id=payment.id, details={'from': previous, 'to': new_status})

    if new_status == 'completed':
        if caller.id == payment.patient_id:
            recipients = (payment.doctor_id,)
        elif caller.id == payment.doctor_id:
            recipients = (payment.patient_id,)
        else:
            recipients = (payment.patient_id, payment.doctor_id)
        for recipient in recipients:
            notify_transition(caller.id, recipient, payment.appointment_id, 'paid')
    return payment


# ── Prescriptions ────────────────────────────────────────────────────────────

def _parse_follow_up(value):
    if value in (None, ''):
        return None
    return parse_datetime(value, 'followUpDate')


def create_prescription(caller: User, appointment_id, diagnosis, medications,
                        instructions=None, follow_up_date=None, notes=None) -> Prescription:
    appointment_id = parse_int(appointment_id, 'appointmentId')
    appointment = appointment_store.get_appointment(appointment_id)
    _ensure_owning_doctor(caller, appointment,
                          'Not authorized to create prescription for this appointment')

    if appointment.status != 'consultation':
        raise FailedPrecondition('Appointment must be in consultation status')

    diagnosis = clean_text(diagnosis)
    if not diagnosis:
        raise InvalidArgument('Field "diagnosis" is required')
    rows = prescription_record.normalize_medications(medications)

    prescription = prescription_record.create_prescription(
        appointment,
        diagnosis=diagnosis,
        medications=rows,
        instructions=clean_text(instructions),
        follow_up_date=_parse_follow_up(follow_up_date),
        notes=clean_text(notes),
    )
    db.session.commit()

    logger.info(f"Prescription {prescription.id} created for appointment {appointment_id} by doctor {caller.id}")
    log_audit('prescription', 'create', user_id=caller.id, entity_id=prescription.id,
              details={'appointment_id': appointment_id, 'medication_count': len(rows)})
    notify_transition(caller.id, appointment.patient_id, appointment.id, 'prescription')
    return prescription


def update_prescription(caller: User, prescription_id, diagnosis=None, medications=None,
                        instructions=None, follow_up_date=None, notes=None, status=None) -> Prescription:
    """Owning doctor or admin; falsy values leave the field unchanged."""
    prescription = prescription_record.get_prescription(prescription_id)
    if not (prescription.doctor_id == caller.id or caller.is_admin()):
        raise Forbidden('Not authorized')

    if status:
        require_choice(status, prescription_model.STATUSES)

    fields = {
        'diagnosis': clean_text(diagnosis),
        'instructions': clean_text(instructions),
        'notes': clean_text(notes),
        'status': status,
        'follow_up_date': _parse_follow_up(follow_up_date) if follow_up_date else None,
        'medications': prescription_record.normalize_medications(medications) if medications else None,
    }
    prescription_record.update_prescription(prescription, **fields)
    db.session.commit()

    changed = sorted(name for name, value in fields.items() if value)
    logger.info(f"Prescription {prescription.id} updated by user {caller.id}: {', '.join(changed) or 'no changes'}")
    log_audit('prescription', 'update', user_id=caller.id, entity_id=prescription.id,
              details={'fields': changed})
    return prescription


def get_prescription(caller: User, prescription_id) -> Prescription:
    prescription = prescription_record.get_prescription(prescription_id)
    _ensure_can_view(caller, prescription)
    return prescription


def get_prescription_by_appointment(caller: User, appointment_id) -> Prescription:
    appointment = appointment_store.get_appointment(appointment_id)
    _ensure_can_view(caller, appointment)
    prescription = prescription_record.get_prescription_for_appointment(appointment.id)
    if prescription is None:
        raise NotFound('Prescription not found')
    return prescription


def list_my_prescriptions(caller: User, status=None) -> List[Prescription]:
    if status:
        require_choice(status, prescription_model.STATUSES)
    if caller.is_patient():
        return prescription_record.list_prescriptions(patient_id=caller.id, status=status)
    if caller.is_doctor():
        return prescription_record.list_prescriptions(doctor_id=caller.id, status=status)
    return prescription_record.list_prescriptions(status=status)
