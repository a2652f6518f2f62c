"""
Payment Ledger
Payment records keyed by appointment. Uniqueness is enforced twice:
generated transaction ids are random enough for normal use, and the UNIQUE
indexes on transaction_id and appointment_id catch what generation misses.
"""
import logging
import secrets
import string
import time
from typing import List, Optional

from sqlalchemy.exc import IntegrityError

from telemed.errors import Conflict, FailedPrecondition, Internal, NotFound
from telemed.extensions import db
from telemed.models import Payment
from telemed.models.payment import REVIVABLE_STATUSES, serialize_details

logger = logging.getLogger(__name__)

_SUFFIX_ALPHABET = string.ascii_uppercase + string.digits


def generate_transaction_id() -> str:
    """TXN + epoch milliseconds + 6 random upper-case alphanumerics."""
    timestamp = str(int(time.time() * 1000))
    random_part = ''.join(secrets.choice(_SUFFIX_ALPHABET) for _ in range(6))
    return f"TXN{timestamp}{random_part}"


def get_payment(payment_id: int) -> Payment:
    payment = db.session.get(Payment, payment_id)
    if not payment:
        raise NotFound('Payment not found')
    return payment


def get_payment_for_appointment(appointment_id: int) -> Optional[Payment]:
    return Payment.query.filter_by(appointment_id=appointment_id).first()


def list_payments(
    patient_id: Optional[int] = None,
    doctor_id: Optional[int] = None,
    status: Optional[str] = None,
) -> List[Payment]:
    """Newest first."""
    query = Payment.query
    if patient_id is not None:
        query = query.filter(Payment.patient_id == patient_id)
    if doctor_id is not None:
        query = query.filter(Payment.doctor_id == doctor_id)
    if status:
        query = query.filter(Payment.status == status)
    return query.order_by(Payment.created_at.desc(), Payment.id.desc()).all()


def create_payment(
    appointment,
    amount,
    currency: str,
    payment_method: str,
    payment_details: dict,
    attempts: int = 3,
) -> Payment:
    """
    Insert the pending payment for an appointment.

    A UNIQUE violation means either a concurrent request inserted the
    appointment's payment first (Conflict) or the transaction id collided
    (regenerate and retry).
    """
    appointment_id = appointment.id
    patient_id = appointment.patient_id
    doctor_id = appointment.doctor_id

    for attempt in range(1, attempts + 1):
        payment = Payment(
            appointment_id=appointment_id,
            patient_id=patient_id,
            doctor_id=doctor_id,
            amount=amount,
            currency=currency,
            payment_method=payment_method,
            transaction_id=generate_transaction_id(),
            status='pending',
        )
        payment.payment_details = payment_details
        db.session.add(payment)
        try:
            db.session.flush()
            return payment
        except IntegrityError:
            db.session.rollback()
            winner = get_payment_for_appointment(appointment_id)
            if winner is not None:
                if winner.status == 'completed':
                    raise FailedPrecondition('Payment already completed for this appointment')
                raise Conflict('Appointment already has a pending payment')
            logger.warning(
                "Transaction id collision for appointment %s (attempt %d/%d)",
                appointment_id, attempt, attempts
            )

    raise Internal('Could not allocate a unique transaction id')


def revive_payment(payment: Payment, payment_method: str, payment_details: dict, attempts: int = 3) -> Payment:
    """
    Reuse a failed or cancelled payment for a fresh attempt: same id, new
    transaction id, back to pending. Guarded on the current status so two
    concurrent revivals cannot both succeed.
    """
    payment_id = payment.id
    for attempt in range(1, attempts + 1):
        values = {
            Payment.payment_method: payment_method,
            Payment.payment_details_json: serialize_details(payment_details),
            Payment.transaction_id: generate_transaction_id(),
            Payment.status: 'pending',
            Payment.notes: '',
        }
        try:
            updated = Payment.query.filter(
                Payment.id == payment_id,
                Payment.status.in_(REVIVABLE_STATUSES),
            ).update(values, synchronize_session='fetch')
        except IntegrityError:
            db.session.rollback()
            logger.warning(
                "Transaction id collision reviving payment %s (attempt %d/%d)",
                payment_id, attempt, attempts
            )
            continue

        if not updated:
            db.session.refresh(payment)
            if payment.status == 'completed':
                raise FailedPrecondition('Payment already completed for this appointment')
            raise Conflict('Appointment already has a pending payment')
        revived = db.session.get(Payment, payment_id)
        db.session.refresh(revived)
        return revived

    raise Internal('Could not allocate a unique transaction id')


def set_status(payment: Payment, new_status: str, notes: Optional[str] = None) -> Payment:
    payment.status = new_status
    if notes:
        payment.notes = notes
    db.session.flush()
    return payment
