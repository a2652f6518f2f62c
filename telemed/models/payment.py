from telemed.extensions import db
from .base import TimestampMixin, isoformat
import json

STATUSES = ('pending', 'completed', 'failed', 'cancelled')
# A failed or cancelled attempt may be revived in place
REVIVABLE_STATUSES = ('failed', 'cancelled')


def serialize_details(details):
    return json.dumps(details or {}, ensure_ascii=False)


class Payment(db.Model, TimestampMixin):
    """
    Payment attempt for an appointment's consultation fee.

    One record per appointment: the UNIQUE constraint on appointment_id is
    what keeps two concurrent create requests from both inserting a
    pending payment. A failed or cancelled attempt is reused with a fresh
    transaction_id instead of adding a second row.
    """

    __tablename__ = 'payments'

    id = db.Column(db.Integer, primary_key=True)
    appointment_id = db.Column(
        db.Integer, db.ForeignKey('appointments.id'), nullable=False, unique=True, index=True
    )

    # Denormalized from the appointment at creation time
    patient_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    doctor_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)

    amount = db.Column(db.Numeric(10, 2), nullable=False)
    currency = db.Column(db.String(3), default='ETB', nullable=False)
    payment_method = db.Column(db.String(30), nullable=False)
    transaction_id = db.Column(db.String(40), unique=True, nullable=False, index=True)
    status = db.Column(db.String(20), default='pending', nullable=False, index=True)

    # Channel-specific fields (phoneNumber, accountNumber, bankName, referenceNumber)
    payment_details_json = db.Column(db.Text, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    appointment = db.relationship('Appointment', backref=db.backref('payment', uselist=False), lazy=True)
    patient = db.relationship('User', foreign_keys=[patient_id], lazy=True)
    doctor = db.relationship('User', foreign_keys=[doctor_id], lazy=True)

    @property
    def payment_details(self):
        if self.payment_details_json:
            try:
                data = json.loads(self.payment_details_json)
                if isinstance(data, dict):
                    return data
            except (TypeError, json.JSONDecodeError):
                pass
        return {}

    @payment_details.setter
    def payment_details(self, value):
        self.payment_details_json = serialize_details(value)

    def is_participant(self, user_id):
        return user_id in (self.patient_id, self.doctor_id)

    def to_dict(self):
        return {
            'id': self.id,
            'appointmentId': self.appointment_id,
            'patientId': self.patient_id,
            'doctorId': self.doctor_id,
            'patient': self.patient.summary() if self.patient else None,
            'doctor': self.doctor.summary() if self.doctor else None,
            'amount': float(self.amount) if self.amount is not None else None,
            'currency': self.currency,
            'paymentMethod': self.payment_method,
            'transactionId': self.transaction_id,
            'status': self.status,
            'paymentDetails': self.payment_details,
            'notes': self.notes or '',
            'createdAt': isoformat(self.created_at),
            'updatedAt': isoformat(self.updated_at),
        }

    def __repr__(self):
        return f"<Payment {self.transaction_id} appointment={self.appointment_id} {self.status}>"
