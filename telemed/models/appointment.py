from telemed.extensions import db
from .base import TimestampMixin, isoformat

# Status: pending -> confirmed -> paid -> consultation -> completed, or cancelled
STATUSES = ('pending', 'confirmed', 'paid', 'consultation', 'completed', 'cancelled')


class Appointment(db.Model, TimestampMixin):
    __tablename__ = 'appointments'
    __table_args__ = (
        db.Index('ix_appointments_doctor_date_time', 'doctor_id', 'date_time'),
    )

    id = db.Column(db.Integer, primary_key=True)
    patient_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    doctor_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)

    date_time = db.Column(db.DateTime, nullable=False)
    note = db.Column(db.String(500))

    status = db.Column(db.String(20), default='pending', nullable=False, index=True)

    patient = db.relationship('User', foreign_keys=[patient_id], lazy='joined')
    doctor = db.relationship('User', foreign_keys=[doctor_id], lazy='joined')

    def is_participant(self, user_id):
        return user_id in (self.patient_id, self.doctor_id)

    def to_dict(self):
        return {
            'id': self.id,
            'patientId': self.patient_id,
            'doctorId': self.doctor_id,
            'patient': self.patient.summary() if self.patient else None,
            'doctor': self.doctor.summary() if self.doctor else None,
            'dateTime': isoformat(self.date_time),
            'note': self.note,
            'status': self.status,
            'createdAt': isoformat(self.created_at),
            'updatedAt': isoformat(self.updated_at),
        }

    def __repr__(self):
        return f"<Appointment {self.id} patient={self.patient_id} doctor={self.doctor_id} {self.status}>"
