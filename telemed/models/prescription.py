from telemed.extensions import db
from .base import TimestampMixin, isoformat
import json

STATUSES = ('active', 'completed', 'cancelled')

# Every medication line must carry these, non-empty
MEDICATION_REQUIRED_FIELDS = ('name', 'dosage', 'frequency', 'duration')
MEDICATION_OPTIONAL_FIELDS = ('instructions', 'quantity')


class Prescription(db.Model, TimestampMixin):
    """
    Prescription written by the doctor during a consultation.

    One per appointment (UNIQUE appointment_id). Medications are stored as a
    JSON list in submission order:
        [{name, dosage, frequency, duration, instructions?, quantity?}, ...]
    """

    __tablename__ = "prescriptions"

    id = db.Column(db.Integer, primary_key=True)
    appointment_id = db.Column(
        db.Integer, db.ForeignKey("appointments.id"), nullable=False, unique=True, index=True
    )

    doctor_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    patient_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    diagnosis = db.Column(db.Text, nullable=False)
    medications_json = db.Column(db.Text, nullable=False, default="[]")
    instructions = db.Column(db.Text, nullable=True)
    follow_up_date = db.Column(db.DateTime, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    status = db.Column(db.String(20), default="active", nullable=False, index=True)

    appointment = db.relationship(
        "Appointment", backref=db.backref("prescription", uselist=False), lazy=True
    )
    doctor = db.relationship("User", foreign_keys=[doctor_id], lazy=True)
    patient = db.relationship("User", foreign_keys=[patient_id], lazy=True)

    @property
    def medications(self):
        if self.medications_json:
            try:
                data = json.loads(self.medications_json)
                if isinstance(data, list):
                    return data
            except (TypeError, json.JSONDecodeError):
                pass
        return []

    @medications.setter
    def medications(self, items):
        self.medications_json = json.dumps(list(items or []), ensure_ascii=False)

    def is_participant(self, user_id):
        return user_id in (self.patient_id, self.doctor_id)

    def to_dict(self):
        """Convert to dictionary for API responses."""
        return {
            "id": self.id,
            "appointmentId": self.appointment_id,
            "doctorId": self.doctor_id,
            "patientId": self.patient_id,
            "doctor": self.doctor.summary() if self.doctor else None,
            "patient": self.patient.summary() if self.patient else None,
            "diagnosis": self.diagnosis,
            "medications": self.medications,
            "instructions": self.instructions or "",
            "followUpDate": isoformat(self.follow_up_date),
            "notes": self.notes or "",
            "status": self.status,
            "createdAt": isoformat(self.created_at),
            "updatedAt": isoformat(self.updated_at),
        }

    def __repr__(self):
        return f"<Prescription {self.id} - Appointment: {self.appointment_id}>"
