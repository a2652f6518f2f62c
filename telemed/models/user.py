from telemed.extensions import db, bcrypt
from .base import TimestampMixin

ROLES = ('patient', 'doctor', 'admin')


class User(db.Model, TimestampMixin):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(120), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=False)
    phone_number = db.Column(db.String(20))

    # Role - one of 'patient', 'doctor', 'admin'
    role = db.Column(db.String(20), nullable=False, index=True)

    age = db.Column(db.Integer)
    gender = db.Column(db.String(10))  # male, female, other
    specialty = db.Column(db.String(100))  # doctors only

    is_active = db.Column(db.Boolean, default=True, nullable=False)

    def set_password(self, password):
        """Hash and set password"""
        self.password_hash = bcrypt.generate_password_hash(password).decode('utf-8')

    def check_password(self, password):
        """Check if provided password matches hash"""
        return bcrypt.check_password_hash(self.password_hash, password)

    def has_role(self, *role_names):
        return self.role in role_names

    def is_patient(self):
        return self.role == 'patient'

    def is_doctor(self):
        return self.role == 'doctor'

    def is_admin(self):
        return self.role == 'admin'

    def summary(self):
        """Short form embedded in appointment, payment and prescription payloads."""
        data = {'id': self.id, 'name': self.name, 'email': self.email}
        if self.role == 'doctor':
            data['specialty'] = self.specialty
        return data

    def to_dict(self):
        return {
            'id': self.id,
            'name': self.name,
            'email': self.email,
            'phoneNumber': self.phone_number,
            'role': self.role,
            'age': self.age,
            'gender': self.gender,
            'specialty': self.specialty if self.role == 'doctor' else None,
            'isActive': self.is_active,
        }

    def __repr__(self):
        return f"<User {self.email} - {self.role}>"
