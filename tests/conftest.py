from datetime import timedelta

import pytest
from flask_jwt_extended import create_access_token

from telemed import create_app
from telemed.extensions import db
from telemed.models import User
from telemed.models.base import utcnow

PASSWORD = 'secret123'

USERS = {
    'patient': {'role': 'patient', 'name': 'Abebe Kebede', 'email': 'abebe@example.com'},
    'patient2': {'role': 'patient', 'name': 'Sara Tesfaye', 'email': 'sara@example.com'},
    'doctor': {'role': 'doctor', 'name': 'Dr. Hana Girma', 'email': 'hana@example.com',
               'specialty': 'Cardiology'},
    'doctor2': {'role': 'doctor', 'name': 'Dr. Yonas Alemu', 'email': 'yonas@example.com',
                'specialty': 'Dermatology'},
    'admin': {'role': 'admin', 'name': 'Admin', 'email': 'admin@example.com'},
}


def iso(value):
    return value.isoformat() + 'Z'


def tomorrow_at(hour, minute=0):
    return (utcnow() + timedelta(days=1)).replace(hour=hour, minute=minute, second=0, microsecond=0)


@pytest.fixture
def app():
    app = create_app('testing')
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def users(app):
    """Map of fixture key -> user id."""
    ids = {}
    with app.app_context():
        for key, data in USERS.items():
            user = User(is_active=True, **data)
            user.set_password(PASSWORD)
            db.session.add(user)
            db.session.flush()
            ids[key] = user.id
        db.session.commit()
    return ids


@pytest.fixture
def auth(app, users):
    """auth('doctor') -> Authorization header for that user."""
    def headers(key):
        with app.app_context():
            token = create_access_token(
                identity=str(users[key]),
                additional_claims={'role': USERS[key]['role']},
            )
        return {'Authorization': f'Bearer {token}'}
    return headers


class Workflow:
    """Drives the appointment lifecycle over HTTP."""

    def __init__(self, client, auth, users):
        self.client = client
        self.auth = auth
        self.users = users

    def _check(self, response, expect):
        body = response.get_json()
        assert response.status_code == expect, body
        return body['data'] if response.status_code < 300 else body

    def book(self, when, patient='patient', doctor='doctor', note=None, expect=201):
        body = {'doctorId': self.users[doctor], 'dateTime': iso(when)}
        if note is not None:
            body['note'] = note
        response = self.client.post('/api/appointments/book', json=body, headers=self.auth(patient))
        return self._check(response, expect)

    def set_status(self, appointment_id, status, doctor='doctor', expect=200):
        response = self.client.put(
            f'/api/appointments/{appointment_id}', json={'status': status}, headers=self.auth(doctor)
        )
        return self._check(response, expect)

    def pay(self, appointment_id, method='telebirr', details=None, patient='patient', expect=201):
        if details is None:
            details = {'phoneNumber': '0911223344'}
        response = self.client.post('/api/payments/create', json={
            'appointmentId': appointment_id,
            'paymentMethod': method,
            'paymentDetails': details,
        }, headers=self.auth(patient))
        return self._check(response, expect)

    def set_payment_status(self, payment_id, status, who='patient', expect=200, notes=None):
        body = {'status': status}
        if notes is not None:
            body['notes'] = notes
        response = self.client.put(
            f'/api/payments/{payment_id}/status', json=body, headers=self.auth(who)
        )
        return self._check(response, expect)

    def start_consultation(self, appointment_id, doctor='doctor', expect=200):
        response = self.client.post(
            f'/api/prescriptions/appointment/{appointment_id}/start-consultation',
            headers=self.auth(doctor),
        )
        return self._check(response, expect)

    def prescribe(self, appointment_id, doctor='doctor', expect=201, **fields):
        body = {
            'appointmentId': appointment_id,
            'diagnosis': 'Hypertension',
            'medications': [
                {'name': 'Amlodipine', 'dosage': '5mg', 'frequency': 'daily', 'duration': '30 days'},
            ],
        }
        body.update(fields)
        response = self.client.post('/api/prescriptions/create', json=body, headers=self.auth(doctor))
        return self._check(response, expect)

    def to_consultation(self, when, **kwargs):
        """Book, confirm, pay and start the consultation. Returns the appointment id."""
        appointment = self.book(when, **kwargs)
        self.set_status(appointment['id'], 'confirmed')
        payment = self.pay(appointment['id'])
        self.set_payment_status(payment['id'], 'completed')
        self.start_consultation(appointment['id'])
        return appointment['id']


@pytest.fixture
def workflow(client, auth, users):
    return Workflow(client, auth, users)
