from conftest import iso, tomorrow_at
from telemed.models import Prescription
from telemed.services import prescription_record

MIXED_MEDICATIONS = [
    {'name': 'Amoxicillin', 'dosage': '500mg', 'frequency': '3x daily', 'duration': '7 days',
     'instructions': 'after meals', 'quantity': 21},
    {'name': 'Ibuprofen', 'dosage': '', 'frequency': 'as needed', 'duration': '5 days'},
    {'name': 'Paracetamol', 'dosage': '1g', 'frequency': 'every 6 hours', 'duration': '3 days'},
    'not a medication',
]


def test_start_consultation_requires_paid(workflow):
    appointment = workflow.book(tomorrow_at(10))
    workflow.set_status(appointment['id'], 'confirmed')

    body = workflow.start_consultation(appointment['id'], expect=400)
    assert body['error'] == 'Appointment must be paid before starting consultation'


def test_start_consultation_only_owning_doctor(workflow):
    appointment = workflow.book(tomorrow_at(10))
    workflow.set_status(appointment['id'], 'confirmed')
    payment = workflow.pay(appointment['id'])
    workflow.set_payment_status(payment['id'], 'completed')

    workflow.start_consultation(appointment['id'], doctor='doctor2', expect=403)
    data = workflow.start_consultation(appointment['id'])
    assert data['status'] == 'consultation'

    body = workflow.start_consultation(appointment['id'], expect=400)
    assert body['code'] == 'FAILED_PRECONDITION'


def test_create_prescription_keeps_only_complete_rows(workflow, users):
    appointment_id = workflow.to_consultation(tomorrow_at(10))
    follow_up = tomorrow_at(10).replace(microsecond=0)

    data = workflow.prescribe(
        appointment_id,
        medications=MIXED_MEDICATIONS,
        instructions='Drink plenty of water',
        followUpDate=iso(follow_up),
    )

    assert data['status'] == 'active'
    assert data['doctorId'] == users['doctor']
    assert data['patientId'] == users['patient']
    assert data['followUpDate'] == iso(follow_up)
    assert [m['name'] for m in data['medications']] == ['Amoxicillin', 'Paracetamol']
    assert data['medications'][0]['quantity'] == '21'
    assert data['medications'][0]['instructions'] == 'after meals'
    assert 'quantity' not in data['medications'][1]


def test_prescription_needs_a_valid_medication(workflow):
    appointment_id = workflow.to_consultation(tomorrow_at(10))

    body = workflow.prescribe(appointment_id, medications=[{'name': 'Aspirin'}], expect=400)
    assert body['code'] == 'INVALID_ARGUMENT'

    body = workflow.prescribe(appointment_id, medications='Aspirin', expect=400)
    assert body['code'] == 'INVALID_ARGUMENT'

    body = workflow.prescribe(appointment_id, diagnosis='   ', expect=400)
    assert body['code'] == 'INVALID_ARGUMENT'


def test_prescription_requires_consultation(workflow):
    appointment = workflow.book(tomorrow_at(10))
    workflow.set_status(appointment['id'], 'confirmed')

    body = workflow.prescribe(appointment['id'], expect=400)
    assert body['code'] == 'FAILED_PRECONDITION'
    assert body['error'] == 'Appointment must be in consultation status'


def test_prescription_only_by_owning_doctor(workflow, client, auth):
    appointment_id = workflow.to_consultation(tomorrow_at(10))

    body = workflow.prescribe(appointment_id, doctor='doctor2', expect=403)
    assert body['code'] == 'FORBIDDEN'

    response = client.post('/api/prescriptions/create', json={
        'appointmentId': appointment_id, 'diagnosis': 'x', 'medications': [],
    }, headers=auth('patient'))
    assert response.status_code == 403


def test_one_prescription_per_appointment(workflow):
    appointment_id = workflow.to_consultation(tomorrow_at(10))
    workflow.prescribe(appointment_id)

    body = workflow.prescribe(appointment_id, expect=409)
    assert body['code'] == 'ALREADY_EXISTS'


def test_partial_update(workflow, client, auth):
    appointment_id = workflow.to_consultation(tomorrow_at(10))
    created = workflow.prescribe(appointment_id, instructions='Rest', notes='first visit')
    url = f"/api/prescriptions/{created['id']}"

    response = client.put(url, json={'diagnosis': 'Stage 1 hypertension', 'instructions': ''},
                          headers=auth('doctor'))
    assert response.status_code == 200
    data = response.get_json()['data']
    assert data['diagnosis'] == 'Stage 1 hypertension'
    assert data['instructions'] == 'Rest'
    assert data['notes'] == 'first visit'
    assert [m['name'] for m in data['medications']] == ['Amlodipine']

    response = client.put(url, json={
        'medications': [{'name': 'Losartan', 'dosage': '50mg', 'frequency': 'daily', 'duration': '90 days'}],
        'status': 'completed',
    }, headers=auth('admin'))
    data = response.get_json()['data']
    assert [m['name'] for m in data['medications']] == ['Losartan']
    assert data['status'] == 'completed'
    assert data['diagnosis'] == 'Stage 1 hypertension'


def test_update_permissions(workflow, client, auth):
    appointment_id = workflow.to_consultation(tomorrow_at(10))
    created = workflow.prescribe(appointment_id)
    url = f"/api/prescriptions/{created['id']}"

    assert client.put(url, json={'diagnosis': 'x'}, headers=auth('doctor2')).status_code == 403
    assert client.put(url, json={'diagnosis': 'x'}, headers=auth('patient')).status_code == 403
    assert client.put(url, json={'status': 'archived'}, headers=auth('doctor')).status_code == 400
    assert client.put('/api/prescriptions/999', json={'diagnosis': 'x'},
                      headers=auth('doctor')).status_code == 404


def test_prescription_lookups(workflow, client, auth):
    appointment_id = workflow.to_consultation(tomorrow_at(10))

    missing = client.get(f'/api/prescriptions/by-appointment/{appointment_id}', headers=auth('patient'))
    assert missing.status_code == 404
    assert missing.get_json()['error'] == 'Prescription not found'

    created = workflow.prescribe(appointment_id)

    by_appointment = client.get(f'/api/prescriptions/by-appointment/{appointment_id}', headers=auth('patient'))
    assert by_appointment.get_json()['data']['id'] == created['id']

    outsider = client.get(f'/api/prescriptions/by-appointment/{appointment_id}', headers=auth('patient2'))
    assert outsider.status_code == 403

    assert client.get('/api/prescriptions/by-appointment/999', headers=auth('patient')).status_code == 404

    by_id = client.get(f"/api/prescriptions/{created['id']}", headers=auth('doctor'))
    assert by_id.status_code == 200
    assert client.get(f"/api/prescriptions/{created['id']}", headers=auth('doctor2')).status_code == 403


def test_my_prescriptions(workflow, client, auth):
    first = workflow.to_consultation(tomorrow_at(9))
    second = workflow.to_consultation(tomorrow_at(15))
    workflow.prescribe(first)
    workflow.prescribe(second)

    mine = client.get('/api/prescriptions/my', headers=auth('patient')).get_json()
    assert mine['total'] == 2
    assert client.get('/api/prescriptions/my', headers=auth('patient2')).get_json()['total'] == 0
    assert client.get('/api/prescriptions/my', headers=auth('doctor')).get_json()['total'] == 2
    assert client.get('/api/prescriptions/my?status=completed',
                      headers=auth('patient')).get_json()['total'] == 0


def test_concurrent_create_is_caught_by_unique_index(app, workflow, monkeypatch):
    appointment_id = workflow.to_consultation(tomorrow_at(10))
    workflow.prescribe(appointment_id)

    monkeypatch.setattr(prescription_record, 'get_prescription_for_appointment', lambda *args: None)
    body = workflow.prescribe(appointment_id, diagnosis='Second opinion', expect=409)
    assert body['code'] == 'ALREADY_EXISTS'

    with app.app_context():
        assert Prescription.query.count() == 1
        assert Prescription.query.first().diagnosis == 'Hypertension'
