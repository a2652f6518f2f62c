import pytest

from conftest import tomorrow_at
from telemed.errors import Conflict, FailedPrecondition
from telemed.extensions import db
from telemed.models import Appointment, Payment
from telemed.services import payment_ledger


def _confirmed(workflow, hour=10, **kwargs):
    appointment = workflow.book(tomorrow_at(hour), **kwargs)
    workflow.set_status(appointment['id'], 'confirmed')
    return appointment['id']


def test_payment_methods_are_public(client):
    response = client.get('/api/payments/methods')
    assert response.status_code == 200
    methods = response.get_json()['data']
    assert len(methods) == 10
    ids = [m['id'] for m in methods]
    assert ids[0] == 'telebirr'
    assert 'cbe_birr' in ids and 'wegagen_bank' in ids


def test_create_payment(workflow, users):
    appointment_id = _confirmed(workflow)
    payment = workflow.pay(appointment_id, details={'phoneNumber': ' 0911223344 ', 'referenceNumber': 'R-1'})

    assert payment['status'] == 'pending'
    assert payment['amount'] == 500.0
    assert payment['currency'] == 'ETB'
    assert payment['paymentMethod'] == 'telebirr'
    assert payment['transactionId'].startswith('TXN')
    assert payment['patientId'] == users['patient']
    assert payment['doctorId'] == users['doctor']
    assert payment['paymentDetails'] == {
        'phoneNumber': '0911223344', 'referenceNumber': 'R-1', 'bankName': 'Telebirr',
    }


def test_bank_methods_need_account_number(workflow):
    appointment_id = _confirmed(workflow)

    body = workflow.pay(appointment_id, method='dashen_bank', details={'phoneNumber': '0911'}, expect=400)
    assert body['code'] == 'INVALID_ARGUMENT'
    assert 'accountNumber' in body['error']

    payment = workflow.pay(appointment_id, method='dashen_bank', details={'accountNumber': '1000200030'})
    assert payment['paymentDetails']['bankName'] == 'Dashen Bank'
    assert 'phoneNumber' not in payment['paymentDetails']


def test_telebirr_needs_phone_number(workflow):
    appointment_id = _confirmed(workflow)
    body = workflow.pay(appointment_id, details={'accountNumber': '1'}, expect=400)
    assert 'phoneNumber' in body['error']


def test_unknown_method_rejected(workflow):
    appointment_id = _confirmed(workflow)
    body = workflow.pay(appointment_id, method='paypal', expect=400)
    assert body['code'] == 'INVALID_ARGUMENT'


def test_payment_requires_confirmed_appointment(workflow):
    appointment = workflow.book(tomorrow_at(10))
    body = workflow.pay(appointment['id'], expect=400)
    assert body['code'] == 'FAILED_PRECONDITION'
    assert body['error'] == 'Appointment must be confirmed before payment'


def test_only_the_appointment_patient_pays(workflow, client, auth):
    appointment_id = _confirmed(workflow)
    body = workflow.pay(appointment_id, patient='patient2', expect=403)
    assert body['code'] == 'FORBIDDEN'

    response = client.post('/api/payments/create', json={
        'appointmentId': appointment_id, 'paymentMethod': 'telebirr',
        'paymentDetails': {'phoneNumber': '0911'},
    }, headers=auth('doctor'))
    assert response.status_code == 403


def test_missing_appointment(workflow):
    body = workflow.pay(12345, expect=404)
    assert body['code'] == 'NOT_FOUND'


def test_second_pending_payment_conflicts(workflow):
    appointment_id = _confirmed(workflow)
    workflow.pay(appointment_id)

    body = workflow.pay(appointment_id, expect=409)
    assert body['code'] == 'CONFLICT'


def test_failed_payment_is_revived_in_place(app, workflow):
    appointment_id = _confirmed(workflow)
    first = workflow.pay(appointment_id)
    workflow.set_payment_status(first['id'], 'failed', notes='insufficient funds')

    revived = workflow.pay(appointment_id, method='awash_bank',
                           details={'accountNumber': '0987654321'}, expect=200)

    assert revived['id'] == first['id']
    assert revived['transactionId'] != first['transactionId']
    assert revived['status'] == 'pending'
    assert revived['paymentMethod'] == 'awash_bank'
    assert revived['paymentDetails']['bankName'] == 'Awash Bank'
    assert revived['notes'] == ''

    with app.app_context():
        assert Payment.query.filter_by(appointment_id=appointment_id).count() == 1


def test_cancelled_payment_is_revived(workflow):
    appointment_id = _confirmed(workflow)
    first = workflow.pay(appointment_id)
    workflow.set_payment_status(first['id'], 'cancelled')

    revived = workflow.pay(appointment_id, expect=200)
    assert revived['id'] == first['id']


def test_settlement_marks_appointment_paid(workflow, client, auth):
    appointment_id = _confirmed(workflow)
    payment = workflow.pay(appointment_id)

    settled = workflow.set_payment_status(payment['id'], 'completed', notes='TT-998')
    assert settled['status'] == 'completed'
    assert settled['notes'] == 'TT-998'

    appointment = client.get(f'/api/appointments/{appointment_id}', headers=auth('patient')).get_json()
    assert appointment['data']['status'] == 'paid'

    # The appointment is no longer confirmed, so no new attempt can start
    body = workflow.pay(appointment_id, expect=400)
    assert body['code'] == 'FAILED_PRECONDITION'


def test_settlement_overrides_cancellation(workflow, client, auth):
    appointment_id = _confirmed(workflow)
    payment = workflow.pay(appointment_id)
    workflow.set_status(appointment_id, 'cancelled')

    workflow.set_payment_status(payment['id'], 'completed')

    appointment = client.get(f'/api/appointments/{appointment_id}', headers=auth('doctor')).get_json()
    assert appointment['data']['status'] == 'paid'


def test_doctor_and_admin_can_settle(workflow):
    first = _confirmed(workflow, hour=9)
    second = _confirmed(workflow, hour=13)
    workflow.set_payment_status(workflow.pay(first)['id'], 'completed', who='doctor')
    workflow.set_payment_status(workflow.pay(second)['id'], 'completed', who='admin')


def test_outsiders_cannot_touch_payment(workflow, client, auth):
    appointment_id = _confirmed(workflow)
    payment = workflow.pay(appointment_id)

    workflow.set_payment_status(payment['id'], 'completed', who='patient2', expect=403)
    workflow.set_payment_status(payment['id'], 'completed', who='doctor2', expect=403)
    assert client.get(f"/api/payments/{payment['id']}", headers=auth('patient2')).status_code == 403


def test_invalid_payment_status(workflow):
    appointment_id = _confirmed(workflow)
    payment = workflow.pay(appointment_id)
    body = workflow.set_payment_status(payment['id'], 'refunded', expect=400)
    assert body['code'] == 'INVALID_ARGUMENT'


def test_payment_lookups(workflow, client, auth):
    appointment_id = _confirmed(workflow)

    response = client.get(f'/api/payments/appointment/{appointment_id}', headers=auth('patient'))
    assert response.status_code == 404

    payment = workflow.pay(appointment_id)
    by_appointment = client.get(f'/api/payments/appointment/{appointment_id}', headers=auth('doctor'))
    assert by_appointment.get_json()['data']['id'] == payment['id']

    by_id = client.get(f"/api/payments/{payment['id']}", headers=auth('admin'))
    assert by_id.get_json()['data']['transactionId'] == payment['transactionId']

    assert client.get('/api/payments/999', headers=auth('patient')).status_code == 404


def test_my_payments_newest_first(workflow, client, auth):
    older = workflow.pay(_confirmed(workflow, hour=9))
    newer = workflow.pay(_confirmed(workflow, hour=14))
    workflow.pay(_confirmed(workflow, hour=11, patient='patient2'), patient='patient2')

    mine = client.get('/api/payments/my', headers=auth('patient')).get_json()
    assert [p['id'] for p in mine['data']] == [newer['id'], older['id']]

    doctor = client.get('/api/payments/my', headers=auth('doctor')).get_json()
    assert doctor['total'] == 3

    workflow.set_payment_status(older['id'], 'failed')
    failed = client.get('/api/payments/my?status=failed', headers=auth('patient')).get_json()
    assert [p['id'] for p in failed['data']] == [older['id']]


def test_transaction_id_collision_is_retried(app, workflow, monkeypatch):
    generated = iter(['TXN1000AAAAAA', 'TXN1000AAAAAA', 'TXN1001BBBBBB'])
    monkeypatch.setattr(payment_ledger, 'generate_transaction_id', lambda: next(generated))

    first = workflow.pay(_confirmed(workflow, hour=9))
    second = workflow.pay(_confirmed(workflow, hour=14))

    assert first['transactionId'] == 'TXN1000AAAAAA'
    assert second['transactionId'] == 'TXN1001BBBBBB'
    with app.app_context():
        assert Payment.query.count() == 2


def test_generated_transaction_ids_have_expected_shape():
    transaction_id = payment_ledger.generate_transaction_id()
    assert transaction_id.startswith('TXN')
    suffix = transaction_id[-6:]
    assert suffix.isalnum() and suffix.upper() == suffix
    assert transaction_id[3:-6].isdigit()
    assert transaction_id != payment_ledger.generate_transaction_id()


def _miss_once(monkeypatch, module, name):
    """The first lookup finds nothing, as if a concurrent insert had not landed yet."""
    real = getattr(module, name)
    calls = []

    def lookup(*args, **kwargs):
        calls.append(args)
        if len(calls) == 1:
            return None
        return real(*args, **kwargs)

    monkeypatch.setattr(module, name, lookup)


def test_concurrent_create_is_caught_by_unique_index(app, workflow, monkeypatch):
    appointment_id = _confirmed(workflow)
    workflow.pay(appointment_id)

    _miss_once(monkeypatch, payment_ledger, 'get_payment_for_appointment')
    body = workflow.pay(appointment_id, details={'phoneNumber': '0922000000'}, expect=409)
    assert body['code'] == 'CONFLICT'

    with app.app_context():
        assert Payment.query.count() == 1
        assert Payment.query.first().payment_details['phoneNumber'] == '0911223344'


def test_insert_losing_to_completed_payment(app, workflow):
    appointment_id = _confirmed(workflow)
    payment = workflow.pay(appointment_id)
    workflow.set_payment_status(payment['id'], 'completed')

    with app.app_context():
        appointment = db.session.get(Appointment, appointment_id)
        with pytest.raises(FailedPrecondition):
            payment_ledger.create_payment(appointment, 500, 'ETB', 'telebirr', {'phoneNumber': '0911223344'})
        assert Payment.query.count() == 1
        assert Payment.query.first().status == 'completed'


def test_revival_is_guarded_on_status(app, workflow):
    appointment_id = _confirmed(workflow)
    payment = workflow.pay(appointment_id)
    workflow.set_payment_status(payment['id'], 'failed')

    with app.app_context():
        failed = db.session.get(Payment, payment['id'])
        revived = payment_ledger.revive_payment(failed, 'telebirr', {'phoneNumber': '0911223344'})
        db.session.commit()
        assert revived.status == 'pending'

        # Second reviver of the same row finds nothing left to revive
        with pytest.raises(Conflict):
            payment_ledger.revive_payment(failed, 'cbe_birr', {'phoneNumber': '0911223344'})
        db.session.rollback()

        assert Payment.query.count() == 1
        assert db.session.get(Payment, payment['id']).payment_method == 'telebirr'


def test_admin_settlement_notifies_both_participants(workflow, client, auth, users):
    appointment_id = _confirmed(workflow)
    payment = workflow.pay(appointment_id)
    workflow.set_payment_status(payment['id'], 'completed', who='admin')

    for key in ('patient', 'doctor'):
        inbox = client.get(f"/api/messages/{users['admin']}", headers=auth(key)).get_json()['data']
        assert [m['receiverId'] for m in inbox] == [users[key]]
        assert 'Payment received' in inbox[0]['content']
