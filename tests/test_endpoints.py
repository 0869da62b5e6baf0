import datetime

API = '/api/v1'


def test_health_check(client):
    r = client.get(f'{API}/health')
    assert r.status_code == 200
    data = r.get_json()
    assert data['status'] == 'ok'
    assert data['database'] == 'connected'
    assert r.headers['X-Content-Type-Options'] == 'nosniff'


def test_swagger_document(client):
    r = client.get('/docs/swagger.json')
    assert r.status_code == 200
    assert 'paths' in r.get_json()


def test_register_login_and_profile(client):
    payload = {
        'username': 'clinic_new',
        'email': 'Clinic.New@example.com',
        'password': 'Secret@123',
        'role': 'clinic',
    }
    r = client.post(f'{API}/auth/register', json=payload)
    assert r.status_code == 201, r.get_json()
    assert r.get_json()['user']['email'] == 'clinic.new@example.com'

    r = client.post(f'{API}/auth/register', json=payload)
    assert r.status_code == 409
    assert r.get_json()['code'] == 'USER_EXISTS'

    r = client.post(f'{API}/auth/login', json={'email': 'clinic.new@example.com', 'password': 'Secret@123'})
    assert r.status_code == 200
    data = r.get_json()
    assert data['token_type'] == 'Bearer'

    r = client.get(f'{API}/auth/profile', headers={'Authorization': f"Bearer {data['access_token']}"})
    assert r.status_code == 200
    assert r.get_json()['user']['username'] == 'clinic_new'


def test_register_rejects_admin_role_and_weak_passwords(client):
    r = client.post(f'{API}/auth/register', json={
        'username': 'sneaky_admin', 'email': 'sneaky@example.com',
        'password': 'Secret@123', 'role': 'admin',
    })
    assert r.status_code == 400

    r = client.post(f'{API}/auth/register', json={
        'username': 'weak_user', 'email': 'weak@example.com', 'password': 'short',
    })
    assert r.status_code == 400
    assert r.get_json()['code'] == 'VALIDATION_ERROR'
    assert 'password' in r.get_json()['details']


def test_wrong_password_reports_remaining_attempts(client, users):
    r = client.post(f'{API}/auth/login', json={'identifier': 'clinic_user', 'password': 'Wrong@1234'})
    assert r.status_code == 401
    data = r.get_json()
    assert data['code'] == 'INVALID_CREDENTIALS'
    assert data['details']['remaining_attempts'] == 4


def test_missing_token_and_role_checks(client, login):
    r = client.get(f'{API}/waste/')
    assert r.status_code == 401
    assert r.get_json()['code'] == 'MISSING_TOKEN'

    r = client.get(f'{API}/audit/', headers=login('clinic'))
    assert r.status_code == 403
    assert r.get_json()['code'] == 'INSUFFICIENT_PERMISSIONS'
    assert r.headers['X-Frame-Options'] == 'DENY'


def test_waste_log_endpoints(client, login):
    headers = login('clinic')
    r = client.post(f'{API}/waste/', headers=headers, json={
        'category': 'sharps',
        'volume_kg': 4.5,
        'container_info': {'type': 'box', 'quantity': 2},
    })
    assert r.status_code == 201, r.get_json()
    log_id = r.get_json()['waste_log']['id']

    r = client.get(f'{API}/waste/{log_id}', headers=headers)
    assert r.status_code == 200
    assert r.get_json()['waste_log']['volume_kg'] == 4.5

    r = client.post(f'{API}/waste/', headers=headers, json={'category': 'sharps', 'volume_kg': 4.5})
    assert r.status_code == 400

    r = client.post(f'{API}/waste/', headers=login('collector'), json={
        'category': 'sharps', 'volume_kg': 1.0, 'container_info': {'type': 'bag'},
    })
    assert r.status_code == 403


def test_pickup_lifecycle(client, login, users):
    clinic, admin, collector = login('clinic'), login('admin'), login('collector')

    r = client.post(f'{API}/pickup/request', headers=clinic, json={'waste_type': 'sharps', 'volume_kg': 12.0})
    assert r.status_code == 201, r.get_json()
    pickup_id = r.get_json()['pickup_request']['id']

    r = client.patch(f'{API}/pickup/{pickup_id}/assign', headers=clinic,
                     json={'collector_id': users['collector']})
    assert r.status_code == 403

    r = client.patch(f'{API}/pickup/{pickup_id}/assign', headers=admin,
                     json={'collector_id': users['collector']})
    assert r.status_code == 200
    assert r.get_json()['pickup_request']['status'] == 'assigned'

    r = client.get(f'{API}/pickup/collector', headers=collector)
    assert r.get_json()['pagination']['total'] == 1

    r = client.patch(f'{API}/pickup/{pickup_id}', headers=collector, json={
        'status': 'collected',
        'collection_details': {'actual_weight': 11.5, 'container_count': 1},
    })
    assert r.status_code == 200, r.get_json()
    assert r.get_json()['pickup_request']['status'] == 'collected'

    r = client.patch(f'{API}/pickup/{pickup_id}/cancel', headers=clinic, json={'reason': 'Too late now'})
    assert r.status_code == 400
    assert r.get_json()['code'] == 'INVALID_STATUS_TRANSITION'

    r = client.get(f'{API}/notifications/unread-count', headers=clinic)
    assert r.status_code == 200
    assert r.get_json()['unread_count'] >= 3


def test_bulk_status_is_validated_first(client, login):
    clinic, admin = login('clinic'), login('admin')
    ids = [
        client.post(f'{API}/pickup/request', headers=clinic,
                    json={'waste_type': 'expired_meds', 'volume_kg': 3.0}).get_json()['pickup_request']['id']
        for _ in range(2)
    ]

    r = client.patch(f'{API}/pickup/bulk/status', headers=admin, json={'updates': [
        {'id': ids[0], 'status': 'cancelled', 'note': 'Duplicate'},
        {'id': ids[1], 'status': 'collected'},
    ]})
    assert r.status_code == 400
    assert r.get_json()['code'] == 'BULK_VALIDATION_FAILED'
    assert r.get_json()['details'][0]['index'] == 1

    r = client.get(f'{API}/pickup/{ids[0]}', headers=admin)
    assert r.get_json()['pickup_request']['status'] == 'pending'


def test_report_generate_and_download(client, login):
    clinic = login('clinic')
    client.post(f'{API}/waste/', headers=clinic, json={
        'category': 'biohazard', 'volume_kg': 2.0, 'container_info': {'type': 'container'},
        'handling_instructions': 'Keep sealed',
    })
    now = datetime.datetime.utcnow()
    r = client.post(f'{API}/reports/generate', headers=clinic, json={
        'type': 'waste',
        'start_date': (now - datetime.timedelta(days=1)).isoformat(),
        'end_date': (now + datetime.timedelta(days=1)).isoformat(),
        'format': 'csv',
    })
    assert r.status_code == 201, r.get_json()
    report = r.get_json()['report']
    assert report['status'] == 'completed'
    assert report['metadata']['record_count'] == 1

    r = client.get(f"{API}/reports/{report['id']}/download", headers=clinic)
    assert r.status_code == 200
    assert r.mimetype == 'text/csv'
    assert b'biohazard' in r.data

    r = client.get(f"{API}/reports/{report['id']}/download", headers=login('collector'))
    assert r.status_code == 403


def test_dashboard_and_audit(client, login):
    r = client.get(f'{API}/statistics/dashboard', headers=login('admin'))
    assert r.status_code == 200
    assert r.get_json()['users']['clinics'] == 1

    r = client.get(f'{API}/statistics/dashboard', headers=login('clinic'))
    assert 'users' not in r.get_json()

    r = client.get(f'{API}/audit/', headers=login('admin'))
    assert r.status_code == 200
    actions = {entry['action'] for entry in r.get_json()['logs']}
    assert 'login' in actions


def test_logout_revokes_token(client, login):
    headers = login('health')
    r = client.post(f'{API}/auth/logout', headers=headers)
    assert r.status_code == 200

    r = client.get(f'{API}/auth/profile', headers=headers)
    assert r.status_code == 401
    assert r.get_json()['code'] == 'TOKEN_REVOKED'


def test_change_password(client, login):
    headers = login('collector')
    r = client.post(f'{API}/auth/change-password', headers=headers, json={
        'current_password': 'Wrong@1234', 'new_password': 'Better@4567',
    })
    assert r.status_code == 401

    r = client.post(f'{API}/auth/change-password', headers=headers, json={
        'current_password': 'Secret@123', 'new_password': 'Better@4567',
    })
    assert r.status_code == 200, r.get_json()

    assert login('collector', 'Better@4567')
    r = client.post(f'{API}/auth/login', json={'identifier': 'collector_user', 'password': 'Secret@123'})
    assert r.status_code == 401


def test_forgot_and_reset_password(client, users):
    r = client.post(f'{API}/auth/forgot-password', json={'email': 'nobody@example.com'})
    assert r.status_code == 200
    assert 'reset_token' not in r.get_json()

    r = client.post(f'{API}/auth/forgot-password', json={'email': 'clinic_user@example.com'})
    assert r.status_code == 200
    token = r.get_json()['reset_token']

    r = client.post(f'{API}/auth/reset-password', json={'token': token, 'password': 'Fresh@2468'})
    assert r.status_code == 200, r.get_json()
    assert r.get_json()['access_token']

    r = client.post(f'{API}/auth/login', json={'identifier': 'clinic_user', 'password': 'Fresh@2468'})
    assert r.status_code == 200

    r = client.post(f'{API}/auth/reset-password', json={'token': token, 'password': 'Other@1357'})
    assert r.status_code == 400
    assert r.get_json()['code'] == 'INVALID_RESET_TOKEN'


def test_partial_waste_log_update_keeps_container_details(client, login):
    headers = login('clinic')
    r = client.post(f'{API}/waste/', headers=headers, json={
        'category': 'sharps',
        'volume_kg': 3.0,
        'container_info': {'type': 'box', 'quantity': 4, 'condition': 'used'},
    })
    log_id = r.get_json()['waste_log']['id']

    r = client.patch(f'{API}/waste/{log_id}', headers=headers, json={'container_info': {'type': 'container'}})
    assert r.status_code == 200, r.get_json()
    assert r.get_json()['waste_log']['container_info'] == {'type': 'container', 'quantity': 4, 'condition': 'used'}
