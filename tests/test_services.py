import datetime
import json

import pytest

from mediclean.errors import AuthorizationError, NotFoundError, ValidationError
from mediclean.services.auth_service import hash_token
from mediclean.validation.schemas import waste_log_update_schema

ROME = [12.4964, 41.9028]


def waste_payload(**overrides):
    payload = {
        'category': 'sharps',
        'volume_kg': 5.0,
        'container_info': {'type': 'box', 'quantity': 1, 'condition': 'new'},
    }
    payload.update(overrides)
    return payload


def pickup_payload(**overrides):
    payload = {'waste_type': 'sharps', 'volume_kg': 12.5, 'priority': 'medium'}
    payload.update(overrides)
    return payload


def emergency(hours=2):
    return {
        'is_emergency': True,
        'reason': 'Container leaking',
        'response_deadline': datetime.datetime.utcnow() + datetime.timedelta(hours=hours),
    }


def notification_types(services, user):
    listing = services.notifications.list_for_user(user, {}, page=1, limit=100)
    return [n['type'] for n in listing['notifications']]


# =======================
# Waste logs
# =======================


def test_waste_log_create_defaults_to_clinic_location(services, actors):
    clinic = actors['clinic']
    log = services.waste_logs.create(clinic, waste_payload())

    assert log['clinic_id'] == clinic.id
    assert log['container_info'] == {'type': 'box', 'quantity': 1, 'condition': 'new'}
    assert log['location'] == {'type': 'Point', 'coordinates': ROME}
    assert 'waste_log_created' in notification_types(services, clinic)


def test_only_clinics_log_waste(services, actors):
    with pytest.raises(AuthorizationError):
        services.waste_logs.create(actors['collector'], waste_payload())


def test_waste_log_rules_are_enforced(services, actors):
    with pytest.raises(ValidationError) as exc:
        services.waste_logs.create(actors['clinic'], waste_payload(category='others'))
    assert 'subcategory' in exc.value.details

    log = services.waste_logs.create(actors['clinic'], waste_payload(
        category='biohazard', handling_instructions='Double bag and seal'))
    # the merged state still needs instructions
    with pytest.raises(ValidationError):
        services.waste_logs.update(actors['clinic'], log['id'], {'handling_instructions': ''})


def test_monthly_threshold_alerts_once(services, actors):
    clinic = actors['clinic']
    services.waste_logs.create(clinic, waste_payload(volume_kg=60.0))
    services.waste_logs.create(clinic, waste_payload(volume_kg=50.0))
    services.waste_logs.create(clinic, waste_payload(volume_kg=10.0))

    alerts = [t for t in notification_types(services, clinic) if t == 'waste_threshold_exceeded']
    assert len(alerts) == 1


def test_waste_log_edit_window(services, actors, session):
    clinic = actors['clinic']
    log = services.waste_logs.create(clinic, waste_payload())
    updated = services.waste_logs.update(clinic, log['id'], {'volume_kg': 7.5})
    assert updated['volume_kg'] == 7.5

    row = services.repos.waste_logs.get_by_id(log['id'])
    row.logged_at = datetime.datetime.utcnow() - datetime.timedelta(hours=25)
    session.commit()

    with pytest.raises(ValidationError) as exc:
        services.waste_logs.update(clinic, log['id'], {'volume_kg': 8.0})
    assert exc.value.code == 'EDIT_WINDOW_EXPIRED'


def test_waste_logs_are_private_to_their_clinic(services, actors):
    log = services.waste_logs.create(actors['clinic'], waste_payload())
    with pytest.raises(NotFoundError):
        services.waste_logs.get(actors['other_clinic'], log['id'])
    assert services.waste_logs.get(actors['admin'], log['id'])['id'] == log['id']

    listing = services.waste_logs.list(actors['other_clinic'], {})
    assert listing['pagination']['total'] == 0


def test_waste_logs_nearby(services, actors):
    services.waste_logs.create(actors['clinic'], waste_payload())
    services.waste_logs.create(actors['other_clinic'], waste_payload())

    results = services.waste_logs.nearby(actors['admin'], ROME, 1000)
    assert len(results) == 1
    assert results[0]['clinic_id'] == actors['clinic'].id
    assert results[0]['distance_m'] == 0.0


def test_waste_log_statistics(services, actors):
    clinic = actors['clinic']
    services.waste_logs.create(clinic, waste_payload(volume_kg=5.0))
    services.waste_logs.create(clinic, waste_payload(category='biohazard', volume_kg=10.0,
                                                     handling_instructions='Seal'))

    stats = services.waste_logs.statistics(clinic, {})
    assert [c['category'] for c in stats['category_breakdown']] == ['biohazard', 'sharps']
    assert stats['volume_stats']['total_volume'] == 15.0
    assert stats['volume_stats']['count'] == 2
    assert stats['time_distribution']['daily'][0]['count'] == 2
    assert stats['time_distribution']['daily'][0]['volume'] == 15.0

    other = services.waste_logs.statistics(actors['other_clinic'], {})
    assert other['volume_stats']['count'] == 0
    assert other['time_distribution']['daily'] == []


def test_container_info_update_keeps_omitted_fields(services, actors):
    clinic = actors['clinic']
    log = services.waste_logs.create(clinic, waste_payload(
        container_info={'type': 'box', 'quantity': 3, 'condition': 'damaged'}))

    changes = waste_log_update_schema.load({'container_info': {'type': 'bag'}})
    assert changes == {'container_info': {'type': 'bag'}}
    updated = services.waste_logs.update(clinic, log['id'], changes)
    assert updated['container_info'] == {'type': 'bag', 'quantity': 3, 'condition': 'damaged'}


# =======================
# Pickup requests
# =======================


def test_create_pickup_links_clinic_logs(services, actors):
    clinic = actors['clinic']
    log = services.waste_logs.create(clinic, waste_payload(volume_kg=4.0))
    pickup = services.pickups.create(clinic, pickup_payload(waste_log_ids=[log['id']]))

    assert pickup['status'] == 'pending'
    assert pickup['waste_log_ids'] == [log['id']]
    assert pickup['total_waste_volume'] == 4.0
    assert pickup['status_history'][0]['status'] == 'pending'
    assert 'pickup_request' in notification_types(services, clinic)

    other_log = services.waste_logs.create(actors['other_clinic'], waste_payload())
    with pytest.raises(ValidationError):
        services.pickups.create(clinic, pickup_payload(waste_log_ids=[other_log['id']]))


def test_only_clinics_request_pickups(services, actors):
    with pytest.raises(AuthorizationError):
        services.pickups.create(actors['collector'], pickup_payload())


def test_active_request_limit(services, actors):
    clinic = actors['clinic']
    created = [services.pickups.create(clinic, pickup_payload()) for _ in range(3)]

    with pytest.raises(ValidationError) as exc:
        services.pickups.create(clinic, pickup_payload())
    assert exc.value.code == 'ACTIVE_REQUEST_LIMIT'

    services.pickups.cancel(clinic, created[0]['id'], 'No longer needed')
    assert services.pickups.create(clinic, pickup_payload())['status'] == 'pending'


def test_emergency_request_is_urgent_and_alerts_admins(services, actors):
    pickup = services.pickups.create(actors['clinic'], pickup_payload(priority='low', emergency=emergency()),
                                     emergency=True)
    assert pickup['priority'] == 'urgent'
    assert pickup['emergency']['is_emergency'] is True
    assert 'emergency_alert' in notification_types(services, actors['admin'])

    with pytest.raises(ValidationError) as exc:
        services.pickups.create(actors['clinic'], pickup_payload(), emergency=True)
    assert 'emergency_reason' in exc.value.details


def test_pickup_lifecycle(services, actors):
    clinic, collector, admin = actors['clinic'], actors['collector'], actors['admin']
    pickup = services.pickups.create(clinic, pickup_payload())

    with pytest.raises(ValidationError) as exc:
        services.pickups.update(admin, pickup['id'], {'status': 'collected'})
    assert exc.value.code == 'INVALID_STATUS_TRANSITION'

    assigned = services.pickups.assign(admin, pickup['id'], collector.id)
    assert assigned['status'] == 'assigned'
    assert assigned['collector_id'] == collector.id
    assert 'pickup_assigned' in notification_types(services, collector)
    assert services.pickups.get(collector, pickup['id'])['status'] == 'assigned'

    collected = services.pickups.update(collector, pickup['id'], {
        'status': 'collected',
        'collection_details': {'actual_weight': 11.0, 'container_count': 2},
    })
    assert collected['status'] == 'collected'
    assert collected['collection_details']['actual_weight'] == 11.0
    assert collected['response_time_hours'] is not None
    assert [h['status'] for h in collected['status_history']] == ['pending', 'assigned', 'collected']
    assert 'pickup_completed' in notification_types(services, clinic)

    with pytest.raises(ValidationError):
        services.pickups.update(collector, pickup['id'], {'status': 'cancelled'})


def test_pickup_access_rules(services, actors):
    pickup = services.pickups.create(actors['clinic'], pickup_payload())
    with pytest.raises(AuthorizationError):
        services.pickups.get(actors['other_clinic'], pickup['id'])
    with pytest.raises(AuthorizationError):
        services.pickups.get(actors['collector'], pickup['id'])
    with pytest.raises(AuthorizationError):
        services.pickups.update(actors['clinic'], pickup['id'], {'status': 'assigned'})
    assert services.pickups.get(actors['health'], pickup['id'])['id'] == pickup['id']


def test_cancellation_window(services, actors, session):
    clinic = actors['clinic']
    pickup = services.pickups.create(clinic, pickup_payload())
    row = services.repos.pickups.get_by_id(pickup['id'])
    row.requested_at = datetime.datetime.utcnow() - datetime.timedelta(hours=49)
    session.commit()

    with pytest.raises(ValidationError) as exc:
        services.pickups.cancel(clinic, pickup['id'], 'Too late')
    assert exc.value.code == 'CANCELLATION_WINDOW_EXPIRED'
    with pytest.raises(AuthorizationError):
        services.pickups.cancel(actors['other_clinic'], pickup['id'], 'Not mine')

    cancelled = services.pickups.cancel(actors['admin'], pickup['id'], 'Cleared by admin')
    assert cancelled['status'] == 'cancelled'
    assert cancelled['cancellation_reason'] == 'Cleared by admin'


def test_priority_update(services, actors):
    admin = actors['admin']
    pickup = services.pickups.create(actors['clinic'], pickup_payload())
    updated = services.pickups.update_priority(admin, pickup['id'], 'high', note='Hospital request')
    assert updated['priority'] == 'high'
    assert updated['status_history'][-1]['note'] == 'Priority changed to high: Hospital request'

    urgent = services.pickups.create(actors['clinic'], pickup_payload(emergency=emergency()), emergency=True)
    with pytest.raises(ValidationError):
        services.pickups.update_priority(admin, urgent['id'], 'low')


def test_bulk_status_is_all_or_nothing(services, actors):
    admin = actors['admin']
    first = services.pickups.create(actors['clinic'], pickup_payload())
    second = services.pickups.create(actors['clinic'], pickup_payload())

    with pytest.raises(ValidationError) as exc:
        services.pickups.bulk_update_status(admin, [
            {'id': first['id'], 'status': 'cancelled', 'note': 'Duplicate'},
            {'id': second['id'], 'status': 'collected'},
        ])
    assert exc.value.code == 'BULK_VALIDATION_FAILED'
    assert exc.value.details == [{
        'index': 1, 'id': second['id'],
        'error': 'Invalid status transition from pending to collected',
    }]
    assert services.pickups.get(admin, first['id'])['status'] == 'pending'

    result = services.pickups.bulk_update_status(admin, [
        {'id': first['id'], 'status': 'cancelled', 'note': 'Duplicate'},
        {'id': second['id'], 'status': 'cancelled', 'note': 'Duplicate'},
    ])
    assert result['modified_count'] == 2
    assert services.pickups.get(admin, second['id'])['status'] == 'cancelled'


def test_bulk_assign(services, actors):
    admin, collector = actors['admin'], actors['collector']
    first = services.pickups.create(actors['clinic'], pickup_payload())
    second = services.pickups.create(actors['clinic'], pickup_payload())

    with pytest.raises(ValidationError) as exc:
        services.pickups.bulk_assign(admin, [
            {'pickup_id': first['id'], 'collector_id': collector.id},
            {'pickup_id': second['id'], 'collector_id': actors['clinic'].id},
        ])
    assert exc.value.details[0]['index'] == 1

    result = services.pickups.bulk_assign(admin, [
        {'pickup_id': first['id'], 'collector_id': collector.id},
        {'pickup_id': second['id'], 'collector_id': collector.id},
    ])
    assert result['modified_count'] == 2
    queue = services.pickups.collector_queue(collector, {})
    assert queue['pagination']['total'] == 2


def test_delete_only_pending(services, actors):
    admin = actors['admin']
    pickup = services.pickups.create(actors['clinic'], pickup_payload())
    services.pickups.delete(admin, pickup['id'])
    with pytest.raises(NotFoundError):
        services.pickups.get(admin, pickup['id'])

    assigned = services.pickups.create(actors['clinic'], pickup_payload())
    services.pickups.assign(admin, assigned['id'], actors['collector'].id)
    with pytest.raises(ValidationError):
        services.pickups.delete(admin, assigned['id'])


def test_pickups_nearby_only_pending_by_default(services, actors):
    services.pickups.create(actors['clinic'], pickup_payload())
    services.pickups.create(actors['other_clinic'], pickup_payload())

    results = services.pickups.nearby(actors['collector'], ROME, 2000)
    assert len(results) == 1
    with pytest.raises(AuthorizationError):
        services.pickups.nearby(actors['clinic'], ROME, 2000)


def test_pickup_statistics_count_every_request(services, actors):
    clinic, admin, collector = actors['clinic'], actors['admin'], actors['collector']
    pickups = [services.pickups.create(clinic, pickup_payload(volume_kg=10.0)) for _ in range(3)]
    services.pickups.assign(admin, pickups[0]['id'], collector.id)
    services.pickups.update(collector, pickups[0]['id'], {'status': 'collected'})

    stats = services.pickups.statistics(admin, {})
    daily = stats['time_distribution']['daily']
    assert sum(item['count'] for item in stats['status_breakdown']) == 3
    assert [day['count'] for day in daily] == [3]
    assert daily[0]['volume'] == 30.0
    assert daily[0]['avg_response_time'] is not None
    assert stats['volume_statistics']['total_requests'] == 3

    mine = services.pickups.statistics(collector, {})
    assert mine['volume_statistics']['total_requests'] == 1
    assert services.pickups.statistics(actors['other_clinic'], {})['time_distribution']['daily'] == []


def test_pickup_get_is_served_from_cache(services, actors, session):
    clinic, admin = actors['clinic'], actors['admin']
    pickup = services.pickups.create(clinic, pickup_payload())
    cache = services.pickups.cache

    services.repos.pickups.get_by_id(pickup['id']).description = 'Changed behind the cache'
    session.commit()
    hits = cache.hits
    assert services.pickups.get(admin, pickup['id'])['description'] is None
    assert cache.hits == hits + 1

    services.pickups.update_priority(admin, pickup['id'], 'high')
    fresh = services.pickups.get(admin, pickup['id'])
    assert fresh['priority'] == 'high'
    assert fresh['description'] == 'Changed behind the cache'


def test_waste_log_changes_refresh_linked_pickups(services, actors):
    clinic, admin = actors['clinic'], actors['admin']
    log = services.waste_logs.create(clinic, waste_payload(volume_kg=5.0))
    pickup = services.pickups.create(clinic, pickup_payload(waste_log_ids=[log['id']]))
    assert services.pickups.get(admin, pickup['id'])['total_waste_volume'] == 5.0

    services.waste_logs.update(clinic, log['id'], {'volume_kg': 40.0})
    assert services.pickups.get(admin, pickup['id'])['total_waste_volume'] == 40.0

    services.waste_logs.delete(clinic, log['id'])
    # with no live logs left the requested volume applies again
    assert services.pickups.get(admin, pickup['id'])['total_waste_volume'] == 12.5


def test_cached_pickup_recomputes_time_flags(services, actors):
    admin = actors['admin']
    pickup = services.pickups.create(actors['clinic'], pickup_payload(priority='urgent'))
    cache = services.pickups.cache
    cached = cache.get(pickup['id'])
    assert cached['is_overdue'] is False

    three_hours_ago = datetime.datetime.utcnow() - datetime.timedelta(hours=3)
    cache.set(pickup['id'], {**cached, 'requested_at': three_hours_ago.isoformat()})
    assert services.pickups.get(admin, pickup['id'])['is_overdue'] is True
    assert cache.get(pickup['id'])['is_overdue'] is False


# =======================
# Notifications
# =======================


def broadcast_payload(**overrides):
    payload = {
        'target_roles': ['clinic'],
        'type': 'system_maintenance',
        'title': 'Planned maintenance',
        'message': 'The platform will be offline on Sunday night.',
        'priority': 'medium',
        'category': 'system',
    }
    payload.update(overrides)
    return payload


def test_broadcast_tracks_read_state_per_recipient(services, actors):
    clinic, other = actors['clinic'], actors['other_clinic']
    created = services.notifications.create_broadcast(actors['admin'], broadcast_payload())
    assert created['recipient_count'] == 2

    before = services.notifications.unread_count(other)
    read = services.notifications.mark_read(clinic, created['id'])
    assert read['status'] == 'read'
    assert services.notifications.unread_count(other) == before

    with pytest.raises(NotFoundError):
        services.notifications.mark_read(actors['collector'], created['id'])
    with pytest.raises(AuthorizationError):
        services.notifications.delete(clinic, created['id'])
    services.notifications.delete(actors['admin'], created['id'])


def test_broadcast_requires_privileged_role(services, actors):
    with pytest.raises(AuthorizationError):
        services.notifications.create_broadcast(actors['clinic'], broadcast_payload())


def test_users_only_notify_themselves(services, actors):
    payload = {
        'user_id': actors['collector'].id,
        'type': 'account_update',
        'title': 'Hello there',
        'message': 'Just checking in with you.',
        'category': 'administrative',
    }
    with pytest.raises(AuthorizationError):
        services.notifications.create(actors['clinic'], payload)
    created = services.notifications.create(actors['health'], payload)
    assert created['user_id'] == actors['collector'].id
    assert created['created_by'] == actors['health'].id


def test_mark_all_read(services, actors):
    clinic = actors['clinic']
    services.waste_logs.create(clinic, waste_payload())
    services.pickups.create(clinic, pickup_payload())
    unread = services.notifications.unread_count(clinic)
    assert unread >= 2

    assert services.notifications.mark_all_read(clinic) == unread
    assert services.notifications.unread_count(clinic) == 0


def test_expired_notifications_are_hidden_by_default(services, actors):
    clinic = actors['clinic']
    an_hour_ago = datetime.datetime.utcnow() - datetime.timedelta(hours=1)
    services.notifications.notify(clinic, 'account_update', 'Old news', 'No longer relevant',
                                  expires_at=an_hour_ago)
    services.notifications.notify(clinic, 'account_update', 'Fresh news', 'Still relevant')

    visible = services.notifications.list_for_user(clinic, {})
    assert [n['title'] for n in visible['notifications']] == ['Fresh news']
    everything = services.notifications.list_for_user(clinic, {'include_expired': True})
    assert everything['pagination']['total'] == 2
    assert services.notifications.unread_count(clinic) == 1


# =======================
# Reports & statistics
# =======================


def report_payload(**overrides):
    now = datetime.datetime.utcnow()
    payload = {
        'type': 'waste',
        'start_date': now - datetime.timedelta(days=1),
        'end_date': now + datetime.timedelta(days=1),
        'format': 'json',
    }
    payload.update(overrides)
    return payload


def test_generate_and_download_report(services, actors):
    services.waste_logs.create(actors['clinic'], waste_payload(volume_kg=3.0))
    services.waste_logs.create(actors['clinic'], waste_payload(volume_kg=9.0))

    report = services.reports.generate(actors['admin'], report_payload())
    assert report['status'] == 'completed'
    assert report['metadata']['record_count'] == 2
    assert report['metadata']['checksum']

    body, mimetype, filename = services.reports.download(actors['admin'], report['id'])
    assert mimetype == 'application/json'
    assert filename == f"report_{report['id']}_waste.json"
    assert json.loads(body)['summary']['total_volume'] == 12.0

    body, mimetype, _ = services.reports.download(actors['admin'], report['id'], 'csv')
    assert mimetype == 'text/csv'
    assert body.splitlines()[0].startswith('id,clinic_id,category')

    body, _, filename = services.reports.download(actors['admin'], report['id'], 'excel')
    assert body[:2] == b'PK'
    assert filename.endswith('.xlsx')


def test_report_scoping_rules(services, actors):
    with pytest.raises(AuthorizationError):
        services.reports.generate(actors['collector'], report_payload())
    with pytest.raises(ValidationError):
        services.reports.generate(actors['admin'], report_payload(type='clinic_performance'))

    report = services.reports.generate(actors['clinic'], report_payload())
    assert report['parameters']['clinic_id'] == actors['clinic'].id
    with pytest.raises(AuthorizationError):
        services.reports.get(actors['other_clinic'], report['id'])


def test_scheduled_reports_run_and_advance(services, actors):
    admin = actors['admin']
    now = datetime.datetime.utcnow()
    scheduled = services.reports.schedule(admin, {
        'type': 'pickup',
        'frequency': 'daily',
        'start_at': now - datetime.timedelta(minutes=1),
    })
    assert scheduled['is_scheduled'] is True

    result = services.reports.run_due(now)
    assert result == {'processed': [scheduled['id']], 'failed': []}

    report = services.reports.get(admin, scheduled['id'])
    assert report['status'] == 'completed'
    assert report['schedule']['next_run'] == (now + datetime.timedelta(days=1)).isoformat()
    assert 'report_ready' in notification_types(services, admin)
    assert services.reports.run_due(now) == {'processed': [], 'failed': []}


def test_cleanup_removes_expired_one_off_reports(services, actors):
    report = services.reports.generate(actors['admin'], report_payload(retention_days=1))
    later = datetime.datetime.utcnow() + datetime.timedelta(days=2)
    assert services.reports.cleanup_expired(later) == 1
    with pytest.raises(NotFoundError):
        services.reports.get(actors['admin'], report['id'])


def test_dashboard_is_role_scoped(services, actors):
    services.waste_logs.create(actors['clinic'], waste_payload(volume_kg=3.0))
    services.waste_logs.create(actors['other_clinic'], waste_payload(volume_kg=9.0))

    admin_view = services.statistics.dashboard(actors['admin'])
    assert admin_view['waste']['total_volume'] == 12.0
    assert admin_view['users']['clinics'] == 2

    clinic_view = services.statistics.dashboard(actors['clinic'])
    assert clinic_view['waste']['total_volume'] == 3.0
    assert 'users' not in clinic_view


def test_clinic_performance(services, actors):
    clinic = actors['clinic']
    services.waste_logs.create(clinic, waste_payload())
    now = datetime.datetime.utcnow()
    result = services.statistics.clinic_performance(
        actors['admin'], clinic.id, now - datetime.timedelta(days=7), now + datetime.timedelta(hours=1))
    assert result['waste_metrics']['total_logs'] == 1
    assert result['pickup_metrics']['total_requests'] == 0
    assert 0 <= result['performance_scores']['compliance'] <= 1

    with pytest.raises(AuthorizationError):
        services.statistics.clinic_performance(actors['other_clinic'], clinic.id)


def test_waste_statistics_summary_and_distribution(services, actors):
    clinic = actors['clinic']
    services.waste_logs.create(clinic, waste_payload(volume_kg=5.0))
    services.waste_logs.create(clinic, waste_payload(volume_kg=30.0))
    services.waste_logs.create(clinic, waste_payload(category='biohazard', volume_kg=12.0,
                                                     handling_instructions='Seal'))

    stats = services.statistics.waste_statistics(actors['admin'], {})
    assert stats['summary']['total_logs'] == 3
    assert stats['summary']['total_volume'] == 47.0
    assert stats['summary']['unique_categories'] == 2
    assert stats['time_series'][0]['count'] == 3
    assert stats['time_series'][0]['categories_count'] == 2
    distribution = {bucket['range']: bucket['count'] for bucket in stats['volume_distribution']}
    assert distribution['0-10'] == 1
    assert distribution['10-25'] == 1
    assert distribution['25-50'] == 1
    assert distribution['Above 500'] == 0

    assert services.statistics.waste_statistics(actors['other_clinic'], {})['summary']['total_logs'] == 0


def test_pickup_statistics_time_series(services, actors):
    clinic, admin, collector = actors['clinic'], actors['admin'], actors['collector']
    done = services.pickups.create(clinic, pickup_payload(volume_kg=10.0))
    dropped = services.pickups.create(clinic, pickup_payload(volume_kg=15.0))
    services.pickups.assign(admin, done['id'], collector.id)
    services.pickups.update(collector, done['id'], {'status': 'collected'})
    services.pickups.cancel(clinic, dropped['id'], 'Handled in house')

    stats = services.statistics.pickup_statistics(admin, {})
    period = stats['time_series'][0]
    assert period['total_requests'] == 2
    assert period['completed_requests'] == 1
    assert period['cancelled_requests'] == 1
    assert period['completion_rate'] == 0.5
    assert period['volume'] == 25.0
    assert stats['volume_metrics']['total'] == 25.0
    assert stats['volume_metrics']['min'] == 10.0
    assert stats['volume_metrics']['max'] == 15.0
    assert stats['response_time']['avg'] >= 0

    scoped = services.statistics.pickup_statistics(collector, {})
    assert scoped['time_series'][0]['total_requests'] == 1


# =======================
# Audit
# =======================


def test_actions_are_audited(services, actors):
    pickup = services.pickups.create(actors['clinic'], pickup_payload())
    services.pickups.assign(actors['admin'], pickup['id'], actors['collector'].id)

    history = services.audit.entity_history('pickup_request', pickup['id'])
    assert [entry['action'] for entry in history] == ['create', 'assign']

    found = services.audit.search({'action': 'assign'})
    assert found['pagination']['total'] == 1
    assert found['logs'][0]['performed_by'] == actors['admin'].id


def test_audit_critical_events_statistics_and_cleanup(services, actors, session):
    admin = actors['admin']
    old = services.audit.log_action('delete', 'user', actors['clinic'].id, admin, severity='critical')
    services.audit.log_action('login', 'user', admin.id, admin, status='failure', severity='warning',
                              error_code='INVALID_CREDENTIALS')
    services.audit.log_action('login', 'user', admin.id, admin)

    critical = services.audit.critical_events()
    assert critical['pagination']['total'] == 2

    stats = services.audit.statistics({})
    assert stats['by_action'] == {'delete': 1, 'login': 2}
    assert stats['by_status'] == {'success': 2, 'failure': 1}
    assert stats['by_user'] == [{'user_id': admin.id, 'count': 3}]
    assert sum(day['count'] for day in stats['time_distribution']) == 3

    old.created_at = datetime.datetime.utcnow() - datetime.timedelta(days=100)
    session.commit()
    assert services.audit.critical_events(days=30)['pagination']['total'] == 1
    assert services.audit.cleanup() == 1
    assert services.audit.statistics({})['by_action'] == {'login': 2}


# =======================
# Users
# =======================


def test_admin_update_deactivates_and_notifies(services, actors):
    collector = actors['collector']
    updated = services.users.admin_update(actors['admin'], collector.id, {'status': 'suspended'})
    assert updated['status'] == 'suspended'
    assert updated['is_active'] is False
    assert 'account_update' in notification_types(services, collector)

    with pytest.raises(AuthorizationError):
        services.users.admin_update(actors['clinic'], collector.id, {'role': 'admin'})


def test_collector_verification_and_nearby_search(services, actors):
    collector = actors['collector']
    assert services.users.nearby_collectors(ROME) == []

    services.users.add_document(collector, {'type': 'license', 'number': 'LIC-2024-001'})
    services.users.update_service_area(collector, ROME, 25)
    verified = services.users.verify_user(actors['admin'], collector.id)
    assert verified['is_verified'] is True
    assert verified['verification']['verified_by'] == actors['admin'].id

    nearby = services.users.nearby_collectors(ROME, radius_km=5)
    assert [c['id'] for c in nearby] == [collector.id]
    assert nearby[0]['service_radius_km'] == 25

    with pytest.raises(AuthorizationError):
        services.users.add_document(actors['clinic'], {'type': 'permit', 'number': 'P-1'})


def test_collector_stats(services, actors):
    collector = actors['collector']
    pickup = services.pickups.create(actors['clinic'], pickup_payload(volume_kg=8.0))
    services.pickups.assign(actors['admin'], pickup['id'], collector.id)
    services.pickups.update(collector, pickup['id'], {'status': 'collected'})

    stats = services.users.collector_stats(collector, collector.id)
    assert stats['completed'] == 1
    assert stats['collected_volume_30d'] == 8.0
    with pytest.raises(AuthorizationError):
        services.users.collector_stats(actors['clinic'], collector.id)


def test_user_search_and_delete(services, actors):
    result = services.users.search(actors['admin'], {'role': 'clinic'})
    assert result['pagination']['total'] == 2

    with pytest.raises(AuthorizationError):
        services.users.delete_account(actors['clinic'], actors['other_clinic'].id)
    services.users.delete_account(actors['other_clinic'], actors['other_clinic'].id)
    assert services.users.search(actors['admin'], {'role': 'clinic'})['pagination']['total'] == 1


# =======================
# Password reset
# =======================


def test_password_reset_token_is_hashed_and_expires(services, actors, session):
    clinic = actors['clinic']
    assert services.auth.forgot_password('nobody@example.com') is None

    token = services.auth.forgot_password(clinic.email)
    assert clinic.password_reset_token_hash == hash_token(token)
    assert clinic.password_reset_token_hash != token
    assert clinic.password_reset_expires_at > datetime.datetime.utcnow()

    with pytest.raises(ValidationError) as exc:
        services.auth.reset_password('not-the-token', 'Better@4567')
    assert exc.value.code == 'INVALID_RESET_TOKEN'

    clinic.password_reset_expires_at = datetime.datetime.utcnow() - datetime.timedelta(minutes=1)
    session.commit()
    with pytest.raises(ValidationError) as exc:
        services.auth.reset_password(token, 'Better@4567')
    assert exc.value.code == 'INVALID_RESET_TOKEN'
    assert clinic.verify_password('Secret@123')
