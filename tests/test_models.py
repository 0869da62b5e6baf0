import datetime
import sqlite3

import pytest

from mediclean.domain.value_objects import PickupStatus
from mediclean.models import Notification, PickupRequest, Report, User, WasteLog, add_months


def test_init_db_creates_tables(app):
    # running it twice must not raise
    app.init_db()

    db_file = app.config['DATABASE_URL'][len('sqlite:///'):]
    conn = sqlite3.connect(db_file)
    cur = conn.cursor()
    cur.execute("SELECT name FROM sqlite_master WHERE type='table'")
    tables = {r[0] for r in cur.fetchall()}
    conn.close()

    for table in ('users', 'waste_logs', 'pickup_requests', 'pickup_status_history',
                  'notifications', 'notification_recipients', 'reports', 'audit_logs'):
        assert table in tables


def test_user_password_and_lockout():
    user = User(username='clinic_a', email='clinic_a@example.com', role='clinic',
                status='active', is_active=True, is_deleted=False)
    user.set_password('Secret@123')
    assert user.hashed_password != 'Secret@123'
    assert user.verify_password('Secret@123')
    assert not user.verify_password('wrong')
    assert user.last_password_change is not None

    assert user.register_failed_login(max_attempts=3) == 2
    assert user.register_failed_login(max_attempts=3) == 1
    assert not user.is_account_locked()
    assert user.register_failed_login(max_attempts=3, lockout_minutes=15) == 0
    assert user.is_account_locked()
    assert not user.is_account_locked(now=datetime.datetime.utcnow() + datetime.timedelta(minutes=16))

    user.record_login()
    assert user.failed_login_attempts == 0
    assert not user.is_account_locked()


def test_user_can_login_depends_on_status():
    user = User(username='collector_a', email='c@example.com', role='collector',
                status='active', is_active=True, is_deleted=False)
    assert user.can_login
    user.status = 'suspended'
    assert not user.can_login


def test_user_preferences_fall_back_to_defaults():
    user = User(username='health_a', email='h@example.com', role='health')
    assert 'sms' in user.preferences_for('pickup_assigned')
    assert user.preferences_for('report_ready') == ['in_app']


def _pickup(**fields):
    values = {
        'clinic_id': 1, 'waste_type': 'sharps', 'volume_kg': 12.0, 'priority': 'medium',
        'status': 'pending', 'is_emergency': False, 'is_deleted': False,
        'requested_at': datetime.datetime.utcnow(),
    }
    values.update(fields)
    return PickupRequest(**values)


def test_pickup_overdue_depends_on_priority():
    three_hours_ago = datetime.datetime.utcnow() - datetime.timedelta(hours=3)
    assert _pickup(priority='urgent', requested_at=three_hours_ago).is_overdue()
    assert not _pickup(priority='low', requested_at=three_hours_ago).is_overdue()
    assert not _pickup(priority='urgent', status='assigned', requested_at=three_hours_ago).is_overdue()


def test_pickup_status_change_records_history():
    pickup = _pickup()
    pickup.change_status(PickupStatus.from_string('assigned'), note='Assigned', changed_by=1)
    pickup.change_status(PickupStatus.from_string('collected'), changed_by=2)

    assert pickup.status == 'collected'
    assert pickup.collected_at is not None
    assert [entry.status for entry in pickup.history] == ['assigned', 'collected']
    assert pickup.response_time_hours is not None
    assert pickup.wait_time_hours is not None
    assert not pickup.is_editable
    assert not pickup.is_deletable

    with pytest.raises(ValueError):
        pickup.change_status(PickupStatus.from_string('cancelled'))


def test_pickup_total_volume_prefers_linked_logs():
    pickup = _pickup(volume_kg=50.0)
    assert pickup.total_waste_volume == 50.0
    pickup.waste_logs = [
        WasteLog(category='sharps', volume_kg=4.0, is_deleted=False),
        WasteLog(category='sharps', volume_kg=6.0, is_deleted=False),
    ]
    assert pickup.total_waste_volume == 10.0


def test_emergency_expiry():
    past = datetime.datetime.utcnow() - datetime.timedelta(minutes=1)
    assert _pickup(is_emergency=True, response_deadline=past).is_emergency_expired()
    assert not _pickup(is_emergency=False, response_deadline=past).is_emergency_expired()


def test_add_months_clamps_day():
    assert add_months(datetime.datetime(2024, 1, 31), 1) == datetime.datetime(2024, 2, 29)
    assert add_months(datetime.datetime(2024, 11, 15), 3) == datetime.datetime(2025, 2, 15)
    assert add_months(datetime.datetime(2024, 3, 31), -1) == datetime.datetime(2024, 2, 29)


def test_report_schedule_helpers():
    now = datetime.datetime(2024, 1, 31, 8, 0)
    report = Report(frequency='monthly', next_run=now - datetime.timedelta(minutes=5),
                    retention_days=30, created_at=now)
    assert report.is_scheduled
    assert report.is_due(now)
    assert report.calculate_next_run(now) == datetime.datetime(2024, 2, 29, 8, 0)
    assert report.is_expired(now + datetime.timedelta(days=31))

    once = Report(frequency='once', next_run=None, retention_days=30, created_at=now)
    assert not once.is_due(now)
    assert once.calculate_next_run(now) is None


def test_individual_notification_read_state():
    notification = Notification(is_broadcast=False, user_id=7, status='unread',
                                type='pickup_request', title='t', message='m',
                                priority='urgent', category='operational')
    assert notification.addressed_to(7)
    assert not notification.mark_read(8)
    assert notification.mark_read(7)
    assert not notification.mark_read(7)
    assert notification.to_dict()['status'] == 'read'
    assert notification.to_dict()['is_urgent'] is True
    assert notification.archive(7)
    assert notification.status == 'archived'
