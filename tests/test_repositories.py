import datetime

import pytest

from mediclean.database import RepositoryContainer
from mediclean.domain.value_objects import GeoPoint
from mediclean.models import PickupRequest, WasteLog

from conftest import make_user

ROME = GeoPoint(12.4964, 41.9028)


def _pickup(repos, clinic_id, priority='medium', hours_ago=0, **fields):
    requested = datetime.datetime.utcnow() - datetime.timedelta(hours=hours_ago)
    values = dict(clinic_id=clinic_id, waste_type='sharps', volume_kg=10.0, priority=priority,
                  status='pending', requested_at=requested, longitude=ROME.longitude,
                  latitude=ROME.latitude)
    values.update(fields)
    return repos.pickups.add(PickupRequest(**values))


def test_user_search_matches_username_or_email(session):
    repos = RepositoryContainer(session)
    make_user(session, 'clinic', 'green_clinic')
    make_user(session, 'collector', 'fast_collector')

    users, total = repos.users.search(q='GREEN')
    assert total == 1
    assert users[0].username == 'green_clinic'

    users, total = repos.users.search(role='collector')
    assert [u.username for u in users] == ['fast_collector']


def test_nearby_collectors_must_be_verified(session):
    repos = RepositoryContainer(session)
    make_user(session, 'collector', 'verified_one', is_verified=True)
    make_user(session, 'collector', 'unverified_one')
    make_user(session, 'collector', 'far_away', is_verified=True, location=[9.19, 45.4642])

    found = repos.users.find_nearby_collectors(ROME, 10_000)
    assert [(user.username, round(distance)) for user, distance in found] == [('verified_one', 0)]


def test_pickups_sorted_urgent_first(session):
    repos = RepositoryContainer(session)
    clinic = make_user(session, 'clinic', 'clinic_one')
    low = _pickup(repos, clinic.id, 'low')
    urgent = _pickup(repos, clinic.id, 'urgent')
    medium = _pickup(repos, clinic.id, 'medium')

    pickups, total = repos.pickups.list({})
    assert total == 3
    assert [p.id for p in pickups] == [urgent.id, medium.id, low.id]


def test_overdue_filter_depends_on_priority(session):
    repos = RepositoryContainer(session)
    clinic = make_user(session, 'clinic', 'clinic_one')
    late = _pickup(repos, clinic.id, 'urgent', hours_ago=3)
    _pickup(repos, clinic.id, 'low', hours_ago=3)
    _pickup(repos, clinic.id, 'urgent', hours_ago=3, status='assigned')

    overdue, total = repos.pickups.list({'is_overdue': True})
    assert total == 1
    assert overdue[0].id == late.id


def test_status_counts_include_every_status(session):
    repos = RepositoryContainer(session)
    clinic = make_user(session, 'clinic', 'clinic_one')
    _pickup(repos, clinic.id)
    _pickup(repos, clinic.id, status='cancelled')

    assert repos.pickups.status_counts() == {'pending': 1, 'assigned': 0, 'collected': 0, 'cancelled': 1}
    assert repos.pickups.count_active_for_clinic(clinic.id) == 1


def test_pickups_nearby_sorted_by_distance(session):
    repos = RepositoryContainer(session)
    clinic = make_user(session, 'clinic', 'clinic_one')
    near = _pickup(repos, clinic.id, longitude=12.50, latitude=41.90)
    here = _pickup(repos, clinic.id)
    _pickup(repos, clinic.id, longitude=9.19, latitude=45.4642)

    found = repos.pickups.find_nearby(ROME, 5000, {})
    assert [p.id for p, _ in found] == [here.id, near.id]


def test_waste_log_filters_and_soft_delete(session):
    repos = RepositoryContainer(session)
    clinic = make_user(session, 'clinic', 'clinic_one')
    now = datetime.datetime.utcnow()
    small = repos.waste_logs.add(WasteLog(clinic_id=clinic.id, category='sharps', volume_kg=2.0, logged_at=now,
                                         container_type='box'))
    repos.waste_logs.add(WasteLog(clinic_id=clinic.id, category='biohazard', volume_kg=40.0, logged_at=now,
                                  container_type='bag', handling_instructions='Seal'))

    logs, total = repos.waste_logs.list({'max_volume': 10})
    assert total == 1
    assert logs[0].id == small.id
    assert repos.waste_logs.volume_since(clinic.id, now - datetime.timedelta(hours=1)) == 42.0

    repos.waste_logs.delete(small.id)
    assert repos.waste_logs.get_by_id(small.id) is None
    assert repos.waste_logs.get_by_id(small.id, include_deleted=True).is_deleted


def test_pickups_nearby_across_antimeridian(session):
    repos = RepositoryContainer(session)
    clinic = make_user(session, 'clinic', 'clinic_one')
    east = _pickup(repos, clinic.id, longitude=179.99, latitude=0.0)
    _pickup(repos, clinic.id, longitude=170.0, latitude=0.0)

    found = repos.pickups.find_nearby(GeoPoint(-179.99, 0.0), 5000, {})
    assert [p.id for p, _ in found] == [east.id]
    assert round(found[0][1]) == pytest.approx(2224, abs=5)
