import datetime

import pytest

from mediclean.domain.rules import flatten_waste_log, pickup_request_errors, waste_log_errors
from mediclean.domain.trends import calculate_trends, period_key, population_stddev, volume_bucket
from mediclean.domain.value_objects import (
    GeoPoint, NotificationChannel, NotificationType, PickupStatus, Priority, TimeSlot,
    WasteCategory,
)


def test_geopoint_validates_ranges():
    with pytest.raises(ValueError):
        GeoPoint(200, 10)
    with pytest.raises(ValueError):
        GeoPoint(10, -91)
    with pytest.raises(ValueError):
        GeoPoint.from_coordinates([1.0])
    with pytest.raises(ValueError):
        GeoPoint(True, 1)


def test_geopoint_distance_and_box():
    origin = GeoPoint(0, 0)
    north = GeoPoint.from_coordinates([0, 1])
    # one degree of latitude
    assert origin.distance_to(north) == pytest.approx(111_195, rel=1e-3)
    assert origin.distance_to(origin) == 0

    (min_lat, max_lat), lng_ranges = origin.bounding_box(5000)
    assert min_lat < 0 < max_lat
    assert len(lng_ranges) == 1
    assert lng_ranges[0][0] < 0 < lng_ranges[0][1]
    assert origin.to_geojson() == {'type': 'Point', 'coordinates': [0.0, 0.0]}


def test_bounding_box_splits_at_antimeridian():
    west_edge = GeoPoint(-179.99, 0)
    _, lng_ranges = west_edge.bounding_box(5000)
    assert len(lng_ranges) == 2
    assert any(low <= 179.99 <= high for low, high in lng_ranges)
    assert any(low <= -179.99 <= high for low, high in lng_ranges)
    assert west_edge.distance_to(GeoPoint(179.99, 0)) == pytest.approx(2224, rel=1e-2)

    _, lng_ranges = GeoPoint(10, 89.99).bounding_box(5000)
    assert lng_ranges == [(-180.0, 180.0)]


def test_time_slot():
    assert TimeSlot('09:00', '11:30').duration_minutes == 150
    with pytest.raises(ValueError):
        TimeSlot('11:00', '09:00')
    with pytest.raises(ValueError):
        TimeSlot('9am', '10:00')


def test_pickup_status_machine():
    assert PickupStatus.PENDING.can_transition_to(PickupStatus.ASSIGNED)
    assert PickupStatus.PENDING.can_transition_to(PickupStatus.CANCELLED)
    assert not PickupStatus.PENDING.can_transition_to(PickupStatus.COLLECTED)
    assert PickupStatus.ASSIGNED.can_transition_to(PickupStatus.COLLECTED)
    assert PickupStatus.COLLECTED.is_terminal
    assert PickupStatus.CANCELLED.is_terminal
    assert not PickupStatus.ASSIGNED.is_terminal

    with pytest.raises(ValueError, match="Invalid status transition"):
        PickupStatus.PENDING.validate_transition(PickupStatus.COLLECTED)
    with pytest.raises(ValueError, match="Cannot change status"):
        PickupStatus.COLLECTED.validate_transition(PickupStatus.CANCELLED)


def test_enum_parsing_is_tolerant():
    assert WasteCategory.from_string(' Sharps ') is WasteCategory.SHARPS
    assert PickupStatus.from_string(PickupStatus.ASSIGNED) is PickupStatus.ASSIGNED
    with pytest.raises(ValueError):
        Priority.from_string('critical')


def test_priority_rank_and_overdue():
    ranked = sorted(Priority, key=lambda p: p.rank, reverse=True)
    assert ranked[0] is Priority.URGENT
    assert ranked[-1] is Priority.LOW
    assert Priority.URGENT.overdue_after == datetime.timedelta(hours=2)
    assert Priority.LOW.overdue_after == datetime.timedelta(hours=48)


def test_notification_channel_resolution():
    assert NotificationChannel.resolve([]) is NotificationChannel.IN_APP
    assert NotificationChannel.resolve(['email']) is NotificationChannel.EMAIL
    assert NotificationChannel.resolve(['in_app', 'email']) is NotificationChannel.ALL
    assert NotificationChannel.resolve(['all']) is NotificationChannel.ALL
    assert NotificationType.for_pickup_status(PickupStatus.COLLECTED) is NotificationType.PICKUP_COMPLETED
    assert NotificationType.EMERGENCY_ALERT.requires_creator


def test_calculate_trends_groups_weeks_and_months():
    points = [
        {'date': datetime.date(2024, 1, 1), 'count': 1, 'volume': 10.0, 'avg_response_time': 2.0},
        {'date': datetime.date(2024, 1, 3), 'count': 2, 'volume': 5.0, 'avg_response_time': 4.0},
        {'date': datetime.date(2024, 1, 9), 'count': 1, 'volume': 1.0, 'avg_response_time': None},
        {'date': datetime.date(2024, 1, 10), 'count': 1, 'volume': 1.0, 'avg_response_time': 6.0},
        {'date': datetime.date(2024, 2, 2), 'count': 3, 'volume': 30.0, 'avg_response_time': None},
    ]
    trends = calculate_trends(points)

    assert [d['date'] for d in trends['daily']][:2] == ['2024-01-01', '2024-01-03']
    weeks = trends['weekly']
    assert [w['start_date'] for w in weeks] == ['2024-01-01', '2024-01-09', '2024-02-02']
    assert weeks[0]['count'] == 3
    assert weeks[0]['avg_response_time'] == pytest.approx(3.0)
    assert weeks[1]['end_date'] == '2024-01-10'
    assert weeks[2]['avg_response_time'] is None

    months = trends['monthly']
    assert [(m['year'], m['month']) for m in months] == [(2024, 1), (2024, 2)]
    assert months[0]['volume'] == pytest.approx(17.0)


def test_period_keys():
    moment = datetime.datetime(2024, 5, 17, 13, 30)
    assert period_key(moment, 'day') == '2024-05-17'
    assert period_key(moment, 'week') == '2024-W20'
    assert period_key(moment, 'month') == '2024-05'
    assert period_key(moment, 'quarter') == '2024-Q2'
    assert period_key(moment, 'year') == '2024'
    with pytest.raises(ValueError):
        period_key(moment, 'fortnight')


def test_volume_helpers():
    assert volume_bucket(5) == '0-10'
    assert volume_bucket(10) == '10-25'
    assert volume_bucket(499.9) == '200-500'
    assert volume_bucket(750) == 'Above 500'
    assert population_stddev([2, 4, 4, 4, 5, 5, 7, 9]) == pytest.approx(2.0)
    assert population_stddev([]) == 0.0


def test_waste_log_rules():
    assert waste_log_errors({'category': 'sharps'}) == {}
    assert 'subcategory' in waste_log_errors({'category': 'others'})
    assert 'handling_instructions' in waste_log_errors({'category': 'biohazard'})
    errors = waste_log_errors({'category': 'sharps', 'storage_temperature_min': 10,
                               'storage_temperature_max': 2})
    assert 'storage_conditions' in errors


def test_flatten_waste_log_keeps_partial_updates_partial():
    flat = flatten_waste_log({
        'volume_kg': 3.5,
        'container_info': {'type': 'box', 'quantity': 2},
        'storage_conditions': {'temperature': {'min': 2, 'max': 8}},
        'location': {'type': 'Point', 'coordinates': [12.5, 41.9]},
    })
    assert flat == {
        'volume_kg': 3.5,
        'container_type': 'box',
        'container_quantity': 2,
        'storage_temperature_min': 2,
        'storage_temperature_max': 8,
        'longitude': 12.5,
        'latitude': 41.9,
    }


def test_pickup_request_rules():
    now = datetime.datetime(2024, 1, 1, 12, 0)
    errors = pickup_request_errors({'is_emergency': True}, now)
    assert set(errors) == {'emergency_reason', 'response_deadline'}

    errors = pickup_request_errors({
        'is_emergency': True,
        'emergency_reason': 'Spill',
        'response_deadline': now - datetime.timedelta(hours=1),
    }, now)
    assert errors == {'response_deadline': "Response deadline must be in the future"}

    errors = pickup_request_errors({'is_scheduled': True}, now)
    assert 'preferred_date' in errors
    assert pickup_request_errors({
        'is_scheduled': True, 'preferred_date': now + datetime.timedelta(days=1),
    }, now) == {}
