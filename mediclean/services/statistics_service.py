"""Statistics service.

Aggregations are pulled through the repositories; period bucketing,
standard deviations and the compliance scores are computed here.
"""

import datetime
import logging
from collections import OrderedDict, defaultdict
from typing import Any, Dict, List, Optional

from mediclean.domain.trends import VOLUME_BUCKETS, period_key, population_stddev, volume_bucket
from mediclean.domain.value_objects import PickupStatus, UserRole
from mediclean.errors import AuthorizationError, ValidationError
from mediclean.models import User

from .common import ensure_role, found, has_role

logger = logging.getLogger(__name__)

DASHBOARD_DEFAULT_DAYS = 30
RESPONSE_TARGET_HOURS = 24
WASTE_LOG_TARGET = 30
COMPLIANCE_WEIGHTS = {'waste_logging': 0.4, 'pickup_completion': 0.3, 'response_time': 0.2}


def _ratio(part: float, whole: float) -> float:
    return part / whole if whole else 0.0


def _summary(values: List[float]) -> Dict[str, Any]:
    """avg/min/max/std_dev of ``values``, zeros when empty."""
    if not values:
        return {'avg': 0.0, 'min': 0.0, 'max': 0.0, 'std_dev': 0.0}
    return {
        'avg': sum(values) / len(values),
        'min': min(values),
        'max': max(values),
        'std_dev': population_stddev(values),
    }


def default_period(start: Optional[datetime.datetime], end: Optional[datetime.datetime],
                   days: int = DASHBOARD_DEFAULT_DAYS):
    end = end or datetime.datetime.utcnow()
    start = start or end - datetime.timedelta(days=days)
    if start > end:
        raise ValidationError("start_date must not be after end_date")
    return start, end


class StatisticsService:
    """Waste, pickup, clinic performance and dashboard statistics."""

    def __init__(self, repos):
        """Initialize statistics service.

        Args:
            repos: RepositoryContainer; users, waste_logs and pickups are read
        """
        self.repos = repos

    # Scoping ----------------------------------------------------------------

    @staticmethod
    def _waste_filters(actor: User, params: Dict[str, Any]) -> Dict[str, Any]:
        filters = {key: params.get(key) for key in ('clinic_id', 'start_date', 'end_date', 'category')}
        if has_role(actor, UserRole.CLINIC):
            filters['clinic_id'] = actor.id
        return filters

    @staticmethod
    def _pickup_filters(actor: User, params: Dict[str, Any]) -> Dict[str, Any]:
        filters = {key: params.get(key) for key in ('clinic_id', 'collector_id', 'start_date', 'end_date')}
        if has_role(actor, UserRole.CLINIC):
            filters['clinic_id'] = actor.id
        elif has_role(actor, UserRole.COLLECTOR):
            filters['collector_id'] = actor.id
        return filters

    # Waste ------------------------------------------------------------------

    def waste_statistics(self, actor: User, params: Dict[str, Any]) -> Dict[str, Any]:
        """Waste time series, category breakdown, volume distribution and summary.

        Args:
            actor: Requesting user; clinics only see their own logs
            params: Optional clinic_id, start_date, end_date and group_by

        Returns:
            Dictionary with ``time_series``, ``category_breakdown``,
            ``volume_distribution`` and ``summary``
        """
        group_by = params.get('group_by') or 'day'
        filters = self._waste_filters(actor, params)
        logs = self.repos.waste_logs.find_all(filters)

        series: Dict[str, Dict[str, Any]] = OrderedDict()
        distribution = OrderedDict(
            (label, {'range': label, 'count': 0, 'total_volume': 0.0})
            for label in [f"{lo}-{hi}" for lo, hi in zip(VOLUME_BUCKETS, VOLUME_BUCKETS[1:])] + ['Above 500']
        )
        for log in logs:
            key = period_key(log.logged_at, group_by)
            entry = series.setdefault(key, {'period': key, 'volume': 0.0, 'count': 0, 'categories': set()})
            entry['volume'] += log.volume_kg
            entry['count'] += 1
            entry['categories'].add(log.category)

            bucket = distribution[volume_bucket(log.volume_kg)]
            bucket['count'] += 1
            bucket['total_volume'] += log.volume_kg

        time_series = [
            {'period': e['period'], 'volume': e['volume'], 'count': e['count'],
             'categories_count': len(e['categories'])}
            for e in sorted(series.values(), key=lambda e: e['period'])
        ]
        total_volume = sum(log.volume_kg for log in logs)
        return {
            'time_series': time_series,
            'category_breakdown': self.repos.waste_logs.category_breakdown(filters),
            'volume_distribution': list(distribution.values()),
            'summary': {
                'total_volume': total_volume,
                'avg_volume_per_log': _ratio(total_volume, len(logs)),
                'total_logs': len(logs),
                'unique_categories': len({log.category for log in logs}),
            },
        }

    # Pickups ----------------------------------------------------------------

    def pickup_statistics(self, actor: User, params: Dict[str, Any]) -> Dict[str, Any]:
        """Pickup time series, status breakdown, response time and volume metrics."""
        group_by = params.get('group_by') or 'day'
        filters = self._pickup_filters(actor, params)
        pickups = self.repos.pickups.find_all(filters)

        buckets = defaultdict(lambda: {'total': 0, 'completed': 0, 'cancelled': 0,
                                       'volume': 0.0, 'response_times': []})
        response_times = []
        for pickup in pickups:
            bucket = buckets[period_key(pickup.requested_at, group_by)]
            bucket['total'] += 1
            bucket['volume'] += pickup.volume_kg
            if pickup.status == PickupStatus.COLLECTED.value:
                bucket['completed'] += 1
            elif pickup.status == PickupStatus.CANCELLED.value:
                bucket['cancelled'] += 1
            if pickup.response_time_hours is not None:
                bucket['response_times'].append(pickup.response_time_hours)
                response_times.append(pickup.response_time_hours)

        time_series = []
        for period in sorted(buckets):
            b = buckets[period]
            time_series.append({
                'period': period,
                'total_requests': b['total'],
                'completed_requests': b['completed'],
                'cancelled_requests': b['cancelled'],
                'completion_rate': _ratio(b['completed'], b['total']),
                'volume': b['volume'],
                'avg_response_time': (sum(b['response_times']) / len(b['response_times'])
                                      if b['response_times'] else None),
            })

        volumes = [p.volume_kg for p in pickups]
        volume_metrics = {'total': sum(volumes), **_summary(volumes)}
        return {
            'time_series': time_series,
            'status_breakdown': self.repos.pickups.status_breakdown(filters),
            'response_time': _summary(response_times),
            'volume_metrics': volume_metrics,
        }

    # Clinic performance -----------------------------------------------------

    def clinic_performance(self, actor: User, clinic_id: int,
                           start_date: Optional[datetime.datetime] = None,
                           end_date: Optional[datetime.datetime] = None) -> Dict[str, Any]:
        """Waste and pickup metrics, compliance and performance scores for one clinic.

        Raises:
            AuthorizationError: If a clinic asks for another clinic
            NotFoundError: If the clinic does not exist
            ValidationError: If the user is not a clinic
        """
        if has_role(actor, UserRole.CLINIC):
            if actor.id != clinic_id:
                raise AuthorizationError("You can only view your own performance")
        else:
            ensure_role(actor, UserRole.ADMIN, UserRole.HEALTH)
        clinic = found(self.repos.users.get_by_id(clinic_id), 'Clinic', clinic_id)
        if clinic.role != UserRole.CLINIC.value:
            raise ValidationError("User is not a clinic")

        start, end = default_period(start_date, end_date)
        period_days = max(1, (end.date() - start.date()).days + 1)
        logs = self.repos.waste_logs.find_all({'clinic_id': clinic_id, 'start_date': start, 'end_date': end})
        pickups = self.repos.pickups.find_all({'clinic_id': clinic_id, 'start_date': start, 'end_date': end})

        total_volume = sum(log.volume_kg for log in logs)
        categories = defaultdict(float)
        for log in logs:
            categories[log.category] += log.volume_kg
        waste_metrics = {
            'total_logs': len(logs),
            'total_volume': total_volume,
            'avg_volume': _ratio(total_volume, len(logs)),
            'categories': dict(categories),
            'days_with_logs': len({log.logged_at.date() for log in logs}),
        }

        completed = sum(1 for p in pickups if p.status == PickupStatus.COLLECTED.value)
        cancelled = sum(1 for p in pickups if p.status == PickupStatus.CANCELLED.value)
        response_times = [p.response_time_hours for p in pickups if p.response_time_hours is not None]
        avg_response = sum(response_times) / len(response_times) if response_times else None
        pickup_metrics = {
            'total_requests': len(pickups),
            'completed': completed,
            'cancelled': cancelled,
            'emergency': sum(1 for p in pickups if p.is_emergency),
            'completion_rate': _ratio(completed, len(pickups)),
            'cancellation_rate': _ratio(cancelled, len(pickups)),
            'avg_response_time': avg_response,
        }

        if avg_response is None:
            response_score = 0.0
        elif avg_response <= 0:
            response_score = 1.0
        else:
            response_score = min(1.0, RESPONSE_TARGET_HOURS / avg_response)
        compliance = {
            'waste_logging': min(1.0, waste_metrics['days_with_logs'] / period_days),
            'pickup_completion': pickup_metrics['completion_rate'],
            'response_time': response_score,
        }

        waste_management = min(1.0, len(logs) / WASTE_LOG_TARGET)
        pickup_efficiency = pickup_metrics['completion_rate'] * (1 - pickup_metrics['cancellation_rate'])
        compliance_score = sum(compliance[key] * weight for key, weight in COMPLIANCE_WEIGHTS.items())
        scores = {
            'waste_management': round(waste_management, 4),
            'pickup_efficiency': round(pickup_efficiency, 4),
            'compliance': round(compliance_score, 4),
        }
        scores['overall'] = round(sum(scores.values()) / 3, 4)

        return {
            'clinic': clinic.to_dict(),
            'period': {'start': start.isoformat(), 'end': end.isoformat(), 'days': period_days},
            'waste_metrics': waste_metrics,
            'pickup_metrics': pickup_metrics,
            'compliance': {key: round(value, 4) for key, value in compliance.items()},
            'performance_scores': scores,
        }

    # Dashboard --------------------------------------------------------------

    def dashboard(self, actor: User, start_date: Optional[datetime.datetime] = None,
                  end_date: Optional[datetime.datetime] = None) -> Dict[str, Any]:
        """Role-scoped overview for the last 30 days unless a range is given."""
        start, end = default_period(start_date, end_date)
        params = {'start_date': start, 'end_date': end}

        waste_filters = self._waste_filters(actor, params)
        volume = self.repos.waste_logs.volume_stats(waste_filters)

        pickup_filters = self._pickup_filters(actor, params)
        status_counts = self.repos.pickups.status_counts(pickup_filters)
        response_times = [
            p.response_time_hours
            for p in self.repos.pickups.find_all({**pickup_filters, 'status': PickupStatus.COLLECTED.value})
            if p.response_time_hours is not None
        ]

        result = {
            'period': {'start': start.isoformat(), 'end': end.isoformat()},
            'waste': {
                'total_volume': volume['total_volume'],
                'total_logs': volume['count'],
                'category_breakdown': self.repos.waste_logs.category_breakdown(waste_filters),
            },
            'pickups': {
                'status_counts': status_counts,
                'total_requests': sum(status_counts.values()),
                'avg_response_time': (sum(response_times) / len(response_times)
                                      if response_times else None),
            },
        }
        if has_role(actor, UserRole.ADMIN, UserRole.HEALTH):
            month_start = end.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
            result['users'] = {
                'clinics': self.repos.users.count_by_role(UserRole.CLINIC.value),
                'collectors': self.repos.users.count_by_role(UserRole.COLLECTOR.value),
                'active': self.repos.users.count_active(),
                'new_this_month': self.repos.users.count_created_since(month_start),
            }
        return result
