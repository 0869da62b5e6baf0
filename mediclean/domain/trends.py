"""Time-series helpers shared by the statistics and report services."""

import datetime
import math
from typing import Any, Dict, Iterable, List, Optional

GROUP_BY_CHOICES = ('day', 'week', 'month', 'quarter', 'year')


def _mean(values: Iterable[Optional[float]]) -> Optional[float]:
    present = [v for v in values if v is not None]
    if not present:
        return None
    return sum(present) / len(present)


def _as_date(value) -> datetime.date:
    if isinstance(value, datetime.datetime):
        return value.date()
    if isinstance(value, datetime.date):
        return value
    return datetime.date.fromisoformat(str(value)[:10])


def calculate_trends(daily_points: List[Dict[str, Any]]) -> Dict[str, List[Dict[str, Any]]]:
    """Roll daily points up into daily, weekly and monthly series.

    Each point carries ``date``, ``count``, ``volume`` and ``avg_response_time``
    (which may be ``None``). Points must be sorted by date. A weekly group
    starts at its first day and absorbs every later day that is at most seven
    days after it.

    Args:
        daily_points: Per-day aggregates

    Returns:
        Dictionary with ``daily``, ``weekly`` and ``monthly`` lists
    """
    points = sorted(daily_points, key=lambda p: _as_date(p['date']))

    daily = [
        {
            'date': _as_date(p['date']).isoformat(),
            'count': p.get('count', 0),
            'volume': p.get('volume', 0.0),
            'avg_response_time': p.get('avg_response_time'),
        }
        for p in points
    ]

    weekly: List[Dict[str, Any]] = []
    week_members: List[Dict[str, Any]] = []
    week_start: Optional[datetime.date] = None
    for point in daily:
        day = datetime.date.fromisoformat(point['date'])
        if week_start is None or (day - week_start).days > 7:
            if week_members:
                weekly.append(_close_week(week_start, week_members))
            week_start = day
            week_members = []
        week_members.append(point)
    if week_members:
        weekly.append(_close_week(week_start, week_members))

    monthly: List[Dict[str, Any]] = []
    by_month: Dict[tuple, List[Dict[str, Any]]] = {}
    for point in daily:
        day = datetime.date.fromisoformat(point['date'])
        by_month.setdefault((day.year, day.month), []).append(point)
    for (year, month), members in by_month.items():
        monthly.append({
            'year': year,
            'month': month,
            'count': sum(m['count'] for m in members),
            'volume': sum(m['volume'] for m in members),
            'avg_response_time': _mean(m['avg_response_time'] for m in members),
        })

    return {'daily': daily, 'weekly': weekly, 'monthly': monthly}


def _close_week(start: datetime.date, members: List[Dict[str, Any]]) -> Dict[str, Any]:
    return {
        'start_date': start.isoformat(),
        'end_date': members[-1]['date'],
        'count': sum(m['count'] for m in members),
        'volume': sum(m['volume'] for m in members),
        'avg_response_time': _mean(m['avg_response_time'] for m in members),
    }


def period_key(moment: datetime.datetime, group_by: str) -> str:
    """Label the bucket ``moment`` falls into for the given grouping."""
    if group_by == 'day':
        return moment.strftime('%Y-%m-%d')
    if group_by == 'week':
        iso_year, iso_week, _ = moment.isocalendar()
        return f"{iso_year}-W{iso_week:02d}"
    if group_by == 'month':
        return f"{moment.year}-{moment.month:02d}"
    if group_by == 'quarter':
        return f"{moment.year}-Q{math.ceil(moment.month / 3)}"
    if group_by == 'year':
        return str(moment.year)
    raise ValueError(f"Invalid group_by parameter: {group_by}")


def population_stddev(values: List[float]) -> float:
    if not values:
        return 0.0
    mean = sum(values) / len(values)
    return math.sqrt(sum((v - mean) ** 2 for v in values) / len(values))


VOLUME_BUCKETS = (0, 10, 25, 50, 100, 200, 500)


def volume_bucket(volume: float) -> str:
    """Name the distribution bucket for a volume in kg."""
    for lower, upper in zip(VOLUME_BUCKETS, VOLUME_BUCKETS[1:]):
        if lower <= volume < upper:
            return f"{lower}-{upper}"
    return 'Above 500'
