"""Two-step proximity search shared by the located repositories.

SQL narrows rows to the bounding box of the radius; the exact haversine
distance is then checked in Python.
"""

from typing import List, Sequence, Tuple

from sqlalchemy import or_
from sqlalchemy.orm import Query

from mediclean.domain.value_objects import GeoPoint


def within_box(query: Query, model, point: GeoPoint, radius_m: float) -> Query:
    """Restrict ``query`` to rows whose coordinates fall in the radius' bounding box."""
    (min_lat, max_lat), lng_ranges = point.bounding_box(radius_m)
    return query.filter(
        model.longitude.isnot(None),
        model.latitude.isnot(None),
        model.latitude.between(min_lat, max_lat),
        or_(*[model.longitude.between(low, high) for low, high in lng_ranges]),
    )


def sort_by_distance(rows: Sequence, point: GeoPoint, radius_m: float) -> List[Tuple[object, float]]:
    """Keep rows within ``radius_m`` metres, nearest first, paired with their distance."""
    ranked = []
    for row in rows:
        distance = point.distance_to(row.location)
        if distance <= radius_m:
            ranked.append((row, distance))
    ranked.sort(key=lambda pair: pair[1])
    return ranked
