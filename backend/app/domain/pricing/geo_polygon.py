"""
Point-in-polygon containment for zone boundaries.

Points on an edge or vertex count as inside so fares do not flap at zone
borders. Shapely works in (x, y), so vertices are stored as (lat, lng) but
handed to it as (lng, lat).

Longitude wraparound at the antimeridian is not handled; service areas are
assumed not to cross it.
"""

import math
from functools import lru_cache
from typing import Any, Sequence, Tuple

from shapely.geometry import Point, Polygon

from backend.app.core.exceptions import InvalidGeometry, InvalidTripInput
from backend.app.domain.pricing.entities import GeoPoint

# Distance (in degrees) within which a point counts as lying on the boundary
EDGE_TOLERANCE = 1e-9


def to_point(value: Any, field: str = "point") -> GeoPoint:
    """
    Coerce a coordinate into a validated GeoPoint.

    Accepts (lat, lng) pairs or mappings with "lat"/"lng" keys.

    Raises:
        InvalidTripInput: If the coordinate is malformed or out of range.
    """
    try:
        if isinstance(value, dict):
            lat, lng = float(value["lat"]), float(value["lng"])
        else:
            lat, lng = (float(v) for v in value)
    except (KeyError, TypeError, ValueError):
        raise InvalidTripInput(f"Malformed coordinate for {field}: {value!r}", field=field)

    if not (math.isfinite(lat) and math.isfinite(lng)):
        raise InvalidTripInput(f"Coordinate for {field} must be finite", field=field)
    if not -90.0 <= lat <= 90.0:
        raise InvalidTripInput(f"Latitude {lat} out of range for {field}", field=field)
    if not -180.0 <= lng <= 180.0:
        raise InvalidTripInput(f"Longitude {lng} out of range for {field}", field=field)

    return GeoPoint(lat, lng)


def _vertices(polygon: Sequence[Sequence[float]]) -> Tuple[Tuple[float, float], ...]:
    vertices = [(float(lat), float(lng)) for lat, lng in polygon]
    # A closed ring repeats its first vertex; drop the duplicate
    if len(vertices) > 3 and vertices[0] == vertices[-1]:
        vertices.pop()
    return tuple(vertices)


@lru_cache(maxsize=1024)
def _build_polygon(vertices: Tuple[Tuple[float, float], ...]) -> Polygon:
    if len(vertices) < 3:
        raise InvalidGeometry(f"Polygon has {len(vertices)} vertices, at least 3 required")

    shape = Polygon([(lng, lat) for lat, lng in vertices])
    if shape.area == 0:
        raise InvalidGeometry("Polygon has no area (collinear vertices)")
    return shape


def contains(polygon: Sequence[Sequence[float]], point: Sequence[float]) -> bool:
    """
    Test whether `point` lies inside or on the boundary of `polygon`.

    Args:
        polygon: Ordered (lat, lng) vertices of a simple polygon
        point: (lat, lng) to test

    Returns:
        True if inside or on an edge/vertex

    Raises:
        InvalidGeometry: If the polygon has fewer than 3 vertices or no area
    """
    shape = _build_polygon(_vertices(polygon))

    lat, lng = point
    target = Point(float(lng), float(lat))

    if shape.covers(target):
        return True
    return shape.exterior.distance(target) <= EDGE_TOLERANCE
