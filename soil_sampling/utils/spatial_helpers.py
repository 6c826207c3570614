"""
Geometry helpers for field boundaries.

Provides utilities for:
- Polygon area (hectares) and vertex centroid
- Point-in-polygon (even-odd ray casting)
- Haversine distances
- Boundary buffer checks (vertex distance via KD-Tree, edge distance via Shapely)

Coordinates are (latitude, longitude) pairs in degrees. Rings are
implicitly closed: the last vertex connects back to the first.
"""
from typing import Optional, Sequence
import math
import numpy as np
from scipy.spatial import KDTree
from shapely.geometry import Point, Polygon
import logging

from soil_sampling.utils.geo_projection import project_to_meters

logger = logging.getLogger(__name__)

EARTH_RADIUS_M = 6371000.0
METERS_PER_DEGREE = EARTH_RADIUS_M * math.pi / 180

Coordinate = tuple[float, float]
Ring = Sequence[Coordinate]


def strip_closing_vertex(ring: Ring) -> list[Coordinate]:
    """
    Drop a repeated closing vertex so every ring is implicitly closed.

    Args:
        ring: List of (lat, lon) vertices

    Returns:
        List of (lat, lon) tuples without the duplicate closing vertex
    """
    coords = [(float(lat), float(lon)) for lat, lon in ring]
    if len(coords) > 1 and coords[0] == coords[-1]:
        coords = coords[:-1]
    return coords


def polygon_area_hectares(ring: Ring) -> float:
    """
    Approximate the area of a small polygon in hectares.

    Each vertex is projected onto a local plane (equirectangular at the
    vertex's own latitude) and the shoelace formula is applied. Accurate
    for farm-sized fields, not for continental or near-polar polygons.

    Args:
        ring: List of (lat, lon) vertices

    Returns:
        Area in hectares, 0.0 for fewer than 3 vertices
    """
    if len(ring) < 3:
        return 0.0

    coords = np.radians(np.asarray(ring, dtype=float))
    lat = coords[:, 0]
    lon = coords[:, 1]

    x = lon * EARTH_RADIUS_M * np.cos(lat)
    y = lat * EARTH_RADIUS_M
    x_next = np.roll(x, -1)
    y_next = np.roll(y, -1)

    area_m2 = abs(float(np.sum(x * y_next - x_next * y)) / 2)
    return area_m2 / 10_000


def polygon_centroid(ring: Ring) -> Coordinate:
    """
    Vertex centroid (arithmetic mean of the vertices, not area-weighted).

    Args:
        ring: List of (lat, lon) vertices

    Returns:
        (lat, lon) tuple, (0.0, 0.0) for an empty ring
    """
    if len(ring) == 0:
        return (0.0, 0.0)
    coords = np.asarray(ring, dtype=float)
    return (float(coords[:, 0].mean()), float(coords[:, 1].mean()))


def bounding_box(ring: Ring) -> Optional[tuple[float, float, float, float]]:
    """
    Axis-aligned bounding box of a ring.

    Args:
        ring: List of (lat, lon) vertices

    Returns:
        (min_lat, min_lon, max_lat, max_lon), or None for fewer than 3 vertices
    """
    if len(ring) < 3:
        return None
    coords = np.asarray(ring, dtype=float)
    min_lat, min_lon = coords.min(axis=0)
    max_lat, max_lon = coords.max(axis=0)
    return (float(min_lat), float(min_lon), float(max_lat), float(max_lon))


def point_in_polygon(point: Coordinate, ring: Ring) -> bool:
    """
    Check if a point is inside a polygon using the even-odd rule.

    Latitude is treated as Y and longitude as X. The closing edge from the
    last vertex back to the first is included.

    Args:
        point: (lat, lon) tuple
        ring: List of (lat, lon) vertices

    Returns:
        True if point is inside polygon, False otherwise
    """
    lat, lon = point
    inside = False
    j = len(ring) - 1
    for i in range(len(ring)):
        yi, xi = ring[i]
        yj, xj = ring[j]
        if (yi > lat) != (yj > lat) and lon < (xj - xi) * (lat - yi) / (yj - yi) + xi:
            inside = not inside
        j = i
    return inside


def points_in_polygon(points: np.ndarray, ring: Ring) -> np.ndarray:
    """
    Vectorised version of :func:`point_in_polygon`.

    Args:
        points: Array of shape (n, 2) with (lat, lon) rows
        ring: List of (lat, lon) vertices

    Returns:
        Boolean array of length n
    """
    pts = np.asarray(points, dtype=float).reshape(-1, 2)
    lat = pts[:, 0]
    lon = pts[:, 1]
    inside = np.zeros(len(pts), dtype=bool)

    vertices = np.asarray(ring, dtype=float)
    for i in range(len(vertices)):
        yi, xi = vertices[i]
        yj, xj = vertices[i - 1]  # i - 1 wraps to the last vertex for i == 0
        crosses = (yi > lat) != (yj > lat)
        with np.errstate(divide="ignore", invalid="ignore"):
            x_cross = (xj - xi) * (lat - yi) / (yj - yi) + xi
        inside ^= crosses & (lon < x_cross)

    return inside


def _haversine(lat1, lon1, lat2, lon2):
    phi1 = np.radians(lat1)
    phi2 = np.radians(lat2)
    d_phi = np.radians(np.subtract(lat2, lat1))
    d_lambda = np.radians(np.subtract(lon2, lon1))

    a = np.sin(d_phi / 2) ** 2 + np.cos(phi1) * np.cos(phi2) * np.sin(d_lambda / 2) ** 2
    return EARTH_RADIUS_M * 2 * np.arctan2(np.sqrt(a), np.sqrt(1 - a))


def distance_meters(p1: Coordinate, p2: Coordinate) -> float:
    """
    Great-circle (haversine) distance between two points.

    Args:
        p1: First (lat, lon) tuple
        p2: Second (lat, lon) tuple

    Returns:
        Distance in meters
    """
    return float(_haversine(p1[0], p1[1], p2[0], p2[1]))


def min_vertex_distance(point: Coordinate, ring: Ring) -> float:
    """
    Distance from a point to the closest boundary vertex.

    Args:
        point: (lat, lon) tuple
        ring: List of (lat, lon) vertices

    Returns:
        Distance in meters, ``inf`` for an empty ring
    """
    if len(ring) == 0:
        return math.inf
    return min(distance_meters(point, vertex) for vertex in ring)


def _to_local_meters(coords: np.ndarray, origin: Coordinate) -> np.ndarray:
    """Equirectangular projection around ``origin``, good enough for shortlisting."""
    scale_x = METERS_PER_DEGREE * math.cos(math.radians(origin[0]))
    return np.column_stack((
        (coords[:, 1] - origin[1]) * scale_x,
        (coords[:, 0] - origin[0]) * METERS_PER_DEGREE,
    ))


def near_vertex_mask(points: np.ndarray, ring: Ring, buffer_m: float) -> np.ndarray:
    """
    Flag points that lie closer than ``buffer_m`` to any boundary vertex.

    A KD-Tree over the vertices (local metric projection) shortlists the
    vertices within a slightly enlarged radius; the decision itself uses
    the exact haversine distance.

    Args:
        points: Array of shape (n, 2) with (lat, lon) rows
        ring: List of (lat, lon) vertices
        buffer_m: Buffer distance in meters

    Returns:
        Boolean array of length n, True where the point is too close
    """
    pts = np.asarray(points, dtype=float).reshape(-1, 2)
    too_close = np.zeros(len(pts), dtype=bool)
    if len(pts) == 0 or len(ring) == 0 or buffer_m <= 0:
        return too_close

    vertices = np.asarray(ring, dtype=float)
    origin = polygon_centroid(ring)
    kdtree = KDTree(_to_local_meters(vertices, origin))

    search_radius = buffer_m * 1.05 + 1.0
    shortlists = kdtree.query_ball_point(_to_local_meters(pts, origin), search_radius)

    for idx, shortlist in enumerate(shortlists):
        if not shortlist:
            continue
        nearby = vertices[shortlist]
        distances = _haversine(pts[idx, 0], pts[idx, 1], nearby[:, 0], nearby[:, 1])
        too_close[idx] = bool(np.any(distances < buffer_m))

    logger.debug(f"Vertex buffer {buffer_m:.1f}m rejects {int(too_close.sum())}/{len(pts)} points")
    return too_close


def edge_distances(points: np.ndarray, ring: Ring) -> np.ndarray:
    """
    Distance from each point to the nearest boundary edge.

    Points and boundary are projected to the UTM zone of the boundary
    centroid and measured with Shapely.

    Args:
        points: Array of shape (n, 2) with (lat, lon) rows
        ring: List of (lat, lon) vertices (at least 3)

    Returns:
        Array of distances in meters
    """
    pts = np.asarray(points, dtype=float).reshape(-1, 2)
    if len(pts) == 0:
        return np.zeros(0)

    reference = polygon_centroid(ring)
    boundary = Polygon(project_to_meters(list(ring), reference=reference)).exterior
    projected = project_to_meters([tuple(p) for p in pts], reference=reference)

    return np.array([boundary.distance(Point(xy)) for xy in projected])


def is_simple_polygon(ring: Ring) -> bool:
    """
    Check that a ring describes a valid, non-self-intersecting polygon.

    Args:
        ring: List of (lat, lon) vertices

    Returns:
        True if the polygon is simple
    """
    if len(ring) < 3:
        return False
    polygon = Polygon([(lon, lat) for lat, lon in ring])
    return bool(polygon.is_valid) and polygon.area > 0
