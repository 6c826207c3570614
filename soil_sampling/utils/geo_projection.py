"""
Geospatial projection utilities for coordinate transformations.
"""
from typing import Optional, Sequence, Tuple, List
from functools import lru_cache
from pyproj import Transformer


def get_utm_zone(longitude: float) -> int:
    """
    Calculate the UTM zone number from longitude.

    Args:
        longitude: Longitude in degrees

    Returns:
        UTM zone number (1-60)
    """
    return min(int((longitude + 180) / 6) + 1, 60)


def get_utm_crs(longitude: float, latitude: float) -> str:
    """
    Get the appropriate UTM CRS (Coordinate Reference System) for a location.

    Args:
        longitude: Longitude in degrees
        latitude: Latitude in degrees

    Returns:
        EPSG code for the UTM zone
    """
    zone = get_utm_zone(longitude)
    # Northern hemisphere: EPSG:326XX, Southern hemisphere: EPSG:327XX
    hemisphere = "6" if latitude >= 0 else "7"
    return f"EPSG:32{hemisphere}{zone:02d}"


@lru_cache(maxsize=32)
def _transformer_for(utm_crs: str) -> Transformer:
    return Transformer.from_crs(
        "EPSG:4326",  # WGS84 (lat/lon)
        utm_crs,      # UTM zone
        always_xy=True  # Ensure (lon, lat) -> (x, y) order
    )


def project_to_meters(
    coordinates: Sequence[Tuple[float, float]],
    reference: Optional[Tuple[float, float]] = None,
) -> List[Tuple[float, float]]:
    """
    Project lat/lon coordinates to a planar coordinate system (UTM) in meters.

    All coordinates are projected into the UTM zone of ``reference`` so that
    separately projected sets (a boundary and its candidate points) share
    the same plane.

    Args:
        coordinates: List of (latitude, longitude) tuples in degrees
        reference: (latitude, longitude) picking the UTM zone; defaults to
            the first coordinate

    Returns:
        List of (x, y) coordinates in meters
    """
    if not coordinates and reference is None:
        raise ValueError("Coordinates list cannot be empty")

    lat, lon = reference if reference is not None else coordinates[0]
    transformer = _transformer_for(get_utm_crs(lon, lat))

    projected = []
    for lat, lon in coordinates:
        x, y = transformer.transform(lon, lat)
        projected.append((x, y))

    return projected
