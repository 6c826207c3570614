"""
Domain service: Sampling point generation for a zoned parcel.

Algorithm:
1. Bounding box of the parcel boundary
2. Regular candidate grid at a fixed degree step (~30m)
3. Keep candidates inside the polygon
4. Drop candidates inside the edge buffer (distance to boundary vertices)
5. Sort by descending latitude (north to south)
6. Split the sorted list into contiguous chunks, one per zone
7. Stride-sample each chunk down to the zone's point quota
8. Label points sequentially across zones: P-01, P-02, ...

The vertex-distance buffer under-filters candidates near the middle of
long edges. ``buffer_mode="edge"`` measures the distance to the edges
instead; it is opt-in because it changes which points are produced.
"""
from dataclasses import dataclass
from typing import Literal, Optional
from uuid import uuid4
import math
import numpy as np
import logging

from soil_sampling.config import settings
from soil_sampling.domain.models import Parcel, SamplingPoint, Zone
from soil_sampling.utils.spatial_helpers import (
    bounding_box,
    edge_distances,
    min_vertex_distance,
    near_vertex_mask,
    point_in_polygon,
    points_in_polygon,
)

logger = logging.getLogger(__name__)


@dataclass
class SamplingConfig:
    """Configuration for sampling point generation."""

    grid_step_deg: float = 0.00027
    """Candidate grid step in degrees, both axes (~30m at mid latitudes)"""

    edge_buffer_m: float = 15.0
    """Minimum distance from the boundary in meters"""

    buffer_mode: Literal["vertex", "edge"] = "vertex"
    """Measure the buffer against boundary vertices or boundary edges"""

    allow_duplicate_points: bool = False
    """Keep revisited candidates when a zone chunk is smaller than its quota"""

    @classmethod
    def from_settings(cls) -> "SamplingConfig":
        return cls(
            grid_step_deg=settings.grid_step_deg,
            edge_buffer_m=settings.edge_buffer_m,
            buffer_mode=settings.buffer_mode,
        )


@dataclass
class PointPositionCheck:
    """Result of checking a coordinate against the placement rules."""
    inside: bool
    min_vertex_distance_m: float
    min_edge_distance_m: Optional[float]
    valid: bool


def format_label(counter: int) -> str:
    return f"P-{counter:02d}"


def stride_indices(chunk_size: int, needed: int) -> list[int]:
    """
    Uniform stride selection within a chunk.

    ``stride = max(1, chunk_size // needed)`` and index ``(i * stride) % chunk_size``
    for ``i`` in ``range(needed)``. Indices repeat when the chunk is smaller
    than ``needed``.

    Args:
        chunk_size: Number of candidates in the chunk
        needed: Zone point quota

    Returns:
        Candidate indices in selection order
    """
    if chunk_size <= 0 or needed <= 0:
        return []
    stride = max(1, chunk_size // needed)
    return [(i * stride) % chunk_size for i in range(needed)]


class SamplingPointGenerator:
    """
    Domain service placing sampling points inside a zoned parcel.

    Returns fewer points than the zone quotas add up to when the parcel is
    too small or narrow to provide enough candidates; callers must accept
    ``len(points) < sum(zone.recommended_points)``.
    """

    def __init__(self, config: Optional[SamplingConfig] = None):
        self.config = config or SamplingConfig.from_settings()

    def generate(self, parcel: Parcel, zones: list[Zone]) -> list[SamplingPoint]:
        """
        Generate sampling points for a parcel.

        Args:
            parcel: Parcel with its boundary
            zones: Ordered zone list from the zone delineator

        Returns:
            Flat list of sampling points, zone by zone
        """
        if not zones:
            return []

        candidates = self.generate_candidates(parcel.boundary)
        logger.info(f"Parcel {parcel.id}: {len(candidates)} valid candidates for {len(zones)} zones")

        if len(candidates) == 0:
            logger.warning(f"Parcel {parcel.id}: no candidates survive the polygon and buffer filters")
            return []

        chunk_size = math.ceil(len(candidates) / len(zones))
        points: list[SamplingPoint] = []
        batch = uuid4().hex[:12]
        counter = 1

        for zone_index, zone in enumerate(zones):
            chunk = candidates[zone_index * chunk_size:(zone_index + 1) * chunk_size]
            indices = self._select_indices(len(chunk), zone.recommended_points)

            for candidate_index in indices:
                lat, lon = chunk[candidate_index]
                points.append(SamplingPoint(
                    id=f"sp-{batch}-{counter}",
                    zone_id=zone.id,
                    parcel_id=parcel.id,
                    lat=float(lat),
                    lon=float(lon),
                    label=format_label(counter),
                ))
                counter += 1

            logger.debug(f"  {zone.name}: {len(indices)}/{zone.recommended_points} points from {len(chunk)} candidates")

        logger.info(
            f"Generated {len(points)} sampling points "
            f"(quota {sum(z.recommended_points for z in zones)})"
        )
        return points

    def generate_candidates(self, boundary: list[tuple[float, float]]) -> np.ndarray:
        """
        Grid candidates inside the boundary and outside the edge buffer.

        Args:
            boundary: List of (lat, lon) vertices

        Returns:
            Array of shape (n, 2) with (lat, lon) rows, sorted north to south
            (ties west to east)
        """
        bbox = bounding_box(boundary)
        if bbox is None:
            return np.empty((0, 2))

        grid = self._grid(*bbox)
        inside = grid[points_in_polygon(grid, boundary)]
        logger.debug(f"Grid: {len(grid)} candidates, {len(inside)} inside polygon")

        kept = inside[~self._buffer_mask(inside, boundary)]
        logger.debug(f"Buffer ({self.config.buffer_mode}, {self.config.edge_buffer_m}m): {len(kept)} kept")

        order = np.lexsort((kept[:, 1], -kept[:, 0]))
        return kept[order]

    def check_position(self, boundary: list[tuple[float, float]], lat: float, lon: float) -> PointPositionCheck:
        """
        Check a coordinate against the same rules used at generation time.

        Args:
            boundary: List of (lat, lon) vertices
            lat: Latitude of the point
            lon: Longitude of the point

        Returns:
            PointPositionCheck
        """
        inside = point_in_polygon((lat, lon), boundary)
        vertex_distance = min_vertex_distance((lat, lon), boundary)
        edge_distance = None
        if len(boundary) >= 3:
            edge_distance = float(edge_distances(np.array([[lat, lon]]), boundary)[0])

        if self.config.buffer_mode == "edge":
            clear = edge_distance is not None and edge_distance >= self.config.edge_buffer_m
        else:
            clear = vertex_distance >= self.config.edge_buffer_m

        return PointPositionCheck(
            inside=inside,
            min_vertex_distance_m=vertex_distance,
            min_edge_distance_m=edge_distance,
            valid=inside and clear,
        )

    def grid_size(self, boundary: list[tuple[float, float]]) -> int:
        """Number of grid candidates the boundary's bounding box produces."""
        bbox = bounding_box(boundary)
        if bbox is None:
            return 0
        n_lat, n_lon = self._grid_shape(*bbox)
        return n_lat * n_lon

    def _grid_shape(self, min_lat: float, min_lon: float, max_lat: float, max_lon: float) -> tuple[int, int]:
        step = self.config.grid_step_deg
        # Small tolerance so the max edge is included despite float error
        n_lat = int(math.floor((max_lat - min_lat) / step + 1e-9)) + 1
        n_lon = int(math.floor((max_lon - min_lon) / step + 1e-9)) + 1
        return n_lat, n_lon

    def _grid(self, min_lat: float, min_lon: float, max_lat: float, max_lon: float) -> np.ndarray:
        step = self.config.grid_step_deg
        n_lat, n_lon = self._grid_shape(min_lat, min_lon, max_lat, max_lon)

        lats = min_lat + step * np.arange(n_lat)
        lons = min_lon + step * np.arange(n_lon)
        lat_grid, lon_grid = np.meshgrid(lats, lons, indexing="ij")
        return np.column_stack((lat_grid.ravel(), lon_grid.ravel()))

    def _buffer_mask(self, points: np.ndarray, boundary: list[tuple[float, float]]) -> np.ndarray:
        if len(points) == 0 or self.config.edge_buffer_m <= 0:
            return np.zeros(len(points), dtype=bool)
        if self.config.buffer_mode == "edge":
            return edge_distances(points, boundary) < self.config.edge_buffer_m
        return near_vertex_mask(points, boundary, self.config.edge_buffer_m)

    def _select_indices(self, chunk_size: int, needed: int) -> list[int]:
        indices = stride_indices(chunk_size, needed)
        if self.config.allow_duplicate_points:
            return indices
        # Stride indices only repeat after the chunk is exhausted
        return indices[:min(needed, chunk_size)]
