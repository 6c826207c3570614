"""
Unit tests for sampling point generation.

Tests cover:
- Placement rules (inside the field, outside the edge buffer)
- Zone chunking, stride sampling and labelling
- Small, narrow and degenerate fields
- Vertex and edge buffer modes
- Position checks for manually moved points
"""
import math
import re
import pytest
import numpy as np

from soil_sampling.domain.models import Parcel, Zone
from soil_sampling.services.domain.sampling_point_generator import (
    SamplingConfig,
    SamplingPointGenerator,
    format_label,
    stride_indices,
)
from soil_sampling.services.domain.zone_delineator import ZoneDelineator
from soil_sampling.utils.spatial_helpers import (
    METERS_PER_DEGREE,
    distance_meters,
    edge_distances,
    point_in_polygon,
    polygon_area_hectares,
    polygon_centroid,
)

from conftest import FIELD_CENTER, make_parcel


def offset(north_m: float, east_m: float) -> tuple[float, float]:
    """Coordinate at a metric offset from the test field center."""
    lat, lon = FIELD_CENTER
    return (
        lat + north_m / METERS_PER_DEGREE,
        lon + east_m / (METERS_PER_DEGREE * math.cos(math.radians(lat))),
    )


def plan(generator: SamplingPointGenerator, parcel: Parcel):
    zones = ZoneDelineator().delineate(parcel)
    return zones, generator.generate(parcel, zones)


def single_zone(parcel: Parcel, quota: int) -> Zone:
    return Zone(
        id="zone-test",
        parcel_id=parcel.id,
        name="Whole field",
        characteristics="Uniform",
        color="#000000",
        recommended_points=quota,
    )


@pytest.fixture
def l_shaped_parcel() -> Parcel:
    """Concave L-shaped field of 9.75 ha."""
    return make_parcel([
        offset(0, 0),
        offset(0, 400),
        offset(150, 400),
        offset(150, 150),
        offset(400, 150),
        offset(400, 0),
    ])


# ============================================================
# Stride Selection Tests
# ============================================================

class TestStrideIndices:
    """Tests for uniform stride selection within a chunk."""

    @pytest.mark.parametrize("chunk_size,needed,expected", [
        (10, 3, [0, 3, 6]),
        (5, 5, [0, 1, 2, 3, 4]),
        (40, 1, [0]),
        (3, 5, [0, 1, 2, 0, 1]),
        (0, 3, []),
        (4, 0, []),
    ])
    def test_stride_indices(self, chunk_size, needed, expected):
        assert stride_indices(chunk_size, needed) == expected

    def test_format_label(self):
        assert format_label(1) == "P-01"
        assert format_label(12) == "P-12"
        assert format_label(123) == "P-123"


# ============================================================
# Placement Rule Tests
# ============================================================

class TestPlacementRules:
    """Every generated point must respect the placement rules."""

    @pytest.mark.parametrize("parcel_fixture", ["small_parcel", "large_parcel", "l_shaped_parcel"])
    def test_points_inside_and_away_from_vertices(self, request, generator, parcel_fixture):
        parcel = request.getfixturevalue(parcel_fixture)

        _, points = plan(generator, parcel)

        assert points
        for point in points:
            assert point_in_polygon(point.coordinate, parcel.boundary)
            for vertex in parcel.boundary:
                assert distance_meters(point.coordinate, vertex) >= 15.0

    def test_l_shape_notch_is_empty(self, generator, l_shaped_parcel):
        """No point may fall in the concave notch of the L."""
        _, points = plan(generator, l_shaped_parcel)
        notch_south, notch_west = offset(150, 150)

        for point in points:
            assert not (point.lat > notch_south and point.lon > notch_west)

    def test_candidates_on_regular_grid(self, generator, large_parcel):
        """Candidates sit on the bounding-box grid at the configured step."""
        candidates = generator.generate_candidates(large_parcel.boundary)
        min_lat = min(lat for lat, _ in large_parcel.boundary)
        min_lon = min(lon for _, lon in large_parcel.boundary)

        steps_lat = (candidates[:, 0] - min_lat) / 0.00027
        steps_lon = (candidates[:, 1] - min_lon) / 0.00027

        assert np.allclose(steps_lat, np.round(steps_lat), atol=1e-6)
        assert np.allclose(steps_lon, np.round(steps_lon), atol=1e-6)

    def test_candidates_sorted_north_to_south(self, generator, large_parcel):
        candidates = generator.generate_candidates(large_parcel.boundary)

        for (lat_a, lon_a), (lat_b, lon_b) in zip(candidates, candidates[1:]):
            assert lat_a > lat_b or (lat_a == lat_b and lon_a < lon_b)


# ============================================================
# Zone Distribution Tests
# ============================================================

class TestZoneDistribution:
    """Tests for chunking candidates across zones."""

    def test_small_field_plan(self, generator, small_parcel):
        """About 2 ha: 2 zones with 1 point each."""
        zones, points = plan(generator, small_parcel)

        assert len(zones) == 2
        assert 1 <= len(points) <= sum(z.recommended_points for z in zones)
        assert len(points) == 2

    def test_large_field_plan(self, generator, large_parcel):
        """About 9 ha: 3 zones with 3 points each."""
        zones, points = plan(generator, large_parcel)

        assert len(zones) == 3
        assert [z.recommended_points for z in zones] == [3, 3, 3]
        assert len(points) == 9

    def test_per_zone_count_is_quota_capped_by_chunk(self, generator, l_shaped_parcel):
        zones, points = plan(generator, l_shaped_parcel)
        n_candidates = len(generator.generate_candidates(l_shaped_parcel.boundary))
        chunk_size = math.ceil(n_candidates / len(zones))

        for index, zone in enumerate(zones):
            chunk_len = max(0, min(chunk_size, n_candidates - index * chunk_size))
            in_zone = [p for p in points if p.zone_id == zone.id]
            assert len(in_zone) == min(zone.recommended_points, chunk_len)

    def test_zones_are_latitude_bands(self, generator, large_parcel):
        """Zone A takes the northern candidates, the last zone the southern ones."""
        zones, points = plan(generator, large_parcel)

        by_zone = [[p.lat for p in points if p.zone_id == z.id] for z in zones]
        for northern, southern in zip(by_zone, by_zone[1:]):
            assert min(northern) >= max(southern)

    def test_labels_sequential_across_zones(self, generator, large_parcel):
        _, points = plan(generator, large_parcel)

        assert [p.label for p in points] == [f"P-{i:02d}" for i in range(1, len(points) + 1)]
        assert all(re.fullmatch(r"P-\d{2,}", p.label) for p in points)

    def test_points_reference_parcel_and_are_pending(self, generator, small_parcel):
        _, points = plan(generator, small_parcel)

        assert len({p.id for p in points}) == len(points)
        assert all(p.parcel_id == small_parcel.id for p in points)
        assert all(p.status == "pending" and p.position_validated for p in points)

    def test_no_duplicate_points_when_chunk_is_short(self, generator, small_parcel):
        """A quota larger than the chunk yields every candidate once."""
        n_candidates = len(generator.generate_candidates(small_parcel.boundary))

        points = generator.generate(small_parcel, [single_zone(small_parcel, 500)])

        assert len(points) == n_candidates
        assert len({p.coordinate for p in points}) == n_candidates

    def test_duplicates_kept_when_allowed(self, small_parcel):
        generator = SamplingPointGenerator(SamplingConfig(allow_duplicate_points=True))
        n_candidates = len(generator.generate_candidates(small_parcel.boundary))

        points = generator.generate(small_parcel, [single_zone(small_parcel, n_candidates + 3)])

        assert len(points) == n_candidates + 3
        assert len({p.coordinate for p in points}) == n_candidates
        assert len({p.label for p in points}) == len(points)


# ============================================================
# Degenerate Field Tests
# ============================================================

class TestDegenerateFields:
    """Small or invalid fields yield fewer points, never an error."""

    def test_tiny_field_yields_no_points(self, generator, rectangle):
        """Every candidate of a 20m square is within 15m of a corner."""
        parcel = make_parcel(rectangle(20, 20))

        zones, points = plan(generator, parcel)

        assert len(zones) == 2
        assert points == []

    def test_two_vertex_boundary_yields_no_candidates(self, generator):
        boundary = [offset(0, 0), offset(100, 100)]

        assert polygon_area_hectares(boundary) == 0.0
        assert len(generator.generate_candidates(boundary)) == 0

    def test_no_zones_yields_no_points(self, generator, small_parcel):
        assert generator.generate(small_parcel, []) == []

    def test_narrow_field(self, generator, rectangle):
        """A strip narrower than the grid step still plans within its quota."""
        parcel = make_parcel(rectangle(25, 2000))

        zones, points = plan(generator, parcel)

        assert 0 < len(points) <= sum(z.recommended_points for z in zones)
        for point in points:
            assert point_in_polygon(point.coordinate, parcel.boundary)


# ============================================================
# Buffer Mode Tests
# ============================================================

class TestBufferModes:
    """Vertex distance (default) versus edge distance buffering."""

    @pytest.fixture
    def strip(self, rectangle):
        """70m x 600m field: long edges far from any vertex."""
        return rectangle(70, 600)

    def test_vertex_mode_keeps_points_close_to_long_edges(self, generator, strip):
        candidates = generator.generate_candidates(strip)

        assert len(candidates) > 0
        assert np.any(edge_distances(candidates, strip) < 15.0)

    def test_edge_mode_keeps_buffer_from_every_edge(self, strip):
        generator = SamplingPointGenerator(SamplingConfig(buffer_mode="edge"))

        candidates = generator.generate_candidates(strip)

        assert len(candidates) > 0
        assert np.all(edge_distances(candidates, strip) >= 15.0)

    def test_edge_mode_is_stricter(self, generator, strip):
        vertex_mode = {tuple(c) for c in generator.generate_candidates(strip).tolist()}
        edge_mode = {
            tuple(c)
            for c in SamplingPointGenerator(SamplingConfig(buffer_mode="edge"))
            .generate_candidates(strip).tolist()
        }

        assert edge_mode < vertex_mode


# ============================================================
# Position Check Tests
# ============================================================

class TestPositionCheck:
    """Tests for checking a single coordinate against the placement rules."""

    def test_center_is_valid(self, generator, large_parcel):
        lat, lon = polygon_centroid(large_parcel.boundary)

        check = generator.check_position(large_parcel.boundary, lat, lon)

        assert check.inside is True
        assert check.valid is True
        assert check.min_vertex_distance_m == pytest.approx(150 * math.sqrt(2), rel=0.01)
        assert check.min_edge_distance_m == pytest.approx(150.0, rel=0.01)

    def test_outside_is_invalid(self, generator, large_parcel):
        lat, lon = offset(1000, 1000)

        check = generator.check_position(large_parcel.boundary, lat, lon)

        assert check.inside is False
        assert check.valid is False

    def test_close_to_corner_is_invalid(self, generator, large_parcel):
        lat, lon = offset(-145, -145)  # ~7m from the south-west corner

        check = generator.check_position(large_parcel.boundary, lat, lon)

        assert check.inside is True
        assert check.min_vertex_distance_m < 15.0
        assert check.valid is False

    def test_edge_midpoint_depends_on_buffer_mode(self, generator, large_parcel):
        """5m inside the middle of an edge: valid by vertex distance, not by edge distance."""
        lat, lon = offset(-145, 0)

        vertex_check = generator.check_position(large_parcel.boundary, lat, lon)
        edge_check = SamplingPointGenerator(SamplingConfig(buffer_mode="edge")).check_position(
            large_parcel.boundary, lat, lon
        )

        assert vertex_check.valid is True
        assert edge_check.valid is False
        assert edge_check.min_edge_distance_m == pytest.approx(5.0, abs=0.5)


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
