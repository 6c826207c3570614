"""
Domain service: Partitioning a parcel into vigor zones.

The zoning method is a strategy. Downstream code only relies on the
contract "N ordered zones, each with a point quota", so a clustering
strategy over real NDVI/slope rasters can replace the fixed archetypes
without touching the sampling point generator.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional
from uuid import uuid4
import math
import logging

from soil_sampling.domain.models import Parcel, Zone

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ZoneArchetype:
    """A named zone template."""
    name: str
    characteristics: str
    color: str


# Ordered by descending expected vigor
ZONE_ARCHETYPES: tuple[ZoneArchetype, ...] = (
    ZoneArchetype("Zone A - High Vigor", "High NDVI, deep soil", "#10b981"),
    ZoneArchetype("Zone B - Medium Vigor", "Medium NDVI, gentle slope", "#f59e0b"),
    ZoneArchetype("Zone C - Low Vigor / Stress", "Water stress, salinity", "#ef4444"),
)

LARGE_FIELD_THRESHOLD_HA = 5.0


def round_half_up(value: float) -> int:
    """Round .5 away from zero for positive values (Python's round() is banker's rounding)."""
    return int(math.floor(value + 0.5))


class ZoneDelineationStrategy(ABC):
    """Produces the ordered zone list for a parcel."""

    @abstractmethod
    def delineate(self, parcel: Parcel) -> list[Zone]:
        """
        Partition a parcel into zones.

        Args:
            parcel: Parcel with a known area

        Returns:
            Ordered list of zones, each with a point quota of at least 1
        """


class FixedArchetypeStrategy(ZoneDelineationStrategy):
    """
    Placeholder zoning: 2 or 3 fixed archetypes chosen by field size.

    - 3 zones when the area exceeds 5 ha, otherwise 2
    - each zone gets round(area / zone_count) points, at least 1
    """

    def __init__(
        self,
        archetypes: tuple[ZoneArchetype, ...] = ZONE_ARCHETYPES,
        large_field_threshold_ha: float = LARGE_FIELD_THRESHOLD_HA,
    ):
        self.archetypes = archetypes
        self.large_field_threshold_ha = large_field_threshold_ha

    def zone_count(self, area_hectares: float) -> int:
        return 3 if area_hectares > self.large_field_threshold_ha else 2

    def delineate(self, parcel: Parcel) -> list[Zone]:
        count = self.zone_count(parcel.area_hectares)
        points_per_zone = max(1, round_half_up(parcel.area_hectares / count))
        batch = uuid4().hex[:12]

        return [
            Zone(
                id=f"zone-{batch}-{index}",
                parcel_id=parcel.id,
                name=archetype.name,
                characteristics=archetype.characteristics,
                color=archetype.color,
                recommended_points=points_per_zone,
            )
            for index, archetype in enumerate(self.archetypes[:count])
        ]


class ZoneDelineator:
    """Domain service wrapping the active zoning strategy."""

    def __init__(self, strategy: Optional[ZoneDelineationStrategy] = None):
        self.strategy = strategy or FixedArchetypeStrategy()

    def delineate(self, parcel: Parcel) -> list[Zone]:
        zones = self.strategy.delineate(parcel)
        logger.info(
            f"Delineated {len(zones)} zones for parcel {parcel.id} "
            f"({parcel.area_hectares:.2f} ha, {type(self.strategy).__name__}); "
            f"quotas={[z.recommended_points for z in zones]}"
        )
        return zones
