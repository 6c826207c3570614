"""
Normalized external environmental signals for one coordinate.

Every sub-object is always present; a source that could not be reached is
represented by its placeholder values rather than by a missing key.
"""
from enum import Enum
from typing import Dict, Optional, Union
from pydantic import BaseModel, Field, field_serializer


NOT_AVAILABLE = "N/A"
UNKNOWN = "unknown"


class TextureClass(str, Enum):
    CLAYEY = "clayey"
    SANDY = "sandy"
    SILTY = "silty"
    CLAY_LOAM = "clay-loam"
    SANDY_LOAM = "sandy-loam"
    LOAM = "loam"
    UNKNOWN = "unknown"


class NdviStatus(str, Enum):
    """How the NDVI values were obtained."""
    AVAILABLE = "available"
    NO_DATA_AVAILABLE = "no_data_available"
    SIMULATED_FALLBACK = "simulated_fallback"


class SoilDepthValues(BaseModel):
    """Soil properties for one depth band, in conventional units."""
    sand: Optional[float] = None
    silt: Optional[float] = None
    clay: Optional[float] = None
    soc: Optional[float] = None
    bdod: Optional[float] = None
    ph: Optional[float] = None


class SoilSummary(BaseModel):
    texture_class: TextureClass = TextureClass.UNKNOWN
    organic_carbon_g_kg: Optional[float] = None
    bulk_density_kg_m3: Optional[float] = None
    ph: Optional[float] = None
    depths: Dict[str, SoilDepthValues] = Field(default_factory=dict)
    available: bool = False
    source: str = "SoilGrids"

    @field_serializer("organic_carbon_g_kg", "bulk_density_kg_m3", "ph")
    def _serialize_missing(self, value: Optional[float]) -> Union[float, str]:
        return NOT_AVAILABLE if value is None else value


class PrecipitationSummary(BaseModel):
    """Trailing precipitation and temperature; always numeric."""
    sum_3d_mm: float = Field(default=0.0, alias="3d_sum_mm")
    sum_7d_mm: float = Field(default=0.0, alias="7d_sum_mm")
    sum_30d_mm: float = Field(default=0.0, alias="30d_sum_mm")
    avg_temp_7d: float = 20.0
    et0_daily_avg: float = 3.5
    et0_simulated: bool = True
    available: bool = False
    source: str = "Open-Meteo"

    class Config:
        populate_by_name = True


class NdviSummary(BaseModel):
    current: Optional[float] = None
    historical_mean: Optional[float] = None
    anomaly: Optional[float] = None
    status: NdviStatus = NdviStatus.NO_DATA_AVAILABLE
    source: str = Field(description="Provenance of the values, including why they are missing")

    @property
    def available(self) -> bool:
        return self.status == NdviStatus.AVAILABLE


class ElevationSummary(BaseModel):
    elevation: float = 0.0
    slope_pct: float = 0.0
    aspect: str = UNKNOWN
    slope_simulated: bool = True
    available: bool = False
    source: str = "Open-Meteo Elevation"


class GeoDataContext(BaseModel):
    """Bundle of external signals consumed by the point analysis."""
    lat: float
    lon: float
    soilgrids: SoilSummary
    precipitation: PrecipitationSummary
    ndvi: NdviSummary
    dem: ElevationSummary
    crop_hint: str = ""

    def geodata_used(self) -> Dict[str, bool]:
        """Which sources contributed real data."""
        return {
            "soilgrids": self.soilgrids.available,
            "precipitation": self.precipitation.available,
            "ndvi": self.ndvi.available,
            "dem": self.dem.available,
        }
