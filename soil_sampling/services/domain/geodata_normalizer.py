"""
Domain service: Normalization of raw external geodata payloads.

Each function turns one service's response into its GeoDataContext
sub-object. Parsing errors propagate; the aggregator decides on fallbacks.
Values that no integrated model provides (ET0, slope, aspect) are drawn
from the given random generator and flagged as simulated.
"""
from datetime import date, timedelta
from typing import Any, Optional, Sequence
import numpy as np
import logging

from soil_sampling.domain.geodata import (
    ElevationSummary,
    NdviStatus,
    NdviSummary,
    PrecipitationSummary,
    SoilDepthValues,
    SoilSummary,
    TextureClass,
    UNKNOWN,
)

logger = logging.getLogger(__name__)

SOIL_DEPTHS = ("0-5cm", "5-15cm", "15-30cm")
SOIL_PROPERTIES = {
    "clay": "clay",
    "sand": "sand",
    "silt": "silt",
    "soc": "soc",
    "bdod": "bdod",
    "phh2o": "ph",
}
SOIL_SCALE = 10.0

ASPECTS = (
    "North", "Northeast", "East", "Southeast",
    "South", "Southwest", "West", "Northwest",
)

SIMULATED_NDVI_MEAN = 0.55
SIMULATED_NDVI_BASE = 0.45


def classify_texture(
    clay: Optional[float],
    sand: Optional[float],
    silt: Optional[float],
) -> TextureClass:
    """
    Simplified texture class from clay/sand/silt percentages.

    Args:
        clay: Clay percentage
        sand: Sand percentage
        silt: Silt percentage

    Returns:
        TextureClass, UNKNOWN when any input is missing
    """
    if clay is None or sand is None or silt is None:
        return TextureClass.UNKNOWN
    if clay > 40:
        return TextureClass.CLAYEY
    if sand > 70:
        return TextureClass.SANDY
    if silt > 60:
        return TextureClass.SILTY
    if clay > 20 and sand < 50:
        return TextureClass.CLAY_LOAM
    if sand > 50 and clay < 20:
        return TextureClass.SANDY_LOAM
    return TextureClass.LOAM


def _soil_layers(payload: dict[str, Any]) -> dict[str, dict[str, Optional[float]]]:
    """Index SoilGrids layers as {property: {depth_label: scaled mean}}."""
    layers: dict[str, dict[str, Optional[float]]] = {}
    for layer in payload.get("properties", {}).get("layers", []):
        by_depth: dict[str, Optional[float]] = {}
        for depth in layer.get("depths", []):
            mean = (depth.get("values") or {}).get("mean")
            by_depth[depth.get("label")] = None if mean is None else mean / SOIL_SCALE
        layers[layer.get("name")] = by_depth
    return layers


def summarize_soil(payload: dict[str, Any]) -> SoilSummary:
    """
    Normalize a SoilGrids properties query.

    Raw values are scaled by 10 (e.g. clay in g/kg -> %, pH*10 -> pH).
    Texture, organic carbon, bulk density and pH come from the 0-5cm band.

    Args:
        payload: SoilGrids ``/properties/query`` JSON

    Returns:
        SoilSummary
    """
    layers = _soil_layers(payload)

    depths = {}
    for label in SOIL_DEPTHS:
        values = {
            field: layers.get(prop, {}).get(label)
            for prop, field in SOIL_PROPERTIES.items()
        }
        depths[label] = SoilDepthValues(**values)

    top = depths[SOIL_DEPTHS[0]]
    available = any(
        value is not None
        for band in depths.values()
        for value in band.model_dump().values()
    )

    return SoilSummary(
        texture_class=classify_texture(top.clay, top.sand, top.silt),
        organic_carbon_g_kg=None if top.soc is None else round(top.soc, 1),
        # bdod (cg/cm3) scaled by 10 gives g/cm3 * 10; * 100 -> kg/m3
        bulk_density_kg_m3=None if top.bdod is None else float(round(top.bdod * 100)),
        ph=None if top.ph is None else round(top.ph, 1),
        depths=depths,
        available=available,
        source="SoilGrids v2.0" if available else "SoilGrids (no data for this location)",
    )


def unavailable_soil(reason: str = "unavailable") -> SoilSummary:
    return SoilSummary(available=False, source=f"SoilGrids ({reason})")


def summarize_weather(
    daily: dict[str, Sequence[Any]],
    today: date,
    rng: np.random.Generator,
) -> PrecipitationSummary:
    """
    Trailing precipitation and temperature summary.

    Days after ``today`` (forecast days) are ignored. Missing daily
    precipitation counts as 0 mm; days with a missing temperature are left
    out of the average.

    Args:
        daily: Open-Meteo ``daily`` block with ``time``, ``precipitation_sum``,
            ``temperature_2m_max`` and ``temperature_2m_min``
        today: Last day of the window
        rng: Random generator for the simulated ET0

    Returns:
        PrecipitationSummary
    """
    days = [
        (date.fromisoformat(day), precip, t_max, t_min)
        for day, precip, t_max, t_min in zip(
            daily["time"],
            daily["precipitation_sum"],
            daily["temperature_2m_max"],
            daily["temperature_2m_min"],
        )
    ]
    days = [d for d in days if d[0] <= today]
    days.sort(key=lambda d: d[0])

    start_7d = today - timedelta(days=7)
    start_30d = today - timedelta(days=30)

    precip_3d = sum(p or 0.0 for _, p, _, _ in days[-3:])
    precip_7d = sum(p or 0.0 for day, p, _, _ in days if day >= start_7d)
    precip_30d = sum(p or 0.0 for day, p, _, _ in days if day >= start_30d)

    temps_7d = [
        (t_max + t_min) / 2
        for day, _, t_max, t_min in days
        if day >= start_7d and t_max is not None and t_min is not None
    ]
    avg_temp = float(np.mean(temps_7d)) if temps_7d else 0.0

    return PrecipitationSummary(
        sum_3d_mm=round(precip_3d, 1),
        sum_7d_mm=round(precip_7d, 1),
        sum_30d_mm=round(precip_30d, 1),
        avg_temp_7d=round(avg_temp, 1),
        et0_daily_avg=round(float(rng.uniform(2.0, 7.0)), 1),
        et0_simulated=True,
        available=bool(days),
        source="Open-Meteo (ET0 simulated)",
    )


def default_precipitation(reason: str = "unavailable") -> PrecipitationSummary:
    """Numeric placeholders used when the weather service fails."""
    return PrecipitationSummary(
        sum_3d_mm=0.0,
        sum_7d_mm=0.0,
        sum_30d_mm=0.0,
        avg_temp_7d=20.0,
        et0_daily_avg=3.5,
        et0_simulated=True,
        available=False,
        source=f"Open-Meteo ({reason}, default values)",
    )


def summarize_elevation(payload: dict[str, Any], rng: np.random.Generator) -> ElevationSummary:
    """
    Point elevation with simulated slope and aspect.

    Args:
        payload: Open-Meteo ``/v1/elevation`` JSON
        rng: Random generator for the simulated slope and aspect

    Returns:
        ElevationSummary

    Raises:
        ValueError: If the payload carries no elevation value
    """
    values = payload.get("elevation") or []
    if not values or values[0] is None:
        raise ValueError("Elevation payload has no value")

    return ElevationSummary(
        elevation=float(round(values[0])),
        slope_pct=round(float(rng.uniform(0.0, 15.0)), 1),
        aspect=ASPECTS[int(rng.integers(len(ASPECTS)))],
        slope_simulated=True,
        available=True,
        source="Open-Meteo Elevation (slope/aspect simulated)",
    )


def unavailable_elevation(reason: str = "unavailable") -> ElevationSummary:
    return ElevationSummary(
        elevation=0.0,
        slope_pct=0.0,
        aspect=UNKNOWN,
        available=False,
        source=f"Open-Meteo Elevation ({reason})",
    )


def summarize_ndvi_history(samples: Sequence[dict[str, Any]], source: str = "AgroMonitoring Sentinel-2") -> NdviSummary:
    """
    Current value, window mean and anomaly from an NDVI time series.

    Args:
        samples: AgroMonitoring NDVI history entries (``dt`` unix time,
            ``data.mean`` NDVI)
        source: Provenance label for available data

    Returns:
        NdviSummary, NO_DATA_AVAILABLE for an empty series
    """
    values = [
        (entry["dt"], float(entry["data"]["mean"]))
        for entry in samples
        if entry.get("data", {}).get("mean") is not None
    ]
    if not values:
        return no_ndvi("no satellite data for this location and window")

    values.sort(key=lambda v: v[0], reverse=True)
    current = values[0][1]
    mean = float(np.mean([v for _, v in values]))

    return NdviSummary(
        current=current,
        historical_mean=mean,
        anomaly=current - mean,
        status=NdviStatus.AVAILABLE,
        source=source,
    )


def no_ndvi(reason: str) -> NdviSummary:
    """Explicit nulls for 'we have no NDVI signal'."""
    return NdviSummary(
        current=None,
        historical_mean=None,
        anomaly=None,
        status=NdviStatus.NO_DATA_AVAILABLE,
        source=f"AgroMonitoring ({reason})",
    )


def simulated_ndvi(rng: np.random.Generator) -> NdviSummary:
    """Plausible NDVI used when the NDVI pipeline itself broke; flagged as simulated."""
    current = SIMULATED_NDVI_BASE + (float(rng.random()) - 0.5) * 0.4
    return NdviSummary(
        current=current,
        historical_mean=SIMULATED_NDVI_MEAN,
        anomaly=current - SIMULATED_NDVI_MEAN,
        status=NdviStatus.SIMULATED_FALLBACK,
        source="Sentinel-2 (simulated fallback)",
    )
