import logging
import math

from airvisual_sensor.pipelines.conditions.schemas import AirQualityCategory

logger = logging.getLogger(__name__)

# Lower bounds, highest band first; the first threshold the AQI reaches wins.
AQI_CATEGORY_THRESHOLDS: list[tuple[float, AirQualityCategory]] = [
    (201, AirQualityCategory.POOR),
    (151, AirQualityCategory.INFERIOR),
    (101, AirQualityCategory.FAIR),
    (51, AirQualityCategory.GOOD),
    (0, AirQualityCategory.EXCELLENT),
]

# US EPA PM2.5 breakpoints: (aqi_lo, aqi_hi, pm25_lo, pm25_hi), µg/m³
PM25_BREAKPOINTS: list[tuple[float, float, float, float]] = [
    (0, 50, 0.0, 12.0),
    (50, 100, 12.0, 35.5),
    (100, 150, 35.5, 55.5),
    (150, 200, 55.5, 150.5),
    (200, 300, 150.5, 250.5),
    (300, 400, 250.5, 350.5),
    (400, 500, 350.5, 500.5),
]


def classify(aqi: float | None) -> AirQualityCategory:
    """
    Map an AQI value to an air quality category.

    Missing, NaN, zero and negative values are UNKNOWN: the provider reports 0
    when it has no index for the station.

    Args:
        aqi (float | None): Air quality index as reported by the provider.

    Returns:
        AirQualityCategory: The matching category.
    """
    if aqi is None or math.isnan(aqi) or not aqi:
        return AirQualityCategory.UNKNOWN

    for threshold, category in AQI_CATEGORY_THRESHOLDS:
        if aqi >= threshold:
            return category

    return AirQualityCategory.UNKNOWN


def infer_pm25_from_aqi(aqi: float | None) -> float | None:
    """
    Estimate the PM2.5 concentration that produces the given AQI.

    Linear interpolation inside the matching EPA band. Band edges are shared by
    adjacent bands, so the result is continuous across them.

    Args:
        aqi (float | None): Air quality index on the US scale.

    Returns:
        float | None: PM2.5 in µg/m³, or None when the AQI is outside 0-500.
    """
    if aqi is None or math.isnan(aqi) or aqi < 0:
        return None

    for aqi_lo, aqi_hi, pm_lo, pm_hi in PM25_BREAKPOINTS:
        if aqi_lo <= aqi <= aqi_hi:
            return pm_lo + (aqi - aqi_lo) * (pm_hi - pm_lo) / (aqi_hi - aqi_lo)

    logger.debug(f"AQI {aqi} is outside the PM2.5 breakpoint table")
    return None
