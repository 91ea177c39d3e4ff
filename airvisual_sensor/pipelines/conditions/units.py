"""
Gas concentration unit conversions.

AirVisual reports NO2, O3 and SO2 in ppb and CO in mg/m³, while the values
exposed to the bridge are µg/m³ (densities) and ppm (CO level). Conversions use
the ideal gas molar volume at 0 °C and 1013 hPa (22.41 L/mol), corrected for
the measured temperature and pressure.
"""

import math

from airvisual_sensor.common.errors import InvalidMeasurement, UnsupportedPollutant
from airvisual_sensor.pipelines.conditions.schemas import Pollutant

MOLAR_VOLUME_STP = 22.41  # L/mol at 273 K, 1013 hPa
STANDARD_PRESSURE_HPA = 1013
ZERO_CELSIUS_K = 273

# g/mol
PPB_MOLAR_MASSES: dict[Pollutant, float] = {
    Pollutant.NO2: 46.01,
    Pollutant.O3: 48.00,
    Pollutant.SO2: 64.07,
}
MG_MOLAR_MASSES: dict[Pollutant, float] = {
    Pollutant.CO: 28.01,
}


def _molar_volume(temperature_c: float, pressure_hpa: float) -> float:
    if not math.isfinite(temperature_c) or not math.isfinite(pressure_hpa):
        raise InvalidMeasurement(
            f"Temperature and pressure must be finite, got T={temperature_c}, P={pressure_hpa}"
        )
    if pressure_hpa == 0:
        raise InvalidMeasurement("Pressure must be non-zero")

    return (
        MOLAR_VOLUME_STP
        * ((temperature_c + ZERO_CELSIUS_K) / ZERO_CELSIUS_K)
        * (STANDARD_PRESSURE_HPA / pressure_hpa)
    )


def _molar_mass(table: dict[Pollutant, float], pollutant: Pollutant) -> float:
    try:
        return table[pollutant]
    except KeyError:
        raise UnsupportedPollutant(f"No conversion available for {pollutant}") from None


def ppb_to_micrograms_per_m3(
    pollutant: Pollutant, ppb: float, temperature_c: float, pressure_hpa: float
) -> float:
    """
    Convert a gas concentration from ppb to µg/m³, rounded to the nearest unit.

    Args:
        pollutant (Pollutant): One of NO2, O3, SO2.
        ppb (float): Concentration in parts per billion.
        temperature_c (float): Ambient temperature in °C.
        pressure_hpa (float): Ambient pressure in hPa.

    Returns:
        float: Concentration in µg/m³.

    Raises:
        UnsupportedPollutant: If the pollutant has no ppb molar mass.
        InvalidMeasurement: If pressure is zero or either input is not finite.
    """
    molar_mass = _molar_mass(PPB_MOLAR_MASSES, pollutant)
    return float(round(ppb * (molar_mass / _molar_volume(temperature_c, pressure_hpa))))


def micrograms_per_m3_to_ppb(
    pollutant: Pollutant, micrograms: float, temperature_c: float, pressure_hpa: float
) -> float:
    """Inverse of ``ppb_to_micrograms_per_m3`` (unrounded)."""
    molar_mass = _molar_mass(PPB_MOLAR_MASSES, pollutant)
    return micrograms * _molar_volume(temperature_c, pressure_hpa) / molar_mass


def milligrams_per_m3_to_ppm(
    pollutant: Pollutant, milligrams: float, temperature_c: float, pressure_hpa: float
) -> float:
    """
    Convert a gas concentration from mg/m³ to ppm. Only CO is supported.

    Raises:
        UnsupportedPollutant: For anything other than CO.
        InvalidMeasurement: If pressure is zero or either input is not finite.
    """
    molar_mass = _molar_mass(MG_MOLAR_MASSES, pollutant)
    return (milligrams * _molar_volume(temperature_c, pressure_hpa)) / molar_mass
