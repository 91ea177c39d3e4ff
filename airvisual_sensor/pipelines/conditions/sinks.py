"""
Projection of readings onto accessory characteristics.

Each sensor kind exposes a different subset of a ``Conditions`` reading. The
projector for the configured kind is picked once, and every poll cycle pushes
its output plus the status characteristics to a ``ValueSink``.
"""

import logging
import math
from collections.abc import Callable
from enum import IntEnum, StrEnum
from typing import Protocol

from airvisual_sensor.common.config.accessory import SensorKind
from airvisual_sensor.pipelines.conditions.schemas import Conditions, Pollutant

logger = logging.getLogger(__name__)


class Characteristic(StrEnum):
    AIR_QUALITY = "AirQuality"
    OZONE_DENSITY = "OzoneDensity"
    NITROGEN_DIOXIDE_DENSITY = "NitrogenDioxideDensity"
    SULPHUR_DIOXIDE_DENSITY = "SulphurDioxideDensity"
    PM2_5_DENSITY = "PM2_5Density"
    PM10_DENSITY = "PM10Density"
    CARBON_MONOXIDE_LEVEL = "CarbonMonoxideLevel"
    CURRENT_RELATIVE_HUMIDITY = "CurrentRelativeHumidity"
    CURRENT_TEMPERATURE = "CurrentTemperature"
    STATUS_ACTIVE = "StatusActive"
    STATUS_FAULT = "StatusFault"


class StatusFault(IntEnum):
    NO_FAULT = 0
    GENERAL_FAULT = 1


POLLUTANT_CHARACTERISTICS: dict[Pollutant, Characteristic] = {
    Pollutant.O3: Characteristic.OZONE_DENSITY,
    Pollutant.NO2: Characteristic.NITROGEN_DIOXIDE_DENSITY,
    Pollutant.SO2: Characteristic.SULPHUR_DIOXIDE_DENSITY,
    Pollutant.PM2_5: Characteristic.PM2_5_DENSITY,
    Pollutant.PM10: Characteristic.PM10_DENSITY,
    Pollutant.CO: Characteristic.CARBON_MONOXIDE_LEVEL,
}

Projection = list[tuple[Characteristic, float | int | bool]]


class ValueSink(Protocol):
    def update_value(self, characteristic: Characteristic, value: float | int | bool) -> None: ...


class LoggingSink:
    """Sink that only logs the pushed values; used when no host bridge is attached."""

    def __init__(self, name: str):
        self.name = name

    def update_value(self, characteristic: Characteristic, value: float | int | bool) -> None:
        logger.info(f"[{self.name}] {characteristic.value} = {value}")


def project_air_quality(conditions: Conditions) -> Projection:
    projection: Projection = [(Characteristic.AIR_QUALITY, conditions.air_quality)]
    for pollutant, characteristic in POLLUTANT_CHARACTERISTICS.items():
        value = conditions.pollutants.get(pollutant)
        if value is not None:
            projection.append((characteristic, value))
    return projection


def project_humidity(conditions: Conditions) -> Projection:
    if math.isnan(conditions.humidity):
        return []
    return [(Characteristic.CURRENT_RELATIVE_HUMIDITY, conditions.humidity)]


def project_temperature(conditions: Conditions) -> Projection:
    if math.isnan(conditions.temperature):
        return []
    return [(Characteristic.CURRENT_TEMPERATURE, conditions.temperature)]


PROJECTORS: dict[SensorKind, Callable[[Conditions], Projection]] = {
    SensorKind.AIR_QUALITY: project_air_quality,
    SensorKind.HUMIDITY: project_humidity,
    SensorKind.TEMPERATURE: project_temperature,
}


class SinkPublisher:
    """
    Pushes poll cycle outcomes to a sink.

    Args:
        sink: Receiver of characteristic updates.
        sensor_kind: Selects the projector used for successful readings.
    """

    def __init__(self, sink: ValueSink, sensor_kind: SensorKind):
        self._sink = sink
        self._project = PROJECTORS[sensor_kind]

    def publish_success(self, conditions: Conditions) -> None:
        for characteristic, value in self._project(conditions):
            self._push(characteristic, value)
        self._push(Characteristic.STATUS_ACTIVE, True)
        self._push(Characteristic.STATUS_FAULT, StatusFault.NO_FAULT)

    def publish_failure(self, err: Exception) -> None:
        self._push(Characteristic.STATUS_ACTIVE, False)
        self._push(Characteristic.STATUS_FAULT, StatusFault.GENERAL_FAULT)

    def _push(self, characteristic: Characteristic, value: float | int | bool) -> None:
        try:
            self._sink.update_value(characteristic, value)
        except Exception as err:
            logger.warning(f"Sink rejected {characteristic.value}={value}: {err}")
