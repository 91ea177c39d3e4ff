import logging
import math
from collections.abc import Mapping
from enum import IntEnum, StrEnum
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = logging.getLogger(__name__)


class Pollutant(StrEnum):
    CO = "co"
    NO2 = "no2"
    O3 = "o3"
    SO2 = "so2"
    PM10 = "pm10"
    PM2_5 = "pm2_5"


class AirQualityCategory(IntEnum):
    """Ordinal air quality scale; values follow the HomeKit AirQuality characteristic."""

    UNKNOWN = 0
    EXCELLENT = 1
    GOOD = 2
    FAIR = 3
    INFERIOR = 4
    POOR = 5


def _lenient_float(v: Any, field_name: str) -> float | None:
    if v is None or isinstance(v, bool):
        return None
    try:
        return float(v)
    except (TypeError, ValueError):
        logger.debug(f"Ignoring unparsable value for '{field_name}': {v!r}")
        return None


class _Concentration(BaseModel):
    """Per-pollutant block, e.g. ``{"conc": 12.3, "aqius": 51, "aqicn": 17}``."""

    model_config = ConfigDict(extra="ignore")

    conc: float | None = None

    @field_validator("conc", mode="before")
    @classmethod
    def coerce_number(cls, v, info):
        return _lenient_float(v, info.field_name)


class _Pollution(BaseModel):
    model_config = ConfigDict(extra="ignore")

    aqius: float | None = Field(default=None, description="AQI, US EPA standard")
    aqicn: float | None = Field(default=None, description="AQI, China MEP standard")
    p2: _Concentration | None = Field(default=None, description="PM2.5, µg/m³")
    p1: _Concentration | None = Field(default=None, description="PM10, µg/m³")
    o3: _Concentration | None = Field(default=None, description="Ozone, ppb")
    n2: _Concentration | None = Field(default=None, description="Nitrogen dioxide, ppb")
    s2: _Concentration | None = Field(default=None, description="Sulphur dioxide, ppb")
    co: _Concentration | None = Field(default=None, description="Carbon monoxide, mg/m³")

    @field_validator("aqius", "aqicn", mode="before")
    @classmethod
    def coerce_number(cls, v, info):
        return _lenient_float(v, info.field_name)

    @field_validator("p2", "p1", "o3", "n2", "s2", "co", mode="before")
    @classmethod
    def drop_malformed_block(cls, v, info):
        if v is not None and not isinstance(v, dict):
            logger.debug(f"Ignoring malformed pollutant block '{info.field_name}': {v!r}")
            return None
        return v


class _Weather(BaseModel):
    model_config = ConfigDict(extra="ignore")

    tp: float | None = Field(default=None, description="Temperature, °C")
    hu: float | None = Field(default=None, description="Relative humidity, %")
    pr: float | None = Field(default=None, description="Atmospheric pressure, hPa")

    @field_validator("*", mode="before")
    @classmethod
    def coerce_number(cls, v, info):
        return _lenient_float(v, info.field_name)


class _Current(BaseModel):
    model_config = ConfigDict(extra="ignore")

    weather: _Weather = Field(default_factory=_Weather)
    pollution: _Pollution = Field(default_factory=_Pollution)

    @field_validator("weather", "pollution", mode="before")
    @classmethod
    def default_malformed_block(cls, v):
        return v if isinstance(v, dict) else {}


class _Location(BaseModel):
    model_config = ConfigDict(extra="ignore")

    coordinates: list[Any] | None = None

    @field_validator("coordinates", mode="before")
    @classmethod
    def keep_only_lists(cls, v):
        return v if isinstance(v, list) else None


class _Data(BaseModel):
    model_config = ConfigDict(extra="ignore")

    city: str | None = None
    state: str | None = None
    country: str | None = None
    location: _Location | None = None
    current: _Current = Field(default_factory=_Current)
    message: str | None = None

    @field_validator("city", "state", "country", "message", mode="before")
    @classmethod
    def stringify(cls, v):
        return None if v is None else str(v)

    @field_validator("current", mode="before")
    @classmethod
    def default_malformed_current(cls, v):
        return v if isinstance(v, dict) else {}

    @field_validator("location", mode="before")
    @classmethod
    def drop_malformed_location(cls, v):
        return v if isinstance(v, dict) else None


class AirVisualResponse(BaseModel):
    """
    Pydantic model of an AirVisual v2 ``city`` / ``nearest_city`` response.

    Every nested field is optional: the provider omits pollutant blocks it does
    not measure, and the normalizer treats absence as "not reported" rather than
    as a schema violation.
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    status: str | None = None
    data: _Data | None = None

    @field_validator("status", mode="before")
    @classmethod
    def stringify_status(cls, v):
        return None if v is None else str(v)

    @field_validator("data", mode="before")
    @classmethod
    def keep_only_objects(cls, v):
        # Failure responses sometimes carry a bare message string in "data".
        if isinstance(v, str):
            return {"message": v}
        return v if isinstance(v, dict) else None


class Conditions(BaseModel):
    """
    Canonical reading produced once per poll cycle.

    Missing scalar measurements are ``NaN``. ``pollutants`` only contains keys
    the provider supplied, or PM2.5 inferred from the AQI.
    """

    model_config = ConfigDict(frozen=True)

    aqi: float = math.nan
    air_quality: AirQualityCategory = AirQualityCategory.UNKNOWN
    humidity: float = math.nan
    temperature: float = math.nan
    pressure: float = math.nan
    pollutants: Mapping[Pollutant, float] = Field(default_factory=dict, validate_default=True)
    source_active: bool = True
    station: str | None = None

    @field_validator("pollutants")
    @classmethod
    def freeze_pollutants(cls, v):
        # frozen=True only blocks reassignment, the mapping itself must be read-only too
        return MappingProxyType(dict(v))
