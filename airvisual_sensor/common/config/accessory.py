import logging
from collections.abc import Mapping
from enum import StrEnum
from pathlib import Path
from typing import Annotated, Any, Literal, Optional, TypeVar, Union

from pydantic import BaseModel, ConfigDict, Field, SecretStr

from airvisual_sensor.common.errors import ConfigurationError
from airvisual_sensor.common.utils.load_yaml import load_yaml
from airvisual_sensor.pipelines.conditions.schemas import Pollutant

logger = logging.getLogger(__name__)

DEFAULT_POLL_INTERVAL_MS = 15 * 60_000
MAX_POLL_INTERVAL_MINUTES = 24 * 60
PPB_NATIVE_POLLUTANTS = frozenset({Pollutant.NO2, Pollutant.O3, Pollutant.SO2})

_TRUE_STRINGS = {"true", "on", "yes", "1"}
_FALSE_STRINGS = {"false", "off", "no", "0"}

E = TypeVar("E", bound=StrEnum)


class SensorKind(StrEnum):
    AIR_QUALITY = "air_quality"
    HUMIDITY = "humidity"
    TEMPERATURE = "temperature"


class AqiStandard(StrEnum):
    US = "us"
    CN = "cn"


class GpsLocation(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["gps"] = "gps"
    latitude: float
    longitude: float


class CityLocation(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["city"] = "city"
    city: str
    state: str
    country: str


class IpLocation(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["ip"] = "ip"


Location = Annotated[Union[GpsLocation, CityLocation, IpLocation], Field(discriminator="kind")]


class AccessoryConfig(BaseModel):
    """
    Validated configuration of a single AirVisual accessory.

    Build it with ``from_mapping``: apart from the API key, bad values are
    logged and replaced by defaults instead of failing the accessory.

    Attributes:
        name (str): Display name, also the key of the cached reading.
        api_key (SecretStr): AirVisual API key.
        sensor_kind (SensorKind): Which service the accessory exposes.
        aqi_standard (AqiStandard): US or CN index.
        location (Location): How the station is looked up; fixed for the accessory's lifetime.
        ppb_conversion (frozenset[Pollutant]): Pollutants converted from ppb to µg/m³.
        polling (bool): Whether to refresh on a timer.
        poll_interval_ms (int): Timer period in milliseconds.
    """

    model_config = ConfigDict(frozen=True)

    name: str = "AirVisual"
    api_key: SecretStr
    sensor_kind: SensorKind = SensorKind.AIR_QUALITY
    aqi_standard: AqiStandard = AqiStandard.US
    location: Location = Field(default_factory=IpLocation)
    ppb_conversion: frozenset[Pollutant] = PPB_NATIVE_POLLUTANTS
    polling: bool = True
    poll_interval_ms: int = Field(default=DEFAULT_POLL_INTERVAL_MS, gt=0)

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "AccessoryConfig":
        """
        Build a configuration from the raw accessory block of the config file.

        Args:
            raw (Mapping[str, Any]): Keys ``name``, ``api_key``, ``sensor``, ``aqi_standard``,
                ``latitude``, ``longitude``, ``city``, ``state``, ``country``,
                ``ppb_conversion``, ``polling``, ``polling_interval`` (minutes).

        Returns:
            AccessoryConfig: The validated configuration.

        Raises:
            ConfigurationError: If the API key is missing or blank.
        """
        name = str(raw.get("name") or "AirVisual")

        api_key = raw.get("api_key")
        if api_key is None or not str(api_key).strip():
            raise ConfigurationError(f"A config value for 'api_key' is required for accessory '{name}'")

        return cls(
            name=name,
            api_key=SecretStr(str(api_key).strip()),
            sensor_kind=_parse_enum(SensorKind, raw.get("sensor"), SensorKind.AIR_QUALITY, "sensor"),
            aqi_standard=_parse_enum(AqiStandard, raw.get("aqi_standard"), AqiStandard.US, "aqi_standard"),
            location=_parse_location(raw),
            ppb_conversion=_parse_ppb_conversion(raw.get("ppb_conversion")),
            polling=_parse_bool(raw.get("polling"), True, "polling"),
            poll_interval_ms=_parse_poll_interval(raw.get("polling_interval")),
        )


class AccessoriesConfig(BaseModel):
    """
    Container for all accessories declared in the configuration file.

    Attributes:
        accessories (list[AccessoryConfig]): Accessories in declaration order.
    """

    accessories: list[AccessoryConfig]


def _is_present(value: Any) -> bool:
    return value is not None and str(value).strip() != ""


def _parse_enum(enum_cls: type[E], value: Any, default: E, key: str) -> E:
    if value is None:
        return default
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        logger.warning(f"Invalid value '{value}' for '{key}' (expected one of: {allowed}); using '{default.value}'")
        return default


def _parse_bool(value: Any, default: bool, key: str) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in _TRUE_STRINGS:
        return True
    if text in _FALSE_STRINGS:
        return False
    logger.warning(f"Invalid value '{value}' for '{key}'; using {default}")
    return default


def _parse_location(raw: Mapping[str, Any]) -> Location:
    gps = [raw.get("latitude"), raw.get("longitude")]
    city = [raw.get("city"), raw.get("state"), raw.get("country")]

    gps_present = [_is_present(v) for v in gps]
    city_present = [_is_present(v) for v in city]

    if any(gps_present) and not all(gps_present):
        logger.warning("Both 'latitude' and 'longitude' are required for GPS lookup; falling back to IP geolocation")
        return IpLocation()
    if any(city_present) and not all(city_present):
        logger.warning(
            "'city', 'state' and 'country' are all required for city lookup; falling back to IP geolocation"
        )
        return IpLocation()

    if all(gps_present):
        try:
            return GpsLocation(latitude=float(gps[0]), longitude=float(gps[1]))
        except (TypeError, ValueError):
            logger.warning(f"Invalid GPS coordinates {gps}; falling back to IP geolocation")
            return IpLocation()
    if all(city_present):
        return CityLocation(city=str(city[0]).strip(), state=str(city[1]).strip(), country=str(city[2]).strip())

    return IpLocation()


def _parse_ppb_conversion(value: Any) -> frozenset[Pollutant]:
    if value is None:
        return PPB_NATIVE_POLLUTANTS
    if isinstance(value, str):
        value = [value]
    if not isinstance(value, (list, tuple, set, frozenset)):
        logger.warning(f"Invalid 'ppb_conversion' {value!r}; converting no2, o3 and so2")
        return PPB_NATIVE_POLLUTANTS

    selected = set()
    for item in value:
        try:
            pollutant = Pollutant(str(item).strip().lower())
        except ValueError:
            pollutant = None
        if pollutant not in PPB_NATIVE_POLLUTANTS:
            logger.warning(f"Ignoring '{item}' in 'ppb_conversion'; only no2, o3 and so2 are reported in ppb")
            continue
        selected.add(pollutant)

    return frozenset(selected)


def _parse_poll_interval(value: Any) -> int:
    if value is None:
        return DEFAULT_POLL_INTERVAL_MS
    try:
        minutes = float(value)
    except (TypeError, ValueError):
        logger.warning(f"Invalid 'polling_interval' {value!r}; using {DEFAULT_POLL_INTERVAL_MS // 60_000} minutes")
        return DEFAULT_POLL_INTERVAL_MS

    if minutes <= 0:
        logger.warning(f"'polling_interval' must be positive, got {value}; using {DEFAULT_POLL_INTERVAL_MS // 60_000} minutes")
        return DEFAULT_POLL_INTERVAL_MS

    if minutes > MAX_POLL_INTERVAL_MINUTES:
        logger.warning(
            f"'polling_interval' of {value} minutes is longer than a day; treating it as milliseconds"
        )
        return int(minutes)

    return max(1, int(minutes * 60_000))


def get_accessories_config(config_path: Optional[Path] = None) -> AccessoriesConfig:
    """
    Loads and validates the accessories configuration file.

    If no config path is provided, it defaults to config.yml in the current
    working directory.

    Args:
        config_path (Optional[Path]): Path to the YAML configuration file.

    Returns:
        AccessoriesConfig: The configured accessories.

    Raises:
        FileNotFoundError: If the configuration file is not found.
        yaml.YAMLError: If the YAML cannot be parsed.
        ConfigurationError: If an accessory lacks an API key or the file has no accessory list.
    """
    if config_path is None:
        config_path = Path("config.yml")

    raw_data = load_yaml(config_path)

    entries = raw_data.get("accessories")
    if not isinstance(entries, list) or not all(isinstance(entry, Mapping) for entry in entries):
        raise ConfigurationError(f"'accessories' must be a list of mappings in {config_path}")

    return AccessoriesConfig(accessories=[AccessoryConfig.from_mapping(entry) for entry in entries])
