import logging
import math
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from airvisual_sensor.common.config.accessory import AccessoryConfig, AqiStandard
from airvisual_sensor.common.errors import ConversionError, ProviderErrorKind, ProviderStatusError
from airvisual_sensor.pipelines.conditions.classifier import classify, infer_pm25_from_aqi
from airvisual_sensor.pipelines.conditions.schemas import (
    AirQualityCategory,
    AirVisualResponse,
    Conditions,
    Pollutant,
    _Data,
    _Pollution,
)
from airvisual_sensor.pipelines.conditions.units import milligrams_per_m3_to_ppm, ppb_to_micrograms_per_m3

logger = logging.getLogger(__name__)

SUCCESS_STATUS = "success"
FAIL_STATUS = "fail"

# Response field -> pollutant, for values reported directly in µg/m³
_MICROGRAM_FIELDS: dict[str, Pollutant] = {"p2": Pollutant.PM2_5, "p1": Pollutant.PM10}
# Response field -> pollutant, for gases the provider reports in ppb
_PPB_FIELDS: dict[str, Pollutant] = {"n2": Pollutant.NO2, "o3": Pollutant.O3, "s2": Pollutant.SO2}

_STATUS_KINDS: dict[str, ProviderErrorKind] = {
    kind.value: kind for kind in ProviderErrorKind if kind is not ProviderErrorKind.UNKNOWN_STATUS
}


def _nan_if_missing(value: float | None) -> float:
    return math.nan if value is None else value


def status_to_error_kind(status: str | None) -> ProviderErrorKind:
    """Look up the error kind for a provider status string; unknown strings map to UNKNOWN_STATUS."""
    return _STATUS_KINDS.get(status or "", ProviderErrorKind.UNKNOWN_STATUS)


class ConditionsNormalizer:
    """
    Turns raw AirVisual payloads into ``Conditions``.

    Stateless apart from the accessory configuration it was built with, so a
    single instance serves every poll cycle.
    """

    def __init__(self, config: AccessoryConfig):
        self._aqi_standard = config.aqi_standard
        self._ppb_conversion = config.ppb_conversion

    def normalize(self, payload: Any) -> Conditions:
        """
        Normalize a single provider response.

        Missing weather or pollution fields degrade to NaN or to an absent
        pollutant; only a non-success status stops normalization.

        Args:
            payload (Any): Parsed JSON body returned by the provider.

        Returns:
            Conditions: The canonical reading, with ``source_active=True``.

        Raises:
            ProviderStatusError: If the payload does not carry a success status.
        """
        response = self._parse(payload)
        self._check_status(response)

        data = response.data or _Data()
        weather = data.current.weather
        pollution = data.current.pollution

        aqi = _nan_if_missing(pollution.aqius if self._aqi_standard is AqiStandard.US else pollution.aqicn)
        humidity = _nan_if_missing(weather.hu)
        pressure = _nan_if_missing(weather.pr)
        temperature = _nan_if_missing(weather.tp)

        air_quality = classify(aqi)
        station = ", ".join(part for part in (data.city, data.state, data.country) if part) or None

        logger.debug(f"Station: {station}, coordinates: {data.location.coordinates if data.location else None}")
        logger.debug(f"Air quality index ({self._aqi_standard.value}) is: {aqi}")
        logger.debug(f"Air quality is: {air_quality.name}")
        logger.debug(f"Humidity is: {humidity}%, pressure is: {pressure} hPa, temperature is: {temperature} °C")

        pollutants = self._pollutants(pollution, temperature, pressure)

        # The breakpoint table is on the US scale, whatever standard is reported
        us_aqi = _nan_if_missing(pollution.aqius)
        if Pollutant.PM2_5 not in pollutants and classify(us_aqi) is not AirQualityCategory.UNKNOWN:
            inferred = infer_pm25_from_aqi(us_aqi)
            if inferred is not None:
                logger.debug(f"PM2.5 density inferred from AQI: {inferred:.2f} µg/m³")
                pollutants[Pollutant.PM2_5] = inferred

        return Conditions(
            aqi=aqi,
            air_quality=air_quality,
            humidity=humidity,
            temperature=temperature,
            pressure=pressure,
            pollutants=pollutants,
            source_active=True,
            station=station,
        )

    @staticmethod
    def _parse(payload: Any) -> AirVisualResponse:
        if not isinstance(payload, Mapping):
            logger.error(f"Provider payload is not an object: {type(payload).__name__}")
            raise ProviderStatusError(ProviderErrorKind.UNKNOWN_STATUS)
        try:
            return AirVisualResponse.model_validate(dict(payload))
        except ValidationError as err:
            logger.error(f"Provider payload failed validation. Errors: {err.errors(include_url=False)}")
            raise ProviderStatusError(ProviderErrorKind.UNKNOWN_STATUS, payload.get("status")) from err

    @staticmethod
    def _check_status(response: AirVisualResponse) -> None:
        status = response.status
        if status == SUCCESS_STATUS:
            return

        # The live API wraps failures as {"status": "fail", "data": {"message": "<status>"}}
        if status == FAIL_STATUS and response.data is not None and response.data.message:
            status = response.data.message

        raise ProviderStatusError(status_to_error_kind(status), status)

    def _pollutants(self, pollution: _Pollution, temperature: float, pressure: float) -> dict[Pollutant, float]:
        pollutants: dict[Pollutant, float] = {}

        for field_name, pollutant in _MICROGRAM_FIELDS.items():
            value = self._concentration(pollution, field_name)
            if value is not None:
                pollutants[pollutant] = value

        for field_name, pollutant in _PPB_FIELDS.items():
            value = self._concentration(pollution, field_name)
            if value is None:
                continue
            if pollutant not in self._ppb_conversion:
                pollutants[pollutant] = value
                continue
            try:
                pollutants[pollutant] = ppb_to_micrograms_per_m3(pollutant, value, temperature, pressure)
            except ConversionError as err:
                logger.warning(f"Omitting {pollutant.value}: cannot convert {value} ppb ({err})")

        co = self._concentration(pollution, "co")
        if co is not None:
            try:
                pollutants[Pollutant.CO] = milligrams_per_m3_to_ppm(Pollutant.CO, co, temperature, pressure)
            except ConversionError as err:
                logger.warning(f"Omitting co: cannot convert {co} mg/m³ ({err})")

        for pollutant, value in pollutants.items():
            logger.debug(f"{pollutant.value} is: {value}")

        return pollutants

    @staticmethod
    def _concentration(pollution: _Pollution, field_name: str) -> float | None:
        block = getattr(pollution, field_name)
        if block is None or block.conc is None or math.isnan(block.conc):
            return None
        return block.conc
