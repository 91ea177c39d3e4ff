import math
from unittest.mock import MagicMock

from airvisual_sensor.common.config.accessory import SensorKind
from airvisual_sensor.pipelines.conditions.schemas import AirQualityCategory, Conditions, Pollutant
from airvisual_sensor.pipelines.conditions.sinks import (
    PROJECTORS,
    Characteristic,
    LoggingSink,
    SinkPublisher,
    StatusFault,
    project_air_quality,
    project_humidity,
    project_temperature,
)


def test_every_sensor_kind_has_a_projector():
    assert set(PROJECTORS) == set(SensorKind)


def test_air_quality_projection_includes_only_present_pollutants():
    conditions = Conditions(
        aqi=120,
        air_quality=AirQualityCategory.FAIR,
        pollutants={Pollutant.PM2_5: 43.1, Pollutant.CO: 0.4},
    )

    assert project_air_quality(conditions) == [
        (Characteristic.AIR_QUALITY, AirQualityCategory.FAIR),
        (Characteristic.PM2_5_DENSITY, 43.1),
        (Characteristic.CARBON_MONOXIDE_LEVEL, 0.4),
    ]


def test_missing_weather_values_are_not_projected():
    conditions = Conditions(humidity=math.nan, temperature=math.nan)

    assert project_humidity(conditions) == []
    assert project_temperature(conditions) == []


def test_publisher_failure_sets_status_only():
    sink = MagicMock()

    SinkPublisher(sink, SensorKind.TEMPERATURE).publish_failure(RuntimeError("down"))

    assert [c.args for c in sink.update_value.call_args_list] == [
        (Characteristic.STATUS_ACTIVE, False),
        (Characteristic.STATUS_FAULT, StatusFault.GENERAL_FAULT),
    ]


def test_publisher_keeps_pushing_when_sink_rejects_a_value():
    sink = MagicMock()
    sink.update_value.side_effect = [ValueError("out of range"), None, None]

    SinkPublisher(sink, SensorKind.TEMPERATURE).publish_success(Conditions(temperature=-80))

    assert sink.update_value.call_count == 3


def test_logging_sink_logs_values(caplog):
    with caplog.at_level("INFO"):
        LoggingSink("Balcony").update_value(Characteristic.CURRENT_TEMPERATURE, 21.5)

    assert "[Balcony] CurrentTemperature = 21.5" in caplog.text
