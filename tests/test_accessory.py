import math
from unittest.mock import MagicMock, call

import pytest
import requests

from airvisual_sensor.accessory import AirVisualAccessory
from airvisual_sensor.common.clients.snapshot_store import SnapshotStore
from airvisual_sensor.pipelines.conditions.schemas import AirQualityCategory
from airvisual_sensor.pipelines.conditions.sinks import Characteristic, StatusFault


class FakeClock:
    def __init__(self):
        self.now = 1000.0

    def monotonic(self):
        return self.now


@pytest.fixture
def client(success_payload):
    client = MagicMock()
    client.get_current_conditions.return_value = success_payload
    return client


@pytest.fixture
def sink():
    return MagicMock()


@pytest.fixture
def timer_factory():
    return MagicMock()


@pytest.fixture
def store(tmp_path):
    return SnapshotStore(tmp_path)


def _pushed(sink) -> dict:
    return {c.args[0]: c.args[1] for c in sink.update_value.call_args_list}


def test_polling_accessory_starts_timer(make_config, client, sink, timer_factory):
    config = make_config(polling_interval=10)

    AirVisualAccessory(config, client, sink=sink, timer_factory=timer_factory)

    timer_factory.assert_called_once()
    assert timer_factory.call_args.args[0] == 600
    timer_factory.return_value.start.assert_called_once()
    client.get_current_conditions.assert_not_called()


def test_first_read_fetches_and_pushes_values(make_config, client, sink, timer_factory):
    config = make_config(latitude=34.05, longitude=-118.25)
    accessory = AirVisualAccessory(config, client, sink=sink, timer_factory=timer_factory)

    assert accessory.get_air_quality() is AirQualityCategory.GOOD
    assert accessory.get_air_quality() is AirQualityCategory.GOOD

    client.get_current_conditions.assert_called_once_with(config.location)

    pushed = _pushed(sink)
    assert pushed[Characteristic.AIR_QUALITY] is AirQualityCategory.GOOD
    assert pushed[Characteristic.PM2_5_DENSITY] == 23.7
    assert pushed[Characteristic.PM10_DENSITY] == 41
    assert pushed[Characteristic.NITROGEN_DIOXIDE_DENSITY] == 29.0
    assert pushed[Characteristic.OZONE_DENSITY] == 60.0
    assert pushed[Characteristic.SULPHUR_DIOXIDE_DENSITY] == 5.0
    assert Characteristic.CARBON_MONOXIDE_LEVEL in pushed
    assert pushed[Characteristic.STATUS_ACTIVE] is True
    assert pushed[Characteristic.STATUS_FAULT] == StatusFault.NO_FAULT
    assert Characteristic.CURRENT_TEMPERATURE not in pushed


def test_failed_fetch_returns_defaults_and_reports_fault(make_config, client, sink, timer_factory):
    client.get_current_conditions.side_effect = requests.ConnectionError("offline")
    accessory = AirVisualAccessory(make_config(), client, sink=sink, timer_factory=timer_factory)

    assert accessory.get_air_quality() is AirQualityCategory.UNKNOWN
    assert math.isnan(accessory.get_humidity())
    assert math.isnan(accessory.get_temperature())

    assert sink.update_value.call_args_list == [
        call(Characteristic.STATUS_ACTIVE, False),
        call(Characteristic.STATUS_FAULT, StatusFault.GENERAL_FAULT),
    ]


def test_provider_error_returns_defaults(make_config, client, sink, timer_factory):
    client.get_current_conditions.return_value = {"status": "fail", "data": {"message": "incorrect_api_key"}}
    accessory = AirVisualAccessory(make_config(), client, sink=sink, timer_factory=timer_factory)

    assert accessory.get_air_quality() is AirQualityCategory.UNKNOWN
    assert _pushed(sink)[Characteristic.STATUS_ACTIVE] is False


def test_restored_snapshot_serves_reads_while_provider_is_down(
    make_config, client, sink, timer_factory, store, success_payload
):
    config = make_config(name="Outdoor air")
    store.save_dict_as_json(success_payload, config.name)
    client.get_current_conditions.side_effect = requests.Timeout("slow")

    accessory = AirVisualAccessory(config, client, store=store, sink=sink, timer_factory=timer_factory)

    assert accessory.get_air_quality() is AirQualityCategory.GOOD
    assert accessory.get_temperature() == 20
    client.get_current_conditions.assert_called_once()


def test_successful_read_is_persisted(make_config, client, timer_factory, store, success_payload):
    config = make_config(name="Outdoor air")
    accessory = AirVisualAccessory(config, client, store=store, timer_factory=timer_factory)

    accessory.get_air_quality()

    assert store.load_json(config.name) == success_payload


def test_unusable_snapshot_is_discarded(make_config, client, timer_factory, store):
    config = make_config(name="Outdoor air")
    store.save_dict_as_json({"status": "call_limit_reached"}, config.name)
    client.get_current_conditions.side_effect = requests.ConnectionError("offline")

    accessory = AirVisualAccessory(config, client, store=store, timer_factory=timer_factory)

    assert accessory.get_air_quality() is AirQualityCategory.UNKNOWN


@pytest.mark.parametrize(
    "sensor, characteristic, expected",
    [
        ("air_quality", Characteristic.AIR_QUALITY, AirQualityCategory.GOOD),
        ("humidity", Characteristic.CURRENT_RELATIVE_HUMIDITY, 55),
        ("temperature", Characteristic.CURRENT_TEMPERATURE, 20),
    ],
)
def test_characteristic_getters_follow_sensor_kind(
    make_config, client, sink, timer_factory, sensor, characteristic, expected
):
    accessory = AirVisualAccessory(make_config(sensor=sensor), client, sink=sink, timer_factory=timer_factory)

    getters = accessory.characteristic_getters()

    assert list(getters) == [characteristic]
    assert getters[characteristic]() == expected
    assert _pushed(sink)[characteristic] == expected


def test_humidity_sensor_pushes_only_humidity(make_config, client, sink, timer_factory):
    accessory = AirVisualAccessory(make_config(sensor="humidity"), client, sink=sink, timer_factory=timer_factory)

    accessory.get_humidity()

    assert set(_pushed(sink)) == {
        Characteristic.CURRENT_RELATIVE_HUMIDITY,
        Characteristic.STATUS_ACTIVE,
        Characteristic.STATUS_FAULT,
    }


def test_without_polling_reads_refresh_after_interval(make_config, client, timer_factory, monkeypatch):
    clock = FakeClock()
    monkeypatch.setattr("airvisual_sensor.pipelines.conditions.scheduler.time", clock)
    accessory = AirVisualAccessory(
        make_config(polling=False, polling_interval=5), client, timer_factory=timer_factory
    )

    timer_factory.assert_not_called()

    accessory.get_air_quality()
    clock.now += 60
    accessory.get_air_quality()
    assert client.get_current_conditions.call_count == 1

    clock.now += 300
    accessory.get_air_quality()
    assert client.get_current_conditions.call_count == 2


def test_shutdown_stops_polling_and_closes_client(make_config, client, timer_factory):
    accessory = AirVisualAccessory(make_config(), client, timer_factory=timer_factory)

    accessory.shutdown()

    timer_factory.return_value.cancel.assert_called_once()
    client.close.assert_called_once()
    assert not accessory.scheduler.running


def test_identify_logs(make_config, client, timer_factory, caplog):
    accessory = AirVisualAccessory(make_config(name="Balcony"), client, timer_factory=timer_factory)

    with caplog.at_level("INFO"):
        accessory.identify()

    assert "Balcony" in caplog.text
