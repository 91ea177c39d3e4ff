import logging
import math
from collections.abc import Callable
from typing import Any

from airvisual_sensor.common.clients.airvisual_client import AirVisualApiClient
from airvisual_sensor.common.clients.snapshot_store import SnapshotStore
from airvisual_sensor.common.config.accessory import AccessoryConfig, SensorKind
from airvisual_sensor.common.errors import AirVisualError
from airvisual_sensor.pipelines.conditions.cache import ReadingCache
from airvisual_sensor.pipelines.conditions.normalize import ConditionsNormalizer
from airvisual_sensor.pipelines.conditions.scheduler import (
    PollingScheduler,
    TimerFactory,
    daemon_timer,
    transport_guarded,
)
from airvisual_sensor.pipelines.conditions.schemas import AirQualityCategory, Conditions
from airvisual_sensor.pipelines.conditions.sinks import Characteristic, LoggingSink, SinkPublisher, ValueSink

logger = logging.getLogger(__name__)


class AirVisualAccessory:
    """
    One configured AirVisual sensor: air quality, humidity or temperature.

    Wires the client, normalizer, cache and scheduler together. Getters read
    the cache and never raise for degraded provider data; when nothing is
    cached they return ``AirQualityCategory.UNKNOWN`` or NaN.

    Args:
        config: Validated accessory configuration.
        client: Shared API client.
        store: Snapshot store used to keep the last good reading across restarts.
        sink: Receives characteristic updates after every poll cycle.
        timer_factory: Timer implementation for the polling loop.
    """

    def __init__(
        self,
        config: AccessoryConfig,
        client: AirVisualApiClient,
        store: SnapshotStore | None = None,
        sink: ValueSink | None = None,
        timer_factory: TimerFactory = daemon_timer,
    ):
        self.config = config
        self._client = client
        self._normalizer = ConditionsNormalizer(config)
        self._cache = ReadingCache(config.name, store)
        self._publisher = SinkPublisher(sink or LoggingSink(config.name), config.sensor_kind)
        self.scheduler = PollingScheduler(
            fetch=transport_guarded(self._fetch),
            normalizer=self._normalizer,
            cache=self._cache,
            interval_ms=config.poll_interval_ms,
            on_success=self._publisher.publish_success,
            on_failure=self._publisher.publish_failure,
            timer_factory=timer_factory,
        )

        # Without the timer, reads refresh whenever the cached reading is older than the interval
        self._max_age_secs = None if config.polling else config.poll_interval_ms / 1000

        self._restore_snapshot()

        logger.info(
            f"Accessory '{config.name}' ready: sensor={config.sensor_kind.value}, "
            f"location={config.location.kind}, standard={config.aqi_standard.value}"
        )

        if config.polling:
            self.scheduler.start()

    def _fetch(self) -> dict[str, Any]:
        return self._client.get_current_conditions(self.config.location)

    def _restore_snapshot(self) -> None:
        payload = self._cache.restore()
        if payload is None:
            return
        try:
            conditions = self._normalizer.normalize(payload)
        except AirVisualError as err:
            logger.warning(f"Discarding stored reading for '{self.config.name}': {err}")
            return
        self._cache.seed(conditions)
        logger.info(f"Restored last reading for '{self.config.name}' (AQI={conditions.aqi})")

    def _current(self) -> Conditions | None:
        return self.scheduler.current(self._max_age_secs)

    def get_air_quality(self) -> AirQualityCategory:
        conditions = self._current()
        return conditions.air_quality if conditions is not None else AirQualityCategory.UNKNOWN

    def get_humidity(self) -> float:
        conditions = self._current()
        return conditions.humidity if conditions is not None else math.nan

    def get_temperature(self) -> float:
        conditions = self._current()
        return conditions.temperature if conditions is not None else math.nan

    def characteristic_getters(self) -> dict[Characteristic, Callable[[], Any]]:
        """Getters exposed by the configured sensor kind."""
        if self.config.sensor_kind is SensorKind.HUMIDITY:
            return {Characteristic.CURRENT_RELATIVE_HUMIDITY: self.get_humidity}
        if self.config.sensor_kind is SensorKind.TEMPERATURE:
            return {Characteristic.CURRENT_TEMPERATURE: self.get_temperature}
        return {Characteristic.AIR_QUALITY: self.get_air_quality}

    def identify(self) -> None:
        logger.info(f"Identify requested for '{self.config.name}'")

    def shutdown(self) -> None:
        self.scheduler.stop()
        self._client.close()
