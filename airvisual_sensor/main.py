import logging
import signal
import threading

from airvisual_sensor.accessory import AirVisualAccessory
from airvisual_sensor.common.clients.airvisual_client import AirVisualApiClient
from airvisual_sensor.common.clients.snapshot_store import SnapshotStore
from airvisual_sensor.common.config.accessory import get_accessories_config
from airvisual_sensor.common.config.settings import settings

logger = logging.getLogger(__name__)


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


def build_accessories(store: SnapshotStore) -> list[AirVisualAccessory]:
    accessories_config = get_accessories_config(settings.app.config_path)

    accessories = []
    for config in accessories_config.accessories:
        client = AirVisualApiClient(
            base_url=settings.api.url_str,
            api_key=config.api_key,
            timeout=settings.api.timeout,
        )
        accessories.append(AirVisualAccessory(config, client, store=store))

    return accessories


def main() -> None:
    _setup_logging(settings.app.log_level)

    store = SnapshotStore(settings.storage.dir)
    accessories = build_accessories(store)
    logger.info(f"Started {len(accessories)} accessory(ies) from {settings.app.config_path}")

    stop_event = threading.Event()
    signal.signal(signal.SIGTERM, lambda _signum, _frame: stop_event.set())

    try:
        # First read of each getter fetches out of band and primes the cache
        for accessory in accessories:
            for characteristic, getter in accessory.characteristic_getters().items():
                logger.info(f"[{accessory.config.name}] initial {characteristic.value}: {getter()}")
        stop_event.wait()
    except KeyboardInterrupt:
        logger.info("Interrupted")
    finally:
        for accessory in accessories:
            accessory.shutdown()
        logger.info("All accessories stopped")


if __name__ == "__main__":
    main()
