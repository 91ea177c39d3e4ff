import logging
from typing import Any

from airvisual_sensor.common.clients.snapshot_store import SnapshotStore
from airvisual_sensor.pipelines.conditions.schemas import Conditions

logger = logging.getLogger(__name__)


class ReadingCache:
    """
    Holds the last normalized reading of one accessory.

    The cell is replaced wholesale on every write; ``Conditions`` itself is
    frozen. The raw payload of each successful reading is written to the
    snapshot store so it survives a restart.

    Attributes:
        key (str): Accessory name, used as the snapshot key.
    """

    def __init__(self, key: str, store: SnapshotStore | None = None):
        self.key = key
        self._store = store
        self._conditions: Conditions | None = None

    @property
    def conditions(self) -> Conditions | None:
        return self._conditions

    def update(self, conditions: Conditions, raw_payload: dict[str, Any]) -> None:
        """
        Replace the cached reading and persist the raw payload.

        Snapshot write failures are logged; the in-memory reading is kept.

        Args:
            conditions (Conditions): Freshly normalized reading.
            raw_payload (dict[str, Any]): The provider response it was built from.
        """
        self._conditions = conditions

        if self._store is None:
            return
        try:
            self._store.save_dict_as_json(raw_payload, self.key)
        except Exception as err:
            logger.warning(f"Could not persist last reading for '{self.key}': {err}")

    def mark_stale(self) -> None:
        """Flag the cached reading as no longer backed by a live source."""
        if self._conditions is not None and self._conditions.source_active:
            self._conditions = self._conditions.model_copy(update={"source_active": False})

    def seed(self, conditions: Conditions) -> None:
        """Load a reading restored from disk; it is stored as stale."""
        self._conditions = conditions.model_copy(update={"source_active": False})

    def restore(self) -> dict[str, Any] | None:
        """Read the last-good payload from the snapshot store, if any."""
        if self._store is None:
            return None
        try:
            payload = self._store.load_json(self.key)
        except Exception as err:
            logger.warning(f"Could not restore last reading for '{self.key}': {err}")
            return None

        if payload is not None and not isinstance(payload, dict):
            logger.warning(f"Ignoring malformed snapshot for '{self.key}'")
            return None
        return payload
