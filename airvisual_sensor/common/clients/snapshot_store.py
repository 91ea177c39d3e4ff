import json
import logging
from pathlib import Path
from typing import Any
from urllib.parse import quote

logger = logging.getLogger(__name__)


class SnapshotStore:
    def __init__(self, directory: Path | str):
        self._dir = Path(directory)

    def _path(self, key: str) -> Path:
        # Percent-encoding keeps distinct keys in distinct files
        return self._dir / f"{quote(key, safe='')}.json"

    def load_json(self, key: str) -> dict[str, Any] | None:
        path = self._path(key)
        try:
            with open(path, encoding="UTF-8") as file:
                return json.load(file)
        except FileNotFoundError:
            logger.debug(f"No snapshot for '{key}' at {path}")
            return None
        except Exception as err:
            logger.error(f"Failed to load json from {path}. Error: {err}")
            raise

    def save_dict_as_json(self, data: dict[str, Any], key: str) -> None:
        path = self._path(key)
        tmp_path = path.with_name(f"{path.name}.tmp")
        try:
            self._dir.mkdir(parents=True, exist_ok=True)

            with open(tmp_path, "w", encoding="UTF-8") as file:
                json.dump(data, file, ensure_ascii=False)
            tmp_path.replace(path)

            logger.debug(f"Successfully saved JSON to {path}")

        except Exception:
            logger.error(f"Failed to save JSON to {path}")
            raise
