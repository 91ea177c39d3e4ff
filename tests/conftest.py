"""
Shared fixtures: a representative AirVisual payload and an accessory config factory.
"""

import copy

import pytest

from airvisual_sensor.common.config.accessory import AccessoryConfig

SUCCESS_PAYLOAD = {
    "status": "success",
    "data": {
        "city": "Los Angeles",
        "state": "California",
        "country": "USA",
        "location": {"type": "Point", "coordinates": [-118.2417, 34.0669]},
        "current": {
            "weather": {"ts": "2024-05-01T12:00:00.000Z", "tp": 20, "pr": 1013, "hu": 55, "ws": 2.1},
            "pollution": {
                "ts": "2024-05-01T12:00:00.000Z",
                "aqius": 75,
                "mainus": "p2",
                "aqicn": 33,
                "maincn": "p2",
                "p2": {"conc": 23.7, "aqius": 75, "aqicn": 33},
                "p1": {"conc": 41, "aqius": 38, "aqicn": 41},
                "o3": {"conc": 30, "aqius": 24, "aqicn": 19},
                "n2": {"conc": 15, "aqius": 4, "aqicn": 15},
                "s2": {"conc": 2, "aqius": 1, "aqicn": 3},
                "co": {"conc": 0.5, "aqius": 5, "aqicn": 1},
            },
        },
    },
}


@pytest.fixture
def success_payload():
    return copy.deepcopy(SUCCESS_PAYLOAD)


@pytest.fixture
def make_config():
    def _make(**raw):
        return AccessoryConfig.from_mapping({"api_key": "test-key", **raw})

    return _make
